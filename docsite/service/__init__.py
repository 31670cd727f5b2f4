"""HTTP service mode for docsite."""

from .app import create_app, run_service, verify_signature

__all__ = ["create_app", "run_service", "verify_signature"]
