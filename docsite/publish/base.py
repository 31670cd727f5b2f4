"""Shared contract for publish targets."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from ..errors import PublishError
from ..models import PublishResult


class Publisher(ABC):
    """Makes a generated site directory the content that is served."""

    @abstractmethod
    def publish(self, site_dir: Path | str, *, dry_run: bool = False) -> PublishResult:
        """Replace the published tree with ``site_dir`` wholesale."""


def ensure_publishable(site_dir: Path | str) -> Path:
    """Return the resolved site directory, refusing missing or empty trees."""
    path = Path(site_dir).expanduser().resolve()
    if not path.is_dir():
        raise PublishError(f"Nothing to publish: {path} does not exist")
    if not any(child.is_file() for child in path.rglob("*")):
        raise PublishError(f"Nothing to publish: {path} is empty")
    return path


__all__ = ["Publisher", "ensure_publishable"]
