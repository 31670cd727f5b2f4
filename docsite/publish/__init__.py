"""Publish targets for generated sites."""

from __future__ import annotations

from typing import Optional

from ..config import DocsiteConfig
from ..errors import ConfigError
from .base import Publisher, ensure_publishable
from .directory import DirectoryPublisher
from .git import GitBranchPublisher, Runner, token_from_env


def create_publisher(config: DocsiteConfig, *, runner: Optional[Runner] = None) -> Publisher:
    """Build the publisher described by ``config.publish``."""
    settings = config.publish
    if settings.target == "directory":
        if settings.directory is None:
            raise ConfigError("publish.directory is required for directory targets")
        return DirectoryPublisher(settings.directory)
    return GitBranchPublisher(
        config.root,
        branch=settings.branch,
        remote=settings.remote,
        token=token_from_env(settings.token_env),
        cname=settings.cname,
        nojekyll=settings.nojekyll,
        message=settings.message,
        runner=runner,
    )


__all__ = [
    "DirectoryPublisher",
    "GitBranchPublisher",
    "Publisher",
    "create_publisher",
    "ensure_publishable",
    "token_from_env",
]
