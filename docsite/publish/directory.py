"""Publish a site by replacing a directory that a web server serves."""

from __future__ import annotations

import shutil
from pathlib import Path

from ..errors import PublishError
from ..fsops import BUILD_MARKER, count_files, make_staging_dir, swap_directory
from ..logging import get_logger
from ..models import PublishResult
from .base import Publisher, ensure_publishable


class DirectoryPublisher(Publisher):
    """Copies the site next to ``target`` and swaps it in."""

    def __init__(self, target: Path | str) -> None:
        self.target = Path(target).expanduser().resolve()
        self.logger = get_logger("publish.directory")

    def publish(self, site_dir: Path | str, *, dry_run: bool = False) -> PublishResult:
        source = ensure_publishable(site_dir)
        if source == self.target or source.is_relative_to(self.target) or self.target.is_relative_to(source):
            raise PublishError(f"Publish target {self.target} overlaps the site directory {source}")

        files = count_files(source)
        if dry_run:
            self.logger.info("Dry-run: would replace %s with %d files", self.target, files)
            return PublishResult(target=str(self.target), files=files, dry_run=True)

        try:
            staging = make_staging_dir(self.target)
        except OSError as exc:
            raise PublishError(f"Cannot write to {self.target.parent}: {exc}") from exc
        try:
            shutil.copytree(
                source, staging, dirs_exist_ok=True, ignore=shutil.ignore_patterns(BUILD_MARKER)
            )
            swap_directory(staging, self.target)
        except OSError as exc:
            shutil.rmtree(staging, ignore_errors=True)
            raise PublishError(f"Failed to publish to {self.target}: {exc}") from exc

        self.logger.info("Published %d files to %s", files, self.target)
        return PublishResult(target=str(self.target), files=files)


__all__ = ["DirectoryPublisher"]
