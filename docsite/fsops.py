"""Filesystem helpers for replacing directory trees in one step."""

from __future__ import annotations

import shutil
import tempfile
from pathlib import Path
from typing import Optional

# Written into every build output so a rebuild only ever replaces its own tree.
BUILD_MARKER = ".docsite-build"


def make_staging_dir(target: Path) -> Path:
    """Create an empty hidden sibling of ``target`` to assemble a new tree in."""
    target.parent.mkdir(parents=True, exist_ok=True)
    staging = Path(tempfile.mkdtemp(prefix=f".{target.name}.", dir=target.parent))
    staging.chmod(0o755)
    return staging


def is_replaceable(target: Path) -> bool:
    """True when ``target`` is absent, an empty directory, or an earlier build."""
    if not target.exists():
        return True
    if not target.is_dir():
        return False
    return (target / BUILD_MARKER).is_file() or not any(target.iterdir())


def swap_directory(staging: Path, target: Path) -> None:
    """Replace ``target`` with ``staging`` so readers never see a half-written tree.

    The previous tree is moved aside and deleted only after the new one is in place.
    """
    backup: Optional[Path] = None
    if target.exists():
        backup = target.with_name(f".{target.name}.old")
        if backup.exists():
            shutil.rmtree(backup)
        target.rename(backup)
    try:
        staging.rename(target)
    except OSError:
        if backup is not None:
            backup.rename(target)
        raise
    if backup is not None:
        shutil.rmtree(backup, ignore_errors=True)


def count_files(root: Path) -> int:
    return sum(1 for path in root.rglob("*") if path.is_file() and path.name != BUILD_MARKER)


__all__ = ["BUILD_MARKER", "count_files", "is_replaceable", "make_staging_dir", "swap_directory"]
