"""Source tree collection for site builds."""

from __future__ import annotations

import hashlib
import os
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Dict, Iterator, List, Sequence

from .errors import SourceError
from .logging import get_logger
from .models import MARKDOWN_SUFFIXES, Asset, Document, SourceTree, output_path_for

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "venv",
    "node_modules",
    "__pycache__",
    ".pytest_cache",
    ".mypy_cache",
    ".idea",
    "_build",
}

_EXCLUDED_FILES = {"Thumbs.db", "desktop.ini"}

# Build plumbing that sits at the top of a docs tree but is not content.
_ROOT_TOOLING_FILES = {"Makefile", "requirements.txt"}

logger = get_logger("source")


@dataclass
class IgnoreRule:
    """An ignore rule parsed from .gitignore or build.exclude_paths."""

    pattern: str
    directory_only: bool
    anchored: bool
    negate: bool
    has_slash: bool

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if not self.pattern:
            return False
        if self.directory_only and not is_dir:
            return False

        if self.anchored or self.has_slash:
            if fnmatchcase(rel_path, self.pattern):
                return True
            if self.directory_only and rel_path.startswith(f"{self.pattern}/"):
                return True
            return False

        return any(fnmatchcase(part, self.pattern) for part in rel_path.split("/"))


def build_ignore_rule(pattern: str) -> IgnoreRule | None:
    pattern = pattern.strip()
    if not pattern or pattern.startswith("#"):
        return None

    negate = pattern.startswith("!")
    if negate:
        pattern = pattern[1:]

    directory_only = pattern.endswith("/")
    if directory_only:
        pattern = pattern[:-1]

    anchored = pattern.startswith("/")
    if anchored:
        pattern = pattern[1:]

    return IgnoreRule(
        pattern=pattern,
        directory_only=directory_only,
        anchored=anchored,
        negate=negate,
        has_slash="/" in pattern,
    )


def _load_ignore_rules(root: Path, exclude_paths: Sequence[str]) -> List[IgnoreRule]:
    patterns: List[str] = []
    gitignore = root / ".gitignore"
    if gitignore.exists():
        patterns.extend(gitignore.read_text(encoding="utf-8").splitlines())
    patterns.extend(exclude_paths)

    rules: List[IgnoreRule] = []
    for pattern in patterns:
        rule = build_ignore_rule(pattern)
        if rule is not None:
            rules.append(rule)
    return rules


def _should_ignore(rel_path: str, is_dir: bool, rules: Sequence[IgnoreRule]) -> bool:
    ignored = False
    for rule in rules:
        if rule.matches(rel_path, is_dir):
            ignored = not rule.negate
    return ignored


def _iter_files(root: Path, rules: Sequence[IgnoreRule]) -> Iterator[str]:
    for dirpath, dirnames, filenames in os.walk(root):
        current_dir = Path(dirpath)
        rel_dir = current_dir.relative_to(root).as_posix() if current_dir != root else ""

        kept = []
        for name in sorted(dirnames):
            if name in _EXCLUDED_DIRS or name.startswith("."):
                continue
            rel_path = f"{rel_dir}/{name}" if rel_dir else name
            if _should_ignore(rel_path, True, rules):
                continue
            kept.append(name)
        dirnames[:] = kept

        for filename in sorted(filenames):
            if filename in _EXCLUDED_FILES or filename.startswith("."):
                continue
            if not rel_dir and filename in _ROOT_TOOLING_FILES:
                continue
            rel_path = f"{rel_dir}/{filename}" if rel_dir else filename
            if _should_ignore(rel_path, False, rules):
                continue
            yield rel_path


def _hash_bytes(payload: bytes) -> str:
    return hashlib.sha256(payload).hexdigest()


def _decode(rel_path: str, payload: bytes) -> str:
    try:
        text = payload.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise SourceError(f"{rel_path}: not valid UTF-8 ({exc.reason} at byte {exc.start})") from exc
    return text.lstrip("\ufeff")


def _fingerprint(entries: Sequence[tuple[str, str]]) -> str:
    digest = hashlib.sha256()
    for rel_path, file_hash in sorted(entries):
        digest.update(rel_path.encode("utf-8"))
        digest.update(b"\0")
        digest.update(file_hash.encode("ascii"))
        digest.update(b"\n")
    return digest.hexdigest()


def collect_sources(root: Path | str, *, exclude_paths: Sequence[str] = ()) -> SourceTree:
    """Walk ``root`` and return its documents and assets in a stable order."""
    root_path = Path(root).expanduser().resolve()
    if not root_path.exists():
        raise SourceError(f"Source directory not found: {root}")
    if not root_path.is_dir():
        raise SourceError(f"Source path is not a directory: {root}")

    rules = _load_ignore_rules(root_path, exclude_paths)
    documents: List[Document] = []
    assets: List[Asset] = []
    claimed: Dict[str, str] = {}

    for rel_path in _iter_files(root_path, rules):
        path = root_path / rel_path
        payload = path.read_bytes()
        file_hash = _hash_bytes(payload)

        if path.suffix.lower() in MARKDOWN_SUFFIXES:
            target = output_path_for(rel_path)
            if target in claimed:
                raise SourceError(
                    f"{claimed[target]} and {rel_path} would both render to {target}"
                )
            claimed[target] = rel_path
            documents.append(
                Document(
                    rel_path=rel_path,
                    source_path=path,
                    text=_decode(rel_path, payload),
                    sha256=file_hash,
                )
            )
        else:
            assets.append(Asset(rel_path=rel_path, source_path=path, sha256=file_hash))

    documents.sort(key=lambda doc: doc.rel_path)
    assets.sort(key=lambda asset: asset.rel_path)

    for asset in assets:
        if asset.rel_path in claimed:
            raise SourceError(
                f"{claimed[asset.rel_path]} and {asset.rel_path} would both be written to {asset.rel_path}"
            )

    fingerprint = _fingerprint(
        [(doc.rel_path, doc.sha256) for doc in documents]
        + [(asset.rel_path, asset.sha256) for asset in assets]
    )
    logger.debug(
        "Collected %d documents and %d assets from %s", len(documents), len(assets), root_path
    )
    return SourceTree(root=root_path, documents=documents, assets=assets, fingerprint=fingerprint)


__all__ = ["IgnoreRule", "build_ignore_rule", "collect_sources"]
