"""Relative link rewriting and validation."""

from __future__ import annotations

import posixpath
from typing import AbstractSet, List, Optional
from urllib.parse import urlsplit, urlunsplit

from markdown import Markdown
from markdown.extensions import Extension
from markdown.treeprocessors import Treeprocessor

from ..models import output_path_for

_CHECKED_ATTRIBUTES = (("a", "href"), ("img", "src"))


def resolve_target(page_path: str, target: str) -> Optional[tuple[str, str]]:
    """Resolve ``target`` relative to ``page_path``.

    Returns ``(site_path, fragment)`` for links into the site and ``None`` for
    external, absolute or anchor-only links.
    """
    parts = urlsplit(target)
    if parts.scheme or parts.netloc:
        return None
    if not parts.path or parts.path.startswith("/"):
        return None
    joined = posixpath.join(posixpath.dirname(page_path), parts.path)
    resolved = posixpath.normpath(joined)
    if resolved.startswith("../") or resolved == "..":
        return None
    return resolved, parts.fragment


class LinkTreeprocessor(Treeprocessor):
    """Points ``*.md`` links at rendered pages and records dangling targets."""

    def __init__(
        self,
        md: Markdown,
        *,
        page_path: str,
        documents: AbstractSet[str],
        assets: AbstractSet[str],
        issues: List[str],
        generated: AbstractSet[str] = frozenset(),
    ) -> None:
        super().__init__(md)
        self.page_path = page_path
        self.documents = documents
        self.assets = assets
        self.pages = {output_path_for(path) for path in documents} | set(generated)
        self.issues = issues

    def run(self, root):  # type: ignore[no-untyped-def]
        for tag, attribute in _CHECKED_ATTRIBUTES:
            for element in root.iter(tag):
                value = element.get(attribute)
                if value is None:
                    continue
                if not value.strip():
                    self.issues.append(f"{self.page_path}: empty {tag} {attribute}")
                    continue
                rewritten = self._rewrite(value.strip())
                if rewritten is not None:
                    element.set(attribute, rewritten)
        return None

    def _rewrite(self, target: str) -> Optional[str]:
        resolved = resolve_target(self.page_path, target)
        if resolved is None:
            return None
        site_path, _ = resolved
        if site_path in self.documents:
            parts = urlsplit(target)
            new_path = output_path_for(parts.path)
            return urlunsplit(("", "", new_path, parts.query, parts.fragment))
        if site_path in self.assets or site_path in self.pages:
            return None
        if site_path == "." or f"{site_path}/index.md" in self.documents:
            return None
        self.issues.append(f"{self.page_path}: link target not found: {target}")
        return None


class LinkExtension(Extension):
    """Registers :class:`LinkTreeprocessor` for a single page."""

    def __init__(
        self,
        *,
        page_path: str,
        documents: AbstractSet[str],
        assets: AbstractSet[str],
        generated: AbstractSet[str] = frozenset(),
    ) -> None:
        super().__init__()
        self.page_path = page_path
        self.documents = documents
        self.assets = assets
        self.generated = generated
        self.issues: List[str] = []

    def extendMarkdown(self, md: Markdown) -> None:  # noqa: N802 - markdown API
        processor = LinkTreeprocessor(
            md,
            page_path=self.page_path,
            documents=self.documents,
            assets=self.assets,
            issues=self.issues,
            generated=self.generated,
        )
        # After inline parsing (20) so links exist, before prettify (10).
        md.treeprocessors.register(processor, "docsite_links", 15)


__all__ = ["LinkExtension", "LinkTreeprocessor", "resolve_target"]
