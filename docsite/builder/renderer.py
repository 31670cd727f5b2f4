"""Markdown to HTML site rendering."""

from __future__ import annotations

import posixpath
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import markdown
from jinja2 import Environment, FileSystemLoader, TemplateError, select_autoescape

from ..errors import BuildError
from ..fsops import BUILD_MARKER, is_replaceable, make_staging_dir, swap_directory
from ..logging import get_logger
from ..models import BuildManifest, Document, GeneratedSite, SourceTree
from .fences import check_fences
from .links import LinkExtension

PACKAGED_TEMPLATES = Path(__file__).with_name("templates")
INDEX_PAGE = "index.html"


@dataclass(frozen=True)
class NavEntry:
    """One document in the site navigation."""

    title: str
    path: str


class SiteBuilder:
    """Renders a :class:`SourceTree` into a static HTML directory."""

    def __init__(self, manifest: BuildManifest | None = None) -> None:
        self.manifest = manifest or BuildManifest()
        self.logger = get_logger("builder")
        self._env = self._create_env(self.manifest.templates_dir)
        self._check_extensions()

    def build(self, tree: SourceTree, output_dir: Path | str) -> GeneratedSite:
        """Render every document and swap the result into ``output_dir``."""
        output = Path(output_dir).expanduser().resolve()
        self._guard_output(tree.root, output)

        for document in tree.documents:
            check_fences(document)

        pages = self.render_pages(tree)
        if not pages:
            raise BuildError(f"No Markdown documents found under {tree.root}")
        if not is_replaceable(output):
            raise BuildError(
                f"Refusing to replace {output}: it is not empty and was not produced by docsite"
            )

        staging = make_staging_dir(output)
        try:
            for rel_path, html in sorted(pages.items()):
                target = staging / rel_path
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(html.encode("utf-8"))
            for asset in tree.assets:
                target = staging / asset.rel_path
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(asset.source_path, target)
            (staging / BUILD_MARKER).write_text("docsite\n", encoding="utf-8")
            swap_directory(staging, output)
        except BaseException:
            shutil.rmtree(staging, ignore_errors=True)
            raise

        self.logger.info(
            "Built %d pages and %d assets into %s", len(pages), len(tree.assets), output
        )
        return GeneratedSite(
            root=output,
            pages=sorted(pages),
            assets=[asset.rel_path for asset in tree.assets],
            fingerprint=tree.fingerprint,
        )

    def render_pages(self, tree: SourceTree) -> Dict[str, str]:
        """Return ``{output_path: html}`` for every page of the site."""
        documents = {doc.rel_path for doc in tree.documents}
        assets = {asset.rel_path for asset in tree.assets}
        nav = self._navigation(tree.documents)

        pages: Dict[str, str] = {}
        issues: List[str] = []
        for document in tree.documents:
            self.logger.debug("Rendering %s", document.rel_path)
            body, page_issues = self.render_body(document, documents=documents, assets=assets)
            issues.extend(page_issues)
            pages[document.output_path] = self._render_template(
                "page.html",
                page_path=document.output_path,
                nav=nav,
                page_title=document.title,
                body=body,
                source_path=document.rel_path,
            )

        if issues:
            if self.manifest.strict_links:
                raise BuildError("Broken links:\n  " + "\n  ".join(issues))
            for issue in issues:
                self.logger.warning(issue)

        if tree.documents and INDEX_PAGE not in pages:
            pages[INDEX_PAGE] = self._render_template(
                "index.html",
                page_path=INDEX_PAGE,
                nav=nav,
                page_title=self.manifest.site_title,
                body="",
                source_path=None,
            )
        return pages

    def render_body(
        self,
        document: Document,
        *,
        documents: Optional[set[str]] = None,
        assets: Optional[set[str]] = None,
    ) -> tuple[str, List[str]]:
        """Convert a single document's Markdown to an HTML fragment."""
        links = LinkExtension(
            page_path=document.rel_path,
            documents=documents if documents is not None else {document.rel_path},
            assets=assets or set(),
            generated={INDEX_PAGE},
        )
        md = markdown.Markdown(
            extensions=[*self.manifest.markdown_extensions, links],
            output_format="html",
        )
        try:
            html = md.convert(document.text)
        except Exception as exc:
            raise BuildError(f"{document.rel_path}: markdown conversion failed: {exc}") from exc
        return html, list(links.issues)

    # ------------------------------------------------------------------
    # Helpers

    def _navigation(self, documents: Sequence[Document]) -> List[NavEntry]:
        ordered = sorted(documents, key=lambda doc: (doc.output_path != INDEX_PAGE, doc.rel_path))
        return [NavEntry(title=doc.title, path=doc.output_path) for doc in ordered]

    def _render_template(
        self,
        name: str,
        *,
        page_path: str,
        nav: Sequence[NavEntry],
        page_title: str,
        body: str,
        source_path: Optional[str],
    ) -> str:
        base = posixpath.dirname(page_path)
        links = [
            {
                "title": entry.title,
                "url": _relative_url(entry.path, base),
                "current": entry.path == page_path,
            }
            for entry in nav
        ]
        try:
            template = self._env.get_template(name)
            rendered = template.render(
                site_title=self.manifest.site_title,
                page_title=page_title,
                body=body,
                nav=links,
                home_url=_relative_url(INDEX_PAGE, base),
                source_path=source_path,
            )
        except TemplateError as exc:
            raise BuildError(f"Template {name} failed for {page_path}: {exc}") from exc
        return rendered if rendered.endswith("\n") else rendered + "\n"

    def _check_extensions(self) -> None:
        try:
            markdown.Markdown(extensions=list(self.manifest.markdown_extensions))
        except (ImportError, AttributeError, TypeError) as exc:
            raise BuildError(f"Invalid markdown extension configuration: {exc}") from exc

    @staticmethod
    def _create_env(templates_dir: Path | None) -> Environment:
        search_path = [str(PACKAGED_TEMPLATES)]
        if templates_dir is not None:
            if not templates_dir.is_dir():
                raise BuildError(f"Templates directory not found: {templates_dir}")
            search_path.insert(0, str(templates_dir))
        return Environment(
            loader=FileSystemLoader(search_path),
            autoescape=select_autoescape(["html"]),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )

    @staticmethod
    def _guard_output(source_root: Path, output: Path) -> None:
        if output == source_root:
            raise BuildError("Output directory must differ from the source directory")
        if source_root.is_relative_to(output):
            raise BuildError(f"Output directory {output} would replace the source tree")


def _relative_url(target: str, base: str) -> str:
    return posixpath.relpath(target, base or ".")


__all__ = ["SiteBuilder", "NavEntry"]
