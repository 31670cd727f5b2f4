"""Core data models shared across docsite components."""

from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import List, Optional, Tuple

MARKDOWN_SUFFIXES = (".md", ".markdown")


@dataclass(frozen=True)
class Document:
    """A Markdown source file, read once per build."""

    rel_path: str
    source_path: Path
    text: str
    sha256: str

    @property
    def output_path(self) -> str:
        """Posix path of the rendered page relative to the site root."""
        return output_path_for(self.rel_path)

    @property
    def title(self) -> str:
        """First level-one heading outside code, else the file stem."""
        from .builder.fences import extract_title

        return extract_title(self.text) or PurePosixPath(self.rel_path).stem


@dataclass(frozen=True)
class Asset:
    """A non-Markdown file copied verbatim into the site."""

    rel_path: str
    source_path: Path
    sha256: str


@dataclass
class SourceTree:
    """Snapshot of the collected source files."""

    root: Path
    documents: List[Document]
    assets: List[Asset] = field(default_factory=list)
    fingerprint: str = ""

    def document(self, rel_path: str) -> Optional[Document]:
        for doc in self.documents:
            if doc.rel_path == rel_path:
                return doc
        return None


@dataclass(frozen=True)
class BuildManifest:
    """Generator settings that decide how sources become pages."""

    site_title: str = "Documentation"
    markdown_extensions: Tuple[str, ...] = ("fenced_code", "tables", "toc", "sane_lists")
    templates_dir: Optional[Path] = None
    strict_links: bool = False
    source_dir: Optional[Path] = None
    output_dir: Optional[Path] = None


@dataclass
class GeneratedSite:
    """Output directory produced by a single build."""

    root: Path
    pages: List[str]
    assets: List[str]
    fingerprint: str


@dataclass
class PublishResult:
    """Outcome of a publish step."""

    target: str
    files: int
    revision: Optional[str] = None
    dry_run: bool = False


@dataclass
class PipelineResult:
    """Outcome of a full install/build/publish run."""

    site: GeneratedSite
    publish: Optional[PublishResult]
    steps: Tuple[str, ...] = ()


def output_path_for(rel_path: str) -> str:
    """Map a Markdown source path to the page path it renders to."""
    path = PurePosixPath(rel_path)
    if path.suffix.lower() in MARKDOWN_SUFFIXES:
        path = path.with_suffix(".html")
    return path.as_posix()
