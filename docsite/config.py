"""Configuration loading for docsite (.docsite.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

from .errors import ConfigError
from .models import BuildManifest

CONFIG_FILENAME = ".docsite.yml"

DEFAULT_EXTENSIONS = ["fenced_code", "tables", "toc", "sane_lists"]

_PUBLISH_TARGETS = {"branch", "directory"}


@dataclass
class SiteConfig:
    """Presentation settings shared by every page."""

    title: str = "Documentation"


@dataclass
class BuildConfig:
    """How Markdown sources map to the generated HTML tree."""

    source_dir: Path = Path(".")
    output_dir: Path = Path("_build/html")
    templates_dir: Optional[Path] = None
    markdown_extensions: List[str] = field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    exclude_paths: List[str] = field(default_factory=list)
    strict_links: bool = False


@dataclass
class PublishConfig:
    """Where and how the generated site is published."""

    target: str = "branch"
    branch: str = "gh-pages"
    remote: Optional[str] = None
    directory: Optional[Path] = None
    token_env: str = "GITHUB_TOKEN"
    cname: Optional[str] = None
    nojekyll: bool = True
    message: str = "docs: publish site"


@dataclass
class DependencyConfig:
    """Pinned generator dependencies installed before a build."""

    requirements: Optional[Path] = Path("requirements.txt")
    require_pins: bool = False


@dataclass
class TriggerConfig:
    """Which pushes run the pipeline in service mode."""

    branch: str = "main"


@dataclass
class DocsiteConfig:
    """Represents the settings defined in .docsite.yml."""

    root: Path
    site: SiteConfig = field(default_factory=SiteConfig)
    build: BuildConfig = field(default_factory=BuildConfig)
    publish: PublishConfig = field(default_factory=PublishConfig)
    dependencies: DependencyConfig = field(default_factory=DependencyConfig)
    trigger: TriggerConfig = field(default_factory=TriggerConfig)

    @property
    def source_root(self) -> Path:
        return (self.root / self.build.source_dir).resolve()

    @property
    def output_root(self) -> Path:
        return (self.root / self.build.output_dir).resolve()

    def build_manifest(self) -> BuildManifest:
        return BuildManifest(
            site_title=self.site.title,
            markdown_extensions=tuple(self.build.markdown_extensions),
            templates_dir=self.build.templates_dir,
            strict_links=self.build.strict_links,
            source_dir=self.source_root,
            output_dir=self.output_root,
        )

    def exclude_patterns(self, output_dir: Optional[Path] = None) -> List[str]:
        """Exclusions for source collection, including an in-tree output directory.

        ``output_dir`` overrides the configured output when a build targets
        another directory.
        """
        patterns = list(self.build.exclude_paths)
        output = self.output_root
        if output_dir is not None:
            output = Path(output_dir).expanduser().resolve()
        try:
            rel_output = output.relative_to(self.source_root)
        except ValueError:
            return patterns
        if rel_output.parts:
            patterns.append(f"/{rel_output.as_posix()}/")
        return patterns


def load_config(config_path: Path) -> DocsiteConfig:
    """Load configuration from disk, falling back to defaults when absent."""
    config_file = _resolve_config_path(Path(config_path))
    root = config_file.parent.resolve()

    if not config_file.exists():
        return DocsiteConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    site_data = _as_dict(data.get("site"))
    site = SiteConfig()
    title = _as_str(site_data.get("title"))
    if title:
        site.title = title

    build_data = _as_dict(data.get("build"))
    build = BuildConfig()
    if build_data:
        source_dir = _as_str(build_data.get("source_dir"))
        output_dir = _as_str(build_data.get("output_dir"))
        templates_dir = _as_str(build_data.get("templates_dir"))
        if source_dir:
            build.source_dir = Path(source_dir)
        if output_dir:
            build.output_dir = Path(output_dir)
        if templates_dir:
            build.templates_dir = root / templates_dir
        if "markdown_extensions" in build_data:
            build.markdown_extensions = _as_str_list(build_data.get("markdown_extensions"))
        build.exclude_paths = _as_str_list(build_data.get("exclude_paths"))
        build.strict_links = _as_bool(build_data.get("strict_links")) or False

    publish_data = _as_dict(data.get("publish"))
    publish = PublishConfig()
    if publish_data:
        target = _as_str(publish_data.get("target"))
        if target:
            if target not in _PUBLISH_TARGETS:
                raise ConfigError(
                    f"publish.target must be one of {sorted(_PUBLISH_TARGETS)}, got {target!r}"
                )
            publish.target = target
        publish.branch = _as_str(publish_data.get("branch")) or publish.branch
        publish.remote = _as_str(publish_data.get("remote"))
        directory = _as_str(publish_data.get("directory"))
        publish.directory = root / directory if directory else None
        publish.token_env = _as_str(publish_data.get("token_env")) or publish.token_env
        publish.cname = _as_str(publish_data.get("cname"))
        nojekyll = _as_bool(publish_data.get("nojekyll"))
        if nojekyll is not None:
            publish.nojekyll = nojekyll
        publish.message = _as_str(publish_data.get("message")) or publish.message
    if publish.target == "directory" and publish.directory is None:
        raise ConfigError("publish.directory is required when publish.target is 'directory'")

    deps_data = _as_dict(data.get("dependencies"))
    dependencies = DependencyConfig()
    if deps_data:
        if "requirements" in deps_data:
            requirements = _as_str(deps_data.get("requirements"))
            dependencies.requirements = Path(requirements) if requirements else None
        dependencies.require_pins = _as_bool(deps_data.get("require_pins")) or False

    trigger_data = _as_dict(data.get("trigger"))
    trigger = TriggerConfig()
    branch = _as_str(trigger_data.get("branch"))
    if branch:
        trigger.branch = branch

    return DocsiteConfig(
        root=root,
        site=site,
        build=build,
        publish=publish,
        dependencies=dependencies,
        trigger=trigger,
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read {path.name}: {exc}") from exc
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded if loaded is not None else {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    return str(value) if isinstance(value, (str, int, float)) else None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []
