"""Pipeline orchestration: install, build, publish."""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Callable, List, Optional

from .builder import SiteBuilder
from .config import DocsiteConfig, load_config
from .dependencies import DependencyInstaller
from .logging import get_logger
from .models import BuildManifest, GeneratedSite, PipelineResult, PublishResult
from .publish import Publisher, create_publisher
from .source import collect_sources

BuilderFactory = Callable[[BuildManifest], SiteBuilder]
PublisherFactory = Callable[[DocsiteConfig], Publisher]


class Pipeline:
    """Runs install → build → publish, stopping at the first failure.

    Every step raises a :class:`~docsite.errors.DocsiteError` subclass on
    failure; nothing downstream of a failed step runs.
    """

    def __init__(
        self,
        installer: DependencyInstaller | None = None,
        builder_factory: BuilderFactory | None = None,
        publisher_factory: PublisherFactory | None = None,
    ) -> None:
        self.installer = installer or DependencyInstaller()
        self.builder_factory = builder_factory or SiteBuilder
        self.publisher_factory = publisher_factory or create_publisher
        self.logger = get_logger("pipeline")

    def load(self, path: Path | str) -> DocsiteConfig:
        return load_config(Path(path))

    def install(self, config: DocsiteConfig) -> None:
        requirements = config.dependencies.requirements
        if requirements is None:
            self.logger.debug("Dependency install disabled by configuration")
            return
        self.installer.install(
            config.root / requirements,
            require_pins=config.dependencies.require_pins,
        )

    def build(self, config: DocsiteConfig, output_dir: Path | None = None) -> GeneratedSite:
        """Collect the source tree and render it into ``output_dir``."""
        if output_dir is not None:
            target = Path(output_dir).expanduser().resolve()
        else:
            target = config.output_root
        self.logger.info("Building %s", config.source_root)
        tree = collect_sources(config.source_root, exclude_paths=config.exclude_patterns(target))
        builder = self.builder_factory(config.build_manifest())
        return builder.build(tree, target)

    def publish(
        self, config: DocsiteConfig, site_dir: Path, *, dry_run: bool = False
    ) -> PublishResult:
        publisher = self.publisher_factory(config)
        self.logger.info("Publishing %s", site_dir)
        return publisher.publish(site_dir, dry_run=dry_run)

    def run(
        self,
        path: Path | str,
        *,
        skip_install: bool = False,
        dry_run: bool = False,
        output_dir: Optional[Path] = None,
    ) -> PipelineResult:
        """Run the full pipeline for the project at ``path``.

        Without ``output_dir`` the build goes to a temporary directory that is
        discarded once the run ends, whether or not it succeeded.
        """
        config = self.load(path)
        steps: List[str] = []

        if skip_install:
            self.logger.info("Skipping dependency install")
        else:
            self.install(config)
            steps.append("install")

        if output_dir is not None:
            site = self.build(config, output_dir)
            steps.append("build")
            result = self.publish(config, site.root, dry_run=dry_run)
            steps.append("publish")
            return PipelineResult(site=site, publish=result, steps=tuple(steps))

        with tempfile.TemporaryDirectory(prefix="docsite-build-") as workdir:
            site = self.build(config, Path(workdir) / "html")
            steps.append("build")
            result = self.publish(config, site.root, dry_run=dry_run)
            steps.append("publish")
        return PipelineResult(site=site, publish=result, steps=tuple(steps))


__all__ = ["Pipeline"]
