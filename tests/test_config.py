"""Tests for docsite.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from docsite.config import DEFAULT_EXTENSIONS, DocsiteConfig, load_config
from docsite.errors import ConfigError


def test_load_config_returns_defaults_when_missing(tmp_path: Path) -> None:
    config = load_config(tmp_path)

    assert isinstance(config, DocsiteConfig)
    assert config.root == tmp_path.resolve()
    assert config.site.title == "Documentation"
    assert config.build.source_dir == Path(".")
    assert config.build.output_dir == Path("_build/html")
    assert config.build.markdown_extensions == DEFAULT_EXTENSIONS
    assert config.build.strict_links is False
    assert config.publish.target == "branch"
    assert config.publish.branch == "gh-pages"
    assert config.publish.token_env == "GITHUB_TOKEN"
    assert config.publish.nojekyll is True
    assert config.dependencies.requirements == Path("requirements.txt")
    assert config.trigger.branch == "main"


def test_load_config_parses_expected_fields(tmp_path: Path) -> None:
    config_file = tmp_path / ".docsite.yml"
    config_file.write_text(
        """
site:
  title: "Django notes"
build:
  source_dir: "content"
  output_dir: "public"
  templates_dir: "theme"
  markdown_extensions: [fenced_code, tables]
  exclude_paths:
    - "drafts/"
  strict_links: true
publish:
  target: branch
  branch: pages
  remote: "https://github.com/example/notes.git"
  token_env: PAGES_TOKEN
  cname: docs.example.com
  nojekyll: false
  message: "publish"
dependencies:
  requirements: "docs/requirements.txt"
  require_pins: yes
trigger:
  branch: trunk
""",
        encoding="utf-8",
    )

    config = load_config(config_file)

    assert config.site.title == "Django notes"
    assert config.source_root == (tmp_path / "content").resolve()
    assert config.output_root == (tmp_path / "public").resolve()
    assert config.build.templates_dir == tmp_path.resolve() / "theme"
    assert config.build.markdown_extensions == ["fenced_code", "tables"]
    assert config.build.exclude_paths == ["drafts/"]
    assert config.build.strict_links is True

    assert config.publish.branch == "pages"
    assert config.publish.remote == "https://github.com/example/notes.git"
    assert config.publish.token_env == "PAGES_TOKEN"
    assert config.publish.cname == "docs.example.com"
    assert config.publish.nojekyll is False
    assert config.publish.message == "publish"

    assert config.dependencies.requirements == Path("docs/requirements.txt")
    assert config.dependencies.require_pins is True
    assert config.trigger.branch == "trunk"


def test_build_manifest_reflects_configuration(tmp_path: Path) -> None:
    (tmp_path / ".docsite.yml").write_text(
        "site:\n  title: Notes\nbuild:\n  strict_links: true\n", encoding="utf-8"
    )

    manifest = load_config(tmp_path).build_manifest()

    assert manifest.site_title == "Notes"
    assert manifest.strict_links is True
    assert manifest.markdown_extensions == tuple(DEFAULT_EXTENSIONS)


def test_exclude_patterns_cover_output_inside_source(tmp_path: Path) -> None:
    (tmp_path / ".docsite.yml").write_text(
        "build:\n  output_dir: site\n  exclude_paths: [drafts/]\n", encoding="utf-8"
    )

    config = load_config(tmp_path)

    assert config.exclude_patterns() == ["drafts/", "/site/"]


def test_directory_target_requires_directory(tmp_path: Path) -> None:
    (tmp_path / ".docsite.yml").write_text("publish:\n  target: directory\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_directory_target_resolves_against_root(tmp_path: Path) -> None:
    (tmp_path / ".docsite.yml").write_text(
        "publish:\n  target: directory\n  directory: www\n", encoding="utf-8"
    )

    config = load_config(tmp_path)

    assert config.publish.directory == tmp_path.resolve() / "www"


def test_unknown_publish_target_is_rejected(tmp_path: Path) -> None:
    (tmp_path / ".docsite.yml").write_text("publish:\n  target: s3\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="publish.target"):
        load_config(tmp_path)


def test_non_mapping_root_is_rejected(tmp_path: Path) -> None:
    (tmp_path / ".docsite.yml").write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_invalid_yaml_is_reported(tmp_path: Path) -> None:
    (tmp_path / ".docsite.yml").write_text("build: [unterminated\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="Failed to parse"):
        load_config(tmp_path)


def test_requirements_can_be_disabled(tmp_path: Path) -> None:
    (tmp_path / ".docsite.yml").write_text("dependencies:\n  requirements: null\n", encoding="utf-8")

    config = load_config(tmp_path)

    assert config.dependencies.requirements is None


def test_build_manifest_carries_source_and_output_dirs(tmp_path: Path) -> None:
    (tmp_path / ".docsite.yml").write_text(
        "build:\n  source_dir: docs\n  output_dir: public\n", encoding="utf-8"
    )

    manifest = load_config(tmp_path).build_manifest()

    assert manifest.source_dir == (tmp_path / "docs").resolve()
    assert manifest.output_dir == (tmp_path / "public").resolve()


def test_exclude_patterns_follow_explicit_output(tmp_path: Path) -> None:
    config = load_config(tmp_path)

    assert config.exclude_patterns(tmp_path / "preview") == ["/preview/"]
    assert config.exclude_patterns(tmp_path.parent / "elsewhere") == []
