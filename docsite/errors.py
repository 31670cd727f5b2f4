"""Exception hierarchy shared by every pipeline step."""

from __future__ import annotations


class DocsiteError(RuntimeError):
    """Base class for failures that abort a pipeline run."""

    step = "pipeline"


class ConfigError(DocsiteError):
    """Raised when the configuration file cannot be parsed."""

    step = "config"


class SourceError(DocsiteError):
    """Raised when the source tree cannot be collected."""

    step = "build"


class BuildError(DocsiteError):
    """Raised when the site cannot be rendered."""

    step = "build"


class MarkupError(BuildError):
    """A document contains markup the builder refuses to render."""

    def __init__(self, path: str, line: int, message: str) -> None:
        super().__init__(f"{path}:{line}: {message}")
        self.path = path
        self.line = line
        self.message = message


class DependencyError(DocsiteError):
    """Raised when the dependency manifest cannot be installed."""

    step = "install"


class PublishError(DocsiteError):
    """Raised when the generated site cannot be published."""

    step = "publish"


class PublishAuthError(PublishError):
    """The hosting target rejected our credentials."""


__all__ = [
    "BuildError",
    "ConfigError",
    "DependencyError",
    "DocsiteError",
    "MarkupError",
    "PublishAuthError",
    "PublishError",
    "SourceError",
]
