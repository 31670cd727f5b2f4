"""Dependency manifest handling for the install step."""

from __future__ import annotations

import re
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List

from .errors import DependencyError
from .logging import get_logger

_NAME_RE = re.compile(r"^\s*(?P<name>[A-Za-z0-9][A-Za-z0-9._-]*)(?P<extras>\[[^\]]*\])?\s*(?P<spec>[^;#]*)")


@dataclass(frozen=True)
class Requirement:
    """A single line of a flat requirements file."""

    name: str
    specifier: str
    line: int

    @property
    def pinned(self) -> bool:
        return self.specifier.startswith("==") and "*" not in self.specifier and "," not in self.specifier


def read_requirements(path: Path) -> List[Requirement]:
    """Parse a flat, pinned requirements manifest."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise DependencyError(f"Cannot read {path}: {exc}") from exc

    requirements: List[Requirement] = []
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.split(" #", 1)[0].strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("-"):
            raise DependencyError(
                f"{path.name}:{lineno}: options and includes are not supported ({line.split()[0]})"
            )
        match = _NAME_RE.match(line)
        if not match:
            raise DependencyError(f"{path.name}:{lineno}: cannot parse requirement {line!r}")
        requirements.append(
            Requirement(
                name=match.group("name"),
                specifier=match.group("spec").replace(" ", ""),
                line=lineno,
            )
        )
    return requirements


class DependencyInstaller:
    """Installs the dependency manifest with pip before a build."""

    def __init__(self, runner: Callable[..., str] | None = None) -> None:
        self._runner = runner or self._default_runner
        self.logger = get_logger("install")

    def install(self, path: Path, *, require_pins: bool = False) -> List[Requirement]:
        """Install ``path``; a missing manifest is skipped."""
        if not path.exists():
            self.logger.info("No dependency manifest at %s; skipping install", path)
            return []

        requirements = read_requirements(path)
        unpinned = [req for req in requirements if not req.pinned]
        for req in unpinned:
            self.logger.warning("%s:%d: %s is not pinned", path.name, req.line, req.name)
        if unpinned and require_pins:
            names = ", ".join(req.name for req in unpinned)
            raise DependencyError(f"Unpinned requirements in {path.name}: {names}")

        if not requirements:
            self.logger.info("%s lists no packages; nothing to install", path.name)
            return requirements

        args = [sys.executable, "-m", "pip", "install", "--disable-pip-version-check", "-r", str(path)]
        self.logger.info("Installing %d requirements from %s", len(requirements), path)
        try:
            self._runner(args, cwd=path.parent)
        except subprocess.CalledProcessError as exc:
            raise DependencyError(
                f"pip could not install {path.name} (exit status {exc.returncode})"
            ) from exc
        except OSError as exc:
            raise DependencyError(f"Unable to run pip: {exc}") from exc
        return requirements

    @staticmethod
    def _default_runner(args: Iterable[str], *, cwd: Path) -> str:
        # pip's own output streams straight through; it is the diagnostic.
        subprocess.run(list(args), cwd=str(cwd), check=True)
        return ""


__all__ = ["DependencyInstaller", "Requirement", "read_requirements"]
