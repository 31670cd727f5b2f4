"""Publish a site as the sole commit of a hosting branch."""

from __future__ import annotations

import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Callable, Iterable, Optional
from urllib.parse import urlsplit, urlunsplit

from ..errors import PublishAuthError, PublishError
from ..fsops import BUILD_MARKER, count_files
from ..logging import get_logger, redact, register_secret
from ..models import PublishResult
from .base import Publisher, ensure_publishable

Runner = Callable[..., str]

_AUTH_MARKERS = (
    "authentication failed",
    "could not read username",
    "invalid username or password",
    "permission denied",
    "permission to",
    "the requested url returned error: 401",
    "the requested url returned error: 403",
    "403 forbidden",
    "bad credentials",
)


class GitBranchPublisher(Publisher):
    """Force-pushes the site as a single orphan commit, superseding the branch."""

    def __init__(
        self,
        repo_root: Path | str,
        *,
        branch: str = "gh-pages",
        remote: str | None = None,
        token: str | None = None,
        cname: str | None = None,
        nojekyll: bool = True,
        message: str = "docs: publish site",
        runner: Runner | None = None,
    ) -> None:
        self.repo_root = Path(repo_root).expanduser().resolve()
        self.branch = branch
        self.remote = remote
        self.token = token
        self.cname = cname
        self.nojekyll = nojekyll
        self.message = message
        self._runner = runner or self._default_runner
        self.logger = get_logger("publish.git")
        register_secret(token)

    def publish(self, site_dir: Path | str, *, dry_run: bool = False) -> PublishResult:
        source = ensure_publishable(site_dir)
        remote_url = self._authenticated_remote(self._resolve_remote())
        description = f"{redact(remote_url)}#{self.branch}"

        with tempfile.TemporaryDirectory(prefix="docsite-publish-") as workdir:
            work = Path(workdir)
            shutil.copytree(
                source, work, dirs_exist_ok=True, ignore=shutil.ignore_patterns(".git", BUILD_MARKER)
            )
            if self.nojekyll:
                (work / ".nojekyll").write_text("", encoding="utf-8")
            if self.cname:
                (work / "CNAME").write_text(f"{self.cname.strip()}\n", encoding="utf-8")
            files = count_files(work)

            self._git(["init", "-q"], cwd=work)
            self._git(["checkout", "-q", "--orphan", self.branch], cwd=work)
            self._git(["add", "-A"], cwd=work)
            self._git(
                ["-c", "commit.gpgsign=false", "commit", "-q", "-m", self.message],
                cwd=work,
                env=_identity_env(),
            )
            revision = self._git(["rev-parse", "HEAD"], cwd=work, capture_output=True).strip()

            if dry_run:
                self.logger.info(
                    "Dry-run: would push %s (%d files) to %s", revision[:12], files, description
                )
                return PublishResult(target=description, files=files, revision=revision, dry_run=True)

            self.logger.info("Pushing %d files to %s", files, description)
            self._push(remote_url, cwd=work)

        self.logger.info("Published %s to %s", revision[:12], description)
        return PublishResult(target=description, files=files, revision=revision)

    # ------------------------------------------------------------------
    # Helpers

    def _resolve_remote(self) -> str:
        if self.remote:
            return self.remote
        if not (self.repo_root / ".git").exists():
            raise PublishError(
                f"No publish remote configured and {self.repo_root} is not a git checkout"
            )
        url = self._git(["remote", "get-url", "origin"], cwd=self.repo_root, capture_output=True)
        if not url.strip():
            raise PublishError("No publish remote configured and origin has no URL")
        return url.strip()

    def _authenticated_remote(self, url: str) -> str:
        if not self.token:
            return url
        parts = urlsplit(url)
        if parts.scheme != "https" or "@" in parts.netloc:
            return url
        netloc = f"x-access-token:{self.token}@{parts.netloc}"
        return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))

    def _push(self, remote_url: str, *, cwd: Path) -> None:
        args = ["git", "push", "--force", "--quiet", remote_url, f"HEAD:refs/heads/{self.branch}"]
        try:
            env = os.environ.copy()
            env["GIT_TERMINAL_PROMPT"] = "0"
            self._runner(args, cwd=cwd, env=env, capture_output=True)
        except subprocess.CalledProcessError as exc:
            detail = redact(_process_output(exc))
            if _looks_like_auth_failure(detail):
                raise PublishAuthError(
                    f"Hosting target rejected credentials for {redact(remote_url)}: {detail}"
                ) from None
            raise PublishError(f"git push to {redact(remote_url)} failed: {detail}") from None
        except OSError as exc:
            raise PublishError(f"Unable to run git: {exc}") from exc

    def _git(
        self,
        args: Iterable[str],
        *,
        cwd: Path,
        env: dict[str, str] | None = None,
        capture_output: bool = False,
    ) -> str:
        command = ["git", *args]
        try:
            return self._runner(command, cwd=cwd, env=env, capture_output=capture_output)
        except subprocess.CalledProcessError as exc:
            detail = redact(_process_output(exc))
            raise PublishError(f"{' '.join(command[:3])} failed: {detail}") from None
        except OSError as exc:
            raise PublishError(f"Unable to run git: {exc}") from exc

    @staticmethod
    def _default_runner(
        args: Iterable[str],
        *,
        cwd: Path,
        env: dict[str, str] | None = None,
        capture_output: bool = False,
    ) -> str:
        completed = subprocess.run(
            list(args),
            cwd=str(cwd),
            env=env,
            check=True,
            text=True,
            capture_output=capture_output,
        )
        if capture_output:
            return completed.stdout
        return ""


def _identity_env() -> dict[str, str]:
    env = os.environ.copy()
    env.setdefault("GIT_AUTHOR_NAME", "docsite")
    env.setdefault("GIT_AUTHOR_EMAIL", "docsite@users.noreply.github.com")
    env.setdefault("GIT_COMMITTER_NAME", env["GIT_AUTHOR_NAME"])
    env.setdefault("GIT_COMMITTER_EMAIL", env["GIT_AUTHOR_EMAIL"])
    return env


def _process_output(exc: subprocess.CalledProcessError) -> str:
    parts = [exc.stderr, exc.stdout]
    text = "\n".join(str(part).strip() for part in parts if part)
    return text or f"exit status {exc.returncode}"


def _looks_like_auth_failure(detail: str) -> bool:
    lowered = detail.lower()
    return any(marker in lowered for marker in _AUTH_MARKERS)


def token_from_env(name: Optional[str]) -> Optional[str]:
    """Read the publish token named by ``name`` from the environment."""
    if not name:
        return None
    value = os.environ.get(name, "").strip()
    return value or None


__all__ = ["GitBranchPublisher", "token_from_env"]
