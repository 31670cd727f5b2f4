"""Tests for the FastAPI service mode."""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from docsite.dependencies import DependencyInstaller
from docsite.pipeline import Pipeline
from docsite.service import create_app, verify_signature
from tests._fixtures.tree_builder import TreeBuilder

SECRET = "webhook-secret"

CONFIG = """
build:
  source_dir: docs
publish:
  target: directory
  directory: ../www
dependencies:
  requirements: null
"""


class _CountingPipeline(Pipeline):
    def __init__(self) -> None:
        super().__init__(installer=DependencyInstaller(runner=self._no_install))
        self.runs: list[str] = []
        self.loads_on_event_loop: list[bool] = []

    @staticmethod
    def _no_install(args, cwd):  # type: ignore[no-untyped-def]
        raise AssertionError("install is disabled in these projects")

    def load(self, path):  # type: ignore[no-untyped-def, override]
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            self.loads_on_event_loop.append(False)
        else:
            self.loads_on_event_loop.append(True)
        return super().load(path)

    def run(self, path, **kwargs):  # type: ignore[no-untyped-def, override]
        self.runs.append(str(path))
        return super().run(path, **kwargs)


@pytest.fixture
def project(tree_builder: TreeBuilder) -> Path:
    tree_builder.write({".docsite.yml": CONFIG, "docs/index.md": "# Home\n"})
    return tree_builder.path()


@pytest.fixture
def pipeline() -> _CountingPipeline:
    return _CountingPipeline()


@pytest.fixture
def client(project: Path, pipeline: _CountingPipeline) -> TestClient:
    app = create_app(str(project), lambda: pipeline, webhook_secret="")
    return TestClient(app)


def _push(client: TestClient, ref: str, **headers: str):  # type: ignore[no-untyped-def]
    return client.post(
        "/webhook",
        content=json.dumps({"ref": ref}).encode("utf-8"),
        headers={"X-GitHub-Event": "push", **headers},
    )


def _sign(body: bytes, secret: str = SECRET) -> str:
    return "sha256=" + hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def test_health_endpoint(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_build_endpoint(client: TestClient, project: Path) -> None:
    output = project / "public"

    response = client.post("/build", json={"path": ".", "output_dir": "public"})

    assert response.status_code == 200
    data = response.json()
    assert data["pages"] == ["index.html"]
    assert data["output_dir"] == str(output.resolve())
    assert len(data["fingerprint"]) == 64
    assert (output / "index.html").exists()


def test_push_to_trigger_branch_publishes(
    client: TestClient, pipeline: _CountingPipeline, tmp_path: Path
) -> None:
    response = _push(client, "refs/heads/main")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "published"
    assert data["pages"] == 1
    assert data["target"] == str((tmp_path / "www").resolve())
    assert len(pipeline.runs) == 1
    assert (tmp_path / "www" / "index.html").exists()


def test_push_to_other_branch_is_ignored(
    client: TestClient, pipeline: _CountingPipeline, tmp_path: Path
) -> None:
    response = _push(client, "refs/heads/feature")

    assert response.json() == {
        "status": "ignored",
        "ref": "refs/heads/feature",
        "pages": None,
        "target": None,
        "revision": None,
    }
    assert pipeline.runs == []
    assert not (tmp_path / "www").exists()
    assert pipeline.loads_on_event_loop == [False]


def test_ping_and_other_events(client: TestClient, pipeline: _CountingPipeline) -> None:
    ping = client.post("/webhook", content=b"{}", headers={"X-GitHub-Event": "ping"})
    issues = client.post("/webhook", content=b"{}", headers={"X-GitHub-Event": "issues"})

    assert ping.json()["status"] == "pong"
    assert issues.json()["status"] == "ignored"
    assert pipeline.runs == []


def test_non_json_push_is_rejected(client: TestClient) -> None:
    response = client.post("/webhook", content=b"not json", headers={"X-GitHub-Event": "push"})
    assert response.status_code == 400


def test_signature_is_enforced_when_secret_configured(
    project: Path, pipeline: _CountingPipeline
) -> None:
    client = TestClient(create_app(str(project), lambda: pipeline, webhook_secret=SECRET))
    body = json.dumps({"ref": "refs/heads/feature"}).encode("utf-8")

    rejected = client.post(
        "/webhook",
        content=body,
        headers={"X-GitHub-Event": "push", "X-Hub-Signature-256": _sign(body, "wrong")},
    )
    accepted = client.post(
        "/webhook",
        content=body,
        headers={"X-GitHub-Event": "push", "X-Hub-Signature-256": _sign(body)},
    )

    assert rejected.status_code == 401
    assert accepted.status_code == 200
    assert accepted.json()["status"] == "ignored"


def test_failed_build_reports_step(
    client: TestClient, tree_builder: TreeBuilder, tmp_path: Path
) -> None:
    tree_builder.write({"docs/index.md": "# Home\n\n```\nopen\n"})

    response = _push(client, "refs/heads/main")

    assert response.status_code == 400
    assert response.json()["step"] == "build"
    assert "index.md:3" in response.json()["detail"]
    assert not (tmp_path / "www").exists()


def test_missing_source_maps_to_not_found(client: TestClient, project: Path) -> None:
    nested = project / "nested"
    nested.mkdir()
    (nested / ".docsite.yml").write_text("build:\n  source_dir: nowhere\n", encoding="utf-8")

    response = client.post("/build", json={"path": "nested"})

    assert response.status_code == 404


def test_verify_signature() -> None:
    body = b'{"ref": "refs/heads/main"}'
    assert verify_signature(SECRET, body, _sign(body))
    assert not verify_signature(SECRET, body, None)
    assert not verify_signature(SECRET, body, "sha1=abc")
    assert not verify_signature(SECRET, body + b" ", _sign(body))


def test_build_output_outside_project_is_forbidden(client: TestClient, tmp_path: Path) -> None:
    important = tmp_path / "important"
    important.mkdir()
    (important / "keep.txt").write_text("keep", encoding="utf-8")

    response = client.post("/build", json={"output_dir": str(important)})
    escaped = client.post("/build", json={"path": "..", "output_dir": "site"})

    assert response.status_code == 403
    assert escaped.status_code == 403
    assert (important / "keep.txt").exists()


def test_build_will_not_replace_foreign_directory(client: TestClient, project: Path) -> None:
    notes = project / "notes"
    notes.mkdir()
    (notes / "keep.txt").write_text("keep", encoding="utf-8")

    response = client.post("/build", json={"output_dir": "notes"})

    assert response.status_code == 400
    assert response.json()["step"] == "build"
    assert (notes / "keep.txt").read_text(encoding="utf-8") == "keep"


def test_build_requires_signature_when_secret_configured(
    project: Path, pipeline: _CountingPipeline
) -> None:
    client = TestClient(create_app(str(project), lambda: pipeline, webhook_secret=SECRET))
    body = json.dumps({"output_dir": "public"}).encode("utf-8")

    unsigned = client.post("/build", content=body)
    signed = client.post("/build", content=body, headers={"X-Hub-Signature-256": _sign(body)})

    assert unsigned.status_code == 401
    assert not (project / "public").exists()
    assert signed.status_code == 200
    assert signed.json()["pages"] == ["index.html"]


def test_build_rejects_malformed_request(client: TestClient) -> None:
    response = client.post("/build", content=b'{"output_dir": 5')
    assert response.status_code == 422
