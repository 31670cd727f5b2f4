"""FastAPI application for webhook-triggered deploys."""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
import os
from pathlib import Path
from typing import Any, Callable, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from .. import __version__
from ..errors import DocsiteError, SourceError
from ..logging import get_logger
from ..models import GeneratedSite, PipelineResult
from ..pipeline import Pipeline

SECRET_ENV = "DOCSITE_WEBHOOK_SECRET"

logger = get_logger("service")


class BuildRequest(BaseModel):
    path: str = "."
    output_dir: Optional[str] = None


class BuildResponse(BaseModel):
    output_dir: str
    pages: List[str]
    fingerprint: str


class WebhookResponse(BaseModel):
    status: str
    ref: Optional[str] = None
    pages: Optional[int] = None
    target: Optional[str] = None
    revision: Optional[str] = None


class HealthResponse(BaseModel):
    status: str


def verify_signature(secret: str, body: bytes, signature: Optional[str]) -> bool:
    """Check a GitHub ``X-Hub-Signature-256`` header against ``body``."""
    if not signature or not signature.startswith("sha256="):
        return False
    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature.split("=", 1)[1])


def _inside(base: Path, value: str, field: str) -> Path:
    """Resolve ``value`` against ``base``, refusing paths that escape it."""
    base = base.resolve()
    candidate = (base / value).expanduser().resolve()
    if candidate != base and not candidate.is_relative_to(base):
        raise HTTPException(status_code=403, detail=f"{field} must stay inside {base}")
    return candidate


def create_app(
    project: str = ".",
    pipeline_factory: Callable[[], Pipeline] = Pipeline,
    webhook_secret: Optional[str] = None,
) -> FastAPI:
    """Create the FastAPI application exposing docsite operations."""

    secret = webhook_secret if webhook_secret is not None else os.environ.get(SECRET_ENV)
    project_root = str(Path(project).expanduser().resolve())
    app = FastAPI(title="docsite", version=__version__)

    async def get_pipeline() -> Pipeline:
        return pipeline_factory()

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.post("/build", response_model=BuildResponse)
    async def build_site(
        request: Request,
        pipeline: Pipeline = Depends(get_pipeline),
        x_hub_signature_256: Optional[str] = Header(default=None),
    ) -> BuildResponse:
        body = await request.body()
        if secret and not verify_signature(secret, body, x_hub_signature_256):
            raise HTTPException(status_code=401, detail="Invalid request signature")
        try:
            payload = BuildRequest.model_validate_json(body or b"{}")
        except ValidationError as exc:
            raise HTTPException(status_code=422, detail=f"Invalid build request: {exc}") from None

        def _run_build() -> GeneratedSite:
            project_dir = _inside(Path(project_root), payload.path, "path")
            config = pipeline.load(project_dir)
            output = None
            if payload.output_dir:
                output = _inside(config.root, payload.output_dir, "output_dir")
            return pipeline.build(config, output)

        loop = asyncio.get_running_loop()
        site = await loop.run_in_executor(None, _run_build)
        return BuildResponse(
            output_dir=str(site.root),
            pages=list(site.pages),
            fingerprint=site.fingerprint,
        )

    @app.post("/webhook", response_model=WebhookResponse)
    async def webhook(
        request: Request,
        pipeline: Pipeline = Depends(get_pipeline),
        x_github_event: Optional[str] = Header(default=None),
        x_hub_signature_256: Optional[str] = Header(default=None),
    ) -> WebhookResponse:
        body = await request.body()
        if secret and not verify_signature(secret, body, x_hub_signature_256):
            raise HTTPException(status_code=401, detail="Invalid webhook signature")

        if x_github_event == "ping":
            return WebhookResponse(status="pong")
        if x_github_event != "push":
            return WebhookResponse(status="ignored")

        try:
            event = json.loads(body or b"{}")
        except ValueError:
            raise HTTPException(status_code=400, detail="Webhook body is not JSON") from None
        ref = event.get("ref") if isinstance(event, dict) else None

        loop = asyncio.get_running_loop()
        config = await loop.run_in_executor(None, pipeline.load, project_root)
        expected = f"refs/heads/{config.trigger.branch}"
        if ref != expected or (isinstance(event, dict) and event.get("deleted")):
            logger.info("Ignoring push to %s (deploys follow %s)", ref, expected)
            return WebhookResponse(status="ignored", ref=ref)

        def _run_pipeline() -> PipelineResult:
            return pipeline.run(project_root)

        logger.info("Push to %s received; running pipeline", ref)
        result = await loop.run_in_executor(None, _run_pipeline)
        publish = result.publish
        return WebhookResponse(
            status="published",
            ref=ref,
            pages=len(result.site.pages),
            target=publish.target if publish else None,
            revision=publish.revision if publish else None,
        )

    @app.exception_handler(SourceError)
    async def source_error_handler(_: Any, exc: SourceError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc), "step": exc.step})

    @app.exception_handler(DocsiteError)
    async def docsite_error_handler(_: Any, exc: DocsiteError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc), "step": exc.step})

    return app


def run_service(
    host: str = "127.0.0.1", port: int = 8000, project: str = "."
) -> None:  # pragma: no cover - integration path
    import uvicorn

    app = create_app(project)
    uvicorn.run(app, host=host, port=port)
