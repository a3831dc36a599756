"""FastAPI app entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import get_settings
from app.core.dependencies import Dependencies, build_dependencies
from app.core.logging import configure_logging
from app.routers import subscriptions, webhooks
from app.services.errors import WebhookServiceError

logger = logging.getLogger(__name__)


async def _service_error_handler(request: Request, exc: WebhookServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "Request failed",
            extra={"path": request.url.path, "status_code": exc.status_code, "error": exc.message},
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


def create_app(dependencies: Dependencies | None = None) -> FastAPI:
    """Build FastAPI application.

    When ``dependencies`` is omitted the production adapters are built on
    startup and closed on shutdown.
    """

    settings = dependencies.settings if dependencies is not None else get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level)
        owned = dependencies is None
        app.state.dependencies = build_dependencies(settings) if owned else dependencies
        logger.info("YouTube webhook service started")
        try:
            yield
        finally:
            if owned:
                await app.state.dependencies.aclose()

    app = FastAPI(title="YouTube Webhook", version="0.1.0", lifespan=lifespan)
    if dependencies is not None:
        app.state.dependencies = dependencies

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type"],
    )
    app.add_exception_handler(WebhookServiceError, _service_error_handler)
    app.include_router(subscriptions.router)
    app.include_router(webhooks.router)

    @app.get("/healthz", tags=["health"])
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()
