"""FastAPI application entrypoint for the Fat Hacks API."""

from __future__ import annotations

from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from src.chat.router import router as chat_router
from src.core.config import get_settings, split_csv
from src.core.logger import bind_request_context, clear_request_context, get_logger
from src.core.metrics import record_http_request, render_prometheus_metrics
from src.core.observability import init_sentry, sentry_scope
from src.messages.router import router as messages_router
from src.photo.router import router as photo_router
from src.photo.service import get_photo_generator
from src.storage.db import create_all
from src.storage.db import test_connection as test_db_connection


settings = get_settings()
logger = get_logger("fathacks.api")

app = FastAPI(title=settings.app_name, version=settings.app_version)

app.add_middleware(
    CORSMiddleware,
    allow_origins=split_csv(settings.cors_allow_origins) or ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    started_at = perf_counter()
    request_id = request.headers.get("x-request-id", str(uuid4()))
    bind_request_context(request_id=request_id, path=request.url.path)

    status_code = 500
    try:
        with sentry_scope(request_id=request_id, path=request.url.path):
            response = await call_next(request)
        status_code = int(response.status_code)
    finally:
        duration = perf_counter() - started_at
        if settings.metrics_enabled:
            record_http_request(
                method=request.method,
                path=request.url.path,
                status_code=status_code,
                duration_seconds=duration,
            )
        clear_request_context()

    response.headers["x-request-id"] = request_id
    return response


@app.on_event("startup")
def on_startup() -> None:
    create_all()
    sentry_enabled = init_sentry()
    generator = get_photo_generator()
    logger.info(
        "application_startup",
        env=settings.env,
        version=settings.app_version,
        sentry_enabled=sentry_enabled,
        metrics_enabled=settings.metrics_enabled,
        photo_providers=[
            {
                "name": slot.config.name,
                "enabled": slot.config.enabled,
                "bypass": slot.config.bypass,
                "priority": slot.config.priority,
            }
            for slot in generator.slots
        ],
    )
    if not any(slot.config.enabled and not slot.config.bypass for slot in generator.slots):
        logger.warning("photo_providers_unavailable_local_fallback_only")


@app.get("/health")
def health() -> JSONResponse:
    db_ok, db_error = test_db_connection()
    status = "ok" if db_ok else "degraded"

    payload = {
        "status": status,
        "env": settings.env,
        "services": {
            "database": {"ok": db_ok, "error": db_error},
        },
    }

    return JSONResponse(content=payload, status_code=200 if db_ok else 503)


@app.get("/version")
def version() -> dict[str, str]:
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "env": settings.env,
    }


@app.get("/metrics")
def metrics() -> PlainTextResponse:
    if not settings.metrics_enabled:
        return PlainTextResponse("metrics disabled\n", status_code=404)

    payload = render_prometheus_metrics(
        app_name=settings.app_name,
        app_version=settings.app_version,
        env=settings.env,
    )
    return PlainTextResponse(
        payload,
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )


app.include_router(photo_router)
app.include_router(chat_router)
app.include_router(messages_router)
