# pyright: reportUnusedFunction=false

from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import RequestResponseEndpoint
from starlette.middleware.trustedhost import TrustedHostMiddleware

from chittybeacon.api.router import api_router, beacon_router
from chittybeacon.core.config import Settings, get_settings, settings
from chittybeacon.core.logging import configure_logging, request_id_ctx_var
from chittybeacon.core.version import get_app_version


logger = logging.getLogger(__name__)


def create_app(app_settings: Settings | None = None) -> FastAPI:
    s = app_settings or get_settings()

    configure_logging(s.log_level)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        if s.db_create_all:
            from chittybeacon.db.base import Base
            from chittybeacon.db.session import engine

            Base.metadata.create_all(bind=engine)
            logger.info("database tables ensured")
        yield

    app_version = get_app_version()
    app = FastAPI(title="chittybeacon", version=app_version, lifespan=lifespan)

    if s.trusted_hosts:
        app.add_middleware(TrustedHostMiddleware, allowed_hosts=s.trusted_hosts)

    if s.cors_allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=s.cors_allowed_origins,
            allow_credentials=False,
            allow_methods=s.cors_allowed_methods,
            allow_headers=s.cors_allowed_headers,
            max_age=600,
        )

    @app.middleware("http")
    async def request_context_and_security_headers(
        request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-Id") or uuid.uuid4().hex
        token = request_id_ctx_var.set(rid)
        try:
            response = await call_next(request)
        finally:
            request_id_ctx_var.reset(token)

        response.headers["X-Request-Id"] = rid
        response.headers["X-Beacon-Version"] = app_version
        _ = response.headers.setdefault("X-Content-Type-Options", "nosniff")
        _ = response.headers.setdefault("Referrer-Policy", "no-referrer")
        return response

    @app.exception_handler(StarletteHTTPException)
    async def http_error_body(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail)},
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.warning(
            "request validation failed method=%s path=%s errors=%s",
            request.method,
            request.url.path,
            exc.errors(),
        )
        return JSONResponse(status_code=400, content={"error": "Invalid request data"})

    app.include_router(beacon_router)
    app.include_router(api_router, prefix=s.api_prefix)

    @app.get("/metrics", include_in_schema=False)
    async def prometheus_metrics() -> Response:
        from chittybeacon.metrics.prometheus import metrics_payload

        payload, content_type = metrics_payload()
        return Response(content=payload, media_type=content_type)

    return app


app = create_app(settings)


__all__ = ["app", "create_app"]
