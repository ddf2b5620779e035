from __future__ import annotations

import logging
import os
import time

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware

from quiklens.domain.errors import DecodeError, EditorError, ServiceError, ValidationError

logger = logging.getLogger(__name__)

_ERROR_STATUS: dict[type[EditorError], int] = {
    ValidationError: 400,
    DecodeError: 422,
    ServiceError: 502,
}


def add_default_middlewares(app: FastAPI) -> None:
    # CORS configuration
    env = os.getenv("ENV", "development")
    if env in ("development", "staging"):
        allowed_origins = [
            "http://localhost:3000",
            "http://localhost:3001",
            "http://localhost:5173",  # Vite default
            "http://127.0.0.1:3000",
            "http://127.0.0.1:3001",
            "http://127.0.0.1:5173",
        ]
    else:
        allowed_origins = ["*"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Image-Width", "X-Image-Height"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "%s %s -> %d in %.1f ms",
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - started) * 1000,
        )
        return response


def add_error_handlers(app: FastAPI) -> None:
    """Map editor errors to HTTP responses with a ``detail`` message."""

    async def handle_editor_error(request: Request, exc: EditorError) -> JSONResponse:
        status_code = next(
            (code for cls, code in _ERROR_STATUS.items() if isinstance(exc, cls)), 500
        )
        if status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        else:
            logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    app.add_exception_handler(EditorError, handle_editor_error)
