"""HTTP middleware: request ids, timing and CORS."""

import time
import uuid
from typing import Callable

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from legislation_search.config import get_settings
from legislation_search.utils.logging import get_logger, log_request, request_id_var

logger = get_logger("middleware")
settings = get_settings()

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Bind a request id (client supplied or generated) to the logging context."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class TimingMiddleware(BaseHTTPMiddleware):
    """Log every request with its duration and flag slow ones."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - started) * 1000

        log_request(
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=duration_ms,
            client_ip=request.client.host if request.client else None,
        )
        if duration_ms >= settings.server.slow_request_ms:
            logger.warning(f"Slow request: {request.method} {request.url.path} took {duration_ms:.0f}ms")

        response.headers["X-Process-Time"] = f"{duration_ms:.2f}ms"
        return response


def setup_middleware(app: FastAPI) -> None:
    """Install CORS, timing and request id middleware (request id outermost)."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=3600,
    )
    app.add_middleware(TimingMiddleware)
    app.add_middleware(RequestIDMiddleware)
