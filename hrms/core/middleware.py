"""CORS, request correlation and access logging."""

import logging
import time
import uuid
from contextvars import ContextVar

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from hrms.core.config import settings

logger = logging.getLogger("hrms.access")

REQUEST_ID_HEADER = "X-Request-Id"
MAX_REQUEST_ID_LENGTH = 64

# Paths polled by load balancers; not worth a log line each.
QUIET_PATHS = frozenset({"/api/health", "/api/admin/health"})

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")


class RequestIdFilter(logging.Filter):
    """Stamp every log record with the current request id."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        return True


def _incoming_request_id(request: Request) -> str:
    value = request.headers.get(REQUEST_ID_HEADER, "").strip()
    if value and len(value) <= MAX_REQUEST_ID_LENGTH and value.isprintable():
        return value
    return str(uuid.uuid4())


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Correlate a request across log lines and audit rows.

    Authorization failures are logged at WARNING so that repeated attempts on
    privileged routes stand out from ordinary traffic.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = _incoming_request_id(request)
        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        start_time = time.time()
        try:
            response: Response = await call_next(request)
            duration = round((time.time() - start_time) * 1000, 2)
            response.headers[REQUEST_ID_HEADER] = request_id
            response.headers["X-Response-Time-Ms"] = str(duration)
            self._log(request, response.status_code, duration, request_id)
        finally:
            request_id_var.reset(token)
        return response

    @staticmethod
    def _log(request: Request, status_code: int, duration: float, request_id: str) -> None:
        if status_code in (401, 403):
            logger.warning(
                "Access refused: %s %s -> %s (%sms) request_id=%s",
                request.method, request.url.path, status_code, duration, request_id,
            )
        elif request.url.path not in QUIET_PATHS:
            logger.info(
                "%s %s %s %sms request_id=%s",
                request.method, request.url.path, status_code, duration, request_id,
            )


def setup_middleware(app: FastAPI) -> None:
    """Configure all middleware for the application."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )
    app.add_middleware(RequestIdMiddleware)
