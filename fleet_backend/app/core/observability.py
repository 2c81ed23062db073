"""
Request logging and logger setup.

Every request gets a correlation id (taken from X-Correlation-ID when the
caller sends one). It is stored on request.state for the error handlers and
echoed back with the elapsed time. Requests are logged at INFO, 4xx at WARNING
and 5xx at ERROR.
"""

import time
import uuid
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from fleet_backend.app.core.config import settings

logger = logging.getLogger("fleet")

CORRELATION_HEADER = "X-Correlation-ID"
QUIET_PATHS = frozenset({"/health"})


def configure_logging(level: str = None):
    """Apply the configured log level to the `fleet` logger (called at startup)."""
    level_name = (level or settings.log_level).upper()
    logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s %(message)s")
    logger.setLevel(getattr(logging, level_name, logging.INFO))


def correlation_id_of(request: Request) -> str:
    return getattr(request.state, "correlation_id", None) or "-"


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        started = time.perf_counter()

        response = await call_next(request)

        elapsed_ms = (time.perf_counter() - started) * 1000
        response.headers[CORRELATION_HEADER] = correlation_id
        response.headers["X-Process-Time"] = f"{elapsed_ms:.2f}"

        if request.url.path in QUIET_PATHS and response.status_code < 400:
            return response

        context = {
            "correlation_id": correlation_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": round(elapsed_ms, 2),
            "client_ip": request.client.host if request.client else "unknown",
        }
        if response.status_code >= 500:
            logger.error("Request failed", extra=context)
        elif response.status_code >= 400:
            logger.warning("Request rejected", extra=context)
        else:
            logger.info("Request handled", extra=context)

        return response
