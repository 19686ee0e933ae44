"""Request middleware: correlation id binding and access logging."""

import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .correlation import correlation_scope, generate_correlation_id
from .logging_config import get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """Bind the caller's X-Request-ID (or a fresh id) to every log line of a request.

    The id is echoed back in the response header. The acting user from
    X-Actor-ID is added to the access log line so audit records and logs
    can be joined.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(REQUEST_ID_HEADER) or generate_correlation_id()
        actor_id = request.headers.get("X-Actor-ID")

        with correlation_scope(correlation_id):
            started = time.perf_counter()
            try:
                response = await call_next(request)
            except Exception:
                logger.exception(
                    f"{request.method} {request.url.path} failed",
                    extra={"actor_id": actor_id, "duration_ms": _elapsed_ms(started)},
                )
                raise

            logger.info(
                f"{request.method} {request.url.path} -> {response.status_code}",
                extra={
                    "actor_id": actor_id,
                    "status_code": response.status_code,
                    "duration_ms": _elapsed_ms(started),
                },
            )
            response.headers[REQUEST_ID_HEADER] = correlation_id
            return response


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)
