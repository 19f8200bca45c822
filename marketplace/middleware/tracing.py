"""
Request tracing middleware
"""
import logging
import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from marketplace.core.logging_config import bind_request_context, generate_trace_id

logger = logging.getLogger(__name__)

TRACE_HEADER = 'X-Trace-ID'
USER_HEADER = 'X-User-Id'


class TracingMiddleware(BaseHTTPMiddleware):
    """
    Binds a trace id and the caller to the request's log context

    The trace id comes from X-Trace-ID when the client sends one and is
    echoed back on the response.
    """

    async def dispatch(self, request: Request, call_next):
        trace_id = request.headers.get(TRACE_HEADER) or generate_trace_id()
        caller_id = (request.headers.get(USER_HEADER) or '').strip() or None
        bind_request_context(trace_id, caller_id)

        route = f"{request.method} {request.url.path}"
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                f"{route} crashed",
                extra={'duration_ms': _elapsed_ms(started)}
            )
            raise

        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            f"{route} -> {response.status_code}",
            extra={
                'status_code': response.status_code,
                'duration_ms': _elapsed_ms(started)
            }
        )

        response.headers[TRACE_HEADER] = trace_id
        return response


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)
