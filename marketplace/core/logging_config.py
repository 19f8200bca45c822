"""
Structured JSON logging

Every record carries the request's trace id and, when known, the caller's
user id, so a bid can be followed from the HTTP request through the
optimistic write retries to the final commit.
"""
import contextvars
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

from marketplace.core.config import get_settings

SERVICE_NAME = 'auction-marketplace'

# Request-scoped context, set by TracingMiddleware
trace_id_var = contextvars.ContextVar('trace_id', default=None)
caller_id_var = contextvars.ContextVar('caller_id', default=None)


class MarketplaceJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter adding timestamp, level, service and request context"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record['timestamp'] = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        log_record['level'] = record.levelname
        log_record['service'] = SERVICE_NAME

        trace_id = trace_id_var.get()
        if trace_id:
            log_record['trace_id'] = trace_id

        # An explicit user_id extra wins over the request caller
        caller_id = caller_id_var.get()
        if caller_id and 'user_id' not in log_record:
            log_record['user_id'] = caller_id


def setup_logging() -> logging.Logger:
    """Install the JSON handlers on the root logger once"""
    settings = get_settings()
    root_logger = logging.getLogger()

    if any(isinstance(h.formatter, MarketplaceJsonFormatter) for h in root_logger.handlers):
        return root_logger

    formatter = MarketplaceJsonFormatter('%(timestamp)s %(level)s %(name)s %(message)s')

    handlers = [logging.StreamHandler()]
    if settings.LOG_FILE:
        handlers.append(logging.FileHandler(settings.LOG_FILE))

    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    root_logger.setLevel(settings.LOG_LEVEL)

    # uvicorn access lines duplicate the tracing middleware
    logging.getLogger('uvicorn.access').setLevel(logging.WARNING)
    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)

    return root_logger


def bind_request_context(trace_id: str, caller_id: Optional[str] = None):
    """Attach trace and caller ids to every record logged in this context"""
    trace_id_var.set(trace_id)
    caller_id_var.set(caller_id)


def get_trace_id() -> Optional[str]:
    return trace_id_var.get()


def generate_trace_id() -> str:
    return uuid.uuid4().hex
