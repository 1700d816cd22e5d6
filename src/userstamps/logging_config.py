import logging
import sys
import os
from typing import Optional

from opentelemetry import trace

from userstamps import context


class TraceIdFilter(logging.Filter):
    """Logging filter that injects current OpenTelemetry trace and span ids
    into log records as `trace_id` and `span_id` fields.

    If no span is active, both fields are set to `-`.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = trace.get_current_span().get_span_context()
        if ctx is not None and ctx.is_valid:
            # trace_id is an int; format as 32-char hex to match OTel
            record.trace_id = format(ctx.trace_id, "032x")
            record.span_id = format(ctx.span_id, "016x")
        else:
            record.trace_id = "-"
            record.span_id = "-"
        return True


class CurrentUserFilter(logging.Filter):
    """Adds the current stamping user as `user_id` (`-` when nobody is set)."""

    def filter(self, record: logging.LogRecord) -> bool:
        user_id = context.get_user_id()
        record.user_id = "-" if user_id is None else str(user_id)
        return True


class SafeFormatter(logging.Formatter):
    def format(self, record):
        # Records from handlers without our filters still need these fields
        for field in ("trace_id", "span_id", "user_id"):
            if not hasattr(record, field):
                setattr(record, field, "-")
        return super().format(record)


LOG_FORMAT = (
    "%(asctime)s [%(levelname)s] %(name)s "
    "[trace=%(trace_id)s span=%(span_id)s user=%(user_id)s] - %(message)s"
)


def configure_logging(level: Optional[str] = None):
    """
    Configure application-wide logging for the userstamps CLI and for apps
    that want stamping decisions correlated with traces and users.
    """
    log_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(SafeFormatter(LOG_FORMAT))
    handler.addFilter(TraceIdFilter())
    handler.addFilter(CurrentUserFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    # Optional noise reduction
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("alembic").setLevel(logging.WARNING)
