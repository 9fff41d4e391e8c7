"""structlog setup for the Bitácora backend.

Every line, ours or from uvicorn/SQLAlchemy/botocore through the stdlib
bridge, carries the service name, the active gateway backend and the request
id assigned by asgi-correlation-id. Production renders JSON; debug mode
renders with ConsoleRenderer.
"""

import logging
import logging.config

import structlog
from asgi_correlation_id.context import correlation_id

# Third-party loggers that are only interesting when something breaks
QUIET_LOGGERS = (
    "uvicorn.access",
    "botocore",
    "boto3",
    "s3transfer",
    "sqlalchemy.engine",
    "aiosqlite",
)


def add_request_id(logger, method, event_dict):
    """Copy the current request id (if any) onto the event as ``correlation_id``."""
    cid = correlation_id.get(None)
    if cid:
        event_dict["correlation_id"] = cid
    return event_dict


def service_context(service: str, gateway_backend: str | None = None):
    """Processor that stamps which service and gateway produced the event."""

    def processor(logger, method, event_dict):
        event_dict.setdefault("service", service)
        if gateway_backend:
            event_dict.setdefault("gateway", gateway_backend)
        return event_dict

    return processor


def configure_structlog(
    log_level: str = "INFO",
    json_logs: bool = True,
    service: str = "bitacora",
    gateway_backend: str | None = None,
) -> None:
    """Install the processor chain and the stdlib bridge.

    Must run before the rest of the app imports a logger, since structlog
    caches the chain on first use.
    """
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        service_context(service, gateway_backend),
        add_request_id,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    if json_logs:
        # ConsoleRenderer formats tracebacks itself
        render = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        render = [structlog.dev.ConsoleRenderer()]

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "structlog": {
                "()": structlog.stdlib.ProcessorFormatter,
                "processors": [structlog.stdlib.ProcessorFormatter.remove_processors_meta, *render],
                "foreign_pre_chain": processors,
            },
        },
        "handlers": {
            "stdout": {
                "class": "logging.StreamHandler",
                "formatter": "structlog",
                "stream": "ext://sys.stdout",
            },
        },
        "root": {"handlers": ["stdout"], "level": log_level},
        "loggers": {name: {"level": "WARNING"} for name in QUIET_LOGGERS},
    })

    structlog.configure(
        processors=[*processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
