"""structlog setup and per-request log context.

Every log line carries ``service``; lines emitted while handling an HTTP
request also carry ``request_id``, ``method``, ``path`` and, once the
caller is authenticated, ``user_id``.
"""

import logging
import sys
from typing import Any

import structlog

REQUEST_CONTEXT_KEYS = ("request_id", "user_id", "method", "path")

# stdlib loggers that are too chatty at INFO
_QUIET_LOGGERS = ("sqlalchemy.engine", "httpx", "uvicorn.access")


def _renderer_chain(json_format: bool) -> list[structlog.types.Processor]:
    chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    if json_format:
        chain += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        chain.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))
    return chain


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    service_name: str = "skillswap",
) -> None:
    """Configure structlog and the stdlib root logger.

    ``json_format=False`` switches to the human-readable console renderer
    used by ``seed.py`` and local development.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    structlog.configure(
        processors=_renderer_chain(json_format),
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(service=service_name)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_request_context(request_id: str, **fields: Any) -> None:
    """Attach request-scoped keys; ``None`` values are skipped."""
    context = {key: value for key, value in fields.items() if value is not None}
    structlog.contextvars.bind_contextvars(request_id=request_id, **context)


def clear_request_context() -> None:
    """Drop the request-scoped keys, keeping ``service``."""
    structlog.contextvars.unbind_contextvars(*REQUEST_CONTEXT_KEYS)
