"""Structured logging for the face matching service.

Every entry carries the context bound for the current request or CLI run
(request id, photo id and so on) through structlog's contextvars, so the
concurrent match writes of one photo can be traced back to the call that
spawned them.
"""
import logging
import sys
from typing import Any, Dict, List, Optional, TextIO

import structlog
from structlog.stdlib import ProcessorFormatter

from app.core.config import settings

REQUEST_ID_HEADER = "X-Request-Id"

# Third-party loggers and the level they are held at
NOISY_LOGGERS: Dict[str, int] = {
    "sqlalchemy.engine": logging.WARNING,
    "aiosqlite": logging.WARNING,
    "insightface": logging.WARNING,
    "onnxruntime": logging.ERROR,
    "multipart": logging.INFO,
}


def _renderer(environment: str) -> structlog.types.Processor:
    if environment == "development":
        return structlog.dev.ConsoleRenderer(colors=True)
    return structlog.processors.JSONRenderer()


def setup_logging(level: Optional[str] = None, stream: Optional[TextIO] = None) -> None:
    """Configure structlog and route stdlib logging through the same renderer.

    Development gets colored console output; every other environment gets one
    JSON object per line with exceptions pre-formatted.

    Args:
        level: Log level name, defaults to settings.LOG_LEVEL
        stream: Destination of log lines, defaults to stdout
    """
    level = (level or settings.LOG_LEVEL).upper()

    pre_chain: List[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if settings.ENVIRONMENT != "development":
        pre_chain.append(structlog.processors.format_exc_info)

    structlog.configure(
        processors=pre_chain + [ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # foreign_pre_chain gives records from uvicorn and sqlalchemy the same fields
    formatter = ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[
            ProcessorFormatter.remove_processors_meta,
            _renderer(settings.ENVIRONMENT),
        ],
    )
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level, logging.INFO))

    logging.getLogger("uvicorn.error").propagate = False
    # Requests are logged by the request context middleware instead
    logging.getLogger("uvicorn.access").disabled = True
    for name, noisy_level in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(noisy_level)

    get_logger(__name__).info(
        "Logging configured", environment=settings.ENVIRONMENT, level=level
    )


def bind_request_context(**fields: Any) -> None:
    """Attach fields to every entry logged from the current context."""
    structlog.contextvars.bind_contextvars(**fields)


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger instance compatible with standard logging.

    Args:
        name: Name for the logger, typically __name__

    Returns:
        structlog.stdlib.BoundLogger: Configured logger instance
    """
    return structlog.get_logger(name)
