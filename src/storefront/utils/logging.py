"""Logging for the storefront pipeline.

Every module logs through structlog with key/value events (``webhook_applied``,
``illegal_transition``, ``reconciliation_completed`` ...). Stdlib logging only
carries the handlers: stdout always, plus two rotating files under ``LOG_DIR``
when it is set. Request handlers bind the request path and client identity
with ``add_context`` so every event of one request carries them.
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Any

import structlog

_DEFAULT_LEVELS = {"production": "INFO", "staging": "INFO", "development": "DEBUG", "test": "WARNING"}

# Libraries that would drown webhook audit lines at DEBUG
_QUIET_LOGGERS = ("urllib3", "requests", "asyncio", "protean", "httpx")


def _environment() -> str:
    return os.getenv("PROTEAN_ENV", "development").lower()


def _rotating(path: Path, level: int | str) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(path, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8")
    handler.setLevel(level)
    return handler


def _setup_handlers(level: str) -> None:
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [logging.StreamHandler(sys.stdout)]

    log_dir = os.getenv("LOG_DIR")
    if log_dir:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        root.addHandler(_rotating(path / "storefront.log", level))
        root.addHandler(_rotating(path / "storefront_error.log", logging.ERROR))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def configure_logging() -> None:
    """Set up handlers and structlog processors for the current ``PROTEAN_ENV``.

    JSON lines in production and staging, the console renderer elsewhere.
    ``LOG_LEVEL`` overrides the environment's default level.
    """
    env = _environment()
    _setup_handlers(os.getenv("LOG_LEVEL", _DEFAULT_LEVELS.get(env, "INFO")))

    if env in ("production", "staging"):
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=sys.stdout.isatty(),
            exception_formatter=structlog.dev.RichTracebackFormatter(show_locals=False, max_frames=2),
        )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def add_context(**kwargs: Any) -> None:
    """Bind request-scoped fields onto every event logged afterwards."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
