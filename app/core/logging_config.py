import logging
import sys

import structlog

from ..config import settings

# Chatty third-party loggers kept at WARNING so ledger events stay readable.
_QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "telegram.ext", "urllib3")


def _resolve_level(level: str | None) -> int:
    name = (level or settings.LOG_LEVEL or "INFO").upper()
    return getattr(logging, name, logging.INFO)


def setup_logging(level: str | None = None):
    log_level = _resolve_level(level)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.get_logger("loyalty").info(
        "logging_initialized",
        app="loyalty-ledger",
        log_level=logging.getLevelName(log_level),
        store=settings.LEDGER_STORE,
        data_dir=settings.LEDGER_DATA_DIR,
    )
