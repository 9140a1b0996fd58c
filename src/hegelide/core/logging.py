"""
Structured logging for Hegel IDE.

Every entry is an event name plus key-value context, rendered by structlog.
Session code binds ``session_id`` once::

    import structlog
    logger = structlog.get_logger()

    log = logger.bind(session_id="term-1")
    log.info("session_created", pid=4242, shell="zsh")
    # → {"event": "session_created", "session_id": "term-1",
    #    "pid": 4242, "shell": "zsh", "level": "info", ...}

Output always goes to stderr; in ``serve`` mode stdout is the event stream.
Terminal payloads never reach a log line: a ``data`` field holding bytes or
text is replaced by its length before rendering.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from hegelide.core.config import LoggingConfig

_QUIET_LOGGERS = ("uvicorn", "uvicorn.access", "uvicorn.error", "httpx", "httpcore")


def scrub_payloads(
    logger: Any, method_name: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    """Replace raw terminal data with ``data_len``."""
    data = event_dict.get("data")
    if isinstance(data, bytes | bytearray | str):
        del event_dict["data"]
        event_dict["data_len"] = len(data)
    return event_dict


def configure_logging(*, level: str = "INFO", json_output: bool = False) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        level: DEBUG, INFO, WARNING or ERROR.  Unknown names mean INFO.
        json_output: JSON lines when True, coloured console output otherwise.

    Repeated calls change the level and renderer but never stack handlers.
    """
    shared: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        scrub_payloads,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderer: structlog.types.Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    # uvicorn and the access log use stdlib logging; give them the same pipeline
    _install_root_handler(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
            foreign_pre_chain=shared,
        )
    )

    logging.getLogger().setLevel(getattr(logging, level.upper(), logging.INFO))
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def configure_from_config(config: LoggingConfig) -> None:
    configure_logging(level=config.level, json_output=config.format == "json")


def _install_root_handler(formatter: logging.Formatter) -> None:
    root = logging.getLogger()
    for handler in root.handlers:
        if isinstance(handler.formatter, structlog.stdlib.ProcessorFormatter):
            handler.setFormatter(formatter)
            return
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    root.addHandler(handler)
