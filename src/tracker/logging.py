"""Structured logging for the tracker with per-analysis context propagation.

Every event carries a ``component`` field derived from the emitting module
(``rate_gate``, ``market_data``, ``analysis``, ``api``), so provider traffic
can be filtered separately from indicator work. Values bound with
``structlog.contextvars.bound_contextvars`` (the orchestrator binds
``asset_id``) follow an analysis task across awaits.
"""

import logging
import os

import structlog

_PACKAGE = "tracker"

#: Library loggers that are too chatty at INFO for a long-running scanner.
_QUIET_LOGGERS = ("uvicorn.access", "asyncio")


def add_component(
    logger: logging.Logger, method_name: str, event_dict: dict
) -> dict:
    """Stamp the tracker subpackage that emitted the event.

    ``tracker.market_data.fetcher`` becomes ``market_data`` and
    ``tracker.main`` becomes ``main``. Events from other libraries are
    left untouched.
    """
    name = event_dict.get("logger")
    if not name:
        name = getattr(logger, "name", None)
    if not name:
        return event_dict

    parts = name.split(".")
    if parts[0] == _PACKAGE and len(parts) > 1:
        event_dict.setdefault("component", parts[1])
    return event_dict


def setup_logging(log_level: str = "INFO", log_format: str | None = None) -> None:
    """Configure structlog with JSON or console rendering.

    Args:
        log_level: Root level for tracker and library loggers.
        log_format: "json" or "console". Defaults to the LOG_FORMAT
            environment variable, then "console".
    """
    log_format = (log_format or os.environ.get("LOG_FORMAT", "console")).lower()

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_component,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a bound structlog logger with the given name."""
    return structlog.get_logger(name)
