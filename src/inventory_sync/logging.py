"""Logging for the sync service: structlog events rendered through stdlib logging.

Every event is a snake_case name plus key/value fields. While a scheduler
tick runs, its job name and tick number sit in ``structlog.contextvars``,
so engine, client and store events can be grouped by tick without passing
anything down the call chain. Library loggers (aiohttp, aiosqlite, uvicorn)
go through the same handler and renderer.
"""

import logging

import structlog

SERVICE_NAME = "inventory-sync"

# Library loggers that are chatty at INFO and say nothing about sync state
_QUIET_LOGGERS = {
    "aiohttp": logging.WARNING,
    "aiosqlite": logging.WARNING,
    "uvicorn.access": logging.WARNING,
}


def _add_service(
    logger: logging.Logger, method_name: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def setup_logging(log_level: str = "INFO", log_format: str = "console") -> None:
    """Route structlog and stdlib logging through one handler on the root logger.

    ``log_format`` "json" renders one JSON object per line for log shipping;
    anything else uses the colored console renderer.
    """
    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        _add_service,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format.lower() == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # foreign_pre_chain gives aiohttp / uvicorn records the same fields
    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name, level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Module logger; events carry ``logger=<name>``."""
    return structlog.get_logger(name)


def bind_tick_context(job: str, tick: int) -> None:
    """Tag every event of the current task with the running job and tick."""
    structlog.contextvars.bind_contextvars(job=job, tick=tick)


def clear_tick_context() -> None:
    structlog.contextvars.unbind_contextvars("job", "tick")
