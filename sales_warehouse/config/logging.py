"""
Logging Configuration for the Sales Data Warehouse

structlog events and stdlib records share one handler. The pipeline binds
``run_id``, ``stage`` and ``layer`` as context variables, so every event a
stage emits (including those from the cleaner, assembler and validator)
carries them without passing them explicitly.
"""

import logging
import sys
from contextlib import contextmanager
from typing import IO, Iterator, Optional

import structlog
from structlog.processors import JSONRenderer, TimeStamper
from structlog.stdlib import add_log_level, ProcessorFormatter

from sales_warehouse.config.settings import get_settings

RUN_CONTEXT_KEYS = ("run_id", "stage", "layer")


def _order_run_context(logger, method_name, event_dict):
    """Move run context keys right after the event name"""
    context = {key: event_dict.pop(key) for key in RUN_CONTEXT_KEYS if key in event_dict}
    if not context:
        return event_dict
    event = event_dict.pop("event", None)
    return {"event": event, **context, **event_dict}


@contextmanager
def stage_context(stage: str, layer: str) -> Iterator[None]:
    """Bind ``stage`` and ``layer`` to every event logged inside the block"""
    with structlog.contextvars.bound_contextvars(stage=stage, layer=layer):
        yield


def configure_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    stream: Optional[IO[str]] = None,
) -> None:
    """
    Configure structured logging for the warehouse build.

    Args:
        log_level: Override log level (DEBUG, INFO, WARNING, ERROR)
        log_format: Override output format (json or text)
        stream: Destination for log lines, stdout by default
    """
    settings = get_settings()
    level = log_level or settings.monitoring.log_level
    fmt = (log_format or settings.monitoring.log_format).lower()

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        add_log_level,
        TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        _order_run_context,
    ]

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    if fmt == "json":
        renderer = JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    formatter = ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=shared_processors,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(stream or sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    log = structlog.get_logger(__name__)
    log.info(
        "Logging configured",
        level=level,
        format=fmt,
        environment=settings.app_env,
    )
