"""
Structured logging configuration.

Every record, whether it comes from a structlog logger or a standard
library one (Uvicorn), is written to **stdout** with ``timestamp``
(ISO 8601 UTC), ``level``, ``event``, ``service_name`` and, while a request
is being served, the ``correlation_id`` bound by ``CorrelationIdMiddleware``.

JSON output renders exceptions as structured tracebacks so that a failed
request stays one parseable line.
"""

import logging
import sys

import structlog

SERVICE_NAME = "schemagate"


def _add_service_fields(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    event_dict["service_name"] = SERVICE_NAME
    event_dict["level"] = event_dict["level"].upper()
    return event_dict


def _rendering_processors(log_format: str) -> list[structlog.types.Processor]:
    if log_format == "console":
        return [structlog.dev.ConsoleRenderer(colors=False)]
    return [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]


def configure_logging(log_level: str = "INFO", log_format: str = "json") -> None:
    """
    Route structlog and the standard library root logger to stdout.

    Args:
        log_level: Minimum level name.  An unknown name falls back to INFO.
        log_format: ``"json"`` for one JSON object per line (the default),
            ``"console"`` for human-readable key=value lines during local
            development.

    Calling it again replaces the previous configuration.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        _add_service_fields,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *_rendering_processors(log_format),
            ],
            foreign_pre_chain=shared_processors,
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
