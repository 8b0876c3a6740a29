"""Structured logging setup using structlog.

Uses a **dual-renderer pattern**: one shared processor chain (context vars,
log level, stack info, timestamps) feeds either a ConsoleRenderer for local
development or a JSONRenderer for production.  The renderer follows the
``APP_ENV`` environment variable (default ``"development"``) unless
``json_output`` forces JSON.  Console colours are only emitted when stdout
is a terminal, so piped CLI output and container logs stay plain.

Standard-library ``logging`` is rewired through the same formatter so that
uvicorn, httpx and playwright lines look like our own.  Third-party loggers
that log every request at INFO are capped at WARNING.
"""

import logging
import os
import sys

import structlog

# Third-party loggers that log every request at INFO.
_QUIET_LOGGERS = ("httpx", "httpcore", "aiosqlite", "asyncio")


def configure_logging(log_level: str = "INFO", json_output: bool = False) -> structlog.BoundLogger:
    """Configure structlog with environment-appropriate rendering.

    Args:
        log_level: Logging level string (DEBUG, INFO, WARNING, ERROR).
        json_output: Force JSON output. When False, uses console rendering in
                     development and JSON in production (detected via APP_ENV).

    Returns:
        A configured structlog BoundLogger.
    """
    # "production" => machine-readable JSON; anything else => console.
    use_json = json_output or os.environ.get("APP_ENV", "development") == "production"

    # Shared processor chain, run whatever the output format.
    # contextvars first so request-scoped bindings are present for the rest.
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,  # Merge request-scoped context bindings
        structlog.processors.add_log_level,        # Inject "level" key
        structlog.processors.StackInfoRenderer(),  # Render stack_info if present
        structlog.dev.set_exc_info,                # Attach exc_info on exception()
        structlog.processors.TimeStamper(fmt="iso"),  # ISO-8601 timestamps
    ]

    # Only the final renderer differs between environments.
    if use_json:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            renderer,
        ],
        # Drops events below log_level before any processor runs.
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Bridge stdlib logging through the same pipeline so uvicorn, httpx and
    # playwright share the format.
    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *shared_processors,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()   # Avoid duplicate lines on reconfigure
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level.upper())

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return structlog.get_logger()


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a named structlog logger.

    If structlog has not been configured yet, calls configure_logging() with defaults.

    Args:
        name: Logger name, typically the module's ``__name__``.

    Returns:
        A structlog BoundLogger bound with ``logger_name``.
    """
    if not structlog.is_configured():
        configure_logging()

    return structlog.get_logger(logger_name=name)
