"""structlog configuration for threadsync."""

import logging
from typing import Any, Optional

import structlog


def configure_logging(
    environment: str = "development",
    log_level: str = "INFO",
    log_format: str = "console",
) -> None:
    """Configure structlog.

    JSON output is used in production or when ``log_format`` is ``"json"``;
    otherwise a colored console renderer with call-site details. Loggers are
    not cached in the ``test`` environment so the configuration can be
    swapped between tests.
    """
    is_production = environment == "production"
    should_json = log_format == "json" or is_production

    if should_json:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.CallsiteParameterAdder(
                [
                    structlog.processors.CallsiteParameter.FILENAME,
                    structlog.processors.CallsiteParameter.LINENO,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                ]
            )
            if not is_production
            else structlog.processors.CallsiteParameterAdder([]),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=environment != "test",
    )


def get_logger(name: Optional[str] = None, **kwargs: Any) -> Any:
    """Return a bound logger.

    Example::

        log = get_logger(__name__, thread_id="thread_abc")
        log.info("run_created", run_id="run_123")
    """
    if name:
        kwargs["name"] = name
    return structlog.get_logger(**kwargs)
