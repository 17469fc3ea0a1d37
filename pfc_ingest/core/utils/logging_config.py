"""Structured logging configuration for the ingestion pipeline.

Uses structlog with context variables, ISO timestamps, and console rendering.
Provides get_logger() for named loggers and configure_logging() for one-time
setup. The refresh script calls configure_logging(verbose=...) before any
connector runs so debug-level HTTP attempts can be switched on from the CLI.
"""

import logging

import structlog

_configured = False


def configure_logging(verbose: bool = False) -> None:
    """Configure structlog processors once.

    Safe to call multiple times -- only the first invocation takes effect,
    except that verbose=True always switches the level to debug.

    Args:
        verbose: Emit debug events (per-request attempts, strategy misses).
    """
    global _configured
    if _configured and not verbose:
        return

    level = logging.DEBUG if verbose else logging.INFO
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: str) -> structlog.BoundLogger:
    """Return a bound logger with the given name.

    Ensures logging is configured before returning.

    Args:
        name: Logger name, typically the module or connector name.

    Returns:
        A structlog BoundLogger instance bound with the given name.
    """
    configure_logging()
    return structlog.get_logger(logger_name=name)
