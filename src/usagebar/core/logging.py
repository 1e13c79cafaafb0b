"""structlog configuration."""

import logging
import sys

import structlog


_configured = False


def setup_logging(level: str = "INFO", json_logs: bool = False) -> None:
    """Configure structlog once for the process.

    Args:
        level: Minimum level name (DEBUG, INFO, ...)
        json_logs: Emit JSON lines instead of console-formatted output
    """
    global _configured
    if _configured:
        return

    processors: list[structlog.typing.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    if json_logs:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
    _configured = True


def reset_logging() -> None:
    """Forget the configured state (useful for testing)."""
    global _configured
    structlog.reset_defaults()
    _configured = False
