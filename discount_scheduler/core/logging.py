import logging
import sys
from typing import Any

from loguru import logger

from discount_scheduler.config import get_settings

# Hit every minute by the cron service and load balancers
POLLING_PATHS = ("/health", "/api/cron")

# Stdlib loggers this service actually produces records on
INTERCEPTED_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "httpx")


class InterceptHandler(logging.Handler):
    """Intercept stdlib logging and redirect to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Walk out of the logging module so loguru reports the real caller
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back  # type: ignore[assignment]
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _quiet_polling_filter(record: dict[str, Any]) -> bool:
    """Access lines for polling endpoints only show at DEBUG level."""
    message = record.get("message", "")
    if any(path in message for path in POLLING_PATHS):
        return bool(record["level"].no <= 10)
    return True


def _render_context(record: dict[str, Any]) -> str:
    """Bound context as ``key=value`` pairs, without the logger name."""
    context = {k: v for k, v in record["extra"].items() if k != "name"}
    return " ".join(f"{k}={v}" for k, v in context.items())


def _format(record: dict[str, Any]) -> str:
    # Event names are bound with job context; render both on one line
    record["extra"]["context"] = _render_context(record)
    suffix = " | {extra[context]}" if record["extra"]["context"] else ""
    return (
        "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[name]} | {message}"
        + suffix
        + "\n{exception}"
    )


def setup_logging() -> None:
    """Configure loguru for the API process and the CLI."""
    settings = get_settings()

    logger.remove()
    logger.configure(extra={"name": "discount_scheduler"})

    if settings.debug:
        logger.add(sys.stderr, level="DEBUG", format=_format, backtrace=True, diagnose=True)
    else:
        logger.add(
            sys.stderr,
            level="INFO",
            format=_format,
            filter=_quiet_polling_filter,
            backtrace=True,
            diagnose=False,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in INTERCEPTED_LOGGERS:
        logging.getLogger(name).handlers = [InterceptHandler()]


def get_logger(name: str) -> Any:
    """Get a logger bound to a module name."""
    return logger.bind(name=name)
