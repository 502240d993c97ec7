from fastapi import Request
import logging
from typing import Any
from rich.logging import RichHandler
from medialinks.config.settings import LoggingConfig

logger = logging.getLogger("medialinks")

def setup_logging(logging_config: LoggingConfig) -> None:
    """Attach the console handler to the package logger (idempotent)"""
    if logging_config.enable_rich:
        handler: logging.Handler = RichHandler(rich_tracebacks=True, show_path=False)
    else:
        handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(logging_config.format))

    logger.handlers = [handler]
    logger.setLevel(logging_config.level)
    logger.propagate = False

def log_with_context(
    request: Request,
    level: int,
    message: str,
    exc_info: bool = False,
    **kwargs: Any
) -> None:
    """
    Log with request context.
    Automatically includes request_id for tracing.
    """
    extra = {
        "request_id": getattr(request.state, "request_id", "unknown"),
        **kwargs
    }
    logger.log(level, message, extra=extra, exc_info=exc_info)

def log_info(request: Request, message: str, **kwargs: Any) -> None:
    log_with_context(request, logging.INFO, message, **kwargs)

def log_error(request: Request, message: str, exc_info: bool = False, **kwargs: Any) -> None:
    log_with_context(request, logging.ERROR, message, exc_info=exc_info, **kwargs)

def log_warning(request: Request, message: str, **kwargs: Any) -> None:
    log_with_context(request, logging.WARNING, message, **kwargs)
