"""Logging utilities."""

import logging
import os
import sys
from typing import Optional


class ActionsAnnotationHandler(logging.Handler):
    """Echo warnings and errors as GitHub Actions workflow annotations."""

    def emit(self, record: logging.LogRecord) -> None:
        command = "error" if record.levelno >= logging.ERROR else "warning"
        message = record.getMessage().replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")
        sys.stdout.write(f"::{command}::{message}\n")


def setup_logging(
    level: int = logging.INFO,
    format_str: Optional[str] = None
) -> logging.Logger:
    """
    Setup logging for the review bot.

    Args:
        level: Logging level (default: INFO)
        format_str: Custom format string

    Returns:
        Configured logger
    """
    if format_str is None:
        format_str = "[%(asctime)s] %(levelname)s - %(message)s"

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )

    logger = logging.getLogger("review_bot")
    logger.setLevel(level)

    if os.environ.get("GITHUB_ACTIONS") == "true" and not any(
        isinstance(h, ActionsAnnotationHandler) for h in logger.handlers
    ):
        annotations = ActionsAnnotationHandler(level=logging.WARNING)
        logger.addHandler(annotations)

    return logger


def get_logger(name: str = "review_bot") -> logging.Logger:
    """Get a logger instance."""
    return logging.getLogger(name)
