"""Error types for the review bot."""

import traceback
from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Categories of failure and how the run reacts to them."""
    CONFIG_INVALID = "config_invalid"                  # Fatal, before any model call
    BOT_INIT_FAILED = "bot_init_failed"                # Warn and exit cleanly
    TRANSIENT_REQUEST = "transient_request"            # Retried
    FATAL_REQUEST = "fatal_request"                    # Target skipped
    TEMPLATE_MISSING_FIELD = "template_missing_field"  # Programming defect
    UNHANDLED = "unhandled"                            # Caught at the process boundary


class ReviewBotError(Exception):
    """
    The one error type raised by the bot.

    Carries a kind, a message and an optional formatted traceback.
    """

    def __init__(self, kind: ErrorKind, message: str, trace: Optional[str] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.trace = trace

    @classmethod
    def wrap(cls, kind: ErrorKind, exc: BaseException) -> "ReviewBotError":
        """Build an error of the given kind from a caught exception."""
        if isinstance(exc, ReviewBotError):
            return exc
        trace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return cls(kind, f"{type(exc).__name__}: {exc}", trace=trace)

    @property
    def is_transient(self) -> bool:
        return self.kind is ErrorKind.TRANSIENT_REQUEST

    def describe(self) -> str:
        """Message plus backtrace, for warnings and the final failure message."""
        if self.trace:
            return f"{self.message}, backtrace: {self.trace}"
        return self.message

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.message}"
