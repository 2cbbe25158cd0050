"""Data models for model requests and responses."""

from dataclasses import dataclass, field
from typing import Dict, Optional

from ..errors import ReviewBotError


@dataclass(frozen=True)
class ModelRequest:
    """A rendered prompt ready for one model call."""
    prompt: str
    model: str
    max_tokens: int    # Response budget
    timeout_ms: int
    system_message: str = ""
    temperature: float = 0.0


@dataclass
class ModelResponse:
    """Result of one ModelClient.send call."""
    text: str = ""
    usage: Dict[str, int] = field(default_factory=dict)
    ok: bool = True
    error: Optional[ReviewBotError] = None
    attempts: int = 1

    @classmethod
    def failure(cls, error: ReviewBotError, attempts: int) -> "ModelResponse":
        return cls(ok=False, error=error, attempts=attempts)

    @property
    def input_tokens(self) -> int:
        return self.usage.get("input_tokens", 0)

    @property
    def output_tokens(self) -> int:
        return self.usage.get("output_tokens", 0)
