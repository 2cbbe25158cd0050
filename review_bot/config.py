"""Configuration for the review bot."""

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple
import logging
import os

from .errors import ErrorKind, ReviewBotError


DEFAULT_SYSTEM_MESSAGE = """You are `@review-bot` (aka `github-actions[bot]`), a language model
trained to act as a highly experienced software engineer. Provide a thorough
review of the code hunks and suggest code snippets to improve key areas such as:
  - Logic
  - Security
  - Performance
  - Data races
  - Consistency
  - Error handling
  - Maintainability
  - Modularity
  - Complexity
  - Optimization
  - Best practices: DRY, SOLID, KISS

Do not comment on minor code style issues, missing comments/documentation or
good code changes. Identify and resolve significant concerns to improve overall
code quality while deliberately disregarding minor issues."""

DEFAULT_LIGHT_MODEL = "claude-haiku-4-5"
DEFAULT_HEAVY_MODEL = "claude-sonnet-4-5"

TRUE_VALUES = ("true", "True", "TRUE")
FALSE_VALUES = ("false", "False", "FALSE")


@dataclass(frozen=True)
class TokenLimits:
    """Context window split for one model."""
    model: str
    max_tokens: int = 4000
    response_tokens: int = 1000

    @classmethod
    def for_model(cls, model: str) -> "TokenLimits":
        name = model.lower()
        if name.startswith("claude"):
            return cls(model=model, max_tokens=200000, response_tokens=4000)
        if "32k" in name:
            return cls(model=model, max_tokens=32600, response_tokens=4000)
        if "16k" in name:
            return cls(model=model, max_tokens=16300, response_tokens=3000)
        return cls(model=model)

    @property
    def request_tokens(self) -> int:
        """Tokens available for the prompt (100 kept as margin)."""
        return self.max_tokens - self.response_tokens - 100

    def __str__(self) -> str:
        return (
            f"max_tokens={self.max_tokens}, request_tokens={self.request_tokens}, "
            f"response_tokens={self.response_tokens}"
        )


@dataclass(frozen=True)
class ModelOptions:
    """Model identifier plus its token limits (one per light/heavy bot)."""
    model: str
    token_limits: TokenLimits

    @classmethod
    def for_model(cls, model: str) -> "ModelOptions":
        return cls(model=model, token_limits=TokenLimits.for_model(model))


def _input_key(name: str) -> str:
    return "INPUT_" + name.replace(" ", "_").upper()


def get_input(name: str, environ: Optional[Mapping[str, str]] = None) -> str:
    """Read a GitHub Actions input (INPUT_<NAME>), trimmed."""
    env = os.environ if environ is None else environ
    return env.get(_input_key(name), "").strip()


def get_boolean_input(
    name: str,
    default: bool = False,
    environ: Optional[Mapping[str, str]] = None
) -> bool:
    """Read a YAML 1.2 core-schema boolean input."""
    value = get_input(name, environ)
    if not value:
        return default
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    raise ReviewBotError(
        ErrorKind.CONFIG_INVALID,
        f"Input is not a YAML 1.2 core schema boolean: {name} "
        f"(got {value!r}, support boolean input list: "
        f"`true | True | TRUE | false | False | FALSE`)"
    )


def get_multiline_input(name: str, environ: Optional[Mapping[str, str]] = None) -> List[str]:
    """Read a multi-line input, dropping blank lines."""
    return [line.strip() for line in get_input(name, environ).split("\n") if line.strip()]


def _parse_int(name: str, value: str, default: int, minimum: Optional[int] = None) -> int:
    if not value:
        return default
    try:
        parsed = int(value)
    except ValueError:
        raise ReviewBotError(
            ErrorKind.CONFIG_INVALID,
            f"Input {name} must be an integer, got {value!r}"
        ) from None
    if minimum is not None and parsed < minimum:
        raise ReviewBotError(
            ErrorKind.CONFIG_INVALID,
            f"Input {name} must be >= {minimum}, got {parsed}"
        )
    return parsed


def _parse_float(name: str, value: str, default: float) -> float:
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        raise ReviewBotError(
            ErrorKind.CONFIG_INVALID,
            f"Input {name} must be a number, got {value!r}"
        ) from None


@dataclass(frozen=True)
class RunConfig:
    """Run-time options, read-only for the whole invocation."""

    # Behaviour switches
    debug: bool = False
    disable_review: bool = False
    disable_release_notes: bool = False
    max_files: int = 0               # <= 0 means no limit
    review_simple_changes: bool = False
    review_comment_lgtm: bool = False
    path_filters: Tuple[str, ...] = ()

    # Prompting
    system_message: str = DEFAULT_SYSTEM_MESSAGE
    language: str = "en-US"
    summarize_template: Optional[str] = None  # None -> built-in template
    review_template: Optional[str] = None
    release_notes_template: Optional[str] = None
    bot_name: str = "review-bot"

    # Model backend
    light_model: str = DEFAULT_LIGHT_MODEL
    heavy_model: str = DEFAULT_HEAVY_MODEL
    model_temperature: float = 0.0
    model_retries: int = 5
    model_timeout_ms: int = 120000
    model_concurrency_limit: int = 4
    model_base_url: str = ""

    # Platform
    github_concurrency_limit: int = 4

    light_options: ModelOptions = field(init=False, repr=False)
    heavy_options: ModelOptions = field(init=False, repr=False)

    def __post_init__(self):
        if self.model_concurrency_limit < 1 or self.github_concurrency_limit < 1:
            raise ReviewBotError(
                ErrorKind.CONFIG_INVALID,
                "Concurrency limits must be at least 1"
            )
        if self.model_timeout_ms < 1:
            raise ReviewBotError(ErrorKind.CONFIG_INVALID, "model_timeout_ms must be positive")
        object.__setattr__(self, "light_options", ModelOptions.for_model(self.light_model))
        object.__setattr__(self, "heavy_options", ModelOptions.for_model(self.heavy_model))

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RunConfig":
        """Create config from GitHub Actions inputs."""
        env = os.environ if environ is None else environ

        def text(name: str, default: str = "") -> str:
            return get_input(name, env) or default

        return cls(
            debug=get_boolean_input("debug", environ=env),
            disable_review=get_boolean_input("disable_review", environ=env),
            disable_release_notes=get_boolean_input("disable_release_notes", environ=env),
            max_files=_parse_int("max_files", text("max_files"), 0),
            review_simple_changes=get_boolean_input("review_simple_changes", environ=env),
            review_comment_lgtm=get_boolean_input("review_comment_lgtm", environ=env),
            path_filters=tuple(get_multiline_input("path_filters", env)),
            system_message=text("system_message", DEFAULT_SYSTEM_MESSAGE),
            language=text("language", "en-US"),
            summarize_template=text("summarize") or None,
            review_template=text("review") or None,
            release_notes_template=text("summarize_release_notes") or None,
            bot_name=text("bot_name", "review-bot").lstrip("@"),
            light_model=text("light_model", DEFAULT_LIGHT_MODEL),
            heavy_model=text("heavy_model", DEFAULT_HEAVY_MODEL),
            model_temperature=_parse_float("model_temperature", text("model_temperature"), 0.0),
            model_retries=_parse_int("model_retries", text("model_retries"), 5, minimum=0),
            model_timeout_ms=_parse_int("model_timeout_ms", text("model_timeout_ms"), 120000, minimum=1),
            model_concurrency_limit=_parse_int(
                "model_concurrency_limit", text("model_concurrency_limit"), 4, minimum=1
            ),
            github_concurrency_limit=_parse_int(
                "github_concurrency_limit", text("github_concurrency_limit"), 4, minimum=1
            ),
            model_base_url=text("model_base_url"),
        )

    def to_dict(self) -> Dict[str, object]:
        """Resolved options for display (system message abbreviated)."""
        system_message = self.system_message.splitlines()[0] if self.system_message else ""
        return {
            "debug": self.debug,
            "disable_review": self.disable_review,
            "disable_release_notes": self.disable_release_notes,
            "max_files": self.max_files,
            "review_simple_changes": self.review_simple_changes,
            "review_comment_lgtm": self.review_comment_lgtm,
            "path_filters": list(self.path_filters),
            "system_message": system_message + "...",
            "language": self.language,
            "bot_name": self.bot_name,
            "light_model": self.light_model,
            "heavy_model": self.heavy_model,
            "model_temperature": self.model_temperature,
            "model_retries": self.model_retries,
            "model_timeout_ms": self.model_timeout_ms,
            "model_concurrency_limit": self.model_concurrency_limit,
            "github_concurrency_limit": self.github_concurrency_limit,
            "model_base_url": self.model_base_url or "(default)",
            "light_token_limits": str(self.light_options.token_limits),
            "heavy_token_limits": str(self.heavy_options.token_limits),
        }

    def log_summary(self, logger: logging.Logger) -> None:
        """Print the resolved options."""
        for key, value in self.to_dict().items():
            logger.info(f"{key}: {value}")


DEFAULT_CONFIG = RunConfig()
