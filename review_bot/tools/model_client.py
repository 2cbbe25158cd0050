"""Model backend access with retry, timeout and concurrency limiting."""

import asyncio
import os
import re
from typing import Dict, Mapping, Optional, Tuple

from claude_agent_sdk import (
    ClaudeSDKClient,
    ClaudeAgentOptions,
    AssistantMessage,
    ResultMessage,
    TextBlock,
    CLIConnectionError,
    CLINotFoundError,
    ProcessError,
)
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ..config import ModelOptions, RunConfig
from ..errors import ErrorKind, ReviewBotError
from ..models import ModelRequest, ModelResponse
from ..utils import get_logger


CREDENTIAL_VARS = ("ANTHROPIC_API_KEY", "CLAUDE_CODE_OAUTH_TOKEN", "ANTHROPIC_AUTH_TOKEN")

TRANSIENT_INDICATORS = (
    "capacity",
    "rate limit",
    "rate_limit",
    "overloaded",
    "too many requests",
    "timeout",
    "timed out",
    "service unavailable",
    "bad gateway",
    "internal server error",
    "connection reset",
)
FATAL_INDICATORS = (
    "auth",
    "api key",
    "unauthorized",
    "forbidden",
    "permission",
    "invalid_request",
    "invalid request",
)
# Status codes only count as whole numbers ("45000" is not a 500)
TRANSIENT_STATUS_PATTERN = re.compile(r"\b(?:429|5\d\d)\b")
FATAL_STATUS_PATTERN = re.compile(r"\b(?:400|401|403|404|413|422)\b")


def classify_error(error: BaseException) -> ReviewBotError:
    """
    Map a backend failure to a transient or fatal request error.

    Auth and invalid-request markers are checked before status codes and
    capacity hints.

    Args:
        error: Exception raised while talking to the model backend

    Returns:
        ReviewBotError of kind TRANSIENT_REQUEST or FATAL_REQUEST
    """
    if isinstance(error, ReviewBotError):
        return error
    if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
        return ReviewBotError.wrap(ErrorKind.TRANSIENT_REQUEST, error)
    if isinstance(error, CLINotFoundError):
        return ReviewBotError.wrap(ErrorKind.FATAL_REQUEST, error)

    text = str(error).lower()
    if any(indicator in text for indicator in FATAL_INDICATORS) or FATAL_STATUS_PATTERN.search(text):
        return ReviewBotError.wrap(ErrorKind.FATAL_REQUEST, error)
    if any(indicator in text for indicator in TRANSIENT_INDICATORS) or TRANSIENT_STATUS_PATTERN.search(text):
        return ReviewBotError.wrap(ErrorKind.TRANSIENT_REQUEST, error)
    # Dropped connections and CLI crashes are usually capacity problems
    if isinstance(error, (CLIConnectionError, ProcessError, ConnectionError)):
        return ReviewBotError.wrap(ErrorKind.TRANSIENT_REQUEST, error)
    return ReviewBotError.wrap(ErrorKind.FATAL_REQUEST, error)


class ClaudeBackend:
    """
    Single-shot completions through the Claude Agent SDK.

    Raises BOT_INIT_FAILED on construction when no credential is available.
    """

    def __init__(self, config: RunConfig, environ: Optional[Mapping[str, str]] = None):
        env = os.environ if environ is None else environ
        if not any(env.get(name) for name in CREDENTIAL_VARS):
            raise ReviewBotError(
                ErrorKind.BOT_INIT_FAILED,
                "No model credential found, set ANTHROPIC_API_KEY"
            )
        self._env: Dict[str, str] = {}
        if config.model_base_url:
            self._env["ANTHROPIC_BASE_URL"] = config.model_base_url

    async def complete(self, request: ModelRequest) -> Tuple[str, Dict[str, int]]:
        """Run one prompt and return (text, usage)."""
        env = dict(self._env)
        env["CLAUDE_CODE_MAX_OUTPUT_TOKENS"] = str(request.max_tokens)

        options = ClaudeAgentOptions(
            system_prompt=request.system_message or None,
            model=request.model,
            max_turns=1,
            allowed_tools=[],
            env=env,
        )

        text_parts = []
        usage: Dict[str, int] = {}
        async with ClaudeSDKClient(options=options) as client:
            await client.query(request.prompt)

            async for message in client.receive_response():
                if isinstance(message, AssistantMessage):
                    for block in message.content:
                        if isinstance(block, TextBlock):
                            text_parts.append(block.text)
                elif isinstance(message, ResultMessage):
                    raw = message.usage or {}
                    usage = {
                        "input_tokens": int(raw.get("input_tokens", 0)),
                        "output_tokens": int(raw.get("output_tokens", 0)),
                    }
                    if message.is_error:
                        raise classify_error(RuntimeError(message.result or message.subtype))

        return "\n".join(text_parts), usage


class ModelClient:
    """
    One model capability: light (summaries) or heavy (reviews).

    Applies:
    - A shared semaphore bounding in-flight model calls
    - A hard timeout per attempt
    - Exponential-backoff retries for transient failures only
    """

    def __init__(
        self,
        config: RunConfig,
        options: ModelOptions,
        limiter: asyncio.Semaphore,
        backend=None,
        retry_base_delay: float = 1.0,
        retry_max_delay: float = 30.0,
    ):
        """
        Initialize a model client.

        Args:
            config: Run configuration (retries, timeout, temperature)
            options: Model identifier and token limits
            limiter: Semaphore shared by every model client in the run
            backend: Object with `async complete(request) -> (text, usage)`;
                defaults to ClaudeBackend
            retry_base_delay: Backoff multiplier in seconds
            retry_max_delay: Upper bound for a single backoff wait
        """
        self.config = config
        self.options = options
        self.retries = config.model_retries
        self.logger = get_logger()
        self._limiter = limiter
        self._backend = backend if backend is not None else ClaudeBackend(config)
        self._retry_base_delay = retry_base_delay
        self._retry_max_delay = retry_max_delay
        self.calls = 0

    @property
    def model(self) -> str:
        return self.options.model

    async def _attempt(self, request: ModelRequest) -> Tuple[str, Dict[str, int]]:
        async with self._limiter:
            self.calls += 1
            try:
                return await asyncio.wait_for(
                    self._backend.complete(request),
                    timeout=request.timeout_ms / 1000,
                )
            except asyncio.TimeoutError:
                raise ReviewBotError(
                    ErrorKind.TRANSIENT_REQUEST,
                    f"Request to {request.model} timed out after {request.timeout_ms}ms"
                ) from None
            except ReviewBotError:
                raise
            except Exception as e:
                raise classify_error(e) from e

    async def send(self, request: ModelRequest) -> ModelResponse:
        """
        Send a request, retrying transient failures.

        Returns:
            ModelResponse; ok=False once retries are exhausted

        Raises:
            ReviewBotError: FATAL_REQUEST for non-retryable failures
        """
        if self.config.debug:
            self.logger.debug(f"[{request.model}] prompt:\n{request.prompt}")

        attempts = 0
        text, usage = "", {}
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.retries + 1),
                wait=wait_exponential(
                    multiplier=self._retry_base_delay, max=self._retry_max_delay
                ),
                retry=retry_if_exception(
                    lambda e: isinstance(e, ReviewBotError) and e.is_transient
                ),
                reraise=True,
            ):
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    try:
                        text, usage = await self._attempt(request)
                    except ReviewBotError as e:
                        if e.is_transient and attempts <= self.retries:
                            self.logger.warning(
                                f"[{request.model}] attempt {attempts}/{self.retries + 1} "
                                f"failed: {e.message}"
                            )
                        raise
        except ReviewBotError as e:
            if e.kind is ErrorKind.FATAL_REQUEST:
                raise
            if not e.is_transient:
                raise ReviewBotError(ErrorKind.FATAL_REQUEST, e.message, e.trace) from e
            self.logger.warning(
                f"[{request.model}] giving up after {attempts} attempts: {e.message}"
            )
            return ModelResponse.failure(e, attempts)

        if self.config.debug:
            self.logger.debug(f"[{request.model}] response:\n{text}")
        return ModelResponse(text=text, usage=usage, attempts=attempts)
