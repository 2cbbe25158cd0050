"""Token counting for request budgets."""

from functools import lru_cache

import tiktoken


@lru_cache(maxsize=1)
def _encoder() -> "tiktoken.Encoding":
    # cl100k_base approximates Claude's tokenizer closely enough for budgeting
    return tiktoken.get_encoding("cl100k_base")


def estimate_tokens(text: str) -> int:
    """Estimate token count for text using tiktoken."""
    if not text:
        return 0
    return len(_encoder().encode(text, disallowed_special=()))


def truncate_to_tokens(text: str, max_tokens: int) -> str:
    """
    Cut text down to at most max_tokens tokens.

    Returns the text unchanged when it already fits.
    """
    if max_tokens <= 0:
        return ""
    encoder = _encoder()
    tokens = encoder.encode(text, disallowed_special=())
    if len(tokens) <= max_tokens:
        return text
    return encoder.decode(tokens[:max_tokens])
