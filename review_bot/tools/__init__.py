"""Tools for the review bot."""

from .result_store import ResultStore
from .github_tool import GitHubTool
from .diff_parser import Hunk, split_hunks, format_file_diff, is_formatting_only
from .path_filter import PathFilter
from .tokens import estimate_tokens, truncate_to_tokens
from .model_client import ModelClient, ClaudeBackend, classify_error

__all__ = [
    "ResultStore",
    "GitHubTool",
    "Hunk",
    "split_hunks",
    "format_file_diff",
    "is_formatting_only",
    "PathFilter",
    "estimate_tokens",
    "truncate_to_tokens",
    "ModelClient",
    "ClaudeBackend",
    "classify_error",
]
