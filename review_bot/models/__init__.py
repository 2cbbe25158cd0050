"""Data models for the review bot."""

from .review import (
    LineRange,
    SkipReason,
    FileDiff,
    ReviewTarget,
    ReviewComment,
    PostedComment,
    SkippedFile,
    TargetResult,
)
from .llm import ModelRequest, ModelResponse
from .orchestrator import (
    RunState,
    EventKind,
    PullRequestInfo,
    OnDemandCommand,
    RunReport,
)

__all__ = [
    "LineRange",
    "SkipReason",
    "FileDiff",
    "ReviewTarget",
    "ReviewComment",
    "PostedComment",
    "SkippedFile",
    "TargetResult",
    "ModelRequest",
    "ModelResponse",
    "RunState",
    "EventKind",
    "PullRequestInfo",
    "OnDemandCommand",
    "RunReport",
]
