"""Data models for a review run."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple
from datetime import datetime

from ..errors import ReviewBotError
from .review import ReviewComment, SkippedFile, TargetResult


class RunState(Enum):
    """States of the review orchestrator."""
    IDLE = "idle"
    DISPATCHING = "dispatching"    # Building targets and launching requests
    COLLECTING = "collecting"      # Awaiting results in completion order
    RECONCILING = "reconciling"    # Filtering against posted comments and posting
    DONE = "done"


class EventKind(Enum):
    """Event classes the bot reacts to."""
    PULL_REQUEST = "pull_request"
    ISSUE_COMMENT = "issue_comment"
    UNSUPPORTED = "unsupported"

    @classmethod
    def from_event_name(cls, name: str) -> "EventKind":
        if name in ("pull_request", "pull_request_target"):
            return cls.PULL_REQUEST
        if name == "issue_comment":
            return cls.ISSUE_COMMENT
        return cls.UNSUPPORTED


@dataclass
class PullRequestInfo:
    """Pull request metadata used in prompts."""
    number: int
    title: str = ""
    description: str = ""
    head_sha: str = ""


@dataclass
class OnDemandCommand:
    """A review request parsed from an issue comment."""
    path: str
    start_line: Optional[int] = None
    end_line: Optional[int] = None

    @property
    def has_range(self) -> bool:
        return self.start_line is not None


@dataclass
class RunReport:
    """What a run did, returned to the CLI."""
    event_name: str
    state: RunState = RunState.IDLE
    transitions: List[RunState] = field(default_factory=list)
    results: Dict[Tuple[str, int], TargetResult] = field(default_factory=dict)
    skipped: List[SkippedFile] = field(default_factory=list)
    posted: List[ReviewComment] = field(default_factory=list)
    suppressed: int = 0
    summary: Optional[str] = None
    summary_error: Optional[ReviewBotError] = None
    model_calls: int = 0
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None

    def move_to(self, state: RunState) -> None:
        self.state = state
        self.transitions.append(state)

    @property
    def failed_targets(self) -> List[TargetResult]:
        return [r for r in self.results.values() if not r.ok]

    @property
    def duration_ms(self) -> Optional[int]:
        if self.finished_at is None:
            return None
        return int((self.finished_at - self.started_at).total_seconds() * 1000)

    def comments_for(self, path: str) -> List[ReviewComment]:
        """Posted comments anchored to one file."""
        return [c for c in self.posted if c.path == path]
