"""Data models for review targets and comments."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple
import re

from ..errors import ReviewBotError


LineRange = Tuple[int, int]  # inclusive (start, end)

# "LGTM", "LGTM!" or "LGTM. <remark>"; "Not LGTM" and "LGTM, but ..." are findings
LGTM_PATTERN = re.compile(r"^\s*lgtm(?:[!.]+(?:\s|$)|\s*$)", re.IGNORECASE)


class SkipReason(Enum):
    """Why a file or target was left out of the review."""
    FILTERED = "filtered"            # Excluded by path_filters
    MAX_FILES = "max_files"          # Beyond the max_files limit
    NO_PATCH = "no_patch"            # Binary or too large for the platform to diff
    REMOVED = "removed"              # Deleted files have nothing to review
    SIMPLE_CHANGE = "simple_change"  # Formatting-only change
    TRUNCATED = "truncated"          # Single hunk larger than the token budget
    REQUEST_FAILED = "request_failed"


@dataclass(frozen=True)
class FileDiff:
    """One changed file as supplied by the diff source."""
    path: str
    patch: Optional[str]
    status: str = "modified"  # added, modified, removed, renamed


@dataclass(frozen=True)
class ReviewTarget:
    """One chunk of a file's diff sent in a single review request."""
    path: str
    content: str
    old_range: LineRange
    new_range: LineRange
    hunk_ranges: Tuple[LineRange, ...] = ()  # New-side range of each included hunk
    chunk_index: int = 0
    chunk_count: int = 1
    truncated: bool = False

    @property
    def key(self) -> Tuple[str, int]:
        return (self.path, self.chunk_index)

    @property
    def label(self) -> str:
        return f"{self.path}:{self.new_range[0]}-{self.new_range[1]}"

    def overlaps(self, start: int, end: int) -> bool:
        """Check if any hunk in this target touches the given new-side range."""
        return any(s <= end and start <= e for s, e in self.hunk_ranges)


@dataclass(frozen=True)
class ReviewComment:
    """A comment to post, anchored to a new-side line range of a file."""
    path: str
    start_line: int
    end_line: int
    body: str

    @property
    def line(self) -> int:
        """Line the platform anchors the comment to."""
        return self.end_line

    @property
    def is_lgtm(self) -> bool:
        return LGTM_PATTERN.match(self.body) is not None


@dataclass(frozen=True)
class PostedComment:
    """A review comment already present on the pull request."""
    path: str
    line: Optional[int]
    body: str
    comment_id: Optional[int] = None


@dataclass(frozen=True)
class SkippedFile:
    """Observable record of a file or target left out of the review."""
    path: str
    reason: SkipReason
    detail: str = ""


@dataclass
class TargetResult:
    """Outcome of reviewing one target; every dispatched target gets one."""
    target: ReviewTarget
    comments: List[ReviewComment] = field(default_factory=list)
    error: Optional[ReviewBotError] = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None
