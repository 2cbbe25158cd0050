"""Git diff parsing utilities."""

from dataclasses import dataclass
from typing import List, Tuple
import re


HUNK_HEADER_PATTERN = re.compile(r'^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@(.*)$')


@dataclass(frozen=True)
class Hunk:
    """Represents a single hunk from a file diff."""
    old_start: int
    old_lines: int
    new_start: int
    new_lines: int
    content: str   # Header line included, plus any preamble for the first hunk
    header: str

    @property
    def old_range(self) -> Tuple[int, int]:
        return (self.old_start, self.old_start + max(self.old_lines, 1) - 1)

    @property
    def new_range(self) -> Tuple[int, int]:
        return (self.new_start, self.new_start + max(self.new_lines, 1) - 1)


def split_hunks(patch: str) -> List[Hunk]:
    """
    Split a file patch into hunks.

    Joining the returned contents with newlines gives back the patch exactly.
    Lines before the first hunk header stay with the first hunk.

    Args:
        patch: Diff text for one file (GitHub's `patch` field or a git diff)

    Returns:
        List of Hunk objects in patch order
    """
    if not patch:
        return []

    lines = patch.split('\n')
    groups: List[Tuple[str, List[str]]] = []
    preamble: List[str] = []

    for line in lines:
        if HUNK_HEADER_PATTERN.match(line):
            groups.append((line, preamble + [line]))
            preamble = []
        elif groups:
            groups[-1][1].append(line)
        else:
            preamble.append(line)

    if not groups:
        # No header: treat the text as a single hunk over its own lines
        count = len(lines)
        return [Hunk(1, count, 1, count, patch, "")]

    hunks = []
    for header, hunk_lines in groups:
        match = HUNK_HEADER_PATTERN.match(header)
        hunks.append(Hunk(
            old_start=int(match.group(1)),
            old_lines=int(match.group(2) if match.group(2) is not None else 1),
            new_start=int(match.group(3)),
            new_lines=int(match.group(4) if match.group(4) is not None else 1),
            content='\n'.join(hunk_lines),
            header=header,
        ))
    return hunks


def changed_lines(content: str) -> Tuple[List[str], List[str]]:
    """Return (removed, added) lines of a hunk body, without the +/- marker."""
    removed, added = [], []
    for line in content.split('\n'):
        if line.startswith('+++') or line.startswith('---'):
            continue
        if line.startswith('-'):
            removed.append(line[1:])
        elif line.startswith('+'):
            added.append(line[1:])
    return removed, added


def is_formatting_only(content: str) -> bool:
    """
    Check if a diff only changes whitespace.

    True when the removed and added lines are identical once all whitespace
    is dropped and blank lines are ignored.
    """
    removed, added = changed_lines(content)
    if not removed and not added:
        return True

    def squash(lines: List[str]) -> List[str]:
        return [s for s in (''.join(line.split()) for line in lines) if s]

    return squash(removed) == squash(added)


def format_file_diff(path: str, patch: str, status: str = "modified") -> str:
    """
    Format one file's changes into a readable block for LLM analysis.

    Args:
        path: File path
        patch: Diff text for the file
        status: Platform file status

    Returns:
        Markdown section with the file header and its diff
    """
    label = ""
    if status == "added":
        label = " (NEW FILE)"
    elif status == "removed":
        label = " (DELETED)"
    elif status == "renamed":
        label = " (RENAMED)"

    return '\n'.join([
        f"### File: {path}{label}",
        "",
        "```diff",
        patch,
        "```",
    ])
