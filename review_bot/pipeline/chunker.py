"""Split file diffs into review targets that fit a token budget."""

from typing import List, Sequence, Tuple

from ..models import FileDiff, ReviewTarget, SkippedFile, SkipReason
from ..tools.diff_parser import Hunk, split_hunks, is_formatting_only
from ..tools.path_filter import PathFilter
from ..tools.tokens import estimate_tokens, truncate_to_tokens


def _build_target(
    path: str,
    hunks: Sequence[Hunk],
    content: str,
    index: int,
    count: int,
    truncated: bool = False
) -> ReviewTarget:
    old_ranges = [h.old_range for h in hunks]
    new_ranges = [h.new_range for h in hunks]
    return ReviewTarget(
        path=path,
        content=content,
        old_range=(min(s for s, _ in old_ranges), max(e for _, e in old_ranges)),
        new_range=(min(s for s, _ in new_ranges), max(e for _, e in new_ranges)),
        hunk_ranges=tuple(new_ranges),
        chunk_index=index,
        chunk_count=count,
        truncated=truncated,
    )


def chunk_file_diff(path: str, diff_text: str, max_tokens: int) -> List[ReviewTarget]:
    """
    Split one file's diff into ordered review targets.

    Hunks are packed greedily in order and never split when they fit the
    budget on their own. A hunk larger than the budget becomes its own
    target, truncated to the budget and flagged so the caller can skip it.

    Args:
        path: File path
        diff_text: Diff for the file
        max_tokens: Token budget for one target's content

    Returns:
        Targets in diff order; empty for an empty diff
    """
    hunks = split_hunks(diff_text)
    if not hunks:
        return []

    if estimate_tokens(diff_text) <= max_tokens:
        return [_build_target(path, hunks, diff_text, 0, 1)]

    groups: List[Tuple[List[Hunk], bool]] = []
    current: List[Hunk] = []

    for hunk in hunks:
        if estimate_tokens(hunk.content) > max_tokens:
            if current:
                groups.append((current, False))
                current = []
            groups.append(([hunk], True))
            continue

        candidate = '\n'.join(h.content for h in current + [hunk])
        if current and estimate_tokens(candidate) > max_tokens:
            groups.append((current, False))
            current = []
        current.append(hunk)

    if current:
        groups.append((current, False))

    targets = []
    for index, (group, truncated) in enumerate(groups):
        if truncated:
            content = truncate_to_tokens(group[0].content, max_tokens)
        else:
            content = '\n'.join(h.content for h in group)
        targets.append(_build_target(path, group, content, index, len(groups), truncated))
    return targets


def select_files(
    files: Sequence[FileDiff],
    max_files: int,
    path_filter: PathFilter
) -> Tuple[List[FileDiff], List[SkippedFile]]:
    """
    Pick the files to review.

    Files are dropped when the path filter rejects them, when they were
    deleted, when the platform gave no patch, or once max_files (> 0) files
    have been kept.

    Returns:
        (kept files, skipped-file events)
    """
    kept: List[FileDiff] = []
    skipped: List[SkippedFile] = []

    for file in files:
        if not path_filter.check(file.path):
            skipped.append(SkippedFile(file.path, SkipReason.FILTERED))
        elif file.status == "removed":
            skipped.append(SkippedFile(file.path, SkipReason.REMOVED))
        elif not file.patch:
            skipped.append(SkippedFile(file.path, SkipReason.NO_PATCH))
        elif max_files > 0 and len(kept) >= max_files:
            skipped.append(SkippedFile(
                file.path, SkipReason.MAX_FILES, f"limit is {max_files} files"
            ))
        else:
            kept.append(file)

    return kept, skipped


def is_simple_change(target: ReviewTarget) -> bool:
    """Whitespace-only changes need no detailed review."""
    return is_formatting_only(target.content)
