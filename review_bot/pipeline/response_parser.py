"""Parse review responses into anchored comments."""

import re
from typing import List, Optional, Tuple

from ..models import ReviewComment, ReviewTarget
from ..models.review import LGTM_PATTERN
from ..utils import get_logger


SECTION_HEADER_PATTERN = re.compile(r'^\s*(\d+)\s*(?:-\s*(\d+))?\s*:\s*$')
SECTION_END = "---"


def split_sections(text: str) -> List[Tuple[int, int, str]]:
    """
    Split a response into (start_line, end_line, body) sections.

    A section starts at a `<start>-<end>:` line and runs to a `---` line or
    the next header. Text outside sections is ignored.
    """
    sections: List[Tuple[int, int, str]] = []
    current: Optional[Tuple[int, int]] = None
    body: List[str] = []

    def close():
        if current is not None:
            content = '\n'.join(body).strip()
            if content:
                sections.append((current[0], current[1], content))

    for line in text.split('\n'):
        match = SECTION_HEADER_PATTERN.match(line)
        if match:
            close()
            start = int(match.group(1))
            end = int(match.group(2)) if match.group(2) else start
            current = (min(start, end), max(start, end))
            body = []
        elif line.strip() == SECTION_END:
            close()
            current = None
            body = []
        elif current is not None:
            body.append(line)

    close()
    return sections


def anchor_comment(
    target: ReviewTarget,
    start: int,
    end: int,
    body: str
) -> Optional[ReviewComment]:
    """
    Anchor a range to the target's hunks.

    Ranges inside a hunk are kept as is. Ranges that only partly overlap are
    moved to the hunk with the greatest overlap, with a note. Ranges outside
    every hunk give None.
    """
    for s, e in target.hunk_ranges:
        if s <= start and end <= e:
            return ReviewComment(target.path, start, end, body)

    best: Optional[Tuple[int, int]] = None
    best_overlap = 0
    for s, e in target.hunk_ranges:
        overlap = min(end, e) - max(start, s) + 1
        if overlap > best_overlap:
            best_overlap = overlap
            best = (max(start, s), min(end, e))

    if best is None:
        return None

    note = (
        f"> Note: This review was outside of the patch, so it was mapped to the "
        f"patch with the greatest overlap. Original lines [{start}-{end}]\n\n"
    )
    return ReviewComment(target.path, best[0], best[1], note + body)


def parse_review_response(
    text: str,
    target: ReviewTarget,
    include_lgtm: bool = False
) -> List[ReviewComment]:
    """
    Turn a review response into comments for one target.

    Args:
        text: Model response
        target: The target the response reviews
        include_lgtm: Keep LGTM comments

    Returns:
        Comments whose ranges lie inside the target's hunks
    """
    logger = get_logger()
    comments = []

    for start, end, body in split_sections(text):
        comment = anchor_comment(target, start, end, body)
        if comment is None:
            logger.warning(
                f"Dropping comment on {target.path}:{start}-{end}, outside of the reviewed hunks"
            )
            continue
        if not include_lgtm and LGTM_PATTERN.match(body):
            continue
        comments.append(comment)

    return comments
