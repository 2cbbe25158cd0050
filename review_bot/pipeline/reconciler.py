"""Filter new review comments against those already posted."""

from difflib import SequenceMatcher
from typing import Iterable, List, Tuple

from ..models import PostedComment, ReviewComment
from ..tools.github_tool import COMMENT_TAG


def normalize_body(body: str) -> str:
    """Drop our tag, collapse whitespace and ignore case."""
    return " ".join(body.replace(COMMENT_TAG, " ").split()).casefold()


class CommentReconciler:
    """
    Suppress comments that repeat an existing one.

    A comment is a duplicate only when the path, the line anchor AND the body
    match. Bodies match when equal after normalization or when their
    similarity ratio reaches the threshold.
    """

    def __init__(self, similarity_threshold: float = 0.95):
        self.similarity_threshold = similarity_threshold

    def bodies_match(self, a: str, b: str) -> bool:
        left, right = normalize_body(a), normalize_body(b)
        if left == right:
            return True
        if not left or not right:
            return False
        return SequenceMatcher(None, left, right).ratio() >= self.similarity_threshold

    def reconcile(
        self,
        new_comments: Iterable[ReviewComment],
        existing: Iterable[PostedComment]
    ) -> Tuple[List[ReviewComment], int]:
        """
        Pick the comments to post.

        Args:
            new_comments: Comments produced by this run
            existing: Comments already on the pull request

        Returns:
            (comments to post in input order, number suppressed)
        """
        seen: List[Tuple[str, int, str]] = [
            (c.path, c.line, c.body) for c in existing if c.line is not None
        ]
        to_post: List[ReviewComment] = []
        suppressed = 0

        for comment in new_comments:
            duplicate = any(
                path == comment.path and line == comment.line and self.bodies_match(body, comment.body)
                for path, line, body in seen
            )
            if duplicate:
                suppressed += 1
                continue
            to_post.append(comment)
            seen.append((comment.path, comment.line, comment.body))

        return to_post, suppressed
