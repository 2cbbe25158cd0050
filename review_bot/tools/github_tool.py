"""GitHub API wrapper for PR operations."""

import asyncio
import os
from typing import List, Optional

from github import Auth, Github, GithubException
from github.PullRequest import PullRequest

from ..models import FileDiff, PostedComment, PullRequestInfo, ReviewComment
from ..utils import get_logger


COMMENT_TAG = "<!-- This is an auto-generated comment by review-bot -->"
SUMMARY_TAG = "<!-- This is an auto-generated comment: summarize by review-bot -->"
RELEASE_NOTES_START = "<!-- release notes start -->"
RELEASE_NOTES_END = "<!-- release notes end -->"


def format_review_comment(comment: ReviewComment) -> str:
    """Body as posted, carrying the tag used to recognise our comments."""
    return f"{comment.body}\n\n{COMMENT_TAG}"


def format_summary_comment(summary: str) -> str:
    return f"{summary}\n\n---\n*Summarized by review-bot*\n\n{SUMMARY_TAG}"


def merge_release_notes(description: str, release_notes: str) -> str:
    """Replace (or append) the marked release notes block of a PR description."""
    description = description or ""
    block = f"{RELEASE_NOTES_START}\n\n### Summary by review-bot\n\n{release_notes.strip()}\n\n{RELEASE_NOTES_END}"

    start = description.find(RELEASE_NOTES_START)
    end = description.find(RELEASE_NOTES_END)
    if start != -1 and end != -1 and end > start:
        return description[:start] + block + description[end + len(RELEASE_NOTES_END):]
    if description.strip():
        return f"{description.rstrip()}\n\n{block}"
    return block


class GitHubTool:
    """
    GitHub API wrapper for review operations.

    PyGithub is blocking, so every call runs in a worker thread under a
    semaphore that bounds simultaneous platform requests.

    Handles:
    - Fetching PR metadata and per-file patches
    - Listing and posting review comments
    - Maintaining the summary comment and release notes
    """

    def __init__(
        self,
        repo: str,
        pr_number: int,
        token: Optional[str] = None,
        concurrency_limit: int = 4
    ):
        """
        Initialize GitHub tool.

        Args:
            repo: Repository in format "owner/repo"
            pr_number: Pull request number
            token: GitHub token (defaults to GITHUB_TOKEN env var)
            concurrency_limit: Maximum in-flight platform calls
        """
        self.token = token or os.environ.get("GITHUB_TOKEN")
        if not self.token:
            raise ValueError("GitHub token required. Set GITHUB_TOKEN env var or pass token parameter.")

        self.gh = Github(auth=Auth.Token(self.token))
        self.repo_name = repo
        self.pr_number = pr_number
        self.logger = get_logger()
        self._repo = None
        self._pr: Optional[PullRequest] = None
        self._limiter = asyncio.Semaphore(concurrency_limit)

    @property
    def pr(self) -> PullRequest:
        """Get the pull request object (cached)."""
        if self._pr is None:
            if self._repo is None:
                self._repo = self.gh.get_repo(self.repo_name)
            self._pr = self._repo.get_pull(self.pr_number)
        return self._pr

    async def _call(self, fn, *args, **kwargs):
        async with self._limiter:
            return await asyncio.to_thread(fn, *args, **kwargs)

    async def get_pull_request_info(self) -> PullRequestInfo:
        def load() -> PullRequestInfo:
            pr = self.pr
            return PullRequestInfo(
                number=pr.number,
                title=pr.title or "",
                description=pr.body or "",
                head_sha=pr.head.sha,
            )

        return await self._call(load)

    async def get_files(self) -> List[FileDiff]:
        """Get changed files with their patches."""
        def load() -> List[FileDiff]:
            return [
                FileDiff(path=f.filename, patch=f.patch, status=f.status)
                for f in self.pr.get_files()
            ]

        return await self._call(load)

    async def list_review_comments(self) -> List[PostedComment]:
        """Get review comments already on the PR."""
        def load() -> List[PostedComment]:
            return [
                PostedComment(
                    path=c.path,
                    line=c.line if c.line is not None else c.original_line,
                    body=c.body,
                    comment_id=c.id,
                )
                for c in self.pr.get_review_comments()
            ]

        return await self._call(load)

    async def post_review_comment(self, comment: ReviewComment, commit_sha: str) -> bool:
        """
        Post a review comment anchored to a line range.

        Returns:
            True if comment was posted successfully
        """
        def post():
            commit = self.pr.base.repo.get_commit(commit_sha)
            kwargs = {}
            if comment.start_line < comment.end_line:
                kwargs = {"start_line": comment.start_line, "start_side": "RIGHT"}
            self.pr.create_review_comment(
                body=format_review_comment(comment),
                commit=commit,
                path=comment.path,
                line=comment.end_line,
                side="RIGHT",
                **kwargs,
            )

        try:
            await self._call(post)
            return True
        except GithubException as e:
            self.logger.warning(
                f"Failed to post comment on {comment.path}:{comment.start_line}-{comment.end_line}: {e}"
            )
            return False

    async def upsert_summary_comment(self, summary: str) -> None:
        """Update the tagged summary comment, or create it."""
        body = format_summary_comment(summary)

        def upsert():
            for existing in self.pr.get_issue_comments():
                if SUMMARY_TAG in (existing.body or ""):
                    existing.edit(body)
                    return
            self.pr.create_issue_comment(body)

        await self._call(upsert)

    async def update_release_notes(self, release_notes: str) -> None:
        """Write release notes into the marked block of the PR description."""
        def update():
            self.pr.edit(body=merge_release_notes(self.pr.body, release_notes))

        await self._call(update)

    async def post_issue_comment(self, body: str) -> None:
        await self._call(lambda: self.pr.create_issue_comment(f"{body}\n\n{COMMENT_TAG}"))
