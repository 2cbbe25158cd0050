"""Shared fakes for external collaborators (model backend, GitHub)."""

import asyncio
import re
from typing import Callable, List, Optional, Sequence

import pytest

from review_bot.config import RunConfig
from review_bot.models import FileDiff, PostedComment, PullRequestInfo, ReviewComment


LIGHT_MODEL = "light-model"
HEAVY_MODEL = "heavy-model"

TARGET_PATTERN = re.compile(r"## Changes in `(.+?)` \(new lines (\d+)-(\d+)\)")


class FakeBackend:
    """Model backend double: records requests, answers through a responder."""

    def __init__(self, responder: Callable):
        self.responder = responder
        self.requests = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def complete(self, request):
        self.requests.append(request)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            result = self.responder(request)
            if asyncio.iscoroutine(result):
                result = await result
            else:
                await asyncio.sleep(0)
            return result
        finally:
            self.in_flight -= 1

    def requests_for(self, model: str):
        return [r for r in self.requests if r.model == model]


class FakePlatform:
    """GitHub double holding PR files and recording everything posted."""

    def __init__(
        self,
        files: Sequence[FileDiff],
        existing: Sequence[PostedComment] = (),
        pr: Optional[PullRequestInfo] = None
    ):
        self.files = list(files)
        self.existing = list(existing)
        self.pr = pr or PullRequestInfo(number=7, title="Add feature", description="Adds it", head_sha="abc123")
        self.posted: List[ReviewComment] = []
        self.summaries: List[str] = []
        self.release_notes: List[str] = []
        self.issue_comments: List[str] = []

    async def get_pull_request_info(self):
        return self.pr

    async def get_files(self):
        return list(self.files)

    async def list_review_comments(self):
        return list(self.existing)

    async def post_review_comment(self, comment, commit_sha):
        self.posted.append(comment)
        return True

    async def upsert_summary_comment(self, body):
        self.summaries.append(body)

    async def update_release_notes(self, release_notes):
        self.release_notes.append(release_notes)

    async def post_issue_comment(self, body):
        self.issue_comments.append(body)


def target_of(request):
    """(filename, start_line, end_line) of a review prompt, or None for a summary."""
    match = TARGET_PATTERN.search(request.prompt)
    if not match:
        return None
    return match.group(1), int(match.group(2)), int(match.group(3))


def make_patch(*added_lines: str, start: int = 1) -> str:
    body = [" import os"] + [f"+{line}" for line in added_lines] + [" "]
    return f"@@ -{start},2 +{start},{len(body)} @@\n" + "\n".join(body)


@pytest.fixture
def config() -> RunConfig:
    return RunConfig(
        light_model=LIGHT_MODEL,
        heavy_model=HEAVY_MODEL,
        model_retries=2,
        model_timeout_ms=5000,
    )
