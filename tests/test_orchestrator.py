"""Tests for review orchestration.

Following the testing philosophy:
- Client-perspective behavior verification
- Given-When-Then structure
- Minimal mocking (only the model backend and GitHub)
"""

import asyncio
import dataclasses
import logging

from review_bot.models import FileDiff, PostedComment, RunState, SkipReason
from review_bot.main import build_platform
from review_bot.orchestrator import ReviewOrchestrator, run_action
from review_bot.tools import ModelClient
from review_bot.tools.github_tool import COMMENT_TAG

from conftest import FakeBackend, FakePlatform, HEAVY_MODEL, LIGHT_MODEL, make_patch, target_of


SUMMARY = "Adds a feature.\n\n### Release Notes\n- New Feature: adds it"


def responder(fail_paths=(), delays=None, summary=SUMMARY):
    """Answer review prompts with one comment on the first hunk line."""
    delays = delays or {}

    async def respond(request):
        target = target_of(request)
        if target is None:
            if isinstance(summary, Exception):
                raise summary
            return summary, {"input_tokens": 100, "output_tokens": 20}
        path, start, _ = target
        await asyncio.sleep(delays.get(path, 0))
        if path in fail_paths:
            raise RuntimeError("401 Unauthorized")
        return f"{start}-{start}:\nIssue in {path}.\n---", {"input_tokens": 50, "output_tokens": 10}

    return respond


def run_review(config, platform, backend, event_name="pull_request", payload=None):
    async def run():
        limiter = asyncio.Semaphore(config.model_concurrency_limit)
        light = ModelClient(config, config.light_options, limiter, backend, retry_base_delay=0)
        heavy = ModelClient(config, config.heavy_options, limiter, backend, retry_base_delay=0)
        orchestrator = ReviewOrchestrator(config, platform, light, heavy)
        return await orchestrator.run(event_name, payload or {})

    return asyncio.run(run())


def files(*paths):
    return [FileDiff(path, make_patch(f"value = '{path}'")) for path in paths]


class TestPullRequestReview:
    """Tests for the pull request path."""

    def test_two_files_reviewed_with_one_summary(self, config):
        """Given 2 changed files, should send 2 review requests and 1 summary request."""
        # Given - a.py finishes after b.py
        platform = FakePlatform(files("a.py", "b.py"))
        backend = FakeBackend(responder(delays={"a.py": 0.03}))

        # When
        report = run_review(config, platform, backend)

        # Then
        assert len(backend.requests_for(HEAVY_MODEL)) == 2
        assert len(backend.requests_for(LIGHT_MODEL)) == 1
        assert set(report.results) == {("a.py", 0), ("b.py", 0)}
        assert [c.body for c in report.comments_for("a.py")] == ["Issue in a.py."]
        assert [c.body for c in report.comments_for("b.py")] == ["Issue in b.py."]
        assert report.model_calls == 3
        assert report.state is RunState.DONE
        assert report.transitions == [
            RunState.DISPATCHING, RunState.COLLECTING, RunState.RECONCILING, RunState.DONE
        ]

    def test_summary_and_release_notes_published(self, config):
        # Given
        platform = FakePlatform(files("a.py"))
        backend = FakeBackend(responder())

        # When
        report = run_review(config, platform, backend)

        # Then
        assert report.summary == SUMMARY
        assert len(platform.summaries) == 1
        assert platform.summaries[0].startswith("Adds a feature.")
        assert "### Release Notes" not in platform.summaries[0]
        assert "Review stats" in platform.summaries[0]
        assert platform.release_notes == ["- New Feature: adds it"]

    def test_release_notes_disabled(self, config):
        config = dataclasses.replace(config, disable_release_notes=True)
        platform = FakePlatform(files("a.py"))

        run_review(config, platform, FakeBackend(responder()))

        assert len(platform.summaries) == 1
        assert platform.release_notes == []

    def test_one_failed_target_does_not_block_others(self, config, caplog):
        """Given 3 files where one request fails fatally, the other 2 should still be posted."""
        # Given
        platform = FakePlatform(files("a.py", "b.py", "c.py"))
        backend = FakeBackend(responder(fail_paths={"b.py"}))

        # When
        with caplog.at_level(logging.WARNING, logger="review_bot"):
            report = run_review(config, platform, backend)

        # Then
        assert sorted(c.path for c in platform.posted) == ["a.py", "c.py"]
        assert [r.target.path for r in report.failed_targets] == ["b.py"]
        assert "Skipped b.py:1-3" in caplog.text
        assert report.state is RunState.DONE

    def test_summary_failure_does_not_block_reviews(self, config, caplog):
        """Given a failing summary request, reviews should still be posted."""
        # Given
        platform = FakePlatform(files("a.py", "b.py"))
        backend = FakeBackend(responder(summary=RuntimeError("403 Forbidden")))

        # When
        with caplog.at_level(logging.WARNING, logger="review_bot"):
            report = run_review(config, platform, backend)

        # Then
        assert len(platform.posted) == 2
        assert platform.summaries == []
        assert report.summary_error is not None
        assert "Summarization failed" in caplog.text

    def test_rerun_suppresses_existing_comments(self, config):
        """Given a comment already posted by a previous run, it should not be posted again."""
        # Given
        existing = [PostedComment("a.py", 1, f"Issue in a.py.\n\n{COMMENT_TAG}", comment_id=11)]
        platform = FakePlatform(files("a.py", "b.py"), existing=existing)

        # When
        report = run_review(config, platform, FakeBackend(responder()))

        # Then
        assert [c.path for c in platform.posted] == ["b.py"]
        assert report.suppressed == 1

    def test_review_disabled_only_summarizes(self, config):
        config = dataclasses.replace(config, disable_review=True)
        platform = FakePlatform(files("a.py"))
        backend = FakeBackend(responder())

        run_review(config, platform, backend)

        assert backend.requests_for(HEAVY_MODEL) == []
        assert len(backend.requests_for(LIGHT_MODEL)) == 1
        assert platform.posted == []
        assert len(platform.summaries) == 1

    def test_formatting_only_change_skipped(self, config):
        # Given
        platform = FakePlatform([FileDiff("fmt.py", "@@ -1 +1 @@\n-x=1\n+x = 1")])
        backend = FakeBackend(responder())

        # When
        report = run_review(config, platform, backend)

        # Then
        assert backend.requests_for(HEAVY_MODEL) == []
        assert [(s.path, s.reason) for s in report.skipped] == [("fmt.py", SkipReason.SIMPLE_CHANGE)]

    def test_no_reviewable_files(self, config, caplog):
        config = dataclasses.replace(config, path_filters=("!**/*.py",))
        backend = FakeBackend(responder())

        with caplog.at_level(logging.WARNING, logger="review_bot"):
            report = run_review(config, FakePlatform(files("a.py")), backend)

        assert backend.requests == []
        assert "no files to review" in caplog.text
        assert report.skipped[0].reason is SkipReason.FILTERED


def comment_payload(body, login="alice", user_type="User", on_pr=True):
    issue = {"number": 7}
    if on_pr:
        issue["pull_request"] = {"url": "https://api.github.com/repos/o/r/pulls/7"}
    return {"issue": issue, "comment": {"body": body, "user": {"login": login, "type": user_type}}}


class TestOnDemandReview:
    """Tests for reviews requested in a comment."""

    def test_review_request_sends_single_request(self, config):
        """Given a comment asking the bot for a review, should send exactly one heavy request."""
        # Given
        platform = FakePlatform(files("a.py", "b.py"))
        backend = FakeBackend(responder())

        # When
        report = run_review(config, platform, backend, "issue_comment", comment_payload("@review-bot review a.py"))

        # Then
        assert len(backend.requests) == 1
        assert backend.requests[0].model == HEAVY_MODEL
        assert "@review-bot review a.py" in backend.requests[0].prompt
        assert [c.path for c in platform.posted] == ["a.py"]
        assert platform.issue_comments == ["Reviewed `a.py:1-3`: posted 1 comment(s)."]
        assert report.state is RunState.DONE

    def test_lgtm_reply(self, config):
        platform = FakePlatform(files("a.py"))
        backend = FakeBackend(lambda r: ("1-3:\nLGTM!\n---", {}))

        run_review(config, platform, backend, "issue_comment", comment_payload("@review-bot review a.py:2"))

        assert platform.posted == []
        assert platform.issue_comments == ["Reviewed `a.py:1-3`: LGTM!"]

    def test_comment_without_mention_ignored(self, config):
        platform = FakePlatform(files("a.py"))
        backend = FakeBackend(responder())

        run_review(config, platform, backend, "issue_comment", comment_payload("Looks good to me"))

        assert backend.requests == []
        assert platform.issue_comments == []

    def test_bot_comment_ignored(self, config):
        platform = FakePlatform(files("a.py"))
        backend = FakeBackend(responder())

        run_review(
            config, platform, backend, "issue_comment",
            comment_payload("@review-bot review a.py", login="ci[bot]", user_type="Bot"),
        )

        assert backend.requests == []

    def test_comment_on_issue_ignored(self, config):
        backend = FakeBackend(responder())

        run_review(
            config, FakePlatform(files("a.py")), backend, "issue_comment",
            comment_payload("@review-bot review a.py", on_pr=False),
        )

        assert backend.requests == []

    def test_unknown_file_gets_reply(self, config):
        """Given a path not in the PR, should reply without calling the model."""
        platform = FakePlatform(files("a.py"))
        backend = FakeBackend(responder())

        run_review(config, platform, backend, "issue_comment", comment_payload("@review-bot review missing.py"))

        assert backend.requests == []
        assert len(platform.issue_comments) == 1
        assert "`missing.py`" in platform.issue_comments[0]

    def test_range_outside_changes_gets_reply(self, config):
        platform = FakePlatform(files("a.py"))
        backend = FakeBackend(responder())

        run_review(config, platform, backend, "issue_comment", comment_payload("@review-bot review a.py:50-60"))

        assert backend.requests == []
        assert "match the requested lines" in platform.issue_comments[0]


class TestRunAction:
    """Tests for client creation and event routing."""

    def test_unsupported_event_makes_no_calls(self, config, caplog):
        """Given a push event, should log a warning and never touch the model or GitHub."""
        # Given
        backend = FakeBackend(responder())
        factory_calls = []

        def platform_factory(payload):
            factory_calls.append(payload)
            return FakePlatform(files("a.py"))

        # When
        with caplog.at_level(logging.WARNING, logger="review_bot"):
            report = asyncio.run(run_action(config, "push", {}, platform_factory, lambda c: backend))

        # Then
        assert backend.requests == []
        assert factory_calls == []
        assert report.model_calls == 0
        assert "only works on pull_request" in caplog.text

    def test_bot_creation_failure_skips_run(self, config, caplog):
        """Given a backend that cannot be created, should warn and skip without raising."""
        # Given
        def backend_factory(cfg):
            raise RuntimeError("no credentials")

        factory_calls = []

        # When
        with caplog.at_level(logging.WARNING, logger="review_bot"):
            report = asyncio.run(
                run_action(config, "pull_request", {}, factory_calls.append, backend_factory)
            )

        # Then
        assert report is None
        assert factory_calls == []
        assert "failed to create summary bot" in caplog.text

    def test_comment_on_plain_issue_skips_before_platform(self, config, caplog):
        """Given a comment on an issue that is not a PR, should finish without building the platform."""
        # Given
        backend = FakeBackend(responder())
        payload = comment_payload("@review-bot review a.py", on_pr=False)

        # When
        with caplog.at_level(logging.INFO, logger="review_bot"):
            report = asyncio.run(run_action(
                config,
                "issue_comment",
                payload,
                lambda p: build_platform(config, "owner/repo", p),
                lambda c: backend,
            ))

        # Then
        assert report.state is RunState.DONE
        assert backend.requests == []
        assert "not on a pull request" in caplog.text

    def test_pull_request_target_routed_to_review(self, config):
        platform = FakePlatform(files("a.py"))
        backend = FakeBackend(responder())
        payload = {"pull_request": {"number": 7}}

        report = asyncio.run(
            run_action(config, "pull_request_target", payload, lambda p: platform, lambda c: backend)
        )

        assert [c.path for c in report.posted] == ["a.py"]
        assert report.model_calls == 2


class FlakyPlatform(FakePlatform):
    """Platform whose comment posts fail for some paths with a network error."""

    def __init__(self, files, broken_paths):
        super().__init__(files)
        self.broken_paths = set(broken_paths)

    async def post_review_comment(self, comment, commit_sha):
        if comment.path in self.broken_paths:
            raise ConnectionError("Connection aborted")
        return await super().post_review_comment(comment, commit_sha)


class TestPostingFailures:
    """Tests for platform errors while posting comments."""

    def test_network_error_on_one_post_keeps_the_rest(self, config, caplog):
        """Given a post that raises, the other comments and the summary should still be published."""
        # Given
        platform = FlakyPlatform(files("a.py", "b.py", "c.py"), broken_paths={"b.py"})
        backend = FakeBackend(responder())

        # When
        with caplog.at_level(logging.WARNING, logger="review_bot"):
            report = run_review(config, platform, backend)

        # Then
        assert sorted(c.path for c in platform.posted) == ["a.py", "c.py"]
        assert sorted(c.path for c in report.posted) == ["a.py", "c.py"]
        assert len(platform.summaries) == 1
        assert "Failed to post comment for b.py" in caplog.text
        assert "Connection aborted" in caplog.text
        assert report.state is RunState.DONE


class TestSpecialTokenText:
    """Tests for diffs containing tokenizer control strings."""

    def test_diff_with_special_token_is_reviewed(self, config):
        # Given
        patch = make_patch("EOS = '<|endoftext|>'")
        platform = FakePlatform([FileDiff("tokenizer.py", patch)])
        backend = FakeBackend(responder())

        # When
        report = run_review(config, platform, backend)

        # Then
        assert [c.path for c in report.posted] == ["tokenizer.py"]
        assert "<|endoftext|>" in backend.requests_for(HEAVY_MODEL)[0].prompt
