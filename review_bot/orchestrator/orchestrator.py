"""Review orchestration for pull request and comment events."""

import asyncio
import re
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..config import RunConfig
from ..errors import ErrorKind, ReviewBotError
from ..models import (
    EventKind,
    FileDiff,
    ModelRequest,
    PullRequestInfo,
    ReviewComment,
    ReviewTarget,
    RunReport,
    RunState,
    SkippedFile,
    SkipReason,
    TargetResult,
)
from ..pipeline import (
    CommentReconciler,
    PromptBuilder,
    chunk_file_diff,
    is_simple_change,
    parse_review_response,
    select_files,
)
from ..tools import (
    ClaudeBackend,
    ModelClient,
    PathFilter,
    ResultStore,
    format_file_diff,
    truncate_to_tokens,
)
from ..utils import calculate_metrics, format_metrics_report, get_logger
from .events import is_bot_comment, parse_on_demand_command, pull_request_number


RELEASE_NOTES_PATTERN = re.compile(r'^#{2,3}\s*Release Notes\s*$', re.IGNORECASE | re.MULTILINE)


def split_release_notes(summary: str) -> Tuple[str, Optional[str]]:
    """Separate the `### Release Notes` section from a summary response."""
    match = RELEASE_NOTES_PATTERN.search(summary)
    if not match:
        return summary.strip(), None
    notes = summary[match.end():].strip()
    return summary[:match.start()].strip(), notes or None


class ReviewOrchestrator:
    """
    Runs one review for one event.

    Flow:
    - IDLE -> DISPATCHING: build targets and requests, launch model calls
    - COLLECTING: gather results keyed by target, in any completion order
    - RECONCILING: drop duplicates of posted comments, post the rest
    - DONE

    The summary runs on the light model beside the per-file reviews; its
    failure is a warning and never blocks them.
    """

    def __init__(
        self,
        config: RunConfig,
        platform,
        light: ModelClient,
        heavy: ModelClient,
        reconciler: Optional[CommentReconciler] = None
    ):
        """
        Initialize the orchestrator.

        Args:
            config: Run configuration
            platform: Pull request collaborator (see GitHubTool)
            light: Client for the summarization model
            heavy: Client for the review model
            reconciler: Duplicate filter for posted comments
        """
        self.config = config
        self.platform = platform
        self.light = light
        self.heavy = heavy
        self.reconciler = reconciler or CommentReconciler()
        self.prompts = PromptBuilder(config)
        self.path_filter = PathFilter(config.path_filters)
        self.logger = get_logger()
        self._input_tokens = 0
        self._output_tokens = 0

    async def run(self, event_name: str, payload: Dict[str, Any]) -> RunReport:
        """
        Handle an event.

        Args:
            event_name: GitHub event name
            payload: Webhook payload

        Returns:
            RunReport describing what was reviewed and posted
        """
        report = RunReport(event_name=event_name)
        kind = EventKind.from_event_name(event_name)

        if kind is EventKind.PULL_REQUEST:
            await self.review_pull_request(report)
        elif kind is EventKind.ISSUE_COMMENT:
            await self.review_on_demand(payload, report)
        else:
            self.logger.warning(
                f"Skipped: this action only works on pull_request and issue_comment events, got {event_name!r}"
            )

        report.model_calls = self.light.calls + self.heavy.calls
        report.finished_at = datetime.now()
        self._move_to(report, RunState.DONE)
        return report

    # Pull request path

    async def review_pull_request(self, report: RunReport) -> None:
        pr = await self.platform.get_pull_request_info()
        files = await self.platform.get_files()

        kept, skipped = select_files(files, self.config.max_files, self.path_filter)
        for item in skipped:
            self.logger.info(f"Skipped {item.path}: {item.reason.value} {item.detail}".rstrip())
        report.skipped.extend(skipped)

        if not kept:
            self.logger.warning("Skipped: no files to review")
            return

        self.logger.info(f"Reviewing {len(kept)} of {len(files)} changed files in PR #{pr.number}")

        self._move_to(report, RunState.DISPATCHING)
        summary_request = self._build_summary_request(pr, kept)
        jobs: List[Tuple[ReviewTarget, ModelRequest]] = []
        if self.config.disable_review:
            self.logger.info("Review disabled, only summarizing")
        else:
            for target in self._build_targets(kept, pr, report):
                jobs.append((target, self.prompts.build_review_request(target, pr)))

        summary_task = asyncio.create_task(self._summarize(summary_request, report))

        self._move_to(report, RunState.COLLECTING)
        store = await self._dispatch(jobs)
        summary = await summary_task
        report.results = store.values

        self._move_to(report, RunState.RECONCILING)
        comments = [c for target, _ in jobs for c in store.get(target.key).comments]
        await self._post_comments(comments, pr.head_sha, report)

        if summary is not None:
            await self._publish_summary(summary, report)

    def _build_targets(
        self,
        files: Sequence[FileDiff],
        pr: PullRequestInfo,
        report: RunReport
    ) -> List[ReviewTarget]:
        budget = self.prompts.review_budget(pr)
        targets = []
        for file in files:
            for target in chunk_file_diff(file.path, file.patch, budget):
                if target.truncated:
                    self.logger.warning(
                        f"Skipped {target.label}: a single hunk exceeds the {budget} token budget"
                    )
                    report.skipped.append(SkippedFile(target.path, SkipReason.TRUNCATED, target.label))
                    continue
                if not self.config.review_simple_changes and is_simple_change(target):
                    self.logger.info(f"Skipped {target.label}: formatting-only change")
                    report.skipped.append(SkippedFile(target.path, SkipReason.SIMPLE_CHANGE, target.label))
                    continue
                targets.append(target)
        return targets

    def _build_summary_request(self, pr: PullRequestInfo, files: Sequence[FileDiff]) -> ModelRequest:
        diff = "\n\n".join(format_file_diff(f.path, f.patch, f.status) for f in files)
        budget = self.prompts.summary_budget(pr)
        truncated = truncate_to_tokens(diff, budget)
        if truncated != diff:
            self.logger.warning(f"Diff truncated to {budget} tokens for the summary")
            truncated += "\n\n(diff truncated)"
        return self.prompts.build_summary_request(pr, truncated)

    async def _summarize(self, request: ModelRequest, report: RunReport) -> Optional[str]:
        try:
            response = await self.light.send(request)
        except ReviewBotError as e:
            error = e
        except Exception as e:
            error = ReviewBotError.wrap(ErrorKind.UNHANDLED, e)
        else:
            self._count_usage(response)
            if response.ok:
                report.summary = response.text
                return response.text
            error = response.error

        report.summary_error = error
        self.logger.warning(f"Summarization failed, no summary will be posted: {error.describe()}")
        return None

    async def _publish_summary(self, summary: str, report: RunReport) -> None:
        body, release_notes = split_release_notes(summary)

        sections = [body]
        if report.skipped:
            lines = ["<details>", f"<summary>Files skipped ({len(report.skipped)})</summary>", ""]
            lines.extend(f"- `{s.path}`: {s.reason.value}" for s in report.skipped)
            lines.extend(["", "</details>"])
            sections.append("\n".join(lines))
        report.finished_at = datetime.now()
        report.model_calls = self.light.calls + self.heavy.calls
        metrics = calculate_metrics(report, self._input_tokens, self._output_tokens)
        sections.append(format_metrics_report(metrics))

        try:
            await self.platform.upsert_summary_comment("\n\n".join(sections))
            if release_notes and not self.config.disable_release_notes:
                await self.platform.update_release_notes(release_notes)
        except Exception as e:
            error = ReviewBotError.wrap(ErrorKind.UNHANDLED, e)
            report.summary_error = error
            self.logger.warning(f"Failed to publish summary: {error.describe()}")

    # On-demand path

    async def review_on_demand(self, payload: Dict[str, Any], report: RunReport) -> None:
        issue = payload.get("issue") or {}
        comment = payload.get("comment") or {}

        if not issue.get("pull_request"):
            self.logger.info("Skipped: comment is not on a pull request")
            return
        if is_bot_comment(comment):
            self.logger.info("Skipped: comment was made by a bot")
            return

        body = comment.get("body") or ""
        command = parse_on_demand_command(body, self.config.bot_name)
        if command is None:
            self.logger.info(f"Skipped: comment does not ask @{self.config.bot_name} for a review")
            return

        pr = await self.platform.get_pull_request_info()
        files = await self.platform.get_files()
        file = next((f for f in files if f.path == command.path), None)
        if file is None or not file.patch or not self.path_filter.check(file.path):
            self.logger.warning(f"Skipped: `{command.path}` is not a reviewable file in PR #{pr.number}")
            await self.platform.post_issue_comment(
                f"I could not find changes to `{command.path}` in this pull request."
            )
            return

        self._move_to(report, RunState.DISPATCHING)
        candidates = [
            t for t in chunk_file_diff(file.path, file.patch, self.prompts.review_budget(pr))
            if not t.truncated and (
                not command.has_range or t.overlaps(command.start_line, command.end_line)
            )
        ]
        if not candidates:
            self.logger.warning(f"Skipped: no reviewable hunk of {command.path} matches the request")
            await self.platform.post_issue_comment(
                f"No reviewable changes of `{command.path}` match the requested lines."
            )
            return

        target = candidates[0]
        request = self.prompts.build_on_demand_request(target, pr, body)

        self._move_to(report, RunState.COLLECTING)
        store = await self._dispatch([(target, request)])
        report.results = store.values
        result = store.get(target.key)

        self._move_to(report, RunState.RECONCILING)
        if not result.ok:
            return
        await self._post_comments(result.comments, pr.head_sha, report)
        posted = len(report.posted)
        if posted:
            reply = f"Reviewed `{target.label}`: posted {posted} comment(s)."
        else:
            reply = f"Reviewed `{target.label}`: LGTM!"
        await self.platform.post_issue_comment(reply)

    # Shared steps

    async def _review_target(self, target: ReviewTarget, request: ModelRequest) -> TargetResult:
        try:
            response = await self.heavy.send(request)
        except ReviewBotError as e:
            self.logger.warning(f"Skipped {target.label}: {e.describe()}")
            return TargetResult(target, error=e, attempts=1)
        except Exception as e:
            error = ReviewBotError.wrap(ErrorKind.UNHANDLED, e)
            self.logger.warning(f"Skipped {target.label}: {error.describe()}")
            return TargetResult(target, error=error)

        self._count_usage(response)
        if not response.ok:
            self.logger.warning(
                f"Skipped {target.label} after {response.attempts} attempts: {response.error.message}"
            )
            return TargetResult(target, error=response.error, attempts=response.attempts)

        comments = parse_review_response(response.text, target, self.config.review_comment_lgtm)
        self.logger.info(f"Reviewed {target.label}: {len(comments)} comment(s)")
        return TargetResult(target, comments=comments, attempts=response.attempts)

    async def _dispatch(
        self,
        jobs: Sequence[Tuple[ReviewTarget, ModelRequest]]
    ) -> ResultStore:
        """Run all review requests concurrently; results keyed by target."""
        store: ResultStore = ResultStore()

        async def run_one(target: ReviewTarget, request: ModelRequest) -> None:
            store.store(target.key, await self._review_target(target, request))

        await asyncio.gather(*(run_one(t, r) for t, r in jobs))
        return store

    async def _post_comments(
        self,
        comments: Sequence[ReviewComment],
        commit_sha: str,
        report: RunReport
    ) -> None:
        if not comments:
            return

        existing = await self.platform.list_review_comments()
        to_post, suppressed = self.reconciler.reconcile(comments, existing)
        report.suppressed += suppressed
        if suppressed:
            self.logger.info(f"Suppressed {suppressed} duplicate comment(s)")

        results = await asyncio.gather(
            *(self.platform.post_review_comment(c, commit_sha) for c in to_post),
            return_exceptions=True,
        )
        for comment, result in zip(to_post, results):
            if result is True:
                report.posted.append(comment)
                continue
            reason = ""
            if isinstance(result, Exception):
                reason = f": {ReviewBotError.wrap(ErrorKind.UNHANDLED, result).describe()}"
            self.logger.warning(
                f"Failed to post comment for {comment.path}:{comment.start_line}-{comment.end_line}{reason}"
            )

        self.logger.info(f"Posted {len(report.posted)} review comment(s)")

    def _move_to(self, report: RunReport, state: RunState) -> None:
        self.logger.debug(f"{report.state.value} -> {state.value}")
        report.move_to(state)

    def _count_usage(self, response) -> None:
        self._input_tokens += response.input_tokens
        self._output_tokens += response.output_tokens


async def run_action(
    config: RunConfig,
    event_name: str,
    payload: Dict[str, Any],
    platform_factory: Callable[[Dict[str, Any]], Any],
    backend_factory: Callable[[RunConfig], Any] = ClaudeBackend,
) -> Optional[RunReport]:
    """
    Create the light and heavy clients, then handle the event.

    Returns:
        RunReport, or None when a model client could not be created (the run
        is skipped without failing)
    """
    logger = get_logger()
    limiter = asyncio.Semaphore(config.model_concurrency_limit)

    clients = {}
    for role, options in (("summary", config.light_options), ("review", config.heavy_options)):
        try:
            clients[role] = ModelClient(config, options, limiter, backend_factory(config))
        except Exception as e:
            error = ReviewBotError.wrap(ErrorKind.BOT_INIT_FAILED, e)
            logger.warning(
                f"Skipped: failed to create {role} bot, please check your model credentials: "
                f"{error.describe()}"
            )
            return None

    kind = EventKind.from_event_name(event_name)
    if kind is EventKind.UNSUPPORTED:
        platform = None
    elif kind is EventKind.ISSUE_COMMENT and pull_request_number(payload) is None:
        # Comments on plain issues are skipped by the orchestrator before any platform call
        platform = None
    else:
        platform = platform_factory(payload)

    orchestrator = ReviewOrchestrator(config, platform, clients["summary"], clients["review"])
    return await orchestrator.run(event_name, payload)
