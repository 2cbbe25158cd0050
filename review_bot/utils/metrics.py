"""Metrics calculation utilities for review runs."""

from dataclasses import dataclass
from typing import Optional

from ..models import RunReport


@dataclass
class ReviewMetrics:
    """Counts calculated from a finished run."""

    # Targets
    total_targets: int = 0
    reviewed_targets: int = 0
    failed_targets: int = 0
    skipped_files: int = 0

    # Comments
    comments_found: int = 0
    comments_posted: int = 0
    comments_suppressed: int = 0

    # Model usage
    model_calls: int = 0
    input_tokens: int = 0
    output_tokens: int = 0

    success_rate: float = 0.0

    # Timing
    review_duration_ms: Optional[int] = None

    def __post_init__(self):
        """Calculate derived metrics."""
        if self.total_targets > 0:
            self.success_rate = self.reviewed_targets / self.total_targets


def calculate_metrics(
    report: RunReport,
    input_tokens: int = 0,
    output_tokens: int = 0
) -> ReviewMetrics:
    """
    Calculate metrics from a run report.

    Args:
        report: Report of the run so far
        input_tokens: Prompt tokens used across model calls
        output_tokens: Response tokens used across model calls

    Returns:
        ReviewMetrics object with calculated statistics
    """
    results = list(report.results.values())
    failed = [r for r in results if not r.ok]

    return ReviewMetrics(
        total_targets=len(results),
        reviewed_targets=len(results) - len(failed),
        failed_targets=len(failed),
        skipped_files=len(report.skipped),
        comments_found=sum(len(r.comments) for r in results),
        comments_posted=len(report.posted),
        comments_suppressed=report.suppressed,
        model_calls=report.model_calls,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        review_duration_ms=report.duration_ms,
    )


def format_metrics_report(metrics: ReviewMetrics) -> str:
    """
    Format metrics as a markdown block for the summary comment.

    Args:
        metrics: ReviewMetrics object

    Returns:
        Formatted report string
    """
    lines = [
        "<details>",
        "<summary>Review stats</summary>",
        "",
        f"- Targets reviewed: {metrics.reviewed_targets}/{metrics.total_targets}",
        f"- Targets failed: {metrics.failed_targets}",
        f"- Files skipped: {metrics.skipped_files}",
        f"- Comments found: {metrics.comments_found}",
        f"- Duplicate comments suppressed: {metrics.comments_suppressed}",
        f"- Model calls: {metrics.model_calls}",
    ]

    if metrics.input_tokens or metrics.output_tokens:
        lines.append(f"- Tokens: {metrics.input_tokens} in / {metrics.output_tokens} out")

    if metrics.review_duration_ms:
        lines.append(f"- Duration: {metrics.review_duration_ms / 1000:.2f}s")

    lines.extend(["", "</details>"])
    return "\n".join(lines)
