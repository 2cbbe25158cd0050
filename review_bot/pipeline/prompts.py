"""Prompt templates and request building."""

from string import Template
from typing import Dict, Mapping, Optional

from ..config import ModelOptions, RunConfig
from ..errors import ErrorKind, ReviewBotError
from ..models import ModelRequest, PullRequestInfo, ReviewTarget
from ..tools.tokens import estimate_tokens


SUMMARIZE_TEMPLATE = """
Summarize the changes of this pull request.

## Pull Request Title
`$title`

## Description
```
$description
```

## Diff
$diff

## Instructions
Provide your final response in `markdown` with the following content:
- **Walkthrough**: a high-level summary of the overall change (not specific
  files) in at most 80 words.
- **Changes**: a table of files and a one-line summary of their changes.
  Group files with similar changes into a single row.
$release_notes_instructions

Avoid additional commentary. Respond in `$language`.
"""

RELEASE_NOTES_INSTRUCTIONS = """- **Release Notes**: finish with a section headed exactly `### Release Notes`
  listing the user-facing changes as bullets classified as "New Feature",
  "Bug fix", "Documentation", "Refactor", "Style", "Test", "Chore" or
  "Revert", each under 50 words. Focus on the purpose and user impact."""

REVIEW_TEMPLATE = """
## Pull Request Title
`$title`

## Description
```
$description
```

## Changes in `$filename` (new lines $start_line-$end_line)
```diff
$patches
```

## Instructions
Review the hunks above. Line numbers refer to the new version of the file.
Your response must be a list of sections in exactly this format:

<start_line>-<end_line>:
<review comment>
---

- Only use line ranges inside the hunks shown above; a single line is
  written as `<line>-<line>`.
- Put suggested code in fenced `suggestion` or `diff` blocks.
- If a range has no significant issue, its comment must be exactly `LGTM!`.
- Do not praise or summarize; comment only on real problems.

Respond in `$language`.
"""

ON_DEMAND_TEMPLATE = """
## Pull Request Title
`$title`

## Request
A reviewer asked:
```
$comment
```

## Changes in `$filename` (new lines $start_line-$end_line)
```diff
$patches
```

## Instructions
Answer the request by reviewing the hunks above. Your response must be a
list of sections in exactly this format:

<start_line>-<end_line>:
<review comment>
---

Only use line ranges inside the hunks shown above. If a range has no
significant issue, its comment must be exactly `LGTM!`.

Respond in `$language`.
"""


def render(template: str, values: Mapping[str, Optional[object]]) -> str:
    """
    Substitute $placeholders.

    Raises:
        ReviewBotError: TEMPLATE_MISSING_FIELD when a placeholder has no value
            (missing or None) or the template is malformed
    """
    present: Dict[str, str] = {k: str(v) for k, v in values.items() if v is not None}
    try:
        return Template(template).substitute(present)
    except KeyError as e:
        raise ReviewBotError(
            ErrorKind.TEMPLATE_MISSING_FIELD,
            f"Template placeholder ${e.args[0]} has no value"
        ) from None
    except ValueError as e:
        raise ReviewBotError(
            ErrorKind.TEMPLATE_MISSING_FIELD,
            f"Malformed template: {e}"
        ) from None


class PromptBuilder:
    """Renders prompts and turns them into model requests."""

    def __init__(self, config: RunConfig):
        self.config = config
        self.summarize_template = config.summarize_template or SUMMARIZE_TEMPLATE
        self.review_template = config.review_template or REVIEW_TEMPLATE
        self.on_demand_template = ON_DEMAND_TEMPLATE
        # Custom instructions must still ask for a `### Release Notes` section
        self.release_notes_template = config.release_notes_template or RELEASE_NOTES_INSTRUCTIONS

    def _request(self, prompt: str, options: ModelOptions) -> ModelRequest:
        return ModelRequest(
            prompt=prompt,
            model=options.model,
            max_tokens=options.token_limits.response_tokens,
            timeout_ms=self.config.model_timeout_ms,
            system_message=self.config.system_message,
            temperature=self.config.model_temperature,
        )

    def _pr_values(self, pr: PullRequestInfo) -> Dict[str, Optional[object]]:
        return {
            "title": pr.title,
            "description": pr.description,
            "language": self.config.language,
        }

    def _target_values(self, target: ReviewTarget) -> Dict[str, Optional[object]]:
        return {
            "filename": target.path,
            "patches": target.content,
            "start_line": target.new_range[0],
            "end_line": target.new_range[1],
        }

    def build_summary_request(self, pr: PullRequestInfo, diff: str) -> ModelRequest:
        """Light-model request summarizing the whole diff."""
        values = self._pr_values(pr)
        values["diff"] = diff
        if self.config.disable_release_notes:
            values["release_notes_instructions"] = ""
        else:
            values["release_notes_instructions"] = render(self.release_notes_template, values)
        return self._request(render(self.summarize_template, values), self.config.light_options)

    def build_review_request(self, target: ReviewTarget, pr: PullRequestInfo) -> ModelRequest:
        """Heavy-model request reviewing one target."""
        values = self._pr_values(pr)
        values.update(self._target_values(target))
        return self._request(render(self.review_template, values), self.config.heavy_options)

    def build_on_demand_request(
        self,
        target: ReviewTarget,
        pr: PullRequestInfo,
        comment: str
    ) -> ModelRequest:
        """Heavy-model request answering a reviewer's comment."""
        values = self._pr_values(pr)
        values.update(self._target_values(target))
        values["comment"] = comment
        return self._request(render(self.on_demand_template, values), self.config.heavy_options)

    def review_budget(self, pr: PullRequestInfo) -> int:
        """Tokens left for diff content in a review request."""
        empty = ReviewTarget(path="", content="", old_range=(0, 0), new_range=(0, 0))
        overhead = estimate_tokens(self.build_review_request(empty, pr).prompt)
        overhead += estimate_tokens(self.config.system_message)
        return max(self.config.heavy_options.token_limits.request_tokens - overhead, 0)

    def summary_budget(self, pr: PullRequestInfo) -> int:
        """Tokens left for the diff in the summary request."""
        overhead = estimate_tokens(self.build_summary_request(pr, "").prompt)
        overhead += estimate_tokens(self.config.system_message)
        return max(self.config.light_options.token_limits.request_tokens - overhead, 0)
