"""GitHub event payload helpers."""

import json
import re
from pathlib import Path
from typing import Any, Dict, Optional

from ..models import OnDemandCommand


def load_event_payload(path: Optional[str]) -> Dict[str, Any]:
    """Read the webhook payload GitHub Actions writes to GITHUB_EVENT_PATH."""
    if not path:
        return {}
    event_file = Path(path)
    if not event_file.exists():
        return {}
    with open(event_file, "r", encoding="utf-8") as f:
        return json.load(f)


def pull_request_number(payload: Dict[str, Any]) -> Optional[int]:
    """PR number from a pull_request or issue_comment payload."""
    if "pull_request" in payload:
        return payload["pull_request"].get("number")
    issue = payload.get("issue") or {}
    if issue.get("pull_request"):
        return issue.get("number")
    return None


def is_bot_comment(comment: Dict[str, Any]) -> bool:
    user = comment.get("user") or {}
    return user.get("type") == "Bot" or str(user.get("login", "")).endswith("[bot]")


def parse_on_demand_command(body: str, bot_name: str) -> Optional[OnDemandCommand]:
    """
    Parse `@<bot_name> review <path>[:<start>[-<end>]]` from a comment.

    Returns:
        OnDemandCommand, or None when the comment is not addressed to the bot
    """
    pattern = re.compile(
        rf"@{re.escape(bot_name)}\s+review\s+`?([^\s:`]+)(?::(\d+)(?:-(\d+))?)?`?",
        re.IGNORECASE,
    )
    match = pattern.search(body or "")
    if not match:
        return None

    path = match.group(1)
    if match.group(2) is None:
        return OnDemandCommand(path=path)

    start = int(match.group(2))
    end = int(match.group(3)) if match.group(3) else start
    return OnDemandCommand(path=path, start_line=min(start, end), end_line=max(start, end))
