"""Review orchestration.

This module provides:
- ReviewOrchestrator: state machine running one review per event
- run_action: creates the model clients and handles an event
- Event helpers: payload loading and on-demand command parsing
"""

from .orchestrator import ReviewOrchestrator, run_action, split_release_notes
from .events import (
    load_event_payload,
    pull_request_number,
    parse_on_demand_command,
    is_bot_comment,
)

__all__ = [
    "ReviewOrchestrator",
    "run_action",
    "split_release_notes",
    "load_event_payload",
    "pull_request_number",
    "parse_on_demand_command",
    "is_bot_comment",
]
