#!/usr/bin/env python3
"""
review-bot - Main Entry Point

Reviews pull requests with a language model from inside GitHub Actions:
a light model summarizes the change, a heavy model reviews each file.

Usage:
    review-bot review            # handle the current GitHub Actions event
    review-bot init [path]       # add the workflow to a repository
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict

from .config import RunConfig
from .errors import ErrorKind, ReviewBotError
from .orchestrator import load_event_payload, pull_request_number, run_action
from .tools import GitHubTool
from .utils import setup_logging, get_logger


def build_platform(config: RunConfig, repo: str, payload: Dict[str, Any]) -> GitHubTool:
    """Create the GitHub collaborator for the PR the event refers to."""
    number = pull_request_number(payload)
    if not number:
        raise ReviewBotError(ErrorKind.CONFIG_INVALID, "Event payload does not reference a pull request")
    if not repo:
        raise ReviewBotError(
            ErrorKind.CONFIG_INVALID,
            "Repository required. Use --repo or set GITHUB_REPOSITORY env var"
        )
    return GitHubTool(
        repo=repo,
        pr_number=number,
        concurrency_limit=config.github_concurrency_limit,
    )


def cmd_init(args):
    """Handle 'init' subcommand."""
    from .cli import init_repository

    target = Path(args.path) if args.path else Path.cwd()
    success = init_repository(target)
    sys.exit(0 if success else 1)


def cmd_review(args):
    """Handle 'review' subcommand."""
    setup_logging(level=logging.DEBUG if args.debug else logging.INFO)
    logger = get_logger()

    try:
        config = RunConfig.from_env()
    except ReviewBotError as e:
        logger.error(f"Failed to run: {e.describe()}")
        sys.exit(1)

    if config.debug:
        logger.setLevel(logging.DEBUG)
    config.log_summary(logger)

    event_name = args.event_name or os.environ.get("GITHUB_EVENT_NAME", "")
    event_path = args.event_path or os.environ.get("GITHUB_EVENT_PATH")
    repo = args.repo or os.environ.get("GITHUB_REPOSITORY", "")
    logger.info(f"Event received: {event_name}")

    try:
        payload = load_event_payload(event_path)
        report = asyncio.run(run_action(
            config,
            event_name,
            payload,
            platform_factory=lambda p: build_platform(config, repo, p),
        ))
    except ReviewBotError as e:
        logger.error(f"Failed to run: {e.describe()}")
        sys.exit(1)
    except Exception as e:
        error = ReviewBotError.wrap(ErrorKind.UNHANDLED, e)
        logger.exception(f"Failed to run: {error.message}")
        sys.exit(1)

    if report is not None:
        logger.info(
            f"Run finished: {len(report.results)} target(s) reviewed, "
            f"{len(report.failed_targets)} failed, {len(report.posted)} comment(s) posted, "
            f"{len(report.skipped)} skipped"
        )
    sys.exit(0)


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="LLM code review bot for GitHub pull requests"
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # init command
    init_parser = subparsers.add_parser("init", help="Add the review workflow to a repository")
    init_parser.add_argument(
        "path",
        nargs="?",
        help="Target repository path (default: current directory)"
    )

    # review command
    review_parser = subparsers.add_parser("review", help="Review the current GitHub event")
    review_parser.add_argument(
        "--event-name",
        type=str,
        help="Event name (default: GITHUB_EVENT_NAME)"
    )
    review_parser.add_argument(
        "--event-path",
        type=str,
        help="Path to the event payload JSON (default: GITHUB_EVENT_PATH)"
    )
    review_parser.add_argument(
        "--repo",
        type=str,
        help="Repository in format owner/repo (default: GITHUB_REPOSITORY)"
    )
    review_parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    args = parser.parse_args()

    # Route to subcommand
    if args.command == "init":
        cmd_init(args)
    elif args.command == "review":
        cmd_review(args)
    else:
        parser.print_help()
        sys.exit(0)


if __name__ == "__main__":
    main()
