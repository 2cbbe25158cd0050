"""Initialize review-bot in a repository."""

from pathlib import Path
from typing import Optional


WORKFLOW_TEMPLATE = '''name: AI Code Review

on:
  pull_request:
    types: [opened, synchronize, reopened]
  issue_comment:
    types: [created]

permissions:
  contents: read
  pull-requests: write
  issues: write

concurrency:
  group: ${{ github.repository }}-${{ github.event.number || github.head_ref || github.sha }}-${{ github.workflow }}-${{ github.event_name == 'issue_comment' && 'comment' || 'pr' }}
  cancel-in-progress: ${{ github.event_name != 'issue_comment' }}

jobs:
  review:
    name: AI Code Review
    runs-on: ubuntu-latest

    steps:
      - uses: actions/checkout@v4

      - uses: astral-sh/setup-uv@v4

      - name: Run review-bot
        env:
          GITHUB_TOKEN: ${{ secrets.GITHUB_TOKEN }}
          ANTHROPIC_API_KEY: ${{ secrets.ANTHROPIC_API_KEY }}
          INPUT_DEBUG: "false"
          INPUT_REVIEW_COMMENT_LGTM: "false"
          INPUT_MAX_FILES: "50"
          INPUT_PATH_FILTERS: |
            !**/*.lock
            !dist/**
        run: uvx --from review-bot review-bot review
'''


def init_repository(target_dir: Optional[Path] = None) -> bool:
    """
    Initialize review-bot in a repository.

    Creates:
      - .github/workflows/ai-review.yml

    Returns:
        False when the target is not a git repository
    """
    target = target_dir or Path.cwd()

    if not (target / ".git").exists():
        print(f"Error: {target} is not a git repository")
        return False

    workflow_dir = target / ".github" / "workflows"
    workflow_dir.mkdir(parents=True, exist_ok=True)

    workflow_file = workflow_dir / "ai-review.yml"
    if workflow_file.exists():
        print(f"Already exists: {workflow_file}")
        print("\nAlready configured. No changes needed.")
        return True

    workflow_file.write_text(WORKFLOW_TEMPLATE)
    print(f"Created: {workflow_file}")
    print("\nNext steps:")
    print("  1. Add the ANTHROPIC_API_KEY secret (Settings → Secrets and variables → Actions)")
    print("  2. git add . && git commit -m 'Add AI code review'")
    print("  3. git push")
    return True


if __name__ == "__main__":
    init_repository()
