"""Tests for diff splitting, chunking and file selection.

- Given-When-Then structure
- Real tokenizer, no mocking
"""

from review_bot.models import FileDiff, ReviewTarget, SkipReason
from review_bot.pipeline.chunker import chunk_file_diff, is_simple_change, select_files
from review_bot.tools.diff_parser import is_formatting_only, split_hunks
from review_bot.tools.path_filter import PathFilter
from review_bot.tools.tokens import estimate_tokens

from conftest import make_patch


def hunk(start: int, *lines: str) -> str:
    body = [f"+{line}" for line in lines]
    return f"@@ -{start},0 +{start},{len(body)} @@ def block_{start}():\n" + "\n".join(body)


THREE_HUNKS = "\n".join([
    hunk(10, "value = compute(alpha, beta)", "return value * 2"),
    hunk(40, "for item in items:", "    process(item, retries=3)"),
    hunk(90, "logger.info('done with batch')", "cleanup(resources)"),
])


class TestSplitHunks:
    """Tests for hunk header parsing."""

    def test_parses_ranges(self):
        hunks = split_hunks(THREE_HUNKS)

        assert [h.new_range for h in hunks] == [(10, 11), (40, 41), (90, 91)]

    def test_join_reproduces_patch(self):
        hunks = split_hunks(THREE_HUNKS)

        assert "\n".join(h.content for h in hunks) == THREE_HUNKS

    def test_preamble_stays_with_first_hunk(self):
        patch = "diff --git a/x.py b/x.py\n--- a/x.py\n+++ b/x.py\n" + make_patch("x = 1")

        hunks = split_hunks(patch)

        assert len(hunks) == 1
        assert hunks[0].content.startswith("diff --git")
        assert hunks[0].content == patch

    def test_missing_counts_default_to_one(self):
        hunks = split_hunks("@@ -3 +5 @@\n-a\n+b")

        assert hunks[0].old_range == (3, 3)
        assert hunks[0].new_range == (5, 5)

    def test_empty_patch(self):
        assert split_hunks("") == []


class TestChunkFileDiff:
    """Tests for budget-driven chunking."""

    def test_diff_within_budget_is_one_unchanged_target(self):
        """Given a diff that fits, should return one target with the diff as is."""
        # When
        targets = chunk_file_diff("src/app.py", THREE_HUNKS, max_tokens=10000)

        # Then
        assert len(targets) == 1
        assert targets[0].content == THREE_HUNKS
        assert targets[0].new_range == (10, 91)
        assert targets[0].hunk_ranges == ((10, 11), (40, 41), (90, 91))
        assert not targets[0].truncated

    def test_oversized_diff_splits_on_hunk_boundaries(self):
        """Given a budget that fits one hunk but not all, every target fits and order is kept."""
        # Given
        hunks = split_hunks(THREE_HUNKS)
        budget = max(estimate_tokens(h.content) for h in hunks)
        assert estimate_tokens(THREE_HUNKS) > budget

        # When
        targets = chunk_file_diff("src/app.py", THREE_HUNKS, max_tokens=budget)

        # Then
        assert len(targets) > 1
        assert all(estimate_tokens(t.content) <= budget for t in targets)
        assert "\n".join(t.content for t in targets) == THREE_HUNKS
        assert [t.chunk_index for t in targets] == list(range(len(targets)))
        assert all(t.chunk_count == len(targets) for t in targets)
        assert not any(t.truncated for t in targets)

    def test_hunk_larger_than_budget_is_flagged(self):
        """Given a single hunk over budget, should produce a truncated target."""
        # Given
        big = hunk(1, *[f"line_{i} = call_something({i})" for i in range(50)])
        small = hunk(200, "x = 1")
        patch = big + "\n" + small
        budget = estimate_tokens(small) + 5

        # When
        targets = chunk_file_diff("big.py", patch, max_tokens=budget)

        # Then
        assert targets[0].truncated
        assert len(targets[0].content) < len(big)
        assert big.startswith(targets[0].content)
        assert targets[-1].content == small
        assert not targets[-1].truncated

    def test_empty_diff_gives_no_targets(self):
        assert chunk_file_diff("a.py", "", max_tokens=100) == []

    def test_special_token_text_is_counted_as_plain_text(self):
        """Given a diff quoting tokenizer control strings, should chunk it like any other text."""
        # Given
        patch = hunk(1, "EOS = '<|endoftext|>'") + "\n" + hunk(50, "PAD = '<|fim_pad|>'")
        budget = max(estimate_tokens(h.content) for h in split_hunks(patch))

        # When
        targets = chunk_file_diff("tokenizer.py", patch, max_tokens=budget)

        # Then
        assert estimate_tokens("<|endoftext|>") > 1
        assert "\n".join(t.content for t in targets) == patch
        assert not any(t.truncated for t in targets)


class TestSelectFiles:
    """Tests for picking files to review."""

    def test_skips_with_reasons(self):
        # Given
        files = [
            FileDiff("src/a.py", make_patch("a = 1")),
            FileDiff("docs/readme.md", make_patch("text")),
            FileDiff("src/old.py", make_patch("gone"), status="removed"),
            FileDiff("src/logo.png", None, status="added"),
            FileDiff("src/b.py", make_patch("b = 2")),
            FileDiff("src/c.py", make_patch("c = 3")),
        ]

        # When
        kept, skipped = select_files(files, max_files=2, path_filter=PathFilter(["!**/*.md"]))

        # Then
        assert [f.path for f in kept] == ["src/a.py", "src/b.py"]
        assert [(s.path, s.reason) for s in skipped] == [
            ("docs/readme.md", SkipReason.FILTERED),
            ("src/old.py", SkipReason.REMOVED),
            ("src/logo.png", SkipReason.NO_PATCH),
            ("src/c.py", SkipReason.MAX_FILES),
        ]

    def test_zero_max_files_means_unlimited(self):
        files = [FileDiff(f"f{i}.py", make_patch("x")) for i in range(5)]

        kept, skipped = select_files(files, max_files=0, path_filter=PathFilter())

        assert len(kept) == 5
        assert skipped == []


class TestPathFilter:
    """Tests for include/exclude rules."""

    def test_no_rules_accepts_everything(self):
        assert PathFilter().check("anything/at/all.py")

    def test_inclusion_rules_restrict(self):
        path_filter = PathFilter(["src/**"])

        assert path_filter.check("src/pkg/mod.py")
        assert not path_filter.check("tests/test_mod.py")

    def test_exclusion_wins(self):
        path_filter = PathFilter(["src/**", "!src/generated/**"])

        assert path_filter.check("src/app.py")
        assert not path_filter.check("src/generated/api.py")

    def test_double_star_matches_root_files(self):
        assert not PathFilter(["!**/*.lock"]).check("poetry.lock")


class TestSimpleChanges:
    """Tests for the formatting-only heuristic."""

    def test_whitespace_only_change(self):
        content = "@@ -1,2 +1,2 @@\n-x=1\n-def f( a ):\n+x = 1\n+def f(a):"

        assert is_formatting_only(content)

    def test_real_change(self):
        content = "@@ -1 +1 @@\n-x = 1\n+x = 2"

        assert not is_formatting_only(content)

    def test_target_check(self):
        target = ReviewTarget(
            path="a.py",
            content="@@ -1 +1 @@\n-return  x\n+return x",
            old_range=(1, 1),
            new_range=(1, 1),
            hunk_ranges=((1, 1),),
        )

        assert is_simple_change(target)
