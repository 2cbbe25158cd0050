"""Ordered include/exclude glob filter for changed paths."""

from fnmatch import fnmatchcase
from typing import Iterable, List, Tuple


def _glob_match(path: str, pattern: str) -> bool:
    if fnmatchcase(path, pattern):
        return True
    # "**/x" also matches "x" at the repository root
    while pattern.startswith("**/"):
        pattern = pattern[3:]
        if fnmatchcase(path, pattern):
            return True
    return False


class PathFilter:
    """
    Decide which files get reviewed.

    Rules are globs; a leading "!" makes a rule an exclusion. A path is
    checked when it matches any inclusion rule (or there are none) and no
    exclusion rule.
    """

    def __init__(self, rules: Iterable[str] = ()):
        self.rules: List[Tuple[str, bool]] = []
        for rule in rules:
            rule = rule.strip()
            if not rule:
                continue
            if rule.startswith("!"):
                self.rules.append((rule[1:].strip(), True))
            else:
                self.rules.append((rule, False))

    def check(self, path: str) -> bool:
        if not self.rules:
            return True

        has_inclusion = False
        included = False
        excluded = False
        for pattern, exclude in self.rules:
            if exclude:
                if _glob_match(path, pattern):
                    excluded = True
            else:
                has_inclusion = True
                if _glob_match(path, pattern):
                    included = True

        return (not has_inclusion or included) and not excluded

    def __len__(self) -> int:
        return len(self.rules)
