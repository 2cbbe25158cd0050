"""Completion collection for concurrently reviewed targets."""

from typing import Dict, Generic, Hashable, List, TypeVar

K = TypeVar('K', bound=Hashable)
T = TypeVar('T')


class ResultStore(Generic[K, T]):
    """
    Collects task results keyed by their originating target.

    Append-only: each key is written once, in whatever order tasks finish.
    """

    def __init__(self):
        self._values: Dict[K, T] = {}
        self._order: List[K] = []

    def store(self, key: K, value: T) -> None:
        """Record the result for a key. Storing a key twice is a bug."""
        if key in self._values:
            raise KeyError(f"Result already stored for {key!r}")
        self._values[key] = value
        self._order.append(key)

    def get(self, key: K) -> T:
        return self._values[key]

    @property
    def values(self) -> Dict[K, T]:
        """Get copy of stored results."""
        return dict(self._values)

    @property
    def completion_order(self) -> List[K]:
        return list(self._order)

    def __contains__(self, key: K) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)
