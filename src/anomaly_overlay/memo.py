"""Dependency-keyed memoization for derived view values."""

from __future__ import annotations

from typing import Any, Callable, Dict, Tuple, TypeVar

T = TypeVar("T")


def _same(a: Any, b: Any) -> bool:
    if a is b:
        return True
    try:
        return bool(a == b)
    except Exception:  # pragma: no cover - exotic __eq__
        return False


class Memo:
    """Caches one value per name, recomputed only when a dependency changes.

    Dependencies are compared by identity first and equality second, so
    replacing a tuple of anomalies with a new tuple invalidates the entry while
    re-reading the same tuple does not.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, Tuple[Tuple[Any, ...], Any]] = {}
        self.misses: Dict[str, int] = {}

    def get(self, name: str, deps: Tuple[Any, ...], compute: Callable[[], T]) -> T:
        cached = self._entries.get(name)
        if cached is not None:
            cached_deps, value = cached
            if len(cached_deps) == len(deps) and all(_same(a, b) for a, b in zip(cached_deps, deps)):
                return value
        value = compute()
        self._entries[name] = (deps, value)
        self.misses[name] = self.misses.get(name, 0) + 1
        return value

    def clear(self) -> None:
        self._entries.clear()
