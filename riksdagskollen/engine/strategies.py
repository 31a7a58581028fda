"""Query-construction strategies, ordered from most to least precise."""

from __future__ import annotations

import time
from dataclasses import dataclass
from functools import cmp_to_key
from threading import Lock
from typing import Callable, Iterable

QueryBuilder = Callable[[str], str]

LEARNING_RATE = 0.2


def _split_name(name: str) -> tuple[str, str]:
    parts = name.split()
    if not parts:
        return "", ""
    return parts[0], parts[-1]


def _high_precision_news(name: str) -> str:
    return (
        f'"{name}" riksdag '
        "(site:svt.se OR site:dn.se OR site:aftonbladet.se OR site:expressen.se)"
    )


def _medium_precision_politics(name: str) -> str:
    return f'"{name}" politik Sverige (site:svt.se OR site:dn.se)'


def _lastname_focused(name: str) -> str:
    _, *rest = name.split(" ")
    surname = " ".join(rest) or name
    return f'"{surname}" riksdag Sverige'


def _broad_politics(name: str) -> str:
    return f'"{name}" politik'


def _general_sweden(name: str) -> str:
    return f'"{name}" Sverige'


def _alternative_spelling(name: str) -> str:
    first, last = _split_name(name)
    if first and last and first != last:
        return f'("{first} {last}" OR "{last}, {first}") riksdag'
    return f'"{name}" riksdag'


@dataclass
class SearchStrategy:
    """Bookkeeping for one query builder."""

    id: str
    name: str
    builder: QueryBuilder
    priority: int
    success_rate: float
    average_results: float
    consecutive_failures: int = 0
    last_used: float = 0.0

    def build_query(self, subject: str) -> str:
        return self.builder(subject)


def default_strategies() -> list[SearchStrategy]:
    return [
        SearchStrategy("high_precision_news", "High Precision News Sites", _high_precision_news, 1, 0.8, 5),
        SearchStrategy("medium_precision_politics", "Medium Precision Politics", _medium_precision_politics, 2, 0.7, 8),
        SearchStrategy("lastname_focused", "Last Name Focused", _lastname_focused, 3, 0.6, 12),
        SearchStrategy("broad_politics", "Broad Politics Search", _broad_politics, 4, 0.5, 15),
        SearchStrategy("general_sweden", "General Sweden Search", _general_sweden, 5, 0.4, 20),
        SearchStrategy("alternative_spelling", "Alternative Name Combinations", _alternative_spelling, 6, 0.3, 10),
    ]


def _compare(a: SearchStrategy, b: SearchStrategy) -> float:
    diff = b.success_rate - a.success_rate
    if abs(diff) > 0.1:
        return diff
    return a.priority - b.priority


class StrategyBook:
    """Rank strategies by learned success rate, then by declared priority."""

    def __init__(
        self,
        strategies: Iterable[SearchStrategy] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._lock = Lock()
        self._clock = clock
        self._strategies = list(strategies) if strategies is not None else default_strategies()

    def ordered(self, limit: int | None = None) -> list[SearchStrategy]:
        with self._lock:
            ranked = sorted(self._strategies, key=cmp_to_key(_compare))
        return ranked[:limit] if limit else ranked

    def record(self, strategy_id: str, succeeded: bool, result_count: int) -> None:
        with self._lock:
            strategy = next((s for s in self._strategies if s.id == strategy_id), None)
            if strategy is None:
                return
            strategy.success_rate = (
                LEARNING_RATE * (1.0 if succeeded else 0.0)
                + (1 - LEARNING_RATE) * strategy.success_rate
            )
            strategy.average_results = (
                LEARNING_RATE * result_count + (1 - LEARNING_RATE) * strategy.average_results
            )
            strategy.consecutive_failures = 0 if succeeded else strategy.consecutive_failures + 1
            strategy.last_used = self._clock()

    def stats(self) -> list[SearchStrategy]:
        with self._lock:
            return list(self._strategies)


__all__ = ["SearchStrategy", "StrategyBook", "default_strategies"]
