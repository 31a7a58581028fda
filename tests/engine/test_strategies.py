from __future__ import annotations

import pytest

from riksdagskollen.engine.strategies import StrategyBook, default_strategies


def test_default_order_follows_priority() -> None:
    book = StrategyBook()
    ids = [strategy.id for strategy in book.ordered()]
    assert ids == [
        "high_precision_news",
        "medium_precision_politics",
        "lastname_focused",
        "broad_politics",
        "general_sweden",
        "alternative_spelling",
    ]
    assert len(book.ordered(4)) == 4


def test_query_templates() -> None:
    strategies = {strategy.id: strategy for strategy in default_strategies()}
    assert strategies["broad_politics"].build_query("Anna Svensson") == '"Anna Svensson" politik'
    assert strategies["lastname_focused"].build_query("Anna Svensson") == '"Svensson" riksdag Sverige'
    assert (
        strategies["alternative_spelling"].build_query("Anna Svensson")
        == '("Anna Svensson" OR "Svensson, Anna") riksdag'
    )
    assert "site:svt.se" in strategies["high_precision_news"].build_query("Anna Svensson")


def test_record_updates_moving_average() -> None:
    book = StrategyBook(clock=lambda: 42.0)
    book.record("broad_politics", True, 10)
    strategy = next(s for s in book.stats() if s.id == "broad_politics")
    assert strategy.success_rate == pytest.approx(0.2 * 1 + 0.8 * 0.5)
    assert strategy.average_results == pytest.approx(0.2 * 10 + 0.8 * 15)
    assert strategy.last_used == 42.0

    book.record("broad_politics", False, 0)
    assert strategy.consecutive_failures == 1
    assert strategy.success_rate == pytest.approx(0.8 * 0.6)


def test_large_success_gap_overrides_priority() -> None:
    book = StrategyBook()
    for _ in range(5):
        book.record("high_precision_news", False, 0)
    ordered = [strategy.id for strategy in book.ordered()]
    assert ordered.index("high_precision_news") > ordered.index("medium_precision_politics")


def test_unknown_strategy_is_ignored() -> None:
    book = StrategyBook()
    book.record("nope", True, 1)
    assert [s.success_rate for s in book.stats()] == [s.success_rate for s in default_strategies()]
