#!/usr/bin/env python3
"""
Unit tests for rank persistence.

Tests:
- Basis-point records written per keyword result
- History lookups (ordering, owner isolation, lookback window)
- Save/compare degradation on store errors
"""

from datetime import date
from unittest.mock import Mock

import pytest

from db.performance_store import PerformanceStore
from serp_tracker.models import KeywordRankingResult, SerpFeatures
from serp_tracker.services.ranking_persistence import (
    build_performance_record,
    compare_with_history,
    load_history_report,
    save_ranking_results,
)
from serp_tracker.services.ranking_trends import HistoryComparator, TrendDirection


TODAY = date(2026, 10, 16)


@pytest.fixture
def store():
    """In-memory SQLite store."""
    store = PerformanceStore("sqlite:///:memory:")
    store.create_tables()
    yield store
    store.engine.dispose()


def ranking(keyword="car wash", rank=4, location=""):
    return KeywordRankingResult(
        keyword=keyword,
        rank=rank,
        url="https://acme.com/" if rank else "",
        title="Acme",
        description="",
        search_engine="google",
        location=location,
        device="mobile",
        timestamp="2026-10-16T08:00:00+00:00",
        serp_features=SerpFeatures(),
    )


def stored(store, keyword, rank, day, owner_id="acct_1"):
    store.create_performance_tracking({
        "owner_id": owner_id,
        "keyword": keyword,
        "position": rank * 100,
        "url": "https://acme.com/",
        "device": "desktop",
        "country": "US",
        "date": day,
    })


def test_build_performance_record():
    record = build_performance_record(ranking(rank=7), "acct_1", today=TODAY)

    assert record["position"] == 700
    assert record["clicks"] == 0
    assert record["impressions"] == 0
    assert record["ctr"] == 0.0
    assert record["country"] == "US"
    assert record["device"] == "mobile"
    assert record["date"] == "2026-10-16"


def test_record_keeps_location():
    assert build_performance_record(ranking(location="Canada"), "acct_1")["country"] == "Canada"


def test_save_and_read_back(store):
    saved = save_ranking_results(store, [ranking("car wash", 4), ranking("detailing", 0)], "acct_1", today=TODAY)

    rows = store.get_performance_tracking_by_keyword("car wash", "acct_1", lookback_days=30, today=TODAY)

    assert saved == 2
    assert len(rows) == 1
    assert rows[0].position == 400
    assert rows[0].rank == 4
    assert store.get_performance_tracking_by_keyword("detailing", "acct_1", today=TODAY)[0].position == 0


def test_history_is_most_recent_first(store):
    stored(store, "car wash", 12, "2026-10-01")
    stored(store, "car wash", 5, "2026-10-15")
    stored(store, "car wash", 9, "2026-10-08")

    rows = store.get_performance_tracking_by_keyword("car wash", "acct_1", lookback_days=30, today=TODAY)

    assert [r.date for r in rows] == ["2026-10-15", "2026-10-08", "2026-10-01"]


def test_history_respects_owner_and_lookback(store):
    stored(store, "car wash", 5, "2026-10-15", owner_id="acct_2")
    stored(store, "car wash", 8, "2026-08-01")
    stored(store, "car wash", 6, "2026-10-10")

    rows = store.get_performance_tracking_by_keyword("car wash", "acct_1", lookback_days=30, today=TODAY)
    everything = store.get_performance_tracking_by_keyword("car wash", "acct_1", lookback_days=None)

    assert [r.rank for r in rows] == [6]
    assert len(everything) == 2


def test_save_continues_after_failure():
    store = Mock()
    store.create_performance_tracking.side_effect = [RuntimeError("connection reset"), None, None]

    saved = save_ranking_results(store, [ranking("a"), ranking("b"), ranking("c")], "acct_1")

    assert saved == 2
    assert store.create_performance_tracking.call_count == 3


def test_compare_with_history(store):
    stored(store, "car wash", 10, "2026-10-15")

    comparison = compare_with_history(store, HistoryComparator(), "car wash", 4, "acct_1", lookback_days=None)

    assert comparison.previous_rank == 10
    assert comparison.rank_change == 6
    assert comparison.trend == TrendDirection.UP


def test_compare_degrades_to_new_on_store_error():
    store = Mock()
    store.get_performance_tracking_by_keyword.side_effect = RuntimeError("database unavailable")

    comparison = compare_with_history(store, HistoryComparator(), "car wash", 4, "acct_1")

    assert comparison.trend == TrendDirection.NEW
    assert comparison.rank_change == 0
    assert comparison.previous_rank == 4


def test_owner_history_is_most_recent_first_and_limited(store):
    stored(store, "car wash", 12, "2026-10-01")
    stored(store, "detailing", 3, "2026-10-15")
    stored(store, "car wash", 5, "2026-10-14")
    stored(store, "wax", 1, "2026-10-15", owner_id="acct_2")

    rows = store.get_performance_tracking_by_owner("acct_1")
    limited = store.get_performance_tracking_by_owner("acct_1", limit=2)

    assert [(r.keyword, r.date) for r in rows] == [
        ("detailing", "2026-10-15"), ("car wash", "2026-10-14"), ("car wash", "2026-10-01"),
    ]
    assert len(limited) == 2


def test_load_history_report(store):
    stored(store, "car wash", 12, "2026-10-01")
    stored(store, "car wash", 5, "2026-10-14")
    stored(store, "detailing", 0, "2026-10-15")

    report = load_history_report(store, HistoryComparator(), "acct_1")
    single = load_history_report(store, HistoryComparator(), "acct_1", keyword="car wash", limit=1)

    assert [k.keyword for k in report.keywords] == ["car wash", "detailing"]
    assert report.keywords[0].trend == TrendDirection.UP
    assert report.keywords[0].rank_change == 7
    assert report.keywords[1].current_rank == 0
    assert [k.keyword for k in single.keywords] == ["car wash"]
    assert single.keywords[0].data_points == 1
    assert single.keywords[0].trend == TrendDirection.NEW


def test_from_env_requires_database_url(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)

    with pytest.raises(RuntimeError):
        PerformanceStore.from_env()
