"""
Bridges finished tracking sessions to the performance store.

save_ranking_results() writes one basis-point record per keyword result;
compare_with_history() loads prior records and runs the HistoryComparator;
load_history_report() summarizes an owner's stored history per keyword.
"""

from datetime import date
from typing import List, Optional

from runner.logging_setup import get_logger

from ..models import KeywordRankingResult
from .ranking_trends import BASIS_POINTS, HistoryComparator, HistoryComparison, HistoryReport, TrendDirection

logger = get_logger("ranking_persistence")


DEFAULT_COUNTRY = "US"


def build_performance_record(
    result: KeywordRankingResult,
    owner_id: str,
    saved_topic_id: Optional[str] = None,
    today: Optional[date] = None,
) -> dict:
    """Convert a keyword result to a performance_tracking row."""
    return {
        "owner_id": owner_id,
        "saved_topic_id": saved_topic_id,
        "keyword": result.keyword,
        "position": result.rank * BASIS_POINTS,
        "url": result.url,
        "clicks": 0,
        "impressions": 0,
        "ctr": 0.0,
        "device": result.device,
        "country": result.location or DEFAULT_COUNTRY,
        "date": (today or date.today()).isoformat(),
    }


def save_ranking_results(
    store,
    results: List[KeywordRankingResult],
    owner_id: str,
    saved_topic_id: Optional[str] = None,
    today: Optional[date] = None,
) -> int:
    """
    Persist keyword results.

    A failure on one result is logged and does not stop the rest.

    Returns:
        Number of results saved
    """
    saved = 0
    for result in results:
        try:
            store.create_performance_tracking(
                build_performance_record(result, owner_id, saved_topic_id, today)
            )
            saved += 1
        except Exception as e:
            logger.error(f"Failed to save ranking for '{result.keyword}': {e}")

    logger.info(f"Saved {saved}/{len(results)} ranking results for owner {owner_id}")
    return saved


def compare_with_history(
    store,
    comparator: HistoryComparator,
    keyword: str,
    current_rank: int,
    owner_id: str,
    lookback_days: int = 30,
) -> HistoryComparison:
    """
    Compare a rank with stored history.

    Store errors degrade to a NEW comparison instead of raising.
    """
    try:
        prior = store.get_performance_tracking_by_keyword(keyword, owner_id, lookback_days)
    except Exception as e:
        logger.error(f"Failed to load ranking history for '{keyword}': {e}")
        return HistoryComparison(
            keyword=keyword,
            current_rank=current_rank,
            previous_rank=current_rank,
            rank_change=0,
            trend=TrendDirection.NEW,
        )

    return comparator.compare(keyword, current_rank, prior)


def load_history_report(
    store,
    comparator: HistoryComparator,
    owner_id: str,
    keyword: Optional[str] = None,
    limit: int = 30,
) -> HistoryReport:
    """
    Build the stored-history report for an owner.

    Args:
        store: PerformanceStore
        comparator: Supplies the stable band for trends
        owner_id: Account
        keyword: Restrict to one keyword (default: all of the owner's keywords)
        limit: Maximum records loaded

    Returns:
        HistoryReport
    """
    if keyword:
        records = store.get_performance_tracking_by_keyword(keyword, owner_id, lookback_days=None, limit=limit)
    else:
        records = store.get_performance_tracking_by_owner(owner_id, limit=limit)

    return comparator.build_report(records)
