"""
Ranking Trends Service

Compares a keyword's current rank with its most recent stored rank.

Features:
- Previous rank decoded from basis points (position / 100)
- Rank change = previous - current (positive means moved toward rank 1)
- Trend classification with a tunable stable band
- Per-keyword history report (current, previous, average, best, worst) for an owner

Usage:
    comparator = HistoryComparator(stable_threshold=2)
    comparison = comparator.compare("car wash", current_rank=4, prior_records=rows)
    print(comparison.trend)  # TrendDirection.UP
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from runner.logging_setup import get_logger

logger = get_logger("ranking_trends")


DEFAULT_STABLE_THRESHOLD = 2
BASIS_POINTS = 100


class TrendDirection(Enum):
    """Direction of ranking trend."""
    UP = "up"            # Moved toward rank 1 beyond the stable band
    STABLE = "stable"    # Within the stable band
    DOWN = "down"        # Moved away from rank 1 beyond the stable band
    NEW = "new"          # No prior data


@dataclass
class HistoryComparison:
    """Current rank compared against the most recent stored rank."""
    keyword: str
    current_rank: int
    previous_rank: int
    rank_change: int
    trend: TrendDirection

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "keyword": self.keyword,
            "current_rank": self.current_rank,
            "previous_rank": self.previous_rank,
            "rank_change": self.rank_change,
            "trend": self.trend.value,
        }

@dataclass
class KeywordHistory:
    """Stored ranking history for one keyword."""
    keyword: str
    current_rank: int
    previous_rank: int
    rank_change: int
    trend: TrendDirection
    url: str
    last_updated: str
    device: str
    country: str
    data_points: int
    average_position: int
    best_position: int
    worst_position: int

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "keyword": self.keyword,
            "current_rank": self.current_rank,
            "previous_rank": self.previous_rank,
            "rank_change": self.rank_change,
            "trend": self.trend.value,
            "url": self.url,
            "last_updated": self.last_updated,
            "device": self.device,
            "country": self.country,
            "data_points": self.data_points,
            "average_position": self.average_position,
            "best_position": self.best_position,
            "worst_position": self.worst_position,
        }


@dataclass
class HistoryReport:
    """Per-keyword history for an owner plus totals."""
    keywords: List[KeywordHistory] = field(default_factory=list)
    total_data_points: int = 0
    earliest_date: Optional[str] = None
    latest_date: Optional[str] = None

    @property
    def ranked(self) -> List[KeywordHistory]:
        return [k for k in self.keywords if k.current_rank > 0]

    def count_trend(self, trend: TrendDirection) -> int:
        pool = self.keywords if trend == TrendDirection.NEW else self.ranked
        return sum(1 for k in pool if k.trend == trend)

    @property
    def average_rank(self) -> Optional[int]:
        ranks = [k.current_rank for k in self.ranked]
        if not ranks:
            return None
        return int(sum(ranks) / len(ranks) + 0.5)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        ranked = self.ranked
        return {
            "summary": {
                "total_keywords": len(self.keywords),
                "ranked_keywords": len(ranked),
                "keywords_in_top_10": sum(1 for k in ranked if k.current_rank <= 10),
                "keywords_in_top_3": sum(1 for k in ranked if k.current_rank <= 3),
                "average_rank": self.average_rank,
                "improving_keywords": self.count_trend(TrendDirection.UP),
                "declining_keywords": self.count_trend(TrendDirection.DOWN),
                "stable_keywords": self.count_trend(TrendDirection.STABLE),
                "new_keywords": self.count_trend(TrendDirection.NEW),
            },
            "keywords": [k.to_dict() for k in self.keywords],
            "metadata": {
                "total_data_points": self.total_data_points,
                "date_range": {"earliest": self.earliest_date, "latest": self.latest_date},
            },
        }


class HistoryComparator:
    """
    Classifies rank movement against stored history.

    prior_records are any objects with `date` (YYYY-MM-DD) and `position`
    (basis points) attributes, e.g. PerformanceTracking rows.
    """

    def __init__(self, stable_threshold: int = DEFAULT_STABLE_THRESHOLD):
        self.stable_threshold = stable_threshold

    def classify(self, rank_change: int) -> TrendDirection:
        if abs(rank_change) <= self.stable_threshold:
            return TrendDirection.STABLE
        if rank_change > 0:
            return TrendDirection.UP
        return TrendDirection.DOWN

    def compare(self, keyword: str, current_rank: int, prior_records: Iterable[Any]) -> HistoryComparison:
        """
        Compare current rank with the most recently dated prior record.

        Args:
            keyword: Keyword being compared
            current_rank: Rank from the current session
            prior_records: Stored records for the keyword (any order)

        Returns:
            HistoryComparison (trend NEW, change 0 and previous = current when there is no prior data)
        """
        records = sorted(prior_records, key=lambda r: r.date, reverse=True)

        if not records:
            return HistoryComparison(
                keyword=keyword,
                current_rank=current_rank,
                previous_rank=current_rank,
                rank_change=0,
                trend=TrendDirection.NEW,
            )

        previous_rank = records[0].position // BASIS_POINTS
        rank_change = previous_rank - current_rank
        trend = self.classify(rank_change)

        logger.debug(f"'{keyword}': {previous_rank} -> {current_rank} ({rank_change:+d}, {trend.value})")

        return HistoryComparison(
            keyword=keyword,
            current_rank=current_rank,
            previous_rank=previous_rank,
            rank_change=rank_change,
            trend=trend,
        )

    def keyword_history(self, keyword: str, records: List[Any]) -> KeywordHistory:
        """
        Condense one keyword's stored records (at least one) into a KeywordHistory.

        A single data point is NEW; otherwise the two most recent records
        are compared with the stable band.
        """
        records = sorted(records, key=lambda r: r.date, reverse=True)
        ranks = [r.position // BASIS_POINTS for r in records]
        latest = records[0]

        current_rank = ranks[0]
        previous_rank = ranks[1] if len(ranks) > 1 else current_rank
        rank_change = previous_rank - current_rank
        trend = TrendDirection.NEW if len(ranks) == 1 else self.classify(rank_change)

        return KeywordHistory(
            keyword=keyword,
            current_rank=current_rank,
            previous_rank=previous_rank,
            rank_change=rank_change,
            trend=trend,
            url=latest.url or "",
            last_updated=latest.date,
            device=latest.device,
            country=latest.country,
            data_points=len(records),
            average_position=int(sum(r.position for r in records) / len(records) / BASIS_POINTS + 0.5),
            best_position=min(ranks),
            worst_position=max(ranks),
        )

    def build_report(self, records: Iterable[Any]) -> HistoryReport:
        """
        Group stored records by keyword and summarize each group.

        Keywords are ordered by current rank with unranked (rank 0) keywords last.

        Args:
            records: Stored records for one owner (any order)

        Returns:
            HistoryReport
        """
        records = list(records)
        groups: Dict[str, List[Any]] = {}
        for record in records:
            groups.setdefault(record.keyword, []).append(record)

        keywords = [self.keyword_history(keyword, group) for keyword, group in groups.items()]
        keywords.sort(key=lambda k: (k.current_rank == 0, k.current_rank))

        dates = [r.date for r in records]
        report = HistoryReport(
            keywords=keywords,
            total_data_points=len(records),
            earliest_date=min(dates) if dates else None,
            latest_date=max(dates) if dates else None,
        )

        logger.info(
            f"History report: {len(keywords)} keywords, {len(report.ranked)} ranked, "
            f"{len(records)} data points"
        )
        return report
