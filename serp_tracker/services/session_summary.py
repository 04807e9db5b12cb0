"""
Session summary statistics for dashboards and the CLI.
"""

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from ..models import TrackingSession


@dataclass
class SessionSummary:
    """Aggregate figures for one finished session."""
    total_keywords: int
    successful_queries: int
    failed_queries: int
    keywords_found: int
    top_10: int
    top_3: int
    average_rank: Optional[int]
    featured_snippets_detected: bool
    local_pack_detected: bool
    shopping_results_detected: bool
    elapsed_ms: Optional[int]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def summarize_session(session: TrackingSession) -> SessionSummary:
    """
    Summarize a session.

    average_rank covers found keywords only and is None when none was found.
    """
    found = [r for r in session.results if r.found]
    ranks = [r.rank for r in found]

    elapsed_ms = None
    if session.end_time:
        elapsed = datetime.fromisoformat(session.end_time) - datetime.fromisoformat(session.start_time)
        elapsed_ms = int(elapsed.total_seconds() * 1000)

    return SessionSummary(
        total_keywords=session.total_keywords,
        successful_queries=session.successful_queries,
        failed_queries=session.failed_queries,
        keywords_found=len(found),
        top_10=sum(1 for rank in ranks if rank <= 10),
        top_3=sum(1 for rank in ranks if rank <= 3),
        average_rank=int(sum(ranks) / len(ranks) + 0.5) if ranks else None,
        featured_snippets_detected=any(r.serp_features.featured_snippet for r in session.results),
        local_pack_detected=any(r.serp_features.local_pack for r in session.results),
        shopping_results_detected=any(r.serp_features.shopping_results for r in session.results),
        elapsed_ms=elapsed_ms,
    )
