"""
Rank Tracking Service

Caller-facing entry point: runs a session, compares found keywords with
stored history, persists the results and summarizes the run.

Usage:
    service = RankTrackingService.from_settings(settings, store=PerformanceStore.from_env())
    report = service.track(request, owner_id="acct_42", save=True, compare=True)
    print(report.summary.keywords_found)
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from runner.logging_setup import get_logger

from ..config import TrackerSettings
from ..models import TrackingRequest, TrackingSession
from ..services.fingerprint import BrowserFingerprintProvider
from ..services.proxy_manager import create_proxy_manager
from ..services.ranking_persistence import compare_with_history, load_history_report, save_ranking_results
from ..services.ranking_trends import HistoryComparator, HistoryComparison, HistoryReport
from ..services.session_summary import SessionSummary, summarize_session
from .session_orchestrator import SessionOrchestrator

logger = get_logger("tracking_service")


@dataclass
class TrackingReport:
    """Session plus history comparisons and summary."""
    session: TrackingSession
    summary: SessionSummary
    comparisons: List[HistoryComparison] = field(default_factory=list)
    saved: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session": self.session.to_dict(),
            "summary": self.summary.to_dict(),
            "comparisons": [c.to_dict() for c in self.comparisons],
            "saved": self.saved,
        }


class RankTrackingService:
    """
    Tracking service built from explicit collaborators (no module-level state).
    """

    def __init__(
        self,
        orchestrator: SessionOrchestrator,
        store=None,
        comparator: Optional[HistoryComparator] = None,
        history_lookback_days: int = 30,
    ):
        """
        Initialize service.

        Args:
            orchestrator: Runs the sessions
            store: PerformanceStore (None disables save and compare)
            comparator: History comparator (default: HistoryComparator())
            history_lookback_days: Window for history comparisons
        """
        self.orchestrator = orchestrator
        self.store = store
        self.comparator = comparator or HistoryComparator()
        self.history_lookback_days = history_lookback_days

    @classmethod
    def from_settings(cls, settings: TrackerSettings, store=None) -> "RankTrackingService":
        """Wire a service with default collaborators from settings."""
        orchestrator = SessionOrchestrator(
            proxy_manager=create_proxy_manager(settings),
            fingerprint_provider=BrowserFingerprintProvider(),
            settings=settings,
        )
        return cls(
            orchestrator=orchestrator,
            store=store,
            comparator=HistoryComparator(stable_threshold=settings.trend_stable_threshold),
            history_lookback_days=settings.history_lookback_days,
        )

    def track(
        self,
        request: TrackingRequest,
        owner_id: Optional[str] = None,
        save: bool = True,
        compare: bool = True,
    ) -> TrackingReport:
        """
        Run a session and post-process its results.

        History is read before the new results are written, so a keyword is
        never compared with its own fresh record.

        Args:
            request: Tracking request
            owner_id: Account for persistence (required for save/compare)
            save: Persist results to the store
            compare: Attach history comparisons for found keywords

        Returns:
            TrackingReport
        """
        session = self.orchestrator.run(request)

        use_store = self.store is not None and owner_id is not None
        if (save or compare) and not use_store:
            logger.warning("No store or owner id configured, skipping save/compare")

        comparisons = []
        if compare and use_store:
            comparisons = [
                compare_with_history(
                    self.store, self.comparator, result.keyword, result.rank,
                    owner_id, self.history_lookback_days
                )
                for result in session.results
                if result.found
            ]

        saved = 0
        if save and use_store:
            saved = save_ranking_results(self.store, session.results, owner_id)

        return TrackingReport(
            session=session,
            summary=summarize_session(session),
            comparisons=comparisons,
            saved=saved,
        )

    def history_report(self, owner_id: str, keyword: Optional[str] = None, limit: int = 30) -> HistoryReport:
        """
        Summarize stored rankings for an owner, optionally for one keyword.

        Raises:
            RuntimeError: If the service has no store
        """
        if self.store is None:
            raise RuntimeError("History report requires a performance store")
        return load_history_report(self.store, self.comparator, owner_id, keyword=keyword, limit=limit)
