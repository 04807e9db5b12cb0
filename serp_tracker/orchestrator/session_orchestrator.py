"""
Session Orchestrator

Runs one tracking session: validates the request, owns the browser for the
session's lifetime, and processes keywords strictly in order.

Features:
- Per-keyword throttling through the ProxyManager
- Per-keyword failure isolation (errors are recorded, never abort the session)
- Proxy failover: failed proxy reported, replacement swapped in with the
  same fingerprint before the next keyword
- Randomized 3-8s pacing between keywords, fixed penalty after a failure
- Per-session cancellation at keyword boundaries
- Guaranteed browser cleanup on every exit path
"""

import random
import string
import threading
import time
from typing import Callable, Dict, List, Optional

from runner.logging_setup import get_logger

from ..config import TrackerSettings
from ..drivers.browser_session import BrowserSession
from ..errors import ExtractionError, InitializationError
from ..models import (
    KeywordRankingResult,
    ProxyHandle,
    SearchEngine,
    TrackingRequest,
    TrackingSession,
    utc_now_iso,
)
from ..serp.engines import SearchEngineAdapter, get_adapter
from ..serp.matcher import match
from ..services.fingerprint import BrowserFingerprintProvider
from ..services.proxy_manager import ProxyManager

logger = get_logger("session_orchestrator")


CANCELLED_ERROR = 'Keyword "{keyword}" not tracked: session cancelled'


class SessionOrchestrator:
    """
    Drives tracking sessions.

    One orchestrator may run several sessions one after another; each run()
    owns its own browser. Collaborators are injected so tests can replace
    the browser, the random source and the sleep function.
    """

    def __init__(
        self,
        proxy_manager: ProxyManager,
        fingerprint_provider: BrowserFingerprintProvider,
        browser_factory: Callable[..., BrowserSession] = BrowserSession,
        adapters: Optional[Dict[SearchEngine, SearchEngineAdapter]] = None,
        settings: Optional[TrackerSettings] = None,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize orchestrator.

        Args:
            proxy_manager: Proxy pool and request throttle
            fingerprint_provider: Generates one fingerprint per session
            browser_factory: Called as browser_factory(fingerprint, proxy, headless=...)
            adapters: Engine -> adapter overrides (default: get_adapter())
            settings: Timing and proxy settings (default: TrackerSettings())
            rng: Random source for pacing and session ids
            sleep: Blocking sleep function (seconds)
        """
        self.proxy_manager = proxy_manager
        self.fingerprint_provider = fingerprint_provider
        self.browser_factory = browser_factory
        self.adapters = adapters or {}
        self.settings = settings or TrackerSettings()
        self.rng = rng or random.Random()
        self._sleep = sleep
        self._cancel_tokens: Dict[str, threading.Event] = {}
        self._lock = threading.Lock()

    def cancel(self, session_id: str) -> bool:
        """
        Stop one running session after its current keyword.

        Returns:
            False if no session with that id is running
        """
        with self._lock:
            token = self._cancel_tokens.get(session_id)
        if token is None:
            logger.warning(f"Cancel ignored, session {session_id} is not running")
            return False

        logger.info(f"Cancellation requested for session {session_id}")
        token.set()
        return True

    def active_sessions(self) -> List[str]:
        """Ids of the sessions currently running."""
        with self._lock:
            return list(self._cancel_tokens)

    def next_keyword_delay_ms(self) -> int:
        """Randomized pause between keywords (fresh draw per call)."""
        return self.rng.randint(
            self.settings.inter_keyword_delay_min_ms,
            self.settings.inter_keyword_delay_max_ms,
        )

    def new_session_id(self) -> str:
        suffix = "".join(self.rng.choice(string.ascii_lowercase + string.digits) for _ in range(9))
        return f"serp_{int(time.time() * 1000)}_{suffix}"

    def adapter_for(self, engine: SearchEngine) -> SearchEngineAdapter:
        if engine in self.adapters:
            return self.adapters[engine]
        return get_adapter(engine, settle_ms=self.settings.results_settle_ms)

    def _acquire_proxy(self, request: TrackingRequest) -> Optional[ProxyHandle]:
        """
        Pick the session's initial proxy: pool first, then the request's own.

        Raises:
            InitializationError: If a proxy is mandatory and none is available
        """
        proxy = None
        if request.use_proxy:
            proxy = self.proxy_manager.get_next_proxy() or request.proxy_config
            if proxy is None:
                if self.settings.proxy_required:
                    raise InitializationError("Proxy required but none available")
                logger.warning("No proxy available from pool, using direct connection")
        elif request.proxy_config is not None:
            proxy = request.proxy_config

        return proxy

    def run(self, request: TrackingRequest, cancel_token: Optional[threading.Event] = None) -> TrackingSession:
        """
        Track every keyword of a request.

        Args:
            request: Tracking request (validated here)
            cancel_token: Set to stop this session at the next keyword boundary
                (default: a fresh Event, reachable through cancel(session_id))

        Returns:
            Finished TrackingSession

        Raises:
            RequestValidationError: Invalid request (before any browser launch)
            InitializationError: Browser launch or mandatory proxy failed
        """
        request.validate()

        session = TrackingSession(id=self.new_session_id(), request=request)
        token = cancel_token if cancel_token is not None else threading.Event()
        adapter = self.adapter_for(request.search_engine)

        logger.info(
            f"Session {session.id}: tracking {session.total_keywords} keywords for {request.domain} "
            f"on {request.search_engine.value} ({request.device.value})"
        )

        proxy = self._acquire_proxy(request)
        fingerprint = self.fingerprint_provider.generate(request.device)
        browser = self.browser_factory(fingerprint, proxy, headless=self.settings.headless)

        with self._lock:
            self._cancel_tokens[session.id] = token
        try:
            try:
                browser.initialize()
            except InitializationError:
                if proxy is not None:
                    self.proxy_manager.mark_proxy_failed(proxy.server)
                raise

            self._run_keywords(session, browser, adapter, token)
        finally:
            browser.cleanup()
            with self._lock:
                self._cancel_tokens.pop(session.id, None)

        session.finish()

        logger.info(
            f"Session {session.id} complete: {session.successful_queries} succeeded, "
            f"{session.failed_queries} failed"
        )
        return session

    def _run_keywords(
        self,
        session: TrackingSession,
        browser: BrowserSession,
        adapter: SearchEngineAdapter,
        cancel_token: threading.Event,
    ):
        request = session.request
        total = session.total_keywords

        for index, keyword in enumerate(request.keywords):
            if cancel_token.is_set():
                for remaining in request.keywords[index:]:
                    session.record_failure(CANCELLED_ERROR.format(keyword=remaining))
                logger.warning(f"Session {session.id} cancelled with {total - index} keywords remaining")
                return

            logger.info(f"[{index + 1}/{total}] Tracking '{keyword}'")

            try:
                self.proxy_manager.throttle_request(request.search_engine.value)
                result = self.track_single_keyword(browser, adapter, keyword, request)
            except Exception as e:
                session.record_failure(f'Failed to track keyword "{keyword}": {e}')
                logger.error(f"[{index + 1}/{total}] '{keyword}' failed: {e}")
                self._failover(browser)
                self._sleep(self.settings.error_penalty_ms / 1000.0)
            else:
                session.record_success(result)
                if browser.proxy is not None:
                    self.proxy_manager.mark_proxy_success(browser.proxy.server)

                if result.found:
                    logger.info(f"[{index + 1}/{total}] '{keyword}': rank {result.rank}")
                else:
                    logger.info(f"[{index + 1}/{total}] '{keyword}': {request.domain} not in results")

            if index < total - 1:
                self._sleep(self.next_keyword_delay_ms() / 1000.0)

    def _failover(self, browser: BrowserSession) -> None:
        """Report the active proxy as failed and swap in a replacement if one exists."""
        if browser.proxy is None:
            return

        self.proxy_manager.mark_proxy_failed(browser.proxy.server)
        replacement = self.proxy_manager.get_next_proxy()
        if replacement is None:
            logger.warning("No replacement proxy available, keeping current proxy")
            return

        try:
            browser.reinitialize_with_new_proxy(replacement)
        except Exception as e:
            logger.error(f"Proxy swap to {replacement} failed: {e}")

    def track_single_keyword(
        self,
        browser: BrowserSession,
        adapter: SearchEngineAdapter,
        keyword: str,
        request: TrackingRequest,
    ) -> KeywordRankingResult:
        """
        Search one keyword and resolve the target domain's rank.

        Raises:
            NavigationError: Navigation timed out or was blocked
            PageNotInitializedError: No live page
            ExtractionError: The SERP yielded no results
        """
        url = adapter.build_search_url(keyword, request)
        browser.navigate(url, timeout_ms=self.settings.navigation_timeout_ms)

        page = browser.page
        results_ready = adapter.wait_for_results(page, timeout_ms=self.settings.results_wait_timeout_ms)
        extraction = adapter.extract_results(page, request.domain, results_ready=results_ready)

        if not extraction.results:
            raise ExtractionError(f"No results extracted from {url}")

        results = extraction.results[:request.max_results]
        matched = match(results, request.domain)
        features = adapter.detect_serp_features(page)

        return KeywordRankingResult(
            keyword=keyword,
            rank=matched.rank,
            url=matched.matched.url if matched.matched else "",
            title=matched.matched.title if matched.matched else "",
            description=matched.matched.description if matched.matched else "",
            search_engine=request.search_engine.value,
            location=request.location or "",
            device=request.device.value,
            timestamp=utc_now_iso(),
            serp_features=features,
            competitor_rankings=matched.competitors,
            extraction_outcome=extraction.outcome,
        )
