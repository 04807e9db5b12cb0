"""
Search Engine Adapters

One adapter per supported search engine, selected by the request's
search_engine field. Every adapter shares the same code path; what differs
per engine lives in an EngineProfile (URL parameters, selector chains).
Adding an engine means adding a profile.

Features:
- Search URL building (keyword, result count, language, device marker, locale)
- Soft-fail wait for the result list (timeout -> partial extraction)
- Organic result parsing with BeautifulSoup and per-field selector fallbacks
- Redirect unwrapping (Google /url?q=, DuckDuckGo uddg=)
- Local-intent, featured-snippet and sitelink flags per result
- SERP feature detection (featured snippet, local pack, shopping, video, news)

Known simplifications (tunable constants below):
- Unmapped locations fall back to the 'us' locale code
- Any result mentioning "near" is treated as local intent, in any language
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from urllib.parse import parse_qs, quote, urlencode, urljoin, urlparse

from bs4 import BeautifulSoup
from playwright.sync_api import TimeoutError as PlaywrightTimeout

from runner.logging_setup import get_logger

from ..models import (
    DeviceClass,
    ExtractedResult,
    ExtractionOutcome,
    SearchEngine,
    SerpExtraction,
    SerpFeatures,
    TrackingRequest,
)

logger = get_logger("search_engines")


# Location name -> locale code
LOCATION_CODES: Dict[str, str] = {
    "united states": "us",
    "united kingdom": "uk",
    "canada": "ca",
    "australia": "au",
    "germany": "de",
    "france": "fr",
    "india": "in",
    "japan": "jp",
}
DEFAULT_LOCATION_CODE = "us"

LOCAL_INTENT_MARKERS = ("near",)
LOCAL_RESULT_ATTRIBUTE = "data-local-result"

FEATURE_SELECTORS: Dict[str, str] = {
    "featured_snippet": ".g .hgKElc, .featured-snippet, .b_ans .b_focusTextLarge",
    "local_pack": ".lclilr, .local-pack, .b_localContainer",
    "shopping_results": ".pla-unit, .sh-prd-product, .b_adProductAds",
    "video_results": ".V3oC1b, .video-result, .b_vidAns",
    "news_results": ".news-result, g-section-with-header .WlydOe, .b_nwsAns",
}


def location_code(location: Optional[str]) -> str:
    """Map a location name to its locale code ('us' when unmapped)."""
    if not location:
        return DEFAULT_LOCATION_CODE
    return LOCATION_CODES.get(location.strip().lower(), DEFAULT_LOCATION_CODE)


@dataclass(frozen=True)
class EngineProfile:
    """Everything that differs between search engines."""
    engine: SearchEngine
    base_url: str
    count_param: Optional[str]
    language_param: Optional[str]
    region_param: str
    region_format: str
    mobile_params: Dict[str, str]
    wait_selectors: Tuple[str, ...]
    result_selectors: Tuple[str, ...]
    title_selectors: Tuple[str, ...]
    link_selectors: Tuple[str, ...]
    snippet_selectors: Tuple[str, ...]
    featured_selector: str = ".hgKElc, .featured-snippet"
    sitelink_selector: Optional[str] = None
    redirect_params: Tuple[str, ...] = field(default_factory=tuple)


GOOGLE = EngineProfile(
    engine=SearchEngine.GOOGLE,
    base_url="https://www.google.com/search",
    count_param="num",
    language_param="hl",
    region_param="gl",
    region_format="{code}",
    mobile_params={"device": "m"},
    wait_selectors=("#search .g", "[data-hveid]"),
    result_selectors=("#search .g", ".g"),
    title_selectors=("h3",),
    link_selectors=("a[href]",),
    snippet_selectors=(".VwiC3b", "div[data-sncf]", "span.aCOpRe"),
    sitelink_selector=".fl, .TbwUpd",
    redirect_params=("q", "url"),
)

BING = EngineProfile(
    engine=SearchEngine.BING,
    base_url="https://www.bing.com/search",
    count_param="count",
    language_param="setlang",
    region_param="cc",
    region_format="{code}",
    mobile_params={"device": "m"},
    wait_selectors=(".b_algo", "#b_results"),
    result_selectors=("#b_results > li.b_algo", ".b_algo"),
    title_selectors=("h2",),
    link_selectors=("h2 a[href]", "a[href]"),
    snippet_selectors=(".b_caption p", "p"),
    sitelink_selector=".b_deep a, .b_vlist2col a",
)

DUCKDUCKGO = EngineProfile(
    engine=SearchEngine.DUCKDUCKGO,
    base_url="https://html.duckduckgo.com/html/",
    count_param=None,
    language_param=None,
    region_param="kl",
    region_format="{code}-{language}",
    mobile_params={"device": "m"},
    wait_selectors=(".result__body", ".results"),
    result_selectors=(".result__body",),
    title_selectors=(".result__title", "h2"),
    link_selectors=("a.result__a[href]", "a[href]"),
    snippet_selectors=(".result__snippet",),
    redirect_params=("uddg",),
)


class SearchEngineAdapter:
    """
    Search engine strategy driven by an EngineProfile.

    Only wait_for_results(), extract_results() and detect_serp_features()
    touch the page; URL building and HTML parsing are pure.
    """

    def __init__(self, profile: EngineProfile, settle_ms: int = 2000):
        """
        Initialize adapter.

        Args:
            profile: Engine-specific parameters and selectors
            settle_ms: Pause after the result list appears, for late-loading modules
        """
        self.profile = profile
        self.settle_ms = settle_ms

    @property
    def engine(self) -> SearchEngine:
        return self.profile.engine

    def build_search_url(self, keyword: str, request: TrackingRequest) -> str:
        """
        Build the search URL for a keyword.

        Args:
            keyword: Search query
            request: Tracking request (result count, language, device, location)

        Returns:
            Absolute search URL
        """
        profile = self.profile

        params = {"q": keyword}
        if profile.count_param:
            params[profile.count_param] = str(request.max_results)
        if profile.language_param:
            params[profile.language_param] = request.language
        if request.device == DeviceClass.MOBILE:
            params.update(profile.mobile_params)
        if request.location:
            params[profile.region_param] = profile.region_format.format(
                code=location_code(request.location),
                language=request.language,
            )

        return f"{profile.base_url}?{urlencode(params, quote_via=quote)}"

    def wait_for_results(self, page, timeout_ms: int = 10000) -> bool:
        """
        Wait for the first known result-list selector.

        A timeout is not fatal: extraction proceeds on whatever the page
        holds and the outcome is reported as partial.

        Returns:
            True if the result list appeared, False on timeout
        """
        selector = ", ".join(self.profile.wait_selectors)
        ready = True

        try:
            page.wait_for_selector(selector, timeout=timeout_ms)
        except PlaywrightTimeout:
            logger.warning(
                f"{self.engine.value}: result selector wait timed out after {timeout_ms}ms, "
                f"extracting best-effort"
            )
            ready = False

        if self.settle_ms:
            page.wait_for_timeout(self.settle_ms)

        return ready

    def extract_results(self, page, target_domain: str, results_ready: bool = True) -> SerpExtraction:
        """
        Extract organic results from the loaded page.

        Args:
            page: Playwright Page with a loaded SERP
            target_domain: Domain being tracked (logged only)
            results_ready: Outcome of wait_for_results()

        Returns:
            SerpExtraction (PARTIAL outcome when the wait timed out)
        """
        results, skipped = self.parse_results(page.content())
        outcome = ExtractionOutcome.COMPLETE if results_ready else ExtractionOutcome.PARTIAL

        logger.debug(
            f"{self.engine.value}: extracted {len(results)} results "
            f"({skipped} skipped, {outcome.value}) while tracking {target_domain}"
        )
        return SerpExtraction(results=results, outcome=outcome, skipped_nodes=skipped)

    def parse_results(self, html: str) -> Tuple[List[ExtractedResult], int]:
        """
        Parse organic results from SERP HTML.

        Positions are 1-based and consecutive over successfully parsed
        nodes. Nodes that fail to parse are skipped.

        Returns:
            Tuple of (results, skipped node count)
        """
        soup = BeautifulSoup(html, "html.parser")

        nodes = []
        for selector in self.profile.result_selectors:
            nodes = soup.select(selector)
            if nodes:
                break

        results = []
        skipped = 0
        for node in nodes:
            try:
                result = self._parse_node(node, position=len(results) + 1)
            except Exception as e:
                logger.warning(f"{self.engine.value}: error parsing result node: {e}")
                result = None

            if result is None:
                skipped += 1
                continue
            results.append(result)

        return results, skipped

    def _parse_node(self, node, position: int) -> Optional[ExtractedResult]:
        profile = self.profile

        title_elem = _first_match(node, profile.title_selectors)
        link_elem = _first_match(node, profile.link_selectors)
        if title_elem is None or link_elem is None:
            return None

        title = title_elem.get_text(strip=True)
        url = self._clean_url(link_elem.get("href", ""))
        if not title or not url:
            return None

        hostname = urlparse(url).hostname
        if not hostname:
            return None

        snippet_elem = _first_match(node, profile.snippet_selectors)
        description = snippet_elem.get_text(" ", strip=True) if snippet_elem else ""

        text = f"{title} {description}".lower()
        is_local = (
            any(marker in text for marker in LOCAL_INTENT_MARKERS)
            or node.has_attr(LOCAL_RESULT_ATTRIBUTE)
            or node.select_one(f"[{LOCAL_RESULT_ATTRIBUTE}]") is not None
        )

        sitelinks = []
        if profile.sitelink_selector:
            sitelinks = [
                label for label in (el.get_text(strip=True) for el in node.select(profile.sitelink_selector))
                if label
            ]

        return ExtractedResult(
            position=position,
            title=title,
            url=url,
            description=description,
            domain=_normalize_domain(hostname),
            is_local_result=is_local,
            featured_snippet=self._has_featured_snippet(node),
            sitelinks=sitelinks,
        )

    def _has_featured_snippet(self, node) -> bool:
        """Featured snippet inside the node or in the element just before it."""
        if node.select_one(self.profile.featured_selector) is not None:
            return True

        sibling = node.find_previous_sibling(True)
        if sibling is None:
            return False
        return bool(sibling.select(self.profile.featured_selector)) or _matches(sibling, self.profile.featured_selector)

    def _clean_url(self, href: str) -> str:
        """Unwrap engine redirects and resolve relative links."""
        if not href:
            return ""

        absolute = urljoin(self.profile.base_url, href)
        parsed = urlparse(absolute)

        if self.profile.redirect_params and parsed.path.rstrip("/") in ("/url", "/l"):
            params = parse_qs(parsed.query)
            for name in self.profile.redirect_params:
                if name in params:
                    return params[name][0]

        if parsed.scheme not in ("http", "https"):
            return ""
        return absolute

    def detect_serp_features(self, page) -> SerpFeatures:
        """Check the loaded page for non-organic SERP modules."""
        return detect_features(page.content())


def detect_features(html: str) -> SerpFeatures:
    """
    Detect SERP feature modules in HTML.

    Absence of a module is not an error; each flag is independent.
    """
    soup = BeautifulSoup(html, "html.parser")
    return SerpFeatures(**{
        name: soup.select_one(selector) is not None
        for name, selector in FEATURE_SELECTORS.items()
    })


def _first_match(node, selectors):
    for selector in selectors:
        element = node.select_one(selector)
        if element is not None:
            return element
    return None


def _matches(element, selector: str) -> bool:
    parent = element.parent
    if parent is None:
        return False
    return any(candidate is element for candidate in parent.select(selector))


def _normalize_domain(hostname: str) -> str:
    hostname = hostname.lower()
    if hostname.startswith("www."):
        hostname = hostname[4:]
    return hostname


ADAPTERS: Dict[SearchEngine, SearchEngineAdapter] = {
    profile.engine: SearchEngineAdapter(profile)
    for profile in (GOOGLE, BING, DUCKDUCKGO)
}


def get_adapter(engine: SearchEngine, settle_ms: Optional[int] = None) -> SearchEngineAdapter:
    """
    Get the adapter for a search engine.

    Args:
        engine: Search engine
        settle_ms: Override the post-wait settle pause (None keeps the default)
    """
    adapter = ADAPTERS[SearchEngine(engine)]
    if settle_ms is None:
        return adapter
    return SearchEngineAdapter(adapter.profile, settle_ms=settle_ms)
