"""
Data model for the SERP rank-tracking engine.

Models:
- TrackingRequest: validated, immutable input for one tracking session
- ProxyHandle: upstream proxy address plus optional credentials
- BrowserFingerprint: user-agent/viewport/timezone/language identity
- ExtractedResult: one organic listing parsed from a SERP
- SerpFeatures: presence flags for non-organic SERP modules
- SerpExtraction: extracted results plus the complete/partial outcome
- KeywordRankingResult: durable outcome for one keyword
- TrackingSession: aggregate root owned by SessionOrchestrator
"""

import re
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

from .errors import RequestValidationError


MIN_KEYWORDS = 1
MAX_KEYWORDS = 50
MIN_RESULTS = 10
MAX_RESULTS = 100
MAX_COMPETITORS = 10

_HOSTNAME_PATTERN = re.compile(r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?(\.[a-z0-9]([a-z0-9-]*[a-z0-9])?)*$")


def utc_now_iso() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


class SearchEngine(Enum):
    """Supported search engines."""
    GOOGLE = "google"
    BING = "bing"
    DUCKDUCKGO = "duckduckgo"


class DeviceClass(Enum):
    """Device class presented to the search engine."""
    DESKTOP = "desktop"
    MOBILE = "mobile"


class ExtractionOutcome(Enum):
    """Whether extraction ran against a fully loaded result list."""
    COMPLETE = "complete"
    PARTIAL = "partial"  # result selector wait timed out, best-effort DOM state


@dataclass(frozen=True)
class ProxyHandle:
    """Upstream proxy. Held by reference for the current session only."""
    server: str
    username: Optional[str] = None
    password: Optional[str] = None
    protocol: str = "http"
    country: Optional[str] = None

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password)

    def to_playwright_format(self) -> Dict[str, str]:
        """Convert to Playwright proxy format."""
        proxy = {"server": self.server}
        if self.has_credentials:
            proxy["username"] = self.username
            proxy["password"] = self.password
        return proxy

    def __str__(self) -> str:
        # Credentials stay out of logs
        return self.server


def _keyword_tuple(value) -> Tuple[str, ...]:
    if isinstance(value, (str, bytes)):
        raise RequestValidationError("keywords must be a list of strings, not a single string")
    try:
        return tuple(value)
    except TypeError:
        raise RequestValidationError(f"keywords must be a list of strings, got {type(value).__name__}")


def _coerce_enum(enum_cls, value, field_name: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        allowed = "|".join(member.value for member in enum_cls)
        raise RequestValidationError(f"Invalid {field_name} '{value}' (expected {allowed})")


@dataclass(frozen=True)
class TrackingRequest:
    """
    Input for one tracking session.

    Attributes:
        keywords: Ordered keyword strings (1-50, each non-empty)
        domain: Target domain to locate in results (e.g. 'acme.com')
        search_engine: google | bing | duckduckgo
        location: Optional location name mapped to a locale code
        language: Interface language code (default 'en')
        device: desktop | mobile
        max_results: Results requested per query (10-100)
        use_proxy: Route traffic through the proxy pool
        proxy_config: Explicit proxy used when the pool has none
    """
    keywords: Tuple[str, ...]
    domain: str
    search_engine: SearchEngine = SearchEngine.GOOGLE
    location: Optional[str] = None
    language: str = "en"
    device: DeviceClass = DeviceClass.DESKTOP
    max_results: int = 50
    use_proxy: bool = False
    proxy_config: Optional[ProxyHandle] = None

    def __post_init__(self):
        # Frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, "keywords", _keyword_tuple(self.keywords))
        object.__setattr__(self, "domain", (self.domain or "").strip().lower())
        object.__setattr__(self, "search_engine", _coerce_enum(SearchEngine, self.search_engine, "search_engine"))
        object.__setattr__(self, "device", _coerce_enum(DeviceClass, self.device, "device"))

    def validate(self) -> "TrackingRequest":
        """
        Validate constraints. Returns self so calls can be chained.

        Raises:
            RequestValidationError: On the first violated constraint
        """
        if not (MIN_KEYWORDS <= len(self.keywords) <= MAX_KEYWORDS):
            raise RequestValidationError(
                f"Expected {MIN_KEYWORDS}-{MAX_KEYWORDS} keywords, got {len(self.keywords)}"
            )

        for index, keyword in enumerate(self.keywords):
            if not isinstance(keyword, str) or not keyword.strip():
                raise RequestValidationError(f"Keyword at index {index} is empty")

        if not self.domain:
            raise RequestValidationError("Target domain is required")

        hostname = urlparse(f"https://{self.domain}").hostname or ""
        if hostname != self.domain or not _HOSTNAME_PATTERN.match(hostname):
            raise RequestValidationError(f"Invalid domain format: '{self.domain}'")

        if not (MIN_RESULTS <= self.max_results <= MAX_RESULTS):
            raise RequestValidationError(
                f"max_results must be between {MIN_RESULTS} and {MAX_RESULTS}, got {self.max_results}"
            )

        if not self.language or not self.language.strip():
            raise RequestValidationError("Language is required")

        if self.proxy_config is not None and not self.proxy_config.server:
            raise RequestValidationError("proxy_config.server is required when proxy_config is given")

        return self

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "TrackingRequest":
        """
        Build and validate a request from a loose payload (API body, CLI args).

        Accepts both snake_case and the camelCase keys used by the dashboard.
        """
        def pick(*names, default=None):
            for name in names:
                if name in payload and payload[name] is not None:
                    return payload[name]
            return default

        proxy_payload = pick("proxy_config", "proxyConfig")
        proxy_config = None
        if proxy_payload and proxy_payload.get("server"):
            proxy_config = ProxyHandle(
                server=proxy_payload["server"],
                username=proxy_payload.get("username"),
                password=proxy_payload.get("password"),
            )

        request = cls(
            keywords=pick("keywords", default=()),
            domain=pick("domain", default=""),
            search_engine=pick("search_engine", "searchEngine", default="google"),
            location=pick("location"),
            language=pick("language", default="en"),
            device=pick("device", default="desktop"),
            max_results=int(pick("max_results", "maxResults", default=50)),
            use_proxy=bool(pick("use_proxy", "useProxy", default=False)),
            proxy_config=proxy_config,
        )
        return request.validate()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (proxy credentials omitted)."""
        return {
            "keywords": list(self.keywords),
            "domain": self.domain,
            "search_engine": self.search_engine.value,
            "location": self.location,
            "language": self.language,
            "device": self.device.value,
            "max_results": self.max_results,
            "use_proxy": self.use_proxy,
            "proxy_server": self.proxy_config.server if self.proxy_config else None,
        }


@dataclass(frozen=True)
class BrowserFingerprint:
    """Identity presented by the automated browser for a whole session."""
    user_agent: str
    viewport_width: int
    viewport_height: int
    timezone: str
    accept_language: str
    platform: str
    is_mobile: bool = False

    @property
    def viewport(self) -> Dict[str, int]:
        return {"width": self.viewport_width, "height": self.viewport_height}

    @property
    def locale(self) -> str:
        return self.accept_language.split(",")[0]

    def http_headers(self) -> Dict[str, str]:
        """Extra HTTP headers sent with every navigation."""
        return {
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
            "Accept-Language": f"{self.accept_language},en;q=0.9",
            "Accept-Encoding": "gzip, deflate, br",
            "Upgrade-Insecure-Requests": "1",
            "Sec-Fetch-Dest": "document",
            "Sec-Fetch-Mode": "navigate",
            "Sec-Fetch-Site": "none",
            "Cache-Control": "max-age=0",
        }

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ExtractedResult:
    """One organic listing. Ephemeral: consumed by ResultMatcher."""
    position: int
    title: str
    url: str
    description: str
    domain: str
    is_local_result: bool = False
    featured_snippet: bool = False
    sitelinks: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SerpFeatures:
    """Presence of SERP modules other than organic listings."""
    featured_snippet: bool = False
    local_pack: bool = False
    shopping_results: bool = False
    video_results: bool = False
    news_results: bool = False

    def to_dict(self) -> Dict[str, bool]:
        return asdict(self)


@dataclass
class SerpExtraction:
    """Results extracted from one SERP and how complete the page was."""
    results: List[ExtractedResult]
    outcome: ExtractionOutcome = ExtractionOutcome.COMPLETE
    skipped_nodes: int = 0

    @property
    def is_partial(self) -> bool:
        return self.outcome == ExtractionOutcome.PARTIAL


@dataclass
class KeywordRankingResult:
    """
    Durable outcome for one keyword.

    rank == 0 means the target domain was not found in the extracted results;
    url/title/description are then empty.
    """
    keyword: str
    rank: int
    url: str
    title: str
    description: str
    search_engine: str
    location: str
    device: str
    timestamp: str
    serp_features: SerpFeatures
    competitor_rankings: List[ExtractedResult] = field(default_factory=list)
    extraction_outcome: ExtractionOutcome = ExtractionOutcome.COMPLETE

    @property
    def found(self) -> bool:
        return self.rank > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "keyword": self.keyword,
            "rank": self.rank,
            "url": self.url,
            "title": self.title,
            "description": self.description,
            "search_engine": self.search_engine,
            "location": self.location,
            "device": self.device,
            "timestamp": self.timestamp,
            "serp_features": self.serp_features.to_dict(),
            "competitor_rankings": [c.to_dict() for c in self.competitor_rankings],
            "extraction_outcome": self.extraction_outcome.value,
        }


@dataclass
class TrackingSession:
    """
    Aggregate root for one tracking run.

    Mutated only by SessionOrchestrator; immutable once end_time is set.
    results and errors are ordered logs in keyword order.
    """
    id: str
    request: TrackingRequest
    start_time: str = field(default_factory=utc_now_iso)
    end_time: Optional[str] = None
    results: List[KeywordRankingResult] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    successful_queries: int = 0
    failed_queries: int = 0

    @property
    def total_keywords(self) -> int:
        return len(self.request.keywords)

    @property
    def is_finished(self) -> bool:
        return self.end_time is not None

    def _ensure_open(self):
        if self.is_finished:
            raise RuntimeError(f"Session {self.id} is finished and can no longer be modified")

    def record_success(self, result: KeywordRankingResult):
        self._ensure_open()
        self.results.append(result)
        self.successful_queries += 1

    def record_failure(self, message: str):
        self._ensure_open()
        self.errors.append(message)
        self.failed_queries += 1

    def finish(self):
        self._ensure_open()
        self.end_time = utc_now_iso()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "request": self.request.to_dict(),
            "results": [r.to_dict() for r in self.results],
            "errors": list(self.errors),
            "start_time": self.start_time,
            "end_time": self.end_time,
            "total_keywords": self.total_keywords,
            "successful_queries": self.successful_queries,
            "failed_queries": self.failed_queries,
        }
