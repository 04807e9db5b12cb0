"""
Browser Session Driver

Owns the Playwright resources (driver, browser, context, page) for one
tracking session.

Features:
- Chromium launch with anti-automation flags
- Context built from the session's BrowserFingerprint
- Per-context proxy with credentials (proxy authentication hook)
- Anti-detection init script (webdriver/plugins/languages masking)
- Proxy swap without relaunching the browser
- Idempotent cleanup that tolerates partially initialized state
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeout
from playwright.sync_api import sync_playwright

from runner.logging_setup import get_logger

from ..errors import (
    BlockedResponseError,
    InitializationError,
    NavigationTimeoutError,
    PageNotInitializedError,
)
from ..models import BrowserFingerprint, ProxyHandle

logger = get_logger("browser_session")


LAUNCH_ARGS = [
    '--disable-blink-features=AutomationControlled',
    '--disable-dev-shm-usage',
    '--no-sandbox',
]

STEALTH_INIT_SCRIPT = """
    // Remove webdriver property
    Object.defineProperty(navigator, 'webdriver', {
        get: () => undefined
    });

    // Add plugins
    Object.defineProperty(navigator, 'plugins', {
        get: () => [1, 2, 3, 4, 5]
    });

    // Add languages
    Object.defineProperty(navigator, 'languages', {
        get: () => %s
    });

    // Platform consistent with the user agent
    Object.defineProperty(navigator, 'platform', {
        get: () => '%s'
    });
"""


@dataclass
class BrowserResources:
    """Live Playwright handles. Any of them may be None."""
    playwright: Any = None
    browser: Any = None
    context: Any = None
    page: Any = None


class BrowserSession:
    """
    Browser lifecycle for one tracking session.

    Usage:
        session = BrowserSession(fingerprint, proxy, headless=True)
        try:
            session.initialize()
            session.navigate(url, timeout_ms=30000)
            html = session.page.content()
        finally:
            session.cleanup()
    """

    def __init__(
        self,
        fingerprint: BrowserFingerprint,
        proxy: Optional[ProxyHandle] = None,
        headless: bool = True,
        playwright_factory: Callable[[], Any] = sync_playwright,
    ):
        """
        Initialize browser session (nothing is launched yet).

        Args:
            fingerprint: Identity applied to every context in this session
            proxy: Initial upstream proxy (None = direct connection)
            headless: Run browser in headless mode
            playwright_factory: Returns an object with start() (default: sync_playwright)
        """
        self.fingerprint = fingerprint
        self.proxy = proxy
        self.headless = headless
        self._playwright_factory = playwright_factory
        self.resources = BrowserResources()

    @property
    def page(self):
        return self.resources.page

    @property
    def is_initialized(self) -> bool:
        return self.resources.page is not None

    def initialize(self) -> None:
        """
        Launch the browser and open a fingerprinted page.

        Raises:
            InitializationError: If any launch step fails. Partial state stays in
                resources until the owner calls cleanup().
        """
        logger.info(
            f"Launching Playwright browser (headless={self.headless}, "
            f"proxy={self.proxy or 'direct'})"
        )

        try:
            self.resources.playwright = self._playwright_factory().start()

            launch_options = {
                'headless': self.headless,
                'args': list(LAUNCH_ARGS),
            }
            if self.proxy:
                launch_options['proxy'] = self.proxy.to_playwright_format()

            self.resources.browser = self.resources.playwright.chromium.launch(**launch_options)
            self._open_page(self.proxy)
        except Exception as e:
            raise InitializationError(f"Browser launch failed: {e}") from e

        logger.info("Browser launched successfully")

    def _open_page(self, proxy: Optional[ProxyHandle]) -> None:
        """Create a context from the fingerprint (and proxy) and open a page in it."""
        fingerprint = self.fingerprint

        context_options = {
            'user_agent': fingerprint.user_agent,
            'viewport': fingerprint.viewport,
            'timezone_id': fingerprint.timezone,
            'locale': fingerprint.locale,
            'extra_http_headers': fingerprint.http_headers(),
            'is_mobile': fingerprint.is_mobile,
            'has_touch': fingerprint.is_mobile,
        }
        if proxy:
            context_options['proxy'] = proxy.to_playwright_format()

        context = self.resources.browser.new_context(**context_options)
        self.resources.context = context

        languages = [fingerprint.locale, fingerprint.locale.split('-')[0]]
        context.add_init_script(STEALTH_INIT_SCRIPT % (languages, fingerprint.platform))

        self.resources.page = context.new_page()

    def reinitialize_with_new_proxy(self, proxy: ProxyHandle) -> None:
        """
        Swap the upstream proxy, keeping the browser and the fingerprint.

        Closes the current page and context, then opens new ones routed
        through the given proxy.
        """
        if self.resources.browser is None:
            raise PageNotInitializedError("Cannot swap proxy before the browser is launched")

        logger.info(f"Switching proxy: {self.proxy or 'direct'} -> {proxy}")

        self._close_page_and_context()
        self.proxy = proxy
        self._open_page(proxy)

    def navigate(self, url: str, timeout_ms: int) -> None:
        """
        Navigate the page to a URL, waiting for network idle.

        Raises:
            PageNotInitializedError: If initialize() has not produced a page
            NavigationTimeoutError: On timeout or transport failure
            BlockedResponseError: On a non-OK HTTP status
        """
        page = self.resources.page
        if page is None:
            raise PageNotInitializedError("Browser page not initialized")

        try:
            response = page.goto(url, wait_until='networkidle', timeout=timeout_ms)
        except PlaywrightTimeout as e:
            raise NavigationTimeoutError(url, str(e)) from e
        except PlaywrightError as e:
            raise NavigationTimeoutError(url, f"navigation failed: {e}") from e

        if response is not None and not response.ok:
            raise BlockedResponseError(url, response.status)

    def _close_page_and_context(self) -> None:
        for name in ('page', 'context'):
            handle = getattr(self.resources, name)
            if handle is None:
                continue
            try:
                handle.close()
            except Exception as e:
                logger.warning(f"Error closing {name}: {e}")
            setattr(self.resources, name, None)

    def cleanup(self) -> None:
        """
        Release page, context, browser and driver in that order.

        Safe to call repeatedly and on partially initialized state; errors
        are logged and never raised.
        """
        self._close_page_and_context()

        if self.resources.browser is not None:
            try:
                self.resources.browser.close()
            except Exception as e:
                logger.warning(f"Error closing browser: {e}")
            self.resources.browser = None

        if self.resources.playwright is not None:
            try:
                self.resources.playwright.stop()
            except Exception as e:
                logger.warning(f"Error stopping playwright: {e}")
            self.resources.playwright = None

        logger.debug("Browser resources released")
