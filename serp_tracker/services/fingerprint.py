"""
Browser Fingerprint Provider

Produces a randomized, internally consistent browser identity for a
tracking session.

Features:
- Pool of realistic desktop and mobile user agent strings
- Viewport drawn from the same device class as the user agent
- Platform derived from the user agent (never drawn independently)
- Timezone drawn from the regions matching the accept-language value
- Injectable random source for deterministic tests
"""

import random
import threading
from typing import Dict, List, Optional, Tuple

from runner.logging_setup import get_logger

from ..models import BrowserFingerprint, DeviceClass

logger = get_logger("fingerprint")


DESKTOP_USER_AGENTS = [
    # Chrome on Windows
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36",

    # Chrome on macOS
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",

    # Chrome on Linux
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",

    # Firefox
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:121.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0",

    # Safari on macOS
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.1 Safari/605.1.15",

    # Edge on Windows
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36 Edg/120.0.0.0",
]

MOBILE_USER_AGENTS = [
    # Chrome on Android
    "Mozilla/5.0 (Linux; Android 14; SM-G998B) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Mobile Safari/537.36",
    "Mozilla/5.0 (Linux; Android 13; Pixel 7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.6099.144 Mobile Safari/537.36",

    # Chrome on iPhone
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_1 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) CriOS/120.0.6099.119 Mobile/15E148 Safari/604.1",

    # Safari on iPhone
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_1 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.1 Mobile/15E148 Safari/604.1",
]

DESKTOP_VIEWPORTS: List[Tuple[int, int]] = [
    (1920, 1080),  # Full HD
    (1366, 768),   # Laptop
    (1440, 900),   # MacBook
    (1536, 864),   # Laptop
    (1280, 720),   # HD
]

MOBILE_VIEWPORTS: List[Tuple[int, int]] = [
    (375, 667),    # iPhone SE
    (375, 812),    # iPhone 12/13
    (414, 896),    # iPhone Pro Max
    (360, 640),    # Android small
    (412, 915),    # Android large
]

# accept-language value -> timezones where that locale is plausible
LOCALE_TIMEZONES: Dict[str, List[str]] = {
    "en-US": ["America/New_York", "America/Chicago", "America/Denver", "America/Los_Angeles"],
    "en-GB": ["Europe/London"],
    "en-CA": ["America/Toronto", "America/Vancouver"],
    "en-AU": ["Australia/Sydney", "Australia/Melbourne"],
    "fr-FR": ["Europe/Paris"],
    "de-DE": ["Europe/Berlin"],
    "es-ES": ["Europe/Madrid"],
}


def platform_for_user_agent(user_agent: str) -> str:
    """Derive navigator.platform from a user agent string."""
    if "iPhone" in user_agent:
        return "iPhone"
    if "Android" in user_agent:
        return "Linux armv8l"
    if "Windows" in user_agent:
        return "Win32"
    if "Macintosh" in user_agent:
        return "MacIntel"
    return "Linux x86_64"


class BrowserFingerprintProvider:
    """
    Service for generating browser fingerprints.

    One fingerprint is generated per session and applied to every
    navigation in that session.
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        locales: Optional[Dict[str, List[str]]] = None
    ):
        """
        Initialize fingerprint provider.

        Args:
            rng: Random source (default: new random.Random())
            locales: accept-language -> timezones table (default: LOCALE_TIMEZONES)
        """
        self.rng = rng or random.Random()
        self.locales = locales or LOCALE_TIMEZONES
        self.lock = threading.Lock()

        logger.debug(
            f"BrowserFingerprintProvider initialized: "
            f"{len(DESKTOP_USER_AGENTS)} desktop, {len(MOBILE_USER_AGENTS)} mobile UAs, "
            f"{len(self.locales)} locales"
        )

    def generate(self, device: DeviceClass = DeviceClass.DESKTOP) -> BrowserFingerprint:
        """
        Generate a fingerprint for a device class.

        Args:
            device: Device class the session presents

        Returns:
            BrowserFingerprint
        """
        is_mobile = device == DeviceClass.MOBILE

        with self.lock:
            user_agent = self.rng.choice(MOBILE_USER_AGENTS if is_mobile else DESKTOP_USER_AGENTS)
            width, height = self.rng.choice(MOBILE_VIEWPORTS if is_mobile else DESKTOP_VIEWPORTS)
            accept_language = self.rng.choice(sorted(self.locales))
            timezone = self.rng.choice(self.locales[accept_language])

        fingerprint = BrowserFingerprint(
            user_agent=user_agent,
            viewport_width=width,
            viewport_height=height,
            timezone=timezone,
            accept_language=accept_language,
            platform=platform_for_user_agent(user_agent),
            is_mobile=is_mobile,
        )

        logger.debug(
            f"Generated {device.value} fingerprint: {user_agent[:50]}... "
            f"{width}x{height} {timezone} {accept_language}"
        )
        return fingerprint
