"""
Pytest configuration and shared fixtures for rank tracker tests.

Provides deterministic random sources, recording sleep/clock fakes,
result builders and canned SERP HTML. No fixture launches a browser.
"""

import os

# Keep test runs from writing log files
os.environ.setdefault("LOG_TO_FILE", "false")

import random

import pytest

from serp_tracker.models import (
    BrowserFingerprint,
    ExtractedResult,
    ProxyHandle,
    TrackingRequest,
)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


class RecordingSleep:
    """Sleep replacement that records requested durations (seconds)."""

    def __init__(self, clock=None):
        self.calls = []
        self.clock = clock

    def __call__(self, seconds):
        self.calls.append(seconds)
        if self.clock is not None:
            self.clock.advance(seconds)


class FakeClock:
    """Monotonic clock advanced manually or by RecordingSleep."""

    def __init__(self, start=1000.0):
        self.now = start

    def advance(self, seconds):
        self.now += seconds

    def __call__(self):
        return self.now


def make_result(position, domain, title=None, path="/"):
    """Build an ExtractedResult for a domain."""
    return ExtractedResult(
        position=position,
        title=title or f"Result {position} - {domain}",
        url=f"https://{domain}{path}",
        description=f"Description for {domain}",
        domain=domain,
    )


def google_serp_html(domains, extra=""):
    """Canned Google SERP markup with one organic result per domain."""
    blocks = []
    for index, domain in enumerate(domains, 1):
        blocks.append(
            f'<div class="g">'
            f'<a href="https://www.{domain}/page-{index}"><h3>Result {index} {domain}</h3></a>'
            f'<div class="VwiC3b">Snippet {index} for {domain}</div>'
            f'</div>'
        )
    return f'<html><body>{extra}<div id="search">{"".join(blocks)}</div></body></html>'


# Competitor domains used across scenarios
COMPETITORS = [f"competitor{i}.com" for i in range(1, 11)]


@pytest.fixture
def rng():
    """Seeded random source."""
    return random.Random(1234)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fake_sleep():
    return RecordingSleep()


@pytest.fixture
def fingerprint():
    """Fixed desktop fingerprint."""
    return BrowserFingerprint(
        user_agent="Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        viewport_width=1920,
        viewport_height=1080,
        timezone="America/New_York",
        accept_language="en-US",
        platform="Win32",
    )


@pytest.fixture
def proxy_with_credentials():
    return ProxyHandle(server="http://10.0.0.1:8080", username="user1", password="secret1")


@pytest.fixture
def acme_request():
    """Single-keyword Google request for acme.com."""
    return TrackingRequest(keywords=("plumber near me",), domain="acme.com")


@pytest.fixture
def results_acme_third():
    """Ten results with acme.com at position 3."""
    domains = COMPETITORS[:2] + ["acme.com"] + COMPETITORS[2:9]
    return [make_result(i, domain) for i, domain in enumerate(domains, 1)]


@pytest.fixture
def results_without_acme():
    """Ten results, none of them acme.com."""
    return [make_result(i, domain) for i, domain in enumerate(COMPETITORS, 1)]
