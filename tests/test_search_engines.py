#!/usr/bin/env python3
"""
Unit tests for the search engine adapters.

Tests:
- Search URL parameters per engine, device and location
- Organic result parsing from canned SERP markup
- Redirect unwrapping and malformed node skipping
- Soft-fail result wait (partial extraction)
- SERP feature detection
"""

from unittest.mock import MagicMock

from playwright.sync_api import TimeoutError as PlaywrightTimeout

from serp_tracker.models import ExtractionOutcome, SearchEngine, TrackingRequest
from serp_tracker.serp.engines import (
    ADAPTERS,
    detect_features,
    get_adapter,
    location_code,
)

from conftest import COMPETITORS, google_serp_html


def request_for(engine="google", **kwargs):
    return TrackingRequest(keywords=("plumber near me",), domain="acme.com", search_engine=engine, **kwargs)


class TestSearchUrls:
    def test_google_desktop(self):
        url = get_adapter(SearchEngine.GOOGLE).build_search_url("plumber near me", request_for())

        assert url.startswith("https://www.google.com/search?")
        assert "q=plumber%20near%20me" in url
        assert "num=50" in url
        assert "hl=en" in url
        assert "device=m" not in url
        assert "gl=" not in url

    def test_google_mobile_with_location(self):
        request = request_for(device="mobile", location="United Kingdom", max_results=20)
        url = get_adapter(SearchEngine.GOOGLE).build_search_url("plumber near me", request)

        assert "device=m" in url
        assert "gl=uk" in url
        assert "num=20" in url

    def test_unmapped_location_defaults_to_us(self):
        url = get_adapter(SearchEngine.GOOGLE).build_search_url("plumber", request_for(location="Narnia"))

        assert "gl=us" in url
        assert location_code(None) == "us"
        assert location_code(" japan ") == "jp"

    def test_bing(self):
        url = get_adapter(SearchEngine.BING).build_search_url("plumber", request_for("bing", location="Canada"))

        assert url.startswith("https://www.bing.com/search?")
        assert "count=50" in url
        assert "setlang=en" in url
        assert "cc=ca" in url

    def test_duckduckgo(self):
        request = request_for("duckduckgo", location="Germany", language="de")
        url = get_adapter(SearchEngine.DUCKDUCKGO).build_search_url("klempner", request)

        assert url.startswith("https://html.duckduckgo.com/html/?")
        assert "q=klempner" in url
        assert "kl=de-de" in url

    def test_every_engine_has_an_adapter(self):
        assert set(ADAPTERS) == set(SearchEngine)


class TestGoogleParsing:
    def test_positions_and_domains(self):
        domains = COMPETITORS[:2] + ["acme.com"] + COMPETITORS[2:9]
        results, skipped = get_adapter(SearchEngine.GOOGLE).parse_results(google_serp_html(domains))

        assert skipped == 0
        assert [r.position for r in results] == list(range(1, 11))
        assert results[2].domain == "acme.com"
        assert results[2].url == "https://www.acme.com/page-3"
        assert results[2].title == "Result 3 acme.com"
        assert results[2].description == "Snippet 3 for acme.com"

    def test_google_redirect_is_unwrapped(self):
        html = (
            '<div id="search"><div class="g">'
            '<a href="/url?q=https://acme.com/plumbing&amp;sa=U"><h3>Acme Plumbing</h3></a>'
            '</div></div>'
        )
        results, _ = get_adapter(SearchEngine.GOOGLE).parse_results(html)

        assert results[0].url == "https://acme.com/plumbing"
        assert results[0].domain == "acme.com"

    def test_malformed_nodes_are_skipped(self):
        html = (
            '<div id="search">'
            '<div class="g"><a href="https://one.com/"><h3>One</h3></a></div>'
            '<div class="g"><h3>No link</h3></div>'
            '<div class="g"><a href="javascript:void(0)"><h3>Script link</h3></a></div>'
            '<div class="g"><a href="https://two.com/"><h3>Two</h3></a></div>'
            '</div>'
        )
        results, skipped = get_adapter(SearchEngine.GOOGLE).parse_results(html)

        assert [(r.position, r.domain) for r in results] == [(1, "one.com"), (2, "two.com")]
        assert skipped == 2

    def test_local_featured_and_sitelinks(self):
        html = (
            '<div id="search">'
            '<div class="g"><a href="https://acme.com/"><h3>Plumbers near Springfield</h3></a>'
            '<div class="VwiC3b">Call today</div>'
            '<a class="fl" href="https://acme.com/about">About</a>'
            '<a class="fl" href="https://acme.com/contact">Contact</a></div>'
            '<div class="g" data-local-result="1"><a href="https://local.com/"><h3>Local</h3></a></div>'
            '<div class="g"><span class="hgKElc">Answer</span>'
            '<a href="https://answer.com/"><h3>Answer</h3></a></div>'
            '</div>'
        )
        results, _ = get_adapter(SearchEngine.GOOGLE).parse_results(html)

        assert results[0].is_local_result is True
        assert results[0].sitelinks == ["About", "Contact"]
        assert results[1].is_local_result is True
        assert results[2].featured_snippet is True
        assert results[2].is_local_result is False

    def test_featured_snippet_in_previous_sibling(self):
        html = (
            '<div id="search">'
            '<div class="featured-snippet">Direct answer</div>'
            '<div class="g"><a href="https://answer.com/"><h3>Answer</h3></a></div>'
            '<div class="g"><a href="https://other.com/"><h3>Other</h3></a></div>'
            '</div>'
        )
        results, _ = get_adapter(SearchEngine.GOOGLE).parse_results(html)

        assert results[0].featured_snippet is True
        assert results[1].featured_snippet is False

    def test_empty_page(self):
        results, skipped = get_adapter(SearchEngine.GOOGLE).parse_results("<html><body></body></html>")

        assert results == []
        assert skipped == 0


def test_bing_parsing():
    html = (
        '<ol id="b_results">'
        '<li class="b_algo"><h2><a href="https://www.acme.com/">Acme Plumbing</a></h2>'
        '<div class="b_caption"><p>Trusted plumbers</p></div></li>'
        '<li class="b_algo"><h2><a href="https://rival.com/">Rival</a></h2></li>'
        '</ol>'
    )
    results, _ = get_adapter(SearchEngine.BING).parse_results(html)

    assert [r.domain for r in results] == ["acme.com", "rival.com"]
    assert results[0].title == "Acme Plumbing"
    assert results[0].description == "Trusted plumbers"


def test_duckduckgo_parsing_unwraps_redirect():
    html = (
        '<div class="results"><div class="result"><div class="result__body">'
        '<h2 class="result__title"><a class="result__a" '
        'href="//duckduckgo.com/l/?uddg=https%3A%2F%2Facme.com%2Fplumbing&amp;rut=abc">Acme Plumbing</a></h2>'
        '<a class="result__snippet" href="#">Emergency plumbing</a>'
        '</div></div></div>'
    )
    results, _ = get_adapter(SearchEngine.DUCKDUCKGO).parse_results(html)

    assert results[0].url == "https://acme.com/plumbing"
    assert results[0].domain == "acme.com"
    assert results[0].description == "Emergency plumbing"


def test_redirect_target_is_decoded_once():
    html = (
        '<div class="results"><div class="result"><div class="result__body">'
        '<h2 class="result__title"><a class="result__a" '
        'href="//duckduckgo.com/l/?uddg=https%3A%2F%2Facme.com%2Fsearch%3Fq%3D100%2525">Acme</a></h2>'
        '</div></div></div>'
    )
    results, _ = get_adapter(SearchEngine.DUCKDUCKGO).parse_results(html)

    assert results[0].url == "https://acme.com/search?q=100%25"


class TestPageInteraction:
    def test_wait_for_results_ready(self):
        page = MagicMock()
        adapter = get_adapter(SearchEngine.GOOGLE, settle_ms=500)

        assert adapter.wait_for_results(page, timeout_ms=10000) is True
        page.wait_for_selector.assert_called_once_with("#search .g, [data-hveid]", timeout=10000)
        page.wait_for_timeout.assert_called_once_with(500)

    def test_wait_timeout_is_soft_fail(self):
        page = MagicMock()
        page.wait_for_selector.side_effect = PlaywrightTimeout("Timeout 10000ms exceeded")

        assert get_adapter(SearchEngine.BING).wait_for_results(page) is False

    def test_extract_results_reports_partial_outcome(self):
        page = MagicMock()
        page.content.return_value = google_serp_html(["acme.com"])
        adapter = get_adapter(SearchEngine.GOOGLE)

        complete = adapter.extract_results(page, "acme.com", results_ready=True)
        partial = adapter.extract_results(page, "acme.com", results_ready=False)

        assert complete.outcome == ExtractionOutcome.COMPLETE
        assert partial.is_partial
        assert len(partial.results) == 1

    def test_detect_serp_features(self):
        page = MagicMock()
        page.content.return_value = (
            '<div class="g"><span class="hgKElc">Answer</span></div>'
            '<div class="local-pack"></div>'
            '<div class="video-result"></div>'
        )

        features = get_adapter(SearchEngine.GOOGLE).detect_serp_features(page)

        assert features.featured_snippet is True
        assert features.local_pack is True
        assert features.video_results is True
        assert features.shopping_results is False
        assert features.news_results is False


def test_detect_features_on_plain_page():
    features = detect_features("<html><body><p>nothing here</p></body></html>")

    assert not any(features.to_dict().values())
