"""
SERP Rank Tracker

Tracks where a domain ranks on Google, Bing and DuckDuckGo for a list of
keywords, using a fingerprinted headless browser.

This package provides:
- Sequential per-keyword tracking sessions with failure isolation
- Proxy pool rotation, failover and request throttling
- Engine adapters for URL building, result extraction and SERP features
- Rank history comparison and persistence
"""

__version__ = "0.1.0"

__all__ = []
