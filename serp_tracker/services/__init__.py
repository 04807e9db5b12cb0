"""Rank tracking services: fingerprints, proxies, trends and persistence."""
