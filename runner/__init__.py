"""
Runner module for serp-rank-tracker.

This module contains:
- Logging setup shared by every component
"""

from runner.logging_setup import setup_logging, get_logger

__version__ = "0.1.0"

__all__ = [
    "setup_logging",
    "get_logger",
]
