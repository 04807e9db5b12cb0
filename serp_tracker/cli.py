#!/usr/bin/env python3
"""
CLI entrypoint for the SERP rank tracker.

Usage:
    serp-tracker KEYWORD [KEYWORD ...] --domain DOMAIN [options]
    python -m serp_tracker KEYWORD [KEYWORD ...] --domain DOMAIN [options]

Examples:
    # Track two keywords on Google desktop
    serp-tracker "car wash" "car wash near me" --domain example.com

    # Mobile Bing results for a UK location, printed as JSON
    serp-tracker "plumber" --domain acme.com --engine bing --device mobile \\
        --location "United Kingdom" --json

    # Route through the proxy pool and store results with history comparison
    serp-tracker "plumber" --domain acme.com --use-proxy --proxy-file data/proxies.txt \\
        --save --compare --owner-id acct_42

    # Stored ranking history for an account (optionally one keyword)
    serp-tracker --history --owner-id acct_42
    serp-tracker "plumber" --history --owner-id acct_42 --limit 60

Cron schedule (daily at 6 AM):
    0 6 * * * cd /path/to/serp-rank-tracker && serp-tracker "car wash" --domain example.com --save --owner-id acct_42
"""
import argparse
import dataclasses
import json
import sys

from runner.logging_setup import get_logger

from .config import get_settings
from .errors import InitializationError, RequestValidationError
from .models import TrackingRequest
from .orchestrator.tracking_service import RankTrackingService

logger = get_logger("serp_tracker_cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='serp-tracker',
        description='Track search engine rankings of a domain for a list of keywords',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    parser.add_argument('keywords', nargs='*', help='Keywords to track (in order)')
    parser.add_argument('--domain', default=None, help='Target domain (e.g., example.com)')
    parser.add_argument(
        '--engine',
        choices=['google', 'bing', 'duckduckgo'],
        default='google',
        help='Search engine (default: google)'
    )
    parser.add_argument(
        '--device',
        choices=['desktop', 'mobile'],
        default='desktop',
        help='Device class (default: desktop)'
    )
    parser.add_argument('--location', default=None, help='Location name (e.g., "United States")')
    parser.add_argument('--language', default='en', help='Interface language (default: en)')
    parser.add_argument(
        '--max-results',
        type=int,
        default=50,
        help='Results requested per query, 10-100 (default: 50)'
    )
    parser.add_argument('--use-proxy', action='store_true', help='Route traffic through the proxy pool')
    parser.add_argument('--proxy-file', default=None, help='Proxy list file (overrides PROXY_FILE)')
    parser.add_argument(
        '--no-headless',
        action='store_false',
        dest='headless',
        default=None,
        help='Run browser with visible UI (for debugging)'
    )
    parser.add_argument('--save', action='store_true', help='Store results (requires DATABASE_URL)')
    parser.add_argument('--compare', action='store_true', help='Compare ranks with stored history')
    parser.add_argument('--owner-id', default=None, help='Account the results belong to')
    parser.add_argument('--json', action='store_true', help='Print the full report as JSON')
    parser.add_argument(
        '--history',
        action='store_true',
        help='Show stored ranking history instead of tracking (at most one keyword)'
    )
    parser.add_argument('--limit', type=int, default=30, help='Records loaded for --history (default: 30)')

    return parser


def print_summary(report) -> None:
    """Print a human-readable report."""
    session = report.session
    summary = report.summary

    print("=" * 60)
    print(f"SERP Tracking Complete: {session.id}")
    print("=" * 60)
    print(f"Domain:     {session.request.domain} ({session.request.search_engine.value}, {session.request.device.value})")
    print(f"Keywords:   {summary.total_keywords} "
          f"(success: {summary.successful_queries}, failed: {summary.failed_queries})")
    print(f"Found:      {summary.keywords_found} (top 10: {summary.top_10}, top 3: {summary.top_3})")
    if summary.average_rank is not None:
        print(f"Avg rank:   {summary.average_rank}")

    print("-" * 60)
    for result in session.results:
        rank = result.rank if result.found else "-"
        print(f"{rank:>4}  {result.keyword}  {result.url}")

    trends = {c.keyword: c for c in report.comparisons}
    if trends:
        print("-" * 60)
        for keyword, comparison in trends.items():
            print(f"{comparison.trend.value:>6}  {keyword}  ({comparison.rank_change:+d})")

    for error in session.errors:
        print(f"ERROR: {error}")


def print_history(report) -> None:
    """Print a human-readable stored-history report."""
    summary = report.to_dict()["summary"]

    print("=" * 60)
    print(f"Ranking History: {summary['total_keywords']} keywords "
          f"({report.total_data_points} data points, {report.earliest_date} to {report.latest_date})")
    print("=" * 60)
    print(f"Ranked:     {summary['ranked_keywords']} "
          f"(top 10: {summary['keywords_in_top_10']}, top 3: {summary['keywords_in_top_3']})")
    print(f"Movement:   up {summary['improving_keywords']}, down {summary['declining_keywords']}, "
          f"stable {summary['stable_keywords']}, new {summary['new_keywords']}")

    print("-" * 60)
    for item in report.keywords:
        rank = item.current_rank or "-"
        print(f"{rank:>4}  {item.trend.value:>6}  {item.keyword}  "
              f"(best {item.best_position}, worst {item.worst_position}, avg {item.average_position})")


def open_store(settings, args):
    """Build the performance store for --save/--compare/--history, or None when not needed."""
    if not (args.save or args.compare or args.history):
        return None
    if not args.owner_id:
        raise ValueError("--save/--compare/--history require --owner-id")
    if not settings.database_url:
        raise ValueError("--save/--compare/--history require DATABASE_URL")

    from db.performance_store import PerformanceStore
    store = PerformanceStore(settings.database_url)
    store.create_tables()
    return store


def main(argv=None) -> int:
    """Main CLI entrypoint."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.history:
        if len(args.keywords) > 1:
            parser.error('--history accepts at most one keyword')
    elif not args.keywords or not args.domain:
        parser.error('keywords and --domain are required')

    settings = get_settings()
    overrides = {}
    if args.proxy_file:
        overrides['proxy_file'] = args.proxy_file
    if args.headless is not None:
        overrides['headless'] = args.headless
    if overrides:
        settings = dataclasses.replace(settings, **overrides)

    try:
        store = open_store(settings, args)
    except ValueError as e:
        logger.error(str(e))
        return 1

    service = RankTrackingService.from_settings(settings, store=store)

    if args.history:
        keyword = args.keywords[0] if args.keywords else None
        report = service.history_report(args.owner_id, keyword=keyword, limit=args.limit)
        if args.json:
            print(json.dumps(report.to_dict(), indent=2))
        else:
            print_history(report)
        return 0

    try:
        request = TrackingRequest.from_dict({
            'keywords': args.keywords,
            'domain': args.domain,
            'search_engine': args.engine,
            'device': args.device,
            'location': args.location,
            'language': args.language,
            'max_results': args.max_results,
            'use_proxy': args.use_proxy,
        })

        report = service.track(request, owner_id=args.owner_id, save=args.save, compare=args.compare)
    except (RequestValidationError, InitializationError) as e:
        logger.error(f"SERP tracking failed: {e}")
        return 1

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print_summary(report)

    return 0


if __name__ == '__main__':
    sys.exit(main())
