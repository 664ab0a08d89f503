"""
Command-line interface for doubanscout.

Usage:
    python -m doubanscout search "寄生虫"
    python -m doubanscout subject 27010768 --cookies "bid=...; dbcl2=..."
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict, is_dataclass, replace
from typing import Any, List, Optional

from doubanscout.config import ConfigSource, get_settings, with_changes
from doubanscout.fetchers.http import FetchError


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="doubanscout",
        description="Douban movie, TV and celebrity metadata lookups",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Search movies and TV shows
  python -m doubanscout search "寄生虫"

  # Only TV shows
  python -m doubanscout search "请回答1988" --tv

  # Subject detail with its directors and actors
  python -m doubanscout subject 27010768 --with-celebrities

  # Logged-in session with tiered throttling
  python -m doubanscout login --cookies "bid=...; dbcl2=..." --avoid-risk-control
""",
    )

    parser.add_argument(
        "--cookies",
        default=None,
        help="Douban cookie string (default: DOUBANSCOUT_COOKIES)",
    )
    parser.add_argument(
        "--avoid-risk-control",
        action="store_true",
        help="Use the slow guest / logged-in throttling policies",
    )
    parser.add_argument(
        "--timeout",
        type=int,
        default=None,
        help="Request timeout in seconds (default: 20)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Debug logging",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    search = sub.add_parser("search", help="Search movies and TV shows")
    search.add_argument("keyword")
    kind = search.add_mutually_exclusive_group()
    kind.add_argument("--movies", action="store_true", help="Only movies")
    kind.add_argument("--tv", action="store_true", help="Only TV shows")

    suggest = sub.add_parser("suggest", help="Quick-suggest lookup")
    suggest.add_argument("keyword")

    subject = sub.add_parser("subject", help="Subject detail")
    subject.add_argument("sid")
    subject.add_argument(
        "--with-celebrities",
        action="store_true",
        help="Also fetch the dedicated celebrities page",
    )

    celebrities = sub.add_parser("celebrities", help="Directors and actors of a subject")
    celebrities.add_argument("sid")

    celebrity = sub.add_parser("celebrity", help="Celebrity profile")
    celebrity.add_argument("cid")

    photos = sub.add_parser("photos", help="Photo gallery of a subject or celebrity")
    photos.add_argument("id")
    photos.add_argument("--celebrity", action="store_true", help="ID is a celebrity id")

    celebrity_search = sub.add_parser("celebrity-search", help="Search celebrities")
    celebrity_search.add_argument("keyword")

    sub.add_parser("login", help="Check whether the configured cookies are logged in")

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> ConfigSource:
    """Build the configuration snapshot from env settings plus CLI overrides."""
    changes = {}
    if args.cookies is not None:
        changes["cookies"] = args.cookies
    if args.avoid_risk_control:
        changes["avoid_risk_control"] = True
    if args.timeout is not None:
        changes["request_timeout_s"] = args.timeout
    settings = with_changes(get_settings(), **changes)
    return ConfigSource(settings)


def to_jsonable(value: Any) -> Any:
    if is_dataclass(value):
        return asdict(value)
    if isinstance(value, list):
        return [to_jsonable(v) for v in value]
    return value


async def run_command(args: argparse.Namespace) -> Any:
    """Run one sub-command and return its result."""
    from doubanscout.orchestrator import DoubanClient

    async with DoubanClient(build_config(args)) as client:
        if args.command == "search":
            if args.movies:
                return await client.search_movies(args.keyword)
            if args.tv:
                return await client.search_tv(args.keyword)
            return await client.search_subjects(args.keyword)

        if args.command == "suggest":
            return await client.suggest_subjects(args.keyword)

        if args.command == "subject":
            subject = await client.get_subject(args.sid)
            if subject is not None and args.with_celebrities:
                celebrities = await client.get_celebrities_for_subject(args.sid)
                subject = replace(subject, celebrities=celebrities)
            return subject

        if args.command == "celebrities":
            return await client.get_celebrities_for_subject(args.sid)

        if args.command == "celebrity":
            return await client.get_celebrity(args.cid)

        if args.command == "photos":
            if args.celebrity:
                return await client.get_celebrity_photos(args.id)
            return await client.get_subject_photos(args.id)

        if args.command == "celebrity-search":
            return await client.search_celebrities(args.keyword)

        if args.command == "login":
            return await client.get_login_info()

    raise ValueError(f"Unknown command: {args.command}")


async def async_main(args: argparse.Namespace) -> int:
    """Async entry point."""
    try:
        result = await run_command(args)
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 130
    except FetchError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if result is None:
        print("Not found", file=sys.stderr)
        return 1

    print(json.dumps(to_jsonable(result), ensure_ascii=False, indent=2))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return asyncio.run(async_main(args))


if __name__ == "__main__":
    sys.exit(main())
