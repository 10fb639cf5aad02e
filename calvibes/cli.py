"""
Command-line entry point: analyze an exported calendar JSON file.

Usage:
    calvibes-analyze EVENTS.json [OPTIONS]

Examples:
    # Create the category cache database
    calvibes-analyze --init-db

    # Analyze a Google Calendar events.list export
    calvibes-analyze events_2024.json --user alice

    # Year-over-year comparison
    calvibes-analyze events_2024.json --compare events_2023.json

    # Inspect and correct cached categories
    calvibes-analyze --list-categories
    calvibes-analyze --override "Boxing" RECOVERY
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from calvibes.observability.logging import configure_logging, get_logger

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="calvibes-analyze",
        description="Behavioral analytics report for calendar events",
    )
    parser.add_argument(
        "events", nargs="?", help="JSON file with events (list or {'items': [...]})"
    )
    parser.add_argument("--user", help="Cache owner (default: CALVIBES_DEFAULT_USER)")
    parser.add_argument(
        "--compare", metavar="PREVIOUS", help="Second events file to compare against"
    )
    parser.add_argument("--db", help="SQLite path (overrides CALVIBES_DB_PATH)")
    parser.add_argument(
        "--init-db", action="store_true", help="Create the database schema and exit"
    )
    parser.add_argument(
        "--list-categories", action="store_true", help="Print cached category mappings"
    )
    parser.add_argument(
        "--override",
        nargs=2,
        metavar=("TITLE", "META"),
        help="Pin TITLE to a meta-category (INVESTMENT, RECOVERY, MAINTENANCE, PASSIVE)",
    )
    parser.add_argument(
        "--import-legacy", metavar="FILE", help="Import a {canonical_key: meta} JSON mapping"
    )
    parser.add_argument("--no-llm", action="store_true", help="Do not call Gemini for new titles")
    parser.add_argument("--indent", type=int, default=2, help="JSON indent (default: 2)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def _dump(payload: object, indent: int) -> None:
    json.dump(payload, sys.stdout, indent=indent or None, ensure_ascii=False)
    sys.stdout.write("\n")


def main(argv: list[str] | None = None) -> int:
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        configure_logging(logging.DEBUG)

    if args.db:
        os.environ["CALVIBES_DB_PATH"] = args.db
    if args.no_llm:
        os.environ["CALVIBES_USE_LLM"] = "false"

    # Imported after env overrides so settings and the pool see them
    from calvibes.analysis.comparison import compare_reports
    from calvibes.analysis.engine import AnalysisEngine, AnalysisError
    from calvibes.calendar.parser import CalendarParsingError, load_events_file
    from calvibes.classification.tuner import CategoryTuner
    from calvibes.infrastructure.database import get_db_path, init_database, reset_pool
    from calvibes.infrastructure.settings import DEFAULT_USER_ID
    from calvibes.storage.category_cache import CategoryCacheRepository

    reset_pool()
    user_id = args.user or DEFAULT_USER_ID

    if args.init_db:
        init_database()
        print(f"Initialized {get_db_path()}")
        return 0

    if not get_db_path().exists():
        init_database()

    try:
        if args.import_legacy:
            mapping = json.loads(Path(args.import_legacy).read_text(encoding="utf-8"))
            if not isinstance(mapping, dict):
                parser.error("--import-legacy expects a JSON object")
            count = CategoryCacheRepository.import_legacy(user_id, mapping)
            print(f"Imported {count} categories for {user_id}")
            return 0

        if args.override:
            title, meta = args.override
            entry = CategoryTuner().override(user_id, title, meta)
            _dump(entry.model_dump(mode="json"), args.indent)
            return 0

        if args.list_categories:
            entries = CategoryTuner().list_categories(user_id)
            _dump([entry.model_dump(mode="json") for entry in entries], args.indent)
            return 0

        if not args.events:
            parser.error("an events file is required")

        engine = AnalysisEngine()
        report = engine.analyze(load_events_file(args.events), user_id)

        if args.compare:
            previous = engine.analyze(load_events_file(args.compare), user_id)
            _dump(
                {
                    "current": report.to_payload(),
                    "previous": previous.to_payload(),
                    "comparison": compare_reports(report, previous).to_payload(),
                },
                args.indent,
            )
        else:
            _dump(report.to_payload(), args.indent)
        return 0

    except (AnalysisError, CalendarParsingError, ValueError, OSError) as e:
        logger.error("%s", e)
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
