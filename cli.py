#!/usr/bin/env python3
"""Tutoring calendar CLI."""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Iterable

from dotenv import load_dotenv

from tutoring_calendar.calendar import (
    CalendarEvent,
    EntityType,
    ExpansionWindow,
    expand_recurring_events,
    load_calendar_state,
    materialize_due_occurrences,
    parse_instant,
    split_availabilities,
)
from tutoring_calendar.calendar.session import parse_documents
from tutoring_calendar.config import ConfigError, Settings, load_settings
from tutoring_calendar.store import StoreError, get_document_store


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tutoring-calendar",
        description="Inspect and maintain the tutoring calendar store.",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")

    subparsers = parser.add_subparsers(dest="command", required=True)

    expand_parser = subparsers.add_parser(
        "expand",
        help="Print stored events of one kind with their recurring occurrences.",
    )
    expand_parser.add_argument(
        "entity",
        choices=[kind.value for kind in EntityType],
        help="Which collection to expand.",
    )
    expand_parser.add_argument("--start", help="Window start (ISO 8601). Defaults to now.")
    expand_parser.add_argument("--end", help="Window end (ISO 8601). Defaults to the configured horizon.")
    expand_parser.add_argument(
        "--max-occurrences",
        type=int,
        help="Occurrence cap for weekly series (fortnightly gets half).",
    )

    split_parser = subparsers.add_parser(
        "split",
        help="Print tutor availability with staffed shifts removed.",
    )
    split_parser.add_argument("--tutor", help="Only show this tutor's availability.")

    subparsers.add_parser(
        "materialize",
        help="Persist every started occurrence that is not stored yet.",
    )

    subparsers.add_parser(
        "check-config",
        help="Validate TCAL_* settings and show the resolved configuration.",
    )

    return parser


def _format_rows(events: Iterable[CalendarEvent], tz: tzinfo) -> str:
    lines = []
    for event in events:
        if event.is_instance:
            marker = "materialized" if event.materialized else "occurrence"
        elif event.is_recurring:
            marker = f"series ({event.recurring})"
        else:
            marker = "single"
        lines.append(
            f"{event.id:<48} {_local(event.start, tz):<26} {_local(event.end, tz):<26} {marker}"
        )
    return "\n".join(lines) if lines else "(no events)"


def _local(instant: datetime, tz: tzinfo) -> str:
    return instant.astimezone(tz).isoformat()


async def _expand(settings: Settings, entity: str, start: str | None, end: str | None, cap: int | None) -> int:
    kind = EntityType(entity)
    now = datetime.now(timezone.utc)
    window = ExpansionWindow(
        range_start=parse_instant(start) or now,
        range_end=parse_instant(end) or now + timedelta(weeks=settings.horizon_weeks),
        max_occurrences=cap or settings.max_occurrences,
    )
    store = get_document_store(settings)
    docs = await store.list(settings.collection_for(kind))
    print(_format_rows(expand_recurring_events(parse_documents(docs, kind), window), settings.tz))
    return 0


async def _split(settings: Settings, tutor: str | None) -> int:
    state, _ = await load_calendar_state(get_document_store(settings), settings)
    availabilities = state.availabilities
    if tutor:
        availabilities = [block for block in availabilities if block.tutor == tutor]
    for slot in split_availabilities(availabilities, state.shifts):
        start, end = _local(slot.start, settings.tz), _local(slot.end, settings.tz)
        print(f"{slot.tutor or '-':<32} {start:<26} {end:<26} {slot.id}")
    return 0


async def _materialize(settings: Settings) -> int:
    store = get_document_store(settings)
    state, persisted = await load_calendar_state(store, settings)
    result = await materialize_due_occurrences(
        store,
        state.all_events(),
        persisted,
        collection_for=settings.collection_for,
        batch_size=settings.batch_size,
    )
    print(f"Persisted {len(result.persisted)} occurrences ({result.skipped} skipped).")
    if result.errors:
        print(f"{result.failed_batches} batches failed:", file=sys.stderr)
        for error in result.errors:
            print(f" - {error}", file=sys.stderr)
        return 1
    return 0


def _cmd_check_config() -> int:
    try:
        settings = load_settings()
    except ConfigError as exc:
        print(f"Config check failed: {exc}", file=sys.stderr)
        return 1

    print(f"Environment: {settings.environment}")
    print(f"Timezone: {settings.timezone}")
    print(f"Store: {'file (' + str(settings.store_dir) + ')' if settings.force_file_store else 'firestore'}")
    for entity_type, collection in settings.collections.items():
        print(f"  {entity_type:<16} -> {collection}")
    print(f"Max occurrences: {settings.max_occurrences} | Horizon: {settings.horizon_weeks} weeks")
    print(f"Materialize every {settings.materialize_interval_seconds:g}s in batches of {settings.batch_size}")
    print(f"Teams meetings: {'enabled' if settings.meeting_access_token else 'disabled'}")
    return 0


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    if args.command == "check-config":
        return _cmd_check_config()

    try:
        settings = load_settings()
        if args.command == "expand":
            return asyncio.run(
                _expand(settings, args.entity, args.start, args.end, args.max_occurrences)
            )
        if args.command == "split":
            return asyncio.run(_split(settings, args.tutor))
        if args.command == "materialize":
            return asyncio.run(_materialize(settings))
    except (ConfigError, StoreError, ValueError) as exc:
        print(f"{args.command} failed: {exc}", file=sys.stderr)
        return 1

    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    sys.exit(main())
