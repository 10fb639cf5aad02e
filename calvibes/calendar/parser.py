"""
Calendar adapter utilities for converting event payloads into RawEvent.

Accepts Google Calendar ``events.list`` items::

    {"id": "...", "summary": "Deep Work",
     "start": {"dateTime": "2024-03-04T09:00:00+01:00"},
     "end": {"dateTime": "2024-03-04T10:30:00+01:00"}}

and flat export records ``{"title", "start", "end"}``. Events without both
timestamps (all-day events carry ``date`` instead of ``dateTime``) are not
timed activity and are dropped, never raised, by parse_events().
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from datetime import datetime, timezone
from hashlib import sha256
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from calvibes.analysis.models import RawEvent
from calvibes.observability.logging import get_logger
from calvibes.observability.telemetry import counter, log_event

logger = get_logger(__name__)


class CalendarParsingError(ValueError):
    """Raised when a calendar item cannot be converted into a RawEvent."""


def _hash_id(value: Any) -> str:
    return sha256(str(value or "").encode()).hexdigest()[:12]


def _timestamp_field(item: dict[str, Any], name: str) -> Any:
    value = item.get(name)
    if isinstance(value, dict):
        # Google shape: {"dateTime": ..., "timeZone": ...} or {"date": ...} for all-day
        return value.get("dateTime")
    return value


def _parse_timestamp(value: Any, name: str) -> datetime:
    if value is None or value == "":
        raise CalendarParsingError(f"missing {name} timestamp")

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise CalendarParsingError(f"invalid {name} timestamp: {value!r}") from exc
    else:
        raise CalendarParsingError(f"unsupported {name} timestamp type: {type(value).__name__}")

    if parsed.tzinfo is None:
        counter("calendar.naive_timestamp")
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_event(item: dict[str, Any]) -> RawEvent:
    """
    Convert one calendar item into a RawEvent.

    Raises:
        CalendarParsingError: On missing or invalid timestamps
    """
    if not isinstance(item, dict):
        raise CalendarParsingError("event must be a dict")

    title = item.get("summary", item.get("title"))
    start = _parse_timestamp(_timestamp_field(item, "start"), "start")
    end = _parse_timestamp(_timestamp_field(item, "end"), "end")

    try:
        return RawEvent(title=title if isinstance(title, str) else "", start=start, end=end)
    except ValidationError as exc:
        raise CalendarParsingError(f"event validation failed: {exc.errors()[0]['msg']}") from exc


def parse_events(items: Iterable[Any]) -> list[RawEvent]:
    """
    Convert a batch of items, dropping the ones that are not timed events.

    Items that already are RawEvents pass through unchanged.

    Side Effects:
        - Increments calendar.parsed / calendar.dropped counters
    """
    events: list[RawEvent] = []
    dropped = 0
    for item in items:
        if isinstance(item, RawEvent):
            events.append(item)
            continue
        try:
            events.append(parse_event(item))
        except CalendarParsingError as exc:
            dropped += 1
            item_id = item.get("id") if isinstance(item, dict) else None
            log_event("calendar.event_dropped", event_id_hash=_hash_id(item_id), reason=str(exc))

    counter("calendar.parsed", len(events))
    if dropped:
        counter("calendar.dropped", dropped)
        logger.info("Dropped %d calendar items without usable timestamps", dropped)
    return events


def load_events_file(path: Path | str) -> list[RawEvent]:
    """
    Read events from a JSON file.

    The file may hold a list of items or a Google Calendar response object
    with an ``items`` list.

    Raises:
        CalendarParsingError: If the file is not JSON or has no event list
    """
    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise CalendarParsingError(f"{path}: not valid JSON") from exc

    if isinstance(payload, dict):
        payload = payload.get("items")
    if not isinstance(payload, list):
        raise CalendarParsingError(f"{path}: expected a list of events or an 'items' list")

    return parse_events(payload)
