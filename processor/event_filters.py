"""Deduplication, window filtering and coverage over canonical events."""
import re
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Iterable, List, Optional, Tuple

from processor.models import CanonicalEvent, Coverage, Window

_WHITESPACE = re.compile(r'\s+')


def _normalize_text(value: str) -> str:
    return _WHITESPACE.sub(' ', value or '').strip().casefold()


def identity_key(event: CanonicalEvent) -> Tuple[str, datetime, str]:
    """
    Build the identity of an occurrence.

    Args:
        event: Canonical event

    Returns:
        Tuple of (normalized title, UTC start instant, normalized location)
    """
    return (
        _normalize_text(event.title),
        event.start.astimezone(timezone.utc),
        _normalize_text(event.location)
    )


def deduplicate(events: Iterable[CanonicalEvent]) -> List[CanonicalEvent]:
    """
    Keep the first occurrence of every distinct event identity.

    Args:
        events: Events, possibly captured more than once

    Returns:
        Unique events in order of first occurrence
    """
    seen = set()
    unique = []
    for event in events:
        key = identity_key(event)
        if key in seen:
            continue
        seen.add(key)
        unique.append(event)
    return unique


def filter_window(events: Iterable[CanonicalEvent], window: Window) -> List[CanonicalEvent]:
    """Keep only events overlapping the window."""
    return [event for event in events if window.overlaps(event.start, event.end)]


def compute_coverage(events: Iterable[CanonicalEvent]) -> Coverage:
    """
    Compute the earliest and latest start across events.

    Args:
        events: Canonical events accumulated so far

    Returns:
        Coverage with both bounds None when there are no events
    """
    starts = [event.start for event in events]
    if not starts:
        return Coverage(None, None)
    return Coverage(min(starts), max(starts))


def window_bounds(
    tz: tzinfo,
    window_days: int,
    start_date: Optional[date] = None,
    today: Optional[date] = None
) -> Window:
    """
    Build the requested window starting at local midnight.

    Args:
        tz: Display timezone
        window_days: Window length in days
        start_date: Explicit first day, or None for today
        today: Override for the current date in the display timezone

    Returns:
        Window spanning window_days calendar days
    """
    if start_date is None:
        start_date = today or datetime.now(tz).date()
    start = datetime.combine(start_date, datetime.min.time(), tzinfo=tz)
    end = datetime.combine(
        start_date + timedelta(days=window_days), datetime.min.time(), tzinfo=tz
    )
    return Window(start, end)
