"""Normalizer for structured event records captured from calendar responses."""
import logging
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Any, Dict, Iterable, List, Optional

from dateutil.parser import isoparse

from processor.models import CanonicalEvent, RawCapture

logger = logging.getLogger(__name__)


class EventNormalizer:
    """Converts raw structured records into canonical events."""

    DEFAULT_TITLE = 'Untitled event'
    DEFAULT_DURATION = timedelta(hours=1)
    REPAIRED_DURATION = timedelta(minutes=30)

    TITLE_KEYS = ('title', 'name', 'summary')
    LOCATION_KEYS = ('location', 'place', 'venue')
    DESCRIPTION_KEYS = ('description', 'details')
    URL_KEYS = ('url', 'link', 'event_url', 'href')
    ALL_DAY_KEYS = ('allDay', 'all_day', 'is_all_day', 'allday')
    START_KEYS = (
        'start', 'starts_at', 'start_date', 'startDate', 'startsAt',
        'starts', 'start_time', 'startTime', 'begins', 'dtstart'
    )
    END_KEYS = (
        'end', 'ends_at', 'end_date', 'endDate', 'endsAt',
        'ends', 'end_time', 'endTime', 'finishes', 'dtend'
    )
    TRUTHY_STRINGS = ('true', '1', 'yes', 'y')

    def __init__(self, tz: tzinfo):
        """
        Initialize the normalizer.

        Args:
            tz: Display timezone canonical events are stored in
        """
        self.tz = tz

    def normalize_captures(self, captures: Iterable[RawCapture]) -> List[CanonicalEvent]:
        """
        Normalize every record of every capture that looks like an event feed.

        Args:
            captures: Raw captures in the order they were observed

        Returns:
            List of canonical events, possibly containing repeats
        """
        events = []
        for capture in captures:
            if not self.is_likely_events_payload(capture.payload):
                continue
            batch = self.normalize_payload(capture.payload)
            if batch:
                logger.debug(
                    f"Normalized {len(batch)} events from {capture.url}"
                )
            events.extend(batch)
        return events

    def normalize_payload(self, payload: Any) -> List[CanonicalEvent]:
        """
        Normalize all records found in a capture payload.

        Args:
            payload: Decoded JSON body (array, or object wrapping an array)

        Returns:
            List of canonical events
        """
        events = []
        for record in self.unwrap_payload(payload):
            if not isinstance(record, dict):
                continue
            event = self.normalize_record(record)
            if event:
                events.append(event)
        return events

    def normalize_record(self, record: Dict[str, Any]) -> Optional[CanonicalEvent]:
        """
        Normalize a single raw record.

        Args:
            record: Mapping of arbitrary keys to values

        Returns:
            CanonicalEvent or None if the start timestamp cannot be parsed
        """
        start = self._parse_instant(self._resolve(record, self.START_KEYS))
        if start is None:
            logger.debug(f"Skipping record with unparsable start: {record!r}")
            return None

        raw_end = self._resolve(record, self.END_KEYS)
        end = self._parse_instant(raw_end)
        if raw_end is None or end is None:
            end = start + self.DEFAULT_DURATION
        elif end <= start:
            logger.debug(f"Repairing inverted end for record: {record!r}")
            end = start + self.REPAIRED_DURATION

        title = str(self._resolve(record, self.TITLE_KEYS) or '').strip()
        url = self._resolve(record, self.URL_KEYS)

        return CanonicalEvent(
            title=title or self.DEFAULT_TITLE,
            start=start.astimezone(self.tz),
            end=end.astimezone(self.tz),
            location=str(self._resolve(record, self.LOCATION_KEYS) or '').strip(),
            description=str(self._resolve(record, self.DESCRIPTION_KEYS) or ''),
            url=str(url) if url else None,
            all_day=self._parse_flag(self._resolve(record, self.ALL_DAY_KEYS))
        )

    @staticmethod
    def unwrap_payload(payload: Any) -> List[Any]:
        """
        Locate the event array inside a payload.

        Args:
            payload: Bare array, or object with an 'events' or 'data' array

        Returns:
            The event array, or an empty list
        """
        if isinstance(payload, list):
            return payload
        if isinstance(payload, dict):
            for key in ('events', 'data'):
                if isinstance(payload.get(key), list):
                    return payload[key]
        return []

    @classmethod
    def is_likely_events_payload(cls, payload: Any) -> bool:
        """
        Check whether a payload plausibly carries calendar events.

        Args:
            payload: Decoded JSON body

        Returns:
            True for a non-empty array of objects with a start-like key, or
            an object wrapping an 'events' or 'data' array
        """
        if isinstance(payload, list):
            if not payload or not isinstance(payload[0], dict):
                return False
            keys = {key.lower() for key in payload[0]}
            return any(key.lower() in keys for key in cls.START_KEYS)
        if isinstance(payload, dict):
            return any(isinstance(payload.get(key), list) for key in ('events', 'data'))
        return False

    @staticmethod
    def _resolve(record: Dict[str, Any], keys: Iterable[str]) -> Any:
        """Return the first present, non-null value among alternate keys."""
        for key in keys:
            value = record.get(key)
            if value is not None and value != '':
                return value
        return None

    def _parse_instant(self, value: Any) -> Optional[datetime]:
        """
        Parse an epoch-millisecond number or ISO-8601 string as a UTC instant.

        Args:
            value: Raw timestamp value

        Returns:
            Timezone-aware datetime or None if parsing fails
        """
        if value is None or isinstance(value, bool):
            return None
        try:
            if isinstance(value, (int, float)):
                return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
            parsed = isoparse(str(value).strip())
        except (ValueError, OverflowError, OSError):
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    def _parse_flag(self, value: Any) -> bool:
        if isinstance(value, str):
            return value.strip().lower() in self.TRUTHY_STRINGS
        return bool(value)
