"""Encoding of canonical events into iCalendar and JSON artifacts."""
import json
import logging
import re
from datetime import datetime, time, timedelta, timezone
from typing import Iterable, List, Optional

from icalendar import Calendar, Event

from processor.models import CanonicalEvent

logger = logging.getLogger(__name__)

_SLUG_SEPARATORS = re.compile(r'[^a-z0-9]+', re.IGNORECASE)


class CalendarEncoder:
    """Maps canonical events to VEVENT entries of a single calendar."""

    PRODUCT_ID = '-//calendar-harvester//Calendar Harvest//EN'

    def __init__(self, calendar_name: str = 'School Calendar', uid_prefix: str = 'harvest'):
        """
        Initialize the encoder.

        Args:
            calendar_name: Value of X-WR-CALNAME
            uid_prefix: Leading component of every event UID
        """
        self.calendar_name = calendar_name
        self.uid_prefix = uid_prefix

    def encode(self, events: Iterable[CanonicalEvent], stamp: Optional[datetime] = None) -> str:
        """
        Serialize events as an iCalendar document.

        Args:
            events: Window-filtered canonical events
            stamp: DTSTAMP for every entry (default: now, UTC)

        Returns:
            iCalendar text
        """
        stamp = (stamp or datetime.now(timezone.utc)).astimezone(timezone.utc)

        calendar = Calendar()
        calendar.add('prodid', self.PRODUCT_ID)
        calendar.add('version', '2.0')
        calendar.add('calscale', 'GREGORIAN')
        calendar.add('method', 'PUBLISH')
        calendar.add('x-wr-calname', self.calendar_name)

        count = 0
        for event in events:
            calendar.add_component(self.encode_event(event, stamp))
            count += 1

        logger.info(f"Encoded {count} events into calendar '{self.calendar_name}'")
        return calendar.to_ical().decode('utf-8')

    def encode_event(self, event: CanonicalEvent, stamp: datetime) -> Event:
        """
        Build one VEVENT.

        Args:
            event: Canonical event
            stamp: DTSTAMP value

        Returns:
            icalendar Event component
        """
        entry = Event()
        entry.add('uid', self.generate_uid(event))
        entry.add('dtstamp', stamp)
        entry.add('summary', event.title)

        if event.all_day:
            first_day, end_day = self.all_day_dates(event)
            entry.add('dtstart', first_day)
            entry.add('dtend', end_day)
        else:
            entry.add('dtstart', event.start.astimezone(timezone.utc))
            entry.add('dtend', event.end.astimezone(timezone.utc))

        entry.add('status', 'CONFIRMED')
        entry.add('transp', 'OPAQUE')
        if event.location:
            entry.add('location', event.location)
        if event.description:
            entry.add('description', event.description)
        if event.url:
            entry.add('url', event.url)
        return entry

    @staticmethod
    def all_day_dates(event: CanonicalEvent):
        """
        Compute the DATE values of an all-day event.

        Dates are read in the frame where the start falls on midnight: the
        event's own timezone for days parsed from page text, UTC for date
        values taken from a feed. The canonical end is already exclusive,
        so a midnight end is used as DTEND as it is.

        Args:
            event: All-day canonical event

        Returns:
            Tuple of (first day, day after the last included day)
        """
        frame = event.start.tzinfo
        if event.start.time() != time.min and event.start.astimezone(timezone.utc).time() == time.min:
            frame = timezone.utc

        start = event.start.astimezone(frame)
        end = event.end.astimezone(frame)
        first_day = start.date()
        end_day = end.date() if end.time() == time.min else end.date() + timedelta(days=1)
        return first_day, max(end_day, first_day + timedelta(days=1))

    def generate_uid(self, event: CanonicalEvent) -> str:
        """
        Generate a stable identifier from the UTC start and a title slug.

        Args:
            event: Canonical event

        Returns:
            UID such as 'harvest-1756713600000-open-evening'
        """
        start_ms = int(event.start.astimezone(timezone.utc).timestamp() * 1000)
        slug = _SLUG_SEPARATORS.sub('-', event.title).lower()
        return f"{self.uid_prefix}-{start_ms}-{slug}"


def events_to_json(events: Iterable[CanonicalEvent]) -> str:
    """Serialize canonical events for downstream inspection."""
    records: List[dict] = [event.to_record() for event in events]
    return json.dumps(records, indent=2, ensure_ascii=False)

