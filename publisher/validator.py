"""Checks that an encoded calendar faithfully represents the harvested events."""
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Iterable, List, Optional

from icalendar import Calendar

from processor.models import CanonicalEvent, ExpectedSplit, Window
from publisher.errors import SanityCheckError, ValidationError
from publisher.ics_encoder import CalendarEncoder

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecodedEvent:
    """VEVENT read back from an encoded calendar."""
    summary: str
    start: datetime
    end: datetime
    all_day: bool


def check_minimum(events: List[CanonicalEvent], min_events: int) -> None:
    """
    Reject a harvest with too few windowed events.

    Args:
        events: Window-filtered canonical events
        min_events: Minimum acceptable count

    Raises:
        SanityCheckError: If fewer than min_events events were harvested
    """
    if len(events) < min_events:
        raise SanityCheckError(
            f"Sanity check: only {len(events)} events found (min {min_events})"
        )


class RoundTripValidator:
    """Decodes an iCalendar artifact and compares it with its source events."""

    def __init__(self, tz: tzinfo):
        """
        Initialize the validator.

        Args:
            tz: Display timezone used to anchor DATE values
        """
        self.tz = tz

    def decode(self, ics_text: str) -> List[DecodedEvent]:
        """
        Parse every VEVENT of an iCalendar document.

        Args:
            ics_text: Serialized calendar

        Returns:
            List of DecodedEvent objects

        Raises:
            ValidationError: If the document cannot be parsed
        """
        try:
            calendar = Calendar.from_ical(ics_text)
        except ValueError as e:
            raise ValidationError(f"Validation failed: calendar is unreadable ({e})") from e

        decoded = []
        for component in calendar.walk('VEVENT'):
            start_value = component.decoded('DTSTART')
            all_day = not isinstance(start_value, datetime)
            start = self._to_datetime(start_value)
            if 'DTEND' in component:
                end = self._to_datetime(component.decoded('DTEND'))
            elif 'DURATION' in component:
                end = start + component.decoded('DURATION')
            else:
                end = start + (timedelta(days=1) if all_day else timedelta(0))
            decoded.append(DecodedEvent(
                summary=str(component.get('SUMMARY', '')),
                start=start,
                end=end,
                all_day=all_day
            ))
        return decoded

    def validate(
        self,
        ics_text: str,
        source_events: Iterable[CanonicalEvent],
        window: Window,
        expected: Optional[ExpectedSplit] = None
    ) -> int:
        """
        Assert the artifact holds the same windowed events as the source.

        Args:
            ics_text: Serialized calendar
            source_events: Canonical events the calendar was encoded from
            window: Requested window
            expected: Exact per-half counts to enforce, if configured

        Returns:
            Number of events in the window

        Raises:
            ValidationError: On a count mismatch or an expected-split mismatch
        """
        source_window = [
            event for event in map(self._as_encoded, source_events)
            if window.overlaps(event.start, event.end)
        ]
        decoded_window = [
            event for event in self.decode(ics_text)
            if window.overlaps(event.start, event.end)
        ]

        if len(decoded_window) != len(source_window):
            raise ValidationError(
                f"Validation failed: ICS count {len(decoded_window)} != "
                f"source count {len(source_window)}"
            )

        if expected is not None:
            self._check_split('Source', source_window, window, expected)
            self._check_split('ICS', decoded_window, window, expected)

        logger.info(f"Validated {len(source_window)} events against the source")
        return len(source_window)

    @staticmethod
    def _check_split(label: str, events, window: Window, expected: ExpectedSplit) -> None:
        first_half, _ = window.split()
        week1 = sum(1 for event in events if event.start < first_half.end)
        week2 = len(events) - week1
        if week1 != expected.week1 or week2 != expected.week2:
            raise ValidationError(
                f"{label} window counts differ from expected "
                f"(week1={week1}, week2={week2}; expected "
                f"week1={expected.week1}, week2={expected.week2})"
            )

    def _as_encoded(self, event: CanonicalEvent) -> DecodedEvent:
        """Place a source event on the same day grid its encoded DATE values decode to."""
        if not event.all_day:
            return DecodedEvent(event.title, event.start, event.end, False)
        first_day, end_day = CalendarEncoder.all_day_dates(event)
        return DecodedEvent(
            summary=event.title,
            start=self._to_datetime(first_day),
            end=self._to_datetime(end_day),
            all_day=True
        )

    def _to_datetime(self, value) -> datetime:
        if isinstance(value, datetime):
            return value if value.tzinfo else value.replace(tzinfo=self.tz)
        if isinstance(value, date):
            return datetime.combine(value, time.min, tzinfo=self.tz)
        raise ValidationError(f"Validation failed: unsupported date value {value!r}")
