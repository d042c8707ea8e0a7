"""Heuristic event extraction from loosely structured page text."""
import logging
import re
from datetime import date, datetime, timedelta, tzinfo
from typing import Iterable, List, Optional

from processor.models import CanonicalEvent, TextFragment

logger = logging.getLogger(__name__)

DASH_VARIANTS = re.compile(r'\s*[‐‑‒–—―−-]\s*')

MONTHS = {
    'jan': 1, 'feb': 2, 'mar': 3, 'apr': 4, 'may': 5, 'jun': 6,
    'jul': 7, 'aug': 8, 'sep': 9, 'oct': 10, 'nov': 11, 'dec': 12
}

_DATE = r'(?P<day>\d{1,2})\s+(?P<month>[A-Za-z]{3,9})\.?,?\s+(?P<year>\d{4})'
_TIMES = r',?\s+(?P<start>\d{1,2}:\d{2})\s*-\s*(?P<end>\d{1,2}:\d{2})'

WEEKDAY_TIMED = re.compile(
    r'\b(?:Mon|Tue|Wed|Thu|Fri|Sat|Sun)[a-z]*\.?,?\s+' + _DATE + _TIMES,
    re.IGNORECASE
)
TIMED = re.compile(r'\b' + _DATE + _TIMES, re.IGNORECASE)
DATE_ONLY = re.compile(r'\b' + _DATE, re.IGNORECASE)


class TextHeuristicExtractor:
    """Best-effort parser for event text fragments scraped from markup."""

    DEFAULT_TITLE = 'Untitled event'

    def __init__(self, tz: tzinfo):
        """
        Initialize the extractor.

        Args:
            tz: Display timezone used to anchor parsed dates and times
        """
        self.tz = tz

    def extract(self, fragments: Iterable[TextFragment]) -> List[CanonicalEvent]:
        """
        Convert fragments into canonical events, dropping unparsable ones.

        Args:
            fragments: Text fragments from rendered markup

        Returns:
            List of canonical events
        """
        events = []
        for fragment in fragments:
            event = self.extract_one(fragment)
            if event:
                events.append(event)
        return events

    def extract_one(self, fragment: TextFragment) -> Optional[CanonicalEvent]:
        """
        Parse a single fragment.

        Args:
            fragment: Text fragment with a free-form 'when' text

        Returns:
            CanonicalEvent or None if no date pattern matches
        """
        if not fragment.when_text:
            return None
        cleaned = DASH_VARIANTS.sub(' - ', fragment.when_text)

        span = self._parse_timed(cleaned)
        all_day = False
        if span is None:
            span = self._parse_all_day(cleaned)
            all_day = True
        if span is None:
            logger.debug(f"No date pattern matched: {fragment.when_text!r}")
            return None

        start, end = span
        return CanonicalEvent(
            title=fragment.title.strip() or self.DEFAULT_TITLE,
            start=start,
            end=end,
            location=(fragment.location_text or '').strip(),
            url=fragment.href or None,
            all_day=all_day
        )

    def _parse_timed(self, text: str):
        for pattern in (WEEKDAY_TIMED, TIMED):
            match = pattern.search(text)
            if not match:
                continue
            day = self._to_date(match)
            start_time = self._to_time(match.group('start'))
            end_time = self._to_time(match.group('end'))
            if day is None or start_time is None or end_time is None:
                continue
            start = datetime.combine(day, start_time, tzinfo=self.tz)
            end = datetime.combine(day, end_time, tzinfo=self.tz)
            if end <= start:
                # Range crosses midnight
                end = datetime.combine(day + timedelta(days=1), end_time, tzinfo=self.tz)
            return start, end
        return None

    def _parse_all_day(self, text: str):
        match = DATE_ONLY.search(text)
        day = self._to_date(match) if match else None
        if day is None:
            return None
        start = datetime.combine(day, datetime.min.time(), tzinfo=self.tz)
        end = datetime.combine(day + timedelta(days=1), datetime.min.time(), tzinfo=self.tz)
        return start, end

    @staticmethod
    def _to_date(match) -> Optional[date]:
        month = MONTHS.get(match.group('month')[:3].lower())
        if month is None:
            return None
        try:
            return date(int(match.group('year')), month, int(match.group('day')))
        except ValueError:
            return None

    @staticmethod
    def _to_time(text: str):
        try:
            return datetime.strptime(text, '%H:%M').time()
        except ValueError:
            return None
