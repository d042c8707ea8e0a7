"""Data models for harvested calendar events."""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class CanonicalEvent:
    """Normalized, timezone-anchored event."""
    title: str
    start: datetime
    end: datetime
    location: str = ''
    description: str = ''
    url: Optional[str] = None
    all_day: bool = False

    def __post_init__(self):
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise ValueError(f"Event '{self.title}' has a naive timestamp")
        if self.end <= self.start:
            raise ValueError(
                f"Event '{self.title}' ends at or before its start"
            )

    def to_record(self) -> Dict[str, Any]:
        """
        Convert the event to a plain record using the standard key names.

        Returns:
            Dictionary suitable for JSON output or re-normalization
        """
        return {
            'title': self.title,
            'location': self.location,
            'description': self.description,
            'url': self.url,
            'allDay': self.all_day,
            'start': self.start.isoformat(),
            'end': self.end.isoformat()
        }


@dataclass(frozen=True)
class RawCapture:
    """Structured response payload observed while the calendar was loading."""
    url: str
    content_kind: str
    payload: Any


@dataclass(frozen=True)
class TextFragment:
    """Loosely structured event text scraped from rendered markup."""
    title: str
    when_text: str
    location_text: str = ''
    href: Optional[str] = None


@dataclass(frozen=True)
class Window:
    """Requested date range; events overlap it when start < end and end > start."""
    start: datetime
    end: datetime

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return start < self.end and end > self.start

    def split(self) -> Tuple['Window', 'Window']:
        """Split the window into two halves at its midpoint."""
        midpoint = self.start + (self.end - self.start) / 2
        return Window(self.start, midpoint), Window(midpoint, self.end)


@dataclass(frozen=True)
class Coverage:
    """Earliest and latest event starts across an event set."""
    earliest_start: Optional[datetime]
    latest_start: Optional[datetime]

    EPSILON = timedelta(seconds=1)

    @property
    def is_empty(self) -> bool:
        return self.earliest_start is None

    def reaches_start(self, window: Window) -> bool:
        """An empty event set never proves coverage."""
        return not self.is_empty and self.earliest_start <= window.start

    def reaches_end(self, window: Window) -> bool:
        return (
            not self.is_empty
            and self.latest_start >= window.end - self.EPSILON
        )


@dataclass(frozen=True)
class ExpectedSplit:
    """Exact event counts expected in each half of the window."""
    week1: int
    week2: int


@dataclass
class NavigationOutcome:
    """Summary of a coverage-driven navigation run."""
    backward_steps: int = 0
    forward_steps: int = 0
    stop_reason: str = ''
    covered: bool = False


@dataclass
class HarvestResult:
    """Events and bookkeeping produced by a single harvest run."""
    events: List[CanonicalEvent]
    captures: int
    fragments: int
    navigation: NavigationOutcome = field(default_factory=NavigationOutcome)


@dataclass
class PublishResult:
    """Outcome of a publish attempt."""
    published: bool
    event_count: int
    reason: Optional[str] = None
    rolled_back: bool = False
