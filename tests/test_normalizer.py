"""Unit tests for EventNormalizer."""
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from processor.models import RawCapture
from processor.normalizer import EventNormalizer

LONDON = ZoneInfo('Europe/London')


@pytest.fixture
def normalizer():
    return EventNormalizer(LONDON)


class TestNormalizeRecord:
    """Test cases for single-record normalization."""

    def test_missing_end_defaults_to_one_hour(self, normalizer):
        """Test that a record without an end lasts one hour."""
        event = normalizer.normalize_record(
            {'title': 'Assembly', 'start': '2025-09-01T08:00:00Z'}
        )

        assert event.title == 'Assembly'
        assert event.start == datetime(2025, 9, 1, 8, 0, tzinfo=timezone.utc)
        assert event.end == datetime(2025, 9, 1, 9, 0, tzinfo=timezone.utc)
        assert event.start.tzinfo is LONDON
        assert event.start.hour == 9  # BST
        assert event.all_day is False

    def test_inverted_end_is_repaired_to_thirty_minutes(self, normalizer):
        """Test that an end before the start is replaced by start + 30 minutes."""
        event = normalizer.normalize_record({
            'title': 'Sports Day',
            'start': '2025-09-02T10:00:00Z',
            'end': '2025-09-02T09:00:00Z'
        })

        assert event.end - event.start == timedelta(minutes=30)

    def test_equal_end_is_repaired(self, normalizer):
        """Test that a zero-length event is repaired as well."""
        event = normalizer.normalize_record({
            'title': 'Bell',
            'start': '2025-09-02T10:00:00Z',
            'end': '2025-09-02T10:00:00Z'
        })

        assert event.end - event.start == timedelta(minutes=30)

    def test_epoch_milliseconds(self, normalizer):
        """Test that numeric timestamps are read as epoch milliseconds."""
        start_ms = int(datetime(2025, 9, 3, 12, 0, tzinfo=timezone.utc).timestamp() * 1000)
        event = normalizer.normalize_record({
            'name': 'Lunch Club',
            'starts_at': start_ms,
            'ends_at': start_ms + 45 * 60 * 1000
        })

        assert event.title == 'Lunch Club'
        assert event.start == datetime(2025, 9, 3, 12, 0, tzinfo=timezone.utc)
        assert event.end - event.start == timedelta(minutes=45)

    def test_naive_iso_is_treated_as_utc(self, normalizer):
        """Test that ISO strings without an offset are UTC instants."""
        event = normalizer.normalize_record({'title': 'Trip', 'dtstart': '2025-12-01T10:00:00'})

        assert event.start == datetime(2025, 12, 1, 10, 0, tzinfo=timezone.utc)

    def test_unparsable_start_is_skipped(self, normalizer):
        """Test that records with a bad start are dropped."""
        assert normalizer.normalize_record({'title': 'Broken', 'start': 'next tuesday'}) is None
        assert normalizer.normalize_record({'title': 'No start'}) is None
        assert normalizer.normalize_record({'title': 'Flag', 'start': True}) is None

    def test_alternate_keys_resolve_in_order(self, normalizer):
        """Test that the first present, non-null key wins."""
        event = normalizer.normalize_record({
            'start': None,
            'startDate': '2025-09-04T08:00:00Z',
            'dtstart': '2025-09-05T08:00:00Z',
            'title': None,
            'name': 'Open Evening',
            'place': 'Main Hall',
            'link': 'https://example.com/open-evening'
        })

        assert event.start == datetime(2025, 9, 4, 8, 0, tzinfo=timezone.utc)
        assert event.title == 'Open Evening'
        assert event.location == 'Main Hall'
        assert event.url == 'https://example.com/open-evening'

    def test_missing_title_uses_placeholder(self, normalizer):
        """Test the placeholder title."""
        event = normalizer.normalize_record({'start': '2025-09-01T08:00:00Z', 'title': '   '})

        assert event.title == EventNormalizer.DEFAULT_TITLE

    def test_all_day_flag(self, normalizer):
        """Test boolean-ish all-day values."""
        base = {'title': 'INSET', 'start': '2025-09-01T00:00:00Z'}

        assert normalizer.normalize_record({**base, 'allDay': True}).all_day is True
        assert normalizer.normalize_record({**base, 'all_day': 'true'}).all_day is True
        assert normalizer.normalize_record({**base, 'all_day': 0}).all_day is False
        assert normalizer.normalize_record(base).all_day is False

    @pytest.mark.parametrize('record', [
        {'start': '2025-09-01T08:00:00Z'},
        {'start': '2025-09-01T08:00:00Z', 'end': '2025-09-01T07:00:00Z'},
        {'start': 1756713600000, 'end': 1756713600000},
        {'start': '2025-09-01', 'end': 'garbage'},
    ])
    def test_end_is_always_after_start(self, normalizer, record):
        """Test that normalized events always satisfy end > start."""
        event = normalizer.normalize_record(record)

        assert event.end > event.start

    def test_normalization_is_idempotent(self, normalizer):
        """Test that re-normalizing a canonical event yields the same event."""
        event = normalizer.normalize_record({
            'title': 'Parents Evening',
            'start': '2025-09-10T16:00:00Z',
            'end': '2025-09-10T19:00:00Z',
            'location': 'Hall',
            'description': 'Book a slot',
            'url': 'https://example.com/pe',
            'allDay': False
        })

        assert normalizer.normalize_record(event.to_record()) == event


class TestPayloads:
    """Test cases for payload unwrapping and detection."""

    RECORD = {'title': 'Assembly', 'start': '2025-09-01T08:00:00Z'}

    @pytest.mark.parametrize('payload', [
        [RECORD],
        {'events': [RECORD]},
        {'data': [RECORD]},
    ])
    def test_all_wrapper_shapes(self, normalizer, payload):
        """Test bare, 'events' and 'data' shapes."""
        events = normalizer.normalize_payload(payload)

        assert len(events) == 1
        assert events[0].title == 'Assembly'

    def test_unknown_shape_has_no_events(self, normalizer):
        """Test that other payloads produce nothing."""
        assert normalizer.normalize_payload({'items': [self.RECORD]}) == []
        assert normalizer.normalize_payload('text') == []

    def test_is_likely_events_payload(self):
        """Test event payload detection."""
        assert EventNormalizer.is_likely_events_payload([{'StartsAt': 1}])
        assert EventNormalizer.is_likely_events_payload({'data': []})
        assert not EventNormalizer.is_likely_events_payload([{'id': 1}])
        assert not EventNormalizer.is_likely_events_payload([])
        assert not EventNormalizer.is_likely_events_payload({'user': 'x'})

    def test_normalize_captures_skips_unrelated_payloads(self, normalizer):
        """Test that only event-like captures are normalized."""
        captures = [
            RawCapture('https://x/api/user', 'application/json', {'user': 'me'}),
            RawCapture('https://x/api/events', 'application/json', {'events': [self.RECORD]}),
            RawCapture('https://x/api/feed', 'application/json', [self.RECORD, {'title': 'bad'}]),
        ]

        events = normalizer.normalize_captures(captures)

        assert len(events) == 2
