"""Unit tests for TextHeuristicExtractor."""
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from processor.models import TextFragment
from processor.text_extractor import TextHeuristicExtractor

LONDON = ZoneInfo('Europe/London')


@pytest.fixture
def extractor():
    return TextHeuristicExtractor(LONDON)


class TestTextHeuristicExtractor:
    """Test cases for text fragment parsing."""

    def test_weekday_timed_pattern(self, extractor):
        """Test a fragment with weekday, date and time range."""
        event = extractor.extract_one(
            TextFragment('Year 7 Induction', 'Wed 3 Sep 2025 09:00 - 10:30', 'Library', '/e/1')
        )

        assert event.all_day is False
        assert event.start == datetime(2025, 9, 3, 9, 0, tzinfo=LONDON)
        assert event.end == datetime(2025, 9, 3, 10, 30, tzinfo=LONDON)
        assert event.location == 'Library'
        assert event.url == '/e/1'

    def test_en_dash_is_normalized(self, extractor):
        """Test that dash variants are treated as a hyphen."""
        event = extractor.extract_one(TextFragment('Choir', 'Thursday 4 September 2025 15:30–16:15'))

        assert event.start == datetime(2025, 9, 4, 15, 30, tzinfo=LONDON)
        assert event.end == datetime(2025, 9, 4, 16, 15, tzinfo=LONDON)

    def test_timed_pattern_without_weekday(self, extractor):
        """Test a date and time range without a weekday."""
        event = extractor.extract_one(TextFragment('Drama', '12 Sep 2025 18:00 — 20:00'))

        assert event.all_day is False
        assert event.start == datetime(2025, 9, 12, 18, 0, tzinfo=LONDON)

    def test_date_only_is_all_day(self, extractor):
        """Test that a bare date becomes a single all-day event."""
        event = extractor.extract_one(TextFragment('INSET Day', 'Mon 1 Sep 2025'))

        assert event.all_day is True
        assert event.start == datetime(2025, 9, 1, tzinfo=LONDON)
        assert event.end == datetime(2025, 9, 2, tzinfo=LONDON)

    def test_overnight_range_ends_next_day(self, extractor):
        """Test that a range crossing midnight ends on the following day."""
        event = extractor.extract_one(TextFragment('Sleepover', '5 Sep 2025 22:00 - 01:00'))

        assert event.end == datetime(2025, 9, 6, 1, 0, tzinfo=LONDON)

    @pytest.mark.parametrize('when_text', [
        '',
        'Every Tuesday',
        '31 Feb 2025',
        '3 Smarch 2025 09:00 - 10:00',
    ])
    def test_unparsable_fragments_are_dropped(self, extractor, when_text):
        """Test that fragments matching no pattern yield nothing."""
        assert extractor.extract_one(TextFragment('Mystery', when_text)) is None

    def test_extract_keeps_only_parsed(self, extractor):
        """Test extraction over a mixed list."""
        events = extractor.extract([
            TextFragment('A', '1 Sep 2025'),
            TextFragment('B', 'soon'),
            TextFragment('', '2 Sep 2025 10:00 - 11:00'),
        ])

        assert [event.title for event in events] == ['A', TextHeuristicExtractor.DEFAULT_TITLE]
