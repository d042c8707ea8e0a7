"""Unit tests for PublishGate."""
import json
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from processor.models import CanonicalEvent
from publisher.errors import ValidationError
from publisher.publish_gate import PublishGate
from storage.artifact_store import FileArtifactStore

LONDON = ZoneInfo('Europe/London')

EVENTS = [
    CanonicalEvent(
        title='Assembly',
        start=datetime(2025, 9, 1, 9, 0, tzinfo=LONDON),
        end=datetime(2025, 9, 1, 10, 0, tzinfo=LONDON)
    )
]


def accept(text):
    return 1


def reject(text):
    raise ValidationError('ICS count 0 != source count 1')


@pytest.fixture
def store(tmp_path):
    return FileArtifactStore(str(tmp_path))


def make_gate(store, protect=True):
    return PublishGate(
        store,
        output_path='public/calendar.ics',
        output_json_path='public/events.json',
        last_good_path='public/calendar.lastgood.ics',
        protect_last_good=protect
    )


class TestPublishGate:
    """Test cases for publishing with rollback."""

    def test_successful_publish_updates_last_good(self, store):
        """Test that a valid artifact is published and becomes last-known-good."""
        result = make_gate(store).publish('NEW', EVENTS, accept)

        assert result.published is True
        assert result.event_count == 1
        assert store.read_text('public/calendar.ics') == 'NEW'
        assert store.read_text('public/calendar.lastgood.ics') == 'NEW'
        assert json.loads(store.read_text('public/events.json'))[0]['title'] == 'Assembly'

    def test_validation_failure_restores_last_good(self, store):
        """Test that a failing artifact is replaced by the last-known-good copy."""
        store.write_text('public/calendar.lastgood.ics', 'GOOD')

        result = make_gate(store).publish('BAD', EVENTS, reject)

        assert result.published is False
        assert result.rolled_back is True
        assert 'ICS count 0' in result.reason
        assert store.read_text('public/calendar.ics') == 'GOOD'
        assert not store.exists('public/events.json')

    def test_validation_failure_without_last_good(self, store):
        """Test failure reporting when there is nothing to restore."""
        result = make_gate(store).publish('BAD', EVENTS, reject)

        assert result.published is False
        assert result.rolled_back is False
        assert not store.exists('public/calendar.lastgood.ics')
        assert not store.exists('public/calendar.ics')

    def test_protection_disabled(self, store):
        """Test that last-known-good is neither written nor restored."""
        store.write_text('public/calendar.lastgood.ics', 'GOOD')
        gate = make_gate(store, protect=False)

        assert gate.publish('NEW', EVENTS, accept).published is True
        assert store.read_text('public/calendar.lastgood.ics') == 'GOOD'

        result = gate.publish('BAD', EVENTS, reject)
        assert result.rolled_back is False
        assert store.read_text('public/calendar.ics') == 'NEW'

    def test_invalid_candidate_never_reaches_output(self, store):
        """Test that a failing artifact is not published even with nothing to restore."""
        store.write_text('public/calendar.ics', 'CURRENT')

        result = make_gate(store).publish('BAD', EVENTS, reject)

        assert result.published is False
        assert result.rolled_back is False
        assert store.read_text('public/calendar.ics') == 'CURRENT'
        assert store.read_text('public/calendar.candidate.ics') == 'BAD'

    def test_validator_receives_stored_artifact(self, store):
        """Test that validation reads the artifact back from the store."""
        seen = []

        make_gate(store).publish('TEXT', EVENTS, lambda text: seen.append(text))

        assert seen == ['TEXT']
