"""Ordered extraction strategies over an accumulated capture log."""
import logging
from typing import List, Sequence

from processor.event_filters import deduplicate
from processor.models import CanonicalEvent
from processor.normalizer import EventNormalizer
from processor.text_extractor import TextHeuristicExtractor

logger = logging.getLogger(__name__)


class StructuredCaptureStrategy:
    """Events from structured response captures."""

    name = 'structured'

    def __init__(self, normalizer: EventNormalizer):
        self.normalizer = normalizer

    def extract(self, log) -> List[CanonicalEvent]:
        return self.normalizer.normalize_captures(log.captures)


class TextFragmentStrategy:
    """Events parsed from page text fragments."""

    name = 'text'

    def __init__(self, extractor: TextHeuristicExtractor):
        self.extractor = extractor

    def extract(self, log) -> List[CanonicalEvent]:
        return self.extractor.extract(log.fragments)


class ExtractionChain:
    """
    Tries each strategy in order and keeps the first non-empty result.

    An empty result from a strategy means "try the next one"; when every
    strategy comes back empty the chain yields no events.
    """

    def __init__(self, strategies: Sequence):
        self.strategies = list(strategies)

    @classmethod
    def default(cls, tz) -> 'ExtractionChain':
        return cls([
            StructuredCaptureStrategy(EventNormalizer(tz)),
            TextFragmentStrategy(TextHeuristicExtractor(tz))
        ])

    def extract(self, log) -> List[CanonicalEvent]:
        """
        Derive the deduplicated canonical event set from the log.

        Args:
            log: Capture log exposing 'captures' and 'fragments'

        Returns:
            Unique canonical events from the first productive strategy
        """
        for strategy in self.strategies:
            events = strategy.extract(log)
            if events:
                logger.debug(
                    f"Strategy '{strategy.name}' produced {len(events)} events"
                )
                return deduplicate(events)
        return []
