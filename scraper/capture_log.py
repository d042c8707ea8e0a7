"""Append-only log of responses and page text captured during a harvest run."""
import json
import logging
import re
from typing import Any, Iterable, List, Optional

from processor.models import RawCapture, TextFragment

logger = logging.getLogger(__name__)

TOPICAL_URL = re.compile(
    r'event|cal|sched|activity|occurrence|timeline|calendar|feed|graphql|api',
    re.IGNORECASE
)
STRUCTURED_KINDS = ('json', 'javascript', 'text/plain')


def is_topical_url(url: str) -> bool:
    """Check whether a response URL looks calendar related."""
    return bool(TOPICAL_URL.search(url or ''))


def is_structured_kind(content_kind: str) -> bool:
    """Check whether a content type may carry JSON."""
    content_kind = (content_kind or '').lower()
    return any(kind in content_kind for kind in STRUCTURED_KINDS)


def decode_body(text: str) -> Optional[Any]:
    """
    Decode a response body as JSON.

    Args:
        text: Raw response body

    Returns:
        Decoded payload or None when the body is not JSON
    """
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        return None


class CaptureLog:
    """
    Raw captures and text fragments accumulated during one harvest run.

    Entries are only ever appended; readers derive events from a snapshot
    of the current contents.
    """

    def __init__(self):
        self._captures: List[RawCapture] = []
        self._fragments: List[TextFragment] = []

    @property
    def captures(self) -> List[RawCapture]:
        return list(self._captures)

    @property
    def fragments(self) -> List[TextFragment]:
        return list(self._fragments)

    def record_response(self, url: str, content_kind: str, body: str) -> bool:
        """
        Append a response if it passes the topical and content-kind filters.

        Args:
            url: Originating request URL
            content_kind: Response content type
            body: Response body text

        Returns:
            True if the response was captured
        """
        if not is_topical_url(url) or not is_structured_kind(content_kind):
            return False
        payload = decode_body(body)
        if payload is None:
            return False
        self._captures.append(RawCapture(url=url, content_kind=content_kind, payload=payload))
        logger.debug(f"Captured {content_kind} response from {url}")
        return True

    def record_fragments(self, fragments: Iterable[TextFragment]) -> int:
        """Append text fragments read from the page."""
        added = list(fragments)
        self._fragments.extend(added)
        return len(added)

    def network_summary(self) -> dict:
        """Redacted view of captures for debug output."""
        return {
            'count': len(self._captures),
            'entries': [
                {
                    'url': capture.url,
                    'content_kind': capture.content_kind,
                    'keys': sorted(capture.payload) if isinstance(capture.payload, dict) else []
                }
                for capture in self._captures
            ]
        }
