"""Publishing of validated calendar artifacts with last-known-good rollback."""
import logging
import os
from typing import Callable, List

from processor.models import CanonicalEvent, PublishResult
from publisher.errors import ValidationError
from publisher.ics_encoder import events_to_json

logger = logging.getLogger(__name__)


class PublishGate:
    """
    Replaces the published calendar only with an artifact that validates.

    A candidate is written beside the output location, read back and
    validated. Only a valid candidate is copied over the published calendar;
    on failure the last-known-good copy is reinstated. On success the JSON
    dump is written and the candidate becomes the new last-known-good.
    """

    def __init__(
        self,
        store,
        output_path: str,
        output_json_path: str,
        last_good_path: str,
        protect_last_good: bool = True
    ):
        """
        Initialize the publish gate.

        Args:
            store: Artifact store (filesystem or S3)
            output_path: Key of the primary calendar artifact
            output_json_path: Key of the JSON event dump
            last_good_path: Key of the last-known-good calendar copy
            protect_last_good: Whether to maintain and restore last-known-good
        """
        self.store = store
        self.output_path = output_path
        self.output_json_path = output_json_path
        self.last_good_path = last_good_path
        self.protect_last_good = protect_last_good
        root, extension = os.path.splitext(output_path)
        self.candidate_path = f"{root}.candidate{extension}"

    def publish(
        self,
        ics_text: str,
        events: List[CanonicalEvent],
        validate: Callable[[str], int]
    ) -> PublishResult:
        """
        Write, validate and either commit or roll back a calendar artifact.

        Args:
            ics_text: Encoded calendar
            events: Canonical events the calendar was encoded from
            validate: Raises ValidationError when the artifact text is wrong

        Returns:
            PublishResult describing what happened
        """
        self.store.write_text(self.candidate_path, ics_text)

        try:
            validate(self.store.read_text(self.candidate_path))
        except ValidationError as e:
            logger.error(f"Validation failed: {e}")
            rolled_back = self.rollback()
            return PublishResult(
                published=False,
                event_count=len(events),
                reason=str(e),
                rolled_back=rolled_back
            )

        self.store.copy(self.candidate_path, self.output_path)
        self.store.write_text(self.output_json_path, events_to_json(events))
        if self.protect_last_good:
            self.store.copy(self.output_path, self.last_good_path)

        logger.info(f"Published {len(events)} events to {self.output_path}")
        return PublishResult(published=True, event_count=len(events))

    def rollback(self) -> bool:
        """
        Reinstate the last-known-good calendar.

        Returns:
            True if a last-known-good copy was restored
        """
        if not self.protect_last_good:
            return False
        if not self.store.exists(self.last_good_path):
            logger.warning("No last-known-good calendar available to restore")
            return False
        self.store.copy(self.last_good_path, self.output_path)
        logger.warning(f"Reinstated last-known-good calendar at {self.output_path}")
        return True
