"""Coverage-driven pagination of an external calendar view."""
import enum
import logging
import time
from typing import Callable, Dict, List, Optional, Set

from processor.event_filters import compute_coverage
from processor.models import CanonicalEvent, NavigationOutcome, Window

logger = logging.getLogger(__name__)


class Direction(str, enum.Enum):
    BACKWARD = 'backward'
    FORWARD = 'forward'


class NavigatorState(enum.Enum):
    SEEKING_BACKWARD = 'seeking_backward'
    SEEKING_FORWARD = 'seeking_forward'
    DONE = 'done'


class CoverageNavigator:
    """
    Steps a paginated calendar view until accumulated events span a window.

    The view is moved backward until the earliest captured start reaches the
    window start, then forward until the latest captured start reaches the
    window end. The run stops early when a step budget is spent, when
    movements stop yielding new events, or when the overall deadline passes.
    """

    MAX_PREV = 8
    MAX_NEXT = 12
    MAX_STALE = 3
    MAX_SECONDS = 180.0

    def __init__(
        self,
        page,
        window: Window,
        event_source: Callable[[], List[CanonicalEvent]],
        on_settled: Optional[Callable[[], None]] = None,
        max_prev: int = MAX_PREV,
        max_next: int = MAX_NEXT,
        max_stale: int = MAX_STALE,
        max_seconds: float = MAX_SECONDS,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize the navigator.

        Args:
            page: Page driver with step_navigation, settle_lazy_content and
                read_range_label
            window: Window the accumulated events must span
            event_source: Returns the current canonical event set
            on_settled: Called after each movement once the view has settled
            max_prev: Backward step budget
            max_next: Forward step budget
            max_stale: Consecutive unproductive movements before stopping
            max_seconds: Wall-clock budget for the whole run
            clock: Monotonic clock in seconds
        """
        self.page = page
        self.window = window
        self.event_source = event_source
        self.on_settled = on_settled
        self.max_prev = max_prev
        self.max_next = max_next
        self.max_stale = max_stale
        self.max_seconds = max_seconds
        self.clock = clock
        self.state = NavigatorState.SEEKING_BACKWARD

    def run(self) -> NavigationOutcome:
        """
        Drive the view until the window is covered or a budget runs out.

        Returns:
            NavigationOutcome with step counts and the reason for stopping
        """
        outcome = NavigationOutcome()
        deadline = self.clock() + self.max_seconds
        last_count = len(self.event_source())
        stale = 0
        # Phases in which each range label has been shown
        label_phases: Dict[str, Set[NavigatorState]] = {}
        current_label = self._read_label()
        self.state = NavigatorState.SEEKING_BACKWARD

        coverage = compute_coverage(self.event_source())
        if coverage.reaches_start(self.window) and coverage.reaches_end(self.window):
            self.state = NavigatorState.DONE
            outcome.stop_reason = 'covered'

        while self.state is not NavigatorState.DONE:
            if self.clock() >= deadline:
                self._finish(outcome, 'deadline')
                break

            coverage = compute_coverage(self.event_source())

            if self.state is NavigatorState.SEEKING_BACKWARD:
                if coverage.reaches_start(self.window):
                    self.state = NavigatorState.SEEKING_FORWARD
                    continue
                if outcome.backward_steps >= self.max_prev:
                    logger.info("Backward step budget exhausted")
                    self.state = NavigatorState.SEEKING_FORWARD
                    continue
                outcome.backward_steps += 1
                label = self._step(Direction.BACKWARD)
                if label is None:
                    logger.info("Calendar view did not move backward")
                    self.state = NavigatorState.SEEKING_FORWARD
                    continue
            else:
                if coverage.reaches_end(self.window):
                    self._finish(outcome, 'covered')
                    break
                if outcome.forward_steps >= self.max_next:
                    self._finish(outcome, 'forward budget')
                    break
                outcome.forward_steps += 1
                label = self._step(Direction.FORWARD)
                if label is None:
                    self._finish(outcome, 'no forward movement')
                    break

            label_phases.setdefault(current_label, set()).add(self.state)
            phases = label_phases.setdefault(label, set())
            # Forward passes over pages already walked while seeking backward
            retraced = bool(phases) and self.state not in phases
            phases.add(self.state)
            current_label = label

            count = len(self.event_source())
            if count > last_count:
                last_count = count
                stale = 0
            elif not retraced:
                stale += 1
                if stale >= self.max_stale:
                    self._finish(outcome, 'stale')
                    break

        outcome.covered = self._is_covered()
        if not outcome.covered:
            logger.warning(
                f"Navigation stopped ({outcome.stop_reason}) before the window "
                f"{self.window.start.isoformat()}..{self.window.end.isoformat()} "
                f"was fully covered"
            )
        logger.info(
            f"Navigation finished after {outcome.backward_steps} backward and "
            f"{outcome.forward_steps} forward steps: {outcome.stop_reason}"
        )
        return outcome

    def _finish(self, outcome: NavigationOutcome, reason: str) -> None:
        self.state = NavigatorState.DONE
        outcome.stop_reason = reason

    def _is_covered(self) -> bool:
        coverage = compute_coverage(self.event_source())
        return coverage.reaches_start(self.window) and coverage.reaches_end(self.window)

    def _step(self, direction: Direction) -> Optional[str]:
        """
        Move the view once and let lazy content settle.

        Args:
            direction: Which adjacent range to reveal

        Returns:
            The new range label, or None if the view did not move
        """
        before = self._read_label()
        clicked = self.page.step_navigation(direction)
        after = self._read_label()
        if not clicked or after == before:
            return None

        self.page.settle_lazy_content()
        if self.on_settled:
            self.on_settled()
        logger.debug(f"Moved {direction.value}: {before!r} -> {after!r}")
        return after

    def _read_label(self) -> str:
        return self.page.read_range_label() or ''
