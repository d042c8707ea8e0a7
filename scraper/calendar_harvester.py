"""Harvest run over a paginated calendar view."""
import logging
from typing import Callable, Optional

from harvest_config import HarvestConfig
from processor.extraction import ExtractionChain
from processor.models import HarvestResult, Window
from scraper.calendar_page import CalendarPage
from scraper.capture_log import CaptureLog
from scraper.navigator import CoverageNavigator

logger = logging.getLogger(__name__)


class CalendarHarvester:
    """Collects canonical events for a window from the configured calendar."""

    def __init__(
        self,
        config: HarvestConfig,
        page_factory: Optional[Callable[[CaptureLog], CalendarPage]] = None
    ):
        """
        Initialize the harvester.

        Args:
            config: Harvest configuration
            page_factory: Builds a page driver bound to a capture log
        """
        self.config = config
        self.page_factory = page_factory or self._default_page
        self.chain = ExtractionChain.default(config.tz)

    def _default_page(self, capture_log: CaptureLog) -> CalendarPage:
        return CalendarPage(
            capture_log,
            timezone_id=self.config.timezone,
            headless=self.config.headless,
            navigation_timeout_ms=self.config.navigation_timeout_ms,
            range_label_selector=self.config.range_label_selector
        )

    def harvest(self, window: Window) -> HarvestResult:
        """
        Load the calendar and page through it until the window is covered.

        Args:
            window: Window the harvested events should span

        Returns:
            HarvestResult with every deduplicated event captured in this run
        """
        capture_log = CaptureLog()

        with self.page_factory(capture_log) as page:
            page.load_initial(self.config.target_url)
            page.settle_lazy_content()

            def capture_page_text():
                capture_log.record_fragments(page.query_text_fragments())

            capture_page_text()

            navigator = CoverageNavigator(
                page,
                window,
                event_source=lambda: self.chain.extract(capture_log),
                on_settled=capture_page_text,
                max_prev=self.config.max_prev_steps,
                max_next=self.config.max_next_steps,
                max_stale=self.config.max_stale_steps,
                max_seconds=self.config.harvest_timeout_seconds
            )
            outcome = navigator.run()

            if self.config.debug_enabled:
                page.write_debug_artifacts(
                    self.config.debug_html_path,
                    self.config.debug_screenshot_path,
                    self.config.debug_network_log_path
                )

        events = self.chain.extract(capture_log)
        logger.info(
            f"Harvested {len(events)} unique events from "
            f"{len(capture_log.captures)} captures"
        )
        return HarvestResult(
            events=events,
            captures=len(capture_log.captures),
            fragments=len(capture_log.fragments),
            navigation=outcome
        )
