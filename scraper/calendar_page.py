"""Playwright driver for a dynamically rendered, paginated calendar view."""
import json
import logging
import os
from typing import List, Optional

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from processor.models import TextFragment
from scraper.capture_log import CaptureLog, is_structured_kind, is_topical_url
from scraper.navigator import Direction
from scraper.page_markup import RANGE_LABEL_SELECTOR, extract_fragments

logger = logging.getLogger(__name__)

USER_AGENT = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36'
)

CONSENT_SELECTORS = [
    'button:has-text("Accept")',
    'button:has-text("I agree")',
    'button:has-text("Allow all")',
    '[aria-label*="accept" i]',
    '[data-testid*="accept" i]',
]

NAVIGATION_SELECTORS = {
    Direction.FORWARD: [
        '[aria-label="Next"]',
        '[data-testid*="next" i]',
        'button[aria-label*="next" i]',
        'button:has-text("Next")',
        '[class*="next" i] button',
    ],
    Direction.BACKWARD: [
        '[aria-label="Previous"]',
        '[data-testid*="prev" i]',
        'button[aria-label*="prev" i]',
        'button:has-text("Previous")',
        '[class*="prev" i] button',
    ],
}

AUTO_SCROLL_SCRIPT = """
async () => {
    await new Promise((resolve) => {
        let total = 0;
        const distance = 600;
        const timer = setInterval(() => {
            window.scrollBy(0, distance);
            total += distance;
            if (total > document.body.scrollHeight * 1.5) {
                clearInterval(timer);
                resolve();
            }
        }, 200);
    });
}
"""


class CalendarPage:
    """
    Browser session over one calendar view.

    Responses whose URL and content type look like event data are appended
    to the capture log as they arrive.
    """

    def __init__(
        self,
        capture_log: CaptureLog,
        timezone_id: str,
        headless: bool = True,
        navigation_timeout_ms: int = 30000,
        range_label_selector: str = RANGE_LABEL_SELECTOR
    ):
        """
        Initialize the page driver.

        Args:
            capture_log: Log that receives captured responses
            timezone_id: IANA timezone the browser context renders in
            headless: Run the browser without a window
            navigation_timeout_ms: Timeout for clicks and network settling
            range_label_selector: CSS selector of the current-range header
        """
        self.capture_log = capture_log
        self.timezone_id = timezone_id
        self.headless = headless
        self.navigation_timeout_ms = navigation_timeout_ms
        self.range_label_selector = range_label_selector
        self._playwright = None
        self._browser = None
        self._context = None
        self.page = None

    def __enter__(self) -> 'CalendarPage':
        self._playwright = sync_playwright().start()
        self._browser = self._playwright.chromium.launch(
            headless=self.headless, args=['--lang=en-GB']
        )
        self._context = self._browser.new_context(
            locale='en-GB',
            timezone_id=self.timezone_id,
            user_agent=USER_AGENT,
            viewport={'width': 1366, 'height': 900}
        )
        self._context.on('response', self._on_response)
        self.page = self._context.new_page()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._browser:
            self._browser.close()
        if self._playwright:
            self._playwright.stop()

    def _on_response(self, response) -> None:
        """Capture a response if it plausibly carries event data."""
        url = response.url
        content_kind = (response.headers.get('content-type') or '').lower()
        if not is_topical_url(url) or not is_structured_kind(content_kind):
            return
        try:
            body = response.text()
        except PlaywrightError as e:
            logger.debug(f"Response body unavailable for {url}: {e}")
            return
        self.capture_log.record_response(url, content_kind, body)

    def load_initial(self, url: str) -> None:
        """
        Open the calendar view and dismiss consent banners.

        Args:
            url: Calendar page URL

        Raises:
            playwright.sync_api.Error: If the page cannot be loaded
        """
        logger.info(f"Loading calendar page {url}")
        self.page.goto(url, wait_until='domcontentloaded', timeout=60000)
        self._accept_consent()
        self._wait_for_idle(60000)

    def _accept_consent(self) -> None:
        for selector in CONSENT_SELECTORS:
            try:
                control = self.page.query_selector(selector)
                if control:
                    control.click(timeout=1000)
                    self.page.wait_for_timeout(400)
            except PlaywrightError as e:
                logger.debug(f"Consent control {selector!r} not usable: {e}")

    def _wait_for_idle(self, timeout_ms: Optional[int] = None) -> None:
        try:
            self.page.wait_for_load_state(
                'networkidle', timeout=timeout_ms or self.navigation_timeout_ms
            )
        except PlaywrightTimeoutError:
            logger.debug("Timed out waiting for network idle")

    def settle_lazy_content(self) -> None:
        """Scroll through the page so lazily rendered items load."""
        try:
            self.page.evaluate(AUTO_SCROLL_SCRIPT)
        except PlaywrightError as e:
            logger.debug(f"Auto-scroll failed: {e}")
        self._wait_for_idle()
        self.page.wait_for_timeout(400)

    def read_range_label(self) -> str:
        """Read the header describing the currently displayed date range."""
        try:
            element = self.page.query_selector(self.range_label_selector)
            return element.inner_text().strip() if element else ''
        except PlaywrightError:
            return ''

    def step_navigation(self, direction: Direction) -> bool:
        """
        Try each navigation control until the displayed range changes.

        Args:
            direction: Which adjacent range to reveal

        Returns:
            True if the range label changed after a click
        """
        before = self.read_range_label()
        for selector in NAVIGATION_SELECTORS[direction]:
            try:
                control = self.page.query_selector(selector)
                if control is None or not control.is_visible():
                    continue
                control.click(timeout=2000)
            except PlaywrightError as e:
                logger.debug(f"Navigation control {selector!r} failed: {e}")
                continue
            self._wait_for_idle()
            self.page.wait_for_timeout(800)
            if self.read_range_label() != before:
                return True
            logger.debug(f"Navigation control {selector!r} did not change the view")
        return False

    def query_text_fragments(self) -> List[TextFragment]:
        """Extract event-like text fragments from the rendered page."""
        try:
            html_content = self.page.content()
        except PlaywrightError as e:
            logger.warning(f"Could not read page content: {e}")
            return []
        return extract_fragments(html_content, base_url=self.page.url)

    def write_debug_artifacts(
        self,
        html_path: str,
        screenshot_path: str,
        network_log_path: str
    ) -> None:
        """
        Dump page HTML, a screenshot and a redacted network log.

        Args:
            html_path: Destination of the rendered HTML
            screenshot_path: Destination of the full-page screenshot
            network_log_path: Destination of the capture summary
        """
        for path in (html_path, screenshot_path, network_log_path):
            directory = os.path.dirname(path)
            if directory:
                os.makedirs(directory, exist_ok=True)
        try:
            with open(html_path, 'w', encoding='utf-8') as f:
                f.write(self.page.content())
            self.page.screenshot(path=screenshot_path, full_page=True)
        except PlaywrightError as e:
            logger.warning(f"Failed to write page debug artifacts: {e}")
        with open(network_log_path, 'w', encoding='utf-8') as f:
            json.dump(self.capture_log.network_summary(), f, indent=2)
        logger.info(f"Wrote debug artifacts to {os.path.dirname(html_path) or '.'}")
