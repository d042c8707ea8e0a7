"""Environment-driven configuration for the calendar harvester."""
import json
import os
from dataclasses import dataclass
from datetime import date
from typing import Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from processor.models import ExpectedSplit
from scraper.page_markup import RANGE_LABEL_SELECTOR

TRUTHY = ('1', 'true', 'yes', 'on')


def _flag(value: str) -> bool:
    return value.strip().lower() in TRUTHY


def _parse_start_date(value: str) -> Optional[date]:
    """Parse WINDOW_START; 'today' or empty means the current date."""
    value = value.strip()
    if not value or value.lower() == 'today':
        return None
    return date.fromisoformat(value)


def _parse_expected_counts(value: str) -> Optional[ExpectedSplit]:
    """
    Parse EXPECTED_COUNTS.

    Args:
        value: JSON object such as '{"week1": 20, "week2": 15}', or empty

    Returns:
        ExpectedSplit or None when not configured

    Raises:
        ValueError: If the value is not a JSON object with integer counts
    """
    value = value.strip()
    if not value or value.lower() == 'null':
        return None
    try:
        counts = json.loads(value)
        return ExpectedSplit(week1=int(counts['week1']), week2=int(counts['week2']))
    except (TypeError, KeyError, json.JSONDecodeError) as e:
        raise ValueError(f"Invalid EXPECTED_COUNTS {value!r}: {e}") from e


@dataclass
class HarvestConfig:
    """Settings for a harvest and publish run."""
    target_url: str = ''
    start_date: Optional[date] = None
    window_days: int = 14
    timezone: str = 'Europe/London'
    min_events: int = 1
    expected_counts: Optional[ExpectedSplit] = None
    output_path: str = 'public/school-calendar.ics'
    output_json_path: str = 'public/source-events.json'
    last_good_path: str = 'public/school-calendar.lastgood.ics'
    protect_last_good: bool = True
    artifact_bucket: Optional[str] = None
    artifact_prefix: str = ''
    calendar_name: str = 'School Calendar'
    uid_prefix: str = 'harvest'
    max_prev_steps: int = 8
    max_next_steps: int = 12
    max_stale_steps: int = 3
    harvest_timeout_seconds: float = 180.0
    navigation_timeout_ms: int = 30000
    headless: bool = True
    range_label_selector: str = RANGE_LABEL_SELECTOR
    debug_enabled: bool = False
    debug_html_path: str = 'public/debug-page.html'
    debug_screenshot_path: str = 'public/debug-page.png'
    debug_network_log_path: str = 'public/debug-network.json'
    log_level: str = 'INFO'

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'HarvestConfig':
        """
        Build configuration from environment variables.

        Args:
            environ: Mapping to read from (default: os.environ)

        Returns:
            HarvestConfig with defaults for unset variables

        Raises:
            ValueError: If a numeric, date or count setting is malformed
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        def get(name: str, default) -> str:
            return env.get(name, str(default))

        config = cls(
            target_url=get('TARGET_URL', defaults.target_url),
            start_date=_parse_start_date(get('WINDOW_START', 'today')),
            window_days=int(get('WINDOW_DAYS', defaults.window_days)),
            timezone=get('TIMEZONE', defaults.timezone),
            min_events=int(get('MIN_EVENTS', defaults.min_events)),
            expected_counts=_parse_expected_counts(get('EXPECTED_COUNTS', '')),
            output_path=get('OUTPUT_PATH', defaults.output_path),
            output_json_path=get('OUTPUT_JSON_PATH', defaults.output_json_path),
            last_good_path=get('LAST_GOOD_PATH', defaults.last_good_path),
            protect_last_good=_flag(get('PROTECT_LAST_GOOD', 'true')),
            artifact_bucket=env.get('ARTIFACT_BUCKET') or None,
            artifact_prefix=get('ARTIFACT_PREFIX', defaults.artifact_prefix),
            calendar_name=get('CALENDAR_NAME', defaults.calendar_name),
            uid_prefix=get('UID_PREFIX', defaults.uid_prefix),
            max_prev_steps=int(get('MAX_PREV_STEPS', defaults.max_prev_steps)),
            max_next_steps=int(get('MAX_NEXT_STEPS', defaults.max_next_steps)),
            max_stale_steps=int(get('MAX_STALE_STEPS', defaults.max_stale_steps)),
            harvest_timeout_seconds=float(
                get('HARVEST_TIMEOUT_SECONDS', defaults.harvest_timeout_seconds)
            ),
            navigation_timeout_ms=int(
                get('NAVIGATION_TIMEOUT_MS', defaults.navigation_timeout_ms)
            ),
            headless=_flag(get('HEADLESS', 'true')),
            range_label_selector=get('RANGE_LABEL_SELECTOR', defaults.range_label_selector),
            debug_enabled=_flag(get('DEBUG_ENABLED', 'false')),
            debug_html_path=get('DEBUG_HTML_PATH', defaults.debug_html_path),
            debug_screenshot_path=get('DEBUG_SCREENSHOT_PATH', defaults.debug_screenshot_path),
            debug_network_log_path=get('DEBUG_NETWORK_LOG_PATH', defaults.debug_network_log_path),
            log_level=get('LOG_LEVEL', defaults.log_level)
        )
        try:
            config.tz
        except ZoneInfoNotFoundError as e:
            raise ValueError(f"Unknown TIMEZONE {config.timezone!r}") from e
        return config
