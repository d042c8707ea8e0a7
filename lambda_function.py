"""AWS Lambda handler and command-line entry point for the calendar harvester."""
import json
import logging
import sys
import time
from typing import Any, Dict

from harvest_config import HarvestConfig
from processor.event_filters import filter_window, window_bounds
from publisher.errors import SanityCheckError
from publisher.ics_encoder import CalendarEncoder
from publisher.publish_gate import PublishGate
from publisher.validator import RoundTripValidator, check_minimum
from scraper.calendar_harvester import CalendarHarvester
from storage.artifact_store import create_artifact_store

# Attributes every LogRecord carries; anything else came in through `extra`
_RESERVED_ATTRS = set(vars(logging.makeLogRecord({}))) | {'message', 'asctime'}


class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        for key, value in vars(record).items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def _error_response(message: str, error: Exception, start_time: float, **fields) -> Dict[str, Any]:
    body = {
        'message': message,
        'error': str(error),
        'error_type': type(error).__name__,
        'duration_seconds': round(time.time() - start_time, 2)
    }
    body.update(fields)
    return {'statusCode': 500, 'body': json.dumps(body)}


def _attempt_rollback(gate: PublishGate, logger: logging.Logger) -> bool:
    """Reinstate last-known-good after a failed run; a broken store reports False."""
    try:
        return gate.rollback()
    except Exception as e:
        logger.error(f"Failed to reinstate last-known-good calendar: {str(e)}", exc_info=True)
        return False


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Harvest the configured calendar and publish it as an iCalendar file.

    Args:
        event: EventBridge event payload
        context: Lambda context object

    Returns:
        Response dict with statusCode and summary statistics
    """
    config = HarvestConfig.from_env()

    setup_logging(config.log_level)
    logger = logging.getLogger(__name__)

    start_time = time.time()
    window = window_bounds(config.tz, config.window_days, config.start_date)
    logger.info(
        "Harvest run started",
        extra={
            'target_url': config.target_url,
            'window_start': window.start.isoformat(),
            'window_end': window.end.isoformat()
        }
    )

    harvester = CalendarHarvester(config)
    encoder = CalendarEncoder(config.calendar_name, config.uid_prefix)
    validator = RoundTripValidator(config.tz)
    gate = PublishGate(
        create_artifact_store(config.artifact_bucket, config.artifact_prefix),
        output_path=config.output_path,
        output_json_path=config.output_json_path,
        last_good_path=config.last_good_path,
        protect_last_good=config.protect_last_good
    )

    try:
        logger.info("Harvesting events from calendar")
        harvest = harvester.harvest(window)
    except Exception as e:
        logger.error(
            f"Failed to harvest calendar events: {str(e)}",
            extra={'error_type': type(e).__name__},
            exc_info=True
        )
        return _error_response(
            'Failed to harvest calendar events', e, start_time,
            rolled_back=_attempt_rollback(gate, logger)
        )

    events = filter_window(harvest.events, window)
    logger.info(f"{len(events)} of {len(harvest.events)} harvested events fall in the window")

    try:
        check_minimum(events, config.min_events)
    except SanityCheckError as e:
        logger.error(str(e))
        return _error_response(
            'Sanity check failed', e, start_time,
            rolled_back=_attempt_rollback(gate, logger)
        )

    try:
        logger.info("Encoding and validating calendar")
        ics_text = encoder.encode(events)
        result = gate.publish(
            ics_text,
            events,
            lambda text: validator.validate(text, events, window, config.expected_counts)
        )
    except Exception as e:
        logger.error(
            f"Failed to publish calendar: {str(e)}",
            extra={'error_type': type(e).__name__},
            exc_info=True
        )
        return _error_response(
            'Failed to publish calendar', e, start_time,
            rolled_back=_attempt_rollback(gate, logger)
        )

    duration = time.time() - start_time
    if not result.published:
        logger.error(
            "Harvest run failed validation",
            extra={'reason': result.reason, 'rolled_back': result.rolled_back}
        )
        return {
            'statusCode': 500,
            'body': json.dumps({
                'message': 'Validation failed',
                'error': result.reason,
                'error_type': 'ValidationError',
                'rolled_back': result.rolled_back,
                'duration_seconds': round(duration, 2)
            })
        }

    logger.info(
        "Harvest run completed successfully",
        extra={
            'duration_seconds': round(duration, 2),
            'events_published': result.event_count,
            'window_covered': harvest.navigation.covered
        }
    )
    return {
        'statusCode': 200,
        'body': json.dumps({
            'message': 'Calendar published successfully',
            'statistics': {
                'captures': harvest.captures,
                'events_harvested': len(harvest.events),
                'events_published': result.event_count,
                'window_covered': harvest.navigation.covered,
                'navigation_stop_reason': harvest.navigation.stop_reason,
                'duration_seconds': round(duration, 2)
            }
        })
    }


def main() -> int:
    """Run a harvest from the command line; the exit status reflects the outcome."""
    response = lambda_handler({}, None)
    print(response['body'])
    return 0 if response['statusCode'] == 200 else 1


if __name__ == '__main__':
    sys.exit(main())
