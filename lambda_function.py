"""AWS Lambda handler serving the weekend guide as a calendar feed."""
import json
import logging
import os
import time
from typing import Any, Dict

from processor.patterns import build_patterns
from processor.pipeline import extract_events
from renderer.ics_feed import render_calendar
from scraper.weekend_guide import WeekendGuideScraper, most_recent_thursday
from storage.event_cache import EventCache

FEED_PATH = '/calbot/soiree/'
HEALTH_PATH = '/healthz'

# Compiled once per container, shared by warm invocations
PATTERNS = build_patterns()

_RESERVED_ATTRS = set(vars(logging.LogRecord('', 0, '', 0, '', (), None))) | {'message'}


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON, including fields passed via extra."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        for key, value in vars(record).items():
            if key not in _RESERVED_ATTRS and key not in log_data:
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

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def _env_flag(name: str, default: str = 'false') -> bool:
    return os.environ.get(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


def _request_path(event: Dict[str, Any]) -> str:
    """Path of an API Gateway (v1 or v2) or function URL request."""
    return event.get('rawPath') or event.get('path') or '/'


def _is_feed_path(path: str) -> bool:
    return path.startswith(FEED_PATH) or path == FEED_PATH.rstrip('/')


def _error_response(status_code: int, message: str, error: Exception, start_time: float) -> Dict[str, Any]:
    return {
        'statusCode': status_code,
        'headers': {'Content-Type': 'application/json'},
        'body': json.dumps({
            'message': message,
            'error': str(error),
            'error_type': type(error).__name__,
            'duration_seconds': round(time.time() - start_time, 2)
        })
    }


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler for the weekend guide calendar feed.

    Args:
        event: API Gateway or function URL request payload
        context: Lambda context object

    Returns:
        Response dict with statusCode, headers and body
    """
    # Read configuration from environment variables
    table_name = os.environ.get('TABLE_NAME', 'weekend-guide-cache')
    log_level = os.environ.get('LOG_LEVEL', 'INFO')
    timeout_seconds = int(os.environ.get('TIMEOUT_SECONDS', '30'))
    cache_ttl_minutes = int(os.environ.get('CACHE_TTL_MINUTES', '15'))
    allow_partial = _env_flag('ALLOW_PARTIAL')

    setup_logging(log_level)
    logger = logging.getLogger(__name__)

    path = _request_path(event)
    if path == HEALTH_PATH:
        return {
            'statusCode': 200,
            'headers': {'Content-Type': 'text/plain; charset=UTF-8'},
            'body': 'ok'
        }
    if not _is_feed_path(path):
        return {
            'statusCode': 404,
            'headers': {'Content-Type': 'application/json'},
            'body': json.dumps({'message': f'Not found: {path}'})
        }

    start_time = time.time()
    logger.info(
        "Lambda execution started",
        extra={
            'path': path,
            'table_name': table_name,
            'timeout_seconds': timeout_seconds
        }
    )

    try:
        scraper = WeekendGuideScraper(timeout=timeout_seconds)
        cache = EventCache(table_name=table_name, ttl_minutes=cache_ttl_minutes)

        anchor = most_recent_thursday()
        url = scraper.guide_url(anchor)

        try:
            events = cache.get(url)
        except Exception as e:
            logger.warning(f"Cache lookup failed, fetching guide: {e}")
            events = None

        if events is None:
            try:
                logger.info(f"Fetching weekend guide for {anchor}")
                stream = scraper.fetch_guide(anchor)
            except Exception as e:
                logger.error(
                    f"Failed to fetch weekend guide after retries: {str(e)}",
                    extra={'error_type': type(e).__name__},
                    exc_info=True
                )
                return _error_response(502, 'Failed to fetch weekend guide', e, start_time)

            logger.info("Extracting events from guide")
            result = extract_events(stream, anchor, PATTERNS, encoding=stream.encoding)

            if not result.ok:
                if not allow_partial:
                    logger.error(
                        f"Event extraction failed: {result.error}",
                        extra={'error_type': type(result.error).__name__}
                    )
                    return _error_response(500, 'Failed to extract events', result.error, start_time)
                logger.warning(
                    f"Serving {len(result.events)} events from incomplete extraction"
                )
            else:
                try:
                    cache.put(url, result.events)
                except Exception as e:
                    logger.error(f"Failed to cache events for {url}: {e}", exc_info=True)
            events = result.events

        logger.info("Rendering calendar feed")
        body = render_calendar(events)

        duration = time.time() - start_time
        logger.info(
            "Lambda execution completed successfully",
            extra={
                'duration_seconds': round(duration, 2),
                'guide_url': url,
                'events': len(events)
            }
        )

        return {
            'statusCode': 200,
            'headers': {'Content-Type': 'text/calendar; charset=UTF-8'},
            'body': body.decode('utf-8')
        }

    except Exception as e:
        duration = time.time() - start_time
        logger.error(
            f"Lambda execution failed: {str(e)}",
            extra={
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )
        return _error_response(500, 'Feed generation failed', e, start_time)
