"""DynamoDB-backed cache of extracted guide events."""
import logging
import time
from datetime import date, datetime
from typing import List, Optional

import boto3
from botocore.exceptions import ClientError

from processor.models import DateRange, Event, TimeRange

logger = logging.getLogger(__name__)


class EventCache:
    """Cache of finalized events keyed by guide URL."""

    def __init__(self, table_name: str, ttl_minutes: int = 15):
        """
        Initialize DynamoDB client and table reference.

        Args:
            table_name: Name of the DynamoDB table (hash key: url)
            ttl_minutes: Minutes before a cached guide is refetched
        """
        self.table_name = table_name
        self.ttl_seconds = ttl_minutes * 60
        self.dynamodb = boto3.resource('dynamodb')
        self.table = self.dynamodb.Table(table_name)
        logger.info(f"Initialized EventCache for table: {table_name}")

    def get(self, url: str) -> Optional[List[Event]]:
        """
        Look up cached events for a guide.

        Args:
            url: Guide URL

        Returns:
            List of finalized events, or None on a miss or expired entry
        """
        try:
            response = self.table.get_item(Key={'url': url})
        except ClientError as e:
            logger.error(f"Error reading cache entry for {url}: {e}")
            raise

        item = response.get('Item')
        if item is None:
            logger.info(f"Cache miss for {url}")
            return None

        # DynamoDB TTL deletion lags, so check expiry here as well
        if int(item['expires_at']) <= int(time.time()):
            logger.info(f"Cache entry for {url} expired")
            return None

        events = [self._item_to_event(entry) for entry in item.get('events', [])]
        logger.info(f"Cache hit for {url}: {len(events)} events")
        return events

    def put(self, url: str, events: List[Event]) -> None:
        """
        Store events for a guide.

        Args:
            url: Guide URL
            events: Finalized events extracted from the guide
        """
        now = int(time.time())
        item = {
            'url': url,
            'events': [self._event_to_item(event) for event in events],
            'cached_at': now,
            'expires_at': now + self.ttl_seconds,
        }
        try:
            self.table.put_item(Item=item)
        except ClientError as e:
            logger.error(f"Error writing cache entry for {url}: {e}")
            raise
        logger.info(f"Cached {len(events)} events for {url}")

    def _event_to_item(self, event: Event) -> dict:
        """
        Convert a finalized Event to a DynamoDB map.

        Args:
            event: Finalized Event

        Returns:
            DynamoDB map attribute value
        """
        item = {
            'title': event.title,
            'description': event.description,
            'start_date': event.dates.start.isoformat(),
            'times': [
                {'start': t.start.isoformat(), 'end': t.end.isoformat()}
                for t in event.times
            ],
        }

        # Add optional fields if present
        if event.dates.end:
            item['end_date'] = event.dates.end.isoformat()
        if event.link:
            item['link'] = event.link
        if event.location:
            item['location'] = event.location

        return item

    def _item_to_event(self, item: dict) -> Event:
        """
        Convert a DynamoDB map back to a finalized Event.

        Args:
            item: DynamoDB map attribute value

        Returns:
            Event object
        """
        end_date = item.get('end_date')
        return Event(
            dates=DateRange(
                start=date.fromisoformat(item['start_date']),
                end=date.fromisoformat(end_date) if end_date else None,
            ),
            times=[
                TimeRange(
                    start=datetime.fromisoformat(t['start']),
                    end=datetime.fromisoformat(t['end']),
                )
                for t in item.get('times', [])
            ],
            title=item['title'],
            description=item['description'],
            link=item.get('link'),
            location=item.get('location'),
            finalized=True,
        )
