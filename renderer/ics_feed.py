"""iCalendar feed rendering for extracted events."""
import logging
import uuid
from datetime import datetime, timezone
from typing import Iterable, Optional

from icalendar import Calendar
from icalendar import Event as CalendarEvent

from processor.models import Event

logger = logging.getLogger(__name__)

PRODID = '-//CalBot//Weekend Guide//EN'
CALENDAR_NAME = 'Little Rock Weekend Guide'


def render_calendar(events: Iterable[Event], now: Optional[datetime] = None) -> bytes:
    """
    Render finalized events as an iCalendar document.

    Timed events use floating local times. Multi-day events become all-day
    spans whose end date is already exclusive; single-day events without a
    time become a single all-day entry.

    Args:
        events: Finalized events
        now: Timestamp for DTSTAMP (default: current UTC time)

    Returns:
        Serialized calendar (text/calendar)
    """
    now = now or datetime.now(timezone.utc)

    calendar = Calendar()
    calendar.add('prodid', PRODID)
    calendar.add('version', '2.0')
    calendar.add('x-wr-calname', CALENDAR_NAME)

    count = 0
    for event in events:
        calendar.add_component(_to_component(event, now))
        count += 1

    logger.info(f"Rendered calendar with {count} events")
    return calendar.to_ical()


def _to_component(event: Event, now: datetime) -> CalendarEvent:
    component = CalendarEvent()
    component.add('uid', str(uuid.uuid4()))
    component.add('dtstamp', now)
    component.add('summary', event.title)
    if event.description:
        component.add('description', event.description)
    if event.location:
        component.add('location', event.location)
    if event.link:
        component.add('url', event.link)

    if event.times:
        component.add('dtstart', event.times[0].start)
        component.add('dtend', event.times[0].end)
    else:
        component.add('dtstart', event.dates.start)
        if event.dates.end is not None:
            component.add('dtend', event.dates.end)
    return component
