"""Finalizer that derives location, description and times for draft events."""
import logging
from datetime import date, datetime, timedelta
from typing import Iterable, Iterator, Optional

from processor.errors import TimeParseError
from processor.models import DateRange, Event, TimeRange
from processor.patterns import PatternTable

logger = logging.getLogger(__name__)

TITLE_STRIP_CHARS = ' \t\r\n\xa0/'


class EventFinalizer:
    """Turn draft events into finalized events, one at a time."""

    DEFAULT_DURATION = timedelta(hours=1)

    def __init__(self, patterns: PatternTable):
        self.patterns = patterns

    def finalize_events(self, drafts: Iterable[Event]) -> Iterator[Event]:
        """
        Finalize drafts in arrival order, dropping those without a title.

        Args:
            drafts: Draft events from the parser

        Yields:
            Finalized Event objects
        """
        for draft in drafts:
            event = self.finalize(draft)
            if event is not None:
                yield event

    def finalize(self, event: Event) -> Optional[Event]:
        """
        Finalize a single draft event.

        Args:
            event: Draft event; mutated in place

        Returns:
            The finalized event, or None if its title is empty
        """
        if event.finalized:
            return event

        event.title = event.title.strip(TITLE_STRIP_CHARS)
        if not event.title:
            logger.debug(f"Dropping untitled event on {event.dates.start}")
            return None

        match = self.patterns.location.search(event.title)
        if match:
            event.title = match.group('prefix')
            event.location = match.group('suffix')

        event.description = event.body.getvalue().strip()

        if event.dates.end is None:
            try:
                time_range = self._infer_times(event.description, event.dates.start)
            except TimeParseError as e:
                logger.warning(f"Ignoring times for '{event.title}': {e}")
                time_range = None
            if time_range is not None:
                event.times.append(time_range)
        else:
            # Calendar end dates are exclusive
            event.dates = DateRange(event.dates.start, event.dates.end + timedelta(days=1))

        event.finalized = True
        return event

    def _infer_times(self, description: str, day: date) -> Optional[TimeRange]:
        """
        Find the first time or time range in a description.

        Args:
            description: Event description text
            day: Calendar day the event falls on

        Returns:
            TimeRange on the given day, or None if no time is mentioned
        """
        match = self.patterns.time.search(description)
        if match is None:
            return None

        end_meridiem = match.group('meridiem')
        start_meridiem = match.group('start_meridiem') or end_meridiem

        start = datetime.combine(day, self._parse_clock(match.group('start'), start_meridiem))
        end_clock = match.group('end')
        if end_clock is None:
            end = start + self.DEFAULT_DURATION
        else:
            end = datetime.combine(day, self._parse_clock(end_clock, end_meridiem))
        return TimeRange(start=start, end=end)

    @staticmethod
    def _parse_clock(clock: str, meridiem: str):
        """
        Convert "7" or "7:30" plus "a"/"p" to a time of day.

        Raises:
            TimeParseError: If the values do not form a valid 12-hour time
        """
        if ':' not in clock:
            clock = f"{clock}:00"
        try:
            return datetime.strptime(f"{clock} {meridiem.upper()}M", '%I:%M %p').time()
        except ValueError as e:
            raise TimeParseError(f"Invalid time {clock} {meridiem}.m.") from e
