"""Data models for weekend guide event extraction."""
from dataclasses import dataclass, field
from datetime import date, datetime
from io import StringIO
from typing import List, Optional


@dataclass
class DateRange:
    """Single day when end is None, otherwise an inclusive span."""
    start: date
    end: Optional[date] = None


@dataclass
class TimeRange:
    """Clock-time interval on one day."""
    start: datetime
    end: datetime


@dataclass
class Event:
    """Event record, drafted by the parser and completed by the finalizer."""
    dates: DateRange
    times: List[TimeRange] = field(default_factory=list)
    title: str = ''
    body: StringIO = field(default_factory=StringIO, repr=False, compare=False)
    description: str = ''
    link: Optional[str] = None
    location: Optional[str] = None
    finalized: bool = field(default=False, repr=False, compare=False)

    def append(self, text: str) -> None:
        """Append text to the body accumulator."""
        self.body.write(text)


@dataclass
class ExtractionResult:
    """Events extracted from one document and the error that stopped it, if any."""
    events: List[Event]
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None
