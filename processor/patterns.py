"""Compiled text patterns shared by the parser and the finalizer."""
import re
from dataclasses import dataclass
from typing import Pattern

WEEKDAYS = ('Thursday', 'Friday', 'Saturday', 'Sunday')

MONTHS = (
    'January', 'February', 'March', 'April', 'May', 'June', 'July',
    'August', 'September', 'October', 'November', 'December',
)

_WEEKDAY = '|'.join(WEEKDAYS)
_MONTH = '|'.join(MONTHS)
_WS = r'[ \t\xa0]'
_CLOCK = r'(?:1[0-2]|[1-9])(?::[0-5][0-9])?'
_MERIDIEM = r'\.?m\.?(?![a-z])'

# e.g. "Friday - Sunday, May 3-5" or "Thursday, May 2"
DATE_HEADER = (
    rf'^(?P<start_weekday>{_WEEKDAY})'
    rf'(?:{_WS}*(?:-|–|&) (?P<end_weekday>{_WEEKDAY}))?'
    rf',{_WS}*(?P<month>{_MONTH}){_WS}*(?P<start_day>[1-9][0-9]*)'
    rf'(?:{_WS}*(?:-|–|&){_WS}*?(?P<end_day>[1-9][0-9]*))?$'
)

# e.g. "7 p.m.", "11 a.m. - 6 p.m.", "7 to 9:30 p.m. Friday"
TIME = (
    rf'(?<![\d:])(?P<start>{_CLOCK})'
    rf'(?:{_WS}*(?:(?P<start_meridiem>[ap]){_MERIDIEM})?'
    rf'{_WS}*(?:-|–|to){_WS}*(?P<end>{_CLOCK}))?'
    rf'{_WS}+(?P<meridiem>[ap]){_MERIDIEM}'
    rf'(?:{_WS}+(?:on{_WS}+)?(?P<weekday>{_WEEKDAY}))?'
)

# Greedy prefix, so the rightmost " at " or " in " splits the title.
LOCATION = r'(?P<prefix>.*) (?:at|in) (?:the )?(?P<suffix>.*)'

CALL_TO_ACTION = r'Learn more here.?'


@dataclass(frozen=True)
class PatternTable:
    """Read-only set of compiled patterns."""
    date_header: Pattern
    time: Pattern
    location: Pattern
    call_to_action: Pattern


def build_patterns() -> PatternTable:
    """Compile the pattern table."""
    return PatternTable(
        date_header=re.compile(DATE_HEADER),
        time=re.compile(TIME, re.IGNORECASE),
        location=re.compile(LOCATION),
        call_to_action=re.compile(CALL_TO_ACTION),
    )
