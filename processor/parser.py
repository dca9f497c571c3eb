"""State machine that turns guide markup into draft events."""
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Callable, Dict, List, Optional

from processor.errors import UnresolvedWeekdayError
from processor.models import DateRange, Event
from processor.patterns import PatternTable
from processor.tokenizer import Tokenizer, TokenType

logger = logging.getLogger(__name__)

HEADING_TAGS = frozenset({'h1', 'h2', 'h3', 'h4', 'h5'})
BOLD_TAGS = frozenset({'b', 'strong'})
SKIPPED_TAGS = frozenset({'ul', 'ol', 'span', 'div'})
RAW_TEXT_TAGS = frozenset({'style', 'script'})

# Days after the Thursday the guide is published for
WEEKDAY_OFFSETS = {
    'thursday': 0,
    'friday': 1,
    'saturday': 2,
    'sunday': 3,
}


class ParserState(Enum):
    ROOT = 'root'
    HEADER = 'header'
    SECTION = 'section'
    PARAGRAPH = 'paragraph'
    LINK = 'link'
    BOLD = 'bold'
    IGNORE = 'ignore'
    DONE = 'done'


@dataclass
class ParseContext:
    """Everything the state machine knows between transitions."""
    anchor: date
    state: ParserState = ParserState.ROOT
    dates: Optional[DateRange] = None
    header_tag: str = ''
    header_text: List[str] = field(default_factory=list)
    event: Optional[Event] = None
    emitted: int = 0
    sections: int = 0


def resolve_weekday(weekday: str) -> int:
    """
    Map a weekday name to its offset from Thursday.

    Raises:
        UnresolvedWeekdayError: If the name is not Thursday through Sunday
    """
    try:
        return WEEKDAY_OFFSETS[weekday.lower()]
    except KeyError:
        raise UnresolvedWeekdayError(weekday) from None


def resolve_dates(anchor: date, start_weekday: str, end_weekday: Optional[str] = None) -> DateRange:
    """
    Resolve heading weekdays to calendar dates relative to the anchor Thursday.

    Args:
        anchor: Thursday the guide was published for
        start_weekday: First weekday named in the heading
        end_weekday: Second weekday of a range heading, if any

    Returns:
        DateRange with end unset for single-day headings
    """
    start = anchor + timedelta(days=resolve_weekday(start_weekday))
    end = None
    if end_weekday:
        end = anchor + timedelta(days=resolve_weekday(end_weekday))
        if start > end:
            start, end = end, start
    return DateRange(start=start, end=end)


class GuideParser:
    """
    Parse a weekend guide into draft events.

    Each state is handled by a method that consumes tokens and returns the
    next state. Drafts are handed to ``emit`` as soon as their paragraph
    closes; the parser never touches an event after emitting it.
    """

    def __init__(
        self,
        tokenizer: Tokenizer,
        anchor: date,
        patterns: PatternTable,
        emit: Callable[[Event], None],
    ):
        self.tokenizer = tokenizer
        self.patterns = patterns
        self.context = ParseContext(anchor=anchor)
        self._emit_event = emit
        self._transitions: Dict[ParserState, Callable[[], ParserState]] = {
            ParserState.ROOT: self._parse_root,
            ParserState.HEADER: self._parse_header,
            ParserState.SECTION: self._parse_section,
            ParserState.PARAGRAPH: self._parse_paragraph,
            ParserState.LINK: self._parse_link,
            ParserState.BOLD: self._parse_bold,
            ParserState.IGNORE: self._parse_ignore,
        }

    def run(self) -> int:
        """
        Drive the state machine until end of input.

        Returns:
            Number of draft events emitted

        Raises:
            MalformedInputError: If the document stream fails mid-read
        """
        ctx = self.context
        while ctx.state is not ParserState.DONE:
            ctx.state = self._transitions[ctx.state]()
        logger.info(
            f"Parsed {ctx.emitted} draft events from {ctx.sections} dated sections"
        )
        return ctx.emitted

    def _emit(self) -> None:
        ctx = self.context
        event, ctx.event = ctx.event, None
        ctx.emitted += 1
        self._emit_event(event)

    def _finish(self) -> ParserState:
        # End of input closes whatever paragraph is still open
        if self.context.event is not None:
            self._emit()
        return ParserState.DONE

    def _start_header(self, tag: str) -> ParserState:
        self.context.header_tag = tag
        self.context.header_text = []
        return ParserState.HEADER

    def _parse_root(self) -> ParserState:
        while True:
            token = self.tokenizer.next()
            if token.type is TokenType.EOF:
                return ParserState.DONE
            if token.type is TokenType.START_TAG and token.tag in HEADING_TAGS:
                return self._start_header(token.tag)

    def _parse_header(self) -> ParserState:
        ctx = self.context
        while True:
            token = self.tokenizer.next()
            if token.type is TokenType.EOF:
                return ParserState.DONE
            if token.type is TokenType.TEXT:
                ctx.header_text.append(token.text)
            elif token.type is TokenType.END_TAG and token.tag in HEADING_TAGS:
                break

        text = ''.join(ctx.header_text).strip()
        match = self.patterns.date_header.search(text)
        if match is None:
            logger.debug(f"Skipping <{ctx.header_tag}> heading: {text!r}")
            return ParserState.ROOT

        try:
            ctx.dates = resolve_dates(
                ctx.anchor, match.group('start_weekday'), match.group('end_weekday')
            )
        except UnresolvedWeekdayError as e:
            logger.warning(f"Skipping heading {text!r}: {e}")
            return ParserState.ROOT

        ctx.sections += 1
        logger.debug(f"Entering section {text!r}: {ctx.dates}")
        return ParserState.SECTION

    def _parse_section(self) -> ParserState:
        ctx = self.context
        while True:
            token = self.tokenizer.next()
            if token.type is TokenType.EOF:
                return ParserState.DONE
            if token.type is not TokenType.START_TAG:
                continue
            if token.tag in HEADING_TAGS:
                return self._start_header(token.tag)
            if token.tag == 'p':
                # Each event gets its own copy; the finalizer extends it in place
                ctx.event = Event(dates=DateRange(ctx.dates.start, ctx.dates.end))
                return ParserState.PARAGRAPH

    def _parse_paragraph(self) -> ParserState:
        # Peek first: bold and link states consume their own opening tag,
        # and a tag that ends the paragraph belongs to the section.
        event = self.context.event
        while True:
            token = self.tokenizer.peek()
            if token.type is TokenType.EOF:
                return self._finish()
            if token.type is TokenType.TEXT:
                event.append(token.text)
            elif token.type is TokenType.START_TAG:
                if token.tag in BOLD_TAGS:
                    return ParserState.BOLD
                if token.tag == 'a':
                    return ParserState.LINK
                if token.tag == 'li':
                    event.append('- ')
                elif token.tag not in SKIPPED_TAGS:
                    self._emit()
                    return ParserState.SECTION
            elif token.type is TokenType.END_TAG and token.tag == 'p':
                self.tokenizer.next()
                self._emit()
                return ParserState.SECTION
            self.tokenizer.next()

    def _parse_link(self) -> ParserState:
        event = self.context.event
        href = None
        call_to_action = False
        while True:
            token = self.tokenizer.next()
            if token.type is TokenType.EOF:
                return self._finish()
            if token.type is TokenType.START_TAG and token.tag == 'a':
                href = token.attr('href')
            elif token.type is TokenType.TEXT:
                if self.patterns.call_to_action.search(token.text):
                    call_to_action = True
                else:
                    event.append(token.text)
            elif token.type is TokenType.END_TAG and token.tag == 'a':
                if call_to_action:
                    event.link = href
                else:
                    event.append(f" ({href or ''})")
                return ParserState.PARAGRAPH

    def _parse_bold(self) -> ParserState:
        event = self.context.event
        while True:
            token = self.tokenizer.next()
            if token.type is TokenType.EOF:
                return self._finish()
            if token.type is TokenType.TEXT:
                if event.title == '':
                    event.title = token.text
                else:
                    event.append(token.text)
            elif token.type is TokenType.END_TAG and token.tag in BOLD_TAGS:
                return ParserState.PARAGRAPH

    def _parse_ignore(self) -> ParserState:
        # Not entered by any current transition; skips <style>/<script> bodies.
        while True:
            token = self.tokenizer.next()
            if token.type is TokenType.EOF:
                return self._finish()
            if token.type is TokenType.END_TAG and token.tag in RAW_TEXT_TAGS:
                return ParserState.PARAGRAPH
