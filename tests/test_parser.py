"""Unit tests for the guide state machine parser."""
from datetime import date

import pytest

from processor.errors import MalformedInputError, UnresolvedWeekdayError
from processor.models import DateRange, Event
from processor.parser import (
    GuideParser,
    ParserState,
    resolve_dates,
    resolve_weekday,
)
from processor.patterns import build_patterns
from processor.tokenizer import Tokenizer

# Thursday
ANCHOR = date(2024, 5, 2)


def parse(source, anchor=ANCHOR):
    """Run the parser over source and return the emitted drafts."""
    events = []
    parser = GuideParser(Tokenizer(source), anchor, build_patterns(), emit=events.append)
    parser.run()
    return events


class TestResolveDates:
    """Test cases for weekday resolution."""

    @pytest.mark.parametrize('weekday,offset', [
        ('Thursday', 0),
        ('Friday', 1),
        ('saturday', 2),
        ('SUNDAY', 3),
    ])
    def test_resolve_weekday(self, weekday, offset):
        """Test offsets from Thursday."""
        assert resolve_weekday(weekday) == offset

    def test_resolve_unknown_weekday(self):
        """Test that weekdays outside the guide weekend are rejected."""
        with pytest.raises(UnresolvedWeekdayError):
            resolve_weekday('Monday')

    def test_single_day(self):
        """Test a single weekday heading."""
        assert resolve_dates(ANCHOR, 'Saturday') == DateRange(date(2024, 5, 4), None)

    def test_range(self):
        """Test a weekday range heading."""
        assert resolve_dates(ANCHOR, 'Friday', 'Sunday') == DateRange(
            date(2024, 5, 3), date(2024, 5, 5)
        )

    def test_reversed_range_is_swapped(self):
        """Test that start is never after end."""
        assert resolve_dates(ANCHOR, 'Sunday', 'Friday') == DateRange(
            date(2024, 5, 3), date(2024, 5, 5)
        )


class TestGuideParser:
    """Test cases for GuideParser class."""

    def test_single_day_section(self):
        """Test a paragraph in a single-day section."""
        events = parse(
            '<h2>Friday, May 3</h2>'
            '<p><b>Trivia Night at The Pub</b> Join us from 7 p.m. to 9 p.m.</p>'
        )

        assert len(events) == 1
        assert events[0].title == 'Trivia Night at The Pub'
        assert events[0].dates == DateRange(date(2024, 5, 3), None)
        assert events[0].body.getvalue() == ' Join us from 7 p.m. to 9 p.m.'

    def test_range_section(self):
        """Test paragraphs under a multi-day heading."""
        events = parse(
            '<h3>Friday - Sunday, May 3-5</h3>'
            '<p><b>Riverfest</b> All weekend long.</p>'
            '<p><b>Art Fair</b> Downtown.</p>'
        )

        assert [e.title for e in events] == ['Riverfest', 'Art Fair']
        for event in events:
            assert event.dates == DateRange(date(2024, 5, 3), date(2024, 5, 5))

    def test_events_do_not_share_dates(self):
        """Test that each draft owns its own date range."""
        events = parse(
            '<h3>Friday - Sunday, May 3-5</h3>'
            '<p><b>One</b></p><p><b>Two</b></p>'
        )

        assert events[0].dates is not events[1].dates

    def test_heading_text_is_accumulated(self):
        """Test a heading whose text is split by inline tags."""
        events = parse(
            '<h2><span>Saturday,</span> May 4\n</h2>'
            '<p><b>Farmers Market</b></p>'
        )

        assert events[0].dates.start == date(2024, 5, 4)

    def test_unrecognized_heading_skips_section(self):
        """Test that paragraphs under a non-date heading are ignored."""
        events = parse(
            '<h2>Friday, May 3</h2><p><b>Kept</b></p>'
            '<h2>Sponsored Content</h2><p><b>Skipped</b></p>'
            '<h2>Saturday, May 4</h2><p><b>Also kept</b></p>'
        )

        assert [e.title for e in events] == ['Kept', 'Also kept']

    def test_paragraphs_before_first_heading_are_ignored(self):
        """Test that the article intro is not an event."""
        events = parse('<p><b>Welcome</b> to the guide.</p><h2>Friday, May 3</h2><p><b>Show</b></p>')

        assert [e.title for e in events] == ['Show']

    def test_call_to_action_link(self):
        """Test that call-to-action anchors set the event link."""
        events = parse(
            '<h2>Friday, May 3</h2>'
            '<p><b>Art Walk</b> Free. <a href="https://example.com/art">Learn more here.</a></p>'
        )

        assert events[0].link == 'https://example.com/art'
        assert 'Learn more' not in events[0].body.getvalue()

    def test_plain_link_is_inlined(self):
        """Test that other anchors are written into the body with their href."""
        events = parse(
            '<h2>Friday, May 3</h2>'
            '<p><b>Concert</b> <a href="https://tickets.example.com">Buy tickets</a> now.</p>'
        )

        assert events[0].link is None
        assert events[0].body.getvalue() == ' Buy tickets (https://tickets.example.com) now.'

    def test_link_without_href(self):
        """Test that an anchor without an href gets an empty suffix."""
        events = parse('<h2>Friday, May 3</h2><p><b>Concert</b> <a name="map">Map</a></p>')

        assert events[0].link is None
        assert events[0].body.getvalue() == ' Map ()'

    def test_last_href_wins(self):
        """Test anchors carrying more than one href attribute."""
        events = parse(
            '<h2>Friday, May 3</h2>'
            '<p><b>Gala</b><a href="https://a.example.com" href="https://b.example.com">'
            'Learn more here</a></p>'
        )

        assert events[0].link == 'https://b.example.com'

    def test_list_items(self):
        """Test that list items are marked in the body."""
        events = parse(
            '<h2>Saturday, May 4</h2>'
            '<p><b>Market</b><ul><li>Produce</li><li>Crafts</li></ul></p>'
        )

        assert events[0].body.getvalue() == '- Produce- Crafts'

    def test_additional_bold_text_goes_to_body(self):
        """Test that only the first bold text becomes the title."""
        events = parse(
            '<h2>Friday, May 3</h2>'
            '<p><strong>Title</strong> then <b>more bold</b></p>'
        )

        assert events[0].title == 'Title'
        assert events[0].body.getvalue() == ' then more bold'

    def test_unknown_tag_ends_paragraph(self):
        """Test that an unclosed paragraph ends at the next paragraph."""
        events = parse(
            '<h2>Friday, May 3</h2>'
            '<p><b>One</b> first<p><b>Two</b> second</p>'
        )

        assert [e.title for e in events] == ['One', 'Two']
        assert events[0].body.getvalue() == ' first'

    def test_heading_inside_paragraph_starts_new_section(self):
        """Test that a heading ends the paragraph and opens its section."""
        events = parse(
            '<h2>Friday, May 3</h2>'
            '<p><b>One</b>'
            '<h2>Saturday, May 4</h2>'
            '<p><b>Two</b></p>'
        )

        assert [e.dates.start for e in events] == [date(2024, 5, 3), date(2024, 5, 4)]

    def test_open_paragraph_emitted_at_end_of_input(self):
        """Test that the last paragraph is not lost without a closing tag."""
        events = parse('<h2>Friday, May 3</h2><p><b>Late Show</b> 11 p.m.')

        assert [e.title for e in events] == ['Late Show']

    def test_untitled_paragraphs_are_still_emitted(self):
        """Test that the parser leaves title checks to the finalizer."""
        events = parse('<h2>Friday, May 3</h2><p>Photo credit: staff</p>')

        assert len(events) == 1
        assert events[0].title == ''

    def test_ignore_state_returns_to_paragraph(self):
        """Test skipping raw text until a style or script closes."""
        parser = GuideParser(
            Tokenizer('h1 { color: red }</style>after'), ANCHOR, build_patterns(), emit=print
        )
        parser.context.event = Event(dates=DateRange(ANCHOR))

        assert parser._parse_ignore() is ParserState.PARAGRAPH
        assert parser.context.event.body.getvalue() == ''

    def test_read_error_stops_parser(self):
        """Test that events before a stream failure have been emitted."""
        def chunks():
            yield '<h2>Friday, May 3</h2><p><b>One</b></p>'
            raise OSError('connection reset')

        events = []
        parser = GuideParser(Tokenizer(chunks()), ANCHOR, build_patterns(), emit=events.append)

        with pytest.raises(MalformedInputError):
            parser.run()
        assert [e.title for e in events] == ['One']

    def test_run_returns_emitted_count(self):
        """Test the emitted event count."""
        parser = GuideParser(
            Tokenizer('<h2>Friday, May 3</h2><p><b>A</b></p><p><b>B</b></p>'),
            ANCHOR,
            build_patterns(),
            emit=lambda event: None,
        )

        assert parser.run() == 2
        assert parser.context.state is ParserState.DONE
