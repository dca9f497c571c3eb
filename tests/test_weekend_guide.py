"""Unit tests for WeekendGuideScraper."""
from datetime import date

import pytest
import responses
from requests.exceptions import RequestException, Timeout

from scraper.weekend_guide import WeekendGuideScraper, most_recent_thursday

ANCHOR = date(2024, 5, 2)
GUIDE_URL = "https://www.littlerocksoiree.com/little-rock-weekend-guide-may-2-5/"


class TestMostRecentThursday:
    """Test cases for anchor date computation."""

    @pytest.mark.parametrize('today', [
        date(2024, 5, 2),   # Thursday
        date(2024, 5, 3),   # Friday
        date(2024, 5, 4),   # Saturday
        date(2024, 5, 5),   # Sunday
        date(2024, 5, 6),   # Monday
        date(2024, 5, 8),   # Wednesday
    ])
    def test_resolves_to_week_thursday(self, today):
        """Test that every day maps back to the guide's Thursday."""
        assert most_recent_thursday(today) == ANCHOR

    def test_next_thursday_starts_new_week(self):
        """Test that a Thursday is its own anchor."""
        assert most_recent_thursday(date(2024, 5, 9)) == date(2024, 5, 9)


class TestWeekendGuideScraper:
    """Test cases for WeekendGuideScraper class."""

    def test_guide_url(self):
        """Test guide URL construction."""
        scraper = WeekendGuideScraper()

        assert scraper.guide_url(ANCHOR) == GUIDE_URL

    def test_guide_url_month_abbreviation(self):
        """Test that the month is a lowercase abbreviation."""
        scraper = WeekendGuideScraper()

        assert scraper.guide_url(date(2024, 9, 12)).endswith(
            "little-rock-weekend-guide-sep-12-15/"
        )

    @responses.activate
    def test_fetch_guide_success(self):
        """Test streaming the guide body."""
        html = "<h2>Friday, May 3</h2><p><b>Show</b></p>"
        responses.add(responses.GET, GUIDE_URL, body=html, status=200)

        scraper = WeekendGuideScraper(timeout=30)
        body = b"".join(scraper.fetch_guide(ANCHOR))

        assert body == html.encode('utf-8')
        assert responses.calls[0].request.headers['User-Agent'] == 'CalBot/1.0'

    @responses.activate
    def test_fetch_guide_header_charset(self):
        """Test that the Content-Type charset travels with the stream."""
        responses.add(
            responses.GET, GUIDE_URL, body=b"<p>Caf\xe9</p>", status=200,
            content_type="text/html; charset=windows-1252"
        )

        scraper = WeekendGuideScraper(timeout=30)
        stream = scraper.fetch_guide(ANCHOR)

        assert stream.encoding == "windows-1252"
        assert b"".join(stream) == b"<p>Caf\xe9</p>"

    @responses.activate
    def test_fetch_guide_without_header_charset(self):
        """Test that no charset is assumed when the header has none."""
        responses.add(
            responses.GET, GUIDE_URL, body=b"<p>ok</p>", status=200,
            content_type="text/html"
        )

        scraper = WeekendGuideScraper(timeout=30)

        assert scraper.fetch_guide(ANCHOR).encoding is None

    @responses.activate
    def test_fetch_guide_with_retry_success(self):
        """Test retry logic succeeds after initial failures."""
        responses.add(responses.GET, GUIDE_URL, body="Server Error", status=500)
        responses.add(responses.GET, GUIDE_URL, body="Server Error", status=500)
        responses.add(responses.GET, GUIDE_URL, body="<p>ok</p>", status=200)

        scraper = WeekendGuideScraper(timeout=30, base_delay=0)
        body = b"".join(scraper.fetch_guide(ANCHOR))

        assert body == b"<p>ok</p>"
        assert len(responses.calls) == 3

    @responses.activate
    def test_fetch_guide_all_retries_fail(self):
        """Test that exception is raised when all retries fail."""
        for _ in range(3):
            responses.add(responses.GET, GUIDE_URL, body="Not Found", status=404)

        scraper = WeekendGuideScraper(timeout=30, base_delay=0)

        with pytest.raises(RequestException):
            scraper.fetch_guide(ANCHOR)

        assert len(responses.calls) == 3

    @responses.activate
    def test_fetch_guide_timeout(self):
        """Test timeout handling."""
        for _ in range(3):
            responses.add(responses.GET, GUIDE_URL, body=Timeout("Request timed out"))

        scraper = WeekendGuideScraper(timeout=30, base_delay=0)

        with pytest.raises(Timeout):
            scraper.fetch_guide(ANCHOR)

        assert len(responses.calls) == 3
