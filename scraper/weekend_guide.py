"""Fetcher for the Little Rock Soiree weekend guide."""
import logging
import time
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterator, Optional

import requests

logger = logging.getLogger(__name__)

THURSDAY = 3


@dataclass
class GuideStream:
    """A guide body being streamed, with the charset its response declared."""
    chunks: Iterator[bytes]
    encoding: Optional[str] = None

    def __iter__(self) -> Iterator[bytes]:
        return iter(self.chunks)


def most_recent_thursday(today: Optional[date] = None) -> date:
    """
    Find the Thursday the current weekend guide was published for.

    Args:
        today: Reference date (default: today)

    Returns:
        today if it is Thursday, otherwise the closest preceding Thursday
    """
    today = today or date.today()
    return today - timedelta(days=(today.weekday() - THURSDAY) % 7)


class WeekendGuideScraper:
    """Streams the weekend guide article published each Thursday."""

    BASE_URL = "https://www.littlerocksoiree.com"
    USER_AGENT = "CalBot/1.0"
    CHUNK_SIZE = 8192

    def __init__(self, timeout: int = 30, max_retries: int = 3, base_delay: float = 1):
        """
        Initialize the guide scraper.

        Args:
            timeout: HTTP request timeout in seconds (default: 30)
            max_retries: Attempts before giving up (default: 3)
            base_delay: First backoff delay in seconds, doubled per attempt
        """
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.session = requests.Session()
        self.session.headers['User-Agent'] = self.USER_AGENT

    def guide_url(self, anchor: date) -> str:
        """
        Build the guide URL for the weekend starting on the anchor Thursday.

        The site names guides by the Thursday's day and that day plus three,
        e.g. little-rock-weekend-guide-may-2-5.
        """
        month = anchor.strftime('%b').lower()
        return (
            f"{self.BASE_URL}/little-rock-weekend-guide-"
            f"{month}-{anchor.day}-{anchor.day + 3}/"
        )

    def fetch_guide(self, anchor: date) -> GuideStream:
        """
        Open the guide for streaming with retry logic.

        Args:
            anchor: Thursday the guide was published for

        Returns:
            GuideStream over the raw response body and its header charset

        Raises:
            requests.RequestException: If all retry attempts fail
        """
        url = self.guide_url(anchor)

        for attempt in range(self.max_retries):
            try:
                logger.info(
                    f"Fetching guide {url} (attempt {attempt + 1}/{self.max_retries})"
                )
                response = self.session.get(url, timeout=self.timeout, stream=True)
                response.raise_for_status()
                return GuideStream(
                    response.iter_content(chunk_size=self.CHUNK_SIZE),
                    self._header_encoding(response),
                )

            except requests.RequestException as e:
                if attempt < self.max_retries - 1:
                    delay = self.base_delay * (2 ** attempt)
                    logger.warning(
                        f"Request failed (attempt {attempt + 1}/{self.max_retries}): {e}. "
                        f"Retrying in {delay} seconds..."
                    )
                    time.sleep(delay)
                else:
                    logger.error(
                        f"All {self.max_retries} retry attempts failed. Last error: {e}"
                    )
                    raise

    @staticmethod
    def _header_encoding(response: requests.Response) -> Optional[str]:
        # requests falls back to ISO-8859-1 for text/* without a charset
        content_type = response.headers.get('Content-Type', '')
        if 'charset' not in content_type.lower():
            return None
        return response.encoding
