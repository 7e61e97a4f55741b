"""Base class shared by every event source adapter."""
import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import requests
from bs4 import BeautifulSoup

from processor.categories import normalize_categories
from processor.date_parsing import local_now, resolve_end
from processor.models import SECTION_DOWNTOWN, CanonicalEvent, Venue

logger = logging.getLogger(__name__)

HEADERS = {
    'User-Agent': 'FayettevilleCentralCalendar/1.0',
    'Accept': 'text/html,application/json,application/xml;q=0.9,*/*;q=0.8',
}


class BaseAdapter(ABC):
    """
    Fetch-and-map unit for one upstream source.

    Subclasses implement fetch(); run() wraps it so that any failure
    degrades this source to an empty contribution.
    """

    name: str = 'base'
    source: str = 'base'
    section: str = SECTION_DOWNTOWN

    max_retries = 3
    base_delay = 1  # seconds, doubled per retry
    request_delay = 0.5  # courtesy pause between requests to one host

    def __init__(self, timeout: int = 30, enhanced: bool = False):
        """
        Initialize the adapter.

        Args:
            timeout: HTTP request timeout in seconds (default: 30)
            enhanced: Enable slower best-effort metadata enrichment
        """
        self.timeout = timeout
        self.enhanced = enhanced
        self.failed = False
        self.fetched_at = local_now()
        self.session = requests.Session()
        self.session.headers.update(HEADERS)

    def _get(self, url: str, params: Optional[Dict[str, Any]] = None) -> requests.Response:
        """
        GET a URL with retry logic.

        Server errors, timeouts and connection errors are retried with
        exponential backoff; client errors are raised immediately.

        Args:
            url: URL to fetch
            params: Query parameters

        Returns:
            Successful response

        Raises:
            requests.RequestException: If all retry attempts fail
        """
        for attempt in range(self.max_retries):
            try:
                response = self.session.get(url, params=params, timeout=self.timeout)
                response.raise_for_status()
                return response

            except requests.HTTPError as e:
                if e.response is not None and e.response.status_code < 500:
                    raise
                if attempt >= self.max_retries - 1:
                    logger.error(
                        f"[{self.name}] All {self.max_retries} attempts failed for {url}: {e}"
                    )
                    raise
                self._backoff(attempt, url, e)

            except (requests.ConnectionError, requests.Timeout) as e:
                if attempt >= self.max_retries - 1:
                    logger.error(
                        f"[{self.name}] All {self.max_retries} attempts failed for {url}: {e}"
                    )
                    raise
                self._backoff(attempt, url, e)

    def _backoff(self, attempt: int, url: str, error: Exception) -> None:
        delay = self.base_delay * (2 ** attempt)
        logger.warning(
            f"[{self.name}] Request to {url} failed "
            f"(attempt {attempt + 1}/{self.max_retries}): {error}. "
            f"Retrying in {delay} seconds..."
        )
        time.sleep(delay)

    def get_text(self, url: str, params: Optional[Dict[str, Any]] = None) -> str:
        return self._get(url, params=params).text

    def get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self._get(url, params=params).json()

    def pause(self, seconds: Optional[float] = None) -> None:
        """Sleep between consecutive requests to the same host."""
        seconds = self.request_delay if seconds is None else seconds
        if seconds > 0:
            time.sleep(seconds)

    def fetch_og_image(self, url: str) -> Optional[str]:
        """
        Best-effort lookup of a page's og:image.

        Args:
            url: Event detail page

        Returns:
            Image URL or None if unavailable
        """
        try:
            soup = BeautifulSoup(self.get_text(url), 'html.parser')
        except requests.RequestException as e:
            logger.warning(f"[{self.name}] Could not fetch {url} for og:image: {e}")
            return None
        tag = soup.find('meta', attrs={'property': 'og:image'})
        if tag and tag.get('content'):
            return tag['content']
        return None

    def make_event(
        self,
        event_id: str,
        source_id: str,
        title: str,
        start: datetime,
        end: Optional[datetime] = None,
        description: str = '',
        venue: Optional[Venue] = None,
        categories: Iterable[str] = (),
        url: str = '',
        ticket_url: Optional[str] = None,
        image_url: Optional[str] = None,
        contact_phone: Optional[str] = None,
        last_modified: Optional[datetime] = None,
        overnight: bool = True,
        section: Optional[str] = None,
        time_known: bool = True,
    ) -> CanonicalEvent:
        """Build a canonical event with normalized categories and a valid end."""
        return CanonicalEvent(
            id=event_id,
            source=self.source,
            source_id=str(source_id),
            title=title.strip(),
            description=description,
            start=start,
            end=resolve_end(start, end, overnight=overnight),
            venue=venue,
            categories=normalize_categories(categories),
            url=url,
            ticket_url=ticket_url or None,
            image_url=image_url or None,
            contact_phone=contact_phone or None,
            last_modified=last_modified or self.fetched_at,
            section=section or self.section,
            time_known=time_known,
        )

    @abstractmethod
    def fetch(self) -> List[CanonicalEvent]:
        """Fetch events from the source. Must be implemented by subclasses."""

    def run(self) -> List[CanonicalEvent]:
        """
        Run the adapter with error handling.

        Returns:
            Fetched events, or an empty list if the source failed
        """
        self.failed = False
        self.fetched_at = local_now()
        logger.info(f"[{self.name}] Fetching events")
        try:
            events = self.fetch()
        except Exception as e:
            self.failed = True
            logger.error(
                f"[{self.name}] Fetch failed: {e}",
                extra={'source': self.source, 'error_type': type(e).__name__},
                exc_info=True
            )
            return []

        logger.info(f"[{self.name}] Found {len(events)} events")
        return events
