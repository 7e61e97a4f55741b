"""Cameo Art House Theatre adapter (now-showing page scrape)."""
import logging
import re
from datetime import timedelta
from typing import List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from processor.date_parsing import combine, parse_date, parse_time_string
from processor.models import SECTION_DOWNTOWN, CanonicalEvent, Venue
from processor.text_utils import clean_description, collapse_whitespace, slugify
from sources.base import BaseAdapter

logger = logging.getLogger(__name__)

SITE_URL = 'https://www.cameoarthouse.com'
NOW_SHOWING_URL = f"{SITE_URL}/now-showing"

CAMEO_VENUE = Venue(
    name='Cameo Art House Theatre',
    address='225 Hay St',
    zip_code='28301',
)

_RUNTIME_RE = re.compile(
    r'(?:(\d+)\s*h(?:ou)?rs?\.?)?\s*(?:(\d+)\s*min)?', re.IGNORECASE
)


def parse_runtime(text: Optional[str]) -> Optional[timedelta]:
    """'1 hr 52 min' style runtimes; None when absent or unparseable."""
    if not text:
        return None
    for match in _RUNTIME_RE.finditer(text):
        hours, minutes = match.group(1), match.group(2)
        if hours or minutes:
            return timedelta(hours=int(hours or 0), minutes=int(minutes or 0))
    return None


class CameoTheatreAdapter(BaseAdapter):
    """One event per film showtime."""

    name = 'cameo'
    source = 'cameo_theatre'
    section = SECTION_DOWNTOWN

    def fetch(self) -> List[CanonicalEvent]:
        return self.parse(self.get_text(NOW_SHOWING_URL))

    def parse(self, html: str) -> List[CanonicalEvent]:
        """
        Expand every film's showtime grid into events.

        Showtimes are listed without AM/PM and read as afternoon/evening.

        Args:
            html: Now-showing page

        Returns:
            Showtime events
        """
        soup = BeautifulSoup(html, 'html.parser')
        results = []

        for film in soup.select('.film'):
            heading = film.select_one('.film-title')
            if not heading:
                continue
            title = collapse_whitespace(heading.get_text(' '))
            if not title:
                continue

            link = heading.find('a')
            url = urljoin(SITE_URL, link['href']) if link and link.get('href') else NOW_SHOWING_URL
            synopsis = film.select_one('.film-synopsis')
            description = clean_description(str(synopsis) if synopsis else '', title)
            runtime_el = film.select_one('.film-runtime')
            runtime = parse_runtime(runtime_el.get_text(' ') if runtime_el else None)
            poster = film.select_one('img')
            image_url = urljoin(SITE_URL, poster['src']) if poster and poster.get('src') else None

            for day_block in film.select('.showtime-day'):
                day_heading = day_block.find(['h3', 'h4', 'h5'])
                day = parse_date(day_heading.get_text(' ')) if day_heading else None
                if not day:
                    logger.warning(f"[{self.name}] No date for a showtime block of '{title}'")
                    continue

                for slot in day_block.select('.showtime'):
                    at = parse_time_string(slot.get_text(strip=True), assume_pm=True)
                    if not at:
                        continue
                    start = combine(day, at)
                    stamp = start.strftime('%Y%m%d%H%M')
                    film_slug = slugify(title, max_length=40)
                    results.append(self.make_event(
                        event_id=f"cameo_{film_slug}_{stamp}",
                        source_id=f"{film_slug}_{stamp}",
                        title=title,
                        start=start,
                        end=start + runtime if runtime else None,
                        description=description,
                        venue=CAMEO_VENUE,
                        categories=['Movies'],
                        url=url,
                        image_url=image_url,
                    ))

        return results
