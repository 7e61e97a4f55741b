"""Dogwood Festival adapter (season listing page scrape)."""
import logging
import re
from typing import Dict, List

from processor.date_parsing import combine, parse_month_date
from processor.models import SECTION_DOWNTOWN, CanonicalEvent, Venue
from processor.text_utils import decode_html_entities, slugify
from sources.base import BaseAdapter

logger = logging.getLogger(__name__)

DOGWOOD_URL = 'https://www.thedogwoodfestival.com/2025-2026-events'

# "April 5, 2026: Title" and "April 24 - 26, 2026: Title"
_SINGLE_RE = re.compile(r'([A-Z][a-z]+)\s+(\d{1,2}),?\s+(\d{4}):\s*([^\n<●]+)')
_RANGE_RE = re.compile(
    r'([A-Z][a-z]+)\s+(\d{1,2})\s*[-–]\s*(\d{1,2}),?\s+(\d{4}):\s*([^\n<●]+)'
)


class DogwoodFestivalAdapter(BaseAdapter):
    """Single-day and multi-day festival listings."""

    name = 'dogwood'
    source = 'dogwood_festival'
    section = SECTION_DOWNTOWN

    def fetch(self) -> List[CanonicalEvent]:
        html = self.get_text(DOGWOOD_URL)
        return self.parse(html)

    def parse(self, html: str) -> List[CanonicalEvent]:
        """
        Extract future listings from the page markup.

        Args:
            html: Listing page

        Returns:
            Events whose end is after the fetch time, unique by id
        """
        now = self.fetched_at
        found: Dict[str, CanonicalEvent] = {}

        for month, day, year, raw_title in _SINGLE_RE.findall(html):
            event_date = parse_month_date(month, day, year)
            title = decode_html_entities(raw_title).strip()
            if not event_date or not title:
                continue
            event = self._build(title, combine(event_date), None, Venue(name='Fayetteville'),
                                ['Festivals & Fairs', 'Community'])
            if event.end > now:
                found.setdefault(event.id, event)

        for month, start_day, end_day, year, raw_title in _RANGE_RE.findall(html):
            start_date = parse_month_date(month, start_day, year)
            end_date = parse_month_date(month, end_day, year)
            title = decode_html_entities(raw_title).strip()
            if not start_date or not end_date or not title:
                continue
            event = self._build(title, combine(start_date), combine(end_date),
                                Venue(name='Festival Park'),
                                ['Festivals & Fairs', 'Signature Events'])
            if event.end > now:
                found.setdefault(event.id, event)

        return list(found.values())

    def _build(self, title, start, end, venue, categories) -> CanonicalEvent:
        day = start.date().isoformat()
        return self.make_event(
            event_id=f"dogwood_{day}_{slugify(title)}",
            source_id=f"{day}_{slugify(title)}",
            title=title,
            start=start,
            end=end,
            venue=venue,
            categories=categories,
            url=DOGWOOD_URL,
            overnight=False,
            time_known=False,
        )
