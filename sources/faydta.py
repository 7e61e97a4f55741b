"""Downtown Alliance adapter (Modern Events Calendar API plus signature events)."""
import logging
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional

import requests

from processor.date_parsing import (
    combine,
    nth_weekday,
    parse_date,
    parse_time_string,
    to_datetime,
)
from processor.models import SECTION_DOWNTOWN, CanonicalEvent, Venue
from processor.text_utils import clean_description, decode_html_entities
from sources.base import BaseAdapter

logger = logging.getLogger(__name__)

FAYDTA_API = 'https://www.faydta.com/wp-json/mec/v1/events'
FAYDTA_EVENTS_URL = 'https://www.faydta.com/events/'
DICKENS_HOLIDAY_URL = 'http://adickensholiday.com/'

DICKENS_START = time(12, 0)
DICKENS_END = time(22, 0)
DICKENS_DESCRIPTION = (
    'Annual Victorian-themed holiday celebration in Downtown Fayetteville. '
    'Features holiday shopping, artisan vendors, food trucks, costumed Dickens '
    'characters, carolers, carriage rides, candlelight procession, tree lighting '
    'ceremony, and fireworks. Free admission.'
)


def dickens_holiday_date(year: int) -> date:
    """A Dickens Holiday falls on the last Friday of November."""
    return nth_weekday(year, 11, 4, -1)


def _rendered(value) -> str:
    if isinstance(value, dict):
        return value.get('rendered') or ''
    return value or ''


def _mec_side(event: Dict, side: str) -> Optional[datetime]:
    """Start or end instant from an MEC event's date block or meta."""
    block = (event.get('date') or {}).get(side) or {}
    day = parse_date(block.get('date') or (event.get('meta') or {}).get(f"mec_{side}_date"))
    if not day:
        return None

    at = None
    if block.get('hour'):
        clock = f"{block['hour']}:{block.get('minutes') or '00'} {block.get('ampm') or ''}"
        at = parse_time_string(clock.strip())
    return combine(day, at)


def _has_time(event: Dict, side: str) -> bool:
    return bool(((event.get('date') or {}).get(side) or {}).get('hour'))


class FayDtaAdapter(BaseAdapter):
    """Downtown Alliance calendar; the API is often empty outside festival season."""

    name = 'faydta'
    source = 'faydta'
    section = SECTION_DOWNTOWN

    def fetch(self) -> List[CanonicalEvent]:
        results = []
        try:
            results.extend(self._fetch_calendar())
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"[{self.name}] Calendar API unavailable: {e}")

        dickens = self.dickens_holiday()
        if dickens:
            results.append(dickens)
        return results

    def _fetch_calendar(self) -> List[CanonicalEvent]:
        events = self.get_json(FAYDTA_API)
        if not isinstance(events, list):
            return []

        now = self.fetched_at
        results = []
        for event in events:
            try:
                mapped = self._to_event(event)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"[{self.name}] Skipping event {event.get('ID')}: {e}")
                continue
            if mapped.end > now:
                results.append(mapped)
        return results

    def _to_event(self, event: Dict) -> CanonicalEvent:
        start = _mec_side(event, 'start')
        if start is None:
            raise ValueError('no start date')
        end = _mec_side(event, 'end')

        native_id = event.get('ID') or event.get('id')
        title = decode_html_entities(_rendered(event.get('title'))) or 'Downtown Alliance Event'
        description = _rendered(event.get('content')) or _rendered(event.get('excerpt'))
        location = event.get('location') or {}
        categories = [c.get('name') for c in event.get('categories') or [] if isinstance(c, dict)]
        image = (event.get('featured_image') or {}).get('large') or event.get('thumbnail')

        return self.make_event(
            event_id=f"faydta_{native_id}",
            source_id=native_id,
            title=title,
            start=start,
            end=end,
            description=clean_description(description, title),
            venue=Venue(
                name=location.get('name') or 'Downtown Fayetteville',
                address=location.get('address') or None,
            ),
            categories=categories or ['Community'],
            url=event.get('link') or event.get('permalink') or FAYDTA_EVENTS_URL,
            image_url=image,
            last_modified=to_datetime(event.get('modified')),
            overnight=_has_time(event, 'end'),
            time_known=_has_time(event, 'start'),
        )

    def dickens_holiday(self) -> Optional[CanonicalEvent]:
        """
        The next A Dickens Holiday, if it falls within a year.

        Returns:
            Computed event or None
        """
        now = self.fetched_at
        day = dickens_holiday_date(now.year)
        if combine(day, DICKENS_END) < now:
            day = dickens_holiday_date(now.year + 1)
        if day > (now + timedelta(days=366)).date():
            return None

        return self.make_event(
            event_id=f"faydta_dickens_{day.year}",
            source_id=f"dickens_{day.year}",
            title='A Dickens Holiday',
            start=combine(day, DICKENS_START),
            end=combine(day, DICKENS_END),
            description=DICKENS_DESCRIPTION,
            venue=Venue(name='Downtown Fayetteville'),
            categories=['Festivals & Fairs', 'Community', 'Holiday'],
            url=DICKENS_HOLIDAY_URL,
        )
