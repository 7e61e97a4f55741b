"""Fort Liberty MWR adapter (installation calendar agenda pages)."""
import logging
import re
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

import requests

from processor.date_parsing import combine, month_number, parse_time_string
from processor.models import SECTION_FORT_BRAGG, CanonicalEvent, Venue
from processor.text_utils import decode_html_entities
from sources.base import BaseAdapter

logger = logging.getLogger(__name__)

SITE_URL = 'https://bragg.armymwr.com'
CALENDAR_URL = f"{SITE_URL}/calendar"
WEEKS_AHEAD = 5
ENHANCED_DELAY = 0.3

_EVENT_LINK_RE = re.compile(r'/calendar/event/([a-zA-Z0-9-]+)/(\d+)/(\d+)', re.IGNORECASE)
_LINK_TEXT_RE = re.compile(r'>([A-Z][^<]{4,60})</a>')
_TIME_RANGE_RE = re.compile(
    r'(\d{1,2}(?::\d{2})?\s*(?:am|pm))\s*[-–]\s*(\d{1,2}(?::\d{2})?\s*(?:am|pm))',
    re.IGNORECASE
)
_PROGRAM_RE = re.compile(r'/programs/[^"]+">([^<]+)<')
_MONTH_DAY_RE = re.compile(
    r'(January|February|March|April|May|June|July|August|September|October|November|December)'
    r'\s+(\d{1,2})',
    re.IGNORECASE
)

# Characters scanned around each event link for its title, time and venue
CONTEXT_BEFORE = 300
CONTEXT_AFTER = 500


def _title_from_slug(slug: str) -> str:
    return ' '.join(word.capitalize() for word in slug.split('-') if word)


def _event_date(context: str, fallback: date, today: date) -> date:
    """Date shown near the link, else the requested week's date."""
    match = _MONTH_DAY_RE.search(context)
    if not match:
        return fallback
    month = month_number(match.group(1))
    try:
        found = date(fallback.year, month, int(match.group(2)))
    except ValueError:
        return fallback
    # agenda pages omit the year; a month already behind us means next year
    if found < today and month < today.month:
        found = found.replace(year=found.year + 1)
    return found


class FortLibertyMwrAdapter(BaseAdapter):
    """Installation MWR events, scraped one agenda week at a time."""

    name = 'fortliberty'
    source = 'fort_liberty_mwr'
    section = SECTION_FORT_BRAGG

    def fetch(self) -> List[CanonicalEvent]:
        today = self.fetched_at.date()
        found: Dict[str, CanonicalEvent] = {}

        for week in range(WEEKS_AHEAD):
            target = today + timedelta(weeks=week)
            try:
                html = self.get_text(
                    CALENDAR_URL,
                    params={'date': target.strftime('%m/%d/%Y'), 'mode': 'agenda'}
                )
            except requests.RequestException as e:
                logger.warning(f"[{self.name}] Week {week} ({target}) failed: {e}")
                continue

            for event in self.parse_agenda(html, target, today):
                found.setdefault(event.id, event)

            if week < WEEKS_AHEAD - 1:
                self.pause()

        events = sorted(found.values(), key=lambda event: event.start)

        if self.enhanced:
            for event in events:
                event.image_url = self.fetch_og_image(event.url)
                self.pause(ENHANCED_DELAY)

        return events

    def parse_agenda(self, html: str, target: date, today: date) -> List[CanonicalEvent]:
        """
        Extract events from one agenda page.

        Args:
            html: Agenda markup
            target: Date the page was requested for
            today: Reference date for year rollover

        Returns:
            Events in page order (may repeat ids across pages)
        """
        events = []
        seen = set()
        for match in _EVENT_LINK_RE.finditer(html):
            path, slug, event_id, occurrence_id = match.group(0), *match.groups()
            unique_id = f"ftliberty_{event_id}_{occurrence_id}"
            if unique_id in seen:
                continue
            seen.add(unique_id)

            context = html[max(0, match.start() - CONTEXT_BEFORE):match.start() + CONTEXT_AFTER]
            try:
                events.append(self._to_event(path, slug, event_id, occurrence_id, context, target, today))
            except ValueError as e:
                logger.warning(f"[{self.name}] Skipping {path}: {e}")
        return events

    def _to_event(self, path, slug, event_id, occurrence_id, context, target, today) -> CanonicalEvent:
        title = _title_from_slug(slug)
        link_text = _LINK_TEXT_RE.search(context)
        if link_text and not re.search(r'\.(png|jpe?g)', link_text.group(1), re.IGNORECASE):
            title = link_text.group(1).strip()
        title = decode_html_entities(title)

        event_day = _event_date(context, target, today)

        start_time = end_time = None
        time_range = _TIME_RANGE_RE.search(context)
        if time_range:
            start_time = parse_time_string(time_range.group(1))
            end_time = parse_time_string(time_range.group(2))

        start = combine(event_day, start_time)
        end: Optional[datetime] = None
        if start_time and end_time:
            end = combine(event_day, end_time)

        program = _PROGRAM_RE.search(context)
        venue = Venue(
            name=decode_html_entities(program.group(1)).strip() if program else 'Fort Liberty',
            city='Fort Liberty',
        )

        return self.make_event(
            event_id=f"ftliberty_{event_id}_{occurrence_id}",
            source_id=f"{event_id}_{occurrence_id}",
            title=title,
            start=start,
            end=end,
            venue=venue,
            categories=['Military', 'MWR'],
            url=f"{SITE_URL}{path}",
            overnight=start_time is not None,
        )
