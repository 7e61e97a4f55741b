"""Crown Complex adapter (arena events listing, parsed as plain text)."""
import logging
import re
from datetime import date
from typing import List, Optional

from bs4 import BeautifulSoup

from processor.date_parsing import combine, month_number
from processor.models import SECTION_CROWN, CanonicalEvent, Venue
from processor.text_utils import collapse_whitespace, slugify
from sources.base import BaseAdapter

logger = logging.getLogger(__name__)

CROWN_URL = 'https://www.crowncomplexnc.com/events/all'

_MONTHS = r'(Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)'

# "Knoxville at Fayetteville Jan. 9 Crown Coliseum"
# "Fayetteville Fishing Expo Jan. 30 - Feb. 1 Crown Expo"
# Matched against the text before each "Buy Tickets", so a title starts
# after the previous listing.
_LISTING_RE = re.compile(
    r"(\S.*?)\s+" + _MONTHS + r"\.\s+(\d{1,2})"
    r"(?:\s*[-–]\s*" + _MONTHS + r"\.\s+(\d{1,2}))?"
    r"\s+(Crown\s+(?:Coliseum|Theatre|Expo))\s*$",
    re.IGNORECASE
)

_BUY_TICKETS_RE = re.compile(r'Buy\s+Tickets', re.IGNORECASE)

# Page chrome that the listing pattern also picks up
_NAVIGATION_RE = re.compile(
    r'home|events|calendar|tickets?|office|contact|policy|faq|accessibility|streaming'
    r'|parking|directions|about|information|lost.*found|group|benefits|seating|charts|vendor',
    re.IGNORECASE
)

CROWN_ADDRESS = '1960 Coliseum Drive'
CROWN_ZIP = '28306'

VENUES = {
    'crown coliseum': 'Crown Coliseum',
    'crown theatre': 'Crown Theatre',
    'crown expo': 'Crown Expo',
}

MIN_TITLE_LENGTH = 3
MAX_TITLE_LENGTH = 80


def crown_venue(name: str) -> Venue:
    key = collapse_whitespace(name).lower()
    if key in VENUES:
        return Venue(name=VENUES[key], address=CROWN_ADDRESS, zip_code=CROWN_ZIP)
    return Venue(name=collapse_whitespace(name))


def infer_categories(title: str) -> List[str]:
    lowered = title.lower()
    if 'fishing' in lowered or 'expo' in lowered:
        return ['Expos & Trade Shows']
    if 'hockey' in lowered or re.search(r'\s(at|vs|v)\.?\s', lowered):
        return ['Sports']
    if 'concert' in lowered or 'live' in lowered or 'anyway' in lowered:
        return ['Performing Arts']
    return ['Community']


def page_text(html: str) -> str:
    soup = BeautifulSoup(html, 'html.parser')
    for tag in soup(['script', 'style', 'noscript', 'nav', 'header', 'footer']):
        tag.decompose()
    return collapse_whitespace(soup.get_text(' '))


def _listing_dates(start_month: str, start_day: str, end_month: Optional[str],
                   end_day: Optional[str], today: date):
    """Attach years to a listing; both move to next year once it has ended."""
    year = today.year
    start = date(year, month_number(start_month), int(start_day))
    end = start
    if end_month and end_day:
        end = date(year, month_number(end_month), int(end_day))
        if end < start:
            end = end.replace(year=year + 1)
    if end < today:
        start = start.replace(year=start.year + 1)
        end = end.replace(year=end.year + 1)
    return start, end


class CrownComplexAdapter(BaseAdapter):
    """Arena, theatre and expo hall listings."""

    name = 'crown'
    source = 'crown_complex'
    section = SECTION_CROWN

    def fetch(self) -> List[CanonicalEvent]:
        text = page_text(self.get_text(CROWN_URL))
        return self.parse(text)

    def parse(self, text: str) -> List[CanonicalEvent]:
        """
        Extract listings from the page's visible text.

        Args:
            text: Whitespace-collapsed page text; each listing ends in "Buy Tickets"

        Returns:
            Events unique by id, in page order
        """
        today = self.fetched_at.date()
        results = []
        seen = set()

        for chunk in _BUY_TICKETS_RE.split(text)[:-1]:
            match = _LISTING_RE.search(chunk)
            if not match:
                continue
            title = match.group(1).strip()
            if not MIN_TITLE_LENGTH <= len(title) <= MAX_TITLE_LENGTH:
                continue
            if _NAVIGATION_RE.search(title):
                logger.debug(f"[{self.name}] Ignoring navigation text '{title}'")
                continue

            try:
                start_day, end_day = _listing_dates(
                    match.group(2), match.group(3), match.group(4), match.group(5), today
                )
            except (TypeError, ValueError) as e:
                logger.warning(f"[{self.name}] Bad date for '{title}': {e}")
                continue

            slug = slugify(title, max_length=40)
            event_id = f"crown_{start_day.isoformat()}_{slug}"
            if event_id in seen:
                continue
            seen.add(event_id)

            results.append(self.make_event(
                event_id=event_id,
                source_id=f"{start_day.isoformat()}_{slug}",
                title=title,
                start=combine(start_day),
                end=combine(end_day) if end_day != start_day else None,
                venue=crown_venue(match.group(6)),
                categories=infer_categories(title),
                url=CROWN_URL,
                overnight=False,
                time_known=False,
            ))

        return results
