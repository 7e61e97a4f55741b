"""Segra Stadium adapter (Squarespace events collection JSON)."""
import logging
from typing import Dict, List, Optional

from processor.date_parsing import to_datetime
from processor.models import SECTION_DOWNTOWN, CanonicalEvent, Venue
from processor.text_utils import clean_description, decode_html_entities
from sources.base import BaseAdapter

logger = logging.getLogger(__name__)

SITE_URL = 'https://www.segrastadium.com'
COLLECTION_URL = f"{SITE_URL}/events-tickets"

SEGRA_VENUE = Venue(
    name='Segra Stadium',
    address='460 Hay St',
    city='Fayetteville',
    state='NC',
    zip_code='28301',
)


def _absolute_image(asset_url: Optional[str]) -> Optional[str]:
    if not asset_url:
        return None
    if asset_url.startswith('//'):
        return f"https:{asset_url}"
    return asset_url


class SegraStadiumAdapter(BaseAdapter):
    """Events listed on the stadium's Squarespace collection."""

    name = 'segra'
    source = 'segra_stadium'
    section = SECTION_DOWNTOWN

    def fetch(self) -> List[CanonicalEvent]:
        data = self.get_json(COLLECTION_URL, params={'format': 'json'})
        # Squarespace event collections split into 'upcoming' and 'past'
        items = data.get('upcoming') or data.get('items') or []

        results = []
        for item in items:
            if item.get('draft'):
                continue
            try:
                results.append(self._to_event(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"[{self.name}] Skipping item {item.get('id')}: {e}")
        return results

    def _to_event(self, item: Dict) -> CanonicalEvent:
        start = to_datetime(item['startDate'])
        if start is None:
            raise ValueError('missing startDate')

        title = decode_html_entities(item['title'])
        categories = list(item.get('tags') or []) + list(item.get('categories') or [])

        return self.make_event(
            event_id=f"segra_{item['id']}",
            source_id=item['id'],
            title=title,
            start=start,
            end=to_datetime(item.get('endDate')),
            description=clean_description(item.get('body') or item.get('excerpt'), title),
            venue=SEGRA_VENUE,
            categories=categories,
            url=f"{SITE_URL}{item.get('fullUrl', '')}",
            ticket_url=item.get('sourceUrl'),
            image_url=_absolute_image(item.get('assetUrl')),
            last_modified=to_datetime(item.get('updatedOn')),
        )
