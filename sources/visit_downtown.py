"""Visit Downtown Fayetteville adapter (Event Espresso REST API)."""
import logging
from datetime import timezone
from typing import Dict, List, Optional

import requests

from processor.date_parsing import to_datetime
from processor.models import SECTION_DOWNTOWN, CanonicalEvent, Venue
from processor.text_utils import clean_description, decode_html_entities
from sources.base import BaseAdapter

logger = logging.getLogger(__name__)

API_BASE = 'https://visitdowntownfayetteville.com/wp-json/ee/v4.8.36'
VENUES_LINK_REL = 'https://api.eventespresso.com/venues'
DEFAULT_VENUE_NAME = 'Downtown Fayetteville'


class VenueCache:
    """
    Venue rows fetched during one adapter run.

    Keyed both by VNU_ID (from the venues collection) and by the event's
    linked venues href, so each sub-resource is requested at most once.
    """

    def __init__(self):
        self._by_id: Dict[int, Dict] = {}
        self._by_link: Dict[str, Optional[Dict]] = {}

    def add(self, venue: Dict) -> None:
        if venue.get('VNU_ID') is not None:
            self._by_id[venue['VNU_ID']] = venue

    def by_id(self, venue_id) -> Optional[Dict]:
        return self._by_id.get(venue_id)

    def has_link(self, href: str) -> bool:
        return href in self._by_link

    def by_link(self, href: str) -> Optional[Dict]:
        return self._by_link.get(href)

    def store_link(self, href: str, venue: Optional[Dict]) -> None:
        self._by_link[href] = venue
        if venue:
            self.add(venue)

    def __len__(self) -> int:
        return len(self._by_id)


def to_venue(raw: Optional[Dict]) -> Venue:
    """Map an Event Espresso venue row, or the placeholder when missing."""
    if not raw:
        return Venue(name=DEFAULT_VENUE_NAME)

    address = ', '.join(
        part.strip() for part in (raw.get('VNU_address'), raw.get('VNU_address2')) if part and part.strip()
    )
    return Venue(
        name=decode_html_entities(raw.get('VNU_name')) or DEFAULT_VENUE_NAME,
        address=address or None,
        city=raw.get('VNU_city') or 'Fayetteville',
        state='NC',
        zip_code=raw.get('VNU_zip') or None,
        phone=raw.get('VNU_phone') or None,
        google_maps_url=raw.get('VNU_google_map_link') or None,
    )


class VisitDowntownAdapter(BaseAdapter):
    """One canonical event per published event and live datetime."""

    name = 'downtown'
    source = 'visit_downtown'
    section = SECTION_DOWNTOWN

    def fetch(self) -> List[CanonicalEvent]:
        events = self.get_json(
            f"{API_BASE}/events",
            params={'limit': 200, 'order_by': 'EVT_modified', 'order': 'DESC'}
        )
        datetimes = self.get_json(
            f"{API_BASE}/datetimes",
            params={'limit': 200, 'order_by': 'DTT_EVT_start', 'order': 'DESC'}
        )

        cache = VenueCache()
        try:
            for venue in self.get_json(f"{API_BASE}/venues", params={'limit': 200}):
                cache.add(venue)
        except requests.RequestException as e:
            logger.warning(f"[{self.name}] Venue collection unavailable: {e}")
        logger.debug(f"[{self.name}] Cached {len(cache)} venues")

        datetimes_by_event: Dict[int, List[Dict]] = {}
        for dt in datetimes:
            if dt.get('DTT_deleted'):
                continue
            datetimes_by_event.setdefault(dt.get('EVT_ID'), []).append(dt)

        results = []
        for event in events:
            status = event.get('status')
            status = status.get('raw') if isinstance(status, dict) else status
            if status != 'publish':
                continue

            event_datetimes = datetimes_by_event.get(event.get('EVT_ID'), [])
            if not event_datetimes:
                continue

            venue = to_venue(self._resolve_venue(event, cache))
            for dt in event_datetimes:
                try:
                    results.append(self._to_event(event, dt, venue))
                except (KeyError, TypeError, ValueError) as e:
                    logger.warning(
                        f"[{self.name}] Skipping event {event.get('EVT_ID')} "
                        f"datetime {dt.get('DTT_ID')}: {e}"
                    )
        return results

    def _resolve_venue(self, event: Dict, cache: VenueCache) -> Optional[Dict]:
        """
        Find the venue row for an event.

        Tries the event's linked venues sub-resource first, then a VNU_ID
        carried on the event itself.

        Args:
            event: Raw Event Espresso event
            cache: Run-scoped venue cache

        Returns:
            Raw venue row or None
        """
        links = (event.get('_links') or {}).get(VENUES_LINK_REL) or []
        href = links[0].get('href') if links else None

        if href:
            if not cache.has_link(href):
                venue = None
                try:
                    rows = self.get_json(href)
                    venue = rows[0] if rows else None
                except (requests.RequestException, ValueError) as e:
                    logger.warning(f"[{self.name}] Venue link {href} failed: {e}")
                cache.store_link(href, venue)
            venue = cache.by_link(href)
            if venue:
                return venue

        return cache.by_id(event.get('VNU_ID'))

    def _to_event(self, event: Dict, dt: Dict, venue: Venue) -> CanonicalEvent:
        # *_gmt fields are naive UTC; the plain fields are site-local
        start = (
            to_datetime(dt.get('DTT_EVT_start_gmt'), tz=timezone.utc)
            or to_datetime(dt.get('DTT_EVT_start'))
        )
        end = (
            to_datetime(dt.get('DTT_EVT_end_gmt'), tz=timezone.utc)
            or to_datetime(dt.get('DTT_EVT_end'))
        )
        if start is None:
            raise ValueError('datetime has no start')

        modified = (
            to_datetime(event.get('EVT_modified_gmt'), tz=timezone.utc)
            or to_datetime(event.get('EVT_modified'))
        )

        title = decode_html_entities(event['EVT_name'])
        raw_description = (event.get('EVT_desc') or {}).get('rendered') or event.get('EVT_short_desc')

        return self.make_event(
            event_id=f"downtown_{event['EVT_ID']}_{dt['DTT_ID']}",
            source_id=f"{event['EVT_ID']}_{dt['DTT_ID']}",
            title=title,
            start=start,
            end=end,
            description=clean_description(raw_description, title),
            venue=venue,
            url=event.get('link') or '',
            ticket_url=event.get('EVT_external_URL'),
            contact_phone=event.get('EVT_phone'),
            last_modified=modified,
        )
