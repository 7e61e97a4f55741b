"""Distinctly Fayetteville adapter (visitor bureau RSS feed)."""
import json
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, datetime, time
from email.utils import parsedate_to_datetime
from typing import Dict, List, Optional

import requests

from processor.date_parsing import (
    combine,
    find_us_dates,
    parse_date,
    parse_time_string,
    to_datetime,
)
from processor.models import SECTION_DOWNTOWN, CanonicalEvent, Venue
from processor.text_utils import clean_description, decode_html_entities, slugify
from sources.base import BaseAdapter

logger = logging.getLogger(__name__)

RSS_URL = 'https://www.distinctlyfayettevillenc.com/event/rss/'

DETAIL_BATCH_SIZE = 5
DETAIL_BATCH_DELAY = 0.3

_ITEM_RE = re.compile(r'<item>(.*?)</item>', re.DOTALL)
_IMG_RE = re.compile(r'<img[^>]+src="([^"]+)"', re.IGNORECASE)
_LINK_ID_RE = re.compile(r'/(\d+)/?$')
_SCRIPT_VAR_RE = re.compile(
    r'(?:var|let|const)\s+(?:eventData|event|data)\s*=\s*(\{.*?\})\s*;',
    re.DOTALL
)
_SECONDS_RE = re.compile(r'^(\d{1,2}:\d{2}):\d{2}$')
DETAIL_FIELDS = ('startDate', 'endDate', 'startTime', 'endTime', 'location')


def extract_xml_tag(xml: str, tag: str) -> Optional[str]:
    """
    Text content of the first <tag>, CDATA-wrapped or plain.

    Args:
        xml: XML fragment
        tag: Tag name, may include a namespace prefix such as geo:lat

    Returns:
        Stripped content or None when the tag is absent
    """
    name = re.escape(tag)
    cdata = re.search(
        rf'<{name}(?:\s[^>]*)?>\s*<!\[CDATA\[(.*?)\]\]>\s*</{name}>', xml, re.DOTALL
    )
    if cdata:
        return cdata.group(1).strip()
    plain = re.search(rf'<{name}(?:\s[^>]*)?>(.*?)</{name}>', xml, re.DOTALL)
    if plain:
        return plain.group(1).strip()
    return None


def extract_all_tags(xml: str, tag: str) -> List[str]:
    """Content of every <tag> occurrence, CDATA unwrapped and entities decoded."""
    name = re.escape(tag)
    values = []
    for raw in re.findall(rf'<{name}(?:\s[^>]*)?>(.*?)</{name}>', xml, re.DOTALL):
        raw = raw.strip()
        if raw.startswith('<![CDATA[') and raw.endswith(']]>'):
            raw = raw[9:-3]
        value = decode_html_entities(raw).strip()
        if value:
            values.append(value)
    return values


@dataclass
class RssItem:
    title: str
    link: str
    guid: Optional[str]
    pub_date: Optional[str]
    description: str
    categories: List[str] = field(default_factory=list)
    latitude: Optional[float] = None
    longitude: Optional[float] = None


def _to_float(value: Optional[str]) -> Optional[float]:
    try:
        return float(value) if value else None
    except ValueError:
        return None


def parse_items(xml: str) -> List[RssItem]:
    """Split an RSS document into items."""
    items = []
    for chunk in _ITEM_RE.findall(xml):
        items.append(RssItem(
            title=extract_xml_tag(chunk, 'title') or '',
            link=extract_xml_tag(chunk, 'link') or '',
            guid=extract_xml_tag(chunk, 'guid'),
            pub_date=extract_xml_tag(chunk, 'pubDate'),
            description=extract_xml_tag(chunk, 'description') or '',
            categories=extract_all_tags(chunk, 'category'),
            latitude=_to_float(extract_xml_tag(chunk, 'geo:lat')),
            longitude=_to_float(extract_xml_tag(chunk, 'geo:long')),
        ))
    return items


def parse_detail_page(html: str) -> Optional[Dict[str, str]]:
    """
    Pull event dates out of the script variable on a detail page.

    Strict JSON is tried first; when the blob is not valid JSON (single
    quotes, trailing commas, unquoted keys) the known fields are picked
    out individually.

    Args:
        html: Detail page markup

    Returns:
        Dict with any of startDate, endDate, startTime, endTime, location;
        None when no script variable is present
    """
    match = _SCRIPT_VAR_RE.search(html)
    if not match:
        return None
    blob = match.group(1)

    try:
        data = json.loads(blob)
        if isinstance(data, dict):
            return {key: str(data[key]) for key in DETAIL_FIELDS if data.get(key)}
    except json.JSONDecodeError:
        pass

    found = {}
    for key in DETAIL_FIELDS:
        value = re.search(rf'["\']?{key}["\']?\s*:\s*["\']([^"\']*)["\']', blob)
        if value and value.group(1).strip():
            found[key] = value.group(1).strip()
    return found


def _detail_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    if 'T' in value:
        parsed = to_datetime(value)
        if parsed:
            return parsed.date()
    return parse_date(value)


def _detail_time(value: Optional[str]) -> Optional[time]:
    if not value:
        return None
    return parse_time_string(_SECONDS_RE.sub(r'\1', value.strip()))


class DistinctlyFayettevilleAdapter(BaseAdapter):
    """Events from the visitor bureau RSS feed."""

    name = 'distinctly'
    source = 'distinctly_fayetteville'
    section = SECTION_DOWNTOWN

    def fetch(self) -> List[CanonicalEvent]:
        items = parse_items(self.get_text(RSS_URL))
        details = self._fetch_details(items) if self.enhanced else {}

        results = []
        for item in items:
            try:
                event = self._to_event(item, details.get(item.link))
            except (TypeError, ValueError) as e:
                logger.warning(f"[{self.name}] Skipping item '{item.title}': {e}")
                continue
            results.append(event)
        return results

    def _fetch_details(self, items: List[RssItem]) -> Dict[str, Dict[str, str]]:
        """
        Fetch detail pages in small batches.

        Args:
            items: Parsed RSS items

        Returns:
            Map of item link to parsed detail fields
        """
        links = [item.link for item in items if item.link]
        details = {}

        for offset in range(0, len(links), DETAIL_BATCH_SIZE):
            batch = links[offset:offset + DETAIL_BATCH_SIZE]
            with ThreadPoolExecutor(max_workers=DETAIL_BATCH_SIZE) as executor:
                for link, detail in zip(batch, executor.map(self._fetch_detail, batch)):
                    if detail:
                        details[link] = detail
            if offset + DETAIL_BATCH_SIZE < len(links):
                self.pause(DETAIL_BATCH_DELAY)

        logger.info(f"[{self.name}] Parsed {len(details)} of {len(links)} detail pages")
        return details

    def _fetch_detail(self, link: str) -> Optional[Dict[str, str]]:
        try:
            return parse_detail_page(self.get_text(link))
        except requests.RequestException as e:
            logger.warning(f"[{self.name}] Detail page {link} failed: {e}")
            return None

    def _dates(self, item: RssItem, detail: Optional[Dict[str, str]]):
        """Start, end, clock-end flag and clock-start flag, preferring detail-page fields."""
        start_day = _detail_date(detail.get('startDate')) if detail else None
        if start_day:
            end_day = _detail_date(detail.get('endDate')) or start_day
            start_time = _detail_time(detail.get('startTime'))
            end_time = _detail_time(detail.get('endTime'))
            start = combine(start_day, start_time)
            if end_time:
                return start, combine(end_day, end_time), True, start_time is not None
            return start, combine(end_day), False, start_time is not None

        dates = find_us_dates(item.description)
        if not dates:
            raise ValueError('no dates in description')
        return combine(dates[0]), combine(dates[-1]), False, False

    def _to_event(self, item: RssItem, detail: Optional[Dict[str, str]] = None) -> CanonicalEvent:
        title = decode_html_entities(item.title)
        if not title:
            raise ValueError('missing title')

        start, end, has_clock_end, time_known = self._dates(item, detail)

        id_match = _LINK_ID_RE.search(item.link)
        if id_match:
            source_id = id_match.group(1)
        elif item.guid:
            source_id = item.guid
        else:
            source_id = f"{slugify(title)}-{start.date().isoformat()}"

        venue = None
        location = detail.get('location') if detail else None
        if location:
            venue = Venue(
                name=decode_html_entities(location),
                latitude=item.latitude,
                longitude=item.longitude,
            )
        elif item.latitude is not None and item.longitude is not None:
            venue = Venue(name='Fayetteville', latitude=item.latitude, longitude=item.longitude)

        image = _IMG_RE.search(item.description)

        last_modified: Optional[datetime] = None
        if item.pub_date:
            try:
                last_modified = parsedate_to_datetime(item.pub_date)
            except (TypeError, ValueError):
                last_modified = None

        return self.make_event(
            event_id=f"distinctly_{source_id}",
            source_id=source_id,
            title=title,
            start=start,
            end=end,
            description=clean_description(item.description, title),
            venue=venue,
            categories=item.categories,
            url=item.link,
            image_url=image.group(1) if image else None,
            last_modified=last_modified,
            overnight=has_clock_end,
            time_known=time_known,
        )
