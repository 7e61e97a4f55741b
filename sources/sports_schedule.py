"""Home-game schedules published as JSON-LD SportsEvent blocks."""
import json
import logging
import re
from datetime import datetime, timedelta
from typing import Dict, Iterator, List, Optional

from bs4 import BeautifulSoup

from processor.date_parsing import LOCAL_TZ, to_datetime
from processor.models import SECTION_CROWN, SECTION_DOWNTOWN, CanonicalEvent, Venue
from processor.text_utils import decode_html_entities, slugify
from sources.base import BaseAdapter

logger = logging.getLogger(__name__)

SPORT_DURATIONS = {
    'hockey': timedelta(hours=2, minutes=30),
    'baseball': timedelta(hours=3),
    'basketball': timedelta(hours=2),
    'football': timedelta(hours=3, minutes=30),
    'soccer': timedelta(hours=2),
}
DEFAULT_GAME_DURATION = timedelta(hours=2, minutes=30)

_MATCHUP_RE = re.compile(r'^(?P<left>.+?)\s+(?P<sep>vs\.?|v\.?|at|@)\s+(?P<right>.+)$', re.IGNORECASE)


def iter_json_ld(html: str) -> Iterator[Dict]:
    """Every JSON-LD object on a page, with lists and @graph flattened."""
    soup = BeautifulSoup(html, 'html.parser')
    for script in soup.find_all('script', type='application/ld+json'):
        try:
            data = json.loads(script.string or script.get_text() or '')
        except json.JSONDecodeError as e:
            logger.debug(f"Skipping invalid JSON-LD block: {e}")
            continue
        stack = [data]
        while stack:
            item = stack.pop(0)
            if isinstance(item, list):
                stack.extend(item)
            elif isinstance(item, dict):
                if '@graph' in item:
                    stack.extend(item['@graph'])
                else:
                    yield item


def is_sports_event(item: Dict) -> bool:
    kind = item.get('@type')
    if isinstance(kind, list):
        return 'SportsEvent' in kind
    return kind == 'SportsEvent'


def _location_text(item: Dict) -> str:
    location = item.get('location')
    if isinstance(location, list):
        location = location[0] if location else None
    if isinstance(location, str):
        return location
    if not isinstance(location, dict):
        return ''
    address = location.get('address')
    if isinstance(address, dict):
        address = ' '.join(str(v) for v in address.values() if isinstance(v, str))
    return f"{location.get('name') or ''} {address or ''}".strip()


def _clock_end(value, start: datetime) -> Optional[datetime]:
    """endDate only when it carries a time of day and follows start."""
    if not isinstance(value, str) or 'T' not in value:
        return None
    end = to_datetime(value)
    if end is None or end <= start:
        return None
    return end


def _team_name(team) -> Optional[str]:
    if isinstance(team, list):
        team = team[0] if team else None
    if isinstance(team, dict):
        return team.get('name')
    return team or None


class SportsScheduleAdapter(BaseAdapter):
    """
    Base for team schedule pages.

    Subclasses set the schedule URL, the team's display name, a substring
    identifying the home venue, the sport and the venue record.
    """

    schedule_url = ''
    team_name = ''
    home_venue_match = ''
    sport = ''
    id_prefix = 'sports'
    venue = Venue(name='')
    extra_categories: tuple = ()

    def fetch(self) -> List[CanonicalEvent]:
        return self.parse(self.get_text(self.schedule_url))

    def parse(self, html: str) -> List[CanonicalEvent]:
        """
        Home games found in a schedule page's JSON-LD.

        Args:
            html: Schedule page

        Returns:
            One event per home game
        """
        results = []
        for item in iter_json_ld(html):
            if not is_sports_event(item):
                continue
            if self.home_venue_match.lower() not in _location_text(item).lower():
                continue
            try:
                results.append(self._to_event(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"[{self.name}] Skipping game '{item.get('name')}': {e}")
        return results

    def opponent(self, item: Dict) -> Optional[str]:
        """Opponent from a "Home Vs/At Opponent" name, else the awayTeam field."""
        name = decode_html_entities(item.get('name') or '')
        match = _MATCHUP_RE.match(name)
        if match:
            left, right = match.group('left').strip(), match.group('right').strip()
            team = self.team_name.lower()
            if team in left.lower() or left.lower() in team:
                return right
            if team in right.lower() or right.lower() in team:
                return left

        away = _team_name(item.get('awayTeam'))
        if away and self.team_name.lower() not in away.lower():
            return away
        return None

    def _to_event(self, item: Dict) -> CanonicalEvent:
        start = to_datetime(item['startDate'])
        if start is None:
            raise ValueError('missing startDate')
        start = start.astimezone(LOCAL_TZ)

        opponent = self.opponent(item)
        title = f"{self.team_name} vs. {opponent}" if opponent else self.team_name
        duration = SPORT_DURATIONS.get(self.sport, DEFAULT_GAME_DURATION)
        end = _clock_end(item.get('endDate'), start) or start + duration

        game_slug = slugify(opponent or 'home-game', max_length=40)
        day = start.strftime('%Y%m%d')

        offers = item.get('offers')
        if isinstance(offers, list):
            offers = offers[0] if offers else None
        ticket_url = offers.get('url') if isinstance(offers, dict) else None

        image = item.get('image')
        if isinstance(image, list):
            image = image[0] if image else None
        if isinstance(image, dict):
            image = image.get('url')

        return self.make_event(
            event_id=f"{self.id_prefix}_{day}_{game_slug}",
            source_id=f"{day}_{game_slug}",
            title=title,
            start=start,
            end=end,
            description=decode_html_entities(item.get('description') or ''),
            venue=self.venue,
            categories=('Sports', self.sport) + tuple(self.extra_categories),
            url=item.get('url') or self.schedule_url,
            ticket_url=ticket_url,
            image_url=image,
        )


class MarksmenHockeyAdapter(SportsScheduleAdapter):
    name = 'marksmen'
    source = 'marksmen_hockey'
    section = SECTION_CROWN
    schedule_url = 'https://www.marksmenhockey.com/schedule'
    team_name = 'Fayetteville Marksmen'
    home_venue_match = 'Crown Coliseum'
    sport = 'hockey'
    id_prefix = 'marksmen'
    venue = Venue(name='Crown Coliseum', address='1960 Coliseum Drive', zip_code='28306')


class WoodpeckersBaseballAdapter(SportsScheduleAdapter):
    name = 'woodpeckers'
    source = 'woodpeckers_baseball'
    section = SECTION_DOWNTOWN
    schedule_url = 'https://www.milb.com/fayetteville/schedule'
    team_name = 'Fayetteville Woodpeckers'
    home_venue_match = 'Segra Stadium'
    sport = 'baseball'
    id_prefix = 'woodpeckers'
    venue = Venue(name='Segra Stadium', address='460 Hay St', zip_code='28301')
    extra_categories = ('Family Friendly',)
