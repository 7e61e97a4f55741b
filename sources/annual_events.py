"""Adapters for recurring events computed from calendar rules (no network)."""
import logging
from dataclasses import dataclass
from datetime import date, time, timedelta
from typing import Callable, List, Tuple

from processor.date_parsing import combine, next_annual_occurrence, nth_weekday
from processor.models import SECTION_DOWNTOWN, CanonicalEvent, Venue
from sources.base import BaseAdapter

logger = logging.getLogger(__name__)

MONDAY, FRIDAY = 0, 4

DateRule = Callable[[int], date]


def fixed_date(month: int, day: int) -> DateRule:
    return lambda year: date(year, month, day)


def nth_weekday_of(month: int, weekday: int, n: int) -> DateRule:
    return lambda year: nth_weekday(year, month, weekday, n)


def saturday_before_mlk_day(year: int) -> date:
    """MLK Day is the 3rd Monday of January; the parade is the Saturday before."""
    return nth_weekday(year, 1, MONDAY, 3) - timedelta(days=2)


@dataclass(frozen=True)
class ScheduleRule:
    """One yearly event and the rule that dates it."""
    slug: str
    title: str
    date_rule: DateRule
    start: time
    end: time
    venue: Venue
    description: str = ''
    categories: Tuple[str, ...] = ()
    url: str = ''


DOWNTOWN = Venue(name='Downtown Fayetteville')
HAY_STREET = Venue(name='Downtown Fayetteville', address='Hay Street')
FESTIVAL_PARK = Venue(name='Festival Park', address='335 Ray Ave', zip_code='28301')


class StaticScheduleAdapter(BaseAdapter):
    """Emits the next occurrence of each rule; subclasses supply RULES."""

    RULES: Tuple[ScheduleRule, ...] = ()
    id_prefix = 'static'
    section = SECTION_DOWNTOWN

    def fetch(self) -> List[CanonicalEvent]:
        today = self.fetched_at.date()
        results = []
        for rule in self.RULES:
            try:
                day = next_annual_occurrence(rule.date_rule, today)
            except ValueError as e:
                logger.warning(f"[{self.name}] Rule '{rule.slug}' has no date: {e}")
                continue
            results.append(self.make_event(
                event_id=f"{self.id_prefix}_{rule.slug}_{day.year}",
                source_id=f"{rule.slug}_{day.year}",
                title=rule.title,
                start=combine(day, rule.start),
                end=combine(day, rule.end),
                description=rule.description,
                venue=rule.venue,
                categories=rule.categories,
                url=rule.url,
            ))
        return results


class MlkCommitteeAdapter(StaticScheduleAdapter):
    """The MLK parade, held the Saturday before MLK Day."""

    name = 'mlk'
    source = 'mlk_committee'
    id_prefix = 'mlk'

    RULES = (
        ScheduleRule(
            slug='parade',
            title='Dr. Martin Luther King Jr. Parade',
            date_rule=saturday_before_mlk_day,
            start=time(10, 0),
            end=time(13, 0),
            venue=HAY_STREET,
            description=(
                'Annual MLK Parade through Downtown Fayetteville celebrating the life '
                'and legacy of Dr. Martin Luther King Jr. The parade features local '
                'organizations, schools, marching bands, and community groups. '
                'Free to attend.'
            ),
            categories=('Parades', 'Community', 'Cultural'),
            url='https://mlkmemorialpark.org/upcoming-events/',
        ),
    )


class HolidayCalendarAdapter(StaticScheduleAdapter):
    """Community holiday observances."""

    name = 'holidays'
    source = 'holidays'
    id_prefix = 'holiday'

    RULES = (
        ScheduleRule(
            slug='memorial-day',
            title='Memorial Day Observance',
            date_rule=nth_weekday_of(5, MONDAY, -1),
            start=time(10, 0),
            end=time(11, 30),
            venue=DOWNTOWN,
            description='Wreath laying and remembrance ceremony honoring fallen service members.',
            categories=('Holiday', 'Military', 'Community'),
        ),
        ScheduleRule(
            slug='juneteenth',
            title='Juneteenth Celebration',
            date_rule=fixed_date(6, 19),
            start=time(12, 0),
            end=time(18, 0),
            venue=FESTIVAL_PARK,
            description='Music, food vendors and family activities celebrating Juneteenth.',
            categories=('Holiday', 'Community', 'Cultural'),
        ),
        ScheduleRule(
            slug='independence-day',
            title='Fourth of July Celebration',
            date_rule=fixed_date(7, 4),
            start=time(17, 0),
            end=time(22, 0),
            venue=FESTIVAL_PARK,
            description='Live music, food trucks and fireworks over downtown.',
            categories=('Holiday', 'Festivals & Fairs', 'Family Friendly'),
        ),
        ScheduleRule(
            slug='veterans-day-parade',
            title='Veterans Day Parade',
            date_rule=fixed_date(11, 11),
            start=time(10, 0),
            end=time(12, 0),
            venue=HAY_STREET,
            description='Parade down Hay Street honoring veterans and active duty service members.',
            categories=('Holiday', 'Parades', 'Military'),
        ),
        ScheduleRule(
            slug='new-years-eve',
            title="New Year's Eve Countdown",
            date_rule=fixed_date(12, 31),
            start=time(21, 0),
            end=time(0, 30),
            venue=DOWNTOWN,
            description='Live entertainment and a midnight countdown in Downtown Fayetteville.',
            categories=('Holiday', 'Nightlife'),
        ),
    )


class SummerConcertSeriesAdapter(StaticScheduleAdapter):
    """Festival Park's summer concert season, first Friday of each month."""

    name = 'concerts'
    source = 'summer_concerts'
    id_prefix = 'concerts'

    RULES = tuple(
        ScheduleRule(
            slug=f"summer-concert-{slug}",
            title=f"Summer Concert Series: {label}",
            date_rule=nth_weekday_of(month, FRIDAY, 1),
            start=time(19, 0),
            end=time(21, 30),
            venue=FESTIVAL_PARK,
            description='Free outdoor concert at Festival Park. Bring a chair or blanket.',
            categories=('Live Music', 'Family Friendly', 'Outdoor'),
        )
        for month, slug, label in (
            (5, 'opening-night', 'Opening Night'),
            (6, 'june', 'June Concert'),
            (7, 'july', 'July Concert'),
            (8, 'august', 'August Concert'),
            (9, 'finale', 'Season Finale'),
        )
    )
