"""Unit tests for the HTML-scraping adapters."""
import json
from datetime import date, datetime, timedelta

import responses

from processor.date_parsing import LOCAL_TZ
from sources.cameo_theatre import CameoTheatreAdapter, parse_runtime
from sources.crown_complex import CrownComplexAdapter, crown_venue, infer_categories, page_text
from sources.dogwood_festival import DogwoodFestivalAdapter
from sources.fort_liberty_mwr import CALENDAR_URL, WEEKS_AHEAD, FortLibertyMwrAdapter
from sources.sports_schedule import (
    MarksmenHockeyAdapter,
    WoodpeckersBaseballAdapter,
    iter_json_ld,
)

FETCHED_AT = datetime(2025, 10, 1, 9, 0, tzinfo=LOCAL_TZ)


def quiet(adapter, fetched_at=FETCHED_AT):
    adapter.base_delay = 0
    adapter.request_delay = 0
    adapter.fetched_at = fetched_at
    return adapter


class TestDogwoodFestivalAdapter:
    """Test cases for the festival listing scrape."""

    HTML = """
    <div class="events">
      <p>March 1, 2025: Old Event</p>
      <p>April 5, 2026: Spring Kickoff</p>
      <p>April 24 - 26, 2026: Dogwood Festival</p>
      <p>April 5, 2026: Spring Kickoff</p>
    </div>
    """

    def test_parse(self):
        """Test single and ranged listings, future only, unique by id."""
        adapter = quiet(DogwoodFestivalAdapter())

        events = {event.id: event for event in adapter.parse(self.HTML)}

        assert set(events) == {
            'dogwood_2026-04-05_spring-kickoff',
            'dogwood_2026-04-24_dogwood-festival',
        }
        festival = events['dogwood_2026-04-24_dogwood-festival']
        assert festival.start == datetime(2026, 4, 24, 12, 0, tzinfo=LOCAL_TZ)
        assert festival.end == datetime(2026, 4, 26, 12, 0, tzinfo=LOCAL_TZ)
        assert festival.venue.name == 'Festival Park'
        assert festival.categories == ['Festivals & Fairs', 'Signature Events']

        kickoff = events['dogwood_2026-04-05_spring-kickoff']
        assert kickoff.end == kickoff.start + timedelta(hours=2)
        assert kickoff.categories == ['Festivals & Fairs', 'Community']


AGENDA_HTML = """
<div class="agenda">
  <div class="agenda-item">
    <span class="date">October 8</span>
    <a href="/calendar/event/trunk-or-treat/5123/98765">Trunk or Treat Bash</a>
    <span class="time">5:00 pm - 7:00 pm</span>
    <a href="/programs/bowling-center">Bowling Center</a>
  </div>
</div>
"""


class TestFortLibertyMwrAdapter:
    """Test cases for the MWR agenda scrape."""

    def test_parse_agenda(self):
        """Test title, time range, program venue and date are extracted."""
        adapter = quiet(FortLibertyMwrAdapter())

        events = adapter.parse_agenda(AGENDA_HTML, date(2025, 10, 6), date(2025, 10, 1))

        assert len(events) == 1
        event = events[0]
        assert event.id == 'ftliberty_5123_98765'
        assert event.source_id == '5123_98765'
        assert event.title == 'Trunk or Treat Bash'
        assert event.start == datetime(2025, 10, 8, 17, 0, tzinfo=LOCAL_TZ)
        assert event.end == datetime(2025, 10, 8, 19, 0, tzinfo=LOCAL_TZ)
        assert event.venue.name == 'Bowling Center'
        assert event.venue.city == 'Fort Liberty'
        assert event.section == 'fort_bragg'
        assert event.categories == ['Military']
        assert event.url == 'https://bragg.armymwr.com/calendar/event/trunk-or-treat/5123/98765'

    def test_parse_agenda_year_rollover(self):
        """Test a month already behind us is next year's."""
        adapter = quiet(FortLibertyMwrAdapter())
        html = AGENDA_HTML.replace('October 8', 'January 8')

        events = adapter.parse_agenda(html, date(2025, 12, 29), date(2025, 12, 28))

        assert events[0].start.date() == date(2026, 1, 8)

    def test_title_from_slug_when_no_link_text(self):
        """Test the slug is used when the link has no text."""
        adapter = quiet(FortLibertyMwrAdapter())
        html = '<a href="/calendar/event/fall-craft-fair/77/1"><img src="fair.png"></a>'

        events = adapter.parse_agenda(html, date(2025, 10, 6), date(2025, 10, 1))

        assert events[0].title == 'Fall Craft Fair'
        assert events[0].start == datetime(2025, 10, 6, 12, 0, tzinfo=LOCAL_TZ)
        assert events[0].venue.name == 'Fort Liberty'

    @responses.activate
    def test_fetch_walks_weeks_and_dedups(self):
        """Test one request per week and ids unique across pages."""
        responses.add(responses.GET, CALENDAR_URL, body=AGENDA_HTML, status=200)
        adapter = quiet(FortLibertyMwrAdapter())

        events = adapter.fetch()

        assert len(responses.calls) == WEEKS_AHEAD
        assert 'mode=agenda' in responses.calls[0].request.url
        assert 'date=10%2F01%2F2025' in responses.calls[0].request.url
        assert [event.id for event in events] == ['ftliberty_5123_98765']

    @responses.activate
    def test_fetch_skips_failed_week(self):
        """Test a failing week is skipped without failing the adapter."""
        responses.add(responses.GET, CALENDAR_URL, status=404)
        responses.add(responses.GET, CALENDAR_URL, body=AGENDA_HTML, status=200)
        adapter = quiet(FortLibertyMwrAdapter())

        events = adapter.fetch()

        assert len(events) == 1


CROWN_TEXT = (
    'Fayetteville Marksmen vs Knoxville Oct. 17 Crown Coliseum Buy Tickets '
    'Fayetteville Fishing Expo Jan. 30 - Feb. 1 Crown Expo Buy Tickets '
    'Box Office Info Nov. 1 Crown Theatre Buy Tickets'
)


class TestCrownComplexAdapter:
    """Test cases for the arena listing scrape."""

    def test_parse(self):
        """Test listings are extracted and navigation text ignored."""
        adapter = quiet(CrownComplexAdapter())

        events = adapter.parse(CROWN_TEXT)

        assert [event.title for event in events] == [
            'Fayetteville Marksmen vs Knoxville',
            'Fayetteville Fishing Expo',
        ]
        hockey, expo = events
        assert hockey.id == 'crown_2025-10-17_fayetteville-marksmen-vs-knoxville'
        assert hockey.start == datetime(2025, 10, 17, 12, 0, tzinfo=LOCAL_TZ)
        assert hockey.end == hockey.start + timedelta(hours=2)
        assert hockey.categories == ['Sports']
        assert hockey.venue.address == '1960 Coliseum Drive'
        assert hockey.section == 'crown'

        # already ended this year, so both ends move to next year
        assert expo.start.date() == date(2026, 1, 30)
        assert expo.end.date() == date(2026, 2, 1)
        assert expo.venue.name == 'Crown Expo'
        assert expo.categories == ['Expos & Trade Shows']

    def test_first_listing_after_page_navigation(self):
        """Test site navigation before the first listing does not swallow it."""
        html = (
            '<html><header><a>Crown Complex</a></header>'
            '<nav>Home Events Box Office</nav>'
            '<div>Knoxville at Fayetteville Oct. 17 Crown Coliseum Buy Tickets</div>'
            '<div>Fayetteville Fishing Expo Jan. 30 - Feb. 1 Crown Expo Buy Tickets</div>'
            '<footer>Parking Directions</footer></html>'
        )
        adapter = quiet(CrownComplexAdapter())

        events = adapter.parse(page_text(html))

        assert [event.title for event in events] == [
            'Knoxville at Fayetteville',
            'Fayetteville Fishing Expo',
        ]

    def test_title_punctuation_kept(self):
        """Test colons, commas and exclamation marks stay in the title."""
        adapter = quiet(CrownComplexAdapter())

        events = adapter.parse(
            'Disney On Ice: Frozen Nov. 6 Crown Coliseum Buy Tickets '
            'Hello, Dolly! Nov. 8 Crown Theatre Buy Tickets'
        )

        assert [event.title for event in events] == ['Disney On Ice: Frozen', 'Hello, Dolly!']
        assert events[0].id == 'crown_2025-11-06_disney-on-ice-frozen'
        assert not events[0].time_known

    def test_page_text_drops_scripts(self):
        """Test visible text only."""
        html = '<html><script>var x = 1;</script><p>Hello</p>\n<p>World</p></html>'
        assert page_text(html) == 'Hello World'

    def test_helpers(self):
        """Test venue lookup and category inference."""
        assert crown_venue('crown  theatre').name == 'Crown Theatre'
        assert crown_venue('Somewhere').address is None
        assert infer_categories('Disney On Ice Live') == ['Performing Arts']
        assert infer_categories('Gun Show') == ['Community']


def json_ld_page(*blocks):
    scripts = ''.join(
        f'<script type="application/ld+json">{json.dumps(block)}</script>' for block in blocks
    )
    return f'<html><head>{scripts}</head><body></body></html>'


class TestSportsScheduleAdapters:
    """Test cases for JSON-LD schedule adapters."""

    def test_marksmen_home_games_only(self):
        """Test away games are filtered and the opponent read from the name."""
        html = json_ld_page([
            {
                '@type': 'SportsEvent',
                'name': 'Fayetteville Marksmen vs. Knoxville Ice Bears',
                'startDate': '2025-10-17T19:00:00-04:00',
                'location': {'@type': 'Place', 'name': 'Crown Coliseum',
                             'address': {'streetAddress': '1960 Coliseum Dr'}},
                'offers': {'url': 'https://tickets.example.com/1'},
                'url': 'https://www.marksmenhockey.com/game/1',
            },
            {
                '@type': 'SportsEvent',
                'name': 'Roanoke Rail Yard Dawgs vs. Fayetteville Marksmen',
                'startDate': '2025-10-18T19:05:00-04:00',
                'location': {'name': 'Berglund Center'},
            },
            {'@type': 'Organization', 'name': 'Fayetteville Marksmen'},
        ])
        adapter = quiet(MarksmenHockeyAdapter())

        events = adapter.parse(html)

        assert len(events) == 1
        game = events[0]
        assert game.title == 'Fayetteville Marksmen vs. Knoxville Ice Bears'
        assert game.id == 'marksmen_20251017_knoxville-ice-bears'
        assert game.start == datetime(2025, 10, 17, 19, 0, tzinfo=LOCAL_TZ)
        assert game.end == game.start + timedelta(hours=2, minutes=30)
        assert game.ticket_url == 'https://tickets.example.com/1'
        assert game.categories == ['Sports']
        assert game.section == 'crown'

    def test_date_only_end_uses_game_length(self):
        """Test an endDate without a time of day falls back to the sport's duration."""
        html = json_ld_page(
            {
                '@type': 'SportsEvent',
                'name': 'Fayetteville Marksmen vs. Knoxville Ice Bears',
                'startDate': '2025-10-17T19:00-04:00',
                'endDate': '2025-10-17',
                'location': {'name': 'Crown Coliseum'},
            },
            {
                '@type': 'SportsEvent',
                'name': 'Fayetteville Marksmen vs. Roanoke Rail Yard Dawgs',
                'startDate': '2025-10-24T19:00-04:00',
                'endDate': '2025-10-24T21:45-04:00',
                'location': {'name': 'Crown Coliseum'},
            },
        )
        adapter = quiet(MarksmenHockeyAdapter())

        first, second = adapter.parse(html)

        assert first.end - first.start == timedelta(hours=2, minutes=30)
        assert second.end == datetime(2025, 10, 24, 21, 45, tzinfo=LOCAL_TZ)

    def test_woodpeckers_away_team_from_graph(self):
        """Test @graph blocks and the awayTeam fallback."""
        html = json_ld_page({'@graph': [{
            '@type': 'SportsEvent',
            'name': 'Home Game',
            'startDate': '2026-04-10T18:35:00-04:00',
            'location': {'name': 'Segra Stadium'},
            'awayTeam': {'name': 'Down East Wood Ducks'},
            'image': [{'url': 'https://img.example.com/game.jpg'}],
        }]})
        adapter = quiet(WoodpeckersBaseballAdapter())

        events = adapter.parse(html)

        assert len(events) == 1
        game = events[0]
        assert game.title == 'Fayetteville Woodpeckers vs. Down East Wood Ducks'
        assert game.end == game.start + timedelta(hours=3)
        assert game.image_url == 'https://img.example.com/game.jpg'
        assert game.categories == ['Sports', 'Family Friendly']
        assert game.url == 'https://www.milb.com/fayetteville/schedule'

    def test_iter_json_ld_skips_invalid_blocks(self):
        """Test malformed JSON-LD is ignored."""
        html = ('<script type="application/ld+json">{not json}</script>'
                + json_ld_page({'@type': 'SportsEvent', 'name': 'x'}))
        assert [item['name'] for item in iter_json_ld(html)] == ['x']


CAMEO_HTML = """
<div class="film">
  <h2 class="film-title"><a href="/films/the-third-man">The Third Man</a></h2>
  <div class="film-synopsis"><p>The Third Man - a noir classic.</p></div>
  <span class="film-runtime">1 hr 44 min</span>
  <img src="/img/third-man.jpg">
  <div class="showtime-day">
    <h4>Friday, October 10, 2025</h4>
    <span class="showtime">4:30</span>
    <span class="showtime">7:15</span>
  </div>
  <div class="showtime-day">
    <h4>Coming soon</h4>
    <span class="showtime">7:00</span>
  </div>
</div>
<div class="film"><p>No title here</p></div>
"""


class TestCameoTheatreAdapter:
    """Test cases for the now-showing scrape."""

    def test_parse_showtimes(self):
        """Test one event per showtime with runtime-based ends."""
        adapter = quiet(CameoTheatreAdapter())

        events = adapter.parse(CAMEO_HTML)

        assert [event.id for event in events] == [
            'cameo_the-third-man_202510101630',
            'cameo_the-third-man_202510101915',
        ]
        first = events[0]
        assert first.start == datetime(2025, 10, 10, 16, 30, tzinfo=LOCAL_TZ)
        assert first.end == datetime(2025, 10, 10, 18, 14, tzinfo=LOCAL_TZ)
        assert first.description == 'A noir classic.'
        assert first.url == 'https://www.cameoarthouse.com/films/the-third-man'
        assert first.image_url == 'https://www.cameoarthouse.com/img/third-man.jpg'
        assert first.categories == ['Movies']
        assert first.venue.address == '225 Hay St'

    def test_parse_runtime(self):
        """Test runtime formats."""
        assert parse_runtime('1 hr 44 min') == timedelta(hours=1, minutes=44)
        assert parse_runtime('2 hours') == timedelta(hours=2)
        assert parse_runtime('95 min') == timedelta(minutes=95)
        assert parse_runtime('TBA') is None
        assert parse_runtime(None) is None
