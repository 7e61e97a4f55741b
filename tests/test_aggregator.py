"""Unit tests for the aggregator and cross-source dedup."""
from datetime import datetime, timedelta

import pytest
import responses

from processor.aggregator import EventAggregator, dedup_key, merge_events
from processor.date_parsing import LOCAL_TZ
from sources.distinctly_rss import RSS_URL, DistinctlyFayettevilleAdapter

NOW = datetime(2025, 10, 1, 9, 0, tzinfo=LOCAL_TZ)


class StubAdapter:
    """Adapter double returning a fixed batch."""

    def __init__(self, name, events=None, error=None, failed=False):
        self.name = name
        self.events = events or []
        self.error = error
        self.failed = failed

    def run(self):
        if self.error:
            raise self.error
        return list(self.events)


def at(day, hour=19):
    return datetime(2025, 10, day, hour, 0, tzinfo=LOCAL_TZ)


class TestMergeEvents:
    """Test cases for merge_events."""

    def test_first_source_wins(self, make_event):
        """Test a duplicate from a later source with the same start is dropped."""
        first = make_event(id='downtown_1', source='visit_downtown', title='Fall Fest',
                           start=at(4), end=at(4, 21))
        second = make_event(id='distinctly_9', source='distinctly_fayetteville',
                            title='FALL FEST', start=at(4), end=at(4, 22))

        merged = merge_events([[first], [second]], NOW)

        assert [event.id for event in merged] == ['downtown_1']

    def test_earlier_start_wins_across_sources(self, make_event):
        """Test dedup keeps whichever duplicate sorts first by start."""
        first = make_event(id='downtown_1', source='visit_downtown', title='Fall Fest',
                           start=at(4), end=at(4, 21))
        second = make_event(id='distinctly_9', source='distinctly_fayetteville',
                            title='Fall Fest', start=at(4, 12), end=at(4, 14))

        merged = merge_events([[first], [second]], NOW)

        assert [event.id for event in merged] == ['distinctly_9']

    def test_sorted_by_start(self, make_event):
        """Test merged output is ordered by start."""
        late = make_event(id='late', title='Late', start=at(9), end=at(9, 21))
        early = make_event(id='early', title='Early', start=at(3), end=at(3, 21))

        merged = merge_events([[late], [early]], NOW)

        assert [event.id for event in merged] == ['early', 'late']

    def test_ended_events_dropped(self, make_event):
        """Test events whose end is not after now are removed."""
        ended = make_event(id='ended', start=NOW - timedelta(hours=3), end=NOW)
        running = make_event(id='running', title='Running',
                             start=NOW - timedelta(hours=1), end=NOW + timedelta(hours=1))

        merged = merge_events([[ended, running]], NOW)

        assert [event.id for event in merged] == ['running']

    def test_dedup_key_uses_local_date(self, make_event):
        """Test the key date is the local calendar date, not the UTC one."""
        # 9pm Eastern is already the next day in UTC
        event = make_event(title='Late Show', start=at(4, 21), end=at(4, 23))
        assert dedup_key(event) == ('late show', '2025-10-04')

    def test_same_title_same_day_collapses_even_at_other_venues(self, make_event):
        """Test the heuristic merges same-titled events on one day regardless of venue."""
        from processor.models import Venue
        a = make_event(id='a', title='Trivia Night', venue=Venue(name='Bar One'),
                       start=at(4, 18), end=at(4, 20))
        b = make_event(id='b', title='Trivia Night', venue=Venue(name='Bar Two'),
                       start=at(4, 20), end=at(4, 22))

        assert [event.id for event in merge_events([[a, b]], NOW)] == ['a']

    def test_title_variants_are_not_merged(self, make_event):
        """Test differently worded titles for one happening stay separate."""
        a = make_event(id='a', title='Fall Fest', start=at(4), end=at(4, 21))
        b = make_event(id='b', title='Fall Fest 2025', start=at(4), end=at(4, 21))

        assert len(merge_events([[a], [b]], NOW)) == 2


class TestEventAggregator:
    """Test cases for EventAggregator."""

    def test_collect_counts_and_merges(self, make_event):
        """Test counts per source and merged output."""
        adapters = [
            StubAdapter('one', [make_event(id='one_1', title='A', start=at(4), end=at(4, 21))]),
            StubAdapter('two', [
                make_event(id='two_1', title='B', start=at(5), end=at(5, 21)),
                make_event(id='two_2', title='a', start=at(4), end=at(4, 21)),
            ]),
        ]

        result = EventAggregator(adapters).collect(now=NOW)

        assert result.source_counts == {'one': 1, 'two': 2}
        assert result.total_fetched == 3
        assert [event.id for event in result.events] == ['one_1', 'two_1']
        assert result.failed_sources == []

    def test_failing_adapter_is_isolated(self, make_event):
        """Test one adapter raising does not affect the others."""
        adapters = [
            StubAdapter('broken', error=RuntimeError('boom')),
            StubAdapter('ok', [make_event(id='ok_1', start=at(4), end=at(4, 21))]),
        ]

        result = EventAggregator(adapters).collect(now=NOW)

        assert [event.id for event in result.events] == ['ok_1']
        assert result.failed_sources == ['broken']
        assert 'broken' not in result.source_counts

    def test_adapter_reporting_failure(self):
        """Test an adapter that degraded to empty is listed as failed."""
        result = EventAggregator([StubAdapter('degraded', failed=True)]).collect(now=NOW)

        assert result.failed_sources == ['degraded']
        assert result.source_counts == {'degraded': 0}

    def test_invalid_events_dropped(self, make_event):
        """Test events failing validation never reach the merge."""
        adapter = StubAdapter('one', [make_event(id='bad', title=''), make_event(id='good')])

        result = EventAggregator([adapter]).collect(now=NOW)

        assert [event.id for event in result.events] == ['good']


RSS_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:geo="http://www.w3.org/2003/01/geo/wgs84_pos#">
<channel>
<title>Events</title>
<item>
  <title><![CDATA[Fall Fest]]></title>
  <link>https://www.distinctlyfayettevillenc.com/event/fall-fest/4821/</link>
  <guid>https://www.distinctlyfayettevillenc.com/event/fall-fest/4821/</guid>
  <pubDate>Mon, 22 Sep 2025 14:00:00 GMT</pubDate>
  <description><![CDATA[10/04/2025 - Annual Fall Fest celebration]]></description>
  <category>Festivals</category>
</item>
</channel>
</rss>
"""


class TestEndToEnd:
    """Feed-to-merged-event behaviour through a real adapter."""

    @pytest.fixture
    def adapter(self):
        adapter = DistinctlyFayettevilleAdapter()
        adapter.base_delay = 0
        adapter.request_delay = 0
        return adapter

    @responses.activate
    def test_rss_item_to_canonical_event(self, adapter):
        """Test an RSS item with a date-prefixed description."""
        responses.add(responses.GET, RSS_URL, body=RSS_FEED, status=200)

        result = EventAggregator([adapter]).collect(now=NOW)

        assert len(result.events) == 1
        event = result.events[0]
        assert event.id == 'distinctly_4821'
        assert event.title == 'Fall Fest'
        assert event.description == 'Annual Fall Fest celebration'
        assert event.start == datetime(2025, 10, 4, 12, 0, tzinfo=LOCAL_TZ)
        assert event.end == datetime(2025, 10, 4, 14, 0, tzinfo=LOCAL_TZ)
        assert event.categories == ['Festivals & Fairs']
        assert event.source == 'distinctly_fayetteville'
