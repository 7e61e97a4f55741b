"""Unit tests for webhook reminders."""
import json
from datetime import date, datetime

import pytest
import responses

from notifications.reminders import (
    MAX_EMBEDS,
    ReminderNotifier,
    SentLog,
    build_embed,
    build_payload,
    is_movie_event,
    select_for_reminder,
)
from processor.date_parsing import LOCAL_TZ

WEBHOOK = 'https://hooks.example.com/webhook'
TODAY = date(2025, 10, 1)


def on_day(make_event, day, **overrides):
    """Event starting at 7pm local on 2025-10-<day>."""
    start = datetime(2025, 10, day, 19, 0, tzinfo=LOCAL_TZ)
    overrides.setdefault('id', f"evt_{day}")
    return make_event(start=start, end=start.replace(hour=21), **overrides)


class TestSelection:
    """Test cases for reminder selection."""

    def test_one_week_window(self, make_event):
        """Test 6 to 8 days out qualifies for the weekly reminder."""
        events = [on_day(make_event, day) for day in (6, 7, 8, 9, 10)]

        selected = select_for_reminder(events, '1_week', TODAY)

        assert [event.id for event in selected] == ['evt_7', 'evt_8', 'evt_9']

    def test_one_day_window(self, make_event):
        """Test exactly one day out qualifies for the daily reminder."""
        events = [on_day(make_event, day) for day in (1, 2, 3)]

        selected = select_for_reminder(events, '1_day', TODAY)

        assert [event.id for event in selected] == ['evt_2']

    def test_movies_excluded(self, make_event):
        """Test film showings never get reminders."""
        film = on_day(make_event, 2, id='film', title='The Third Man', categories=['Movies'])
        screening = on_day(make_event, 2, id='screening', title='Outdoor Screening')
        concert = on_day(make_event, 2, id='concert', title='Concert')

        assert is_movie_event(film)
        assert is_movie_event(screening)
        assert not is_movie_event(concert)
        assert [event.id for event in select_for_reminder([film, screening, concert], '1_day', TODAY)] == ['concert']


class TestPayload:
    """Test cases for embed construction."""

    def test_embed_fields(self, make_event):
        """Test the embed carries title, date, time and location."""
        event = on_day(make_event, 2, title='Jazz Night', image_url='https://img.example.com/j.jpg')

        embed = build_embed(event, '1_day')

        assert embed['title'].startswith('⏰ Tomorrow!')
        names = [field['name'] for field in embed['fields']]
        assert any('Event' in name for name in names)
        assert any('Time' in name for name in names)
        assert any('Location' in name for name in names)
        assert embed['fields'][0]['value'] == 'Jazz Night'
        assert embed['url'].endswith('/events/evt_2')
        assert embed['thumbnail'] == {'url': 'https://img.example.com/j.jpg'}

    def test_time_omitted_for_date_only_events(self, make_event):
        """Test a listing without a time of day shows no time, a real noon start does."""
        noon = datetime(2025, 10, 2, 12, 0, tzinfo=LOCAL_TZ)
        listing = make_event(id='expo', start=noon, end=noon.replace(hour=14), time_known=False)
        lunch = make_event(id='lunch', start=noon, end=noon.replace(hour=14))

        listing_names = [field['name'] for field in build_embed(listing, '1_day')['fields']]
        lunch_fields = build_embed(lunch, '1_day')['fields']

        assert not any('Time' in name for name in listing_names)
        assert {'name': '⏰ Time', 'value': '12:00 PM', 'inline': True} in lunch_fields

    def test_payload_limited_to_ten_embeds(self, make_event):
        """Test one payload holds at most ten embeds."""
        events = [on_day(make_event, 8, id=f"e{i}", title=f"Event {i}") for i in range(12)]

        payload = build_payload(events, '1_week')

        assert len(payload['embeds']) == MAX_EMBEDS


class TestSentLog:
    """Test cases for the persisted sent log."""

    def test_round_trip(self, tmp_path):
        """Test marks survive save and load."""
        path = str(tmp_path / 'state' / 'reminders.json')
        log = SentLog(path)
        log.mark_sent('evt_1', '1_day')
        log.save()

        loaded = SentLog.load(path)

        assert loaded.was_sent('evt_1', '1_day')
        assert not loaded.was_sent('evt_1', '1_week')
        assert len(loaded) == 1

    def test_missing_or_corrupt_file(self, tmp_path):
        """Test an unreadable log starts empty."""
        corrupt = tmp_path / 'bad.json'
        corrupt.write_text('{not json')

        assert len(SentLog.load(str(tmp_path / 'absent.json'))) == 0
        assert len(SentLog.load(str(corrupt))) == 0


class TestReminderNotifier:
    """Test cases for ReminderNotifier."""

    def test_requires_webhook_unless_dry_run(self, tmp_path):
        """Test a missing webhook is rejected outside dry-run."""
        log = SentLog(str(tmp_path / 'log.json'))
        with pytest.raises(ValueError):
            ReminderNotifier(None, log)
        ReminderNotifier(None, log, dry_run=True)

    @responses.activate
    def test_notify_batches_and_saves(self, tmp_path, make_event):
        """Test reminders go out in batches of ten and are recorded."""
        responses.add(responses.POST, WEBHOOK, status=204)
        path = str(tmp_path / 'log.json')
        events = [on_day(make_event, 8, id=f"e{i}", title=f"Event {i}") for i in range(12)]
        notifier = ReminderNotifier(WEBHOOK, SentLog(path), batch_delay=0)

        delivered = notifier.notify(events, TODAY)

        assert delivered == {'1_week': 12, '1_day': 0}
        assert len(responses.calls) == 2
        first = json.loads(responses.calls[0].request.body)
        assert len(first['embeds']) == 10
        assert SentLog.load(path).was_sent('e11', '1_week')

    @responses.activate
    def test_already_sent_skipped(self, tmp_path, make_event):
        """Test reminders in the sent log are not repeated."""
        responses.add(responses.POST, WEBHOOK, status=204)
        log = SentLog(str(tmp_path / 'log.json'))
        log.mark_sent('evt_2', '1_day')
        notifier = ReminderNotifier(WEBHOOK, log, batch_delay=0)

        delivered = notifier.notify([on_day(make_event, 2)], TODAY)

        assert delivered['1_day'] == 0
        assert len(responses.calls) == 0

    @responses.activate
    def test_rate_limited_batch_not_recorded(self, tmp_path, make_event):
        """Test a rejected batch is neither counted nor saved."""
        responses.add(responses.POST, WEBHOOK, status=429, headers={'Retry-After': '5'})
        path = tmp_path / 'log.json'
        notifier = ReminderNotifier(WEBHOOK, SentLog(str(path)), batch_delay=0)

        delivered = notifier.notify([on_day(make_event, 2)], TODAY)

        assert delivered['1_day'] == 0
        assert not path.exists()

    def test_dry_run_does_not_post_or_save(self, tmp_path, make_event):
        """Test dry-run counts without sending or saving."""
        path = tmp_path / 'log.json'
        notifier = ReminderNotifier(None, SentLog(str(path)), dry_run=True, batch_delay=0)

        delivered = notifier.notify([on_day(make_event, 2)], TODAY)

        assert delivered['1_day'] == 1
        assert not path.exists()
