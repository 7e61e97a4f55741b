"""Webhook reminders for events one week and one day out.

Usage:
  python -m notifications.reminders --dry-run
  REMINDER_WEBHOOK_URL=... python -m notifications.reminders
"""
import argparse
import json
import logging
import os
import sys
import time
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

import requests

from lambda_function import run_sync, setup_logging
from processor.date_parsing import LOCAL_TZ, local_now
from processor.models import SECTION_DOWNTOWN, SECTION_FORT_BRAGG, CanonicalEvent
from settings import Settings

logger = logging.getLogger(__name__)

REMINDER_WEEK = '1_week'
REMINDER_DAY = '1_day'
REMINDER_TYPES = (REMINDER_WEEK, REMINDER_DAY)

MAX_EMBEDS = 10
BATCH_DELAY = 1.0
SITE_URL = 'https://ncfayetteville.com'
USERNAME = 'Fayetteville Events'

MOVIE_KEYWORDS = (
    'movie', 'film', 'cinema', 'screening', 'matinee',
    'imax', 'showing', 'theater showing', 'theatre showing',
)
MOVIE_CATEGORIES = ('movies', 'film', 'cinema', 'movie screenings', 'films')

COLORS = {
    REMINDER_WEEK: 15965202,  # orange
    REMINDER_DAY: 15158332,   # red
}

CATEGORY_EMOJI = {
    'live music': '🎵',
    'festivals & fairs': '🎪',
    'sports': '⚾',
    'arts & culture': '🎨',
    'food & drink': '🍽️',
    'family friendly': '👨‍👩‍👧‍👦',
    'holiday': '🎄',
    'nightlife': '🌙',
    'outdoor recreation': '🌲',
    'performing arts': '🎭',
    'history & heritage': '🏛️',
    'wellness': '🧘',
}

SECTION_LABELS = {
    SECTION_DOWNTOWN: 'Downtown',
    SECTION_FORT_BRAGG: 'Fort Liberty',
}


def is_movie_event(event: CanonicalEvent) -> bool:
    """Film showings are left out of reminders."""
    title = event.title.lower()
    description = event.description.lower()
    if any(keyword in title or keyword in description for keyword in MOVIE_KEYWORDS):
        return True
    return any(category.lower() in MOVIE_CATEGORIES for category in event.categories)


def days_until(event: CanonicalEvent, today: date) -> int:
    """Whole calendar days from today to the event's local start date."""
    return (event.start.astimezone(LOCAL_TZ).date() - today).days


def select_for_reminder(
    events: List[CanonicalEvent],
    reminder_type: str,
    today: date
) -> List[CanonicalEvent]:
    """
    Events due for a reminder of the given type.

    Args:
        events: Candidate events
        reminder_type: '1_week' (6-8 days out) or '1_day' (exactly 1 day out)
        today: Local reference date

    Returns:
        Matching events, excluding film showings
    """
    selected = []
    for event in events:
        if is_movie_event(event):
            continue
        days = days_until(event, today)
        if reminder_type == REMINDER_WEEK and 6 <= days <= 8:
            selected.append(event)
        elif reminder_type == REMINDER_DAY and days == 1:
            selected.append(event)
    return selected


class SentLog:
    """Persisted record of (event id, reminder type) pairs already delivered."""

    def __init__(self, path: str, sent: Optional[Dict[str, str]] = None):
        self.path = path
        self.sent: Dict[str, str] = dict(sent or {})

    @staticmethod
    def _key(event_id: str, reminder_type: str) -> str:
        return f"{event_id}_{reminder_type}"

    @classmethod
    def load(cls, path: str) -> 'SentLog':
        """Read the log; a missing or unreadable file starts empty."""
        if not os.path.exists(path):
            return cls(path)
        try:
            with open(path, encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading sent log {path}: {e}")
            return cls(path)
        return cls(path, data.get('sent') if isinstance(data, dict) else None)

    def was_sent(self, event_id: str, reminder_type: str) -> bool:
        return self._key(event_id, reminder_type) in self.sent

    def mark_sent(self, event_id: str, reminder_type: str, at: Optional[datetime] = None) -> None:
        at = at or datetime.now(timezone.utc)
        self.sent[self._key(event_id, reminder_type)] = at.isoformat()

    def save(self) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, 'w', encoding='utf-8') as f:
            json.dump({'sent': self.sent}, f, indent=2)

    def __len__(self) -> int:
        return len(self.sent)


def build_embed(event: CanonicalEvent, reminder_type: str) -> Dict[str, Any]:
    """Webhook embed for one event."""
    start = event.start.astimezone(LOCAL_TZ)
    section = SECTION_LABELS.get(event.section, 'Crown Complex')
    emoji = next(
        (CATEGORY_EMOJI[c.lower()] for c in event.categories if c.lower() in CATEGORY_EMOJI),
        '📅'
    )

    if reminder_type == REMINDER_DAY:
        title = f"⏰ Tomorrow! {section}"
        description = "Don't forget - this event is happening tomorrow!"
    else:
        title = f"🗓️ Coming Up Next Week - {section}"
        description = 'Mark your calendar for this upcoming event!'

    fields = [
        {'name': f"{emoji} Event", 'value': event.title, 'inline': False},
        {'name': '📅 Date', 'value': f"{start:%A, %B} {start.day}, {start.year}", 'inline': True},
    ]
    if event.time_known:
        fields.append({
            'name': '⏰ Time',
            'value': start.strftime('%I:%M %p').lstrip('0'),
            'inline': True,
        })
    if event.venue and event.venue.name:
        location = event.venue.name
        if event.venue.address:
            location = f"{location}\n{event.venue.address}, {event.venue.city}"
        fields.append({'name': '📍 Location', 'value': location, 'inline': False})
    if event.categories:
        fields.append({
            'name': '🏷️ Categories',
            'value': ' • '.join(event.categories[:3]),
            'inline': False,
        })

    embed = {
        'title': title,
        'description': description,
        'url': f"{SITE_URL}/events/{event.id}",
        'color': COLORS[reminder_type],
        'fields': fields,
        'footer': {'text': f"{event.source} • ncfayetteville.com"},
        'timestamp': event.start.astimezone(timezone.utc).isoformat(),
    }
    if event.image_url:
        embed['thumbnail'] = {'url': event.image_url}
    return embed


def build_payload(events: List[CanonicalEvent], reminder_type: str) -> Dict[str, Any]:
    return {
        'username': USERNAME,
        'embeds': [build_embed(event, reminder_type) for event in events[:MAX_EMBEDS]],
    }


class ReminderNotifier:
    """Selects due reminders and delivers them in batches."""

    def __init__(
        self,
        webhook_url: Optional[str],
        sent_log: SentLog,
        dry_run: bool = False,
        timeout: int = 30,
        batch_delay: float = BATCH_DELAY
    ):
        """
        Args:
            webhook_url: Delivery endpoint (required unless dry_run)
            sent_log: Previously delivered reminders
            dry_run: Log payloads instead of posting them
            timeout: HTTP timeout in seconds
            batch_delay: Pause between batches
        """
        if not webhook_url and not dry_run:
            raise ValueError('A webhook URL is required unless dry_run is set')
        self.webhook_url = webhook_url
        self.sent_log = sent_log
        self.dry_run = dry_run
        self.timeout = timeout
        self.batch_delay = batch_delay
        self.session = requests.Session()

    def send(self, payload: Dict[str, Any]) -> bool:
        """
        Deliver one payload.

        Returns:
            True when the webhook accepted it (or in dry-run)
        """
        if self.dry_run:
            logger.info(f"[DRY RUN] Would send: {json.dumps(payload, ensure_ascii=False)}")
            return True

        try:
            response = self.session.post(self.webhook_url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Error sending reminder batch: {e}")
            return False

        if response.status_code in (200, 204):
            return True
        if response.status_code == 429:
            logger.warning(
                f"Rate limited by webhook; retry after {response.headers.get('Retry-After')}s"
            )
            return False
        logger.error(f"Failed to send reminder batch: {response.status_code} {response.text[:200]}")
        return False

    def notify(self, events: List[CanonicalEvent], today: Optional[date] = None) -> Dict[str, int]:
        """
        Send every due, not-yet-sent reminder.

        The sent log is saved only when at least one batch was delivered
        outside dry-run.

        Args:
            events: Aggregated events
            today: Local reference date

        Returns:
            Count of reminders delivered per type
        """
        today = today or local_now().date()
        delivered = {reminder_type: 0 for reminder_type in REMINDER_TYPES}

        for reminder_type in REMINDER_TYPES:
            due = [
                event for event in select_for_reminder(events, reminder_type, today)
                if not self.sent_log.was_sent(event.id, reminder_type)
            ]
            logger.info(f"{len(due)} events need a {reminder_type} reminder")

            for offset in range(0, len(due), MAX_EMBEDS):
                batch = due[offset:offset + MAX_EMBEDS]
                if self.send(build_payload(batch, reminder_type)):
                    delivered[reminder_type] += len(batch)
                    if not self.dry_run:
                        for event in batch:
                            self.sent_log.mark_sent(event.id, reminder_type)
                if offset + MAX_EMBEDS < len(due) and self.batch_delay > 0:
                    time.sleep(self.batch_delay)

        if not self.dry_run and any(delivered.values()):
            self.sent_log.save()
            logger.info(f"Saved {len(self.sent_log)} sent reminders to {self.sent_log.path}")

        return delivered


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description='Send event reminders to a webhook')
    parser.add_argument('--dry-run', action='store_true', help='Log payloads instead of sending')
    args = parser.parse_args(argv)

    settings = Settings.from_env()
    setup_logging(settings.log_level)

    try:
        notifier = ReminderNotifier(
            settings.reminder_webhook_url,
            SentLog.load(settings.reminder_log_path),
            dry_run=args.dry_run,
            timeout=settings.timeout_seconds,
        )
        report = run_sync(settings)
        delivered = notifier.notify(report.aggregation.events)
    except Exception as e:
        logger.error(f"Reminder run failed: {e}", exc_info=True)
        return 1

    logger.info("Reminder run complete", extra={'delivered': delivered})
    return 0


if __name__ == '__main__':
    sys.exit(main())
