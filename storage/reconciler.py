"""Lifecycle reconciliation between aggregated events and the event store."""
import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from processor.content_hash import compute_content_hash
from processor.models import (
    STATUS_CANCELLED,
    STATUS_PAST,
    CanonicalEvent,
    CleanupResult,
    EventKey,
    SyncPlan,
    SyncStats,
    TouchRequest,
    UpsertRequest,
    Venue,
)
from processor.venue_resolver import VenueResolver
from storage.dynamodb_manager import DynamoDBManager, to_iso

logger = logging.getLogger(__name__)

STORE_ERRORS = (ClientError, BotoCoreError)


def _venue_item(venue: Optional[Venue]) -> Optional[Dict[str, Any]]:
    if venue is None:
        return None
    item = {
        'name': venue.name,
        'address': venue.address,
        'city': venue.city,
        'state': venue.state,
        'zip': venue.zip_code,
        'phone': venue.phone,
        'google_maps_url': venue.google_maps_url,
        # DynamoDB rejects float
        'latitude': Decimal(str(venue.latitude)) if venue.latitude is not None else None,
        'longitude': Decimal(str(venue.longitude)) if venue.longitude is not None else None,
    }
    return {key: value for key, value in item.items() if value is not None}


def event_fields(
    event: CanonicalEvent,
    venue_id: Optional[str],
    content_hash: str,
    seen_at: str
) -> Dict[str, Any]:
    """
    Full column set for one event row.

    Args:
        event: Normalized event
        venue_id: Resolved directory venue, if any
        content_hash: Fingerprint of the event content
        seen_at: Timestamp of this sync

    Returns:
        Row fields; None values clear the attribute on update
    """
    return {
        'id': event.id,
        'source_id': event.source,
        'external_id': event.source_id,
        'title': event.title,
        'description': event.description,
        'start_at': to_iso(event.start),
        'end_at': to_iso(event.end),
        'venue_id': venue_id,
        'venue': _venue_item(event.venue),
        'categories': list(event.categories),
        'url': event.url,
        'ticket_url': event.ticket_url,
        'image_url': event.image_url,
        'contact_phone': event.contact_phone,
        'section': event.section,
        'content_hash': content_hash,
        'last_modified': to_iso(event.last_modified),
        'last_seen_at': seen_at,
        'updated_at': seen_at,
    }


class Reconciler:
    """
    Classifies aggregated events against the stored snapshot and applies
    the resulting writes and lifecycle transitions.
    """

    def __init__(
        self,
        store: DynamoDBManager,
        stale_hours: int = 48,
        archive_grace_hours: int = 24,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Args:
            store: Event store
            stale_hours: Unseen this long, an upcoming event is cancelled
            archive_grace_hours: Ended this long ago, an event is archived
            clock: Source of the current time
        """
        self.store = store
        self.stale_after = timedelta(hours=stale_hours)
        self.archive_after = timedelta(hours=archive_grace_hours)
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def _load_snapshot(self, stats: SyncStats) -> Dict[str, str]:
        try:
            return self.store.get_content_hashes()
        except STORE_ERRORS as e:
            # every event becomes an upsert
            logger.warning(f"Could not load content hashes, treating all events as new: {e}")
            stats.snapshot_loaded = False
            return {}

    def _load_resolver(self) -> VenueResolver:
        try:
            return VenueResolver(self.store.get_venues())
        except STORE_ERRORS as e:
            logger.warning(f"Could not load venue directory, venues left unresolved: {e}")
            return VenueResolver([])

    def plan(self, events: List[CanonicalEvent], now: Optional[datetime] = None) -> SyncPlan:
        """
        Compute the writes needed to bring the store in line with events.

        Args:
            events: Aggregated, deduplicated events
            now: Sync timestamp

        Returns:
            SyncPlan with upserts, touches and classification counts
        """
        now = now or self.clock()
        seen_at = to_iso(now)
        plan = SyncPlan()
        snapshot = self._load_snapshot(plan.stats)
        resolver = self._load_resolver()

        for event in events:
            content_hash = compute_content_hash(event)
            key = EventKey(source_id=event.source, external_id=event.source_id)
            existing = snapshot.get(event.id)

            if existing == content_hash:
                plan.touches.append(TouchRequest(key=key, event_id=event.id, last_seen_at=seen_at))
                plan.stats.unchanged += 1
                continue

            venue_id = resolver.resolve(event.venue.name) if event.venue else None
            fields = event_fields(event, venue_id, content_hash, seen_at)
            is_insert = existing is None
            plan.upserts.append(UpsertRequest(key=key, fields=fields, is_insert=is_insert))
            if is_insert:
                plan.stats.inserted += 1
            else:
                plan.stats.updated += 1

        logger.info(
            f"Sync plan: {plan.stats.inserted} new, {plan.stats.updated} updated, "
            f"{plan.stats.unchanged} unchanged"
        )
        return plan

    def apply(self, plan: SyncPlan) -> SyncStats:
        """
        Execute a plan one statement at a time.

        A failed statement is counted and logged; the rest still run.

        Args:
            plan: Output of plan()

        Returns:
            Stats counting only statements that succeeded, plus errors
        """
        stats = plan.stats

        for request in plan.upserts:
            try:
                self.store.upsert_event(request)
            except STORE_ERRORS as e:
                error_msg = f"Error upserting {request.key.value}: {e}"
                logger.error(error_msg)
                stats.errors += 1
                stats.error_messages.append(error_msg)
                if request.is_insert:
                    stats.inserted -= 1
                else:
                    stats.updated -= 1

        for request in plan.touches:
            try:
                self.store.touch_event(request)
            except STORE_ERRORS as e:
                error_msg = f"Error touching {request.key.value}: {e}"
                logger.error(error_msg)
                stats.errors += 1
                stats.error_messages.append(error_msg)
                stats.unchanged -= 1

        logger.info(
            f"Sync complete: {stats.inserted} new, {stats.updated} updated, "
            f"{stats.unchanged} unchanged, {stats.errors} errors"
        )
        return stats

    def sync(
        self,
        events: List[CanonicalEvent],
        dry_run: bool = False,
        now: Optional[datetime] = None
    ) -> SyncStats:
        """
        Plan and, unless dry-run, apply.

        Args:
            events: Aggregated events
            dry_run: Compute and report without writing
            now: Sync timestamp

        Returns:
            SyncStats
        """
        plan = self.plan(events, now=now)
        if dry_run:
            logger.info("Dry run: no changes written")
            return plan.stats

        stats = self.apply(plan)
        for source, count in sorted(Counter(event.source for event in events).items()):
            self.store.record_source_sync(source, count)
        return stats

    def cleanup(self, dry_run: bool = False, now: Optional[datetime] = None) -> CleanupResult:
        """
        Archive ended events and cancel events that stopped appearing.

        Args:
            dry_run: Count candidates without writing
            now: Reference time

        Returns:
            CleanupResult with transition counts
        """
        now = now or self.clock()
        result = CleanupResult()

        try:
            past = self.store.find_past_events(now - self.archive_after)
            stale = self.store.find_stale_events(now - self.stale_after, now)
        except STORE_ERRORS as e:
            error_msg = f"Error finding cleanup candidates: {e}"
            logger.error(error_msg, exc_info=True)
            result.errors += 1
            result.error_messages.append(error_msg)
            return result

        logger.info(f"Cleanup candidates: {len(past)} past, {len(stale)} stale")

        if dry_run:
            result.archived = len(past)
            result.cancelled = len(stale)
            return result

        for keys, status, attribute in ((past, STATUS_PAST, 'archived'),
                                        (stale, STATUS_CANCELLED, 'cancelled')):
            updated, errors = self.store.set_status(keys, status)
            setattr(result, attribute, updated)
            result.errors += len(errors)
            result.error_messages.extend(errors)

        logger.info(
            f"Cleanup complete: {result.archived} archived, {result.cancelled} cancelled, "
            f"{result.errors} errors"
        )
        return result
