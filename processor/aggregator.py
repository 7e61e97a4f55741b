"""Concurrent fan-out over source adapters with cross-source dedup."""
import asyncio
import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from processor.date_parsing import LOCAL_TZ, local_now
from processor.event_processor import EventProcessor
from processor.models import AggregationResult, CanonicalEvent

logger = logging.getLogger(__name__)


def dedup_key(event: CanonicalEvent) -> Tuple[str, str]:
    """Cross-source duplicate key: lowercased title and local start date."""
    return (event.title.lower(), event.start.astimezone(LOCAL_TZ).date().isoformat())


def merge_events(
    batches: Sequence[List[CanonicalEvent]],
    now: datetime
) -> List[CanonicalEvent]:
    """
    Merge adapter batches into one ordered, deduplicated list.

    Batches are concatenated in the order given, filtered to events that
    have not ended yet, sorted by start, and deduplicated by title and
    start date with the first occurrence winning.

    Args:
        batches: Per-adapter event lists in registry order
        now: Reference time

    Returns:
        Merged events
    """
    merged = [event for batch in batches for event in batch]
    upcoming = [event for event in merged if event.end > now]
    # sort is stable, so ties keep merge order
    upcoming.sort(key=lambda event: event.start)

    seen = set()
    deduped = []
    for event in upcoming:
        key = dedup_key(event)
        if key in seen:
            logger.debug(f"Dropping duplicate '{event.title}' from {event.source}")
            continue
        seen.add(key)
        deduped.append(event)
    return deduped


class EventAggregator:
    """Runs every adapter concurrently and merges what succeeds."""

    def __init__(self, adapters: Sequence, processor: Optional[EventProcessor] = None):
        """
        Args:
            adapters: Adapter instances, in merge order
            processor: Normalizer applied to each adapter's output
        """
        self.adapters = list(adapters)
        self.processor = processor or EventProcessor()

    async def _fetch_all(self) -> List:
        tasks = [asyncio.to_thread(adapter.run) for adapter in self.adapters]
        # never fail fast: one adapter's error must not cancel the rest
        return await asyncio.gather(*tasks, return_exceptions=True)

    def collect(self, now: Optional[datetime] = None) -> AggregationResult:
        """
        Fetch from all adapters and merge the results.

        Args:
            now: Reference time for the future-events filter

        Returns:
            AggregationResult with merged events and per-source counts
        """
        now = now or local_now()
        logger.info(f"Fetching from {len(self.adapters)} sources")
        results = asyncio.run(self._fetch_all())

        batches: List[List[CanonicalEvent]] = []
        source_counts: Dict[str, int] = {}
        failed_sources: List[str] = []

        for adapter, result in zip(self.adapters, results):
            if isinstance(result, BaseException):
                logger.error(
                    f"[{adapter.name}] Adapter raised: {result}",
                    exc_info=(type(result), result, result.__traceback__)
                )
                failed_sources.append(adapter.name)
                batches.append([])
                continue
            if getattr(adapter, 'failed', False):
                failed_sources.append(adapter.name)
            processed = self.processor.process_events(result)
            source_counts[adapter.name] = len(processed)
            batches.append(processed)

        total = sum(len(batch) for batch in batches)
        events = merge_events(batches, now)
        logger.info(
            f"Aggregated {len(events)} upcoming events from {total} fetched",
            extra={'failed_sources': failed_sources}
        )
        return AggregationResult(
            events=events,
            source_counts=source_counts,
            failed_sources=failed_sources,
            total_fetched=total,
        )
