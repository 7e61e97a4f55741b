"""Event processor for validating and normalizing adapter output."""
import logging
from dataclasses import replace
from datetime import datetime
from typing import List, Optional

from processor.categories import normalize_categories
from processor.date_parsing import LOCAL_TZ, resolve_end
from processor.models import SECTIONS, CanonicalEvent
from processor.text_utils import collapse_whitespace, decode_html_entities

logger = logging.getLogger(__name__)


class EventProcessor:
    """Processor for validating and normalizing canonical events."""

    MAX_TITLE_LENGTH = 200
    MAX_DESCRIPTION_LENGTH = 5000

    def process_events(self, raw_events: List[CanonicalEvent]) -> List[CanonicalEvent]:
        """
        Validate and normalize events from one or more adapters.

        Args:
            raw_events: Events as emitted by adapters

        Returns:
            List of valid events satisfying the canonical invariants
        """
        processed_events = []

        for event in raw_events:
            try:
                processed_event = self._process_single_event(event)
                if processed_event:
                    processed_events.append(processed_event)
            except Exception as e:
                logger.warning(
                    f"Failed to process event '{getattr(event, 'title', '?')}': {e}"
                )
                continue

        logger.info(
            f"Processed {len(processed_events)} valid events out of "
            f"{len(raw_events)} total events"
        )
        return processed_events

    def _process_single_event(self, event: CanonicalEvent) -> Optional[CanonicalEvent]:
        """
        Process a single event.

        Args:
            event: Adapter-produced event

        Returns:
            Normalized copy or None if validation fails
        """
        if not self._validate_required_fields(event):
            return None

        title = collapse_whitespace(decode_html_entities(event.title))
        title = title[:self.MAX_TITLE_LENGTH]
        description = (event.description or '')[:self.MAX_DESCRIPTION_LENGTH]

        start = self._localize(event.start)
        end = resolve_end(start, self._localize(event.end) if event.end else None, overnight=False)

        section = event.section if event.section in SECTIONS else SECTIONS[0]

        return replace(
            event,
            title=title,
            description=description,
            start=start,
            end=end,
            categories=normalize_categories(event.categories),
            last_modified=self._localize(event.last_modified),
            section=section,
            url=event.url or '',
        )

    def _validate_required_fields(self, event: CanonicalEvent) -> bool:
        """
        Validate that required fields are present and non-empty.

        Args:
            event: Event to validate

        Returns:
            True if valid, False otherwise
        """
        if not event.title or not event.title.strip():
            logger.warning(f"Event {event.id} missing required field: title")
            return False

        if not event.id or not event.source_id:
            logger.warning(f"Event '{event.title}' missing id or source_id")
            return False

        if not isinstance(event.start, datetime):
            logger.warning(f"Event '{event.title}' missing required field: start")
            return False

        return True

    @staticmethod
    def _localize(value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=LOCAL_TZ)
        return value
