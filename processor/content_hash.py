"""Content fingerprints used to skip no-op writes."""
import hashlib
import json
from datetime import timezone

from processor.models import CanonicalEvent

DESCRIPTION_HASH_LENGTH = 1000


def compute_content_hash(event: CanonicalEvent) -> str:
    """
    Fingerprint the fields a reader would notice changing.

    Only title, description prefix, start, end, venue name, URLs and
    categories participate; bookkeeping such as last_modified, source or
    section never changes the hash.

    Args:
        event: Normalized event

    Returns:
        16-character hex digest
    """
    content = '|'.join([
        event.title,
        event.description[:DESCRIPTION_HASH_LENGTH],
        event.start.astimezone(timezone.utc).isoformat(),
        event.end.astimezone(timezone.utc).isoformat(),
        event.venue.name if event.venue else '',
        event.url or '',
        event.ticket_url or '',
        event.image_url or '',
        json.dumps(event.categories),
    ])
    return hashlib.md5(content.encode('utf-8'), usedforsecurity=False).hexdigest()[:16]
