"""Resolution of free-text location names to known venue ids."""
import logging
import re
from typing import Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

_SUFFIX_RE = re.compile(
    r'\s+(theater|theatre|arena|stadium|center|centre|complex|hall|park)$'
)
_LEADING_THE_RE = re.compile(r'^the\s+')

# Shorter names match too much by containment ("Park", "Hall")
MIN_CONTAINMENT_LENGTH = 4


def _normalize(name: str) -> str:
    return ' '.join(name.lower().split())


def _strip_venue_type(name: str) -> str:
    name = _LEADING_THE_RE.sub('', name)
    return _SUFFIX_RE.sub('', name).strip()


class VenueResolver:
    """
    Matches location strings against a pre-loaded venue directory.

    Resolution order: exact name/alias match, containment match, then the
    same two steps with venue-type suffixes and a leading "the" removed.
    """

    def __init__(self, venues: Iterable[Dict]):
        """
        Build lookup tables.

        Args:
            venues: Directory rows with 'id', 'name' and optional 'aliases'
        """
        self._names: List[Tuple[str, str]] = []
        for venue in venues:
            venue_id = venue.get('id')
            if not venue_id:
                continue
            for name in [venue.get('name')] + list(venue.get('aliases') or []):
                if name and _normalize(name):
                    self._names.append((_normalize(name), venue_id))

        self._exact = {}
        for name, venue_id in self._names:
            self._exact.setdefault(name, venue_id)

        self._stripped: List[Tuple[str, str]] = []
        for name, venue_id in self._names:
            stripped = _strip_venue_type(name)
            if stripped:
                self._stripped.append((stripped, venue_id))
        self._stripped_exact = {}
        for name, venue_id in self._stripped:
            self._stripped_exact.setdefault(name, venue_id)

        logger.info(f"Loaded {len(self._exact)} venue names and aliases")

    def __len__(self) -> int:
        return len(self._exact)

    @staticmethod
    def _contains(name: str, candidates: List[Tuple[str, str]]) -> Optional[str]:
        best = None
        for known, venue_id in candidates:
            if len(known) < MIN_CONTAINMENT_LENGTH or len(name) < MIN_CONTAINMENT_LENGTH:
                continue
            if known in name or name in known:
                # longest known name wins
                if best is None or len(known) > len(best[0]):
                    best = (known, venue_id)
        return best[1] if best else None

    def resolve(self, location_name: Optional[str]) -> Optional[str]:
        """
        Resolve a location string to a venue id.

        Args:
            location_name: Free-text venue or location name

        Returns:
            Venue id or None when nothing matches
        """
        if not location_name:
            return None
        name = _normalize(location_name)
        if not name:
            return None

        venue_id = self._exact.get(name) or self._contains(name, self._names)
        if venue_id:
            return venue_id

        stripped = _strip_venue_type(name)
        if not stripped:
            return None
        return (
            self._stripped_exact.get(stripped)
            or self._contains(stripped, self._stripped)
        )
