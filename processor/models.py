"""Data models for event aggregation and sync."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


# Sections partition events for filtering and display grouping
SECTION_DOWNTOWN = 'downtown'
SECTION_FORT_BRAGG = 'fort_bragg'
SECTION_CROWN = 'crown'
SECTIONS = (SECTION_DOWNTOWN, SECTION_FORT_BRAGG, SECTION_CROWN)

# Curated rows have no upstream and are never cancelled for staleness
MANUAL_SOURCE = 'manual'

STATUS_CONFIRMED = 'confirmed'
STATUS_PAST = 'past'
STATUS_CANCELLED = 'cancelled'


@dataclass
class Venue:
    """Structured event location."""
    name: str
    city: str = 'Fayetteville'
    state: str = 'NC'
    address: Optional[str] = None
    zip_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    phone: Optional[str] = None
    google_maps_url: Optional[str] = None


@dataclass
class CanonicalEvent:
    """Source-agnostic event produced by every adapter."""
    id: str
    source: str
    source_id: str
    title: str
    description: str
    start: datetime
    end: datetime
    venue: Optional[Venue]
    categories: List[str]
    url: str
    last_modified: datetime
    section: str = SECTION_DOWNTOWN
    ticket_url: Optional[str] = None
    image_url: Optional[str] = None
    contact_phone: Optional[str] = None
    # False when the source gave only a date and start carries the noon placeholder
    time_known: bool = True

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for JSON output."""
        venue = None
        if self.venue:
            venue = {
                'name': self.venue.name,
                'address': self.venue.address,
                'city': self.venue.city,
                'state': self.venue.state,
                'zip': self.venue.zip_code,
                'latitude': self.venue.latitude,
                'longitude': self.venue.longitude,
                'phone': self.venue.phone,
            }
        return {
            'id': self.id,
            'source': self.source,
            'sourceId': self.source_id,
            'title': self.title,
            'description': self.description,
            'startDateTime': self.start.isoformat(),
            'endDateTime': self.end.isoformat(),
            'venue': venue,
            'categories': self.categories,
            'url': self.url,
            'ticketUrl': self.ticket_url,
            'imageUrl': self.image_url,
            'contactPhone': self.contact_phone,
            'lastModified': self.last_modified.isoformat(),
            'section': self.section,
        }


@dataclass(frozen=True)
class EventKey:
    """Natural key of a persisted event row."""
    source_id: str
    external_id: str

    @property
    def value(self) -> str:
        return f"{self.source_id}#{self.external_id}"


@dataclass
class UpsertRequest:
    """Insert-or-update of a full event row keyed by its natural key."""
    key: EventKey
    fields: Dict[str, Any]
    is_insert: bool


@dataclass
class TouchRequest:
    """Refresh of last_seen_at for an unchanged event."""
    key: EventKey
    event_id: str
    last_seen_at: str


@dataclass
class SyncStats:
    """Result of a sync operation."""
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    errors: int = 0
    error_messages: List[str] = field(default_factory=list)
    snapshot_loaded: bool = True


@dataclass
class SyncPlan:
    """Writes computed by the reconciler before anything is applied."""
    upserts: List[UpsertRequest] = field(default_factory=list)
    touches: List[TouchRequest] = field(default_factory=list)
    stats: SyncStats = field(default_factory=SyncStats)


@dataclass
class CleanupResult:
    """Result of a lifecycle cleanup pass."""
    archived: int = 0
    cancelled: int = 0
    errors: int = 0
    error_messages: List[str] = field(default_factory=list)


@dataclass
class AggregationResult:
    """Merged adapter output plus per-source bookkeeping."""
    events: List[CanonicalEvent]
    source_counts: Dict[str, int]
    failed_sources: List[str]
    total_fetched: int


@dataclass
class SyncReport:
    """Everything one pipeline run produced."""
    aggregation: Optional[AggregationResult] = None
    sync: Optional[SyncStats] = None
    cleanup: Optional[CleanupResult] = None
