"""Adapter registry; its order is the dedup "first wins" order."""
from typing import List, Optional

from sources.annual_events import (
    HolidayCalendarAdapter,
    MlkCommitteeAdapter,
    SummerConcertSeriesAdapter,
)
from sources.base import BaseAdapter
from sources.cameo_theatre import CameoTheatreAdapter
from sources.crown_complex import CrownComplexAdapter
from sources.distinctly_rss import DistinctlyFayettevilleAdapter
from sources.dogwood_festival import DogwoodFestivalAdapter
from sources.faydta import FayDtaAdapter
from sources.fort_liberty_mwr import FortLibertyMwrAdapter
from sources.segra_stadium import SegraStadiumAdapter
from sources.sports_schedule import MarksmenHockeyAdapter, WoodpeckersBaseballAdapter
from sources.visit_downtown import VisitDowntownAdapter

ALL_ADAPTERS = (
    VisitDowntownAdapter,
    SegraStadiumAdapter,
    DistinctlyFayettevilleAdapter,
    DogwoodFestivalAdapter,
    FortLibertyMwrAdapter,
    CrownComplexAdapter,
    FayDtaAdapter,
    MlkCommitteeAdapter,
    HolidayCalendarAdapter,
    SummerConcertSeriesAdapter,
    MarksmenHockeyAdapter,
    WoodpeckersBaseballAdapter,
    CameoTheatreAdapter,
)

ADAPTERS_BY_NAME = {adapter.name: adapter for adapter in ALL_ADAPTERS}
ALL = 'all'


class UnknownSourceError(ValueError):
    """Raised when a source name does not match any adapter."""

    def __init__(self, name: str):
        super().__init__(
            f"Unknown source '{name}'. Valid sources: {', '.join([ALL] + source_names())}"
        )
        self.name = name


def source_names() -> List[str]:
    return [adapter.name for adapter in ALL_ADAPTERS]


def build_adapters(
    source: Optional[str] = None,
    timeout: int = 30,
    enhanced: bool = False
) -> List[BaseAdapter]:
    """
    Instantiate adapters in merge order.

    Args:
        source: One adapter name, or None/'all' for every adapter
        timeout: HTTP timeout passed to each adapter
        enhanced: Enable best-effort metadata enrichment

    Returns:
        Adapter instances

    Raises:
        UnknownSourceError: If source names no adapter
    """
    if source in (None, '', ALL):
        classes = ALL_ADAPTERS
    elif source in ADAPTERS_BY_NAME:
        classes = (ADAPTERS_BY_NAME[source],)
    else:
        raise UnknownSourceError(source)
    return [cls(timeout=timeout, enhanced=enhanced) for cls in classes]
