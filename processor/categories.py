"""Mapping of free-text source tags onto the display category vocabulary."""
from typing import Iterable, List

# Display order; labels not listed here sort after these, alphabetically
CATEGORY_PRIORITY = [
    'Festivals & Fairs',
    'Live Music',
    'Performing Arts',
    'Sports',
    'Family Friendly',
    'Food & Drink',
    'Arts & Culture',
    'Holiday',
    'Parades',
    'Community',
    'Military',
    'Movies',
    'Nightlife',
    'Outdoor Recreation',
    'Expos & Trade Shows',
    'History & Heritage',
    'Wellness',
]

CATEGORY_MAP = {
    # Festivals
    'festival': 'Festivals & Fairs',
    'festivals': 'Festivals & Fairs',
    'fairs': 'Festivals & Fairs',
    'fairs & festivals': 'Festivals & Fairs',
    'fairs/festivals': 'Festivals & Fairs',
    # Music
    'music': 'Live Music',
    'concert': 'Live Music',
    'concerts': 'Live Music',
    'concerts & music': 'Live Music',
    'classical music': 'Live Music',
    'gospel': 'Live Music',
    'jazz': 'Live Music',
    'live entertainment': 'Live Music',
    # Stage
    'theater': 'Performing Arts',
    'theatre': 'Performing Arts',
    'dance': 'Performing Arts',
    'comedy': 'Performing Arts',
    'performing arts & theater': 'Performing Arts',
    # Sports
    'sport': 'Sports',
    'sports & recreation': 'Sports',
    'baseball': 'Sports',
    'hockey': 'Sports',
    'athletics': 'Sports',
    # Family
    'family': 'Family Friendly',
    'family fun': 'Family Friendly',
    'kids': 'Family Friendly',
    'children': 'Family Friendly',
    # Food
    'food': 'Food & Drink',
    'dining': 'Food & Drink',
    'culinary': 'Food & Drink',
    'food & beverage': 'Food & Drink',
    'beer & wine': 'Food & Drink',
    # Arts
    'art': 'Arts & Culture',
    'arts': 'Arts & Culture',
    'visual arts': 'Arts & Culture',
    'exhibits': 'Arts & Culture',
    'museums': 'Arts & Culture',
    'cultural': 'Arts & Culture',
    # Holiday
    'holidays': 'Holiday',
    'christmas': 'Holiday',
    # Parades
    'parade': 'Parades',
    # Community
    'civic': 'Community',
    'community events': 'Community',
    'events': 'Community',
    'meetings': 'Community',
    # Military
    'mwr': 'Military',
    'army': 'Military',
    'military appreciation': 'Military',
    # Movies
    'movie': 'Movies',
    'film': 'Movies',
    'films': 'Movies',
    'cinema': 'Movies',
    # Misc
    'outdoors': 'Outdoor Recreation',
    'outdoor': 'Outdoor Recreation',
    'recreation': 'Outdoor Recreation',
    'expo': 'Expos & Trade Shows',
    'expos': 'Expos & Trade Shows',
    'trade show': 'Expos & Trade Shows',
    'history': 'History & Heritage',
    'heritage': 'History & Heritage',
    'health': 'Wellness',
    'fitness': 'Wellness',
    'bars & clubs': 'Nightlife',
}

# Canonical labels map to themselves, which makes normalization idempotent
CATEGORY_MAP.update({label.lower(): label for label in CATEGORY_PRIORITY})

_PRIORITY_INDEX = {label: index for index, label in enumerate(CATEGORY_PRIORITY)}


def _capitalize(label: str) -> str:
    return label[0].upper() + label[1:]


def _sort_key(label: str):
    index = _PRIORITY_INDEX.get(label)
    if index is None:
        return (1, len(CATEGORY_PRIORITY), label.lower())
    return (0, index, '')


def normalize_categories(raw_categories: Iterable[str]) -> List[str]:
    """
    Map source tags onto display labels.

    Args:
        raw_categories: Free-text tags from a source

    Returns:
        Deduplicated labels in display-priority order; unknown labels are
        kept (capitalized) and sorted alphabetically after known ones
    """
    labels = []
    seen = set()
    for raw in raw_categories or []:
        if not raw:
            continue
        key = ' '.join(str(raw).split()).lower()
        if not key:
            continue
        label = CATEGORY_MAP.get(key) or _capitalize(' '.join(str(raw).split()))
        if label in seen:
            continue
        seen.add(label)
        labels.append(label)

    return sorted(labels, key=_sort_key)
