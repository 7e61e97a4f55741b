"""Flexible date and time parsing for loosely structured upstream data."""
import calendar
import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, List, Optional, Union
from zoneinfo import ZoneInfo

LOCAL_TZ = ZoneInfo('America/New_York')

# Used whenever a source gives a start but no end
DEFAULT_DURATION = timedelta(hours=2)

# Date-only values get noon; midnight would read as "no time specified"
DATE_ONLY_TIME = time(12, 0)

_FULL_MONTHS = {
    name.lower(): index for index, name in enumerate(calendar.month_name) if name
}
_MONTH_BY_PREFIX = {name[:3]: index for name, index in _FULL_MONTHS.items()}

_NAMED_DATE_RE = re.compile(
    r'([A-Za-z]{3,9})\.?\s+(\d{1,2})(?:st|nd|rd|th)?,?\s+(\d{4})'
)
_US_DATE_RE = re.compile(r'\b(\d{1,2})/(\d{1,2})/(\d{4})\b')
_TIME_WITH_MARKER_RE = re.compile(
    r'\b(\d{1,2})(?::(\d{2}))?\s*([ap])\.?\s*m\b\.?', re.IGNORECASE
)
_BARE_TIME_RE = re.compile(r'\b(\d{1,2}):(\d{2})\b')
_SINGLE_TIME_RE = re.compile(
    r'^\s*(\d{1,2})(?::(\d{2}))?\s*(?:([ap])\.?\s*m\.?)?\s*$', re.IGNORECASE
)

DATE_FORMATS = [
    '%Y-%m-%d',      # ISO 8601
    '%m/%d/%Y',      # US format
    '%m-%d-%Y',      # US format with dashes
    '%Y/%m/%d',      # Alternative ISO format
]


def local_now() -> datetime:
    return datetime.now(LOCAL_TZ)


def month_number(name: str) -> Optional[int]:
    """
    Resolve a full or abbreviated English month name.

    Args:
        name: e.g. "January", "Jan", "Jan." or "Sept"

    Returns:
        Month number 1-12 or None
    """
    key = name.strip().rstrip('.').lower()
    if len(key) < 3:
        return None
    index = _MONTH_BY_PREFIX.get(key[:3])
    if index is None:
        return None
    full = calendar.month_name[index].lower()
    if not full.startswith(key):
        return None
    return index


def parse_time_string(text: str, assume_pm: bool = False) -> Optional[time]:
    """
    Parse a single clock time.

    Accepts "7pm", "7:30 PM", "10:00 a.m." and bare "7:15". A bare time
    with hour 1-11 is read as PM when assume_pm is set, which is right for
    showtime listings that omit the marker.

    Args:
        text: Time text
        assume_pm: Bias bare hours 1-11 toward the afternoon/evening

    Returns:
        time or None if the text is not a recognizable time
    """
    if not text:
        return None
    stripped = text.strip().lower()
    if stripped == 'noon':
        return time(12, 0)
    if stripped == 'midnight':
        return time(0, 0)

    match = _SINGLE_TIME_RE.match(stripped)
    if not match:
        return None

    hour = int(match.group(1))
    minute = int(match.group(2) or 0)
    marker = match.group(3)
    if minute > 59:
        return None

    if marker:
        if not 1 <= hour <= 12:
            return None
        if marker == 'p' and hour != 12:
            hour += 12
        elif marker == 'a' and hour == 12:
            hour = 0
    elif match.group(2) is None and not assume_pm:
        # "7" alone carries no usable meaning
        return None
    elif assume_pm and 1 <= hour <= 11:
        hour += 12

    if hour > 23:
        return None
    return time(hour, minute)


def find_time(text: str, assume_pm: bool = False) -> Optional[time]:
    """Find the first clock time embedded in free text."""
    match = _TIME_WITH_MARKER_RE.search(text)
    if match:
        return parse_time_string(match.group(0), assume_pm=assume_pm)
    if assume_pm:
        match = _BARE_TIME_RE.search(text)
        if match:
            return parse_time_string(match.group(0), assume_pm=True)
    return None


def parse_month_date(month: str, day: Union[str, int], year: Union[str, int]) -> Optional[date]:
    """Build a date from a month name, day and year; None if invalid."""
    month_index = month_number(month)
    if month_index is None:
        return None
    try:
        return date(int(year), month_index, int(day))
    except ValueError:
        return None


def find_us_dates(text: str) -> List[date]:
    """
    Extract every MM/DD/YYYY token in order of appearance.

    Args:
        text: Free text

    Returns:
        List of valid dates (invalid tokens are skipped)
    """
    dates = []
    for month, day, year in _US_DATE_RE.findall(text or ''):
        try:
            dates.append(date(int(year), int(month), int(day)))
        except ValueError:
            continue
    return dates


def parse_date(text: str) -> Optional[date]:
    """
    Parse a date in any of the formats the sources use.

    Tries the fixed formats first, then a named month + day + year
    pattern (weekday prefixes and ordinal suffixes are tolerated).

    Args:
        text: Date text

    Returns:
        date or None if parsing fails
    """
    if not text:
        return None
    stripped = text.strip()

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(stripped, fmt).date()
        except ValueError:
            continue

    us_dates = find_us_dates(stripped)
    if us_dates:
        return us_dates[0]

    for match in _NAMED_DATE_RE.finditer(stripped):
        parsed = parse_month_date(match.group(1), match.group(2), match.group(3))
        if parsed:
            return parsed

    return None


def combine(day: date, at: Optional[time] = None, tz: ZoneInfo = LOCAL_TZ) -> datetime:
    """Localize a date and optional time; date-only values get noon."""
    at = at or DATE_ONLY_TIME
    return datetime(day.year, day.month, day.day, at.hour, at.minute, tzinfo=tz)


def parse_flexible_datetime(
    text: str,
    assume_pm: bool = False,
    tz: ZoneInfo = LOCAL_TZ
) -> Optional[datetime]:
    """
    Parse a loosely formatted date/time string into a local instant.

    Handles ISO timestamps, "MM/DD/YYYY", "January 5, 2026" and
    "Friday, January 5, 2026 7:30 PM". When no time is present the noon
    sentinel is used.

    Args:
        text: Date/time text
        assume_pm: Read bare showtimes (no AM/PM) as afternoon/evening
        tz: Zone for naive values

    Returns:
        Timezone-aware datetime or None
    """
    if not text:
        return None

    if 'T' in text and text[:4].isdigit():
        parsed = to_datetime(text, tz=tz)
        if parsed:
            return parsed

    day = parse_date(text)
    if not day:
        return None
    return combine(day, find_time(text, assume_pm=assume_pm), tz=tz)


def to_datetime(value, tz: ZoneInfo = LOCAL_TZ) -> Optional[datetime]:
    """
    Coerce an API timestamp into an aware datetime.

    Numbers are epoch values (milliseconds when large enough, otherwise
    seconds). Strings are ISO 8601; naive values are taken as local time.
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=tz)
    if isinstance(value, (int, float)):
        seconds = value / 1000 if value > 1e11 else value
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    try:
        parsed = datetime.fromisoformat(str(value).strip().replace('Z', '+00:00'))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


def resolve_end(
    start: datetime,
    end: Optional[datetime] = None,
    overnight: bool = True,
    default: timedelta = DEFAULT_DURATION
) -> datetime:
    """
    Produce an end instant strictly later than start.

    An end clock time at or before the start on the same calendar date is
    an overnight event and rolls to the next day. Missing ends, and ends
    that are still not later than start, get the default duration.

    Args:
        start: Event start
        end: Raw end, if the source gave one
        overnight: Apply the next-day rollover (off for date-only values)
        default: Synthesized duration

    Returns:
        End instant
    """
    if end is None:
        return start + default
    if overnight and end <= start and end.date() == start.date():
        end = end + timedelta(days=1)
    if end <= start:
        return start + default
    return end


def nth_weekday(year: int, month: int, weekday: int, n: int) -> date:
    """
    Date of the nth given weekday in a month.

    Args:
        year: Year
        month: Month 1-12
        weekday: Monday=0 ... Sunday=6
        n: 1-based occurrence, or -1 for the last one

    Returns:
        The computed date
    """
    if n == -1:
        last_day = calendar.monthrange(year, month)[1]
        day = date(year, month, last_day)
        while day.weekday() != weekday:
            day -= timedelta(days=1)
        return day

    day = date(year, month, 1)
    while day.weekday() != weekday:
        day += timedelta(days=1)
    day += timedelta(weeks=n - 1)
    if day.month != month:
        raise ValueError(f"No occurrence {n} of weekday {weekday} in {year}-{month:02d}")
    return day


def next_annual_occurrence(compute: Callable[[int], date], today: date) -> date:
    """Roll a yearly rule forward once this year's date has passed."""
    occurrence = compute(today.year)
    if occurrence < today:
        occurrence = compute(today.year + 1)
    return occurrence


def infer_year(month: int, day: int, today: date) -> Optional[date]:
    """
    Attach a year to a month/day listing.

    Uses the current year, or next year when the date has already passed.
    """
    try:
        candidate = date(today.year, month, day)
    except ValueError:
        return None
    if candidate < today:
        try:
            candidate = date(today.year + 1, month, day)
        except ValueError:
            return None
    return candidate
