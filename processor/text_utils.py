"""Text cleanup helpers for HTML-bearing upstream content."""
import html
import re
import warnings
from typing import Optional

from bs4 import BeautifulSoup, MarkupResemblesLocatorWarning

# Typographic punctuation folded to ASCII so titles compare and hash stably
_ASCII_FOLD = {
    '‘': "'",
    '’': "'",
    '“': '"',
    '”': '"',
    ' ': ' ',
}

_WHITESPACE_RE = re.compile(r'\s+')
_DATE_RANGE_PREFIX_RE = re.compile(
    r'^\d{2}/\d{2}/\d{4}\s+to\s+\d{2}/\d{2}/\d{4}\s*[-–—]\s*',
    re.IGNORECASE
)
_DATE_PREFIX_RE = re.compile(r'^\d{2}/\d{2}/\d{4}\s*[-–—]\s*')
_LEADING_PUNCT_RE = re.compile(r'^[\s\-–—:]+')
_TRAILING_PUNCT_RE = re.compile(r'[\s\-–—]+$')


def _fold(text: str) -> str:
    for src, dst in _ASCII_FOLD.items():
        text = text.replace(src, dst)
    return text


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE_RE.sub(' ', text).strip()


def decode_html_entities(text: Optional[str]) -> str:
    """
    Decode named, decimal and hex character references.

    Args:
        text: Text possibly containing entities such as &amp; or &#8217;

    Returns:
        Decoded text with typographic quotes folded to ASCII
    """
    if not text:
        return ''
    return _fold(html.unescape(text))


def strip_html(markup: Optional[str]) -> str:
    """
    Remove tags and collapse whitespace.

    Entities are decoded exactly once by the parser, so callers must not
    decode the result again.

    Args:
        markup: HTML fragment

    Returns:
        Plain text
    """
    if not markup:
        return ''
    if '<' not in markup and '&' not in markup:
        return collapse_whitespace(_fold(markup))

    with warnings.catch_warnings():
        warnings.simplefilter('ignore', MarkupResemblesLocatorWarning)
        soup = BeautifulSoup(markup, 'html.parser')
    return collapse_whitespace(_fold(soup.get_text(' ')))


def clean_description(raw: Optional[str], title: Optional[str] = None) -> str:
    """
    Produce display text from an upstream description.

    Strips markup and entities, then removes a leading
    "MM/DD/YYYY [to MM/DD/YYYY] - " prefix and a leading repetition of the
    event title, trims stray punctuation and re-capitalizes the first letter.

    Args:
        raw: Raw description, HTML or plain text
        title: Event title, if known

    Returns:
        Cleaned description (may be empty)
    """
    if not raw:
        return ''

    cleaned = strip_html(raw)
    cleaned = _DATE_RANGE_PREFIX_RE.sub('', cleaned)
    cleaned = _DATE_PREFIX_RE.sub('', cleaned)

    if title:
        title = collapse_whitespace(decode_html_entities(title))
        if title and cleaned.lower().startswith(title.lower()):
            rest = cleaned[len(title):]
            # only a whole-word repetition counts
            if not rest or not rest[0].isalnum():
                cleaned = _LEADING_PUNCT_RE.sub('', rest)

    cleaned = _LEADING_PUNCT_RE.sub('', cleaned)
    cleaned = _TRAILING_PUNCT_RE.sub('', cleaned)
    cleaned = collapse_whitespace(cleaned)

    if cleaned and cleaned[0].islower():
        cleaned = cleaned[0].upper() + cleaned[1:]

    return cleaned


def slugify(text: str, max_length: int = 50) -> str:
    """Lowercase hyphenated slug used in source-native identifiers."""
    slug = re.sub(r'[^a-z0-9]+', '-', text.lower()).strip('-')
    return slug[:max_length]
