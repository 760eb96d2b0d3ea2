"""
Cell-level parsers for logbook exports.

Every function here is pure and tolerant: bad input degrades to a neutral
value (0, "", None) instead of raising, so a single malformed cell never
aborts an ingestion run.
"""
import math
import re
import unicodedata
from datetime import date, datetime, timezone

# Two-digit years at or below the pivot land in the 2000s, the rest in the 1900s
TWO_DIGIT_YEAR_PIVOT = 50

TRUE_FLAGS = {'true', '1', 'yes', 'y'}

DURATION_HHMM = re.compile(r'^(-?)(\d{1,3}):(\d{1,2})$')
DURATION_DECIMAL = re.compile(r'^-?\d*\.?\d+$')
ISO_DATE = re.compile(r'^\d{4}-\d{2}-\d{2}$')
SLASH_DATE = re.compile(r'^(\d{1,2})/(\d{1,2})/(\d{2,4})$')
DASH_DATE = re.compile(r'^(\d{1,2})-(\d{1,2})-(\d{2,4})$')
LEADING_INT = re.compile(r'^[+-]?\d+')

# Fallback formats tried in order once the numeric patterns fail
FALLBACK_DATE_FORMATS = [
    "%B %d, %Y",
    "%b %d, %Y",
    "%B %d %Y",
    "%b %d %Y",
    "%d %B %Y",
    "%d %b %Y",
    "%Y/%m/%d",
    "%Y.%m.%d",
    "%d.%m.%Y",
    "%d%b%Y",
    "%a, %d %b %Y",
]


def round2(value):
    """Round to 2 decimal places, the precision used for every stored hour value."""
    return round(float(value) + 0.0, 2)


def duration_or_none(value):
    """
    Convert a duration cell to decimal hours.

    Returns 0.0 for empty cells and None when a non-empty cell cannot be read
    as either H:MM or a decimal number.
    """
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if math.isnan(value) or math.isinf(value):
            return None
        return round2(value)

    text = str(value).strip()
    if not text:
        return 0.0

    # Thousands separators, as in "1,234.5"
    text = text.replace(',', '')
    if DURATION_DECIMAL.match(text):
        return round2(float(text))

    match = DURATION_HHMM.match(text)
    if not match:
        return None

    sign, hours, minutes = match.groups()
    total = int(hours) + int(minutes) / 60
    # The minus applies to the whole H:MM value, not just the hour part
    return round2(-total if sign else total)


def parse_duration(value):
    """Decimal hours for a duration cell; anything unreadable counts as 0."""
    hours = duration_or_none(value)
    return 0.0 if hours is None else hours


def _expand_year(year):
    if len(year) == 2:
        century = '20' if int(year) <= TWO_DIGIT_YEAR_PIVOT else '19'
        return int(century + year)
    return int(year)


def _numeric_date(match):
    month, day, year = match.groups()
    try:
        return date(_expand_year(year), int(month), int(day)).isoformat()
    except ValueError:
        return None


def _utc_date(moment):
    # Offset-aware timestamps count on their UTC calendar day
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.date().isoformat()


def to_iso_date(value):
    """
    Normalize a date cell to YYYY-MM-DD.

    Accepts ISO dates, M/D/Y and M-D-Y (with 2 or 4 digit years), ISO
    datetimes and a handful of spelled-out formats. Input that cannot be
    parsed is returned unchanged so it stays visible in the output.
    """
    if value is None:
        return ""
    if isinstance(value, datetime):
        return _utc_date(value)
    if isinstance(value, date):
        return value.isoformat()

    text = str(value).strip()
    if not text:
        return ""

    if ISO_DATE.match(text):
        return text

    for pattern in (SLASH_DATE, DASH_DATE):
        match = pattern.match(text)
        if match:
            return _numeric_date(match) or text

    normalized = re.sub(r'\s+', ' ', text)
    try:
        return _utc_date(datetime.fromisoformat(normalized.replace('Z', '+00:00')))
    except ValueError:
        pass

    for fmt in FALLBACK_DATE_FORMATS:
        try:
            return datetime.strptime(normalized, fmt).date().isoformat()
        except ValueError:
            continue

    return text


def is_iso_date(value):
    """True when value is a real calendar date in YYYY-MM-DD form."""
    if not isinstance(value, str) or not ISO_DATE.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def safe_max_date(values):
    """Latest ISO date among values after normalization, or None."""
    normalized = [to_iso_date(v) for v in values if v]
    valid = [v for v in normalized if is_iso_date(v)]
    if not valid:
        return None
    return max(valid)


def parse_flag(value):
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in TRUE_FLAGS
    return False


def parse_int(value):
    """Leading integer of a cell, or None when the cell is empty or not numeric."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return None if math.isnan(value) or math.isinf(value) else int(value)

    match = LEADING_INT.match(str(value).strip())
    if not match:
        return None
    return int(match.group(0))


def parse_text(value):
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float) and math.isfinite(value):
        return str(value)
    return None


def strip_accents(text):
    decomposed = unicodedata.normalize('NFKD', text)
    return ''.join(ch for ch in decomposed if not unicodedata.combining(ch))


def slugify(name):
    """
    Stable pilot id for a display name.

    Example: "José  da Silva" -> "jose_da_silva"
    """
    slug = strip_accents(str(name)).lower().strip()
    slug = re.sub(r'\s+', '_', slug)
    return re.sub(r'[^a-z0-9_]', '', slug)
