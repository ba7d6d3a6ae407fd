"""Date parsing and age formatting helpers.

`parse_date` turns almost anything a web page or search snippet calls a date
into a timezone-aware UTC `datetime`:

* `datetime` / `date` objects (naive values are treated as UTC)
* epoch numbers, seconds or milliseconds (disambiguated by magnitude)
* ISO 8601 / RFC 3339 strings and RFC 2822 HTTP dates
* "March 15, 2024", "15 March 2024", "March 2024"
* "01/15/2024", "15/01/2024", "15.01.2024" (month-first when plausible)
* "3 days ago", "yesterday", "last week|month|year"
* French, German and Spanish month names ("30 janv. 2018", "15. März 2024",
  "15 de marzo de 2024")

Anything unparseable, earlier than 1995 or more than a day in the future
returns None. For a fixed `now` the function is pure.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union

from dateutil import parser as dateparser
from dateutil.relativedelta import relativedelta

DateInput = Union[None, str, int, float, date, datetime]

MIN_YEAR = 1995
FUTURE_TOLERANCE = timedelta(hours=24)
EPOCH_MS_THRESHOLD = 1e12

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]

ENGLISH_MONTHS = {
    "january": 1, "february": 2, "march": 3, "april": 4, "may": 5, "june": 6,
    "july": 7, "august": 8, "september": 9, "october": 10, "november": 11, "december": 12,
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "jun": 6, "jul": 7, "aug": 8,
    "sep": 9, "sept": 9, "oct": 10, "nov": 11, "dec": 12,
}

# Localized month names and abbreviations -> month number. English spellings
# that mean the same month ("nov", "mar", ...) are left out on purpose.
LOCALIZED_MONTHS = {
    # French
    "janvier": 1, "janv": 1, "février": 2, "fevrier": 2, "févr": 2, "fevr": 2,
    "mars": 3, "avril": 4, "avr": 4, "mai": 5, "juin": 6, "juillet": 7, "juil": 7,
    "août": 8, "aout": 8, "septembre": 9, "octobre": 10, "novembre": 11,
    "décembre": 12, "decembre": 12, "déc": 12,
    # German
    "januar": 1, "februar": 2, "märz": 3, "maerz": 3, "mär": 3, "juni": 6, "juli": 7,
    "oktober": 10, "okt": 10, "dezember": 12, "dez": 12,
    # Spanish
    "enero": 1, "ene": 1, "febrero": 2, "marzo": 3, "abril": 4, "abr": 4,
    "mayo": 5, "junio": 6, "julio": 7, "agosto": 8, "ago": 8, "septiembre": 9,
    "setiembre": 9, "octubre": 10, "noviembre": 11, "diciembre": 12, "dic": 12,
}

_LOCALE_RE = re.compile(
    r"(?<![^\W\d_])("
    + "|".join(sorted((re.escape(k) for k in LOCALIZED_MONTHS), key=len, reverse=True))
    + r")(?![^\W\d_])",
    re.IGNORECASE,
)

_ABBREV_DOT_RE = re.compile(r"\b([^\W\d_]{3,5})\.(?=\s)")
_DAY_DOT_RE = re.compile(r"\b(\d{1,2})\.\s+(?=[^\W\d_])")
_SPANISH_DE_RE = re.compile(r"\b(\d{1,2})\s+de\s+([^\W\d_]+)\s+(?:de\s+|del\s+)?(\d{4})\b", re.IGNORECASE)
_ORDINAL_RE = re.compile(r"\b(\d{1,2})(?:st|nd|rd|th)\b", re.IGNORECASE)

_RELATIVE_RE = re.compile(r"^(\d+)\s+(minute|hour|day|week|month|year)s?\s+ago$", re.IGNORECASE)
_LAST_RE = re.compile(r"^last\s+(week|month|year)$", re.IGNORECASE)

_ISO_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")
_RFC2822_RE = re.compile(r"^(?:[A-Za-z]{3},\s*)?\d{1,2}\s+[A-Za-z]{3}\s+\d{4}\s+\d{1,2}:\d{2}")
_MONTH_DAY_YEAR_RE = re.compile(r"^([^\W\d_]+)\s+(\d{1,2}),?\s+(\d{4})$")
_DAY_MONTH_YEAR_RE = re.compile(r"^(\d{1,2})\s+([^\W\d_]+),?\s+(\d{4})$")
_YMD_RE = re.compile(r"^(\d{4})[-/.](\d{1,2})[-/.](\d{1,2})$")
_NUMERIC_RE = re.compile(r"^(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{4})$")
_MONTH_YEAR_RE = re.compile(r"^([^\W\d_]+)\s+(\d{4})$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_plausible(value: datetime, now: Optional[datetime] = None) -> bool:
    """Reject placeholder/epoch-zero dates and clock-skewed future dates."""
    now = ensure_utc(now or utcnow())
    if value.year < MIN_YEAR:
        return False
    return ensure_utc(value) <= now + FUTURE_TOLERANCE


def normalize_locale(text: str) -> str:
    """Rewrite localized month names into English and tidy separators.

    "30 janv. 2018" -> "30 January 2018"; "15. März 2024" -> "15 March 2024";
    "15 de marzo de 2024" -> "15 March 2024".
    """
    s = _ABBREV_DOT_RE.sub(r"\1", text)
    s = _DAY_DOT_RE.sub(r"\1 ", s)
    s = _SPANISH_DE_RE.sub(r"\1 \2 \3", s)
    return _LOCALE_RE.sub(lambda m: MONTH_NAMES[LOCALIZED_MONTHS[m.group(1).lower()] - 1], s)


def month_number(name: str) -> Optional[int]:
    key = name.strip().lower().rstrip(".")
    return ENGLISH_MONTHS.get(key) or LOCALIZED_MONTHS.get(key)


def safe_date(year: int, month: int, day: int) -> Optional[datetime]:
    try:
        return datetime(year, month, day, tzinfo=timezone.utc)
    except (ValueError, OverflowError):
        return None


def _from_parts(year: str, month_name: str, day: str) -> Optional[datetime]:
    month = month_number(month_name)
    if month is None:
        return None
    return safe_date(int(year), month, int(day))


def _shift_back(now: datetime, n: int, unit: str) -> Optional[datetime]:
    """`now` minus n units; None when the result leaves the datetime range."""
    try:
        if unit == "minute":
            return now - timedelta(minutes=n)
        if unit == "hour":
            return now - timedelta(hours=n)
        if unit == "day":
            return now - timedelta(days=n)
        if unit == "week":
            return now - timedelta(weeks=n)
        if unit == "month":
            return now - relativedelta(months=n)
        return now - relativedelta(years=n)
    except (ValueError, OverflowError):
        return None


def parse_relative(text: str, now: Optional[datetime] = None) -> Optional[datetime]:
    """Parse "N units ago", "yesterday" and "last week|month|year"."""
    now = ensure_utc(now or utcnow())
    lower = text.strip().lower()

    m = _RELATIVE_RE.match(lower)
    if m:
        return _shift_back(now, int(m.group(1)), m.group(2))

    if lower == "yesterday":
        return now - timedelta(days=1)

    m = _LAST_RE.match(lower)
    if m:
        unit = m.group(1)
        if unit == "week":
            return now - timedelta(weeks=1)
        if unit == "month":
            return now - relativedelta(months=1)
        return now - relativedelta(years=1)

    return None


def _parse_epoch(value: float) -> Optional[datetime]:
    if math.isnan(value) or math.isinf(value):
        return None
    seconds = value / 1000.0 if value > EPOCH_MS_THRESHOLD else value
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def _parse_string(raw: str, now: datetime) -> Optional[datetime]:
    s = raw.strip()
    if not s:
        return None

    relative = parse_relative(s, now)
    if relative is not None:
        return relative

    if _ISO_RE.match(s):
        try:
            return ensure_utc(dateparser.isoparse(s))
        except (ValueError, OverflowError):
            pass

    if _RFC2822_RE.match(s):
        try:
            return ensure_utc(dateparser.parse(s))
        except (ValueError, OverflowError):
            pass

    s = normalize_locale(s)
    s = _ORDINAL_RE.sub(r"\1", s)
    s = re.sub(r"\s+", " ", s)

    m = _MONTH_DAY_YEAR_RE.match(s)
    if m:
        d = _from_parts(m.group(3), m.group(1), m.group(2))
        if d:
            return d

    m = _DAY_MONTH_YEAR_RE.match(s)
    if m:
        d = _from_parts(m.group(3), m.group(2), m.group(1))
        if d:
            return d

    m = _YMD_RE.match(s)
    if m:
        d = safe_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        if d:
            return d

    # Ambiguous A/B/YYYY: month-first when A can be a month, else day-first
    m = _NUMERIC_RE.match(s)
    if m:
        a, b, year = int(m.group(1)), int(m.group(2)), int(m.group(3))
        if a <= 12:
            d = safe_date(year, a, b)
            if d:
                return d
        if b <= 12:
            d = safe_date(year, b, a)
            if d:
                return d

    m = _MONTH_YEAR_RE.match(s)
    if m:
        d = _from_parts(m.group(2), m.group(1), "1")
        if d:
            return d

    return None


def parse_date(value: DateInput, now: Optional[datetime] = None) -> Optional[datetime]:
    """Parse `value` into an aware UTC datetime, or None.

    `now` anchors relative phrases and the future-date guard; it defaults to
    the current UTC time.
    """
    if value is None or isinstance(value, bool):
        return None
    now = ensure_utc(now or utcnow())

    result: Optional[datetime]
    if isinstance(value, datetime):
        result = ensure_utc(value)
    elif isinstance(value, date):
        result = datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    elif isinstance(value, (int, float)):
        result = _parse_epoch(float(value))
    elif isinstance(value, str):
        result = _parse_string(value, now)
    else:
        return None

    if result is None or not is_plausible(result, now):
        return None
    return result


# --------------------------------------------------------------------------
# Formatting / age helpers
# --------------------------------------------------------------------------

def to_iso(value: Optional[datetime]) -> Optional[str]:
    return ensure_utc(value).isoformat() if value else None


def format_date(value: Optional[datetime]) -> str:
    """"March 15, 2024" or "Unknown"."""
    if not value:
        return "Unknown"
    value = ensure_utc(value)
    return f"{MONTH_NAMES[value.month - 1]} {value.day}, {value.year}"


def age_in_months(value: datetime, now: Optional[datetime] = None) -> int:
    """Whole calendar months between `value` and `now`.

    Decremented by one while the day-of-month hasn't been reached yet, so
    Jan 31 -> Feb 28 is 0 months, Jan 15 -> Feb 15 is 1.
    """
    now = ensure_utc(now or utcnow())
    value = ensure_utc(value)
    months = (now.year - value.year) * 12 + (now.month - value.month)
    if now.day < value.day:
        months -= 1
    return months


def age_text(value: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Verbose age: "Today", "5 days", "3 months", "1 year 2mo", "3yr 4mo"."""
    if not value:
        return "Unknown age"
    now = ensure_utc(now or utcnow())
    days = (now - ensure_utc(value)).days

    if days < 0:
        return "Just now"
    if days == 0:
        return "Today"
    if days == 1:
        return "1 day"
    if days < 30:
        return f"{days} days"

    months = age_in_months(value, now)
    if months < 1:
        return f"{days} days"
    if months == 1:
        return "1 month"
    if months < 12:
        return f"{months} months"

    years, remain = divmod(months, 12)
    if years == 1 and remain == 0:
        return "1 year"
    if years == 1:
        return f"1 year {remain}mo"
    if remain == 0:
        return f"{years} years"
    return f"{years}yr {remain}mo"


def short_age_text(value: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Compact age for tight layouts: "<1d", "5d", "3mo", "2yr"."""
    if not value:
        return "?"
    now = ensure_utc(now or utcnow())
    days = (now - ensure_utc(value)).days

    if days < 0:
        return "now"
    if days == 0:
        return "<1d"
    if days < 30:
        return f"{days}d"

    months = age_in_months(value, now)
    if months < 12:
        return f"{months}mo"
    return f"{months // 12}yr"
