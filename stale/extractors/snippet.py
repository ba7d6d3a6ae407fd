"""Dates in search-result snippets.

Snippets are short, noisy and often localized ("— 30 janv. 2018",
"Publié le 15 mars 2021", "il y a 3 jours", "vor 2 Tagen"). Rules are tried
in order and the first one that parses wins; each rule carries its own
confidence.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from stale.extractors.base import DateCandidate, DateSource
from stale.utils.dates import ENGLISH_MONTHS, LOCALIZED_MONTHS, ensure_utc, parse_date, utcnow

MAX_SNIPPET_CHARS = 1000

_MONTH_NAMES = sorted(set(ENGLISH_MONTHS) | set(LOCALIZED_MONTHS), key=len, reverse=True)
_MONTH = r"(?<![^\W\d_])(?:" + "|".join(re.escape(n) for n in _MONTH_NAMES) + r")[^\W\d_]*\.?"
_DMY = r"\d{1,2}\.?\s+(?:de\s+)?" + _MONTH + r"\s+(?:de\s+)?\d{4}"
_MDY = _MONTH + r"\s+\d{1,2},?\s+\d{4}"
_ISO = r"\d{4}-\d{2}-\d{2}"

PUBLISHED_KEYWORDS = r"published|posted|publié|paru|veröffentlicht|publicado"
MODIFIED_KEYWORDS = r"updated|modified|modifié|mise à jour|mis à jour|aktualisiert|actualizado"

KEYWORD_RE = re.compile(
    r"\b(?P<kw>" + PUBLISHED_KEYWORDS + "|" + MODIFIED_KEYWORDS + r")\s*(?:le|on|am|el)?\s*:?\s*"
    r"(?P<date>" + _MDY + "|" + _DMY + "|" + _ISO + ")",
    re.IGNORECASE,
)
MODIFIED_KEYWORD_RE = re.compile(r"^(?:" + MODIFIED_KEYWORDS + r")$", re.IGNORECASE)
SEPARATOR_RE = re.compile(r"[—–·\-]\s*(?P<date>" + _DMY + "|" + _MDY + ")", re.IGNORECASE)
MONTH_DATE_RES = (re.compile(r"(?P<date>" + _MDY + ")", re.IGNORECASE),
                  re.compile(r"(?P<date>" + _DMY + ")", re.IGNORECASE))
AGO_RE = re.compile(r"\b(?P<date>\d+\s+(?:minute|hour|day|week|month|year)s?\s+ago)\b", re.IGNORECASE)

# "il y a 3 jours" / "vor 3 Tagen" / "hace 3 días"
FOREIGN_AGO_RE = re.compile(
    r"\b(?:il\s+y\s+a|vor|hace)\s+(?P<n>\d+)\s+(?P<unit>[^\W\d_]+)",
    re.IGNORECASE,
)
FOREIGN_UNITS = {
    "minute": "minute", "minutes": "minute", "minuten": "minute", "minuto": "minute", "minutos": "minute",
    "heure": "hour", "heures": "hour", "stunde": "hour", "stunden": "hour", "hora": "hour", "horas": "hour",
    "jour": "day", "jours": "day", "tag": "day", "tagen": "day", "día": "day", "días": "day",
    "dia": "day", "dias": "day",
    "semaine": "week", "semaines": "week", "woche": "week", "wochen": "week", "semana": "week",
    "semanas": "week",
    "mois": "month", "monat": "month", "monaten": "month", "mes": "month", "meses": "month",
    "an": "year", "ans": "year", "jahr": "year", "jahren": "year", "año": "year", "años": "year",
}

BARE_YEARS_RE = re.compile(r"\b(\d+)\s+(?:years?|ans?)\b", re.IGNORECASE)
BARE_MONTHS_RE = re.compile(r"\b(\d+)\s+(?:months?|mois)\b", re.IGNORECASE)
BARE_DAYS_RE = re.compile(r"\b(\d+)\s+(days?|jours?|weeks?|semaines?)\b", re.IGNORECASE)
LAST_PERIOD_RE = re.compile(r"\b(?:last|past)\s+(week|month|year)\b", re.IGNORECASE)
ISO_RE = re.compile(r"\b(" + _ISO + ")")
NUMERIC_RE = re.compile(r"\b(\d{1,2}[/.]\d{1,2}[/.]\d{4})\b")

Rule = Callable[[str, datetime], Optional[Tuple[datetime, bool]]]


def _published(value: Optional[datetime]) -> Optional[Tuple[datetime, bool]]:
    return (value, False) if value else None


def _keyword(text: str, now: datetime):
    for m in KEYWORD_RE.finditer(text):
        parsed = parse_date(m.group("date"), now)
        if parsed:
            return parsed, bool(MODIFIED_KEYWORD_RE.match(m.group("kw")))
    return None


def _separator(text: str, now: datetime):
    for m in SEPARATOR_RE.finditer(text):
        parsed = parse_date(m.group("date").strip(), now)
        if parsed:
            return parsed, False
    return None


def _month_date(text: str, now: datetime):
    for pattern in MONTH_DATE_RES:
        for m in pattern.finditer(text):
            parsed = parse_date(m.group("date"), now)
            if parsed:
                return parsed, False
    return None


def _ago(text: str, now: datetime):
    m = AGO_RE.search(text)
    return _published(parse_date(m.group("date"), now)) if m else None


def _foreign_ago(text: str, now: datetime):
    for m in FOREIGN_AGO_RE.finditer(text):
        unit = FOREIGN_UNITS.get(m.group("unit").lower())
        if unit:
            return _published(parse_date(f"{m.group('n')} {unit}s ago", now))
    return None


def _bare_years(text: str, now: datetime):
    m = BARE_YEARS_RE.search(text)
    return _published(parse_date(f"{m.group(1)} years ago", now)) if m else None


def _bare_months(text: str, now: datetime):
    m = BARE_MONTHS_RE.search(text)
    return _published(parse_date(f"{m.group(1)} months ago", now)) if m else None


def _bare_days(text: str, now: datetime):
    m = BARE_DAYS_RE.search(text)
    if not m:
        return None
    unit = "days" if re.match(r"day|jour", m.group(2), re.IGNORECASE) else "weeks"
    return _published(parse_date(f"{m.group(1)} {unit} ago", now))


def _last_period(text: str, now: datetime):
    m = LAST_PERIOD_RE.search(text)
    return _published(parse_date(f"1 {m.group(1).lower()} ago", now)) if m else None


def _iso(text: str, now: datetime):
    m = ISO_RE.search(text)
    return _published(parse_date(m.group(1), now)) if m else None


def _numeric(text: str, now: datetime):
    m = NUMERIC_RE.search(text)
    return _published(parse_date(m.group(1), now)) if m else None


RULES: List[Tuple[Rule, float]] = [
    (_keyword, 0.78),
    (_separator, 0.75),
    (_month_date, 0.72),
    (_ago, 0.65),
    (_foreign_ago, 0.65),
    (_bare_years, 0.68),
    (_bare_months, 0.66),
    (_bare_days, 0.64),
    (_last_period, 0.60),
    (_iso, 0.70),
    (_numeric, 0.55),
]


def extract_from_snippet(text: Optional[str], now: Optional[datetime] = None) -> Optional[DateCandidate]:
    """Best-effort date from a search snippet, or None."""
    if not text:
        return None
    now = ensure_utc(now or utcnow())
    head = re.sub(r"\s+", " ", text[:MAX_SNIPPET_CHARS])

    for rule, confidence in RULES:
        hit = rule(head, now)
        if hit is None:
            continue
        value, is_modified = hit
        if is_modified:
            return DateCandidate(None, value, confidence, DateSource.SEARCH_SNIPPET)
        return DateCandidate(value, None, confidence, DateSource.SEARCH_SNIPPET)
    return None
