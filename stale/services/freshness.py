from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from stale.utils.dates import (
    age_in_months,
    age_text,
    ensure_utc,
    format_date,
    parse_date,
    short_age_text,
    utcnow,
)


class Tier(str, Enum):
    GREEN = "green"
    YELLOW = "yellow"
    ORANGE = "orange"
    RED = "red"
    UNKNOWN = "unknown"


LABELS = {
    Tier.GREEN: "Fresh",
    Tier.YELLOW: "Aging",
    Tier.ORANGE: "Old",
    Tier.RED: "Stale",
    Tier.UNKNOWN: "Unknown",
}


@dataclass(frozen=True)
class Thresholds:
    """Upper bounds, in whole months, for the green / yellow / orange tiers."""

    green: int = 6
    yellow: int = 18
    orange: int = 36

    def __post_init__(self):
        if not 0 <= self.green <= self.yellow <= self.orange:
            raise ValueError(
                f"thresholds must satisfy 0 <= green <= yellow <= orange, got "
                f"{self.green}/{self.yellow}/{self.orange}"
            )

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "Thresholds":
        if not data:
            return cls()
        default = cls()
        return cls(
            green=int(data.get("green", default.green)),
            yellow=int(data.get("yellow", default.yellow)),
            orange=int(data.get("orange", default.orange)),
        )

    def as_dict(self) -> Dict[str, int]:
        return {"green": self.green, "yellow": self.yellow, "orange": self.orange}

    def tier_for(self, months: int) -> Tier:
        if months <= self.green:
            return Tier.GREEN
        if months <= self.yellow:
            return Tier.YELLOW
        if months <= self.orange:
            return Tier.ORANGE
        return Tier.RED


@dataclass(frozen=True)
class FreshnessInfo:
    tier: Tier
    label: str
    age_months: Optional[int]
    age_text: str
    short_age: str
    reference: Optional[datetime] = None
    published_text: str = "Unknown"
    modified_text: str = "Unknown"
    thresholds: Thresholds = field(default_factory=Thresholds)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "tier": self.tier.value,
            "label": self.label,
            "ageMonths": self.age_months,
            "ageText": self.age_text,
            "shortAge": self.short_age,
            "reference": self.reference.isoformat() if self.reference else None,
            "publishedText": self.published_text,
            "modifiedText": self.modified_text,
        }


def classify(
    published: Optional[datetime],
    modified: Optional[datetime] = None,
    thresholds: Optional[Thresholds] = None,
    now: Optional[datetime] = None,
) -> FreshnessInfo:
    """Freshness of a document from its published / modified instants.

    The modified date, when known, is the reference; with neither the
    result is the `unknown` tier.
    """
    thresholds = thresholds or Thresholds()
    now = ensure_utc(now or utcnow())
    reference = modified or published

    if reference is None:
        return FreshnessInfo(
            tier=Tier.UNKNOWN,
            label=LABELS[Tier.UNKNOWN],
            age_months=None,
            age_text="Unknown age",
            short_age="?",
            thresholds=thresholds,
        )

    reference = ensure_utc(reference)
    months = age_in_months(reference, now)
    tier = thresholds.tier_for(months)
    return FreshnessInfo(
        tier=tier,
        label=LABELS[tier],
        age_months=months,
        age_text=age_text(reference, now),
        short_age=short_age_text(reference, now),
        reference=reference,
        published_text=format_date(published),
        modified_text=format_date(modified),
        thresholds=thresholds,
    )


@dataclass
class FreshnessClassifier:
    """Classifier bound to a set of thresholds and a clock.

    Accepts the loose inputs callers tend to have at hand (ISO strings,
    dates, datetimes) and classifies them against `clock()`.
    """

    thresholds: Thresholds = field(default_factory=Thresholds)
    clock: Any = utcnow

    def classify(self, published: Any = None, modified: Any = None) -> FreshnessInfo:
        now = self.clock()
        return classify(parse_date(published, now), parse_date(modified, now), self.thresholds, now)


if __name__ == "__main__":
    classifier = FreshnessClassifier()
    for value in ("2024-01-15", "3 months ago", None):
        print(value, "->", classifier.classify(value).as_dict())
