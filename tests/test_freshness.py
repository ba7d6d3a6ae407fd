from datetime import datetime, timezone

import pytest

from stale.services.freshness import FreshnessClassifier, Thresholds, Tier, classify


NOW = datetime(2024, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.mark.unit
@pytest.mark.order(1)
def test_unknown_without_dates():
    info = classify(None, None, now=NOW)
    assert info.tier is Tier.UNKNOWN
    assert info.label == "Unknown"
    assert info.age_text == "Unknown age"
    assert info.short_age == "?"
    assert info.age_months is None


@pytest.mark.unit
@pytest.mark.order(2)
@pytest.mark.parametrize(
    "reference, months, tier, label",
    [
        (utc(2024, 6, 1), 0, Tier.GREEN, "Fresh"),
        (utc(2023, 12, 15), 6, Tier.GREEN, "Fresh"),
        (utc(2023, 11, 15), 7, Tier.YELLOW, "Aging"),
        (utc(2022, 12, 15), 18, Tier.YELLOW, "Aging"),
        (utc(2022, 11, 15), 19, Tier.ORANGE, "Old"),
        (utc(2021, 6, 15), 36, Tier.ORANGE, "Old"),
        (utc(2021, 5, 15), 37, Tier.RED, "Stale"),
    ],
)
def test_tier_boundaries_with_default_thresholds(reference, months, tier, label):
    info = classify(reference, None, now=NOW)
    assert info.age_months == months
    assert info.tier is tier
    assert info.label == label


@pytest.mark.unit
@pytest.mark.order(3)
def test_modified_date_is_the_reference():
    info = classify(utc(2019, 1, 1), utc(2024, 5, 1), now=NOW)
    assert info.tier is Tier.GREEN
    assert info.reference == utc(2024, 5, 1)
    assert info.published_text == "January 1, 2019"
    assert info.modified_text == "May 1, 2024"


@pytest.mark.unit
@pytest.mark.order(4)
def test_custom_thresholds():
    t = Thresholds(green=1, yellow=2, orange=3)
    assert classify(utc(2024, 3, 15), now=NOW, thresholds=t).tier is Tier.ORANGE
    assert classify(utc(2024, 2, 15), now=NOW, thresholds=t).tier is Tier.RED
    assert classify(utc(2024, 4, 15), now=NOW, thresholds=t).tier is Tier.YELLOW


@pytest.mark.unit
@pytest.mark.parametrize(
    "kwargs",
    [
        {"green": 10, "yellow": 5, "orange": 20},
        {"green": 1, "yellow": 5, "orange": 4},
        {"green": -1, "yellow": 5, "orange": 10},
    ],
)
def test_thresholds_must_be_ordered(kwargs):
    with pytest.raises(ValueError):
        Thresholds(**kwargs)


@pytest.mark.unit
def test_thresholds_from_mapping_fills_defaults():
    assert Thresholds.from_mapping({"green": 3}) == Thresholds(green=3, yellow=18, orange=36)
    assert Thresholds.from_mapping(None) == Thresholds()


@pytest.mark.unit
def test_classifier_accepts_loose_inputs():
    classifier = FreshnessClassifier(clock=lambda: NOW)
    info = classifier.classify("2024-01-15")
    assert info.tier is Tier.GREEN
    assert info.age_months == 5
    assert info.age_text == "5 months"
    assert info.short_age == "5mo"

    assert classifier.classify("not-a-date").tier is Tier.UNKNOWN


@pytest.mark.unit
def test_as_dict_is_wire_friendly():
    data = classify(utc(2024, 6, 10), now=NOW).as_dict()
    assert data["tier"] == "green"
    assert data["label"] == "Fresh"
    assert data["ageText"] == "5 days"
    assert data["shortAge"] == "5d"
    assert data["reference"] == "2024-06-10T00:00:00+00:00"
