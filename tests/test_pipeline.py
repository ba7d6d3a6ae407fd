import json
from datetime import datetime, timedelta, timezone

import pytest

from stale.extractors import (
    DateCandidate,
    DateSource,
    Document,
    ExtractionPipeline,
    Extractor,
    first_match,
    register_extractor,
)

NOW = datetime(2024, 6, 15, 12, 0, 0, tzinfo=timezone.utc)
DAY = timedelta(days=1)
PUB = datetime(2024, 1, 10, tzinfo=timezone.utc)


@register_extractor
class ExplodingExtractor(Extractor):
    name = "test-exploding"
    source = DateSource.HEURISTIC_TEXT
    confidence = 0.99

    def extract(self, document):
        raise RuntimeError("boom")


def cand(confidence, published=None, modified=None, source=DateSource.HEURISTIC_TEXT):
    return DateCandidate(published, modified, confidence, source)


@pytest.mark.unit
def test_merge_empty_is_none():
    assert ExtractionPipeline().merge([]) is None


@pytest.mark.unit
def test_corroboration_within_window_boosts_confidence():
    best = cand(0.85, PUB, source=DateSource.INLINE_TIME_MARKUP)
    merged = ExtractionPipeline().merge([cand(0.50, PUB + DAY), best])
    assert merged.source is DateSource.INLINE_TIME_MARKUP
    assert merged.confidence == pytest.approx(0.90)
    # Inputs are left alone
    assert best.confidence == 0.85


@pytest.mark.unit
@pytest.mark.parametrize("offset", [timedelta(hours=48), timedelta(days=3)])
def test_no_boost_at_or_beyond_window(offset):
    merged = ExtractionPipeline().merge([cand(0.85, PUB), cand(0.50, PUB + offset)])
    assert merged.confidence == pytest.approx(0.85)


@pytest.mark.unit
def test_boost_is_capped_at_one():
    merged = ExtractionPipeline().merge([
        cand(0.95, PUB, source=DateSource.STRUCTURED_METADATA),
        cand(0.95, PUB, source=DateSource.LINKED_DATA),
        cand(0.85, PUB),
    ])
    assert merged.confidence == pytest.approx(1.0)
    assert merged.confidence <= 1.0


@pytest.mark.unit
def test_ties_keep_extractor_order():
    merged = ExtractionPipeline().merge([
        cand(0.95, PUB, source=DateSource.STRUCTURED_METADATA),
        cand(0.95, PUB - 30 * DAY, source=DateSource.LINKED_DATA),
    ])
    assert merged.source is DateSource.STRUCTURED_METADATA
    assert merged.published == PUB


@pytest.mark.unit
def test_backfill_takes_first_modified_in_confidence_order():
    m1, m2 = PUB + 10 * DAY, PUB + 20 * DAY
    candidates = [cand(0.40, None, m2), cand(0.95, PUB), cand(0.85, PUB, m1)]
    merged = ExtractionPipeline().merge(candidates)
    assert merged.published == PUB
    assert merged.modified == m1


@pytest.mark.unit
def test_tunable_parameters():
    candidates = [cand(0.95, PUB), cand(0.85, PUB + DAY, PUB + 5 * DAY)]
    merged = ExtractionPipeline(corroboration_boost=0.0, backfill_modified=False).merge(candidates)
    assert merged.confidence == pytest.approx(0.95)
    assert merged.modified is None

    merged = ExtractionPipeline(corroboration_window=timedelta(hours=12)).merge(candidates)
    assert merged.confidence == pytest.approx(0.95)


@pytest.mark.unit
def test_run_merges_page_signals():
    html = (
        "<html><head>"
        '<meta property="article:published_time" content="2024-01-10T00:00:00Z">'
        '<script type="application/ld+json">'
        + json.dumps({"@type": "Article", "datePublished": "2024-01-10", "dateModified": "2024-02-01"})
        + "</script></head><body><p>Hello</p></body></html>"
    )
    d = Document.from_html(html, url="https://example.com/2024/01/10/post", observed_at=NOW)
    result = ExtractionPipeline().run(d)
    assert result.source is DateSource.STRUCTURED_METADATA
    assert result.published == PUB
    assert result.modified == datetime(2024, 2, 1, tzinfo=timezone.utc)
    assert result.confidence == pytest.approx(1.0)


@pytest.mark.unit
def test_run_falls_back_to_last_modified_argument():
    d = Document.from_html("<p>nothing here</p>", url="https://example.com/about", observed_at=NOW)
    result = ExtractionPipeline().run(d, last_modified="Wed, 21 Oct 2015 07:28:00 GMT")
    assert result.source is DateSource.HTTP_HEADER
    assert result.published is None
    assert result.modified == datetime(2015, 10, 21, 7, 28, tzinfo=timezone.utc)
    assert result.confidence == pytest.approx(0.40)


@pytest.mark.unit
def test_run_without_signals_is_none():
    d = Document.from_html("<p>nothing here</p>", url="https://example.com/about", observed_at=NOW)
    assert ExtractionPipeline().run(d) is None


@pytest.mark.unit
def test_failing_extractor_is_isolated():
    html = '<meta name="pubdate" content="2024-01-10">'
    d = Document.from_html(html, observed_at=NOW)
    result = ExtractionPipeline(extractor_names=("test-exploding", "meta")).run(d)
    assert result.source is DateSource.STRUCTURED_METADATA
    assert result.published == PUB


@pytest.mark.unit
def test_first_match_prefers_earlier_strategy_and_backfills():
    html = (
        '<meta name="pubdate" content="2024-02-02">'
        '<article><time datetime="2024-01-01"></time></article>'
    )
    d = Document.from_html(
        html,
        url="https://example.com/post",
        headers={"Last-Modified": "Wed, 05 Jun 2024 10:00:00 GMT"},
        observed_at=NOW,
    )
    result = first_match(d)
    assert result.source is DateSource.STRUCTURED_METADATA
    assert result.published == datetime(2024, 2, 2, tzinfo=timezone.utc)
    assert result.modified == datetime(2024, 6, 5, 10, tzinfo=timezone.utc)
    assert result.confidence == pytest.approx(0.95)
