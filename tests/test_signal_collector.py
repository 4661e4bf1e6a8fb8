"""Unit tests for the score signal collector adapter."""

from __future__ import annotations

import pytest
from _reconciliation_helpers import _make_indicators, _make_review

from scorecard.canonical.adapters.collector import ScoreSignalCollector
from scorecard.canonical.adapters.normaliser import IdentityNormaliser
from scorecard.canonical.domain import Confidence, Excerpt, FlagKind
from scorecard.canonical.overrides import OverrideTable
from scorecard.canonical.signals import (
    AggregatorThumbSignal,
    ExplicitRatingSignal,
    ModelScoreSignal,
    SignalKind,
)


@pytest.fixture
def collector(normaliser: IdentityNormaliser) -> ScoreSignalCollector:
    """Return a collector without overrides."""
    return ScoreSignalCollector(OverrideTable.empty(normaliser))


def test_signals_follow_a_fixed_kind_order(collector: ScoreSignalCollector) -> None:
    """Ratings come before model scores, which come before thumbs."""
    review = _make_review(
        indicators=(
            _make_indicators(
                rating="4/5",
                thumbs={"dtli": "Up"},
                model_score=78,
            ),
        ),
    )

    collection = collector.collect(review)

    assert [s.kind for s in collection.signals] == [
        SignalKind.EXPLICIT_RATING,
        SignalKind.MODEL_SCORE,
        SignalKind.AGGREGATOR_THUMB,
    ], "Expected rating, model and thumb signals in that order."
    assert [s.value for s in collection.signals] == [82, 78, 80], (
        "Expected the converted value of every signal."
    )
    assert collection.signals[0].confidence is Confidence.HIGH, (
        "Expected explicit ratings at high confidence."
    )
    assert collection.signals[2].confidence is Confidence.MEDIUM, (
        "Expected aggregator thumbs at medium confidence."
    )
    assert collection.notes == (), "Expected no notes for clean evidence."


def test_override_is_collected_first(normaliser: IdentityNormaliser) -> None:
    """An override for the review's identity leads the signal list."""
    overrides = OverrideTable.from_mapping(
        {
            "overrides": [
                {
                    "showId": "hamilton-2015",
                    "outletId": "NYT",
                    "criticSlug": "ben-brantley",
                    "score": 40,
                    "note": "Editor correction",
                },
            ],
        },
        normaliser,
    )
    collector = ScoreSignalCollector(overrides)
    review = _make_review(indicators=(_make_indicators(rating="5/5"),))

    signals = collector.collect(review).signals

    assert signals[0].kind is SignalKind.HUMAN_OVERRIDE, "Expected the override first."
    assert signals[0].value == 40, "Expected the override value."
    assert len(signals) == 2, "Expected the rating to be kept alongside it."


def test_excerpt_model_scores_are_downgraded(collector: ScoreSignalCollector) -> None:
    """Model judgements made from an excerpt carry low confidence."""
    review = _make_review(
        indicators=(_make_indicators(model_score=88, from_excerpt=True),),
    )

    (signal,) = collector.collect(review).signals

    assert isinstance(signal, ModelScoreSignal), "Expected a model score signal."
    assert signal.confidence is Confidence.LOW, "Expected the confidence downgrade."
    assert signal.reported_confidence is Confidence.HIGH, (
        "Expected the reported confidence to be kept."
    )


def test_ambiguous_rating_is_noted_not_scored(collector: ScoreSignalCollector) -> None:
    """A bare number produces an unparseable-rating note and no signal."""
    review = _make_review(indicators=(_make_indicators(rating="8"),))

    collection = collector.collect(review)

    assert collection.signals == (), "Expected no signal for an ambiguous rating."
    assert [n.kind for n in collection.notes] == [FlagKind.UNPARSEABLE_RATING], (
        "Expected one unparseable-rating note."
    )
    assert collection.notes[0].details["raw"] == "8", "Expected the raw rating noted."


def test_unknown_thumb_is_noted(collector: ScoreSignalCollector) -> None:
    """Thumb values without an anchor are reported and skipped."""
    review = _make_review(indicators=(_make_indicators(thumbs={"dtli": "Sideways"}),))

    collection = collector.collect(review)

    assert collection.signals == (), "Expected no signal for an unknown thumb."
    assert collection.notes[0].details == {
        "field": "thumb",
        "raw": "dtli:Sideways",
        "reason": "unknown thumb value",
    }, "Expected the aggregator and value in the note."


def test_thumb_word_in_rating_field_becomes_thumb(
    collector: ScoreSignalCollector,
) -> None:
    """A rating of "Thumbs Down" is treated as an aggregator thumb."""
    review = _make_review(indicators=(_make_indicators(rating="Thumbs Down"),))

    (signal,) = collector.collect(review).signals

    assert isinstance(signal, AggregatorThumbSignal), "Expected a thumb signal."
    assert (signal.thumb, signal.value) == ("down", 35), "Expected the down anchor."


def test_designations_are_never_scored(collector: ScoreSignalCollector) -> None:
    """A designation in the rating field produces neither a signal nor a note."""
    review = _make_review(indicators=(_make_indicators(rating="Critics' Pick"),))

    collection = collector.collect(review)

    assert collection.signals == (), "Expected no signal for a designation."
    assert collection.notes == (), "Expected no note for a designation."


def test_keyword_estimate_only_without_other_signals(
    collector: ScoreSignalCollector,
) -> None:
    """The keyword lexicon is a last resort."""
    text = "A thrilling triumph from start to finish."
    bare = _make_review(full_text=text)
    rated = _make_review(full_text=text, indicators=(_make_indicators(rating="B"),))

    bare_signals = collector.collect(bare).signals
    rated_signals = collector.collect(rated).signals

    assert [s.kind for s in bare_signals] == [SignalKind.KEYWORD_SENTIMENT], (
        "Expected a keyword estimate when nothing else exists."
    )
    assert bare_signals[0].confidence is Confidence.LOW, (
        "Expected keyword estimates at low confidence."
    )
    assert [s.kind for s in rated_signals] == [SignalKind.EXPLICIT_RATING], (
        "Expected no keyword estimate alongside a rating."
    )


def test_same_kind_signals_are_all_kept(collector: ScoreSignalCollector) -> None:
    """Ratings from several contributing records are each collected."""
    review = _make_review(
        indicators=(
            _make_indicators(rating="4/5", record_key="a"),
            _make_indicators(rating="3/5", record_key="b", source="bww"),
        ),
    )

    signals = collector.collect(review).signals

    assert all(isinstance(s, ExplicitRatingSignal) for s in signals), (
        "Expected explicit rating signals only."
    )
    assert [s.value for s in signals] == [82, 63], "Expected both ratings kept."


def test_opposing_excerpts_raise_a_conflict_note(
    collector: ScoreSignalCollector,
) -> None:
    """Excerpts that read in opposite directions are reported."""
    review = _make_review(
        excerpts=(
            Excerpt("bww", "Dull and tedious."),
            Excerpt("dtli", "Thrilling."),
        ),
    )

    notes = collector.collect(review).notes

    conflicts = [n for n in notes if n.kind is FlagKind.EXCERPT_SENTIMENT_CONFLICT]
    assert len(conflicts) == 1, "Expected one excerpt conflict note."
    assert conflicts[0].details == {"positive": ["dtli"], "negative": ["bww"]}, (
        "Expected the excerpt tags grouped by polarity."
    )
