"""Unit tests for the priority consensus scorer adapter."""

from __future__ import annotations

import pytest
from _reconciliation_helpers import _make_indicators, _make_review

from scorecard.canonical.adapters.collector import ScoreSignalCollector
from scorecard.canonical.adapters.consensus import PriorityConsensusScorer
from scorecard.canonical.adapters.normaliser import IdentityNormaliser
from scorecard.canonical.config import ScoringSettings
from scorecard.canonical.domain import Bucket, Confidence, FlagKind, Severity
from scorecard.canonical.overrides import OverrideTable
from scorecard.canonical.signals import (
    AggregatorThumbSignal,
    ExplicitRatingSignal,
    HumanOverrideSignal,
    KeywordSentimentSignal,
    ModelScoreSignal,
    SignalKind,
)


def _rating(
    value: int,
    confidence: Confidence = Confidence.HIGH,
) -> ExplicitRatingSignal:
    return ExplicitRatingSignal(
        value=value,
        confidence=confidence,
        source_detail="rating",
        raw_rating=str(value),
        scale="points/100",
    )


def _model(value: int, confidence: Confidence) -> ModelScoreSignal:
    return ModelScoreSignal(
        value=value,
        confidence=confidence,
        source_detail="model ensemble",
        reported_confidence=confidence,
    )


def _thumb(value: int, thumb: str) -> AggregatorThumbSignal:
    return AggregatorThumbSignal(
        value=value,
        confidence=Confidence.MEDIUM,
        source_detail="dtli thumb",
        thumb=thumb,
    )


@pytest.fixture
def scorer() -> PriorityConsensusScorer:
    """Return a scorer with default bounds."""
    return PriorityConsensusScorer()


def test_rating_against_opposing_thumb_is_flagged(
    scorer: PriorityConsensusScorer,
    normaliser: IdentityNormaliser,
) -> None:
    """A five-star rating wins over a down thumb and the gap is reported."""
    review = _make_review(
        indicators=(_make_indicators(rating="5/5", thumbs={"dtli": "Down"}),),
    )
    signals = ScoreSignalCollector(OverrideTable.empty(normaliser)).collect(review)

    outcome = scorer.score(review, signals.signals)

    assert outcome.consensus is not None, "Expected a consensus score."
    assert outcome.consensus.score == 92, "Expected the rating to decide the score."
    assert outcome.consensus.bucket is Bucket.RAVE, "Expected a rave bucket."
    assert outcome.consensus.contributing_signal.kind is SignalKind.EXPLICIT_RATING, (
        "Expected an explicit rating to contribute."
    )
    (flag,) = outcome.flags
    assert flag.kind is FlagKind.HIGH_DISAGREEMENT, "Expected a disagreement flag."
    assert flag.severity is Severity.WARNING, "Expected a warning, not a failure."
    assert flag.details["score"] == 92, "Expected the chosen value in the flag."
    assert flag.details["thumb_values"] == [35], "Expected the thumb anchor in it."


def test_override_wins_without_disagreement_check(
    scorer: PriorityConsensusScorer,
) -> None:
    """An override is decisive even against a far-off thumb."""
    override = HumanOverrideSignal(
        value=35,
        confidence=Confidence.HIGH,
        source_detail="override nytimes/benbrantley",
    )
    review = _make_review()

    outcome = scorer.score(review, [override, _rating(92), _thumb(90, "up")])

    assert outcome.consensus is not None, "Expected a consensus score."
    assert outcome.consensus.score == 35, "Expected the override value."
    assert outcome.consensus.confidence is Confidence.HIGH, "Expected high confidence."
    assert outcome.consensus.bucket is Bucket.PAN, "Expected the override's bucket."
    assert outcome.flags == (), "Expected no disagreement check for overrides."
    assert len(outcome.consensus.considered_signals) == 3, (
        "Expected every signal recorded as considered."
    )


def test_confidence_outranks_kind_priority(scorer: PriorityConsensusScorer) -> None:
    """A high-confidence model score beats a medium-confidence rating."""
    review = _make_review()

    outcome = scorer.score(
        review,
        [_rating(60, Confidence.MEDIUM), _model(80, Confidence.HIGH)],
    )

    assert outcome.consensus is not None, "Expected a consensus score."
    assert outcome.consensus.score == 80, "Expected the higher confidence to win."
    assert outcome.consensus.contributing_signal.kind is SignalKind.MODEL_SCORE, (
        "Expected the model score to contribute."
    )


def test_kind_priority_breaks_confidence_ties(scorer: PriorityConsensusScorer) -> None:
    """An explicit rating beats a model score of equal confidence."""
    review = _make_review()

    outcome = scorer.score(review, [_model(50, Confidence.HIGH), _rating(75)])

    assert outcome.consensus is not None, "Expected a consensus score."
    assert outcome.consensus.score == 75, "Expected the rating to win the tie."


def test_equal_rank_signals_are_averaged_half_up(
    scorer: PriorityConsensusScorer,
) -> None:
    """Signals sharing the best rank are averaged, rounding halves up."""
    review = _make_review()

    outcome = scorer.score(
        review,
        [_rating(82), _rating(63), _model(10, Confidence.LOW)],
    )

    assert outcome.consensus is not None, "Expected a consensus score."
    assert outcome.consensus.score == 73, "Expected (82 + 63) / 2 rounded up."
    assert outcome.consensus.bucket is Bucket.POSITIVE, "Expected a positive bucket."
    assert len(outcome.consensus.corroborating_signals) == 1, (
        "Expected the second rating recorded as corroborating."
    )


def test_thumb_consensus_is_not_checked_against_thumbs(
    scorer: PriorityConsensusScorer,
) -> None:
    """When thumbs decide the score there is nothing to disagree with."""
    review = _make_review()

    outcome = scorer.score(review, [_thumb(80, "up"), _thumb(35, "down")])

    assert outcome.consensus is not None, "Expected a consensus score."
    assert outcome.consensus.score == 58, "Expected the thumbs averaged."
    assert outcome.flags == (), "Expected no disagreement flag."


def test_disagreement_delta_is_configurable() -> None:
    """A wider delta tolerates a larger gap."""
    scorer = PriorityConsensusScorer(ScoringSettings(disagreement_delta=60))
    review = _make_review()

    outcome = scorer.score(review, [_rating(92), _thumb(35, "down")])

    assert outcome.flags == (), "Expected a 57-point gap to be tolerated."


def test_keyword_only_review_is_low_confidence(
    scorer: PriorityConsensusScorer,
) -> None:
    """A keyword estimate scores at low confidence."""
    keyword = KeywordSentimentSignal(
        value=77,
        confidence=Confidence.LOW,
        source_detail="keyword lexicon over full text",
        positive_hits=2,
        negative_hits=0,
    )

    outcome = scorer.score(_make_review(), [keyword])

    assert outcome.low_confidence, "Expected a low-confidence outcome."
    assert outcome.consensus is not None, "Expected a consensus score."
    assert outcome.consensus.score == 77, "Expected the keyword estimate."


def test_no_signals_means_no_consensus(scorer: PriorityConsensusScorer) -> None:
    """Reviews without evidence stay unscored."""
    outcome = scorer.score(_make_review(), [])

    assert outcome.consensus is None, "Expected no consensus without signals."
    assert outcome.low_confidence, "Expected unscored reviews to count as low."
