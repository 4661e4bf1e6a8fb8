"""Record-to-domain mapping helpers for the canonical store.

This module converts scored reviews into SQLAlchemy records and back. The
helpers keep mapping logic centralised so the writer and loader stay focused
on file handling and sessions.

Examples
--------
Convert a scored review to a record and back:

>>> record = review_record_from_scored(scored)
>>> scored_review_from_record(record).review.review_id == scored.review_id
True
"""

from __future__ import annotations

import typing as typ

from scorecard.canonical.adapters.rules import bucket_for
from scorecard.canonical.domain import Confidence, ConsensusScore, ScoredReview
from scorecard.canonical.serialisation import review_from_mapping, review_to_mapping
from scorecard.canonical.signals import signal_from_mapping, signal_to_mapping

from .models import CanonicalReviewRecord, ScoreSignalRecord

if typ.TYPE_CHECKING:
    from scorecard.canonical.domain import JsonMapping
    from scorecard.canonical.signals import ScoreSignal


def _decisive_ids(scored: ScoredReview) -> set[int]:
    consensus = scored.consensus
    if consensus is None:
        return set()
    return {
        id(signal)
        for signal in (
            consensus.contributing_signal,
            *consensus.corroborating_signals,
        )
    }


def review_record_from_scored(scored: ScoredReview) -> CanonicalReviewRecord:
    """Map a scored review to a review record with its signal records."""
    review = scored.review
    consensus = scored.consensus
    decisive = _decisive_ids(scored)
    return CanonicalReviewRecord(
        review_id=review.review_id,
        show_id=review.show_id,
        norm_outlet=review.identity.norm_outlet,
        norm_critic=review.identity.norm_critic,
        outlet_id=review.outlet_id,
        outlet_display_name=review.outlet_display_name,
        critic_display_name=review.critic_display_name,
        url=review.url,
        publish_date=review.publish_date,
        split_from=review.split_from,
        payload=review_to_mapping(review),
        score=consensus.score if consensus else None,
        bucket=consensus.bucket.value if consensus else None,
        confidence=consensus.confidence.value if consensus else None,
        contributing_kind=(
            consensus.contributing_signal.kind.value if consensus else None
        ),
        signals=[
            ScoreSignalRecord(
                position=position,
                kind=signal.kind.value,
                value=signal.value,
                confidence=signal.confidence.value,
                source_detail=signal.source_detail,
                decisive=id(signal) in decisive,
                payload=signal_to_mapping(signal),
            )
            for position, signal in enumerate(scored.signals)
        ],
    )


def _consensus_from_record(
    record: CanonicalReviewRecord,
    signals: tuple[ScoreSignal, ...],
) -> ConsensusScore | None:
    if record.score is None or record.confidence is None:
        return None
    decisive = [
        signal
        for signal, signal_record in zip(signals, record.signals, strict=True)
        if signal_record.decisive
    ]
    if not decisive:
        return None
    return ConsensusScore(
        review_id=record.review_id,
        score=record.score,
        bucket=bucket_for(record.score),
        confidence=Confidence(record.confidence),
        contributing_signal=decisive[0],
        corroborating_signals=tuple(decisive[1:]),
        considered_signals=signals,
    )


def scored_review_from_record(record: CanonicalReviewRecord) -> ScoredReview:
    """Map a stored review record back to a scored review."""
    signals = tuple(
        signal_from_mapping(typ.cast("JsonMapping", signal_record.payload))
        for signal_record in record.signals
    )
    return ScoredReview(
        review=review_from_mapping(typ.cast("JsonMapping", record.payload)),
        signals=signals,
        consensus=_consensus_from_record(record, signals),
    )


__all__ = ("review_record_from_scored", "scored_review_from_record")
