"""Reference consensus scorer adapter.

The scorer picks one decisive signal group per review:

1. A human override wins outright.
2. Otherwise signals are ranked by confidence, then by kind priority
   (explicit rating, model score, aggregator thumb, keyword sentiment).
   Every signal sharing the best rank is averaged, rounding halves up.

When the chosen value is not itself a thumb and sits more than
``disagreement_delta`` points from any aggregator thumb anchor, a
``HighDisagreement`` warning is raised naming both values. Scoring still
completes.

Examples
--------
>>> scorer = PriorityConsensusScorer()
>>> outcome = scorer.score(review, collection.signals)
>>> outcome.consensus.bucket
<Bucket.RAVE: 'Rave'>
"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

from scorecard.canonical.config import ScoringSettings
from scorecard.canonical.domain import (
    CanonicalReview,
    Confidence,
    ConsensusScore,
    Flag,
    FlagKind,
    Severity,
)
from scorecard.canonical.signals import (
    AggregatorThumbSignal,
    HumanOverrideSignal,
    ScoreSignal,
    SignalKind,
)

from .rules import bucket_for, round_half_up

if typ.TYPE_CHECKING:
    import collections.abc as cabc

#: Higher wins when confidence ties.
KIND_PRIORITY: dict[SignalKind, int] = {
    SignalKind.EXPLICIT_RATING: 4,
    SignalKind.MODEL_SCORE: 3,
    SignalKind.AGGREGATOR_THUMB: 2,
    SignalKind.KEYWORD_SENTIMENT: 1,
}


@dc.dataclass(frozen=True, slots=True)
class ScoringOutcome:
    """Consensus for one review, or ``None`` when it had no signals."""

    review_id: str
    consensus: ConsensusScore | None
    flags: tuple[Flag, ...] = ()

    @property
    def low_confidence(self) -> bool:
        """Return True for unscored or low-confidence reviews."""
        return self.consensus is None or self.consensus.confidence is Confidence.LOW


def _rank(signal: ScoreSignal) -> tuple[int, int]:
    return (signal.confidence.rank, KIND_PRIORITY[signal.kind])


class PriorityConsensusScorer:
    """Score reviews by signal priority with disagreement detection.

    Parameters
    ----------
    settings : ScoringSettings | None
        Scoring bounds; defaults apply when omitted.
    """

    def __init__(self, settings: ScoringSettings | None = None) -> None:
        self._settings = settings if settings is not None else ScoringSettings()

    def _disagreement(
        self,
        review: CanonicalReview,
        consensus: ConsensusScore,
        signals: cabc.Sequence[ScoreSignal],
    ) -> Flag | None:
        if consensus.contributing_signal.kind is SignalKind.AGGREGATOR_THUMB:
            return None
        delta = self._settings.disagreement_delta
        thumbs = [
            signal
            for signal in signals
            if isinstance(signal, AggregatorThumbSignal)
            and abs(signal.value - consensus.score) > delta
        ]
        if not thumbs:
            return None
        described = ", ".join(
            f"{thumb.thumb} ({thumb.value}) from {thumb.source_detail}"
            for thumb in thumbs
        )
        kind = consensus.contributing_signal.kind.value
        return Flag(
            kind=FlagKind.HIGH_DISAGREEMENT,
            severity=Severity.WARNING,
            explanation=(
                f"{kind} score {consensus.score} disagrees with aggregator "
                f"thumb {described} by more than {delta} points."
            ),
            show_ids=(review.show_id,),
            review_ids=(review.review_id,),
            details={
                "score": consensus.score,
                "signal_kind": kind,
                "thumb_values": [thumb.value for thumb in thumbs],
                "thumbs": [thumb.thumb for thumb in thumbs],
                "delta": delta,
            },
        )

    def score(
        self,
        review: CanonicalReview,
        signals: cabc.Sequence[ScoreSignal],
    ) -> ScoringOutcome:
        """Reconcile ``signals`` into one consensus score.

        Parameters
        ----------
        review : CanonicalReview
            Review the signals were collected for.
        signals : Sequence[ScoreSignal]
            Signals in collector order.

        Returns
        -------
        ScoringOutcome
            The consensus (``None`` without signals) and any disagreement
            flag.
        """
        considered = tuple(signals)
        if not considered:
            return ScoringOutcome(review_id=review.review_id, consensus=None)

        override = next(
            (s for s in considered if isinstance(s, HumanOverrideSignal)),
            None,
        )
        if override is not None:
            consensus = ConsensusScore(
                review_id=review.review_id,
                score=override.value,
                bucket=bucket_for(override.value),
                confidence=Confidence.HIGH,
                contributing_signal=override,
                considered_signals=considered,
            )
            return ScoringOutcome(review_id=review.review_id, consensus=consensus)

        best = max(_rank(signal) for signal in considered)
        group = [signal for signal in considered if _rank(signal) == best]
        value = round_half_up(sum(signal.value for signal in group) / len(group))
        consensus = ConsensusScore(
            review_id=review.review_id,
            score=value,
            bucket=bucket_for(value),
            confidence=group[0].confidence,
            contributing_signal=group[0],
            corroborating_signals=tuple(group[1:]),
            considered_signals=considered,
        )
        flag = self._disagreement(review, consensus, considered)
        return ScoringOutcome(
            review_id=review.review_id,
            consensus=consensus,
            flags=(flag,) if flag is not None else (),
        )


__all__ = ("KIND_PRIORITY", "PriorityConsensusScorer", "ScoringOutcome")
