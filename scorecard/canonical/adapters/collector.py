"""Reference score signal collector adapter.

The collector turns the raw score evidence merged into a canonical review
into typed score signals:

* a ``HumanOverride`` when the override table holds one for the identity,
* an ``ExplicitRating`` for every contributed rating that converts
  unambiguously,
* a ``ModelScore`` for every model-ensemble judgement, downgraded to low
  confidence when it was made from an excerpt or asked for human review,
* an ``AggregatorThumb`` for every aggregator thumb, including thumb words
  found in a rating field,
* a ``KeywordSentiment`` estimate only when none of the above exist.

Same-kind signals are all kept; the consensus scorer decides between them.
Ratings that cannot be converted, and unknown thumb words, are reported as
``UnparseableRating`` notes. Excerpts of one review that point in opposite
directions are reported as ``ExcerptSentimentConflict`` notes.

Examples
--------
>>> collector = ScoreSignalCollector(OverrideTable.empty(IdentityNormaliser()))
>>> collection = collector.collect(review)
>>> [signal.kind for signal in collection.signals]
[<SignalKind.EXPLICIT_RATING: 'ExplicitRating'>, ...]
"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

from scorecard.canonical.domain import (
    CanonicalReview,
    Confidence,
    ContributedIndicators,
    Flag,
    FlagKind,
    Severity,
)
from scorecard.canonical.signals import (
    AggregatorThumbSignal,
    ExplicitRatingSignal,
    HumanOverrideSignal,
    KeywordSentimentSignal,
    ModelScoreSignal,
    ScoreSignal,
)

from .rules import RatingOutcome, parse_rating, tally_keywords, thumb_anchor

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from scorecard.canonical.overrides import OverrideTable

#: Aggregator name used for thumb words found in a rating field.
RATING_FIELD_AGGREGATOR = "rating"


@dc.dataclass(frozen=True, slots=True)
class SignalCollection:
    """Signals collected for one review and the notes raised on the way."""

    review_id: str
    signals: tuple[ScoreSignal, ...]
    notes: tuple[Flag, ...] = ()


def _source_detail(contributed: ContributedIndicators, what: str) -> str:
    return f"{what} via {contributed.source} ({contributed.record_key})"


def _unparseable(
    review: CanonicalReview,
    contributed: ContributedIndicators,
    *,
    field: str,
    raw: str,
    reason: str,
) -> Flag:
    return Flag(
        kind=FlagKind.UNPARSEABLE_RATING,
        severity=Severity.INFO,
        explanation=f"{field.capitalize()} {raw!r} was not scored: {reason}.",
        show_ids=(review.show_id,),
        review_ids=(review.review_id,),
        record_keys=(contributed.record_key,),
        details={"field": field, "raw": raw, "reason": reason},
    )


def _thumb_signal(
    value: int,
    thumb: str,
    detail: str,
) -> AggregatorThumbSignal:
    return AggregatorThumbSignal(
        value=value,
        confidence=Confidence.MEDIUM,
        source_detail=detail,
        thumb=thumb,
    )


class ScoreSignalCollector:
    """Collect typed score signals from a canonical review.

    Parameters
    ----------
    overrides : OverrideTable
        Human overrides keyed by normalised identity.
    """

    def __init__(self, overrides: OverrideTable) -> None:
        self._overrides = overrides

    def _override_signals(self, review: CanonicalReview) -> list[ScoreSignal]:
        override = self._overrides.lookup(review.identity)
        if override is None:
            return []
        return [
            HumanOverrideSignal(
                value=override.value,
                confidence=Confidence.HIGH,
                source_detail=(
                    f"override {override.outlet_id}/{override.critic_slug}"
                ),
                note=override.note,
            ),
        ]

    @staticmethod
    def _rating_signals(
        review: CanonicalReview,
        contributed: ContributedIndicators,
    ) -> tuple[list[ScoreSignal], list[Flag]]:
        parsed = parse_rating(contributed.indicators.rating)
        if parsed is None:
            return [], []
        match parsed.outcome:
            case RatingOutcome.SCORE:
                signal: ScoreSignal = ExplicitRatingSignal(
                    value=typ.cast("int", parsed.value),
                    confidence=Confidence.HIGH,
                    source_detail=_source_detail(contributed, f"rating {parsed.raw!r}"),
                    raw_rating=parsed.raw,
                    scale=typ.cast("str", parsed.scale),
                )
                return [signal], []
            case RatingOutcome.THUMB:
                thumb = typ.cast("str", parsed.thumb)
                signal = _thumb_signal(
                    typ.cast("int", thumb_anchor(thumb)),
                    thumb,
                    _source_detail(contributed, f"{RATING_FIELD_AGGREGATOR} thumb"),
                )
                return [signal], []
            case RatingOutcome.DESIGNATION:
                return [], []
            case RatingOutcome.AMBIGUOUS:
                reason = "a bare number has no known scale"
            case RatingOutcome.UNPARSEABLE:
                reason = "no conversion rule matches"
        note = _unparseable(
            review,
            contributed,
            field="rating",
            raw=parsed.raw,
            reason=reason,
        )
        return [], [note]

    @staticmethod
    def _model_signals(contributed: ContributedIndicators) -> list[ScoreSignal]:
        model = contributed.indicators.model
        if model is None:
            return []
        downgraded = model.from_excerpt or model.needs_review
        return [
            ModelScoreSignal(
                value=model.score,
                confidence=Confidence.LOW if downgraded else model.confidence,
                source_detail=_source_detail(contributed, "model ensemble"),
                reported_confidence=model.confidence,
                from_excerpt=model.from_excerpt,
                needs_review=model.needs_review,
            ),
        ]

    @staticmethod
    def _aggregator_signals(
        review: CanonicalReview,
        contributed: ContributedIndicators,
    ) -> tuple[list[ScoreSignal], list[Flag]]:
        signals: list[ScoreSignal] = []
        notes: list[Flag] = []
        for thumb in contributed.indicators.thumbs:
            anchor = thumb_anchor(thumb.value)
            if anchor is None:
                notes.append(
                    _unparseable(
                        review,
                        contributed,
                        field="thumb",
                        raw=f"{thumb.aggregator}:{thumb.value}",
                        reason="unknown thumb value",
                    ),
                )
                continue
            signals.append(
                _thumb_signal(
                    anchor,
                    thumb.value.strip().lower(),
                    _source_detail(contributed, f"{thumb.aggregator} thumb"),
                ),
            )
        return signals, notes

    @staticmethod
    def _keyword_signal(review: CanonicalReview) -> ScoreSignal | None:
        if review.full_text:
            texts: cabc.Sequence[str] = (review.full_text,)
            origin = "full text"
        else:
            texts = [excerpt.text for excerpt in review.excerpts]
            origin = "excerpts"
        tally = tally_keywords(texts)
        value = tally.score()
        if value is None:
            return None
        return KeywordSentimentSignal(
            value=value,
            confidence=Confidence.LOW,
            source_detail=f"keyword lexicon over {origin}",
            positive_hits=tally.positive,
            negative_hits=tally.negative,
        )

    @staticmethod
    def excerpt_conflicts(review: CanonicalReview) -> list[Flag]:
        """Flag a review whose excerpts point in opposite directions."""
        polarities = {
            excerpt.source_tag: tally_keywords((excerpt.text,)).polarity
            for excerpt in review.excerpts
        }
        positive = sorted(tag for tag, sign in polarities.items() if sign > 0)
        negative = sorted(tag for tag, sign in polarities.items() if sign < 0)
        if not positive or not negative:
            return []
        return [
            Flag(
                kind=FlagKind.EXCERPT_SENTIMENT_CONFLICT,
                severity=Severity.INFO,
                explanation=(
                    f"Excerpts from {', '.join(positive)} read positive while "
                    f"excerpts from {', '.join(negative)} read negative."
                ),
                show_ids=(review.show_id,),
                review_ids=(review.review_id,),
                details={"positive": positive, "negative": negative},
            ),
        ]

    def collect(self, review: CanonicalReview) -> SignalCollection:
        """Collect every score signal for ``review``.

        Parameters
        ----------
        review : CanonicalReview
            Canonical review with its contributed indicators.

        Returns
        -------
        SignalCollection
            Signals in a fixed order (override, ratings, model scores,
            thumbs, keyword estimate) and any notes raised.
        """
        ratings: list[ScoreSignal] = []
        models: list[ScoreSignal] = []
        thumbs: list[ScoreSignal] = []
        notes: list[Flag] = []
        for contributed in review.indicators:
            rating_signals, rating_notes = self._rating_signals(review, contributed)
            for signal in rating_signals:
                is_thumb = isinstance(signal, AggregatorThumbSignal)
                (thumbs if is_thumb else ratings).append(signal)
            notes.extend(rating_notes)
            models.extend(self._model_signals(contributed))
            thumb_signals, thumb_notes = self._aggregator_signals(review, contributed)
            thumbs.extend(thumb_signals)
            notes.extend(thumb_notes)

        signals = [*self._override_signals(review), *ratings, *models, *thumbs]
        if not signals:
            keyword = self._keyword_signal(review)
            if keyword is not None:
                signals.append(keyword)
        notes.extend(self.excerpt_conflicts(review))
        return SignalCollection(
            review_id=review.review_id,
            signals=tuple(signals),
            notes=tuple(notes),
        )

    def collect_all(
        self,
        reviews: cabc.Iterable[CanonicalReview],
    ) -> list[SignalCollection]:
        """Collect signals for each review, preserving order."""
        return [self.collect(review) for review in reviews]


__all__ = ("RATING_FIELD_AGGREGATOR", "ScoreSignalCollector", "SignalCollection")
