"""Score signal variants consumed by the consensus scorer.

Signals form a closed tagged union. Each variant is a frozen dataclass with a
``kind`` class variable and carries only the fields meaningful to its kind.
"""

from __future__ import annotations

import dataclasses as dc
import enum
import typing as typ

from .domain import Confidence

if typ.TYPE_CHECKING:
    from .domain import JsonMapping


class SignalKind(enum.StrEnum):
    """Discriminator for score signal variants."""

    HUMAN_OVERRIDE = "HumanOverride"
    EXPLICIT_RATING = "ExplicitRating"
    MODEL_SCORE = "ModelScore"
    AGGREGATOR_THUMB = "AggregatorThumb"
    KEYWORD_SENTIMENT = "KeywordSentiment"


@dc.dataclass(frozen=True, slots=True)
class HumanOverrideSignal:
    """A human-assigned score. Always decisive."""

    kind: typ.ClassVar[SignalKind] = SignalKind.HUMAN_OVERRIDE

    value: int
    confidence: Confidence
    source_detail: str
    note: str | None = None


@dc.dataclass(frozen=True, slots=True)
class ExplicitRatingSignal:
    """A score converted from a critic's own rating (stars, grade, badge)."""

    kind: typ.ClassVar[SignalKind] = SignalKind.EXPLICIT_RATING

    value: int
    confidence: Confidence
    source_detail: str
    raw_rating: str
    scale: str


@dc.dataclass(frozen=True, slots=True)
class ModelScoreSignal:
    """A score reported by the external model ensemble."""

    kind: typ.ClassVar[SignalKind] = SignalKind.MODEL_SCORE

    value: int
    confidence: Confidence
    source_detail: str
    reported_confidence: Confidence
    from_excerpt: bool = False
    needs_review: bool = False


@dc.dataclass(frozen=True, slots=True)
class AggregatorThumbSignal:
    """A fixed anchor derived from an aggregator's thumb verdict."""

    kind: typ.ClassVar[SignalKind] = SignalKind.AGGREGATOR_THUMB

    value: int
    confidence: Confidence
    source_detail: str
    thumb: str


@dc.dataclass(frozen=True, slots=True)
class KeywordSentimentSignal:
    """A weak lexicon-based estimate used only when nothing else exists."""

    kind: typ.ClassVar[SignalKind] = SignalKind.KEYWORD_SENTIMENT

    value: int
    confidence: Confidence
    source_detail: str
    positive_hits: int
    negative_hits: int


type ScoreSignal = (
    HumanOverrideSignal
    | ExplicitRatingSignal
    | ModelScoreSignal
    | AggregatorThumbSignal
    | KeywordSentimentSignal
)

_SIGNAL_TYPES: dict[SignalKind, type[ScoreSignal]] = {
    SignalKind.HUMAN_OVERRIDE: HumanOverrideSignal,
    SignalKind.EXPLICIT_RATING: ExplicitRatingSignal,
    SignalKind.MODEL_SCORE: ModelScoreSignal,
    SignalKind.AGGREGATOR_THUMB: AggregatorThumbSignal,
    SignalKind.KEYWORD_SENTIMENT: KeywordSentimentSignal,
}

#: Fields holding ``Confidence`` values, restored on deserialisation.
_CONFIDENCE_FIELDS = frozenset({"confidence", "reported_confidence"})


def signal_to_mapping(signal: ScoreSignal) -> JsonMapping:
    """Serialise a signal into a JSON-compatible mapping with its kind."""
    payload: JsonMapping = {"kind": signal.kind.value}
    for field in dc.fields(signal):
        value = getattr(signal, field.name)
        payload[field.name] = value.value if isinstance(value, enum.Enum) else value
    return payload


def signal_from_mapping(payload: JsonMapping) -> ScoreSignal:
    """Rebuild a signal from ``signal_to_mapping`` output.

    Raises
    ------
    ValueError
        If the payload names an unknown signal kind.
    """
    kind = SignalKind(str(payload.get("kind")))
    signal_type = _SIGNAL_TYPES[kind]
    kwargs: dict[str, object] = {}
    for field in dc.fields(signal_type):
        if field.name not in payload:
            continue
        value = payload[field.name]
        if field.name in _CONFIDENCE_FIELDS:
            value = Confidence(str(value))
        kwargs[field.name] = value
    return signal_type(**kwargs)  # type: ignore[arg-type]


__all__ = (
    "AggregatorThumbSignal",
    "ExplicitRatingSignal",
    "HumanOverrideSignal",
    "KeywordSentimentSignal",
    "ModelScoreSignal",
    "ScoreSignal",
    "SignalKind",
    "signal_from_mapping",
    "signal_to_mapping",
)
