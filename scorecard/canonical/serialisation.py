"""JSON forms of canonical reviews and consensus scores.

The canonical byte form produced by ``serialise_reviews`` is what proves a
run deterministic: two runs over the same records, in any arrival order, must
produce identical bytes. Keys are sorted, separators are fixed and reviews
appear in ``review_id`` order.

Examples
--------
>>> payload = serialise_reviews(result.scored)
>>> payload == serialise_reviews(rerun.scored)
True
"""

from __future__ import annotations

import datetime as dt
import json
import typing as typ

from .domain import (
    AggregatorThumb,
    CanonicalReview,
    Confidence,
    ContributedIndicators,
    Excerpt,
    MatchKind,
    MatchReason,
    ModelJudgment,
    NormalizedIdentity,
    ScoreIndicators,
)
from .signals import signal_to_mapping

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from .domain import ConsensusScore, JsonMapping, ScoredReview


def indicators_to_mapping(indicators: ScoreIndicators) -> JsonMapping:
    """Return the JSON form of one record's score evidence."""
    model = indicators.model
    return {
        "rating": indicators.rating,
        "thumbs": [
            {"aggregator": thumb.aggregator, "value": thumb.value}
            for thumb in indicators.thumbs
        ],
        "model": None
        if model is None
        else {
            "score": model.score,
            "confidence": model.confidence.value,
            "from_excerpt": model.from_excerpt,
            "needs_review": model.needs_review,
        },
        "designations": list(indicators.designations),
    }


def indicators_from_mapping(payload: JsonMapping) -> ScoreIndicators:
    """Rebuild score evidence from ``indicators_to_mapping`` output."""
    thumbs = typ.cast("list[dict[str, str]]", payload.get("thumbs", []))
    model = typ.cast("dict[str, object] | None", payload.get("model"))
    return ScoreIndicators(
        rating=typ.cast("str | None", payload.get("rating")),
        thumbs=tuple(
            AggregatorThumb(aggregator=t["aggregator"], value=t["value"])
            for t in thumbs
        ),
        model=None
        if model is None
        else ModelJudgment(
            score=typ.cast("int", model["score"]),
            confidence=Confidence(str(model["confidence"])),
            from_excerpt=bool(model.get("from_excerpt")),
            needs_review=bool(model.get("needs_review")),
        ),
        designations=tuple(typ.cast("list[str]", payload.get("designations", []))),
    )


def contributed_to_mapping(contributed: ContributedIndicators) -> JsonMapping:
    """Return the JSON form of one contributing record's evidence."""
    return {
        "record_key": contributed.record_key,
        "source": contributed.source,
        "indicators": indicators_to_mapping(contributed.indicators),
    }


def contributed_from_mapping(payload: JsonMapping) -> ContributedIndicators:
    """Rebuild contributed evidence from ``contributed_to_mapping`` output."""
    return ContributedIndicators(
        record_key=str(payload["record_key"]),
        source=str(payload["source"]),
        indicators=indicators_from_mapping(
            typ.cast("JsonMapping", payload["indicators"]),
        ),
    )


def reason_to_mapping(reason: MatchReason) -> JsonMapping:
    """Return the JSON form of a match reason."""
    return {
        "kind": reason.kind.value,
        "left": reason.left_key,
        "right": reason.right_key,
        "confidence": reason.confidence,
        "detail": reason.detail,
    }


def reason_from_mapping(payload: JsonMapping) -> MatchReason:
    """Rebuild a match reason from ``reason_to_mapping`` output."""
    return MatchReason(
        kind=MatchKind(str(payload["kind"])),
        left_key=str(payload["left"]),
        right_key=str(payload["right"]),
        confidence=float(typ.cast("float", payload["confidence"])),
        detail=str(payload["detail"]),
    )


def review_to_mapping(review: CanonicalReview) -> JsonMapping:
    """Return the JSON form of a canonical review."""
    return {
        "review_id": review.review_id,
        "show_id": review.show_id,
        "norm_outlet": review.identity.norm_outlet,
        "norm_critic": review.identity.norm_critic,
        "outlet_id": review.outlet_id,
        "outlet_display_name": review.outlet_display_name,
        "critic_display_name": review.critic_display_name,
        "url": review.url,
        "alternate_urls": list(review.alternate_urls),
        "publish_date": (
            review.publish_date.isoformat() if review.publish_date else None
        ),
        "full_text": review.full_text,
        "excerpts": [
            {"source_tag": excerpt.source_tag, "text": excerpt.text}
            for excerpt in review.excerpts
        ],
        "indicators": [contributed_to_mapping(c) for c in review.indicators],
        "designations": list(review.designations),
        "sources": list(review.sources),
        "member_keys": list(review.member_keys),
        "match_reasons": [reason_to_mapping(r) for r in review.match_reasons],
        "split_from": review.split_from,
    }


def review_from_mapping(payload: JsonMapping) -> CanonicalReview:
    """Rebuild a canonical review from ``review_to_mapping`` output."""
    publish_date = payload.get("publish_date")
    excerpts = typ.cast("list[dict[str, str]]", payload.get("excerpts", []))
    return CanonicalReview(
        review_id=str(payload["review_id"]),
        identity=NormalizedIdentity(
            show_id=str(payload["show_id"]),
            norm_outlet=str(payload["norm_outlet"]),
            norm_critic=str(payload["norm_critic"]),
        ),
        outlet_id=str(payload["outlet_id"]),
        outlet_display_name=str(payload["outlet_display_name"]),
        critic_display_name=str(payload["critic_display_name"]),
        url=typ.cast("str | None", payload.get("url")),
        alternate_urls=tuple(typ.cast("list[str]", payload.get("alternate_urls", []))),
        publish_date=(
            dt.date.fromisoformat(str(publish_date)) if publish_date else None
        ),
        full_text=typ.cast("str | None", payload.get("full_text")),
        excerpts=tuple(
            Excerpt(source_tag=e["source_tag"], text=e["text"]) for e in excerpts
        ),
        indicators=tuple(
            contributed_from_mapping(c)
            for c in typ.cast("list[JsonMapping]", payload.get("indicators", []))
        ),
        sources=tuple(typ.cast("list[str]", payload.get("sources", []))),
        member_keys=tuple(typ.cast("list[str]", payload.get("member_keys", []))),
        match_reasons=tuple(
            reason_from_mapping(r)
            for r in typ.cast("list[JsonMapping]", payload.get("match_reasons", []))
        ),
        split_from=typ.cast("str | None", payload.get("split_from")),
    )


def consensus_to_mapping(consensus: ConsensusScore | None) -> JsonMapping | None:
    """Return the JSON form of a consensus score."""
    if consensus is None:
        return None
    return {
        "score": consensus.score,
        "bucket": consensus.bucket.value,
        "confidence": consensus.confidence.value,
        "contributing_signal": signal_to_mapping(consensus.contributing_signal),
        "corroborating_signals": [
            signal_to_mapping(s) for s in consensus.corroborating_signals
        ],
    }


def scored_review_to_mapping(scored: ScoredReview) -> JsonMapping:
    """Return the JSON form of a review with its signals and consensus."""
    return {
        **review_to_mapping(scored.review),
        "signals": [signal_to_mapping(s) for s in scored.signals],
        "consensus": consensus_to_mapping(scored.consensus),
    }


def dumps_canonical(payload: object) -> bytes:
    """Encode ``payload`` as sorted, compact UTF-8 JSON with a newline."""
    text = json.dumps(
        payload,
        sort_keys=True,
        ensure_ascii=False,
        separators=(",", ":"),
    )
    return f"{text}\n".encode()


def serialise_reviews(scored: cabc.Iterable[ScoredReview]) -> bytes:
    """Return the canonical byte form of scored reviews.

    Parameters
    ----------
    scored : Iterable[ScoredReview]
        Reviews with their signals and consensus, in any order.

    Returns
    -------
    bytes
        Sorted-key JSON of every review in ``review_id`` order.
    """
    ordered = sorted(scored, key=lambda item: item.review.review_id)
    return dumps_canonical([scored_review_to_mapping(item) for item in ordered])


__all__ = (
    "consensus_to_mapping",
    "dumps_canonical",
    "indicators_from_mapping",
    "indicators_to_mapping",
    "review_from_mapping",
    "review_to_mapping",
    "scored_review_to_mapping",
    "serialise_reviews",
)
