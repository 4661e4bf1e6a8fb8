"""Domain entities for critic review reconciliation.

The reconciliation core works on immutable value objects: raw per-source
observations (``SourceRecord``), the identity derived from them
(``NormalizedIdentity``), transient duplicate clusters, the rebuilt
``CanonicalReview`` entities, their ``ConsensusScore`` and the ``Flag``
entries raised along the way.

Examples
--------
Build a source record as a collector would supply it:

>>> record = SourceRecord(
...     show_id="hamilton-2015",
...     raw_outlet="The New York Times",
...     raw_critic="Ben Brantley",
...     source="nyt-archive",
...     url="https://www.nytimes.com/2015/08/07/theater/review-hamilton.html",
... )
>>> record.record_key.startswith("sha256:")
True
"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import enum
import hashlib
import json
import typing as typ

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from .signals import ScoreSignal

type JsonMapping = dict[str, object]


class Confidence(enum.StrEnum):
    """Confidence attached to score signals and consensus scores."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Return a sortable rank where higher is more trustworthy."""
        return _CONFIDENCE_RANKS[self]


_CONFIDENCE_RANKS: dict[Confidence, int] = {
    Confidence.HIGH: 3,
    Confidence.MEDIUM: 2,
    Confidence.LOW: 1,
}


class Bucket(enum.StrEnum):
    """Categorical sentiment bucket derived from a 0-100 score."""

    RAVE = "Rave"
    POSITIVE = "Positive"
    MIXED = "Mixed"
    NEGATIVE = "Negative"
    PAN = "Pan"


class Severity(enum.StrEnum):
    """Flag severity levels."""

    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


_SEVERITY_ORDER: dict[Severity, int] = {
    Severity.CRITICAL: 0,
    Severity.WARNING: 1,
    Severity.INFO: 2,
}


class FlagKind(enum.StrEnum):
    """Kinds of audit flags raised during reconciliation."""

    AMBIGUOUS_CLUSTER = "AmbiguousCluster"
    CROSS_ENTITY_VIOLATION = "CrossEntityViolation"
    HIGH_DISAGREEMENT = "HighDisagreement"
    PARTIAL_NAME = "PartialName"
    SIMILAR_CRITIC = "SimilarCritic"
    SIMILARITY_MERGE = "SimilarityMerge"
    MALFORMED_RECORD = "MalformedRecord"
    UNPARSEABLE_RATING = "UnparseableRating"
    UNPARSEABLE_DATE = "UnparseableDate"
    OUTLET_DOMAIN_MISMATCH = "OutletDomainMismatch"
    EXCERPT_SENTIMENT_CONFLICT = "ExcerptSentimentConflict"
    SUSPICIOUS_ATTRIBUTION = "SuspiciousAttribution"


class MatchKind(enum.StrEnum):
    """Evidence that linked two source records into one cluster."""

    EXACT_IDENTITY = "exact_identity"
    SHARED_URL = "shared_url"
    EDIT_DISTANCE = "edit_distance"
    PARTIAL_NAME = "partial_name"


@dc.dataclass(frozen=True, slots=True)
class Excerpt:
    """A quoted excerpt attributed to the collector that captured it."""

    source_tag: str
    text: str


@dc.dataclass(frozen=True, slots=True)
class AggregatorThumb:
    """An aggregator's up, meh, flat or down verdict for one review."""

    aggregator: str
    value: str


@dc.dataclass(frozen=True, slots=True)
class ModelJudgment:
    """A model-ensemble score supplied by an external scoring service.

    Attributes
    ----------
    score : int
        Reported 0-100 score.
    confidence : Confidence
        Confidence reported by the ensemble.
    from_excerpt : bool
        Whether the judgement was made from an excerpt rather than full text.
    needs_review : bool
        Whether the ensemble itself asked for human review.
    """

    score: int
    confidence: Confidence
    from_excerpt: bool = False
    needs_review: bool = False


@dc.dataclass(frozen=True, slots=True)
class ScoreIndicators:
    """Raw score evidence attached to one source record."""

    rating: str | None = None
    thumbs: tuple[AggregatorThumb, ...] = ()
    model: ModelJudgment | None = None
    designations: tuple[str, ...] = ()

    def is_empty(self) -> bool:
        """Return True when the record carries no score evidence at all."""
        return (
            self.rating is None
            and not self.thumbs
            and self.model is None
            and not self.designations
        )


@dc.dataclass(frozen=True, slots=True)
class SourceRecord:
    """One collector's raw observation of a review.

    Attributes
    ----------
    show_id : str
        Show the review belongs to.
    raw_outlet : str
        Outlet name exactly as the collector saw it.
    raw_critic : str
        Critic name exactly as the collector saw it.
    source : str
        Collector tag.
    record_id : str | None
        Collector-assigned identifier; a content hash is used when absent.
    outlet_id : str | None
        Registry-sourced outlet identifier when the collector knew it.
    url : str | None
        Review URL.
    publish_date : datetime.date | None
        Publication date.
    full_text : str | None
        Full review text.
    excerpts : tuple[Excerpt, ...]
        Quoted excerpts.
    indicators : ScoreIndicators
        Raw score evidence.
    """

    show_id: str
    raw_outlet: str
    raw_critic: str
    source: str = "unknown"
    record_id: str | None = None
    outlet_id: str | None = None
    url: str | None = None
    publish_date: dt.date | None = None
    full_text: str | None = None
    excerpts: tuple[Excerpt, ...] = ()
    indicators: ScoreIndicators = dc.field(default_factory=ScoreIndicators)

    @property
    def record_key(self) -> str:
        """Return the stable key that orders cluster members."""
        if self.record_id:
            return self.record_id
        return f"sha256:{self.content_fingerprint()}"

    def content_fingerprint(self) -> str:
        """Hash every observed field into a stable hex digest."""
        payload = dc.asdict(self)
        payload.pop("record_id")
        encoded = json.dumps(payload, sort_keys=True, default=str)
        return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


@dc.dataclass(frozen=True, slots=True, order=True)
class NormalizedIdentity:
    """The (show, outlet, critic) key a canonical review is unique on."""

    show_id: str
    norm_outlet: str
    norm_critic: str

    @property
    def key(self) -> str:
        """Return the identity as one delimited string."""
        return f"{self.show_id}|{self.norm_outlet}|{self.norm_critic}"


@dc.dataclass(frozen=True, slots=True)
class SimilarityCandidate:
    """A proposed same-critic pair within one show and outlet.

    Candidates are proposals only. The merge engine decides whether to act
    on them.
    """

    kind: MatchKind
    norm_outlet: str
    left_critic: str
    right_critic: str
    confidence: float
    detail: str

    @property
    def pair(self) -> frozenset[str]:
        """Return the unordered pair of normalised critic names."""
        return frozenset((self.left_critic, self.right_critic))


@dc.dataclass(frozen=True, slots=True)
class MatchReason:
    """Audit entry explaining why two records were linked."""

    kind: MatchKind
    left_key: str
    right_key: str
    confidence: float
    detail: str


@dc.dataclass(frozen=True, slots=True)
class DuplicateCluster:
    """A transient group of records believed to describe one review."""

    cluster_id: str
    show_id: str
    identity: NormalizedIdentity
    members: tuple[SourceRecord, ...]
    reasons: tuple[MatchReason, ...]
    ambiguous_cluster_id: str | None = None

    @property
    def ambiguous(self) -> bool:
        """Return True when this cluster came from an ambiguity split."""
        return self.ambiguous_cluster_id is not None


@dc.dataclass(frozen=True, slots=True)
class ContributedIndicators:
    """Score evidence kept per contributing record."""

    record_key: str
    source: str
    indicators: ScoreIndicators


@dc.dataclass(frozen=True, slots=True)
class CanonicalReview:
    """The single authoritative record of one critic's review of one show.

    Attributes
    ----------
    review_id : str
        Stable identifier derived from the identity.
    identity : NormalizedIdentity
        Normalised (show, outlet, critic) identity.
    outlet_id : str
        Preferred outlet identifier.
    outlet_display_name : str
        Human-readable outlet name.
    critic_display_name : str
        Human-readable critic name.
    url : str | None
        Preferred review URL.
    alternate_urls : tuple[str, ...]
        Other URLs observed for the same review.
    publish_date : datetime.date | None
        Preferred publication date.
    full_text : str | None
        Longest full text observed.
    excerpts : tuple[Excerpt, ...]
        Longest excerpt per collector tag.
    indicators : tuple[ContributedIndicators, ...]
        Every contributing record's score evidence.
    sources : tuple[str, ...]
        Collector tags that contributed.
    member_keys : tuple[str, ...]
        Record keys of the contributing records, in member order.
    match_reasons : tuple[MatchReason, ...]
        Audit trail of the links that formed the cluster.
    split_from : str | None
        Ambiguous cluster this review was split from, if any.
    """

    review_id: str
    identity: NormalizedIdentity
    outlet_id: str
    outlet_display_name: str
    critic_display_name: str
    url: str | None
    alternate_urls: tuple[str, ...]
    publish_date: dt.date | None
    full_text: str | None
    excerpts: tuple[Excerpt, ...]
    indicators: tuple[ContributedIndicators, ...]
    sources: tuple[str, ...]
    member_keys: tuple[str, ...]
    match_reasons: tuple[MatchReason, ...] = ()
    split_from: str | None = None

    @property
    def show_id(self) -> str:
        """Return the show this review belongs to."""
        return self.identity.show_id

    @property
    def all_urls(self) -> tuple[str, ...]:
        """Return the preferred URL followed by every alternate."""
        head = (self.url,) if self.url else ()
        return head + self.alternate_urls

    @property
    def designations(self) -> tuple[str, ...]:
        """Return the distinct designations observed, in first-seen order."""
        seen: dict[str, None] = {}
        for contributed in self.indicators:
            for designation in contributed.indicators.designations:
                seen.setdefault(designation, None)
        return tuple(seen)


@dc.dataclass(frozen=True, slots=True)
class ConsensusScore:
    """The reconciled score for one canonical review.

    Attributes
    ----------
    review_id : str
        Review the score belongs to.
    score : int
        Final 0-100 score.
    bucket : Bucket
        Sentiment bucket for ``score``.
    confidence : Confidence
        Confidence of the contributing signal group.
    contributing_signal : ScoreSignal
        The signal that decided the score.
    corroborating_signals : tuple[ScoreSignal, ...]
        Signals of the same kind and confidence averaged with it.
    considered_signals : tuple[ScoreSignal, ...]
        Every signal the scorer saw.
    """

    review_id: str
    score: int
    bucket: Bucket
    confidence: Confidence
    contributing_signal: ScoreSignal
    corroborating_signals: tuple[ScoreSignal, ...] = ()
    considered_signals: tuple[ScoreSignal, ...] = ()


@dc.dataclass(frozen=True, slots=True)
class ScoredReview:
    """A canonical review with the signals collected for it and its consensus."""

    review: CanonicalReview
    signals: tuple[ScoreSignal, ...]
    consensus: ConsensusScore | None

    @property
    def review_id(self) -> str:
        """Return the identifier of the scored review."""
        return self.review.review_id


@dc.dataclass(frozen=True, slots=True)
class Flag:
    """An audit flag raised by any reconciliation stage."""

    kind: FlagKind
    severity: Severity
    explanation: str
    show_ids: tuple[str, ...] = ()
    review_ids: tuple[str, ...] = ()
    record_keys: tuple[str, ...] = ()
    details: JsonMapping = dc.field(default_factory=dict)

    def sort_key(self) -> tuple[object, ...]:
        """Return a key giving flags a stable report order."""
        return (
            _SEVERITY_ORDER[self.severity],
            self.kind.value,
            self.show_ids,
            self.review_ids,
            self.record_keys,
            self.explanation,
        )


@dc.dataclass(frozen=True, slots=True)
class HumanOverride:
    """A human-assigned score that beats every computed signal."""

    show_id: str
    outlet_id: str
    critic_slug: str
    value: int
    note: str | None = None


def sorted_flags(flags: cabc.Iterable[Flag]) -> list[Flag]:
    """Return ``flags`` in stable report order."""
    return sorted(flags, key=Flag.sort_key)


__all__ = (
    "AggregatorThumb",
    "Bucket",
    "CanonicalReview",
    "Confidence",
    "ConsensusScore",
    "ContributedIndicators",
    "DuplicateCluster",
    "Excerpt",
    "Flag",
    "FlagKind",
    "HumanOverride",
    "JsonMapping",
    "MatchKind",
    "MatchReason",
    "ModelJudgment",
    "NormalizedIdentity",
    "ScoreIndicators",
    "ScoredReview",
    "Severity",
    "SimilarityCandidate",
    "SourceRecord",
    "sorted_flags",
)
