"""Canonical review entities and reconciliation entry points.

This package exposes the domain models together with the reconciliation
orchestrator, audit gate and persistence helpers used by release tooling.

Examples
--------
Reconcile a corpus, audit it and persist the outputs:

>>> pipeline = ReconciliationPipeline.from_settings()
>>> result = await reconcile_corpus(payloads, pipeline)
>>> report = pipeline.audit_gate.evaluate(result)
>>> await persist_result(result, report, Path("out"))
"""

from .audit import AuditGate, AuditMetrics, AuditReport, ThresholdCheck, Verdict
from .config import (
    AuditThresholds,
    MatchingSettings,
    ReconciliationSettings,
    ScoringSettings,
    load_settings_mapping,
)
from .domain import (
    AggregatorThumb,
    Bucket,
    CanonicalReview,
    Confidence,
    ConsensusScore,
    ContributedIndicators,
    DuplicateCluster,
    Excerpt,
    Flag,
    FlagKind,
    HumanOverride,
    MatchKind,
    MatchReason,
    ModelJudgment,
    NormalizedIdentity,
    ScoredReview,
    ScoreIndicators,
    Severity,
    SimilarityCandidate,
    SourceRecord,
)
from .errors import (
    MalformedRecordError,
    ReconciliationError,
    ReferenceDataError,
    ThresholdExceededError,
)
from .overrides import OverrideTable, load_overrides
from .reconciliation import (
    ReconciliationPipeline,
    ReconciliationResult,
    persist_result,
    reconcile_corpus,
)
from .records import ParsedRecord, parse_source_record, read_source_record
from .reference import ReferenceData, default_reference_data, load_reference_data
from .registry import CriticRegistry, CriticRegistryEntry, build_critic_registry
from .serialisation import serialise_reviews
from .signals import (
    AggregatorThumbSignal,
    ExplicitRatingSignal,
    HumanOverrideSignal,
    KeywordSentimentSignal,
    ModelScoreSignal,
    ScoreSignal,
    SignalKind,
)

__all__: list[str] = [
    "AggregatorThumb",
    "AggregatorThumbSignal",
    "AuditGate",
    "AuditMetrics",
    "AuditReport",
    "AuditThresholds",
    "Bucket",
    "CanonicalReview",
    "Confidence",
    "ConsensusScore",
    "ContributedIndicators",
    "CriticRegistry",
    "CriticRegistryEntry",
    "DuplicateCluster",
    "Excerpt",
    "ExplicitRatingSignal",
    "Flag",
    "FlagKind",
    "HumanOverride",
    "HumanOverrideSignal",
    "KeywordSentimentSignal",
    "MalformedRecordError",
    "MatchKind",
    "MatchReason",
    "MatchingSettings",
    "ModelJudgment",
    "ModelScoreSignal",
    "NormalizedIdentity",
    "OverrideTable",
    "ParsedRecord",
    "ReconciliationError",
    "ReconciliationPipeline",
    "ReconciliationResult",
    "ReconciliationSettings",
    "ReferenceData",
    "ReferenceDataError",
    "ScoreIndicators",
    "ScoreSignal",
    "ScoredReview",
    "ScoringSettings",
    "Severity",
    "SignalKind",
    "SimilarityCandidate",
    "SourceRecord",
    "ThresholdCheck",
    "ThresholdExceededError",
    "Verdict",
    "build_critic_registry",
    "default_reference_data",
    "load_overrides",
    "load_reference_data",
    "load_settings_mapping",
    "parse_source_record",
    "persist_result",
    "read_source_record",
    "reconcile_corpus",
    "serialise_reviews",
]
