"""Corpus reconciliation orchestrator.

This module provides ``reconcile_corpus``, which takes raw collector records
for any number of shows and rebuilds the canonical reviews and their
consensus scores from scratch:

1. Validate every payload. Malformed records are logged, flagged and skipped.
2. Group records by show and resolve each show independently through a
   ``ShowTaskExecutor`` (shows in sorted order, results in the same order).
3. Fan in and run the cross-entity guard over the whole corpus.
4. Collect score signals and score every canonical review.
5. Build the critic registry.

``persist_result`` then writes the canonical store, audit report and critic
registry atomically.

Examples
--------
Reconcile a corpus and gate the release on the audit verdict:

>>> pipeline = ReconciliationPipeline.from_settings(settings)
>>> result = await reconcile_corpus(payloads, pipeline)
>>> report = pipeline.audit_gate.evaluate(result)
>>> await persist_result(result, report, Path("out"))
>>> report.exit_status
0
"""

from __future__ import annotations

import asyncio
import collections
import dataclasses as dc
import hashlib
import json
import typing as typ

from scorecard.concurrency import build_show_task_executor_from_environment
from scorecard.logging import get_logger, log_debug, log_info, log_warning

from .adapters.collector import ScoreSignalCollector
from .adapters.consensus import PriorityConsensusScorer
from .adapters.guard import CrossEntityGuard
from .adapters.normaliser import IdentityNormaliser
from .adapters.resolver import ClusterMergeEngine
from .adapters.rules import RULES_VERSION
from .adapters.similarity import SimilarityMatcher
from .audit import AuditGate
from .config import ReconciliationSettings
from .domain import Flag, FlagKind, ScoredReview, Severity, sorted_flags
from .errors import MalformedRecordError
from .overrides import OverrideTable
from .records import read_source_record
from .registry import build_critic_registry
from .serialisation import dumps_canonical
from .storage import atomic_write_bytes, write_canonical_store

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    from pathlib import Path

    from scorecard.concurrency import ShowTaskExecutor

    from .adapters.resolver import ShowResolution
    from .audit import AuditReport
    from .domain import (
        CanonicalReview,
        DuplicateCluster,
        JsonMapping,
        SourceRecord,
    )
    from .ports import ConsensusScorer, EntityGuard, MergeEngine, SignalCollector
    from .reference import ReferenceData
    from .registry import CriticRegistry

logger = get_logger(__name__)

CANONICAL_STORE_FILENAME = "canonical.sqlite"
AUDIT_REPORT_FILENAME = "audit-report.json"
CRITIC_REGISTRY_FILENAME = "critic-registry.json"


@dc.dataclass(frozen=True, slots=True)
class ReconciliationPipeline:
    """Bundles the port adapters for corpus reconciliation.

    Attributes
    ----------
    normaliser : IdentityNormaliser
        Identity normaliser shared by every stage.
    merge_engine : MergeEngine
        Per-show cluster and merge adapter.
    guard : EntityGuard
        Corpus-wide invariant checks.
    collector : SignalCollector
        Score signal collector.
    scorer : ConsensusScorer
        Consensus scorer.
    audit_gate : AuditGate
        Metrics, thresholds and verdict.
    """

    normaliser: IdentityNormaliser
    merge_engine: MergeEngine
    guard: EntityGuard
    collector: SignalCollector
    scorer: ConsensusScorer
    audit_gate: AuditGate

    @classmethod
    def from_settings(
        cls,
        settings: ReconciliationSettings | None = None,
        *,
        reference: ReferenceData | None = None,
        overrides: OverrideTable | None = None,
    ) -> ReconciliationPipeline:
        """Build the reference adapters from settings and reference data."""
        settings = settings if settings is not None else ReconciliationSettings()
        normaliser = IdentityNormaliser(reference)
        return cls(
            normaliser=normaliser,
            merge_engine=ClusterMergeEngine(
                normaliser,
                SimilarityMatcher(settings.matching),
                settings.matching,
            ),
            guard=CrossEntityGuard(normaliser),
            collector=ScoreSignalCollector(
                overrides if overrides is not None else OverrideTable.empty(normaliser),
            ),
            scorer=PriorityConsensusScorer(settings.scoring),
            audit_gate=AuditGate(settings.audit),
        )


@dc.dataclass(frozen=True, slots=True)
class ReconciliationResult:
    """Everything one reconciliation run produced.

    Attributes
    ----------
    total_records : int
        Payloads received.
    malformed_records : int
        Payloads rejected during validation.
    clusters : tuple[DuplicateCluster, ...]
        Final clusters of every show, in show order.
    scored : tuple[ScoredReview, ...]
        Canonical reviews with their signals and consensus, in show order.
    flags : tuple[Flag, ...]
        Every flag raised, in report order.
    registry : CriticRegistry
        Critic-outlet affinity registry.
    rules_version : str
        Version of the heuristic rule tables.
    reference_version : str
        Version label of the reference data.
    """

    total_records: int
    malformed_records: int
    clusters: tuple[DuplicateCluster, ...]
    scored: tuple[ScoredReview, ...]
    flags: tuple[Flag, ...]
    registry: CriticRegistry
    rules_version: str = RULES_VERSION
    reference_version: str = "builtin"

    @property
    def reviews(self) -> tuple[CanonicalReview, ...]:
        """Return the canonical reviews."""
        return tuple(item.review for item in self.scored)


@dc.dataclass(frozen=True, slots=True)
class _ShowTask:
    """Input for resolving one show inside an executor."""

    merge_engine: MergeEngine
    show_id: str
    records: tuple[SourceRecord, ...]


def _resolve_show(task: _ShowTask) -> ShowResolution:
    return task.merge_engine.resolve_show(task.show_id, task.records)


def _payload_key(payload: object) -> str:
    encoded = json.dumps(payload, sort_keys=True, default=str)
    return f"sha256:{hashlib.sha256(encoded.encode('utf-8')).hexdigest()}"


def _malformed_flag(payload: object, err: MalformedRecordError) -> Flag:
    show_id = None
    if isinstance(payload, dict):
        candidate = typ.cast("JsonMapping", payload).get("showId")
        show_id = candidate if isinstance(candidate, str) else None
    record_key = err.entity_id or _payload_key(payload)
    return Flag(
        kind=FlagKind.MALFORMED_RECORD,
        severity=Severity.WARNING,
        explanation=f"Record {record_key} was skipped: {err}",
        show_ids=(show_id,) if show_id else (),
        record_keys=(record_key,),
        details={"field": err.field, "code": err.code},
    )


def _parse_payloads(
    payloads: cabc.Iterable[JsonMapping],
) -> tuple[list[SourceRecord], list[Flag], int]:
    records: list[SourceRecord] = []
    flags: list[Flag] = []
    total = 0
    for payload in payloads:
        total += 1
        try:
            parsed = read_source_record(payload)
        except MalformedRecordError as err:
            flag = _malformed_flag(payload, err)
            log_warning(
                logger,
                "Skipping malformed record %s (field %s): %s",
                flag.record_keys[0],
                err.field,
                err,
            )
            flags.append(flag)
        else:
            records.append(parsed.record)
            flags.extend(parsed.notes)
    return records, flags, total


def _score_reviews(
    pipeline: ReconciliationPipeline,
    reviews: cabc.Sequence[CanonicalReview],
) -> tuple[list[ScoredReview], list[Flag]]:
    scored: list[ScoredReview] = []
    flags: list[Flag] = []
    for review in reviews:
        collection = pipeline.collector.collect(review)
        outcome = pipeline.scorer.score(review, collection.signals)
        flags.extend(collection.notes)
        flags.extend(outcome.flags)
        scored.append(
            ScoredReview(
                review=review,
                signals=collection.signals,
                consensus=outcome.consensus,
            ),
        )
    return scored, flags


async def reconcile_corpus(
    payloads: cabc.Iterable[JsonMapping],
    pipeline: ReconciliationPipeline,
    *,
    executor: ShowTaskExecutor | None = None,
) -> ReconciliationResult:
    """Rebuild canonical reviews and consensus scores from raw records.

    Parameters
    ----------
    payloads : Iterable[JsonMapping]
        Raw collector records for any number of shows, in any order.
    pipeline : ReconciliationPipeline
        Bundled adapters.
    executor : ShowTaskExecutor | None, optional
        Executor for per-show resolution. When omitted one is built from the
        environment and shut down afterwards.

    Returns
    -------
    ReconciliationResult
        Scored canonical reviews, clusters, flags and the critic registry.
        The result does not depend on record arrival order or on the
        executor used.
    """
    records, flags, total = _parse_payloads(payloads)

    by_show: dict[str, list[SourceRecord]] = collections.defaultdict(list)
    for record in records:
        by_show[record.show_id].append(record)
    tasks = tuple(
        _ShowTask(pipeline.merge_engine, show_id, tuple(by_show[show_id]))
        for show_id in sorted(by_show)
    )

    owned_executor = executor is None
    active_executor = (
        build_show_task_executor_from_environment() if executor is None else executor
    )
    try:
        resolutions = await active_executor.map_ordered(_resolve_show, tasks)
    finally:
        if owned_executor:
            active_executor.shutdown()

    reviews = [review for resolution in resolutions for review in resolution.reviews]
    clusters = tuple(
        cluster for resolution in resolutions for cluster in resolution.clusters
    )
    for resolution in resolutions:
        log_debug(
            logger,
            "Show %s resolved into %s reviews with %s flags.",
            resolution.show_id,
            len(resolution.reviews),
            len(resolution.flags),
        )
        flags.extend(resolution.flags)
    log_info(
        logger,
        "Resolved %s records across %s shows into %s canonical reviews.",
        len(records),
        len(tasks),
        len(reviews),
    )

    guard_flags = pipeline.guard.check(reviews)
    flags.extend(guard_flags)
    log_info(logger, "Cross-entity guard raised %s flags.", len(guard_flags))

    scored, scoring_flags = _score_reviews(pipeline, reviews)
    flags.extend(scoring_flags)
    log_info(
        logger,
        "Scored %s of %s canonical reviews.",
        sum(1 for item in scored if item.consensus is not None),
        len(scored),
    )

    registry = build_critic_registry(reviews, pipeline.normaliser)
    flags.extend(registry.flags)
    log_info(logger, "Critic registry holds %s critics.", len(registry.entries))

    return ReconciliationResult(
        total_records=total,
        malformed_records=total - len(records),
        clusters=clusters,
        scored=tuple(scored),
        flags=tuple(sorted_flags(flags)),
        registry=registry,
        reference_version=pipeline.normaliser.reference.version,
    )


def _write_outputs(
    result: ReconciliationResult,
    report: AuditReport,
    output_dir: Path,
) -> None:
    write_canonical_store(
        output_dir / CANONICAL_STORE_FILENAME,
        result.scored,
        {
            "rules_version": result.rules_version,
            "reference_version": result.reference_version,
            "verdict": report.verdict.value,
        },
    )
    atomic_write_bytes(
        output_dir / AUDIT_REPORT_FILENAME,
        dumps_canonical(report.to_mapping()),
    )
    atomic_write_bytes(
        output_dir / CRITIC_REGISTRY_FILENAME,
        dumps_canonical(result.registry.to_mapping()),
    )


async def persist_result(
    result: ReconciliationResult,
    report: AuditReport,
    output_dir: Path,
) -> None:
    """Write the canonical store, audit report and critic registry.

    Each file is written to a temporary sibling and renamed into place.

    Parameters
    ----------
    result : ReconciliationResult
        Output of ``reconcile_corpus``.
    report : AuditReport
        Audit report for ``result``.
    output_dir : Path
        Directory receiving the three output files.
    """
    await asyncio.to_thread(_write_outputs, result, report, output_dir)
    log_info(
        logger,
        "Persisted reconciliation outputs to %s (verdict %s).",
        output_dir,
        report.verdict.value,
    )


__all__ = (
    "AUDIT_REPORT_FILENAME",
    "CANONICAL_STORE_FILENAME",
    "CRITIC_REGISTRY_FILENAME",
    "ReconciliationPipeline",
    "ReconciliationResult",
    "persist_result",
    "reconcile_corpus",
)
