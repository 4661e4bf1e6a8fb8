"""Audit gate over a reconciliation run.

The gate computes corpus metrics from a ``ReconciliationResult``, checks
them against the configured thresholds and returns an ``AuditReport`` with a
``pass`` or ``fail`` verdict. The verdict's ``exit_status`` gates an external
release step. Any cross-entity violation fails the gate whatever the
thresholds say. ``raise_for_verdict`` turns a failed verdict into a
``ThresholdExceededError`` for callers that prefer exceptions.

The report also carries a composite health score between 0 and 100 that
weighs corpus integrity at 40% and the ambiguity, disagreement and
low-confidence fractions at 20% each.

Examples
--------
>>> report = AuditGate(settings.audit).evaluate(result)
>>> report.verdict
<Verdict.FAIL: 'fail'>
>>> report.raise_for_verdict()
Traceback (most recent call last):
...
ThresholdExceededError: Audit failed 1 threshold check: cross_entity_violations.
"""

from __future__ import annotations

import collections
import dataclasses as dc
import enum
import typing as typ

from scorecard.logging import get_logger, log_info, log_warning

from .config import AuditThresholds
from .domain import Confidence, FlagKind
from .errors import ThresholdExceededError

if typ.TYPE_CHECKING:
    import datetime as dt

    from .domain import Flag, JsonMapping
    from .reconciliation import ReconciliationResult

logger = get_logger(__name__)

# Cross-show URL collisions always block a release; no setting relaxes this.
MAX_CROSS_ENTITY_VIOLATIONS = 0

_INTEGRITY_WEIGHT = 0.4
_FRACTION_WEIGHT = 0.2


class Verdict(enum.StrEnum):
    """Outcome of the audit gate."""

    PASS = "pass"  # noqa: S105
    FAIL = "fail"


def _fraction(part: int, whole: int) -> float:
    return part / whole if whole else 0.0


@dc.dataclass(frozen=True, slots=True)
class AuditMetrics:
    """Counts and fractions describing one reconciliation run.

    Attributes
    ----------
    total_records : int
        Payloads received.
    malformed_records : int
        Payloads rejected during validation.
    canonical_reviews : int
        Canonical reviews produced.
    duplicate_clusters : int
        Clusters that merged more than one record.
    ambiguous_clusters : int
        Clusters split because of conflicting facets.
    ambiguous_fraction : float
        Share of canonical reviews split from an ambiguous cluster.
    cross_entity_violations : int
        Critical guard flags.
    high_disagreement : int
        Reviews with a high-disagreement flag.
    high_disagreement_fraction : float
        Share of scored reviews with a high-disagreement flag.
    low_confidence_fraction : float
        Share of canonical reviews scored at low confidence or not at all.
    unscored_reviews : int
        Canonical reviews without any signal.
    health_score : float
        Composite health between 0 and 100.
    """

    total_records: int
    malformed_records: int
    canonical_reviews: int
    duplicate_clusters: int
    ambiguous_clusters: int
    ambiguous_fraction: float
    cross_entity_violations: int
    high_disagreement: int
    high_disagreement_fraction: float
    low_confidence_fraction: float
    unscored_reviews: int
    health_score: float

    def to_mapping(self) -> JsonMapping:
        """Return the metrics as a JSON-compatible mapping."""
        payload: JsonMapping = {}
        for field in dc.fields(self):
            value = getattr(self, field.name)
            payload[field.name] = round(value, 4) if isinstance(value, float) else value
        return payload


@dc.dataclass(frozen=True, slots=True)
class ThresholdCheck:
    """One threshold comparison."""

    name: str
    observed: float
    limit: float
    is_minimum: bool = False

    @property
    def passed(self) -> bool:
        """Return True when the observed value is within the limit."""
        if self.is_minimum:
            return self.observed >= self.limit
        return self.observed <= self.limit

    def to_mapping(self) -> JsonMapping:
        """Return the check as a JSON-compatible mapping."""
        return {
            "name": self.name,
            "observed": round(self.observed, 4),
            "limit": self.limit,
            "comparison": "min" if self.is_minimum else "max",
            "passed": self.passed,
        }


@dc.dataclass(frozen=True, slots=True)
class AuditReport:
    """Metrics, threshold checks, grouped flags and the verdict of a run."""

    metrics: AuditMetrics
    checks: tuple[ThresholdCheck, ...]
    flags: tuple[Flag, ...]
    rules_version: str
    reference_version: str
    health_target: float
    generated_at: dt.datetime | None = None

    @property
    def failed_checks(self) -> tuple[str, ...]:
        """Return the names of failed checks."""
        return tuple(check.name for check in self.checks if not check.passed)

    @property
    def verdict(self) -> Verdict:
        """Return ``fail`` when any check failed."""
        return Verdict.FAIL if self.failed_checks else Verdict.PASS

    @property
    def exit_status(self) -> int:
        """Return the process exit status for the release gate."""
        return 1 if self.verdict is Verdict.FAIL else 0

    def flag_counts(self) -> dict[str, dict[str, int]]:
        """Count flags by kind, then by severity."""
        counts: dict[str, collections.Counter[str]] = collections.defaultdict(
            collections.Counter,
        )
        for flag in self.flags:
            counts[flag.kind.value][flag.severity.value] += 1
        return {kind: dict(sorted(counts[kind].items())) for kind in sorted(counts)}

    def flags_by_kind(self) -> dict[str, list[Flag]]:
        """Group flags by kind, keeping report order inside each group."""
        grouped: dict[str, list[Flag]] = collections.defaultdict(list)
        for flag in self.flags:
            grouped[flag.kind.value].append(flag)
        return {kind: grouped[kind] for kind in sorted(grouped)}

    def raise_for_verdict(self) -> None:
        """Raise ``ThresholdExceededError`` when the verdict is ``fail``.

        Raises
        ------
        ThresholdExceededError
            If any threshold check failed.
        """
        failed = self.failed_checks
        if not failed:
            return
        noun = "check" if len(failed) == 1 else "checks"
        msg = f"Audit failed {len(failed)} threshold {noun}: {', '.join(failed)}."
        raise ThresholdExceededError(msg, failed_checks=failed)

    def to_mapping(self) -> JsonMapping:
        """Return the report document written next to the canonical store."""
        payload: JsonMapping = {
            "verdict": self.verdict.value,
            "exit_status": self.exit_status,
            "rules_version": self.rules_version,
            "reference_version": self.reference_version,
            "health_target": self.health_target,
            "metrics": self.metrics.to_mapping(),
            "checks": [check.to_mapping() for check in self.checks],
            "flag_counts": self.flag_counts(),
            "flags": {
                kind: [_flag_to_mapping(flag) for flag in flags]
                for kind, flags in self.flags_by_kind().items()
            },
        }
        if self.generated_at is not None:
            payload["generated_at"] = self.generated_at.isoformat()
        return payload


def _flag_to_mapping(flag: Flag) -> JsonMapping:
    return {
        "severity": flag.severity.value,
        "explanation": flag.explanation,
        "show_ids": list(flag.show_ids),
        "review_ids": list(flag.review_ids),
        "record_keys": list(flag.record_keys),
        "details": flag.details,
    }


def health_score(
    *,
    canonical_reviews: int,
    cross_entity_violations: int,
    ambiguous_fraction: float,
    high_disagreement_fraction: float,
    low_confidence_fraction: float,
) -> float:
    """Return the composite corpus health between 0 and 100."""
    integrity = 1.0 - min(
        1.0,
        _fraction(cross_entity_violations, max(canonical_reviews, 1)),
    )
    score = _INTEGRITY_WEIGHT * integrity + _FRACTION_WEIGHT * (
        (1.0 - min(1.0, ambiguous_fraction))
        + (1.0 - min(1.0, high_disagreement_fraction))
        + (1.0 - min(1.0, low_confidence_fraction))
    )
    return round(100.0 * score, 1)


class AuditGate:
    """Compute metrics and check thresholds for a reconciliation run.

    Parameters
    ----------
    thresholds : AuditThresholds | None
        Pass/fail thresholds; defaults apply when omitted.
    """

    def __init__(self, thresholds: AuditThresholds | None = None) -> None:
        self._thresholds = thresholds if thresholds is not None else AuditThresholds()

    @staticmethod
    def measure(result: ReconciliationResult) -> AuditMetrics:
        """Compute the metrics of ``result``."""
        reviews = result.reviews
        total_reviews = len(reviews)
        scored = [item for item in result.scored if item.consensus is not None]
        low_confidence = sum(
            1
            for item in result.scored
            if item.consensus is None or item.consensus.confidence is Confidence.LOW
        )
        disagreeing = {
            review_id
            for flag in result.flags
            if flag.kind is FlagKind.HIGH_DISAGREEMENT
            for review_id in flag.review_ids
        }
        violations = sum(
            1 for flag in result.flags if flag.kind is FlagKind.CROSS_ENTITY_VIOLATION
        )
        split_reviews = [r for r in reviews if r.split_from is not None]
        ambiguous_fraction = _fraction(len(split_reviews), total_reviews)
        high_disagreement_fraction = _fraction(len(disagreeing), len(scored))
        low_confidence_fraction = _fraction(low_confidence, total_reviews)
        return AuditMetrics(
            total_records=result.total_records,
            malformed_records=result.malformed_records,
            canonical_reviews=total_reviews,
            duplicate_clusters=sum(
                1 for cluster in result.clusters if len(cluster.members) > 1
            ),
            ambiguous_clusters=len({r.split_from for r in split_reviews}),
            ambiguous_fraction=ambiguous_fraction,
            cross_entity_violations=violations,
            high_disagreement=len(disagreeing),
            high_disagreement_fraction=high_disagreement_fraction,
            low_confidence_fraction=low_confidence_fraction,
            unscored_reviews=total_reviews - len(scored),
            health_score=health_score(
                canonical_reviews=total_reviews,
                cross_entity_violations=violations,
                ambiguous_fraction=ambiguous_fraction,
                high_disagreement_fraction=high_disagreement_fraction,
                low_confidence_fraction=low_confidence_fraction,
            ),
        )

    def checks(self, metrics: AuditMetrics) -> tuple[ThresholdCheck, ...]:
        """Compare ``metrics`` with the configured thresholds."""
        thresholds = self._thresholds
        checks = [
            ThresholdCheck(
                "cross_entity_violations",
                metrics.cross_entity_violations,
                MAX_CROSS_ENTITY_VIOLATIONS,
            ),
            ThresholdCheck(
                "ambiguous_fraction",
                metrics.ambiguous_fraction,
                thresholds.max_ambiguous_fraction,
            ),
            ThresholdCheck(
                "high_disagreement_fraction",
                metrics.high_disagreement_fraction,
                thresholds.max_high_disagreement_fraction,
            ),
            ThresholdCheck(
                "low_confidence_fraction",
                metrics.low_confidence_fraction,
                thresholds.max_low_confidence_fraction,
            ),
        ]
        if thresholds.min_health_score is not None:
            checks.append(
                ThresholdCheck(
                    "health_score",
                    metrics.health_score,
                    thresholds.min_health_score,
                    is_minimum=True,
                ),
            )
        return tuple(checks)

    def evaluate(
        self,
        result: ReconciliationResult,
        *,
        generated_at: dt.datetime | None = None,
    ) -> AuditReport:
        """Build the audit report for ``result``.

        Parameters
        ----------
        result : ReconciliationResult
            Output of ``reconcile_corpus``.
        generated_at : datetime.datetime | None, optional
            Timestamp recorded in the report. Omitted by default so that
            identical runs produce identical reports.

        Returns
        -------
        AuditReport
            Metrics, checks, flags and the verdict.
        """
        metrics = self.measure(result)
        report = AuditReport(
            metrics=metrics,
            checks=self.checks(metrics),
            flags=result.flags,
            rules_version=result.rules_version,
            reference_version=result.reference_version,
            health_target=self._thresholds.health_target,
            generated_at=generated_at,
        )
        if report.failed_checks:
            log_warning(
                logger,
                "Audit verdict fail: %s.",
                ", ".join(report.failed_checks),
            )
        else:
            log_info(
                logger,
                "Audit verdict pass: %s reviews, health %s.",
                metrics.canonical_reviews,
                metrics.health_score,
            )
        return report


__all__ = (
    "MAX_CROSS_ENTITY_VIOLATIONS",
    "AuditGate",
    "AuditMetrics",
    "AuditReport",
    "ThresholdCheck",
    "Verdict",
    "health_score",
)
