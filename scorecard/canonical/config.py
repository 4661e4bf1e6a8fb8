"""Reconciliation settings.

Every empirically chosen bound (edit distance, merge confidence floor,
disagreement delta and the audit thresholds) lives here rather than in the
adapters. Settings are built from a JSON-compatible mapping, optionally
overlaid with ``SCORECARD_*`` environment variables. Values that cannot be
coerced fall back to their defaults.

Examples
--------
Read settings from a JSON document and the environment:

>>> settings = ReconciliationSettings.from_environment(
...     load_settings_mapping(Path("scorecard.json")),
... )
>>> settings.matching.max_edit_distance
2
"""

from __future__ import annotations

import dataclasses as dc
import json
import os
import typing as typ

from ._coercion import coerce_float, coerce_int, coerce_optional_float
from .errors import ReferenceDataError

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    from pathlib import Path

    from .domain import JsonMapping


@dc.dataclass(frozen=True, slots=True)
class MatchingSettings:
    """Bounds for similarity matching and merging.

    Attributes
    ----------
    max_edit_distance : int
        Largest Levenshtein distance proposed as an edit-distance candidate.
    min_name_length : int
        Both compacted critic names must have at least this many letters
        before edit distance is considered.
    partial_name_confidence : float
        Confidence attached to partial-name candidates.
    merge_confidence_floor : float
        Candidates at or above this confidence are merged automatically.
    """

    max_edit_distance: int = 2
    min_name_length: int = 6
    partial_name_confidence: float = 0.5
    merge_confidence_floor: float = 0.9


@dc.dataclass(frozen=True, slots=True)
class ScoringSettings:
    """Bounds for consensus scoring."""

    disagreement_delta: int = 30


@dc.dataclass(frozen=True, slots=True)
class AuditThresholds:
    """Pass/fail thresholds applied by the audit gate.

    Attributes
    ----------
    max_ambiguous_fraction : float
        Largest tolerated share of canonical reviews split from ambiguous
        clusters.
    max_high_disagreement_fraction : float
        Largest tolerated share of scored reviews with a high-disagreement
        flag.
    max_low_confidence_fraction : float
        Largest tolerated share of reviews scored at low confidence or not
        scored at all.
    min_health_score : float | None
        Optional lower bound on the composite health score.
    health_target : float
        Health score regarded as good in the report.
    """

    max_ambiguous_fraction: float = 0.02
    max_high_disagreement_fraction: float = 0.1
    max_low_confidence_fraction: float = 0.25
    min_health_score: float | None = None
    health_target: float = 90.0


@dc.dataclass(frozen=True, slots=True)
class ReconciliationSettings:
    """All tunable reconciliation settings."""

    matching: MatchingSettings = dc.field(default_factory=MatchingSettings)
    scoring: ScoringSettings = dc.field(default_factory=ScoringSettings)
    audit: AuditThresholds = dc.field(default_factory=AuditThresholds)

    @classmethod
    def from_mapping(cls, payload: JsonMapping) -> ReconciliationSettings:
        """Build settings from a mapping with ``matching``, ``scoring`` and
        ``audit`` sections.

        Unknown keys are ignored and invalid values use defaults.
        """
        matching = _section(payload, "matching")
        scoring = _section(payload, "scoring")
        audit = _section(payload, "audit")
        defaults_matching = MatchingSettings()
        defaults_scoring = ScoringSettings()
        defaults_audit = AuditThresholds()
        return cls(
            matching=MatchingSettings(
                max_edit_distance=coerce_int(
                    matching.get("max_edit_distance"),
                    defaults_matching.max_edit_distance,
                ),
                min_name_length=coerce_int(
                    matching.get("min_name_length"),
                    defaults_matching.min_name_length,
                ),
                partial_name_confidence=coerce_float(
                    matching.get("partial_name_confidence"),
                    defaults_matching.partial_name_confidence,
                ),
                merge_confidence_floor=coerce_float(
                    matching.get("merge_confidence_floor"),
                    defaults_matching.merge_confidence_floor,
                ),
            ),
            scoring=ScoringSettings(
                disagreement_delta=coerce_int(
                    scoring.get("disagreement_delta"),
                    defaults_scoring.disagreement_delta,
                ),
            ),
            audit=AuditThresholds(
                max_ambiguous_fraction=coerce_float(
                    audit.get("max_ambiguous_fraction"),
                    defaults_audit.max_ambiguous_fraction,
                ),
                max_high_disagreement_fraction=coerce_float(
                    audit.get("max_high_disagreement_fraction"),
                    defaults_audit.max_high_disagreement_fraction,
                ),
                max_low_confidence_fraction=coerce_float(
                    audit.get("max_low_confidence_fraction"),
                    defaults_audit.max_low_confidence_fraction,
                ),
                min_health_score=coerce_optional_float(audit.get("min_health_score")),
                health_target=coerce_float(
                    audit.get("health_target"),
                    defaults_audit.health_target,
                ),
            ),
        )

    @classmethod
    def from_environment(
        cls,
        payload: JsonMapping | None = None,
        environ: cabc.Mapping[str, str] | None = None,
    ) -> ReconciliationSettings:
        """Build settings from ``payload`` overlaid with ``SCORECARD_*`` vars."""
        env = os.environ if environ is None else environ
        merged: dict[str, dict[str, object]] = {
            section: dict(_section(payload or {}, section))
            for section in ("matching", "scoring", "audit")
        }
        for env_name, (section, key) in ENVIRONMENT_OVERRIDES.items():
            value = env.get(env_name)
            if value is not None and value.strip():
                merged[section][key] = value.strip()
        return cls.from_mapping(typ.cast("JsonMapping", merged))


#: Environment variables and the setting each one overrides.
ENVIRONMENT_OVERRIDES: dict[str, tuple[str, str]] = {
    "SCORECARD_MAX_EDIT_DISTANCE": ("matching", "max_edit_distance"),
    "SCORECARD_MIN_NAME_LENGTH": ("matching", "min_name_length"),
    "SCORECARD_PARTIAL_NAME_CONFIDENCE": ("matching", "partial_name_confidence"),
    "SCORECARD_MERGE_CONFIDENCE_FLOOR": ("matching", "merge_confidence_floor"),
    "SCORECARD_DISAGREEMENT_DELTA": ("scoring", "disagreement_delta"),
    "SCORECARD_MAX_AMBIGUOUS_FRACTION": ("audit", "max_ambiguous_fraction"),
    "SCORECARD_MAX_HIGH_DISAGREEMENT_FRACTION": (
        "audit",
        "max_high_disagreement_fraction",
    ),
    "SCORECARD_MAX_LOW_CONFIDENCE_FRACTION": ("audit", "max_low_confidence_fraction"),
    "SCORECARD_MIN_HEALTH_SCORE": ("audit", "min_health_score"),
    "SCORECARD_HEALTH_TARGET": ("audit", "health_target"),
}


def _section(payload: JsonMapping, name: str) -> dict[str, object]:
    value = payload.get(name)
    if not isinstance(value, dict):
        return {}
    return typ.cast("dict[str, object]", value)


def load_settings_mapping(path: Path) -> JsonMapping:
    """Read a JSON settings document.

    Raises
    ------
    ReferenceDataError
        If the file cannot be read or does not hold a JSON object.
    """
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as err:
        msg = f"Cannot load settings from {path}: {err}"
        raise ReferenceDataError(msg, entity_id=str(path)) from err
    if not isinstance(payload, dict):
        msg = f"Settings in {path} must be a JSON object."
        raise ReferenceDataError(msg, entity_id=str(path))
    return typ.cast("JsonMapping", payload)


__all__ = (
    "ENVIRONMENT_OVERRIDES",
    "AuditThresholds",
    "MatchingSettings",
    "ReconciliationSettings",
    "ScoringSettings",
    "load_settings_mapping",
)
