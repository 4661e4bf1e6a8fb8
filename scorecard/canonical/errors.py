"""Exceptions raised by the reconciliation core.

Per-record and per-cluster problems are collected as flags rather than
raised. Exceptions are reserved for input that cannot be represented at all
(``MalformedRecordError``, caught per record by the orchestrator), reference
data that is unusable (``ReferenceDataError``, raised at load time) and a
failed audit verdict (``ThresholdExceededError``).
"""

from __future__ import annotations

import typing as typ


class ReconciliationError(Exception):
    """Base exception with structured metadata for reconciliation failures."""

    error_code: typ.ClassVar[str] = "reconciliation_error"

    code: str
    entity_id: str | None

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        entity_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code if code is not None else type(self).error_code
        self.entity_id = entity_id


class MalformedRecordError(ReconciliationError):
    """Raised when a raw record lacks required fields or has invalid values."""

    error_code: typ.ClassVar[str] = "malformed_record"

    field: str | None

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        entity_id: str | None = None,
    ) -> None:
        super().__init__(message, entity_id=entity_id)
        self.field = field


class ReferenceDataError(ReconciliationError):
    """Raised when alias tables, settings or overrides cannot be loaded."""

    error_code: typ.ClassVar[str] = "invalid_reference_data"


class ThresholdExceededError(ReconciliationError):
    """Raised when an audit report fails one or more thresholds."""

    error_code: typ.ClassVar[str] = "threshold_exceeded"

    failed_checks: tuple[str, ...]

    def __init__(
        self,
        message: str,
        *,
        failed_checks: tuple[str, ...] = (),
    ) -> None:
        super().__init__(message)
        self.failed_checks = failed_checks


__all__ = (
    "MalformedRecordError",
    "ReconciliationError",
    "ReferenceDataError",
    "ThresholdExceededError",
)
