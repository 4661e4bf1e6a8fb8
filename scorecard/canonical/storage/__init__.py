"""SQLAlchemy persistence for the canonical review store.

This package provides the SQLAlchemy models, record mappers and atomic file
writers used to persist a reconciliation run. It keeps persistence logic
isolated from the domain layer.

Examples
--------
Persist and reload scored reviews:

>>> write_canonical_store(path, result.scored, {"rules_version": "2026.10"})
>>> load_canonical_store(path)[0].review_id
'hamilton-2015:nytimes--benbrantley'
"""

from .models import Base, CanonicalReviewRecord, ScoreSignalRecord, StoreMetadataRecord
from .store import (
    atomic_write_bytes,
    load_canonical_store,
    load_store_metadata,
    write_canonical_store,
)

__all__ = (
    "Base",
    "CanonicalReviewRecord",
    "ScoreSignalRecord",
    "StoreMetadataRecord",
    "atomic_write_bytes",
    "load_canonical_store",
    "load_store_metadata",
    "write_canonical_store",
)
