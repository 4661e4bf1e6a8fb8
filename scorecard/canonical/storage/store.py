"""Atomic writers and loader for reconciliation outputs.

Every output is first written completely to a temporary file in the target
directory and then renamed over the destination, so readers see either the
previous file or the new one and never a partial write. A failed write
removes the temporary file and re-raises.

Examples
--------
Write and reload the canonical store:

>>> write_canonical_store(Path("out/canonical.sqlite"), scored, {"rules": "2026.10"})
>>> [item.review_id for item in load_canonical_store(Path("out/canonical.sqlite"))]
['hamilton-2015:nytimes--benbrantley']
"""

from __future__ import annotations

import contextlib
import os
import tempfile
import typing as typ
from pathlib import Path

import sqlalchemy as sa
from sqlalchemy import orm

from scorecard.logging import get_logger, log_error, log_info

from .mappers import review_record_from_scored, scored_review_from_record
from .models import Base, CanonicalReviewRecord, StoreMetadataRecord

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from scorecard.canonical.domain import ScoredReview

logger = get_logger(__name__)


@contextlib.contextmanager
def _atomic_target(path: Path) -> cabc.Iterator[Path]:
    """Yield a temporary sibling of ``path`` and rename it into place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
    ) as handle:
        temporary = Path(handle.name)
    try:
        yield temporary
        os.replace(temporary, path)
    except BaseException:
        temporary.unlink(missing_ok=True)
        log_error(logger, "Discarded partial output for %s.", path)
        raise


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write ``data`` to ``path`` through a temporary file and rename."""
    with _atomic_target(path) as temporary:
        temporary.write_bytes(data)


def _sqlite_engine(path: Path) -> sa.Engine:
    return sa.create_engine(f"sqlite:///{path}")


def write_canonical_store(
    path: Path,
    scored: cabc.Iterable[ScoredReview],
    metadata: cabc.Mapping[str, str],
) -> int:
    """Build the canonical SQLite store and rename it into place.

    Parameters
    ----------
    path : Path
        Destination file.
    scored : Iterable[ScoredReview]
        Scored reviews to store, written in ``review_id`` order.
    metadata : Mapping[str, str]
        Run description stored in ``store_metadata``.

    Returns
    -------
    int
        Number of reviews written.
    """
    ordered = sorted(scored, key=lambda item: item.review_id)
    with _atomic_target(path) as temporary:
        engine = _sqlite_engine(temporary)
        try:
            Base.metadata.create_all(engine)
            with orm.Session(engine) as session, session.begin():
                session.add_all(review_record_from_scored(item) for item in ordered)
                session.add_all(
                    StoreMetadataRecord(key=key, value=value)
                    for key, value in sorted(metadata.items())
                )
        finally:
            engine.dispose()
    log_info(logger, "Wrote %s canonical reviews to %s.", len(ordered), path)
    return len(ordered)


def load_canonical_store(path: Path) -> list[ScoredReview]:
    """Load every scored review from a canonical store, in ``review_id`` order."""
    engine = _sqlite_engine(path)
    try:
        with orm.Session(engine) as session:
            statement = (
                sa.select(CanonicalReviewRecord)
                .options(orm.selectinload(CanonicalReviewRecord.signals))
                .order_by(CanonicalReviewRecord.review_id)
            )
            records = session.scalars(statement).all()
            return [scored_review_from_record(record) for record in records]
    finally:
        engine.dispose()


def load_store_metadata(path: Path) -> dict[str, str]:
    """Return the run description stored with a canonical store."""
    engine = _sqlite_engine(path)
    try:
        with orm.Session(engine) as session:
            rows = session.scalars(sa.select(StoreMetadataRecord)).all()
            return {row.key: row.value for row in rows}
    finally:
        engine.dispose()


__all__ = (
    "atomic_write_bytes",
    "load_canonical_store",
    "load_store_metadata",
    "write_canonical_store",
)
