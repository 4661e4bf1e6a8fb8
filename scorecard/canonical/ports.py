"""Port protocols for the reconciliation pipeline.

This module defines protocol interfaces for the extension points of the
pipeline: identity normalisation, per-show merging, the corpus-wide guard,
signal collection and consensus scoring. Adapters implement these protocols
so strategies can be swapped without touching the orchestration logic.

All ports are synchronous and side-effect free. Per-show merging runs inside
a ``ShowTaskExecutor``, so merge engines must be picklable when an
interpreter pool is used.

Examples
--------
Implement a scorer that always trusts the first signal:

>>> class FirstSignalScorer:
...     def score(self, review, signals):
...         ...
"""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from .adapters.collector import SignalCollection
    from .adapters.consensus import ScoringOutcome
    from .adapters.resolver import ShowResolution
    from .domain import CanonicalReview, Flag, NormalizedIdentity, SourceRecord
    from .signals import ScoreSignal


class IdentityNormaliserPort(typ.Protocol):
    """Maps raw outlet and critic strings onto canonical keys.

    Implementations must be total: any string, including an empty one,
    yields a non-empty key without raising.
    """

    def normalise_outlet(self, raw: str | None) -> str:
        """Return the canonical outlet key for ``raw``."""
        ...

    def normalise_critic(self, raw: str | None) -> str:
        """Return the canonical critic key for ``raw``."""
        ...

    def identity(self, record: SourceRecord) -> NormalizedIdentity:
        """Return the normalised identity of ``record``."""
        ...


class MergeEngine(typ.Protocol):
    """Resolves one show's records into canonical reviews.

    Methods
    -------
    resolve_show(show_id, records)
        Cluster, check and merge the records of one show.
    """

    def resolve_show(
        self,
        show_id: str,
        records: cabc.Sequence[SourceRecord],
    ) -> ShowResolution:
        """Resolve the records of one show.

        Parameters
        ----------
        show_id : str
            Show every record belongs to.
        records : Sequence[SourceRecord]
            Source records in any order.

        Returns
        -------
        ShowResolution
            Clusters, canonical reviews and flags for the show.
        """
        ...


class EntityGuard(typ.Protocol):
    """Checks corpus-wide invariants after fan-in."""

    def check(self, reviews: cabc.Sequence[CanonicalReview]) -> list[Flag]:
        """Return the flags raised over ``reviews``."""
        ...


class SignalCollector(typ.Protocol):
    """Turns a review's raw score evidence into typed signals."""

    def collect(self, review: CanonicalReview) -> SignalCollection:
        """Return the signals and notes for ``review``."""
        ...


class ConsensusScorer(typ.Protocol):
    """Reconciles a review's signals into one consensus score."""

    def score(
        self,
        review: CanonicalReview,
        signals: cabc.Sequence[ScoreSignal],
    ) -> ScoringOutcome:
        """Return the consensus and flags for ``review``."""
        ...


__all__ = (
    "ConsensusScorer",
    "EntityGuard",
    "IdentityNormaliserPort",
    "MergeEngine",
    "SignalCollector",
)
