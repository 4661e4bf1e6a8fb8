"""Reference adapters for the reconciliation ports."""

from __future__ import annotations

from .collector import ScoreSignalCollector, SignalCollection
from .consensus import PriorityConsensusScorer, ScoringOutcome
from .guard import CrossEntityGuard
from .normaliser import IdentityNormaliser
from .resolver import ClusterMergeEngine, ShowResolution
from .similarity import CriticEntry, SimilarityMatcher

__all__ = [
    "ClusterMergeEngine",
    "CriticEntry",
    "CrossEntityGuard",
    "IdentityNormaliser",
    "PriorityConsensusScorer",
    "ScoreSignalCollector",
    "ScoringOutcome",
    "ShowResolution",
    "SignalCollection",
    "SimilarityMatcher",
]
