"""Unit tests for the canonical store writers and loader."""

from __future__ import annotations

import json
import typing as typ

import pytest
from _reconciliation_helpers import _make_indicators, _make_review

from scorecard.canonical.adapters.collector import ScoreSignalCollector
from scorecard.canonical.adapters.consensus import PriorityConsensusScorer
from scorecard.canonical.domain import Bucket, Excerpt, ScoredReview
from scorecard.canonical.overrides import OverrideTable
from scorecard.canonical.serialisation import serialise_reviews
from scorecard.canonical.signals import SignalKind
from scorecard.canonical.storage import (
    atomic_write_bytes,
    load_canonical_store,
    load_store_metadata,
    write_canonical_store,
)
from scorecard.canonical.storage.store import _atomic_target

if typ.TYPE_CHECKING:
    from pathlib import Path

    from scorecard.canonical.adapters.normaliser import IdentityNormaliser
    from scorecard.canonical.domain import CanonicalReview


def _score(
    normaliser: IdentityNormaliser,
    reviews: list[CanonicalReview],
) -> list[ScoredReview]:
    collector = ScoreSignalCollector(OverrideTable.empty(normaliser))
    scorer = PriorityConsensusScorer()
    scored: list[ScoredReview] = []
    for review in reviews:
        signals = collector.collect(review).signals
        scored.append(
            ScoredReview(
                review=review,
                signals=signals,
                consensus=scorer.score(review, signals).consensus,
            ),
        )
    return scored


@pytest.fixture
def scored(normaliser: IdentityNormaliser) -> list[ScoredReview]:
    """Return two scored reviews and one unscored review."""
    return _score(
        normaliser,
        [
            _make_review(
                norm_critic="jessegreen",
                critic_display_name="Jesse Green",
                url="https://www.nytimes.com/jesse",
                indicators=(_make_indicators(rating="4/5"),),
            ),
            _make_review(
                url="https://www.nytimes.com/ben",
                alternate_urls=("https://nyti.ms/ben",),
                excerpts=(Excerpt("dtli", "Thrilling."),),
                indicators=(
                    _make_indicators(rating="5/5", thumbs={"dtli": "Up"}),
                    _make_indicators(
                        rating="4.5/5",
                        model_score=88,
                        record_key="rec-2",
                    ),
                ),
            ),
            _make_review(norm_critic="unknown", critic_display_name=""),
        ],
    )


def test_store_round_trips_reviews_and_consensus(
    tmp_path: Path,
    scored: list[ScoredReview],
) -> None:
    """Stored reviews reload with their signals and consensus."""
    path = tmp_path / "canonical.sqlite"

    written = write_canonical_store(path, scored, {"rules_version": "test"})
    loaded = {item.review_id: item for item in load_canonical_store(path)}

    assert written == 3, "Expected every review written."
    assert list(loaded) == sorted(item.review_id for item in scored), (
        "Expected reviews loaded in review_id order."
    )
    ben = loaded["hamilton-2015:nytimes--benbrantley"]
    assert ben.review.alternate_urls == ("https://nyti.ms/ben",), (
        "Expected alternate URLs to survive the store."
    )
    assert ben.review.excerpts == (Excerpt("dtli", "Thrilling."),), (
        "Expected excerpts to survive the store."
    )
    assert ben.review.indicators[0].indicators.rating == "5/5", (
        "Expected contributed indicators to survive the store."
    )
    assert [s.kind for s in ben.signals] == [
        SignalKind.EXPLICIT_RATING,
        SignalKind.EXPLICIT_RATING,
        SignalKind.MODEL_SCORE,
        SignalKind.AGGREGATOR_THUMB,
    ], "Expected signals in collector order."
    assert ben.consensus is not None, "Expected the consensus to be restored."
    assert ben.consensus.score == 90, "Expected the two ratings averaged."
    assert ben.consensus.bucket is Bucket.RAVE, "Expected the bucket restored."
    assert ben.consensus.contributing_signal.kind is SignalKind.EXPLICIT_RATING, (
        "Expected the decisive signal restored."
    )
    assert len(ben.consensus.corroborating_signals) == 1, (
        "Expected the corroborating rating restored."
    )
    assert loaded["hamilton-2015:nytimes--unknown"].consensus is None, (
        "Expected the unscored review to stay unscored."
    )
    assert load_store_metadata(path) == {"rules_version": "test"}, (
        "Expected the run metadata."
    )


def test_store_replaces_previous_file(
    tmp_path: Path,
    scored: list[ScoredReview],
) -> None:
    """A rebuild replaces the previous store entirely."""
    path = tmp_path / "canonical.sqlite"
    write_canonical_store(path, scored, {"run": "first"})

    write_canonical_store(path, scored[:1], {"run": "second"})

    assert len(load_canonical_store(path)) == 1, "Expected only the new reviews."
    assert load_store_metadata(path) == {"run": "second"}, (
        "Expected only the new metadata."
    )
    assert [p.name for p in tmp_path.iterdir()] == ["canonical.sqlite"], (
        "Expected no temporary files left behind."
    )


def test_atomic_write_bytes_creates_parent_directories(tmp_path: Path) -> None:
    """Output directories are created on demand."""
    path = tmp_path / "release" / "audit-report.json"

    atomic_write_bytes(path, b"{}\n")

    assert path.read_bytes() == b"{}\n", "Expected the bytes written."


def test_failed_write_keeps_the_previous_file(tmp_path: Path) -> None:
    """Readers never see a partial output."""
    path = tmp_path / "critic-registry.json"
    atomic_write_bytes(path, b"previous")

    with pytest.raises(RuntimeError, match="disk full"), _atomic_target(path) as tmp:
        tmp.write_bytes(b"partial")
        msg = "disk full"
        raise RuntimeError(msg)

    assert path.read_bytes() == b"previous", "Expected the previous file intact."
    assert [p.name for p in tmp_path.iterdir()] == ["critic-registry.json"], (
        "Expected the temporary file to be removed."
    )


def test_serialised_reviews_ignore_input_order(scored: list[ScoredReview]) -> None:
    """The canonical byte form sorts reviews by identifier."""
    forward = serialise_reviews(scored)
    backward = serialise_reviews(reversed(scored))

    assert forward == backward, "Expected identical bytes for any order."
    decoded = json.loads(forward)
    assert [item["review_id"] for item in decoded] == sorted(
        item.review_id for item in scored
    ), "Expected reviews in identifier order."
