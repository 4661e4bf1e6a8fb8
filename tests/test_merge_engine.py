"""Unit tests for the cluster merge engine adapter."""

from __future__ import annotations

import datetime as dt
import random

import pytest
from _reconciliation_helpers import _make_source_record

from scorecard.canonical.adapters.normaliser import IdentityNormaliser
from scorecard.canonical.adapters.resolver import ClusterMergeEngine
from scorecard.canonical.adapters.similarity import SimilarityMatcher
from scorecard.canonical.domain import (
    Excerpt,
    FlagKind,
    MatchKind,
    NormalizedIdentity,
    Severity,
)


@pytest.fixture
def engine(normaliser: IdentityNormaliser) -> ClusterMergeEngine:
    """Return a merge engine with default matching settings."""
    return ClusterMergeEngine(normaliser, SimilarityMatcher())


def test_exact_duplicate_collapses_to_one_review(engine: ClusterMergeEngine) -> None:
    """Two spellings of one critic at one outlet become a single review."""
    records = [
        _make_source_record(record_id="a", raw_outlet="NYT", source="dtli"),
        _make_source_record(
            record_id="b",
            raw_outlet="nytimes",
            raw_critic="ben-brantley",
            source="bww",
        ),
    ]

    resolution = engine.resolve_show("hamilton-2015", records)

    assert len(resolution.reviews) == 1, "Expected the duplicates to collapse."
    review = resolution.reviews[0]
    assert review.identity == NormalizedIdentity(
        "hamilton-2015", "nytimes", "benbrantley"
    ), "Expected the normalised identity of both records."
    assert review.review_id == "hamilton-2015:nytimes--benbrantley", (
        "Expected the review id to derive from the identity."
    )
    assert review.sources == ("bww", "dtli"), "Expected both collectors recorded."
    assert review.member_keys == ("a", "b"), "Expected members in record-key order."
    assert {reason.kind for reason in review.match_reasons} == {
        MatchKind.EXACT_IDENTITY,
        MatchKind.SHARED_URL,
    }, "Expected the audit trail to record identity and URL links."
    assert review.outlet_display_name == "The New York Times", (
        "Expected the registered outlet display name."
    )


def test_merge_keeps_longest_text_and_every_url(engine: ClusterMergeEngine) -> None:
    """Merged reviews keep the richest text and list alternate URLs."""
    records = [
        _make_source_record(
            record_id="a",
            url="https://www.nytimes.com/review-a",
            full_text="Short.",
            excerpts=(Excerpt("dtli", "Thrilling."),),
        ),
        _make_source_record(
            record_id="b",
            outlet_id="nytimes",
            url="https://www.nytimes.com/review-b",
            full_text="A much longer review body.",
            excerpts=(Excerpt("dtli", "Thrilling and joyous."), Excerpt("bww", "Wow.")),
        ),
    ]

    review = engine.resolve_show("hamilton-2015", records).reviews[0]

    assert review.url == "https://www.nytimes.com/review-a", (
        "Expected the first member's URL to be preferred."
    )
    assert review.alternate_urls == ("https://www.nytimes.com/review-b",), (
        "Expected the other URL to be kept as an alternate."
    )
    assert review.full_text == "A much longer review body.", (
        "Expected the longest full text."
    )
    assert review.excerpts == (
        Excerpt("bww", "Wow."),
        Excerpt("dtli", "Thrilling and joyous."),
    ), "Expected the longest excerpt per collector tag, tags sorted."
    assert review.outlet_id == "nytimes", "Expected the explicit registry outlet id."


def test_partial_byline_is_flagged_not_merged(engine: ClusterMergeEngine) -> None:
    """A first-name byline stays separate and is flagged for review."""
    records = [
        _make_source_record(
            record_id="a",
            raw_outlet="Entertainment Weekly",
            raw_critic="christian",
            url="https://ew.com/a",
        ),
        _make_source_record(
            record_id="b",
            raw_outlet="Entertainment Weekly",
            raw_critic="christian-holub",
            url="https://ew.com/b",
        ),
    ]

    resolution = engine.resolve_show("hamilton-2015", records)

    assert len(resolution.reviews) == 2, "Expected the partial byline not to merge."
    partial = [f for f in resolution.flags if f.kind is FlagKind.PARTIAL_NAME]
    assert len(partial) == 1, "Expected one partial-name flag."
    assert partial[0].severity is Severity.INFO, "Expected an info-level flag."
    assert partial[0].details["critics"] == ["christian", "christianholub"], (
        "Expected the flag to name both critic keys."
    )


def test_confident_similarity_merges_with_audit_flag(
    engine: ClusterMergeEngine,
) -> None:
    """A one-letter typo above the confidence floor merges and is recorded."""
    records = [
        _make_source_record(
            record_id=key, raw_outlet="Vulture", raw_critic=name, url=None
        )
        for key, name in (
            ("a", "Jesse Green"),
            ("b", "Jesse Green"),
            ("c", "Jesse Greene"),
        )
    ]

    resolution = engine.resolve_show("hamilton-2015", records)

    assert [r.review_id for r in resolution.reviews] == [
        "hamilton-2015:vulture--jessegreen"
    ], "Expected one review under the most frequent spelling."
    kinds = [flag.kind for flag in resolution.flags]
    assert kinds == [FlagKind.SIMILARITY_MERGE], "Expected the merge to be recorded."
    assert any(
        reason.kind is MatchKind.EDIT_DISTANCE
        for reason in resolution.reviews[0].match_reasons
    ), "Expected an edit-distance link in the audit trail."


def test_shared_url_between_unrelated_critics_is_split(
    engine: ClusterMergeEngine,
) -> None:
    """A URL shared by two unrelated critics is split and flagged ambiguous."""
    records = [
        _make_source_record(record_id="a"),
        _make_source_record(record_id="b", raw_critic="Jesse Green"),
    ]

    resolution = engine.resolve_show("hamilton-2015", records)

    assert len(resolution.reviews) == 2, "Expected the conflicting cluster to split."
    split_from = {review.split_from for review in resolution.reviews}
    assert len(split_from) == 1, "Expected both pieces to share one ambiguous id."
    assert None not in split_from, "Expected the pieces to record the split."
    ambiguous = [f for f in resolution.flags if f.kind is FlagKind.AMBIGUOUS_CLUSTER]
    assert len(ambiguous) == 1, "Expected one ambiguous-cluster flag."
    assert ambiguous[0].details["unexplained_critics"] == [
        "benbrantley",
        "jessegreen",
    ], "Expected the flag to name the unlinked critics."


def test_split_pieces_are_checked_for_conflicts_again(
    engine: ClusterMergeEngine,
) -> None:
    """A critic's conflicting records stay apart when another critic links them."""
    records = [
        _make_source_record(
            record_id="a1",
            url="https://nytimes.com/x",
            publish_date=dt.date(2015, 8, 7),
        ),
        _make_source_record(
            record_id="a2",
            url="https://nytimes.com/y",
            publish_date=dt.date(2021, 9, 15),
        ),
        _make_source_record(
            record_id="b",
            raw_critic="Jesse Green",
            url="https://nytimes.com/x",
        ),
    ]

    resolution = engine.resolve_show("hamilton-2015", records)

    assert [review.review_id for review in resolution.reviews] == [
        "hamilton-2015:nytimes--benbrantley#1",
        "hamilton-2015:nytimes--benbrantley#2",
        "hamilton-2015:nytimes--jessegreen",
    ], "Expected every conflicting piece kept as its own review."
    assert [review.member_keys for review in resolution.reviews] == [
        ("a1",),
        ("a2",),
        ("b",),
    ], "Expected no review to merge records that disagree on URL and year."
    ambiguous = [f for f in resolution.flags if f.kind is FlagKind.AMBIGUOUS_CLUSTER]
    assert len(ambiguous) == 1, "Expected one ambiguous-cluster flag."
    assert ambiguous[0].details["shared_urls"] == ["nytimes.com/x"], (
        "Expected the flag to name the URL backing two split reviews."
    )


def test_resolution_ignores_record_order(engine: ClusterMergeEngine) -> None:
    """Shuffled input produces an identical resolution."""
    records = [
        _make_source_record(record_id="a", raw_outlet="NYT"),
        _make_source_record(record_id="b", raw_critic="ben-brantley"),
        _make_source_record(record_id="c", raw_critic="Jesse Green", url=None),
        _make_source_record(record_id="d", raw_critic="christian", url=None),
        _make_source_record(record_id="e", raw_critic="Christian Holub", url=None),
    ]
    shuffled = list(records)
    random.Random(7).shuffle(shuffled)

    assert engine.resolve_show("hamilton-2015", records) == engine.resolve_show(
        "hamilton-2015", reversed(shuffled)
    ), "Expected the resolution not to depend on record order."


def test_records_from_another_show_are_rejected(engine: ClusterMergeEngine) -> None:
    """A record for a different show is a caller error."""
    with pytest.raises(ValueError, match="belongs to show"):
        engine.resolve_show("cats-1982", [_make_source_record(record_id="a")])


def test_empty_show_resolves_to_nothing(engine: ClusterMergeEngine) -> None:
    """A show without records yields no clusters, reviews or flags."""
    resolution = engine.resolve_show("hamilton-2015", [])

    assert resolution.reviews == (), "Expected no reviews."
    assert resolution.flags == (), "Expected no flags."
