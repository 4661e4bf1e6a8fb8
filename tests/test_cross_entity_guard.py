"""Unit tests for the cross-entity guard adapter."""

from __future__ import annotations

import pytest
from _reconciliation_helpers import _make_review

from scorecard.canonical.adapters.guard import CrossEntityGuard
from scorecard.canonical.adapters.normaliser import IdentityNormaliser
from scorecard.canonical.domain import FlagKind, Severity

_CATS_URL = "https://www.nytimes.com/1982/10/08/theater/cats.html"


@pytest.fixture
def guard(normaliser: IdentityNormaliser) -> CrossEntityGuard:
    """Return a guard over the built-in reference data."""
    return CrossEntityGuard(normaliser)


def test_url_shared_across_shows_is_one_violation(guard: CrossEntityGuard) -> None:
    """A URL backing reviews of two shows yields exactly one critical flag."""
    reviews = [
        _make_review(show_id="cats-1982", url=_CATS_URL),
        _make_review(show_id="cats-the-jellicle-ball", url=_CATS_URL),
        _make_review(
            show_id="cats-the-jellicle-ball",
            norm_critic="jessegreen",
            url="http://nytimes.com/1982/10/08/theater/cats.html/",
        ),
    ]

    flags = guard.check(reviews)

    violations = [f for f in flags if f.kind is FlagKind.CROSS_ENTITY_VIOLATION]
    assert len(violations) == 1, "Expected one violation for the shared URL."
    assert violations[0].severity is Severity.CRITICAL, "Expected a critical flag."
    assert violations[0].show_ids == ("cats-1982", "cats-the-jellicle-ball"), (
        "Expected the flag to name both shows."
    )
    assert len(violations[0].review_ids) == 3, "Expected every backing review named."
    assert violations[0].details["check"] == "cross_show_url", (
        "Expected the cross-show check to be recorded."
    )


def test_alternate_urls_are_checked(guard: CrossEntityGuard) -> None:
    """A URL held only as an alternate still counts."""
    reviews = [
        _make_review(show_id="cats-1982", url=_CATS_URL),
        _make_review(
            show_id="cats-the-jellicle-ball",
            url="https://www.nytimes.com/2024/jellicle.html",
            alternate_urls=(_CATS_URL,),
        ),
    ]

    flags = guard.cross_show_urls(reviews)

    assert len(flags) == 1, "Expected the alternate URL to trigger a violation."


def test_url_within_one_show_is_not_a_violation(guard: CrossEntityGuard) -> None:
    """Sharing a URL inside a single show is the merge engine's concern."""
    reviews = [
        _make_review(url=_CATS_URL),
        _make_review(norm_critic="jessegreen", url=_CATS_URL),
    ]

    assert guard.cross_show_urls(reviews) == [], (
        "Expected no cross-show violation within one show."
    )


def test_duplicate_identity_is_a_violation(guard: CrossEntityGuard) -> None:
    """Two reviews of one show with the same identity are flagged."""
    reviews = [
        _make_review(review_id="hamilton-2015:nytimes--benbrantley#1"),
        _make_review(review_id="hamilton-2015:nytimes--benbrantley#2"),
    ]

    flags = guard.duplicate_identities(reviews)

    assert len(flags) == 1, "Expected one duplicate-identity violation."
    assert flags[0].details["check"] == "duplicate_identity", (
        "Expected the duplicate-identity check to be recorded."
    )


def test_pieces_of_one_split_are_not_duplicates(guard: CrossEntityGuard) -> None:
    """Pieces of an ambiguous split are already flagged and are skipped."""
    reviews = [
        _make_review(review_id="r#1", split_from="hamilton-2015~abc"),
        _make_review(review_id="r#2", split_from="hamilton-2015~abc"),
    ]

    assert guard.duplicate_identities(reviews) == [], (
        "Expected split pieces to be exempt."
    )


def test_url_outside_outlet_domains_is_flagged(guard: CrossEntityGuard) -> None:
    """A review URL off the outlet's registered domains is a warning."""
    reviews = [
        _make_review(url="https://www.broadwayworld.com/nyt-copy"),
        _make_review(norm_critic="jessegreen", url="https://theater.nytimes.com/x"),
        _make_review(norm_outlet="smallblog", url="https://example.org/x"),
    ]

    flags = guard.outlet_domain_mismatches(reviews)

    assert [f.kind for f in flags] == [FlagKind.OUTLET_DOMAIN_MISMATCH], (
        "Expected only the off-domain URL to be flagged."
    )
    assert flags[0].severity is Severity.WARNING, "Expected a warning."
    assert flags[0].details["url"] == "https://www.broadwayworld.com/nyt-copy", (
        "Expected the offending URL in the flag details."
    )
