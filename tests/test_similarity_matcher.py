"""Unit tests for the similarity matcher adapter."""

from __future__ import annotations

from scorecard.canonical.adapters.normaliser import UNKNOWN
from scorecard.canonical.adapters.similarity import CriticEntry, SimilarityMatcher
from scorecard.canonical.config import MatchingSettings
from scorecard.canonical.domain import MatchKind


def test_one_edit_apart_is_an_edit_distance_candidate() -> None:
    """Near-identical long names are proposed with a high confidence."""
    matcher = SimilarityMatcher()

    candidate = matcher.compare(
        CriticEntry("nytimes", "jessegreen", "Jesse Green"),
        CriticEntry("nytimes", "jessegreene", "Jesse Greene"),
    )

    assert candidate is not None, "Expected a candidate for names one edit apart."
    assert candidate.kind is MatchKind.EDIT_DISTANCE, (
        "Expected an edit-distance candidate."
    )
    assert candidate.confidence == round(1 - 1 / 11, 4), (
        "Expected confidence to scale with the longer name length."
    )


def test_short_names_are_not_compared_by_edit_distance() -> None:
    """Names below the minimum length never become edit-distance candidates."""
    matcher = SimilarityMatcher()

    candidate = matcher.compare(
        CriticEntry("variety", "alco", "Al Co"),
        CriticEntry("variety", "alcu", "Al Cu"),
    )

    assert candidate is None, "Expected short names to be left alone."


def test_edit_distance_bound_is_configurable() -> None:
    """A tighter bound rejects pairs the default would propose."""
    matcher = SimilarityMatcher(MatchingSettings(max_edit_distance=1))

    candidate = matcher.compare(
        CriticEntry("nypost", "johnnyoleksinski", "Johnny Oleksinski"),
        CriticEntry("nypost", "johnnyoleksinkii", "Johnny Oleksinkii"),
    )

    assert candidate is None, "Expected a two-edit pair to exceed a bound of one."


def test_partial_byline_is_a_partial_name_candidate() -> None:
    """A first-name byline is proposed against the full name at low confidence."""
    matcher = SimilarityMatcher()

    candidate = matcher.compare(
        CriticEntry("ew", "christian", "christian"),
        CriticEntry("ew", "christianholub", "christian-holub"),
    )

    assert candidate is not None, "Expected a partial-name candidate."
    assert candidate.kind is MatchKind.PARTIAL_NAME, "Expected a partial-name match."
    assert candidate.confidence == MatchingSettings().partial_name_confidence, (
        "Expected the configured partial-name confidence."
    )
    assert candidate.pair == frozenset({"christian", "christianholub"}), (
        "Expected the candidate to name both critic keys."
    )


def test_pairs_across_outlets_are_never_proposed() -> None:
    """Similarity is only considered within one outlet."""
    matcher = SimilarityMatcher()

    candidate = matcher.compare(
        CriticEntry("nytimes", "jessegreen", "Jesse Green"),
        CriticEntry("vulture", "jessegreene", "Jesse Greene"),
    )

    assert candidate is None, "Expected no candidate across outlets."


def test_unknown_critics_are_never_proposed() -> None:
    """The unknown placeholder never pairs with a named critic."""
    matcher = SimilarityMatcher()

    candidate = matcher.compare(
        CriticEntry("nytimes", UNKNOWN, ""),
        CriticEntry("nytimes", "unknowns", "Unknowns"),
    )

    assert candidate is None, "Expected the unknown critic to be skipped."


def test_find_candidates_ignores_input_order() -> None:
    """Candidate lists do not depend on the order entries arrive in."""
    matcher = SimilarityMatcher()
    entries = [
        CriticEntry("ew", "christianholub", "Christian Holub"),
        CriticEntry("ew", "christian", "Christian"),
        CriticEntry("nytimes", "jessegreene", "Jesse Greene"),
        CriticEntry("nytimes", "jessegreen", "Jesse Green"),
        CriticEntry("nytimes", "jessegreen", "JESSE GREEN"),
    ]

    forward = matcher.find_candidates(entries)
    backward = matcher.find_candidates(reversed(entries))

    assert forward == backward, "Expected identical candidates for any input order."
    assert [c.kind for c in forward] == [
        MatchKind.PARTIAL_NAME,
        MatchKind.EDIT_DISTANCE,
    ], "Expected one candidate per outlet, outlets in sorted order."
