"""Unit tests for the identity normaliser adapter."""

from __future__ import annotations

import pytest
from _reconciliation_helpers import _make_source_record

from scorecard.canonical.adapters.normaliser import (
    UNKNOWN,
    IdentityNormaliser,
    critic_slug,
    normalise_url,
    url_host,
)
from scorecard.canonical.domain import NormalizedIdentity
from scorecard.canonical.errors import ReferenceDataError
from scorecard.canonical.reference import ReferenceData


@pytest.mark.parametrize(
    "raw",
    ["NYT", "nytimes", "The New York Times", "new-york-times", "  NY Times  "],
)
def test_outlet_spellings_resolve_to_one_key(
    normaliser: IdentityNormaliser,
    raw: str,
) -> None:
    """Alias spellings of an outlet share the canonical key."""
    assert normaliser.normalise_outlet(raw) == "nytimes", (
        f"Expected {raw!r} to resolve to the nytimes outlet key."
    )


@pytest.mark.parametrize(
    "raw",
    ["Ben Brantley", "ben-brantley", "BEN BRANTLEY", "By Ben Brantley"],
)
def test_critic_spellings_resolve_to_one_key(
    normaliser: IdentityNormaliser,
    raw: str,
) -> None:
    """Case, hyphens and a leading byline do not change the critic key."""
    assert normaliser.normalise_critic(raw) == "benbrantley", (
        f"Expected {raw!r} to resolve to the benbrantley critic key."
    )


def test_critic_alias_table_corrects_known_typos(
    normaliser: IdentityNormaliser,
) -> None:
    """Manual critic aliases map typos onto the canonical spelling."""
    assert normaliser.normalise_critic("Johnny Oleksinki") == "johnnyoleksinski", (
        "Expected the alias table to correct a known critic typo."
    )


def test_accents_are_folded(normaliser: IdentityNormaliser) -> None:
    """Accented letters normalise to their unaccented form."""
    assert normaliser.normalise_critic("Héloïse Ménard") == "heloisemenard", (
        "Expected accents to be folded away."
    )


@pytest.mark.parametrize("raw", [None, "", "   ", "!!!", "…", "☆"])
def test_normalisation_is_total(
    normaliser: IdentityNormaliser,
    raw: str | None,
) -> None:
    """Any input yields a non-empty key without raising."""
    outlet = normaliser.normalise_outlet(raw)
    critic = normaliser.normalise_critic(raw)

    assert outlet, "Expected a non-empty outlet key for every input."
    assert critic, "Expected a non-empty critic key for every input."


def test_missing_values_normalise_to_unknown(normaliser: IdentityNormaliser) -> None:
    """Absent or blank names map onto the shared unknown key."""
    assert normaliser.normalise_outlet(None) == UNKNOWN, (
        "Expected a missing outlet to normalise to the unknown key."
    )
    assert normaliser.normalise_critic("  ") == UNKNOWN, (
        "Expected a blank critic to normalise to the unknown key."
    )


def test_identity_prefers_registry_outlet_id(normaliser: IdentityNormaliser) -> None:
    """A collector-supplied outlet id beats the raw outlet string."""
    record = _make_source_record(raw_outlet="Some Syndicated Copy", outlet_id="NYT")

    identity = normaliser.identity(record)

    assert identity == NormalizedIdentity("hamilton-2015", "nytimes", "benbrantley"), (
        "Expected the outlet id to drive the normalised outlet."
    )


def test_unknown_outlet_display_name_falls_back(
    normaliser: IdentityNormaliser,
) -> None:
    """Unregistered outlets use the raw name, then the key."""
    assert normaliser.outlet_display_name("nytimes") == "The New York Times", (
        "Expected the registered display name."
    )
    assert normaliser.outlet_display_name("smallblog", "Small Blog") == "Small Blog", (
        "Expected the raw outlet name when nothing is registered."
    )
    assert normaliser.outlet_display_name("smallblog") == "smallblog", (
        "Expected the outlet key as the last resort."
    )


def test_conflicting_aliases_are_rejected() -> None:
    """Two outlets claiming the same spelling fail fast."""
    reference = ReferenceData(
        outlet_aliases={"nytimes": ("nyt",), "nyt-theater": ("NYT",)},
        critic_aliases={},
        outlet_display_names={},
        outlet_domains={},
    )

    with pytest.raises(ReferenceDataError, match="resolves to both"):
        IdentityNormaliser(reference)


def test_critic_slug_keeps_word_boundaries() -> None:
    """Slugs are hyphenated so partial bylines stay detectable."""
    assert critic_slug("Christian Holub") == "christian-holub", (
        "Expected a hyphenated slug."
    )
    assert critic_slug("by  Christian") == "christian", (
        "Expected the byline prefix to be dropped."
    )


def test_url_normalisation_ignores_scheme_www_and_fragment() -> None:
    """URL keys compare equal across cosmetic differences."""
    left = normalise_url("https://www.nytimes.com/2015/review.html#comments")
    right = normalise_url("http://nytimes.com/2015/review.html/")

    assert left == right == "nytimes.com/2015/review.html", (
        "Expected cosmetic URL differences to normalise away."
    )
    assert normalise_url("   ") is None, "Expected blank URLs to normalise to None."
    assert url_host("https://www.variety.com:443/path") == "variety.com", (
        "Expected the host without www or port."
    )
