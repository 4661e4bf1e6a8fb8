"""Critic-outlet affinity registry.

The registry summarises, for each critic with enough canonical reviews, the
outlets they were attributed to. Critics who spread across several outlets,
or whose primary outlet holds no more than 70% of their reviews, are treated
as freelancers. For everyone else, a review attributed to an outlet holding
less than 10% of a prolific critic's reviews is flagged as a suspicious
attribution.

Examples
--------
>>> registry = build_critic_registry(reviews, IdentityNormaliser())
>>> registry.entries["benbrantley"].primary_outlet
'nytimes'
"""

from __future__ import annotations

import collections
import dataclasses as dc
import typing as typ

from .adapters.normaliser import UNKNOWN, critic_slug
from .domain import Flag, FlagKind, Severity, sorted_flags

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from .adapters.normaliser import IdentityNormaliser
    from .domain import CanonicalReview, JsonMapping

MIN_REVIEWS_FOR_REGISTRY = 3
FREELANCER_OUTLET_THRESHOLD = 3
FREELANCER_DOMINANCE_THRESHOLD = 0.7
SUSPICIOUS_SHARE_THRESHOLD = 0.10
SUSPICIOUS_MIN_REVIEWS = 10


@dc.dataclass(frozen=True, slots=True)
class CriticRegistryEntry:
    """Outlet affinity of one critic.

    Attributes
    ----------
    norm_critic : str
        Normalised critic key.
    slug : str
        Hyphenated slug of the display name.
    display_name : str
        Longest display name observed.
    outlet_counts : Mapping[str, int]
        Canonical review count per outlet.
    total_reviews : int
        Canonical review count.
    primary_outlet : str
        Outlet with the most reviews; ties go to the smaller outlet key.
    primary_share : float
        Share of reviews at the primary outlet.
    is_freelancer : bool
        Whether the critic is treated as writing for several outlets.
    """

    norm_critic: str
    slug: str
    display_name: str
    outlet_counts: cabc.Mapping[str, int]
    total_reviews: int
    primary_outlet: str
    primary_share: float
    is_freelancer: bool

    @property
    def known_outlets(self) -> tuple[str, ...]:
        """Return outlets by descending review count."""
        return tuple(
            outlet
            for outlet, _ in sorted(
                self.outlet_counts.items(),
                key=lambda item: (-item[1], item[0]),
            )
        )

    def share_at(self, outlet: str) -> float:
        """Return the share of reviews attributed to ``outlet``."""
        return self.outlet_counts.get(outlet, 0) / self.total_reviews

    def to_mapping(self) -> JsonMapping:
        """Return the JSON form written to the registry file."""
        return {
            "displayName": self.display_name,
            "slug": self.slug,
            "primaryOutlet": self.primary_outlet,
            "primaryShare": round(self.primary_share, 4),
            "knownOutlets": list(self.known_outlets),
            "outletCounts": dict(sorted(self.outlet_counts.items())),
            "totalReviews": self.total_reviews,
            "isFreelancer": self.is_freelancer,
        }


@dc.dataclass(frozen=True, slots=True)
class CriticRegistry:
    """Registry entries keyed by normalised critic, plus raised flags."""

    entries: cabc.Mapping[str, CriticRegistryEntry]
    flags: tuple[Flag, ...] = ()

    def to_mapping(self) -> JsonMapping:
        """Return the JSON document written alongside the canonical store."""
        return {
            "minReviews": MIN_REVIEWS_FOR_REGISTRY,
            "critics": {
                key: self.entries[key].to_mapping() for key in sorted(self.entries)
            },
        }


def _suspicious_flags(
    entry: CriticRegistryEntry,
    reviews: cabc.Sequence[CanonicalReview],
) -> list[Flag]:
    flags: list[Flag] = []
    for review in reviews:
        outlet = review.identity.norm_outlet
        share = entry.share_at(outlet)
        if share >= SUSPICIOUS_SHARE_THRESHOLD:
            continue
        flags.append(
            Flag(
                kind=FlagKind.SUSPICIOUS_ATTRIBUTION,
                severity=Severity.WARNING,
                explanation=(
                    f"{entry.display_name} is attributed to {outlet} "
                    f"({share:.0%} of {entry.total_reviews} reviews); primary "
                    f"outlet is {entry.primary_outlet} ({entry.primary_share:.0%})."
                ),
                show_ids=(review.show_id,),
                review_ids=(review.review_id,),
                details={
                    "critic": entry.norm_critic,
                    "outlet": outlet,
                    "outlet_share": round(share, 4),
                    "primary_outlet": entry.primary_outlet,
                    "primary_share": round(entry.primary_share, 4),
                    "total_reviews": entry.total_reviews,
                },
            ),
        )
    return flags


def build_critic_registry(
    reviews: cabc.Iterable[CanonicalReview],
    normaliser: IdentityNormaliser,
) -> CriticRegistry:
    """Build the critic registry from canonical reviews.

    Parameters
    ----------
    reviews : Iterable[CanonicalReview]
        Canonical reviews of the whole corpus.
    normaliser : IdentityNormaliser
        Resolves the known-freelancer slugs to critic keys.

    Returns
    -------
    CriticRegistry
        Entries for critics with at least ``MIN_REVIEWS_FOR_REGISTRY``
        reviews and any ``SuspiciousAttribution`` flags.
    """
    freelancers = {
        normaliser.normalise_critic(slug)
        for slug in normaliser.reference.known_freelancers
    }
    by_critic: dict[str, list[CanonicalReview]] = collections.defaultdict(list)
    for review in reviews:
        identity = review.identity
        if UNKNOWN in {identity.norm_outlet, identity.norm_critic}:
            continue
        by_critic[identity.norm_critic].append(review)

    entries: dict[str, CriticRegistryEntry] = {}
    flags: list[Flag] = []
    for norm_critic in sorted(by_critic):
        critic_reviews = sorted(by_critic[norm_critic], key=lambda r: r.review_id)
        total = len(critic_reviews)
        if total < MIN_REVIEWS_FOR_REGISTRY:
            continue
        counts = collections.Counter(r.identity.norm_outlet for r in critic_reviews)
        primary_outlet, primary_count = min(
            counts.items(),
            key=lambda item: (-item[1], item[0]),
        )
        primary_share = primary_count / total
        display_name = max(
            (r.critic_display_name for r in critic_reviews),
            key=lambda name: (len(name), name),
        )
        entry = CriticRegistryEntry(
            norm_critic=norm_critic,
            slug=critic_slug(display_name),
            display_name=display_name,
            outlet_counts=dict(counts),
            total_reviews=total,
            primary_outlet=primary_outlet,
            primary_share=primary_share,
            is_freelancer=(
                norm_critic in freelancers
                or len(counts) >= FREELANCER_OUTLET_THRESHOLD
                or primary_share <= FREELANCER_DOMINANCE_THRESHOLD
            ),
        )
        entries[norm_critic] = entry
        if total >= SUSPICIOUS_MIN_REVIEWS and not entry.is_freelancer:
            flags.extend(_suspicious_flags(entry, critic_reviews))
    return CriticRegistry(entries=entries, flags=tuple(sorted_flags(flags)))


__all__ = (
    "FREELANCER_DOMINANCE_THRESHOLD",
    "FREELANCER_OUTLET_THRESHOLD",
    "MIN_REVIEWS_FOR_REGISTRY",
    "SUSPICIOUS_MIN_REVIEWS",
    "SUSPICIOUS_SHARE_THRESHOLD",
    "CriticRegistry",
    "CriticRegistryEntry",
    "build_critic_registry",
)
