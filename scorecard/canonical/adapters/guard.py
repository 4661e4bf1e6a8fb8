"""Cross-entity guard adapter.

The guard runs after every show has been resolved and inspects the canonical
reviews of the whole corpus. It raises:

* one critical ``CrossEntityViolation`` per normalised URL that backs reviews
  in more than one show, naming every show involved,
* a critical ``CrossEntityViolation`` when two reviews of one show share an
  identity, unless they are the pieces of one ambiguous-cluster split (which
  already carry an ``AmbiguousCluster`` flag),
* an ``OutletDomainMismatch`` warning when a review URL is not on any domain
  registered for its outlet.

The guard never drops or rewrites reviews; it only reports.
"""

from __future__ import annotations

import typing as typ

from scorecard.canonical.domain import (
    CanonicalReview,
    Flag,
    FlagKind,
    NormalizedIdentity,
    Severity,
    sorted_flags,
)

from .normaliser import normalise_url, url_host

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from .normaliser import IdentityNormaliser

_MIN_SHARED = 2


def _host_matches(host: str, domains: cabc.Iterable[str]) -> bool:
    return any(host == domain or host.endswith(f".{domain}") for domain in domains)


class CrossEntityGuard:
    """Check corpus-wide invariants over canonical reviews.

    Parameters
    ----------
    normaliser : IdentityNormaliser
        Supplies the reference outlet domains.
    """

    def __init__(self, normaliser: IdentityNormaliser) -> None:
        self._normaliser = normaliser

    @staticmethod
    def cross_show_urls(reviews: cabc.Iterable[CanonicalReview]) -> list[Flag]:
        """Flag every URL that backs reviews of more than one show."""
        owners: dict[str, dict[str, CanonicalReview]] = {}
        for review in reviews:
            keys = {normalise_url(url) for url in review.all_urls} - {None}
            for key in typ.cast("set[str]", keys):
                owners.setdefault(key, {})[review.review_id] = review

        flags: list[Flag] = []
        for url_key in sorted(owners):
            backing = owners[url_key]
            shows = tuple(sorted({review.show_id for review in backing.values()}))
            if len(shows) < _MIN_SHARED:
                continue
            flags.append(
                Flag(
                    kind=FlagKind.CROSS_ENTITY_VIOLATION,
                    severity=Severity.CRITICAL,
                    explanation=(
                        f"URL {url_key} backs reviews in {len(shows)} shows: "
                        f"{', '.join(shows)}."
                    ),
                    show_ids=shows,
                    review_ids=tuple(sorted(backing)),
                    details={"check": "cross_show_url", "url": url_key},
                ),
            )
        return flags

    @staticmethod
    def duplicate_identities(reviews: cabc.Iterable[CanonicalReview]) -> list[Flag]:
        """Flag identities held by more than one review of a show."""
        by_identity: dict[NormalizedIdentity, list[CanonicalReview]] = {}
        for review in reviews:
            by_identity.setdefault(review.identity, []).append(review)

        flags: list[Flag] = []
        for identity in sorted(by_identity):
            holders = by_identity[identity]
            if len(holders) < _MIN_SHARED:
                continue
            split_sources = {review.split_from for review in holders}
            if len(split_sources) == 1 and None not in split_sources:
                continue
            flags.append(
                Flag(
                    kind=FlagKind.CROSS_ENTITY_VIOLATION,
                    severity=Severity.CRITICAL,
                    explanation=(
                        f"{len(holders)} canonical reviews share identity "
                        f"{identity.norm_outlet}/{identity.norm_critic} "
                        f"in show {identity.show_id}."
                    ),
                    show_ids=(identity.show_id,),
                    review_ids=tuple(sorted(r.review_id for r in holders)),
                    details={"check": "duplicate_identity", "identity": identity.key},
                ),
            )
        return flags

    def outlet_domain_mismatches(
        self,
        reviews: cabc.Iterable[CanonicalReview],
    ) -> list[Flag]:
        """Flag review URLs hosted outside their outlet's registered domains."""
        reference = self._normaliser.reference
        flags: list[Flag] = []
        for review in reviews:
            domains = reference.domains_for(review.identity.norm_outlet)
            if not domains:
                continue
            for url in review.all_urls:
                host = url_host(url)
                if host is None or _host_matches(host, domains):
                    continue
                flags.append(
                    Flag(
                        kind=FlagKind.OUTLET_DOMAIN_MISMATCH,
                        severity=Severity.WARNING,
                        explanation=(
                            f"Review URL host {host} is not a registered domain "
                            f"of {review.identity.norm_outlet} "
                            f"(expected {', '.join(domains)})."
                        ),
                        show_ids=(review.show_id,),
                        review_ids=(review.review_id,),
                        details={"url": url, "expected_domains": list(domains)},
                    ),
                )
        return flags

    def check(self, reviews: cabc.Sequence[CanonicalReview]) -> list[Flag]:
        """Run every guard check over the full corpus of reviews.

        Parameters
        ----------
        reviews : Sequence[CanonicalReview]
            Canonical reviews of every show, after fan-in.

        Returns
        -------
        list[Flag]
            Guard flags in stable report order.
        """
        return sorted_flags([
            *self.cross_show_urls(reviews),
            *self.duplicate_identities(reviews),
            *self.outlet_domain_mismatches(reviews),
        ])


__all__ = ("CrossEntityGuard",)
