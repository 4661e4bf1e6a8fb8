"""Reference merge engine adapter.

The merge engine resolves one show's source records into canonical reviews.
Records are linked into clusters with a union-find over three kinds of
evidence, each recorded as a ``MatchReason``:

* identical normalised identity,
* an identical normalised URL,
* a similarity candidate at or above the merge confidence floor.

Each cluster is then checked for conflicting facets. A cluster whose
disputed facets outnumber its shared facets, or that joins two named critics
no similarity candidate connects, is split back apart by identity and
flagged as ambiguous instead of being merged.

Members are always processed in ``record_key`` order, so the outcome does not
depend on the order records arrived in.

Examples
--------
Resolve the records of one show:

>>> engine = ClusterMergeEngine(IdentityNormaliser(), SimilarityMatcher())
>>> resolution = engine.resolve_show("hamilton-2015", records)
>>> [review.review_id for review in resolution.reviews]
['hamilton-2015:nytimes--benbrantley']
"""

from __future__ import annotations

import collections
import dataclasses as dc
import hashlib
import typing as typ

from scorecard.canonical.config import MatchingSettings
from scorecard.canonical.domain import (
    CanonicalReview,
    ContributedIndicators,
    DuplicateCluster,
    Excerpt,
    Flag,
    FlagKind,
    MatchKind,
    MatchReason,
    NormalizedIdentity,
    Severity,
    SimilarityCandidate,
    SourceRecord,
    sorted_flags,
)

from .normaliser import UNKNOWN, IdentityNormaliser, normalise_url
from .similarity import CriticEntry, SimilarityMatcher

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt


class _UnionFind[T]:
    """Disjoint sets whose representative is the smallest member."""

    def __init__(self, items: cabc.Iterable[T]) -> None:
        self._parent: dict[T, T] = {item: item for item in items}

    def find(self, item: T) -> T:
        root = item
        while self._parent[root] != root:
            root = self._parent[root]
        while self._parent[item] != root:
            self._parent[item], item = root, self._parent[item]
        return root

    def union(self, left: T, right: T) -> bool:
        left_root = self.find(left)
        right_root = self.find(right)
        if left_root == right_root:
            return False
        low, high = sorted((left_root, right_root))
        self._parent[high] = low
        return True

    def groups(self) -> list[list[T]]:
        grouped: dict[T, list[T]] = {}
        for item in self._parent:
            grouped.setdefault(self.find(item), []).append(item)
        return list(grouped.values())


@dc.dataclass(frozen=True, slots=True)
class _Member:
    """A record with the keys derived from it."""

    index: int
    record: SourceRecord
    identity: NormalizedIdentity
    url_key: str | None

    @property
    def key(self) -> str:
        return self.record.record_key

    @property
    def year(self) -> int | None:
        date: dt.date | None = self.record.publish_date
        return date.year if date is not None else None


@dc.dataclass(frozen=True, slots=True)
class _FacetTally:
    """Shared and disputed facets of one candidate cluster."""

    shared: tuple[str, ...]
    disputed: tuple[str, ...]
    unexplained_critics: tuple[str, ...]

    @property
    def conflicting(self) -> bool:
        return bool(self.unexplained_critics) or len(self.disputed) > len(self.shared)


@dc.dataclass(frozen=True, slots=True)
class ShowResolution:
    """Outcome of resolving one show.

    Attributes
    ----------
    show_id : str
        Show that was resolved.
    clusters : tuple[DuplicateCluster, ...]
        Final clusters, one per canonical review.
    reviews : tuple[CanonicalReview, ...]
        Canonical reviews ordered by review id.
    flags : tuple[Flag, ...]
        Ambiguity and similarity flags raised while resolving.
    """

    show_id: str
    clusters: tuple[DuplicateCluster, ...]
    reviews: tuple[CanonicalReview, ...]
    flags: tuple[Flag, ...]


def _choose_preferred(values: cabc.Iterable[str]) -> str | None:
    """Pick the most frequent value, then the longest, then the smallest."""
    counts = collections.Counter(values)
    if not counts:
        return None
    return min(counts, key=lambda value: (-counts[value], -len(value), value))


def _cluster_id(show_id: str, members: cabc.Sequence[_Member]) -> str:
    digest = hashlib.sha256(
        "\n".join(member.key for member in members).encode("utf-8"),
    ).hexdigest()
    return f"{show_id}~{digest[:12]}"


def _longest_text(values: cabc.Iterable[str | None]) -> str | None:
    best: str | None = None
    for value in values:
        if value and (best is None or len(value) > len(best)):
            best = value
    return best


def _merge_excerpts(members: cabc.Sequence[_Member]) -> tuple[Excerpt, ...]:
    longest: dict[str, Excerpt] = {}
    for member in members:
        for excerpt in member.record.excerpts:
            current = longest.get(excerpt.source_tag)
            if current is None or len(excerpt.text) > len(current.text):
                longest[excerpt.source_tag] = excerpt
    return tuple(longest[tag] for tag in sorted(longest))


def _merge_urls(members: cabc.Sequence[_Member]) -> tuple[str | None, tuple[str, ...]]:
    seen: dict[str, str] = {}
    for member in members:
        if member.url_key is not None and member.record.url is not None:
            seen.setdefault(member.url_key, member.record.url)
    urls = list(seen.values())
    if not urls:
        return (None, ())
    return (urls[0], tuple(urls[1:]))


def _first_date(members: cabc.Sequence[_Member]) -> dt.date | None:
    return next(
        (m.record.publish_date for m in members if m.record.publish_date is not None),
        None,
    )


def _single_shared(values: list[object]) -> bool | None:
    """Return True when shared, False when disputed and None when silent."""
    distinct = set(values)
    if len(distinct) > 1:
        return False
    if len(distinct) == 1 and len(values) > 1:
        return True
    return None


class ClusterMergeEngine:
    """Cluster, check and merge one show's records into canonical reviews.

    Parameters
    ----------
    normaliser : IdentityNormaliser
        Identity normaliser used for outlet, critic and URL keys.
    matcher : SimilarityMatcher
        Matcher proposing same-critic pairs.
    settings : MatchingSettings | None
        Matching bounds, chiefly the merge confidence floor.
    """

    def __init__(
        self,
        normaliser: IdentityNormaliser,
        matcher: SimilarityMatcher,
        settings: MatchingSettings | None = None,
    ) -> None:
        self._normaliser = normaliser
        self._matcher = matcher
        self._settings = settings if settings is not None else MatchingSettings()

    def _members(
        self,
        show_id: str,
        records: cabc.Iterable[SourceRecord],
    ) -> list[_Member]:
        ordered = sorted(
            records,
            key=lambda record: (record.record_key, record.content_fingerprint()),
        )
        members: list[_Member] = []
        for index, record in enumerate(ordered):
            if record.show_id != show_id:
                msg = (
                    f"Record {record.record_key!r} belongs to show "
                    f"{record.show_id!r}, not {show_id!r}."
                )
                raise ValueError(msg)
            members.append(
                _Member(
                    index=index,
                    record=record,
                    identity=self._normaliser.identity(record),
                    url_key=normalise_url(record.url),
                ),
            )
        return members

    def _link(
        self,
        members: list[_Member],
        merged_candidates: list[SimilarityCandidate],
    ) -> tuple[_UnionFind[int], list[tuple[int, int, MatchReason]]]:
        by_identity: dict[NormalizedIdentity, list[_Member]] = {}
        by_url: dict[str, list[_Member]] = {}
        for member in members:
            by_identity.setdefault(member.identity, []).append(member)
            if member.url_key is not None:
                by_url.setdefault(member.url_key, []).append(member)

        pairs: list[tuple[_Member, _Member, MatchKind, float, str]] = []
        for identity, group in by_identity.items():
            detail = f"identical identity {identity.norm_outlet}/{identity.norm_critic}"
            pairs.extend(
                (group[0], other, MatchKind.EXACT_IDENTITY, 1.0, detail)
                for other in group[1:]
            )
        for url_key, group in sorted(by_url.items()):
            pairs.extend(
                (group[0], other, MatchKind.SHARED_URL, 1.0, f"shared url {url_key}")
                for other in group[1:]
            )
        show_id = members[0].identity.show_id
        for candidate in merged_candidates:
            left = by_identity.get(
                NormalizedIdentity(
                    show_id, candidate.norm_outlet, candidate.left_critic
                ),
            )
            right = by_identity.get(
                NormalizedIdentity(
                    show_id, candidate.norm_outlet, candidate.right_critic
                ),
            )
            if left and right:
                pairs.append(
                    (
                        left[0],
                        right[0],
                        candidate.kind,
                        candidate.confidence,
                        candidate.detail,
                    ),
                )

        sets = _UnionFind(member.index for member in members)
        links: list[tuple[int, int, MatchReason]] = []
        for left_member, right_member, kind, confidence, detail in pairs:
            sets.union(left_member.index, right_member.index)
            reason = MatchReason(
                kind=kind,
                left_key=left_member.key,
                right_key=right_member.key,
                confidence=confidence,
                detail=detail,
            )
            links.append((left_member.index, right_member.index, reason))
        return (sets, links)

    @staticmethod
    def _tally(
        group: list[_Member],
        candidates: list[SimilarityCandidate],
    ) -> _FacetTally:
        outlets = [member.identity.norm_outlet for member in group]
        critics = sorted({
            member.identity.norm_critic
            for member in group
            if member.identity.norm_critic != UNKNOWN
        })
        shared: list[str] = []
        disputed: list[str] = []
        unexplained: tuple[str, ...] = ()

        if len(set(outlets)) == 1 and len(critics) <= 1:
            shared.append("identity")
        else:
            (shared if len(set(outlets)) == 1 else disputed).append("outlet")
            if len(critics) <= 1:
                shared.append("critic")
            else:
                components = _UnionFind(critics)
                for candidate in candidates:
                    if candidate.pair <= set(critics):
                        components.union(candidate.left_critic, candidate.right_critic)
                if len(components.groups()) > 1:
                    unexplained = tuple(critics)

        url_state = _single_shared([m.url_key for m in group if m.url_key is not None])
        year_state = _single_shared([m.year for m in group if m.year is not None])
        for facet, state in (("url", url_state), ("publish_year", year_state)):
            if state is True:
                shared.append(facet)
            elif state is False:
                disputed.append(facet)
        return _FacetTally(tuple(shared), tuple(disputed), unexplained)

    @staticmethod
    def _critic_representatives(
        merged_candidates: list[SimilarityCandidate],
        critic_counts: collections.Counter[str],
    ) -> dict[str, str]:
        """Map each critic key to the preferred key of its merged group."""
        components = _UnionFind(sorted(critic_counts))
        for candidate in merged_candidates:
            if candidate.pair <= critic_counts.keys():
                components.union(candidate.left_critic, candidate.right_critic)
        representatives: dict[str, str] = {}
        for group in components.groups():
            preferred = _choose_preferred(
                critic for critic in group for _ in range(critic_counts[critic])
            )
            for critic in group:
                representatives[critic] = preferred or critic
        return representatives

    @staticmethod
    def _split(
        group: list[_Member],
        representatives: dict[str, str],
    ) -> list[list[_Member]]:
        """Split a conflicting cluster back into per-identity pieces."""
        pieces: dict[tuple[str, str], list[_Member]] = {}
        unattached: list[_Member] = []
        for member in group:
            critic = member.identity.norm_critic
            if critic == UNKNOWN:
                unattached.append(member)
                continue
            key = (member.identity.norm_outlet, representatives.get(critic, critic))
            pieces.setdefault(key, []).append(member)

        for member in unattached:
            matches = [
                key
                for key, piece in pieces.items()
                if member.url_key is not None
                and any(other.url_key == member.url_key for other in piece)
            ]
            if len(matches) == 1:
                pieces[matches[0]].append(member)
            else:
                pieces.setdefault((member.identity.norm_outlet, UNKNOWN), []).append(
                    member,
                )

        if len(pieces) > 1:
            return [sorted(piece, key=lambda m: m.index) for piece in pieces.values()]

        for attribute in ("url_key", "year"):
            by_value: dict[object, list[_Member]] = {}
            missing: list[_Member] = []
            for member in group:
                value = getattr(member, attribute)
                if value is None:
                    missing.append(member)
                else:
                    by_value.setdefault(value, []).append(member)
            if len(by_value) > 1:
                first = next(iter(by_value.values()))
                first.extend(missing)
                return [
                    sorted(piece, key=lambda m: m.index) for piece in by_value.values()
                ]
        return [group]

    @classmethod
    def _split_conflicts(
        cls,
        group: list[_Member],
        candidates: list[SimilarityCandidate],
        representatives: dict[str, str],
    ) -> list[list[_Member]]:
        """Split a conflicting cluster until no remaining piece conflicts.

        Every piece produced by ``_split`` is tallied again, so records of
        one critic that disagree on URL and publish year are never held
        together by a third critic that shared one of their URLs.
        """
        pending = [group]
        settled: list[list[_Member]] = []
        while pending:
            piece = pending.pop()
            if len(piece) > 1 and cls._tally(piece, candidates).conflicting:
                split = cls._split(piece, representatives)
                if len(split) > 1:
                    pending.extend(split)
                    continue
            settled.append(piece)
        return sorted(settled, key=lambda piece: piece[0].index)

    @staticmethod
    def _resolved_identity(
        show_id: str,
        group: list[_Member],
        representatives: dict[str, str],
    ) -> NormalizedIdentity:
        outlet = _choose_preferred(m.identity.norm_outlet for m in group) or UNKNOWN
        critic = _choose_preferred(
            representatives.get(m.identity.norm_critic, m.identity.norm_critic)
            for m in group
            if m.identity.norm_critic != UNKNOWN
        )
        return NormalizedIdentity(show_id, outlet, critic or UNKNOWN)

    def _outlet_id(self, identity: NormalizedIdentity, group: list[_Member]) -> str:
        """Pick the outlet id by rank, ties broken by member order.

        Rank order: an explicit id that is a known registry id, an explicit
        id whose lower-case form is a known registry id, any other explicit
        id, and finally the derived outlet key.
        """
        known = self._normaliser.reference.known_outlet_ids
        ranked: list[tuple[int, int, str]] = []
        for member in group:
            explicit = (member.record.outlet_id or "").strip()
            if not explicit:
                continue
            if explicit in known:
                ranked.append((0, member.index, explicit))
            elif explicit.lower() in known:
                ranked.append((1, member.index, explicit.lower()))
            else:
                ranked.append((2, member.index, explicit))
        ranked.append((3, len(group), identity.norm_outlet))
        return min(ranked)[2]

    def _build_review(
        self,
        review_id: str,
        cluster: DuplicateCluster,
        members: list[_Member],
    ) -> CanonicalReview:
        identity = cluster.identity
        url, alternate_urls = _merge_urls(members)
        critic_names = [
            m.record.raw_critic.strip()
            for m in members
            if m.record.raw_critic.strip()
        ]
        critic_display = max(critic_names, key=len) if critic_names else "Unknown"
        raw_outlets = [m.record.raw_outlet.strip() for m in members]
        return CanonicalReview(
            review_id=review_id,
            identity=identity,
            outlet_id=self._outlet_id(identity, members),
            outlet_display_name=self._normaliser.outlet_display_name(
                identity.norm_outlet,
                fallback=max(raw_outlets, key=len) if raw_outlets else None,
            ),
            critic_display_name=critic_display,
            url=url,
            alternate_urls=alternate_urls,
            publish_date=_first_date(members),
            full_text=_longest_text(m.record.full_text for m in members),
            excerpts=_merge_excerpts(members),
            indicators=tuple(
                ContributedIndicators(
                    record_key=m.key,
                    source=m.record.source,
                    indicators=m.record.indicators,
                )
                for m in members
            ),
            sources=tuple(sorted({m.record.source for m in members})),
            member_keys=tuple(m.key for m in members),
            match_reasons=cluster.reasons,
            split_from=cluster.ambiguous_cluster_id,
        )

    def resolve_show(
        self,
        show_id: str,
        records: cabc.Iterable[SourceRecord],
    ) -> ShowResolution:
        """Resolve all records of one show into canonical reviews.

        Parameters
        ----------
        show_id : str
            Show being resolved.
        records : Iterable[SourceRecord]
            Every record of that show, in any order.

        Returns
        -------
        ShowResolution
            Clusters, canonical reviews and flags for the show.

        Raises
        ------
        ValueError
            If a record belongs to a different show.
        """
        members = self._members(show_id, records)
        if not members:
            return ShowResolution(show_id, (), (), ())

        candidates = self._matcher.find_candidates(
            CriticEntry(
                m.identity.norm_outlet,
                m.identity.norm_critic,
                m.record.raw_critic,
            )
            for m in members
        )
        floor = self._settings.merge_confidence_floor
        merged = [c for c in candidates if c.confidence >= floor]
        sets, links = self._link(members, merged)
        critic_counts = collections.Counter(
            m.identity.norm_critic for m in members if m.identity.norm_critic != UNKNOWN
        )
        representatives = self._critic_representatives(merged, critic_counts)

        pieces: list[tuple[list[_Member], str | None]] = []
        ambiguous: list[tuple[str, list[list[_Member]], _FacetTally]] = []
        for indices in sets.groups():
            group = [members[i] for i in sorted(indices)]
            tally = self._tally(group, candidates) if len(group) > 1 else None
            if tally is None or not tally.conflicting:
                pieces.append((group, None))
                continue
            ambiguous_id = _cluster_id(show_id, group)
            split = self._split_conflicts(group, candidates, representatives)
            ambiguous.append((ambiguous_id, split, tally))
            pieces.extend((piece, ambiguous_id) for piece in split)

        clusters: list[tuple[DuplicateCluster, list[_Member]]] = []
        for group, ambiguous_id in pieces:
            indices = {m.index for m in group}
            reasons = tuple(
                reason for left, right, reason in links
                if left in indices and right in indices
            )
            cluster = DuplicateCluster(
                cluster_id=_cluster_id(show_id, group),
                show_id=show_id,
                identity=self._resolved_identity(show_id, group, representatives),
                members=tuple(m.record for m in group),
                reasons=reasons,
                ambiguous_cluster_id=ambiguous_id,
            )
            clusters.append((cluster, group))
        clusters.sort(key=lambda item: (item[0].identity, item[1][0].index))

        reviews: list[CanonicalReview] = []
        per_identity = collections.Counter(cluster.identity for cluster, _ in clusters)
        seen: collections.Counter[NormalizedIdentity] = collections.Counter()
        for cluster, group in clusters:
            base_id = (
                f"{show_id}:{cluster.identity.norm_outlet}--"
                f"{cluster.identity.norm_critic}"
            )
            seen[cluster.identity] += 1
            review_id = (
                f"{base_id}#{seen[cluster.identity]}"
                if per_identity[cluster.identity] > 1
                else base_id
            )
            reviews.append(self._build_review(review_id, cluster, group))

        review_by_key = {
            key: review.review_id for review in reviews for key in review.member_keys
        }
        flags = [
            *self._ambiguity_flags(show_id, ambiguous, review_by_key),
            *self._similarity_flags(show_id, members, candidates, floor, review_by_key),
        ]
        return ShowResolution(
            show_id=show_id,
            clusters=tuple(cluster for cluster, _ in clusters),
            reviews=tuple(sorted(reviews, key=lambda review: review.review_id)),
            flags=tuple(sorted_flags(flags)),
        )

    @staticmethod
    def _ambiguity_flags(
        show_id: str,
        ambiguous: list[tuple[str, list[list[_Member]], _FacetTally]],
        review_by_key: dict[str, str],
    ) -> list[Flag]:
        flags: list[Flag] = []
        for ambiguous_id, split, tally in ambiguous:
            keys = tuple(m.key for piece in split for m in piece)
            review_ids = tuple(sorted({review_by_key[key] for key in keys}))
            pieces_per_url = collections.Counter(
                url
                for piece in split
                for url in {m.url_key for m in piece if m.url_key is not None}
            )
            shared_urls = sorted(
                url for url, count in pieces_per_url.items() if count > 1
            )
            reason = (
                f"critics {', '.join(tally.unexplained_critics)} are not linked "
                "by any similarity evidence"
                if tally.unexplained_critics
                else (
                    f"disputed {', '.join(tally.disputed)} outweigh shared "
                    f"{', '.join(tally.shared) or 'nothing'}"
                )
            )
            flags.append(
                Flag(
                    kind=FlagKind.AMBIGUOUS_CLUSTER,
                    severity=Severity.WARNING,
                    explanation=(
                        f"Cluster {ambiguous_id} was split into {len(split)} "
                        f"reviews: {reason}."
                    ),
                    show_ids=(show_id,),
                    review_ids=review_ids,
                    record_keys=keys,
                    details={
                        "ambiguous_cluster_id": ambiguous_id,
                        "shared_facets": list(tally.shared),
                        "disputed_facets": list(tally.disputed),
                        "unexplained_critics": list(tally.unexplained_critics),
                        "shared_urls": shared_urls,
                    },
                ),
            )
        return flags

    @staticmethod
    def _similarity_flags(
        show_id: str,
        members: list[_Member],
        candidates: list[SimilarityCandidate],
        floor: float,
        review_by_key: dict[str, str],
    ) -> list[Flag]:
        flags: list[Flag] = []
        for candidate in candidates:
            involved = [
                m
                for m in members
                if m.identity.norm_outlet == candidate.norm_outlet
                and m.identity.norm_critic in candidate.pair
            ]
            keys = tuple(m.key for m in involved)
            review_ids = tuple(sorted({review_by_key[key] for key in keys}))
            if candidate.confidence >= floor:
                kind = FlagKind.SIMILARITY_MERGE
                verb = "merged"
            elif candidate.kind is MatchKind.PARTIAL_NAME:
                kind = FlagKind.PARTIAL_NAME
                verb = "kept apart"
            else:
                kind = FlagKind.SIMILAR_CRITIC
                verb = "kept apart"
            flags.append(
                Flag(
                    kind=kind,
                    severity=Severity.INFO,
                    explanation=(
                        f"{candidate.detail} at {candidate.norm_outlet} "
                        f"(confidence {candidate.confidence:.2f}); {verb}."
                    ),
                    show_ids=(show_id,),
                    review_ids=review_ids,
                    record_keys=keys,
                    details={
                        "match_kind": candidate.kind.value,
                        "critics": sorted(candidate.pair),
                        "confidence": candidate.confidence,
                        "merge_floor": floor,
                    },
                ),
            )
        return flags


__all__ = ("ClusterMergeEngine", "ShowResolution")
