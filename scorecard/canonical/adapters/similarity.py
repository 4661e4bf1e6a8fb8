"""Reference similarity matcher adapter.

The matcher proposes critic pairs that may be the same person within one
show and outlet. It never merges anything itself. Two kinds of proposal are
made:

``edit_distance``
    Compacted critic names within ``max_edit_distance`` Levenshtein edits of
    each other, when both are at least ``min_name_length`` letters long.
    Confidence is ``1 - distance / longer_length``.
``partial_name``
    One hyphenated critic slug is the other with trailing name parts
    removed, for example ``christian`` and ``christian-holub``. These carry a
    fixed low confidence because a bare first name is weak evidence.

Examples
--------
>>> matcher = SimilarityMatcher()
>>> candidates = matcher.find_candidates([
...     CriticEntry("nytimes", "johnnyoleksinski", "Johnny Oleksinski"),
...     CriticEntry("nytimes", "johnnyoleksinkii", "Johnny Oleksinkii"),
... ])
>>> candidates[0].kind
<MatchKind.EDIT_DISTANCE: 'edit_distance'>
"""

from __future__ import annotations

import dataclasses as dc
import itertools
import typing as typ

from rapidfuzz.distance import Levenshtein

from scorecard.canonical.config import MatchingSettings
from scorecard.canonical.domain import MatchKind, SimilarityCandidate

from .normaliser import UNKNOWN, critic_slug

if typ.TYPE_CHECKING:
    import collections.abc as cabc


@dc.dataclass(frozen=True, slots=True, order=True)
class CriticEntry:
    """One distinct (outlet, critic) spelling observed within a show."""

    norm_outlet: str
    norm_critic: str
    raw_critic: str


def _is_slug_prefix(short: str, long: str) -> bool:
    """Return True when ``long`` extends ``short`` with more name parts."""
    return long.startswith(f"{short}-")


class SimilarityMatcher:
    """Propose same-critic pairs by edit distance and partial names.

    Parameters
    ----------
    settings : MatchingSettings | None
        Matching bounds; defaults apply when omitted.
    """

    def __init__(self, settings: MatchingSettings | None = None) -> None:
        self._settings = settings if settings is not None else MatchingSettings()

    def _edit_distance_candidate(
        self,
        left: CriticEntry,
        right: CriticEntry,
    ) -> SimilarityCandidate | None:
        shortest = min(len(left.norm_critic), len(right.norm_critic))
        if shortest < self._settings.min_name_length:
            return None
        distance = Levenshtein.distance(
            left.norm_critic,
            right.norm_critic,
            score_cutoff=self._settings.max_edit_distance,
        )
        if distance > self._settings.max_edit_distance:
            return None
        longest = max(len(left.norm_critic), len(right.norm_critic))
        return SimilarityCandidate(
            kind=MatchKind.EDIT_DISTANCE,
            norm_outlet=left.norm_outlet,
            left_critic=left.norm_critic,
            right_critic=right.norm_critic,
            confidence=round(1 - distance / longest, 4),
            detail=(
                f"{left.raw_critic!r} and {right.raw_critic!r} are "
                f"{distance} edit(s) apart"
            ),
        )

    def _partial_name_candidate(
        self,
        left: CriticEntry,
        right: CriticEntry,
    ) -> SimilarityCandidate | None:
        left_slug = critic_slug(left.raw_critic)
        right_slug = critic_slug(right.raw_critic)
        if not (
            _is_slug_prefix(left_slug, right_slug)
            or _is_slug_prefix(right_slug, left_slug)
        ):
            return None
        return SimilarityCandidate(
            kind=MatchKind.PARTIAL_NAME,
            norm_outlet=left.norm_outlet,
            left_critic=left.norm_critic,
            right_critic=right.norm_critic,
            confidence=self._settings.partial_name_confidence,
            detail=(
                f"byline {left_slug!r} is a partial form of {right_slug!r}"
                if len(left_slug) < len(right_slug)
                else f"byline {right_slug!r} is a partial form of {left_slug!r}"
            ),
        )

    def compare(
        self,
        left: CriticEntry,
        right: CriticEntry,
    ) -> SimilarityCandidate | None:
        """Return the candidate for one pair, or ``None``.

        Pairs from different outlets, pairs with identical critic keys and
        pairs involving an unknown critic never produce a candidate.
        """
        if left.norm_outlet != right.norm_outlet:
            return None
        if left.norm_critic == right.norm_critic:
            return None
        if UNKNOWN in {left.norm_critic, right.norm_critic}:
            return None
        return self._edit_distance_candidate(
            left, right
        ) or self._partial_name_candidate(left, right)

    def find_candidates(
        self,
        entries: cabc.Iterable[CriticEntry],
    ) -> list[SimilarityCandidate]:
        """Return every candidate among ``entries`` from one show.

        Entries are de-duplicated on ``(norm_outlet, norm_critic)`` keeping
        the first raw spelling in sorted order, so the result does not depend
        on input order.
        """
        distinct: dict[tuple[str, str], CriticEntry] = {}
        for entry in sorted(entries):
            distinct.setdefault((entry.norm_outlet, entry.norm_critic), entry)

        by_outlet: dict[str, list[CriticEntry]] = {}
        for entry in distinct.values():
            by_outlet.setdefault(entry.norm_outlet, []).append(entry)

        candidates: list[SimilarityCandidate] = []
        for outlet in sorted(by_outlet):
            for left, right in itertools.combinations(by_outlet[outlet], 2):
                candidate = self.compare(left, right)
                if candidate is not None:
                    candidates.append(candidate)
        return candidates


__all__ = ("CriticEntry", "SimilarityMatcher")
