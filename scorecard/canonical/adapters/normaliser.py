"""Reference identity normaliser adapter.

This adapter maps raw outlet and critic strings onto canonical keys. Outlet
names are accent-folded, lower-cased, stripped of a leading "the", compacted
to alphanumerics and resolved through the outlet alias table. Critic names are
accent-folded, stripped of a leading "by" byline and compacted to letters
before the manual critic alias set is applied.

Every public method is pure and total: any input string, including empty and
``None``, produces a non-empty key without raising.

Examples
--------
Normalise two spellings of the same outlet and critic:

>>> normaliser = IdentityNormaliser()
>>> normaliser.normalise_outlet("The New York Times")
'nytimes'
>>> normaliser.normalise_critic("ben-brantley")
'benbrantley'
"""

from __future__ import annotations

import re
import typing as typ
import unicodedata

from scorecard.canonical.domain import NormalizedIdentity
from scorecard.canonical.errors import ReferenceDataError
from scorecard.canonical.reference import ReferenceData, default_reference_data

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from scorecard.canonical.domain import SourceRecord

UNKNOWN = "unknown"

_LEADING_THE = re.compile(r"^the[\s\-_]+")
_LEADING_BYLINE = re.compile(r"^by\s+")
_WHITESPACE = re.compile(r"\s+")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_NON_ALPHA = re.compile(r"[^a-z]+")
_URL_SCHEME = re.compile(r"^[a-z][a-z0-9+.\-]*://")
_URL_WWW = re.compile(r"^www\.")


def fold_text(raw: str) -> str:
    """Accent-fold, lower-case and trim ``raw``."""
    decomposed = unicodedata.normalize("NFKD", raw)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _WHITESPACE.sub(" ", stripped.lower()).strip()


def _with_fallback(compact: str, raw: str) -> str:
    """Return ``compact`` or the first non-empty fallback form of ``raw``."""
    if compact:
        return compact
    alnum = _NON_ALNUM.sub("", fold_text(raw))
    if alnum:
        return alnum
    return raw.strip().lower()


def compact_outlet(raw: str | None) -> str:
    """Compact an outlet name to its alias-table lookup key."""
    if raw is None or not raw.strip():
        return UNKNOWN
    folded = _LEADING_THE.sub("", fold_text(raw))
    return _with_fallback(_NON_ALNUM.sub("", folded), raw)


def compact_critic(raw: str | None) -> str:
    """Compact a critic name to letters only, dropping a leading byline."""
    if raw is None or not raw.strip():
        return UNKNOWN
    folded = _LEADING_BYLINE.sub("", fold_text(raw))
    return _with_fallback(_NON_ALPHA.sub("", folded), raw)


def critic_slug(raw: str | None) -> str:
    """Return a hyphenated slug for a critic name.

    Slugs keep word boundaries, so ``"Christian Holub"`` becomes
    ``"christian-holub"``. They are used for byline matching and for the
    human override table.
    """
    if raw is None or not raw.strip():
        return UNKNOWN
    folded = _LEADING_BYLINE.sub("", fold_text(raw))
    slug = _NON_ALNUM.sub("-", folded).strip("-")
    return slug or _with_fallback("", raw)


def normalise_url(url: str | None) -> str | None:
    """Reduce a review URL to a comparable form.

    The scheme, a leading ``www.``, any fragment and trailing slashes are
    removed and the result is lower-cased. Blank input yields ``None``.
    """
    if url is None:
        return None
    text = url.strip().lower()
    if not text:
        return None
    text = _URL_SCHEME.sub("", text)
    text = _URL_WWW.sub("", text)
    text = text.split("#", 1)[0]
    return text.rstrip("/") or None


def url_host(url: str | None) -> str | None:
    """Return the host of a URL without ``www.`` or a port."""
    normalised = normalise_url(url)
    if normalised is None:
        return None
    host = normalised.split("/", 1)[0].split("?", 1)[0]
    return host.split(":", 1)[0] or None


def _build_lookup(
    table: cabc.Mapping[str, tuple[str, ...]],
    key_fn: cabc.Callable[[str], str],
    value_fn: cabc.Callable[[str], str],
    label: str,
) -> dict[str, str]:
    """Index every spelling in ``table`` by its compacted key.

    Raises
    ------
    ReferenceDataError
        If two canonical entries claim the same compacted spelling.
    """
    lookup: dict[str, str] = {}
    for canonical, aliases in table.items():
        target = value_fn(canonical)
        for spelling in (canonical, *aliases):
            key = key_fn(spelling)
            existing = lookup.setdefault(key, target)
            if existing != target:
                msg = (
                    f"{label.capitalize()} alias {spelling!r} resolves to both "
                    f"{existing!r} and {target!r}."
                )
                raise ReferenceDataError(msg, entity_id=spelling)
    return lookup


class IdentityNormaliser:
    """Normaliser that resolves outlets and critics through reference data.

    Parameters
    ----------
    reference : ReferenceData | None
        Alias tables to resolve against. Built-in tables are used when
        omitted.

    Raises
    ------
    ReferenceDataError
        If the alias tables contain conflicting spellings.
    """

    def __init__(self, reference: ReferenceData | None = None) -> None:
        self._reference = (
            reference if reference is not None else default_reference_data()
        )
        self._outlet_lookup = _build_lookup(
            self._reference.outlet_aliases,
            compact_outlet,
            str,
            "outlet",
        )
        self._critic_lookup = _build_lookup(
            self._reference.critic_aliases,
            compact_critic,
            compact_critic,
            "critic",
        )

    @property
    def reference(self) -> ReferenceData:
        """Return the reference data this normaliser resolves against."""
        return self._reference

    def normalise_outlet(self, raw: str | None) -> str:
        """Return the canonical outlet key for ``raw``."""
        compact = compact_outlet(raw)
        return self._outlet_lookup.get(compact, compact)

    def normalise_critic(self, raw: str | None) -> str:
        """Return the canonical critic key for ``raw``."""
        compact = compact_critic(raw)
        return self._critic_lookup.get(compact, compact)

    def record_outlet(self, record: SourceRecord) -> str:
        """Return the canonical outlet key for a record.

        A registry-sourced ``outlet_id`` is preferred over the raw outlet
        string because collectors that supply it have already resolved the
        outlet.
        """
        if record.outlet_id and record.outlet_id.strip():
            return self.normalise_outlet(record.outlet_id)
        return self.normalise_outlet(record.raw_outlet)

    def identity(self, record: SourceRecord) -> NormalizedIdentity:
        """Return the normalised identity of ``record``."""
        return NormalizedIdentity(
            show_id=record.show_id,
            norm_outlet=self.record_outlet(record),
            norm_critic=self.normalise_critic(record.raw_critic),
        )

    def outlet_display_name(self, outlet_id: str, fallback: str | None = None) -> str:
        """Return the registered display name, else ``fallback`` or the id."""
        registered = self._reference.display_name_for(outlet_id)
        if registered:
            return registered
        if fallback and fallback.strip():
            return fallback.strip()
        return outlet_id


__all__ = (
    "UNKNOWN",
    "IdentityNormaliser",
    "compact_critic",
    "compact_outlet",
    "critic_slug",
    "fold_text",
    "normalise_url",
    "url_host",
)
