"""Human override table.

Editors occasionally pin the score of a review by hand. Overrides are keyed
on ``(show_id, outlet_id, critic_slug)`` as editors write them. The table
normalises those keys with the identity normaliser so that an override for
``("hamilton-2015", "NYT", "ben-brantley")`` applies to the canonical review
whose identity is ``("hamilton-2015", "nytimes", "benbrantley")``.

Examples
--------
>>> table = OverrideTable.from_mapping(
...     {"overrides": [{"showId": "hamilton-2015", "outletId": "nyt",
...                     "criticSlug": "ben-brantley", "score": 95}]},
...     IdentityNormaliser(),
... )
>>> table.lookup(NormalizedIdentity("hamilton-2015", "nytimes", "benbrantley"))
HumanOverride(...)
"""

from __future__ import annotations

import collections.abc as cabc
import json
import typing as typ
from types import MappingProxyType

from .domain import HumanOverride, NormalizedIdentity
from .errors import ReferenceDataError

if typ.TYPE_CHECKING:
    from pathlib import Path

    from .adapters.normaliser import IdentityNormaliser
    from .domain import JsonMapping

_SCORE_MAX = 100


def _required_text(entry: cabc.Mapping[str, object], key: str, index: int) -> str:
    value = entry.get(key)
    if not isinstance(value, str) or not value.strip():
        msg = f"Override {index} needs a non-empty {key!r}."
        raise ReferenceDataError(msg, entity_id=str(index))
    return value.strip()


def _override_from_entry(entry: object, index: int) -> HumanOverride:
    if not isinstance(entry, cabc.Mapping):
        msg = f"Override {index} must be an object."
        raise ReferenceDataError(msg, entity_id=str(index))
    mapping = typ.cast("cabc.Mapping[str, object]", entry)
    score = mapping.get("score", mapping.get("value"))
    if isinstance(score, bool) or not isinstance(score, int):
        msg = f"Override {index} needs an integer 'score'."
        raise ReferenceDataError(msg, entity_id=str(index))
    if not 0 <= score <= _SCORE_MAX:
        msg = f"Override {index} score {score} is outside 0-100."
        raise ReferenceDataError(msg, entity_id=str(index))
    note = mapping.get("note")
    return HumanOverride(
        show_id=_required_text(mapping, "showId", index),
        outlet_id=_required_text(mapping, "outletId", index),
        critic_slug=_required_text(mapping, "criticSlug", index),
        value=score,
        note=note if isinstance(note, str) and note.strip() else None,
    )


class OverrideTable:
    """Read-only lookup of human overrides by normalised identity.

    Parameters
    ----------
    overrides : Iterable[HumanOverride]
        Overrides as editors keyed them.
    normaliser : IdentityNormaliser
        Normaliser used to resolve outlet ids and critic slugs.

    Raises
    ------
    ReferenceDataError
        If two overrides resolve to the same identity.
    """

    def __init__(
        self,
        overrides: cabc.Iterable[HumanOverride],
        normaliser: IdentityNormaliser,
    ) -> None:
        table: dict[NormalizedIdentity, HumanOverride] = {}
        for override in overrides:
            identity = NormalizedIdentity(
                show_id=override.show_id,
                norm_outlet=normaliser.normalise_outlet(override.outlet_id),
                norm_critic=normaliser.normalise_critic(override.critic_slug),
            )
            existing = table.setdefault(identity, override)
            if existing is not override:
                msg = (
                    f"Overrides {existing.critic_slug!r} and "
                    f"{override.critic_slug!r} both resolve to {identity.key}."
                )
                raise ReferenceDataError(msg, entity_id=identity.key)
        self._table = MappingProxyType(table)

    @classmethod
    def empty(cls, normaliser: IdentityNormaliser) -> OverrideTable:
        """Return a table without overrides."""
        return cls((), normaliser)

    @classmethod
    def from_mapping(
        cls,
        payload: JsonMapping,
        normaliser: IdentityNormaliser,
    ) -> OverrideTable:
        """Build a table from ``{"overrides": [...]}``.

        Each entry needs ``showId``, ``outletId``, ``criticSlug`` and an
        integer ``score``; ``note`` is optional.
        """
        entries = payload.get("overrides", [])
        if not isinstance(entries, list):
            msg = "Field 'overrides' must be a list."
            raise ReferenceDataError(msg)
        return cls(
            (
                _override_from_entry(entry, index)
                for index, entry in enumerate(typ.cast("list[object]", entries))
            ),
            normaliser,
        )

    def __len__(self) -> int:
        return len(self._table)

    def lookup(self, identity: NormalizedIdentity) -> HumanOverride | None:
        """Return the override for ``identity``, if any."""
        return self._table.get(identity)


def load_overrides(path: Path, normaliser: IdentityNormaliser) -> OverrideTable:
    """Load an override table from a JSON file.

    Raises
    ------
    ReferenceDataError
        If the file cannot be read or holds an invalid table.
    """
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as err:
        msg = f"Cannot read override table {path}: {err}"
        raise ReferenceDataError(msg, entity_id=str(path)) from err
    if not isinstance(payload, dict):
        msg = f"Override table {path} must hold a JSON object."
        raise ReferenceDataError(msg, entity_id=str(path))
    return OverrideTable.from_mapping(
        typ.cast("JsonMapping", payload),
        normaliser,
    )


__all__ = ("OverrideTable", "load_overrides")
