"""Read-only reference data for identity resolution.

Reference data carries the outlet alias table, the manual critic alias set,
outlet display names, outlet URL domains and the list of critics known to
write for several outlets. It is an explicit object injected into the
normaliser, the guard and the critic registry; nothing reads it from module
state.

Examples
--------
Load reference tables from a JSON document:

>>> reference = load_reference_data(Path("reference.json"))
>>> reference.display_name_for("nytimes")
'The New York Times'
"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses as dc
import functools
import json
import types
import typing as typ

from .errors import ReferenceDataError

if typ.TYPE_CHECKING:
    from pathlib import Path

    from .domain import JsonMapping

_DEFAULT_OUTLET_ALIASES: dict[str, tuple[str, ...]] = {
    "nytimes": (
        "new york times",
        "ny times",
        "nyt",
        "newyorktimes",
        "new-york-times",
    ),
    "vulture": (
        "new york magazine / vulture",
        "new york magazine",
        "ny mag",
        "nymag",
        "vult",
    ),
    "variety": ("variety magazine",),
    "hollywood-reporter": ("hollywood reporter", "thr", "hollywoodreporter"),
    "deadline": ("deadline hollywood", "deadline.com"),
    "timeout": (
        "time out",
        "time out new york",
        "timeout new york",
        "time out ny",
        "timeout ny",
    ),
    "guardian": ("theguardian",),
    "washpost": ("washington post", "wapo", "wash post", "washingtonpost"),
    "wsj": ("wall street journal", "wallstreetjournal"),
    "nypost": ("new york post", "ny post", "nyp", "newyorkpost"),
    "nydailynews": (
        "new york daily news",
        "daily news",
        "ny daily news",
        "nydn",
    ),
    "ew": ("entertainment weekly", "entertainmentweekly"),
    "theatermania": ("theater mania", "theatremania", "theatre mania", "tmania"),
    "broadwaynews": ("broadway news", "bwaynews"),
    "broadwayworld": ("broadway world", "bww"),
    "playbill": ("play bill",),
    "thewrap": ("wrap",),
    "indiewire": ("indie wire",),
    "observer": ("ny observer", "new york observer"),
    "newyorker": ("new yorker",),
    "ap": ("associated press", "ap news"),
    "reuters": (),
    "theatrely": ("theater ly", "thly"),
    "nysr": ("new york stage review", "ny stage review"),
    "nytg": (
        "new york theatre guide",
        "ny theatre guide",
        "new york theater guide",
    ),
    "nyt-theater": ("new york theater", "ny theater"),
    "cititour": ("citi tour", "city tour"),
    "stageandcinema": ("stage and cinema", "stage & cinema"),
    "talkinbroadway": ("talkin broadway", "talkin' broadway"),
    "frontmezzjunkies": ("front mezz junkies", "fmj"),
    "dailybeast": ("daily beast", "tdb"),
    "usatoday": ("usa today",),
    "forward": ("jewish forward",),
    "rollingstone": ("rolling stone",),
    "chicagotribune": ("chicago tribune", "chi tribune"),
    "latimes": ("los angeles times", "la times"),
    "thestage": ("stage",),
    "whatsonstage": ("what's on stage", "whats on stage", "whatson"),
    "telegraph": ("daily telegraph",),
    "financialtimes": ("financial times", "ft"),
    "amny": ("am new york", "amnewyork"),
}

_DEFAULT_CRITIC_ALIASES: dict[str, tuple[str, ...]] = {
    "Johnny Oleksinski": ("Johnny Oleksinki", "John Oleksinski"),
    "Aramide Tinubu": ("Aramide Timubu",),
    "Zachary Stewart": ("Zach Stewart",),
    "Jonathan Mandell": ("Jon Mandell",),
    "Matt Windman": ("Matthew Windman",),
    "Robert Hofler": ("Bob Hofler",),
    "Steven Suskin": ("Steve Suskin",),
    "Juan A. Ramirez": ("Juan Ramirez",),
    "Brian Scott Lipton": ("Brian Lipton",),
    "Melissa Rose Bernardo": ("Melissa Bernardo",),
}

_DEFAULT_OUTLET_DISPLAY_NAMES: dict[str, str] = {
    "nytimes": "The New York Times",
    "vulture": "Vulture",
    "variety": "Variety",
    "hollywood-reporter": "The Hollywood Reporter",
    "deadline": "Deadline",
    "timeout": "Time Out New York",
    "guardian": "The Guardian",
    "washpost": "The Washington Post",
    "wsj": "The Wall Street Journal",
    "nypost": "New York Post",
    "nydailynews": "New York Daily News",
    "ew": "Entertainment Weekly",
    "theatermania": "TheaterMania",
    "broadwaynews": "Broadway News",
    "broadwayworld": "BroadwayWorld",
    "playbill": "Playbill",
    "thewrap": "The Wrap",
    "indiewire": "IndieWire",
    "observer": "Observer",
    "newyorker": "The New Yorker",
    "ap": "Associated Press",
    "theatrely": "Theatrely",
    "nysr": "New York Stage Review",
    "nytg": "New York Theatre Guide",
    "nyt-theater": "New York Theater",
    "cititour": "Cititour",
    "stageandcinema": "Stage and Cinema",
    "talkinbroadway": "Talkin' Broadway",
    "frontmezzjunkies": "Front Mezz Junkies",
    "dailybeast": "The Daily Beast",
    "usatoday": "USA Today",
    "forward": "The Forward",
    "rollingstone": "Rolling Stone",
    "thestage": "The Stage",
}

_DEFAULT_OUTLET_DOMAINS: dict[str, tuple[str, ...]] = {
    "washpost": ("washingtonpost.com",),
    "nytimes": ("nytimes.com", "nyti.ms"),
    "wsj": ("wsj.com",),
    "vulture": ("vulture.com", "nymag.com", "thecut.com"),
    "newyorker": ("newyorker.com",),
    "variety": ("variety.com",),
    "deadline": ("deadline.com",),
    "timeout": ("timeout.com",),
    "guardian": ("theguardian.com",),
    "nypost": ("nypost.com",),
    "hollywood-reporter": ("hollywoodreporter.com",),
    "observer": ("observer.com",),
    "ew": ("ew.com",),
    "theatermania": ("theatermania.com",),
    "thewrap": ("thewrap.com",),
    "nydailynews": ("nydailynews.com",),
    "chicagotribune": ("chicagotribune.com",),
    "telegraph": ("telegraph.co.uk",),
    "financialtimes": ("ft.com",),
    "latimes": ("latimes.com",),
    "thestage": ("thestage.co.uk",),
}

_DEFAULT_KNOWN_FREELANCERS = frozenset({
    "charles-isherwood",
    "adam-feldman",
    "frank-scheck",
    "david-gordon",
    "jeremy-gerard",
    "chris-jones",
})


def _freeze_table(
    table: cabc.Mapping[str, cabc.Iterable[str]],
) -> types.MappingProxyType[str, tuple[str, ...]]:
    return types.MappingProxyType({
        key: tuple(values) for key, values in sorted(table.items())
    })


@dc.dataclass(frozen=True, slots=True)
class ReferenceData:
    """Immutable lookup tables for outlets and critics.

    Attributes
    ----------
    outlet_aliases : Mapping[str, tuple[str, ...]]
        Canonical outlet id to the spellings that should resolve to it.
    critic_aliases : Mapping[str, tuple[str, ...]]
        Canonical critic name to known variant spellings and typos.
    outlet_display_names : Mapping[str, str]
        Canonical outlet id to display name.
    outlet_domains : Mapping[str, tuple[str, ...]]
        Canonical outlet id to the URL domains it publishes on.
    known_freelancers : frozenset[str]
        Hyphenated critic slugs known to write for several outlets.
    version : str
        Label recorded in audit output.
    """

    outlet_aliases: cabc.Mapping[str, tuple[str, ...]]
    critic_aliases: cabc.Mapping[str, tuple[str, ...]]
    outlet_display_names: cabc.Mapping[str, str]
    outlet_domains: cabc.Mapping[str, tuple[str, ...]]
    known_freelancers: frozenset[str] = frozenset()
    version: str = "builtin"

    def __post_init__(self) -> None:
        object.__setattr__(self, "outlet_aliases", _freeze_table(self.outlet_aliases))
        object.__setattr__(self, "critic_aliases", _freeze_table(self.critic_aliases))
        object.__setattr__(self, "outlet_domains", _freeze_table(self.outlet_domains))
        object.__setattr__(
            self,
            "outlet_display_names",
            types.MappingProxyType(dict(sorted(self.outlet_display_names.items()))),
        )

    def __reduce__(self) -> tuple[object, ...]:
        # Mapping proxies do not pickle; rebuild from plain dicts.
        return (
            type(self),
            (
                dict(self.outlet_aliases),
                dict(self.critic_aliases),
                dict(self.outlet_display_names),
                dict(self.outlet_domains),
                self.known_freelancers,
                self.version,
            ),
        )

    @property
    def known_outlet_ids(self) -> frozenset[str]:
        """Return every outlet id the tables know about."""
        return frozenset(self.outlet_aliases) | frozenset(self.outlet_display_names)

    def display_name_for(self, outlet_id: str) -> str | None:
        """Return the display name for ``outlet_id`` if one is registered."""
        return self.outlet_display_names.get(outlet_id)

    def domains_for(self, outlet_id: str) -> tuple[str, ...]:
        """Return the URL domains registered for ``outlet_id``."""
        return self.outlet_domains.get(outlet_id, ())

    @classmethod
    def from_mapping(cls, payload: JsonMapping) -> ReferenceData:
        """Build reference data from a JSON-compatible mapping.

        Missing sections fall back to empty tables.

        Raises
        ------
        ReferenceDataError
            If a section has the wrong shape.
        """
        return cls(
            outlet_aliases=_string_list_table(payload, "outletAliases"),
            critic_aliases=_string_list_table(payload, "criticAliases"),
            outlet_display_names=_string_table(payload, "outletDisplayNames"),
            outlet_domains=_string_list_table(payload, "outletDomains"),
            known_freelancers=frozenset(_string_list(payload, "knownFreelancers")),
            version=str(payload.get("version", "custom")),
        )


def _section(payload: JsonMapping, name: str) -> cabc.Mapping[str, object]:
    value = payload.get(name, {})
    if not isinstance(value, cabc.Mapping):
        msg = f"Reference section {name!r} must be an object."
        raise ReferenceDataError(msg, entity_id=name)
    return typ.cast("cabc.Mapping[str, object]", value)


def _string_list(payload: JsonMapping, name: str) -> list[str]:
    value = payload.get(name, [])
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        msg = f"Reference section {name!r} must be a list of strings."
        raise ReferenceDataError(msg, entity_id=name)
    return typ.cast("list[str]", value)


def _string_table(payload: JsonMapping, name: str) -> dict[str, str]:
    table: dict[str, str] = {}
    for key, value in _section(payload, name).items():
        if not isinstance(value, str):
            msg = f"Reference entry {name}.{key} must be a string."
            raise ReferenceDataError(msg, entity_id=key)
        table[key] = value
    return table


def _string_list_table(payload: JsonMapping, name: str) -> dict[str, tuple[str, ...]]:
    table: dict[str, tuple[str, ...]] = {}
    for key, value in _section(payload, name).items():
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            msg = f"Reference entry {name}.{key} must be a list of strings."
            raise ReferenceDataError(msg, entity_id=key)
        table[key] = tuple(typ.cast("list[str]", value))
    return table


@functools.cache
def default_reference_data() -> ReferenceData:
    """Return the built-in reference tables."""
    return ReferenceData(
        outlet_aliases=_DEFAULT_OUTLET_ALIASES,
        critic_aliases=_DEFAULT_CRITIC_ALIASES,
        outlet_display_names=_DEFAULT_OUTLET_DISPLAY_NAMES,
        outlet_domains=_DEFAULT_OUTLET_DOMAINS,
        known_freelancers=_DEFAULT_KNOWN_FREELANCERS,
    )


def load_reference_data(path: Path) -> ReferenceData:
    """Load reference tables from a JSON file.

    Raises
    ------
    ReferenceDataError
        If the file cannot be read or is not a JSON object of the expected
        shape.
    """
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as err:
        msg = f"Cannot load reference data from {path}: {err}"
        raise ReferenceDataError(msg, entity_id=str(path)) from err
    if not isinstance(payload, dict):
        msg = f"Reference data in {path} must be a JSON object."
        raise ReferenceDataError(msg, entity_id=str(path))
    return ReferenceData.from_mapping(typ.cast("JsonMapping", payload))


__all__ = (
    "ReferenceData",
    "default_reference_data",
    "load_reference_data",
)
