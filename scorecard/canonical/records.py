"""Parsing of raw collector payloads into source records.

Collectors hand over JSON objects with camelCase keys. This module validates
them and builds immutable ``SourceRecord`` values. Problems are reported as
``MalformedRecordError`` with the offending field so that the orchestrator
can flag the record and carry on with the rest of the corpus. The optional
publish date is lenient: ISO and "Month Day, Year" forms are read, and any
other text is dropped with an ``UnparseableDate`` note.

Examples
--------
Parse one collector payload:

>>> record = parse_source_record({
...     "showId": "hamilton-2015",
...     "outlet": "NYT",
...     "criticName": "Ben Brantley",
...     "rawScoreIndicators": {"thumbs": {"dtli": "Up"}},
... })
>>> record.indicators.thumbs[0].value
'Up'
"""

from __future__ import annotations

import collections.abc as cabc
import contextlib
import dataclasses as dc
import datetime as dt
import typing as typ

from .adapters.rules import is_designation, round_half_up
from .domain import (
    AggregatorThumb,
    Confidence,
    Excerpt,
    Flag,
    FlagKind,
    ModelJudgment,
    ScoreIndicators,
    Severity,
    SourceRecord,
)
from .errors import MalformedRecordError

if typ.TYPE_CHECKING:
    from .domain import JsonMapping

_MODEL_SCORE_MAX = 100
_WRITTEN_DATE_FORMATS = ("%B %d, %Y", "%b %d, %Y")


def _fail(message: str, field: str, entity_id: str | None) -> typ.NoReturn:
    raise MalformedRecordError(message, field=field, entity_id=entity_id)


def _optional_text(
    payload: cabc.Mapping[str, object],
    key: str,
    entity_id: str | None,
) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        _fail(f"Field {key!r} must be a string.", key, entity_id)
    text = value.strip()
    return text or None


def _date_from_text(text: str) -> dt.date | None:
    """Read an ISO date or a collector's "Month Day, Year" form."""
    with contextlib.suppress(ValueError):
        if len(text) > len("YYYY-MM-DD"):
            return dt.datetime.fromisoformat(text).date()
        return dt.date.fromisoformat(text)
    for date_format in _WRITTEN_DATE_FORMATS:
        with contextlib.suppress(ValueError):
            return dt.datetime.strptime(text, date_format).date()  # noqa: DTZ007
    return None


def _parse_date(
    value: object,
    entity_id: str | None,
) -> tuple[dt.date | None, str | None]:
    """Return the publish date and, when it could not be read, its raw text."""
    if value is None or value == "":
        return (None, None)
    if isinstance(value, dt.datetime):
        return (value.date(), None)
    if isinstance(value, dt.date):
        return (value, None)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return (None, None)
        parsed = _date_from_text(text)
        return (parsed, None if parsed is not None else text)
    _fail("Field 'publishDate' must be a string.", "publishDate", entity_id)


def _parse_excerpts(value: object, entity_id: str | None) -> tuple[Excerpt, ...]:
    """Accept a tag-to-text mapping or a list of single-entry mappings.

    List entries may also use explicit ``source`` and ``text`` keys.
    """
    if value is None:
        return ()
    entries: list[tuple[object, object]] = []
    if isinstance(value, cabc.Mapping):
        entries.extend(typ.cast("cabc.Mapping[object, object]", value).items())
    elif isinstance(value, list):
        for item in typ.cast("list[object]", value):
            if not isinstance(item, cabc.Mapping):
                _fail("Excerpt entries must be objects.", "excerpts", entity_id)
            mapping = typ.cast("cabc.Mapping[object, object]", item)
            if "text" in mapping:
                entries.append((mapping.get("source", "unknown"), mapping["text"]))
            else:
                entries.extend(mapping.items())
    else:
        _fail("Field 'excerpts' must be an object or a list.", "excerpts", entity_id)

    excerpts: list[Excerpt] = []
    for tag, text in entries:
        if not isinstance(tag, str) or not isinstance(text, str):
            _fail("Excerpt tags and texts must be strings.", "excerpts", entity_id)
        if text.strip():
            excerpts.append(Excerpt(source_tag=tag, text=text.strip()))
    return tuple(excerpts)


def _parse_thumbs(value: object, entity_id: str | None) -> tuple[AggregatorThumb, ...]:
    if value is None:
        return ()
    pairs: list[tuple[object, object]] = []
    if isinstance(value, cabc.Mapping):
        pairs.extend(typ.cast("cabc.Mapping[object, object]", value).items())
    elif isinstance(value, list):
        for item in typ.cast("list[object]", value):
            if not isinstance(item, cabc.Mapping):
                _fail("Thumb entries must be objects.", "thumbs", entity_id)
            mapping = typ.cast("cabc.Mapping[str, object]", item)
            pairs.append((mapping.get("aggregator"), mapping.get("value")))
    else:
        _fail("Field 'thumbs' must be an object or a list.", "thumbs", entity_id)

    thumbs: list[AggregatorThumb] = []
    for aggregator, thumb in pairs:
        if thumb is None:
            continue
        if not isinstance(aggregator, str) or not isinstance(thumb, str):
            msg = "Thumb aggregator and value must be strings."
            _fail(msg, "thumbs", entity_id)
        thumbs.append(AggregatorThumb(aggregator=aggregator, value=thumb.strip()))
    return tuple(thumbs)


def _parse_confidence(value: object, entity_id: str | None) -> Confidence:
    if value is None:
        return Confidence.MEDIUM
    try:
        return Confidence(str(value).strip().lower())
    except ValueError as err:
        msg = f"Unknown model confidence {value!r}."
        raise MalformedRecordError(
            msg, field="model.confidence", entity_id=entity_id
        ) from err


def _parse_model(value: object, entity_id: str | None) -> ModelJudgment | None:
    if value is None:
        return None
    if isinstance(value, bool) or isinstance(value, (int, float)):
        payload: cabc.Mapping[str, object] = {"score": value}
    elif isinstance(value, cabc.Mapping):
        payload = typ.cast("cabc.Mapping[str, object]", value)
    else:
        _fail("Field 'model' must be an object or a number.", "model", entity_id)

    score = payload.get("score")
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        _fail("Model score must be a number.", "model.score", entity_id)
    if not 0 <= score <= _MODEL_SCORE_MAX:
        _fail(f"Model score {score!r} is outside 0-100.", "model.score", entity_id)
    scored_from = payload.get("scoredFrom")
    return ModelJudgment(
        score=round_half_up(score),
        confidence=_parse_confidence(payload.get("confidence"), entity_id),
        from_excerpt=bool(payload.get("fromExcerpt")) or scored_from == "excerpt",
        needs_review=bool(payload.get("needsReview")),
    )


def _parse_designations(value: object, entity_id: str | None) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        msg = "Field 'designations' must be a list of strings."
        _fail(msg, "designations", entity_id)
    return tuple(v.strip() for v in typ.cast("list[str]", value) if v.strip())


def _parse_rating(value: object, entity_id: str | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        _fail("Field 'rating' must be a string or a number.", "rating", entity_id)
    if isinstance(value, (int, float)):
        return str(value)
    if not isinstance(value, str):
        _fail("Field 'rating' must be a string or a number.", "rating", entity_id)
    return value.strip() or None


def _parse_indicators(value: object, entity_id: str | None) -> ScoreIndicators:
    if value is None:
        return ScoreIndicators()
    if not isinstance(value, cabc.Mapping):
        msg = "Field 'rawScoreIndicators' must be an object."
        _fail(msg, "rawScoreIndicators", entity_id)
    payload = typ.cast("cabc.Mapping[str, object]", value)
    model = payload.get("model", payload.get("llmScore"))
    rating = _parse_rating(
        payload.get("rating", payload.get("originalScore")), entity_id
    )
    designations = _parse_designations(payload.get("designations"), entity_id)
    if rating is not None and is_designation(rating):
        # "Critics' Pick" in a rating field is a designation, not a score.
        designations = (*designations, rating)
        rating = None
    return ScoreIndicators(
        rating=rating,
        thumbs=_parse_thumbs(payload.get("thumbs"), entity_id),
        model=_parse_model(model, entity_id),
        designations=designations,
    )


@dc.dataclass(frozen=True, slots=True)
class ParsedRecord:
    """A source record together with the notes raised while reading it."""

    record: SourceRecord
    notes: tuple[Flag, ...] = ()


def _unreadable_date_note(record: SourceRecord, raw: str) -> Flag:
    return Flag(
        kind=FlagKind.UNPARSEABLE_DATE,
        severity=Severity.INFO,
        explanation=(
            f"Publish date {raw!r} of record {record.record_key} was not "
            "understood and was left empty."
        ),
        show_ids=(record.show_id,),
        record_keys=(record.record_key,),
        details={"field": "publishDate", "raw": raw},
    )


def read_source_record(payload: JsonMapping) -> ParsedRecord:
    """Validate a collector payload and collect notes about lenient fields.

    ``publishDate`` is optional, so a date in neither ISO nor
    "Month Day, Year" form is dropped with an ``UnparseableDate`` note rather
    than rejecting the record.

    Raises
    ------
    MalformedRecordError
        If a required field is missing or any field has an invalid value.
    """
    if not isinstance(payload, cabc.Mapping):
        _fail("Record must be a JSON object.", "record", None)
    record_id = _optional_text(payload, "recordId", None)
    show_id = _optional_text(payload, "showId", record_id)
    if show_id is None:
        _fail("Field 'showId' is required.", "showId", record_id)
    raw_outlet = _optional_text(payload, "outlet", record_id)
    outlet_id = _optional_text(payload, "outletId", record_id)
    if raw_outlet is None and outlet_id is None:
        _fail("Field 'outlet' or 'outletId' is required.", "outlet", record_id)
    publish_date, unreadable_date = _parse_date(payload.get("publishDate"), record_id)
    record = SourceRecord(
        show_id=show_id,
        raw_outlet=raw_outlet or outlet_id or "",
        raw_critic=_optional_text(payload, "criticName", record_id) or "",
        source=_optional_text(payload, "source", record_id) or "unknown",
        record_id=record_id,
        outlet_id=outlet_id,
        url=_optional_text(payload, "url", record_id),
        publish_date=publish_date,
        full_text=_optional_text(payload, "fullText", record_id),
        excerpts=_parse_excerpts(payload.get("excerpts"), record_id),
        indicators=_parse_indicators(payload.get("rawScoreIndicators"), record_id),
    )
    if unreadable_date is None:
        return ParsedRecord(record)
    return ParsedRecord(record, (_unreadable_date_note(record, unreadable_date),))


def parse_source_record(payload: JsonMapping) -> SourceRecord:
    """Validate a collector payload and build a ``SourceRecord``.

    Parameters
    ----------
    payload : JsonMapping
        Collector object with ``showId``, ``outlet`` (or ``outletId``),
        ``criticName`` and optional ``url``, ``publishDate``, ``fullText``,
        ``excerpts``, ``rawScoreIndicators``, ``recordId`` and ``source``.

    Returns
    -------
    SourceRecord
        The immutable record. Use ``read_source_record`` to also receive the
        notes raised for lenient fields.

    Raises
    ------
    MalformedRecordError
        If a required field is missing or any field has an invalid value.
    """
    return read_source_record(payload).record


__all__ = ("ParsedRecord", "parse_source_record", "read_source_record")
