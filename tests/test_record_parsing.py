"""Unit tests for collector payload parsing."""

from __future__ import annotations

import datetime as dt

import pytest
from _reconciliation_helpers import _make_record_payload

from scorecard.canonical.domain import Confidence, Excerpt, FlagKind, Severity
from scorecard.canonical.errors import MalformedRecordError
from scorecard.canonical.records import parse_source_record, read_source_record


def test_parses_a_complete_payload() -> None:
    """Every collector field lands on the source record."""
    payload = _make_record_payload(
        recordId="dtli-001",
        fullText="  A thrilling night.  ",
        excerpts={"dtli": "Thrilling.", "bww": "  "},
        rawScoreIndicators={
            "rating": "4/5",
            "thumbs": {"dtli": "Up", "bww": None},
            "model": {"score": 81.6, "confidence": "High", "scoredFrom": "excerpt"},
            "designations": "Critics' Pick",
        },
    )

    record = parse_source_record(payload)

    assert record.record_id == "dtli-001", "Expected the record id."
    assert record.publish_date == dt.date(2015, 8, 7), "Expected an ISO date."
    assert record.full_text == "A thrilling night.", "Expected trimmed text."
    assert record.excerpts == (Excerpt("dtli", "Thrilling."),), (
        "Expected blank excerpts to be dropped."
    )
    indicators = record.indicators
    assert indicators.rating == "4/5", "Expected the raw rating."
    assert [t.aggregator for t in indicators.thumbs] == ["dtli"], (
        "Expected missing thumbs to be skipped."
    )
    assert indicators.model is not None, "Expected a model judgement."
    assert indicators.model.score == 82, "Expected the model score rounded."
    assert indicators.model.confidence is Confidence.HIGH, (
        "Expected case-insensitive confidence."
    )
    assert indicators.model.from_excerpt, "Expected the excerpt origin recorded."
    assert indicators.designations == ("Critics' Pick",), (
        "Expected a single designation string to be accepted."
    )


def test_designation_in_rating_field_moves_to_designations() -> None:
    """A designation is never kept as a rating."""
    payload = _make_record_payload(rawScoreIndicators={"rating": "Critic's Pick"})

    indicators = parse_source_record(payload).indicators

    assert indicators.rating is None, "Expected the rating field to be cleared."
    assert indicators.designations == ("Critic's Pick",), (
        "Expected the designation to be moved."
    )


def test_legacy_indicator_keys_are_accepted() -> None:
    """``originalScore`` and ``llmScore`` stand in for rating and model."""
    payload = _make_record_payload(
        rawScoreIndicators={"originalScore": 8, "llmScore": 64},
    )

    indicators = parse_source_record(payload).indicators

    assert indicators.rating == "8", "Expected a numeric rating as text."
    assert indicators.model is not None, "Expected a bare model score."
    assert indicators.model.confidence is Confidence.MEDIUM, (
        "Expected medium confidence when none is reported."
    )


def test_outlet_id_alone_is_enough() -> None:
    """A registry outlet id may replace the outlet display name."""
    payload = _make_record_payload(outletId="nytimes")
    del payload["outlet"]

    record = parse_source_record(payload)

    assert record.raw_outlet == "nytimes", "Expected the id as the raw outlet."
    assert record.outlet_id == "nytimes", "Expected the explicit outlet id."


def test_excerpt_lists_are_accepted() -> None:
    """Excerpts may arrive as a list of tagged objects."""
    payload = _make_record_payload(
        excerpts=[{"bww": "Wow."}, {"source": "dtli", "text": "Joyous."}],
    )

    record = parse_source_record(payload)

    assert record.excerpts == (
        Excerpt("bww", "Wow."),
        Excerpt("dtli", "Joyous."),
    ), "Expected both list shapes to be parsed."


@pytest.mark.parametrize(
    ("overrides", "field"),
    [
        ({"showId": " "}, "showId"),
        ({"publishDate": 20150807}, "publishDate"),
        ({"url": 42}, "url"),
        ({"rawScoreIndicators": {"model": {"score": 140}}}, "model.score"),
        (
            {"rawScoreIndicators": {"model": {"score": 70, "confidence": "x"}}},
            "model.confidence",
        ),
        ({"rawScoreIndicators": {"rating": True}}, "rating"),
        ({"rawScoreIndicators": {"thumbs": "Up"}}, "thumbs"),
        ({"rawScoreIndicators": []}, "rawScoreIndicators"),
        ({"excerpts": "Thrilling."}, "excerpts"),
    ],
)
def test_malformed_fields_are_reported(
    overrides: dict[str, object],
    field: str,
) -> None:
    """Invalid values raise with the offending field."""
    payload = _make_record_payload() | overrides

    with pytest.raises(MalformedRecordError) as excinfo:
        parse_source_record(payload)

    assert excinfo.value.field == field, f"Expected {field!r} to be reported."
    assert excinfo.value.code == "malformed_record", "Expected the error code."


def test_missing_outlet_is_reported() -> None:
    """Records need an outlet name or an outlet id."""
    payload = _make_record_payload(recordId="bww-9")
    del payload["outlet"]

    with pytest.raises(MalformedRecordError, match="'outlet' or 'outletId'") as excinfo:
        parse_source_record(payload)

    assert excinfo.value.entity_id == "bww-9", "Expected the record id on the error."


def test_non_object_payload_is_reported() -> None:
    """Anything but a JSON object is malformed."""
    with pytest.raises(MalformedRecordError, match="JSON object"):
        parse_source_record(["not", "a", "record"])  # type: ignore[arg-type]


@pytest.mark.parametrize(
    "written",
    ["October 8, 1982", "Oct 8, 1982", "1982-10-08T09:30:00"],
)
def test_written_publish_dates_are_accepted(written: str) -> None:
    """Collector dates in "Month Day, Year" form are read like ISO dates."""
    parsed = read_source_record(_make_record_payload(publishDate=written))

    assert parsed.record.publish_date == dt.date(1982, 10, 8), (
        f"Expected {written!r} to be read as 8 October 1982."
    )
    assert parsed.notes == (), "Expected no note for a readable date."


def test_unreadable_publish_date_is_noted_not_rejected() -> None:
    """An unreadable optional date is dropped with a note, keeping the record."""
    payload = _make_record_payload(
        recordId="bww-7",
        publishDate="last week",
        rawScoreIndicators={"rating": "4/5"},
    )

    parsed = read_source_record(payload)

    assert parsed.record.publish_date is None, "Expected the date left empty."
    assert parsed.record.indicators.rating == "4/5", (
        "Expected the scoring evidence kept."
    )
    (note,) = parsed.notes
    assert note.kind is FlagKind.UNPARSEABLE_DATE, "Expected a date note."
    assert note.severity is Severity.INFO, "Expected an info-level note."
    assert note.record_keys == ("bww-7",), "Expected the record named."
    assert note.details == {"field": "publishDate", "raw": "last week"}, (
        "Expected the raw date in the note."
    )


def test_model_score_halves_round_up() -> None:
    """Fractional model scores round half up, matching every other scale."""
    payload = _make_record_payload(rawScoreIndicators={"model": 72.5})

    model = parse_source_record(payload).indicators.model

    assert model is not None, "Expected a model judgement."
    assert model.score == 73, "Expected 72.5 to round up to 73."
