"""Versioned heuristic rule tables.

Every conversion table used to turn raw score evidence into 0-100 values
lives here: star, letter-grade and badge conversions, aggregator thumb
anchors, designation patterns, the keyword sentiment lexicon and the bucket
boundaries. ``RULES_VERSION`` is recorded with every run so that scores can
be traced to the tables that produced them.

Examples
--------
>>> parse_rating("B+/A-").value
89
>>> parse_rating("Critics' Pick").outcome
<RatingOutcome.DESIGNATION: 'designation'>
"""

from __future__ import annotations

import dataclasses as dc
import decimal
import enum
import re
import typing as typ

from scorecard.canonical.domain import Bucket

if typ.TYPE_CHECKING:
    import collections.abc as cabc

RULES_VERSION = "2026.10"

LETTER_GRADES: dict[str, int] = {
    "A+": 97,
    "A": 93,
    "A-": 90,
    "B+": 87,
    "B": 83,
    "B-": 80,
    "C+": 77,
    "C": 73,
    "C-": 70,
    "D+": 67,
    "D": 60,
    "D-": 57,
    "F": 50,
}

#: Five-star ratings map onto published review bands, not linearly.
STARS_OUT_OF_FIVE: dict[float, int] = {
    5.0: 92,
    4.5: 87,
    4.0: 82,
    3.5: 73,
    3.0: 63,
    2.5: 54,
    2.0: 45,
    1.5: 35,
    1.0: 25,
    0.5: 18,
    0.0: 10,
}

#: Out-of-four star ratings do not scale linearly in published practice.
STARS_OUT_OF_FOUR: dict[float, int] = {
    4.0: 100,
    3.5: 88,
    3.0: 75,
    2.5: 63,
    2.0: 50,
    1.5: 38,
    1.0: 25,
    0.5: 13,
    0.0: 0,
}

BADGE_SCORES: dict[str, int] = {
    "rave": 90,
    "positive": 75,
    "mixed": 60,
    "negative": 40,
    "pan": 25,
}

THUMB_ANCHORS: dict[str, int] = {
    "up": 80,
    "meh": 60,
    "flat": 60,
    "down": 35,
}

DESIGNATION_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"^recommended$",
        r"^highly[\s_-]?recommended$",
        r"^critic'?s?'?[\s_-]?pick$",
        r"^critic'?s?'?[\s_-]?choice$",
        r"^must[\s_-]?see$",
        r"^editor'?s?'?[\s_-]?choice$",
        r"^essential$",
    )
)

#: Keyword lexicon as word -> weight. Strong words count double.
POSITIVE_KEYWORDS: dict[str, int] = {
    "brilliant": 1,
    "magnificent": 1,
    "stunning": 1,
    "exceptional": 1,
    "extraordinary": 2,
    "masterpiece": 2,
    "triumph": 2,
    "joyous": 1,
    "wonderful": 1,
    "superb": 1,
    "phenomenal": 2,
    "breathtaking": 2,
    "dazzling": 1,
    "sensational": 1,
    "riveting": 1,
    "thrilling": 1,
    "must-see": 2,
    "unmissable": 2,
    "outstanding": 1,
    "excellent": 1,
    "remarkable": 1,
}

NEGATIVE_KEYWORDS: dict[str, int] = {
    "disappointing": 1,
    "fails": 1,
    "failure": 1,
    "weak": 1,
    "boring": 1,
    "tedious": 1,
    "dull": 1,
    "lifeless": 1,
    "lackluster": 1,
    "uninspired": 1,
    "forgettable": 1,
    "misguided": 1,
    "misfire": 1,
    "dismal": 2,
    "poor": 1,
    "terrible": 2,
    "awful": 2,
    "painful": 2,
    "excruciating": 2,
    "waste": 2,
    "regrettable": 1,
}

KEYWORD_SCORE_FLOOR = 10
KEYWORD_SCORE_CEILING = 90
_KEYWORD_NEUTRAL = 50
_KEYWORD_SPREAD = 40

#: Lower bounds of each bucket, checked from the top.
BUCKET_BOUNDARIES: tuple[tuple[int, Bucket], ...] = (
    (85, Bucket.RAVE),
    (70, Bucket.POSITIVE),
    (55, Bucket.MIXED),
    (40, Bucket.NEGATIVE),
)

_NUMBER = r"(\d+(?:\.\d+)?)"
_FRACTION = re.compile(
    rf"^{_NUMBER}\s*(?:/|out\s+of)\s*{_NUMBER}(?:\s*stars?)?$",
    re.IGNORECASE,
)
_STARS_ONLY = re.compile(rf"^{_NUMBER}\s*stars?$", re.IGNORECASE)
_STAR_GLYPHS = re.compile(r"^[★☆½\s]+$")
_ASTERISKS = re.compile(r"^\*+(?:\s*1/2|½)?$")
_LETTER = re.compile(r"^([A-DF][+-]?)$", re.IGNORECASE)
_LETTER_RANGE = re.compile(
    r"^([A-DF][+-]?)\s*(?:/|to)\s*([A-DF][+-]?)$",
    re.IGNORECASE,
)
_BADGE = re.compile(
    r"^(?:sentiment:\s*)?(rave|positive|mixed|negative|pan)$",
    re.IGNORECASE,
)
_THUMB = re.compile(r"^(?:thumbs?\s*)?(up|down|meh|flat)$", re.IGNORECASE)
_BARE_NUMBER = re.compile(rf"^{_NUMBER}$")
_WORD = re.compile(r"[a-z]+(?:-[a-z]+)*")

_DEFAULT_STAR_SCALE = 5
_FOUR_STAR_SCALE = 4
_STAR_TABLES: dict[int, dict[float, int]] = {
    _DEFAULT_STAR_SCALE: STARS_OUT_OF_FIVE,
    _FOUR_STAR_SCALE: STARS_OUT_OF_FOUR,
}
_MAX_STAR_SCALE = 10


class RatingOutcome(enum.StrEnum):
    """How a raw rating string was interpreted."""

    SCORE = "score"
    THUMB = "thumb"
    DESIGNATION = "designation"
    AMBIGUOUS = "ambiguous"
    UNPARSEABLE = "unparseable"


@dc.dataclass(frozen=True, slots=True)
class ParsedRating:
    """Result of interpreting one raw rating string.

    Attributes
    ----------
    outcome : RatingOutcome
        Interpretation category.
    raw : str
        The input rating.
    value : int | None
        0-100 value for ``SCORE`` outcomes.
    scale : str | None
        Conversion used, for example ``"stars/5"`` or ``"letter"``.
    thumb : str | None
        Normalised thumb word for ``THUMB`` outcomes.
    """

    outcome: RatingOutcome
    raw: str
    value: int | None = None
    scale: str | None = None
    thumb: str | None = None


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up."""
    return int(
        decimal.Decimal(str(value)).quantize(
            decimal.Decimal(1),
            rounding=decimal.ROUND_HALF_UP,
        ),
    )


def bucket_for(score: int) -> Bucket:
    """Return the sentiment bucket for a 0-100 score."""
    for lower_bound, bucket in BUCKET_BOUNDARIES:
        if score >= lower_bound:
            return bucket
    return Bucket.PAN


def convert_stars(stars: float, out_of: float) -> int | None:
    """Convert a star rating to 0-100, or ``None`` when it is out of range.

    Whole and half stars out of four or five use the fixed tables; every
    other scale is linear.
    """
    if out_of <= 0 or not 0 <= stars <= out_of:
        return None
    table = _STAR_TABLES.get(int(out_of)) if out_of.is_integer() else None
    if table is not None and stars in table:
        return table[stars]
    return round_half_up(stars / out_of * 100)


def _parse_glyph_stars(rating: str) -> ParsedRating | None:
    if _STAR_GLYPHS.match(rating) and any(glyph in rating for glyph in "★☆½"):
        filled = rating.count("★") + 0.5 * rating.count("½")
        total = rating.count("★") + rating.count("☆") + rating.count("½")
        value = convert_stars(filled, max(total, _DEFAULT_STAR_SCALE))
        scale = f"stars/{max(total, _DEFAULT_STAR_SCALE)}"
    elif _ASTERISKS.match(rating):
        filled = rating.count("*") + (0.5 if rating.endswith(("1/2", "½")) else 0.0)
        value = convert_stars(filled, _DEFAULT_STAR_SCALE)
        scale = f"stars/{_DEFAULT_STAR_SCALE}"
    else:
        return None
    if value is None:
        return ParsedRating(RatingOutcome.UNPARSEABLE, rating)
    return ParsedRating(RatingOutcome.SCORE, rating, value=value, scale=scale)


def _parse_numeric(rating: str) -> ParsedRating | None:
    if match := _FRACTION.match(rating):
        stars, out_of = float(match[1]), float(match[2])
        value = convert_stars(stars, out_of)
        if value is None:
            return ParsedRating(RatingOutcome.UNPARSEABLE, rating)
        unit = "stars" if out_of <= _MAX_STAR_SCALE else "points"
        scale = f"{unit}/{match[2]}"
        return ParsedRating(RatingOutcome.SCORE, rating, value=value, scale=scale)
    if match := _STARS_ONLY.match(rating):
        value = convert_stars(float(match[1]), _DEFAULT_STAR_SCALE)
        if value is None:
            return ParsedRating(RatingOutcome.UNPARSEABLE, rating)
        return ParsedRating(
            RatingOutcome.SCORE,
            rating,
            value=value,
            scale=f"stars/{_DEFAULT_STAR_SCALE}",
        )
    if _BARE_NUMBER.match(rating):
        # A bare number could be stars, a grade point or a percentage.
        return ParsedRating(RatingOutcome.AMBIGUOUS, rating)
    return None


def _parse_letters(rating: str) -> ParsedRating | None:
    if match := _LETTER_RANGE.match(rating):
        low = LETTER_GRADES.get(match[1].upper())
        high = LETTER_GRADES.get(match[2].upper())
        if low is None or high is None:
            return ParsedRating(RatingOutcome.UNPARSEABLE, rating)
        return ParsedRating(
            RatingOutcome.SCORE,
            rating,
            value=round_half_up((low + high) / 2),
            scale="letter_range",
        )
    if match := _LETTER.match(rating):
        grade = LETTER_GRADES.get(match[1].upper())
        if grade is None:
            return ParsedRating(RatingOutcome.UNPARSEABLE, rating)
        return ParsedRating(RatingOutcome.SCORE, rating, value=grade, scale="letter")
    return None


def parse_rating(raw: str | None) -> ParsedRating | None:
    """Interpret a critic's raw rating string.

    Parameters
    ----------
    raw : str | None
        Rating text such as ``"4/5"``, ``"★★★½"``, ``"B+"`` or ``"Rave"``.

    Returns
    -------
    ParsedRating | None
        ``None`` for a missing rating, otherwise the interpretation. Only
        unambiguous formats produce a ``SCORE`` outcome.
    """
    if raw is None:
        return None
    rating = raw.strip()
    if not rating:
        return None
    if any(pattern.match(rating) for pattern in DESIGNATION_PATTERNS):
        return ParsedRating(RatingOutcome.DESIGNATION, rating)
    if match := _THUMB.match(rating):
        return ParsedRating(RatingOutcome.THUMB, rating, thumb=match[1].lower())
    if match := _BADGE.match(rating):
        return ParsedRating(
            RatingOutcome.SCORE,
            rating,
            value=BADGE_SCORES[match[1].lower()],
            scale="badge",
        )
    for parser in (_parse_numeric, _parse_letters, _parse_glyph_stars):
        parsed = parser(rating)
        if parsed is not None:
            return parsed
    return ParsedRating(RatingOutcome.UNPARSEABLE, rating)


def thumb_anchor(value: str) -> int | None:
    """Return the fixed anchor for an aggregator thumb word."""
    return THUMB_ANCHORS.get(value.strip().lower())


def is_designation(text: str) -> bool:
    """Return True when ``text`` is a designation rather than a rating."""
    return any(pattern.match(text.strip()) for pattern in DESIGNATION_PATTERNS)


@dc.dataclass(frozen=True, slots=True)
class KeywordTally:
    """Weighted keyword hits in one text."""

    positive: int
    negative: int

    @property
    def total(self) -> int:
        return self.positive + self.negative

    def score(self) -> int | None:
        """Return the lexicon score, or ``None`` when nothing matched."""
        if self.total == 0:
            return None
        raw = _KEYWORD_NEUTRAL + _KEYWORD_SPREAD * (
            (self.positive - self.negative) / self.total
        )
        return max(KEYWORD_SCORE_FLOOR, min(KEYWORD_SCORE_CEILING, round_half_up(raw)))

    @property
    def polarity(self) -> int:
        """Return 1 for net positive, -1 for net negative and 0 otherwise."""
        return (self.positive > self.negative) - (self.positive < self.negative)


def tally_keywords(texts: cabc.Iterable[str]) -> KeywordTally:
    """Count weighted lexicon hits across ``texts``."""
    positive = 0
    negative = 0
    for text in texts:
        for word in _WORD.findall(text.lower()):
            positive += POSITIVE_KEYWORDS.get(word, 0)
            negative += NEGATIVE_KEYWORDS.get(word, 0)
    return KeywordTally(positive=positive, negative=negative)


__all__ = (
    "BADGE_SCORES",
    "BUCKET_BOUNDARIES",
    "DESIGNATION_PATTERNS",
    "LETTER_GRADES",
    "NEGATIVE_KEYWORDS",
    "POSITIVE_KEYWORDS",
    "RULES_VERSION",
    "STARS_OUT_OF_FIVE",
    "STARS_OUT_OF_FOUR",
    "THUMB_ANCHORS",
    "KeywordTally",
    "ParsedRating",
    "RatingOutcome",
    "bucket_for",
    "convert_stars",
    "is_designation",
    "parse_rating",
    "round_half_up",
    "tally_keywords",
    "thumb_anchor",
)
