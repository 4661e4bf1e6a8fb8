"""SQLAlchemy ORM models for the canonical review store.

The store is rebuilt from scratch on every run, so the schema carries no
migration history. It holds one row per canonical review, one row per score
signal and a small key/value table describing the run that produced it.

Examples
--------
Create the tables in a fresh SQLite file:

>>> engine = sa.create_engine("sqlite:///canonical.sqlite")
>>> Base.metadata.create_all(engine)
"""

from __future__ import annotations

# SQLAlchemy evaluates annotations at runtime; keep stdlib types imported.
import datetime as dt  # noqa: TC003
import typing as typ

import sqlalchemy as sa
from sqlalchemy import orm


class Base(orm.DeclarativeBase):
    """Base class for canonical store models."""


class CanonicalReviewRecord(Base):
    """SQLAlchemy model for canonical reviews and their consensus.

    Attributes
    ----------
    review_id : str
        Primary key derived from the review identity.
    show_id : str
        Show the review belongs to.
    norm_outlet : str
        Normalised outlet key.
    norm_critic : str
        Normalised critic key.
    url : str | None
        Preferred review URL.
    payload : dict[str, typing.Any]
        Full JSON form of the review, including contributed indicators.
    score : int | None
        Consensus score, or ``None`` for unscored reviews.
    bucket : str | None
        Sentiment bucket for ``score``.
    confidence : str | None
        Consensus confidence.
    contributing_kind : str | None
        Kind of the decisive signal.
    """

    __tablename__ = "canonical_reviews"
    __table_args__ = (
        sa.Index(
            "ix_canonical_reviews_identity",
            "show_id",
            "norm_outlet",
            "norm_critic",
        ),
        sa.Index("ix_canonical_reviews_url", "url"),
    )

    review_id: orm.Mapped[str] = orm.mapped_column(sa.String(400), primary_key=True)
    show_id: orm.Mapped[str] = orm.mapped_column(sa.String(200))
    norm_outlet: orm.Mapped[str] = orm.mapped_column(sa.String(200))
    norm_critic: orm.Mapped[str] = orm.mapped_column(sa.String(200))
    outlet_id: orm.Mapped[str] = orm.mapped_column(sa.String(200))
    outlet_display_name: orm.Mapped[str] = orm.mapped_column(sa.String(240))
    critic_display_name: orm.Mapped[str] = orm.mapped_column(sa.String(240))
    url: orm.Mapped[str | None] = orm.mapped_column(sa.Text, nullable=True)
    publish_date: orm.Mapped[dt.date | None] = orm.mapped_column(
        sa.Date,
        nullable=True,
    )
    split_from: orm.Mapped[str | None] = orm.mapped_column(
        sa.String(200),
        nullable=True,
    )
    payload: orm.Mapped[dict[str, typ.Any]] = orm.mapped_column(sa.JSON)
    score: orm.Mapped[int | None] = orm.mapped_column(sa.Integer, nullable=True)
    bucket: orm.Mapped[str | None] = orm.mapped_column(sa.String(16), nullable=True)
    confidence: orm.Mapped[str | None] = orm.mapped_column(
        sa.String(16),
        nullable=True,
    )
    contributing_kind: orm.Mapped[str | None] = orm.mapped_column(
        sa.String(32),
        nullable=True,
    )

    signals: orm.Mapped[list[ScoreSignalRecord]] = orm.relationship(
        back_populates="review",
        order_by="ScoreSignalRecord.position",
        cascade="all, delete-orphan",
    )


class ScoreSignalRecord(Base):
    """SQLAlchemy model for one score signal of a canonical review.

    Attributes
    ----------
    id : int
        Surrogate primary key.
    review_id : str
        Owning canonical review.
    position : int
        Position in collector order.
    kind : str
        Signal kind.
    value : int
        0-100 signal value.
    confidence : str
        Signal confidence.
    source_detail : str
        Where the signal came from.
    decisive : bool
        Whether the signal decided or corroborated the consensus.
    payload : dict[str, typing.Any]
        Full JSON form of the signal.
    """

    __tablename__ = "score_signals"
    __table_args__ = (
        sa.UniqueConstraint("review_id", "position", name="uq_score_signals_order"),
    )

    id: orm.Mapped[int] = orm.mapped_column(
        sa.Integer,
        primary_key=True,
        autoincrement=True,
    )
    review_id: orm.Mapped[str] = orm.mapped_column(
        sa.ForeignKey("canonical_reviews.review_id", ondelete="CASCADE"),
    )
    position: orm.Mapped[int] = orm.mapped_column(sa.Integer)
    kind: orm.Mapped[str] = orm.mapped_column(sa.String(32))
    value: orm.Mapped[int] = orm.mapped_column(sa.Integer)
    confidence: orm.Mapped[str] = orm.mapped_column(sa.String(16))
    source_detail: orm.Mapped[str] = orm.mapped_column(sa.Text)
    decisive: orm.Mapped[bool] = orm.mapped_column(sa.Boolean, default=False)
    payload: orm.Mapped[dict[str, typ.Any]] = orm.mapped_column(sa.JSON)

    review: orm.Mapped[CanonicalReviewRecord] = orm.relationship(
        back_populates="signals",
    )


class StoreMetadataRecord(Base):
    """Key/value description of the run that built the store."""

    __tablename__ = "store_metadata"

    key: orm.Mapped[str] = orm.mapped_column(sa.String(64), primary_key=True)
    value: orm.Mapped[str] = orm.mapped_column(sa.Text)


__all__ = (
    "Base",
    "CanonicalReviewRecord",
    "ScoreSignalRecord",
    "StoreMetadataRecord",
)
