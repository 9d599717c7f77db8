"""
Relational schema for ingested events.

Event owns its links: the place reference and the artist/tag link sets.
Place, Artist and Tag carry no relationship back to Event; reverse lookups
go through EventStore queries.
"""

from __future__ import annotations

from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


event_artists = sa.Table(
    "event_artists",
    Base.metadata,
    sa.Column("event_id", sa.ForeignKey("events.id", ondelete="CASCADE"), primary_key=True),
    sa.Column("artist_id", sa.ForeignKey("artists.id"), primary_key=True),
)

event_tags = sa.Table(
    "event_tags",
    Base.metadata,
    sa.Column("event_id", sa.ForeignKey("events.id", ondelete="CASCADE"), primary_key=True),
    sa.Column("tag_id", sa.ForeignKey("tags.id"), primary_key=True),
)


class Place(Base):
    __tablename__ = "places"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(sa.String(512), unique=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Place(id={self.id}, name={self.name!r})>"


class Artist(Base):
    __tablename__ = "artists"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(sa.String(512), unique=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Artist(id={self.id}, name={self.name!r})>"


class Tag(Base):
    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(sa.String(512), unique=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Tag(id={self.id}, name={self.name!r})>"


class Event(Base):
    """A stored event; ``url`` is its natural key."""

    __tablename__ = "events"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    url: Mapped[str] = mapped_column(sa.String(2048), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(sa.String(1024), nullable=False)

    start_at: Mapped[datetime] = mapped_column(sa.DateTime, nullable=False)
    end_at: Mapped[datetime] = mapped_column(sa.DateTime, nullable=False)

    thumbnail_url: Mapped[str] = mapped_column(sa.Text, nullable=False)
    location_text: Mapped[str] = mapped_column(sa.String(512), nullable=False)
    category_text: Mapped[str] = mapped_column(sa.String(512), nullable=False)
    description: Mapped[str] = mapped_column(sa.Text, nullable=False)
    source_name: Mapped[str] = mapped_column(sa.String(128), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime, server_default=sa.text("CURRENT_TIMESTAMP")
    )

    place_id: Mapped[int | None] = mapped_column(
        sa.ForeignKey("places.id"), nullable=True, index=True
    )

    place: Mapped[Place | None] = relationship(Place, lazy="joined")
    artists: Mapped[list[Artist]] = relationship(
        Artist, secondary=event_artists, lazy="selectin", viewonly=True
    )
    tags: Mapped[list[Tag]] = relationship(
        Tag, secondary=event_tags, lazy="selectin", viewonly=True
    )

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, url={self.url!r}, name={self.name!r})>"


ReferenceModel = type[Place] | type[Artist] | type[Tag]
