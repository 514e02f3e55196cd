"""
ChampStep Backend — Verified Identity Models
==============================================

What:  ORM models for the `dancers` and `crews` tables.
Why:   These are the canonical, authoritative identity records that users
       register as or claim ownership of.
Who:   Written by RegistrationService (new identities) and ClaimService
       (binding an owner on approval); read by the directory and ranking code.

Ownership:
    user_id is nullable. Records seeded from historical competition results
    exist unclaimed until a user registers a matching name and an admin (or
    enough peer recommendations) approves the resulting claim request.

Portability:
    Column types are dialect-neutral (Uuid, JSON) so the same models run on
    PostgreSQL in production and SQLite in the test suite. Genres use JSONB
    on PostgreSQL.
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import JSON, Boolean, DateTime, Index, Integer, String, Text, Uuid, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base

GenreList = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Dancer(Base):
    """
    A dancer identity.

    Lifecycle:
        1. Created verified and owned by a registering user when the proposed
           nickname/name matches nothing, or seeded unclaimed (user_id NULL)
           from competition results.
        2. Rebound to a new owner when a claim request against it is approved.
        3. total_points / rank rewritten by the ranking recalculation.
    """

    __tablename__ = "dancers"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # Owning user from the auth provider; NULL while unclaimed
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True, index=True)

    nickname: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    # Crew name as displayed on the ranking page (denormalized)
    crew: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    genres: Mapped[List[str]] = mapped_column(GenreList, nullable=False, default=list)
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    instagram_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    youtube_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    twitter_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    avatar: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Step score totals, written by recalculate_rankings()
    total_points: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )
    rank: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    is_verified: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        Index("idx_dancers_rank", "rank"),
    )

    def __repr__(self) -> str:
        return f"<Dancer(id={self.id}, nickname='{self.nickname}', verified={self.is_verified})>"


class Crew(Base):
    """A dance crew identity. Same ownership lifecycle as Dancer, no ranking."""

    __tablename__ = "crews"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True, index=True)

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    genres: Mapped[List[str]] = mapped_column(GenreList, nullable=False, default=list)
    location: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    instagram_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    youtube_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    is_verified: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    def __repr__(self) -> str:
        return f"<Crew(id={self.id}, name='{self.name}', verified={self.is_verified})>"
