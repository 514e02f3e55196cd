"""
ChampStep Backend — Competition Models
========================================

What:  ORM models for `competitions` and `competition_results`.
Why:   Step scores are derived from a competition's metrics (prize pool,
       judges, participants, edition) and each dancer's placement in it.
Who:   Read by the step score service; results feed recalculate_rankings().
"""

import uuid
from datetime import date, datetime
from typing import Optional

from sqlalchemy import Date, DateTime, ForeignKey, Integer, String, UniqueConstraint, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.models.identity import utcnow


class Competition(Base):
    __tablename__ = "competitions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    event_name: Mapped[str] = mapped_column(String(200), nullable=False)

    # Prize pool in units of 10,000 KRW ("100만원" is stored as 100)
    prize_pool: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    judge_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    participant_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    edition: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default=text("1"))

    event_start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    def __repr__(self) -> str:
        return f"<Competition(id={self.id}, event_name='{self.event_name}')>"


class CompetitionResult(Base):
    """One dancer's outcome in one competition. placement NULL = took part only."""

    __tablename__ = "competition_results"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    competition_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("competitions.id", ondelete="CASCADE"), nullable=False
    )
    dancer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("dancers.id", ondelete="CASCADE"), nullable=False
    )
    placement: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    __table_args__ = (
        UniqueConstraint("competition_id", "dancer_id", name="uq_competition_result_dancer"),
    )
