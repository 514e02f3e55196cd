"""
ChampStep Backend — Recommendation Model
==========================================

What:  ORM model for `crew_recommendations`: a verified dancer vouching for
       someone else's pending dancer claim request.
Why:   Enough approved vouches (see AUTO_APPROVAL_THRESHOLD in
       recommendation_service) approve the claim without an admin decision.

Constraints:
    - One recommendation per (claim, recommender). A second vouch by the same
      person would otherwise count twice toward the quorum.
    - Status vocabulary mirrors claim requests: pending → approved | rejected.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, UniqueConstraint, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.models.claim import ClaimStatus
from app.models.identity import utcnow

# Recommendations share the pending/approved/rejected vocabulary
RecommendationStatus = ClaimStatus


class Recommendation(Base):
    __tablename__ = "crew_recommendations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    claim_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("dancer_claim_requests.id", ondelete="RESTRICT"),
        nullable=False,
    )

    recommender_user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    recommender_dancer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("dancers.id", ondelete="RESTRICT"), nullable=False
    )

    message: Mapped[str] = mapped_column(Text, nullable=False, default="")

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=RecommendationStatus.PENDING.value,
        server_default=text("'pending'"),
    )

    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("claim_id", "recommender_user_id", name="uq_recommendation_claim_recommender"),
        Index("idx_recommendation_claim_status", "claim_id", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<Recommendation(id={self.id}, claim_id={self.claim_id}, "
            f"status='{self.status}')>"
        )
