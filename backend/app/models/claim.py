"""
ChampStep Backend — Claim Request Models
==========================================

What:  ORM models for `dancer_claim_requests` and `crew_claim_requests`.
Why:   A registration whose name matches an existing identity does not touch
       that identity; it files a claim request that an admin (or the peer
       recommendation quorum) resolves later.
Who:   Created by RegistrationService; transitioned only by ClaimService.

State Machine:
    pending ──approve──▶ approved   (terminal)
       └─────reject───▶ rejected   (terminal)

    Transitions are executed as `UPDATE ... WHERE status = 'pending'`, so a
    terminal row can never flip back, and two admins racing on the same
    request produce exactly one transition.

One Unresolved Claim Per Identity:
    A partial unique index on the target id WHERE status = 'pending' lets the
    database reject a second in-flight claim against the same identity, by
    the same user or anyone else, even when two submissions race past the
    service-level check. Resolved rows are outside the index, so an identity
    can be claimed again after a rejection.

Rows are never deleted; they form the audit trail of ownership changes.
Foreign keys are ON DELETE RESTRICT: an identity with claim history cannot
be deleted.

Verification Evidence (dancer claims):
    verification_method records how the requester backs the claim:
        admin_approval       nothing attached; an admin judges the request
        social_media         platform + handle; the requester posts the
                             generated verification_code from that account
        competition_record   a recorded competition plus a link to proof
                             (result sheet, photo, video)
    Peer recommendations can be added to any pending dancer claim regardless
    of the method.
"""

import enum
import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.models.identity import GenreList, utcnow


class ClaimKind(str, enum.Enum):
    """Discriminant selecting which identity table a claim targets."""
    DANCER = "dancer"
    CREW = "crew"


class ClaimStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


TERMINAL_CLAIM_STATUSES = frozenset({ClaimStatus.APPROVED.value, ClaimStatus.REJECTED.value})


class VerificationMethod(str, enum.Enum):
    ADMIN_APPROVAL = "admin_approval"
    SOCIAL_MEDIA = "social_media"
    COMPETITION_RECORD = "competition_record"


class ClaimRequestMixin:
    """Columns shared by both claim tables."""

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # Requesting user from the auth provider
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ClaimStatus.PENDING.value,
        server_default=text("'pending'"),
    )

    # Free-text reason recorded with the decision
    admin_note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Deciding admin; NULL when auto-approved by recommendations
    reviewed_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    requested_name: Mapped[str] = mapped_column(String(100), nullable=False)
    requested_genres: Mapped[List[str]] = mapped_column(GenreList, nullable=False, default=list)
    requested_instagram_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    requested_youtube_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    @property
    def is_pending(self) -> bool:
        return self.status == ClaimStatus.PENDING.value


class DancerClaimRequest(ClaimRequestMixin, Base):
    """A user's claim to be the dancer behind an existing dancer record."""

    __tablename__ = "dancer_claim_requests"

    kind = ClaimKind.DANCER

    dancer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("dancers.id", ondelete="RESTRICT"), nullable=False
    )
    requested_nickname: Mapped[str] = mapped_column(String(100), nullable=False)
    requested_bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    requested_twitter_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    verification_method: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        default=VerificationMethod.ADMIN_APPROVAL.value,
        server_default=text("'admin_approval'"),
    )

    # social_media
    social_platform: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    social_handle: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    verification_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    # competition_record
    evidence_competition_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("competitions.id", ondelete="RESTRICT"), nullable=True
    )
    evidence_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    evidence_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index(
            "uq_dancer_claim_pending",
            "dancer_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
        Index("idx_dancer_claim_status", "status"),
    )

    @property
    def target_id(self) -> uuid.UUID:
        return self.dancer_id

    def __repr__(self) -> str:
        return (
            f"<DancerClaimRequest(id={self.id}, dancer_id={self.dancer_id}, "
            f"status='{self.status}')>"
        )


class CrewClaimRequest(ClaimRequestMixin, Base):
    """A user's claim to represent an existing crew record."""

    __tablename__ = "crew_claim_requests"

    kind = ClaimKind.CREW

    crew_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("crews.id", ondelete="RESTRICT"), nullable=False
    )
    requested_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    requested_location: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    __table_args__ = (
        Index(
            "uq_crew_claim_pending",
            "crew_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
        Index("idx_crew_claim_status", "status"),
    )

    @property
    def target_id(self) -> uuid.UUID:
        return self.crew_id

    def __repr__(self) -> str:
        return (
            f"<CrewClaimRequest(id={self.id}, crew_id={self.crew_id}, "
            f"status='{self.status}')>"
        )
