"""
ChampStep Backend — Claim Decision Service
============================================

What:  Admin queue and decisions for dancer / crew claim requests.
Who:   /api/admin routes, and RecommendationService when the recommendation
       quorum is reached.

Approval, in one transaction:
    1. UPDATE identity SET user_id=<requester>, is_verified=true, plus the
       non-empty requested profile fields
       WHERE id=:target AND (user_id IS NULL OR user_id=<requester>)
       (zero rows → owned by someone else; ConflictError, nothing written)
    2. UPDATE claim SET status='approved' ... WHERE id=:id AND status='pending'
       (zero rows → someone else already decided; ConflictError)

Display names (nickname / name) are never rewritten on approval; the
historical record keeps the name it was ranked under.

Rejection only closes the request; the target identity is untouched.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional, Tuple, Type, Union

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import Actor
from app.database import execute_read
from app.exceptions import ChampStepError, ConflictError, DatabaseError, NotFoundError
from app.models.claim import (
    ClaimKind,
    ClaimStatus,
    CrewClaimRequest,
    DancerClaimRequest,
    VerificationMethod,
)
from app.models.identity import Crew, Dancer, utcnow
from app.schemas.claim import ClaimEvidenceResponse, ClaimListResponse, ClaimRequestResponse

logger = logging.getLogger(__name__)

ClaimRequest = Union[DancerClaimRequest, CrewClaimRequest]

_CLAIM_MODELS: Dict[ClaimKind, Tuple[Type[Any], Type[Any]]] = {
    ClaimKind.DANCER: (DancerClaimRequest, Dancer),
    ClaimKind.CREW: (CrewClaimRequest, Crew),
}


def requested_fields(claim: ClaimRequest) -> Dict[str, Any]:
    """The profile values the requester proposed, as shown to admins."""
    if claim.kind == ClaimKind.DANCER:
        return {
            "nickname": claim.requested_nickname,
            "name": claim.requested_name,
            "genres": list(claim.requested_genres or []),
            "bio": claim.requested_bio,
            "instagram_url": claim.requested_instagram_url,
            "youtube_url": claim.requested_youtube_url,
            "twitter_url": claim.requested_twitter_url,
        }
    return {
        "name": claim.requested_name,
        "description": claim.requested_description,
        "genres": list(claim.requested_genres or []),
        "location": claim.requested_location,
        "instagram_url": claim.requested_instagram_url,
        "youtube_url": claim.requested_youtube_url,
    }


def profile_updates(claim: ClaimRequest) -> Dict[str, Any]:
    """Column values copied onto the identity when a claim is approved. Empty values never overwrite."""
    if claim.kind == ClaimKind.DANCER:
        candidates = {
            "genres": list(claim.requested_genres or []),
            "bio": claim.requested_bio,
            "instagram_url": claim.requested_instagram_url,
            "youtube_url": claim.requested_youtube_url,
            "twitter_url": claim.requested_twitter_url,
        }
    else:
        candidates = {
            "genres": list(claim.requested_genres or []),
            "description": claim.requested_description,
            "location": claim.requested_location,
            "instagram_url": claim.requested_instagram_url,
            "youtube_url": claim.requested_youtube_url,
        }
    return {column: value for column, value in candidates.items() if value}


def evidence_of(claim: ClaimRequest) -> Optional[ClaimEvidenceResponse]:
    """Evidence attached to a dancer claim; None for crew claims."""
    if claim.kind != ClaimKind.DANCER:
        return None
    return ClaimEvidenceResponse(
        method=claim.verification_method or VerificationMethod.ADMIN_APPROVAL.value,
        platform=claim.social_platform,
        handle=claim.social_handle,
        verification_code=claim.verification_code,
        competition_id=claim.evidence_competition_id,
        evidence_url=claim.evidence_url,
        description=claim.evidence_description,
    )


def to_response(claim: ClaimRequest, target_name: Optional[str] = None) -> ClaimRequestResponse:
    return ClaimRequestResponse(
        id=claim.id,
        kind=claim.kind.value,
        user_id=claim.user_id,
        target_id=claim.target_id,
        target_name=target_name,
        status=claim.status,
        requested=requested_fields(claim),
        evidence=evidence_of(claim),
        admin_note=claim.admin_note,
        reviewed_by=claim.reviewed_by,
        created_at=claim.created_at,
        approved_at=claim.approved_at,
        rejected_at=claim.rejected_at,
    )


class ClaimService:
    """Claim request queue and the pending → approved | rejected transition."""

    async def decide_claim(
        self,
        db: AsyncSession,
        kind: ClaimKind,
        request_id: uuid.UUID,
        approve: bool,
        reason: Optional[str] = None,
        reviewer: Optional[Actor] = None,
    ) -> ClaimRequest:
        """
        Approve or reject a pending claim request.

        Args:
            kind:      Which claim table `request_id` lives in
            approve:   True binds the identity to the requester
            reason:    Stored as admin_note
            reviewer:  Deciding admin; None for automatic approvals

        Raises:
            NotFoundError:  No such claim request
            ConflictError:  Already decided, or (approval only) the requester
                            meanwhile owns another identity of this kind, or
                            the target is owned by someone else
            DatabaseError:  Persistence failed; nothing was applied
        """
        claim_model, identity_model = _CLAIM_MODELS[kind]

        try:
            claim = await db.get(claim_model, request_id)
            if claim is None:
                raise NotFoundError(resource=f"{kind.value} claim request", resource_id=str(request_id))
            if not claim.is_pending:
                raise ConflictError(
                    message=f"This claim request was already {claim.status}",
                    context={"status": claim.status},
                )

            now = utcnow()
            values: Dict[str, Any] = {
                "admin_note": reason,
                "reviewed_by": reviewer.user_id if reviewer else None,
            }
            if approve:
                await self._ensure_requester_owns_no_other(db, identity_model, claim)
                await self._ensure_target_unowned(db, identity_model, claim)
                values.update(status=ClaimStatus.APPROVED.value, approved_at=now)
                # Identity first: a refused bind leaves nothing written
                bound = await db.execute(
                    update(identity_model)
                    .where(
                        identity_model.id == claim.target_id,
                        or_(identity_model.user_id.is_(None), identity_model.user_id == claim.user_id),
                    )
                    .values(user_id=claim.user_id, is_verified=True, updated_at=now, **profile_updates(claim))
                    .execution_options(synchronize_session=False)
                )
                if bound.rowcount != 1:
                    raise ConflictError(message=f"This {kind.value} profile already belongs to another user")
            else:
                values.update(status=ClaimStatus.REJECTED.value, rejected_at=now)

            result = await db.execute(
                update(claim_model)
                .where(claim_model.id == request_id, claim_model.status == ClaimStatus.PENDING.value)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise ConflictError(message="This claim request was already decided")

            await db.flush()
            await db.refresh(claim)

        except ChampStepError:
            raise
        except Exception as e:
            logger.error("Deciding %s claim %s failed: %s", kind.value, request_id, str(e), exc_info=True)
            raise DatabaseError(
                message="The claim request could not be updated. Please try again.",
                context={"error_type": type(e).__name__},
            )

        logger.info(
            "%s claim %s %s by %s (target %s, requester %s)",
            kind.value.capitalize(),
            claim.id,
            claim.status,
            reviewer.user_id if reviewer else "auto-approval",
            claim.target_id,
            claim.user_id,
        )
        return claim

    async def _ensure_requester_owns_no_other(
        self, db: AsyncSession, identity_model: Type[Any], claim: ClaimRequest
    ) -> None:
        result = await db.execute(
            select(identity_model.id)
            .where(identity_model.user_id == claim.user_id, identity_model.id != claim.target_id)
            .limit(1)
        )
        if result.scalar_one_or_none() is not None:
            raise ConflictError(
                message=f"The requesting user already owns another {claim.kind.value} profile"
            )

    async def _ensure_target_unowned(
        self, db: AsyncSession, identity_model: Type[Any], claim: ClaimRequest
    ) -> None:
        result = await db.execute(select(identity_model.user_id).where(identity_model.id == claim.target_id))
        owner = result.scalar_one_or_none()
        if owner is not None and owner != claim.user_id:
            raise ConflictError(
                message=f"This {claim.kind.value} profile already belongs to another user"
            )

    async def get_claim(
        self, db: AsyncSession, kind: ClaimKind, request_id: uuid.UUID
    ) -> ClaimRequestResponse:
        claim_model, identity_model = _CLAIM_MODELS[kind]
        target_name = identity_model.nickname if kind == ClaimKind.DANCER else identity_model.name

        try:
            result = await execute_read(
                db,
                select(claim_model, target_name)
                .join(identity_model, identity_model.id == getattr(claim_model, f"{kind.value}_id"))
                .where(claim_model.id == request_id),
            )
            row = result.first()
        except Exception as e:
            logger.error("Loading %s claim %s failed: %s", kind.value, request_id, str(e), exc_info=True)
            raise DatabaseError(context={"error_type": type(e).__name__})

        if row is None:
            raise NotFoundError(resource=f"{kind.value} claim request", resource_id=str(request_id))
        return to_response(row[0], row[1])

    async def list_claims(
        self,
        db: AsyncSession,
        kind: Optional[ClaimKind] = None,
        status: Optional[ClaimStatus] = None,
    ) -> ClaimListResponse:
        """
        Claim requests for the admin queue, newest first.

        Dancer requests are listed before crew requests when `kind` is None.
        `counts` always covers every status of the selected kind(s) so the
        queue tabs can show totals regardless of the status filter.
        """
        kinds = [kind] if kind else [ClaimKind.DANCER, ClaimKind.CREW]
        claims: List[ClaimRequestResponse] = []
        counts = {s.value: 0 for s in ClaimStatus}

        try:
            for claim_kind in kinds:
                claim_model, identity_model = _CLAIM_MODELS[claim_kind]
                target_name = identity_model.nickname if claim_kind == ClaimKind.DANCER else identity_model.name

                stmt = (
                    select(claim_model, target_name)
                    .join(identity_model, identity_model.id == getattr(claim_model, f"{claim_kind.value}_id"))
                    .order_by(claim_model.created_at.desc())
                )
                if status is not None:
                    stmt = stmt.where(claim_model.status == status.value)

                result = await execute_read(db, stmt)
                claims.extend(to_response(claim, name) for claim, name in result.all())

                count_result = await execute_read(
                    db, select(claim_model.status, func.count()).group_by(claim_model.status)
                )
                for claim_status, count in count_result.all():
                    counts[claim_status] = counts.get(claim_status, 0) + count
        except Exception as e:
            logger.error("Loading claim requests failed: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not load claim requests. Please try again.",
                context={"error_type": type(e).__name__},
            )

        return ClaimListResponse(claims=claims, counts=counts)


claim_service = ClaimService()
