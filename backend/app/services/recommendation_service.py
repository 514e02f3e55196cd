"""
ChampStep Backend — Peer Recommendation Service
=================================================

What:  Verified dancers vouch for someone else's pending dancer claim; once
       enough vouches are approved the claim is approved automatically.
Who:   /api/claims/{id}/recommendations (vouch) and the admin review route.

Flow:
    verified dancer ──recommend──▶ Recommendation(pending)
    admin ──review──▶ approved | rejected
                         │
                         ▼
    approved count ≥ AUTO_APPROVAL_THRESHOLD and claim still pending
                         │
                         ▼
    ClaimService.decide_claim(approve=True, reason=AUTO_APPROVAL_REASON)

The quorum check and the claim approval run inside the reviewing request's
transaction, so a recommendation is never recorded as approved while the
auto-approval it triggered is lost.
"""

import logging
import uuid
from typing import Tuple

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import Actor
from app.exceptions import (
    ChampStepError,
    ConflictError,
    DatabaseError,
    NotFoundError,
    PermissionDeniedError,
)
from app.models.claim import ClaimKind, DancerClaimRequest
from app.models.identity import Dancer, utcnow
from app.models.recommendation import Recommendation, RecommendationStatus
from app.services.claim_service import claim_service

logger = logging.getLogger(__name__)

# Approved vouches needed before a dancer claim is approved without an admin
AUTO_APPROVAL_THRESHOLD = 2
AUTO_APPROVAL_REASON = "Auto-approved by crew recommendations"


class RecommendationService:

    async def recommend_dancer(
        self,
        db: AsyncSession,
        actor: Actor,
        claim_id: uuid.UUID,
        message: str = "",
    ) -> Recommendation:
        """
        Record the actor's vouch for a pending dancer claim.

        Raises:
            PermissionDeniedError: actor owns no verified dancer, or tries to
                vouch for their own claim
            NotFoundError: no such dancer claim request
            ConflictError: claim already decided, or actor already vouched
        """
        try:
            recommender = await db.execute(
                select(Dancer.id)
                .where(Dancer.user_id == actor.user_id, Dancer.is_verified.is_(True))
                .limit(1)
            )
            recommender_dancer_id = recommender.scalar_one_or_none()
            if recommender_dancer_id is None:
                raise PermissionDeniedError(message="Only verified dancers can recommend a claim")

            claim = await db.get(DancerClaimRequest, claim_id)
            if claim is None:
                raise NotFoundError(resource="dancer claim request", resource_id=str(claim_id))
            if claim.user_id == actor.user_id:
                raise PermissionDeniedError(message="You cannot recommend your own claim request")
            if not claim.is_pending:
                raise ConflictError(message=f"This claim request was already {claim.status}")

            existing = await db.execute(
                select(Recommendation.id).where(
                    Recommendation.claim_id == claim_id,
                    Recommendation.recommender_user_id == actor.user_id,
                )
            )
            if existing.scalar_one_or_none() is not None:
                raise ConflictError(message="You have already recommended this claim request")

            recommendation = Recommendation(
                claim_id=claim_id,
                recommender_user_id=actor.user_id,
                recommender_dancer_id=recommender_dancer_id,
                message=message.strip(),
                status=RecommendationStatus.PENDING.value,
            )
            db.add(recommendation)
            try:
                await db.flush()
            except IntegrityError:
                raise ConflictError(message="You have already recommended this claim request")

        except ChampStepError:
            raise
        except Exception as e:
            logger.error("Recommendation for claim %s failed: %s", claim_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Your recommendation could not be saved. Please try again.",
                context={"error_type": type(e).__name__},
            )

        logger.info(
            "Dancer %s (user %s) recommended claim %s",
            recommender_dancer_id,
            actor.user_id,
            claim_id,
        )
        return recommendation

    async def review_recommendation(
        self,
        db: AsyncSession,
        recommendation_id: uuid.UUID,
        approve: bool,
        reviewer: Actor,
    ) -> Tuple[Recommendation, int, bool]:
        """
        Approve or reject a pending recommendation.

        Returns:
            (recommendation, approved vouches for its claim, whether this
            review auto-approved the claim)
        """
        try:
            recommendation = await db.get(Recommendation, recommendation_id)
            if recommendation is None:
                raise NotFoundError(resource="recommendation", resource_id=str(recommendation_id))

            new_status = RecommendationStatus.APPROVED if approve else RecommendationStatus.REJECTED
            result = await db.execute(
                update(Recommendation)
                .where(
                    Recommendation.id == recommendation_id,
                    Recommendation.status == RecommendationStatus.PENDING.value,
                )
                .values(status=new_status.value, reviewed_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise ConflictError(message=f"This recommendation was already {recommendation.status}")

            await db.flush()
            await db.refresh(recommendation)

            logger.info(
                "Recommendation %s %s by %s",
                recommendation.id,
                recommendation.status,
                reviewer.user_id,
            )

            auto_approved = False
            if approve:
                auto_approved = await self.check_auto_approval(db, recommendation.claim_id)
            approved_count = await self.count_approved(db, recommendation.claim_id)

        except ChampStepError:
            raise
        except Exception as e:
            logger.error("Reviewing recommendation %s failed: %s", recommendation_id, str(e), exc_info=True)
            raise DatabaseError(
                message="The recommendation could not be updated. Please try again.",
                context={"error_type": type(e).__name__},
            )

        return recommendation, approved_count, auto_approved

    async def count_approved(self, db: AsyncSession, claim_id: uuid.UUID) -> int:
        result = await db.execute(
            select(func.count())
            .select_from(Recommendation)
            .where(
                Recommendation.claim_id == claim_id,
                Recommendation.status == RecommendationStatus.APPROVED.value,
            )
        )
        return int(result.scalar_one())

    async def check_auto_approval(self, db: AsyncSession, claim_id: uuid.UUID) -> bool:
        """
        Approve the claim if it has reached the recommendation quorum.

        Returns False without side effects when the quorum is not reached,
        the claim is no longer pending, or the requester meanwhile owns a
        different dancer (the claim then stays pending for an admin).
        """
        approved = await self.count_approved(db, claim_id)
        if approved < AUTO_APPROVAL_THRESHOLD:
            return False

        claim = await db.get(DancerClaimRequest, claim_id)
        if claim is None or not claim.is_pending:
            return False

        try:
            await claim_service.decide_claim(
                db,
                ClaimKind.DANCER,
                claim_id,
                approve=True,
                reason=AUTO_APPROVAL_REASON,
                reviewer=None,
            )
        except ConflictError as e:
            logger.warning("Auto-approval of claim %s skipped: %s", claim_id, e.message)
            return False

        logger.info("Claim %s auto-approved with %d recommendations", claim_id, approved)
        return True


recommendation_service = RecommendationService()
