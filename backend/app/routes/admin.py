"""
ChampStep Backend — Admin Routes
==================================

What:  Claim request queue and decisions, recommendation review, system
       statistics and the ranking rebuild.
Who:   Admins only; every route depends on require_admin (403 otherwise).

Decisions are final: deciding an already approved / rejected request
returns 409 and changes nothing.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import Actor, require_admin
from app.database import get_db_session
from app.models.claim import ClaimKind, ClaimStatus
from app.schemas.claim import ClaimDecision, ClaimListResponse, ClaimRequestResponse
from app.schemas.common import ErrorResponse
from app.schemas.dancer import SystemStats
from app.schemas.recommendation import (
    RecommendationDecision,
    RecommendationResponse,
    RecommendationReviewResponse,
)
from app.schemas.step_score import RankingRecalculationResponse
from app.services import step_score
from app.services.claim_service import claim_service, to_response
from app.services.dancer_service import dancer_service
from app.services.recommendation_service import recommendation_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"])

_AUTH_ERRORS = {
    401: {"description": "Not signed in", "model": ErrorResponse},
    403: {"description": "Not an administrator", "model": ErrorResponse},
}


@router.get(
    "/claims",
    response_model=ClaimListResponse,
    responses=_AUTH_ERRORS,
    summary="List claim requests",
)
async def list_claims(
    kind: Optional[ClaimKind] = Query(default=None, description="dancer or crew; both when omitted"),
    status: Optional[ClaimStatus] = Query(default=None, description="pending, approved or rejected"),
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> ClaimListResponse:
    return await claim_service.list_claims(db, kind=kind, status=status)


@router.get(
    "/claims/{kind}/{request_id}",
    response_model=ClaimRequestResponse,
    responses={**_AUTH_ERRORS, 404: {"description": "Claim request not found", "model": ErrorResponse}},
    summary="Get one claim request",
)
async def get_claim(
    kind: ClaimKind,
    request_id: uuid.UUID,
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> ClaimRequestResponse:
    return await claim_service.get_claim(db, kind, request_id)


@router.post(
    "/claims/{kind}/{request_id}/decision",
    response_model=ClaimRequestResponse,
    responses={
        **_AUTH_ERRORS,
        404: {"description": "Claim request not found", "model": ErrorResponse},
        409: {"description": "Already decided, or requester owns another profile", "model": ErrorResponse},
    },
    summary="Approve or reject a claim request",
)
async def decide_claim(
    kind: ClaimKind,
    request_id: uuid.UUID,
    decision: ClaimDecision,
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> ClaimRequestResponse:
    """
    Approval binds the target identity to the requester and applies the
    proposed profile fields; rejection leaves the identity untouched.
    """
    claim = await claim_service.decide_claim(
        db,
        kind,
        request_id,
        approve=decision.approve,
        reason=decision.reason,
        reviewer=admin,
    )
    return to_response(claim)


@router.post(
    "/recommendations/{recommendation_id}/decision",
    response_model=RecommendationReviewResponse,
    responses={
        **_AUTH_ERRORS,
        404: {"description": "Recommendation not found", "model": ErrorResponse},
        409: {"description": "Recommendation already reviewed", "model": ErrorResponse},
    },
    summary="Approve or reject a recommendation",
)
async def review_recommendation(
    recommendation_id: uuid.UUID,
    decision: RecommendationDecision,
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> RecommendationReviewResponse:
    recommendation, approved_count, auto_approved = await recommendation_service.review_recommendation(
        db, recommendation_id, approve=decision.approve, reviewer=admin
    )
    return RecommendationReviewResponse(
        recommendation=RecommendationResponse.model_validate(recommendation),
        approved_count=approved_count,
        claim_auto_approved=auto_approved,
    )


@router.get(
    "/stats",
    response_model=SystemStats,
    responses=_AUTH_ERRORS,
    summary="System statistics",
)
async def system_stats(
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> SystemStats:
    return await dancer_service.get_system_stats(db)


@router.post(
    "/rankings/recalculate",
    response_model=RankingRecalculationResponse,
    responses=_AUTH_ERRORS,
    summary="Recalculate every dancer's step score and rank",
)
async def recalculate_rankings(
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> RankingRecalculationResponse:
    logger.info("Ranking recalculation requested by %s", admin.user_id)
    return await step_score.recalculate_rankings(db)
