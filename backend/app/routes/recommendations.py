"""
ChampStep Backend — Recommendation Routes
===========================================

What:  A verified dancer vouches for someone else's pending dancer claim.
       Admins review vouches under /api/admin; enough approved vouches
       approve the claim automatically.
"""

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import Actor, get_current_actor
from app.database import get_db_session
from app.schemas.common import ErrorResponse
from app.schemas.recommendation import RecommendationCreate, RecommendationResponse
from app.services.recommendation_service import recommendation_service

router = APIRouter(prefix="/api/claims", tags=["Recommendations"])


@router.post(
    "/{claim_id}/recommendations",
    response_model=RecommendationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        401: {"description": "Not signed in", "model": ErrorResponse},
        403: {"description": "Caller has no verified dancer profile, or owns the claim", "model": ErrorResponse},
        404: {"description": "Claim request not found", "model": ErrorResponse},
        409: {"description": "Claim already decided, or already recommended", "model": ErrorResponse},
    },
    summary="Recommend a pending dancer claim",
)
async def recommend_dancer(
    claim_id: uuid.UUID,
    payload: RecommendationCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session),
) -> RecommendationResponse:
    recommendation = await recommendation_service.recommend_dancer(db, actor, claim_id, payload.message)
    return RecommendationResponse.model_validate(recommendation)
