"""
ChampStep Backend — Step Score Routes
=======================================

What:  Competition rating and the points each placement earns.
       /preview rates metrics that are not stored yet (event organisers
       checking a planned event); the competition route rates a stored one.
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.schemas.common import ErrorResponse
from app.schemas.step_score import CompetitionListing, CompetitionMetrics, StepScoreResponse
from app.services import step_score

router = APIRouter(prefix="/api", tags=["Step Score"])


@router.post(
    "/step-score/preview",
    response_model=StepScoreResponse,
    summary="Rate competition metrics",
)
async def preview_step_score(metrics: CompetitionMetrics) -> StepScoreResponse:
    return step_score.step_score_for(metrics)


@router.post(
    "/step-score/from-listing",
    response_model=StepScoreResponse,
    summary="Rate a competition from its listing text",
)
async def listing_step_score(listing: CompetitionListing) -> StepScoreResponse:
    """Prize pool and edition are parsed from the text ("100만원", "제3회", "Vol. 3")."""
    metrics = step_score.extract_competition_metrics(
        event_name=listing.event_name,
        prize_details=listing.prize_details,
        judge_count=listing.judge_count,
        participant_limit=listing.participant_limit,
    )
    return step_score.step_score_for(metrics)


@router.get(
    "/competitions/{competition_id}/step-score",
    response_model=StepScoreResponse,
    responses={404: {"description": "Competition not found", "model": ErrorResponse}},
    summary="Rate a stored competition",
)
async def competition_step_score(
    competition_id: uuid.UUID,
    db: AsyncSession = Depends(get_db_session),
) -> StepScoreResponse:
    return await step_score.get_competition_step_score(db, competition_id)
