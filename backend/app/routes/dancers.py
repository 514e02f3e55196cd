"""
ChampStep Backend — Directory Routes
======================================

What:  Public ranking list, dancer detail and crew list. No sign-in needed.
"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.schemas.common import ErrorResponse
from app.schemas.dancer import CrewResponse, DancerListResponse, DancerResponse
from app.services.dancer_service import MAX_PAGE_SIZE, dancer_service

router = APIRouter(prefix="/api", tags=["Directory"])


@router.get(
    "/dancers",
    response_model=DancerListResponse,
    responses={503: {"description": "Database unavailable", "model": ErrorResponse}},
    summary="Ranking list with search and filters",
)
async def list_dancers(
    response: Response,
    search: Optional[str] = Query(default=None, max_length=100, description="Matches nickname or name"),
    genre: Optional[str] = Query(default=None, max_length=50),
    crew: Optional[str] = Query(default=None, max_length=100),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=MAX_PAGE_SIZE),
    db: AsyncSession = Depends(get_db_session),
) -> DancerListResponse:
    result = await dancer_service.list_dancers(
        db, search=search, genre=genre, crew=crew, page=page, page_size=page_size
    )
    response.headers["Cache-Control"] = "public, max-age=30"
    return result


@router.get(
    "/dancers/{dancer_id}",
    response_model=DancerResponse,
    responses={404: {"description": "Dancer not found", "model": ErrorResponse}},
    summary="Get a dancer",
)
async def get_dancer(
    dancer_id: uuid.UUID,
    db: AsyncSession = Depends(get_db_session),
) -> DancerResponse:
    return await dancer_service.get_dancer(db, dancer_id)


@router.get(
    "/crews",
    response_model=List[CrewResponse],
    summary="List crews",
)
async def list_crews(db: AsyncSession = Depends(get_db_session)) -> List[CrewResponse]:
    return await dancer_service.list_crews(db)
