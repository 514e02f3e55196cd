"""
ChampStep Backend — Dancer Directory Service
==============================================

What:  Ranking list (search / genre / crew filters, pagination), single
       dancer and crew lookups, and the admin system statistics.
How:   The directory is small (hundreds of dancers), so the full list is read
       once in rank order and filtered in memory. That keeps the filter rules
       identical across dialects (genres are JSON) and lets the genre / crew
       facets be computed from the same read.
"""

import logging
import uuid
from typing import Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import execute_read
from app.exceptions import DatabaseError, NotFoundError, ValidationError
from app.models.claim import ClaimStatus, CrewClaimRequest, DancerClaimRequest
from app.models.competition import Competition
from app.models.identity import Crew, Dancer, utcnow
from app.schemas.dancer import CrewResponse, DancerListResponse, DancerResponse, SystemStats

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


def filter_dancers(
    dancers: Iterable[Dancer],
    search: Optional[str] = None,
    genre: Optional[str] = None,
    crew: Optional[str] = None,
) -> List[Dancer]:
    """Keeps dancers matching every given filter; input order is preserved."""
    needle = search.strip().lower() if search and search.strip() else None
    matched = []
    for dancer in dancers:
        if needle and needle not in dancer.nickname.lower() and needle not in dancer.name.lower():
            continue
        if genre and genre not in (dancer.genres or []):
            continue
        if crew and dancer.crew != crew:
            continue
        matched.append(dancer)
    return matched


def facets(dancers: Iterable[Dancer]):
    """Sorted distinct genres and crew names across `dancers`."""
    genres = set()
    crews = set()
    for dancer in dancers:
        genres.update(dancer.genres or [])
        if dancer.crew:
            crews.add(dancer.crew)
    return sorted(genres), sorted(crews)


class DancerService:

    async def list_dancers(
        self,
        db: AsyncSession,
        search: Optional[str] = None,
        genre: Optional[str] = None,
        crew: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> DancerListResponse:
        """
        One page of the ranking list.

        Ordered by rank ascending; unranked dancers come last, by points then
        nickname.
        """
        if page < 1:
            raise ValidationError(message="page must be at least 1", field="page")
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            raise ValidationError(
                message=f"page_size must be between 1 and {MAX_PAGE_SIZE}", field="page_size"
            )

        try:
            result = await execute_read(
                db,
                select(Dancer).order_by(
                    Dancer.rank.is_(None),
                    Dancer.rank,
                    Dancer.total_points.desc(),
                    Dancer.nickname,
                ),
            )
            dancers = list(result.scalars().all())
        except Exception as e:
            logger.error("Loading dancer directory failed: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not load the dancer list. Please try again.",
                context={"error_type": type(e).__name__},
            )

        matched = filter_dancers(dancers, search=search, genre=genre, crew=crew)
        start = (page - 1) * page_size
        page_items = matched[start:start + page_size]
        genres, crews = facets(dancers)

        return DancerListResponse(
            dancers=[DancerResponse.from_model(d) for d in page_items],
            total_count=len(matched),
            page=page,
            page_size=page_size,
            has_more=start + page_size < len(matched),
            genres=genres,
            crews=crews,
        )

    async def get_dancer(self, db: AsyncSession, dancer_id: uuid.UUID) -> DancerResponse:
        try:
            result = await execute_read(db, select(Dancer).where(Dancer.id == dancer_id))
            dancer = result.scalar_one_or_none()
        except Exception as e:
            logger.error("Loading dancer %s failed: %s", dancer_id, str(e), exc_info=True)
            raise DatabaseError(context={"error_type": type(e).__name__})

        if dancer is None:
            raise NotFoundError(resource="dancer", resource_id=str(dancer_id))
        return DancerResponse.from_model(dancer)

    async def list_crews(self, db: AsyncSession) -> List[CrewResponse]:
        try:
            result = await execute_read(db, select(Crew).order_by(Crew.name))
            crews = result.scalars().all()
        except Exception as e:
            logger.error("Loading crews failed: %s", str(e), exc_info=True)
            raise DatabaseError(context={"error_type": type(e).__name__})
        return [CrewResponse.model_validate(c) for c in crews]

    async def get_system_stats(self, db: AsyncSession) -> SystemStats:
        """Totals for the admin dashboard. pending_claims covers both claim kinds."""
        try:
            total_dancers = (await execute_read(db, select(func.count()).select_from(Dancer))).scalar_one()
            total_crews = (await execute_read(db, select(func.count()).select_from(Crew))).scalar_one()
            total_competitions = (
                await execute_read(db, select(func.count()).select_from(Competition))
            ).scalar_one()
            pending_dancer = (
                await execute_read(
                    db,
                    select(func.count())
                    .select_from(DancerClaimRequest)
                    .where(DancerClaimRequest.status == ClaimStatus.PENDING.value),
                )
            ).scalar_one()
            pending_crew = (
                await execute_read(
                    db,
                    select(func.count())
                    .select_from(CrewClaimRequest)
                    .where(CrewClaimRequest.status == ClaimStatus.PENDING.value),
                )
            ).scalar_one()
        except Exception as e:
            logger.error("Loading system stats failed: %s", str(e), exc_info=True)
            raise DatabaseError(context={"error_type": type(e).__name__})

        return SystemStats(
            total_dancers=total_dancers,
            total_crews=total_crews,
            total_competitions=total_competitions,
            pending_claims=pending_dancer + pending_crew,
            last_updated=utcnow(),
        )


dancer_service = DancerService()
