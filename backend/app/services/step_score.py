"""
ChampStep Backend — Step Score
================================

What:  Rates a competition from its size and history, converts placements
       into points, and rebuilds the dancer ranking from those points.

Competition Rating (each criterion 5-20, total 20-80):
    prize pool (10k KRW)   ≤50 → 5    ≤100 → 10   ≤300 → 15   else 20
    judges                 ≤1  → 5    ≤2   → 10   ≤4   → 15   else 20
    participants           ≤50 → 5    ≤100 → 10   ≤300 → 15   else 20
    edition                ≤1  → 5    ≤2   → 8    ≤4   → 12   ≤9 → 16   else 20

    grade:  ≥70 S   ≥55 A   ≥40 B   ≥25 C   else D

Award Points:
    round_half_up(total_score × multiplier)
    1st 1.0 · 2nd 0.7 · 3rd 0.5 · 4th 0.3 · 5th 0.2 · anything else 0.1

The scoring functions are pure; only the two service functions at the bottom
touch the database.
"""

import logging
import math
import re
import uuid
from collections import defaultdict
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import execute_read
from app.exceptions import ChampStepError, DatabaseError, NotFoundError
from app.models.competition import Competition, CompetitionResult
from app.models.identity import Dancer
from app.schemas.step_score import (
    AwardPoints,
    CompetitionMetrics,
    CompetitionRating,
    RankingRecalculationResponse,
    StepScoreResponse,
)

logger = logging.getLogger(__name__)

AWARD_MULTIPLIERS: Dict[int, float] = {1: 1.0, 2: 0.7, 3: 0.5, 4: 0.3, 5: 0.2}
PARTICIPATION_MULTIPLIER = 0.1

# Participant count assumed when the event publishes no limit
DEFAULT_PARTICIPANT_COUNT = 100

GRADE_DESCRIPTIONS = {
    "S": "Top grade - premium competition",
    "A": "High grade - major competition",
    "B": "Mid grade - standard competition",
    "C": "Entry grade - small competition",
    "D": "Starter grade - rookie or local competition",
}

_PRIZE_PATTERN = re.compile(r"(\d+)만원")
_EDITION_PATTERN = re.compile(r"(\d+)회차|Vol\.?\s*(\d+)|제(\d+)회", re.IGNORECASE)


def _tier(value: int, bounds, scores, top: int) -> int:
    for bound, score in zip(bounds, scores):
        if value <= bound:
            return score
    return top


def prize_pool_score(prize_pool: int) -> int:
    return _tier(prize_pool, (50, 100, 300), (5, 10, 15), 20)


def judge_count_score(judge_count: int) -> int:
    return _tier(judge_count, (1, 2, 4), (5, 10, 15), 20)


def participant_count_score(participant_count: int) -> int:
    return _tier(participant_count, (50, 100, 300), (5, 10, 15), 20)


def edition_score(edition: int) -> int:
    return _tier(edition, (1, 2, 4, 9), (5, 8, 12, 16), 20)


def competition_grade(total_score: int) -> str:
    if total_score >= 70:
        return "S"
    if total_score >= 55:
        return "A"
    if total_score >= 40:
        return "B"
    if total_score >= 25:
        return "C"
    return "D"


def rate_competition(metrics: CompetitionMetrics) -> CompetitionRating:
    scores = {
        "prize_pool_score": prize_pool_score(metrics.prize_pool),
        "judge_count_score": judge_count_score(metrics.judge_count),
        "participant_count_score": participant_count_score(metrics.participant_count),
        "edition_score": edition_score(metrics.edition),
    }
    total = sum(scores.values())
    return CompetitionRating(**scores, total_score=total, grade=competition_grade(total))


def award_multiplier(placement: Optional[int]) -> float:
    if placement is None:
        return PARTICIPATION_MULTIPLIER
    return AWARD_MULTIPLIERS.get(placement, PARTICIPATION_MULTIPLIER)


def award_points(rating: CompetitionRating, placement: Optional[int]) -> int:
    """Points earned for `placement` (None = took part without placing)."""
    # Half-up rounding: 2.5 → 3, not Python's banker's rounding
    return int(math.floor(rating.total_score * award_multiplier(placement) + 0.5))


def award_table(rating: CompetitionRating) -> List[AwardPoints]:
    """Points for 1st through 5th place followed by the participation row."""
    placements: List[Optional[int]] = sorted(AWARD_MULTIPLIERS) + [None]
    return [
        AwardPoints(placement=p, multiplier=award_multiplier(p), points=award_points(rating, p))
        for p in placements
    ]


def extract_competition_metrics(
    event_name: str = "",
    prize_details: str = "",
    judge_count: int = 0,
    participant_limit: Optional[int] = None,
) -> CompetitionMetrics:
    """
    Derive metrics from free-form event listing fields.

    "총 상금 100만원" → prize_pool 100; "제3회 ...", "... 3회차" and
    "... Vol. 3" → edition 3. Missing values fall back to 0 prize, edition 1
    and DEFAULT_PARTICIPANT_COUNT participants.
    """
    prize_match = _PRIZE_PATTERN.search(prize_details or "")
    prize_pool = int(prize_match.group(1)) if prize_match else 0

    edition = 1
    edition_match = _EDITION_PATTERN.search(event_name or "")
    if edition_match:
        edition = int(next(g for g in edition_match.groups() if g is not None))

    participants = participant_limit if isinstance(participant_limit, int) else DEFAULT_PARTICIPANT_COUNT

    return CompetitionMetrics(
        prize_pool=prize_pool,
        judge_count=max(judge_count, 0),
        participant_count=max(participants, 0),
        edition=max(edition, 1),
    )


def metrics_for(competition: Competition) -> CompetitionMetrics:
    return CompetitionMetrics(
        prize_pool=competition.prize_pool,
        judge_count=competition.judge_count,
        participant_count=competition.participant_count,
        edition=max(competition.edition, 1),
    )


def step_score_for(metrics: CompetitionMetrics, competition_id: Optional[uuid.UUID] = None) -> StepScoreResponse:
    rating = rate_competition(metrics)
    return StepScoreResponse(
        competition_id=competition_id,
        metrics=metrics,
        rating=rating,
        grade_description=GRADE_DESCRIPTIONS[rating.grade],
        awards=award_table(rating),
    )


def competition_ranks(points: Dict[uuid.UUID, int]) -> Dict[uuid.UUID, int]:
    """
    Standard competition ranking ("1224"): equal points share a rank and the
    following rank skips. Only dancers with points above zero are ranked.
    """
    ordered = sorted(((p, d) for d, p in points.items() if p > 0), key=lambda item: -item[0])
    ranks: Dict[uuid.UUID, int] = {}
    previous = None
    current_rank = 0
    for position, (score, dancer_id) in enumerate(ordered, start=1):
        if score != previous:
            current_rank = position
            previous = score
        ranks[dancer_id] = current_rank
    return ranks


# ── Database-backed operations ────────────────────────────────────────────


async def get_competition_step_score(db: AsyncSession, competition_id: uuid.UUID) -> StepScoreResponse:
    try:
        result = await execute_read(db, select(Competition).where(Competition.id == competition_id))
        competition = result.scalar_one_or_none()
    except Exception as e:
        logger.error("Loading competition %s failed: %s", competition_id, str(e), exc_info=True)
        raise DatabaseError(context={"error_type": type(e).__name__})

    if competition is None:
        raise NotFoundError(resource="competition", resource_id=str(competition_id))
    return step_score_for(metrics_for(competition), competition_id=competition.id)


async def recalculate_rankings(db: AsyncSession) -> RankingRecalculationResponse:
    """
    Rebuild every dancer's total_points and rank from competition results.

    Dancers without points are left unranked (rank NULL).
    """
    try:
        competitions = (await db.execute(select(Competition))).scalars().all()
        ratings = {c.id: rate_competition(metrics_for(c)) for c in competitions}

        results = (await db.execute(select(CompetitionResult))).scalars().all()
        totals: Dict[uuid.UUID, int] = defaultdict(int)
        for row in results:
            rating = ratings.get(row.competition_id)
            if rating is not None:
                totals[row.dancer_id] += award_points(rating, row.placement)

        ranks = competition_ranks(totals)

        dancers = (await db.execute(select(Dancer))).scalars().all()
        for dancer in dancers:
            dancer.total_points = totals.get(dancer.id, 0)
            dancer.rank = ranks.get(dancer.id)
        await db.flush()

    except ChampStepError:
        raise
    except Exception as e:
        logger.error("Ranking recalculation failed: %s", str(e), exc_info=True)
        raise DatabaseError(
            message="Rankings could not be recalculated. Please try again.",
            context={"error_type": type(e).__name__},
        )

    logger.info(
        "Recalculated rankings: %d dancers updated from %d results across %d competitions",
        len(dancers),
        len(results),
        len(competitions),
    )
    return RankingRecalculationResponse(dancers_updated=len(dancers), ranked_dancers=len(ranks))
