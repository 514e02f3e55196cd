"""
ChampStep Backend — Step Score Schemas
========================================
"""

import uuid
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class CompetitionMetrics(BaseModel):
    """Inputs to a competition's rating."""
    prize_pool: int = Field(ge=0, description="Prize pool in units of 10,000 KRW")
    judge_count: int = Field(ge=0)
    participant_count: int = Field(ge=0)
    edition: int = Field(default=1, ge=1)


class CompetitionRating(BaseModel):
    prize_pool_score: int
    judge_count_score: int
    participant_count_score: int
    edition_score: int
    total_score: int = Field(description="Sum of the four criteria, 20-80")
    grade: Literal["S", "A", "B", "C", "D"]


class AwardPoints(BaseModel):
    placement: Optional[int] = Field(description="1-based placement; null = participation only")
    multiplier: float
    points: int


class StepScoreResponse(BaseModel):
    competition_id: Optional[uuid.UUID] = None
    metrics: CompetitionMetrics
    rating: CompetitionRating
    grade_description: str
    awards: List[AwardPoints]


class RankingRecalculationResponse(BaseModel):
    dancers_updated: int
    ranked_dancers: int


class CompetitionListing(BaseModel):
    """Free-form event listing fields as published by organisers."""
    event_name: str = Field(default="", max_length=200, description='e.g. "제3회 Seoul Breaking Open"')
    prize_details: str = Field(default="", max_length=500, description='e.g. "총 상금 100만원"')
    judge_count: int = Field(default=0, ge=0)
    participant_limit: Optional[int] = Field(default=None, ge=0)
