"""
ChampStep Backend — Recommendation Schemas
============================================
"""

import uuid
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class RecommendationCreate(BaseModel):
    message: str = Field(default="", max_length=2000, description="Why you vouch for this dancer")


class RecommendationDecision(BaseModel):
    approve: bool


class RecommendationResponse(BaseModel):
    id: uuid.UUID
    claim_id: uuid.UUID
    recommender_user_id: uuid.UUID
    recommender_dancer_id: uuid.UUID
    message: str
    status: Literal["pending", "approved", "rejected"]
    submitted_at: datetime
    reviewed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class RecommendationReviewResponse(BaseModel):
    """Result of reviewing a vouch, including whether it tipped the claim over the quorum."""
    recommendation: RecommendationResponse
    approved_count: int
    claim_auto_approved: bool
