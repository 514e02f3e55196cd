"""
ChampStep Backend — Directory Schemas
=======================================

What:  Dancer and crew listing models for the ranking page.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class DancerResponse(BaseModel):
    id: uuid.UUID
    nickname: str
    name: str
    crew: Optional[str] = None
    genres: List[str] = Field(default_factory=list)
    bio: Optional[str] = None
    instagram_url: Optional[str] = None
    youtube_url: Optional[str] = None
    twitter_url: Optional[str] = None
    avatar: Optional[str] = None
    total_points: int
    rank: Optional[int] = None
    is_verified: bool
    is_claimed: bool = Field(description="Whether a user owns this record")

    @classmethod
    def from_model(cls, dancer) -> "DancerResponse":
        return cls(
            id=dancer.id,
            nickname=dancer.nickname,
            name=dancer.name,
            crew=dancer.crew,
            genres=list(dancer.genres or []),
            bio=dancer.bio,
            instagram_url=dancer.instagram_url,
            youtube_url=dancer.youtube_url,
            twitter_url=dancer.twitter_url,
            avatar=dancer.avatar,
            total_points=dancer.total_points,
            rank=dancer.rank,
            is_verified=dancer.is_verified,
            is_claimed=dancer.user_id is not None,
        )


class DancerListResponse(BaseModel):
    """
    One page of the ranking list.

    genres / crews are the facets across ALL dancers (not just this page) so
    the filter dropdowns stay stable while paging.
    """
    dancers: List[DancerResponse]
    total_count: int = Field(description="Dancers matching the filters")
    page: int
    page_size: int
    has_more: bool
    genres: List[str]
    crews: List[str]


class CrewResponse(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    genres: List[str] = Field(default_factory=list)
    location: Optional[str] = None
    instagram_url: Optional[str] = None
    youtube_url: Optional[str] = None
    is_verified: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class SystemStats(BaseModel):
    total_dancers: int
    total_crews: int
    total_competitions: int
    pending_claims: int
    last_updated: datetime
