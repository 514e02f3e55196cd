"""
ChampStep Backend — Registration Schemas
==========================================

What:  Request and response models for dancer / crew registration.
Why:   The two registration forms carry different required fields, so they are
       modeled as two variants tagged by `kind` instead of one loose payload.
How:   `RegistrationRequest` is a discriminated union; FastAPI selects the
       variant from the `kind` field and validates only that variant's fields.

Validation happens here, before any service or database call: names are
trimmed and must not be blank; genres are trimmed, de-duplicated and
order-preserving.
"""

import uuid
from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import AfterValidator, BaseModel, Field


def _strip_required(value: str) -> str:
    stripped = value.strip()
    if not stripped:
        raise ValueError("must not be blank")
    return stripped


def _strip_optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


def _clean_genres(values: List[str]) -> List[str]:
    seen: List[str] = []
    for genre in values:
        genre = genre.strip()
        if genre and genre not in seen:
            seen.append(genre)
    return seen


RequiredName = Annotated[str, Field(max_length=100), AfterValidator(_strip_required)]
OptionalText = Annotated[Optional[str], Field(max_length=5000), AfterValidator(_strip_optional)]
OptionalUrl = Annotated[Optional[str], Field(max_length=500), AfterValidator(_strip_optional)]
Genres = Annotated[List[str], Field(default_factory=list, max_length=20), AfterValidator(_clean_genres)]


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class SocialMediaEvidence(BaseModel):
    """The requester will post a generated verification code from this account."""
    method: Literal["social_media"] = "social_media"
    platform: Literal["instagram", "youtube", "tiktok", "twitter"]
    handle: Annotated[str, Field(max_length=100), AfterValidator(_strip_required)]


class CompetitionEvidence(BaseModel):
    """A recorded competition the dancer took part in, with a link to proof."""
    method: Literal["competition_record"] = "competition_record"
    competition_id: uuid.UUID
    evidence_url: Annotated[str, Field(max_length=500), AfterValidator(_strip_required)]
    description: OptionalText = None


VerificationEvidence = Annotated[
    Union[SocialMediaEvidence, CompetitionEvidence],
    Field(discriminator="method"),
]


class DancerRegistration(BaseModel):
    """
    Dancer sign-up form. nickname and real name are both required.

    `evidence` is only used when the form matches an existing dancer; it is
    stored on the resulting claim request for the reviewing admin.
    """
    kind: Literal["dancer"] = "dancer"
    nickname: RequiredName
    name: RequiredName
    genres: Genres
    bio: OptionalText = None
    instagram_url: OptionalUrl = None
    youtube_url: OptionalUrl = None
    twitter_url: OptionalUrl = None
    evidence: Optional[VerificationEvidence] = None


class CrewRegistration(BaseModel):
    """Crew sign-up form. Only the crew name is required."""
    kind: Literal["crew"] = "crew"
    name: RequiredName
    description: OptionalText = None
    genres: Genres
    location: Annotated[Optional[str], Field(max_length=200), AfterValidator(_strip_optional)] = None
    instagram_url: OptionalUrl = None
    youtube_url: OptionalUrl = None


RegistrationRequest = Annotated[
    Union[DancerRegistration, CrewRegistration],
    Field(discriminator="kind"),
]


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class RegistrationResult(BaseModel):
    """
    Outcome of a registration.

    type:
        success  a new verified identity was created and is owned by the caller
        pending  the name matched an existing identity; a claim request now
                 waits for approval
        error    only ever produced by the error handlers (see ErrorResponse)
    """
    type: Literal["success", "pending", "error"]
    message: str
    is_existing: bool = Field(description="True when an existing record was matched")
    identity_id: Optional[uuid.UUID] = Field(
        default=None, description="Created identity (success) or matched identity (pending)"
    )
    claim_request_id: Optional[uuid.UUID] = Field(default=None, description="Set for pending outcomes")
    verification_code: Optional[str] = Field(
        default=None, description="Code to post from the social media account named as evidence"
    )


class VerifiedDancerSummary(BaseModel):
    id: uuid.UUID
    nickname: str
    name: str
    is_verified: bool

    model_config = {"from_attributes": True}


class VerifiedCrewSummary(BaseModel):
    id: uuid.UUID
    name: str
    is_verified: bool

    model_config = {"from_attributes": True}


class PendingClaimSummary(BaseModel):
    id: uuid.UUID
    kind: Literal["dancer", "crew"]
    requested_name: str
    target_id: uuid.UUID
    target_name: str
    status: str
    created_at: datetime


class RegistrationStatus(BaseModel):
    """What the signed-in user currently owns and is waiting on."""
    verified_dancer: Optional[VerifiedDancerSummary] = None
    verified_crew: Optional[VerifiedCrewSummary] = None
    pending_dancer_requests: List[PendingClaimSummary] = Field(default_factory=list)
    pending_crew_requests: List[PendingClaimSummary] = Field(default_factory=list)
