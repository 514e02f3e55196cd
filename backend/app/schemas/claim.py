"""
ChampStep Backend — Claim Request Schemas
===========================================

What:  API models for the admin claim-request queue and decisions.
Who:   Returned by /api/admin/claims; accepted by the decision endpoint.
"""

import uuid
from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class ClaimDecision(BaseModel):
    """Admin approve/reject payload. `reason` is stored as the admin note."""
    approve: bool
    reason: Optional[str] = Field(default=None, max_length=2000)


class ClaimEvidenceResponse(BaseModel):
    """Evidence attached to a dancer claim; only the fields of `method` are set."""
    method: Literal["admin_approval", "social_media", "competition_record"]
    platform: Optional[str] = None
    handle: Optional[str] = None
    verification_code: Optional[str] = None
    competition_id: Optional[uuid.UUID] = None
    evidence_url: Optional[str] = None
    description: Optional[str] = None


class ClaimRequestResponse(BaseModel):
    """
    A claim request as shown in the admin queue.

    `requested` holds the field values the user proposed; they are applied to
    the target identity when the request is approved.
    """
    id: uuid.UUID
    kind: Literal["dancer", "crew"]
    user_id: uuid.UUID
    target_id: uuid.UUID
    target_name: Optional[str] = None
    status: Literal["pending", "approved", "rejected"]
    requested: Dict[str, object] = Field(default_factory=dict)
    evidence: Optional[ClaimEvidenceResponse] = Field(default=None, description="Dancer claims only")
    admin_note: Optional[str] = None
    reviewed_by: Optional[uuid.UUID] = None
    created_at: datetime
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None


class ClaimListResponse(BaseModel):
    claims: List[ClaimRequestResponse]
    counts: Dict[str, int] = Field(
        description="Number of requests per status across the selected kind(s)"
    )
