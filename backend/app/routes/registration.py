"""
ChampStep Backend — Registration Routes
=========================================

What:  Sign-up as a dancer or crew, and the caller's registration status.

Outcomes (200 OK, body RegistrationResult):
    type=success   new verified identity owned by the caller
    type=pending   name matched an existing identity; claim request filed

Failures use the shared ErrorResponse body:
    400 blank nickname / name      409 already own a profile, or a claim
    401 missing / invalid token        for this identity is already pending
    503 database unavailable (retry the whole registration)
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import Actor, get_current_actor
from app.database import get_db_session
from app.schemas.common import ErrorResponse
from app.schemas.registration import (
    CrewRegistration,
    DancerRegistration,
    RegistrationRequest,
    RegistrationResult,
    RegistrationStatus,
)
from app.services.registration_service import registration_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/registrations", tags=["Registration"])

_ERRORS = {
    400: {"description": "Invalid registration form", "model": ErrorResponse},
    401: {"description": "Not signed in", "model": ErrorResponse},
    409: {"description": "Conflicts with an existing profile or claim", "model": ErrorResponse},
    503: {"description": "Database unavailable", "model": ErrorResponse},
}


@router.post(
    "",
    response_model=RegistrationResult,
    responses=_ERRORS,
    summary="Register as a dancer or crew (tagged by `kind`)",
)
async def register(
    payload: RegistrationRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session),
) -> RegistrationResult:
    return await registration_service.register(db, actor, payload)


@router.post(
    "/dancer",
    response_model=RegistrationResult,
    responses=_ERRORS,
    summary="Register as a dancer",
)
async def register_dancer(
    payload: DancerRegistration,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session),
) -> RegistrationResult:
    """
    Creates a verified dancer profile, or files a claim request when the
    nickname or real name matches an existing dancer.
    """
    return await registration_service.register_dancer(db, actor, payload)


@router.post(
    "/crew",
    response_model=RegistrationResult,
    responses=_ERRORS,
    summary="Register a crew",
)
async def register_crew(
    payload: CrewRegistration,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session),
) -> RegistrationResult:
    return await registration_service.register_crew(db, actor, payload)


@router.get(
    "/me",
    response_model=RegistrationStatus,
    responses={401: _ERRORS[401], 503: _ERRORS[503]},
    summary="Your verified profiles and pending claim requests",
)
async def my_registration_status(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session),
) -> RegistrationStatus:
    return await registration_service.get_registration_status(db, actor)
