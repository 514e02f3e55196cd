"""
ChampStep Backend — Registration Service
==========================================

What:  Turns a user's dancer / crew sign-up into either a new verified
       identity or a pending claim request against an existing one.
Who:   Called by the /api/registrations routes.

Registration Flow:
    ┌────────────┐    ┌──────────────────┐   no match   ┌─────────────────────┐
    │ Validated  │───▶│ Duplicate check  │─────────────▶│ New verified record │ → success
    │ form       │    │ (loose substring)│              └─────────────────────┘
    └────────────┘    └──────────────────┘    match     ┌─────────────────────┐
                                     └─────────────────▶│ Pending claim       │ → pending
                                                        └─────────────────────┘

Matching Policy:
    Case-insensitive substring matching in BOTH directions: "Spins" matches a
    stored "Spin" and "Spin" matches a stored "Spinster". Dancers match on
    nickname OR real name, crews on name. The policy deliberately favours
    recall; a missed duplicate costs more than an extra approval step. Only the
    first match (oldest record) is used.

Claimable Identities:
    Only unowned identities can be claimed. A match that another user already
    owns is a conflict, and so is a match that already has a pending claim
    request from anyone: an identity has at most one unresolved claim.

Error Handling:
    ValidationError / ConflictError propagate unchanged. Anything else is a
    persistence failure: logged with the stack trace and re-raised as a
    retryable DatabaseError with a generic message.
"""

import logging
import secrets
import uuid
from typing import Optional, Union

from sqlalchemy import String, and_, func, literal, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import Actor
from app.database import execute_read
from app.exceptions import ChampStepError, ConflictError, DatabaseError, ValidationError
from app.models.claim import (
    ClaimKind,
    ClaimStatus,
    CrewClaimRequest,
    DancerClaimRequest,
    VerificationMethod,
)
from app.models.competition import Competition
from app.models.identity import Crew, Dancer
from app.schemas.registration import (
    CompetitionEvidence,
    CrewRegistration,
    DancerRegistration,
    PendingClaimSummary,
    RegistrationResult,
    RegistrationStatus,
    SocialMediaEvidence,
    VerifiedCrewSummary,
    VerifiedDancerSummary,
)

logger = logging.getLogger(__name__)


LIKE_ESCAPE = "/"


def _escape_like(expression):
    """Escape LIKE metacharacters inside a SQL string expression (the escape char first)."""
    for char in (LIKE_ESCAPE, "%", "_"):
        expression = func.replace(expression, char, LIKE_ESCAPE + char, type_=String)
    return expression


def _matches_either_way(column, value: str):
    """
    SQL predicate: `column` contains `value`, or `value` contains `column`,
    ignoring case. Empty stored values never match. `%` and `_` are literal
    on both sides.
    """
    lowered = value.lower()
    stored = func.lower(column, type_=String)
    return or_(
        stored.contains(lowered, autoescape=True),
        and_(
            func.length(column) > 0,
            literal(lowered, String).like(
                literal("%", String) + _escape_like(stored) + literal("%", String),
                escape=LIKE_ESCAPE,
            ),
        ),
    )


def generate_verification_code() -> str:
    """Code the requester posts from the social media account named as evidence."""
    return f"CHAMPSTEP_{secrets.token_hex(3).upper()}"


async def _ensure_no_pending_claim(
    db: AsyncSession, claim_model, kind: ClaimKind, target_id: uuid.UUID, actor: Actor
) -> None:
    """An identity has at most one unresolved claim request, whoever filed it."""
    label = kind.value
    result = await db.execute(
        select(claim_model.user_id).where(
            getattr(claim_model, f"{label}_id") == target_id,
            claim_model.status == ClaimStatus.PENDING.value,
        )
    )
    requester = result.scalars().first()
    if requester is None:
        return
    if requester == actor.user_id:
        raise ConflictError(message=f"A claim request for this {label} is already in progress")
    raise ConflictError(message=f"Another claim request for this {label} is already awaiting review")


class RegistrationService:
    """
    Registration & duplicate detection.

    Stateless; every call receives the session and the acting user.
    """

    async def register(
        self,
        db: AsyncSession,
        actor: Actor,
        data: Union[DancerRegistration, CrewRegistration],
    ) -> RegistrationResult:
        """Dispatches on the registration variant's `kind`."""
        if data.kind == ClaimKind.DANCER.value:
            return await self.register_dancer(db, actor, data)
        return await self.register_crew(db, actor, data)

    # ── Dancers ───────────────────────────────────────────────────────────

    async def register_dancer(
        self, db: AsyncSession, actor: Actor, data: DancerRegistration
    ) -> RegistrationResult:
        """
        Register the actor as a dancer.

        Returns:
            success  new Dancer(is_verified=True, user_id=actor)
            pending  DancerClaimRequest(status='pending') against the match

        Raises:
            ConflictError: actor already owns a dancer; the matched record is
                owned by someone or already has a pending claim request
            ValidationError: competition evidence names an unknown competition
            DatabaseError: persistence failed (retryable)
        """
        try:
            await self._ensure_owns_no_dancer(db, actor)

            existing = await self.find_existing_dancer(db, data.nickname, data.name)
            if existing is not None:
                if existing.user_id == actor.user_id:
                    raise ConflictError(message="You already own this dancer profile")
                if existing.user_id is not None:
                    raise ConflictError(
                        message=f'The dancer profile "{existing.nickname}" is already verified by another user',
                        context={"identity_id": str(existing.id)},
                    )

                claim = await self._create_dancer_claim_request(db, actor, existing, data)
                logger.info(
                    "Dancer registration by %s matched dancer %s; claim request %s pending",
                    actor.user_id,
                    existing.id,
                    claim.id,
                )
                return RegistrationResult(
                    type="pending",
                    message=(
                        f'A claim request for the existing dancer "{existing.nickname}" '
                        "was sent to the administrators. Approval can take 1-2 days."
                    ),
                    is_existing=True,
                    identity_id=existing.id,
                    claim_request_id=claim.id,
                    verification_code=claim.verification_code,
                )

            dancer = Dancer(
                user_id=actor.user_id,
                nickname=data.nickname,
                name=data.name,
                genres=list(data.genres),
                bio=data.bio,
                instagram_url=data.instagram_url,
                youtube_url=data.youtube_url,
                twitter_url=data.twitter_url,
                is_verified=True,
            )
            db.add(dancer)
            await db.flush()
            logger.info("Registered new dancer %s (%s) for user %s", dancer.id, dancer.nickname, actor.user_id)

            return RegistrationResult(
                type="success",
                message=f'Registered as dancer "{dancer.nickname}".',
                is_existing=False,
                identity_id=dancer.id,
            )

        except ChampStepError:
            raise
        except Exception as e:
            logger.error("Dancer registration failed for user %s: %s", actor.user_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Dancer registration failed. Please try again.",
                context={"error_type": type(e).__name__},
            )

    async def find_existing_dancer(
        self, db: AsyncSession, nickname: str, name: str
    ) -> Optional[Dancer]:
        """First dancer whose nickname or real name loosely matches, oldest first."""
        result = await db.execute(
            select(Dancer)
            .where(or_(_matches_either_way(Dancer.nickname, nickname), _matches_either_way(Dancer.name, name)))
            .order_by(Dancer.created_at, Dancer.id)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _ensure_owns_no_dancer(self, db: AsyncSession, actor: Actor) -> None:
        result = await db.execute(select(Dancer.id).where(Dancer.user_id == actor.user_id).limit(1))
        if result.scalar_one_or_none() is not None:
            raise ConflictError(message="You already have a verified dancer profile")

    async def _create_dancer_claim_request(
        self,
        db: AsyncSession,
        actor: Actor,
        dancer: Dancer,
        data: DancerRegistration,
    ) -> DancerClaimRequest:
        await _ensure_no_pending_claim(db, DancerClaimRequest, ClaimKind.DANCER, dancer.id, actor)

        claim = DancerClaimRequest(
            user_id=actor.user_id,
            dancer_id=dancer.id,
            requested_nickname=data.nickname,
            requested_name=data.name,
            requested_genres=list(data.genres),
            requested_bio=data.bio,
            requested_instagram_url=data.instagram_url,
            requested_youtube_url=data.youtube_url,
            requested_twitter_url=data.twitter_url,
            status=ClaimStatus.PENDING.value,
        )
        await self._attach_evidence(db, claim, data.evidence)

        db.add(claim)
        try:
            await db.flush()
        except IntegrityError:
            # A concurrent submission won the race to the partial unique index
            raise ConflictError(message="Another claim request for this dancer is already awaiting review")
        return claim

    async def _attach_evidence(
        self,
        db: AsyncSession,
        claim: DancerClaimRequest,
        evidence: Optional[Union[SocialMediaEvidence, CompetitionEvidence]],
    ) -> None:
        if evidence is None:
            claim.verification_method = VerificationMethod.ADMIN_APPROVAL.value
            return

        if isinstance(evidence, SocialMediaEvidence):
            claim.verification_method = VerificationMethod.SOCIAL_MEDIA.value
            claim.social_platform = evidence.platform
            claim.social_handle = evidence.handle
            claim.verification_code = generate_verification_code()
            return

        if await db.get(Competition, evidence.competition_id) is None:
            raise ValidationError(
                message="The competition named as evidence does not exist",
                field="evidence.competition_id",
            )
        claim.verification_method = VerificationMethod.COMPETITION_RECORD.value
        claim.evidence_competition_id = evidence.competition_id
        claim.evidence_url = evidence.evidence_url
        claim.evidence_description = evidence.description

    # ── Crews ─────────────────────────────────────────────────────────────

    async def register_crew(
        self, db: AsyncSession, actor: Actor, data: CrewRegistration
    ) -> RegistrationResult:
        """Crew counterpart of register_dancer(); matches on crew name only."""
        try:
            await self._ensure_owns_no_crew(db, actor)

            existing = await self.find_existing_crew(db, data.name)
            if existing is not None:
                if existing.user_id == actor.user_id:
                    raise ConflictError(message="You already own this crew profile")
                if existing.user_id is not None:
                    raise ConflictError(
                        message=f'The crew profile "{existing.name}" is already verified by another user',
                        context={"identity_id": str(existing.id)},
                    )

                claim = await self._create_crew_claim_request(db, actor, existing, data)
                logger.info(
                    "Crew registration by %s matched crew %s; claim request %s pending",
                    actor.user_id,
                    existing.id,
                    claim.id,
                )
                return RegistrationResult(
                    type="pending",
                    message=(
                        f'A claim request for the existing crew "{existing.name}" '
                        "was sent to the administrators. Approval can take 1-2 days."
                    ),
                    is_existing=True,
                    identity_id=existing.id,
                    claim_request_id=claim.id,
                )

            crew = Crew(
                user_id=actor.user_id,
                name=data.name,
                description=data.description,
                genres=list(data.genres),
                location=data.location,
                instagram_url=data.instagram_url,
                youtube_url=data.youtube_url,
                is_verified=True,
            )
            db.add(crew)
            await db.flush()
            logger.info("Registered new crew %s (%s) for user %s", crew.id, crew.name, actor.user_id)

            return RegistrationResult(
                type="success",
                message=f'Crew "{crew.name}" was registered.',
                is_existing=False,
                identity_id=crew.id,
            )

        except ChampStepError:
            raise
        except Exception as e:
            logger.error("Crew registration failed for user %s: %s", actor.user_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Crew registration failed. Please try again.",
                context={"error_type": type(e).__name__},
            )

    async def find_existing_crew(self, db: AsyncSession, name: str) -> Optional[Crew]:
        result = await db.execute(
            select(Crew)
            .where(_matches_either_way(Crew.name, name))
            .order_by(Crew.created_at, Crew.id)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _ensure_owns_no_crew(self, db: AsyncSession, actor: Actor) -> None:
        result = await db.execute(select(Crew.id).where(Crew.user_id == actor.user_id).limit(1))
        if result.scalar_one_or_none() is not None:
            raise ConflictError(message="You already have a verified crew profile")

    async def _create_crew_claim_request(
        self,
        db: AsyncSession,
        actor: Actor,
        crew: Crew,
        data: CrewRegistration,
    ) -> CrewClaimRequest:
        await _ensure_no_pending_claim(db, CrewClaimRequest, ClaimKind.CREW, crew.id, actor)

        claim = CrewClaimRequest(
            user_id=actor.user_id,
            crew_id=crew.id,
            requested_name=data.name,
            requested_description=data.description,
            requested_genres=list(data.genres),
            requested_location=data.location,
            requested_instagram_url=data.instagram_url,
            requested_youtube_url=data.youtube_url,
            status=ClaimStatus.PENDING.value,
        )
        db.add(claim)
        try:
            await db.flush()
        except IntegrityError:
            raise ConflictError(message="Another claim request for this crew is already awaiting review")
        return claim

    # ── Status ────────────────────────────────────────────────────────────

    async def get_registration_status(self, db: AsyncSession, actor: Actor) -> RegistrationStatus:
        """The actor's verified identities and still-pending claim requests."""
        try:
            dancer_result = await execute_read(
                db,
                select(Dancer).where(Dancer.user_id == actor.user_id, Dancer.is_verified.is_(True)).limit(1),
            )
            crew_result = await execute_read(
                db,
                select(Crew).where(Crew.user_id == actor.user_id, Crew.is_verified.is_(True)).limit(1),
            )
            dancer_claims = await execute_read(
                db,
                select(DancerClaimRequest, Dancer.nickname)
                .join(Dancer, Dancer.id == DancerClaimRequest.dancer_id)
                .where(
                    DancerClaimRequest.user_id == actor.user_id,
                    DancerClaimRequest.status == ClaimStatus.PENDING.value,
                )
                .order_by(DancerClaimRequest.created_at.desc()),
            )
            crew_claims = await execute_read(
                db,
                select(CrewClaimRequest, Crew.name)
                .join(Crew, Crew.id == CrewClaimRequest.crew_id)
                .where(
                    CrewClaimRequest.user_id == actor.user_id,
                    CrewClaimRequest.status == ClaimStatus.PENDING.value,
                )
                .order_by(CrewClaimRequest.created_at.desc()),
            )
        except Exception as e:
            logger.error("Could not load registration status for %s: %s", actor.user_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not load your registration status. Please try again.",
                context={"error_type": type(e).__name__},
            )

        dancer = dancer_result.scalar_one_or_none()
        crew = crew_result.scalar_one_or_none()

        return RegistrationStatus(
            verified_dancer=VerifiedDancerSummary.model_validate(dancer) if dancer else None,
            verified_crew=VerifiedCrewSummary.model_validate(crew) if crew else None,
            pending_dancer_requests=[
                PendingClaimSummary(
                    id=claim.id,
                    kind="dancer",
                    requested_name=claim.requested_nickname,
                    target_id=claim.dancer_id,
                    target_name=nickname,
                    status=claim.status,
                    created_at=claim.created_at,
                )
                for claim, nickname in dancer_claims.all()
            ],
            pending_crew_requests=[
                PendingClaimSummary(
                    id=claim.id,
                    kind="crew",
                    requested_name=claim.requested_name,
                    target_id=claim.crew_id,
                    target_name=name,
                    status=claim.status,
                    created_at=claim.created_at,
                )
                for claim, name in crew_claims.all()
            ],
        )


registration_service = RegistrationService()
