"""
ChampStep Backend — Registration Service Tests
================================================

What we test:
    ✅ No match → new verified identity owned by the caller
    ✅ Loose match (either direction, nickname or name) → pending claim, target untouched
    ✅ At most one in-flight claim per identity, from anyone; owned identities are refused
    ✅ Stored LIKE wildcards match literally
    ✅ Claim evidence: social media code, competition record
    ✅ Claim history blocks identity deletion
    ✅ One identity per kind per user
    ✅ Persistence failures surface as retryable DatabaseError
    ✅ Registration status lists verified profiles and pending claims
"""

import uuid

import pytest
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, OperationalError

from app.exceptions import ConflictError, DatabaseError, ValidationError
from app.models.claim import ClaimStatus, CrewClaimRequest, DancerClaimRequest, VerificationMethod
from app.models.identity import Crew, Dancer
from app.schemas.registration import CrewRegistration, DancerRegistration
from app.services.registration_service import RegistrationService, generate_verification_code


class TestRegisterDancer:

    def setup_method(self):
        self.service = RegistrationService()

    @pytest.mark.asyncio
    async def test_no_match_creates_verified_dancer(self, db_session, user_actor):
        result = await self.service.register_dancer(
            db_session,
            user_actor,
            DancerRegistration(nickname="Popper", name="Park", genres=["popping"]),
        )

        assert result.type == "success"
        assert result.is_existing is False
        dancer = await db_session.get(Dancer, result.identity_id)
        assert dancer.user_id == user_actor.user_id
        assert dancer.is_verified is True
        assert dancer.genres == ["popping"]

    @pytest.mark.asyncio
    async def test_matching_nickname_files_claim_and_leaves_target_untouched(
        self, db_session, make_dancer, user_actor
    ):
        existing = await make_dancer("Spin", "Kim", bio="Original bio")

        result = await self.service.register_dancer(
            db_session,
            user_actor,
            DancerRegistration(nickname="Spins", name="Lee", bio="My bio"),
        )

        assert result.type == "pending"
        assert result.is_existing is True
        assert result.identity_id == existing.id

        await db_session.refresh(existing)
        assert existing.user_id is None
        assert existing.bio == "Original bio"
        assert existing.nickname == "Spin"

        claim = await db_session.get(DancerClaimRequest, result.claim_request_id)
        assert claim.status == ClaimStatus.PENDING.value
        assert claim.user_id == user_actor.user_id
        assert claim.dancer_id == existing.id
        assert claim.requested_nickname == "Spins"
        assert claim.requested_bio == "My bio"

    @pytest.mark.asyncio
    async def test_real_name_matches_case_insensitively(self, db_session, make_dancer, user_actor):
        existing = await make_dancer("Spin", "Kim")

        result = await self.service.register_dancer(
            db_session, user_actor, DancerRegistration(nickname="Windmill", name="KIM")
        )

        assert result.type == "pending"
        assert result.identity_id == existing.id

    @pytest.mark.asyncio
    async def test_stored_value_containing_proposed_value_matches(self, db_session, make_dancer, user_actor):
        existing = await make_dancer("Spinster", "Choi")

        result = await self.service.register_dancer(
            db_session, user_actor, DancerRegistration(nickname="Spin", name="Han")
        )

        assert result.type == "pending"
        assert result.identity_id == existing.id

    @pytest.mark.asyncio
    async def test_oldest_match_wins(self, db_session, make_dancer, user_actor):
        first = await make_dancer("Spin", "Kim")
        await make_dancer("Spinner", "Jung")

        result = await self.service.register_dancer(
            db_session, user_actor, DancerRegistration(nickname="Spin", name="Yoon")
        )

        assert result.identity_id == first.id

    @pytest.mark.asyncio
    async def test_like_wildcards_in_input_are_literal(self, db_session, make_dancer, user_actor):
        await make_dancer("Spin", "Kim")

        result = await self.service.register_dancer(
            db_session, user_actor, DancerRegistration(nickname="%", name="_")
        )

        assert result.type == "success"

    @pytest.mark.asyncio
    async def test_like_wildcards_in_stored_names_are_literal(self, db_session, make_dancer, user_actor):
        await make_dancer("B_boy", "Kim")

        result = await self.service.register_dancer(
            db_session, user_actor, DancerRegistration(nickname="BQboyZ", name="Choi")
        )

        assert result.type == "success"

    @pytest.mark.asyncio
    async def test_stored_name_with_underscore_still_matches_itself(self, db_session, make_dancer, user_actor):
        existing = await make_dancer("B_boy", "Kim")

        result = await self.service.register_dancer(
            db_session, user_actor, DancerRegistration(nickname="The B_boy", name="Choi")
        )

        assert result.type == "pending"
        assert result.identity_id == existing.id

    @pytest.mark.asyncio
    async def test_second_claim_for_same_dancer_is_refused(self, db_session, make_dancer, user_actor):
        await make_dancer("Spin", "Kim")
        form = DancerRegistration(nickname="Spins", name="Lee")

        await self.service.register_dancer(db_session, user_actor, form)
        with pytest.raises(ConflictError):
            await self.service.register_dancer(db_session, user_actor, form)

        count = await db_session.execute(
            select(func.count()).select_from(DancerClaimRequest).where(
                DancerClaimRequest.user_id == user_actor.user_id,
                DancerClaimRequest.status == ClaimStatus.PENDING.value,
            )
        )
        assert count.scalar_one() == 1

    @pytest.mark.asyncio
    async def test_another_user_cannot_claim_a_dancer_awaiting_review(
        self, db_session, make_dancer, user_actor, other_actor
    ):
        dancer = await make_dancer("Spin", "Kim")

        first = await self.service.register_dancer(
            db_session, user_actor, DancerRegistration(nickname="Spins", name="Lee")
        )
        with pytest.raises(ConflictError, match="awaiting review"):
            await self.service.register_dancer(
                db_session, other_actor, DancerRegistration(nickname="Spinner", name="Jung")
            )

        assert first.type == "pending"
        count = await db_session.execute(
            select(func.count()).select_from(DancerClaimRequest).where(
                DancerClaimRequest.dancer_id == dancer.id,
                DancerClaimRequest.status == ClaimStatus.PENDING.value,
            )
        )
        assert count.scalar_one() == 1

    @pytest.mark.asyncio
    async def test_dancer_owned_by_another_user_cannot_be_claimed(
        self, db_session, make_dancer, user_actor, other_actor
    ):
        await make_dancer("Spin", "Kim", user_id=other_actor.user_id, is_verified=True)

        with pytest.raises(ConflictError, match="already verified by another user"):
            await self.service.register_dancer(
                db_session, user_actor, DancerRegistration(nickname="Spins", name="Lee")
            )

        count = await db_session.execute(select(func.count()).select_from(DancerClaimRequest))
        assert count.scalar_one() == 0

    @pytest.mark.asyncio
    async def test_owner_of_a_dancer_cannot_register_another(self, db_session, make_dancer, user_actor):
        await make_dancer("Popper", "Park", user_id=user_actor.user_id, is_verified=True)

        with pytest.raises(ConflictError, match="already have a verified dancer"):
            await self.service.register_dancer(
                db_session, user_actor, DancerRegistration(nickname="Locker", name="Seo")
            )

    @pytest.mark.asyncio
    async def test_database_failure_is_reported_as_retryable_error(self, mock_db_session, user_actor):
        mock_db_session.execute.side_effect = OperationalError("SELECT", {}, Exception("connection lost"))

        with pytest.raises(DatabaseError) as exc_info:
            await self.service.register_dancer(
                mock_db_session, user_actor, DancerRegistration(nickname="Popper", name="Park")
            )

        assert exc_info.value.message == "Dancer registration failed. Please try again."
        assert exc_info.value.context["error_type"] == "OperationalError"


class TestClaimEvidence:

    def setup_method(self):
        self.service = RegistrationService()

    @pytest.mark.asyncio
    async def test_claim_without_evidence_waits_for_admin_approval(self, db_session, make_dancer, user_actor):
        await make_dancer("Spin", "Kim")

        result = await self.service.register_dancer(
            db_session, user_actor, DancerRegistration(nickname="Spins", name="Lee")
        )

        claim = await db_session.get(DancerClaimRequest, result.claim_request_id)
        assert claim.verification_method == VerificationMethod.ADMIN_APPROVAL.value
        assert result.verification_code is None

    @pytest.mark.asyncio
    async def test_social_media_evidence_gets_a_verification_code(self, db_session, make_dancer, user_actor):
        await make_dancer("Spin", "Kim")
        form = DancerRegistration(
            nickname="Spins",
            name="Lee",
            evidence={"method": "social_media", "platform": "instagram", "handle": " spins.official "},
        )

        result = await self.service.register_dancer(db_session, user_actor, form)

        assert result.type == "pending"
        assert result.verification_code.startswith("CHAMPSTEP_")
        claim = await db_session.get(DancerClaimRequest, result.claim_request_id)
        assert claim.verification_method == VerificationMethod.SOCIAL_MEDIA.value
        assert claim.social_platform == "instagram"
        assert claim.social_handle == "spins.official"
        assert claim.verification_code == result.verification_code

    def test_verification_codes_differ(self):
        codes = {generate_verification_code() for _ in range(20)}

        assert len(codes) > 1
        assert all(len(code) == len("CHAMPSTEP_") + 6 for code in codes)

    @pytest.mark.asyncio
    async def test_competition_evidence_is_stored_on_the_claim(
        self, db_session, make_dancer, make_competition, user_actor
    ):
        await make_dancer("Spin", "Kim")
        final = await make_competition("World Final")
        form = DancerRegistration(
            nickname="Spins",
            name="Lee",
            evidence={
                "method": "competition_record",
                "competition_id": str(final.id),
                "evidence_url": "https://youtu.be/final-battle",
                "description": "Top 8 run",
            },
        )

        result = await self.service.register_dancer(db_session, user_actor, form)

        claim = await db_session.get(DancerClaimRequest, result.claim_request_id)
        assert claim.verification_method == VerificationMethod.COMPETITION_RECORD.value
        assert claim.evidence_competition_id == final.id
        assert claim.evidence_url == "https://youtu.be/final-battle"
        assert claim.evidence_description == "Top 8 run"
        assert result.verification_code is None

    @pytest.mark.asyncio
    async def test_unknown_competition_evidence_is_rejected(self, db_session, make_dancer, user_actor):
        await make_dancer("Spin", "Kim")
        form = DancerRegistration(
            nickname="Spins",
            name="Lee",
            evidence={
                "method": "competition_record",
                "competition_id": str(uuid.uuid4()),
                "evidence_url": "https://youtu.be/final-battle",
            },
        )

        with pytest.raises(ValidationError) as exc_info:
            await self.service.register_dancer(db_session, user_actor, form)

        assert exc_info.value.context["field"] == "evidence.competition_id"

    def test_unknown_evidence_method_is_rejected_by_the_form(self):
        with pytest.raises(PydanticValidationError):
            DancerRegistration(nickname="Spins", name="Lee", evidence={"method": "fax", "handle": "x"})


class TestPendingClaimIndex:

    @pytest.mark.asyncio
    async def test_database_rejects_two_pending_claims_for_same_pair(self, db_session, make_dancer):
        dancer = await make_dancer("Spin", "Kim")
        user_id = uuid.uuid4()

        for _ in range(2):
            db_session.add(
                DancerClaimRequest(
                    user_id=user_id,
                    dancer_id=dancer.id,
                    requested_nickname="Spin",
                    requested_name="Kim",
                )
            )
        with pytest.raises(IntegrityError):
            await db_session.flush()

    @pytest.mark.asyncio
    async def test_database_rejects_pending_claims_from_two_users(self, db_session, make_dancer):
        dancer = await make_dancer("Spin", "Kim")

        for _ in range(2):
            db_session.add(
                DancerClaimRequest(
                    user_id=uuid.uuid4(),
                    dancer_id=dancer.id,
                    requested_nickname="Spin",
                    requested_name="Kim",
                )
            )
        with pytest.raises(IntegrityError):
            await db_session.flush()

    @pytest.mark.asyncio
    async def test_dancer_with_claim_history_cannot_be_deleted(self, db_session, make_dancer):
        dancer = await make_dancer("Spin", "Kim")
        db_session.add(
            DancerClaimRequest(
                user_id=uuid.uuid4(),
                dancer_id=dancer.id,
                requested_nickname="Spin",
                requested_name="Kim",
                status=ClaimStatus.REJECTED.value,
            )
        )
        await db_session.flush()

        with pytest.raises(IntegrityError):
            await db_session.execute(delete(Dancer).where(Dancer.id == dancer.id))

    @pytest.mark.asyncio
    async def test_resolved_claim_does_not_block_a_new_one(self, db_session, make_dancer):
        dancer = await make_dancer("Spin", "Kim")
        user_id = uuid.uuid4()

        db_session.add(
            DancerClaimRequest(
                user_id=user_id,
                dancer_id=dancer.id,
                requested_nickname="Spin",
                requested_name="Kim",
                status=ClaimStatus.REJECTED.value,
            )
        )
        db_session.add(
            DancerClaimRequest(
                user_id=user_id, dancer_id=dancer.id, requested_nickname="Spin", requested_name="Kim"
            )
        )
        await db_session.flush()


class TestRegisterCrew:

    def setup_method(self):
        self.service = RegistrationService()

    @pytest.mark.asyncio
    async def test_no_match_creates_verified_crew(self, db_session, user_actor):
        result = await self.service.register_crew(
            db_session, user_actor, CrewRegistration(name="Rhythm Nation", location="Seoul")
        )

        assert result.type == "success"
        crew = await db_session.get(Crew, result.identity_id)
        assert crew.user_id == user_actor.user_id
        assert crew.is_verified is True
        assert crew.location == "Seoul"

    @pytest.mark.asyncio
    async def test_matching_crew_name_files_claim(self, db_session, make_crew, user_actor):
        existing = await make_crew("Jinjo Crew")

        result = await self.service.register_crew(
            db_session, user_actor, CrewRegistration(name="jinjo", description="B-boys")
        )

        assert result.type == "pending"
        assert result.identity_id == existing.id
        claim = await db_session.get(CrewClaimRequest, result.claim_request_id)
        assert claim.requested_description == "B-boys"

    @pytest.mark.asyncio
    async def test_register_dispatches_on_kind(self, db_session, user_actor):
        result = await self.service.register(db_session, user_actor, CrewRegistration(name="Gamblerz"))

        assert result.type == "success"
        assert await db_session.get(Crew, result.identity_id) is not None


class TestRegistrationStatus:

    @pytest.mark.asyncio
    async def test_lists_verified_dancer_and_pending_crew_claims(
        self, db_session, make_dancer, make_crew, user_actor
    ):
        service = RegistrationService()
        owned = await make_dancer("Popper", "Park", user_id=user_actor.user_id, is_verified=True)
        crew = await make_crew("Jinjo Crew")
        await service.register_crew(db_session, user_actor, CrewRegistration(name="Jinjo"))

        status = await service.get_registration_status(db_session, user_actor)

        assert status.verified_dancer.id == owned.id
        assert status.verified_crew is None
        assert status.pending_dancer_requests == []
        assert len(status.pending_crew_requests) == 1
        assert status.pending_crew_requests[0].target_id == crew.id
        assert status.pending_crew_requests[0].target_name == "Jinjo Crew"


class TestRegistrationForms:

    def test_blank_nickname_is_rejected_before_any_database_call(self):
        with pytest.raises(PydanticValidationError):
            DancerRegistration(nickname="   ", name="Kim")

    def test_names_are_trimmed_and_genres_deduplicated(self):
        form = DancerRegistration(nickname=" Spin ", name="Kim", genres=["breaking", " breaking", "", "popping"])

        assert form.nickname == "Spin"
        assert form.genres == ["breaking", "popping"]

    def test_crew_requires_a_name(self):
        with pytest.raises(PydanticValidationError):
            CrewRegistration(name="")
