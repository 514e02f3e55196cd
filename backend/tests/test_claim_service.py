"""
ChampStep Backend — Claim Decision Tests
==========================================

What we test:
    ✅ Approval binds the identity to the requester and applies proposed fields
    ✅ Rejection leaves the identity untouched
    ✅ Decided requests never change again
    ✅ Approval refused when the requester already owns another identity
    ✅ Approval never moves an identity away from another owner
    ✅ Dancer claim evidence shown in the queue
    ✅ Admin queue listing, filtering and counts
"""

import uuid

import pytest

from app.exceptions import ConflictError, NotFoundError
from app.models.claim import ClaimKind, ClaimStatus, DancerClaimRequest
from app.schemas.registration import CrewRegistration, DancerRegistration
from app.services.claim_service import ClaimService, profile_updates
from app.services.registration_service import registration_service


async def file_dancer_claim(db_session, actor, **form):
    result = await registration_service.register_dancer(db_session, actor, DancerRegistration(**form))
    assert result.type == "pending"
    return result.claim_request_id


class TestDecideClaim:

    def setup_method(self):
        self.service = ClaimService()

    @pytest.mark.asyncio
    async def test_approval_binds_dancer_and_applies_requested_fields(
        self, db_session, make_dancer, user_actor, admin_actor
    ):
        dancer = await make_dancer("Spin", "Kim", bio="Old bio", instagram_url="https://instagram.com/old")
        claim_id = await file_dancer_claim(
            db_session,
            user_actor,
            nickname="Spins",
            name="Lee",
            bio="New bio",
            genres=["breaking"],
        )

        claim = await self.service.decide_claim(
            db_session, ClaimKind.DANCER, claim_id, approve=True, reason="Verified by video", reviewer=admin_actor
        )

        assert claim.status == ClaimStatus.APPROVED.value
        assert claim.approved_at is not None
        assert claim.rejected_at is None
        assert claim.admin_note == "Verified by video"
        assert claim.reviewed_by == admin_actor.user_id

        await db_session.refresh(dancer)
        assert dancer.user_id == user_actor.user_id
        assert dancer.is_verified is True
        assert dancer.bio == "New bio"
        assert dancer.genres == ["breaking"]
        # Empty proposals never overwrite, display names are kept
        assert dancer.instagram_url == "https://instagram.com/old"
        assert dancer.nickname == "Spin"
        assert dancer.name == "Kim"

    @pytest.mark.asyncio
    async def test_rejection_leaves_identity_untouched(self, db_session, make_dancer, user_actor, admin_actor):
        dancer = await make_dancer("Spin", "Kim", bio="Old bio")
        claim_id = await file_dancer_claim(db_session, user_actor, nickname="Spin", name="Kim", bio="New")

        claim = await self.service.decide_claim(
            db_session, ClaimKind.DANCER, claim_id, approve=False, reason="No proof", reviewer=admin_actor
        )

        assert claim.status == ClaimStatus.REJECTED.value
        assert claim.rejected_at is not None
        await db_session.refresh(dancer)
        assert dancer.user_id is None
        assert dancer.bio == "Old bio"

    @pytest.mark.asyncio
    async def test_decided_claim_cannot_flip(self, db_session, make_dancer, user_actor, admin_actor):
        await make_dancer("Spin", "Kim")
        claim_id = await file_dancer_claim(db_session, user_actor, nickname="Spin", name="Kim")
        await self.service.decide_claim(db_session, ClaimKind.DANCER, claim_id, approve=True, reviewer=admin_actor)

        with pytest.raises(ConflictError):
            await self.service.decide_claim(
                db_session, ClaimKind.DANCER, claim_id, approve=False, reviewer=admin_actor
            )

        claim = await db_session.get(DancerClaimRequest, claim_id)
        assert claim.status == ClaimStatus.APPROVED.value

    @pytest.mark.asyncio
    async def test_unknown_claim_is_not_found(self, db_session, admin_actor):
        with pytest.raises(NotFoundError):
            await self.service.decide_claim(
                db_session, ClaimKind.CREW, uuid.uuid4(), approve=True, reviewer=admin_actor
            )

    @pytest.mark.asyncio
    async def test_approval_refused_when_requester_owns_another_dancer(
        self, db_session, make_dancer, user_actor, admin_actor
    ):
        await make_dancer("Spin", "Kim")
        claim_id = await file_dancer_claim(db_session, user_actor, nickname="Spin", name="Kim")
        # Requester became owner of a different dancer in the meantime
        await make_dancer("Popper", "Park", user_id=user_actor.user_id, is_verified=True)

        with pytest.raises(ConflictError, match="already owns another dancer"):
            await self.service.decide_claim(
                db_session, ClaimKind.DANCER, claim_id, approve=True, reviewer=admin_actor
            )

        claim = await db_session.get(DancerClaimRequest, claim_id)
        assert claim.status == ClaimStatus.PENDING.value

    @pytest.mark.asyncio
    async def test_approval_refused_when_target_was_taken_by_another_user(
        self, db_session, make_dancer, user_actor, other_actor, admin_actor
    ):
        dancer = await make_dancer("Spin", "Kim")
        claim_id = await file_dancer_claim(db_session, user_actor, nickname="Spin", name="Kim")
        dancer.user_id = other_actor.user_id
        await db_session.flush()

        with pytest.raises(ConflictError, match="already belongs to another user"):
            await self.service.decide_claim(
                db_session, ClaimKind.DANCER, claim_id, approve=True, reviewer=admin_actor
            )

        claim = await db_session.get(DancerClaimRequest, claim_id)
        assert claim.status == ClaimStatus.PENDING.value
        await db_session.refresh(dancer)
        assert dancer.user_id == other_actor.user_id

    @pytest.mark.asyncio
    async def test_identity_update_only_binds_unowned_targets(
        self, db_session, make_dancer, user_actor, other_actor, admin_actor, monkeypatch
    ):
        dancer = await make_dancer("Spin", "Kim")
        claim_id = await file_dancer_claim(db_session, user_actor, nickname="Spin", name="Kim")
        dancer.user_id = other_actor.user_id
        await db_session.flush()

        async def _no_check(*args):
            return None

        # Owner change lands between the check and the write
        monkeypatch.setattr(self.service, "_ensure_target_unowned", _no_check)

        with pytest.raises(ConflictError, match="already belongs to another user"):
            await self.service.decide_claim(
                db_session, ClaimKind.DANCER, claim_id, approve=True, reviewer=admin_actor
            )

        claim = await db_session.get(DancerClaimRequest, claim_id)
        await db_session.refresh(claim)
        assert claim.status == ClaimStatus.PENDING.value
        await db_session.refresh(dancer)
        assert dancer.user_id == other_actor.user_id

    @pytest.mark.asyncio
    async def test_crew_approval_applies_description_and_location(
        self, db_session, make_crew, user_actor, admin_actor
    ):
        crew = await make_crew("Jinjo Crew")
        result = await registration_service.register_crew(
            db_session,
            user_actor,
            CrewRegistration(name="Jinjo", description="World champions", location="Seoul"),
        )

        await self.service.decide_claim(
            db_session, ClaimKind.CREW, result.claim_request_id, approve=True, reviewer=admin_actor
        )

        await db_session.refresh(crew)
        assert crew.user_id == user_actor.user_id
        assert crew.is_verified is True
        assert crew.description == "World champions"
        assert crew.location == "Seoul"
        assert crew.name == "Jinjo Crew"


class TestClaimQueue:

    def setup_method(self):
        self.service = ClaimService()

    @pytest.mark.asyncio
    async def test_list_filters_by_status_and_counts_all(
        self, db_session, make_dancer, make_crew, user_actor, other_actor, admin_actor
    ):
        await make_dancer("Spin", "Kim")
        await make_dancer("Popper", "Park")
        await make_crew("Jinjo Crew")
        approved_id = await file_dancer_claim(db_session, user_actor, nickname="Spin", name="Kim")
        await file_dancer_claim(db_session, other_actor, nickname="Popper", name="Park")
        await registration_service.register_crew(db_session, user_actor, CrewRegistration(name="Jinjo"))
        await self.service.decide_claim(
            db_session, ClaimKind.DANCER, approved_id, approve=True, reviewer=admin_actor
        )

        pending = await self.service.list_claims(db_session, status=ClaimStatus.PENDING)

        assert {c.kind for c in pending.claims} == {"dancer", "crew"}
        assert all(c.status == "pending" for c in pending.claims)
        assert pending.counts == {"pending": 2, "approved": 1, "rejected": 0}

        dancers_only = await self.service.list_claims(db_session, kind=ClaimKind.DANCER)
        assert len(dancers_only.claims) == 2
        assert dancers_only.counts == {"pending": 1, "approved": 1, "rejected": 0}

    @pytest.mark.asyncio
    async def test_get_claim_includes_target_name_and_requested_fields(self, db_session, make_dancer, user_actor):
        await make_dancer("Spin", "Kim")
        claim_id = await file_dancer_claim(db_session, user_actor, nickname="Spins", name="Lee", bio="Hi")

        claim = await self.service.get_claim(db_session, ClaimKind.DANCER, claim_id)

        assert claim.target_name == "Spin"
        assert claim.requested["nickname"] == "Spins"
        assert claim.requested["bio"] == "Hi"

    @pytest.mark.asyncio
    async def test_get_claim_shows_social_media_evidence(self, db_session, make_dancer, user_actor):
        await make_dancer("Spin", "Kim")
        result = await registration_service.register_dancer(
            db_session,
            user_actor,
            DancerRegistration(
                nickname="Spins",
                name="Lee",
                evidence={"method": "social_media", "platform": "tiktok", "handle": "spins"},
            ),
        )

        claim = await self.service.get_claim(db_session, ClaimKind.DANCER, result.claim_request_id)

        assert claim.evidence.method == "social_media"
        assert claim.evidence.platform == "tiktok"
        assert claim.evidence.handle == "spins"
        assert claim.evidence.verification_code == result.verification_code
        assert claim.evidence.competition_id is None

    @pytest.mark.asyncio
    async def test_crew_claims_carry_no_evidence(self, db_session, make_crew, user_actor):
        await make_crew("Jinjo Crew")
        result = await registration_service.register_crew(db_session, user_actor, CrewRegistration(name="Jinjo"))

        claim = await self.service.get_claim(db_session, ClaimKind.CREW, result.claim_request_id)

        assert claim.evidence is None

    @pytest.mark.asyncio
    async def test_get_claim_of_wrong_kind_is_not_found(self, db_session, make_dancer, user_actor):
        await make_dancer("Spin", "Kim")
        claim_id = await file_dancer_claim(db_session, user_actor, nickname="Spin", name="Kim")

        with pytest.raises(NotFoundError):
            await self.service.get_claim(db_session, ClaimKind.CREW, claim_id)


def test_profile_updates_skip_empty_values():
    claim = DancerClaimRequest(
        requested_nickname="Spin",
        requested_name="Kim",
        requested_genres=[],
        requested_bio=None,
        requested_instagram_url="https://instagram.com/spin",
        requested_youtube_url=None,
        requested_twitter_url=None,
    )

    assert profile_updates(claim) == {"instagram_url": "https://instagram.com/spin"}
