"""
ChampStep Backend — Authentication Tests
==========================================
"""

import uuid

import pytest

from app.auth import actor_from_claims, decode_token, is_admin_email
from app.exceptions import AuthenticationError


class TestDecodeToken:

    def test_valid_token(self, make_token):
        user_id = uuid.uuid4()

        claims = decode_token(make_token(user_id=user_id, email="dancer@champstep.test"))

        assert claims["sub"] == str(user_id)

    def test_expired_token(self, make_token):
        with pytest.raises(AuthenticationError):
            decode_token(make_token(expires_in=-60))

    def test_wrong_signature(self, make_token):
        with pytest.raises(AuthenticationError):
            decode_token(make_token(secret="someone-elses-secret"))

    def test_wrong_audience(self, make_token):
        with pytest.raises(AuthenticationError):
            decode_token(make_token(audience="service_role"))


class TestActorFromClaims:

    def test_regular_user(self):
        user_id = uuid.uuid4()

        actor = actor_from_claims({"sub": str(user_id), "email": "dancer@champstep.test"})

        assert actor.user_id == user_id
        assert actor.is_admin is False

    def test_admin_by_allow_listed_email_any_case(self):
        actor = actor_from_claims({"sub": str(uuid.uuid4()), "email": "Admin@ChampStep.test"})
        assert actor.is_admin is True

    def test_admin_by_role_claim(self):
        actor = actor_from_claims({"sub": str(uuid.uuid4()), "app_metadata": {"role": "admin"}})
        assert actor.is_admin is True

    def test_subject_must_be_a_uuid(self):
        with pytest.raises(AuthenticationError):
            actor_from_claims({"sub": "not-a-uuid"})


@pytest.mark.parametrize("email", [
    "notadmin@champstep.test",
    "admin@champstep.test.evil.com",
    "min@champstep.test",
    "",
    None,
])
def test_admin_emails_never_match_by_substring(email):
    assert is_admin_email(email) is False
