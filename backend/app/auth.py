"""
ChampStep Backend — Authentication & Current Actor
====================================================

What:  Turns the bearer token issued by the hosted auth provider into an
       explicit `Actor` value that routes pass into every service call.
Why:   Services never look up "the current user" from ambient state; whoever
       acts is always a parameter, which keeps the workflow testable and makes
       the authorization decision visible at each call site.
How:   python-jose verifies the HS256 signature, expiry and audience. The
       admin flag is derived once, here.

Admin Policy:
    An actor is an admin when
      - their email equals (case-insensitively) an entry of ADMIN_EMAILS, or
      - the token's app_metadata.role is "admin".
    Emails are never matched by substring: "notadmin@example.com" is not an
    admin just because "admin@example.com" is on the list.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from app.config import settings
from app.exceptions import AuthenticationError, PermissionDeniedError

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Actor:
    """The authenticated user performing a request."""
    user_id: uuid.UUID
    email: Optional[str] = None
    is_admin: bool = False


def is_admin_email(email: Optional[str]) -> bool:
    if not email:
        return False
    return email.strip().lower() in settings.admin_emails_list


def decode_token(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
        )
    except JWTError as e:
        logger.info("Rejected bearer token: %s", str(e))
        raise AuthenticationError(message="Invalid or expired token")


def actor_from_claims(claims: Dict[str, Any]) -> Actor:
    """Builds an Actor from verified token claims."""
    subject = claims.get("sub")
    try:
        user_id = uuid.UUID(str(subject))
    except (TypeError, ValueError):
        raise AuthenticationError(message="Token subject is not a valid user id")

    email = claims.get("email") or None
    app_metadata = claims.get("app_metadata") or {}
    role = app_metadata.get("role") if isinstance(app_metadata, dict) else None

    return Actor(
        user_id=user_id,
        email=email,
        is_admin=is_admin_email(email) or role == "admin",
    )


async def get_current_actor(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Actor:
    """FastAPI dependency: the signed-in actor, or 401."""
    if credentials is None:
        raise AuthenticationError()
    actor = actor_from_claims(decode_token(credentials.credentials))
    # Picked up by the access log
    request.state.user_id = actor.user_id
    return actor


async def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    """FastAPI dependency: the signed-in actor if they are an admin, else 403."""
    if not actor.is_admin:
        logger.warning("Non-admin user %s attempted an admin action", actor.user_id)
        raise PermissionDeniedError(message="Administrator privileges are required")
    return actor
