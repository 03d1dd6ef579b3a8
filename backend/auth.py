"""Bearer token verification.

Access tokens are HS256 JWTs issued by the auth service with
``{"userId": int, "email": str}`` claims. This module only verifies them.
"""

import logging
from dataclasses import dataclass

import jwt
from fastapi import Header, Request

from errors import UnauthorizedError

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


@dataclass(frozen=True)
class CurrentUser:
    user_id: int
    email: str | None = None


def verify_access_token(secret: str | None, token: str) -> CurrentUser:
    if not secret:
        raise UnauthorizedError("Invalid or expired token")
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
        return CurrentUser(user_id=int(payload["userId"]), email=payload.get("email"))
    except (jwt.PyJWTError, KeyError, TypeError, ValueError) as e:
        logger.info("Rejected access token: %s", e)
        raise UnauthorizedError("Invalid or expired token") from e


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    return authorization.split(" ", 1)[1].strip() or None


async def require_user(request: Request, authorization: str | None = Header(None)) -> CurrentUser:
    token = _bearer_token(authorization)
    if token is None:
        raise UnauthorizedError("No token provided")
    return verify_access_token(request.app.state.settings.jwt_secret, token)


async def optional_user(request: Request, authorization: str | None = Header(None)) -> CurrentUser | None:
    """Like require_user, but anonymous or bad tokens just mean no user."""
    token = _bearer_token(authorization)
    if token is None:
        return None
    try:
        return verify_access_token(request.app.state.settings.jwt_secret, token)
    except UnauthorizedError:
        return None
