"""
Bearer-token authentication.

Tokens are issued by the platform's auth service (out of scope here) as
HS256 JWTs signed over ``{"userId": <id>}``. Tokens that carry the id in the
standard ``sub`` claim are accepted too. This module only verifies them and
hands the user id to the route.
"""
import logging

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from dance_recs.config import settings

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def user_id_from_claims(payload: dict) -> int:
    """``userId`` (platform tokens) or ``sub``; an int or a numeric string."""
    raw = payload.get("userId", payload.get("sub"))
    if isinstance(raw, bool) or not isinstance(raw, (int, str)):
        raise ValueError(f"no usable user id claim: {raw!r}")
    return int(raw)


def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> int:
    """FastAPI dependency: the authenticated user's id, or 401."""
    if credentials is None:
        raise _unauthorized("Not authenticated")

    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            # numeric ``sub`` values are validated below, not by PyJWT
            options={"verify_sub": False},
        )
        return user_id_from_claims(payload)
    except (jwt.InvalidTokenError, ValueError) as exc:
        logger.info("Rejected bearer token: %s", exc)
        raise _unauthorized("Invalid token")
