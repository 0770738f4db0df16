"""Bearer token verification.

Tokens are HS256 JWTs signed with ``POLYPACT_JWT_SECRET``; the ``sub`` claim is the uid.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from ..core.utils import AuthError

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"


class TokenVerifier:
    """Identity collaborator: bearer token -> uid."""

    def __init__(self, secret: str):
        self.secret = secret

    def verify_token(self, token: Optional[str]) -> str:
        """Return the uid for a valid token, raising ``AuthError`` otherwise."""
        if not token:
            raise AuthError("Missing or malformed token")
        if not self.secret:
            logger.error("POLYPACT_JWT_SECRET is not configured, rejecting token")
            raise AuthError("Token verification unavailable")

        try:
            payload = jwt.decode(token, self.secret, algorithms=[JWT_ALGORITHM])
        except jwt.ExpiredSignatureError:
            logger.debug("JWT expired")
            raise AuthError("Token expired")
        except jwt.InvalidTokenError as e:
            logger.debug(f"JWT invalid: {e}")
            raise AuthError("Invalid token")

        uid = payload.get("sub")
        if not uid:
            raise AuthError("Token has no subject")
        return str(uid)

    def create_token(self, uid: str, expires_in: timedelta = timedelta(hours=1)) -> str:
        """Issue a token for ``uid`` (local development and tests)."""
        now = datetime.now(timezone.utc)
        payload = {"sub": uid, "iat": now, "exp": now + expires_in}
        return jwt.encode(payload, self.secret, algorithm=JWT_ALGORITHM)


def parse_bearer(header: Optional[str]) -> Optional[str]:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if not header or not header.startswith("Bearer "):
        return None
    return header[len("Bearer "):].strip() or None
