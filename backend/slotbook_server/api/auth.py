"""
Identity resolution for the Slotbook HTTP API.

The core never authenticates anyone itself. Each request presents a bearer
token; an IdentityVerifier turns it into a verified user id, and that id is
passed explicitly to every ledger operation.

Status mapping:
    - No bearer token: 401 Unauthorized
    - Token present but invalid or expired: 403 Forbidden
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Protocol, runtime_checkable

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from ..errors import AuthenticationError, ForbiddenError

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_TTL = timedelta(days=7)

bearer_scheme = HTTPBearer(auto_error=False)


@runtime_checkable
class IdentityVerifier(Protocol):
    """Resolves an access token to a verified user id."""

    def verify(self, token: str) -> str:
        """Return the user id the token was issued for.

        Raises:
            ForbiddenError: If the token cannot be verified
        """
        ...


class JwtIdentityVerifier:
    """Verifies HMAC-signed JWT access tokens carrying a ``uid`` claim."""

    def __init__(self, secret: str, algorithm: str = "HS256", user_claim: str = "uid") -> None:
        self.secret = secret
        self.algorithm = algorithm
        self.user_claim = user_claim

    def verify(self, token: str) -> str:
        try:
            claims = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except JWTError as e:
            logger.warning(f"Access token verification failed: {e}")
            raise ForbiddenError() from e

        user_id = claims.get(self.user_claim)
        if not isinstance(user_id, str) or not user_id:
            logger.warning("Access token has no usable user claim")
            raise ForbiddenError()
        return user_id

    def issue_token(self, user_id: str, expires_in: timedelta = DEFAULT_TOKEN_TTL) -> str:
        """Create a signed access token for a user.

        Used by development tooling and tests; production tokens come from
        the identity provider.
        """
        expire = datetime.now(timezone.utc) + expires_in
        return jwt.encode(
            {self.user_claim: user_id, "exp": expire},
            self.secret,
            algorithm=self.algorithm,
        )


async def get_user_id(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str:
    """FastAPI dependency resolving the caller's user id."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError()
    verifier: IdentityVerifier = request.app.state.identity
    return verifier.verify(credentials.credentials)
