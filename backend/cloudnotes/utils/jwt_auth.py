from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Protocol

from jose import JWTError, jwt

logger = logging.getLogger(__name__)


class IdentityProvider(Protocol):
    def verify_token(self, token: str) -> str:
        """Return the user id the token was issued to; raise on any failure."""
        ...


class InvalidToken(Exception):
    pass


class JwtIdentityProvider:
    """Local identity provider: HS256 JWTs whose `sub` claim is the user id."""

    def __init__(self, secret: str, algorithm: str = "HS256", exp_minutes: int = 15):
        if not secret:
            # set it in env for tests/dev; mandatory in prod
            raise RuntimeError("JWT_SECRET is not set")
        self._secret = secret
        self._algorithm = algorithm
        self._exp_minutes = exp_minutes

    def create_access_token(self, subject: str) -> str:
        now = datetime.now(timezone.utc)
        exp = now + timedelta(minutes=self._exp_minutes)
        payload = {"sub": subject, "iat": int(now.timestamp()), "exp": int(exp.timestamp())}
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def decode_token(self, token: str) -> dict:
        return jwt.decode(token, self._secret, algorithms=[self._algorithm])

    def verify_token(self, token: str) -> str:
        try:
            payload = self.decode_token(token)
        except JWTError as exc:
            raise InvalidToken("Invalid or expired token") from exc
        sub = payload.get("sub")
        if not sub:
            raise InvalidToken("Token has no subject")
        return str(sub)
