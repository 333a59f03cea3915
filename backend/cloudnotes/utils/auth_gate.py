from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from cloudnotes.errors import Unauthenticated
from cloudnotes.utils.jwt_auth import IdentityProvider

logger = logging.getLogger(__name__)

bearer = HTTPBearer(auto_error=False)


class AuthGate:
    """Turns a bearer credential into a tenant id.

    Every failure (no header, malformed header, rejected token, provider down)
    surfaces as the same `Unauthenticated`. No retries, no side effects.
    """

    def __init__(self, provider: IdentityProvider):
        self.provider = provider

    def verify(self, authorization: Optional[str]) -> str:
        if not authorization:
            raise Unauthenticated("No authorization header")

        scheme, _, token = authorization.strip().partition(" ")
        token = token.strip()
        if scheme.lower() != "bearer" or not token or " " in token:
            raise Unauthenticated("No access token provided")

        try:
            tenant_id = self.provider.verify_token(token)
        except Exception as exc:
            # a provider outage collapses into the same error as a bad token
            logger.info("Credential rejected: %s", exc)
            raise Unauthenticated() from exc

        if not tenant_id:
            raise Unauthenticated()
        return tenant_id


def get_auth_gate(request: Request) -> AuthGate:
    return request.app.state.auth_gate


def get_tenant_id(
    request: Request,
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    gate: AuthGate = Depends(get_auth_gate),
) -> str:
    if creds is None:
        # HTTPBearer drops headers it cannot parse; report on the raw value
        return gate.verify(request.headers.get("Authorization"))
    return gate.verify(f"{creds.scheme} {creds.credentials}")
