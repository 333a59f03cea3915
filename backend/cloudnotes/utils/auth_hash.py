"""Password hashing helpers for the local identity provider, using passlib.

- build_context(rounds) -> CryptContext
- hash_password(plain) -> str
- verify_password(plain, hashed) -> bool

bcrypt is preferred. When the bcrypt backend is missing or fails its self-test
the context falls back to pbkdf2_sha256; the rounds come from `BCRYPT_ROUNDS`
through Settings.
"""
from __future__ import annotations

import logging
from typing import Optional

from passlib.context import CryptContext

logger = logging.getLogger(__name__)


def build_context(rounds: Optional[int] = None) -> CryptContext:
    try:
        if rounds:
            ctx = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)
        else:
            ctx = CryptContext(schemes=["bcrypt"], deprecated="auto")
        ctx.hash("test")
        return ctx
    except Exception as exc:
        logger.warning(
            "bcrypt backend not available or failed to initialize; falling back to pbkdf2_sha256 (%s)",
            exc,
        )
    if rounds:
        return CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto", pbkdf2_sha256__rounds=rounds)
    return CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


_default_context: Optional[CryptContext] = None


def _context() -> CryptContext:
    global _default_context
    if _default_context is None:
        _default_context = build_context()
    return _default_context


def hash_password(plain: str, ctx: Optional[CryptContext] = None) -> str:
    """Hash a plaintext password and return the encoded hash string."""
    if plain is None:
        raise ValueError("Password must not be None")
    return (ctx or _context()).hash(plain)


def verify_password(plain: str, hashed: str, ctx: Optional[CryptContext] = None) -> bool:
    """Verify a plaintext password against a stored hash.

    Returns True if the password matches, False otherwise.
    """
    if plain is None or hashed is None:
        return False
    try:
        return (ctx or _context()).verify(plain, hashed)
    except (ValueError, TypeError):
        return False
