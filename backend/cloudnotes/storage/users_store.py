from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import quote

from cloudnotes.errors import Conflict
from cloudnotes.storage.kv_store import KVStore


def _user_prefix(user_id: str) -> str:
    if not user_id:
        raise ValueError("Invalid user_id")
    return f"user:{quote(user_id, safe='')}:"


@dataclass(frozen=True)
class UserRecord:
    user_id: str
    hashed_password: str
    created_at: str


class UsersStore:
    """Credentials and profiles of the local identity provider, kept in the KV store."""

    def __init__(self, kv: KVStore):
        self.kv = kv

    def get(self, user_id: str) -> Optional[UserRecord]:
        raw = self.kv.get(_user_prefix(user_id) + "credentials")
        if raw is None:
            return None
        return UserRecord(
            user_id=raw["user_id"],
            hashed_password=raw["hashed_password"],
            created_at=raw["created_at"],
        )

    def create(self, user_id: str, hashed_password: str, name: str = "", email: str = "") -> UserRecord:
        if self.get(user_id) is not None:
            raise Conflict("User exists")

        now = datetime.now(timezone.utc).isoformat()
        rec = UserRecord(user_id=user_id, hashed_password=hashed_password, created_at=now)
        self.kv.set(_user_prefix(user_id) + "credentials", asdict(rec))
        self.kv.set(
            _user_prefix(user_id) + "profile",
            {"name": name, "email": email, "memberSince": now},
        )
        return rec

    def get_profile(self, user_id: str) -> Optional[dict[str, Any]]:
        return self.kv.get(_user_prefix(user_id) + "profile")
