from __future__ import annotations

import hashlib
import logging
import os
from dataclasses import dataclass

from supabase import Client, create_client

logger = logging.getLogger(__name__)


def supabase_disabled() -> bool:
    return os.getenv("SUPABASE_DISABLED", "0") == "1"


@dataclass(slots=True)
class UserInfo:
    id: str
    email: str | None


class SupabaseAuthAdapter:
    """Small wrapper to validate Supabase access tokens.

    When SUPABASE_DISABLED=1, this returns a fake user for any token.
    """

    def __init__(self, client: Client | None = None) -> None:
        self.disabled = supabase_disabled()
        self._client = client if client is not None else get_supabase_client()

    def validate_token(self, token: str) -> UserInfo:
        if not token:
            raise ValueError("Missing access token")
        if self.disabled or self._client is None:
            # stable across processes, unlike hash()
            digest = hashlib.sha256(token.encode("utf-8")).hexdigest()[:10]
            return UserInfo(id=f"fake-{digest}", email=None)
        try:  # pragma: no cover - network
            res = self._client.auth.get_user(token)
        except Exception as exc:  # pragma: no cover - network
            raise ValueError(f"Invalid access token: {exc}") from exc
        user = res.user if res is not None else None
        if not user:
            raise ValueError("Invalid access token")
        return UserInfo(id=user.id, email=user.email)


_CLIENT_SINGLETON: Client | None = None


def get_supabase_client() -> Client | None:
    global _CLIENT_SINGLETON
    url = os.getenv("SUPABASE_URL")
    key = os.getenv("SUPABASE_ANON_KEY")
    if supabase_disabled() or not url or not key:
        return None
    if _CLIENT_SINGLETON is None:
        logger.info("Connecting to Supabase at %s", url)
        _CLIENT_SINGLETON = create_client(url, key)
    return _CLIENT_SINGLETON
