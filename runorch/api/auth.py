"""Request authentication for the orchestrator API."""

from __future__ import annotations

import hmac
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass

from starlette.requests import Request

API_KEY_HEADER = "X-API-Key"


@dataclass(slots=True)
class AuthResult:
    ok: bool
    identity: str | None = None
    reason: str | None = None


class AuthProvider(ABC):
    """Authentication provider contract."""

    @abstractmethod
    async def authenticate(self, request: Request) -> AuthResult: ...


class APIKeyAuthProvider(AuthProvider):
    """Accept requests whose X-API-Key header matches a configured key."""

    def __init__(self, valid_keys: Iterable[str]) -> None:
        self._valid_keys = tuple(key.strip() for key in valid_keys if key and key.strip())

    @classmethod
    def from_keys(cls, keys: Iterable[str]) -> APIKeyAuthProvider | None:
        """Provider for ``keys``, or None when no usable key is configured."""
        provider = cls(keys)
        return provider if provider._valid_keys else None

    async def authenticate(self, request: Request) -> AuthResult:
        key = request.headers.get(API_KEY_HEADER, "").strip()
        if not key:
            return AuthResult(ok=False, reason="missing_api_key")
        if not any(hmac.compare_digest(key.encode(), valid.encode()) for valid in self._valid_keys):
            return AuthResult(ok=False, reason="invalid_api_key")
        return AuthResult(ok=True, identity=f"api_key:{key[:6]}")
