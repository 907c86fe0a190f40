"""User identities linking an identity provider account to a Telegram user."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Protocol

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserIdentityLink:
    id: int
    email: str
    keycloak_user_id: str
    telegram_user_id: int
    created_at: datetime


@dataclass(frozen=True)
class Profile:
    id: int
    account_id: int
    role: str
    is_active: bool
    username: str


class _IdentityProvider(Protocol):
    def create_user(self, request: Mapping[str, Any]) -> Any: ...


class _IdentityRepository(Protocol):
    def save(self, provider_user: Any, telegram_user_id: Any) -> UserIdentityLink: ...


class RegisterAccountService:
    """Creates the user at the identity provider, then stores the link to the Telegram user."""

    def __init__(self, provider: _IdentityProvider, repository: _IdentityRepository) -> None:
        self.provider = provider
        self.repository = repository

    def register(self, request: Mapping[str, Any]) -> UserIdentityLink:
        """Register the account described by a create-account request body."""
        log.info("Run register account delegate")
        provider_user = self.provider.create_user(request)
        return self.repository.save(provider_user, request.get("telegramUserId"))


def _meta(path: str, now: datetime | None) -> dict[str, str]:
    moment = datetime.now() if now is None else now
    return {"path": path, "timestamp": str(moment)}


def present_identity(link: UserIdentityLink, path: str, now: datetime | None = None) -> dict[str, Any]:
    """The response body for a registered identity."""
    return {
        "meta": _meta(path, now),
        "payload": {"email": link.email, "telegramUserId": link.telegram_user_id},
    }


def present_profile(profile: Profile, path: str, now: datetime | None = None) -> dict[str, Any]:
    """The response body for a profile; the payload carries no fields yet."""
    return {"meta": _meta(path, now), "payload": {}}