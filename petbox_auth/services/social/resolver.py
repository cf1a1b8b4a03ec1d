"""
Match a provider profile to an account, or stage it as a pending
registration in the counter store until the client completes sign-up.
"""
import hashlib
import hmac
import json
import logging
from dataclasses import asdict, dataclass
from datetime import timedelta
from typing import Optional, Union

from ...core.counter_store import CounterStore
from ...core.errors import TokenExpiredError
from ...models import User
from ..user_repository import UserRepository
from .base import NormalizedProfile

logger = logging.getLogger(__name__)

PENDING_KEY_PREFIX = "pending_social"


@dataclass(frozen=True)
class PendingSocialRegistration:
    provider: str
    provider_user_id: str
    email: Optional[str] = None
    avatar: Optional[str] = None
    display_name: Optional[str] = None


@dataclass(frozen=True)
class ExistingAccount:
    user: User


@dataclass(frozen=True)
class PendingRegistration:
    key: str
    name: Optional[str]
    email: Optional[str]


class SocialLinkResolver:
    """
    Staging key = HMAC-SHA256("provider:provider_user_id") under the
    verification-token secret. One social identity maps to one key.
    """

    def __init__(self, users: UserRepository, store: CounterStore, secret: str, ttl: timedelta):
        self.users = users
        self.store = store
        self._secret = secret.encode()
        self.ttl_seconds = int(ttl.total_seconds())

    def staging_key(self, provider: str, provider_user_id: str) -> str:
        message = f"{provider}:{provider_user_id}".encode()
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    @staticmethod
    def _store_key(key: str) -> str:
        return f"{PENDING_KEY_PREFIX}:{key}"

    def resolve(self, profile: NormalizedProfile) -> Union[ExistingAccount, PendingRegistration]:
        user = self.users.find_by_social(profile.provider, profile.provider_user_id)
        if user:
            return ExistingAccount(user=user)

        pending = PendingSocialRegistration(
            provider=profile.provider,
            provider_user_id=profile.provider_user_id,
            email=profile.email,
            avatar=profile.avatar,
            display_name=profile.name,
        )
        key = self.staging_key(profile.provider, profile.provider_user_id)
        # Re-staging the same identity overwrites the record and re-arms the TTL
        self.store.set(self._store_key(key), json.dumps(asdict(pending)), ex=self.ttl_seconds)
        logger.info(f"[Social] Staged pending {profile.provider} registration (ttl={self.ttl_seconds}s)")
        return PendingRegistration(key=key, name=profile.name, email=profile.email)

    def peek(self, key: str) -> PendingSocialRegistration:
        """
        Read the staged registration for `key` without taking it.

        Raises:
            TokenExpiredError: Key unknown, expired or already consumed
        """
        raw = self.store.get(self._store_key(key)) if key else None
        if raw is None:
            raise TokenExpiredError("Social sign-in session expired, please sign in again")
        return PendingSocialRegistration(**json.loads(raw))

    def consume(self, key: str) -> PendingSocialRegistration:
        """
        Take the staged registration for `key`. Succeeds at most once per staging.

        Raises:
            TokenExpiredError: Key unknown, expired or already consumed
        """
        raw = self.store.getdel(self._store_key(key)) if key else None
        if raw is None:
            raise TokenExpiredError("Social sign-in session expired, please sign in again")
        return PendingSocialRegistration(**json.loads(raw))
