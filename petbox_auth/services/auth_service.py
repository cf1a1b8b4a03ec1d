"""
Account lifecycle: registration (password or social completion), login,
social login and linking, token refresh, profile and password changes.
"""
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union

from ..core.errors import (
    RequestInvalidError,
    TokenInvalidError,
    UserAlreadyExistsError,
    UserInvalidCredentialsError,
    UserNotFoundError,
    UserUnauthorizedError,
    ValidationFailedError,
)
from ..core.security import hash_password, verify_password
from ..models import User
from ..utils.phone import get_phone_last4
from .social import ExistingAccount, PendingRegistration, SocialLinkResolver, SocialProvider
from .tokens import TokenPair, TokenService
from .user_repository import UserRepository

logger = logging.getLogger(__name__)

REGISTER_TYPE_NORMAL = "normal"
REGISTER_TYPE_SOCIAL = "social"

PROFILE_FIELDS = ("full_name", "birth_date", "gender", "email", "username", "avatar")

# Fields a client may change through update; everything else is dropped
UPDATABLE_FIELDS = frozenset(PROFILE_FIELDS)
# Never written from client input, whatever the spelling
PROTECTED_FIELDS = frozenset({"id", "public_id", "created_at", "updated_at", "password_hash", "role", "is_destroyed"})

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")
# Same bounds as the FullName request field
FULL_NAME_MIN_LENGTH = 5
FULL_NAME_MAX_LENGTH = 30


def _to_snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name.lstrip("_")).lower()


def _usable_full_name(display_name: Optional[str]) -> Optional[str]:
    """Provider display name cut to the full-name limit, or None if too short."""
    name = (display_name or "").strip()[:FULL_NAME_MAX_LENGTH].strip()
    if len(name) < FULL_NAME_MIN_LENGTH:
        return None
    return name


def sanitize_changes(changes: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Reduce client-supplied update fields to the allow-list.

    Keys may arrive camelCase or snake_case; the result is snake_case.
    id and createdAt (and every other protected field) never survive.
    """
    cleaned = {}
    for raw_key, value in changes.items():
        key = _to_snake(raw_key)
        if key in PROTECTED_FIELDS or key not in UPDATABLE_FIELDS:
            continue
        cleaned[key] = value
    return cleaned


@dataclass(frozen=True)
class AuthResult:
    tokens: TokenPair
    user: User


class AuthService:
    def __init__(
        self,
        users: UserRepository,
        tokens: TokenService,
        resolver: SocialLinkResolver,
        providers: Mapping[str, SocialProvider],
    ):
        self.users = users
        self.tokens = tokens
        self.resolver = resolver
        self.providers = providers

    def _issue(self, user: User) -> AuthResult:
        return AuthResult(tokens=self.tokens.issue_session_pair({"id": user.id, "phone": user.phone}), user=user)

    def _provider(self, name: str) -> SocialProvider:
        provider = self.providers.get(name)
        if provider is None:
            raise RequestInvalidError(f"Unsupported social provider: {name}")
        return provider

    def _ensure_unique(self, phone: Optional[str], username: Optional[str], exclude_id: Optional[int] = None):
        by_phone = self.users.find_by_phone(phone)
        if by_phone and by_phone.id != exclude_id:
            raise UserAlreadyExistsError("Phone number is already registered")
        by_username = self.users.find_by_username(username)
        if by_username and by_username.id != exclude_id:
            raise UserAlreadyExistsError("Username is already taken")

    def register(self, data: Mapping[str, Any], verified_phone: Optional[str] = None) -> AuthResult:
        """
        Create an account and open a session for it.

        Args:
            data: Profile fields plus `type` ("normal" or "social") and
                either `password` or the pending social `key`
            verified_phone: Phone proven by a verification token, if any.
                Always wins over a phone in `data`.

        Raises:
            ValidationFailedError: password (normal) or key (social) missing, or no
                usable full name; the pending key is kept for a retry
            UserUnauthorizedError: normal registration without phone verification
            TokenExpiredError: pending social key unknown, expired or used
            UserAlreadyExistsError: phone, username or social identity taken
        """
        register_type = data.get("type") or REGISTER_TYPE_NORMAL
        if register_type not in (REGISTER_TYPE_NORMAL, REGISTER_TYPE_SOCIAL):
            raise RequestInvalidError(f"Unsupported registration type: {register_type}")

        if register_type == REGISTER_TYPE_SOCIAL:
            if not data.get("key"):
                raise ValidationFailedError.missing("key")
        else:
            if not data.get("password"):
                raise ValidationFailedError.missing("password")
            if not verified_phone:
                raise UserUnauthorizedError("Phone verification required")

        fields = {name: data[name] for name in PROFILE_FIELDS if data.get(name) is not None}
        fields["phone"] = verified_phone
        self._ensure_unique(verified_phone, fields.get("username"))

        if register_type == REGISTER_TYPE_SOCIAL:
            # Read only; the pending key is consumed after validation passes
            pending = self.resolver.peek(data["key"])
            if self.users.find_by_social(pending.provider, pending.provider_user_id):
                raise UserAlreadyExistsError("Social account is already registered")
            if not fields.get("full_name"):
                staged_name = _usable_full_name(pending.display_name)
                if staged_name:
                    fields["full_name"] = staged_name
            fields.setdefault("email", pending.email)
            fields.setdefault("avatar", pending.avatar)

        if not fields.get("full_name"):
            raise ValidationFailedError.missing("fullName")

        social_link = None
        if register_type == REGISTER_TYPE_SOCIAL:
            pending = self.resolver.consume(data["key"])
            social_link = {"provider": pending.provider, "provider_user_id": pending.provider_user_id}
        else:
            fields["password_hash"] = hash_password(data["password"])

        user = self.users.create(fields, social_link=social_link)
        logger.info(
            f"[Auth] Registered user {user.id} via {register_type}"
            + (f" phone={get_phone_last4(user.phone)}" if user.phone else "")
        )
        return self._issue(user)

    def login(self, password: str, phone: Optional[str] = None, username: Optional[str] = None) -> AuthResult:
        """
        Raises:
            UserNotFoundError: No active account for the identifier
            UserInvalidCredentialsError: Wrong password, or a password-less account
        """
        if not password:
            raise ValidationFailedError.missing("password")
        if phone:
            user = self.users.find_by_phone(phone)
        elif username:
            user = self.users.find_by_username(username)
        else:
            raise ValidationFailedError.missing("phone")

        if not user:
            raise UserNotFoundError()
        if not verify_password(password, user.password_hash):
            logger.warning(f"[Auth] Invalid credentials for user {user.id}")
            raise UserInvalidCredentialsError()
        return self._issue(user)

    async def social_login(
        self, provider_name: str, artifact: Mapping[str, Any]
    ) -> Union[AuthResult, PendingRegistration]:
        """
        Sign in with a provider. Returns an AuthResult for a linked account,
        or the PendingRegistration the client must complete via register.
        """
        provider = self._provider(provider_name)
        profile = await provider.exchange_and_fetch_profile(dict(artifact))
        outcome = self.resolver.resolve(profile)
        if isinstance(outcome, ExistingAccount):
            logger.info(f"[Auth] Social login for user {outcome.user.id} via {provider_name}")
            return self._issue(outcome.user)
        return outcome

    async def link_social(self, user: User, provider_name: str, artifact: Mapping[str, Any]) -> User:
        """
        Attach a provider identity to a signed-in account.

        Raises:
            UserAlreadyExistsError: Identity belongs to another account, or the
                account already has a different identity for this provider
        """
        provider = self._provider(provider_name)
        profile = await provider.exchange_and_fetch_profile(dict(artifact))

        owner = self.users.find_by_social(profile.provider, profile.provider_user_id)
        if owner:
            if owner.id == user.id:
                return user
            raise UserAlreadyExistsError("Social account is linked to another user")
        if any(link.provider.value == profile.provider for link in user.social_links):
            raise UserAlreadyExistsError(f"Account already has a linked {profile.provider} identity")

        user = self.users.link_social(user, profile.provider, profile.provider_user_id)
        logger.info(f"[Auth] Linked {profile.provider} identity to user {user.id}")
        return user

    def refresh(self, refresh_token: Optional[str]) -> TokenPair:
        """
        Mint a fresh pair from the refresh token's claims. The old refresh
        token stays valid until it expires.

        Raises:
            TokenExpiredError, TokenInvalidError
        """
        claims = self.tokens.verify_refresh(refresh_token)
        if claims.get("id") is None:
            raise TokenInvalidError()
        return self.tokens.issue_session_pair({"id": claims["id"], "phone": claims.get("phone")})

    def update(self, user: User, changes: Mapping[str, Any]) -> User:
        """
        Change the password (current_password + new_password) or profile fields.

        A password change writes only the new hash; other fields in the
        same request are ignored.

        Raises:
            ValidationFailedError: Only one of the two password fields given
            UserInvalidCredentialsError: current_password does not match
            UserAlreadyExistsError: New username is taken
        """
        current_password = changes.get("current_password")
        new_password = changes.get("new_password")

        if new_password or current_password:
            if not new_password:
                raise ValidationFailedError.missing("newPassword")
            if not current_password:
                raise ValidationFailedError.missing("currentPassword")
            if not verify_password(current_password, user.password_hash):
                raise UserInvalidCredentialsError("Incorrect current password")
            user = self.users.update(user, {"password_hash": hash_password(new_password)})
            logger.info(f"[Auth] Password changed for user {user.id}")
            return user

        cleaned = sanitize_changes(changes)
        if not cleaned:
            return user
        if cleaned.get("username") and cleaned["username"] != user.username:
            self._ensure_unique(None, cleaned["username"], exclude_id=user.id)
        return self.users.update(user, cleaned)

    def reset_password(self, phone: str, new_password: str) -> User:
        """Set a new password for the account owning a verified phone."""
        user = self.users.find_by_phone(phone)
        if not user:
            raise UserNotFoundError()
        user = self.users.update(user, {"password_hash": hash_password(new_password)})
        logger.info(f"[Auth] Password reset for {get_phone_last4(phone)}")
        return user

    def get_profile(self, user_id: int) -> User:
        user = self.users.find_by_id(user_id)
        if not user:
            raise UserNotFoundError()
        return user
