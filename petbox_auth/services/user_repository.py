"""
Record store access for identity records.

Every lookup hides soft-deleted accounts. Unique-index violations on
write surface as UserAlreadyExistsError so concurrent registrations of
the same phone, username or social identity lose cleanly.
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.errors import UserAlreadyExistsError
from ..models import SocialProviderName, User, UserSocialLink

logger = logging.getLogger(__name__)


class UserRepository:
    def __init__(self, db: Session):
        self.db = db

    def _active(self):
        return self.db.query(User).filter(User.is_destroyed.is_(False))

    def find_by_id(self, user_id: int) -> Optional[User]:
        return self._active().filter(User.id == user_id).first()

    def find_by_phone(self, phone: str) -> Optional[User]:
        if not phone:
            return None
        return self._active().filter(User.phone == phone).first()

    def find_by_username(self, username: str) -> Optional[User]:
        if not username:
            return None
        return self._active().filter(User.username == username).first()

    def find_by_social(self, provider: str, provider_user_id: str) -> Optional[User]:
        return (
            self._active()
            .join(UserSocialLink, UserSocialLink.user_id == User.id)
            .filter(
                UserSocialLink.provider == SocialProviderName(provider),
                UserSocialLink.provider_user_id == provider_user_id,
            )
            .first()
        )

    def _commit(self, what: str):
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"[Users] Unique constraint hit while {what}: {e.orig}")
            raise UserAlreadyExistsError()

    def create(self, fields: Dict[str, Any], social_link: Optional[Dict[str, str]] = None) -> User:
        user = User(**fields)
        if social_link:
            user.social_links.append(
                UserSocialLink(
                    provider=SocialProviderName(social_link["provider"]),
                    provider_user_id=social_link["provider_user_id"],
                )
            )
        self.db.add(user)
        self._commit("creating user")
        self.db.refresh(user)
        return user

    def update(self, user: User, changes: Dict[str, Any]) -> User:
        for field, value in changes.items():
            setattr(user, field, value)
        user.updated_at = datetime.utcnow()
        self._commit("updating user")
        self.db.refresh(user)
        return user

    def link_social(self, user: User, provider: str, provider_user_id: str) -> User:
        user.social_links.append(
            UserSocialLink(provider=SocialProviderName(provider), provider_user_id=provider_user_id)
        )
        user.updated_at = datetime.utcnow()
        self._commit("linking social account")
        self.db.refresh(user)
        return user
