from datetime import datetime
import enum
import uuid

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from ..db import Base


def generate_public_id():
    """Generate a UUID string for public_id"""
    return str(uuid.uuid4())


class Gender(str, enum.Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class UserRole(str, enum.Enum):
    CLIENT = "client"
    ADMIN = "admin"
    STAFF = "staff"


class SocialProviderName(str, enum.Enum):
    GOOGLE = "google"
    ZALO = "zalo"


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True)
    public_id = Column(String(36), unique=True, nullable=False, index=True, default=generate_public_id)
    full_name = Column(String(30), nullable=True)
    birth_date = Column(Date, nullable=True)
    gender = Column(Enum(Gender, native_enum=False, values_callable=lambda e: [m.value for m in e]), nullable=True)
    email = Column(String, nullable=True, index=True)
    username = Column(String(20), nullable=True, unique=True)  # secondary login handle
    phone = Column(String(16), nullable=True, unique=True)  # E.164, canonical identity
    password_hash = Column(String, nullable=True)  # Nullable for social-only accounts
    avatar = Column(String, nullable=True)
    role = Column(
        Enum(UserRole, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=UserRole.CLIENT,
    )
    membership_id = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=True)
    is_destroyed = Column(Boolean, default=False, nullable=False)  # soft delete only

    social_links = relationship(
        "UserSocialLink",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class UserSocialLink(Base):
    __tablename__ = "user_social_links"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    provider = Column(
        Enum(SocialProviderName, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    provider_user_id = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="social_links")

    __table_args__ = (
        UniqueConstraint("provider", "provider_user_id", name="uq_social_provider_user"),
        UniqueConstraint("user_id", "provider", name="uq_social_user_provider"),
    )
