"""
Request/response models for /v1/users. JSON is camelCase on the wire.
"""
import re
from datetime import date, datetime
from typing import Annotated, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from ..core.config import settings
from ..models import Gender, User, UserRole
from ..utils.phone import PHONE_RULE, normalize_phone

PASSWORD_RULE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[\W_])[A-Za-z\d\W_]{8,256}$")
USERNAME_RULE = re.compile(r"^[a-zA-Z0-9]([a-zA-Z0-9._-]){1,18}[a-zA-Z0-9]$")
OTP_RULE = r"^[0-9]+$"


def _check_phone(value: str) -> str:
    if not PHONE_RULE.match(value):
        raise PydanticCustomError("string_pattern_mismatch", "Phone number must be a valid Vietnamese mobile number")
    try:
        return normalize_phone(value, settings.PHONE_DEFAULT_REGION, settings.PHONE_COUNTRY_CODE)
    except ValueError as e:
        raise PydanticCustomError("phone_invalid", str(e))


def _check_password(value: str) -> str:
    if not PASSWORD_RULE.match(value):
        raise PydanticCustomError(
            "string_pattern_mismatch",
            "Password needs 8+ characters with upper and lower case letters, a digit and a symbol",
        )
    return value


def _check_username(value: str) -> str:
    if not USERNAME_RULE.match(value):
        raise PydanticCustomError(
            "string_pattern_mismatch",
            "Username is 3-20 letters, digits, '.', '_' or '-', starting and ending with a letter or digit",
        )
    return value


Phone = Annotated[str, AfterValidator(_check_phone)]
Password = Annotated[str, AfterValidator(_check_password)]
Username = Annotated[str, AfterValidator(_check_username)]
FullName = Annotated[str, Field(min_length=5, max_length=30)]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Requests

class RegisterRequest(CamelModel):
    full_name: Optional[FullName] = None
    birth_date: Optional[date] = None
    gender: Optional[Gender] = None
    email: Optional[EmailStr] = None
    username: Optional[Username] = None
    phone: Optional[Phone] = None  # informational; the verification token decides
    password: Optional[Password] = None
    avatar: Optional[str] = None
    type: Literal["normal", "social"] = "normal"
    key: Optional[str] = None


class LoginRequest(CamelModel):
    phone: Optional[Phone] = None
    username: Optional[str] = None
    password: str


class SocialLoginRequest(CamelModel):
    provider: Literal["google", "zalo"]
    code: Optional[str] = None
    authorization_code: Optional[str] = Field(None, alias="authorization_code")
    code_verifier: Optional[str] = None

    def artifact(self) -> dict:
        return {
            "code": self.code,
            "authorization_code": self.authorization_code,
            "code_verifier": self.code_verifier,
        }


class RequestOtpRequest(CamelModel):
    phone: Phone
    action_type: Literal["register", "reset-password", "social-register"]


class VerifyOtpRequest(CamelModel):
    phone: Phone
    code: str = Field(
        min_length=settings.OTP_CODE_LENGTH,
        max_length=settings.OTP_CODE_LENGTH,
        pattern=OTP_RULE,
    )


class UpdateRequest(CamelModel):
    # Unknown keys are kept so the service allow-list decides what survives
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    full_name: Optional[FullName] = None
    birth_date: Optional[date] = None
    gender: Optional[Gender] = None
    email: Optional[EmailStr] = None
    username: Optional[Username] = None
    avatar: Optional[str] = None
    current_password: Optional[str] = None
    new_password: Optional[Password] = None


class ResetPasswordRequest(CamelModel):
    new_password: Password


# Responses

class UserProfile(CamelModel):
    id: int
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    username: Optional[str] = None
    birth_date: Optional[date] = None
    gender: Optional[Gender] = None
    avatar: Optional[str] = None
    role: UserRole = UserRole.CLIENT
    membership_id: Optional[str] = None
    social_providers: List[str] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_user(cls, user: User) -> "UserProfile":
        """Sanitized view: never carries the password hash or provider user ids."""
        return cls(
            id=user.id,
            full_name=user.full_name,
            email=user.email,
            phone=user.phone,
            username=user.username,
            birth_date=user.birth_date,
            gender=user.gender,
            avatar=user.avatar,
            role=user.role or UserRole.CLIENT,
            membership_id=user.membership_id,
            social_providers=sorted(link.provider.value for link in user.social_links),
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class TokenPairResponse(CamelModel):
    access_token: str
    refresh_token: str


class AuthResponse(TokenPairResponse):
    user: UserProfile


class PendingRegistrationResponse(CamelModel):
    key: str
    name: Optional[str] = None
    email: Optional[str] = None


class RequestOtpResponse(CamelModel):
    counter: int


class VerifyOtpResponse(CamelModel):
    verified: bool = True


class LogoutResponse(CamelModel):
    logged_out: bool = True


class StatusResponse(BaseModel):
    status: str = "ok"
