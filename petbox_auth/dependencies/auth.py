"""
Authentication dependencies: session (access token) and phone
verification (verify token).

Access tokens are read from the accessToken cookie, falling back to an
`Authorization: Bearer` header for non-browser clients.
"""
from typing import Optional

from fastapi import Depends, Request

from ..core.errors import TokenExpiredError, UserUnauthorizedError
from ..models import User
from ..services.tokens import TokenService
from ..services.user_repository import UserRepository
from .services import get_token_service, get_user_repository

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"
VERIFY_COOKIE = "verifyToken"


def _bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:]  # Remove "Bearer " prefix
    return None


def get_current_user(
    request: Request,
    tokens: TokenService = Depends(get_token_service),
    users: UserRepository = Depends(get_user_repository),
) -> User:
    """
    Raises:
        UserUnauthorizedError: No access token, or the account is gone
        TokenExpiredError (410): Client should call /refresh-token
        TokenInvalidError: Bad signature or malformed token
    """
    token = request.cookies.get(ACCESS_COOKIE) or _bearer_token(request)
    if not token:
        raise UserUnauthorizedError("Unauthorized (token not found)")

    claims = tokens.verify_access(token)
    user = users.find_by_id(claims.get("id"))
    if not user:
        raise UserUnauthorizedError("Account no longer exists")

    request.state.user_id = user.id
    return user


def get_verified_phone(
    request: Request,
    tokens: TokenService = Depends(get_token_service),
) -> str:
    """
    Phone proven by a recent OTP verification.

    Raises:
        UserUnauthorizedError: No verify token
        TokenExpiredError: Verification window elapsed
        TokenInvalidError: Bad signature or malformed token
    """
    token = request.cookies.get(VERIFY_COOKIE)
    if not token:
        raise UserUnauthorizedError("Phone verification required")
    try:
        return tokens.verify_verification(token)
    except TokenExpiredError:
        raise TokenExpiredError("Phone verification expired, please request a new OTP")


def get_optional_verified_phone(
    request: Request,
    tokens: TokenService = Depends(get_token_service),
) -> Optional[str]:
    """Like get_verified_phone, but absent cookie means None. A bad cookie still fails."""
    if not request.cookies.get(VERIFY_COOKIE):
        return None
    return get_verified_phone(request, tokens)
