"""
/v1/users: registration, sign-in, OTP verification and profile routes.

Session tokens travel as HTTP-only cookies (accessToken, refreshToken);
a successful OTP check sets verifyToken, which register and
reset-password consume.
"""
import logging

from fastapi import APIRouter, Depends, Request, Response

from ..core.config import Settings, get_settings
from ..core.errors import ApiError, UserForbiddenError
from ..dependencies.auth import (
    ACCESS_COOKIE,
    REFRESH_COOKIE,
    VERIFY_COOKIE,
    get_current_user,
    get_optional_verified_phone,
    get_verified_phone,
)
from ..dependencies.services import get_auth_service, get_otp_service
from ..models import User
from ..schemas.users import (
    AuthResponse,
    LoginRequest,
    LogoutResponse,
    PendingRegistrationResponse,
    RegisterRequest,
    RequestOtpRequest,
    RequestOtpResponse,
    ResetPasswordRequest,
    SocialLoginRequest,
    TokenPairResponse,
    UpdateRequest,
    UserProfile,
    VerifyOtpRequest,
    VerifyOtpResponse,
)
from ..services.auth_service import AuthResult, AuthService
from ..services.otp_service import OTPService
from ..services.social import PendingRegistration
from ..services.tokens import TokenPair

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/users", tags=["users"])


def _cookie_options(settings: Settings) -> dict:
    return {"httponly": True, "secure": settings.COOKIE_SECURE, "samesite": "none"}


def _set_auth_cookies(response: Response, pair: TokenPair, settings: Settings):
    options = _cookie_options(settings)
    buffer = settings.COOKIE_BUFFER_SECONDS
    response.set_cookie(
        ACCESS_COOKIE,
        pair.access_token,
        max_age=int(settings.access_token_lifetime.total_seconds()) + buffer,
        **options,
    )
    response.set_cookie(
        REFRESH_COOKIE,
        pair.refresh_token,
        max_age=int(settings.refresh_token_lifetime.total_seconds()) + buffer,
        **options,
    )


def _clear_cookie(response: Response, name: str, settings: Settings):
    response.delete_cookie(name, **_cookie_options(settings))


def _auth_response(result: AuthResult) -> AuthResponse:
    return AuthResponse(
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
        user=UserProfile.from_user(result.user),
    )


@router.post("/register", response_model=AuthResponse)
def register(
    payload: RegisterRequest,
    response: Response,
    verified_phone=Depends(get_optional_verified_phone),
    auth: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
):
    """Create an account (password + verified phone, or a pending social key)."""
    result = auth.register(payload.model_dump(), verified_phone=verified_phone)
    _set_auth_cookies(response, result.tokens, settings)
    _clear_cookie(response, VERIFY_COOKIE, settings)
    return _auth_response(result)


@router.post("/login", response_model=AuthResponse)
def login(
    payload: LoginRequest,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
):
    result = auth.login(payload.password, phone=payload.phone, username=payload.username)
    _set_auth_cookies(response, result.tokens, settings)
    return _auth_response(result)


@router.post(
    "/social-login",
    response_model=None,
    responses={200: {"model": AuthResponse}, 202: {"model": PendingRegistrationResponse}},
)
async def social_login(
    payload: SocialLoginRequest,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
):
    """
    200 with a session for a linked account; 202 with a staging key when
    the social identity has no account yet (complete via /register type=social).
    """
    outcome = await auth.social_login(payload.provider, payload.artifact())
    if isinstance(outcome, PendingRegistration):
        response.status_code = 202
        return PendingRegistrationResponse(key=outcome.key, name=outcome.name, email=outcome.email)

    _set_auth_cookies(response, outcome.tokens, settings)
    return _auth_response(outcome)


@router.post("/social-link", response_model=UserProfile)
async def social_link(
    payload: SocialLoginRequest,
    user: User = Depends(get_current_user),
    auth: AuthService = Depends(get_auth_service),
):
    """Attach a Google/Zalo identity to the signed-in account."""
    user = await auth.link_social(user, payload.provider, payload.artifact())
    return UserProfile.from_user(user)


@router.delete("/logout", response_model=LogoutResponse)
def logout(response: Response, settings: Settings = Depends(get_settings)):
    _clear_cookie(response, ACCESS_COOKIE, settings)
    _clear_cookie(response, REFRESH_COOKIE, settings)
    return LogoutResponse()


@router.get("/refresh-token", response_model=TokenPairResponse)
def refresh_token(
    request: Request,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
):
    """Any refresh failure means the client must sign in again (403)."""
    try:
        pair = auth.refresh(request.cookies.get(REFRESH_COOKIE))
    except ApiError as e:
        logger.info(f"[Auth] Refresh rejected: {e.error_code.value}")
        raise UserForbiddenError("Please sign in") from e

    _set_auth_cookies(response, pair, settings)
    return TokenPairResponse(access_token=pair.access_token, refresh_token=pair.refresh_token)


@router.post("/request-otp", response_model=RequestOtpResponse)
async def request_otp(payload: RequestOtpRequest, otp: OTPService = Depends(get_otp_service)):
    result = await otp.request_otp(payload.phone, payload.action_type)
    return RequestOtpResponse(counter=result["counter"])


@router.post("/verify-otp", response_model=VerifyOtpResponse)
async def verify_otp(
    payload: VerifyOtpRequest,
    response: Response,
    otp: OTPService = Depends(get_otp_service),
    settings: Settings = Depends(get_settings),
):
    verify_token = await otp.verify_otp(payload.phone, payload.code)
    response.set_cookie(
        VERIFY_COOKIE,
        verify_token,
        max_age=int(settings.verify_token_lifetime.total_seconds()),
        **_cookie_options(settings),
    )
    return VerifyOtpResponse(verified=True)


@router.put("/update", response_model=UserProfile)
def update(
    payload: UpdateRequest,
    response: Response,
    user: User = Depends(get_current_user),
    auth: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
):
    user = auth.update(user, payload.model_dump(exclude_unset=True))
    _clear_cookie(response, VERIFY_COOKIE, settings)
    return UserProfile.from_user(user)


@router.put("/reset-password", response_model=UserProfile)
def reset_password(
    payload: ResetPasswordRequest,
    response: Response,
    phone: str = Depends(get_verified_phone),
    auth: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
):
    user = auth.reset_password(phone, payload.new_password)
    _clear_cookie(response, VERIFY_COOKIE, settings)
    return UserProfile.from_user(user)


@router.get("/me", response_model=UserProfile)
def me(user: User = Depends(get_current_user)):
    return UserProfile.from_user(user)
