"""
Per-request service wiring.

Long-lived handles (counter store, OTP provider, OAuth providers) are
created once in the app lifespan and kept on app.state; services are
built per request around the request's DB session.
"""
from typing import Dict

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from ..core.config import Settings, get_settings
from ..core.counter_store import CounterStore
from ..db import get_db
from ..services.auth_service import AuthService
from ..services.otp import OTPProvider
from ..services.otp_service import OTPService
from ..services.rate_limit import OTPRateLimiter
from ..services.social import SocialLinkResolver, SocialProvider
from ..services.tokens import TokenService
from ..services.user_repository import UserRepository


def get_counter_store(request: Request) -> CounterStore:
    return request.app.state.counter_store


def get_otp_provider(request: Request) -> OTPProvider:
    return request.app.state.otp_provider


def get_social_providers(request: Request) -> Dict[str, SocialProvider]:
    return request.app.state.social_providers


def get_token_service(settings: Settings = Depends(get_settings)) -> TokenService:
    return TokenService(settings)


def get_user_repository(db: Session = Depends(get_db)) -> UserRepository:
    return UserRepository(db)


def get_otp_service(
    users: UserRepository = Depends(get_user_repository),
    store: CounterStore = Depends(get_counter_store),
    provider: OTPProvider = Depends(get_otp_provider),
    tokens: TokenService = Depends(get_token_service),
    settings: Settings = Depends(get_settings),
) -> OTPService:
    return OTPService(
        users=users,
        limiter=OTPRateLimiter.from_settings(store, settings),
        provider=provider,
        tokens=tokens,
    )


def get_auth_service(
    users: UserRepository = Depends(get_user_repository),
    store: CounterStore = Depends(get_counter_store),
    tokens: TokenService = Depends(get_token_service),
    providers: Dict[str, SocialProvider] = Depends(get_social_providers),
    settings: Settings = Depends(get_settings),
) -> AuthService:
    resolver = SocialLinkResolver(
        users=users,
        store=store,
        secret=settings.VERIFY_TOKEN_SECRET,
        ttl=settings.verify_token_lifetime,
    )
    return AuthService(users=users, tokens=tokens, resolver=resolver, providers=providers)
