"""
Social sign-in: OAuth providers and the account resolver
"""
import logging
from typing import Dict

from ...core.config import Settings
from .base import NormalizedProfile, SocialProvider
from .google import GoogleProvider
from .resolver import (
    ExistingAccount,
    PendingRegistration,
    PendingSocialRegistration,
    SocialLinkResolver,
)
from .zalo import ZaloProvider

logger = logging.getLogger(__name__)


def create_social_providers(settings: Settings) -> Dict[str, SocialProvider]:
    """
    Provider registry keyed by provider name.

    Only providers with both client id and secret configured are registered;
    sign-in with any other provider is rejected as an invalid request.
    """
    providers: Dict[str, SocialProvider] = {}
    if settings.GOOGLE_CLIENT_ID and settings.GOOGLE_CLIENT_SECRET:
        providers[GoogleProvider.name] = GoogleProvider.from_settings(settings)
    if settings.ZALO_APP_ID and settings.ZALO_APP_SECRET:
        providers[ZaloProvider.name] = ZaloProvider.from_settings(settings)
    logger.info(f"Social sign-in providers enabled: {sorted(providers) or 'none'}")
    return providers


__all__ = [
    "ExistingAccount",
    "GoogleProvider",
    "NormalizedProfile",
    "PendingRegistration",
    "PendingSocialRegistration",
    "SocialLinkResolver",
    "SocialProvider",
    "ZaloProvider",
    "create_social_providers",
]
