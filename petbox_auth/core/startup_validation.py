"""
Startup validation functions.

Called from the app lifespan before any store is opened. Each raises
ValueError when the configuration would be unsafe outside a local
environment.
"""
import re
import logging

from .config import Settings
from .env import is_local_env

logger = logging.getLogger(__name__)

_DEFAULT_SECRET_SUFFIX = "-secret-change-me"


def validate_token_secrets(settings: Settings):
    """Token secrets must be set, distinct, and not the dev defaults."""
    if is_local_env():
        return

    secrets = {
        "ACCESS_TOKEN_SECRET": settings.ACCESS_TOKEN_SECRET,
        "REFRESH_TOKEN_SECRET": settings.REFRESH_TOKEN_SECRET,
        "VERIFY_TOKEN_SECRET": settings.VERIFY_TOKEN_SECRET,
    }
    for name, value in secrets.items():
        if not value or value.endswith(_DEFAULT_SECRET_SUFFIX):
            error_msg = f"CRITICAL SECURITY ERROR: {name} must be set to a secure random value (ENV={settings.ENV})"
            logger.error(error_msg)
            raise ValueError(error_msg)

    if len(set(secrets.values())) != len(secrets):
        error_msg = "CRITICAL SECURITY ERROR: access, refresh and verify token secrets must differ"
        logger.error(error_msg)
        raise ValueError(error_msg)

    logger.info("Token secret validation passed")


def validate_database_url(settings: Settings):
    """Validate database URL is not SQLite in non-local environments"""
    if is_local_env():
        return

    if re.match(r"^sqlite:", settings.DATABASE_URL, re.IGNORECASE):
        error_msg = (
            "CRITICAL: SQLite database is not supported outside local environments. "
            f"ENV={settings.ENV}. Please use PostgreSQL."
        )
        logger.error(error_msg)
        raise ValueError(error_msg)

    logger.info("Database URL validation passed (not SQLite)")


def validate_redis_url(settings: Settings):
    """OTP counters must be shared across workers outside local environments."""
    if is_local_env():
        return

    if not settings.REDIS_URL:
        error_msg = (
            f"CRITICAL: REDIS_URL must be configured in non-local environment. ENV={settings.ENV}. "
            "Redis is required for OTP rate limiting and social registration staging."
        )
        logger.error(error_msg)
        raise ValueError(error_msg)

    logger.info("Redis URL validation passed (REDIS_URL is configured)")


def validate_otp_provider(settings: Settings):
    """The stub OTP provider approves a fixed code; never allow it outside local."""
    if is_local_env():
        return

    if settings.OTP_PROVIDER == "stub":
        error_msg = f"CRITICAL: OTP_PROVIDER=stub is not allowed in ENV={settings.ENV}"
        logger.error(error_msg)
        raise ValueError(error_msg)


def validate_all(settings: Settings):
    validate_token_secrets(settings)
    validate_database_url(settings)
    validate_redis_url(settings)
    validate_otp_provider(settings)
