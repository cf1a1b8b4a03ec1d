"""
Startup validation must refuse unsafe configuration outside local environments
"""
from unittest.mock import patch

import pytest

from petbox_auth.core import startup_validation
from petbox_auth.core.startup_validation import validate_all


@pytest.fixture
def prod_settings(settings):
    return settings.model_copy(
        update={
            "ENV": "prod",
            "DATABASE_URL": "postgresql://petbox:pw@db:5432/petbox",
            "REDIS_URL": "redis://cache:6379/0",
            "OTP_PROVIDER": "twilio_verify",
            "ACCESS_TOKEN_SECRET": "a" * 48,
            "REFRESH_TOKEN_SECRET": "r" * 48,
            "VERIFY_TOKEN_SECRET": "v" * 48,
        }
    )


@pytest.fixture
def non_local():
    with patch.object(startup_validation, "is_local_env", return_value=False):
        yield


def test_valid_prod_config_passes(prod_settings, non_local):
    validate_all(prod_settings)


@pytest.mark.parametrize(
    "update",
    [
        {"ACCESS_TOKEN_SECRET": "dev-access-secret-change-me"},
        {"VERIFY_TOKEN_SECRET": ""},
        {"REFRESH_TOKEN_SECRET": "a" * 48},
        {"DATABASE_URL": "sqlite:///./petbox_auth.db"},
        {"REDIS_URL": ""},
        {"OTP_PROVIDER": "stub"},
    ],
)
def test_unsafe_config_is_rejected(prod_settings, non_local, update):
    with pytest.raises(ValueError):
        validate_all(prod_settings.model_copy(update=update))


def test_local_env_skips_checks(settings):
    """Test/dev runs with defaults (sqlite, stub OTP, dev secrets)"""
    validate_all(settings.model_copy(update={"REDIS_URL": "", "OTP_PROVIDER": "stub"}))
