"""
OTP provider factory
"""
import logging

from ...core.config import Settings
from .otp_provider import OTPProvider
from .stub_provider import StubOTPProvider
from .twilio_verify import TwilioVerifyProvider

logger = logging.getLogger(__name__)


def create_otp_provider(settings: Settings) -> OTPProvider:
    """
    Build the OTP provider named by OTP_PROVIDER.

    Raises:
        ValueError: Unknown provider name, or Twilio selected without credentials
    """
    provider_name = settings.OTP_PROVIDER.lower()

    if provider_name == "twilio_verify":
        logger.info("[OTP] Using Twilio Verify provider")
        return TwilioVerifyProvider(settings)

    if provider_name == "stub":
        logger.info("[OTP] Using stub provider")
        return StubOTPProvider(code_length=settings.OTP_CODE_LENGTH)

    raise ValueError(f"Unknown OTP_PROVIDER: {settings.OTP_PROVIDER}")
