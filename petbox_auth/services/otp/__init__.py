"""
OTP delivery providers
"""
from .otp_provider import OTPProvider, OTPProviderError, VerificationStatus
from .stub_provider import StubOTPProvider
from .twilio_verify import TwilioVerifyProvider
from .otp_factory import create_otp_provider

__all__ = [
    "OTPProvider",
    "OTPProviderError",
    "VerificationStatus",
    "StubOTPProvider",
    "TwilioVerifyProvider",
    "create_otp_provider",
]
