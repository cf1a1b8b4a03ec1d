"""
Stub OTP provider for local development and tests
"""
import logging
from typing import Dict

from ...utils.phone import get_phone_last4
from .otp_provider import OTPProvider, VerificationStatus

logger = logging.getLogger(__name__)


class StubOTPProvider(OTPProvider):
    """
    Stub OTP provider.

    Sends nothing. Approves the all-zero code of the configured length
    ("0000" by default) once per sent verification, and mirrors Twilio
    Verify otherwise: wrong code is PENDING, no open verification is EXPIRED.
    """

    def __init__(self, code_length: int = 4):
        self.stub_code = "0" * code_length
        self._open: Dict[str, bool] = {}
        logger.info("[OTP][Stub] Stub provider enabled")

    async def send_verification(self, phone: str) -> VerificationStatus:
        self._open[phone] = True
        logger.info(f"[OTP][Stub] Code for {get_phone_last4(phone)}: {self.stub_code}")
        return VerificationStatus.PENDING

    async def check_verification(self, phone: str, code: str) -> VerificationStatus:
        if not self._open.get(phone):
            logger.warning(f"[OTP][Stub] No open verification for {get_phone_last4(phone)}")
            return VerificationStatus.EXPIRED

        if (code or "").strip() != self.stub_code:
            logger.warning(f"[OTP][Stub] Code mismatch for {get_phone_last4(phone)}")
            return VerificationStatus.PENDING

        del self._open[phone]
        logger.info(f"[OTP][Stub] Verification successful for {get_phone_last4(phone)}")
        return VerificationStatus.APPROVED
