"""
Twilio Verify OTP provider implementation
"""
import logging
import asyncio

from twilio.rest import Client
from twilio.http.http_client import TwilioHttpClient
from twilio.base.exceptions import TwilioException, TwilioRestException

from ...core.config import Settings
from ...utils.phone import get_phone_last4
from .otp_provider import OTPProvider, OTPProviderError, VerificationStatus

logger = logging.getLogger(__name__)

# Twilio answers 404 on a check once the verification expired, was
# approved already, or hit max attempts
_VERIFICATION_GONE_STATUS = 404


class TwilioVerifyProvider(OTPProvider):
    """
    Twilio Verify OTP provider.

    Twilio generates the code and owns its TTL and attempt counting.
    """

    def __init__(self, settings: Settings, client: Client = None):
        if client is None:
            if not settings.TWILIO_ACCOUNT_SID or not settings.TWILIO_AUTH_TOKEN:
                raise ValueError("Twilio credentials not configured")

            # Explicit timeout so a stalled Twilio call cannot hang a worker thread
            custom_http_client = TwilioHttpClient()
            custom_http_client.timeout = settings.TWILIO_TIMEOUT_SECONDS
            client = Client(
                settings.TWILIO_ACCOUNT_SID,
                settings.TWILIO_AUTH_TOKEN,
                http_client=custom_http_client,
            )

        if not settings.TWILIO_VERIFY_SERVICE_SID:
            raise ValueError("TWILIO_VERIFY_SERVICE_SID not configured")

        self.client = client
        self.service_sid = settings.TWILIO_VERIFY_SERVICE_SID
        self.timeout_seconds = settings.TWILIO_TIMEOUT_SECONDS

    async def _call(self, fn, phone_last4: str, action: str):
        try:
            # Run blocking Twilio call in executor to avoid blocking event loop
            return await asyncio.wait_for(
                asyncio.to_thread(fn),
                timeout=self.timeout_seconds + 5,  # buffer for executor overhead
            )
        except asyncio.TimeoutError:
            logger.error(f"[OTP][TwilioVerify] Timeout {action} for {phone_last4} (>{self.timeout_seconds}s)")
            raise OTPProviderError(f"Timeout {action} within {self.timeout_seconds} seconds")

    async def send_verification(self, phone: str) -> VerificationStatus:
        phone_last4 = get_phone_last4(phone)

        def _send_verification():
            return self.client.verify.v2.services(self.service_sid).verifications.create(
                to=phone,
                channel="sms",
            )

        try:
            verification = await self._call(_send_verification, phone_last4, "sending verification")
        except TwilioException as e:
            logger.error(f"[OTP][TwilioVerify] Twilio error sending to {phone_last4}: {type(e).__name__}: {e}")
            raise OTPProviderError(f"Failed to send OTP: {e}") from e

        logger.info(f"[OTP][TwilioVerify] Verification sent to {phone_last4}, SID: {verification.sid}")
        return VerificationStatus.parse(verification.status)

    async def check_verification(self, phone: str, code: str) -> VerificationStatus:
        phone_last4 = get_phone_last4(phone)

        def _verify_code():
            return self.client.verify.v2.services(self.service_sid).verification_checks.create(
                to=phone,
                code=code,
            )

        try:
            verification_check = await self._call(_verify_code, phone_last4, "checking code")
        except TwilioRestException as e:
            if e.status == _VERIFICATION_GONE_STATUS:
                logger.warning(f"[OTP][TwilioVerify] No active verification for {phone_last4}")
                return VerificationStatus.EXPIRED
            logger.error(f"[OTP][TwilioVerify] Twilio error checking {phone_last4}: {e.status}: {e.msg}")
            raise OTPProviderError(f"Failed to check OTP: {e.msg}") from e
        except TwilioException as e:
            logger.error(f"[OTP][TwilioVerify] Twilio error checking {phone_last4}: {type(e).__name__}: {e}")
            raise OTPProviderError(f"Failed to check OTP: {e}") from e

        status = VerificationStatus.parse(verification_check.status)
        if status == VerificationStatus.APPROVED:
            logger.info(f"[OTP][TwilioVerify] Verification successful for {phone_last4}")
        else:
            logger.warning(f"[OTP][TwilioVerify] Verification not approved for {phone_last4}: {status.value}")
        return status
