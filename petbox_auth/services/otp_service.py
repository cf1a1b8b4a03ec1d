"""
OTP flow: request a code for a phone, then trade an approved code for a
short-lived verification token.
"""
import logging
from enum import Enum
from typing import Dict

from ..core.errors import (
    OtpExpiredError,
    OtpInvalidError,
    RequestInvalidError,
    SystemExternalError,
    UserAlreadyExistsError,
    UserNotFoundError,
)
from ..utils.phone import get_phone_last4
from .otp import OTPProvider, OTPProviderError, VerificationStatus
from .rate_limit import OTPRateLimiter
from .tokens import TokenService
from .user_repository import UserRepository

logger = logging.getLogger(__name__)


class OTPActionType(str, Enum):
    REGISTER = "register"
    RESET_PASSWORD = "reset-password"
    SOCIAL_REGISTER = "social-register"


_EXPIRED_STATUSES = {
    VerificationStatus.EXPIRED,
    VerificationStatus.CANCELED,
    VerificationStatus.MAX_ATTEMPTS_REACHED,
    VerificationStatus.DELETED,
}


class OTPService:
    def __init__(
        self,
        users: UserRepository,
        limiter: OTPRateLimiter,
        provider: OTPProvider,
        tokens: TokenService,
    ):
        self.users = users
        self.limiter = limiter
        self.provider = provider
        self.tokens = tokens

    def _check_action_preconditions(self, phone: str, action_type: OTPActionType):
        existing = self.users.find_by_phone(phone)
        if action_type == OTPActionType.REGISTER:
            if existing:
                raise UserAlreadyExistsError("Phone number is already registered")
        elif action_type == OTPActionType.RESET_PASSWORD:
            if not existing:
                raise UserNotFoundError("Account not found")

    async def request_otp(self, phone: str, action_type: OTPActionType) -> Dict[str, int]:
        """
        Send an OTP to `phone` for `action_type`.

        Args:
            phone: Normalized phone number in E.164 format
            action_type: register, reset-password or social-register

        Returns:
            {"counter": post-increment short-window count}

        Raises:
            UserAlreadyExistsError: register for a phone that has an account
            UserNotFoundError: reset-password for a phone without one
            RequestExceedAllowedError: either rate window is exhausted
            SystemExternalError: the SMS provider failed
        """
        try:
            action_type = OTPActionType(action_type)
        except ValueError:
            raise RequestInvalidError("Unsupported OTP action")
        self._check_action_preconditions(phone, action_type)

        counter = self.limiter.acquire(phone)

        try:
            await self.provider.send_verification(phone)
        except OTPProviderError as e:
            raise SystemExternalError("Failed to send OTP", original_error=e)

        logger.info(f"[OTP] Sent {action_type.value} code to {get_phone_last4(phone)} (counter={counter})")
        return {"counter": counter}

    async def verify_otp(self, phone: str, code: str) -> str:
        """
        Check `code` for `phone` and mint a verification token on approval.

        Verification attempts are not rate limited here; the provider
        counts attempts per verification.

        Raises:
            OtpInvalidError: wrong code, verification still pending
            OtpExpiredError: code expired, canceled or out of attempts
            SystemExternalError: provider failure or unexpected status
        """
        try:
            status = await self.provider.check_verification(phone, code)
        except OTPProviderError as e:
            raise SystemExternalError("Failed to check OTP", original_error=e)

        if status == VerificationStatus.PENDING:
            raise OtpInvalidError()
        if status in _EXPIRED_STATUSES:
            raise OtpExpiredError()
        if status == VerificationStatus.APPROVED:
            logger.info(f"[OTP] Phone verified: {get_phone_last4(phone)}")
            return self.tokens.issue_verification(phone)

        logger.error(f"[OTP] Unexpected verification status for {get_phone_last4(phone)}: {status.value}")
        raise SystemExternalError(f"Unexpected verification status: {status.value}")
