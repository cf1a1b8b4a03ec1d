"""
OTP provider interface
"""
import enum
from abc import ABC, abstractmethod


class VerificationStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    EXPIRED = "expired"
    CANCELED = "canceled"
    MAX_ATTEMPTS_REACHED = "max_attempts_reached"
    DELETED = "deleted"
    FAILED = "failed"

    @classmethod
    def parse(cls, raw: str) -> "VerificationStatus":
        """Unknown provider statuses collapse to FAILED."""
        try:
            return cls(str(raw).lower())
        except ValueError:
            return cls.FAILED


class OTPProvider(ABC):
    """
    SMS delivery and code checking.

    Providers raise OTPProviderError for transport or configuration
    failures. A wrong code is not an error: it comes back as PENDING.
    """

    @abstractmethod
    async def send_verification(self, phone: str) -> VerificationStatus:
        """Send a code to `phone` (E.164)."""

    @abstractmethod
    async def check_verification(self, phone: str, code: str) -> VerificationStatus:
        """Check `code` for `phone` and return the provider status."""


class OTPProviderError(Exception):
    """Provider unreachable, misconfigured or timed out."""
