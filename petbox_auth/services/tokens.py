"""
JWT signing and verification for access, refresh and verification tokens.

Each token kind has its own secret and lifetime. Tokens are never stored
server side; they end by expiry or secret rotation.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import jwt, JWTError

from ..core.config import Settings
from ..core.errors import SystemInternalError, TokenExpiredError, TokenInvalidError

logger = logging.getLogger(__name__)

_REGISTERED_CLAIMS = ("iat", "exp")


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


class TokenService:
    def __init__(self, settings: Settings):
        self.settings = settings
        self.algorithm = settings.ALGORITHM

    def sign(self, payload: Dict[str, Any], secret: str, lifetime: timedelta) -> str:
        """
        Sign `payload` with `secret`, valid for `lifetime` from now.

        Raises:
            SystemInternalError: If the payload cannot be encoded
        """
        now = datetime.now(timezone.utc)
        claims = dict(payload)
        claims["iat"] = now
        claims["exp"] = now + lifetime
        try:
            return jwt.encode(claims, secret, algorithm=self.algorithm)
        except (JWTError, TypeError, ValueError) as e:
            logger.error(f"[Tokens] Failed to sign token: {type(e).__name__}: {e}")
            raise SystemInternalError("Failed to sign token", original_error=e)

    def verify(self, token: Optional[str], secret: str) -> Dict[str, Any]:
        """
        Verify `token` and return the payload it was signed with.

        Raises:
            TokenExpiredError: Signature valid, but past expiry
            TokenInvalidError: Anything else (bad signature, malformed, missing)
        """
        if not token:
            raise TokenInvalidError("Token not found")
        try:
            claims = jwt.decode(token, secret, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            raise TokenExpiredError()
        except JWTError:
            raise TokenInvalidError()
        for claim in _REGISTERED_CLAIMS:
            claims.pop(claim, None)
        return claims

    def issue_session_pair(self, claims: Dict[str, Any]) -> TokenPair:
        return TokenPair(
            access_token=self.sign(claims, self.settings.ACCESS_TOKEN_SECRET, self.settings.access_token_lifetime),
            refresh_token=self.sign(claims, self.settings.REFRESH_TOKEN_SECRET, self.settings.refresh_token_lifetime),
        )

    def issue_verification(self, phone: str) -> str:
        return self.sign({"phone": phone}, self.settings.VERIFY_TOKEN_SECRET, self.settings.verify_token_lifetime)

    def verify_access(self, token: Optional[str]) -> Dict[str, Any]:
        return self.verify(token, self.settings.ACCESS_TOKEN_SECRET)

    def verify_refresh(self, token: Optional[str]) -> Dict[str, Any]:
        return self.verify(token, self.settings.REFRESH_TOKEN_SECRET)

    def verify_verification(self, token: Optional[str]) -> str:
        """Returns the phone the verification token was issued for."""
        claims = self.verify(token, self.settings.VERIFY_TOKEN_SECRET)
        phone = claims.get("phone")
        if not phone:
            raise TokenInvalidError()
        return phone
