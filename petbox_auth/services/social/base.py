"""
OAuth identity provider interface
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from ...core.errors import ErrorCode, SystemExternalError, ValidationFailedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NormalizedProfile:
    provider: str
    provider_user_id: str
    name: Optional[str] = None
    email: Optional[str] = None
    avatar: Optional[str] = None


class SocialProvider(ABC):
    """
    One OAuth provider: trade a single-use authorization artifact for an
    access token, then read the user's profile with it.

    Subclasses set `name` and `artifact_fields` (artifact key -> client
    field name, used in validation errors) and implement the two calls.
    Nothing here retries: authorization codes are single use.
    """

    name: str = ""
    artifact_fields: Dict[str, str] = {}

    def __init__(self, timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = timeout
        self._transport = transport

    def validate_artifact(self, artifact: Dict[str, Any]):
        missing = [
            {"field": client_field, "errorCode": ErrorCode.VALIDATION_MISSING_FIELD.value}
            for key, client_field in self.artifact_fields.items()
            if not artifact.get(key)
        ]
        if missing:
            raise ValidationFailedError(missing)

    @abstractmethod
    async def _exchange(self, client: httpx.AsyncClient, artifact: Dict[str, Any]) -> str:
        """Return the provider access token."""

    @abstractmethod
    async def _fetch_profile(self, client: httpx.AsyncClient, access_token: str) -> NormalizedProfile:
        """Read and normalize the provider profile."""

    async def exchange_and_fetch_profile(self, artifact: Dict[str, Any]) -> NormalizedProfile:
        """
        Raises:
            ValidationFailedError: Artifact fields missing for this provider
            SystemExternalError: Network error, non-2xx answer or unexpected payload
        """
        self.validate_artifact(artifact)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                access_token = await self._exchange(client, artifact)
                profile = await self._fetch_profile(client, access_token)
        except httpx.HTTPStatusError as e:
            logger.error(
                f"[Social][{self.name}] {e.request.url} answered {e.response.status_code}: {e.response.text[:200]}"
            )
            raise SystemExternalError(f"{self.name} sign-in failed", original_error=e)
        except httpx.HTTPError as e:
            logger.error(f"[Social][{self.name}] Transport error: {type(e).__name__}: {e}")
            raise SystemExternalError(f"{self.name} sign-in failed", original_error=e)
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"[Social][{self.name}] Unexpected provider payload: {type(e).__name__}: {e}")
            raise SystemExternalError(f"{self.name} sign-in failed", original_error=e)

        logger.info(f"[Social][{self.name}] Profile fetched for provider user {profile.provider_user_id}")
        return profile
