"""
Zalo OAuth v4 provider (authorization code + PKCE verifier)
"""
from typing import Any, Dict, Optional

import httpx

from ...core.config import Settings
from .base import NormalizedProfile, SocialProvider

ZALO_TOKEN_URL = "https://oauth.zaloapp.com/v4/access_token"
ZALO_PROFILE_URL = "https://graph.zalo.me/v2.0/me"


def _picture_url(picture: Any) -> Optional[str]:
    # Graph API nests the URL as {"data": {"url": ...}}
    if isinstance(picture, dict):
        return (picture.get("data") or {}).get("url")
    return picture


class ZaloProvider(SocialProvider):
    name = "zalo"
    artifact_fields = {"authorization_code": "authorization_code", "code_verifier": "codeVerifier"}

    def __init__(self, app_id: str, app_secret: str, **kwargs):
        super().__init__(**kwargs)
        self.app_id = app_id
        self.app_secret = app_secret

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "ZaloProvider":
        return cls(
            app_id=settings.ZALO_APP_ID,
            app_secret=settings.ZALO_APP_SECRET,
            timeout=settings.OAUTH_TIMEOUT_SECONDS,
            **kwargs,
        )

    async def _exchange(self, client: httpx.AsyncClient, artifact: Dict[str, Any]) -> str:
        response = await client.post(
            ZALO_TOKEN_URL,
            headers={"secret_key": self.app_secret},
            data={
                "code": artifact["authorization_code"],
                "app_id": self.app_id,
                "grant_type": "authorization_code",
                "code_verifier": artifact["code_verifier"],
            },
        )
        response.raise_for_status()
        payload = response.json()
        # Zalo reports OAuth failures with HTTP 200 and an error body
        if "access_token" not in payload:
            raise ValueError(f"token exchange rejected: {payload.get('error_name') or payload.get('error')}")
        return payload["access_token"]

    async def _fetch_profile(self, client: httpx.AsyncClient, access_token: str) -> NormalizedProfile:
        response = await client.get(
            ZALO_PROFILE_URL,
            params={"fields": "id,name,picture"},
            headers={"access_token": access_token},
        )
        response.raise_for_status()
        data = response.json()
        if data.get("error"):
            raise ValueError(f"profile request rejected: {data.get('message')}")
        return NormalizedProfile(
            provider=self.name,
            provider_user_id=str(data["id"]),
            name=data.get("name"),
            avatar=_picture_url(data.get("picture")),
        )
