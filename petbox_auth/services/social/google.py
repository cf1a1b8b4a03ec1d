"""
Google OAuth authorization-code provider
"""
from typing import Any, Dict

import httpx

from ...core.config import Settings
from .base import NormalizedProfile, SocialProvider

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v3/userinfo"


class GoogleProvider(SocialProvider):
    name = "google"
    artifact_fields = {"code": "code"}

    def __init__(self, client_id: str, client_secret: str, redirect_uri: str, **kwargs):
        super().__init__(**kwargs)
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "GoogleProvider":
        return cls(
            client_id=settings.GOOGLE_CLIENT_ID,
            client_secret=settings.GOOGLE_CLIENT_SECRET,
            redirect_uri=settings.GOOGLE_REDIRECT_URI,
            timeout=settings.OAUTH_TIMEOUT_SECONDS,
            **kwargs,
        )

    async def _exchange(self, client: httpx.AsyncClient, artifact: Dict[str, Any]) -> str:
        response = await client.post(
            GOOGLE_TOKEN_URL,
            data={
                "code": artifact["code"],
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": self.redirect_uri,
                "grant_type": "authorization_code",
            },
        )
        response.raise_for_status()
        return response.json()["access_token"]

    async def _fetch_profile(self, client: httpx.AsyncClient, access_token: str) -> NormalizedProfile:
        response = await client.get(
            GOOGLE_USERINFO_URL,
            headers={"Authorization": f"Bearer {access_token}"},
        )
        response.raise_for_status()
        data = response.json()
        return NormalizedProfile(
            provider=self.name,
            provider_user_id=str(data["sub"]),
            name=data.get("name"),
            email=data.get("email"),
            avatar=data.get("picture"),
        )
