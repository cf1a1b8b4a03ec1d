"""
Tests for the Google and Zalo OAuth providers.
HTTP goes through httpx.MockTransport; nothing leaves the process.
"""
from urllib.parse import parse_qs

import httpx
import pytest

from petbox_auth.core.errors import ErrorCode, SystemExternalError, ValidationFailedError
from petbox_auth.services.social import GoogleProvider, NormalizedProfile, ZaloProvider, create_social_providers
from petbox_auth.services.social.google import GOOGLE_TOKEN_URL, GOOGLE_USERINFO_URL
from petbox_auth.services.social.zalo import ZALO_TOKEN_URL


def _form(request: httpx.Request) -> dict:
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


def _google(handler) -> GoogleProvider:
    return GoogleProvider(
        client_id="google-client",
        client_secret="google-secret",
        redirect_uri="postmessage",
        transport=httpx.MockTransport(handler),
    )


def _zalo(handler) -> ZaloProvider:
    return ZaloProvider(app_id="zalo-app", app_secret="zalo-secret", transport=httpx.MockTransport(handler))


class TestGoogleProvider:
    @pytest.mark.asyncio
    async def test_exchange_and_profile(self):
        """Code is traded for a token, then userinfo is read with it"""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            if str(request.url) == GOOGLE_TOKEN_URL:
                seen["form"] = _form(request)
                return httpx.Response(200, json={"access_token": "g-access"})
            if str(request.url) == GOOGLE_USERINFO_URL:
                seen["auth"] = request.headers["Authorization"]
                return httpx.Response(
                    200,
                    json={"sub": "1077", "name": "Tran Thi Binh", "email": "binh@gmail.com", "picture": "https://img/b"},
                )
            return httpx.Response(404)

        profile = await _google(handler).exchange_and_fetch_profile({"code": "auth-code"})

        assert profile == NormalizedProfile(
            provider="google",
            provider_user_id="1077",
            name="Tran Thi Binh",
            email="binh@gmail.com",
            avatar="https://img/b",
        )
        assert seen["form"] == {
            "code": "auth-code",
            "client_id": "google-client",
            "client_secret": "google-secret",
            "redirect_uri": "postmessage",
            "grant_type": "authorization_code",
        }
        assert seen["auth"] == "Bearer g-access"

    @pytest.mark.asyncio
    async def test_missing_code(self):
        """Validation fails before any HTTP call"""
        def handler(request):
            raise AssertionError("no request expected")

        with pytest.raises(ValidationFailedError) as exc_info:
            await _google(handler).exchange_and_fetch_profile({"code": None})

        assert exc_info.value.fields == [{"field": "code", "errorCode": ErrorCode.VALIDATION_MISSING_FIELD.value}]

    @pytest.mark.asyncio
    async def test_rejected_code(self):
        """A non-2xx token answer is an upstream failure"""
        def handler(request):
            return httpx.Response(400, json={"error": "invalid_grant"})

        with pytest.raises(SystemExternalError) as exc_info:
            await _google(handler).exchange_and_fetch_profile({"code": "used"})
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(SystemExternalError):
            await _google(handler).exchange_and_fetch_profile({"code": "auth-code"})


class TestZaloProvider:
    @pytest.mark.asyncio
    async def test_exchange_and_profile(self):
        """PKCE exchange with secret_key header, profile with access_token header"""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            if str(request.url) == ZALO_TOKEN_URL:
                seen["secret"] = request.headers["secret_key"]
                seen["form"] = _form(request)
                return httpx.Response(200, json={"access_token": "z-access", "expires_in": "3600"})
            if request.url.host == "graph.zalo.me" and request.url.path == "/v2.0/me":
                seen["token"] = request.headers["access_token"]
                seen["fields"] = request.url.params["fields"]
                return httpx.Response(
                    200,
                    json={"id": "8812", "name": "Le Van Cuong", "picture": {"data": {"url": "https://zalo/c"}}},
                )
            return httpx.Response(404)

        profile = await _zalo(handler).exchange_and_fetch_profile(
            {"authorization_code": "z-code", "code_verifier": "verifier"}
        )

        assert profile == NormalizedProfile(
            provider="zalo", provider_user_id="8812", name="Le Van Cuong", avatar="https://zalo/c"
        )
        assert seen["secret"] == "zalo-secret"
        assert seen["form"] == {
            "code": "z-code",
            "app_id": "zalo-app",
            "grant_type": "authorization_code",
            "code_verifier": "verifier",
        }
        assert seen["token"] == "z-access"
        assert seen["fields"] == "id,name,picture"

    @pytest.mark.asyncio
    async def test_missing_verifier(self):
        def handler(request):
            raise AssertionError("no request expected")

        with pytest.raises(ValidationFailedError) as exc_info:
            await _zalo(handler).exchange_and_fetch_profile({"authorization_code": "z-code"})

        assert [f["field"] for f in exc_info.value.fields] == ["codeVerifier"]

    @pytest.mark.asyncio
    async def test_error_body_with_200(self):
        """Zalo reports a bad code as HTTP 200 with an error payload"""
        def handler(request):
            return httpx.Response(200, json={"error": -14003, "error_name": "Invalid authorization code"})

        with pytest.raises(SystemExternalError):
            await _zalo(handler).exchange_and_fetch_profile(
                {"authorization_code": "bad", "code_verifier": "verifier"}
            )

    @pytest.mark.asyncio
    async def test_profile_error(self):
        def handler(request):
            if str(request.url) == ZALO_TOKEN_URL:
                return httpx.Response(200, json={"access_token": "z-access"})
            return httpx.Response(200, json={"error": 452, "message": "Session key invalid"})

        with pytest.raises(SystemExternalError):
            await _zalo(handler).exchange_and_fetch_profile(
                {"authorization_code": "z-code", "code_verifier": "verifier"}
            )


class TestProviderRegistry:
    NO_CREDENTIALS = {"GOOGLE_CLIENT_ID": "", "GOOGLE_CLIENT_SECRET": "", "ZALO_APP_ID": "", "ZALO_APP_SECRET": ""}

    def test_unconfigured_providers_are_left_out(self, settings):
        assert create_social_providers(settings.model_copy(update=self.NO_CREDENTIALS)) == {}

    def test_configured_providers_are_registered(self, settings):
        providers = create_social_providers(
            settings.model_copy(
                update={
                    "GOOGLE_CLIENT_ID": "google-client",
                    "GOOGLE_CLIENT_SECRET": "google-secret",
                    "ZALO_APP_ID": "zalo-app",
                    "ZALO_APP_SECRET": "zalo-secret",
                }
            )
        )

        assert isinstance(providers["google"], GoogleProvider)
        assert isinstance(providers["zalo"], ZaloProvider)
        assert providers["zalo"].app_id == "zalo-app"

    def test_id_without_secret_is_not_enough(self, settings):
        providers = create_social_providers(
            settings.model_copy(update={**self.NO_CREDENTIALS, "ZALO_APP_ID": "zalo-app", "GOOGLE_CLIENT_ID": "g"})
        )

        assert providers == {}
