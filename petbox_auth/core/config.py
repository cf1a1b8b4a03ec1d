from pydantic import BaseModel
import os
from datetime import timedelta
from typing import List

from dotenv import load_dotenv

# Load .env before any getenv below is evaluated
load_dotenv()


class Settings(BaseModel):
    ENV: str = os.getenv("ENV", "dev")
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./petbox_auth.db")

    # Counter/cache store. Empty means the in-process store (dev and tests only)
    REDIS_URL: str = os.getenv("REDIS_URL", "")
    REDIS_TIMEOUT_SECONDS: int = int(os.getenv("REDIS_TIMEOUT_SECONDS", "3"))

    # JWT: one secret and lifetime per token kind
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_SECRET: str = os.getenv("ACCESS_TOKEN_SECRET", "dev-access-secret-change-me")
    REFRESH_TOKEN_SECRET: str = os.getenv("REFRESH_TOKEN_SECRET", "dev-refresh-secret-change-me")
    VERIFY_TOKEN_SECRET: str = os.getenv("VERIFY_TOKEN_SECRET", "dev-verify-secret-change-me")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
    REFRESH_TOKEN_EXPIRE_DAYS: int = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "14"))
    VERIFY_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("VERIFY_TOKEN_EXPIRE_MINUTES", "10"))

    # Extra cookie lifetime on top of the session token lifetimes
    COOKIE_BUFFER_SECONDS: int = int(os.getenv("COOKIE_BUFFER_SECONDS", "3600"))
    COOKIE_SECURE: bool = os.getenv("COOKIE_SECURE", "true").lower() == "true"

    # OTP request limits (fixed windows, per phone)
    OTP_MAX_PER_10MIN: int = int(os.getenv("OTP_MAX_PER_10MIN", "5"))
    OTP_MAX_PER_DAY: int = int(os.getenv("OTP_MAX_PER_DAY", "10"))
    OTP_WINDOW_SHORT_SECONDS: int = int(os.getenv("OTP_WINDOW_SHORT_SECONDS", "600"))
    OTP_WINDOW_DAILY_SECONDS: int = int(os.getenv("OTP_WINDOW_DAILY_SECONDS", "86400"))
    OTP_CODE_LENGTH: int = int(os.getenv("OTP_CODE_LENGTH", "4"))

    # Phone OTP Configuration (Twilio)
    OTP_PROVIDER: str = os.getenv("OTP_PROVIDER", "stub")  # twilio_verify, stub
    TWILIO_ACCOUNT_SID: str = os.getenv("TWILIO_ACCOUNT_SID", "")
    TWILIO_AUTH_TOKEN: str = os.getenv("TWILIO_AUTH_TOKEN", "")
    TWILIO_VERIFY_SERVICE_SID: str = os.getenv("TWILIO_VERIFY_SERVICE_SID", "")
    TWILIO_TIMEOUT_SECONDS: int = int(os.getenv("TWILIO_TIMEOUT_SECONDS", "10"))

    PHONE_DEFAULT_REGION: str = os.getenv("PHONE_DEFAULT_REGION", "VN")
    PHONE_COUNTRY_CODE: int = int(os.getenv("PHONE_COUNTRY_CODE", "84"))

    # OAuth providers
    GOOGLE_CLIENT_ID: str = os.getenv("GOOGLE_CLIENT_ID", "")
    GOOGLE_CLIENT_SECRET: str = os.getenv("GOOGLE_CLIENT_SECRET", "")
    GOOGLE_REDIRECT_URI: str = os.getenv("GOOGLE_REDIRECT_URI", "postmessage")
    ZALO_APP_ID: str = os.getenv("ZALO_APP_ID", "")
    ZALO_APP_SECRET: str = os.getenv("ZALO_APP_SECRET", "")
    OAUTH_TIMEOUT_SECONDS: float = float(os.getenv("OAUTH_TIMEOUT_SECONDS", "10"))

    # Comma-separated; only used outside local environments
    CORS_ALLOWED_ORIGINS: str = os.getenv(
        "CORS_ALLOWED_ORIGINS",
        "https://petbox-client.vercel.app,http://localhost:3000,http://localhost",
    )

    @property
    def access_token_lifetime(self) -> timedelta:
        return timedelta(minutes=self.ACCESS_TOKEN_EXPIRE_MINUTES)

    @property
    def refresh_token_lifetime(self) -> timedelta:
        return timedelta(days=self.REFRESH_TOKEN_EXPIRE_DAYS)

    @property
    def verify_token_lifetime(self) -> timedelta:
        return timedelta(minutes=self.VERIFY_TOKEN_EXPIRE_MINUTES)

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.CORS_ALLOWED_ORIGINS.split(",") if o.strip()]


settings = Settings()


def get_settings() -> Settings:
    """Dependency hook so tests can override settings per app."""
    return settings
