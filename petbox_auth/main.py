import sys
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .core.config import settings
from .core.counter_store import create_counter_store
from .core.env import get_env_name, is_local_env
from .core.startup_validation import validate_all
from .db import get_engine, init_db
from .exception_handlers import register_exception_handlers
from .middleware import LoggingMiddleware, NoStoreMiddleware, RequestIDMiddleware
from .routers import health, users
from .services.otp import create_otp_provider
from .services.social import create_social_providers

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger("petbox_auth")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Validate config, create tables and build the long-lived handles."""
    logger.info(f"Starting PetBox auth service (ENV={get_env_name()})")
    try:
        validate_all(settings)
        init_db()
        app.state.counter_store = create_counter_store(settings)
        app.state.otp_provider = create_otp_provider(settings)
        app.state.social_providers = create_social_providers(settings)
    except Exception as e:
        logger.error(f"Startup failed: {e}")
        raise
    logger.info("Application startup completed successfully")

    yield

    logger.info("Shutting down PetBox auth service...")
    get_engine().dispose()


def _add_cors(app: FastAPI):
    if is_local_env():
        # Credentialed requests cannot use "*", so echo any origin back
        app.add_middleware(
            CORSMiddleware,
            allow_origin_regex=".*",
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
        return

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Correlation-ID", "X-Request-ID"],
    )
    logger.info(f"CORS allowed origins: {settings.cors_origins}")


def create_app() -> FastAPI:
    app = FastAPI(title="PetBox Auth", version=__version__, lifespan=lifespan)

    # Last added runs first: RequestID wraps everything
    _add_cors(app)
    app.add_middleware(NoStoreMiddleware)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(users.router)
    return app


app = create_app()


def run():
    import os

    import uvicorn

    uvicorn.run(
        "petbox_auth.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )
