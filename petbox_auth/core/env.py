"""
Centralized environment detection utilities.

All functions read ENV only. Callers that need a fresh value after
changing ENV at runtime (tests) must call `get_env_name.cache_clear()`.
"""
import os
from functools import lru_cache


@lru_cache(maxsize=1)
def get_env_name() -> str:
    """
    Get the current environment name from ENV variable.

    Returns:
        Environment name (lowercase): 'local', 'dev', 'staging', 'prod', etc.
        Defaults to 'dev' if not set.
    """
    return os.getenv("ENV", "dev").lower()


def is_local_env() -> bool:
    """True if ENV is 'local', 'dev' or 'test'."""
    return get_env_name() in {"local", "dev", "test"}


def is_production_env() -> bool:
    """True if ENV is 'prod' or 'production'."""
    return get_env_name() in {"prod", "production"}
