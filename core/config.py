"""
Runtime configuration read from the environment.

Values are read on every call so tests and long-running processes pick up
changes to the environment without a restart.
"""
import os
from typing import List

from dotenv import load_dotenv

from core.errors import ConfigurationError

load_dotenv()

JWT_ALGORITHM = "HS256"

_DEFAULT_TOKEN_EXPIRE_DAYS = 7
_DEFAULT_BCRYPT_ROUNDS = 12
_DEFAULT_MAX_IMAGE_BYTES = 10 * 1024 * 1024


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def get_jwt_secret() -> str:
    """Return the token signing secret, failing fast when it is not configured."""
    secret = (os.getenv("JWT_SECRET") or "").strip()
    if not secret:
        raise ConfigurationError("JWT_SECRET is not configured")
    return secret


def get_token_expire_days() -> int:
    days = _int_env("TOKEN_EXPIRE_DAYS", _DEFAULT_TOKEN_EXPIRE_DAYS)
    return min(max(days, 1), 30)


def get_bcrypt_rounds() -> int:
    return max(_int_env("BCRYPT_ROUNDS", _DEFAULT_BCRYPT_ROUNDS), 4)


def get_upload_dir() -> str:
    return os.getenv("UPLOAD_DIR") or "uploads"


def get_max_image_bytes() -> int:
    return _int_env("MAX_IMAGE_BYTES", _DEFAULT_MAX_IMAGE_BYTES)


def admin_registration_enabled() -> bool:
    return _bool_env("ADMIN_REGISTRATION_ENABLED", True)


def get_cors_origins() -> List[str]:
    raw = os.getenv("CORS_ORIGINS") or "*"
    origins = [item.strip() for item in raw.split(",") if item.strip()]
    return origins or ["*"]
