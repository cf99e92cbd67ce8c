import os
from dataclasses import dataclass
from typing import Optional

# Optional: load a local .env file if present.
try:
    from dotenv import load_dotenv

    load_dotenv()
except ImportError:
    pass


def _env_int(name: str, default: int) -> int:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    return int(raw)


def _env_str(name: str) -> Optional[str]:
    """Return a stripped env value, treating blank as unset."""
    return (os.environ.get(name) or "").strip() or None


# Used when AUTH_BOOTSTRAP_ADMIN_PASSWORD is unset. Startup warns while it is in effect.
DEFAULT_BOOTSTRAP_ADMIN_PASSWORD = "admin"


@dataclass(frozen=True)
class Config:
    """Runtime configuration.

    Secrets (JWT secret, admin key) come from environment variables or a .env file.
    """

    # -----------------
    # Store
    # -----------------
    # Set DISHBOARD_DATABASE_URL (or DATABASE_URL) to a postgres:// URL to use Postgres.
    # Fallback: DISHBOARD_DB_PATH for SQLite.
    DB_DSN: str = (
        os.environ.get("DISHBOARD_DATABASE_URL")
        or os.environ.get("DATABASE_URL")
        or os.environ.get("DISHBOARD_DB_PATH", "./dishboard.sqlite")
    )

    # Fixed connection pool capacity; requests block until a slot frees up.
    DB_POOL_SIZE: int = _env_int("DB_POOL_SIZE", 5)

    # -----------------
    # Auth (JWT)
    # -----------------
    # NOTE: In dev, this defaults to a fixed string so you can get started.
    # In production, you MUST set AUTH_JWT_SECRET to a strong random value.
    AUTH_JWT_SECRET: str = os.environ.get("AUTH_JWT_SECRET", "dev_change_me")
    # 0 issues tokens without an `exp` claim.
    AUTH_TOKEN_EXPIRE_MINUTES: int = _env_int("AUTH_TOKEN_EXPIRE_MINUTES", 10080)  # 7 days

    # The single account allowed into the admin panel. It can never be deleted.
    ADMIN_USERNAME: str = os.environ.get("ADMIN_USERNAME", "admin")

    # Shared key accepted in the X-Admin-Key header. Grants admin access without a token,
    # so treat it like a root password. Unset disables key-based admission.
    ADMIN_KEY: Optional[str] = _env_str("ADMIN_KEY")

    # Password for the admin account created when the users table is empty.
    AUTH_BOOTSTRAP_ADMIN_PASSWORD: Optional[str] = os.environ.get(
        "AUTH_BOOTSTRAP_ADMIN_PASSWORD", DEFAULT_BOOTSTRAP_ADMIN_PASSWORD
    )

    # -----------------
    # Uploads
    # -----------------
    UPLOAD_DIR: str = os.environ.get("UPLOAD_DIR", "uploads")
    UPLOAD_MAX_BYTES: int = _env_int("UPLOAD_MAX_BYTES", 10 * 1024 * 1024)

    # -----------------
    # HTTP
    # -----------------
    CORS_ALLOW_ORIGINS: str = os.environ.get(
        "CORS_ALLOW_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000",
    )

    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")


def load_config() -> Config:
    return Config()
