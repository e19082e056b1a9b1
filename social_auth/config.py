import os
from dataclasses import dataclass
from typing import List, Optional

# A local .env is optional, and so is python-dotenv itself.
try:
    from dotenv import load_dotenv

    load_dotenv()
except Exception:
    pass


_BOOL_WORDS = {
    "1": True, "true": True, "yes": True, "y": True, "on": True,
    "0": False, "false": False, "no": False, "n": False, "off": False,
}


def _env_bool(name: str, default: Optional[bool] = None) -> Optional[bool]:
    """Boolean env var. Unset or unrecognized values give `default`."""
    return _BOOL_WORDS.get((os.environ.get(name) or "").strip().lower(), default)


@dataclass(frozen=True)
class Config:
    """Runtime configuration, read from the environment (or .env) at import time.

    Tests build their own instance and pass it to create_app().
    """

    # -----------------
    # Core
    # -----------------
    # Preferred: set APP_DATABASE_URL (or DATABASE_URL) to use Postgres.
    # Fallback: APP_DB_PATH for SQLite.
    DB_DSN: str = (
        os.environ.get("APP_DATABASE_URL")
        or os.environ.get("DATABASE_URL")
        or os.environ.get("APP_DB_PATH", "./social_auth.sqlite")
    )

    # Where the browser client lives. OAuth callbacks redirect here.
    CLIENT_URL: str = os.environ.get("CLIENT_URL", "http://localhost:3001")

    # Public base URL of this API (used to build OAuth redirect_uri values).
    PUBLIC_API_URL: str = os.environ.get("PUBLIC_API_URL", "http://localhost:8000")

    # -----------------
    # Auth (JWT)
    # -----------------
    # Dev default only. Every deployment sets its own random value.
    AUTH_JWT_SECRET: str = os.environ.get("AUTH_JWT_SECRET", "dev_change_me")
    AUTH_TOKEN_EXPIRE_MINUTES: int = int(os.environ.get("AUTH_TOKEN_EXPIRE_MINUTES", "1440"))  # 1 day

    # Server-wide secret appended to every password before hashing.
    PASSWORD_SALT: str = os.environ.get("PASSWORD_SALT", "dev_salt_change_me")

    # Bootstrap first admin user if users table is empty (skipped when unset)
    AUTH_BOOTSTRAP_ADMIN_EMAIL: str = os.environ.get("AUTH_BOOTSTRAP_ADMIN_EMAIL", "")
    AUTH_BOOTSTRAP_ADMIN_PASSWORD: str = os.environ.get("AUTH_BOOTSTRAP_ADMIN_PASSWORD", "")

    # The OAuth callbacks set the issued token as an httpOnly cookie too.
    # get_session falls back to this cookie when there is no Bearer header.
    AUTH_COOKIE_NAME: str = os.environ.get("AUTH_COOKIE_NAME", "token")
    AUTH_COOKIE_SAMESITE: str = os.environ.get("AUTH_COOKIE_SAMESITE", "lax")  # lax|strict|none

    # Unset: Secure follows the scheme of PUBLIC_API_URL.
    AUTH_COOKIE_SECURE: bool = bool(
        _env_bool("AUTH_COOKIE_SECURE", PUBLIC_API_URL.lower().startswith("https://"))
    )

    # -----------------
    # OAuth providers
    # -----------------
    GOOGLE_CLIENT_ID: str | None = os.environ.get("GOOGLE_CLIENT_ID")
    GOOGLE_CLIENT_SECRET: str | None = os.environ.get("GOOGLE_CLIENT_SECRET")

    GITHUB_CLIENT_ID: str | None = os.environ.get("GITHUB_CLIENT_ID")
    GITHUB_CLIENT_SECRET: str | None = os.environ.get("GITHUB_CLIENT_SECRET")

    TELEGRAM_BOT_TOKEN: str | None = os.environ.get("TELEGRAM_BOT_TOKEN")
    # Telegram login payloads older than this are rejected.
    TELEGRAM_AUTH_MAX_AGE_SECONDS: int = int(os.environ.get("TELEGRAM_AUTH_MAX_AGE_SECONDS", "86400"))

    OAUTH_HTTP_TIMEOUT_SECONDS: float = float(os.environ.get("OAUTH_HTTP_TIMEOUT_SECONDS", "10"))

    # -----------------
    # Media host (Cloudinary)
    # -----------------
    CLOUDINARY_CLOUD_NAME: str | None = os.environ.get("CLOUDINARY_CLOUD_NAME")
    CLOUDINARY_API_KEY: str | None = os.environ.get("CLOUDINARY_API_KEY")
    CLOUDINARY_API_SECRET: str | None = os.environ.get("CLOUDINARY_API_SECRET")
    CLOUDINARY_FOLDER: str = os.environ.get("CLOUDINARY_FOLDER", "uploaded")

    UPLOAD_MAX_BYTES: int = int(os.environ.get("UPLOAD_MAX_BYTES", str(50 * 1024 * 1024)))

    # -----------------
    # CORS
    # -----------------
    CORS_ALLOW_ORIGINS: str = os.environ.get(
        "CORS_ALLOW_ORIGINS",
        "http://localhost:3001,http://localhost:4001",
    )

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip().rstrip("/") for o in (self.CORS_ALLOW_ORIGINS or "").split(",") if o.strip()]


def load_config() -> Config:
    return Config()
