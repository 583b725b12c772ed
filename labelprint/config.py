"""Runtime configuration, read once from the environment."""
import os
from dataclasses import dataclass, field
from typing import List, Optional


def _flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _database_url() -> str:
    # Use PostgreSQL in production (from DATABASE_URL env var), SQLite locally
    url = os.getenv("DATABASE_URL", "sqlite:///./labelprint.db")

    # Render/Heroku hand out postgres:// but SQLAlchemy needs postgresql://
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


@dataclass(frozen=True)
class Settings:
    """
    Process-wide settings.

    The service role key is the elevated credential used by the privileged
    executor. It is kept out of repr() so it never ends up in a log line.
    """
    database_url: str = "sqlite:///./labelprint.db"
    auth_url: Optional[str] = None
    anon_key: Optional[str] = None
    service_role_key: Optional[str] = field(default=None, repr=False)

    # "bearer" (Authorization header) or "cookie" (browser session)
    auth_transport: str = "bearer"
    auth_cookie_name: str = "sb-access-token"
    auth_refresh_cookie_name: str = "sb-refresh-token"
    auth_timeout: float = 10.0

    profile_recovery: bool = False
    profile_recovery_moderator_hint: Optional[str] = None

    cors_origins: List[str] = field(default_factory=list)
    log_level: str = "INFO"
    log_json: bool = True

    @property
    def elevated_configured(self) -> bool:
        return bool(self.auth_url and self.service_role_key)

    @classmethod
    def from_env(cls) -> "Settings":
        origins = os.getenv("CORS_ORIGINS", "")
        transport = os.getenv("AUTH_TRANSPORT", "bearer").strip().lower()
        if transport not in ("bearer", "cookie"):
            raise ValueError(f"AUTH_TRANSPORT must be 'bearer' or 'cookie', got {transport!r}")

        return cls(
            database_url=_database_url(),
            auth_url=(os.getenv("SUPABASE_URL") or "").rstrip("/") or None,
            anon_key=os.getenv("SUPABASE_ANON_KEY") or None,
            service_role_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY") or None,
            auth_transport=transport,
            auth_cookie_name=os.getenv("AUTH_COOKIE_NAME", "sb-access-token"),
            auth_refresh_cookie_name=os.getenv("AUTH_REFRESH_COOKIE_NAME", "sb-refresh-token"),
            auth_timeout=float(os.getenv("AUTH_TIMEOUT", "10")),
            profile_recovery=_flag("PROFILE_RECOVERY", False),
            profile_recovery_moderator_hint=os.getenv("PROFILE_RECOVERY_MODERATOR_HINT") or None,
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_json=_flag("LOG_JSON", True),
        )
