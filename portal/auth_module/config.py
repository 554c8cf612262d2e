import os
from dataclasses import dataclass


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    api_base_url: str = os.getenv("PORTAL_API_BASE_URL", "http://localhost:5000/api").rstrip("/")
    api_timeout_seconds: float = float(os.getenv("PORTAL_API_TIMEOUT_SECONDS", "15"))
    client_cookie_name: str = os.getenv("PORTAL_CLIENT_COOKIE", "portal_client")
    client_cookie_days: int = int(os.getenv("PORTAL_CLIENT_COOKIE_DAYS", "365"))
    cookie_secure: bool = _env_flag("PORTAL_COOKIE_SECURE", "false")
    page_size: int = int(os.getenv("PORTAL_PAGE_SIZE", "10"))
    enforce_token_expiry: bool = _env_flag("PORTAL_ENFORCE_TOKEN_EXPIRY", "true")


settings = Settings()
