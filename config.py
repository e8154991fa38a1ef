import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent

DEFAULT_ALLOWED_ORIGINS = ["http://127.0.0.1:5000", "http://localhost:5000"]


def _env(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip()


def _env_int(name: str, default: int) -> int:
    raw = _env(name)
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


def _env_flag(name: str) -> bool:
    return _env(name).lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    openai_max_tokens: int = 600
    openai_timeout_seconds: int = 30
    encryption_admin_key: str = ""
    notify_topic: str = "admins"
    admin_api_token: str = ""
    allowed_origins: list[str] = field(default_factory=lambda: list(DEFAULT_ALLOWED_ORIGINS))
    firebase_project_id: str = ""
    firebase_service_account_json: str = ""
    firebase_service_account_file: str = ""
    log_level: str = "INFO"
    port: int = 5000
    debug: bool = False


def load_settings() -> Settings:
    load_dotenv()
    raw_allowed_origins = _env("ALLOWED_ORIGINS")
    allowed_origins = [o.strip() for o in raw_allowed_origins.split(",") if o.strip()]
    return Settings(
        openai_api_key=_env("OPENAI_KEY") or _env("OPENAI_API_KEY"),
        openai_model=_env("OPENAI_MODEL", "gpt-4o-mini") or "gpt-4o-mini",
        openai_max_tokens=_env_int("OPENAI_MAX_TOKENS", 600),
        openai_timeout_seconds=_env_int("OPENAI_TIMEOUT_SECONDS", 30),
        encryption_admin_key=_env("ENCRYPTION_ADMIN_KEY"),
        notify_topic=_env("NOTIFY_TOPIC", "admins") or "admins",
        admin_api_token=_env("ADMIN_API_TOKEN"),
        allowed_origins=allowed_origins or list(DEFAULT_ALLOWED_ORIGINS),
        firebase_project_id=_env("FIREBASE_PROJECT_ID"),
        firebase_service_account_json=_env("FIREBASE_SERVICE_ACCOUNT_JSON"),
        firebase_service_account_file=_env("FIREBASE_SERVICE_ACCOUNT_FILE"),
        log_level=_env("LOG_LEVEL", "INFO").upper() or "INFO",
        port=_env_int("PORT", 5000),
        debug=_env_flag("FLASK_DEBUG"),
    )
