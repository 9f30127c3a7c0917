import json
import logging
from pathlib import Path

from pydantic_settings import BaseSettings
from functools import lru_cache

_config_logger = logging.getLogger(__name__)

_SETTINGS_FILE = Path("data/settings.json")
_BACKEND_DIR = Path(__file__).resolve().parents[1]
_ENV_FILES = (
    _BACKEND_DIR / ".env",
    ".env",
)
_OVERRIDE_KEYS = frozenset({
    "crm_api_base_url",
    "realtime_url",
})


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_title: str = "Jewellery CRM Live Lists"
    app_version: str = "0.1.0"
    app_env: str = "development"
    cors_origins: list[str] = ["http://localhost:3000"]

    # Remote record store (CRM REST API)
    crm_api_base_url: str = "http://localhost:8000/api"
    crm_api_key: str = ""
    crm_api_timeout: float = 30.0
    # Send the user's store_id / user_id as query params on list fetches
    narrow_remote_fetch: bool = False

    # Realtime change stream — empty disables the remote relay
    realtime_url: str = ""
    realtime_reconnect_delay: float = 5.0

    # Open screens unused for this many seconds are closed; 0 keeps them forever
    screen_idle_timeout: float = 900.0

    # Collection catalog (relative to backend directory)
    collections_file: str = str(_BACKEND_DIR / "data" / "collections.yaml")

    # Logging — per-category log levels (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    log_level: str = "INFO"                  # Root / app-wide
    log_level_http: str = "WARNING"          # httpx / httpcore — outbound HTTP
    log_level_uvicorn: str = "INFO"          # uvicorn.access / uvicorn.error
    log_level_live_list: str = "INFO"        # fetch / scope / mutate services
    log_level_realtime: str = "INFO"         # change hub and SSE relay

    model_config = {
        "env_file": _ENV_FILES,
        "env_file_encoding": "utf-8",
    }

    def model_post_init(self, __context: object) -> None:
        """Merge runtime overrides from data/settings.json into endpoint settings."""
        if _SETTINGS_FILE.exists():
            try:
                overrides = json.loads(_SETTINGS_FILE.read_text("utf-8"))
                for key in _OVERRIDE_KEYS:
                    if key in overrides and isinstance(overrides[key], str):
                        object.__setattr__(self, key, overrides[key])
            except Exception as exc:
                _config_logger.warning("Could not load settings overrides: %s", exc)


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance — reads .env once."""
    return Settings()
