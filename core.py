from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

_BASE_DIR = Path(__file__).parent
_DEFAULT_SERVER_URL = "https://api.wikinerd.com.br/api"


class Settings(BaseSettings):
    server_url: str = _DEFAULT_SERVER_URL
    storage_path: str = str(_BASE_DIR / "config.json")
    storage_key: str = "@wikinerd:token"
    login_path: str = "/login"
    register_path: str = "/register"
    refresh_path: str = "/refresh"
    logout_path: str = "/logout"
    profile_path: str = "/user/profile"
    request_timeout: float = 30.0  # seconds, whole exchange

    model_config = SettingsConfigDict(
        env_prefix="WIKINERD_",
        env_file=str(_BASE_DIR / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
