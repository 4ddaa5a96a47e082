"""Application settings."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[3]


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "opsgenie-datasource"
    app_host: str = "0.0.0.0"
    app_port: int = 3030
    log_level: str = "INFO"
    opsgenie_api_key: str = ""
    opsgenie_base_url: str = "https://api.opsgenie.com"
    opsgenie_timeout_s: float = Field(default=30.0, gt=0.0)
    # Basic auth is enabled only when http_user is set.
    http_user: str = ""
    http_pass: str = ""

    model_config = SettingsConfigDict(
        extra="ignore",
        env_file=(PROJECT_ROOT / ".env", PROJECT_ROOT / ".env.local"),
        env_file_encoding="utf-8",
    )

    @property
    def auth_strategy(self) -> str:
        return "basic" if self.http_user else "anonymous"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
