from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from dkkdownload import __version__


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    service_root_url: str = Field(default="https://downloads.pdok.nl", alias="DKK_SERVICE_ROOT_URL")
    api_path: str = Field(default="/kadastralekaart/api/v4_0", alias="DKK_API_PATH")

    poll_interval_seconds: float = Field(default=1.0, alias="DKK_POLL_INTERVAL_SECONDS")
    http_timeout_seconds: float = Field(default=60.0, alias="DKK_HTTP_TIMEOUT_SECONDS")
    download_chunk_size: int = Field(default=64 * 1024, alias="DKK_DOWNLOAD_CHUNK_SIZE")

    log_level: str = Field(default="WARNING", alias="DKK_LOG_LEVEL")

    @property
    def user_agent(self) -> str:
        return f"DKKdownload v{__version__}"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
