"""Runtime settings, read from ``JUDGING_*`` environment variables or ``.env``."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_path: str = Field(default="", description="SQLite file; empty keeps data in memory")
    submissions_url: str = Field(default="", description="Base URL of the submission directory API")
    submissions_file: str = Field(default="", description="JSON file listing submissions per group")
    request_timeout: float = Field(default=30.0, gt=0)
    default_scale_max: int = Field(default=10)
    default_weighted: bool = False
    admin_ids: list[str] = Field(default_factory=list)
    caller_secret: str = Field(default="", description="Key for X-Caller-Signature; empty trusts no caller id")
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="JUDGING_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
