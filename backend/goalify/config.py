import os
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings

DEFAULT_CACHE_DIR = Path(__file__).resolve().parent / "data" / "cache"


class Settings(BaseSettings):
    database_url: Optional[str] = Field(None, alias="GOALIFY_DATABASE_URL")
    database_pool_size: int = Field(10, alias="GOALIFY_DATABASE_POOL_SIZE")
    database_max_overflow: int = Field(10, alias="GOALIFY_DATABASE_MAX_OVERFLOW")
    database_echo: bool = Field(False, alias="GOALIFY_DATABASE_ECHO")
    database_connect_timeout: int = Field(10, alias="GOALIFY_DATABASE_CONNECT_TIMEOUT", ge=1)
    persistence_mode: Literal["hybrid", "local"] = Field("hybrid", alias="GOALIFY_PERSISTENCE_MODE")
    cache_dir: Path = Field(DEFAULT_CACHE_DIR, alias="GOALIFY_CACHE_DIR")
    leaderboard_limit: int = Field(50, alias="GOALIFY_LEADERBOARD_LIMIT", ge=1, le=500)

    class Config:
        env_file = os.getenv("ENV_FILE", ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()  # type: ignore[call-arg]
    except ValidationError as exc:
        raise RuntimeError(f"Invalid backend configuration: {exc}") from exc
