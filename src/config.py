from __future__ import annotations

from functools import cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[1]
ARTIFACTS_DIR = PROJECT_ROOT / "artifacts"
RECORDS_DB_FILE = ARTIFACTS_DIR / "wallets.db"
LOCAL_CACHE_DB_FILE = ARTIFACTS_DIR / "local_cache.db"


class AppSettings(BaseSettings):
    coingecko_base_url: str = "https://api.coingecko.com/api/v3"
    vs_currency: str = "idr"
    catalog_size: int = 100

    price_ttl_seconds: int = 5 * 60
    catalog_ttl_seconds: int = 24 * 60 * 60
    refresh_interval_seconds: int = 5 * 60

    request_timeout_seconds: float = 10.0
    retry_attempts: int = 3
    retry_backoff_seconds: float = 1.0

    records_db_file: Path = RECORDS_DB_FILE
    local_cache_db_file: Path = LOCAL_CACHE_DB_FILE

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


@cache
def config() -> AppSettings:
    return AppSettings()
