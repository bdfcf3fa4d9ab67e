import os
from functools import lru_cache
from pathlib import Path
from typing import Optional


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        csrf_secret: str,
        sync_latency_secs: float,
        gemini_api_key: Optional[str],
        suggest_model: str,
        log_level: str,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.csrf_secret = csrf_secret
        self.sync_latency_secs = sync_latency_secs
        self.gemini_api_key = gemini_api_key
        self.suggest_model = suggest_model
        self.log_level = log_level


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("FARM_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "farm.db"
    database_url = os.getenv("FARM_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("FARM_TIMEZONE", "Europe/Berlin")
    csrf_secret = os.getenv(
        "FARM_CSRF_SECRET",
        "5d0c3f1e8a7b42c19e6f0a4d2b8c7e31f9a6d4c2b1e0f8a7d6c5b4a3e2f1d0c9",
    )
    sync_latency_secs = float(os.getenv("FARM_SYNC_LATENCY_SECS", "0"))
    gemini_api_key = os.getenv("FARM_GEMINI_API_KEY") or None
    suggest_model = os.getenv("FARM_SUGGEST_MODEL", "gemini-3-flash-preview")
    log_level = os.getenv("FARM_LOG_LEVEL", "INFO").upper()
    return Settings(
        database_url=database_url,
        timezone=timezone,
        csrf_secret=csrf_secret,
        sync_latency_secs=sync_latency_secs,
        gemini_api_key=gemini_api_key,
        suggest_model=suggest_model,
        log_level=log_level,
    )
