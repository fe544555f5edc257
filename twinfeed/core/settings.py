"""App settings — loaded from environment variables with defaults."""

import os
from typing import List, Optional
from dotenv import load_dotenv
from twinfeed.core.constants import (
    DATA_WINDOW_DAYS as _DEFAULT_DATA_WINDOW_DAYS,
)

load_dotenv()


def _optional_float(name: str) -> Optional[float]:
    raw = os.getenv(name, "").strip()
    return float(raw) if raw else None


class Settings:
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))

    CORS_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
    ]
    CORS_EXTRA_ORIGINS: str = os.getenv("CORS_EXTRA_ORIGINS", "")

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Household wall clock; the engine reasons on naive local hours
    TIMEZONE: str = os.getenv("TIMEZONE", "Europe/Paris")

    # Rolling window and staleness cutoff are tuned independently.
    # Empty STALE_FEED_HOURS means "use each profile's p90 interval".
    DATA_WINDOW_DAYS: int = int(
        os.getenv("DATA_WINDOW_DAYS", str(_DEFAULT_DATA_WINDOW_DAYS))
    )
    STALE_FEED_HOURS: Optional[float] = _optional_float("STALE_FEED_HOURS")


settings = Settings()
