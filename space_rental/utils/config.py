"""Environment-driven application settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv


load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Process configuration. Pricing parameters live in the settings table."""

    app_name: str
    app_version: str
    database_path: Path
    log_level: str
    timezone: str
    submission_lock_timeout_seconds: float
    sqlite_timeout_seconds: float
    upload_dir: Path
    upload_base_url: str
    upload_max_bytes: int
    calendar_location: str
    notification_status_tag: str
    block_on_pending_reservations: bool
    phone_regex: str = r"0\d{1,2}-?\d{3,4}-?\d{4}"
    email_regex: str = r"[^@\s]+@[^@\s]+\.[^@\s]+"
    time_regex: str = r"^(?:[01]\d|2[0-3]):[0-5]\d$|^24:00$"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings(
        app_name=os.getenv("APP_NAME", "Space Rental Reservations"),
        app_version=os.getenv("APP_VERSION", "1.0.0"),
        database_path=Path(os.getenv("DATABASE_PATH", "data/space_rental.db")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        timezone=os.getenv("APP_TIMEZONE", "Asia/Seoul"),
        submission_lock_timeout_seconds=float(
            os.getenv("SUBMISSION_LOCK_TIMEOUT_SECONDS", "30")
        ),
        sqlite_timeout_seconds=float(os.getenv("SQLITE_TIMEOUT_SECONDS", "10")),
        upload_dir=Path(os.getenv("UPLOAD_DIR", "data/uploads")),
        upload_base_url=os.getenv("UPLOAD_BASE_URL", "/documents").rstrip("/"),
        upload_max_bytes=int(os.getenv("UPLOAD_MAX_BYTES", str(10 * 1024 * 1024))),
        calendar_location=os.getenv("CALENDAR_LOCATION", "Studio"),
        notification_status_tag=os.getenv("NOTIFICATION_STATUS_TAG", "CONFIRMATION_SENT"),
        block_on_pending_reservations=_env_bool("BLOCK_ON_PENDING_RESERVATIONS", False),
    )
