import os
from functools import lru_cache
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


DEFAULT_TIMEZONE = "America/El_Salvador"


class Settings:
    def __init__(
        self,
        database_url: str,
        default_timezone: str,
        snapshot_hour: int,
        snapshot_minute: int,
        log_level: str,
    ) -> None:
        self.database_url = database_url
        self.default_timezone = default_timezone
        self.snapshot_hour = snapshot_hour
        self.snapshot_minute = snapshot_minute
        self.log_level = log_level


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("LEDGERTZ_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _validated_timezone(name: str) -> str:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Invalid default timezone: {name}") from exc
    return name


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "ledger.db"
    database_url = os.getenv("LEDGERTZ_DATABASE_URL", f"sqlite:///{default_db}")
    default_timezone = _validated_timezone(
        os.getenv("LEDGERTZ_DEFAULT_TIMEZONE", DEFAULT_TIMEZONE)
    )
    snapshot_hour = int(os.getenv("LEDGERTZ_SNAPSHOT_HOUR", "0"))
    snapshot_minute = int(os.getenv("LEDGERTZ_SNAPSHOT_MINUTE", "30"))
    log_level = os.getenv("LEDGERTZ_LOG_LEVEL", "INFO").upper()
    return Settings(
        database_url=database_url,
        default_timezone=default_timezone,
        snapshot_hour=snapshot_hour,
        snapshot_minute=snapshot_minute,
        log_level=log_level,
    )
