import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    token: str
    # "memory", "json" or "sqlite"
    storage_type: str = "json"
    data_path: str = "potluck_data.json"
    database_path: str = "data/potluck.db"
    default_timezone: str = "America/New_York"
    # Discord only allows editing a message for a limited time
    edit_window_minutes: int = 15
    # Pause between a claim reply and the summary refresh
    refresh_delay: float = 0.1
    log_level: str = "INFO"


def _env(name: str, default: str) -> str:
    return os.getenv(name, "").strip() or default


def load_settings() -> Settings:
    token = os.getenv("DISCORD_BOT_TOKEN", "").strip()
    return Settings(
        token=token or "",
        storage_type=_env("STORAGE_TYPE", "json").lower(),
        data_path=_env("POTLUCK_DATA_PATH", "potluck_data.json"),
        database_path=_env("DATABASE_PATH", "data/potluck.db"),
        default_timezone=_env("POTLUCK_DEFAULT_TIMEZONE", "America/New_York"),
        edit_window_minutes=int(_env("POTLUCK_EDIT_WINDOW_MINUTES", "15")),
        refresh_delay=float(_env("POTLUCK_REFRESH_DELAY", "0.1")),
        log_level=_env("POTLUCK_LOG_LEVEL", "INFO").upper(),
    )
