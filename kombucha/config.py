from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path


@dataclass
class Settings:
    db_url: str = "sqlite:///./kombucha.db"
    history_limit: int = 50
    tick_seconds: float = 1.0
    reminder_horizon_days: int = 365
    export_dir: Path = field(default_factory=lambda: Path("exports"))
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        db_url = os.getenv("KOMBUCHA_DB_URL", cls.db_url)
        history_limit = int(os.getenv("KOMBUCHA_HISTORY_LIMIT", cls.history_limit))
        tick_seconds = float(os.getenv("KOMBUCHA_TICK_SECONDS", cls.tick_seconds))
        reminder_horizon_days = int(
            os.getenv("KOMBUCHA_REMINDER_HORIZON_DAYS", cls.reminder_horizon_days)
        )
        default_export = Path("exports")
        export_dir = Path(os.getenv("KOMBUCHA_EXPORT_DIR", str(default_export)))
        log_level = os.getenv("KOMBUCHA_LOG_LEVEL", cls.log_level)
        return cls(
            db_url=db_url,
            history_limit=history_limit,
            tick_seconds=tick_seconds,
            reminder_horizon_days=reminder_horizon_days,
            export_dir=export_dir,
            log_level=log_level,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()


__all__ = ["Settings", "get_settings"]
