import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    db_path: Path
    log_level: str = "INFO"
    recent_count: int = 5
    session_cookie: str = "budget_session"
    session_max_age: int = 30 * 24 * 60 * 60


def get_settings() -> Settings:
    data_dir = Path(os.environ.get("BUDGET_DATA_DIR") or Path.cwd() / ".data")
    return Settings(
        data_dir=data_dir,
        db_path=data_dir / "budget.sqlite",
        log_level=os.environ.get("BUDGET_LOG_LEVEL", "INFO").upper(),
        recent_count=int(os.environ.get("BUDGET_RECENT_COUNT", "5")),
        session_max_age=int(
            os.environ.get("BUDGET_SESSION_MAX_AGE", str(30 * 24 * 60 * 60))
        ),
    )
