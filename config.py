from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import os
import sys


def app_root_dir() -> Path:
    if getattr(sys, "frozen", False):
        exe_dir = Path(sys.executable).resolve().parent
        return exe_dir.parent
    return Path(__file__).resolve().parent


def resolve_db_path(root_dir: Path) -> Path:
    custom_path = os.getenv("APP_DB_PATH")
    if not custom_path:
        data_dir = root_dir / "data"
        data_dir.mkdir(parents=True, exist_ok=True)
        return data_dir / "loans.db"

    db_path = Path(custom_path).expanduser()
    if not db_path.is_absolute():
        db_path = (root_dir / db_path).resolve()

    db_path.parent.mkdir(parents=True, exist_ok=True)
    return db_path


def resolve_database_url(root_dir: Path) -> str:
    url = os.getenv("DATABASE_URL")
    if url:
        return url
    return f"sqlite:///{resolve_db_path(root_dir).as_posix()}"


@dataclass(frozen=True)
class Settings:
    database_url: str
    secret_key: str = "dev-secret-key"
    token_hours: int = 12
    log_level: str = "INFO"
    timezone: Optional[str] = None


def load_settings() -> Settings:
    root = app_root_dir()
    token_hours = os.getenv("APP_TOKEN_HOURS", "12")
    try:
        hours = int(token_hours)
    except ValueError:
        hours = 12
    return Settings(
        database_url=resolve_database_url(root),
        secret_key=os.getenv("APP_SECRET_KEY", "dev-secret-key"),
        token_hours=max(1, hours),
        log_level=os.getenv("APP_LOG_LEVEL", "INFO").upper(),
        timezone=os.getenv("APP_TIMEZONE") or None,
    )
