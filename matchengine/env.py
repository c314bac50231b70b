import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

DEFAULT_DB_PATH = "data/matchengine.db"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_BATCH_SIZE = 50


def load_env(env_path: Optional[Path] = None) -> None:
    """Load .env from project root if present. Existing variables win."""
    env_path = env_path or Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(dotenv_path=env_path, override=False)


def get_db_path() -> Path:
    return Path(os.getenv("MATCHENGINE_DB_PATH", DEFAULT_DB_PATH))


def get_log_level() -> str:
    return os.getenv("MATCHENGINE_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()


def get_log_dir() -> Optional[Path]:
    value = os.getenv("MATCHENGINE_LOG_DIR")
    return Path(value) if value else None


def get_batch_size() -> int:
    try:
        return int(os.getenv("MATCHENGINE_BATCH_SIZE", DEFAULT_BATCH_SIZE))
    except ValueError:
        return DEFAULT_BATCH_SIZE
