"""
Environment-driven configuration.

Settings are read from environment variables, optionally seeded from a
.env file in the working directory. CLI flags take precedence over them.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

DEFAULT_DB_PATH = "data/genexchange.db"
DEFAULT_REQUEST_TIMEOUT = 15.0

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
TRUTHY = {"1", "true", "yes", "on"}


def load_env() -> None:
    """Load .env from the working directory if present."""
    env_path = Path.cwd() / ".env"
    if not env_path.exists():
        return
    load_dotenv(dotenv_path=env_path)


def _flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in TRUTHY


@dataclass
class Settings:
    db_path: Path = Path(DEFAULT_DB_PATH)
    log_level: str = "INFO"
    log_dir: Optional[Path] = None
    clamp_scores: bool = False
    supabase_url: str = ""
    supabase_key: str = ""


def get_log_settings() -> Tuple[str, Optional[Path]]:
    """Log level and optional log directory from GENEXCHANGE_LOG_LEVEL / GENEXCHANGE_LOG_DIR."""
    log_dir = os.getenv("GENEXCHANGE_LOG_DIR")
    level = os.getenv("GENEXCHANGE_LOG_LEVEL", "").strip().upper()
    if level not in LOG_LEVELS:
        level = "INFO"
    return level, (Path(log_dir) if log_dir else None)


def get_settings() -> Settings:
    """
    Build settings from the current environment.

    Returns:
        Settings populated from GENEXCHANGE_* and SUPABASE_* variables
    """
    log_level, log_dir = get_log_settings()
    return Settings(
        db_path=Path(os.getenv("GENEXCHANGE_DB_PATH", DEFAULT_DB_PATH)),
        log_level=log_level,
        log_dir=log_dir,
        clamp_scores=_flag("GENEXCHANGE_CLAMP_SCORES"),
        supabase_url=os.getenv("SUPABASE_URL", "").rstrip("/"),
        supabase_key=os.getenv("SUPABASE_KEY", ""),
    )


def get_request_timeout() -> float:
    """
    Per-request timeout for the hosted store, in seconds.

    Raises:
        ValueError: If GENEXCHANGE_REQUEST_TIMEOUT is not a positive number
    """
    timeout = os.getenv("GENEXCHANGE_REQUEST_TIMEOUT", "").strip()
    if not timeout:
        return DEFAULT_REQUEST_TIMEOUT
    try:
        value = float(timeout)
    except ValueError:
        raise ValueError(f"GENEXCHANGE_REQUEST_TIMEOUT must be a number, got {timeout!r}")
    if value <= 0:
        raise ValueError(f"GENEXCHANGE_REQUEST_TIMEOUT must be positive, got {timeout!r}")
    return value
