import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

DEFAULT_DATABASE_URL = "sqlite:///data/bookings.db"


def load_env() -> None:
    """Load .env from the working directory if present.
    Variables already set in the environment win.
    """
    env_path = Path.cwd() / ".env"
    if not env_path.exists():
        return
    load_dotenv(dotenv_path=env_path, override=False)


@dataclass
class Settings:
    database_url: str = DEFAULT_DATABASE_URL
    log_level: str = "INFO"
    log_dir: Path = Path("logs")
    api_host: str = "127.0.0.1"
    api_port: int = 8765
    api_url: Optional[str] = None


def get_settings() -> Settings:
    """Build settings from the current environment."""
    port = os.getenv("JOBBOOKINGS_PORT", "8765")
    try:
        api_port = int(port)
    except ValueError:
        raise ValueError(f"JOBBOOKINGS_PORT must be an integer, got {port!r}")

    return Settings(
        database_url=os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL,
        log_level=os.getenv("JOBBOOKINGS_LOG_LEVEL", "INFO"),
        log_dir=Path(os.getenv("JOBBOOKINGS_LOG_DIR", "logs")),
        api_host=os.getenv("JOBBOOKINGS_HOST", "127.0.0.1"),
        api_port=api_port,
        api_url=os.getenv("JOBBOOKINGS_API_URL") or None,
    )
