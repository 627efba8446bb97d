"""
Configuration from environment.
"""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """Parse boolean from environment variable."""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_list(value: str | None) -> list[str]:
    """Parse comma-separated list from environment variable."""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


class Config:
    """Application configuration from environment."""
    DB_PATH: Path = Path(os.getenv("DB_PATH", "./data/kbhealth.db"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # HTTP
    USER_AGENT: str = os.getenv(
        "USER_AGENT", "KBHealth/1.0 (+https://github.com/kbhealth/kbhealth)"
    )
    REQUEST_TIMEOUT_SECONDS: float = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "30"))
    ALLOW_PRIVATE_URLS: bool = _parse_bool(os.getenv("ALLOW_PRIVATE_URLS"), default=False)

    # Fetch pipeline
    FETCH_CONCURRENCY: int = int(os.getenv("FETCH_CONCURRENCY", "4"))
    PER_HOST_CONCURRENCY: int = int(os.getenv("PER_HOST_CONCURRENCY", "2"))
    PER_HOST_MIN_INTERVAL_SECONDS: float = float(os.getenv("PER_HOST_MIN_INTERVAL_SECONDS", "0.5"))
    MAX_ARTICLES_PER_CATEGORY: int = int(os.getenv("MAX_ARTICLES_PER_CATEGORY", "25"))
    RETRY_ATTEMPTS: int = int(os.getenv("RETRY_ATTEMPTS", "3"))  # retries after the first attempt
    RETRY_BASE_DELAY_SECONDS: float = float(os.getenv("RETRY_BASE_DELAY_SECONDS", "1.0"))
    RETRY_MAX_DELAY_SECONDS: float = float(os.getenv("RETRY_MAX_DELAY_SECONDS", "30"))

    # Sync orchestrator
    SYNC_CONCURRENCY: int = int(os.getenv("SYNC_CONCURRENCY", "2"))
    SYNC_TIMEOUT_SECONDS: float = float(os.getenv("SYNC_TIMEOUT_SECONDS", "600"))

    # Audit engine
    RULE_TIMEOUT_SECONDS: float = float(os.getenv("RULE_TIMEOUT_SECONDS", "5"))
    DISABLED_RULES: list[str] = _parse_list(os.getenv("DISABLED_RULES"))


config = Config()


def configure_logging(level: str | None = None) -> None:
    """Configure root logging from LOG_LEVEL."""
    logging.basicConfig(
        level=getattr(logging, (level or config.LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
