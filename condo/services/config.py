"""Configuration loading for the API server and the audit CLI.

Loads settings from .env file and environment variables with sensible defaults.
Validates values and provides clear error messages.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from condo.services.errors import ConfigError

DEFAULT_DATABASE_URL = "sqlite:///./condo.db"


@dataclass
class Settings:
    """Runtime configuration."""

    database_url: str = DEFAULT_DATABASE_URL
    """SQLAlchemy database URL (default: local SQLite)"""

    log_file: str = "logs/condo.log"
    """Path to log file"""

    log_level: str = "INFO"
    """Root logging level name"""

    first_digital_year: int = 2024
    """First calendar year with digital records; earlier debt is legacy debt"""

    currency: str = "EUR"
    """ISO currency code used when formatting amounts"""


def _read_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from e


def load_config(env_file: str = ".env") -> Settings:
    """
    Load configuration from .env file and environment variables.

    Priority (highest to lowest):
    1. Environment variables (DATABASE_URL, LOG_FILE, LOG_LEVEL, ...)
    2. .env file in project root
    3. Default values

    Returns:
        Settings with all values resolved

    Raises:
        ConfigError: If a value is present but invalid
    """
    env_path = Path(env_file)
    if env_path.exists():
        load_dotenv(env_path)

    first_digital_year = _read_int("FIRST_DIGITAL_YEAR", 2024)
    if first_digital_year < 1900:
        raise ConfigError(f"FIRST_DIGITAL_YEAR looks wrong: {first_digital_year}")

    currency = os.getenv("CURRENCY", "EUR").strip().upper()
    if len(currency) != 3:
        raise ConfigError(f"CURRENCY must be an ISO 4217 code, got {currency!r}")

    return Settings(
        database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
        log_file=os.getenv("LOG_FILE", "logs/condo.log"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        first_digital_year=first_digital_year,
        currency=currency,
    )
