"""FastAPI dependencies shared by the routers."""

from datetime import date

from condo.services.config import Settings, load_config


def get_settings() -> Settings:
    """Settings resolved from the environment for each request."""
    return load_config()


def get_today() -> date:
    """Reference date for "current month" computations (overridden in tests)."""
    return date.today()
