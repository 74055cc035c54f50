"""Tests for configuration loading and logging setup."""

import logging
import os
from decimal import Decimal

import pytest

from condo.services import DATABASE_URL, SessionLocal, session_factory
from condo.services.config import DEFAULT_DATABASE_URL, load_config
from condo.services.errors import ConfigError
from condo.services.locale_service import format_amount
from condo.services.logging import get_log_level, setup_logging

CONFIG_VARS = ["DATABASE_URL", "LOG_FILE", "LOG_LEVEL", "FIRST_DIGITAL_YEAR", "CURRENCY"]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in CONFIG_VARS:
        monkeypatch.delenv(name, raising=False)
    return str(tmp_path / "missing.env")


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    for handler in root.handlers:
        handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestLoadConfig:
    """Tests for load_config."""

    def test_defaults(self, clean_env):
        settings = load_config(clean_env)
        assert settings.database_url == DEFAULT_DATABASE_URL
        assert settings.log_level == "INFO"
        assert settings.first_digital_year == 2024
        assert settings.currency == "EUR"

    def test_environment_overrides(self, clean_env, monkeypatch):
        monkeypatch.setenv("FIRST_DIGITAL_YEAR", "2022")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("CURRENCY", "usd")
        settings = load_config(clean_env)
        assert settings.first_digital_year == 2022
        assert settings.log_level == "DEBUG"
        assert settings.currency == "USD"

    def test_env_file_is_read(self, clean_env, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("FIRST_DIGITAL_YEAR=2021\n")
        try:
            settings = load_config(str(env_file))
        finally:
            os.environ.pop("FIRST_DIGITAL_YEAR", None)
        assert settings.first_digital_year == 2021

    def test_invalid_year_raises(self, clean_env, monkeypatch):
        monkeypatch.setenv("FIRST_DIGITAL_YEAR", "soon")
        with pytest.raises(ConfigError, match="FIRST_DIGITAL_YEAR"):
            load_config(clean_env)

    def test_implausible_year_raises(self, clean_env, monkeypatch):
        monkeypatch.setenv("FIRST_DIGITAL_YEAR", "24")
        with pytest.raises(ConfigError):
            load_config(clean_env)

    def test_invalid_currency_raises(self, clean_env, monkeypatch):
        monkeypatch.setenv("CURRENCY", "EURO")
        with pytest.raises(ConfigError, match="CURRENCY"):
            load_config(clean_env)


class TestLogging:
    """Tests for logging setup."""

    def test_get_log_level(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        assert get_log_level() == logging.INFO
        assert get_log_level("debug") == logging.DEBUG
        assert get_log_level("nonsense") == logging.INFO

    def test_setup_logging_writes_file(self, tmp_path, restore_root_logger):
        log_file = tmp_path / "nested" / "condo.log"
        setup_logging(str(log_file), "WARNING")
        assert restore_root_logger.level == logging.WARNING
        assert len(restore_root_logger.handlers) == 2
        logging.getLogger("condo.test").warning("written to file")
        for handler in restore_root_logger.handlers:
            handler.flush()
        assert "written to file" in log_file.read_text()


class TestFormatAmount:
    """Tests for locale-aware money formatting."""

    def test_formats_decimal_and_float(self):
        assert "12" in format_amount(Decimal("12.50"))
        assert "12" in format_amount(12.5)

    def test_without_symbol_has_two_decimals(self):
        text = format_amount(Decimal("3"), include_symbol=False)
        assert text.startswith("3")
        assert text.endswith("00")


class TestSessionFactory:
    """Tests for sessions opened on a configured database URL."""

    def test_module_url_shares_engine(self):
        assert session_factory(DATABASE_URL) is SessionLocal

    def test_other_url_gets_its_own_engine(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'other.db'}"
        factory = session_factory(url)
        bind = factory.kw["bind"]
        try:
            assert factory is not SessionLocal
            assert str(bind.url) == url
        finally:
            bind.dispose()
