"""
Tests für Settings und Logging-Setup
"""

import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from notification_logger.config import LogLevel, Settings
from notification_logger.logging_config import ROOT_LOGGER_NAME, get_logger, setup_logging


class TestSettings:
    """Pydantic Settings aus der Umgebung"""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("NOTIFICATION_LOGGER_DATA_DIR", raising=False)
        settings = Settings(_env_file=None)

        assert settings.port == 8502
        assert settings.log_level is LogLevel.INFO
        assert settings.db_path == Path("data") / "notifications.db"
        assert settings.resolved_export_dir == Path("data") / "exports"

    def test_env_prefix(self, monkeypatch, tmp_path):
        monkeypatch.setenv("NOTIFICATION_LOGGER_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("NOTIFICATION_LOGGER_EXPORT_DIR", str(tmp_path / "out"))
        monkeypatch.setenv("NOTIFICATION_LOGGER_LOG_LEVEL", "DEBUG")

        settings = Settings(_env_file=None)

        assert settings.rules_path == tmp_path / "rules.json"
        assert settings.log_dir == tmp_path / "logs"
        assert settings.resolved_export_dir == tmp_path / "out"
        assert settings.log_level is LogLevel.DEBUG

    def test_expands_home(self):
        settings = Settings(_env_file=None, data_dir="~/logger")
        assert "~" not in str(settings.data_dir)

    def test_invalid_port(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, port=0)


class TestLogging:
    """Logger-Hierarchie und Datei-Handler"""

    def test_component_logger_name(self):
        assert get_logger("capture").name == f"{ROOT_LOGGER_NAME}.capture"

    def test_setup_writes_file(self, tmp_path):
        setup_logging("DEBUG", tmp_path / "logs")
        try:
            get_logger("app").info("Testnachricht")
            for handler in logging.getLogger(ROOT_LOGGER_NAME).handlers:
                handler.flush()

            content = (tmp_path / "logs" / "notification_logger.log").read_text(encoding="utf-8")
            assert "Testnachricht" in content
            assert "notification_logger.app" in content
        finally:
            root = logging.getLogger(ROOT_LOGGER_NAME)
            for handler in root.handlers:
                handler.close()
            root.handlers.clear()

    def test_unwritable_log_dir_falls_back_to_stdout(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("x")

        setup_logging("INFO", blocker / "logs")
        try:
            handlers = logging.getLogger(ROOT_LOGGER_NAME).handlers
            assert len(handlers) == 1
            assert isinstance(handlers[0], logging.StreamHandler)
        finally:
            logging.getLogger(ROOT_LOGGER_NAME).handlers.clear()

    def test_libraries_quieted(self):
        setup_logging("DEBUG")
        try:
            assert logging.getLogger("aiosqlite").level == logging.WARNING
            assert logging.getLogger(ROOT_LOGGER_NAME).level == logging.DEBUG
        finally:
            logging.getLogger(ROOT_LOGGER_NAME).handlers.clear()
