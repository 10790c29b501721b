"""Gemeinsame Fixtures für die Tests."""

import pytest
import pytest_asyncio

from notification_logger.capture.models import NotificationEvent
from notification_logger.db.database import Database, NotificationRecord
from notification_logger.rules.config_store import ConfigStore
from notification_logger.rules.engine import RuleEngine

# Fester "Jetzt"-Zeitpunkt für alle zeitabhängigen Tests (ms seit Epoch)
NOW_MS = 1_700_000_000_000


def make_record(**overrides) -> NotificationRecord:
    """NotificationRecord mit sinnvollen Defaults."""
    values = {
        "package_name": "com.example.app",
        "app_name": "Example",
        "notification_id": 1,
        "timestamp_received": NOW_MS,
    }
    values.update(overrides)
    return NotificationRecord(**values)


def make_event(**overrides) -> NotificationEvent:
    """NotificationEvent mit sinnvollen Defaults."""
    values = {
        "package_name": "com.example.app",
        "notification_id": 1,
        "extras": {"android.title": "Hallo", "android.text": "Welt"},
    }
    values.update(overrides)
    return NotificationEvent(**values)


@pytest_asyncio.fixture
async def db(tmp_path):
    """Initialisierte Datenbank im temporären Verzeichnis."""
    database = Database(tmp_path / "notifications.db")
    await database.initialize()
    yield database
    await database.close()


@pytest.fixture
def store(tmp_path):
    """ConfigStore mit Datei im temporären Verzeichnis."""
    return ConfigStore(tmp_path / "rules.json")


@pytest.fixture
def rules(store, db):
    """RuleEngine mit fester Uhr."""
    return RuleEngine(store, db, clock=lambda: NOW_MS)


@pytest.fixture
def memory_rules():
    """RuleEngine ohne Datei und ohne Datenbank."""
    return RuleEngine(ConfigStore(), clock=lambda: NOW_MS)
