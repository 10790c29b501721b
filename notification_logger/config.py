"""Konfigurationsmanagement mit Pydantic Settings.

Lädt Konfiguration aus Environment-Variablen und .env-Datei.
Alle Felder haben Defaults – der Logger startet ohne jede Konfiguration.

Die nutzerdefinierten Regeln (blockierte Apps, Keywords, Aufbewahrung)
liegen NICHT hier, sondern im ConfigStore (rules/config_store.py),
weil sie zur Laufzeit geändert und sofort persistiert werden.
"""

from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LogLevel(str, Enum):
    """Erlaubte Log-Level."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class Settings(BaseSettings):
    """Zentrale Konfiguration des Notification Loggers."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="NOTIFICATION_LOGGER_",
        case_sensitive=False,
    )

    # --- Server ---
    host: str = Field(
        default="0.0.0.0",
        description="Bind-Adresse für Health-Check und Event-Endpoint",
    )
    port: int = Field(
        default=8502,
        ge=1,
        le=65535,
        description="Port für Health-Check und Event-Endpoint",
    )

    # --- Logging ---
    log_level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Log-Level für die Anwendung",
    )

    # --- Pfade ---
    data_dir: Path = Field(
        default=Path("./data"),
        description="Verzeichnis für SQLite-DB, Regeln und Logs",
    )
    export_dir: Optional[Path] = Field(
        default=None,
        description="Zielverzeichnis für CSV/JSON-Exporte (Default: <data_dir>/exports)",
    )

    @field_validator("data_dir", "export_dir")
    @classmethod
    def expand_user(cls, v: Optional[Path]) -> Optional[Path]:
        """~ in Pfaden auflösen, damit ENV-Werte wie ~/logger funktionieren."""
        if v is None:
            return v
        return v.expanduser()

    @property
    def db_path(self) -> Path:
        """Pfad zur SQLite-Datenbank."""
        return self.data_dir / "notifications.db"

    @property
    def rules_path(self) -> Path:
        """Pfad zur persistierten Regel-Konfiguration."""
        return self.data_dir / "rules.json"

    @property
    def log_dir(self) -> Path:
        """Pfad zum Log-Verzeichnis."""
        return self.data_dir / "logs"

    @property
    def resolved_export_dir(self) -> Path:
        """Export-Verzeichnis, fällt auf <data_dir>/exports zurück."""
        return self.export_dir or self.data_dir / "exports"


# Singleton-Pattern: wird beim ersten Zugriff erstellt
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Gibt die Settings-Instanz zurück (Lazy Singleton).

    Wird beim ersten Aufruf erstellt und danach wiederverwendet.
    Wirft ValidationError bei ungültigen ENV-Werten.
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
