"""Spezifische Exceptions für den Notification Logger.

Hierarchie:
    NotificationLoggerError (Basis)
    ├── StoreError            – Datenbank nicht initialisiert oder Schreibfehler
    ├── ConfigStoreError      – Regel-Konfiguration mit falschem Typ oder nicht schreibbar
    └── ExportFailedError     – Export konnte nicht abgeschlossen werden
"""

from __future__ import annotations


class NotificationLoggerError(Exception):
    """Basisklasse für alle Fehler des Notification Loggers."""
    pass


class StoreError(NotificationLoggerError):
    """Fehler beim Zugriff auf die Benachrichtigungs-Datenbank."""
    pass


class ConfigStoreError(NotificationLoggerError):
    """Wert im Config-Store hat einen unerwarteten Typ."""

    def __init__(self, key: str, expected: str, actual: object) -> None:
        self.key = key
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Config-Schlüssel '{key}': erwartet {expected}, "
            f"gefunden {type(actual).__name__}"
        )


class ExportFailedError(NotificationLoggerError):
    """Export ist fehlgeschlagen (keine Daten oder Schreibfehler)."""
    pass
