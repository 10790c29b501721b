"""Datenbank-Paket: SQLite-Speicher für Benachrichtigungen.

Stellt die Database-Klasse und zugehörige Datenklassen bereit.
"""

from notification_logger.db.database import (
    EXPORT_FIELD_NAMES,
    AppInfo,
    Database,
    NotificationRecord,
)

__all__ = [
    "Database",
    "NotificationRecord",
    "AppInfo",
    "EXPORT_FIELD_NAMES",
]
