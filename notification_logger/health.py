"""Health-Check-Funktionen für Subsystem-Prüfungen.

Seiteneffekt-frei: Wird vom Health-Check-Endpoint in main.py importiert
und bekommt die Laufzeit-Objekte als Parameter.
"""

from __future__ import annotations

from typing import Any

from notification_logger.config import Settings


def check_data_dir_writable(settings: Settings) -> dict[str, Any]:
    """Prüft ob das Datenverzeichnis beschreibbar ist."""
    try:
        data_dir = settings.data_dir
        data_dir.mkdir(parents=True, exist_ok=True)
        test_file = data_dir / ".write_test"
        test_file.write_text("ok")
        test_file.unlink()
        return {"status": "ok", "path": str(data_dir)}
    except OSError as e:
        return {"status": "error", "path": str(settings.data_dir), "error": str(e)}


async def check_database(database: Any) -> dict[str, Any]:
    """Prüft ob die Datenbank initialisiert ist und antwortet."""
    if database is None:
        return {"status": "not_initialized"}
    try:
        count = await database.get_count()
    except Exception as e:
        return {"status": "error", "error": str(e)}
    return {"status": "ok", "notifications": count}


def check_capture(pipeline: Any) -> dict[str, Any]:
    """Zähler der Capture-Pipeline."""
    if pipeline is None:
        return {"status": "not_initialized"}
    stats = pipeline.stats
    return {
        "status": "ok",
        "stored": stats.stored,
        "blocked": stats.blocked,
        "dropped": stats.dropped,
        "pending": pipeline.pending,
        "last_error": stats.last_error,
    }


def check_rules(rules: Any) -> dict[str, Any]:
    """Aktuelle Regel-Zusammenfassung."""
    if rules is None:
        return {"status": "not_initialized"}
    current = rules.rules
    return {
        "status": "ok",
        "blocked_apps": len(current.blocked_apps),
        "keywords": len(current.keywords),
        "retention_enabled": current.retention_enabled,
        "retention_days": current.retention_days,
        "auto_export_enabled": current.auto_export_enabled,
    }
