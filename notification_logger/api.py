"""HTTP-Endpunkte des Notification Loggers.

Wird von main.py importiert; die Routen hängen am NiceGUI-App-Objekt
(FastAPI).  Alle Endpunkte lesen die Laufzeit-Objekte aus state und
antworten mit 503, solange async_startup() sie nicht gesetzt hat.

Routen:
- POST   /api/events/posted              Benachrichtigung einliefern
- POST   /api/events/removed             Entfernen melden (nur beobachtet)
- GET    /api/notifications?q=...        Gefilterte Sicht + Kennzahlen
- DELETE /api/notifications              Alle Datensätze löschen
- GET    /api/apps                       Apps mit gespeicherten Datensätzen
- GET    /api/rules                      Aktueller Regelsatz
- PUT    /api/rules/blocked/{package}    App blockieren (DELETE: freigeben)
- PUT    /api/rules/keywords/{keyword}   Keyword hinzufügen (DELETE: entfernen)
- PUT    /api/rules/retention            Aufbewahrung setzen
- PUT    /api/rules/auto-export          Auto-Export-Flag setzen
- POST   /api/export/{fmt}               Export als csv oder json
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

from fastapi import HTTPException
from nicegui import app
from pydantic import BaseModel, Field

import notification_logger.state as state
from notification_logger.capture.models import NotificationEvent
from notification_logger.export.serializer import ExportError, ExportFormat, ExportSuccess
from notification_logger.logging_config import get_logger
from notification_logger.rules.engine import RuleSet

logger = get_logger("app")

# Maximale Wartezeit auf die Neuberechnung nach geändertem Suchtext (Sekunden)
QUERY_TIMEOUT = 5.0


class RetentionUpdate(BaseModel):
    """Body für PUT /api/rules/retention."""
    enabled: bool
    days: Optional[int] = Field(default=None, description="Wird auf [7, 90] begrenzt")


class AutoExportUpdate(BaseModel):
    """Body für PUT /api/rules/auto-export."""
    enabled: bool


def _require(component: Any, name: str) -> Any:
    if component is None:
        raise HTTPException(status_code=503, detail=f"{name} nicht bereit")
    return component


def _rules_to_dict(rules: RuleSet) -> dict[str, Any]:
    return {
        "blocked_apps": sorted(rules.blocked_apps),
        "keywords": list(rules.keywords),
        "retention_enabled": rules.retention_enabled,
        "retention_days": rules.retention_days,
        "auto_export_enabled": rules.auto_export_enabled,
    }


# --- Events ---

@app.post("/api/events/posted", status_code=202)
async def notification_posted(event: NotificationEvent) -> dict[str, Any]:
    """Nimmt eine gepostete Benachrichtigung an und kehrt sofort zurück."""
    pipeline = _require(state.pipeline, "Capture-Pipeline")
    task = pipeline.on_notification_posted(event)
    return {"accepted": task is not None}


@app.post("/api/events/removed", status_code=202)
async def notification_removed(event: NotificationEvent) -> dict[str, Any]:
    """Entfernte Benachrichtigung (wird nur beobachtet)."""
    pipeline = _require(state.pipeline, "Capture-Pipeline")
    pipeline.on_notification_removed(event)
    return {"accepted": True}


# --- Abfrage ---

@app.get("/api/notifications")
async def list_notifications(q: str = "") -> dict[str, Any]:
    """Aktuelle gefilterte Sicht, neueste zuerst.

    Ein geänderter Suchtext startet die Berechnung neu; die Antwort
    wartet auf deren erstes Ergebnis.
    """
    coordinator = _require(state.coordinator, "QueryCoordinator")

    if q != coordinator.search_query:
        coordinator.set_search_query(q)
        try:
            records = await coordinator.next_results(timeout=QUERY_TIMEOUT)
        except asyncio.TimeoutError:
            raise HTTPException(status_code=504, detail="Abfrage nicht rechtzeitig fertig")
    else:
        records = coordinator.results

    stats = coordinator.feed_stats()
    return {
        "query": q,
        "total": stats.total,
        "today": stats.today,
        "notifications": [
            {**record.to_export_dict(), "keywordHits": coordinator.keyword_hits(record)}
            for record in records
        ],
    }


@app.delete("/api/notifications")
async def clear_notifications() -> dict[str, Any]:
    """Löscht alle gespeicherten Benachrichtigungen."""
    database = _require(state.database, "Datenbank")
    deleted = await database.delete_all()
    if state.coordinator is not None:
        await state.coordinator.refresh_distinct_apps()
    logger.info("Alle Daten gelöscht: %d Datensätze", deleted)
    return {"deleted": deleted}


@app.get("/api/apps")
async def list_apps() -> list[dict[str, Any]]:
    """Apps mit gespeicherten Datensätzen inkl. Block-Status."""
    coordinator = _require(state.coordinator, "QueryCoordinator")
    rules = _require(state.rules, "RuleEngine")
    apps = await coordinator.refresh_distinct_apps()
    return [
        {
            "package_name": info.package_name,
            "app_name": info.app_name,
            "blocked": rules.is_blocked(info.package_name),
        }
        for info in apps
    ]


# --- Regeln ---

@app.get("/api/rules")
async def get_rules() -> dict[str, Any]:
    rules = _require(state.rules, "RuleEngine")
    return _rules_to_dict(rules.rules)


@app.put("/api/rules/blocked/{package_name}")
async def block_app(package_name: str) -> dict[str, Any]:
    rules = _require(state.rules, "RuleEngine")
    rules.block_app(package_name)
    return _rules_to_dict(rules.rules)


@app.delete("/api/rules/blocked/{package_name}")
async def unblock_app(package_name: str) -> dict[str, Any]:
    rules = _require(state.rules, "RuleEngine")
    rules.unblock_app(package_name)
    return _rules_to_dict(rules.rules)


@app.put("/api/rules/keywords/{keyword}")
async def add_keyword(keyword: str) -> dict[str, Any]:
    rules = _require(state.rules, "RuleEngine")
    rules.add_keyword(keyword)
    return _rules_to_dict(rules.rules)


@app.delete("/api/rules/keywords/{keyword}")
async def remove_keyword(keyword: str) -> dict[str, Any]:
    rules = _require(state.rules, "RuleEngine")
    rules.remove_keyword(keyword)
    return _rules_to_dict(rules.rules)


@app.put("/api/rules/retention")
async def set_retention(update: RetentionUpdate) -> dict[str, Any]:
    """Aufbewahrung setzen; aktiv → Bereinigung läuft im Hintergrund."""
    rules = _require(state.rules, "RuleEngine")
    rules.set_retention(update.enabled, update.days)
    return _rules_to_dict(rules.rules)


@app.put("/api/rules/auto-export")
async def set_auto_export(update: AutoExportUpdate) -> dict[str, Any]:
    rules = _require(state.rules, "RuleEngine")
    rules.set_auto_export(update.enabled)
    return _rules_to_dict(rules.rules)


# --- Export ---

@app.post("/api/export/{fmt}")
async def run_export(fmt: ExportFormat) -> dict[str, Any]:
    """Exportiert alle Datensätze und meldet den End-Status."""
    exporter = _require(state.exporter, "Exporter")
    status = await exporter.export(fmt)
    if isinstance(status, ExportSuccess):
        return {"status": "success", "path": status.path, "count": status.count}
    if isinstance(status, ExportError):
        return {"status": "error", "message": status.message}
    return {"status": type(status).__name__}
