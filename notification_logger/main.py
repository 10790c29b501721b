"""Einstiegspunkt des Notification Loggers.

Startet den NiceGUI-Server (FastAPI/Uvicorn) mit Health-Check und den
HTTP-Endpoints aus api.py, über die eine Bridge auf dem Gerät die OS-Events
einliefert.  UI-Seiten werden nicht registriert.

Lifecycle:
1. startup()        – Logging, Config-Validierung (synchron)
2. async_startup()  – DB, Regeln (+ Aufbewahrungs-Bereinigung), Pipeline,
                      QueryCoordinator, Exporter
3. ... Server läuft ...
4. shutdown()       – Capture-Tasks abwarten, Abfrage stoppen, DB schließen
"""

import sys
from datetime import datetime, timezone
from typing import Any

from nicegui import app, ui

import notification_logger.api  # noqa: F401  (registriert /api-Routen)
import notification_logger.state as state
from notification_logger import __version__
from notification_logger.config import get_settings
from notification_logger.health import (
    check_capture,
    check_data_dir_writable,
    check_database,
    check_rules,
)
from notification_logger.logging_config import get_logger, setup_logging

logger = get_logger("app")


# --- FastAPI-Endpoints auf dem NiceGUI-Server ---

@app.get("/health")
async def health_check() -> dict[str, Any]:
    """Health-Check-Endpoint für Docker und Monitoring.

    Returns:
        JSON mit Status jeder Komponente und Gesamtstatus.
    """
    settings = get_settings()

    checks = {
        "data_dir": check_data_dir_writable(settings),
        "database": await check_database(state.database),
        "capture": check_capture(state.pipeline),
        "rules": check_rules(state.rules),
    }

    if checks["database"]["status"] != "ok":
        overall = "unhealthy"
    elif checks["data_dir"]["status"] != "ok" or state.pipeline is None:
        overall = "degraded"
    else:
        overall = "healthy"

    return {
        "status": overall,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": __version__,
        "checks": checks,
    }


# --- Startup / Shutdown ---

def startup() -> None:
    """Wird beim Serverstart ausgeführt – initialisiert Logging und prüft Config.

    Synchroner Handler: Läuft vor async_startup().
    """
    try:
        settings = get_settings()
    except Exception as e:
        print(f"FATAL: Konfigurationsfehler – {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(
        log_level=settings.log_level.value,
        log_dir=settings.log_dir,
    )

    logger.info("=" * 60)
    logger.info("Notification Logger v%s startet", __version__)
    logger.info("=" * 60)
    logger.info("Datenverzeichnis: %s", settings.data_dir)
    logger.info("Export-Verzeichnis: %s", settings.resolved_export_dir)
    logger.info("Log-Level: %s", settings.log_level.value)


async def async_startup() -> None:
    """Asynchrone Initialisierung der Komponenten.

    Ohne Datenbank läuft der Server im Degraded-Modus weiter
    (Health-Check zeigt den Zustand an, Events werden abgelehnt).
    """
    settings = get_settings()

    # --- SQLite-Datenbank ---
    try:
        from notification_logger.db.database import Database

        state.database = Database(settings.db_path)
        await state.database.initialize()
    except Exception as exc:
        logger.error("Datenbank konnte nicht initialisiert werden: %s", exc)
        state.database = None
        return

    # --- Regeln (lädt aus rules.json, Bereinigung falls aktiv) ---
    from notification_logger.rules.config_store import ConfigStore
    from notification_logger.rules.engine import RuleEngine

    state.rules = RuleEngine(ConfigStore(settings.rules_path), state.database)
    state.rules.start()

    # --- Capture-Pipeline ---
    from notification_logger.capture.app_names import MappingAppNameResolver
    from notification_logger.capture.pipeline import CapturePipeline

    state.pipeline = CapturePipeline(
        database=state.database,
        rules=state.rules,
        app_name_resolver=MappingAppNameResolver(),
    )
    logger.info("CapturePipeline erstellt")

    # --- Abfrage + Export ---
    from notification_logger.export.serializer import Exporter
    from notification_logger.query.coordinator import QueryCoordinator

    state.coordinator = QueryCoordinator(state.database, state.rules)
    state.coordinator.start()
    apps = await state.coordinator.refresh_distinct_apps()
    logger.info("%d Apps mit gespeicherten Benachrichtigungen", len(apps))
    state.exporter = Exporter(state.database, settings.resolved_export_dir)


async def shutdown() -> None:
    """Graceful Shutdown.  Reihenfolge:

    1. Laufende Capture-Tasks abwarten
    2. QueryCoordinator stoppen
    3. Datenbank schließen
    """
    logger.info("Shutdown eingeleitet...")

    if state.pipeline is not None:
        try:
            results = await state.pipeline.drain()
            logger.info("%d laufende Capture-Tasks abgeschlossen", len(results))
        except Exception as exc:
            logger.error("Fehler beim Abwarten der Capture-Tasks: %s", exc)
        state.pipeline = None

    if state.coordinator is not None:
        try:
            await state.coordinator.stop()
        except Exception as exc:
            logger.error("Fehler beim Stoppen des QueryCoordinators: %s", exc)
        state.coordinator = None

    state.exporter = None
    state.rules = None

    if state.database is not None:
        try:
            await state.database.close()
        except Exception as exc:
            logger.error("Fehler beim Schließen der Datenbank: %s", exc)
        state.database = None

    logger.info("Notification Logger beendet")


app.on_startup(startup)
app.on_startup(async_startup)
app.on_shutdown(shutdown)


# --- Haupteinstiegspunkt ---

def main() -> None:
    """Startet den NiceGUI-Server."""
    settings = get_settings()
    ui.run(
        host=settings.host,
        port=settings.port,
        title="Notification Logger",
        show=False,
        reload=False,
        favicon=None,
    )


if __name__ in {"__main__", "__mp_main__"}:
    main()
