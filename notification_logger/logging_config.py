"""Logging für den Notification Logger.

Ein gemeinsamer Anwendungs-Logger "notification_logger" mit einem
Unter-Logger je Komponente (app, capture, classifier, store, rules,
query, export).  Ausgabe immer auf stdout, zusätzlich in eine rotierende
Datei im Log-Verzeichnis, sofern eines konfiguriert ist.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path


ROOT_LOGGER_NAME = "notification_logger"

COMPONENTS = ("app", "capture", "classifier", "store", "rules", "query", "export")

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_FILE_NAME = "notification_logger.log"
MAX_BYTES = 5 * 1024 * 1024
BACKUP_COUNT = 3

# Fremd-Logger, die nur Warnungen und Fehler melden sollen
QUIET_LOGGERS = ("uvicorn", "uvicorn.access", "nicegui", "aiosqlite")


def _file_handler(log_dir: Path) -> RotatingFileHandler:
    log_dir.mkdir(parents=True, exist_ok=True)
    return RotatingFileHandler(
        log_dir / LOG_FILE_NAME,
        maxBytes=MAX_BYTES,
        backupCount=BACKUP_COUNT,
        encoding="utf-8",
    )


def setup_logging(log_level: str = "INFO", log_dir: Path | None = None) -> None:
    """Richtet Handler und Level ein.  Mehrfacher Aufruf ersetzt die Handler.

    Args:
        log_level: DEBUG, INFO, WARNING oder ERROR (unbekannt → INFO)
        log_dir: Zielverzeichnis der Log-Datei; None schreibt nur nach stdout.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    app_logger = logging.getLogger(ROOT_LOGGER_NAME)
    app_logger.setLevel(level)
    app_logger.handlers.clear()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    file_error: OSError | None = None
    if log_dir is not None:
        try:
            handlers.append(_file_handler(log_dir))
        except OSError as e:
            file_error = e

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        app_logger.addHandler(handler)

    if file_error is not None:
        app_logger.warning(
            "Log-Datei in %s nicht anlegbar: %s – Ausgabe nur auf stdout",
            log_dir, file_error,
        )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(component: str) -> logging.Logger:
    """Logger 'notification_logger.<component>', z.B. get_logger("capture")."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{component}")
