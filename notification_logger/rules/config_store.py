"""Persistenter Key-Value-Speicher für Nutzerregeln.

Typisierte Getter/Setter für bool, int, str und String-Listen.
Jeder Setter schreibt sofort auf die Platte (Write-Through, kein
Batching).  Geschrieben wird in eine temporäre Datei, die dann per
os.replace() atomar an die Stelle der alten tritt – ein Absturz
während des Schreibens hinterlässt nie eine halbe Datei.

Ohne Pfad arbeitet der Store rein im Speicher (Tests).
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Iterable, Optional

from notification_logger.exceptions import ConfigStoreError
from notification_logger.logging_config import get_logger

logger = get_logger("rules")


# Schlüssel und dokumentierte Defaults
KEY_BLOCKED_APPS = "blocked_apps"
KEY_KEYWORDS = "keywords"
KEY_AUTO_DELETE_ENABLED = "auto_delete_enabled"
KEY_AUTO_DELETE_DAYS = "auto_delete_days"
KEY_AUTO_EXPORT_ENABLED = "auto_export_enabled"

DEFAULTS: dict[str, Any] = {
    KEY_BLOCKED_APPS: [],
    KEY_KEYWORDS: [],
    KEY_AUTO_DELETE_ENABLED: False,
    KEY_AUTO_DELETE_DAYS: 30,
    KEY_AUTO_EXPORT_ENABLED: False,
}


class ConfigStore:
    """JSON-Datei-basierter Config-Store.

    Verwendung:
        store = ConfigStore(settings.rules_path)
        store.set_bool("auto_delete_enabled", True)
        days = store.get_int("auto_delete_days", 30)
    """

    def __init__(self, path: Path | str | None = None) -> None:
        self._path = Path(path) if isinstance(path, str) else path
        self._values: dict[str, Any] = {}
        self._load()

    @property
    def path(self) -> Optional[Path]:
        return self._path

    def _load(self) -> None:
        """Liest die Datei; fehlend oder kaputt → leere Werte (Defaults greifen)."""
        if self._path is None or not self._path.exists():
            return
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(
                "Regel-Datei %s nicht lesbar: %s – Defaults werden verwendet",
                self._path, exc,
            )
            return
        if not isinstance(data, dict):
            logger.warning(
                "Regel-Datei %s enthält kein JSON-Objekt – Defaults werden verwendet",
                self._path,
            )
            return
        self._values = data
        logger.debug("Regel-Datei geladen: %d Schlüssel", len(data))

    def _persist(self, values: dict[str, Any]) -> None:
        """Schreibt die übergebenen Werte atomar in die Datei."""
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        try:
            tmp_path.write_text(
                json.dumps(values, indent=2, ensure_ascii=False),
                encoding="utf-8",
            )
            os.replace(tmp_path, self._path)
        except OSError:
            if tmp_path.is_file():
                tmp_path.unlink()
            raise

    def _get(self, key: str, default: Any) -> Any:
        if key in self._values:
            return self._values[key]
        return DEFAULTS.get(key, default)

    def _set(self, key: str, value: Any) -> None:
        self.update({key: value})

    def update(self, changes: dict[str, Any]) -> None:
        """Setzt mehrere Schlüssel mit einem Schreibvorgang.

        Die Werte im Speicher ändern sich erst, wenn die Datei geschrieben
        ist.  Schlägt das Schreiben fehl, bleibt der Store unverändert.

        Raises:
            OSError: Datei konnte nicht geschrieben werden.
        """
        values = {**self._values, **changes}
        self._persist(values)
        self._values = values

    # --- Typisierte Zugriffe ---

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self._get(key, default)
        if not isinstance(value, bool):
            raise ConfigStoreError(key, "bool", value)
        return value

    def set_bool(self, key: str, value: bool) -> None:
        self._set(key, bool(value))

    def get_int(self, key: str, default: int = 0) -> int:
        value = self._get(key, default)
        # bool ist eine int-Unterklasse, zählt hier aber nicht als Zahl
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigStoreError(key, "int", value)
        return value

    def set_int(self, key: str, value: int) -> None:
        self._set(key, int(value))

    def get_string(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self._get(key, default)
        if value is not None and not isinstance(value, str):
            raise ConfigStoreError(key, "str", value)
        return value

    def set_string(self, key: str, value: Optional[str]) -> None:
        self._set(key, value)

    def get_string_list(self, key: str, default: Iterable[str] = ()) -> list[str]:
        """Liest eine String-Liste; die gespeicherte Reihenfolge bleibt erhalten."""
        value = self._get(key, list(default))
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ConfigStoreError(key, "list[str]", value)
        return list(value)

    def set_string_list(self, key: str, values: Iterable[str]) -> None:
        self._set(key, list(values))

    def contains(self, key: str) -> bool:
        """True wenn der Schlüssel explizit gesetzt wurde (nicht nur Default)."""
        return key in self._values
