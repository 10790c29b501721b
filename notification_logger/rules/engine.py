"""Regel-Engine: blockierte Apps, Keywords, Aufbewahrung, Auto-Export.

Hält den aktuellen Regelsatz im Speicher und schreibt jede Änderung
sofort in den ConfigStore (Write-Through).  Beim Erzeugen wird der
Regelsatz aus dem ConfigStore geladen.

Lebenszyklus:
1. RuleEngine(config_store, database)  – Regeln laden
2. start()                             – einmalige Aufbewahrungs-Bereinigung (falls aktiv)
3. Mutatoren (block_app, ...)          – ändern + persistieren + Abonnenten informieren

Die Aufbewahrungs-Bereinigung ist KEIN wiederkehrender Job: Sie läuft
beim Start und jedes Mal, wenn die Aufbewahrung eingeschaltet wird.

Keywords werden als geordnete Liste gespeichert (Einfügereihenfolge,
ohne Duplikate), damit die Anzeige stabil bleibt.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Callable, Optional, TypeVar

from notification_logger.exceptions import ConfigStoreError
from notification_logger.logging_config import get_logger
from notification_logger.rules.config_store import (
    KEY_AUTO_DELETE_DAYS,
    KEY_AUTO_DELETE_ENABLED,
    KEY_AUTO_EXPORT_ENABLED,
    KEY_BLOCKED_APPS,
    KEY_KEYWORDS,
    ConfigStore,
)

if TYPE_CHECKING:
    from notification_logger.db.database import Database

logger = get_logger("rules")

T = TypeVar("T")

MS_PER_DAY = 86_400_000

RETENTION_MIN_DAYS = 7
RETENTION_MAX_DAYS = 90
RETENTION_DEFAULT_DAYS = 30


def clamp_retention_days(days: int) -> int:
    """Begrenzt die Aufbewahrungsdauer auf [7, 90] Tage."""
    return max(RETENTION_MIN_DAYS, min(RETENTION_MAX_DAYS, int(days)))


def current_time_ms() -> int:
    """Aktuelle Zeit in ms seit Epoch."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class RuleSet:
    """Unveränderlicher Schnappschuss aller Nutzerregeln."""

    blocked_apps: frozenset[str] = frozenset()
    keywords: tuple[str, ...] = ()
    retention_enabled: bool = False
    retention_days: int = RETENTION_DEFAULT_DAYS
    auto_export_enabled: bool = False

    def retention_cutoff(self, now_ms: int) -> int:
        """Grenzzeitpunkt: ältere Datensätze werden gelöscht."""
        return now_ms - self.retention_days * MS_PER_DAY


RuleListener = Callable[[RuleSet], None]


class RuleEngine:
    """Zentrale Verwaltung der Nutzerregeln.

    Wird per Referenz an CapturePipeline und QueryCoordinator übergeben –
    kein globaler Zugriff.

    Verwendung:
        rules = RuleEngine(ConfigStore(path), database)
        rules.start()
        rules.block_app("com.example.spam")
        if rules.is_blocked(pkg): ...
    """

    def __init__(
        self,
        config_store: ConfigStore,
        database: Database | None = None,
        clock: Callable[[], int] = current_time_ms,
    ) -> None:
        self._store = config_store
        self._database = database
        self._clock = clock
        self._listeners: list[RuleListener] = []
        self._sweep_tasks: set[asyncio.Task[int]] = set()

        self._rules = self._load()
        logger.info(
            "Regeln geladen: %d blockierte Apps, %d Keywords, "
            "Aufbewahrung=%s (%d Tage), Auto-Export=%s",
            len(self._rules.blocked_apps),
            len(self._rules.keywords),
            self._rules.retention_enabled,
            self._rules.retention_days,
            self._rules.auto_export_enabled,
        )

    def _load(self) -> RuleSet:
        """Liest jeden Schlüssel einzeln.

        Ein falsch typisierter Wert fällt auf seinen Default zurück (Warnung
        im Log), die übrigen Regeln bleiben erhalten.
        """
        defaults = RuleSet()
        keywords = self._read(
            self._store.get_string_list, KEY_KEYWORDS, list(defaults.keywords),
        )
        retention_days = self._read(
            self._store.get_int, KEY_AUTO_DELETE_DAYS, defaults.retention_days,
        )
        return RuleSet(
            blocked_apps=frozenset(self._read(
                self._store.get_string_list, KEY_BLOCKED_APPS, [],
            )),
            keywords=tuple(dict.fromkeys(keywords)),
            retention_enabled=self._read(
                self._store.get_bool, KEY_AUTO_DELETE_ENABLED, defaults.retention_enabled,
            ),
            retention_days=clamp_retention_days(retention_days),
            auto_export_enabled=self._read(
                self._store.get_bool, KEY_AUTO_EXPORT_ENABLED, defaults.auto_export_enabled,
            ),
        )

    @staticmethod
    def _read(getter: Callable[[str], T], key: str, default: T) -> T:
        try:
            return getter(key)
        except ConfigStoreError as exc:
            logger.warning("%s – Default %r wird verwendet", exc, default)
            return default

    # --- Zustand ---

    @property
    def rules(self) -> RuleSet:
        """Aktueller Regelsatz (Schnappschuss)."""
        return self._rules

    @property
    def blocked_apps(self) -> frozenset[str]:
        return self._rules.blocked_apps

    @property
    def keywords(self) -> tuple[str, ...]:
        return self._rules.keywords

    def is_blocked(self, package_name: str) -> bool:
        return package_name in self._rules.blocked_apps

    # --- Abonnenten ---

    def subscribe(self, listener: RuleListener) -> Callable[[], None]:
        """Registriert einen Listener, der nach jeder Änderung den neuen RuleSet bekommt.

        Returns:
            Funktion zum Abmelden.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _update(self, rules: RuleSet) -> None:
        self._rules = rules
        for listener in list(self._listeners):
            try:
                listener(rules)
            except Exception:
                logger.exception("Regel-Listener fehlgeschlagen")

    # --- Blockierte Apps ---

    def block_app(self, package_name: str) -> None:
        """Blockiert eine App: keine neuen Datensätze, alte werden ausgeblendet."""
        if package_name in self._rules.blocked_apps:
            return
        blocked = self._rules.blocked_apps | {package_name}
        self._store.set_string_list(KEY_BLOCKED_APPS, sorted(blocked))
        self._update(replace(self._rules, blocked_apps=blocked))
        logger.info("App blockiert: %s", package_name)

    def unblock_app(self, package_name: str) -> None:
        """Hebt die Blockierung einer App auf."""
        if package_name not in self._rules.blocked_apps:
            return
        blocked = self._rules.blocked_apps - {package_name}
        self._store.set_string_list(KEY_BLOCKED_APPS, sorted(blocked))
        self._update(replace(self._rules, blocked_apps=blocked))
        logger.info("App-Blockierung aufgehoben: %s", package_name)

    # --- Keywords ---

    def add_keyword(self, keyword: str) -> None:
        """Fügt ein Keyword hinzu (keine Änderung, wenn schon vorhanden)."""
        if keyword in self._rules.keywords:
            return
        keywords = self._rules.keywords + (keyword,)
        self._store.set_string_list(KEY_KEYWORDS, keywords)
        self._update(replace(self._rules, keywords=keywords))
        logger.info("Keyword hinzugefügt: %s", keyword)

    def remove_keyword(self, keyword: str) -> None:
        """Entfernt ein Keyword."""
        if keyword not in self._rules.keywords:
            return
        keywords = tuple(k for k in self._rules.keywords if k != keyword)
        self._store.set_string_list(KEY_KEYWORDS, keywords)
        self._update(replace(self._rules, keywords=keywords))
        logger.info("Keyword entfernt: %s", keyword)

    # --- Aufbewahrung ---

    def set_retention(
        self,
        enabled: bool,
        days: Optional[int] = None,
    ) -> Optional[asyncio.Task[int]]:
        """Setzt die Aufbewahrungsregel.

        Args:
            enabled: Automatisches Löschen alter Datensätze an/aus.
            days: Aufbewahrungsdauer, wird auf [7, 90] begrenzt.
                  None = bisherigen Wert behalten.

        Returns:
            Der Bereinigungs-Task, falls die Aufbewahrung aktiv ist.
        """
        new_days = (
            self._rules.retention_days if days is None
            else clamp_retention_days(days)
        )

        self._store.update({
            KEY_AUTO_DELETE_ENABLED: bool(enabled),
            KEY_AUTO_DELETE_DAYS: new_days,
        })
        self._update(replace(
            self._rules,
            retention_enabled=bool(enabled),
            retention_days=new_days,
        ))
        logger.info("Aufbewahrung: aktiv=%s, %d Tage", enabled, new_days)

        if not enabled:
            return None
        return self.schedule_retention_sweep()

    def set_retention_days(self, days: int) -> None:
        """Ändert nur die Aufbewahrungsdauer (ohne Bereinigung auszulösen)."""
        new_days = clamp_retention_days(days)
        self._store.set_int(KEY_AUTO_DELETE_DAYS, new_days)
        self._update(replace(self._rules, retention_days=new_days))
        logger.info("Aufbewahrungsdauer: %d Tage", new_days)

    async def sweep_retention(self, now_ms: Optional[int] = None) -> int:
        """Löscht alle Datensätze älter als die Aufbewahrungsdauer.

        Ein Datensatz genau auf der Grenze bleibt erhalten.  Idempotent.

        Returns:
            Anzahl gelöschter Datensätze (0 ohne Datenbank).
        """
        if self._database is None:
            logger.debug("Aufbewahrungs-Bereinigung übersprungen: keine Datenbank")
            return 0

        now = self._clock() if now_ms is None else now_ms
        cutoff = self._rules.retention_cutoff(now)
        deleted = await self._database.delete_older_than(cutoff)
        logger.info(
            "Aufbewahrungs-Bereinigung: %d Datensätze älter als %d Tage gelöscht",
            deleted, self._rules.retention_days,
        )
        return deleted

    def schedule_retention_sweep(self) -> Optional[asyncio.Task[int]]:
        """Startet die Bereinigung als Hintergrund-Task (Fire-and-Forget).

        Returns:
            Der Task, oder None wenn kein Event-Loop läuft.
        """
        try:
            task = asyncio.get_running_loop().create_task(
                self.sweep_retention(),
                name="retention-sweep",
            )
        except RuntimeError:
            logger.warning("Aufbewahrungs-Bereinigung nicht gestartet: kein Event-Loop")
            return None

        self._sweep_tasks.add(task)
        task.add_done_callback(self._on_sweep_done)
        return task

    def _on_sweep_done(self, task: asyncio.Task[int]) -> None:
        """Callback: Task-Referenz freigeben und Fehler loggen."""
        self._sweep_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Aufbewahrungs-Bereinigung fehlgeschlagen: %s: %s",
                type(exc).__name__, exc,
            )

    def start(self) -> Optional[asyncio.Task[int]]:
        """Einmalige Bereinigung beim Prozessstart, falls Aufbewahrung aktiv ist."""
        if not self._rules.retention_enabled:
            return None
        return self.schedule_retention_sweep()

    # --- Auto-Export ---

    def set_auto_export(self, enabled: bool) -> None:
        """Speichert nur das Flag – der Export-Auslöser liegt außerhalb."""
        self._store.set_bool(KEY_AUTO_EXPORT_ENABLED, enabled)
        self._update(replace(self._rules, auto_export_enabled=bool(enabled)))
        logger.info("Auto-Export: %s", enabled)
