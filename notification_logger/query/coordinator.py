"""Reaktive Abfrage der gespeicherten Benachrichtigungen.

Eingaben:
- Suchtext (set_search_query)
- Menge blockierter Apps (Abo auf die RuleEngine)

Bei jeder Änderung einer Eingabe wird die laufende Berechnung
abgebrochen und eine neue gestartet ("switch"/latest-wins).  Ein
Generationszähler verhindert zusätzlich, dass ein gerade noch
laufender alter Task ein veraltetes Ergebnis veröffentlicht.

Die Berechnung selbst ist ein Database.observe()-Stream: Nach jedem
Insert/Delete wird das Ergebnis neu gelesen und veröffentlicht.

Blockierte Apps werden nachträglich herausgefiltert – für neue Events
greift schon die Capture-Pipeline, aber ältere Datensätze einer
inzwischen blockierten App liegen noch in der Datenbank.
"""

from __future__ import annotations

import asyncio
import functools
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from notification_logger.classifier.keywords import keyword_hits
from notification_logger.db.database import AppInfo, Database, NotificationRecord
from notification_logger.logging_config import get_logger
from notification_logger.rules.engine import MS_PER_DAY, RuleEngine, RuleSet, current_time_ms

logger = get_logger("query")

ResultListener = Callable[[list[NotificationRecord]], None]


@dataclass(frozen=True)
class FeedStats:
    """Kennzahlen für die Übersicht."""

    total: int
    today: int   # in den letzten 24h erfasst


def filter_blocked(
    records: list[NotificationRecord],
    blocked_apps: frozenset[str],
) -> list[NotificationRecord]:
    """Entfernt Datensätze blockierter Apps (Reihenfolge bleibt erhalten)."""
    if not blocked_apps:
        return records
    return [r for r in records if r.package_name not in blocked_apps]


class QueryCoordinator:
    """Hält das aktuelle, gefilterte und sortierte Abfrageergebnis.

    Verwendung:
        coordinator = QueryCoordinator(database, rules)
        coordinator.start()
        coordinator.set_search_query("bank")
        records = await coordinator.next_results()
        ...
        await coordinator.stop()
    """

    def __init__(
        self,
        database: Database,
        rules: RuleEngine,
        clock: Callable[[], int] = current_time_ms,
    ) -> None:
        self._database = database
        self._rules = rules
        self._clock = clock

        self._search_query = ""
        self._blocked_apps = rules.blocked_apps

        self._results: list[NotificationRecord] = []
        self._distinct_apps: list[AppInfo] = []
        self._listeners: list[ResultListener] = []

        self._generation = 0
        self._task: asyncio.Task[None] | None = None
        self._published = asyncio.Condition()
        self._publish_count = 0

        self._unsubscribe_rules: Optional[Callable[[], None]] = None

    # --- Eingaben ---

    @property
    def search_query(self) -> str:
        return self._search_query

    @property
    def blocked_apps(self) -> frozenset[str]:
        return self._blocked_apps

    def set_search_query(self, query: str) -> None:
        """Setzt den Suchtext; leer = alle Datensätze."""
        if query == self._search_query:
            return
        self._search_query = query
        logger.debug("Suchtext geändert: %r", query)
        if self.is_started:
            self._restart()

    def _on_rules_changed(self, rules: RuleSet) -> None:
        if rules.blocked_apps == self._blocked_apps:
            return
        self._blocked_apps = rules.blocked_apps
        logger.debug("Blockierte Apps geändert: %d", len(rules.blocked_apps))
        if self.is_started:
            self._restart()

    # --- Ausgabe ---

    @property
    def results(self) -> list[NotificationRecord]:
        """Zuletzt veröffentlichtes Ergebnis (neueste zuerst)."""
        return list(self._results)

    @property
    def is_started(self) -> bool:
        return self._unsubscribe_rules is not None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def subscribe(self, listener: ResultListener) -> Callable[[], None]:
        """Listener bekommt jedes veröffentlichte Ergebnis.

        Returns:
            Funktion zum Abmelden.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def next_results(self, timeout: Optional[float] = None) -> list[NotificationRecord]:
        """Wartet auf die nächste Veröffentlichung und gibt sie zurück."""
        async with self._published:
            seen = self._publish_count
            await asyncio.wait_for(
                self._published.wait_for(lambda: self._publish_count != seen),
                timeout=timeout,
            )
            return list(self._results)

    async def wait_for_results(
        self,
        predicate: Callable[[list[NotificationRecord]], bool],
        timeout: Optional[float] = None,
    ) -> list[NotificationRecord]:
        """Wartet bis ein veröffentlichtes Ergebnis die Bedingung erfüllt."""
        async with self._published:
            await asyncio.wait_for(
                self._published.wait_for(
                    lambda: self._publish_count > 0 and predicate(self._results),
                ),
                timeout=timeout,
            )
            return list(self._results)

    async def _publish(self, generation: int, records: list[NotificationRecord]) -> None:
        async with self._published:
            # Veraltete Generation: Ergebnis verwerfen
            if generation != self._generation:
                return
            self._results = records
            self._publish_count += 1
            self._published.notify_all()

        for listener in list(self._listeners):
            try:
                listener(list(records))
            except Exception:
                logger.exception("Ergebnis-Listener fehlgeschlagen")

    # --- Berechnung ---

    def start(self) -> None:
        """Abonniert die Regeln und startet die erste Berechnung."""
        if self._unsubscribe_rules is None:
            self._unsubscribe_rules = self._rules.subscribe(self._on_rules_changed)
            self._blocked_apps = self._rules.blocked_apps
        self._restart()
        logger.info("QueryCoordinator gestartet")

    async def stop(self) -> None:
        """Bricht die laufende Berechnung ab und meldet sich von den Regeln ab."""
        if self._unsubscribe_rules is not None:
            self._unsubscribe_rules()
            self._unsubscribe_rules = None

        self._generation += 1
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.info("QueryCoordinator gestoppt")

    def _restart(self) -> None:
        """Verwirft die laufende Berechnung und startet eine für die aktuellen Eingaben."""
        if self._task is not None and not self._task.done():
            self._task.cancel()

        self._generation += 1
        self._task = asyncio.get_running_loop().create_task(
            self._run(self._generation, self._search_query, self._blocked_apps),
            name=f"query-{self._generation}",
        )
        self._task.add_done_callback(self._on_task_done)

    async def _run(
        self,
        generation: int,
        query: str,
        blocked_apps: frozenset[str],
    ) -> None:
        fetch: Callable[[], Awaitable[list[NotificationRecord]]]
        if query:
            fetch = functools.partial(self._database.search_notifications, query)
        else:
            fetch = self._database.get_all_notifications

        async for records in self._database.observe(fetch):
            if generation != self._generation:
                return
            await self._publish(generation, filter_blocked(records, blocked_apps))

    @staticmethod
    def _on_task_done(task: asyncio.Task[None]) -> None:
        """Callback: loggt unerwartete Fehler der Berechnung."""
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Abfrage unerwartet beendet: %s: %s",
                type(exc).__name__, exc,
            )

    # --- Zusatzabfragen ---

    @property
    def distinct_apps(self) -> list[AppInfo]:
        """Zuletzt geladene App-Liste (für die Filter-Ansicht)."""
        return list(self._distinct_apps)

    async def refresh_distinct_apps(self) -> list[AppInfo]:
        """Lädt die Liste aller Apps mit gespeicherten Datensätzen neu."""
        self._distinct_apps = await self._database.get_distinct_apps()
        return list(self._distinct_apps)

    def feed_stats(self, now_ms: Optional[int] = None) -> FeedStats:
        """Gesamtzahl und Anzahl der letzten 24h im aktuellen Ergebnis."""
        now = self._clock() if now_ms is None else now_ms
        today = sum(1 for r in self._results if now - r.timestamp_received < MS_PER_DAY)
        return FeedStats(total=len(self._results), today=today)

    def keyword_hits(self, record: NotificationRecord) -> list[str]:
        """Keywords der RuleEngine, die in diesem Datensatz vorkommen."""
        return keyword_hits(record, self._rules.keywords)
