"""Capture-Pipeline: vom OS-Event zum gespeicherten Datensatz.

Ablauf pro gemeldeter Benachrichtigung:

 1. Blockierte App?  → Event verwerfen (synchron, vor jedem Task)
 2. Titel, Text, Subtext, Langtext aus den Extras lesen
 3. Klassifizierungs-Text bilden: "{title} {text} {big_text}"
 4. OTP-Erkennung
 5. App-Namen auflösen (Fallback: Package-Name)
 6. Extras als JSON-Snapshot flach ablegen
 7. NotificationRecord bauen (Erfassungszeit, timestamp_removed = None)
 8. In der Datenbank speichern

Ab Schritt 2 läuft alles in einem eigenen asyncio-Task – der Aufrufer
(Event-Zustellung des OS) blockiert nie auf Speicher-I/O.

Zustellung ist best-effort: Jeder Fehler in Schritt 2–8 wird geloggt,
das Event ist verloren.  Kein Retry, keine Dead-Letter-Queue.

Zu Schritt 3: Fehlende Felder werden NICHT weggelassen, sondern als
ihr Platzhalter-Text ("None") mit eingefügt.  Das ist bestehendes
Verhalten und beeinflusst die Muster-Treffer – nicht "reparieren".
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping, Optional

from notification_logger.capture.app_names import AppNameResolver, resolve_app_name
from notification_logger.capture.models import (
    EXTRA_BIG_TEXT,
    EXTRA_SUB_TEXT,
    EXTRA_TEXT,
    EXTRA_TITLE,
    NotificationEvent,
)
from notification_logger.classifier.otp import OtpDetector
from notification_logger.db.database import Database, NotificationRecord
from notification_logger.logging_config import get_logger
from notification_logger.rules.engine import RuleEngine, current_time_ms

logger = get_logger("capture")


# ---------------------------------------------------------------------------
# Ergebnis-Datenstrukturen
# ---------------------------------------------------------------------------

class CaptureStatus(str, Enum):
    """Ausgang der Verarbeitung eines Events."""
    STORED = "stored"      # Datensatz gespeichert
    BLOCKED = "blocked"    # App blockiert, nichts gespeichert
    DROPPED = "dropped"    # Fehler in Schritt 2–8, Event verloren


@dataclass(frozen=True)
class CaptureResult:
    """Ergebnis eines Pipeline-Durchlaufs für ein Event."""

    package_name: str
    status: CaptureStatus
    record_id: Optional[int] = None
    record: Optional[NotificationRecord] = None
    error: Optional[str] = None


@dataclass
class CaptureStats:
    """Laufende Zähler für Health-Check und Logs."""

    stored: int = 0
    blocked: int = 0
    dropped: int = 0
    last_error: Optional[str] = None


# ---------------------------------------------------------------------------
# Hilfsfunktionen
# ---------------------------------------------------------------------------

def read_text_extra(extras: Mapping[str, Any], key: str) -> Optional[str]:
    """Liest ein Text-Extra; fehlend oder kein Text → None.

    Zahlen, Listen usw. werden nicht in Text umgewandelt.
    """
    value = extras.get(key)
    if value is None or isinstance(value, str):
        return value
    logger.debug("Extra '%s' ist kein Text (%s)", key, type(value).__name__)
    return None


def build_classification_text(
    title: Optional[str],
    text: Optional[str],
    big_text: Optional[str],
) -> str:
    """Text für die OTP-Erkennung.

    Fehlende Felder erscheinen als "None" im Ergebnis (siehe Modul-Doku).
    """
    return f"{title} {text} {big_text}"


def flatten_extras(extras: Mapping[str, Any]) -> str:
    """JSON-Snapshot aller Extras als Strings.

    Fehlende (None) und nicht umwandelbare Werte werden ausgelassen.
    """
    flat: dict[str, str] = {}
    for key in list(extras.keys()):
        try:
            value = extras[key]
            if value is not None:
                flat[str(key)] = str(value)
        except Exception as exc:
            logger.debug("Extra '%s' übersprungen: %s", key, exc)
    return json.dumps(flat, ensure_ascii=False)


# ---------------------------------------------------------------------------
# Capture-Pipeline
# ---------------------------------------------------------------------------

class CapturePipeline:
    """Verarbeitet OS-Benachrichtigungen zu gespeicherten Datensätzen.

    Verwendet Dependency Injection: Datenbank, Regeln, OTP-Detector und
    App-Name-Resolver werden von außen übergeben.

    Verwendung:
        pipeline = CapturePipeline(database, rules, resolver)
        pipeline.on_notification_posted(event)   # kehrt sofort zurück
        ...
        await pipeline.drain()                   # beim Shutdown
    """

    def __init__(
        self,
        database: Database,
        rules: RuleEngine,
        app_name_resolver: AppNameResolver | None = None,
        detector: OtpDetector | None = None,
        clock: Callable[[], int] = current_time_ms,
    ) -> None:
        self._database = database
        self._rules = rules
        self._resolver = app_name_resolver
        self._detector = detector or OtpDetector()
        self._clock = clock

        # Referenzen halten, sonst kann der GC laufende Tasks einsammeln
        self._tasks: set[asyncio.Task[CaptureResult]] = set()

        self.stats = CaptureStats()

    # --- Einstieg (OS-Zustellpfad) ---

    def on_notification_posted(
        self,
        event: NotificationEvent,
    ) -> Optional[asyncio.Task[CaptureResult]]:
        """Nimmt ein gepostetes Event entgegen und kehrt sofort zurück.

        Schritt 1 (Block-Prüfung) läuft synchron; alles weitere als
        Hintergrund-Task.

        Returns:
            Der Verarbeitungs-Task, oder None wenn die App blockiert ist.
        """
        if self._rules.is_blocked(event.package_name):
            self.stats.blocked += 1
            logger.debug("Event von blockierter App verworfen: %s", event.package_name)
            return None

        task = asyncio.get_running_loop().create_task(
            self.process(event),
            name=f"capture-{event.package_name}-{event.notification_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def on_notification_removed(self, event: NotificationEvent) -> None:
        """Entfernte Benachrichtigung – wird beobachtet, aber nicht protokolliert."""
        logger.debug(
            "Benachrichtigung entfernt (ignoriert): %s #%d",
            event.package_name, event.notification_id,
        )

    # --- Verarbeitung (Schritt 2–8) ---

    async def process(self, event: NotificationEvent) -> CaptureResult:
        """Führt Schritt 2–8 aus.

        Wirft nie: jeder Fehler wird zu CaptureStatus.DROPPED.
        """
        try:
            record = self.build_record(event)
            record_id = await self._database.insert_notification(record)
        except Exception as exc:
            self.stats.dropped += 1
            self.stats.last_error = f"{event.package_name}: {exc}"
            logger.warning(
                "Event verworfen (%s #%d): %s: %s",
                event.package_name, event.notification_id,
                type(exc).__name__, exc,
            )
            return CaptureResult(
                package_name=event.package_name,
                status=CaptureStatus.DROPPED,
                error=str(exc),
            )

        self.stats.stored += 1
        logger.debug(
            "Event gespeichert: id=%d, package=%s, otp=%s",
            record_id, record.package_name, record.is_otp,
        )
        return CaptureResult(
            package_name=event.package_name,
            status=CaptureStatus.STORED,
            record_id=record_id,
            record=record,
        )

    def build_record(self, event: NotificationEvent) -> NotificationRecord:
        """Schritt 2–7: baut den Datensatz aus einem Event (ohne Speichern)."""
        extras = event.extras

        # Schritt 2: Texte
        title = read_text_extra(extras, EXTRA_TITLE)
        text = read_text_extra(extras, EXTRA_TEXT)
        sub_text = read_text_extra(extras, EXTRA_SUB_TEXT)
        big_text = read_text_extra(extras, EXTRA_BIG_TEXT)

        # Schritt 3 + 4: OTP
        is_otp, otp_code = self._detector.detect(
            build_classification_text(title, text, big_text),
        )

        # Schritt 5 + 6
        app_name = resolve_app_name(self._resolver, event.package_name)
        raw_extras = flatten_extras(extras)

        # Schritt 7
        return NotificationRecord(
            package_name=event.package_name,
            app_name=app_name,
            notification_id=event.notification_id,
            channel_id=event.channel_id,
            title=title,
            text=text,
            sub_text=sub_text,
            big_text=big_text,
            priority=event.priority,
            is_ongoing=event.is_ongoing,
            is_dismissible=event.is_dismissible,
            category=event.category,
            timestamp_received=self._clock(),
            timestamp_removed=None,
            raw_extras=raw_extras,
            is_otp=is_otp,
            otp_code=otp_code,
        )

    # --- Lebenszyklus ---

    @property
    def pending(self) -> int:
        """Anzahl noch laufender Capture-Tasks."""
        return len(self._tasks)

    async def drain(self) -> list[CaptureResult]:
        """Wartet auf alle laufenden Capture-Tasks (Shutdown, Tests)."""
        if not self._tasks:
            return []
        results = await asyncio.gather(*list(self._tasks))
        return list(results)
