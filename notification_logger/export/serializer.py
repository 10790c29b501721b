"""Export aller gespeicherten Benachrichtigungen als CSV oder JSON.

Exportiert wird immer der VOLLSTÄNDIGE Datenbestand, nicht die
gefilterte Sicht des QueryCoordinators.

Zustandsmaschine eines Exports (ExportStatus):

    Idle ──export()──▶ Loading ──▶ Success(path, count)
                          │
                          └──────▶ Error(message)

Success und Error bleiben stehen bis reset() → Idle.

Die Datei wird erst unter einem temporären Namen geschrieben und dann
umbenannt – bei einem Fehler ist nie eine halbe Exportdatei sichtbar.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, Optional, Union

from notification_logger.db.database import Database, NotificationRecord
from notification_logger.exceptions import ExportFailedError
from notification_logger.logging_config import get_logger

logger = get_logger("export")


# ---------------------------------------------------------------------------
# Export-Status (geschlossene Variantenmenge)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ExportIdle:
    """Kein Export aktiv."""


@dataclass(frozen=True)
class ExportLoading:
    """Export läuft."""


@dataclass(frozen=True)
class ExportSuccess:
    """Export abgeschlossen."""
    path: str
    count: int


@dataclass(frozen=True)
class ExportError:
    """Export fehlgeschlagen – erneuter Versuch möglich."""
    message: str


ExportStatus = Union[ExportIdle, ExportLoading, ExportSuccess, ExportError]

StatusListener = Callable[[ExportStatus], None]


class ExportFormat(str, Enum):
    """Unterstützte Exportformate."""
    CSV = "csv"
    JSON = "json"


# ---------------------------------------------------------------------------
# Kodierung
# ---------------------------------------------------------------------------

CSV_HEADER = (
    "ID,App Name,Package Name,Title,Text,Big Text,Sub Text,Channel ID,"
    "Priority,Category,Is OTP,OTP Code,Is Ongoing,Is Dismissible,"
    "Timestamp Received,Timestamp Removed"
)

NO_RECORDS_MESSAGE = "No notifications to export"


def escape_csv(value: Optional[str]) -> str:
    """Verdoppelt Anführungszeichen; None → leerer String."""
    if value is None:
        return ""
    return value.replace('"', '""')


def _quoted(value: Optional[str]) -> str:
    return f'"{escape_csv(value)}"'


def _bool(value: bool) -> str:
    return "true" if value else "false"


def csv_row(record: NotificationRecord) -> str:
    """Eine CSV-Zeile: Textfelder in Anführungszeichen, Zahlen und Flags ohne."""
    removed = "" if record.timestamp_removed is None else str(record.timestamp_removed)
    return ",".join((
        str(record.id),
        _quoted(record.app_name),
        _quoted(record.package_name),
        _quoted(record.title),
        _quoted(record.text),
        _quoted(record.big_text),
        _quoted(record.sub_text),
        _quoted(record.channel_id),
        str(record.priority),
        _quoted(record.category),
        _bool(record.is_otp),
        _quoted(record.otp_code),
        _bool(record.is_ongoing),
        _bool(record.is_dismissible),
        str(record.timestamp_received),
        removed,
    ))


def encode_csv(records: Iterable[NotificationRecord]) -> str:
    """Kodiert Datensätze als CSV mit fester Kopfzeile."""
    lines = [CSV_HEADER]
    lines.extend(csv_row(record) for record in records)
    return "\n".join(lines) + "\n"


def encode_json(records: Iterable[NotificationRecord]) -> str:
    """Kodiert Datensätze als eingerücktes JSON-Array (camelCase-Feldnamen)."""
    return json.dumps(
        [record.to_export_dict() for record in records],
        indent=2,
        ensure_ascii=False,
    )


_ENCODERS: dict[ExportFormat, Callable[[Iterable[NotificationRecord]], str]] = {
    ExportFormat.CSV: encode_csv,
    ExportFormat.JSON: encode_json,
}


def export_filename(fmt: ExportFormat, now: datetime | None = None) -> str:
    """Dateiname mit Zeitstempel, z.B. notifications_20240131_142501.csv."""
    stamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
    return f"notifications_{stamp}.{fmt.value}"


def write_atomic(path: Path, content: str) -> None:
    """Schreibt content nach path über eine temporäre Datei.

    Raises:
        OSError: Wenn Schreiben oder Umbenennen fehlschlägt.  Die
            temporäre Datei ist dann bereits entfernt.
    """
    tmp_path = path.with_name(f".{path.name}.part")
    try:
        tmp_path.write_text(content, encoding="utf-8", newline="")
        os.replace(tmp_path, path)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise


# ---------------------------------------------------------------------------
# Exporter
# ---------------------------------------------------------------------------

class Exporter:
    """Führt Exporte aus und hält den Export-Status.

    Verwendung:
        exporter = Exporter(database, settings.resolved_export_dir)
        status = await exporter.export(ExportFormat.CSV)
        if isinstance(status, ExportSuccess): ...
        exporter.reset()
    """

    def __init__(
        self,
        database: Database,
        export_dir: Path | str,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._database = database
        self._export_dir = Path(export_dir)
        self._now = now
        self._status: ExportStatus = ExportIdle()
        self._listeners: list[StatusListener] = []

    @property
    def status(self) -> ExportStatus:
        return self._status

    @property
    def export_dir(self) -> Path:
        return self._export_dir

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Listener bekommt jeden Statuswechsel.

        Returns:
            Funktion zum Abmelden.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_status(self, status: ExportStatus) -> ExportStatus:
        self._status = status
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception:
                logger.exception("Export-Listener fehlgeschlagen")
        return status

    def reset(self) -> None:
        """Setzt den Status auf Idle zurück (nach Success oder Error)."""
        self._set_status(ExportIdle())

    async def export(self, fmt: ExportFormat | str) -> ExportStatus:
        """Exportiert alle Datensätze im gewünschten Format.

        Fehler werden nicht geworfen, sondern als ExportError gemeldet.

        Returns:
            Der End-Status (ExportSuccess oder ExportError).
        """
        self._set_status(ExportLoading())

        try:
            fmt = ExportFormat(fmt)
            path, count = await self._export(fmt)
        except (ExportFailedError, OSError, ValueError) as exc:
            message = str(exc) or "Export failed"
            logger.warning("Export fehlgeschlagen: %s", message)
            return self._set_status(ExportError(message))
        except Exception as exc:
            logger.exception("Unerwarteter Fehler beim Export")
            return self._set_status(ExportError(str(exc) or "Export failed"))

        logger.info("Export abgeschlossen: %d Datensätze → %s", count, path)
        return self._set_status(ExportSuccess(path=str(path), count=count))

    async def _export(self, fmt: ExportFormat) -> tuple[Path, int]:
        records = await self._database.get_all_notifications()
        if not records:
            raise ExportFailedError(NO_RECORDS_MESSAGE)

        content = _ENCODERS[fmt](records)

        self._export_dir.mkdir(parents=True, exist_ok=True)
        path = self._export_dir / export_filename(fmt, self._now())
        write_atomic(path, content)
        return path, len(records)
