"""SQLite-Speicher für erfasste Benachrichtigungen.

Verwaltet das geordnete Benachrichtigungs-Log.  Nutzt aiosqlite für
async Zugriff; alle Statements laufen seriell über eine Verbindung,
damit gleichzeitige Inserts aus der Capture-Pipeline sich nicht
gegenseitig beschädigen.

Schema-Migrationen erfolgen über CREATE TABLE IF NOT EXISTS.

Tabellen:
- notifications: ein Datensatz pro erfasster Benachrichtigung

Lesezugriffe sind immer nach timestamp_received absteigend sortiert,
NICHT nach Einfügereihenfolge – parallele Inserts können in anderer
Reihenfolge fertig werden als sie erfasst wurden.

Für reaktive Abfragen zählt die Datenbank eine Versionsnummer hoch,
sobald ein Schreibvorgang committed ist.  observe() liefert daraufhin
das Abfrageergebnis erneut.
"""

from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

import aiosqlite

from notification_logger.exceptions import StoreError
from notification_logger.logging_config import get_logger

logger = get_logger("store")


# ---------------------------------------------------------------------------
# Datenklassen für typsichere Übergabe
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class NotificationRecord:
    """Unveränderlicher Datensatz einer erfassten Benachrichtigung.

    Wird von der CapturePipeline gebaut und an
    Database.insert_notification() übergeben.  Die id ist 0 bis der
    Datensatz gespeichert wurde; gelesene Datensätze tragen die von
    SQLite vergebene id.
    """

    # Quelle
    package_name: str
    app_name: str
    notification_id: int

    # Zeitpunkt der Erfassung (ms seit Epoch), nicht der Post-Zeit des OS
    timestamp_received: int

    id: int = 0
    channel_id: Optional[str] = None

    # Inhalt
    title: Optional[str] = None
    text: Optional[str] = None
    sub_text: Optional[str] = None
    big_text: Optional[str] = None

    # Klassifizierung durch das OS
    priority: int = 0
    is_ongoing: bool = False
    is_dismissible: bool = True
    category: Optional[str] = None

    # Wird aktuell nie gesetzt (Entfernen wird nicht protokolliert)
    timestamp_removed: Optional[int] = None

    # Rohdaten (JSON-Snapshot der Extras, nur zur Anzeige)
    raw_extras: Optional[str] = None

    # OTP-Ergebnis
    is_otp: bool = False
    otp_code: Optional[str] = None

    def __post_init__(self) -> None:
        if (self.otp_code is not None) != self.is_otp:
            raise ValueError(
                f"Inkonsistentes OTP-Ergebnis: is_otp={self.is_otp}, "
                f"otp_code={self.otp_code!r}"
            )

    def to_export_dict(self) -> dict[str, Any]:
        """Feldnamen im Export-Format (camelCase, stabile Reihenfolge)."""
        return {
            export_name: getattr(self, attr)
            for attr, export_name in EXPORT_FIELD_NAMES.items()
        }


# Python-Attribut → Feldname in Export-Dateien
EXPORT_FIELD_NAMES: dict[str, str] = {
    "id": "id",
    "package_name": "packageName",
    "app_name": "appName",
    "notification_id": "notificationId",
    "channel_id": "channelId",
    "title": "title",
    "text": "text",
    "sub_text": "subText",
    "big_text": "bigText",
    "priority": "priority",
    "is_ongoing": "isOngoing",
    "is_dismissible": "isDismissible",
    "timestamp_received": "timestampReceived",
    "timestamp_removed": "timestampRemoved",
    "raw_extras": "rawExtras",
    "is_otp": "isOTP",
    "otp_code": "otpCode",
    "category": "category",
}


@dataclass(frozen=True)
class AppInfo:
    """Eine App, von der mindestens eine Benachrichtigung gespeichert ist."""

    package_name: str
    app_name: str


# ---------------------------------------------------------------------------
# Schema-Definitionen
# ---------------------------------------------------------------------------

_SCHEMA_NOTIFICATIONS = """
CREATE TABLE IF NOT EXISTS notifications (
    -- AUTOINCREMENT: IDs werden auch nach Löschen nie wiederverwendet
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    package_name TEXT NOT NULL,
    app_name TEXT NOT NULL,
    notification_id INTEGER NOT NULL,
    channel_id TEXT,

    -- Inhalt
    title TEXT,
    text TEXT,
    sub_text TEXT,
    big_text TEXT,

    -- Klassifizierung durch das OS
    priority INTEGER NOT NULL DEFAULT 0,
    is_ongoing INTEGER NOT NULL DEFAULT 0,
    is_dismissible INTEGER NOT NULL DEFAULT 1,
    category TEXT,

    -- Timing (ms seit Epoch)
    timestamp_received INTEGER NOT NULL,
    timestamp_removed INTEGER,

    raw_extras TEXT,

    -- OTP
    is_otp INTEGER NOT NULL DEFAULT 0,
    otp_code TEXT
);
"""

_INDEXES = [
    # Sortierung und Aufbewahrungs-Löschung
    "CREATE INDEX IF NOT EXISTS idx_n_timestamp_received "
    "ON notifications(timestamp_received);",

    # Filter nach App
    "CREATE INDEX IF NOT EXISTS idx_n_package_name "
    "ON notifications(package_name);",
]

# Spaltenreihenfolge für INSERT (ohne id)
_INSERT_COLUMNS = (
    "package_name", "app_name", "notification_id", "channel_id",
    "title", "text", "sub_text", "big_text",
    "priority", "is_ongoing", "is_dismissible", "category",
    "timestamp_received", "timestamp_removed",
    "raw_extras", "is_otp", "otp_code",
)

_ORDER_BY = "ORDER BY timestamp_received DESC, id DESC"

# Name der registrierten SQL-Funktion für Unicode-fähige Suche
_CONTAINS_FUNCTION = "contains_ci"


def _contains_ci(haystack: Optional[str], needle: Optional[str]) -> int:
    """SQL-Funktion: Teilstring-Suche ohne Groß-/Kleinschreibung.

    SQLite-LIKE faltet nur ASCII und interpretiert % und _ als
    Platzhalter – beides ist für eine Freitextsuche unerwünscht.
    """
    if haystack is None or needle is None:
        return 0
    return int(needle.casefold() in haystack.casefold())


def _row_to_record(row: aiosqlite.Row) -> NotificationRecord:
    """Wandelt eine DB-Zeile in einen NotificationRecord um."""
    return NotificationRecord(
        id=row["id"],
        package_name=row["package_name"],
        app_name=row["app_name"],
        notification_id=row["notification_id"],
        channel_id=row["channel_id"],
        title=row["title"],
        text=row["text"],
        sub_text=row["sub_text"],
        big_text=row["big_text"],
        priority=row["priority"],
        is_ongoing=bool(row["is_ongoing"]),
        is_dismissible=bool(row["is_dismissible"]),
        category=row["category"],
        timestamp_received=row["timestamp_received"],
        timestamp_removed=row["timestamp_removed"],
        raw_extras=row["raw_extras"],
        is_otp=bool(row["is_otp"]),
        otp_code=row["otp_code"],
    )


# ---------------------------------------------------------------------------
# Database-Klasse
# ---------------------------------------------------------------------------

class Database:
    """Async SQLite-Datenbankzugriff mit Schema-Migration.

    Verwendung:
        db = Database(path)
        await db.initialize()
        ...
        await db.close()

    Oder als Context-Manager:
        async with Database(path) as db:
            ...
    """

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path) if isinstance(db_path, str) else db_path
        self._connection: aiosqlite.Connection | None = None

        # Änderungszähler für observe()
        self._version = 0
        self._changed = asyncio.Condition()

    async def initialize(self) -> None:
        """Erstellt Verbindung, setzt PRAGMAs und führt Schema-Migration aus."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        self._connection = await aiosqlite.connect(str(self._db_path))

        # WAL-Modus: Lesen während die Capture-Pipeline schreibt
        await self._connection.execute("PRAGMA journal_mode=WAL")
        self._connection.row_factory = aiosqlite.Row
        await self._connection.create_function(
            _CONTAINS_FUNCTION, 2, _contains_ci, deterministic=True,
        )

        await self._migrate()
        logger.info("Datenbank initialisiert: %s", self._db_path)

    async def close(self) -> None:
        """Schließt die Datenbankverbindung."""
        if self._connection:
            await self._connection.close()
            self._connection = None
            logger.info("Datenbankverbindung geschlossen")

    async def __aenter__(self) -> Database:
        await self.initialize()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    @property
    def connection(self) -> aiosqlite.Connection:
        """Gibt die aktive Verbindung zurück.

        Raises:
            StoreError: Wenn die Datenbank nicht initialisiert ist.
        """
        if self._connection is None:
            raise StoreError(
                "Datenbank nicht initialisiert – "
                "await db.initialize() aufrufen"
            )
        return self._connection

    @property
    def version(self) -> int:
        """Anzahl bisher committeter Schreibvorgänge (für observe())."""
        return self._version

    # --- Schema-Migration ---

    async def _migrate(self) -> None:
        """Erstellt Tabellen und Indizes falls sie nicht existieren."""
        conn = self.connection

        await conn.execute(_SCHEMA_NOTIFICATIONS)
        for idx_sql in _INDEXES:
            await conn.execute(idx_sql)

        await conn.commit()
        logger.debug("Schema-Migration abgeschlossen")

    # --- Änderungs-Benachrichtigung ---

    async def _notify_changed(self) -> None:
        """Weckt alle observe()-Streams nach einem Commit."""
        async with self._changed:
            self._version += 1
            self._changed.notify_all()

    async def wait_for_change(self, since_version: int) -> int:
        """Wartet bis sich die Version gegenüber since_version geändert hat.

        Returns:
            Die neue Versionsnummer.
        """
        async with self._changed:
            await self._changed.wait_for(lambda: self._version != since_version)
            return self._version

    async def observe(
        self,
        fetch: Callable[[], Awaitable[list[NotificationRecord]]],
    ) -> AsyncIterator[list[NotificationRecord]]:
        """Reaktiver Abfrage-Stream.

        Liefert sofort das aktuelle Ergebnis von fetch() und danach
        erneut nach jedem committeten Schreibvorgang.  Endet erst, wenn
        der konsumierende Task abgebrochen wird.

        Args:
            fetch: Abfrage-Coroutine, z.B. ``db.get_all_notifications``.
        """
        while True:
            # Version VOR dem Lesen merken – Änderungen während fetch()
            # lösen sonst keinen erneuten Durchlauf aus
            version = self._version
            yield await fetch()
            await self.wait_for_change(version)

    # --- Schreiben ---

    async def insert_notification(self, record: NotificationRecord) -> int:
        """Speichert einen Benachrichtigungs-Datensatz.

        Die id des übergebenen Records wird ignoriert – SQLite vergibt
        eine neue, monoton steigende id.

        Returns:
            Die generierte Zeilen-ID.
        """
        conn = self.connection
        data = asdict(record)

        placeholders = ", ".join("?" for _ in _INSERT_COLUMNS)
        cursor = await conn.execute(
            f"INSERT INTO notifications ({', '.join(_INSERT_COLUMNS)}) "
            f"VALUES ({placeholders})",
            tuple(
                int(data[col]) if isinstance(data[col], bool) else data[col]
                for col in _INSERT_COLUMNS
            ),
        )
        await conn.commit()
        row_id = cursor.lastrowid or 0

        logger.debug(
            "Benachrichtigung gespeichert: id=%d, package=%s, otp=%s",
            row_id, record.package_name, record.is_otp,
        )
        await self._notify_changed()
        return row_id

    async def delete_older_than(self, timestamp_ms: int) -> int:
        """Löscht alle Datensätze mit timestamp_received < timestamp_ms.

        Strikt kleiner: ein Datensatz genau auf der Grenze bleibt erhalten.

        Returns:
            Anzahl gelöschter Datensätze.
        """
        conn = self.connection
        cursor = await conn.execute(
            "DELETE FROM notifications WHERE timestamp_received < ?",
            (timestamp_ms,),
        )
        await conn.commit()
        deleted = cursor.rowcount

        logger.info("Aufbewahrung: %d Datensätze vor %d gelöscht", deleted, timestamp_ms)
        await self._notify_changed()
        return deleted

    async def delete_all(self) -> int:
        """Löscht alle gespeicherten Benachrichtigungen.

        Returns:
            Anzahl gelöschter Datensätze.
        """
        conn = self.connection
        cursor = await conn.execute("DELETE FROM notifications")
        await conn.commit()
        deleted = cursor.rowcount

        logger.info("Alle Benachrichtigungen gelöscht: %d Datensätze", deleted)
        await self._notify_changed()
        return deleted

    # --- Lesen ---

    async def _fetch_records(
        self,
        where: str = "",
        params: tuple[Any, ...] | dict[str, Any] = (),
    ) -> list[NotificationRecord]:
        """Liest Datensätze mit optionaler WHERE-Klausel, neueste zuerst."""
        conn = self.connection
        sql = f"SELECT * FROM notifications {where} {_ORDER_BY}"
        cursor = await conn.execute(sql, params)
        rows = await cursor.fetchall()
        return [_row_to_record(row) for row in rows]

    async def get_all_notifications(self) -> list[NotificationRecord]:
        """Alle Datensätze, neueste zuerst."""
        return await self._fetch_records()

    async def search_notifications(self, query: str) -> list[NotificationRecord]:
        """Datensätze, deren App-Name, Titel, Text oder Langtext den Suchbegriff enthält.

        Groß-/Kleinschreibung wird ignoriert; % und _ sind normale Zeichen.
        """
        fn = _CONTAINS_FUNCTION
        return await self._fetch_records(
            f"WHERE {fn}(app_name, :q) OR {fn}(title, :q) "
            f"OR {fn}(text, :q) OR {fn}(big_text, :q)",
            {"q": query},
        )

    async def get_notifications_by_package(
        self,
        package_name: str,
    ) -> list[NotificationRecord]:
        """Alle Datensätze einer App, neueste zuerst."""
        return await self._fetch_records(
            "WHERE package_name = ?", (package_name,),
        )

    async def get_otp_notifications(self) -> list[NotificationRecord]:
        """Alle Datensätze mit erkanntem OTP, neueste zuerst."""
        return await self._fetch_records("WHERE is_otp = 1")

    async def get_distinct_apps(self) -> list[AppInfo]:
        """Alle (package_name, app_name)-Paare mit gespeicherten Datensätzen."""
        conn = self.connection
        cursor = await conn.execute(
            "SELECT DISTINCT package_name, app_name FROM notifications "
            "ORDER BY app_name COLLATE NOCASE, package_name"
        )
        rows = await cursor.fetchall()
        return [
            AppInfo(package_name=row["package_name"], app_name=row["app_name"])
            for row in rows
        ]

    async def get_count(self) -> int:
        """Anzahl gespeicherter Datensätze."""
        conn = self.connection
        cursor = await conn.execute("SELECT COUNT(*) FROM notifications")
        row = await cursor.fetchone()
        return row[0] if row else 0
