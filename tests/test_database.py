"""
Tests für die Benachrichtigungs-Datenbank

Sortierung, Suche, Löschen, IDs und der observe()-Stream.
"""

import asyncio

import pytest

from notification_logger.db.database import (
    AppInfo,
    Database,
    NotificationRecord,
)
from notification_logger.exceptions import StoreError

from conftest import NOW_MS, make_record


class TestNotificationRecord:
    """Invarianten des Datensatzes"""

    def test_otp_code_requires_flag(self):
        with pytest.raises(ValueError):
            make_record(is_otp=False, otp_code="1234")

    def test_flag_requires_otp_code(self):
        with pytest.raises(ValueError):
            make_record(is_otp=True, otp_code=None)

    def test_export_dict_uses_camel_case(self):
        record = make_record(is_otp=True, otp_code="1234", raw_extras="{}")
        data = record.to_export_dict()

        assert data["packageName"] == "com.example.app"
        assert data["isOTP"] is True
        assert data["otpCode"] == "1234"
        assert data["timestampRemoved"] is None
        assert len(data) == 18


class TestDatabaseLifecycle:
    """Initialisierung und Schließen"""

    def test_connection_before_initialize(self, tmp_path):
        database = Database(tmp_path / "x.db")
        with pytest.raises(StoreError):
            _ = database.connection

    @pytest.mark.asyncio
    async def test_context_manager(self, tmp_path):
        async with Database(tmp_path / "sub" / "x.db") as database:
            assert await database.get_count() == 0
        assert (tmp_path / "sub" / "x.db").exists()


class TestInsertAndRead:
    """Schreiben und Lesen"""

    @pytest.mark.asyncio
    async def test_insert_returns_increasing_ids(self, db):
        first = await db.insert_notification(make_record())
        second = await db.insert_notification(make_record())
        assert second > first > 0

    @pytest.mark.asyncio
    async def test_round_trip_fields(self, db):
        record = make_record(
            channel_id="chan",
            title="Titel",
            text="Text",
            sub_text="Sub",
            big_text="Lang",
            priority=-2,
            is_ongoing=True,
            is_dismissible=False,
            category="msg",
            raw_extras='{"a": "b"}',
            is_otp=True,
            otp_code="4821",
        )
        record_id = await db.insert_notification(record)

        (stored,) = await db.get_all_notifications()
        assert stored.id == record_id
        assert stored.is_ongoing is True
        assert stored.is_dismissible is False
        assert stored.is_otp is True
        assert stored.otp_code == "4821"
        assert stored.priority == -2
        assert stored.timestamp_removed is None

    @pytest.mark.asyncio
    async def test_ordered_by_timestamp_not_insertion(self, db):
        await db.insert_notification(make_record(title="mitte", timestamp_received=200))
        await db.insert_notification(make_record(title="neu", timestamp_received=300))
        await db.insert_notification(make_record(title="alt", timestamp_received=100))

        titles = [r.title for r in await db.get_all_notifications()]
        assert titles == ["neu", "mitte", "alt"]

    @pytest.mark.asyncio
    async def test_concurrent_inserts(self, db):
        records = [make_record(notification_id=i, timestamp_received=i) for i in range(20)]
        ids = await asyncio.gather(*(db.insert_notification(r) for r in records))

        assert len(set(ids)) == 20
        assert await db.get_count() == 20

    @pytest.mark.asyncio
    async def test_by_package_and_otp(self, db):
        await db.insert_notification(make_record(package_name="a", is_otp=True, otp_code="1234"))
        await db.insert_notification(make_record(package_name="b"))

        assert [r.package_name for r in await db.get_notifications_by_package("b")] == ["b"]
        assert [r.otp_code for r in await db.get_otp_notifications()] == ["1234"]

    @pytest.mark.asyncio
    async def test_distinct_apps(self, db):
        await db.insert_notification(make_record(package_name="com.z", app_name="zebra"))
        await db.insert_notification(make_record(package_name="com.a", app_name="Anton"))
        await db.insert_notification(make_record(package_name="com.z", app_name="zebra"))

        assert await db.get_distinct_apps() == [
            AppInfo("com.a", "Anton"),
            AppInfo("com.z", "zebra"),
        ]


class TestSearch:
    """Teilstring-Suche ohne Groß-/Kleinschreibung"""

    @pytest.fixture
    def records(self):
        return [
            make_record(app_name="Bank", title="Überweisung", timestamp_received=1),
            make_record(title="Paket", text="Ihre SENDUNG kommt", timestamp_received=2),
            make_record(big_text="Rabatt 50% heute", timestamp_received=3),
            make_record(sub_text="sendung", timestamp_received=4),
        ]

    @pytest.mark.asyncio
    async def test_matches_fields_case_insensitive(self, db, records):
        for record in records:
            await db.insert_notification(record)

        assert [r.app_name for r in await db.search_notifications("bAnK")] == ["Bank"]
        assert [r.title for r in await db.search_notifications("sendung")] == ["Paket"]
        assert [r.title for r in await db.search_notifications("überweisung")] == ["Überweisung"]

    @pytest.mark.asyncio
    async def test_sub_text_not_searched(self, db, records):
        for record in records:
            await db.insert_notification(record)

        results = await db.search_notifications("sendung")
        assert all(r.sub_text is None for r in results)

    @pytest.mark.asyncio
    async def test_wildcards_are_literal(self, db, records):
        for record in records:
            await db.insert_notification(record)

        assert len(await db.search_notifications("50%")) == 1
        assert await db.search_notifications("%") != await db.get_all_notifications()
        assert await db.search_notifications("_") == []


class TestDelete:
    """Aufbewahrungs-Löschung und Komplett-Löschung"""

    @pytest.mark.asyncio
    async def test_delete_older_than_is_strict(self, db):
        cutoff = NOW_MS - 1000
        await db.insert_notification(make_record(title="davor", timestamp_received=cutoff - 1))
        await db.insert_notification(make_record(title="grenze", timestamp_received=cutoff))
        await db.insert_notification(make_record(title="danach", timestamp_received=cutoff + 1))

        deleted = await db.delete_older_than(cutoff)

        assert deleted == 1
        assert [r.title for r in await db.get_all_notifications()] == ["danach", "grenze"]

    @pytest.mark.asyncio
    async def test_ids_not_reused_after_delete_all(self, db):
        first = await db.insert_notification(make_record())
        assert await db.delete_all() == 1
        assert await db.get_count() == 0

        second = await db.insert_notification(make_record())
        assert second > first


class TestObserve:
    """Reaktiver Abfrage-Stream"""

    @pytest.mark.asyncio
    async def test_reemits_after_write(self, db):
        stream = db.observe(db.get_all_notifications)

        assert await stream.__anext__() == []

        await db.insert_notification(make_record(title="neu"))
        records = await asyncio.wait_for(stream.__anext__(), timeout=2)

        assert [r.title for r in records] == ["neu"]
        await stream.aclose()

    @pytest.mark.asyncio
    async def test_version_counts_writes(self, db):
        before = db.version
        await db.insert_notification(make_record())
        await db.delete_all()
        assert db.version == before + 2

    @pytest.mark.asyncio
    async def test_wait_for_change(self, db):
        version = db.version
        waiter = asyncio.ensure_future(db.wait_for_change(version))
        await asyncio.sleep(0)
        assert not waiter.done()

        await db.insert_notification(make_record())
        assert await asyncio.wait_for(waiter, timeout=2) == version + 1
