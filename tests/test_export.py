"""
Tests für den Export

CSV/JSON-Kodierung, Dateischreiben und Status-Übergänge.
"""

import csv
import json
from datetime import datetime
from pathlib import Path

import pytest

from notification_logger.export.serializer import (
    CSV_HEADER,
    NO_RECORDS_MESSAGE,
    ExportError,
    Exporter,
    ExportFormat,
    ExportIdle,
    ExportLoading,
    ExportSuccess,
    encode_csv,
    escape_csv,
    export_filename,
)

from conftest import NOW_MS, make_record

FIXED_NOW = datetime(2024, 1, 31, 14, 25, 1)


@pytest.fixture
def export_dir(tmp_path):
    return tmp_path / "exports"


@pytest.fixture
def exporter(db, export_dir):
    return Exporter(db, export_dir, now=lambda: FIXED_NOW)


@pytest.fixture
def tricky_records():
    return [
        make_record(
            title='Er sagte "Hallo", dann ging er',
            text="Zeile 1\nZeile 2",
            big_text=None,
            is_otp=True,
            otp_code="4821",
            timestamp_received=NOW_MS,
        ),
        make_record(
            app_name="Bank, AG",
            title="Kontostand",
            is_ongoing=True,
            is_dismissible=False,
            priority=-1,
            timestamp_received=NOW_MS - 1,
            timestamp_removed=NOW_MS,
        ),
    ]


class TestEncoding:
    """Reine Kodierung"""

    def test_escape(self):
        assert escape_csv('a "b" c') == 'a ""b"" c'
        assert escape_csv(None) == ""

    def test_header(self):
        assert encode_csv([]).splitlines() == [CSV_HEADER]
        assert len(CSV_HEADER.split(",")) == 16

    def test_row_literal(self):
        record = make_record(id=7, title='x"y', priority=2)
        row = encode_csv([record]).splitlines()[1]

        assert row == (
            '7,"Example","com.example.app","x""y","","","","",'
            f'2,"",false,"",false,true,{NOW_MS},'
        )

    def test_filename(self):
        assert export_filename(ExportFormat.CSV, FIXED_NOW) == "notifications_20240131_142501.csv"
        assert export_filename(ExportFormat.JSON, FIXED_NOW) == "notifications_20240131_142501.json"


class TestExporter:
    """Export in Dateien"""

    @pytest.mark.asyncio
    async def test_csv_round_trip(self, exporter, db, tricky_records):
        for record in tricky_records:
            await db.insert_notification(record)

        status = await exporter.export(ExportFormat.CSV)

        assert isinstance(status, ExportSuccess)
        assert status.count == 2
        with open(status.path, newline="", encoding="utf-8") as f:
            rows = list(csv.reader(f))

        assert rows[0] == CSV_HEADER.split(",")
        first, second = rows[1], rows[2]
        assert first[3] == 'Er sagte "Hallo", dann ging er'
        assert first[4] == "Zeile 1\nZeile 2"
        assert first[5] == ""
        assert first[10:12] == ["true", "4821"]
        assert first[15] == ""
        assert second[1] == "Bank, AG"
        assert second[8] == "-1"
        assert second[12:16] == ["true", "false", str(NOW_MS - 1), str(NOW_MS)]

    @pytest.mark.asyncio
    async def test_json(self, exporter, db, tricky_records, export_dir):
        for record in tricky_records:
            await db.insert_notification(record)

        status = await exporter.export("json")

        assert status.path == str(export_dir / "notifications_20240131_142501.json")
        data = json.loads(Path(status.path).read_text(encoding="utf-8"))
        assert [item["title"] for item in data] == [r.title for r in tricky_records]
        assert data[0]["isOTP"] is True
        assert data[0]["otpCode"] == "4821"
        assert data[1]["appName"] == "Bank, AG"
        assert data[1]["timestampRemoved"] == NOW_MS
        assert data[0]["id"] > 0

    @pytest.mark.asyncio
    async def test_exports_everything_not_filtered_view(self, exporter, db, rules):
        await db.insert_notification(make_record(package_name="com.spam"))
        rules.block_app("com.spam")

        status = await exporter.export(ExportFormat.JSON)

        assert status.count == 1

    @pytest.mark.asyncio
    async def test_empty_store(self, exporter, export_dir):
        status = await exporter.export(ExportFormat.CSV)

        assert status == ExportError(NO_RECORDS_MESSAGE)
        assert not export_dir.exists()

    @pytest.mark.asyncio
    async def test_unknown_format(self, exporter, db):
        await db.insert_notification(make_record())

        status = await exporter.export("xml")

        assert isinstance(status, ExportError)

    @pytest.mark.asyncio
    async def test_write_failure_leaves_no_file(self, exporter, db, export_dir, monkeypatch):
        await db.insert_notification(make_record())

        def failing_replace(src, dst):
            raise OSError("Speicher voll")

        monkeypatch.setattr("notification_logger.export.serializer.os.replace", failing_replace)

        status = await exporter.export(ExportFormat.CSV)

        assert status == ExportError("Speicher voll")
        assert list(export_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_export_dir_is_a_file(self, db, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("x")
        await db.insert_notification(make_record())

        status = await Exporter(db, blocker).export(ExportFormat.CSV)

        assert isinstance(status, ExportError)


class TestStatus:
    """Zustandsmaschine"""

    @pytest.mark.asyncio
    async def test_transitions(self, exporter, db):
        await db.insert_notification(make_record())
        seen = []
        exporter.subscribe(seen.append)

        assert exporter.status == ExportIdle()
        await exporter.export(ExportFormat.CSV)
        exporter.reset()

        assert [type(s) for s in seen] == [ExportLoading, ExportSuccess, ExportIdle]
        assert exporter.status == ExportIdle()

    @pytest.mark.asyncio
    async def test_error_then_retry(self, exporter, db):
        first = await exporter.export(ExportFormat.CSV)
        assert isinstance(first, ExportError)
        assert exporter.status == first

        await db.insert_notification(make_record())
        second = await exporter.export(ExportFormat.CSV)

        assert isinstance(second, ExportSuccess)
        assert second.count == 1
