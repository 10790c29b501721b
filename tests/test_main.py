"""
Tests für Health-Check und Server-Lifecycle

Ruft die Startup-/Shutdown-Handler und Endpoint-Funktionen direkt auf,
ohne einen Server zu starten.
"""

import pytest
from fastapi import HTTPException

import notification_logger.api as api
import notification_logger.main as main
import notification_logger.state as state
from notification_logger.config import Settings
from notification_logger.export.serializer import ExportFormat
from notification_logger.health import check_capture, check_data_dir_writable, check_rules

from conftest import NOW_MS, make_event, make_record


@pytest.fixture
def settings(tmp_path, monkeypatch):
    settings = Settings(_env_file=None, data_dir=tmp_path / "data")
    monkeypatch.setattr(main, "get_settings", lambda: settings)
    return settings


class TestHealthChecks:
    """Einzelne Health-Check-Funktionen"""

    def test_data_dir_writable(self, settings):
        assert check_data_dir_writable(settings)["status"] == "ok"

    def test_data_dir_not_writable(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("x")
        settings = Settings(_env_file=None, data_dir=blocker)

        assert check_data_dir_writable(settings)["status"] == "error"

    def test_not_initialized(self):
        assert check_capture(None) == {"status": "not_initialized"}
        assert check_rules(None) == {"status": "not_initialized"}

    def test_rules_summary(self, memory_rules):
        memory_rules.block_app("com.spam")
        summary = check_rules(memory_rules)

        assert summary["blocked_apps"] == 1
        assert summary["retention_days"] == 30


class TestLifecycle:
    """async_startup → Endpoints → shutdown"""

    @pytest.mark.asyncio
    async def test_full_cycle(self, settings):
        await main.async_startup()
        try:
            assert state.database is not None
            assert state.coordinator.is_started

            response = await api.notification_posted(make_event(
                extras={"android.title": "Bank", "android.text": "Your OTP is 4821"},
            ))
            assert response == {"accepted": True}
            await state.pipeline.drain()

            health = await main.health_check()
            assert health["status"] == "healthy"
            assert health["checks"]["database"]["notifications"] == 1
            assert health["checks"]["capture"]["stored"] == 1

            exported = await api.run_export(ExportFormat.CSV)
            assert exported["status"] == "success"
            assert exported["count"] == 1
        finally:
            await main.shutdown()

        assert state.database is None
        assert state.pipeline is None
        assert state.coordinator is None

    @pytest.mark.asyncio
    async def test_blocked_event_not_accepted(self, settings):
        await main.async_startup()
        try:
            state.rules.block_app("com.spam")
            response = await api.notification_posted(make_event(package_name="com.spam"))
            assert response == {"accepted": False}
        finally:
            await main.shutdown()

    @pytest.mark.asyncio
    async def test_endpoints_before_startup(self, settings):
        with pytest.raises(HTTPException) as exc_info:
            await api.notification_posted(make_event())
        assert exc_info.value.status_code == 503

        health = await main.health_check()
        assert health["status"] == "unhealthy"

    @pytest.mark.asyncio
    async def test_empty_export_reports_error(self, settings):
        await main.async_startup()
        try:
            result = await api.run_export(ExportFormat.JSON)
        finally:
            await main.shutdown()

        assert result == {"status": "error", "message": "No notifications to export"}


class TestApi:
    """Abfrage-, Regel- und Lösch-Routen"""

    @pytest.mark.asyncio
    async def test_search_and_stats(self, settings):
        await main.async_startup()
        try:
            await state.database.insert_notification(make_record(title="Bank", text="OTP 4821"))
            await state.database.insert_notification(make_record(title="Wetter", text="Sonnig"))
            await state.coordinator.wait_for_results(lambda rs: len(rs) == 2, timeout=5)
            state.rules.add_keyword("bank")

            result = await api.list_notifications(q="bank")

            assert result["query"] == "bank"
            assert result["total"] == 1
            assert [n["title"] for n in result["notifications"]] == ["Bank"]
            assert result["notifications"][0]["keywordHits"] == ["bank"]

            everything = await api.list_notifications(q="")
            assert everything["total"] == 2
        finally:
            await main.shutdown()

    @pytest.mark.asyncio
    async def test_rule_mutations(self, settings):
        await main.async_startup()
        try:
            rules = await api.block_app("com.spam")
            assert rules["blocked_apps"] == ["com.spam"]

            rules = await api.add_keyword("Bank")
            assert rules["keywords"] == ["Bank"]

            rules = await api.set_retention(api.RetentionUpdate(enabled=False, days=500))
            assert rules["retention_enabled"] is False
            assert rules["retention_days"] == 90

            rules = await api.set_auto_export(api.AutoExportUpdate(enabled=True))
            assert rules["auto_export_enabled"] is True

            await api.unblock_app("com.spam")
            rules = await api.remove_keyword("Bank")
            assert rules["blocked_apps"] == []
            assert rules["keywords"] == []
            assert await api.get_rules() == rules
        finally:
            await main.shutdown()

        assert '"com.spam"' not in settings.rules_path.read_text(encoding="utf-8")

    @pytest.mark.asyncio
    async def test_apps_with_blocked_flag(self, settings):
        await main.async_startup()
        try:
            await state.database.insert_notification(make_record(package_name="com.a", app_name="A"))
            await state.database.insert_notification(make_record(package_name="com.b", app_name="B"))
            state.rules.block_app("com.b")

            apps = await api.list_apps()

            assert {a["package_name"]: a["blocked"] for a in apps} == {"com.a": False, "com.b": True}
        finally:
            await main.shutdown()

    @pytest.mark.asyncio
    async def test_clear_all(self, settings):
        await main.async_startup()
        try:
            await state.database.insert_notification(make_record(timestamp_received=NOW_MS))
            await state.database.insert_notification(make_record(timestamp_received=NOW_MS - 1))

            assert await api.clear_notifications() == {"deleted": 2}
            assert await state.database.get_count() == 0
            assert state.coordinator.distinct_apps == []
        finally:
            await main.shutdown()

    @pytest.mark.asyncio
    async def test_routes_before_startup(self, settings):
        for call in (api.get_rules(), api.list_apps(), api.list_notifications(q="x"), api.clear_notifications()):
            with pytest.raises(HTTPException) as exc_info:
                await call
            assert exc_info.value.status_code == 503
