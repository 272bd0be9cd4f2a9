"""Tests for Application."""

from unittest.mock import AsyncMock, patch

import pytest

from agent_bridge.app import Application
from agent_bridge.feishu import FeishuClient

from conftest import RecordingSink


def make_app(settings, sink=None, selector=None) -> Application:
    return Application(settings, db_path=":memory:", sink=sink, selector=selector)


class TestApplicationStart:
    """Tests for Application.start()."""

    async def test_start_initializes_components(self, settings, sink, selector):
        """Test that start wires every component."""
        app = make_app(settings, sink, selector)
        await app.start()

        assert app.storage is not None
        assert app.orchestrator.provider_name == "codex"
        assert app.orchestrator.display_name == "Codex"
        assert app.gateway is not None
        assert app._sink is sink
        assert app._tracker._storage is app._storage

        await app.stop()

    async def test_default_sink_is_feishu_client(self, settings):
        """Without an injected sink the Feishu client is used."""
        app = make_app(settings)
        await app.start()

        assert isinstance(app._sink, FeishuClient)

        await app.stop()

    async def test_start_creates_database_tables(self, settings, sink):
        """Test that start creates database tables."""
        app = make_app(settings, sink)
        await app.start()

        async with app._storage._conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table'"
        ) as cursor:
            tables = [row[0] for row in await cursor.fetchall()]
        assert "trace_events" in tables

        await app.stop()

    async def test_properties_before_start_raise(self, settings):
        app = make_app(settings)
        with pytest.raises(RuntimeError):
            app.orchestrator
        with pytest.raises(RuntimeError):
            app.storage


class TestStartupNotification:
    """Tests for the startup card."""

    async def test_notification_sent_when_configured(self, settings, sink):
        settings.notify_target = "ou_admin"
        app = make_app(settings, sink)
        await app.start()

        receive_id, title, body = sink.created[0]
        assert receive_id == "ou_admin"
        assert title == "Codex"
        assert "/tmp/agent-workspace" in body

        await app.stop()

    async def test_no_notification_by_default(self, settings, sink):
        app = make_app(settings, sink)
        await app.start()
        assert sink.created == []
        await app.stop()

    async def test_notification_failure_does_not_block_start(self, settings):
        settings.notify_target = "oc_ops"
        sink = RecordingSink()
        sink.fail_create = True
        app = make_app(settings, sink)

        await app.start()

        assert app.gateway is not None
        await app.stop()


class TestApplicationStop:
    """Tests for Application.stop()."""

    async def test_stop_closes_storage(self, settings, sink):
        app = make_app(settings, sink)
        await app.start()
        await app.stop()
        assert app._storage._conn is None


class TestFeishuWiring:
    """Tests for the default Feishu client wiring."""

    async def test_startup_card_goes_through_feishu_client(self, settings):
        settings.notify_target = "ou_admin"
        app = make_app(settings)

        with patch.object(
            FeishuClient, "create_card", AsyncMock(return_value="om_1")
        ) as create_card:
            await app.start()

        create_card.assert_awaited_once()
        assert create_card.await_args.args[0] == "ou_admin"
        assert app.orchestrator._file_sender is app._client

        await app.stop()
