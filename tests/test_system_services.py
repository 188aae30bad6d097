# tests/test_system_services.py
"""
Tests for ServiceManager wiring and lifecycle.

Run:
    pytest tests/test_system_services.py -v
"""
from unittest.mock import AsyncMock

import pytest

from core.system_services import ServiceManager
from notifications.base import CompositeNotifier, NullNotifier


class ClosableNotifier(NullNotifier):
    name = "closable"

    def __init__(self):
        self.close = AsyncMock()


class TestServiceManager:

    @pytest.mark.asyncio
    async def test_status_before_start(self, store):
        """
        TEST: No sweeper until start_services(); channel names are listed.
        """
        manager = ServiceManager(store, CompositeNotifier([NullNotifier()]))

        status = manager.get_status()

        assert status["sweeper"] is None
        assert status["notifiers"] == ["null"]
        assert status["database"].startswith("sqlite")

    @pytest.mark.asyncio
    async def test_start_and_stop(self, store, monkeypatch):
        """
        TEST: start_services() runs the sweeper; stop_services() stops it and closes channels.
        """
        monkeypatch.setattr("config.Config._config", {})
        channel = ClosableNotifier()
        manager = ServiceManager(store, CompositeNotifier([channel]))

        await manager.start_services()
        try:
            assert manager.get_status()["sweeper"]["isRunning"] is True
        finally:
            await manager.stop_services()

        assert manager.expiry_sweeper.isRunning is False
        channel.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_shutdown_signal_releases_waiter(self, store):
        manager = ServiceManager(store)

        manager.signal_shutdown()

        await manager.wait_for_shutdown()
