"""
Unit tests for the persistence synchronizer.

The debounce and backoff are driven by a fake clock and explicit tick()
calls; only the lifecycle tests start the real background thread.
"""

from unittest.mock import patch

import pytest

from services.access import AccessMode, AccessSession
from services.dispatch import DispatchService
from services.ledger import OrderLedger
from services.sync_service import SyncService

from conftest import FakeStore


MANAGER = AccessSession(mode=AccessMode.MANAGER)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def sync_ledger():
    return OrderLedger()


@pytest.fixture
def sync(sync_ledger, store, fake_clock):
    service = SyncService(
        sync_ledger,
        store,
        "atelier-test",
        debounce_seconds=1.0,
        retry_base_seconds=2.0,
        retry_max_seconds=8.0,
        clock=fake_clock,
    )
    service.hydrate()
    return service


@pytest.fixture
def dispatch(sync, sync_ledger):
    return DispatchService(sync_ledger)


class TestHydrate:

    def test_loads_ledger_and_subscription(self, sync):
        assert sync.atelier_name == "Atelier Diop"
        assert sync.subscription.is_active()
        assert not sync.is_dirty

    def test_nothing_to_flush_after_hydrate(self, sync, store):
        assert sync.tick() is False
        assert sync.flush_now() is False
        assert store.writes == []

    def test_requires_atelier_id(self, store):
        with pytest.raises(ValueError):
            SyncService(OrderLedger(), store, "")


class TestDebounce:

    def test_mutations_in_one_window_coalesce(self, sync, store, dispatch, fake_clock):
        dispatch.update_order(MANAGER, "o-1", notes="premier")
        fake_clock.advance(0.5)
        dispatch.update_order(MANAGER, "o-1", notes="deuxième")
        fake_clock.advance(0.4)
        dispatch.update_order(MANAGER, "o-1", notes="troisième")

        # 0.6s after the last mutation: still inside the window
        fake_clock.advance(0.6)
        assert sync.tick() is False
        assert store.writes == []

        fake_clock.advance(0.5)
        assert sync.tick() is True

        assert len(store.writes) == 1
        atelier_id, payload = store.writes[0]
        assert atelier_id == "atelier-test"
        order = next(o for o in payload["orders"] if o["id"] == "o-1")
        assert order["notes"] == "troisième"
        assert not sync.is_dirty

    def test_flush_carries_whole_aggregate(self, sync, store, dispatch, fake_clock):
        dispatch.assign(MANAGER, "o-1", "waiting-room")
        fake_clock.advance(1.0)
        sync.tick()

        payload = store.writes[0][1]
        assert payload["expenses"] == [{"id": "e-1", "amount": 5000}]
        assert payload["managerAccessCode"] == "1234"
        assert payload["notifications"][0]["message"].endswith("Salle des Commandes.")

    def test_no_write_when_idle(self, sync, store, fake_clock):
        fake_clock.advance(10)
        assert sync.tick() is False
        assert store.writes == []

    def test_declined_claim_does_not_dirty(self, sync, dispatch):
        ws = AccessSession(mode=AccessMode.WORKSTATION, workstation_id="ws-1")
        result = dispatch.claim(ws, "o-4")
        assert not result.claimed
        assert not sync.is_dirty

    def test_flush_now_ignores_window(self, sync, store, dispatch):
        dispatch.update_order(MANAGER, "o-1", price=1)
        assert sync.flush_now() is True
        assert len(store.writes) == 1


class TestFailures:

    def test_failed_write_keeps_dirty_and_backs_off(self, sync, store, dispatch, fake_clock):
        store.fail_writes = True
        dispatch.update_order(MANAGER, "o-1", price=26000)

        fake_clock.advance(1.0)
        assert sync.tick() is True
        assert sync.is_dirty
        assert sync.stats()["consecutive_failures"] == 1

        # Backoff of 2s has not elapsed
        fake_clock.advance(1.0)
        assert sync.tick() is False

        fake_clock.advance(1.0)
        assert sync.tick() is True
        assert sync.stats()["consecutive_failures"] == 2

        # Second backoff is 4s
        store.fail_writes = False
        fake_clock.advance(3.5)
        assert sync.tick() is False
        fake_clock.advance(0.5)
        assert sync.tick() is True

        stats = sync.stats()
        assert stats["consecutive_failures"] == 0
        assert stats["failure_count"] == 2
        assert stats["flush_count"] == 1
        assert stats["last_error"] is None
        assert store.writes[0][1]["orders"][0]["price"] == 26000

    def test_backoff_is_capped(self, sync, store, dispatch, fake_clock):
        store.fail_writes = True
        dispatch.update_order(MANAGER, "o-1", price=1)
        fake_clock.advance(1.0)

        for _ in range(6):
            sync.flush_now()
        fake_clock.advance(8.0)
        assert sync.tick() is True

    def test_failures_never_raise(self, sync, store, dispatch):
        store.fail_writes = True
        dispatch.update_order(MANAGER, "o-1", price=1)
        sync.flush_now()
        assert "connection refused" in sync.stats()["last_error"]

    def test_unexpected_write_error_keeps_dirty(self, sync, store, dispatch, fake_clock):
        """Errors other than StoreUnavailableError go through the same retry path."""
        dispatch.update_order(MANAGER, "o-1", price=27000)
        fake_clock.advance(1.0)

        error = ValueError("Out of range float values are not JSON compliant")
        with patch.object(store, "write_aggregate", side_effect=error):
            assert sync.flush_now() is True

        stats = sync.stats()
        assert sync.is_dirty
        assert stats["failure_count"] == 1
        assert stats["consecutive_failures"] == 1
        assert "ValueError" in stats["last_error"]

        # Next write succeeds once the backoff has passed
        fake_clock.advance(2.0)
        assert sync.tick() is True
        assert not sync.is_dirty
        assert store.writes[-1][1]["orders"][0]["price"] == 27000

    def test_unexpected_error_does_not_escape_stop(self, sync, store, dispatch):
        dispatch.update_order(MANAGER, "o-1", price=1)
        with patch.object(store, "write_aggregate", side_effect=ValueError("bad payload")):
            sync.stop()
        assert sync.is_dirty


class TestLifecycle:

    def test_start_stop(self, store):
        service = SyncService(OrderLedger(), store, "atelier-test", poll_interval_seconds=0.01)
        service.start()
        assert service.is_running
        service.start()  # no second thread

        service.stop(timeout=1.0)
        assert not service.is_running

    def test_stop_flushes_pending_changes(self, sync, store, dispatch):
        dispatch.update_order(MANAGER, "o-2", notes="à livrer vite")
        sync.stop()
        assert len(store.writes) == 1

    def test_stop_without_flush(self, sync, store, dispatch):
        dispatch.update_order(MANAGER, "o-2", notes="x")
        sync.stop(flush=False)
        assert store.writes == []
        assert sync.is_dirty
