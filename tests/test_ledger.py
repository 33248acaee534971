"""
Unit tests for the order ledger.
"""

import threading
from unittest.mock import Mock

import pytest

from models.atelier import AtelierData


class TestOrderLedger:

    def test_mutation_bumps_version_and_notifies(self, ledger):
        listener = Mock()
        ledger.add_listener(listener)

        with ledger.mutation() as data:
            data.find_order("o-1").notes = "Col mao"

        assert ledger.version == 1
        listener.assert_called_once_with(1)

    def test_failed_mutation_does_not_notify(self, ledger):
        listener = Mock()
        ledger.add_listener(listener)

        with pytest.raises(RuntimeError):
            with ledger.mutation():
                raise RuntimeError("boom")

        assert ledger.version == 0
        listener.assert_not_called()

    def test_reading_does_not_notify(self, ledger):
        listener = Mock()
        ledger.add_listener(listener)

        with ledger.reading() as data:
            assert len(data.orders) == 5

        listener.assert_not_called()

    def test_hydrate_does_not_notify(self, ledger):
        listener = Mock()
        ledger.add_listener(listener)

        ledger.hydrate(AtelierData())

        listener.assert_not_called()
        assert ledger.snapshot()["orders"] == []

    def test_broken_listener_does_not_break_mutation(self, ledger):
        good = Mock()
        ledger.add_listener(Mock(side_effect=ValueError("listener bug")))
        ledger.add_listener(good)

        with ledger.mutation() as data:
            data.find_order("o-1").price = 1

        good.assert_called_once_with(1)
        assert ledger.get_order("o-1").price == 1

    def test_snapshot_is_wire_format(self, ledger):
        snapshot = ledger.snapshot()
        assert snapshot["orders"][0]["ticketId"] == "CMD-AAAAAA"
        assert snapshot["managerAccessCode"] == "1234"

    def test_ticket_ids(self, ledger):
        assert "CMD-EEEEEE" in ledger.ticket_ids()

    def test_nested_mutation_notifies_after_outer_block(self, ledger):
        listener = Mock()
        ledger.add_listener(listener)

        with ledger.reading():
            with ledger.mutation() as data:
                data.find_order("o-2").notes = "Pris"
            listener.assert_not_called()

        listener.assert_called_once_with(1)

    def test_listener_runs_without_lock_held(self, ledger):
        finished = []

        def listener(version):
            # Another thread can take the lock while listeners run
            worker = threading.Thread(target=ledger.ticket_ids)
            worker.start()
            worker.join(timeout=1.0)
            finished.append(not worker.is_alive())

        ledger.add_listener(listener)
        with ledger.reading():
            with ledger.mutation() as data:
                data.find_order("o-2").notes = "Pris"

        assert finished == [True]

    def test_outer_failure_still_notifies_completed_mutation(self, ledger):
        listener = Mock()
        ledger.add_listener(listener)

        with pytest.raises(RuntimeError):
            with ledger.reading():
                with ledger.mutation() as data:
                    data.find_order("o-2").notes = "Pris"
                raise RuntimeError("boom")

        listener.assert_called_once_with(1)
