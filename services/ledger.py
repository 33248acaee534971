"""
Order ledger: the canonical in-memory aggregate.

All reads and writes of ``AtelierData`` go through this object so that one
lock serialises them. Flask serves requests on several threads; the lock is
what makes "claim only if still in the pool" a real compare-and-swap.

Thread Safety:
    - ``mutation()`` holds an RLock for the whole read-check-write sequence
    - Listeners are notified AFTER the outermost holder releases the lock.
      A mutation nested in ``reading()`` (the claim path) notifies when the
      outer block exits; nested mutations coalesce into one notification
    - ``snapshot()`` returns a deep-copied wire dict, safe for another thread

Usage:
    ledger = OrderLedger()
    ledger.hydrate(snapshot.data)
    ledger.add_listener(sync_service.mark_dirty)

    with ledger.mutation() as data:
        order = data.find_order(order_id)
        order.price = 45000
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Callable, Dict, Any, Iterator, List, Optional

from models.atelier import AtelierData
from models.order import Order
from logging_config import get_logger


logger = get_logger(__name__)

MutationListener = Callable[[int], None]


class OrderLedger:
    """
    Holder of the atelier aggregate with a version counter.

    ``version`` increases by one per completed mutation; listeners receive
    the new version.
    """

    def __init__(self, data: Optional[AtelierData] = None):
        self._data = data or AtelierData()
        self._lock = threading.RLock()
        self._version = 0
        # Guarded by _lock; only the owning thread touches them
        self._depth = 0
        self._pending_version: Optional[int] = None
        self._listeners: List[MutationListener] = []

    @property
    def version(self) -> int:
        return self._version

    def add_listener(self, listener: MutationListener) -> None:
        """Register a callback invoked after every mutation."""
        self._listeners.append(listener)

    def hydrate(self, data: AtelierData) -> None:
        """
        Replace the aggregate wholesale with freshly loaded data.

        Does NOT notify listeners: hydrated state already matches the store.
        """
        with self._lock:
            self._data = data
        logger.info(
            f"Ledger hydrated: {len(data.orders)} orders, "
            f"{len(data.workstations)} workstations, "
            f"{len(data.notifications)} notifications"
        )

    @contextmanager
    def mutation(self) -> Iterator[AtelierData]:
        """
        Lock the aggregate for a read-check-write sequence.

        Listeners run once the lock is fully released, after the block exits
        normally. If the block raises, no version is recorded; callers
        validate before writing so an exception means nothing was changed.
        """
        with self._held() as data:
            yield data
            self._version += 1
            self._pending_version = self._version

    @contextmanager
    def reading(self) -> Iterator[AtelierData]:
        """Lock the aggregate for a consistent multi-step read."""
        with self._held() as data:
            yield data

    def snapshot(self) -> Dict[str, Any]:
        """Full aggregate in wire format, deep-copied under the lock."""
        with self._lock:
            return self._data.to_dict()

    def get_order(self, order_id: str) -> Optional[Order]:
        with self._lock:
            return self._data.find_order(order_id)

    def ticket_ids(self) -> List[str]:
        with self._lock:
            return [o.ticket_id for o in self._data.orders]

    @contextmanager
    def _held(self) -> Iterator[AtelierData]:
        """Hold the lock; notify listeners when the outermost holder lets go."""
        pending = None
        self._lock.acquire()
        self._depth += 1
        try:
            yield self._data
        finally:
            self._depth -= 1
            if self._depth == 0:
                pending, self._pending_version = self._pending_version, None
            self._lock.release()
            if pending is not None:
                self._notify(pending)

    def _notify(self, version: int) -> None:
        for listener in list(self._listeners):
            try:
                listener(version)
            except Exception as e:
                # A broken listener must not undo a mutation that already happened
                logger.error(f"Ledger listener failed: {e}", exc_info=True)
