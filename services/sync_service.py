"""
Persistence synchronizer with a background flush thread.

Mirrors the in-memory ledger to the remote aggregate store. Local state is
always the source of truth: every mutation is applied to the ledger first,
and this service writes the WHOLE aggregate back later.

Debounce:
    Each ledger mutation marks the aggregate dirty and restarts a quiet
    window (1 second by default). The background thread wakes on a short
    fixed interval and flushes only when the aggregate is dirty AND the
    window has elapsed since the last mutation. N mutations inside one
    window therefore produce exactly one write, carrying the state as of
    the last mutation.

Failures:
    A failed write is logged, the aggregate stays dirty, and the next
    attempt waits an exponential backoff. Failures never reach request
    handlers. Concurrent writers are not reconciled: last write wins.

Thread Safety:
    - ``_state_lock`` guards dirty flag, timestamps and counters
    - The ledger lock is never requested while ``_state_lock`` is held
    - Only the sync thread (or ``flush_now`` at shutdown) talks to the store

Usage:
    sync = SyncService(ledger, store, atelier_id)
    sync.hydrate()
    sync.start()
    ...
    sync.stop()        # flushes anything pending
"""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Dict, Optional

from core.exceptions import StoreUnavailableError
from core.remote_store import RemoteAtelierStore
from models.atelier import AtelierSnapshot, SubscriptionState
from services.ledger import OrderLedger
from logging_config import get_logger, set_thread_name


logger = get_logger(__name__)


class SyncService:
    """
    Debounced write-through of the ledger to the remote store.

    Attributes:
        debounce_seconds: Quiet period required before a flush
        is_running: Whether the background thread is active
    """

    def __init__(
        self,
        ledger: OrderLedger,
        store: RemoteAtelierStore,
        atelier_id: str,
        debounce_seconds: float = 1.0,
        poll_interval_seconds: float = 0.1,
        retry_base_seconds: float = 2.0,
        retry_max_seconds: float = 60.0,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize the synchronizer.

        Args:
            ledger: Ledger to mirror (the service subscribes to its mutations)
            store: Remote aggregate store
            atelier_id: Workshop id used in the store URLs
            debounce_seconds: Quiet window after the last mutation
            poll_interval_seconds: Background thread wake-up interval
            retry_base_seconds: First backoff after a failed write
            retry_max_seconds: Backoff cap
            clock: Monotonic clock (tests inject a fake one)
        """
        if not atelier_id:
            raise ValueError("atelier_id is required for the sync service")

        self._ledger = ledger
        self._store = store
        self._atelier_id = atelier_id
        self._debounce = debounce_seconds
        self._poll_interval = poll_interval_seconds
        self._retry_base = retry_base_seconds
        self._retry_max = retry_max_seconds
        self._clock = clock or time.monotonic

        # Debounce / retry state
        self._state_lock = threading.Lock()
        self._dirty = False
        self._last_mutation_at = 0.0
        self._retry_at = 0.0
        self._consecutive_failures = 0
        self._flush_count = 0
        self._failure_count = 0
        self._last_error: Optional[str] = None
        self._flush_lock = threading.Lock()

        # Thread control
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._is_running = False

        self._subscription = SubscriptionState()
        self._atelier_name = ""

        ledger.add_listener(self.mark_dirty)

        logger.info(
            f"SyncService initialized for atelier {atelier_id} "
            f"(debounce: {debounce_seconds}s, poll: {poll_interval_seconds}s)"
        )

    @property
    def is_running(self) -> bool:
        return self._is_running

    @property
    def debounce_seconds(self) -> float:
        return self._debounce

    @property
    def is_dirty(self) -> bool:
        with self._state_lock:
            return self._dirty

    @property
    def subscription(self) -> SubscriptionState:
        """Subscription as fetched at hydration."""
        return self._subscription

    @property
    def atelier_name(self) -> str:
        return self._atelier_name

    # =========================================================================
    # HYDRATION
    # =========================================================================

    def hydrate(self) -> AtelierSnapshot:
        """
        Load the ledger from the remote store.

        Called once at startup. Does not mark the aggregate dirty.

        Raises:
            AtelierNotFoundError / StoreUnavailableError: The app cannot start
        """
        snapshot = self._store.fetch_atelier(self._atelier_id)
        self._ledger.hydrate(snapshot.data)
        self._subscription = snapshot.subscription
        self._atelier_name = snapshot.name
        with self._state_lock:
            self._dirty = False
        return snapshot

    # =========================================================================
    # DEBOUNCE
    # =========================================================================

    def mark_dirty(self, version: int = 0) -> None:
        """
        Ledger listener: record a mutation and restart the quiet window.

        Args:
            version: Ledger version after the mutation (for logging only)
        """
        with self._state_lock:
            self._dirty = True
            self._last_mutation_at = self._clock()
        logger.debug(f"Aggregate dirty (ledger version {version})")

    def tick(self) -> bool:
        """
        Flush if dirty and the quiet window (and any backoff) has elapsed.

        Returns:
            True if a write was attempted
        """
        now = self._clock()
        with self._state_lock:
            if not self._dirty:
                return False
            if now - self._last_mutation_at < self._debounce:
                return False
            if now < self._retry_at:
                return False
        return self._flush()

    def flush_now(self) -> bool:
        """
        Write immediately if dirty, ignoring the quiet window and backoff.

        Used at shutdown so a clean exit does not drop the last window.

        Returns:
            True if a write was attempted
        """
        if not self.is_dirty:
            return False
        return self._flush()

    def _flush(self) -> bool:
        """
        Write the full aggregate once.

        The dirty flag is cleared BEFORE the snapshot is taken, so a mutation
        racing with the write marks it dirty again and is flushed next time.
        """
        with self._flush_lock:
            with self._state_lock:
                if not self._dirty:
                    return False
                self._dirty = False

            try:
                payload = self._ledger.snapshot()
                self._store.write_aggregate(self._atelier_id, payload)
            except StoreUnavailableError as e:
                self._record_failure(str(e))
                return True
            except Exception as e:
                # e.g. an aggregate that cannot be serialised; still retried with backoff
                logger.error(f"Unexpected error while flushing aggregate: {e}", exc_info=True)
                self._record_failure(f"{type(e).__name__}: {e}")
                return True

            with self._state_lock:
                self._flush_count += 1
                self._consecutive_failures = 0
                self._retry_at = 0.0
                self._last_error = None

            logger.info(
                f"Aggregate flushed: {len(payload.get('orders', []))} orders, "
                f"{len(payload.get('notifications', []))} notifications"
            )
            return True

    def _record_failure(self, error: str) -> None:
        with self._state_lock:
            # Keep the unflushed state for the next attempt
            self._dirty = True
            self._failure_count += 1
            self._consecutive_failures += 1
            backoff = min(
                self._retry_base * (2 ** (self._consecutive_failures - 1)),
                self._retry_max,
            )
            self._retry_at = self._clock() + backoff
            self._last_error = error
            failures = self._consecutive_failures

        if failures == 1:
            logger.warning(f"Aggregate flush failed, retrying in {backoff:.1f}s: {error}")
        else:
            logger.error(f"Aggregate flush failed {failures} times in a row, retrying in {backoff:.1f}s: {error}")

    # =========================================================================
    # THREAD LIFECYCLE
    # =========================================================================

    def start(self) -> None:
        """
        Start the background flush thread.

        Safe to call multiple times - only starts if not already running.
        """
        if self._is_running:
            logger.warning("SyncService already running")
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._sync_loop,
            name="Sync",
            daemon=True
        )
        self._is_running = True
        self._thread.start()
        logger.info("Sync thread started")

    def stop(self, timeout: float = 5.0, flush: bool = True) -> None:
        """
        Stop the background thread, then flush anything still pending.

        Args:
            timeout: Max seconds to wait for the thread
            flush: Whether to force a final flush
        """
        if self._is_running:
            logger.info("Stopping sync thread...")
            self._stop_event.set()
            if self._thread:
                self._thread.join(timeout=timeout)
                if self._thread.is_alive():
                    logger.warning("Sync thread did not stop within timeout")
            self._is_running = False

        if flush and self.flush_now():
            logger.info("Pending changes flushed at shutdown")

    def _sync_loop(self) -> None:
        set_thread_name("Sync")
        logger.info("Sync loop started")

        while not self._stop_event.wait(timeout=self._poll_interval):
            try:
                self.tick()
            except Exception as e:
                # Keep the loop alive; the next tick retries
                logger.error(f"Unexpected error in sync loop: {e}", exc_info=True)

        logger.info("Sync loop exited")

    # =========================================================================
    # STATUS
    # =========================================================================

    def stats(self) -> Dict[str, Any]:
        with self._state_lock:
            return {
                "dirty": self._dirty,
                "flush_count": self._flush_count,
                "failure_count": self._failure_count,
                "consecutive_failures": self._consecutive_failures,
                "last_error": self._last_error,
                "running": self._is_running,
            }
