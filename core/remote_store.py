"""
HTTP client for the remote atelier aggregate store.

The store exposes exactly two operations the dispatch core needs:

    GET  {base_url}/atelier/{id}        -> snapshot envelope (hydration)
    PUT  {base_url}/atelier/{id}/data   -> full aggregate, replace semantics

There is no partial update: the aggregate is the unit of durability.

THREAD SAFETY:
    ``httpx.Client`` is safe to share between threads. In practice only two
    threads use it: the main thread at startup (fetch) and the sync thread
    (write).

Usage:
    store = RemoteAtelierStore("https://api.example.com/api", token="...")
    snapshot = store.fetch_atelier("atelier-42")
    store.write_aggregate("atelier-42", snapshot.data.to_dict())
    store.close()
"""

from __future__ import annotations

from typing import Dict, Any, Optional

import httpx

from .exceptions import AtelierNotFoundError, StoreUnavailableError
from models.atelier import AtelierSnapshot
from logging_config import get_logger


logger = get_logger(__name__)


class RemoteAtelierStore:
    """
    Thin wrapper over ``httpx.Client`` for the aggregate endpoints.

    Every failure (network error, timeout, non-2xx) is turned into
    ``StoreUnavailableError`` so callers handle one exception type.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize the store client.

        Args:
            base_url: API root, e.g. ``http://localhost:5000/api``
            token: Optional bearer token
            timeout_seconds: Per-request timeout
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        )
        self._base_url = base_url
        logger.debug(f"RemoteAtelierStore initialized for {base_url}")

    @property
    def base_url(self) -> str:
        return self._base_url

    def fetch_atelier(self, atelier_id: str) -> AtelierSnapshot:
        """
        Fetch the full atelier snapshot.

        Args:
            atelier_id: Workshop id

        Returns:
            Parsed AtelierSnapshot

        Raises:
            AtelierNotFoundError: If the store answers 404
            StoreUnavailableError: On network failure, other non-2xx, or bad JSON
        """
        logger.info(f"Fetching atelier {atelier_id} from remote store...")

        try:
            response = self._client.get(f"/atelier/{atelier_id}")
        except httpx.HTTPError as e:
            logger.error(f"Fetch of atelier {atelier_id} failed: {e}")
            raise StoreUnavailableError("fetch", str(e))

        if response.status_code == 404:
            raise AtelierNotFoundError(atelier_id)
        if not response.is_success:
            raise StoreUnavailableError(
                "fetch", f"HTTP {response.status_code}", response.status_code
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise StoreUnavailableError("fetch", f"Invalid JSON in response: {e}")

        snapshot = AtelierSnapshot.from_dict(payload, atelier_id)
        logger.info(
            f"Atelier {atelier_id} fetched: {len(snapshot.data.orders)} orders, "
            f"{len(snapshot.data.workstations)} workstations"
        )
        return snapshot

    def write_aggregate(self, atelier_id: str, aggregate: Dict[str, Any]) -> None:
        """
        Replace the remote aggregate with ``aggregate``.

        Args:
            atelier_id: Workshop id
            aggregate: Full AtelierData in wire format

        Raises:
            StoreUnavailableError: On network failure or non-2xx
        """
        try:
            response = self._client.put(f"/atelier/{atelier_id}/data", json=aggregate)
        except httpx.HTTPError as e:
            raise StoreUnavailableError("write", str(e))

        if not response.is_success:
            raise StoreUnavailableError(
                "write", f"HTTP {response.status_code}", response.status_code
            )

        logger.debug(f"Aggregate for atelier {atelier_id} written ({response.status_code})")

    def close(self) -> None:
        """Close the underlying connection pool."""
        self._client.close()
