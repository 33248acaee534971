"""
Unit tests for the remote aggregate store client.

Requests are answered by an ``httpx.MockTransport``, so no server is needed.
"""

import json

import httpx
import pytest

from core.exceptions import AtelierNotFoundError, StoreUnavailableError
from core.remote_store import RemoteAtelierStore

from conftest import make_envelope


BASE_URL = "http://store.test/api"


def make_store(handler, token="secret-token"):
    return RemoteAtelierStore(BASE_URL, token=token, transport=httpx.MockTransport(handler))


class TestFetchAtelier:

    def test_parses_envelope(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json=make_envelope())

        store = make_store(handler)
        snapshot = store.fetch_atelier("atelier-test")

        assert seen == {"path": "/api/atelier/atelier-test", "auth": "Bearer secret-token"}
        assert snapshot.name == "Atelier Diop"
        assert len(snapshot.data.orders) == 5
        assert snapshot.data.find_workstation("ws-1").access_code == "POSTE-AB12"

    def test_no_token_no_auth_header(self):
        def handler(request):
            assert "Authorization" not in request.headers
            return httpx.Response(200, json=make_envelope())

        make_store(handler, token=None).fetch_atelier("atelier-test")

    def test_not_found(self):
        store = make_store(lambda request: httpx.Response(404, json={"message": "Atelier not found"}))
        with pytest.raises(AtelierNotFoundError) as exc_info:
            store.fetch_atelier("nope")
        assert exc_info.value.atelier_id == "nope"

    def test_server_error(self):
        store = make_store(lambda request: httpx.Response(500, text="Internal Server Error"))
        with pytest.raises(StoreUnavailableError) as exc_info:
            store.fetch_atelier("atelier-test")
        assert exc_info.value.status_code == 500

    def test_invalid_json(self):
        store = make_store(lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(StoreUnavailableError):
            store.fetch_atelier("atelier-test")

    def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("Connection refused", request=request)

        with pytest.raises(StoreUnavailableError) as exc_info:
            make_store(handler).fetch_atelier("atelier-test")
        assert exc_info.value.operation == "fetch"


class TestWriteAggregate:

    def test_puts_full_aggregate(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"message": "Data updated"})

        aggregate = make_envelope()["data"]
        make_store(handler).write_aggregate("atelier-test", aggregate)

        assert seen["method"] == "PUT"
        assert seen["path"] == "/api/atelier/atelier-test/data"
        assert seen["body"] == aggregate

    def test_rejected_write(self):
        store = make_store(lambda request: httpx.Response(401, json={"message": "Unauthorized"}))
        with pytest.raises(StoreUnavailableError) as exc_info:
            store.write_aggregate("atelier-test", {})
        assert exc_info.value.status_code == 401
        assert exc_info.value.operation == "write"

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(StoreUnavailableError):
            make_store(handler).write_aggregate("atelier-test", {})
