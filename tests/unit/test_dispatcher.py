"""
Unit tests for the dispatcher.

Tests cover:
- Deferral before identity resolution
- Sending after resolution
- Wire request shape and truncation
- DELETE never queued
"""

from datetime import datetime

import pytest

from profile_sdk.actions import ActionKind
from profile_sdk.config import ClientSettings
from profile_sdk.dispatcher import Dispatcher, build_wire_request
from profile_sdk.errors import TransportError, UsageError
from profile_sdk.identity import IdentityState
from profile_sdk.results import RequestOutcome, RequestResult
from profile_sdk.store import InMemoryPendingStore
from profile_sdk.transport import InMemoryTransport


@pytest.fixture
def settings():
    return ClientSettings(token="tok", api_host="https://api.test", truncate_length=8)


@pytest.fixture
def identity():
    return IdentityState(anonymous_id="anon")


@pytest.fixture
def store():
    return InMemoryPendingStore()


@pytest.fixture
def transport():
    return InMemoryTransport()


@pytest.fixture
def errors():
    return []


@pytest.fixture
def dispatcher(settings, identity, store, transport, errors):
    return Dispatcher(settings, identity, store, transport, report_error=errors.append)


class TestWireRequest:
    """Tests for build_wire_request."""

    def test_shape(self):
        assert build_wire_request(ActionKind.SET, {"a": 1}, "tok", "u1") == {
            "$set": {"a": 1},
            "$token": "tok",
            "$distinct_id": "u1",
        }


class TestDeferred:
    """Dispatch before identity resolution."""

    def test_no_transport_call_and_queued(self, dispatcher, transport, store):
        dispatcher.dispatch(ActionKind.SET, {"plan": "pro"})

        assert transport.requests == []
        assert store.current_queue_for(ActionKind.SET) == {"plan": "pro"}

    def test_continuation_gets_deferred_synchronously(self, dispatcher):
        results = []

        dispatcher.dispatch(ActionKind.ADD, {"n": 1}, results.append)

        assert len(results) == 1
        assert results[0].outcome is RequestOutcome.DEFERRED
        assert results[0].payload["$add"] == {"n": 1}

    def test_returns_truncated_preview(self, dispatcher):
        preview = dispatcher.dispatch(ActionKind.SET, {"bio": "x" * 50})

        assert preview["$set"]["bio"] == "x" * 8
        assert preview["$distinct_id"] == "anon"
        assert preview["$token"] == "tok"

    def test_store_gets_untruncated_payload(self, dispatcher, store):
        dispatcher.dispatch(ActionKind.SET, {"bio": "x" * 50})

        assert store.current_queue_for(ActionKind.SET) == {"bio": "x" * 50}

    def test_delete_is_not_queued(self, dispatcher, store, transport, errors):
        results = []

        dispatcher.dispatch(ActionKind.DELETE, "anon", results.append)

        assert store.is_empty()
        assert transport.requests == []
        assert results == []
        assert len(errors) == 1
        assert isinstance(errors[0], UsageError)


class TestResolved:
    """Dispatch after identity resolution."""

    @pytest.fixture(autouse=True)
    def resolve(self, identity):
        identity.resolve("user:42")

    def test_sends_one_request(self, dispatcher, transport, store):
        dispatcher.dispatch(ActionKind.SET, {"plan": "pro"})

        assert len(transport.requests) == 1
        request = transport.requests[0]
        assert request.url == "https://api.test/engage/"
        assert request.decoded() == {
            "$set": {"plan": "pro"},
            "$token": "tok",
            "$distinct_id": "user:42",
        }
        assert store.is_empty()

    def test_sent_request_is_truncated_and_date_encoded(self, dispatcher, transport):
        dispatcher.dispatch(
            ActionKind.SET,
            {"bio": "y" * 50, "at": datetime(2020, 1, 2, 3, 4, 5)},
        )

        sent = transport.requests[0].decoded()
        assert sent["$set"]["bio"] == "y" * 8
        # dates are encoded before truncation is applied
        assert sent["$set"]["at"] == "2020-01-"

    def test_continuation_not_called_until_transport_answers(self, dispatcher, transport):
        results = []

        dispatcher.dispatch(ActionKind.SET, {"a": 1}, results.append)
        assert results == []

        transport.succeed_all()

        assert len(results) == 1
        assert results[0].ok
        assert results[0].payload["$set"] == {"a": 1}

    def test_failure_forwarded_as_data(self, dispatcher, transport):
        results = []

        dispatcher.dispatch(ActionKind.SET, {"a": 1}, results.append)
        transport.respond_all(RequestResult.failure(TransportError("x")))

        assert results[0].failed

    def test_delete_carries_profile_id(self, dispatcher, transport):
        dispatcher.dispatch(ActionKind.DELETE, "user:42")

        assert transport.requests[0].decoded() == {
            "$delete": "user:42",
            "$token": "tok",
            "$distinct_id": "user:42",
        }
