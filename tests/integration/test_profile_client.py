"""
Integration tests for ProfileClient.

Wires the real encoder, dispatcher, store and flush coordinator against an
InMemoryTransport (and, for the async lifecycle, HttpTransport over
httpx.MockTransport).

Tests cover:
- Buffering before identify() and flushing after
- Validation and usage error reporting
- Charges, referrer and default properties
- Consent gating
- Async lifecycle
"""

import tempfile
from datetime import datetime
from decimal import Decimal
from pathlib import Path

import httpx
import pytest

from profile_sdk import (
    ActionKind,
    ClientSettings,
    ConsentState,
    HttpTransport,
    IdentityState,
    InMemoryPendingStore,
    InMemoryTransport,
    ProfileClient,
    RequestOutcome,
    SqlitePendingStore,
    UsageError,
    ValidationError,
)


@pytest.fixture
def settings():
    return ClientSettings(token="tok", api_host="https://api.test")


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
def people(settings, store, transport, errors):
    """Client with an unresolved anonymous identity."""
    return ProfileClient(
        settings,
        identity=IdentityState(anonymous_id="anon"),
        store=store,
        transport=transport,
        error_handler=errors.append,
    )


def actions(transport):
    """Wire requests without the token and id fields."""
    return [
        {k: v for k, v in request.items() if k not in ("$token", "$distinct_id")}
        for request in transport.decoded_requests()
    ]


class TestBeforeIdentify:
    """Mutations before identify() are buffered."""

    def test_no_requests_and_queued(self, people, store, transport):
        people.set("plan", "pro")
        people.set_once("first_seen", "mon")
        people.increment("logins")
        people.append("log", "a")
        people.union("tags", "x")
        people.unset("legacy")

        assert transport.requests == []
        assert store.current_queue_for(ActionKind.SET) == {"plan": "pro"}
        assert store.current_queue_for(ActionKind.SET_ONCE) == {"first_seen": "mon"}
        assert store.current_queue_for(ActionKind.ADD) == {"logins": 1}
        assert store.current_queue_for(ActionKind.APPEND) == [{"log": "a"}]
        assert store.current_queue_for(ActionKind.UNION) == {"tags": ["x"]}
        assert store.current_queue_for(ActionKind.UNSET) == {"legacy": True}

    def test_callback_gets_deferred(self, people):
        results = []

        people.set("plan", "pro", callback=results.append)

        assert results[0].outcome is RequestOutcome.DEFERRED

    def test_returns_request_preview(self, people):
        preview = people.set({"plan": "pro"})

        assert preview == {"$set": {"plan": "pro"}, "$token": "tok", "$distinct_id": "anon"}

    def test_reserved_properties_dropped(self, people, store):
        people.set({"$distinct_id": "spoofed", "$token": "other", "plan": "pro"})

        assert store.current_queue_for(ActionKind.SET) == {"plan": "pro"}


class TestIdentify:
    """identify() resolves identity and flushes."""

    def test_flush_drains_store(self, people, store, transport):
        people.set("plan", "pro")
        people.increment({"logins": 2})

        report = people.identify("user:42")
        transport.succeed_all()

        assert report.total == 2
        assert store.is_empty()
        assert {r["$distinct_id"] for r in transport.decoded_requests()} == {"user:42"}

    def test_union_values_merged(self, people, transport):
        people.union("tag", "x")
        people.union("tag", "y")

        people.identify("user:42")

        (request,) = actions(transport)
        assert sorted(request["$union"]["tag"]) == ["x", "y"]

    def test_three_appends_three_requests(self, people, transport):
        for value in ("a", "b", "c"):
            people.append("log", value)

        people.identify("user:42")

        sent = [request["$append"]["log"] for request in actions(transport)]
        assert sorted(sent) == ["a", "b", "c"]

    def test_failed_flush_keeps_entry(self, people, store, transport):
        people.set("plan", "pro")

        people.identify("user:42")
        transport.fail_all()

        assert store.current_queue_for(ActionKind.SET) == {"plan": "pro"}

        people.flush()
        transport.succeed_all()

        assert store.is_empty()

    def test_identify_without_event_loop_keeps_queue(self, settings, store, errors):
        people = ProfileClient(
            settings,
            identity=IdentityState(anonymous_id="anon"),
            store=store,
            transport=HttpTransport(),
            error_handler=errors.append,
        )
        people.set("plan", "pro")
        people.increment("logins")

        report = people.identify("user:42")

        assert report.requests == {ActionKind.SET: 1, ActionKind.ADD: 1}
        assert store.current_queue_for(ActionKind.SET) == {"plan": "pro"}
        assert store.current_queue_for(ActionKind.ADD) == {"logins": 1}

    def test_mutations_after_identify_sent_directly(self, people, store, transport):
        people.identify("user:42")

        people.set("plan", "pro")

        assert actions(transport) == [{"$set": {"plan": "pro"}}]
        assert store.is_empty()


class TestValidation:
    """Validation errors are reported, not raised."""

    def test_bad_increment_amount(self, people, store, errors):
        people.increment({"a": 1, "b": "oops"})

        assert store.current_queue_for(ActionKind.ADD) == {"a": 1}
        assert len(errors) == 1
        assert isinstance(errors[0], ValidationError)

    def test_all_amounts_invalid_sends_nothing(self, people, store, transport, errors):
        people.identify("user:42")

        assert people.increment("score", "oops") is None
        assert transport.requests == []
        assert len(errors) == 1


class TestDeleteUser:
    """delete_user() needs a resolved identity."""

    def test_before_identify(self, people, store, transport, errors):
        assert people.delete_user() is None

        assert transport.requests == []
        assert store.is_empty()
        assert len(errors) == 1
        assert isinstance(errors[0], UsageError)

    def test_after_identify(self, people, transport, errors):
        people.identify("user:42")

        people.delete_user()

        assert transport.decoded_requests() == [
            {"$delete": "user:42", "$token": "tok", "$distinct_id": "user:42"}
        ]
        assert errors == []


class TestCharges:
    """track_charge() and clear_charges()."""

    @pytest.fixture(autouse=True)
    def resolve(self, people):
        people.identify("user:42")

    def test_track_charge_appends_transaction(self, people, transport):
        people.track_charge(30.5, {"$time": datetime(2012, 1, 2, 3, 4, 5)})

        assert actions(transport) == [
            {"$append": {"$transactions": {"$amount": 30.5, "$time": "2012-01-02T03:04:05"}}}
        ]

    def test_numeric_string_amount(self, people, transport):
        people.track_charge("50")

        assert actions(transport)[0]["$append"]["$transactions"] == {"$amount": 50}

    def test_invalid_amount_reported(self, people, transport, errors):
        assert people.track_charge("free") is None

        assert transport.requests == []
        assert isinstance(errors[0], ValidationError)
        assert errors[0].property_name == "$amount"

    def test_clear_charges(self, people, transport):
        people.clear_charges()

        assert actions(transport) == [{"$set": {"$transactions": []}}]


class TestSetEnrichment:
    """Default properties and referrer info under set()."""

    def test_default_properties_under_caller_values(self, settings, transport):
        people = ProfileClient(
            settings,
            identity=IdentityState(anonymous_id="anon"),
            store=InMemoryPendingStore(),
            transport=transport,
            default_properties=lambda: {"$os": "Linux", "plan": "default"},
        )
        people.identify("user:42")

        people.set("plan", "pro")

        assert actions(transport) == [{"$set": {"$os": "Linux", "plan": "pro"}}]

    def test_clear_charges_without_enrichment(self, settings, transport):
        people = ProfileClient(
            settings,
            identity=IdentityState(anonymous_id="anon"),
            store=InMemoryPendingStore(),
            transport=transport,
            default_properties=lambda: {"$os": "Linux"},
        )
        people.identify("user:42")
        people.update_referrer("https://www.search.test/")

        people.clear_charges()

        assert actions(transport) == [{"$set": {"$transactions": []}}]

    def test_first_referrer_attached(self, people, transport):
        people.identify("user:42")
        people.update_referrer("https://www.search.test/q?x=1")
        people.update_referrer("https://later.test/")

        people.set("plan", "pro")

        assert actions(transport)[0]["$set"] == {
            "$initial_referrer": "https://www.search.test/q?x=1",
            "$initial_referring_domain": "www.search.test",
            "plan": "pro",
        }

    def test_direct_visit(self, people, transport):
        people.identify("user:42")
        people.update_referrer(None)

        people.set("plan", "pro")

        assert actions(transport)[0]["$set"]["$initial_referrer"] == "$direct"
        assert actions(transport)[0]["$set"]["$initial_referring_domain"] == "$direct"

    def test_referrer_disabled(self, transport):
        people = ProfileClient(
            ClientSettings(token="tok", api_host="https://api.test", save_referrer=False),
            identity=IdentityState(anonymous_id="anon"),
            store=InMemoryPendingStore(),
            transport=transport,
        )
        people.identify("user:42")
        people.update_referrer("https://www.search.test/")

        people.set("plan", "pro")

        assert actions(transport) == [{"$set": {"plan": "pro"}}]


class TestConsent:
    """Opted-out users produce no queue entries and no requests."""

    @pytest.fixture
    def opted_out(self, settings, store, transport):
        return ProfileClient(
            settings,
            identity=IdentityState(anonymous_id="anon"),
            store=store,
            transport=transport,
            consent=ConsentState(opted_out=True),
        )

    def test_gated_mutations_skipped(self, opted_out, store, transport):
        results = []

        assert opted_out.set("plan", "pro", callback=results.append) is None
        assert opted_out.set_once("first", "mon") is None
        assert opted_out.increment("logins") is None
        assert opted_out.append("log", "a") is None
        assert opted_out.union("tags", "x") is None
        assert opted_out.track_charge(10) is None

        assert store.is_empty()
        assert transport.requests == []
        assert results == []

    def test_unset_not_gated(self, opted_out, store):
        opted_out.unset("plan")

        assert store.current_queue_for(ActionKind.UNSET) == {"plan": True}

    def test_clear_charges_not_gated(self, opted_out, transport):
        opted_out.identify("user:42")

        opted_out.clear_charges()

        assert actions(transport) == [{"$set": {"$transactions": []}}]

    def test_opt_back_in(self, opted_out, store):
        opted_out.consent.opt_in()

        opted_out.set("plan", "pro")

        assert store.current_queue_for(ActionKind.SET) == {"plan": "pro"}


class TestDefaults:
    """Collaborators built from settings."""

    def test_store_path_selects_sqlite(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            settings = ClientSettings(store_path=str(Path(tmpdir) / "pending.db"))

            people = ProfileClient(settings, transport=InMemoryTransport())

            assert isinstance(people.store, SqlitePendingStore)

    def test_sqlite_store_accepts_decimal_values(self, settings):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "pending.db"
            people = ProfileClient(
                settings,
                identity=IdentityState(anonymous_id="anon"),
                store=SqlitePendingStore(path),
                transport=InMemoryTransport(),
            )

            people.set("price", Decimal("9.99"))

            reopened = SqlitePendingStore(path)
            assert reopened.current_queue_for(ActionKind.SET) == {"price": "9.99"}

    def test_memory_store_by_default(self, settings):
        people = ProfileClient(settings, transport=InMemoryTransport())

        assert isinstance(people.store, InMemoryPendingStore)
        assert isinstance(people.transport, InMemoryTransport)
        assert not people.identity.is_resolved()


class TestLifecycle:
    """Async lifecycle with the HTTP transport."""

    @pytest.mark.asyncio
    async def test_context_manager_drains_requests(self, settings):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, text="1")

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        results = []

        async with ProfileClient(
            settings,
            identity=IdentityState(anonymous_id="anon"),
            store=InMemoryPendingStore(),
            transport=HttpTransport(client=client),
        ) as people:
            people.set("plan", "pro", callback=results.append)
            people.identify("user:42", callbacks={ActionKind.SET: results.append})
            people.increment("logins", callback=results.append)

        assert len(seen) == 2
        assert {str(request.url) for request in seen} == {"https://api.test/engage/"}
        assert results[0].outcome is RequestOutcome.DEFERRED
        assert [r.outcome for r in results[1:]] == [RequestOutcome.SUCCESS] * 2
        await client.aclose()
