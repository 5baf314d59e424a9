"""
Profile client for the Profile SDK.

This module provides the public interface:
- ProfileClient: mutations on the current user's profile

Mutations made before identify() are buffered in the pending store and
flushed when identify() is called. Every mutation returns the truncated
wire request (for inspection) or None when the call was rejected.

Example:
    >>> async with ProfileClient(load_settings(token="abc")) as people:
    ...     people.set("plan", "premium")
    ...     people.increment("logins")
    ...     people.identify("user:42")

Invariants:
    - Reserved properties ($token, $distinct_id) are never sent by callers
    - delete_user() is never queued
    - Validation and usage errors are reported, not raised
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any, Optional
from urllib.parse import urlsplit

from .actions import ActionKind
from .config import ClientSettings, load_settings
from .consent import ConsentState, require_consent
from .dispatcher import Dispatcher, log_error
from .encoder import (
    MISSING,
    EncodedMutation,
    coerce_properties,
    encode_add,
    encode_append,
    encode_delete,
    encode_set,
    encode_set_once,
    encode_union,
    encode_unset,
    parse_number,
)
from .errors import ProfileError, UsageError, ValidationError
from .flush import FlushCoordinator, FlushReport
from .identity import IdentityState
from .results import Continuation
from .store import InMemoryPendingStore, PendingMutationStore, SqlitePendingStore
from .transport import HttpTransport, Transport

logger = logging.getLogger(__name__)

TRANSACTIONS_PROPERTY = "$transactions"
DIRECT_REFERRER = "$direct"

PropertiesProvider = Callable[[], Mapping[str, Any]]
ErrorHandler = Callable[[ProfileError], None]


class ProfileClient:
    """Mutations on one user profile.

    Wires the identity gate, pending store, transport, dispatcher and flush
    coordinator for one session. All collaborators can be injected.

    Attributes:
        settings: Client settings
        identity: Session identity gate
        store: Pending mutation store
        transport: Request transport
        consent: Opt-out state
    """

    def __init__(
        self,
        settings: ClientSettings | None = None,
        *,
        identity: IdentityState | None = None,
        store: PendingMutationStore | None = None,
        transport: Transport | None = None,
        consent: ConsentState | None = None,
        default_properties: PropertiesProvider | None = None,
        error_handler: ErrorHandler | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            settings: Client settings (loaded from the environment if omitted)
            identity: Identity gate (a fresh anonymous session if omitted)
            store: Pending store (SQLite if settings.store_path, else memory)
            transport: Transport (HttpTransport if omitted)
            consent: Opt-out state (opted in if omitted)
            default_properties: Properties merged under every set()
            error_handler: Receives every reported validation/usage error
        """
        self.settings = settings or load_settings()
        self.identity = identity or IdentityState()
        self.store = store or self._default_store(self.settings)
        self.transport = transport or HttpTransport(
            verbose=self.settings.verbose,
            timeout=self.settings.request_timeout,
        )
        self.consent = consent or ConsentState()
        self._default_properties = default_properties
        self._error_handler = error_handler
        self._referrer_info: dict[str, str] = {}

        self._dispatcher = Dispatcher(
            self.settings,
            self.identity,
            self.store,
            self.transport,
            report_error=self._report,
        )
        self._flusher = FlushCoordinator(self._dispatcher)

    @staticmethod
    def _default_store(settings: ClientSettings) -> PendingMutationStore:
        if settings.store_path:
            return SqlitePendingStore(settings.store_path)
        return InMemoryPendingStore()

    async def __aenter__(self) -> ProfileClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    async def drain(self) -> None:
        """Wait for every in-flight request to complete."""
        await self.transport.drain()

    async def aclose(self) -> None:
        """Wait for in-flight requests and close the transport."""
        await self.transport.aclose()

    # Identity

    def identify(
        self,
        profile_id: str,
        callbacks: Optional[Mapping[ActionKind, Continuation]] = None,
    ) -> FlushReport:
        """Resolve the profile identity and flush pending mutations.

        Args:
            profile_id: The user's profile identifier
            callbacks: Optional per-kind continuations for the flush

        Returns:
            FlushReport for the flush that followed
        """
        if self.identity.resolve(profile_id):
            logger.info("Profile identity resolved", extra={"profile_id": profile_id})
        return self._flusher.flush(callbacks)

    def flush(
        self,
        callbacks: Optional[Mapping[ActionKind, Continuation]] = None,
    ) -> FlushReport:
        """Replay pending mutations (after a previous flush left failures)."""
        return self._flusher.flush(callbacks)

    def update_referrer(self, referrer: Optional[str]) -> None:
        """Record the first referrer seen in this session.

        Later calls do not overwrite it. An empty referrer counts as a
        direct visit.
        """
        if not self.settings.save_referrer or self._referrer_info:
            return
        domain = urlsplit(referrer).hostname if referrer else None
        self._referrer_info = {
            "$initial_referrer": referrer or DIRECT_REFERRER,
            "$initial_referring_domain": domain or DIRECT_REFERRER,
        }

    # Mutations

    @require_consent
    def set(
        self,
        prop: str | Mapping[str, Any],
        value: Any = MISSING,
        *,
        callback: Optional[Continuation] = None,
    ) -> Optional[dict[str, Any]]:
        """Set properties on the profile.

        Usage:
            people.set("gender", "m")
            people.set({"Company": "Acme", "Plan": "Premium"})

        Args:
            prop: Property name, or mapping of names to values
            value: Value when ``prop`` is a name
            callback: Called with the RequestResult
        """
        encoded = encode_set(coerce_properties(prop, value))
        payload: dict[str, Any] = {}
        if self._default_properties is not None:
            payload.update(self._default_properties())
        if self.settings.save_referrer:
            payload.update(self._referrer_info)
        payload.update(encoded.payload)
        return self._dispatcher.dispatch(ActionKind.SET, payload, callback)

    @require_consent
    def set_once(
        self,
        prop: str | Mapping[str, Any],
        value: Any = MISSING,
        *,
        callback: Optional[Continuation] = None,
    ) -> Optional[dict[str, Any]]:
        """Set properties only if they are not yet set on the profile."""
        return self._send(encode_set_once(coerce_properties(prop, value)), callback)

    def unset(
        self,
        prop: str | Iterable[str],
        *,
        callback: Optional[Continuation] = None,
    ) -> Optional[dict[str, Any]]:
        """Remove one property, or several, from the profile."""
        return self._send(encode_unset(prop), callback)

    @require_consent
    def increment(
        self,
        prop: str | Mapping[str, Any],
        by: Any = MISSING,
        *,
        callback: Optional[Continuation] = None,
    ) -> Optional[dict[str, Any]]:
        """Increment (or, with a negative amount, decrement) numeric properties.

        Usage:
            people.increment("page_views")          # by 1
            people.increment("credits_left", -1)
            people.increment({"counter1": 1, "counter2": 6})

        Non-numeric amounts are dropped and reported; the other properties
        in the same call are still sent.
        """
        return self._send(encode_add(coerce_properties(prop, by, default=1)), callback)

    @require_consent
    def append(
        self,
        list_name: str | Mapping[str, Any],
        value: Any = MISSING,
        *,
        callback: Optional[Continuation] = None,
    ) -> Optional[dict[str, Any]]:
        """Append a value to a list property, creating it if needed."""
        return self._send(encode_append(coerce_properties(list_name, value)), callback)

    @require_consent
    def union(
        self,
        list_name: str | Mapping[str, Any],
        values: Any = MISSING,
        *,
        callback: Optional[Continuation] = None,
    ) -> Optional[dict[str, Any]]:
        """Merge values into a list property, skipping duplicates server-side."""
        return self._send(encode_union(coerce_properties(list_name, values)), callback)

    @require_consent
    def track_charge(
        self,
        amount: Any,
        properties: Optional[Mapping[str, Any]] = None,
        *,
        callback: Optional[Continuation] = None,
    ) -> Optional[dict[str, Any]]:
        """Record a charge in the profile's transaction list.

        Usage:
            people.track_charge(50)
            people.track_charge(30.50, {"$time": datetime(2012, 1, 2)})
        """
        number = parse_number(amount)
        if number is None:
            self._report(
                ValidationError(
                    "Invalid charge amount: must be a number",
                    property_name="$amount",
                    value=amount,
                )
            )
            return None

        charge = {"$amount": number}
        charge.update(properties or {})
        return self.append(TRANSACTIONS_PROPERTY, charge, callback=callback)

    def clear_charges(
        self,
        *,
        callback: Optional[Continuation] = None,
    ) -> Optional[dict[str, Any]]:
        """Remove every recorded charge from the profile.

        Not consent-gated, and unlike set() it does not add default
        properties or referrer info to the request.
        """
        return self._send(encode_set({TRANSACTIONS_PROPERTY: []}), callback)

    def delete_user(
        self,
        *,
        callback: Optional[Continuation] = None,
    ) -> Optional[dict[str, Any]]:
        """Permanently delete the profile.

        Requires identify() first; before that the call is reported as a
        usage error and nothing is sent or queued.
        """
        if not self.identity.is_resolved():
            self._report(UsageError("delete_user() requires identify() first", operation="delete_user"))
            return None
        return self._send(encode_delete(self.identity.current_profile_id()), callback)

    # Internals

    def _send(
        self,
        encoded: EncodedMutation,
        callback: Optional[Continuation],
    ) -> Optional[dict[str, Any]]:
        for error in encoded.errors:
            self._report(error)
        if encoded.errors and encoded.is_empty:
            return None
        return self._dispatcher.dispatch(encoded.kind, encoded.payload, callback)

    def _report(self, error: ProfileError) -> None:
        log_error(error)
        if self._error_handler is not None:
            self._error_handler(error)

    def __repr__(self) -> str:
        return f"ProfileClient(identity={self.identity!r})"
