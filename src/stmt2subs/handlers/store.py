from __future__ import annotations

import itertools
import logging
from typing import Any, Protocol

import requests

from stmt2subs.helpers.errors import AbortedError, StoreError
from stmt2subs.models import ExistingSubscription
from stmt2subs.workflow.runner import AbortSignal

logger = logging.getLogger(__name__)


class SubscriptionStore(Protocol):
    def list_subscriptions(
        self, signal: AbortSignal | None = None
    ) -> list[ExistingSubscription]: ...

    def create_subscription(
        self, body: dict[str, Any], signal: AbortSignal | None = None
    ) -> str: ...

    def update_subscription(
        self, subscription_id: str, patch: dict[str, Any], signal: AbortSignal | None = None
    ) -> None: ...


class HttpSubscriptionStore:
    """Client for the ``/api/subscriptions`` REST resource."""

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 15.0,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {"Authorization": f"Bearer {token}", "Accept": "application/json"}
        )

    def _url(self, suffix: str = "") -> str:
        return f"{self.base_url}/api/subscriptions{suffix}"

    def _request(
        self, method: str, url: str, signal: AbortSignal | None, **kwargs: Any
    ) -> requests.Response:
        if signal is not None:
            signal.raise_if_aborted()
            # Closing the session drops its pooled connection, which
            # interrupts a request blocked on the socket.
            signal.add_callback(self.session.close)
        logger.debug("%s %s", method, url)
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
            return response
        except requests.RequestException as exc:
            if signal is not None and signal.aborted:
                raise AbortedError(f"{method} {url} aborted") from exc
            raise StoreError(f"{method} {url} failed: {exc}") from exc
        finally:
            if signal is not None:
                signal.remove_callback(self.session.close)

    def list_subscriptions(
        self, signal: AbortSignal | None = None
    ) -> list[ExistingSubscription]:
        response = self._request("GET", self._url(), signal)
        try:
            payload = response.json()
        except ValueError as exc:
            raise StoreError("subscription list is not JSON") from exc
        if isinstance(payload, dict):
            payload = payload.get("subscriptions") or payload.get("items") or []
        if not isinstance(payload, list):
            raise StoreError("subscription list has unexpected shape")
        return [ExistingSubscription.from_record(item) for item in payload if isinstance(item, dict)]

    def create_subscription(
        self, body: dict[str, Any], signal: AbortSignal | None = None
    ) -> str:
        response = self._request("POST", self._url(), signal, json=body)
        location = response.headers.get("Location", "")
        if location:
            return location.rstrip("/").rsplit("/", 1)[-1]
        try:
            payload = response.json()
        except ValueError:
            return ""
        return str(payload.get("id") or payload.get("_id") or "")

    def update_subscription(
        self, subscription_id: str, patch: dict[str, Any], signal: AbortSignal | None = None
    ) -> None:
        self._request("PUT", self._url(f"/{subscription_id}"), signal, json=patch)


class InMemorySubscriptionStore:
    """Store kept in process memory; used for dry runs and tests."""

    def __init__(self, records: list[dict[str, Any]] | None = None) -> None:
        self._ids = itertools.count(1)
        self.records: list[dict[str, Any]] = []
        self.calls: list[tuple[str, Any]] = []
        for record in records or []:
            self.records.append({"id": record.get("id") or self._next_id(), **record})

    def _next_id(self) -> str:
        return f"sub-{next(self._ids)}"

    def list_subscriptions(
        self, signal: AbortSignal | None = None
    ) -> list[ExistingSubscription]:
        if signal is not None:
            signal.raise_if_aborted()
        self.calls.append(("list", None))
        return [ExistingSubscription.from_record(record) for record in self.records]

    def create_subscription(
        self, body: dict[str, Any], signal: AbortSignal | None = None
    ) -> str:
        if signal is not None:
            signal.raise_if_aborted()
        self.calls.append(("create", body))
        record = {"id": self._next_id(), "active": True, **body}
        self.records.append(record)
        return record["id"]

    def update_subscription(
        self, subscription_id: str, patch: dict[str, Any], signal: AbortSignal | None = None
    ) -> None:
        if signal is not None:
            signal.raise_if_aborted()
        self.calls.append(("update", (subscription_id, patch)))
        for record in self.records:
            if record["id"] == subscription_id:
                record.update(patch)
                return
        raise StoreError(f"subscription {subscription_id} not found")
