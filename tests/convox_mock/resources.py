"""Mock remote resource state and client handle.

Provides in-memory state for drains and a client handle implementing the
four resource primitives, with call recording and error injection.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from drain_controller.client import RemoteAPIError, ResourceNotFoundError
from drain_controller.models import RemoteResource


@dataclass
class MockDrain:
    """A drain as stored by the mock remote API."""

    name: str
    kind: str
    options: dict[str, str] = field(default_factory=dict)
    status: str = "running"
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_remote(self) -> RemoteResource:
        exports = {}
        if "Url" in self.options:
            exports["URL"] = self.options["Url"]
        return RemoteResource(
            name=self.name,
            kind=self.kind,
            status=self.status,
            exports=exports,
        )


@dataclass
class MockCall:
    """One recorded primitive invocation."""

    method: str
    args: tuple[Any, ...]
    cluster: str


class MockResourceState:
    """In-memory remote state shared by every handle built from one context."""

    def __init__(self) -> None:
        self._drains: dict[str, MockDrain] = {}
        self.calls: list[MockCall] = []
        self.failures: dict[str, RemoteAPIError] = {}

    @property
    def drain_count(self) -> int:
        return len(self._drains)

    def get_drain(self, name: str) -> MockDrain | None:
        return self._drains.get(name)

    def put_drain(self, drain: MockDrain) -> MockDrain:
        self._drains[drain.name] = drain
        return drain

    def remove_drain(self, name: str) -> MockDrain | None:
        return self._drains.pop(name, None)

    def fail(self, method: str, message: str = "simulated failure", status_code: int = 500) -> None:
        """Make every subsequent call to ``method`` raise RemoteAPIError."""
        self.failures[method] = RemoteAPIError(message, status_code=status_code)

    def calls_to(self, method: str) -> list[MockCall]:
        return [call for call in self.calls if call.method == method]

    def clear(self) -> None:
        self._drains.clear()
        self.calls.clear()
        self.failures.clear()


class MockConvoxClient:
    """Client handle backed by MockResourceState."""

    def __init__(self, state: MockResourceState, cluster: str) -> None:
        self._state = state
        self._cluster = cluster

    @property
    def cluster(self) -> str:
        return self._cluster

    def _record(self, method: str, *args: Any) -> None:
        self._state.calls.append(MockCall(method, copy.deepcopy(args), self._cluster))
        failure = self._state.failures.get(method)
        if failure is not None:
            raise failure

    def create_resource(self, kind: str, options: Mapping[str, str]) -> RemoteResource:
        self._record("create_resource", kind, dict(options))
        name = options.get("name")
        if not name:
            raise RemoteAPIError("name is required", status_code=400)
        if self._state.get_drain(name) is not None:
            raise RemoteAPIError(f"resource already exists: {name}", status_code=409)
        drain = MockDrain(
            name=name,
            kind=kind,
            options={k: v for k, v in options.items() if k != "name"},
        )
        return self._state.put_drain(drain).to_remote()

    def get_resource(self, name: str) -> RemoteResource:
        self._record("get_resource", name)
        drain = self._state.get_drain(name)
        if drain is None:
            raise ResourceNotFoundError(name)
        return drain.to_remote()

    def update_resource(self, name: str, options: Mapping[str, str]) -> RemoteResource:
        self._record("update_resource", name, dict(options))
        drain = self._state.get_drain(name)
        if drain is None:
            raise ResourceNotFoundError(name)
        drain.options.update(options)
        drain.updated_at = datetime.now(UTC)
        return drain.to_remote()

    def delete_resource(self, name: str) -> RemoteResource:
        self._record("delete_resource", name)
        drain = self._state.remove_drain(name)
        if drain is None:
            raise ResourceNotFoundError(name)
        return drain.to_remote()
