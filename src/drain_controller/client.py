"""Remote API client contract and client provisioning.

The controller never talks to the remote API directly. It receives a
ClientProvider at construction time and asks it for a fresh ClientHandle
at the start of every lifecycle operation. Authentication, transport and
retry policy belong to whatever the provider returns.

Concrete API clients are plugged in through ``load_client_factory`` which
resolves a ``package.module:attribute`` import path to a factory callable.
"""

from __future__ import annotations

import importlib
import logging
import re
from collections.abc import Callable, Mapping
from typing import Any, Protocol, runtime_checkable

from .config import CLIENT_FACTORY_PATTERN, ConfigurationError
from .models import RemoteResource, SyslogDrainSpec

logger = logging.getLogger(__name__)


class RemoteAPIError(Exception):
    """Raised by client handles when a remote call fails."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ResourceNotFoundError(RemoteAPIError):
    """Raised by client handles when the named resource does not exist."""

    def __init__(self, name: str, message: str | None = None) -> None:
        super().__init__(message or f"no such resource: {name}", status_code=404)
        self.name = name


@runtime_checkable
class ClientHandle(Protocol):
    """Short-lived capability for the four remote resource primitives."""

    def create_resource(self, kind: str, options: Mapping[str, str]) -> RemoteResource: ...

    def get_resource(self, name: str) -> RemoteResource: ...

    def update_resource(self, name: str, options: Mapping[str, str]) -> RemoteResource: ...

    def delete_resource(self, name: str) -> RemoteResource: ...


class ClientProvider(Protocol):
    """Produces a ClientHandle for one lifecycle operation."""

    def acquire(
        self, spec: SyslogDrainSpec, context: Mapping[str, Any] | None = None
    ) -> ClientHandle: ...


ClientFactory = Callable[[str, Mapping[str, Any]], ClientHandle]
ClientUnpacker = Callable[[SyslogDrainSpec, Mapping[str, Any]], ClientHandle]


class FactoryClientProvider:
    """Builds a new handle per acquisition from a ``factory(cluster, context)``.

    Handles are never cached, so every operation gets a handle scoped to the
    drain's current cluster.
    """

    def __init__(self, factory: ClientFactory) -> None:
        self._factory = factory

    def acquire(
        self, spec: SyslogDrainSpec, context: Mapping[str, Any] | None = None
    ) -> ClientHandle:
        logger.debug("Building client handle", extra={"cluster": spec.cluster})
        return self._factory(spec.cluster, context or {})


class CallableClientProvider:
    """Adapts a plain ``fn(spec, context)`` function to the provider interface."""

    def __init__(self, unpacker: ClientUnpacker) -> None:
        self._unpacker = unpacker

    def acquire(
        self, spec: SyslogDrainSpec, context: Mapping[str, Any] | None = None
    ) -> ClientHandle:
        return self._unpacker(spec, context or {})


def load_client_factory(import_path: str) -> ClientFactory:
    """Resolve a client factory from a ``package.module:attribute`` path.

    Args:
        import_path: Location of the factory callable.

    Returns:
        The factory callable.

    Raises:
        ConfigurationError: If the path is malformed, cannot be imported, or
            does not name a callable.
    """
    if not re.match(CLIENT_FACTORY_PATTERN, import_path):
        raise ConfigurationError(
            f"Client factory must look like 'package.module:attribute': {import_path}"
        )

    module_name, _, attr_path = import_path.partition(":")
    try:
        target: Any = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import client factory module '{module_name}': {e}") from e

    for attr in attr_path.split("."):
        try:
            target = getattr(target, attr)
        except AttributeError as e:
            raise ConfigurationError(
                f"Client factory '{attr_path}' not found in module '{module_name}'"
            ) from e

    if not callable(target):
        raise ConfigurationError(f"Client factory is not callable: {import_path}")

    logger.info("Loaded client factory", extra={"client_factory": import_path})
    return target
