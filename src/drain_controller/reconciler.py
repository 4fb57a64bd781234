"""Lifecycle reconciliation for the syslog drain resource.

The reconciler maps a declared SyslogDrainSpec onto the remote API:

    create  absent  -> present   CreateResource("syslog", options)
    read    present -> present   GetResource(name)
    update  present -> present   UpdateResource(name, options)
    delete  present -> absent    DeleteResource(name)

Each operation acquires a fresh client handle from the injected provider,
performs exactly one remote call and, for create/read/update, writes the
drain URL back into the declared state. Nothing is retried and nothing
waits for the remote side to converge after a mutation. Whatever a
primitive raises, transport errors included, comes back as RemoteCallError.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from .client import ClientHandle, ClientProvider, ResourceNotFoundError
from .config import SYSLOG_RESOURCE_KIND, ConfigurationError
from .models import (
    OPTION_NAME,
    OPTION_PRIVATE,
    OPTION_URL,
    SyslogDrainSpec,
    format_option_value,
)


class ProviderNotConfiguredError(ConfigurationError):
    """Raised when a lifecycle operation runs without a client provider."""

    pass


class ReconcileError(Exception):
    """Base class for lifecycle operation failures."""

    def __init__(self, message: str, operation: str) -> None:
        super().__init__(message)
        self.operation = operation


class ClientAcquisitionError(ReconcileError):
    """Raised when the provider cannot produce a client handle."""

    pass


class RemoteCallError(ReconcileError):
    """Raised when a remote primitive fails.

    ``options`` holds the exact payload attempted for create/update.
    """

    def __init__(
        self,
        message: str,
        operation: str,
        remote_message: str,
        options: dict[str, str] | None = None,
    ) -> None:
        super().__init__(message, operation)
        self.remote_message = remote_message
        self.options = options


class DrainNotFoundError(RemoteCallError):
    """Raised by read when the remote drain no longer exists.

    The declared state is left untouched; dropping the record is the
    caller's decision.
    """

    pass


def build_options(spec: SyslogDrainSpec, *, include_name: bool) -> dict[str, str]:
    """Build the option payload for create or update.

    ``Private`` is present only when the declaration sets it explicitly.
    """
    options: dict[str, str] = {}
    if include_name:
        options[OPTION_NAME] = spec.name
    options[OPTION_URL] = spec.composed_url()

    if spec.private_is_set:
        options[OPTION_PRIVATE] = format_option_value(spec.private)

    return options


class SyslogReconciler:
    """Create, read, update and delete a syslog drain on the remote API.

    Args:
        provider: Source of client handles. Checked on every call rather than
            at construction so that a missing provider surfaces as an error
            from the operation that needed it.
        logger: Logger for operation events. Defaults to the module logger.
    """

    def __init__(
        self,
        provider: ClientProvider | None,
        logger: logging.Logger | logging.LoggerAdapter[Any] | None = None,
    ) -> None:
        self._provider = provider
        self._logger = logger if logger is not None else logging.getLogger(__name__)

    @property
    def provider(self) -> ClientProvider | None:
        return self._provider

    def create(self, spec: SyslogDrainSpec, context: Mapping[str, Any] | None = None) -> None:
        """Create the remote drain and record its URL."""
        client = self._acquire("create", spec, context)

        options = build_options(spec, include_name=True)

        self._logger.info(
            "Calling CreateResource",
            extra={"operation": "create", "drain": spec.name, "cluster": spec.cluster},
        )
        try:
            client.create_resource(SYSLOG_RESOURCE_KIND, options)
        except Exception as e:
            raise self._remote_failure("create", "CreateResource", spec, e, options) from e

        # TODO: poll GetResource until the drain status settles before recording the URL
        spec.url = options[OPTION_URL]

    def read(self, spec: SyslogDrainSpec, context: Mapping[str, Any] | None = None) -> None:
        """Refresh the recorded URL from the remote drain's exports."""
        client = self._acquire("read", spec, context)

        self._logger.info(
            "Calling GetResource",
            extra={"operation": "read", "drain": spec.name, "cluster": spec.cluster},
        )
        try:
            resource = client.get_resource(spec.name)
        except ResourceNotFoundError as e:
            self._logger.warning(
                "Drain not found on remote",
                extra={"operation": "read", "drain": spec.name, "cluster": spec.cluster},
            )
            raise DrainNotFoundError(
                f"Error calling GetResource: {e}",
                operation="read",
                remote_message=str(e),
            ) from e
        except Exception as e:
            raise self._remote_failure("read", "GetResource", spec, e) from e

        spec.url = resource.url

    def update(self, spec: SyslogDrainSpec, context: Mapping[str, Any] | None = None) -> None:
        """Push mutable fields to the remote drain and record its URL."""
        client = self._acquire("update", spec, context)

        # name and cluster are immutable and never part of the update payload
        options = build_options(spec, include_name=False)

        self._logger.info(
            "Calling UpdateResource",
            extra={"operation": "update", "drain": spec.name, "cluster": spec.cluster},
        )
        try:
            client.update_resource(spec.name, options)
        except Exception as e:
            raise self._remote_failure("update", "UpdateResource", spec, e, options) from e

        spec.url = options[OPTION_URL]

    def delete(self, spec: SyslogDrainSpec, context: Mapping[str, Any] | None = None) -> None:
        """Delete the remote drain. The declared record is left to the caller."""
        client = self._acquire("delete", spec, context)

        self._logger.info(
            "Calling DeleteResource",
            extra={"operation": "delete", "drain": spec.name, "cluster": spec.cluster},
        )
        try:
            client.delete_resource(spec.name)
        except Exception as e:
            raise self._remote_failure("delete", "DeleteResource", spec, e) from e

    def _acquire(
        self,
        operation: str,
        spec: SyslogDrainSpec,
        context: Mapping[str, Any] | None,
    ) -> ClientHandle:
        if self._provider is None:
            raise ProviderNotConfiguredError("client provider is required")

        try:
            client = self._provider.acquire(spec, context)
        except Exception as e:
            self._logger.error(
                "Client acquisition failed",
                extra={"operation": operation, "drain": spec.name, "error": str(e)},
            )
            raise ClientAcquisitionError(
                f"Error unpacking client in {operation}: {e}", operation=operation
            ) from e

        if client is None:
            raise ClientAcquisitionError(
                f"Error unpacking client in {operation}: provider returned no client",
                operation=operation,
            )
        return client

    def _remote_failure(
        self,
        operation: str,
        primitive: str,
        spec: SyslogDrainSpec,
        error: Exception,
        options: dict[str, str] | None = None,
    ) -> RemoteCallError:
        message = f"Error calling {primitive}: {error}"
        if options is not None:
            message = f"{message} -- {options}"

        self._logger.error(
            f"{primitive} failed",
            extra={
                "operation": operation,
                "drain": spec.name,
                "cluster": spec.cluster,
                "error": str(error),
                "status_code": getattr(error, "status_code", None),
            },
        )
        return RemoteCallError(
            message,
            operation=operation,
            remote_message=str(error),
            options=options,
        )
