"""Pydantic models for syslog drain declarations with validation.

These models provide:
1. Type-safe YAML parsing
2. Validation at the boundary (fail fast, fail loudly)
3. Field metadata describing which attributes force replacement and which
   are computed by the controller
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Annotated, Any

from pydantic import BaseModel, Field, field_validator

from .config import (
    MAX_DRAIN_NAME_LENGTH,
    MAX_HOSTNAME_LENGTH,
    MAX_PORT,
    MIN_PORT,
    SYSLOG_RESOURCE_KIND,
    VALID_NAME_PATTERN,
    VALID_SCHEMES,
)

# Keys understood by the remote API in create/update option payloads
OPTION_NAME = "name"
OPTION_URL = "Url"
OPTION_PRIVATE = "Private"

# Export key holding the drain URL on the remote record
EXPORT_URL = "URL"


def compose_url(scheme: str, hostname: str, port: int) -> str:
    """Build the drain endpoint URL from its parts."""
    return f"{scheme}://{hostname}:{port}"


def format_option_value(value: Any) -> str:
    """Stringify an option value the way the remote API expects.

    Booleans are lowercased ("true"/"false"); everything else uses str().
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


# =============================================================================
# Declared Configuration
# =============================================================================


class SyslogDrainSpec(BaseModel):
    """Declared configuration of a single syslog drain.

    ``name`` and ``cluster`` are immutable once the drain exists; changing
    either requires the drain to be replaced. ``url`` is computed by the
    controller and never read as input.

    ``private`` distinguishes "unset" (None) from an explicit ``False`` so
    that an unset flag is never sent to the remote API.
    """

    model_config = {"extra": "forbid", "validate_assignment": True}

    name: Annotated[
        str,
        Field(min_length=1, max_length=MAX_DRAIN_NAME_LENGTH, json_schema_extra={"immutable": True}),
    ]
    cluster: Annotated[
        str,
        Field(min_length=1, max_length=MAX_DRAIN_NAME_LENGTH, json_schema_extra={"immutable": True}),
    ]
    hostname: Annotated[str, Field(min_length=1, max_length=MAX_HOSTNAME_LENGTH)]
    port: Annotated[int, Field(strict=True, ge=MIN_PORT, le=MAX_PORT)]
    scheme: Annotated[str, Field(min_length=1)]
    private: bool | None = None
    url: Annotated[str | None, Field(json_schema_extra={"computed": True})] = None

    @field_validator("name", "cluster")
    @classmethod
    def validate_identifier(cls, v: str) -> str:
        if not re.match(VALID_NAME_PATTERN, v):
            raise ValueError(f"must match pattern {VALID_NAME_PATTERN}")
        return v

    @field_validator("hostname")
    @classmethod
    def validate_hostname(cls, v: str) -> str:
        if "://" in v or "/" in v:
            raise ValueError("hostname must not contain a scheme or path")
        if any(ch.isspace() for ch in v):
            raise ValueError("hostname must not contain whitespace")
        return v

    @field_validator("scheme")
    @classmethod
    def validate_scheme(cls, v: str) -> str:
        v = v.lower()
        if v not in VALID_SCHEMES:
            raise ValueError(f"scheme must be one of {sorted(VALID_SCHEMES)}")
        return v

    @property
    def private_is_set(self) -> bool:
        """True when the declaration explicitly sets ``private``."""
        return self.private is not None

    @property
    def effective_private(self) -> bool:
        """The ``private`` flag with its default applied."""
        return bool(self.private)

    def composed_url(self) -> str:
        """Compose the endpoint URL from the current scheme, hostname and port."""
        return compose_url(self.scheme, self.hostname, self.port)

    def to_state(self) -> dict[str, Any]:
        """Serialize for the state file. Unset optional fields are omitted."""
        return self.model_dump(exclude_none=True)

    @classmethod
    def from_state(cls, data: dict[str, Any]) -> SyslogDrainSpec:
        """Rebuild a declaration from a state file record."""
        return cls.model_validate(data)

    @classmethod
    def immutable_fields(cls) -> tuple[str, ...]:
        """Fields whose change forces a new remote resource."""
        return tuple(
            name for name, info in cls.model_fields.items() if _field_flag(info, "immutable")
        )

    @classmethod
    def computed_fields(cls) -> tuple[str, ...]:
        """Fields owned by the controller rather than the user."""
        return tuple(
            name for name, info in cls.model_fields.items() if _field_flag(info, "computed")
        )


def _field_flag(info: Any, flag: str) -> bool:
    extra = info.json_schema_extra
    return isinstance(extra, dict) and bool(extra.get(flag))


@dataclass
class FieldChanges:
    """Fields that differ between a recorded and a declared drain."""

    immutable: list[str] = field(default_factory=list)
    mutable: list[str] = field(default_factory=list)

    @property
    def requires_replacement(self) -> bool:
        return bool(self.immutable)

    @property
    def has_changes(self) -> bool:
        return bool(self.immutable or self.mutable)


def changed_fields(prior: SyslogDrainSpec, desired: SyslogDrainSpec) -> FieldChanges:
    """Compare two declarations, ignoring computed fields.

    Args:
        prior: Declaration as last recorded in state.
        desired: Declaration as currently authored.

    Returns:
        FieldChanges split into immutable (replacement) and mutable (update) fields.
    """
    immutable = set(SyslogDrainSpec.immutable_fields())
    computed = set(SyslogDrainSpec.computed_fields())
    changes = FieldChanges()

    for name in SyslogDrainSpec.model_fields:
        if name in computed:
            continue
        if getattr(prior, name) == getattr(desired, name):
            continue
        if name in immutable:
            changes.immutable.append(name)
        else:
            changes.mutable.append(name)

    return changes


# =============================================================================
# Remote Resource
# =============================================================================


@dataclass
class RemoteResource:
    """The remote API's view of a drain.

    An opaque record keyed by name; ``exports`` holds the observable
    attributes, one of which is expected to be ``URL``.
    """

    name: str
    kind: str = SYSLOG_RESOURCE_KIND
    status: str = ""
    exports: dict[str, str] = field(default_factory=dict)

    @property
    def url(self) -> str:
        """The exported URL, or an empty string if the remote omits it."""
        return self.exports.get(EXPORT_URL, "")
