"""Planning and applying drain changes.

Compares declared drains against recorded state and decides, per drain,
which lifecycle operation brings the remote side in line:

    declared only                  -> CREATE
    recorded only                  -> DELETE
    name/cluster changed           -> REPLACE (delete, then create)
    hostname/port/scheme/private   -> UPDATE
    unchanged                      -> REFRESH (read)

Applying executes the plan in order through the reconciler and records each
successful step in the state store immediately, so a failure part-way
through leaves state describing exactly what was done. Nothing is retried.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from .config import ConfigurationError
from .models import SyslogDrainSpec, changed_fields
from .reconciler import ReconcileError, SyslogReconciler
from .state import StateStore

logger = logging.getLogger(__name__)


class ResourceState(str, Enum):
    """Lifecycle state of a drain from the controller's point of view."""

    ABSENT = "absent"
    PRESENT = "present"


class Action(str, Enum):
    """Lifecycle operation chosen for a drain."""

    CREATE = "create"
    UPDATE = "update"
    REPLACE = "replace"
    DELETE = "delete"
    REFRESH = "refresh"


# (state before, state after) for each action
TRANSITIONS: dict[Action, tuple[ResourceState, ResourceState]] = {
    Action.CREATE: (ResourceState.ABSENT, ResourceState.PRESENT),
    Action.UPDATE: (ResourceState.PRESENT, ResourceState.PRESENT),
    Action.REPLACE: (ResourceState.PRESENT, ResourceState.PRESENT),
    Action.DELETE: (ResourceState.PRESENT, ResourceState.ABSENT),
    Action.REFRESH: (ResourceState.PRESENT, ResourceState.PRESENT),
}


@dataclass
class PlannedChange:
    """One drain's planned operation."""

    action: Action
    name: str
    desired: SyslogDrainSpec | None = None
    recorded: SyslogDrainSpec | None = None
    changed: list[str] = field(default_factory=list)

    @property
    def from_state(self) -> ResourceState:
        return TRANSITIONS[self.action][0]

    @property
    def to_state(self) -> ResourceState:
        return TRANSITIONS[self.action][1]

    @property
    def is_mutation(self) -> bool:
        return self.action is not Action.REFRESH

    def describe(self) -> str:
        """Single-line human readable summary."""
        text = f"{self.action.value:<8} {self.name}"
        if self.changed:
            text += f" ({', '.join(self.changed)})"
        return text


@dataclass
class ApplyResult:
    """Result of applying a plan."""

    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None
    applied: list[PlannedChange] = field(default_factory=list)
    failed: PlannedChange | None = None
    error: Exception | None = None

    @property
    def duration_seconds(self) -> float:
        """Calculate duration in seconds."""
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    @property
    def success(self) -> bool:
        """Check if every planned change was applied."""
        return self.error is None


def plan_changes(
    declared: Iterable[SyslogDrainSpec],
    recorded: Mapping[str, SyslogDrainSpec],
) -> list[PlannedChange]:
    """Compute the ordered list of changes. Deletes come first.

    Args:
        declared: Drains as currently authored.
        recorded: Drains as recorded in state, keyed by name.

    Returns:
        Planned changes, deletions first, each group sorted by drain name.
    """
    declared_by_name = {spec.name: spec for spec in declared}
    deletes: list[PlannedChange] = []
    others: list[PlannedChange] = []

    for name in sorted(set(recorded) - set(declared_by_name)):
        deletes.append(PlannedChange(Action.DELETE, name, recorded=recorded[name]))

    for name in sorted(declared_by_name):
        desired = declared_by_name[name]
        prior = recorded.get(name)
        if prior is None:
            others.append(PlannedChange(Action.CREATE, name, desired=desired))
            continue

        changes = changed_fields(prior, desired)
        if changes.requires_replacement:
            action = Action.REPLACE
        elif changes.has_changes:
            action = Action.UPDATE
        else:
            action = Action.REFRESH
        others.append(
            PlannedChange(
                action,
                name,
                desired=desired,
                recorded=prior,
                changed=changes.immutable + changes.mutable,
            )
        )

    return deletes + others


def apply_plan(
    reconciler: SyslogReconciler,
    plan: list[PlannedChange],
    store: StateStore,
    context: Mapping[str, Any] | None = None,
) -> ApplyResult:
    """Execute a plan, persisting state after every successful step.

    Stops at the first failure. A refresh that finds the drain missing
    remotely is reported as a failure; the recorded entry is kept.
    """
    result = ApplyResult()

    for change in plan:
        started = time.monotonic()
        try:
            _apply_change(reconciler, change, store, context)
        except (ReconcileError, ConfigurationError) as e:
            logger.error(
                "Change failed",
                extra={
                    "action": change.action.value,
                    "drain": change.name,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
            )
            result.failed = change
            result.error = e
            break

        result.applied.append(change)
        logger.info(
            "Change applied",
            extra={
                "action": change.action.value,
                "drain": change.name,
                "from_state": change.from_state.value,
                "to_state": change.to_state.value,
                "duration_ms": round((time.monotonic() - started) * 1000, 1),
            },
        )

    result.end_time = datetime.now(UTC)
    return result


def _apply_change(
    reconciler: SyslogReconciler,
    change: PlannedChange,
    store: StateStore,
    context: Mapping[str, Any] | None,
) -> None:
    if change.action in (Action.DELETE, Action.REPLACE):
        reconciler.delete(_recorded(change).model_copy(), context)
        store.remove(change.name)
        store.save()
        if change.action is Action.DELETE:
            return

    if change.desired is None:
        raise ValueError(f"{change.action.value} of {change.name} requires a declared drain")

    if change.action is Action.REFRESH:
        spec = _recorded(change).model_copy()
        reconciler.read(spec, context)
    elif change.action is Action.UPDATE:
        spec = change.desired.model_copy()
        reconciler.update(spec, context)
    else:
        spec = change.desired.model_copy()
        reconciler.create(spec, context)

    store.put(spec)
    store.save()


def _recorded(change: PlannedChange) -> SyslogDrainSpec:
    if change.recorded is None:
        raise ValueError(f"{change.action.value} of {change.name} requires a recorded drain")
    return change.recorded
