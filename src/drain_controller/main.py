"""Main entry point for the syslog drain controller.

Wires configuration, spec loading, state and the reconciler together and
runs one pass: load declared drains, plan against recorded state, apply.
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from datetime import UTC, datetime
from typing import Any

from .client import FactoryClientProvider, load_client_factory
from .config import Config, ConfigurationError
from .plan import ApplyResult, PlannedChange, apply_plan, plan_changes
from .reconciler import SyslogReconciler
from .spec_loader import SpecLoadError, load_specs
from .state import StateLoadError, StateStore

# Exit codes
EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIGURATION = 2

# LogRecord attributes that are not user supplied extra fields
_RESERVED_LOG_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    }
)


class JsonFormatter(logging.Formatter):
    """Format logs as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        # Add extra fields from the record
        for key, value in record.__dict__.items():
            if key not in _RESERVED_LOG_ATTRS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class _ControllerHandler(logging.StreamHandler):  # type: ignore[type-arg]
    """Stdout handler installed by setup_logging; replaced on reconfiguration."""


def setup_logging(level: str = "INFO", json_output: bool = True) -> None:
    """Configure root logging on stdout, JSON formatted unless disabled."""
    handler = _ControllerHandler(sys.stdout)
    if json_output:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        if isinstance(existing, _ControllerHandler):
            root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())


def build_reconciler(config: Config) -> SyslogReconciler:
    """Build a reconciler from configuration.

    Without DRAIN_CLIENT_FACTORY the reconciler has no provider; any
    lifecycle operation then fails with ProviderNotConfiguredError.

    Raises:
        ConfigurationError: If the configured client factory cannot be loaded.
    """
    if config.client_factory is None:
        return SyslogReconciler(provider=None)
    factory = load_client_factory(config.client_factory)
    return SyslogReconciler(provider=FactoryClientProvider(factory))


def new_context(config: Config) -> dict[str, Any]:
    """Ambient context handed to the provider for one run."""
    return {"run_id": uuid.uuid4().hex, "dry_run": config.dry_run}


def run_plan(config: Config) -> tuple[list[PlannedChange], StateStore]:
    """Load declared drains and recorded state and compute the plan.

    Raises:
        SpecLoadError: If the spec file is invalid.
        StateLoadError: If the state file is invalid.
    """
    declared = load_specs(config.spec_path)
    store = StateStore(config.state_path).load()
    return plan_changes(declared, store.drains), store


def run_apply(config: Config, reconciler: SyslogReconciler | None = None) -> ApplyResult:
    """Plan and apply declared drains."""
    plan, store = run_plan(config)
    reconciler = reconciler or build_reconciler(config)
    return apply_plan(reconciler, plan, store, new_context(config))


def run_refresh(config: Config, reconciler: SyslogReconciler | None = None) -> ApplyResult:
    """Read every recorded drain and persist refreshed URLs."""
    store = StateStore(config.state_path).load()
    recorded = store.drains
    plan = plan_changes(recorded.values(), recorded)
    reconciler = reconciler or build_reconciler(config)
    return apply_plan(reconciler, plan, store, new_context(config))


def run_destroy(config: Config, reconciler: SyslogReconciler | None = None) -> ApplyResult:
    """Delete every recorded drain."""
    store = StateStore(config.state_path).load()
    plan = plan_changes([], store.drains)
    reconciler = reconciler or build_reconciler(config)
    return apply_plan(reconciler, plan, store, new_context(config))


def exit_code_for(result: ApplyResult) -> int:
    """Map an apply result to a process exit code."""
    if result.success:
        return EXIT_OK
    if isinstance(result.error, ConfigurationError):
        return EXIT_CONFIGURATION
    return EXIT_FAILURE


def main() -> int:
    """Run one reconciliation pass configured from the environment.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    try:
        config = Config.from_env()
    except ConfigurationError as e:
        setup_logging()
        logging.getLogger(__name__).error("Configuration error", extra={"error": str(e)})
        return EXIT_CONFIGURATION

    setup_logging(config.log_level, config.json_logging)
    logger = logging.getLogger(__name__)

    logger.info(
        "Starting syslog drain controller",
        extra={
            "spec_path": str(config.spec_path),
            "state_path": str(config.state_path),
            "dry_run": config.dry_run,
        },
    )

    try:
        if config.dry_run:
            plan, _ = run_plan(config)
            for change in plan:
                logger.info("Planned change", extra={"change": change.describe()})
            return EXIT_OK

        result = run_apply(config)
    except (SpecLoadError, StateLoadError) as e:
        logger.error("Failed to load drains", extra={"error": str(e)})
        return EXIT_FAILURE
    except ConfigurationError as e:
        logger.error("Configuration error", extra={"error": str(e)})
        return EXIT_CONFIGURATION

    logger.info(
        "Apply finished",
        extra={
            "success": result.success,
            "applied": len(result.applied),
            "duration_seconds": result.duration_seconds,
        },
    )
    return exit_code_for(result)


def run() -> None:
    """Entry point for ``python -m drain_controller.main``."""
    sys.exit(main())


if __name__ == "__main__":
    run()
