"""Syslog drain controller CLI (drainctl).

Usage:
    drainctl plan             # Show what apply would do
    drainctl apply            # Create, update, replace or delete drains
    drainctl refresh          # Re-read recorded drains from the remote API
    drainctl destroy --yes    # Delete every recorded drain
    drainctl show             # Print recorded state
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import click
import yaml

from .config import DEFAULT_SPEC_PATH, DEFAULT_STATE_PATH, Config, ConfigurationError
from .main import (
    EXIT_CONFIGURATION,
    run_apply,
    run_destroy,
    run_plan,
    run_refresh,
    setup_logging,
)
from .plan import ApplyResult
from .spec_loader import SpecLoadError
from .state import StateLoadError, StateStore


class ConfigurationClickException(click.ClickException):
    """Configuration problems exit with a distinct code."""

    exit_code = EXIT_CONFIGURATION


def _get_config(ctx: click.Context) -> Config:
    config = ctx.obj
    if not isinstance(config, Config):
        raise click.UsageError("drainctl commands must run under the drainctl group", ctx)
    return config


def _run_or_fail(func: Callable[[], Any]) -> Any:
    """Run a controller call, translating its errors into click errors."""
    try:
        return func()
    except ConfigurationError as e:
        raise ConfigurationClickException(str(e)) from e
    except (SpecLoadError, StateLoadError) as e:
        raise click.ClickException(str(e)) from e


def _report(result: ApplyResult, verb: str) -> None:
    for change in result.applied:
        click.echo(f"  {change.describe()}")

    if result.success:
        click.secho(f"✓ {verb} complete: {len(result.applied)} change(s)", fg="green")
        return

    failed = result.failed
    where = f" at {failed.action.value} {failed.name}" if failed is not None else ""
    message = f"{verb} failed{where}: {result.error}"
    if isinstance(result.error, ConfigurationError):
        raise ConfigurationClickException(message)
    raise click.ClickException(message)


@click.group()
@click.version_option(version="0.1.0", prog_name="drainctl")
@click.option(
    "--spec",
    "spec_path",
    envvar="DRAIN_SPEC_PATH",
    default=DEFAULT_SPEC_PATH,
    show_default=True,
    type=click.Path(path_type=Path),
    help="YAML file with declared drains",
)
@click.option(
    "--state",
    "state_path",
    envvar="DRAIN_STATE_PATH",
    default=DEFAULT_STATE_PATH,
    show_default=True,
    type=click.Path(path_type=Path),
    help="YAML file with recorded state",
)
@click.option(
    "--client-factory",
    envvar="DRAIN_CLIENT_FACTORY",
    default=None,
    help="Client factory import path, 'package.module:attribute'",
)
@click.option(
    "--log-level",
    envvar="LOG_LEVEL",
    default="WARNING",
    show_default=True,
    help="Root log level",
)
@click.option(
    "--json-logs/--no-json-logs",
    envvar="ENABLE_JSON_LOGGING",
    default=False,
    help="Emit JSON log lines",
)
@click.pass_context
def cli(
    ctx: click.Context,
    spec_path: Path,
    state_path: Path,
    client_factory: str | None,
    log_level: str,
    json_logs: bool,
) -> None:
    """Syslog drain controller.

    Reconciles declared syslog drains against the remote platform API.
    """
    try:
        config = Config(
            spec_path=spec_path,
            state_path=state_path,
            client_factory=client_factory,
            log_level=log_level.upper(),
            json_logging=json_logs,
        )
    except ConfigurationError as e:
        raise ConfigurationClickException(str(e)) from e

    setup_logging(config.log_level, config.json_logging)
    ctx.obj = config


@cli.command()
@click.pass_context
def plan(ctx: click.Context) -> None:
    """Show the changes apply would make."""
    config = _get_config(ctx)
    changes, _ = _run_or_fail(lambda: run_plan(config))

    if not changes:
        click.echo("No drains declared or recorded.")
        return

    for change in changes:
        click.echo(change.describe())


@cli.command()
@click.option("--dry-run", is_flag=True, help="Only show the plan")
@click.pass_context
def apply(ctx: click.Context, dry_run: bool) -> None:
    """Create, update, replace or delete drains to match the spec."""
    if dry_run:
        ctx.invoke(plan)
        return

    config = _get_config(ctx)
    result = _run_or_fail(lambda: run_apply(config))
    _report(result, "Apply")


@cli.command()
@click.pass_context
def refresh(ctx: click.Context) -> None:
    """Re-read every recorded drain and store its current URL."""
    config = _get_config(ctx)
    result = _run_or_fail(lambda: run_refresh(config))
    _report(result, "Refresh")


@cli.command()
@click.confirmation_option(prompt="Delete every recorded drain?")
@click.pass_context
def destroy(ctx: click.Context) -> None:
    """Delete every recorded drain."""
    config = _get_config(ctx)
    result = _run_or_fail(lambda: run_destroy(config))
    _report(result, "Destroy")


@cli.command()
@click.pass_context
def show(ctx: click.Context) -> None:
    """Print recorded state."""
    config = _get_config(ctx)
    store = _run_or_fail(lambda: StateStore(config.state_path).load())

    drains = store.drains
    if not drains:
        click.echo("No drains recorded.")
        return

    records = {name: drains[name].to_state() for name in sorted(drains)}
    click.echo(yaml.safe_dump(records, sort_keys=False, default_flow_style=False).rstrip())


if __name__ == "__main__":
    cli()
