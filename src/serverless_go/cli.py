"""Command-line interface for serverless-go.

Commands:
- serverless-go deploy [monorepo]: clone private repos and rewrite go.mod files
- serverless-go clean [monorepo]: restore go.mod files and remove the clones
- serverless-go status [monorepo]: show each Go action's rewrite state
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from . import __version__
from .backup import UnitState, unit_state
from .config import ToolConfig, load_config, load_monorepo
from .driver import clean as run_clean
from .driver import deploy as run_deploy
from .driver import discover_units
from .errors import NotMonorepoError
from .telemetry import TelemetrySink, last_run
from .types import PhaseReport


@click.group()
@click.version_option(version=__version__, prog_name="serverless-go")
@click.option("--verbose", "-v", is_flag=True, help="Log every step.")
def cli(verbose: bool) -> None:
    """Deploy Go serverless monorepos that depend on private repositories."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )


def _jobs_option(fn):
    return click.option("--jobs", "-j", type=int, help="Build units processed in parallel.")(fn)


def _shared_options(fn):
    fn = click.option("--config", "-c", type=click.Path(exists=True), help="Config file path")(fn)
    fn = click.option("--private", "-p", "private_dir", help="Private repo directory name.")(fn)
    fn = click.argument(
        "monorepo_path", type=click.Path(file_okay=False), default=".", required=False
    )(fn)
    return fn


def _load(monorepo_path: str, config: str | None, private_dir: str | None, jobs: int | None):
    monorepo = Path(monorepo_path).resolve()
    click.echo(f"scanning monorepo: {monorepo}")

    try:
        if config:
            tool_config = ToolConfig.load_from_file(config)
            tool_config.apply_env_overrides()
        else:
            tool_config = load_config(monorepo)
    except ValueError as e:
        raise click.ClickException(f"invalid configuration: {e}") from e

    try:
        if private_dir is not None:
            tool_config.private_dir = ToolConfig.model_validate(
                {"private_dir": private_dir}
            ).private_dir
        if jobs is not None:
            tool_config.jobs = ToolConfig.model_validate({"jobs": jobs}).jobs
    except ValueError as e:
        raise click.BadParameter(str(e)) from e
    if not tool_config.private_dir:
        raise click.UsageError(
            "a private repo directory is required (--private, private_dir, or SERVERLESS_GO_PRIVATE_DIR)"
        )

    try:
        packages_dir, project = load_monorepo(monorepo)
    except NotMonorepoError as e:
        raise click.ClickException(str(e)) from e

    units, errors = discover_units(packages_dir, project, tool_config.manifest_name)
    telemetry = TelemetrySink(
        enabled=tool_config.telemetry.enabled,
        path=monorepo / tool_config.telemetry.log_path,
    )
    return monorepo, tool_config, project, units, errors, telemetry


def _finish(report: PhaseReport, discovery_errors: dict[str, Exception]) -> None:
    errors = {**discovery_errors, **report.errors}
    click.echo()
    for scope in report.succeeded:
        click.echo(f"  ✓ {scope}")
    for scope, err in sorted(errors.items()):
        click.echo(f"  ✗ {scope}: {err}", err=True)

    if errors:
        click.echo(f"{len(errors)} error(s)", err=True)
        sys.exit(1)
    click.echo("completed")


@cli.command()
@_shared_options
@_jobs_option
def deploy(monorepo_path: str, private_dir: str | None, config: str | None, jobs: int | None) -> None:
    """Clone private repos into each Go action and point go.mod at them.

    Example:
        serverless-go deploy ./monorepo --private .private
    """
    _, tool_config, project, units, errors, telemetry = _load(monorepo_path, config, private_dir, jobs)

    patterns = project.private_patterns(tool_config.private_env_key)
    if not patterns:
        click.echo(f"skipping: no private repos defined in {tool_config.private_env_key} environment")
        _finish(PhaseReport(label="deploy"), errors)
        return

    click.echo(f"private repo patterns: {', '.join(patterns)}")
    report = run_deploy(units, patterns, tool_config, telemetry=telemetry)
    _finish(report, errors)


@cli.command()
@_shared_options
@_jobs_option
def clean(monorepo_path: str, private_dir: str | None, config: str | None, jobs: int | None) -> None:
    """Restore each Go action's go.mod and delete its private repo clones.

    Example:
        serverless-go clean ./monorepo --private .private
    """
    _, tool_config, _, units, errors, telemetry = _load(monorepo_path, config, private_dir, jobs)
    report = run_clean(units, tool_config, telemetry=telemetry)
    _finish(report, errors)


@cli.command()
@_shared_options
def status(monorepo_path: str, private_dir: str | None, config: str | None) -> None:
    """Show whether each Go action is clean or rewritten.

    Exits non-zero when any action is in a state restore cannot handle.
    """
    _, tool_config, _, units, errors, telemetry = _load(monorepo_path, config, private_dir, None)

    bad = False
    for unit in units:
        state = unit_state(unit.path, tool_config.private_dir, tool_config.manifest_name)
        if state not in (UnitState.CLEAN, UnitState.REWRITTEN):
            bad = True
        click.echo(f"  {state.value:<10} {unit.scope}")
    for scope, err in sorted(errors.items()):
        bad = True
        click.echo(f"  {'missing':<10} {scope}: {err}")

    if telemetry.enabled and (run := last_run(telemetry.path)):
        click.echo()
        click.echo(
            f"last run: {run.get('phase')} ({run.get('run_id')}) "
            f"{run.get('succeeded', 0)} succeeded, {run.get('failed', 0)} failed"
        )

    sys.exit(1 if bad else 0)


def main() -> None:
    """Entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
