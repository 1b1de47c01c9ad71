"""Walk a monorepo's build units and run one phase over each of them."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from .clone import Cloner, GitCloner
from .config import ProjectSpec, ToolConfig
from .errors import ConfigNotFound
from .restore import restore_unit
from .rewrite import rewrite_unit
from .telemetry import TelemetrySink, new_run_id
from .types import BuildUnit, PhaseReport

logger = logging.getLogger(__name__)

UnitFn = Callable[[BuildUnit], object]


def discover_units(
    packages_dir: Path,
    project: ProjectSpec,
    manifest_name: str = "go.mod",
) -> tuple[list[BuildUnit], dict[str, Exception]]:
    """Find every declared action that carries a manifest.

    Declared packages or actions without a directory are returned as errors.
    Actions without a manifest are not Go actions and are skipped.
    """
    units: list[BuildUnit] = []
    errors: dict[str, Exception] = {}
    for pkg in project.packages:
        pkg_dir = packages_dir / pkg.name
        if not pkg_dir.is_dir():
            errors[pkg.name] = ConfigNotFound(f"no package directory found: {pkg_dir}")
            continue

        for act in pkg.actions:
            scope = f"{pkg.name}/{act.name}"
            act_dir = pkg_dir / act.name
            if not act_dir.is_dir():
                errors[scope] = ConfigNotFound(f"no action directory found: {act_dir}")
                continue
            if not (act_dir / manifest_name).is_file():
                logger.debug("[%s] no %s, skipping", scope, manifest_name)
                continue
            units.append(BuildUnit(package=pkg.name, action=act.name, path=act_dir))
    return units, errors


def run_phase(
    units: Sequence[BuildUnit],
    label: str,
    fn: UnitFn,
    *,
    jobs: int = 1,
    telemetry: TelemetrySink | None = None,
) -> PhaseReport:
    """Run ``fn`` on every unit, collecting failures instead of stopping.

    Units are independent, so with ``jobs`` > 1 they run on a thread pool.
    Failures are keyed ``"<package>/<action> (<label>)"``.
    """
    report = PhaseReport(label=label)
    run_id = new_run_id()
    if telemetry:
        telemetry.log(run_id, "phase_started", {"phase": label, "units": len(units)})

    def _one(unit: BuildUnit) -> tuple[BuildUnit, Exception | None]:
        try:
            fn(unit)
        except Exception as e:  # noqa: BLE001 - reported per unit
            return unit, e
        return unit, None

    if jobs > 1 and len(units) > 1:
        with ThreadPoolExecutor(max_workers=jobs) as pool:
            outcomes = list(pool.map(_one, units))
    else:
        outcomes = [_one(u) for u in units]

    for unit, err in outcomes:
        if err is None:
            report.succeeded.append(unit.scope)
            if telemetry:
                telemetry.log(run_id, "unit_succeeded", {"phase": label, "unit": unit.scope})
        else:
            report.errors[f"{unit.scope} ({label})"] = err
            logger.error("[%s] %s: %s", unit.scope, label, err)
            if telemetry:
                telemetry.log(
                    run_id,
                    "unit_failed",
                    {"phase": label, "unit": unit.scope, "error": type(err).__name__, "message": str(err)},
                )

    if telemetry:
        telemetry.log(
            run_id,
            "phase_completed",
            {"phase": label, "succeeded": len(report.succeeded), "failed": len(report.errors)},
        )
    return report


def deploy(
    units: Sequence[BuildUnit],
    patterns: Sequence[str],
    config: ToolConfig,
    *,
    cloner: Cloner | None = None,
    telemetry: TelemetrySink | None = None,
) -> PhaseReport:
    cloner = cloner or GitCloner(
        url_template=config.clone.url_template,
        git_binary=config.clone.git_binary,
        depth=config.clone.depth,
    )

    def _rewrite(unit: BuildUnit) -> object:
        return rewrite_unit(
            unit.path,
            patterns,
            config.private_dir,
            manifest_name=config.manifest_name,
            cloner=cloner,
            rollback_on_failure=config.clone.rollback_on_failure,
        )

    return run_phase(units, "deploy", _rewrite, jobs=config.jobs, telemetry=telemetry)


def clean(
    units: Sequence[BuildUnit],
    config: ToolConfig,
    *,
    telemetry: TelemetrySink | None = None,
) -> PhaseReport:
    def _restore(unit: BuildUnit) -> object:
        return restore_unit(unit.path, config.private_dir, manifest_name=config.manifest_name)

    return run_phase(units, "clean", _restore, jobs=config.jobs, telemetry=telemetry)
