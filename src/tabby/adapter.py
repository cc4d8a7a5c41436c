"""Deployment planner — the adapt pass.

Groups routes into functions, materializes one bundle per function, copies
static assets, and writes the routing document:

    <output>/static/<base-path>/...          client + prerendered assets
    <output>/functions/<unit>.func/...       one bundle per function
    <output>/config.json                     routing document

The public functions (``adapt``, ``plan``, ``run``) are the entry points.
Every collaborator (route source, defaults, tracer, file primitives, host
version) is passed in explicitly.
"""

import os
import sys
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path

from tabby._errors import ExportError
from tabby._types import HostVersion, PatternKey, RouteId, UnitName
from tabby.bundle.companion import render_manifest, render_template
from tabby.bundle.fs import FileSystem, LocalFileSystem
from tabby.bundle.materializer import BundleMaterializer, BundleResult
from tabby.bundle.tracer import ModuleGraphTracer, Tracer
from tabby.config import AdapterConfig, RouteConfig
from tabby.config_loader import load_config
from tabby.export.static import ExportedFile, copy_static, write_routing_config
from tabby.grouping.grouper import Group, GroupingResult, IsrDescriptor, RouteGrouper
from tabby.observability.collector import BuildCollector
from tabby.report import print_ignored_isr, print_plan, print_summary
from tabby.routes.loader import RouteDefinition, discover_routes

# Unit that serves everything when there is one group, and the catch-all otherwise
DEFAULT_FUNCTION_NAME: UnitName = "__tabby"

_HANDLER_NAME = "handler.py"
_MANIFEST_NAME = "manifest.py"


@dataclass(frozen=True, slots=True)
class UnitPlan:
    """A function to be generated.

    Attributes:
        name: Unit name (``__tabby`` or ``fn-<index>``).
        routes: Routes the unit serves (empty for the catch-all).
        config: Effective config of the group, or *None* for the catch-all.
        group: The group the unit serves, or *None* for the catch-all.

    """

    name: UnitName
    routes: tuple[RouteDefinition, ...]
    config: RouteConfig | None
    group: Group | None = None


@dataclass(frozen=True, slots=True)
class DeploymentUnit:
    """A generated function and its bundle."""

    name: UnitName
    routes: tuple[RouteDefinition, ...]
    bundle: BundleResult
    group: Group | None = None


@dataclass(frozen=True, slots=True)
class AdaptResult:
    """Aggregate result of an adapt pass.

    Attributes:
        units: Generated functions, catch-all last.
        functions: Dispatch pattern -> name of the unit serving it.
        isr: ISR descriptors keyed by route id.
        ignored_isr: Prerendered routes whose ISR config was ignored.
        static_files: Files copied into the static root.
        config_path: Path to the routing document.
        duration_ms: Total wall-clock time.
        output_dir: Absolute path to the output directory.

    """

    units: tuple[DeploymentUnit, ...]
    functions: Mapping[PatternKey, UnitName]
    isr: Mapping[RouteId, IsrDescriptor]
    ignored_isr: tuple[RouteId, ...]
    static_files: tuple[ExportedFile, ...]
    config_path: Path
    duration_ms: float
    output_dir: Path


def plan_units(grouping: GroupingResult) -> tuple[UnitPlan, ...]:
    """Name one unit per group, plus the catch-all when there are several.

    A single group is served by ``__tabby``.  Otherwise groups are named
    ``fn-<index>`` and an extra ``__tabby`` unit with no routes is added so
    the routing table always resolves.
    """
    singular = len(grouping.groups) == 1
    plans = [
        UnitPlan(
            name=DEFAULT_FUNCTION_NAME if singular else f"fn-{group.index}",
            routes=tuple(group.routes),
            config=group.config,
            group=group,
        )
        for group in grouping.groups
    ]
    if len(grouping.groups) > 1:
        plans.append(UnitPlan(name=DEFAULT_FUNCTION_NAME, routes=(), config=None))
    return tuple(plans)


class DeploymentPlanner:
    """Runs the adapt pass for one project.

    Args:
        config: Frozen adapter configuration.
        defaults: User default route config.
        host_version: Host interpreter ``(major, minor)``, read once by the caller.
        tracer: Dependency tracer (default: ``ModuleGraphTracer`` over the
            server directory).
        fs: File primitives (default: local disk).
        collector: Optional event collector.

    """

    def __init__(
        self,
        config: AdapterConfig,
        *,
        defaults: Mapping[str, object] | None = None,
        host_version: HostVersion,
        tracer: Tracer | None = None,
        fs: FileSystem | None = None,
        collector: BuildCollector | None = None,
    ) -> None:
        self._config = config
        self._fs = fs if fs is not None else LocalFileSystem()
        self._tracer = tracer if tracer is not None else ModuleGraphTracer([config.server_path])
        self._collector = collector
        self._grouper = RouteGrouper(
            defaults,
            host_version,
            routes_dir=config.routes_path,
            collector=collector,
        )
        self._materializer = BundleMaterializer(
            self._fs, workers=config.workers, collector=collector,
        )

    def plan(self, routes: Iterable[RouteDefinition]) -> tuple[GroupingResult, tuple[UnitPlan, ...]]:
        """Group *routes* and name the units, without touching disk."""
        grouping = self._grouper.group(routes)
        return grouping, plan_units(grouping)

    def adapt(self, routes: Iterable[RouteDefinition]) -> AdaptResult:
        """Run the full pass and return the result.

        Pipeline order:
            1. Group routes (all config validation happens here, before I/O)
            2. Clean output and build directories
            3. Generate one function per unit
            4. Copy client and prerendered assets
            5. Write the routing document

        Raises:
            ConfigError, ConflictError, IsrError: From grouping.
            BundleError: If a bundle cannot be materialized.
            ExportError: If the output tree cannot be written.

        """
        start = time.perf_counter()
        config = self._config

        grouping, plans = self.plan(routes)

        for path in (config.output_path, config.build_path):
            try:
                self._fs.remove_tree(path)
            except OSError as exc:
                msg = f"Failed to clean {path}: {exc}"
                raise ExportError(msg) from exc

        print_ignored_isr(grouping.ignored_isr)

        # Catch-all runs on the first group's runtime; it serves no routes.
        fallback_runtime = grouping.groups[0].config.runtime if grouping.groups else None

        units: list[DeploymentUnit] = []
        functions: dict[PatternKey, UnitName] = {}
        for unit_plan in plans:
            runtime = unit_plan.config.runtime if unit_plan.config else fallback_runtime
            units.append(self._generate_function(unit_plan, grouping.isr, runtime))
            for route in unit_plan.routes:
                functions[route.pattern.pattern] = unit_plan.name

        static_root = config.static_path
        static_files = (
            *copy_static(
                self._fs, config.client_path, static_root, "client",
                collector=self._collector,
            ),
            *copy_static(
                self._fs, config.prerendered_path, static_root, "prerendered",
                collector=self._collector,
            ),
        )

        routing = write_routing_config(
            self._fs, config.output_path, DEFAULT_FUNCTION_NAME, collector=self._collector,
        )

        return AdaptResult(
            units=tuple(units),
            functions=functions,
            isr=grouping.isr,
            ignored_isr=grouping.ignored_isr,
            static_files=static_files,
            config_path=routing.output_path,
            duration_ms=(time.perf_counter() - start) * 1000,
            output_dir=config.output_path,
        )

    def _generate_function(
        self,
        unit_plan: UnitPlan,
        isr: Mapping[RouteId, IsrDescriptor],
        runtime: str | None,
    ) -> DeploymentUnit:
        """Write the unit's handler and manifest, then bundle them."""
        config = self._config
        build_dir = config.build_path / unit_plan.name
        handler = build_dir / _HANDLER_NAME
        dest = config.functions_path / f"{unit_plan.name}.func"

        manifest = {
            "server": Path(os.path.relpath(config.server_path, build_dir)).as_posix(),
            "routes": [_manifest_route(route, isr.get(route.id)) for route in unit_plan.routes],
        }
        try:
            self._fs.write_text(
                handler,
                render_template("handler.py.tmpl", {"SERVER": config.server_module}),
            )
            self._fs.write_text(build_dir / _MANIFEST_NAME, render_manifest(manifest))
        except OSError as exc:
            msg = f"Failed to write handler for {unit_plan.name}: {exc}"
            raise ExportError(msg) from exc

        t0 = time.perf_counter()
        traced = self._tracer.trace(handler, Path(handler.anchor))
        if self._collector is not None:
            self._collector.record_build(
                "trace",
                str(handler),
                f"{len(traced.files)} files",
                duration_ms=(time.perf_counter() - t0) * 1000,
            )

        bundle = self._materializer.materialize(handler, traced, dest, runtime=runtime)

        for asset in dict.fromkeys(a for route in unit_plan.routes for a in route.assets):
            source = config.server_path / asset
            target = dest / asset
            try:
                self._fs.make_dirs(target.parent)
                self._fs.copy_file(source, target)
            except OSError as exc:
                msg = f"Failed to copy server asset {source} into {unit_plan.name}: {exc}"
                raise ExportError(msg) from exc

        return DeploymentUnit(
            name=unit_plan.name, routes=unit_plan.routes, bundle=bundle, group=unit_plan.group,
        )


def _manifest_route(route: RouteDefinition, isr: IsrDescriptor | None) -> dict[str, object]:
    entry: dict[str, object] = {"id": route.id, "pattern": route.pattern.pattern}
    if isr is not None:
        entry["isr"] = {
            "expiration": isr.expiration,
            "bypass_token": isr.bypass_token,
            "allow_query": list(isr.allow_query),
            "group": isr.group,
            "pass_query": isr.pass_query,
        }
    return entry


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------


def adapt(
    config: AdapterConfig,
    *,
    routes: Iterable[RouteDefinition] | None = None,
    defaults: Mapping[str, object] | None = None,
    host_version: HostVersion | None = None,
    tracer: Tracer | None = None,
    fs: FileSystem | None = None,
    collector: BuildCollector | None = None,
) -> AdaptResult:
    """Run the adapt pass with explicit collaborators.

    *routes* defaults to the modules discovered in ``config.routes_path``;
    *host_version* defaults to the running interpreter.
    """
    if routes is None:
        routes = discover_routes(config.routes_path)
    if host_version is None:
        host_version = sys.version_info[:2]
    planner = DeploymentPlanner(
        config,
        defaults=defaults,
        host_version=host_version,
        tracer=tracer,
        fs=fs,
        collector=collector,
    )
    return planner.adapt(routes)


def plan(
    config: AdapterConfig,
    *,
    routes: Iterable[RouteDefinition] | None = None,
    defaults: Mapping[str, object] | None = None,
    host_version: HostVersion | None = None,
) -> tuple[UnitPlan, ...]:
    """Group routes and name units without writing anything."""
    if routes is None:
        routes = discover_routes(config.routes_path)
    if host_version is None:
        host_version = sys.version_info[:2]
    planner = DeploymentPlanner(config, defaults=defaults, host_version=host_version)
    _grouping, plans = planner.plan(routes)
    return plans


def run(root: str | Path = ".", *, dry_run: bool = False, **overrides: object) -> AdaptResult | None:
    """Load ``tabby.yaml`` from *root* and adapt the project.

    With ``dry_run`` the unit plan is printed and nothing is written.
    """
    config, defaults = load_config(Path(root), **overrides)
    host_version: HostVersion = sys.version_info[:2]
    routes = discover_routes(config.routes_path)

    if dry_run:
        print_plan(plan(config, routes=routes, defaults=defaults, host_version=host_version))
        return None

    result = adapt(config, routes=routes, defaults=defaults, host_version=host_version)
    print_summary(result)
    return result
