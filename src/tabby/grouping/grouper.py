"""Route grouping — partition routes into deployable function groups.

Routes with equal config hashes share a group.  Routes whose config asks to
``split`` always get a group of their own.  Routes that compile to the same
dispatch pattern must be served by the same function, so they must have
equal hashes; anything else is an authoring error.

The fold is strictly sequential: group indices, ISR group numbers and
conflict detection all depend on encounter order.
"""

from __future__ import annotations

import os
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from tabby._errors import ConflictError, IsrError
from tabby.config import RESERVED_QUERY_PARAM, IsrConfig, RouteConfig, resolve_route_config
from tabby.grouping.hasher import hash_config

if TYPE_CHECKING:
    from tabby._types import HostVersion, PatternKey, RouteId
    from tabby.observability.collector import BuildCollector
    from tabby.routes.loader import RouteDefinition


@dataclass(slots=True)
class Group:
    """Routes served by one function.

    Attributes:
        index: Position of the group in creation order.
        config: Effective config of the first route in the group.
        routes: Member routes in encounter order.

    """

    index: int
    config: RouteConfig
    routes: list[RouteDefinition] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class IsrDescriptor:
    """Incremental regeneration settings assigned to one route.

    Attributes:
        expiration: Seconds before regeneration, or ``False``.
        bypass_token: Optional cache bypass token.
        allow_query: Reserved ``__pathname`` followed by the user allow-list.
        group: 1-based number, unique per ISR route.
        pass_query: Always ``True``.

    """

    expiration: int | Literal[False]
    bypass_token: str | None
    allow_query: tuple[str, ...]
    group: int
    pass_query: bool = True


@dataclass(frozen=True, slots=True)
class GroupingResult:
    """Outcome of grouping a route list.

    Attributes:
        groups: Groups in index order.
        isr: ISR descriptors keyed by route id, in encounter order.
        ignored_isr: Ids of prerendered routes whose ISR config was ignored.

    """

    groups: tuple[Group, ...]
    isr: Mapping[RouteId, IsrDescriptor]
    ignored_isr: tuple[RouteId, ...]


@dataclass(frozen=True, slots=True)
class _ConflictEntry:
    hash: str
    route_id: RouteId


class RouteGrouper:
    """Groups routes by deployment config.

    Args:
        defaults: User default config applied beneath each route's override.
        host_version: Host interpreter ``(major, minor)`` used to infer the
            default runtime.
        routes_dir: Directory route ids are relative to, used in error messages.
        collector: Optional event collector.

    """

    def __init__(
        self,
        defaults: Mapping[str, object] | None,
        host_version: HostVersion,
        *,
        routes_dir: Path | None = None,
        collector: BuildCollector | None = None,
    ) -> None:
        self._defaults = defaults or {}
        self._host_version = host_version
        self._routes_dir = routes_dir
        self._collector = collector

    def group(self, routes: Iterable[RouteDefinition]) -> GroupingResult:
        """Fold *routes*, in order, into groups.

        Raises:
            ConflictError: If two routes share a pattern with different hashes.
            IsrError: If a route's ISR settings are invalid.
            ConfigError: If a route's config cannot be resolved.

        """
        t0 = time.perf_counter()

        # Insertion order of these dicts fixes group indices and ISR numbers.
        groups: dict[str, Group] = {}
        conflicts: dict[PatternKey, _ConflictEntry] = {}
        isr: dict[RouteId, IsrDescriptor] = {}
        ignored_isr: list[RouteId] = []

        for route in routes:
            config = resolve_route_config(self._defaults, route.config, self._host_version)

            if route.is_prerendered:
                if config.isr is not None:
                    ignored_isr.append(route.id)
                    if self._collector is not None:
                        self._collector.record_isr_ignored(route.id)
                continue

            if config.isr is not None:
                isr[route.id] = self._isr_descriptor(
                    route, config.runtime, config.isr, len(isr) + 1,
                )

            config_hash = hash_config(config)

            pattern = route.pattern.pattern
            existing = conflicts.get(pattern)
            if existing is None:
                conflicts[pattern] = _ConflictEntry(hash=config_hash, route_id=route.id)
            elif existing.hash != config_hash:
                msg = (
                    f"The {route.id} and {existing.route_id} routes must be merged "
                    f"into a single function that matches the {pattern} regex, but "
                    "they have incompatible configs. You must either rename one of "
                    "the routes, or make their configs match."
                )
                raise ConflictError(msg)

            group_id = f"{config_hash}-{len(groups)}" if config.split else config_hash
            group = groups.get(group_id)
            if group is None:
                group = Group(index=len(groups), config=config)
                groups[group_id] = group
            group.routes.append(route)

        if self._collector is not None:
            self._collector.record_build(
                "group",
                f"{sum(len(g.routes) for g in groups.values())} routes",
                f"{len(groups)} groups",
                duration_ms=(time.perf_counter() - t0) * 1000,
            )

        return GroupingResult(
            groups=tuple(groups.values()),
            isr=isr,
            ignored_isr=tuple(ignored_isr),
        )

    def _isr_descriptor(
        self,
        route: RouteDefinition,
        runtime: str | None,
        settings: IsrConfig,
        number: int,
    ) -> IsrDescriptor:
        """Validate ISR preconditions and build the route's descriptor."""
        directory = self._route_directory(route)

        if not (runtime or "").startswith("python"):
            msg = (
                f"{directory}: Routes using `isr` must use a Python runtime "
                f"(for example 'python3.12'), got {runtime!r}"
            )
            raise IsrError(msg)

        allow_query = settings.allow_query or ()
        if RESERVED_QUERY_PARAM in allow_query:
            msg = (
                f"{directory}: `{RESERVED_QUERY_PARAM}` is a reserved query "
                "parameter for `isr.allow_query`"
            )
            raise IsrError(msg)

        return IsrDescriptor(
            expiration=settings.expiration,
            bypass_token=settings.bypass_token,
            allow_query=(RESERVED_QUERY_PARAM, *allow_query),
            group=number,
        )

    def _route_directory(self, route: RouteDefinition) -> str:
        """Location of a route for error messages, relative to the cwd."""
        if route.source is not None:
            location = route.source
        elif self._routes_dir is not None:
            location = self._routes_dir / route.id.strip("/")
        else:
            return route.id
        try:
            return os.path.relpath(location)
        except ValueError:
            return str(location)
