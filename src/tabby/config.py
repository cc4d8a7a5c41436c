"""Tabby configuration.

AdapterConfig is the central configuration object, frozen after creation.
RouteConfig is the per-route deployment configuration, resolved from a
route's own override, the user defaults, and the inferred default runtime.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from tabby._errors import ConfigError, RuntimeVersionError
from tabby._types import HostVersion, Runtime

# Host (major, minor) versions with a matching deployment runtime
SUPPORTED_RUNTIMES: dict[HostVersion, Runtime] = {
    (3, 11): "python3.11",
    (3, 12): "python3.12",
    (3, 13): "python3.13",
}

# Reserved ISR query parameter, always forwarded to the function
RESERVED_QUERY_PARAM = "__pathname"

# camelCase spellings accepted in config files and route modules
_ALIASES: dict[str, str] = {
    "maxDuration": "max_duration",
    "bypassToken": "bypass_token",
    "allowQuery": "allow_query",
}

_ROUTE_KEYS = frozenset({
    "runtime", "external", "regions", "memory", "max_duration", "isr", "split",
})
_ISR_KEYS = frozenset({"expiration", "bypass_token", "allow_query"})


@dataclass(frozen=True, slots=True)
class AdapterConfig:
    """Configuration for a tabby adapt pass.

    Attributes:
        root: Project root. Always resolved to an absolute path on construction.
        output: Output directory for the deployment tree.
        build_dir: Scratch directory for generated handler and manifest files.
        routes_dir: Directory containing route modules.
        server_dir: Directory containing the built server code.
        server_module: Module in ``server_dir`` exposing ``create_app(manifest)``.
        client_dir: Directory containing built client assets.
        prerendered_dir: Directory containing prerendered pages.
        base_path: URL base path the static assets are served under.
        workers: Per-file copy workers during materialization (0 = auto-detect).

    """

    root: Path = field(default_factory=Path.cwd)
    output: Path = field(default_factory=lambda: Path(".tabby/output"))
    build_dir: Path = field(default_factory=lambda: Path(".tabby/build"))
    routes_dir: str = "routes"
    server_dir: str = "build/server"
    server_module: str = "server"
    client_dir: str = "build/client"
    prerendered_dir: str = "build/prerendered"
    base_path: str = ""
    workers: int = 0

    def __post_init__(self) -> None:
        if not self.root.is_absolute():
            object.__setattr__(self, "root", self.root.resolve())
        if self.base_path and not self.base_path.startswith("/"):
            msg = f"base_path must start with '/', got {self.base_path!r}"
            raise ConfigError(msg)
        if self.workers < 0:
            msg = f"workers must be >= 0, got {self.workers}"
            raise ConfigError(msg)

    def _resolve(self, path: Path | str) -> Path:
        path = Path(path)
        if path.is_absolute():
            return path
        return self.root / path

    @property
    def output_path(self) -> Path:
        """Absolute path to output directory."""
        return self._resolve(self.output)

    @property
    def build_path(self) -> Path:
        """Absolute path to the scratch build directory."""
        return self._resolve(self.build_dir)

    @property
    def routes_path(self) -> Path:
        """Absolute path to route modules."""
        return self._resolve(self.routes_dir)

    @property
    def server_path(self) -> Path:
        """Absolute path to built server code."""
        return self._resolve(self.server_dir)

    @property
    def client_path(self) -> Path:
        """Absolute path to built client assets."""
        return self._resolve(self.client_dir)

    @property
    def prerendered_path(self) -> Path:
        """Absolute path to prerendered pages."""
        return self._resolve(self.prerendered_dir)

    @property
    def static_path(self) -> Path:
        """Absolute path to the static root inside the output tree."""
        return self.output_path / "static" / self.base_path.strip("/")

    @property
    def functions_path(self) -> Path:
        """Absolute path to the function bundles inside the output tree."""
        return self.output_path / "functions"


@dataclass(frozen=True, slots=True)
class IsrConfig:
    """Incremental regeneration settings as declared by the user.

    Attributes:
        expiration: Seconds before the cached response is regenerated, or
            ``False`` to never expire.
        bypass_token: Token that bypasses the cache when sent by a client.
        allow_query: Query parameters that are part of the cache key.

    """

    expiration: int | Literal[False] = False
    bypass_token: str | None = None
    allow_query: tuple[str, ...] | None = None


@dataclass(frozen=True, slots=True)
class RouteConfig:
    """Effective deployment configuration of one route.

    Equality between configs is decided by ``hash_config``, not by ``==``.
    """

    runtime: Runtime | None = None
    external: tuple[str, ...] | None = None
    regions: tuple[str, ...] | Literal["all"] | None = None
    memory: int | None = None
    max_duration: int | None = None
    isr: IsrConfig | None = None
    split: bool = False


def get_default_runtime(host_version: HostVersion) -> Runtime:
    """Pick the deployment runtime matching the host interpreter.

    Raises:
        RuntimeVersionError: If the host version has no matching runtime.

    """
    runtime = SUPPORTED_RUNTIMES.get(tuple(host_version[:2]))
    if runtime is None:
        version = ".".join(str(part) for part in host_version)
        supported = ", ".join(f"{major}.{minor}" for major, minor in SUPPORTED_RUNTIMES)
        msg = (
            f"Unsupported Python version: {version}. Please use Python {supported} "
            "to build your project, or explicitly specify a runtime in your "
            "adapter configuration."
        )
        raise RuntimeVersionError(msg)
    return runtime


def resolve_route_config(
    defaults: Mapping[str, object] | None,
    override: Mapping[str, object] | None,
    host_version: HostVersion,
) -> RouteConfig:
    """Merge route override > user defaults > default runtime into a RouteConfig.

    The default runtime is only inferred when neither layer names one, so an
    unsupported host version is fine as long as a runtime is configured.

    Raises:
        ConfigError: On unknown keys or values of the wrong type.
        RuntimeVersionError: If no runtime is configured and the host is unsupported.

    """
    merged: dict[str, object] = {}
    merged.update(_normalize(defaults or {}, _ROUTE_KEYS, "config"))
    merged.update(_normalize(override or {}, _ROUTE_KEYS, "config"))

    if merged.get("runtime") is None:
        merged["runtime"] = get_default_runtime(host_version)

    return RouteConfig(
        runtime=_expect_str(merged["runtime"], "runtime"),
        external=_as_tuple(merged.get("external"), "external"),
        regions=_as_regions(merged.get("regions")),
        memory=_as_int(merged.get("memory"), "memory"),
        max_duration=_as_int(merged.get("max_duration"), "max_duration"),
        isr=_as_isr(merged.get("isr")),
        split=bool(merged.get("split", False)),
    )


def _normalize(
    raw: Mapping[str, object],
    allowed: frozenset[str],
    where: str,
) -> dict[str, object]:
    """Map camelCase aliases to field names and reject unknown keys."""
    if not isinstance(raw, Mapping):
        msg = f"{where} must be a mapping, got {type(raw).__name__}"
        raise ConfigError(msg)
    result: dict[str, object] = {}
    for key, value in raw.items():
        name = _ALIASES.get(key, key)
        if name not in allowed:
            msg = f"Unknown {where} option {key!r}"
            raise ConfigError(msg)
        result[name] = value
    return result


def _expect_str(value: object, name: str) -> str:
    if not isinstance(value, str):
        msg = f"{name} must be a string, got {type(value).__name__}"
        raise ConfigError(msg)
    return value


def _as_int(value: object, name: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        msg = f"{name} must be an integer, got {value!r}"
        raise ConfigError(msg)
    return value


def _as_tuple(value: object, name: str) -> tuple[str, ...] | None:
    if value is None:
        return None
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
        return tuple(value)
    msg = f"{name} must be a list of strings, got {value!r}"
    raise ConfigError(msg)


def _as_regions(value: object) -> tuple[str, ...] | Literal["all"] | None:
    if value == "all":
        return "all"
    return _as_tuple(value, "regions")


def _as_isr(value: object) -> IsrConfig | None:
    if value is None or value is False:
        return None
    if isinstance(value, IsrConfig):
        return value
    if value is True:
        return IsrConfig()
    fields = _normalize(value, _ISR_KEYS, "isr")  # type: ignore[arg-type]

    expiration = fields.get("expiration", False)
    if expiration is not False and (isinstance(expiration, bool) or not isinstance(expiration, int)):
        msg = f"isr.expiration must be an integer or false, got {expiration!r}"
        raise ConfigError(msg)

    bypass_token = fields.get("bypass_token")
    if bypass_token is not None:
        bypass_token = _expect_str(bypass_token, "isr.bypass_token")

    return IsrConfig(
        expiration=expiration,  # type: ignore[arg-type]
        bypass_token=bypass_token,
        allow_query=_as_tuple(fields.get("allow_query"), "isr.allow_query"),
    )
