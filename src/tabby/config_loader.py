"""Load AdapterConfig and route defaults from tabby.yaml if present.

Merges file config with CLI kwargs. CLI overrides file.
"""

from __future__ import annotations

import tomllib
from pathlib import Path

import yaml

from tabby._errors import ConfigError
from tabby.config import AdapterConfig

# Top-level keys accepted outside a ``tabby:`` section
_ADAPTER_KEYS = frozenset({
    "output", "build_dir", "routes_dir", "server_dir", "server_module",
    "client_dir", "prerendered_dir", "base_path", "workers",
})


def load_config(root: Path, **overrides: object) -> tuple[AdapterConfig, dict[str, object]]:
    """Load AdapterConfig and route defaults from root.

    Looks for tabby.yaml, tabby.yml, or tabby.toml in root. If found, loads
    and merges with overrides. Overrides take precedence. Overrides whose
    value is None are ignored so CLI flags left unset keep the file value.

    Returns:
        ``(config, defaults)`` where ``defaults`` is the ``defaults`` section
        applied to every route.

    Raises:
        ConfigError: If the config file cannot be parsed or has unknown keys.

    """
    file_config = _read_tabby_config(root)
    defaults = file_config.pop("defaults", None) or {}
    if not isinstance(defaults, dict):
        msg = f"'defaults' must be a mapping, got {type(defaults).__name__}"
        raise ConfigError(msg)

    merged = {**file_config, **{k: v for k, v in overrides.items() if v is not None}}
    for key in ("output", "build_dir"):
        if key in merged and not isinstance(merged[key], Path):
            merged[key] = Path(str(merged[key]))

    unknown = sorted(set(merged) - _ADAPTER_KEYS)
    if unknown:
        msg = f"Unknown tabby option(s): {', '.join(unknown)}"
        raise ConfigError(msg)

    return AdapterConfig(root=root, **merged), defaults  # type: ignore[arg-type]


def _read_tabby_config(root: Path) -> dict[str, object]:
    """Read tabby config from yaml/toml if present. Returns empty dict otherwise."""
    for name in ("tabby.yaml", "tabby.yml"):
        path = root / name
        if path.is_file():
            return _parse_yaml(path)
    toml_path = root / "tabby.toml"
    if toml_path.is_file():
        return _parse_toml(toml_path)
    return {}


def _parse_yaml(path: Path) -> dict[str, object]:
    """Parse YAML config."""
    try:
        data = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:
        msg = f"Failed to parse {path}: {exc}"
        raise ConfigError(msg) from exc
    if not isinstance(data, dict):
        msg = f"{path}: expected a mapping at the top level"
        raise ConfigError(msg)
    return _flatten_tabby_section(data)


def _parse_toml(path: Path) -> dict[str, object]:
    """Parse TOML config."""
    try:
        data = tomllib.loads(path.read_text())
    except tomllib.TOMLDecodeError as exc:
        msg = f"Failed to parse {path}: {exc}"
        raise ConfigError(msg) from exc
    return _flatten_tabby_section(data)


def _flatten_tabby_section(data: dict[str, object]) -> dict[str, object]:
    """Extract tabby.* keys into top-level config."""
    result: dict[str, object] = {}
    tabby = data.get("tabby")
    if isinstance(tabby, dict):
        for k, v in tabby.items():
            result[k] = v
    for k, v in data.items():
        if k != "tabby" and (k in _ADAPTER_KEYS or k == "defaults"):
            result[k] = v
    return result
