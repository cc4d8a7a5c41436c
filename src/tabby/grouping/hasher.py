"""Config hashing — reduce a RouteConfig to a canonical equality key."""

from tabby.config import RouteConfig


def hash_config(config: RouteConfig) -> str:
    """Return the grouping key for *config*.

    Joins, in a fixed order: runtime, external, regions, memory, max duration,
    and whether ISR is enabled.  Missing fields serialize to ``""``.  ISR and
    non-ISR functions never share a key because ISR functions can't stream.

        >>> hash_config(RouteConfig(runtime="python3.12", memory=1024))
        'python3.12///1024//false'

    """
    return "/".join((
        _serialize(config.runtime),
        _serialize(config.external),
        _serialize(config.regions),
        _serialize(config.memory),
        _serialize(config.max_duration),
        "true" if config.isr is not None else "false",
    ))


def _serialize(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, (tuple, list)):
        return ",".join(str(v) for v in value)
    return str(value)
