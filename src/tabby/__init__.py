"""Tabby — a deployment adapter for route-based Python sites.

Splits a site's routes into the fewest deployable functions their configs
allow, bundles exactly the files each function imports, and lays out a
deployment tree with static assets and a routing document.

Quick start::

    import tabby

    tabby.run("my-site/")

Explicit collaborators::

    from tabby import AdapterConfig, adapt

    result = adapt(
        AdapterConfig(root=Path("my-site")),
        routes=routes,
        defaults={"runtime": "python3.12"},
        host_version=(3, 12),
    )

Output layout::

    <output>/static/<base-path>/...
    <output>/functions/<unit>.func/...
    <output>/config.json

"""

# PEP 703: Declare this module as free-threading safe
_Py_mod_gil = 0

__version__ = "0.1.0"
__all__ = [
    "AdapterConfig",
    "__version__",
    "adapt",
    "plan",
    "run",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import tabby`` fast while providing a clean top-level API.
    """
    if name == "AdapterConfig":
        from tabby.config import AdapterConfig

        return AdapterConfig

    if name == "adapt":
        from tabby.adapter import adapt

        return adapt

    if name == "plan":
        from tabby.adapter import plan

        return plan

    if name == "run":
        from tabby.adapter import run

        return run

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
