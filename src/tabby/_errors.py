"""Tabby error hierarchy.

All tabby-specific errors inherit from TabbyError for easy catching.
"""


class TabbyError(Exception):
    """Base error for all tabby operations."""


class ConfigError(TabbyError):
    """Invalid or missing configuration."""


class RuntimeVersionError(ConfigError):
    """The host Python version has no default deployment runtime."""


class ConflictError(TabbyError):
    """Two routes share a dispatch pattern but have incompatible configs."""


class IsrError(TabbyError):
    """Invalid incremental regeneration settings on a route."""


class BundleError(TabbyError):
    """Error while materializing a function bundle."""


class ExportError(TabbyError):
    """Error while writing static assets or the routing document."""
