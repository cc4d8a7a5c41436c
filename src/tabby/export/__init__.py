"""Export layer — static assets and the routing document."""

from tabby.export.static import (
    ExportedFile,
    build_routing_config,
    copy_static,
    write_routing_config,
)

__all__ = ["ExportedFile", "build_routing_config", "copy_static", "write_routing_config"]
