"""
folderhost - host a folder over HTTP, fast and simply

Exposes one directory over HTTP with an auto-selected port, a configurable
symlink policy and optional staged writes.

Main modules:
- config: Configuration resolution (hosted directory, port, staging area)
- paths: URL to filesystem path translation with containment checks
- ports: Free port discovery
- staging: Staged, atomically committed writes
- util: Content sniffing, HTML templates and logging helpers
- scripts.serve_static: HTTP handler and command line entry point

Usage:
    from folderhost.config import resolve_configuration
    from folderhost.paths import resolve_path

    config = resolve_configuration({"directory": "site"})
    path = resolve_path(config, "/docs/index.html")
"""

__version__ = "1.0.0"
__author__ = "folderhost contributors"
__email__ = ""
__description__ = "Host a directory over HTTP with safe path handling and staged writes"

# Package metadata
__all__ = [
    "__version__",
    "__author__",
    "__email__",
    "__description__",
    "get_config",
    "resolve_configuration",
    "Configuration",
]

from .config import Configuration, get_config, resolve_configuration  # noqa: E402
