"""
Exceptions raised by folderhost.

Startup errors (ConfigError and subclasses) are fatal and end the process.
Per-request errors (PathError and the write errors) are turned into HTTP
error responses by the request handler.
"""
from __future__ import annotations


class ConfigError(Exception):
    """Invalid startup input or environment"""


class InvalidDirectory(ConfigError):
    def __init__(self, path, reason: str = "not found"):
        self.path = str(path)
        self.reason = reason
        super().__init__(f'Directory "{self.path}" {reason}')


class InvalidPort(ConfigError):
    def __init__(self, raw):
        self.raw = raw
        super().__init__(f"{raw} is not a valid port number")


class NoFreePort(ConfigError):
    def __init__(self, lowest: int, highest: int):
        self.lowest = lowest
        self.highest = highest
        super().__init__(f"No free port between {lowest} and {highest}")


class PathError(Exception):
    """A request path that cannot be served"""


class NotFound(PathError):
    pass


class Outside(PathError):
    """The path escapes the hosted directory"""


class SymlinkDenied(PathError):
    """A symlink lies on the path and following symlinks is disabled"""


class WriteDisabled(PermissionError):
    def __init__(self):
        super().__init__("Write operations are not allowed")


class IncompleteWrite(OSError):
    def __init__(self, expected: int, written: int):
        self.expected = expected
        self.written = written
        super().__init__(f"Expected {expected} bytes, received {written}")
