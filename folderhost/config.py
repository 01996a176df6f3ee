#!/usr/bin/env python3
"""
Configuration management for folderhost
Resolves the hosted directory, listening port, symlink policy and staging area
"""
from __future__ import annotations

import os
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from .errors import ConfigError, InvalidDirectory, InvalidPort
from .util import PORT_SCAN_HIGHEST, PORT_SCAN_LOWEST

# Prefix of the per-hosted-directory staging subdirectory
STAGING_TAG = "folderhost-"

_PORT_RE = re.compile(r"^\+?[0-9]+$")


@dataclass(frozen=True)
class DirectoryReference:
    """A directory as the user typed it, paired with its canonical path"""

    display: str
    path: Path

    @classmethod
    def resolve(cls, raw, label: str = "Directory") -> "DirectoryReference":
        """Canonicalize ``raw``; it must name an existing directory"""
        try:
            canonical = Path(raw).expanduser().resolve(strict=True)
        except (OSError, RuntimeError):
            raise InvalidDirectory(raw, "not found") from None
        if not canonical.is_dir():
            raise InvalidDirectory(raw, "not actually a directory")
        return cls(str(raw), canonical)


@dataclass(frozen=True)
class Configuration:
    """Process-wide settings, created once at startup and never mutated"""

    hosted_directory: DirectoryReference
    port: Optional[int] = None
    follow_symlinks: bool = False
    # Staging subdirectory; None unless write mode is on
    temp_directory: Optional[DirectoryReference] = None
    port_range: Tuple[int, int] = (PORT_SCAN_LOWEST, PORT_SCAN_HIGHEST)

    @property
    def allow_write(self) -> bool:
        return self.temp_directory is not None

    def get_info(self) -> Dict[str, Any]:
        """Get configuration info for debugging"""
        return {
            'hosted_directory': self.hosted_directory.display,
            'root': str(self.hosted_directory.path),
            'port': self.port,
            'port_range': list(self.port_range),
            'follow_symlinks': self.follow_symlinks,
            'allow_write': self.allow_write,
            'temp_directory': self.temp_directory.display if self.temp_directory else None,
        }


def staging_suffix(hosted: Path) -> str:
    """Name of the staging subdirectory dedicated to ``hosted``.

    Windows verbatim prefixes and drive colons are dropped and every path
    separator becomes a dash, so ``/home/u/site`` maps to
    ``folderhost--home-u-site``.
    """
    text = str(hosted).replace("\\\\?\\", "").replace(":", "")
    return STAGING_TAG + text.replace("\\", "/").replace("/", "-")


def parse_port(raw) -> Optional[int]:
    """Parse an optional 16-bit unsigned port number"""
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise InvalidPort(raw)
    if isinstance(raw, int):
        port = raw
    elif isinstance(raw, str) and _PORT_RE.match(raw.strip()):
        port = int(raw.strip())
    else:
        raise InvalidPort(raw)
    if not 0 <= port <= 65535:
        raise InvalidPort(raw)
    return port


def _staging_reference(hosted: DirectoryReference, temp_dir) -> DirectoryReference:
    env_temp = os.getenv('FOLDERHOST_TEMP_DIR')
    if temp_dir is None and env_temp:
        temp_dir = env_temp

    if temp_dir is not None:
        temp_root = DirectoryReference.resolve(temp_dir, "Temporary directory")
    else:
        temp_root = DirectoryReference("$TEMP", Path(tempfile.gettempdir()).resolve())

    suffix = staging_suffix(hosted.path)
    sep = "" if temp_root.display.endswith(("/", "\\")) else "/"
    return DirectoryReference(f"{temp_root.display}{sep}{suffix}", temp_root.path / suffix)


def resolve_configuration(raw_options: Optional[Mapping[str, Any]] = None) -> Configuration:
    """Build the immutable Configuration from raw option values.

    ``raw_options`` may be a mapping or an ``argparse.Namespace`` with the
    optional keys ``directory``, ``port``, ``follow_symlinks``,
    ``allow_write``, ``temp_dir`` and ``port_range``.

    Raises InvalidDirectory or InvalidPort on bad input.
    """
    if raw_options is None:
        raw_options = {}
    elif not isinstance(raw_options, Mapping):
        raw_options = vars(raw_options)

    # Allow environment variable override, then fall back to the working directory
    directory = raw_options.get('directory') or os.getenv('FOLDERHOST_ROOT') or "."
    hosted = DirectoryReference.resolve(directory)

    port = parse_port(raw_options.get('port'))

    temp_directory = None
    if raw_options.get('allow_write'):
        temp_directory = _staging_reference(hosted, raw_options.get('temp_dir'))

    port_range = tuple(raw_options.get('port_range') or (PORT_SCAN_LOWEST, PORT_SCAN_HIGHEST))

    return Configuration(
        hosted_directory=hosted,
        port=port,
        follow_symlinks=bool(raw_options.get('follow_symlinks')),
        temp_directory=temp_directory,
        port_range=port_range,
    )


# Default global config instance
_config = None

def get_config(raw_options=None) -> Configuration:
    """Get the global configuration instance.

    The first call resolves it (from ``raw_options`` when given). Passing
    options once it exists raises ConfigError instead of replacing it.
    """
    global _config
    if _config is None:
        _config = resolve_configuration(raw_options)
    elif raw_options is not None:
        raise ConfigError("Configuration has already been resolved")
    return _config


if __name__ == '__main__':
    # Show the configuration resolved for the current directory
    info = get_config().get_info()

    print("folderhost configuration:")
    for key, value in info.items():
        print(f"  {key}: {value}")
