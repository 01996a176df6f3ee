"""
Listening port discovery
"""
from __future__ import annotations

import socket

from .errors import NoFreePort
from .util import PORT_SCAN_HIGHEST, PORT_SCAN_LOWEST


def port_is_free(port: int, host: str = "") -> bool:
    """Bind ``host:port`` and release it straight away"""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.bind((host, port))
        return True
    except OSError:
        return False
    finally:
        sock.close()


def find_free_port(lowest: int = PORT_SCAN_LOWEST, highest: int = PORT_SCAN_HIGHEST, host: str = "") -> int:
    """Return the first port in [lowest, highest] that can be bound.

    The port is released before returning, so another process may grab it
    before the real listener binds. Raises NoFreePort if none is available.
    """
    for port in range(lowest, highest + 1):
        if port_is_free(port, host):
            return port
    raise NoFreePort(lowest, highest)


def allocate_port(config, host: str = "") -> int:
    """Explicitly configured port, or the first free one in the configured range"""
    if config.port is not None:
        return config.port
    lowest, highest = config.port_range
    return find_free_port(lowest, highest, host)
