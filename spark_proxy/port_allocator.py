"""Find and hold a free listening port.

The returned socket stays bound and is handed straight to the HTTP server,
so no other process can claim the port between discovery and serving.
"""

import errno
import logging
import socket
import sys

from .errors import PortBindError

logger = logging.getLogger(__name__)

MAX_PORT = 65535


def _bind_listener(host: str, port: int, backlog: int) -> socket.socket:
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        if sys.platform != "win32":
            # Only lets us reuse ports in TIME_WAIT; live listeners still conflict.
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
        sock.listen(backlog)
    except BaseException:
        sock.close()
        raise
    return sock


def allocate(
    base_port: int,
    host: str = "0.0.0.0",
    *,
    max_port: int = MAX_PORT,
    backlog: int = 2048,
) -> socket.socket:
    """Bind the first free port >= ``base_port`` and return the listening socket.

    Ports already in use are skipped; any other bind failure is fatal.
    """
    if not 0 <= base_port <= MAX_PORT:
        raise PortBindError(f"Base port out of range: {base_port}")
    max_port = min(max_port, MAX_PORT)

    port = base_port
    while port <= max_port:
        try:
            sock = _bind_listener(host, port, backlog)
        except OSError as e:
            if e.errno == errno.EADDRINUSE:
                logger.info("Port %d is in use, trying %d", port, port + 1)
                port += 1
                continue
            raise PortBindError(f"Cannot bind {host}:{port}: {e}") from e
        bound_port = sock.getsockname()[1]
        logger.info("Bound %s:%d", host, bound_port)
        return sock

    raise PortBindError(f"No free port in range {base_port}-{max_port} on {host}")
