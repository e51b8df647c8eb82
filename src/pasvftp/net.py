from __future__ import annotations

import logging
import socket
import threading
from typing import Optional, Protocol, Tuple

from .constants import CRLF, ENCODING

logger = logging.getLogger(__name__)


class Closeable(Protocol):
    def close(self) -> None: ...


def close_quietly(resource: Closeable) -> None:
    try:
        resource.close()
    except (OSError, ValueError) as exc:
        logger.debug("ignoring error while closing %r: %s", resource, exc)


def open_data_connection(address: Tuple[str, int], timeout: float | None = None) -> socket.socket:
    sock = socket.create_connection(address, timeout=timeout)
    # The connect timeout must not turn into a read timeout for the transfer
    sock.settimeout(None)
    return sock


class ControlConnection:
    """Line-oriented view of the control socket.

    Lines are read by a single reader thread; writes may come from any thread
    and go out whole.
    """

    def __init__(self, sock: socket.socket, encoding: str = ENCODING):
        self.sock = sock
        self.encoding = encoding
        self._rfile = sock.makefile("rb")
        self._write_lock = threading.Lock()

    @classmethod
    def open(
        cls,
        host: str,
        port: int,
        timeout: float | None = None,
        encoding: str = ENCODING,
    ) -> "ControlConnection":
        sock = socket.create_connection((host, port), timeout=timeout)
        sock.settimeout(None)
        return cls(sock, encoding)

    def send_line(self, line: str) -> None:
        data = (line + CRLF).encode(self.encoding)
        with self._write_lock:
            self.sock.sendall(data)

    def read_line(self) -> Optional[str]:
        """Next reply line without its terminator, or None at end-of-stream."""
        raw = self._rfile.readline()
        if not raw:
            return None
        return raw.decode(self.encoding).rstrip("\r\n")

    def release_reader(self) -> None:
        close_quietly(self._rfile)

    def close(self) -> None:
        try:
            # wakes up the reader thread blocked in readline()
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self.sock.close()
