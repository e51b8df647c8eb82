from __future__ import annotations

import logging
import socket
import threading

from .errors import DataChannelNotInitiated, WaitInterrupted, WaitTimeout
from .net import close_quietly

logger = logging.getLogger(__name__)


class DataChannelReservation:
    """Allows a single passive data channel to be in flight at a time.

    The reservation is taken by PASV and given back by the transfer worker
    once its copy is finished (or by PASV itself when negotiation fails). The
    data connection produced by a PASV waits in a one-slot holder guarded by
    the same condition until LIST or RETR takes it.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._reserved = False
        self._pending: socket.socket | None = None
        self._interrupts = 0

    @property
    def reserved(self) -> bool:
        with self._cond:
            return self._reserved

    @property
    def has_pending(self) -> bool:
        with self._cond:
            return self._pending is not None

    def acquire(self, timeout: float | None = None) -> None:
        with self._cond:
            generation = self._interrupts
            ready = self._cond.wait_for(
                lambda: not self._reserved or self._interrupts != generation,
                timeout,
            )
            if self._interrupts != generation:
                raise WaitInterrupted("interrupted while waiting for the data channel")
            if not ready:
                raise WaitTimeout(f"data channel still busy after {timeout}s")
            self._reserved = True

    def release(self) -> None:
        with self._cond:
            if not self._reserved:
                logger.debug("release of a data channel that was not reserved")
            self._reserved = False
            self._cond.notify_all()

    def interrupt(self) -> None:
        """Make every thread currently blocked in acquire() raise WaitInterrupted."""
        with self._cond:
            self._interrupts += 1
            self._cond.notify_all()

    def stash(self, conn: socket.socket) -> None:
        with self._cond:
            self._pending = conn

    def take(self) -> socket.socket:
        with self._cond:
            conn, self._pending = self._pending, None
        if conn is None:
            raise DataChannelNotInitiated("data channel not initiated; call PASV first")
        return conn

    def discard(self) -> bool:
        """Close a pending data connection; True if there was one."""
        with self._cond:
            conn, self._pending = self._pending, None
        if conn is None:
            return False
        close_quietly(conn)
        return True
