from __future__ import annotations

import queue
import socket
import threading
from dataclasses import dataclass
from typing import Optional, Tuple

from .errors import WaitInterrupted, WaitTimeout


@dataclass(frozen=True, slots=True)
class DataChannelReady:
    """Outcome of one PASV exchange, as seen by the reply reader."""

    address: Optional[Tuple[str, int]] = None
    conn: Optional[socket.socket] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.conn is not None


_INTERRUPTED = object()


class PassiveNegotiation:
    """Single-use channel between one PASV call and the reply reader.

    Exactly one item is ever accepted: the reader's outcome, or an
    interruption marker placed by the waiting side. Whichever comes first
    wins; every later offer is refused, even once the item has been read.
    """

    def __init__(self) -> None:
        self._slot: "queue.Queue[object]" = queue.Queue(maxsize=1)
        self._lock = threading.Lock()
        self._settled = False
        self._consumed = False

    @property
    def settled(self) -> bool:
        return self._settled

    def _offer(self, item: object) -> bool:
        with self._lock:
            if self._settled:
                return False
            self._settled = True
        self._slot.put_nowait(item)
        return True

    def publish(self, outcome: DataChannelReady) -> bool:
        return self._offer(outcome)

    def interrupt(self) -> bool:
        return self._offer(_INTERRUPTED)

    def wait(self, timeout: float | None = None) -> DataChannelReady:
        if self._consumed:
            raise RuntimeError("PASV negotiation already consumed")
        self._consumed = True
        try:
            item = self._slot.get(timeout=timeout)
        except queue.Empty:
            if self.interrupt():
                raise WaitTimeout(f"no PASV reply after {timeout}s") from None
            # the reader published right as the wait expired
            item = self._slot.get()

        if item is _INTERRUPTED:
            raise WaitInterrupted("interrupted while waiting for the PASV reply")
        assert isinstance(item, DataChannelReady)
        return item
