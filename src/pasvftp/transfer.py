from __future__ import annotations

import logging
import socket
import threading
import time
from dataclasses import dataclass, field
from typing import BinaryIO

from .constants import DEFAULT_CHUNK_SIZE
from .errors import WaitTimeout
from .net import close_quietly
from .reservation import DataChannelReservation

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TransferMetrics:
    """What one data connection delivered, and how fast."""

    bytes_received: int = 0
    opened_at: float = field(default_factory=time.monotonic)
    drained_at: float | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def elapsed(self) -> float:
        """Seconds from start of the copy to end-of-stream (or failure)."""
        return 0.0 if self.drained_at is None else self.drained_at - self.opened_at

    @property
    def kib_per_second(self) -> float:
        return self.bytes_received / 1024 / self.elapsed if self.elapsed > 0 else 0.0


@dataclass(slots=True)
class TransferJob:
    """Drains one passive data connection into a sink.

    Whatever happens during the copy, the data socket is closed, the sink is
    closed when close_sink is set, and the reservation is released last so
    the next PASV only proceeds once the sink has everything.
    """

    source: socket.socket
    sink: BinaryIO
    reservation: DataChannelReservation
    close_sink: bool = False
    chunk_size: int = DEFAULT_CHUNK_SIZE
    name: str = "transfer"
    metrics: TransferMetrics | None = field(default=None, init=False)
    _done: threading.Event = field(default_factory=threading.Event, init=False, repr=False)
    _thread: threading.Thread | None = field(default=None, init=False, repr=False)

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def start(self) -> "TransferJob":
        self._thread = threading.Thread(target=self.run, name=f"ftp-data {self.name}", daemon=True)
        self._thread.start()
        return self

    def wait(self, timeout: float | None = None) -> TransferMetrics:
        if not self._done.wait(timeout):
            raise WaitTimeout(f"{self.name} still running after {timeout}s")
        assert self.metrics is not None
        return self.metrics

    def run(self) -> TransferMetrics:
        metrics = TransferMetrics()
        try:
            while True:
                chunk = self.source.recv(self.chunk_size)
                if not chunk:
                    break
                self.sink.write(chunk)
                metrics.bytes_received += len(chunk)
            self.sink.flush()
        except Exception as exc:
            metrics.error = exc
            logger.warning("%s aborted after %d bytes: %s", self.name, metrics.bytes_received, exc)
        finally:
            close_quietly(self.source)
            if self.close_sink:
                close_quietly(self.sink)
            metrics.drained_at = time.monotonic()
            self.metrics = metrics
            self.reservation.release()
            self._done.set()

        if metrics.ok:
            logger.info(
                "%s done; %d bytes in %.3fs (%.1f KiB/s)",
                self.name,
                metrics.bytes_received,
                metrics.elapsed,
                metrics.kib_per_second,
            )
        return metrics
