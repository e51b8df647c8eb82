from __future__ import annotations

import logging
import threading
from typing import BinaryIO

from .constants import ENCODING

logger = logging.getLogger(__name__)


class Transcript:
    """Newline-terminated mirror of the control channel.

    Written to by the caller's thread (commands) and by the reply reader
    (replies), so writes are serialized. A broken or closed stream never
    interrupts the protocol: write failures are dropped.
    """

    def __init__(self, stream: BinaryIO, encoding: str = ENCODING):
        self.stream = stream
        self.encoding = encoding
        self._lock = threading.Lock()

    def write(self, line: str) -> None:
        data = (line + "\n").encode(self.encoding, errors="replace")
        with self._lock:
            try:
                self.stream.write(data)
                self.stream.flush()
            except (OSError, ValueError) as exc:
                logger.debug("transcript write dropped: %s", exc)
