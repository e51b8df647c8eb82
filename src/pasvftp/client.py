from __future__ import annotations

import collections
import functools
import logging
import threading
from typing import BinaryIO, Deque, Optional

from .constants import DEFAULT_CHUNK_SIZE, ENCODING, FTP_PORT
from .dispatcher import Connector, ReplyDispatcher
from .errors import ControlChannelError
from .negotiation import DataChannelReady, PassiveNegotiation
from .net import ControlConnection, open_data_connection
from .reservation import DataChannelReservation
from .transcript import Transcript
from .transfer import TransferJob

logger = logging.getLogger(__name__)


class FtpClient:
    """Passive-mode FTP client.

    Commands are written from the caller's thread and never wait for a reply;
    replies are read by a background thread and only show up in the
    transcript. The one exception is PASV, which blocks until the reader has
    opened (or failed to open) the data connection announced by the server.

    A download cycle is::

        client.send_pasv()
        job = client.send_retr("notes.txt", open("notes.txt", "wb"), close_sink=True)
        job.wait()

    ``wait_timeout`` bounds the two blocking points of send_pasv(); the
    default of None waits for as long as the server takes.
    """

    def __init__(
        self,
        log: BinaryIO,
        *,
        encoding: str = ENCODING,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        connect_timeout: float | None = None,
        wait_timeout: float | None = None,
        connector: Optional[Connector] = None,
    ):
        self.transcript = Transcript(log, encoding)
        self.encoding = encoding
        self.chunk_size = chunk_size
        self.connect_timeout = connect_timeout
        self.wait_timeout = wait_timeout
        self.connector = connector or functools.partial(open_data_connection, timeout=connect_timeout)
        self.reservation = DataChannelReservation()
        self.conn: ControlConnection | None = None
        self.transfer: TransferJob | None = None
        self._dispatcher: ReplyDispatcher | None = None
        # one entry per PASV sent and not answered yet, oldest first
        self._in_flight: Deque[PassiveNegotiation] = collections.deque()
        self._lock = threading.Lock()

    def __enter__(self) -> "FtpClient":
        return self

    def __exit__(self, *args) -> None:
        if self.conn is not None:
            try:
                self.close()
            except OSError as exc:
                logger.debug("error closing control connection: %s", exc)

    @property
    def connected(self) -> bool:
        return self.conn is not None

    def connect_to(self, host: str, port: int = FTP_PORT) -> None:
        if self.conn is not None:
            raise ControlChannelError("control connection already established")
        logger.info("connecting to %s:%d", host, port)
        self.conn = ControlConnection.open(host, port, timeout=self.connect_timeout, encoding=self.encoding)
        self._dispatcher = ReplyDispatcher(self.conn, self.transcript, self._claim_negotiation, self.connector)
        self._dispatcher.start()

    def close(self) -> None:
        """Send QUIT and close the control connection."""
        conn = self._require_connection()
        try:
            self.send_command("QUIT")
        finally:
            self.conn = None
            with self._lock:
                unanswered = list(self._in_flight)
                self._in_flight.clear()
            for negotiation in unanswered:
                negotiation.interrupt()
            # a PASV nobody followed with LIST or RETR still holds the channel
            if self.reservation.discard():
                self.reservation.release()
            conn.close()
            logger.info("control connection closed")

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the reply reader to stop; True once it has."""
        if self._dispatcher is None or self._dispatcher.thread is None:
            return True
        self._dispatcher.thread.join(timeout)
        return not self._dispatcher.thread.is_alive()

    def interrupt(self) -> None:
        """Fail the PASV or reservation wait the caller is currently blocked in."""
        with self._lock:
            in_flight = list(self._in_flight)
        for negotiation in in_flight:
            negotiation.interrupt()
        self.reservation.interrupt()

    def _require_connection(self) -> ControlConnection:
        if self.conn is None:
            raise ControlChannelError("not connected")
        return self.conn

    def _claim_negotiation(self) -> PassiveNegotiation | None:
        """The PASV a 227 reply answers; replies come back in the order sent."""
        with self._lock:
            if self._in_flight:
                return self._in_flight.popleft()
            return None

    def send_command(self, command: str) -> str:
        conn = self._require_connection()
        # logged first so a reply can never land in the transcript ahead of it
        self.transcript.write(command)
        conn.send_line(command)
        return command

    def authenticate(self, user: str, password: str) -> None:
        self.send_command(f"USER {user}")
        self.send_command(f"PASS {password}")

    def send_quit(self) -> str:
        return self.send_command("QUIT")

    def send_pwd(self) -> str:
        return self.send_command("PWD")

    def send_cwd(self, path: str) -> str:
        return self.send_command(f"CWD {path}")

    def send_cdup(self) -> str:
        return self.send_command("CDUP")

    def send_type(self, mode: str = "I") -> str:
        return self.send_command(f"TYPE {mode}")

    def send_noop(self) -> str:
        return self.send_command("NOOP")

    def send_pasv(self) -> DataChannelReady:
        """Reserve the data channel and negotiate a passive data connection.

        Blocks until no other data channel is reserved, then until the reply
        reader has handled the 227 reply. On success the data connection is
        kept for the next LIST or RETR. A failed outcome (malformed reply,
        refused connection) gives the reservation back and is returned, not
        raised; the next LIST or RETR will report the missing data channel.

        A wait that times out or is interrupted leaves its negotiation in
        line, so a late 227 is matched to it and dropped instead of being
        handed to the next PASV.
        """
        self._require_connection()
        self.reservation.acquire(self.wait_timeout)

        negotiation = PassiveNegotiation()
        with self._lock:
            self._in_flight.append(negotiation)
        try:
            self.send_command("PASV")
        except BaseException:
            with self._lock:
                if negotiation in self._in_flight:
                    self._in_flight.remove(negotiation)
            self.reservation.release()
            raise

        try:
            outcome = negotiation.wait(self.wait_timeout)
        except BaseException:
            negotiation.interrupt()
            self.reservation.release()
            raise

        if outcome.ok:
            assert outcome.conn is not None
            self.reservation.stash(outcome.conn)
        else:
            logger.warning("PASV failed: %s", outcome.error)
            self.reservation.release()
        return outcome

    def send_list(self, sink: BinaryIO, close_sink: bool = False, path: str | None = None) -> TransferJob:
        command = "LIST" if path is None else f"LIST {path}"
        return self._start_transfer(command, sink, close_sink)

    def send_retr(self, remote: str, sink: BinaryIO, close_sink: bool = False) -> TransferJob:
        return self._start_transfer(f"RETR {remote}", sink, close_sink)

    def _start_transfer(self, command: str, sink: BinaryIO, close_sink: bool) -> TransferJob:
        # The server expects the command while the data connection is open, so
        # it goes out first; without a data connection nothing is started.
        self.send_command(command)
        source = self.reservation.take()

        job = TransferJob(
            source,
            sink,
            self.reservation,
            close_sink=close_sink,
            chunk_size=self.chunk_size,
            name=command,
        )
        self.transfer = job
        return job.start()
