from __future__ import annotations

import logging
import socket
import threading
from typing import Callable, Optional, Tuple

from .errors import PassiveReplyError
from .negotiation import DataChannelReady, PassiveNegotiation
from .net import ControlConnection, close_quietly, open_data_connection
from .replies import is_pasv_reply, parse_pasv_reply
from .transcript import Transcript

logger = logging.getLogger(__name__)

Connector = Callable[[Tuple[str, int]], socket.socket]


class ReplyDispatcher:
    """Reads the control channel for as long as it stays open.

    Every reply goes to the transcript. A 227 reply is matched to the oldest
    unanswered PASV and turned into a data connection; the outcome, good or
    bad, is published to that PASV. A PASV whose caller already gave up gets
    no connection.
    """

    def __init__(
        self,
        conn: ControlConnection,
        transcript: Transcript,
        claim: Callable[[], Optional[PassiveNegotiation]],
        connector: Connector = open_data_connection,
    ):
        self.conn = conn
        self.transcript = transcript
        self.claim = claim
        self.connector = connector
        self.thread: threading.Thread | None = None

    def start(self) -> threading.Thread:
        self.thread = threading.Thread(target=self.run, name="ftp-control-reader", daemon=True)
        self.thread.start()
        return self.thread

    def run(self) -> None:
        try:
            while True:
                try:
                    line = self.conn.read_line()
                except (OSError, ValueError) as exc:
                    self.transcript.write(f"control channel error: {exc}")
                    logger.warning("control channel read failed: %s", exc)
                    break
                if line is None:
                    logger.info("control channel closed")
                    break

                self.transcript.write(line)
                if is_pasv_reply(line):
                    self._on_pasv_reply(line)
        finally:
            self.conn.release_reader()

    def _on_pasv_reply(self, line: str) -> None:
        negotiation = self.claim()
        try:
            address = parse_pasv_reply(line)
        except PassiveReplyError as exc:
            self.transcript.write(str(exc))
            logger.warning("%s", exc)
            if negotiation is not None:
                negotiation.publish(DataChannelReady(error=str(exc)))
            return

        if negotiation is None:
            logger.warning("ignoring unsolicited PASV reply: %r", line)
            return
        if negotiation.settled:
            logger.info("late reply to an abandoned PASV; not connecting to %s:%d", *address)
            return

        outcome = self._open(address)
        if not negotiation.publish(outcome) and outcome.conn is not None:
            logger.info("PASV caller gave up; closing data connection to %s:%d", *address)
            close_quietly(outcome.conn)

    def _open(self, address: Tuple[str, int]) -> DataChannelReady:
        host, port = address
        try:
            conn = self.connector(address)
        except OSError as exc:
            message = f"data channel connection to {host}:{port} failed: {exc}"
            self.transcript.write(message)
            logger.warning("%s", message)
            return DataChannelReady(address=address, error=message)
        logger.debug("data channel open to %s:%d", host, port)
        return DataChannelReady(address=address, conn=conn)
