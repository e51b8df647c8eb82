from __future__ import annotations

import io
import socket
import threading
import time
from typing import Callable, Dict, List, Optional

import pytest

from pasvftp import FtpClient

SILENT = object()


def wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class FakeFtpServer:
    """Loopback FTP server answering just enough of RFC 959, one session at a time."""

    def __init__(
        self,
        listing: bytes = b"",
        files: Optional[Dict[str, bytes]] = None,
        pasv_reply: object = None,
        pasv_delays: Optional[List[float]] = None,
    ):
        self.listing = listing
        self.files = files or {}
        # None: a real 227 reply; SILENT: never answer PASV; str: sent verbatim
        self.pasv_reply = pasv_reply
        # seconds to sit on each successive PASV before answering it
        self.pasv_delays = list(pasv_delays or [])
        self.pasv_ports: List[int] = []
        self.commands: List[str] = []
        self.listener = socket.create_server(("127.0.0.1", 0))
        self.host, self.port = self.listener.getsockname()[:2]
        self._data_listener: Optional[socket.socket] = None
        self._thread = threading.Thread(target=self._serve, daemon=True)

    def start(self) -> "FakeFtpServer":
        self._thread.start()
        return self

    def stop(self) -> None:
        self.listener.close()
        if self._data_listener is not None:
            self._data_listener.close()
        self._thread.join(timeout=5.0)

    def _reply(self, conn: socket.socket, line: str) -> None:
        conn.sendall((line + "\r\n").encode("latin-1"))

    def _serve(self) -> None:
        while True:
            try:
                conn, _ = self.listener.accept()
            except OSError:
                return
            with conn, conn.makefile("rb") as rfile:
                try:
                    self._session(conn, rfile)
                except OSError:
                    # the client hung up while we were still answering
                    pass

    def _session(self, conn: socket.socket, rfile) -> None:
        self._reply(conn, "220 fake server ready")
        for raw in rfile:
            line = raw.decode("latin-1").rstrip("\r\n")
            self.commands.append(line)
            verb, _, arg = line.partition(" ")
            handler = getattr(self, f"_do_{verb.lower()}", None)
            if handler is None:
                self._reply(conn, "502 command not implemented")
                continue
            if handler(conn, arg) is False:
                break

    def _do_user(self, conn, arg):
        self._reply(conn, "331 password required")

    def _do_pass(self, conn, arg):
        self._reply(conn, "230 logged in")

    def _do_pwd(self, conn, arg):
        self._reply(conn, '257 "/" is the current directory')

    def _do_cwd(self, conn, arg):
        self._reply(conn, "250 directory changed")

    def _do_cdup(self, conn, arg):
        self._reply(conn, "250 directory changed")

    def _do_type(self, conn, arg):
        self._reply(conn, f"200 type set to {arg}")

    def _do_noop(self, conn, arg):
        self._reply(conn, "200 ok")

    def _do_quit(self, conn, arg):
        self._reply(conn, "221 goodbye")
        return False

    def _do_pasv(self, conn, arg):
        if self.pasv_reply is SILENT:
            return
        if self.pasv_reply is not None:
            self._reply(conn, str(self.pasv_reply))
            return
        if self.pasv_delays:
            time.sleep(self.pasv_delays.pop(0))
        if self._data_listener is not None:
            self._data_listener.close()
        self._data_listener = socket.create_server(("127.0.0.1", 0))
        port = self._data_listener.getsockname()[1]
        self.pasv_ports.append(port)
        self._reply(conn, f"227 Entering Passive Mode (127,0,0,1,{port >> 8},{port & 0xFF}).")

    def _do_list(self, conn, arg):
        self._send_data(conn, self.listing)

    def _do_retr(self, conn, arg):
        if arg not in self.files:
            if self._data_listener is not None:
                self._data_listener.close()
                self._data_listener = None
            self._reply(conn, f"550 {arg}: no such file")
            return
        self._send_data(conn, self.files[arg])

    def _send_data(self, conn: socket.socket, payload: bytes) -> None:
        listener, self._data_listener = self._data_listener, None
        if listener is None:
            self._reply(conn, "425 use PASV first")
            return
        self._reply(conn, "150 opening data connection")
        with listener:
            data_conn, _ = listener.accept()
        with data_conn:
            data_conn.sendall(payload)
        self._reply(conn, "226 transfer complete")


@pytest.fixture
def make_server():
    servers: List[FakeFtpServer] = []

    def factory(**kwargs) -> FakeFtpServer:
        server = FakeFtpServer(**kwargs).start()
        servers.append(server)
        return server

    yield factory
    for server in servers:
        server.stop()


@pytest.fixture
def log() -> io.BytesIO:
    return io.BytesIO()


@pytest.fixture
def make_client(log):
    clients: List[FtpClient] = []

    def factory(server: FakeFtpServer, **kwargs) -> FtpClient:
        client = FtpClient(log, **kwargs)
        client.connect_to(server.host, server.port)
        clients.append(client)
        return client

    yield factory
    for client in clients:
        if client.connected:
            client.close()
        client.join(timeout=5.0)


def transcript_lines(log: io.BytesIO) -> List[str]:
    return log.getvalue().decode("latin-1").splitlines()
