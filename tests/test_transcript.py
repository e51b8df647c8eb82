from __future__ import annotations

import io
import threading

from pasvftp.transcript import Transcript


class ClosedStream(io.BytesIO):
    def write(self, data):
        raise OSError("broken pipe")


def test_lines_are_newline_terminated():
    out = io.BytesIO()
    t = Transcript(out)
    t.write("USER joe")
    t.write("331 password required")
    assert out.getvalue() == b"USER joe\n331 password required\n"


def test_concurrent_writers_never_interleave():
    out = io.BytesIO()
    t = Transcript(out)

    def writer(tag):
        for i in range(200):
            t.write(f"{tag} line {i} " + tag * 50)

    threads = [threading.Thread(target=writer, args=(tag,)) for tag in "abcd"]
    for th in threads:
        th.start()
    for th in threads:
        th.join(10.0)

    lines = out.getvalue().decode().splitlines()
    assert len(lines) == 800
    for line in lines:
        tag = line[0]
        assert line.endswith(tag * 50)


def test_write_failures_are_dropped():
    t = Transcript(ClosedStream())
    t.write("PASV")

    closed = io.BytesIO()
    closed.close()
    Transcript(closed).write("QUIT")
