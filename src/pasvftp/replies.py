from __future__ import annotations

import re
from typing import Optional, Tuple

from .constants import PASV_REPLY_CODE
from .errors import PassiveReplyError

# Located anywhere in the reply, the text around it varies between servers
_PASV_TUPLE = re.compile(r"\((\d+),(\d+),(\d+),(\d+),(\d+),(\d+)\)", re.ASCII)


def reply_code(line: str) -> Optional[str]:
    code = line[:3]
    if len(code) == 3 and code.isdigit():
        return code
    return None


def is_pasv_reply(line: str) -> bool:
    return reply_code(line) == PASV_REPLY_CODE


def parse_pasv_reply(line: str) -> Tuple[str, int]:
    """Return the (host, port) announced by a "227 Entering Passive Mode" reply.

    Raises PassiveReplyError if the line carries no (h1,h2,h3,h4,p1,p2) tuple
    or any of its fields does not fit in a byte.
    """
    m = _PASV_TUPLE.search(line)
    if m is None:
        raise PassiveReplyError(line)

    fields = [int(g) for g in m.groups()]
    if any(f > 255 for f in fields):
        raise PassiveReplyError(line, "PASV field out of range")

    host = ".".join(str(f) for f in fields[:4])
    port = fields[4] * 256 + fields[5]
    return host, port
