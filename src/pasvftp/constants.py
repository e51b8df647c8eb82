from __future__ import annotations

FTP_PORT = 21

# We always send CRLF but accept any line terminator on replies
CRLF = "\r\n"
ENCODING = "latin-1"

PASV_REPLY_CODE = "227"

DEFAULT_CHUNK_SIZE = 4096
