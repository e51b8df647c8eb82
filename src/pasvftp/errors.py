from __future__ import annotations


class FtpError(Exception):
    """Base class for client errors."""


class ControlChannelError(FtpError):
    """No live control connection, or one is already open."""


class PassiveReplyError(FtpError, ValueError):
    """A 227 reply without a usable (h1,h2,h3,h4,p1,p2) tuple."""

    def __init__(self, line: str, reason: str = "malformed PASV reply") -> None:
        super().__init__(f"{reason}: {line!r}")
        self.line = line


class DataChannelNotInitiated(FtpError):
    """LIST or RETR issued without a pending passive data connection."""


class WaitInterrupted(FtpError):
    pass


class WaitTimeout(FtpError, TimeoutError):
    pass
