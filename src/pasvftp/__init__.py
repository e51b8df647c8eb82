"""Passive-mode FTP client

A control connection carries commands and replies; a background reader turns
227 replies into data connections that LIST and RETR hand to transfer threads:
- one data channel reserved at a time
- PASV outcomes published on a single-use channel, never shared fields
- transfer completion observable by the caller

Every command sent and every reply received is mirrored to a transcript.
"""

from .client import FtpClient
from .errors import (
    ControlChannelError,
    DataChannelNotInitiated,
    FtpError,
    PassiveReplyError,
    WaitInterrupted,
    WaitTimeout,
)
from .negotiation import DataChannelReady, PassiveNegotiation
from .replies import parse_pasv_reply
from .reservation import DataChannelReservation
from .transfer import TransferJob, TransferMetrics
from .transcript import Transcript

__all__ = [
    "ControlChannelError",
    "DataChannelNotInitiated",
    "DataChannelReady",
    "DataChannelReservation",
    "FtpClient",
    "FtpError",
    "PassiveNegotiation",
    "PassiveReplyError",
    "Transcript",
    "TransferJob",
    "TransferMetrics",
    "WaitInterrupted",
    "WaitTimeout",
    "parse_pasv_reply",
]
