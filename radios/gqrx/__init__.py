# radios/gqrx/__init__.py
"""
gqrx remote-control client package.

Exports:
- GqrxClient         (high-level client, one coroutine per protocol verb)
- CommandDispatcher  (FIFO command/response channel)
- GqrxTransport      (asyncio TCP transport)
- FrameReassembler   (byte stream -> reply frames)
- error classes
"""

from .client import MODE_PASSBANDS, GqrxClient, ModeInfo
from .dispatcher import CommandDispatcher, PendingCommand
from .errors import (
    CommandError,
    CommandTimeoutError,
    GqrxConnectionError,
    GqrxError,
    ProtocolError,
)
from .framing import SINGLE_LINE, FrameReassembler, ReplyShape, multi_line
from .interpreter import ResponseKind, interpret
from .transport import DEFAULT_PORT as DEFAULT_GQRX_PORT, ConnectionState, GqrxTransport

__all__ = [
    "GqrxClient",
    "ModeInfo",
    "MODE_PASSBANDS",
    "CommandDispatcher",
    "PendingCommand",
    "GqrxTransport",
    "ConnectionState",
    "FrameReassembler",
    "ReplyShape",
    "SINGLE_LINE",
    "multi_line",
    "ResponseKind",
    "interpret",
    "GqrxError",
    "GqrxConnectionError",
    "ProtocolError",
    "CommandError",
    "CommandTimeoutError",
    "DEFAULT_GQRX_PORT",
]
