# radios/gqrx/errors.py
"""Error taxonomy for the gqrx remote-control channel.

Transport failures are global (every pending command is rejected with
GqrxConnectionError). Parsing and semantic failures are local: they reject
only the command whose reply triggered them.
"""

from typing import Optional


class GqrxError(Exception):
    """Generic gqrx communication error (superclass for all gqrx errors)."""
    pass


class GqrxConnectionError(GqrxError, ConnectionError):
    """Socket unavailable, refused or dropped."""
    pass


class ProtocolError(GqrxError):
    """A reply could not be reassembled or parsed."""
    pass


class CommandError(GqrxError):
    """The daemon answered with a non-zero report code."""

    def __init__(self, code: int, command: Optional[str] = None):
        self.code = code
        self.command = command
        if command:
            msg = f"Command '{command}' failed with RPRT {code}"
        else:
            msg = f"Command failed with RPRT {code}"
        super().__init__(msg)


class CommandTimeoutError(GqrxError, TimeoutError):
    """No reply arrived before the command's deadline."""

    def __init__(self, command: str, timeout: float):
        self.command = command
        self.timeout = timeout
        super().__init__(f"No reply to '{command}' within {timeout:.3f}s")
