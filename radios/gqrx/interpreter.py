# radios/gqrx/interpreter.py
"""Classify reply frames as success, failure or raw data."""

import enum
from typing import Optional

from .errors import CommandError, ProtocolError
from .framing import REPORT_PREFIX

SUCCESS_CODE = 0


class ResponseKind(enum.Enum):
    REPORT = "report"   # set-style command, reply is 'RPRT <code>'
    VALUE = "value"     # get-style command, reply is the raw value


def is_report(frame: str) -> bool:
    return frame.startswith(REPORT_PREFIX)


def parse_report(frame: str) -> int:
    """Return the code of an 'RPRT <code>' line; ProtocolError if it is not one."""
    parts = frame.split()
    if len(parts) != 2 or parts[0] != REPORT_PREFIX.strip():
        raise ProtocolError(f"Expected 'RPRT <code>', got {frame!r}")
    try:
        return int(parts[1])
    except ValueError:
        raise ProtocolError(f"Report code is not an integer: {frame!r}")


def interpret(frame: str, kind: ResponseKind, command: Optional[str] = None) -> str:
    """
    REPORT: return the frame when the code is the success sentinel, raise
    CommandError with the reported code otherwise.
    VALUE: return the frame unmodified.
    """
    if kind is ResponseKind.VALUE:
        return frame
    code = parse_report(frame)
    if code != SUCCESS_CODE:
        raise CommandError(code, command)
    return frame
