# radios/gqrx/framing.py
import logging
from dataclasses import dataclass
from typing import List, Optional

from .errors import ProtocolError

logger = logging.getLogger(__name__)

DEFAULT_MAX_FRAME_BYTES = 64 * 1024
REPORT_PREFIX = "RPRT "


@dataclass(frozen=True)
class ReplyShape:
    """Number of newline-terminated lines a reply is expected to span."""
    lines: int = 1

    def __post_init__(self):
        if self.lines < 1:
            raise ValueError("a reply spans at least one line")


SINGLE_LINE = ReplyShape(1)


def multi_line(lines: int) -> ReplyShape:
    return ReplyShape(lines)


class FrameReassembler:
    """
    Turns an arbitrarily chunked byte stream into reply frames.

    The wire carries no length or end-of-reply marker beyond the newline, so
    the reassembler has to be told how many lines the in-flight command will
    answer with (expect()). Rules:
      - A frame is complete once the expected number of lines has arrived.
      - A line starting with 'RPRT ' always ends the frame; the daemon answers
        a failed query with a single report line even where a value reply
        would have spanned several lines.
      - Bytes arriving while nothing is expected stay buffered and go to the
        next command. With no request ids this is the only choice; it is how
        a late reply to a timed-out command ends up misattributed.

    Lines are ASCII; each line is whitespace-stripped and lines of a
    multi-line frame are joined with '\\n'. A non-ASCII line fails the frame
    with ProtocolError, raised only after all of its lines have arrived.
    """

    def __init__(self, max_frame_bytes: int = DEFAULT_MAX_FRAME_BYTES):
        self.max_frame_bytes = int(max_frame_bytes)
        self._buffer = bytearray()
        self._shape: Optional[ReplyShape] = None
        self._lines: List[str] = []
        self._bad_line: Optional[bytes] = None

    # ----------- State -----------

    @property
    def expecting(self) -> bool:
        return self._shape is not None

    @property
    def buffered(self) -> int:
        """Number of raw bytes not yet consumed into a frame."""
        return len(self._buffer)

    def expect(self, shape: ReplyShape):
        """Start collecting a reply of the given shape."""
        self._shape = shape
        self._lines = []
        self._bad_line = None

    def abandon(self):
        """Stop collecting the current reply; buffered bytes are kept."""
        if self._lines:
            logger.debug(f"[FRAME] abandoning partial reply {self._lines!r}")
        self._shape = None
        self._lines = []
        self._bad_line = None

    def reset(self):
        """Drop everything, including buffered bytes."""
        self._buffer.clear()
        self._shape = None
        self._lines = []
        self._bad_line = None

    # ----------- Input -----------

    def feed(self, data: bytes = b"") -> Optional[str]:
        """
        Buffer data and return a completed frame, or None if more bytes are
        needed. feed() with no data re-checks what is already buffered.
        Raises ProtocolError on input that can never form a valid reply.
        """
        if data:
            self._buffer.extend(data)

        if self._shape is None:
            if data:
                logger.warning(f"[FRAME] {len(data)} byte(s) received with no command in flight")
            if len(self._buffer) > self.max_frame_bytes:
                logger.warning(f"[FRAME] dropping {len(self._buffer)} unsolicited byte(s)")
                self._buffer.clear()
            return None

        while len(self._lines) < self._shape.lines:
            idx = self._buffer.find(b"\n")
            if idx < 0:
                if len(self._buffer) > self.max_frame_bytes:
                    size = len(self._buffer)
                    self.reset()
                    raise ProtocolError(
                        f"Reply exceeds {self.max_frame_bytes} bytes without a line terminator ({size} buffered)"
                    )
                return None

            raw = bytes(self._buffer[:idx])
            del self._buffer[:idx + 1]
            try:
                line = raw.decode("ascii").strip()
            except UnicodeDecodeError:
                # Reported once the whole reply is consumed.
                if self._bad_line is None:
                    self._bad_line = raw
                line = raw.decode("ascii", errors="replace").strip()

            self._lines.append(line)
            if line.startswith(REPORT_PREFIX):
                break

        frame = "\n".join(self._lines)
        bad = self._bad_line
        self._shape = None
        self._lines = []
        self._bad_line = None
        if bad is not None:
            raise ProtocolError(f"Reply line is not ASCII: {bad[:40]!r}")
        return frame
