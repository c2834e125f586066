# ui_status.py
# One-line scanner status bar with optional ANSI colors.
# Redraws in place using CR, never clears the screen.

from typing import Optional
import os
import re
import sys

# ANSI sequences
RESET = "\033[0m"
BOLD = "\033[1m"
BG_BLUE = "\033[44m"
BG_GREEN = "\033[42m"

__all__ = ["StatusLine", "BG_BLUE", "BG_GREEN"]

_ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")


def _strip_ansi(s: str) -> str:
    """Strip ANSI sequences to compute printable width."""
    return _ANSI_RE.sub("", s)


class StatusLine:
    """
    In-place status line. Colors are dropped when stdout is not a terminal,
    when NO_ANSI=1 is set, or when use_color is False.

        status = StatusLine()
        status.show("SCANNING 145.5000 MHz FM", BG_BLUE)
        status.show("ACTIVE 145.5000 MHz FM  -42.1 dBFS", BG_GREEN)
        status.clear()
    """

    def __init__(self, use_color: bool = True, stream=None):
        self.stream = stream or sys.stdout
        self.use_color = use_color and os.getenv("NO_ANSI") != "1"
        self._active = False
        self._width = 0
        self._last: Optional[str] = None

    def _supports_color(self) -> bool:
        if not self.use_color:
            return False
        isatty = getattr(self.stream, "isatty", None)
        return bool(isatty and isatty())

    def show(self, text: str, bg_color: str = BG_BLUE) -> None:
        if self._supports_color():
            msg = f"{bg_color}{BOLD} {text} {RESET}"
        else:
            msg = f" {text} "
        if msg == self._last:
            return
        self._width = max(self._width, len(_strip_ansi(msg)))
        raw_len = len(_strip_ansi(msg))
        # Right-pad so we fully overwrite older content
        padded = msg + " " * (self._width - raw_len)
        self.stream.write("\r" + padded)
        self.stream.flush()
        self._active = True
        self._last = msg

    def clear(self) -> None:
        if self._active:
            self.stream.write("\r" + (" " * self._width) + "\r")
            self.stream.flush()
            self._active = False
            self._last = None
