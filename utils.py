# utils.py
# Small user-interface helpers and formatting utilities.

from __future__ import annotations
import platform

def pretty_duration(seconds: float, style: str = "auto") -> str:
    """Format duration as '1h 02m 05s' / '22m 03s' / '3.40 s' / '850 ms' or 'HH:MM:SS'."""
    if seconds < 0:
        seconds = 0.0

    if style == "clock":
        total = int(round(seconds))
        h = total // 3600
        m = (total % 3600) // 60
        s = total % 60
        return f"{h:02d}:{m:02d}:{s:02d}"

    if seconds < 0.001:
        return "0 ms"
    if seconds < 1.0:
        return f"{seconds * 1000:.0f} ms"
    if seconds < 60.0:
        return f"{seconds:.2f} s"

    total = int(round(seconds))
    h = total // 3600
    m = (total % 3600) // 60
    s = total % 60

    if h > 0:
        return f"{h}h {m}m {s:02d}s"
    return f"{m}m {s:02d}s"


def format_mhz(freq_mhz: float) -> str:
    """145.5 -> '145.5000 MHz'."""
    return f"{freq_mhz:.4f} MHz"


def beep(enabled: bool = True) -> None:
    """Short audible cue when a channel opens (optional)."""
    if not enabled:
        return
    if platform.system() == "Windows":
        try:
            import winsound
            winsound.Beep(1000, 150)
        except (ImportError, RuntimeError):
            print("\a", end="")
    else:
        print("\a", end="")
