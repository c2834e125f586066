# app_context.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from typing import Protocol
class LoggerLike(Protocol):
    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def info(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def error(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None: ...


@dataclass(frozen=True)
class Channel:
    """One stop of the scan plan."""
    freq_mhz: float
    mode: str
    passband: int
    label: str = ""


@dataclass
class AppContext:
    """Lightweight container for state shared across the run."""
    logger: LoggerLike
    config: Dict[str, Any]
    debug_mode: bool
    activity_log_path: Optional[str]
    gqrx_settings: Dict[str, Any]
    scanner_settings: Dict[str, Any]
    channels: List[Channel] = field(default_factory=list)
    activity_logger: Optional[LoggerLike] = None
