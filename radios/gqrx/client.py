import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from .dispatcher import DEFAULT_COMMAND_TIMEOUT, CommandDispatcher
from .errors import CommandError, ProtocolError
from .framing import SINGLE_LINE, ReplyShape, multi_line
from .interpreter import ResponseKind, is_report, parse_report
from .transport import DEFAULT_HOST, DEFAULT_PORT, ConnectionState, GqrxTransport

logger = logging.getLogger(__name__)

# Default passband (Hz) used by set_mode()
MODE_PASSBANDS: Dict[str, int] = {
    "AM": 10000,
    "FM": 10000,
    "WFM": 160000,
    "WFM_ST": 160000,
    "LSB": 2700,
    "USB": 2700,
    "CW": 500,
}

MODE_REPLY = multi_line(2)


@dataclass(frozen=True)
class ModeInfo:
    mode: str
    passband: int


def mhz_to_hz(mhz: float) -> int:
    return int(round(mhz * 1_000_000))


class GqrxClient:
    """
    gqrx remote-control client.

    One coroutine per protocol verb. Set-style calls return True or raise
    CommandError with the daemon's report code; get-style calls parse the
    reply into a Python value. Frequencies are in MHz on this API and in Hz
    on the wire.

    Example:
        async with GqrxClient() as gqrx:
            await gqrx.set_frequency(145.500)
            print(await gqrx.get_signal_strength())
    """

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        *,
        connect_timeout: float = 5.0,
        command_timeout: float = DEFAULT_COMMAND_TIMEOUT,
        debug: bool = False,
        on_connected: Optional[Callable[[], None]] = None,
        on_disconnected: Optional[Callable[[str], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
        dispatcher: Optional[CommandDispatcher] = None,
    ):
        self.host = host
        self.port = int(port)
        if dispatcher is None:
            transport = GqrxTransport(host, port, connect_timeout=connect_timeout, debug=debug)
            dispatcher = CommandDispatcher(
                transport,
                command_timeout=command_timeout,
                debug=debug,
                on_connected=on_connected,
                on_disconnected=on_disconnected,
                on_error=on_error,
            )
        self.dispatcher = dispatcher

    @property
    def state(self) -> ConnectionState:
        return self.dispatcher.state

    @property
    def connected(self) -> bool:
        return self.dispatcher.connected

    # ---------------------------------------------------------------------
    # Connection
    # ---------------------------------------------------------------------

    async def connect(self):
        await self.dispatcher.connect()

    async def quit(self):
        """Ask gqrx to end the session and close the socket locally."""
        await self.dispatcher.close(graceful=True)

    close = quit

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.quit()
        return False

    # ---------------------------------------------------------------------
    # Command helpers
    # ---------------------------------------------------------------------

    async def _report(self, cmd: str, timeout: Optional[float] = None) -> bool:
        await self.dispatcher.submit(cmd, SINGLE_LINE, timeout, ResponseKind.REPORT)
        return True

    async def _value(self, cmd: str, shape: ReplyShape = SINGLE_LINE, timeout: Optional[float] = None) -> str:
        """Send a query; a report line in place of a value means the query failed."""
        resp = await self.dispatcher.submit(cmd, shape, timeout, ResponseKind.VALUE)
        if is_report(resp):
            code = parse_report(resp)
            raise CommandError(code, cmd)
        return resp

    async def _float(self, cmd: str) -> float:
        resp = await self._value(cmd)
        try:
            return float(resp.split()[0])
        except (IndexError, ValueError):
            raise ProtocolError(f"Expected a number in reply to '{cmd}', got {resp!r}")

    # ---------------------------------------------------------------------
    # Frequency
    # ---------------------------------------------------------------------

    async def set_frequency(self, freq_mhz: float) -> bool:
        return await self._report(f"F {mhz_to_hz(freq_mhz)}")

    async def get_frequency(self) -> float:
        """Current frequency in MHz."""
        return await self._float("f") / 1_000_000.0

    # ---------------------------------------------------------------------
    # Mode / passband
    # ---------------------------------------------------------------------

    async def set_mode(self, mode: str) -> bool:
        """Set a demodulator mode with its default passband."""
        mode = (mode or "").upper()
        if mode not in MODE_PASSBANDS:
            raise ValueError(f"Invalid mode '{mode}'. Valid modes: {', '.join(MODE_PASSBANDS)}")
        return await self.set_mode_and_passband(mode, MODE_PASSBANDS[mode])

    async def set_mode_and_passband(self, mode: str, passband: int) -> bool:
        return await self._report(f"M {mode} {int(passband)}")

    async def get_mode_and_passband(self) -> ModeInfo:
        resp = await self._value("m", MODE_REPLY)
        lines = resp.split("\n")
        if len(lines) != 2:
            raise ProtocolError(f"Expected mode and passband lines, got {resp!r}")
        try:
            passband = int(lines[1])
        except ValueError:
            raise ProtocolError(f"Passband is not an integer: {lines[1]!r}")
        return ModeInfo(lines[0], passband)

    async def get_available_modes(self) -> List[str]:
        resp = await self._value("M ?")
        return resp.split()

    # ---------------------------------------------------------------------
    # Levels
    # ---------------------------------------------------------------------

    async def get_signal_strength(self) -> float:
        """Signal strength in dBFS."""
        return await self._float("l STRENGTH")

    async def get_squelch(self) -> float:
        """Squelch threshold in dBFS."""
        return await self._float("l SQL")

    async def set_squelch(self, level: float) -> bool:
        return await self._report(f"L SQL {level}")

    # ---------------------------------------------------------------------
    # Recording
    # ---------------------------------------------------------------------

    async def get_recording_status(self) -> str:
        return await self._value("u RECORD")

    async def set_recording_status(self, status) -> bool:
        return await self._report(f"U RECORD {1 if status else 0}")

    async def is_recording(self) -> bool:
        return (await self.get_recording_status()) == "1"

    async def start_recording(self) -> bool:
        return await self.set_recording_status(1)

    async def stop_recording(self) -> bool:
        return await self.set_recording_status(0)

    # ---------------------------------------------------------------------
    # Satellite pass triggers
    # ---------------------------------------------------------------------

    async def trigger_aos(self) -> bool:
        return await self._report("AOS")

    async def trigger_los(self) -> bool:
        return await self._report("LOS")

    # ---------------------------------------------------------------------
    # Misc
    # ---------------------------------------------------------------------

    async def get_version(self) -> str:
        return await self._value("_")

    async def get_lnb(self) -> float:
        """LNB local oscillator frequency in MHz."""
        return await self._float("LNB_LO") / 1_000_000.0

    async def set_lnb(self, freq_mhz: float) -> bool:
        return await self._report(f"LNB_LO {mhz_to_hz(freq_mhz)}")

    def __repr__(self):
        return f"GqrxClient({self.host}:{self.port}, {self.state.value})"
