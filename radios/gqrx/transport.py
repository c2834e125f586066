import asyncio
import enum
import logging
import socket
from typing import Callable, Optional

from .errors import GqrxConnectionError

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 7356
READ_CHUNK_SIZE = 4096


class ConnectionState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSING = "closing"
    CLOSED = "closed"


class GqrxTransport:
    """
    TCP transport for the gqrx remote-control port.

    Responsibilities:
      - Open/close the TCP socket with low-latency options.
      - Background read task that hands every received chunk to on_data,
        without any interpretation of the bytes.
      - Report remote close via on_closed(reason) and socket failures via
        on_error(exc) followed by on_closed(reason).

    This class knows nothing about commands, frames or replies.
    """

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        *,
        connect_timeout: float = 5.0,
        debug: bool = False,
        on_data: Optional[Callable[[bytes], None]] = None,
        on_closed: Optional[Callable[[str], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        self.host = host
        self.port = int(port)
        self.connect_timeout = float(connect_timeout)
        self.debug = debug

        # Callback slots; the dispatcher rebinds these to itself.
        self.on_data = on_data
        self.on_closed = on_closed
        self.on_error = on_error

        self._state = ConnectionState.DISCONNECTED
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._read_task: Optional[asyncio.Task] = None

    # ---------- Public properties ----------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    # ---------- TCP setup ----------

    def _apply_tcp_options(self, s: socket.socket):
        """Best-effort low-latency + keepalive socket options."""
        try:
            s.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        except OSError:
            pass
        try:
            s.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
        except OSError:
            pass

    async def connect(self):
        """Open the socket and start the read task."""
        if self._state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
            raise GqrxConnectionError(f"Already {self._state.value} to {self.host}:{self.port}")

        self._state = ConnectionState.CONNECTING
        try:
            self._reader, self._writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port),
                timeout=self.connect_timeout,
            )
        except asyncio.TimeoutError:
            self._state = ConnectionState.DISCONNECTED
            logger.error(
                f"[NET] Connect timeout after {self.connect_timeout:.1f}s to {self.host}:{self.port}."
            )
            raise GqrxConnectionError(f"Connect timeout to {self.host}:{self.port}")
        except OSError as e:
            self._state = ConnectionState.DISCONNECTED
            logger.error(f"[NET] Connect error to {self.host}:{self.port}: {e}")
            raise GqrxConnectionError(f"Could not connect to {self.host}:{self.port}: {e}") from e

        sock = self._writer.get_extra_info("socket")
        if sock is not None:
            self._apply_tcp_options(sock)

        self._state = ConnectionState.CONNECTED
        self._read_task = asyncio.ensure_future(self._read_loop())
        logger.debug(f"[NET] Connected to {self.host}:{self.port}")

    def write(self, data: bytes):
        """Queue bytes on the socket. Requires CONNECTED."""
        if self._state is not ConnectionState.CONNECTED or self._writer is None:
            raise GqrxConnectionError(f"Transport is not connected (state={self._state.value})")
        try:
            self._writer.write(data)
        except (OSError, RuntimeError) as e:
            logger.error(f"[NET] Write error to {self.host}:{self.port}: {e}")
            if self.on_error:
                self.on_error(e)
            self._connection_lost(f"socket error: {e}")
            raise GqrxConnectionError(f"Socket write failed: {e}") from e

    async def close(self):
        """Stop the read task and close the socket. Safe to call repeatedly."""
        if self._state in (ConnectionState.CLOSING, ConnectionState.CLOSED):
            return
        self._state = ConnectionState.CLOSING

        task = self._read_task
        self._read_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        writer = self._writer
        self._writer = None
        self._reader = None
        if writer is not None:
            try:
                writer.close()
                await writer.wait_closed()
            except (OSError, RuntimeError):
                pass

        self._state = ConnectionState.CLOSED
        logger.debug(f"[NET] Closed connection to {self.host}:{self.port}")

    # ---------- Read loop ----------

    async def _read_loop(self):
        """Hand raw chunks to on_data until EOF or a socket error."""
        reader = self._reader
        assert reader is not None
        reason = "connection closed by peer"
        try:
            while True:
                chunk = await reader.read(READ_CHUNK_SIZE)
                if not chunk:
                    logger.warning(f"[NET] {self.host}:{self.port} closed the connection")
                    break
                if self.debug:
                    logger.debug(f"[RECV] {chunk!r}")
                if self.on_data:
                    try:
                        self.on_data(chunk)
                    except Exception as e:
                        # Consumer bugs should not kill the network loop.
                        logger.error(f"[NET] on_data callback failed: {e}")
                if self._state is not ConnectionState.CONNECTED:
                    # link went down inside on_data
                    return
        except asyncio.CancelledError:
            raise
        except OSError as e:
            reason = f"socket error: {e}"
            logger.error(f"[NET] Read error from {self.host}:{self.port}: {e}")
            if self.on_error:
                self.on_error(e)

        self._connection_lost(reason)

    def _connection_lost(self, reason: str):
        if self._state is not ConnectionState.CONNECTED:
            return
        self._state = ConnectionState.DISCONNECTED
        writer = self._writer
        task = self._read_task
        self._writer = None
        self._reader = None
        self._read_task = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
        if writer is not None:
            writer.close()
        if self.on_closed:
            self.on_closed(reason)
