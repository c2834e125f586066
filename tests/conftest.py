"""Shared fixtures for the gqrx client tests.

Two test doubles live here:

- ``FakeTransport`` stands in for ``GqrxTransport`` so dispatcher tests can
  inject reply bytes, socket errors and remote closes synchronously and
  inspect exactly what was written to the wire.
- ``FakeGqrxServer`` is a small asyncio TCP server speaking the gqrx remote
  control protocol on 127.0.0.1, used for transport and client tests.
"""

import asyncio
from typing import List, Optional, Set

import pytest
import pytest_asyncio

from radios.gqrx import CommandDispatcher, ConnectionState, GqrxConnectionError


# ---------------------------------------------------------------------------
# In-memory transport
# ---------------------------------------------------------------------------

class FakeTransport:
    """Drop-in for GqrxTransport with test helpers to drive the callbacks."""

    def __init__(self, host: str = "127.0.0.1", port: int = 7356):
        self.host = host
        self.port = port
        self.on_data = None
        self.on_closed = None
        self.on_error = None
        self.state = ConnectionState.DISCONNECTED
        self.written: List[bytes] = []
        self.close_calls = 0
        self.write_error: Optional[Exception] = None

    @property
    def connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    async def connect(self):
        self.state = ConnectionState.CONNECTED

    def write(self, data: bytes):
        if self.state is not ConnectionState.CONNECTED:
            raise GqrxConnectionError("not connected")
        if self.write_error is not None:
            # same order as GqrxTransport: report the loss, then raise
            exc = self.write_error
            self.fail(exc)
            raise GqrxConnectionError(f"Socket write failed: {exc}") from exc
        self.written.append(data)

    async def close(self):
        self.close_calls += 1
        self.state = ConnectionState.CLOSED

    # ---- helpers ----

    @property
    def commands(self) -> List[str]:
        return [w.decode("ascii").rstrip("\n") for w in self.written]

    def reply(self, data: bytes):
        self.on_data(data)

    def fail(self, exc: Exception):
        """Simulate a socket error followed by the connection going away."""
        self.state = ConnectionState.DISCONNECTED
        if self.on_error:
            self.on_error(exc)
        self.on_closed(f"socket error: {exc}")


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest_asyncio.fixture
async def dispatcher(fake_transport):
    d = CommandDispatcher(fake_transport, command_timeout=1.0)
    await d.connect()
    return d


# ---------------------------------------------------------------------------
# Fake gqrx daemon
# ---------------------------------------------------------------------------

KNOWN_MODES = ["OFF", "RAW", "AM", "AMS", "LSB", "USB", "CWL", "CWR", "CWU", "CW", "FM", "WFM", "WFM_ST", "WFM_ST_OIRT"]


class FakeGqrxServer:
    """
    Minimal gqrx remote-control daemon.

    Attributes tests can tweak before or between commands:
      silent     commands that never get an answer
      drop_on    commands after which the server closes the connection
      chunked    write every reply one byte at a time
      unsupported commands answered with 'RPRT 1'
    """

    def __init__(self):
        self.host = "127.0.0.1"
        self.port = 0
        self.received: List[str] = []
        self.silent: Set[str] = set()
        self.drop_on: Set[str] = set()
        self.unsupported: Set[str] = set()
        self.chunked = False
        self.version = "2.15.9"

        self.freq = 145500000
        self.mode = "FM"
        self.passband = 10000
        self.squelch = -50.0
        self.strength = -72.4
        self.recording = 0
        self.lnb = 0

        self._server: Optional[asyncio.AbstractServer] = None
        self._writers: List[asyncio.StreamWriter] = []

    async def start(self):
        self._server = await asyncio.start_server(self._handle, self.host, 0)
        self.port = self._server.sockets[0].getsockname()[1]

    async def stop(self):
        for w in self._writers:
            w.close()
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()

    def respond(self, cmd: str) -> str:
        if cmd in self.unsupported:
            return "RPRT 1\n"
        parts = cmd.split()
        verb, args = parts[0], parts[1:]

        if verb == "F" and len(args) == 1:
            try:
                self.freq = int(float(args[0]))
            except ValueError:
                return "RPRT 1\n"
            return "RPRT 0\n"
        if verb == "f":
            return f"{self.freq}\n"
        if verb == "M" and args == ["?"]:
            return " ".join(KNOWN_MODES) + "\n"
        if verb == "M" and len(args) == 2:
            if args[0] not in KNOWN_MODES:
                return "RPRT 1\n"
            self.mode, self.passband = args[0], int(args[1])
            return "RPRT 0\n"
        if verb == "m":
            return f"{self.mode}\n{self.passband}\n"
        if verb == "l" and args == ["STRENGTH"]:
            return f"{self.strength}\n"
        if verb == "l" and args == ["SQL"]:
            return f"{self.squelch}\n"
        if verb == "L" and len(args) == 2 and args[0] == "SQL":
            level = float(args[1])
            if level < -150 or level > 0:
                return "RPRT 1\n"
            self.squelch = level
            return "RPRT 0\n"
        if verb == "u" and args == ["RECORD"]:
            return f"{self.recording}\n"
        if verb == "U" and len(args) == 2 and args[0] == "RECORD":
            self.recording = int(args[1])
            return "RPRT 0\n"
        if verb in ("AOS", "LOS") and not args:
            return "RPRT 0\n"
        if verb == "_":
            return f"{self.version}\n"
        if verb == "LNB_LO" and not args:
            return f"{self.lnb}\n"
        if verb == "LNB_LO" and len(args) == 1:
            self.lnb = int(float(args[0]))
            return "RPRT 0\n"
        return "RPRT 1\n"

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self._writers.append(writer)
        try:
            while True:
                line = await reader.readline()
                if not line:
                    break
                cmd = line.decode("ascii").strip()
                self.received.append(cmd)
                if cmd == "q" or cmd in self.drop_on:
                    break
                if cmd in self.silent:
                    continue
                data = self.respond(cmd).encode("ascii")
                if self.chunked:
                    for i in range(len(data)):
                        writer.write(data[i:i + 1])
                        await writer.drain()
                        await asyncio.sleep(0)
                else:
                    writer.write(data)
                    await writer.drain()
        except ConnectionError:
            pass
        finally:
            writer.close()


@pytest_asyncio.fixture
async def gqrx_server():
    server = FakeGqrxServer()
    await server.start()
    yield server
    await server.stop()


@pytest.fixture
def unused_port() -> int:
    """A local TCP port nothing listens on."""
    import socket
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


async def wait_for_condition(predicate, timeout: float = 1.0, step: float = 0.005):
    """Poll predicate() on the event loop until it is true or fail the test."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(step)

