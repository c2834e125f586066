import asyncio
import logging
import time
from collections import deque
from typing import Any, Callable, Deque, List, Optional

from .errors import CommandTimeoutError, GqrxConnectionError, GqrxError, ProtocolError
from .framing import SINGLE_LINE, FrameReassembler, ReplyShape
from .interpreter import ResponseKind, interpret
from .transport import ConnectionState, GqrxTransport

logger = logging.getLogger(__name__)

DEFAULT_COMMAND_TIMEOUT = 2.0


class PendingCommand:
    """
    One submitted command and its completion handle.

    Awaiting a PendingCommand yields the interpreted reply frame or raises
    the error that settled it.
    """

    def __init__(
        self,
        ordinal: int,
        text: str,
        shape: ReplyShape,
        kind: ResponseKind,
        timeout: float,
        future: "asyncio.Future[str]",
    ):
        self.ordinal = ordinal
        self.text = text
        self.shape = shape
        self.kind = kind
        self.timeout = timeout
        self.future = future
        self.submitted_at = time.monotonic()
        self.deadline: Optional[float] = None  # armed when written to the wire
        self._timer: Optional[asyncio.TimerHandle] = None

    def __await__(self):
        return self.future.__await__()

    def done(self) -> bool:
        return self.future.done()

    def _disarm(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def __repr__(self):
        if self.future.cancelled():
            state = "cancelled"
        elif self.future.done():
            state = "done"
        elif self.deadline is not None:
            state = "in-flight"
        else:
            state = "queued"
        return f"PendingCommand(#{self.ordinal} {self.text!r}, {state})"


class CommandDispatcher:
    """
    Serializes commands over one gqrx connection.

    The protocol has no request ids: a reply can only be matched to a command
    by order. Commands are therefore queued FIFO and written one at a time;
    the next command goes out only after the previous one got its reply,
    timed out or failed. Everything runs on the event loop, so the queue and
    the in-flight slot need no locking.

    Error scope:
      - transport loss/close rejects every pending command (GqrxConnectionError)
      - ProtocolError, CommandError and CommandTimeoutError reject one command

    After a timeout the daemon may still answer; that reply will be taken as
    the reply to the next command. There is no way to detect this on the
    wire, so it is logged and left to the caller (e.g. reconnect).
    """

    def __init__(
        self,
        transport: GqrxTransport,
        *,
        command_timeout: float = DEFAULT_COMMAND_TIMEOUT,
        reassembler: Optional[FrameReassembler] = None,
        debug: bool = False,
        on_connected: Optional[Callable[[], None]] = None,
        on_disconnected: Optional[Callable[[str], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        if command_timeout <= 0:
            raise ValueError("command_timeout must be positive")
        self.command_timeout = float(command_timeout)
        self.debug = debug

        self.on_connected = on_connected
        self.on_disconnected = on_disconnected
        self.on_error = on_error

        self._transport = transport
        self._transport.on_data = self._on_data
        self._transport.on_closed = self._on_transport_closed
        self._transport.on_error = self._on_transport_error

        self._reassembler = reassembler or FrameReassembler()
        self._queue: Deque[PendingCommand] = deque()
        self._in_flight: Optional[PendingCommand] = None
        self._ordinal = 0

    # ---------- Public properties ----------

    @property
    def state(self) -> ConnectionState:
        return self._transport.state

    @property
    def connected(self) -> bool:
        return self._transport.state is ConnectionState.CONNECTED

    @property
    def in_flight(self) -> Optional[PendingCommand]:
        return self._in_flight

    @property
    def queued(self) -> int:
        return len(self._queue)

    # ---------- Lifecycle ----------

    async def connect(self):
        await self._transport.connect()
        self._reassembler.reset()
        logger.info(f"Connected to gqrx at {self._transport.host}:{self._transport.port}")
        if self.on_connected:
            self.on_connected()

    async def close(self, graceful: bool = True):
        """
        Reject everything still pending, send 'q' if the link is up and close
        the socket without waiting for any acknowledgment.
        """
        was_connected = self.connected
        self._fail_all("Connection closed by client")
        if graceful and was_connected:
            try:
                self._transport.write(b"q\n")
                if self.debug:
                    logger.debug("[gqrx] > q")
            except GqrxConnectionError:
                # already reported through on_disconnected
                was_connected = False
        await self._transport.close()
        if was_connected:
            logger.info("Disconnected from gqrx")
            if self.on_disconnected:
                self.on_disconnected("closed by client")

    # ---------- Commands ----------

    def submit(
        self,
        command_text: str,
        shape: ReplyShape = SINGLE_LINE,
        timeout: Optional[float] = None,
        kind: ResponseKind = ResponseKind.VALUE,
    ) -> PendingCommand:
        """
        Queue a command and return its awaitable handle.

        Raises GqrxConnectionError right away, without touching the wire,
        when the connection is not up.
        """
        if not command_text or "\n" in command_text or "\r" in command_text or not command_text.isascii():
            raise ValueError(f"Invalid command text: {command_text!r}")
        if timeout is None:
            timeout = self.command_timeout
        elif timeout <= 0:
            raise ValueError("timeout must be positive")

        if not self.connected:
            raise GqrxConnectionError(f"Not connected (state={self.state.value}), cannot send '{command_text}'")

        loop = asyncio.get_running_loop()
        self._ordinal += 1
        pending = PendingCommand(
            self._ordinal, command_text, shape, kind, float(timeout), loop.create_future()
        )
        self._queue.append(pending)
        self._pump()
        return pending

    def cancel(self, pending: PendingCommand) -> bool:
        """
        Drop a command that has not been written yet. Returns False for the
        in-flight command (its reply is already on the way) or a settled one.
        """
        if pending is self._in_flight or pending.done():
            return False
        try:
            self._queue.remove(pending)
        except ValueError:
            return False
        pending.future.cancel()
        logger.debug(f"[gqrx] cancelled queued command #{pending.ordinal} '{pending.text}'")
        return True

    # ---------- Dispatch loop ----------

    def _pump(self):
        """Keep exactly one command on the wire while there is work."""
        while True:
            if self._in_flight is None and not self._dispatch_next():
                return
            # Bytes buffered before dispatch may already hold the reply.
            if not self._advance(b""):
                return

    def _dispatch_next(self) -> bool:
        while self._queue and self.connected:
            pending = self._queue.popleft()
            if pending.done():
                # Cancelled by its awaiting task while still queued.
                continue
            try:
                self._transport.write((pending.text + "\n").encode("ascii"))
            except GqrxConnectionError as e:
                # The transport has already reported the loss and the rest of
                # the queue was rejected with it.
                logger.error(f"[gqrx] failed to send '{pending.text}': {e}")
                if not pending.done():
                    pending.future.set_exception(e)
                return False

            if self.debug:
                logger.debug(f"[gqrx] > {pending.text}")
            loop = pending.future.get_loop()
            self._in_flight = pending
            self._reassembler.expect(pending.shape)
            pending.deadline = loop.time() + pending.timeout
            pending._timer = loop.call_later(pending.timeout, self._on_timeout, pending)
            return True
        return False

    def _advance(self, data: bytes) -> bool:
        """Feed bytes to the reassembler; True if the in-flight command was settled."""
        try:
            frame = self._reassembler.feed(data)
        except ProtocolError as e:
            logger.warning(f"[gqrx] protocol error: {e}")
            self._settle(error=e)
            return True
        if frame is None:
            return False
        if self.debug:
            logger.debug(f"[gqrx] < {frame!r}")
        self._settle(frame=frame)
        return True

    def _settle(self, frame: Optional[str] = None, error: Optional[Exception] = None):
        pending = self._in_flight
        if pending is None:
            return
        self._in_flight = None
        pending._disarm()

        result: Any = None
        if error is None:
            try:
                result = interpret(frame or "", pending.kind, pending.text)
            except GqrxError as e:
                logger.warning(f"[gqrx] '{pending.text}' -> {e}")
                error = e

        if pending.done():
            logger.debug(f"[gqrx] discarding reply to abandoned command #{pending.ordinal} '{pending.text}'")
            return
        if error is not None:
            pending.future.set_exception(error)
        else:
            pending.future.set_result(result)

    def _fail_all(self, reason: str) -> int:
        """Reject every queued and in-flight command. Returns how many were pending."""
        pending_all: List[PendingCommand] = []
        if self._in_flight is not None:
            pending_all.append(self._in_flight)
        pending_all.extend(self._queue)
        self._in_flight = None
        self._queue.clear()
        self._reassembler.reset()

        for pending in pending_all:
            pending._disarm()
            if not pending.done():
                pending.future.set_exception(GqrxConnectionError(reason))
        if pending_all:
            logger.debug(f"[gqrx] rejected {len(pending_all)} pending command(s): {reason}")
        return len(pending_all)

    # ---------- Event handlers ----------

    def _on_data(self, data: bytes):
        if self._advance(data):
            self._pump()

    def _on_timeout(self, pending: PendingCommand):
        pending._timer = None
        if pending is not self._in_flight:
            return
        self._in_flight = None
        self._reassembler.abandon()
        logger.warning(
            f"[gqrx] no reply to '{pending.text}' within {pending.timeout:.3f}s; "
            f"a late reply would be taken for the next command's"
        )
        if not pending.done():
            pending.future.set_exception(CommandTimeoutError(pending.text, pending.timeout))
        self._pump()

    def _on_transport_error(self, exc: Exception):
        if self.on_error:
            self.on_error(exc)

    def _on_transport_closed(self, reason: str):
        count = self._fail_all(f"Connection lost: {reason}")
        logger.error(f"Connection to gqrx lost ({reason}); {count} pending command(s) rejected")
        if self.on_disconnected:
            self.on_disconnected(reason)
