# scan_loop.py
# Channel scanner loop, kept out of main.py so it can be driven from tests.

from __future__ import annotations
import asyncio
import time as _time
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from app_context import AppContext, Channel
from radios.gqrx import CommandError, CommandTimeoutError, GqrxClient, ProtocolError
from ui_status import BG_BLUE, BG_GREEN, StatusLine
from utils import beep, format_mhz, pretty_duration


@dataclass
class ScanSummary:
    passes: int = 0
    channels_visited: int = 0
    hits: int = 0
    errors: int = 0
    elapsed_s: float = 0.0

    def render(self) -> str:
        return f"""
    === SCAN STOPPED ===
    Passes completed : {self.passes}
    Channels visited : {self.channels_visited}
    Active channels  : {self.hits}
    Channel errors   : {self.errors}
    Total time       : {pretty_duration(self.elapsed_s, style="clock")}
    =========================================
    """.rstrip()


def _channel_text(ch: Channel) -> str:
    text = f"{format_mhz(ch.freq_mhz)} {ch.mode}"
    return f"{text} [{ch.label}]" if ch.label else text


async def _sample(client: GqrxClient, margin_db: float) -> Tuple[bool, float, float]:
    """Read squelch and strength; the channel is open when strength clears squelch + margin."""
    squelch = await client.get_squelch()
    strength = await client.get_signal_strength()
    return strength > squelch + margin_db, strength, squelch


def log_activity(ctx: AppContext, ch: Channel, strength: float, squelch: float, duration_s: float) -> None:
    """One CSV row per channel opening (see loghandler.ACTIVITY_HEADER)."""
    if ctx.activity_logger is None:
        return
    ts = datetime.now().isoformat(timespec="seconds")
    label = ch.label.replace(",", " ")
    ctx.activity_logger.info(
        f"{ts},{ch.freq_mhz:.6f},{ch.mode},{label},{strength:.1f},{squelch:.1f},{duration_s:.1f}"
    )


async def run_scan_loop(
    client: GqrxClient,
    ctx: AppContext,
    cycles: Optional[int] = None,
    status: Optional[StatusLine] = None,
) -> ScanSummary:
    """
    Visit every planned channel in turn; hold on channels whose signal is
    above squelch until they go quiet.

    Per-channel command failures are logged and the channel is skipped.
    GqrxConnectionError is not caught: reconnecting is the caller's decision.
    """
    ss = ctx.scanner_settings
    dwell_s   = float(ss.get("dwell_s", 15.0))
    settle_s  = float(ss.get("settle_s", 0.25))
    margin_db = float(ss.get("squelch_margin_db", 0.0))
    use_beep  = bool(ss.get("use_beep", False))
    if status is None:
        status = StatusLine(use_color=bool(ss.get("use_color_status", True)))

    summary = ScanSummary()
    if not ctx.channels:
        ctx.logger.error("[FATAL] No channels to scan. Check channel configuration.")
        return summary

    t0 = _time.monotonic()
    try:
        while cycles is None or summary.passes < cycles:
            for ch in ctx.channels:
                status.show(f"SCANNING {_channel_text(ch)}", BG_BLUE)
                try:
                    await client.set_frequency(ch.freq_mhz)
                    await client.set_mode_and_passband(ch.mode, ch.passband)
                    if settle_s > 0:
                        await asyncio.sleep(settle_s)

                    active, strength, squelch = await _sample(client, margin_db)
                    if active:
                        summary.hits += 1
                        await _hold_active(client, ctx, ch, status, strength, squelch,
                                           dwell_s, margin_db, use_beep)
                except (CommandError, ProtocolError, CommandTimeoutError) as e:
                    summary.errors += 1
                    status.clear()
                    ctx.logger.warning(f"[SCAN] {_channel_text(ch)} skipped: {e}")
                    continue
                summary.channels_visited += 1
            summary.passes += 1
    finally:
        status.clear()
        summary.elapsed_s = _time.monotonic() - t0

    return summary


async def _hold_active(
    client: GqrxClient,
    ctx: AppContext,
    ch: Channel,
    status: StatusLine,
    strength: float,
    squelch: float,
    dwell_s: float,
    margin_db: float,
    use_beep: bool,
) -> None:
    """Stay on an open channel, re-checking every dwell_s, then log the opening."""
    opened = _time.monotonic()
    peak = strength
    status.clear()
    ctx.logger.info(f"[ACTIVE] {_channel_text(ch)} {strength:.1f} dBFS (squelch {squelch:.1f})")
    beep(use_beep)

    active = True
    while active:
        status.show(f"ACTIVE {_channel_text(ch)} {strength:.1f} dBFS", BG_GREEN)
        if dwell_s > 0:
            await asyncio.sleep(dwell_s)
        active, strength, squelch = await _sample(client, margin_db)
        peak = max(peak, strength)

    duration = _time.monotonic() - opened
    status.clear()
    ctx.logger.info(f"[QUIET] {_channel_text(ch)} after {pretty_duration(duration)}")
    log_activity(ctx, ch, peak, squelch, duration)
