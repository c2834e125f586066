# channel_plan.py
# Builds the list of channels the scanner visits.

from typing import Any, Dict, List

from app_context import Channel
from radios.gqrx import MODE_PASSBANDS


def calculate_range_frequencies(start_mhz: float,
                                end_mhz: float,
                                step_mhz: float) -> List[float]:
    """
    Frequencies from start to end (inclusive) every step.

    Math is done in Hz (integers) to avoid rounding drift.
    Returns floats in MHz.
    """
    if end_mhz < start_mhz:
        return []

    start = int(round(start_mhz * 1_000_000))
    end = int(round(end_mhz * 1_000_000))
    step = int(round(step_mhz * 1_000_000))
    if step <= 0:
        raise ValueError("step must be > 0")

    points_hz: List[int] = []
    f = start
    while f <= end:
        points_hz.append(f)
        f += step

    return [p / 1_000_000.0 for p in points_hz]


def make_channel(entry: Dict[str, Any]) -> Channel:
    """Channel from a validated 'channels' entry."""
    mode = str(entry["mode"]).upper()
    passband = int(entry.get("passband") or MODE_PASSBANDS[mode])
    return Channel(
        freq_mhz=round(float(entry["freq"]), 6),
        mode=mode,
        passband=passband,
        label=str(entry.get("label", "") or ""),
    )


def build_channel_plan(channels: List[Dict[str, Any]],
                       ranges: List[Dict[str, Any]]) -> List[Channel]:
    """Explicit channels first, then expanded ranges; duplicates are dropped."""
    plan: List[Channel] = []
    seen = set()

    def _add(ch: Channel) -> None:
        key = int(round(ch.freq_mhz * 1_000_000))
        if key in seen:
            return
        seen.add(key)
        plan.append(ch)

    for entry in channels:
        _add(make_channel(entry))

    for r in ranges:
        mode = str(r["mode"]).upper()
        passband = int(r.get("passband") or MODE_PASSBANDS[mode])
        label = str(r.get("label", "") or "")
        for f in calculate_range_frequencies(float(r["start"]), float(r["end"]), float(r["step"])):
            _add(Channel(freq_mhz=round(f, 6), mode=mode, passband=passband, label=label))

    return plan
