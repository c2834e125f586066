"""Configuration validation helpers for GQRX-SCANNER."""
from typing import Any, Dict, List

from radios.gqrx import DEFAULT_GQRX_PORT, MODE_PASSBANDS


class ConfigValidationError(Exception):
    pass


GQRX_DEFAULTS: Dict[str, Any] = {
    "host": "127.0.0.1",
    "port": DEFAULT_GQRX_PORT,
    "connect_timeout_s": 5.0,
    "command_timeout_s": 2.0,
}

SCANNER_DEFAULTS: Dict[str, Any] = {
    "dwell_s": 15.0,
    "settle_s": 0.25,
    "squelch_margin_db": 0.0,
    "use_beep": False,
    "use_color_status": True,
}


def _fail(msg: str, logger) -> None:
    logger and logger.error(msg)
    raise ConfigValidationError(msg)


def _positive(section: str, key: str, value: Any, logger, allow_zero: bool = False) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError):
        _fail(f"Configuration error: '{section}.{key}' must be a number, got {value!r}.", logger)
    if v < 0 or (v == 0 and not allow_zero):
        _fail(f"Configuration error: '{section}.{key}' must be {'>= 0' if allow_zero else '> 0'}, got {v}.", logger)
    return v


def validate_gqrx_settings(config: Dict[str, Any], logger) -> Dict[str, Any]:
    """Return the 'gqrx' section with defaults applied.

    - Port must be 1..65535.
    - Timeouts must be positive.
    """
    raw = config.get("gqrx") or {}
    if not isinstance(raw, dict):
        _fail("Configuration error: 'gqrx' must be a mapping.", logger)
    gs = {**GQRX_DEFAULTS, **raw}

    try:
        port = int(gs["port"])
    except (TypeError, ValueError):
        port = -1
    if not (1 <= port <= 65535):
        _fail(
            f"Configuration error: 'gqrx.port' must be between 1 and 65535, got {gs['port']!r}.\n"
            "→ gqrx listens on 7356 unless changed under Tools → Remote control settings.",
            logger,
        )
    gs["port"] = port
    gs["host"] = str(gs["host"] or GQRX_DEFAULTS["host"])
    for key in ("connect_timeout_s", "command_timeout_s"):
        gs[key] = _positive("gqrx", key, gs[key], logger)
    return gs


def validate_scanner_settings(config: Dict[str, Any], logger) -> Dict[str, Any]:
    """Return the 'scanner' section with defaults applied."""
    raw = config.get("scanner") or {}
    if not isinstance(raw, dict):
        _fail("Configuration error: 'scanner' must be a mapping.", logger)
    ss = {**SCANNER_DEFAULTS, **raw}
    ss["dwell_s"] = _positive("scanner", "dwell_s", ss["dwell_s"], logger, allow_zero=True)
    ss["settle_s"] = _positive("scanner", "settle_s", ss["settle_s"], logger, allow_zero=True)
    try:
        ss["squelch_margin_db"] = float(ss["squelch_margin_db"])
    except (TypeError, ValueError):
        _fail(f"Configuration error: 'scanner.squelch_margin_db' must be a number, got {ss['squelch_margin_db']!r}.", logger)
    ss["use_beep"] = bool(ss["use_beep"])
    ss["use_color_status"] = bool(ss["use_color_status"])
    return ss


def _check_mode(where: str, entry: Dict[str, Any], logger) -> None:
    mode = str(entry.get("mode", "")).upper()
    if mode not in MODE_PASSBANDS and not entry.get("passband"):
        _fail(
            f"Configuration error: {where} has unknown mode {entry.get('mode')!r}.\n"
            f"→ Known modes: {', '.join(MODE_PASSBANDS)}; other modes need an explicit 'passband'.",
            logger,
        )


def validate_channel_settings(config: Dict[str, Any], logger) -> Dict[str, List[Dict[str, Any]]]:
    """Check 'channels' and 'ranges'; at least one channel must result."""
    channels = config.get("channels") or []
    ranges = config.get("ranges") or []
    if not isinstance(channels, list) or not isinstance(ranges, list):
        _fail("Configuration error: 'channels' and 'ranges' must be lists.", logger)

    for i, ch in enumerate(channels):
        where = f"channels[{i}]"
        if not isinstance(ch, dict) or "freq" not in ch or "mode" not in ch:
            _fail(f"Configuration error: {where} needs 'freq' (MHz) and 'mode'.", logger)
        _positive("channels", f"{i}.freq", ch["freq"], logger)
        _check_mode(where, ch, logger)

    for i, r in enumerate(ranges):
        where = f"ranges[{i}]"
        if not isinstance(r, dict) or not all(k in r for k in ("start", "end", "step", "mode")):
            _fail(f"Configuration error: {where} needs 'start', 'end', 'step' (MHz) and 'mode'.", logger)
        start = _positive("ranges", f"{i}.start", r["start"], logger)
        end = _positive("ranges", f"{i}.end", r["end"], logger)
        _positive("ranges", f"{i}.step", r["step"], logger)
        if end < start:
            _fail(f"Configuration error: {where} ends below its start ({end} < {start}).", logger)
        _check_mode(where, r, logger)

    if not channels and not ranges:
        _fail(
            "Configuration error: nothing to scan.\n"
            "→ Add at least one entry under 'channels' or 'ranges' in your settings.yml.",
            logger,
        )
    return {"channels": channels, "ranges": ranges}
