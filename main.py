# main.py
import argparse
import asyncio
import os
import sys
import time
from typing import Any, Dict, Optional

import yaml
from pyfiglet import Figlet, FigletError

from app_context import AppContext
from channel_plan import build_channel_plan
from config_validation import (
    ConfigValidationError,
    validate_channel_settings,
    validate_gqrx_settings,
    validate_scanner_settings,
)
from radios.gqrx import GqrxClient, GqrxError
from scan_loop import run_scan_loop
from utils import format_mhz

# On Windows terminals, force UTF-8 so icons and accents render OK.
if os.name == "nt":
    try:
        sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        sys.stderr.reconfigure(encoding="utf-8", errors="replace")
    except (AttributeError, OSError):
        pass

PROGRAM_NAME = "GQRX-Scanner"
CURRENT_VERSION = "0.3.0"
DEFAULT_SETTINGS_FILE = "settings.yml"

# ANSI colors for terminal output
COLOR_CYAN = "\033[96m"
COLOR_YELLOW = "\033[93m"
COLOR_RESET = "\033[0m"

logger = None


def print_banner_safe(title: str = "GQRX-SCANNER"):
    """Print a nice banner, but never crash if figlet fonts are missing."""
    if os.getenv("NO_FIGLET") == "1":
        print("\n" + title + "\n")
        return
    for font in ("slant", "standard"):
        try:
            fig = Figlet(font=font, width=120)
            print(fig.renderText(title))
            return
        except FigletError:
            continue
    print("\n" + title + "\n")


def graceful_exit(exit_code: int = 0, show_banner: bool = True) -> None:
    """Print a farewell and exit the process with exit_code."""
    if show_banner:
        print("\n" + "=" * 80)
        print(f"{COLOR_YELLOW}📡  {PROGRAM_NAME} session completed.{COLOR_RESET}")
        print("=" * 80 + "\n")
        try:
            print(COLOR_CYAN, end="")
            print_banner_safe("73")
        finally:
            print(COLOR_RESET, end="")
    sys.exit(exit_code)


# -------------------------
# Config loaders
# -------------------------
def load_yaml_file(file_path: str) -> Dict[str, Any]:
    """Load a small YAML file into a dict; raise if not found."""
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"Configuration file not found: {file_path}")
    with open(file_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigValidationError(f"{file_path} must contain a YAML mapping at the top level.")
    return data


def create_context(
    config: Dict[str, Any],
    logger_in,
    activity_log_path: Optional[str],
    debug_mode: bool,
    activity_logger=None,
) -> AppContext:
    """Validate the config and build a run context from it."""
    gqrx_settings = validate_gqrx_settings(config, logger_in)
    scanner_settings = validate_scanner_settings(config, logger_in)
    plan_cfg = validate_channel_settings(config, logger_in)
    channels = build_channel_plan(plan_cfg["channels"], plan_cfg["ranges"])

    return AppContext(
        logger=logger_in,
        config=config,
        debug_mode=debug_mode,
        activity_log_path=activity_log_path,
        gqrx_settings=gqrx_settings,
        scanner_settings=scanner_settings,
        channels=channels,
        activity_logger=activity_logger,
    )


def print_plan(ctx: AppContext) -> None:
    """Pretty-print the scan plan."""
    print(f"{PROGRAM_NAME} - v{CURRENT_VERSION} - Scan plan")
    print(f"gqrx: {ctx.gqrx_settings['host']}:{ctx.gqrx_settings['port']}\n")
    for i, ch in enumerate(ctx.channels, 1):
        label = f"  {ch.label}" if ch.label else ""
        print(f"  {i:3d}. {format_mhz(ch.freq_mhz):>16}  {ch.mode:<6} {ch.passband:>7} Hz{label}")
    print("\n===============================================")
    print(f"Channels in plan: {len(ctx.channels)}")
    print(f"Dwell on active channel: {ctx.scanner_settings['dwell_s']:.1f} s")
    print("===============================================")


def make_client(ctx: AppContext) -> GqrxClient:
    gs = ctx.gqrx_settings
    return GqrxClient(
        gs["host"],
        gs["port"],
        connect_timeout=gs["connect_timeout_s"],
        command_timeout=gs["command_timeout_s"],
        debug=ctx.debug_mode,
        on_disconnected=lambda reason: ctx.logger.debug(f"[NET] disconnected: {reason}"),
    )


async def run(ctx: AppContext, cycles: Optional[int] = None, version_only: bool = False) -> int:
    """Connect, scan, and always say goodbye to gqrx. Returns the process exit code."""
    client = make_client(ctx)
    ctx.logger.info(f"Connecting to gqrx at {client.host}:{client.port}...")
    await client.connect()
    try:
        version = await client.get_version()
        ctx.logger.info(f"gqrx version: {version}")
        if version_only:
            print(version)
            return 0

        summary = await run_scan_loop(client, ctx, cycles=cycles)
        print(summary.render())
        return 0
    finally:
        await client.quit()


def main() -> None:
    parser = argparse.ArgumentParser(description=f"{PROGRAM_NAME}: channel scanner for gqrx remote control")
    parser.add_argument("--config", default=DEFAULT_SETTINGS_FILE, help="Path to settings.yml")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging (includes wire trace)")
    parser.add_argument("--clear-logs", action="store_true", help="Delete old log files and exit")
    parser.add_argument("--info", action="store_true", help="Show the scan plan and exit")
    parser.add_argument("--version-check", action="store_true", help="Print the gqrx version and exit")
    parser.add_argument("--cycles", type=int, default=None, help="Stop after N passes over the plan")
    parser.add_argument("--no-banner", action="store_true", help="Skip the start/exit banners")
    parser.add_argument("--log-dir", default="logs", help="Directory for log and activity files")
    args = parser.parse_args()

    # --clear-logs: purge old logs and exit without running anything else
    if args.clear_logs:
        from loghandler import clear_old_logs
        clear_old_logs(args.log_dir)
        print("[logs] Old logs deleted.")
        sys.exit(0)

    if args.cycles is not None and args.cycles < 1:
        parser.error("--cycles must be at least 1")

    show_banner = not args.no_banner and not args.info
    if show_banner:
        print_banner_safe("GQRX-SCANNER")
        time.sleep(0.3)

    config = load_yaml_file(args.config)

    from loghandler import setup_logging, get_activity_logger
    global logger
    logger, activity_log_path = setup_logging(log_dir=args.log_dir, debug=args.debug)

    ctx = create_context(
        config=config,
        logger_in=logger,
        activity_log_path=activity_log_path,
        debug_mode=args.debug,
        activity_logger=get_activity_logger(),
    )

    # --info mode: just print the plan and exit
    if args.info:
        print_plan(ctx)
        return

    logger.info(f"""
    =================================================================
    {PROGRAM_NAME} - v{CURRENT_VERSION}
    Channels: {len(ctx.channels)}   Activity log: {activity_log_path}
    =================================================================
    """)

    exit_code = 0
    try:
        exit_code = asyncio.run(run(ctx, cycles=args.cycles, version_only=args.version_check))
    except KeyboardInterrupt:
        print()
        logger.info("Scan interrupted by user.")
    graceful_exit(exit_code, show_banner=show_banner and not args.version_check)


def cli() -> None:
    try:
        main()
    except GqrxError as e:
        logger and logger.error(f"[FATAL] gqrx communication failed: {e}")
        if not logger:
            print(f"[FATAL] gqrx communication failed: {e}")
        sys.exit(1)
    except (ConfigValidationError, FileNotFoundError, yaml.YAMLError) as e:
        if logger:
            logger.error(f"[CONFIG ERROR] {e}")
        else:
            print(f"[CONFIG ERROR] {e}")
        sys.exit(1)
    except Exception as e:
        if logger:
            logger.exception("[FATAL] Unexpected error occurred")
        else:
            print(f"[FATAL] Unexpected error occurred: {e}")
        sys.exit(1)


if __name__ == "__main__":
    cli()
