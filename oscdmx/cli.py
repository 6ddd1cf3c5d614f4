"""
oscdmx command line: set or fade one DMX channel on an OLA node over OSC.

    oscdmx <universe> <channel> <from_level> <to_level> <fade_duration_seconds>

`from_level` may be `auto` (or `-`) to start from the level this tool last set
on that channel (0 if it never did).

Exit codes: 0 done, 1 bad arguments / socket could not be opened,
2 (only with --strict) done but some datagrams or the level file failed.
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from typing import List, Optional

from .config_loader import FadeConfig, OscTargetConfig, StoreConfig, get_log_level, load_config
from .errors import SocketCreationError, ValidationError
from .level_setter import LevelSetter

EXAMPLES = """\
examples:
  oscdmx 1 1 0 255 3      fade channel 1 from 0 to 255 over 3 seconds in universe 1
  oscdmx 2 5 200 50 2     fade channel 5 from 200 to 50 over 2 seconds in universe 2
  oscdmx 1 1 0 128 0      immediately set channel 1 to 128 in universe 1
  oscdmx 1 1 auto 0 1.5   fade channel 1 from its remembered level to 0
"""

AUTO_FROM = ("auto", "-")


class _UsageParser(argparse.ArgumentParser):
    """argparse, but usage errors exit 1 and always show the examples."""

    def error(self, message: str):
        self.print_usage(sys.stderr)
        sys.stderr.write(EXAMPLES)
        self.exit(1, f"{self.prog}: error: {message}\n")


def _from_level(text: str) -> Optional[int]:
    if text.lower() in AUTO_FROM:
        return None
    try:
        return int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer or 'auto', got {text!r}")


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    ap = _UsageParser(
        prog="oscdmx",
        description="Send OSC DMX level/fade messages to an Open Lighting Architecture node.",
        epilog=EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    ap.add_argument("universe", type=int, help="DMX universe (>= 0)")
    ap.add_argument("channel", type=int, help="DMX channel (1-512)")
    ap.add_argument("from_level", type=_from_level, help="start level 0-255, or 'auto'")
    ap.add_argument("to_level", type=int, help="target level 0-255")
    ap.add_argument("fade_duration", type=float, help="fade duration in seconds (0 = immediate)")
    ap.add_argument("--config", help="Path to config/config.yaml (optional)")
    ap.add_argument("--host", help="OSC receiver IP (overrides osc.host)")
    ap.add_argument("--port", type=int, help="OSC receiver UDP port (overrides osc.port)")
    ap.add_argument("--store", help="level memory file (overrides store.path)")
    ap.add_argument("--strict", action="store_true",
                    help="exit 2 if any datagram or the level file write failed")
    ap.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return ap.parse_args(argv)


def _build_setter(args: argparse.Namespace, cfg: dict) -> LevelSetter:
    target = OscTargetConfig.from_app(cfg)
    if args.host or args.port is not None:
        target = replace(
            target,
            host=args.host or target.host,
            port=args.port if args.port is not None else target.port,
        )
    store = StoreConfig.from_app(cfg)
    if args.store:
        store = StoreConfig.from_app({"store": {**(cfg.get("store") or {}), "path": args.store}})
    return LevelSetter(target, store, FadeConfig.from_app(cfg))


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)

    try:
        cfg = load_config(args.config)
        setter = _build_setter(args, cfg)
    except RuntimeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else getattr(logging, get_log_level(cfg), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    u, c, to = args.universe, args.channel, args.to_level
    if args.fade_duration == 0:
        print(f"Setting DMX Universe: {u}, Channel: {c} to {to} immediately...")
    else:
        start = "its remembered level" if args.from_level is None else args.from_level
        print(f"Fading DMX Universe: {u}, Channel: {c} from {start} to {to} "
              f"over {args.fade_duration} seconds...")

    try:
        result = setter.set_level(u, c, to, args.fade_duration, from_level=args.from_level)
    except ValidationError as e:
        print(f"Error: {e}", file=sys.stderr)
        print(f"Usage: oscdmx <universe> <channel> <from_level> <to_level> <fade_duration_seconds>\n"
              f"{EXAMPLES}", file=sys.stderr)
        return 1
    except SocketCreationError as e:
        print(str(e), file=sys.stderr)
        return 1

    if not result.delivered:
        print(f"Failed to send {result.failed} of {result.sent + result.failed} message(s) "
              f"for DMX Universe {u}, Channel {c}.")
    if args.fade_duration == 0:
        if result.delivered:
            print(f"DMX Universe {u}, Channel {c} set to {to} successfully.")
    else:
        print(f"Fade complete for DMX Universe: {u}, Channel: {c}. Final level: {to}.")
    if not result.persisted:
        print(f"Failed to save DMX levels to {setter.store_cfg.path}.", file=sys.stderr)

    if args.strict and not result.ok:
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
