"""CLI interface for sysmon."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading

from . import __version__
from .engine import MetricsEngine
from .errors import SysmonError
from .exporter import BaseExporter, HumanExporter, JsonLinesExporter

logger = logging.getLogger(__name__)


def _fail(exc: SysmonError, message: str | None = None) -> None:
    print(f"sysmon: {exc.kind.value}: {message or exc}", file=sys.stderr)
    sys.exit(1)


def _cmd_collect(args: argparse.Namespace) -> None:
    """Poll the engine and print one line per snapshot."""
    try:
        engine = MetricsEngine.from_file(args.config)
    except SysmonError as exc:
        _fail(exc)
        return

    exporter: BaseExporter = JsonLinesExporter() if args.json else HumanExporter()
    stop = threading.Event()

    def _handle_signal(_sig: int, _frame: object) -> None:
        stop.set()

    previous = {sig: signal.signal(sig, _handle_signal) for sig in (signal.SIGINT, signal.SIGTERM)}

    interval_s = engine.interval_ms / 1000.0
    rounds = 0
    failure: SysmonError | None = None
    try:
        while not stop.is_set():
            try:
                snapshot = engine.poll()
            except SysmonError as exc:
                failure = exc
                break
            exporter.export(snapshot)
            rounds += 1
            if args.count is not None and rounds >= args.count:
                break
            stop.wait(interval_s)
    finally:
        exporter.shutdown()
        engine.shutdown()
        for sig, handler in previous.items():
            signal.signal(sig, handler)
    logger.info("Collection stopped after %d rounds", rounds)

    if failure is not None:
        _fail(failure, engine.last_error)


def _cmd_modules(args: argparse.Namespace) -> None:
    """List modules with their enabled state after probing."""
    try:
        engine = MetricsEngine.from_file(args.config)
    except SysmonError as exc:
        _fail(exc)
        return
    with engine:
        for status in engine.module_status():
            state = "enabled" if status.enabled else "disabled"
            refresh = f"{status.refresh_ms}ms" if status.refresh_ms else "every round"
            print(f"{status.name:<10} {state:<9} refresh={refresh}")
        print(f"interval={engine.interval_ms}ms")


def _cmd_version(_args: argparse.Namespace) -> None:
    print(f"sysmon {__version__}")


def _positive_int(value: str) -> int:
    count = int(value)
    if count <= 0:
        raise argparse.ArgumentTypeError("must be a positive integer")
    return count


def main(argv: list[str] | None = None) -> None:
    """Entry point for the sysmon CLI."""
    parser = argparse.ArgumentParser(
        prog="sysmon",
        description="Poll host CPU, memory, battery, network and storage metrics",
    )
    parser.add_argument("--config", "-c", default=None, help="Path to sysmon.yaml or sysmon.ini")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log engine activity")
    sub = parser.add_subparsers(dest="command")

    # collect
    collect_p = sub.add_parser("collect", help="Poll metrics and print snapshots")
    collect_p.add_argument(
        "--count", "-n", type=_positive_int, default=None, help="Number of rounds (default: infinite)"
    )
    collect_p.add_argument("--json", action="store_true", help="Print one JSON object per line")
    collect_p.set_defaults(func=_cmd_collect)

    # modules
    modules_p = sub.add_parser("modules", help="List collector modules and their state")
    modules_p.set_defaults(func=_cmd_modules)

    # version
    ver_p = sub.add_parser("version", help="Print version")
    ver_p.set_defaults(func=_cmd_version)

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == "__main__":
    main()
