from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from .events import TickReport
from .protocol import DEFAULT_GROUP
from .session import SessionConfig, SessionController
from .telemetry import TelemetrySnapshot
from .transport import DEFAULT_BAUD, SerialPort

EXAMPLES = """Examples:
  oi-monitor --port /dev/ttyUSB0 --baud 115200 --group 6 --raw
  oi-monitor --port COM3 --baud 57600 --group 0
"""


def _bit(value: bool) -> int:
    return 1 if value else 0


def format_summary(snapshot: TelemetrySnapshot) -> str:
    return (
        f"BL={_bit(snapshot.bump_left)} "
        f"BR={_bit(snapshot.bump_right)} "
        f"WALL={_bit(snapshot.wall)} "
        f"WD[L/C/R]={_bit(snapshot.wheel_drop_left)}"
        f"/{_bit(snapshot.wheel_drop_center)}"
        f"/{_bit(snapshot.wheel_drop_right)}"
    )


def format_hex(frame: bytes) -> str:
    return frame.hex(" ").upper()


class ConsoleReporter:
    """Line-oriented console output, one timestamped line per record."""

    def __init__(self, port: str, baud: int, stream=None) -> None:
        self.port = port
        self.baud = baud
        self._stream = stream

    def _emit(self, line: str) -> None:
        print(line, file=self._stream or sys.stdout, flush=True)

    def connected(self, group: int, frame_length: int) -> None:
        self._emit("Beep! Connected.")
        self._emit(f"Port={self.port}, Baud={self.baud}, Group={group} (expect {frame_length} bytes)")
        self._emit("Press Ctrl+C to stop.\n")

    def raw(self, ts_ms: int, frame: bytes) -> None:
        self._emit(f"{ts_ms}: RAW {format_hex(frame)}")

    def timeout(self, ts_ms: int) -> None:
        self._emit(f"{ts_ms}: WARN timeout waiting for sensor packet")

    def tick(self, ts_ms: int, report: TickReport) -> None:
        for name in report.events:
            self._emit(f"{ts_ms}: EVENT {name}")
        self._emit(f"{ts_ms}: {format_summary(report.summary)}")

    def error(self, message: str) -> None:
        self._emit(f"ERROR: {message}")


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="oi-monitor",
        description="Poll bump, wall and wheel-drop sensors over the iRobot Open Interface",
        epilog=EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-p", "--port", required=True, help="Serial port, e.g. /dev/ttyUSB0 or COM3")
    parser.add_argument(
        "--baud",
        type=int,
        default=DEFAULT_BAUD,
        help=f"Baud rate (default: {DEFAULT_BAUD}; classic Roomba uses 57600)",
    )
    parser.add_argument(
        "--group",
        type=int,
        default=DEFAULT_GROUP,
        help=f"Sensor packet group, 6 = 52 bytes on Create 2, 0 = 26 bytes (default: {DEFAULT_GROUP})",
    )
    parser.add_argument("--raw", action="store_true", help="Print every sensor frame as hex")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Diagnostic log level on stderr (default: WARNING)",
    )
    return parser


def run_cli(args: argparse.Namespace) -> int:
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    reporter = ConsoleReporter(port=args.port, baud=args.baud)
    try:
        config = SessionConfig(group=args.group, print_raw=args.raw)
    except ValueError as exc:
        reporter.error(str(exc))
        return 2

    port = SerialPort(args.port, baud=args.baud)
    session = SessionController(port, reporter, config=config)
    return session.run()


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    return run_cli(args)
