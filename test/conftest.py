from collections import deque
from typing import Callable, List, Optional

import pytest

from oi_monitor.transport import SendError, TransportOpenError


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: List[float] = []

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedPort:
    """In-memory port; each queued item is one read result or an exception to raise."""

    def __init__(
        self,
        reads=(),
        clock: Optional[FakeClock] = None,
        read_delay_s: float = 0.0,
        fail_write: Optional[Callable[[bytes], bool]] = None,
        fail_open: bool = False,
    ) -> None:
        self.reads = deque(reads)
        self.clock = clock
        self.read_delay_s = read_delay_s
        self.fail_write = fail_write
        self.fail_open = fail_open
        self.writes: List[bytes] = []
        self.read_sizes: List[int] = []
        self.open_calls = 0
        self.close_calls = 0
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> None:
        self.open_calls += 1
        if self.fail_open:
            raise TransportOpenError("opening /dev/null0 at 115200: no such device")
        self._open = True

    def write(self, data: bytes) -> None:
        if self.fail_write is not None and self.fail_write(data):
            raise SendError("write failed on /dev/null0: broken pipe")
        self.writes.append(bytes(data))

    def read(self, size: int) -> bytes:
        self.read_sizes.append(size)
        if self.clock is not None:
            self.clock.advance(self.read_delay_s)
        if not self.reads:
            return b""
        item = self.reads.popleft()
        if isinstance(item, BaseException):
            raise item
        if len(item) > size:
            self.reads.appendleft(item[size:])
            item = item[:size]
        return item

    def close(self) -> None:
        self.close_calls += 1
        self._open = False


class RecordingReporter:
    def __init__(self) -> None:
        self.lines: List[tuple] = []

    def connected(self, group: int, frame_length: int) -> None:
        self.lines.append(("connected", group, frame_length))

    def raw(self, ts_ms: int, frame: bytes) -> None:
        self.lines.append(("raw", frame))

    def timeout(self, ts_ms: int) -> None:
        self.lines.append(("timeout",))

    def tick(self, ts_ms: int, report) -> None:
        for name in report.events:
            self.lines.append(("event", name))
        self.lines.append(("summary", report.summary))

    def error(self, message: str) -> None:
        self.lines.append(("error", message))

    def kinds(self) -> List[str]:
        return [line[0] for line in self.lines]

    def events(self) -> List[str]:
        return [line[1] for line in self.lines if line[0] == "event"]


def sensor_frame(bumps: int = 0, wall: int = 0, length: int = 52) -> bytes:
    frame = bytearray(length)
    frame[0] = bumps & 0xFF
    frame[1] = wall & 0xFF
    for i in range(2, length):
        frame[i] = i & 0xFF
    return bytes(frame)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def reporter() -> RecordingReporter:
    return RecordingReporter()
