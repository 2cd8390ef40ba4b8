from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol

from .events import EventTracker, TickReport
from .protocol import (
    DEFAULT_GROUP,
    enter_oi,
    enter_safe_mode,
    expected_reply_length,
    ready_song,
    request_sensor_group,
    stop_motion,
)
from .telemetry import decode_snapshot
from .transport import BytePort, FramedReader, TransportError, TransportOpenError

logger = logging.getLogger(__name__)

MODE_SETTLE_S = 0.05
POLL_INTERVAL_S = 0.1
FRAME_TIMEOUT_S = 1.0


class SessionState(Enum):
    CLOSED = "closed"
    INITIALIZING = "initializing"
    ACTIVE = "active"
    SHUTTING_DOWN = "shutting_down"


@dataclass(slots=True)
class SessionConfig:
    group: int = DEFAULT_GROUP
    print_raw: bool = False
    settle_s: float = MODE_SETTLE_S
    poll_interval_s: float = POLL_INTERVAL_S
    frame_timeout_s: float = FRAME_TIMEOUT_S
    warmup: bool = True

    def __post_init__(self) -> None:
        if not 0 <= int(self.group) <= 0xFF:
            raise ValueError(f"group must fit in one byte, got {self.group}")
        if self.settle_s < 0:
            raise ValueError("settle_s must be >= 0")
        if self.poll_interval_s < 0:
            raise ValueError("poll_interval_s must be >= 0")
        if self.frame_timeout_s <= 0:
            raise ValueError("frame_timeout_s must be > 0")

    @property
    def frame_length(self) -> int:
        return expected_reply_length(self.group)


class Reporter(Protocol):
    def connected(self, group: int, frame_length: int) -> None: ...

    def raw(self, ts_ms: int, frame: bytes) -> None: ...

    def timeout(self, ts_ms: int) -> None: ...

    def tick(self, ts_ms: int, report: TickReport) -> None: ...

    def error(self, message: str) -> None: ...


def unix_ms() -> int:
    return int(time.time() * 1000)


class SessionController:
    """Owns the port for one session: mode entry, sensor polling and stop-on-exit.

    ``run`` is the normal entry point. It opens the port, enters safe mode,
    polls until stopped and always finishes with a stop-motion command and
    a closed port, whichever way the loop ended.
    """

    def __init__(
        self,
        port: BytePort,
        reporter: Reporter,
        config: Optional[SessionConfig] = None,
        tracker: Optional[EventTracker] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        now_ms: Callable[[], int] = unix_ms,
        stop_event: Optional[threading.Event] = None,
    ) -> None:
        self.config = config or SessionConfig()
        self._port = port
        self._reporter = reporter
        self._tracker = tracker or EventTracker()
        self._reader = FramedReader(port, clock=clock, sleep=sleep)
        self._sleep = sleep
        self._now_ms = now_ms
        self._stop_event = stop_event or threading.Event()

        self._state = SessionState.CLOSED
        self.last_error: Optional[BaseException] = None
        self.polls = 0
        self.timeouts = 0

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def tracker(self) -> EventTracker:
        return self._tracker

    def request_stop(self) -> None:
        self._stop_event.set()

    def run(self, max_polls: Optional[int] = None) -> int:
        try:
            self.open()
        except (TransportOpenError, OSError) as exc:
            self.last_error = exc
            logger.error("could not open transport: %s", exc)
            self._reporter.error(str(exc))
            return 1

        try:
            self.initialize()
            self.run_active(max_polls=max_polls)
        except KeyboardInterrupt:
            logger.info("interrupted, shutting down")
        except TransportError as exc:
            self.last_error = exc
            logger.error("session aborted: %s", exc)
            self._reporter.error(str(exc))
            return 1
        except Exception as exc:
            self.last_error = exc
            logger.exception("session failed")
            self._reporter.error(str(exc))
            return 1
        finally:
            self.shutdown()
        return 0

    def open(self) -> None:
        if self._state is not SessionState.CLOSED:
            raise RuntimeError(f"cannot open session in state {self._state.value}")
        self._port.open()
        self._stop_event.clear()
        self._tracker.reset()
        self._set_state(SessionState.INITIALIZING)

    def initialize(self) -> None:
        self._require(SessionState.INITIALIZING)
        try:
            self._send(enter_oi())
            self._sleep(self.config.settle_s)
            self._send(enter_safe_mode())
            self._sleep(self.config.settle_s)
            for frame in ready_song():
                self._send(frame)
        except TransportError as exc:
            self.last_error = exc
            self._set_state(SessionState.SHUTTING_DOWN)
            raise

        self._set_state(SessionState.ACTIVE)
        self._reporter.connected(self.config.group, self.config.frame_length)

    def warm_up(self) -> None:
        self._require(SessionState.ACTIVE)
        self._send(request_sensor_group(self.config.group))
        frame = self._reader.read_frame(self.config.frame_length, self.config.frame_timeout_s)
        if frame is None:
            logger.debug("warm-up read timed out")

    def poll_once(self) -> Optional[TickReport]:
        self._require(SessionState.ACTIVE)
        self._send(request_sensor_group(self.config.group))
        frame = self._reader.read_frame(self.config.frame_length, self.config.frame_timeout_s)
        ts_ms = self._now_ms()
        self.polls += 1

        if frame is None:
            self.timeouts += 1
            logger.warning("no sensor frame within %.3fs", self.config.frame_timeout_s)
            self._reporter.timeout(ts_ms)
            return None

        if self.config.print_raw:
            self._reporter.raw(ts_ms, frame)

        snapshot = decode_snapshot(frame)
        logger.debug("sensors %s", snapshot.as_dict())
        report = self._tracker.update(snapshot)
        self._reporter.tick(ts_ms, report)
        return report

    def run_active(self, max_polls: Optional[int] = None) -> None:
        self._require(SessionState.ACTIVE)
        if self.config.warmup:
            self.warm_up()

        done = 0
        while not self._stop_event.is_set():
            if max_polls is not None and done >= max_polls:
                break
            report = self.poll_once()
            done += 1
            # after a timeout the next request goes out at once
            if report is not None:
                self._sleep(self.config.poll_interval_s)

    def shutdown(self) -> None:
        if self._state is SessionState.CLOSED:
            return

        self._set_state(SessionState.SHUTTING_DOWN)
        try:
            self._port.write(stop_motion())
        except Exception as exc:
            logger.warning("stop-motion command failed: %s", exc)

        try:
            if self._port.is_open:
                self._port.close()
        finally:
            self._set_state(SessionState.CLOSED)

    def _send(self, frame: bytes) -> None:
        self._port.write(frame)

    def _require(self, state: SessionState) -> None:
        if self._state is not state:
            raise RuntimeError(f"session is {self._state.value}, expected {state.value}")

    def _set_state(self, state: SessionState) -> None:
        if state is not self._state:
            logger.info("session %s -> %s", self._state.value, state.value)
            self._state = state
