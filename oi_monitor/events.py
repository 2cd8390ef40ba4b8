"""Rising-edge detection over decoded sensor snapshots."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple

from .telemetry import SIGNAL_NAMES, TelemetrySnapshot


@dataclass(slots=True)
class SignalHistory:
    previous: TelemetrySnapshot = field(default_factory=TelemetrySnapshot)
    primed: bool = False

    def replace(self, snapshot: TelemetrySnapshot) -> None:
        self.previous = snapshot
        self.primed = True


@dataclass(frozen=True, slots=True)
class TickReport:
    events: Tuple[str, ...]
    summary: TelemetrySnapshot


class EventTracker:
    """Emits an event for every signal that goes from false to true.

    Held signals do not repeat and falling edges are silent. The first
    snapshot only sets the baseline when ``suppress_first_tick`` is on, since
    a signal that is already true has no known prior state to rise from.
    With ``suppress_first_tick=False`` the history starts all-false and a
    signal already held at startup fires on the first tick, matching a plain
    previous-state comparison.
    """

    __slots__ = ("_history", "_suppress_first_tick")

    def __init__(self, suppress_first_tick: bool = True) -> None:
        self._history = SignalHistory()
        self._suppress_first_tick = bool(suppress_first_tick)

    @property
    def history(self) -> SignalHistory:
        return self._history

    def reset(self) -> None:
        self._history = SignalHistory()

    def update(self, snapshot: TelemetrySnapshot) -> TickReport:
        previous = self._history.previous
        if self._suppress_first_tick and not self._history.primed:
            events: Tuple[str, ...] = ()
        else:
            events = tuple(
                name
                for name in SIGNAL_NAMES
                if getattr(snapshot, name) and not getattr(previous, name)
            )
        self._history.replace(snapshot)
        return TickReport(events=events, summary=snapshot)
