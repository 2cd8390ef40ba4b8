from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Tuple

BUMP_RIGHT = 1 << 0
BUMP_LEFT = 1 << 1
WHEEL_DROP_RIGHT = 1 << 2
WHEEL_DROP_LEFT = 1 << 3
WHEEL_DROP_CENTER = 1 << 4

MIN_FRAME_SIZE = 2


@dataclass(frozen=True, slots=True)
class TelemetrySnapshot:
    bump_left: bool = False
    bump_right: bool = False
    wall: bool = False
    wheel_drop_left: bool = False
    wheel_drop_center: bool = False
    wheel_drop_right: bool = False

    def as_dict(self) -> dict:
        return {name: getattr(self, name) for name in SIGNAL_NAMES}


SIGNAL_NAMES: Tuple[str, ...] = tuple(f.name for f in fields(TelemetrySnapshot))


def decode_snapshot(frame: bytes) -> TelemetrySnapshot:
    # byte 0: bumps and wheel drops, byte 1: wall, in every sensor group we request
    if len(frame) < MIN_FRAME_SIZE:
        raise ValueError(f"Sensor frame too short: {len(frame)}")

    bumps = frame[0]
    return TelemetrySnapshot(
        bump_left=bool(bumps & BUMP_LEFT),
        bump_right=bool(bumps & BUMP_RIGHT),
        wall=frame[1] != 0,
        wheel_drop_left=bool(bumps & WHEEL_DROP_LEFT),
        wheel_drop_center=bool(bumps & WHEEL_DROP_CENTER),
        wheel_drop_right=bool(bumps & WHEEL_DROP_RIGHT),
    )
