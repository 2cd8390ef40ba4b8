from __future__ import annotations

import struct
from enum import IntEnum
from typing import Iterable, Sequence, Tuple

DRIVE_STRAIGHT = 0x8000
DRIVE_MAX_VELOCITY = 500

READY_SONG_SLOT = 0
READY_SONG_NOTES: Tuple[Tuple[int, int], ...] = ((72, 16),)  # C5, 16/64 s

DEFAULT_GROUP = 6
_DEFAULT_REPLY_LENGTH = 26
_REPLY_LENGTHS = {
    0: 26,
    1: 10,
    2: 6,
    3: 10,
    4: 14,
    5: 12,
    6: 52,
}


class Opcode(IntEnum):
    ENTER_OI = 128
    ENTER_SAFE_MODE = 131
    DRIVE = 137
    LOAD_SONG = 140
    PLAY_SONG = 141
    REQUEST_SENSOR_GROUP = 142


_FIXED_ARITY = {
    Opcode.ENTER_OI: 0,
    Opcode.ENTER_SAFE_MODE: 0,
    Opcode.DRIVE: 4,
    Opcode.PLAY_SONG: 1,
    Opcode.REQUEST_SENSOR_GROUP: 1,
}


def expected_reply_length(group: int) -> int:
    return _REPLY_LENGTHS.get(int(group), _DEFAULT_REPLY_LENGTH)


def param_count(opcode: Opcode, params: Sequence[int] = ()) -> int:
    """Number of parameter bytes ``opcode`` takes.

    LOAD_SONG is the only variable-length command; its size follows from the
    note count carried in the second parameter byte.
    """
    opcode = Opcode(opcode)
    if opcode == Opcode.LOAD_SONG:
        if len(params) < 2:
            raise ValueError("LOAD_SONG needs at least slot and note count")
        return 2 + 2 * int(params[1])
    return _FIXED_ARITY[opcode]


def encode_command(opcode: Opcode, params: Iterable[int] = ()) -> bytes:
    opcode = Opcode(opcode)
    values = [int(p) for p in params]
    expected = param_count(opcode, values)
    if len(values) != expected:
        raise ValueError(
            f"{opcode.name} takes {expected} parameter bytes, got {len(values)}"
        )
    for value in values:
        if not 0 <= value <= 0xFF:
            raise ValueError(f"{opcode.name} parameter out of byte range: {value}")
    return bytes([int(opcode), *values])


def enter_oi() -> bytes:
    return encode_command(Opcode.ENTER_OI)


def enter_safe_mode() -> bytes:
    return encode_command(Opcode.ENTER_SAFE_MODE)


def drive(velocity_mm_s: int, radius_mm: int = DRIVE_STRAIGHT) -> bytes:
    velocity = max(-DRIVE_MAX_VELOCITY, min(DRIVE_MAX_VELOCITY, int(velocity_mm_s)))
    # radius is sent as a raw 16-bit word; 0x8000 and 0x7FFF are special values
    payload = struct.pack(">hH", velocity, int(radius_mm) & 0xFFFF)
    return encode_command(Opcode.DRIVE, payload)


def stop_motion() -> bytes:
    return drive(0, DRIVE_STRAIGHT)


def load_song(slot: int, notes: Sequence[Tuple[int, int]]) -> bytes:
    params = [int(slot), len(notes)]
    for note, duration in notes:
        params.extend((int(note), int(duration)))
    return encode_command(Opcode.LOAD_SONG, params)


def play_song(slot: int) -> bytes:
    return encode_command(Opcode.PLAY_SONG, [slot])


def ready_song() -> Tuple[bytes, bytes]:
    return load_song(READY_SONG_SLOT, READY_SONG_NOTES), play_song(READY_SONG_SLOT)


def request_sensor_group(group: int) -> bytes:
    return encode_command(Opcode.REQUEST_SENSOR_GROUP, [group])
