from .events import EventTracker, SignalHistory, TickReport
from .protocol import Opcode, encode_command, expected_reply_length
from .session import SessionConfig, SessionController, SessionState
from .telemetry import TelemetrySnapshot, decode_snapshot
from .transport import FramedReader, SendError, SerialPort, TransportError, TransportOpenError

__all__ = [
    "EventTracker",
    "FramedReader",
    "Opcode",
    "SendError",
    "SerialPort",
    "SessionConfig",
    "SessionController",
    "SessionState",
    "SignalHistory",
    "TelemetrySnapshot",
    "TickReport",
    "TransportError",
    "TransportOpenError",
    "decode_snapshot",
    "encode_command",
    "expected_reply_length",
]
