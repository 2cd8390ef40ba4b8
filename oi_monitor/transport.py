from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Protocol

import serial

logger = logging.getLogger(__name__)

DEFAULT_BAUD = 115200
DEFAULT_IO_TIMEOUT_S = 0.25
FRAME_RETRY_DELAY_S = 0.001


class TransportError(RuntimeError):
    """Any failure of the byte channel other than an ordinary read timeout."""


class TransportOpenError(TransportError):
    pass


class SendError(TransportError):
    pass


class BytePort(Protocol):
    @property
    def is_open(self) -> bool: ...

    def open(self) -> None: ...

    def write(self, data: bytes) -> None: ...

    def read(self, size: int) -> bytes: ...

    def close(self) -> None: ...


class SerialPort:
    """8-N-1 serial line with per-call read and write timeouts.

    ``read`` returns whatever arrived before the timeout, possibly nothing.
    """

    def __init__(
        self,
        port: str,
        baud: int = DEFAULT_BAUD,
        timeout_s: float = DEFAULT_IO_TIMEOUT_S,
        write_timeout_s: float = DEFAULT_IO_TIMEOUT_S,
    ) -> None:
        self.port = port
        self.baud = int(baud)
        self.timeout_s = float(timeout_s)
        self.write_timeout_s = float(write_timeout_s)
        self._serial: Optional[serial.Serial] = None

    @property
    def is_open(self) -> bool:
        return self._serial is not None and self._serial.is_open

    def open(self) -> None:
        if self.is_open:
            return
        # configure before opening so DTR and RTS are never raised
        ser = serial.Serial()
        try:
            ser.port = self.port
            ser.baudrate = self.baud
            ser.timeout = self.timeout_s
            ser.write_timeout = self.write_timeout_s
            ser.bytesize = serial.EIGHTBITS
            ser.parity = serial.PARITY_NONE
            ser.stopbits = serial.STOPBITS_ONE
            ser.xonxoff = False
            ser.rtscts = False
            ser.dsrdtr = False
            ser.dtr = False
            ser.rts = False
            ser.open()
        except (serial.SerialException, ValueError, OSError) as exc:
            ser.close()
            raise TransportOpenError(f"opening {self.port} at {self.baud}: {exc}") from exc

        self._serial = ser
        logger.info("opened %s at %d baud", self.port, self.baud)

    def write(self, data: bytes) -> None:
        if not self.is_open:
            raise SendError("serial not open")
        try:
            self._serial.write(data)
        except serial.SerialTimeoutException as exc:
            raise SendError(f"write timed out on {self.port}") from exc
        except (serial.SerialException, OSError) as exc:
            raise SendError(f"write failed on {self.port}: {exc}") from exc
        logger.debug("TX %s", data.hex(" "))

    def read(self, size: int) -> bytes:
        if not self.is_open:
            raise TransportError("serial not open")
        try:
            return self._serial.read(size)
        except (serial.SerialException, OSError) as exc:
            raise TransportError(f"read failed on {self.port}: {exc}") from exc

    def close(self) -> None:
        if self._serial is None:
            return
        try:
            self._serial.close()
        finally:
            self._serial = None
            logger.info("closed %s", self.port)


class FramedReader:
    """Assembles fixed-length replies from a port that may deliver them in pieces."""

    __slots__ = ("_port", "_clock", "_sleep", "retry_delay_s")

    def __init__(
        self,
        port: BytePort,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        retry_delay_s: float = FRAME_RETRY_DELAY_S,
    ) -> None:
        self._port = port
        self._clock = clock
        self._sleep = sleep
        self.retry_delay_s = float(retry_delay_s)

    def read_frame(self, length: int, overall_timeout_s: float) -> Optional[bytes]:
        """Read exactly ``length`` bytes, or return None once the deadline passes.

        Individual reads that time out or come back empty are retried. Bytes
        collected before the deadline are dropped rather than returned short.
        """
        if length <= 0:
            raise ValueError(f"frame length must be > 0, got {length}")

        buf = bytearray(length)
        offset = 0
        start = self._clock()

        while offset < length:
            if self._clock() - start > overall_timeout_s:
                logger.debug("frame timeout with %d/%d bytes", offset, length)
                return None

            try:
                chunk = self._port.read(length - offset)
            except TimeoutError:
                chunk = b""

            if chunk:
                n = min(len(chunk), length - offset)
                buf[offset : offset + n] = chunk[:n]
                offset += n
                if offset == length:
                    break

            self._sleep(self.retry_delay_s)

        frame = bytes(buf)
        logger.debug("RX %s", frame.hex(" "))
        return frame
