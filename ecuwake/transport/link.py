"""Serial link handle wrapping a pyserial port for the K-line handshake."""

from __future__ import annotations

import enum
import logging
import threading
from typing import Optional

import serial

from ..config import PortConfiguration
from ..errors import InvalidStateError, LinkDisposedError, LinkIOError, LinkTimeoutError

_LOGGER = logging.getLogger(__name__)


class LinkState(enum.Enum):
    CLOSED = "closed"
    OPEN = "open"
    DISPOSED = "disposed"


def _wrap_serial_error(action: str, port: str, exc: Exception) -> LinkIOError:
    if isinstance(exc, serial.SerialTimeoutException):
        return LinkTimeoutError(f"{action} on {port} timed out: {exc}")
    return LinkIOError(f"{action} on {port} failed: {exc}")


class LinkHandle:
    """Owns one serial port and its configuration.

    Every call is serialized by an internal lock, so :meth:`dispose` issued
    from another thread waits for an in-progress write instead of racing it.
    """

    def __init__(self, config: PortConfiguration) -> None:
        self._config = config
        self._serial: Optional[serial.Serial] = None
        self._lock = threading.RLock()
        self._disposed = False

    @property
    def config(self) -> PortConfiguration:
        return self._config

    @property
    def port(self) -> str:
        return self._config.port

    @property
    def state(self) -> LinkState:
        if self._disposed:
            return LinkState.DISPOSED
        return LinkState.OPEN if self.is_open else LinkState.CLOSED

    @property
    def is_open(self) -> bool:
        ser = self._serial
        return bool(ser is not None and ser.is_open)

    def configure(self, config: PortConfiguration) -> None:
        with self._lock:
            self._check_not_disposed()
            if self.is_open:
                raise InvalidStateError("Cannot reconfigure an open port; close it first")
            self._config = config

    def open(self) -> None:
        with self._lock:
            self._check_not_disposed()
            if self.is_open:
                raise InvalidStateError(f"Port {self.port} is already open")
            cfg = self._config
            try:
                cfg.validate()
                ser = serial.Serial(
                    port=cfg.port,
                    baudrate=cfg.baudrate,
                    bytesize=cfg.bytesize,
                    parity=cfg.parity,
                    stopbits=cfg.stopbits,
                    timeout=cfg.read_timeout,
                    write_timeout=cfg.write_timeout,
                    xonxoff=cfg.handshake == "xonxoff",
                    rtscts=cfg.handshake == "rtscts",
                )
            except (serial.SerialException, OSError, ValueError) as exc:
                raise _wrap_serial_error("open", cfg.port, exc) from exc
            self._serial = ser
            _LOGGER.debug("Opened %s at %d baud", cfg.port, cfg.baudrate)

    def close(self) -> bool:
        """Close the port. Returns False when there was nothing to close."""
        with self._lock:
            self._check_not_disposed()
            ser = self._serial
            if ser is None:
                return False
            if not ser.is_open:
                self._serial = None
                return False
            try:
                ser.close()
            except (serial.SerialException, OSError) as exc:
                # Keep the object so a later close or dispose retries the release.
                raise _wrap_serial_error("close", self.port, exc) from exc
            self._serial = None
            _LOGGER.debug("Closed %s", self.port)
            return True

    def set_break(self, active: bool) -> None:
        with self._lock:
            ser = self._require_open()
            try:
                ser.break_condition = bool(active)
            except (serial.SerialException, OSError) as exc:
                raise _wrap_serial_error("set break", self.port, exc) from exc

    def write(self, data: bytes) -> int:
        with self._lock:
            ser = self._require_open()
            payload = bytes(data)
            try:
                written = ser.write(payload)
            except (serial.SerialException, OSError) as exc:
                raise _wrap_serial_error("write", self.port, exc) from exc
            if written is not None and written != len(payload):
                raise LinkTimeoutError(
                    f"write on {self.port} sent {written} of {len(payload)} bytes"
                )
            return len(payload)

    def discard_input(self) -> None:
        with self._lock:
            ser = self._require_open()
            try:
                ser.reset_input_buffer()
            except (serial.SerialException, OSError) as exc:
                raise _wrap_serial_error("discard input", self.port, exc) from exc

    def discard_output(self) -> None:
        with self._lock:
            ser = self._require_open()
            try:
                ser.reset_output_buffer()
            except (serial.SerialException, OSError) as exc:
                raise _wrap_serial_error("discard output", self.port, exc) from exc

    def dispose(self) -> None:
        """Release the OS port unconditionally. Safe to call repeatedly."""
        with self._lock:
            if self._disposed:
                return
            self._disposed = True
            ser = self._serial
            self._serial = None
            if ser is not None:
                try:
                    ser.close()
                except Exception:
                    _LOGGER.debug("Failed to close %s during dispose", self.port, exc_info=True)
            _LOGGER.debug("Disposed link for %s", self.port)

    def _check_not_disposed(self) -> None:
        if self._disposed:
            raise LinkDisposedError(f"Link for {self.port} has been disposed")

    def _require_open(self) -> serial.Serial:
        self._check_not_disposed()
        ser = self._serial
        if ser is None or not ser.is_open:
            raise InvalidStateError(f"Port {self.port} is not open")
        return ser
