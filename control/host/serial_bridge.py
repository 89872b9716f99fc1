"""Serial link helper for the delta arm controller board."""
from __future__ import annotations

import logging
import time
from typing import Optional

from .link import Transport, TransportError

try:
    import serial  # type: ignore
except ImportError as exc:  # pragma: no cover - handled at runtime
    serial = None
    _IMPORT_ERROR = exc
else:
    _IMPORT_ERROR = None

logger = logging.getLogger(__name__)


class SerialBridge(Transport):
    """Newline framed ``theta1,theta2,theta3`` messages over a serial port.

    With ``dry_run=True`` nothing is opened and each message is logged instead.
    """

    name = "serial"

    def __init__(
        self,
        port: Optional[str],
        baudrate: int = 115200,
        timeout: float = 0.1,
        dry_run: bool = False,
        settle_s: float = 2.0,
    ) -> None:
        super().__init__()
        if not dry_run and not port:
            raise ValueError("Serial port required unless dry_run=True")
        self.port = port
        self.baudrate = baudrate
        self.timeout = timeout
        self.dry_run = dry_run
        self.settle_s = settle_s
        self._ser = None
        if dry_run:
            self.name = "dry-run"

    def _connect(self) -> None:
        if self.dry_run:
            return
        if serial is None:
            raise RuntimeError(
                "pyserial not installed. Install with `pip install pyserial` or use the dry_run transport"
            ) from _IMPORT_ERROR
        try:
            self._ser = serial.Serial(self.port, self.baudrate, timeout=self.timeout)
        except serial.SerialException as exc:
            raise TransportError(f"Could not open {self.port}: {exc}") from exc
        # Boards that reset on connect drop bytes until the bootloader exits.
        time.sleep(self.settle_s)

    def _disconnect(self) -> None:
        if self._ser is not None:
            self._ser.close()
            self._ser = None

    def _write(self, message: str) -> None:
        if self.dry_run:
            logger.info("[dry-run] %s", message)
            return
        assert self._ser is not None
        try:
            self._ser.write((message + "\n").encode("ascii"))
            self._ser.flush()
        except serial.SerialException as exc:
            raise TransportError(f"Write to {self.port} failed: {exc}") from exc

    def _read(self) -> Optional[str]:
        if self._ser is None:
            return None
        latest = None
        try:
            while self._ser.in_waiting:
                line = self._ser.readline()
                if not line:
                    break
                latest = line.decode("ascii", errors="replace").strip()
        except serial.SerialException as exc:
            raise TransportError(f"Read from {self.port} failed: {exc}") from exc
        return latest


__all__ = ["SerialBridge"]
