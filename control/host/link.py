"""Common interface for links that carry joint angles to the arm controller."""
from __future__ import annotations

import enum
import logging
from typing import Optional

from kinematics.delta_arm import JointAngles

from .codec import format_angles, parse_angles

logger = logging.getLogger(__name__)


class TransportError(RuntimeError):
    """Raised when the link to the arm controller fails."""


class ConnectionStatus(enum.Enum):
    CONNECTING = "Connecting"
    OPEN = "Open"
    CLOSING = "Closing"
    CLOSED = "Closed"
    UNINSTANTIATED = "Uninstantiated"


class Transport:
    """Base link: subclasses implement ``_connect``, ``_write``, ``_read`` and ``_disconnect``.

    Delivery is never assumed; a failed write marks the link closed and
    raises :class:`TransportError` for the caller to log.
    """

    name = "transport"

    def __init__(self) -> None:
        self.status = ConnectionStatus.UNINSTANTIATED
        self.last_sent: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.status is ConnectionStatus.OPEN

    def open(self) -> None:
        if self.is_open:
            return
        self.status = ConnectionStatus.CONNECTING
        try:
            self._connect()
        except TransportError:
            self.status = ConnectionStatus.CLOSED
            raise
        self.status = ConnectionStatus.OPEN
        logger.info("%s link open", self.name)

    def close(self) -> None:
        if self.status in (ConnectionStatus.CLOSED, ConnectionStatus.UNINSTANTIATED):
            return
        self.status = ConnectionStatus.CLOSING
        try:
            self._disconnect()
        finally:
            self.status = ConnectionStatus.CLOSED
            logger.info("%s link closed", self.name)

    def send_angles(self, angles: JointAngles) -> str:
        message = format_angles(angles)
        self.send_text(message)
        return message

    def send_text(self, message: str) -> None:
        if not self.is_open:
            raise TransportError(f"{self.name} link is {self.status.value.lower()}")
        try:
            self._write(message)
        except TransportError:
            self.status = ConnectionStatus.CLOSED
            raise
        self.last_sent = message

    def receive_angles(self) -> Optional[JointAngles]:
        """Return the newest telemetry triple, or None when nothing parseable arrived."""
        if not self.is_open:
            return None
        return parse_angles(self._read())

    def _connect(self) -> None:
        raise NotImplementedError

    def _disconnect(self) -> None:
        raise NotImplementedError

    def _write(self, message: str) -> None:
        raise NotImplementedError

    def _read(self) -> Optional[str]:
        return None


def build_transport(settings) -> Transport:
    """Create the link described by a :class:`control.config.TransportSettings`."""
    from .network import HttpTransport, WebSocketTransport
    from .serial_bridge import SerialBridge

    mode = settings.mode
    if mode == "websocket":
        return WebSocketTransport(settings.address, timeout=settings.timeout)
    if mode == "http":
        return HttpTransport(settings.address, timeout=settings.timeout)
    if mode == "serial":
        return SerialBridge(port=settings.serial_port, baudrate=settings.baudrate, timeout=settings.timeout)
    if mode == "dry_run":
        return SerialBridge(port=None, dry_run=True)
    raise ValueError(f"Unknown transport mode {mode!r}")


__all__ = ["ConnectionStatus", "Transport", "TransportError", "build_transport"]
