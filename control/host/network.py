"""Network links to the arm controller's access point."""
from __future__ import annotations

import logging
from typing import Optional

import httpx
from websockets.exceptions import ConnectionClosed, WebSocketException
from websockets.sync.client import connect

from kinematics.delta_arm import JointAngles

from .codec import format_angles
from .link import ConnectionStatus, Transport, TransportError

logger = logging.getLogger(__name__)

DEFAULT_ADDRESS = "192.168.4.1"


class WebSocketTransport(Transport):
    """Persistent message channel at ``ws://{address}/ws``; one message per triple."""

    name = "websocket"

    def __init__(self, address: str = DEFAULT_ADDRESS, timeout: float = 2.0, path: str = "/ws") -> None:
        super().__init__()
        self.address = address
        self.timeout = timeout
        self.path = path
        self._ws = None

    @property
    def url(self) -> str:
        return f"ws://{self.address}{self.path}"

    def _connect(self) -> None:
        try:
            self._ws = connect(self.url, open_timeout=self.timeout, close_timeout=self.timeout)
        except (OSError, TimeoutError, WebSocketException) as exc:
            raise TransportError(f"Could not connect to {self.url}: {exc}") from exc

    def _disconnect(self) -> None:
        if self._ws is not None:
            self._ws.close()
            self._ws = None

    def _write(self, message: str) -> None:
        try:
            self._ws.send(message)
        except (OSError, ConnectionClosed) as exc:
            raise TransportError(f"Send to {self.url} failed: {exc}") from exc

    def _read(self) -> Optional[str]:
        latest = None
        while True:
            try:
                message = self._ws.recv(timeout=0)
            except TimeoutError:
                return latest
            except ConnectionClosed as exc:
                self.status = ConnectionStatus.CLOSED
                raise TransportError(f"{self.url} closed: {exc}") from exc
            if isinstance(message, bytes):
                message = message.decode("ascii", errors="replace")
            latest = message


class HttpTransport(Transport):
    """Request-per-action link: ``GET /angles?theta1=..&theta2=..&theta3=..``.

    The response is ignored and no telemetry comes back on this path.
    """

    name = "http"

    def __init__(self, address: str = DEFAULT_ADDRESS, timeout: float = 2.0, path: str = "/angles") -> None:
        super().__init__()
        self.address = address
        self.timeout = timeout
        self.path = path
        self._client: Optional[httpx.Client] = None

    @property
    def url(self) -> str:
        return f"http://{self.address}{self.path}"

    def _connect(self) -> None:
        self._client = httpx.Client(timeout=self.timeout)

    def _disconnect(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def send_angles(self, angles: JointAngles) -> str:
        message = format_angles(angles)
        if not self.is_open:
            raise TransportError(f"{self.name} link is {self.status.value.lower()}")
        params = dict(zip(("theta1", "theta2", "theta3"), message.split(",")))
        try:
            self._client.get(self.url, params=params)
        except httpx.HTTPError as exc:
            # Stateless link: a failed request does not close it.
            raise TransportError(f"Request to {self.url} failed: {exc}") from exc
        self.last_sent = message
        return message

    def _write(self, message: str) -> None:
        raise TransportError("HttpTransport only carries angle triples")


__all__ = ["DEFAULT_ADDRESS", "HttpTransport", "WebSocketTransport"]
