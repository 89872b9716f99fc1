from __future__ import annotations

import logging
import math
import threading
import time
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional, Sequence, Tuple

from control.config import ConsoleConfig, build_controller
from control.host.codec import format_angles
from control.host.link import Transport, TransportError, build_transport
from control.motion import Bounds, MotionController
from control.sampler import RateLimitedInputSampler
from kinematics.delta_arm import Geometry, JointAngles

logger = logging.getLogger(__name__)

JoystickSample = Tuple[float, float]


def _angles_or_none(angles: Optional[JointAngles]) -> Optional[Dict[str, Optional[float]]]:
    if angles is None:
        return None
    return {
        name: (value if math.isfinite(value) else None)
        for name, value in zip(("theta1", "theta2", "theta3"), angles)
    }


class ConsoleService:
    """Background worker that drives the motion core and streams angles to the arm.

    API handlers and the frame loop share one lock, so the controller, the
    sampler and the transport only ever see one caller at a time.
    """

    def __init__(
        self,
        config: ConsoleConfig,
        transport: Optional[Transport] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._clock = clock
        self._controller: MotionController = build_controller(config)
        self._sampler: RateLimitedInputSampler[JoystickSample] = RateLimitedInputSampler(
            config.sampler_period_s, self._controller.apply_velocity_sample, clock=clock
        )
        self._transport = transport if transport is not None else build_transport(config.transport)
        self._device_address = config.transport.address

        self._lock = threading.RLock()
        self._last_message: Optional[str] = None
        self._actual_angles: Optional[JointAngles] = None
        self._events: Deque[Dict[str, Any]] = deque(maxlen=256)
        self._frame_count = 0

        self._stop = threading.Event()
        self._worker: Optional[threading.Thread] = None

    # -- lifecycle -----------------------------------------------------
    def start(self) -> None:
        with self._lock:
            self._connect()
        self._stop.clear()
        self._worker = threading.Thread(target=self._loop, daemon=True)
        self._worker.start()

    def stop(self) -> None:
        self._stop.set()
        if self._worker is not None:
            self._worker.join(timeout=2.0)
            self._worker = None
        with self._lock:
            self._controller.cancel()
            self._sampler.end()
            self._transport.close()

    def _connect(self) -> None:
        try:
            self._transport.open()
        except TransportError as exc:
            logger.warning("Could not open %s link: %s", self._transport.name, exc)
            self._log_event("link_failed", error=str(exc))
        else:
            self._last_message = None

    def _loop(self) -> None:
        interval = 1.0 / self._config.frame_rate_hz
        while not self._stop.is_set():
            with self._lock:
                self.step(self._clock())
            time.sleep(interval)

    # -- frame ---------------------------------------------------------
    def step(self, now: float) -> Optional[str]:
        """Run one frame; returns the message sent to the arm, if any."""
        with self._lock:
            self._frame_count += 1
            self._sampler.poll(now)
            self._controller.tick(now)
            self._read_telemetry()
            return self._transmit()

    def _read_telemetry(self) -> None:
        if not self._transport.is_open:
            return
        try:
            actual = self._transport.receive_angles()
        except TransportError as exc:
            logger.warning("Telemetry read failed: %s", exc)
            self._log_event("link_failed", error=str(exc))
            return
        if actual is not None:
            self._actual_angles = actual

    def _transmit(self) -> Optional[str]:
        angles = self._controller.angles()
        if not angles.is_valid():
            return None
        message = format_angles(angles)
        if message == self._last_message or not self._transport.is_open:
            return None
        try:
            self._transport.send_angles(angles)
        except TransportError as exc:
            logger.warning("Send failed: %s", exc)
            self._log_event("send_failed", error=str(exc), message=message)
            return None
        self._last_message = message
        return message

    def _log_event(self, message: str, **fields: Any) -> None:
        event = {"timestamp": time.time(), "message": message}
        event.update(fields)
        self._events.appendleft(event)

    # -- operator commands ---------------------------------------------
    def joystick_start(self) -> None:
        with self._lock:
            self._sampler.begin()

    def joystick_move(self, x: float, y: float) -> None:
        with self._lock:
            self._sampler.update((x, y))

    def joystick_stop(self) -> None:
        with self._lock:
            self._sampler.end()

    def set_z(self, value: float) -> bool:
        with self._lock:
            changed = self._controller.set_z(value)
            self._log_event("set_z", value=value, accepted=changed)
            return changed

    def set_position(self, position: Sequence[float]) -> bool:
        with self._lock:
            changed = self._controller.set_position(position)
            self._log_event("set_position", position=list(position), accepted=changed)
            return changed

    def reset(self) -> int:
        with self._lock:
            token = self._controller.start_homing()
            self._log_event("homing", token=token)
            return token

    def start_trajectory(
        self,
        axes: Sequence[str],
        range_bounds: Optional[Bounds] = None,
        speed: Optional[int] = None,
    ) -> int:
        with self._lock:
            token = self._controller.start_preset_trajectory(axes, range_bounds, speed)
            self._log_event("trajectory", axes=list(axes), speed=speed or self._controller.speed, token=token)
            return token

    def cancel(self) -> bool:
        with self._lock:
            cancelled = self._controller.cancel()
            if cancelled:
                self._log_event("cancelled")
            return cancelled

    def set_speed(self, speed: int) -> None:
        with self._lock:
            self._controller.set_speed(speed)

    def set_geometry(self, geometry: Geometry) -> None:
        with self._lock:
            self._controller.set_geometry(geometry)
            self._log_event("geometry", **{k: float(v) for k, v in vars(geometry).items()})

    def set_device_address(self, address: str) -> None:
        address = address.strip()
        if not address:
            raise ValueError("Device address must not be empty")
        with self._lock:
            if not hasattr(self._transport, "address"):
                raise ValueError(f"The {self._transport.name} link has no network address")
            self._transport.close()
            self._transport.address = address
            self._device_address = address
            self._actual_angles = None
            self._log_event("device", address=address)
            self._connect()

    # -- snapshots -----------------------------------------------------
    @property
    def controller(self) -> MotionController:
        return self._controller

    def status(self) -> Dict[str, Any]:
        with self._lock:
            position = self._controller.position
            kind = self._controller.kind
            return {
                "position": {"x": position.x, "y": position.y, "z": position.z},
                "angles": _angles_or_none(self._controller.angles()),
                "actual_angles": _angles_or_none(self._actual_angles),
                "connection": self._transport.status.value,
                "transport": self._transport.name,
                "device_address": self._device_address,
                "speed": self._controller.speed,
                "animation": kind.value if kind else None,
                "joystick_active": self._sampler.running,
                "last_message": self._last_message,
                "frames": self._frame_count,
            }

    def events(self, limit: int = 50) -> List[Dict[str, Any]]:
        with self._lock:
            snapshot = list(self._events)
        return list(reversed(snapshot[:limit]))


__all__ = ["ConsoleService"]
