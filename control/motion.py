"""End-effector motion controller for the delta arm console."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple

import numpy as np

from kinematics.delta_arm import Geometry, JointAngles, Position, solve_legs

from .trajectory import (
    AnimationKind,
    AnimationState,
    Axis,
    TrajectorySpec,
    homing_step,
    parse_axes,
    trajectory_step,
)

logger = logging.getLogger(__name__)

MIN_SPEED = 1
MAX_SPEED = 10


class AnimationRunning(RuntimeError):
    """Raised when an operation is not allowed while an animation is active."""


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def _round_half_up(value: float) -> float:
    return float(math.floor(value + 0.5))


@dataclass(frozen=True)
class Bounds:
    """Axis-aligned travel envelope of the end effector (mm)."""

    x_min: float = -270.0
    x_max: float = 270.0
    y_min: float = -270.0
    y_max: float = 270.0
    z_min: float = 350.0
    z_max: float = 530.0

    def __post_init__(self) -> None:
        for axis in "xyz":
            lo = getattr(self, f"{axis}_min")
            hi = getattr(self, f"{axis}_max")
            if not lo <= hi:
                raise ValueError(f"Bounds for {axis} have min {lo} > max {hi}")

    @property
    def lower(self) -> np.ndarray:
        return np.array([self.x_min, self.y_min, self.z_min], dtype=float)

    @property
    def upper(self) -> np.ndarray:
        return np.array([self.x_max, self.y_max, self.z_max], dtype=float)

    def axis_range(self, axis: Axis) -> Tuple[float, float]:
        return float(self.lower[axis.index]), float(self.upper[axis.index])

    def clamp(self, position: Sequence[float]) -> Position:
        clipped = np.clip(np.asarray(position, dtype=float), self.lower, self.upper)
        return Position(*(float(v) for v in clipped))

    def contains(self, position: Sequence[float]) -> bool:
        vec = np.asarray(position, dtype=float)
        return bool(np.all(vec >= self.lower) and np.all(vec <= self.upper))


class MotionController:
    """Owns the authoritative end-effector position and at most one animation.

    Every mutation is checked against the inverse kinematics before it is
    committed: a candidate position that any leg cannot reach is rejected and
    the previous position is kept. Animations are advanced by calling
    :meth:`tick` with the current time; the caller owns the frame schedule.
    """

    def __init__(
        self,
        geometry: Geometry,
        bounds: Bounds,
        home: Sequence[float],
        *,
        step_x: float = 10.0,
        step_y: float = 10.0,
        speed_scale: float = 1.0,
        speed: int = 1,
        base_interval_s: float = 0.05,
        trajectory_budget_s: float = 10.0,
    ) -> None:
        home = Position(*(float(v) for v in home))
        if not bounds.contains(home):
            raise ValueError(f"Home position {tuple(home)} lies outside bounds {bounds}")
        if base_interval_s < 0:
            raise ValueError("base_interval_s must not be negative")
        if trajectory_budget_s <= 0:
            raise ValueError("trajectory_budget_s must be positive")

        self.geometry = geometry
        self.bounds = bounds
        self.home = home
        self.step_x = float(step_x)
        self.step_y = float(step_y)
        self.speed_scale = float(speed_scale)
        self.base_interval_s = float(base_interval_s)
        self.trajectory_budget_s = float(trajectory_budget_s)
        self._speed = MIN_SPEED
        self.set_speed(speed)

        self._position = home
        self._animation: Optional[AnimationState] = None
        self._generation = 0

    # -- snapshots -----------------------------------------------------
    @property
    def position(self) -> Position:
        return self._position

    @property
    def speed(self) -> int:
        return self._speed

    @property
    def running(self) -> bool:
        return self._animation is not None

    @property
    def kind(self) -> Optional[AnimationKind]:
        return self._animation.kind if self._animation else None

    @property
    def animation(self) -> Optional[AnimationState]:
        return self._animation

    def angles(self) -> JointAngles:
        return solve_legs(self._position, self.geometry)

    # -- configuration -------------------------------------------------
    def set_speed(self, speed: int) -> None:
        if isinstance(speed, bool) or int(speed) != speed or not MIN_SPEED <= speed <= MAX_SPEED:
            raise ValueError(f"Speed must be an integer in [{MIN_SPEED}, {MAX_SPEED}], got {speed!r}")
        self._speed = int(speed)

    def set_geometry(self, geometry: Geometry) -> None:
        if self.running:
            raise AnimationRunning("Cancel the running animation before editing the geometry")
        self.geometry = geometry
        self._position = self.bounds.clamp(self._position)
        if not self.angles().is_valid():
            logger.warning(
                "Position %s is unreachable with the new geometry; angles will not be sent",
                tuple(self._position),
            )

    # -- direct input --------------------------------------------------
    def _commit(self, candidate: Sequence[float]) -> bool:
        candidate = self.bounds.clamp(candidate)
        if candidate == self._position:
            return False
        angles = solve_legs(candidate, self.geometry)
        if not angles.is_valid():
            logger.warning(
                "Rejected move to %s: unreachable for leg(s) %s",
                tuple(candidate),
                angles.unreachable_legs(),
            )
            return False
        self._position = candidate
        return True

    def apply_velocity_sample(self, sample: Optional[Tuple[float, float]]) -> bool:
        """Integrate one normalized joystick sample; returns whether the position moved."""
        if sample is None:
            return False
        dx, dy = sample
        x, y, z = self._position
        if dx and math.isfinite(dx):
            x = _round_half_up(x + self.step_x * clamp(dx, -1.0, 1.0) * self.speed_scale)
        if dy and math.isfinite(dy):
            y = _round_half_up(y + self.step_y * clamp(dy, -1.0, 1.0) * self.speed_scale)
        return self._commit((x, y, z))

    def set_z(self, value: float) -> bool:
        value = float(value)
        if not math.isfinite(value):
            return False
        x, y, _ = self._position
        return self._commit((x, y, value))

    def set_position(self, position: Sequence[float]) -> bool:
        if len(position) != 3 or not all(math.isfinite(float(v)) for v in position):
            raise ValueError(f"Expected three finite coordinates, got {position!r}")
        return self._commit(tuple(float(v) for v in position))

    # -- animations ----------------------------------------------------
    def _interval(self, speed: int) -> float:
        return self.base_interval_s / speed

    def _begin(self, kind: AnimationKind, speed: int, spec: Optional[TrajectorySpec] = None) -> int:
        self.cancel()
        self._generation += 1
        self._animation = AnimationState(
            kind=kind,
            generation=self._generation,
            interval_s=self._interval(speed),
            spec=spec,
        )
        logger.info("Started %s (generation %d, speed %d)", kind.value, self._generation, speed)
        return self._generation

    def start_preset_trajectory(
        self,
        axes: Iterable,
        range_bounds: Optional[Bounds] = None,
        speed: Optional[int] = None,
    ) -> int:
        """Start a ping-pong sweep on ``axes``; returns the animation token."""
        selected = parse_axes(axes)
        if speed is None:
            speed = self._speed
        elif isinstance(speed, bool) or int(speed) != speed or not MIN_SPEED <= speed <= MAX_SPEED:
            raise ValueError(f"Speed must be an integer in [{MIN_SPEED}, {MAX_SPEED}], got {speed!r}")
        ranges = {}
        for axis in selected:
            lo, hi = self.bounds.axis_range(axis)
            if range_bounds is not None:
                r_lo, r_hi = range_bounds.axis_range(axis)
                lo, hi = max(lo, r_lo), min(hi, r_hi)
                if lo > hi:
                    raise ValueError(f"Range for {axis.value} does not overlap the travel bounds")
            ranges[axis] = (lo, hi)
        spec = TrajectorySpec(
            axes=selected,
            ranges=ranges,
            speed=int(speed),
            budget_s=self.trajectory_budget_s,
        )
        return self._begin(AnimationKind.TRAJECTORY, int(speed), spec)

    def start_homing(self) -> int:
        return self._begin(AnimationKind.HOMING, self._speed)

    def cancel(self) -> bool:
        if self._animation is None:
            return False
        logger.info("Stopped %s (generation %d)", self._animation.kind.value, self._animation.generation)
        self._animation = None
        return True

    def tick(self, now: float, token: Optional[int] = None) -> bool:
        """Advance the running animation by one frame; returns whether to keep ticking."""
        state = self._animation
        if state is None:
            return False
        if token is not None and token != state.generation:
            return False

        if state.kind is AnimationKind.HOMING:
            state, candidate, keep_going = homing_step(state, self._position, self.home, now)
        else:
            state, candidate, keep_going = trajectory_step(state, self._position, now)
            if not keep_going:
                logger.info("Trajectory budget of %.1fs elapsed", state.spec.budget_s)

        if candidate != self._position:
            candidate = self.bounds.clamp(candidate)
            if not solve_legs(candidate, self.geometry).is_valid():
                logger.warning("Animation stopped: %s is unreachable", tuple(candidate))
                self.cancel()
                return False
            self._position = candidate

        if not keep_going:
            self.cancel()
            return False
        self._animation = state
        return True


__all__ = ["AnimationRunning", "Bounds", "MotionController", "clamp", "MAX_SPEED", "MIN_SPEED"]
