"""Autonomous motion state: bounded ping-pong sweeps and linear homing.

Both animations are expressed as pure step functions,
``(state, position, now) -> (state, position, keep_running)``, so the caller
decides how frames are scheduled. A frame that arrives before the minimum wait
interval returns the position unchanged and leaves ``last_tick`` alone; the
sweep's time budget is still checked on every frame.
"""
from __future__ import annotations

import enum
import math
from dataclasses import dataclass, replace
from typing import Dict, Iterable, Optional, Tuple

from kinematics.delta_arm import Position

HOME_TOLERANCE = 1.0
UNIT_STEP = 1.0


class Axis(enum.Enum):
    X = "x"
    Y = "y"
    Z = "z"

    @property
    def index(self) -> int:
        return "xyz".index(self.value)


def parse_axes(axes: Iterable) -> Tuple[Axis, ...]:
    """Accept ``"xy"``, ``["x", "z"]`` or Axis members; order follows x, y, z."""
    selected = set()
    for item in axes:
        if isinstance(item, Axis):
            selected.add(item)
            continue
        text = str(item).strip().lower()
        for char in text:
            try:
                selected.add(Axis(char))
            except ValueError as exc:
                raise ValueError(f"Unknown axis {char!r}; expected x, y or z") from exc
    if not selected:
        raise ValueError("At least one axis is required")
    return tuple(axis for axis in Axis if axis in selected)


class AnimationKind(enum.Enum):
    TRAJECTORY = "trajectory"
    HOMING = "homing"


@dataclass(frozen=True)
class TrajectorySpec:
    axes: Tuple[Axis, ...]
    ranges: Dict[Axis, Tuple[float, float]]
    speed: int
    budget_s: float = 10.0

    def __post_init__(self) -> None:
        for axis in self.axes:
            lo, hi = self.ranges[axis]
            if lo > hi:
                raise ValueError(f"Range for {axis.value} has min {lo} > max {hi}")


@dataclass(frozen=True)
class AnimationState:
    kind: AnimationKind
    generation: int
    interval_s: float
    directions: Tuple[int, int, int] = (1, 1, 1)
    start: Optional[float] = None
    last_tick: Optional[float] = None
    spec: Optional[TrajectorySpec] = None

    def elapsed(self, now: float) -> float:
        if self.start is None:
            return 0.0
        return now - self.start


StepResult = Tuple[AnimationState, Position, bool]


def _due(state: AnimationState, now: float) -> bool:
    return state.last_tick is None or now - state.last_tick >= state.interval_s


def _bounce(value: float, direction: int, lo: float, hi: float) -> Tuple[float, int]:
    if lo == hi:
        return lo, direction
    # Outside the range: walk back toward it first.
    if value > hi:
        return max(value - UNIT_STEP, lo), -1
    if value < lo:
        return min(value + UNIT_STEP, hi), 1
    candidate = value + direction * UNIT_STEP
    if candidate > hi or candidate < lo:
        direction = -direction
        candidate = value + direction * UNIT_STEP
    return min(max(candidate, lo), hi), direction


def trajectory_step(state: AnimationState, position: Position, now: float) -> StepResult:
    spec = state.spec
    if spec is None:
        raise ValueError("Trajectory step needs a TrajectorySpec")

    if state.start is None:
        state = replace(state, start=now)
    if state.elapsed(now) >= spec.budget_s:
        return state, position, False
    if not _due(state, now):
        return state, position, True

    coords = list(position)
    directions = list(state.directions)
    for axis in spec.axes:
        lo, hi = spec.ranges[axis]
        coords[axis.index], directions[axis.index] = _bounce(
            coords[axis.index], directions[axis.index], lo, hi
        )
    state = replace(state, last_tick=now, directions=tuple(directions))
    return state, Position(*coords), True


def homing_step(state: AnimationState, position: Position, home: Position, now: float) -> StepResult:
    if state.start is None:
        state = replace(state, start=now)
    if not _due(state, now):
        return state, position, True

    coords = []
    directions = []
    arrived = True
    for current, target in zip(position, home):
        direction = -1 if current > target else 1
        moved = current + direction * UNIT_STEP
        if math.fabs(moved - target) <= HOME_TOLERANCE:
            moved = target
        else:
            arrived = False
        coords.append(moved)
        directions.append(direction)

    state = replace(state, last_tick=now, directions=tuple(directions))
    return state, Position(*coords), not arrived


__all__ = [
    "AnimationKind",
    "AnimationState",
    "Axis",
    "HOME_TOLERANCE",
    "TrajectorySpec",
    "homing_step",
    "parse_axes",
    "trajectory_step",
]
