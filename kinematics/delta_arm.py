"""Closed-form inverse kinematics for a three-legged delta arm."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, NamedTuple, Optional, Tuple

_SQRT3 = math.sqrt(3.0)


class InvalidGeometry(ValueError):
    """Raised when an arm dimension is not a strictly positive number."""


class UnreachablePose(ValueError):
    """Raised when at least one leg cannot realize the requested position."""

    def __init__(self, position: "Position", legs: List[int]) -> None:
        self.position = position
        self.legs = legs
        super().__init__(
            f"Position ({position.x:.2f}, {position.y:.2f}, {position.z:.2f}) "
            f"is unreachable for leg(s) {', '.join(str(leg) for leg in legs)}"
        )


class Position(NamedTuple):
    x: float
    y: float
    z: float


class JointAngles(NamedTuple):
    """Actuator angles in degrees, one per leg."""

    theta1: float
    theta2: float
    theta3: float

    def is_valid(self) -> bool:
        return all(math.isfinite(angle) for angle in self)

    def unreachable_legs(self) -> List[int]:
        return [leg for leg, angle in enumerate(self, start=1) if not math.isfinite(angle)]


@dataclass(frozen=True)
class Geometry:
    end_effector_radius: float = 45.0  # r
    mid_joint_length: float = 100.0  # l
    base_arm_length: float = 446.0  # L
    base_radius: float = 52.5  # R

    def __post_init__(self) -> None:
        for name in ("end_effector_radius", "mid_joint_length", "base_arm_length", "base_radius"):
            value = getattr(self, name)
            try:
                value = float(value)
            except (TypeError, ValueError) as exc:
                raise InvalidGeometry(f"{name} must be a number, got {value!r}") from exc
            if not math.isfinite(value) or value <= 0:
                raise InvalidGeometry(f"{name} must be strictly positive, got {value}")
            object.__setattr__(self, name, value)


def _leg_terms(position: Position, geometry: Geometry, leg: int) -> Tuple[float, float, float]:
    """Quadratic coefficients (A, B, C) in tan(theta/2) for one leg."""
    x, y, z = position
    r = geometry.end_effector_radius
    l = geometry.mid_joint_length
    big_l = geometry.base_arm_length
    big_r = geometry.base_radius

    if leg == 1:
        a = x + r - big_r
        b = y
        adjust = 2 * a * l
    elif leg == 2:
        a = x - 0.5 * r + 0.5 * big_r
        b = y + (_SQRT3 / 2) * (r - big_r)
        adjust = -a * l + _SQRT3 * b * l
    elif leg == 3:
        a = x - 0.5 * r + 0.5 * big_r
        b = y - (_SQRT3 / 2) * (r - big_r)
        adjust = -a * l - _SQRT3 * b * l
    else:
        raise ValueError(f"Delta arm has legs 1..3, got {leg}")

    base = a * a + b * b + z * z + l * l - big_l * big_l
    return base + adjust, -4 * z * l, base - adjust


def leg_candidates(position: Position, geometry: Geometry, leg: int) -> Optional[Tuple[float, float]]:
    """Both closure solutions for a leg in degrees, or None when unreachable."""
    a_coef, b_coef, c_coef = _leg_terms(position, geometry, leg)
    disc = b_coef * b_coef - 4 * a_coef * c_coef
    if disc < 0 or a_coef == 0:
        return None
    root = math.sqrt(disc)
    first = math.degrees(2 * math.atan((-b_coef + root) / (2 * a_coef)))
    second = math.degrees(2 * math.atan((-b_coef - root) / (2 * a_coef)))
    return first, second


def select_branch(first: float, second: float) -> float:
    # Working envelope keeps the upper arms within +/-90 deg of horizontal.
    if -90.0 <= first <= 90.0:
        return first
    if -90.0 <= second <= 90.0:
        return second
    return math.nan


def solve_legs(position: Position, geometry: Geometry) -> JointAngles:
    """Solve every leg independently; unreachable legs come back as NaN."""
    angles = []
    for leg in (1, 2, 3):
        candidates = leg_candidates(position, geometry, leg)
        angles.append(math.nan if candidates is None else select_branch(*candidates))
    return JointAngles(*angles)


def solve(position: Position, geometry: Geometry) -> JointAngles:
    """Return joint angles (degrees) that place the end effector at ``position``."""
    angles = solve_legs(position, geometry)
    if not angles.is_valid():
        raise UnreachablePose(Position(*position), angles.unreachable_legs())
    return angles


@dataclass
class DeltaArm:
    """Delta arm with three revolute actuators spaced 120 deg around the base."""

    geometry: Geometry

    def solve(self, x: float, y: float, z: float) -> JointAngles:
        return solve(Position(x, y, z), self.geometry)

    def solve_legs(self, x: float, y: float, z: float) -> JointAngles:
        return solve_legs(Position(x, y, z), self.geometry)

    def reachable(self, x: float, y: float, z: float) -> bool:
        return self.solve_legs(x, y, z).is_valid()


__all__ = [
    "DeltaArm",
    "Geometry",
    "InvalidGeometry",
    "JointAngles",
    "Position",
    "UnreachablePose",
    "leg_candidates",
    "select_branch",
    "solve",
    "solve_legs",
]
