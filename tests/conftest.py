import pytest

from control.motion import Bounds, MotionController
from kinematics.delta_arm import Geometry, Position

HOME = Position(0.0, 0.0, 432.0)


class FakeClock:
    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


@pytest.fixture
def geometry():
    return Geometry(end_effector_radius=45, mid_joint_length=100, base_arm_length=446, base_radius=52.5)


@pytest.fixture
def bounds():
    return Bounds()


@pytest.fixture
def controller(geometry, bounds):
    return MotionController(geometry, bounds, HOME)


@pytest.fixture
def clock():
    return FakeClock()
