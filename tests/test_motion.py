import pytest

import control.motion as motion
from control.motion import AnimationRunning, Bounds, MotionController, clamp
from control.trajectory import AnimationKind, Axis
from kinematics.delta_arm import Geometry, Position

from conftest import HOME


@pytest.mark.parametrize("value", [-1e6, -5.0, 0.0, 3.5, 10.0, 1e6])
@pytest.mark.parametrize("lo, hi", [(-1.0, 1.0), (0.0, 0.0), (2.0, 8.0)])
def test_clamp_is_idempotent(value, lo, hi):
    once = clamp(value, lo, hi)
    assert clamp(once, lo, hi) == once
    assert lo <= once <= hi


def test_bounds_reject_inverted_axis():
    with pytest.raises(ValueError):
        Bounds(z_min=600, z_max=500)


def test_bounds_clamp_and_contains(bounds):
    assert bounds.clamp((300, -300, 100)) == Position(270.0, -270.0, 350.0)
    assert bounds.contains((0, 0, 432))
    assert not bounds.contains((0, 0, 600))


def test_home_must_be_inside_bounds(geometry, bounds):
    with pytest.raises(ValueError):
        MotionController(geometry, bounds, (0, 0, 700))


def test_zero_samples_leave_position_unchanged(controller):
    for _ in range(20):
        assert controller.apply_velocity_sample((0.0, 0.0)) is False
        assert controller.apply_velocity_sample(None) is False
    assert controller.position == HOME


def test_sustained_sample_stops_exactly_at_bound(controller):
    xs = []
    for _ in range(40):
        controller.apply_velocity_sample((1.0, 0.0))
        xs.append(controller.position.x)
    assert xs == sorted(xs)
    assert max(xs) == 270.0
    assert xs[-1] == 270.0
    assert controller.position.y == 0.0


def test_zero_component_only_freezes_that_axis(controller):
    assert controller.apply_velocity_sample((0.0, -0.5)) is True
    assert controller.position == Position(0.0, -5.0, 432.0)


def test_small_samples_round_to_whole_units(controller):
    assert controller.apply_velocity_sample((0.04, 0.0)) is False
    assert controller.apply_velocity_sample((0.06, 0.0)) is True
    assert controller.position.x == 1.0


def test_speed_scale_multiplies_step(geometry, bounds):
    fast = MotionController(geometry, bounds, HOME, speed_scale=2.0)
    fast.apply_velocity_sample((0.5, 0.5))
    assert fast.position == Position(10.0, 10.0, 432.0)


def test_samples_outside_unit_range_are_clipped(controller):
    controller.apply_velocity_sample((5.0, 0.0))
    assert controller.position.x == 10.0


def test_set_z_is_clamped_before_solving(controller, monkeypatch):
    seen = []
    real_solve = motion.solve_legs

    def recording_solve(position, geometry):
        seen.append(position)
        return real_solve(position, geometry)

    monkeypatch.setattr(motion, "solve_legs", recording_solve)
    assert controller.set_z(600) is True
    assert controller.position.z == 530.0
    assert seen
    assert all(350.0 <= p.z <= 530.0 for p in seen)

    controller.set_z(-50)
    assert controller.position.z == 350.0
    assert all(350.0 <= p.z <= 530.0 for p in seen)


def test_set_z_ignores_non_finite(controller):
    assert controller.set_z(float("nan")) is False
    assert controller.position == HOME


def test_unreachable_move_keeps_previous_position(geometry):
    wide = Bounds(z_min=350, z_max=1000)
    controller = MotionController(geometry, wide, HOME)
    assert controller.set_z(1000) is False
    assert controller.position == HOME
    assert controller.angles().is_valid()


def test_set_position_validates_input(controller):
    with pytest.raises(ValueError):
        controller.set_position((1.0, 2.0))
    assert controller.set_position((20.0, -10.0, 450.0)) is True
    assert controller.position == Position(20.0, -10.0, 450.0)


@pytest.mark.parametrize("speed", [0, 11, 2.5, True])
def test_speed_must_be_integer_in_range(controller, speed):
    with pytest.raises(ValueError):
        controller.set_speed(speed)


def test_geometry_locked_while_animating(controller):
    controller.start_homing()
    with pytest.raises(AnimationRunning):
        controller.set_geometry(Geometry(base_radius=60))
    controller.cancel()
    controller.set_geometry(Geometry(base_radius=60))
    assert controller.geometry.base_radius == 60.0


def test_homing_converges_and_snaps(controller):
    controller.set_position((100.0, -50.0, 480.0))
    controller.start_homing()
    ticks = 0
    now = 0.0
    while controller.tick(now):
        ticks += 1
        now += 1.0
        assert ticks <= 100
    assert controller.position == HOME
    assert not controller.running


def test_homing_from_home_finishes_on_first_tick(controller):
    controller.start_homing()
    assert controller.tick(0.0) is False
    assert controller.position == HOME


def test_homing_ticks_are_throttled(controller):
    controller.set_position((10.0, 0.0, 432.0))
    controller.start_homing()
    controller.tick(0.0)
    assert controller.position.x == 9.0
    assert controller.tick(0.01) is True
    assert controller.position.x == 9.0
    controller.tick(0.06)
    assert controller.position.x == 8.0


def test_trajectory_bounces_inside_range(controller):
    controller.start_preset_trajectory("x", Bounds(x_min=-3, x_max=3))
    xs = []
    for i in range(60):
        assert controller.tick(i * 0.1)
        xs.append(controller.position.x)
    assert min(xs) == -3.0
    assert max(xs) == 3.0
    assert xs[:4] == [1.0, 2.0, 3.0, 2.0]
    assert controller.position.y == 0.0
    assert controller.position.z == 432.0


def test_trajectory_range_is_limited_to_travel_bounds(controller):
    controller.start_preset_trajectory("z", Bounds(z_min=300, z_max=440))
    assert controller.animation.spec.ranges[Axis.Z] == (350.0, 440.0)


def test_trajectory_times_out_from_first_tick(controller):
    controller.start_preset_trajectory("xy")
    assert controller.tick(100.0) is True
    last = controller.position
    assert controller.tick(109.999) is True
    last = controller.position
    assert controller.tick(110.0) is False
    assert controller.position == last
    assert not controller.running


def test_speed_changes_rate_not_step(geometry, bounds):
    def moves(speed):
        controller = MotionController(geometry, bounds, HOME)
        controller.start_preset_trajectory("x", speed=speed)
        count = 0
        previous = controller.position
        for i in range(50):
            controller.tick(i / 100)
            if controller.position != previous:
                assert abs(controller.position.x - previous.x) == 1.0
                count += 1
            previous = controller.position
        return count

    slow, fast = moves(1), moves(10)
    assert fast == 50
    assert slow <= 11
    assert fast > slow * 3


def test_new_animation_replaces_running_one(controller):
    first = controller.start_homing()
    second = controller.start_preset_trajectory("x")
    assert second != first
    assert controller.kind is AnimationKind.TRAJECTORY
    assert controller.tick(0.0, token=first) is False
    assert controller.position == HOME
    assert controller.tick(0.0, token=second) is True


def test_cancel_is_idempotent(controller):
    assert controller.cancel() is False
    controller.start_homing()
    assert controller.cancel() is True
    assert controller.cancel() is False
    assert controller.tick(1.0) is False


def test_unreachable_animation_step_stops_animation(geometry):
    wide = Bounds(z_min=350, z_max=1000)
    controller = MotionController(geometry, wide, (0, 0, 530))
    controller.start_preset_trajectory("z", Bounds(z_min=530, z_max=1000))
    now = 0.0
    while controller.tick(now):
        now += 0.1
    assert not controller.running
    assert controller.angles().is_valid()
    assert controller.position.z >= 530.0
