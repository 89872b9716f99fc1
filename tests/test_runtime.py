import argparse

from apps.delta_console.runtime import apply_overrides, build_argparser, cmd_solve, run_animation
from control.config import build_controller, parse_config
from control.host.codec import format_angles
from kinematics.delta_arm import DeltaArm

from conftest import FakeClock
from test_service import RecordingTransport


def test_solve_prints_message(capsys):
    config = parse_config({})
    args = argparse.Namespace(x=0.0, y=0.0, z=432.0)
    assert cmd_solve(config, args) == 0
    out = capsys.readouterr().out.strip()
    theta1, theta2, theta3 = (float(v) for v in out.split(","))
    assert theta1 == theta2 == theta3


def test_solve_matches_delta_arm(capsys):
    config = parse_config({})
    args = argparse.Namespace(x=40.0, y=-25.0, z=450.0)
    assert cmd_solve(config, args) == 0
    out = capsys.readouterr().out.strip()
    assert out == format_angles(DeltaArm(config.geometry).solve(40.0, -25.0, 450.0))


def test_solve_unreachable_exits_nonzero(capsys):
    config = parse_config({"bounds": {"z": [350, 2000]}})
    args = argparse.Namespace(x=0.0, y=0.0, z=1500.0)
    assert cmd_solve(config, args) == 1
    assert capsys.readouterr().out == ""


def test_run_animation_streams_each_pose():
    controller = build_controller(parse_config({}))
    controller.set_position((3.0, 0.0, 432.0))
    transport = RecordingTransport()
    transport.open()
    clock = FakeClock()
    token = controller.start_homing()

    sent = run_animation(controller, transport, token, 0.1, clock=clock, sleep=clock.advance)
    assert sent == transport.sent
    assert len(sent) == 2
    assert controller.position == controller.home


def test_dry_run_overrides_transport():
    args = build_argparser().parse_args(["--dry-run", "--address", "10.0.0.9", "sweep", "xz", "--speed", "4"])
    config = apply_overrides(parse_config({}), args)
    assert config.transport.mode == "dry_run"
    assert config.transport.address == "10.0.0.9"
    assert args.axes == "xz"
    assert args.speed == 4
