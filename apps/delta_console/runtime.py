"""Delta arm console: serve the operator API or drive the arm headless."""
from __future__ import annotations

import argparse
import logging
import time
from pathlib import Path
from typing import Callable, List, Optional

from control.config import ConsoleConfig, DEFAULT_CONFIG_PATH, TransportSettings, build_controller, load_config
from control.host.codec import format_angles
from control.host.link import Transport, TransportError, build_transport
from control.motion import MotionController
from kinematics.delta_arm import DeltaArm, Position, UnreachablePose

from .logging_config import setup_logging

logger = logging.getLogger(__name__)


def apply_overrides(config: ConsoleConfig, args: argparse.Namespace) -> ConsoleConfig:
    transport = config.transport
    mode = "dry_run" if args.dry_run else (args.transport or transport.mode)
    config.transport = TransportSettings(
        mode=mode,
        address=args.address or transport.address,
        serial_port=args.serial_port or transport.serial_port,
        baudrate=args.baudrate or transport.baudrate,
        timeout=transport.timeout,
    )
    return config


def run_animation(
    controller: MotionController,
    transport: Transport,
    token: int,
    frame_interval: float,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> List[str]:
    """Tick ``controller`` until the animation ends, sending every new pose."""
    sent: List[str] = []
    last = None
    while True:
        keep_going = controller.tick(clock(), token)
        angles = controller.angles()
        if angles.is_valid():
            message = format_angles(angles)
            if message != last:
                try:
                    transport.send_angles(angles)
                except TransportError as exc:
                    logger.warning("Send failed: %s", exc)
                else:
                    sent.append(message)
                last = message
        if not keep_going:
            return sent
        sleep(frame_interval)


def cmd_solve(config: ConsoleConfig, args: argparse.Namespace) -> int:
    position = Position(args.x, args.y, args.z)
    clamped = config.bounds.clamp(position)
    if clamped != position:
        logger.warning("Position %s clamped to %s", tuple(position), tuple(clamped))
    try:
        angles = DeltaArm(config.geometry).solve(*clamped)
    except UnreachablePose as err:
        logger.error("%s", err)
        return 1
    print(format_angles(angles))
    return 0


def _run_headless(config: ConsoleConfig, start: Callable[[MotionController], int], position=None) -> int:
    controller = build_controller(config)
    if position is not None and not controller.set_position(position):
        logger.warning("Start position %s rejected; starting from %s", position, tuple(controller.position))
    transport = build_transport(config.transport)
    try:
        transport.open()
        token = start(controller)
        sent = run_animation(controller, transport, token, 1.0 / config.frame_rate_hz)
    except TransportError as exc:
        logger.error("Link failed: %s", exc)
        return 1
    finally:
        transport.close()
    logger.info("Finished at %s after %d messages", tuple(controller.position), len(sent))
    return 0


def cmd_home(config: ConsoleConfig, args: argparse.Namespace) -> int:
    start = None if args.start is None else tuple(args.start)
    return _run_headless(config, lambda c: c.start_homing(), start)


def cmd_sweep(config: ConsoleConfig, args: argparse.Namespace) -> int:
    return _run_headless(config, lambda c: c.start_preset_trajectory(args.axes, speed=args.speed))


def cmd_serve(config: ConsoleConfig, args: argparse.Namespace) -> int:
    import uvicorn

    from dashboard_pkg.backend.app import create_app
    from dashboard_pkg.backend.service import ConsoleService

    app = create_app(ConsoleService(config))
    uvicorn.run(app, host=args.host, port=args.port, log_level="info")
    return 0


def build_argparser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description=__doc__)
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH)
    p.add_argument("--transport", choices=["websocket", "http", "serial", "dry_run"], default=None)
    p.add_argument("--address", type=str, default=None, help="Arm controller address (host[:port])")
    p.add_argument("--serial-port", type=str, default=None)
    p.add_argument("--baudrate", type=int, default=None)
    p.add_argument("--dry-run", action="store_true", help="Do not open a link; log messages instead")
    p.add_argument("--verbose", action="store_true")
    p.add_argument("--log-file", type=str, default=None)

    sub = p.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the operator HTTP API")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8080)
    serve.set_defaults(func=cmd_serve)

    solve_p = sub.add_parser("solve", help="Print the angle message for a position")
    solve_p.add_argument("x", type=float)
    solve_p.add_argument("y", type=float)
    solve_p.add_argument("z", type=float)
    solve_p.set_defaults(func=cmd_solve)

    home = sub.add_parser("home", help="Ease the arm back to the home position")
    home.add_argument(
        "--start",
        type=float,
        nargs=3,
        metavar=("X", "Y", "Z"),
        default=None,
        help="Position to start homing from (defaults to home)",
    )
    home.set_defaults(func=cmd_home)

    sweep = sub.add_parser("sweep", help="Run a bounded ping-pong sweep, e.g. `sweep xy`")
    sweep.add_argument("axes", type=str)
    sweep.add_argument("--speed", type=int, default=None, choices=range(1, 11))
    sweep.set_defaults(func=cmd_sweep)
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = build_argparser().parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO, args.log_file)
    config = apply_overrides(load_config(args.config), args)
    return args.func(config, args)


if __name__ == "__main__":
    raise SystemExit(main())
