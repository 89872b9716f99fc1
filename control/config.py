"""Console configuration loaded from ``configs/robot.yaml``."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from kinematics.delta_arm import Geometry, Position

from .motion import MAX_SPEED, MIN_SPEED, Bounds, MotionController

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "configs" / "robot.yaml"
TRANSPORT_MODES = ("websocket", "http", "serial", "dry_run")


@dataclass
class MotionSettings:
    step_x: float = 10.0
    step_y: float = 10.0
    speed_scale: float = 1.0
    speed: int = 1
    base_interval_s: float = 0.05
    trajectory_budget_s: float = 10.0

    def __post_init__(self) -> None:
        if self.step_x <= 0 or self.step_y <= 0:
            raise ValueError("motion.step_x_mm and motion.step_y_mm must be positive")
        if self.speed_scale <= 0:
            raise ValueError(f"motion.speed_scale must be positive, got {self.speed_scale}")
        if not MIN_SPEED <= self.speed <= MAX_SPEED:
            raise ValueError(f"motion.speed must be in [{MIN_SPEED}, {MAX_SPEED}], got {self.speed}")
        if self.base_interval_s < 0:
            raise ValueError("motion.base_interval_s must not be negative")
        if self.trajectory_budget_s <= 0:
            raise ValueError("motion.trajectory_budget_s must be positive")


@dataclass
class TransportSettings:
    mode: str = "websocket"
    address: str = "192.168.4.1"
    serial_port: Optional[str] = None
    baudrate: int = 115200
    timeout: float = 2.0

    def __post_init__(self) -> None:
        if self.mode not in TRANSPORT_MODES:
            raise ValueError(f"transport.mode must be one of {', '.join(TRANSPORT_MODES)}, got {self.mode!r}")
        if self.mode == "serial" and not self.serial_port:
            raise ValueError("transport.serial_port is required for serial mode")


@dataclass
class ConsoleConfig:
    geometry: Geometry = field(default_factory=Geometry)
    bounds: Bounds = field(default_factory=Bounds)
    home: Position = Position(0.0, 0.0, 432.0)
    motion: MotionSettings = field(default_factory=MotionSettings)
    sampler_period_s: float = 0.1
    frame_rate_hz: float = 60.0
    transport: TransportSettings = field(default_factory=TransportSettings)


def _section(cfg: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = cfg.get(name) or {}
    if not isinstance(value, dict):
        raise ValueError(f"Config section '{name}' must be a mapping")
    return value


def parse_config(cfg: Optional[Dict[str, Any]]) -> ConsoleConfig:
    cfg = cfg or {}
    defaults = ConsoleConfig()

    geo_cfg = _section(cfg, "geometry")
    geometry = Geometry(
        end_effector_radius=geo_cfg.get("end_effector_radius", defaults.geometry.end_effector_radius),
        mid_joint_length=geo_cfg.get("mid_joint_length", defaults.geometry.mid_joint_length),
        base_arm_length=geo_cfg.get("base_arm_length", defaults.geometry.base_arm_length),
        base_radius=geo_cfg.get("base_radius", defaults.geometry.base_radius),
    )

    bounds_cfg = _section(cfg, "bounds")
    limits = {}
    for axis in "xyz":
        lo, hi = bounds_cfg.get(axis, [getattr(defaults.bounds, f"{axis}_min"), getattr(defaults.bounds, f"{axis}_max")])
        limits[f"{axis}_min"] = float(lo)
        limits[f"{axis}_max"] = float(hi)
    bounds = Bounds(**limits)

    home_cfg = cfg.get("home")
    if home_cfg is None:
        home_cfg = list(defaults.home)
    if not isinstance(home_cfg, (list, tuple)) or len(home_cfg) != 3:
        raise ValueError("home must list three coordinates [x, y, z]")
    home = Position(*(float(v) for v in home_cfg))

    motion_cfg = _section(cfg, "motion")
    motion = MotionSettings(
        step_x=float(motion_cfg.get("step_x_mm", defaults.motion.step_x)),
        step_y=float(motion_cfg.get("step_y_mm", defaults.motion.step_y)),
        speed_scale=float(motion_cfg.get("speed_scale", defaults.motion.speed_scale)),
        speed=int(motion_cfg.get("speed", defaults.motion.speed)),
        base_interval_s=float(motion_cfg.get("base_interval_s", defaults.motion.base_interval_s)),
        trajectory_budget_s=float(motion_cfg.get("trajectory_budget_s", defaults.motion.trajectory_budget_s)),
    )

    sampler_period = float(_section(cfg, "sampler").get("period_s", defaults.sampler_period_s))
    if sampler_period <= 0:
        raise ValueError("sampler.period_s must be positive")
    frame_rate = float(_section(cfg, "dashboard").get("frame_rate_hz", defaults.frame_rate_hz))
    if frame_rate <= 0:
        raise ValueError("dashboard.frame_rate_hz must be positive")

    transport_cfg = _section(cfg, "transport")
    transport = TransportSettings(
        mode=str(transport_cfg.get("mode", defaults.transport.mode)),
        address=str(transport_cfg.get("address", defaults.transport.address)),
        serial_port=transport_cfg.get("serial_port", defaults.transport.serial_port),
        baudrate=int(transport_cfg.get("baudrate", defaults.transport.baudrate)),
        timeout=float(transport_cfg.get("timeout_s", defaults.transport.timeout)),
    )

    return ConsoleConfig(
        geometry=geometry,
        bounds=bounds,
        home=home,
        motion=motion,
        sampler_period_s=sampler_period,
        frame_rate_hz=frame_rate,
        transport=transport,
    )


def load_config(path: Path | str | None = None) -> ConsoleConfig:
    p = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    if not p.exists():
        raise FileNotFoundError(f"Config file not found at {p}")
    with p.open() as fh:
        return parse_config(yaml.safe_load(fh))


def build_controller(config: ConsoleConfig) -> MotionController:
    motion = config.motion
    return MotionController(
        config.geometry,
        config.bounds,
        config.home,
        step_x=motion.step_x,
        step_y=motion.step_y,
        speed_scale=motion.speed_scale,
        speed=motion.speed,
        base_interval_s=motion.base_interval_s,
        trajectory_budget_s=motion.trajectory_budget_s,
    )


__all__ = [
    "ConsoleConfig",
    "DEFAULT_CONFIG_PATH",
    "MotionSettings",
    "TransportSettings",
    "build_controller",
    "load_config",
    "parse_config",
]
