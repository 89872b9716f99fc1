from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, Field

from control.config import load_config
from control.motion import AnimationRunning, Bounds
from kinematics.delta_arm import Geometry

from .service import ConsoleService

STATIC_DIR = Path(__file__).resolve().parent.parent / "frontend"


class JoystickSample(BaseModel):
    x: float = Field(..., ge=-1.0, le=1.0)
    y: float = Field(..., ge=-1.0, le=1.0)


class ZValue(BaseModel):
    value: float


class PositionBody(BaseModel):
    x: float
    y: float
    z: float


class TrajectoryBody(BaseModel):
    axes: List[str] = Field(..., min_length=1)
    speed: Optional[int] = Field(None, ge=1, le=10)
    x: Optional[List[float]] = None
    y: Optional[List[float]] = None
    z: Optional[List[float]] = None


class GeometryBody(BaseModel):
    end_effector_radius: float
    mid_joint_length: float
    base_arm_length: float
    base_radius: float


class SpeedBody(BaseModel):
    speed: int = Field(..., ge=1, le=10)


class DeviceBody(BaseModel):
    address: str


def _range_bounds(body: TrajectoryBody, limits: Bounds) -> Optional[Bounds]:
    if body.x is None and body.y is None and body.z is None:
        return None
    ranges = {}
    for axis in "xyz":
        span = getattr(body, axis)
        if span is None:
            span = [getattr(limits, f"{axis}_min"), getattr(limits, f"{axis}_max")]
        if len(span) != 2:
            raise ValueError(f"Range for {axis} must be [min, max]")
        ranges[f"{axis}_min"], ranges[f"{axis}_max"] = span
    return Bounds(**ranges)


def create_app(service: ConsoleService) -> FastAPI:
    app = FastAPI(title="Delta Arm Console", version="0.1.0")

    @app.get("/api/status")
    def api_status() -> Dict:
        return service.status()

    @app.get("/api/events")
    def api_events(limit: int = 50) -> Dict:
        limit = max(1, min(limit, 200))
        return {"events": service.events(limit)}

    @app.post("/api/joystick/start")
    def joystick_start() -> Dict:
        service.joystick_start()
        return service.status()

    @app.post("/api/joystick")
    def joystick_move(sample: JoystickSample) -> Dict:
        service.joystick_move(sample.x, sample.y)
        return {"ok": True}

    @app.post("/api/joystick/stop")
    def joystick_stop() -> Dict:
        service.joystick_stop()
        return service.status()

    @app.post("/api/z")
    def set_z(body: ZValue) -> Dict:
        accepted = service.set_z(body.value)
        return {"accepted": accepted, **service.status()}

    @app.post("/api/position")
    def set_position(body: PositionBody) -> Dict:
        try:
            accepted = service.set_position((body.x, body.y, body.z))
        except ValueError as exc:
            raise HTTPException(422, detail=str(exc)) from exc
        return {"accepted": accepted, **service.status()}

    @app.post("/api/reset")
    def reset() -> Dict:
        return {"token": service.reset()}

    @app.post("/api/trajectory")
    def trajectory(body: TrajectoryBody) -> Dict:
        try:
            token = service.start_trajectory(
                body.axes, _range_bounds(body, service.controller.bounds), body.speed
            )
        except ValueError as exc:
            raise HTTPException(422, detail=str(exc)) from exc
        return {"token": token}

    @app.post("/api/cancel")
    def cancel() -> Dict:
        return {"cancelled": service.cancel()}

    @app.put("/api/geometry")
    def set_geometry(body: GeometryBody) -> Dict:
        try:
            service.set_geometry(Geometry(**body.model_dump()))
        except AnimationRunning as exc:
            raise HTTPException(409, detail=str(exc)) from exc
        except ValueError as exc:
            raise HTTPException(422, detail=str(exc)) from exc
        return service.status()

    @app.put("/api/speed")
    def set_speed(body: SpeedBody) -> Dict:
        service.set_speed(body.speed)
        return service.status()

    @app.put("/api/device")
    def set_device(body: DeviceBody) -> Dict:
        try:
            service.set_device_address(body.address)
        except ValueError as exc:
            raise HTTPException(422, detail=str(exc)) from exc
        return service.status()

    if STATIC_DIR.exists():
        app.mount("/static", StaticFiles(directory=STATIC_DIR, html=True), name="static")

    @app.get("/")
    def index() -> FileResponse:
        index_path = STATIC_DIR / "index.html"
        if not index_path.exists():
            raise HTTPException(404, detail="Dashboard assets missing (build frontend)")
        return FileResponse(index_path)

    @app.on_event("startup")
    def startup_event() -> None:
        service.start()

    @app.on_event("shutdown")
    def shutdown_event() -> None:
        service.stop()

    return app


def app_from_env() -> FastAPI:
    """Factory for ``uvicorn --factory``; reads ``DELTA_CONSOLE_CONFIG`` when set."""
    config = load_config(os.environ.get("DELTA_CONSOLE_CONFIG"))
    return create_app(ConsoleService(config))
