"""Text codec for the ``theta1,theta2,theta3`` angle message."""
from __future__ import annotations

import math
from typing import Optional

import numpy as np

from kinematics.delta_arm import JointAngles

ANGLE_SEPARATOR = ","


def format_angles(angles: JointAngles) -> str:
    """Encode three angles as comma separated decimals, e.g. ``12.5,-3.200001,0.0``."""
    values = [float(angle) for angle in angles]
    if len(values) != 3:
        raise ValueError(f"Expected three angles, got {len(values)}")
    if not all(math.isfinite(value) for value in values):
        raise ValueError(f"Refusing to encode non-finite angles {values}")
    return ANGLE_SEPARATOR.join(np.format_float_positional(value, trim="0") for value in values)


def parse_angles(text: Optional[str]) -> Optional[JointAngles]:
    """Decode a telemetry message; anything malformed yields None."""
    if text is None:
        return None
    if isinstance(text, bytes):
        try:
            text = text.decode("ascii")
        except UnicodeDecodeError:
            return None
    fields = text.strip().split(ANGLE_SEPARATOR)
    if len(fields) != 3:
        return None
    try:
        values = [float(field) for field in fields]
    except ValueError:
        return None
    if not all(math.isfinite(value) for value in values):
        return None
    return JointAngles(*values)


__all__ = ["ANGLE_SEPARATOR", "format_angles", "parse_angles"]
