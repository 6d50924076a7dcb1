"""Planar geometry and numerical helpers shared by the control pipeline.

This module provides:
- 2-D pose and twist containers for the real and virtual agents
- Saturation and heading-wrap helpers
- The trapezoidal integrator used by every integration step
- Line-of-sight distance/bearing between two poses
- Yaw <-> quaternion conversion for the message boundary
"""

import math
from dataclasses import dataclass
from typing import Tuple


@dataclass
class Pose2D:
    """Planar pose: position (meters) and heading (radians)."""

    x: float = 0.0
    y: float = 0.0
    theta: float = 0.0

    def copy(self) -> "Pose2D":
        return Pose2D(self.x, self.y, self.theta)

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "theta": self.theta}


@dataclass
class Twist2D:
    """Planar velocity: linear rates (m/s) and yaw rate (rad/s)."""

    vx: float = 0.0
    vy: float = 0.0
    omega: float = 0.0

    def copy(self) -> "Twist2D":
        return Twist2D(self.vx, self.vy, self.omega)

    @property
    def speed(self) -> float:
        """Magnitude of the linear velocity (m/s)."""
        return math.hypot(self.vx, self.vy)


def saturation(value: float, min_value: float, max_value: float) -> float:
    """Clamp value into [min_value, max_value]."""
    return min(max(value, min_value), max_value)


def integrator(out_old: float, in_old: float, in_new: float, dt: float, k: float = 1.0) -> float:
    """Advance an integral with the trapezoidal rule.

    out_new = out_old + k * dt * (in_old + in_new) / 2

    Args:
        out_old: Integral value at the previous step.
        in_old: Integrand sampled at the previous step.
        in_new: Integrand sampled at the current step.
        dt: Step length (seconds).
        k: Gain applied to the increment. Default: 1.0

    Returns:
        Integral value at the current step.
    """
    return out_old + k * dt * (in_old + in_new) / 2.0


def wrap_heading_error(angle: float) -> float:
    """Wrap a heading error with C-style fmod by pi.

    The result keeps the sign of the input and has magnitude below pi. This is
    NOT a shortest-angle wrap: an error of 1.5*pi maps to 0.5*pi, not -0.5*pi.
    """
    return math.fmod(angle, math.pi)


def normalize_angle(angle: float) -> float:
    """Normalize an angle to [-pi, pi]."""
    return math.atan2(math.sin(angle), math.cos(angle))


def line_of_sight(origin: Pose2D, target: Pose2D) -> Tuple[float, float]:
    """Distance and bearing from origin to target.

    atan2(0, 0) is 0, so coincident positions yield a zero bearing.

    Returns:
        Tuple of (distance, bearing) in meters and radians.
    """
    dx = target.x - origin.x
    dy = target.y - origin.y
    return math.hypot(dx, dy), math.atan2(dy, dx)


def yaw_to_quaternion(theta: float) -> Tuple[float, float, float, float]:
    """Quaternion (x, y, z, w) for a pure rotation of theta about the z axis."""
    half = theta / 2.0
    return 0.0, 0.0, math.sin(half), math.cos(half)


def quaternion_to_yaw(x: float, y: float, z: float, w: float) -> float:
    """Extract the yaw angle from a quaternion (x, y, z, w)."""
    norm = math.sqrt(x * x + y * y + z * z + w * w)
    if norm == 0.0:
        return 0.0
    x, y, z, w = x / norm, y / norm, z / norm, w / norm
    siny_cosp = 2.0 * (w * z + x * y)
    cosy_cosp = 1.0 - 2.0 * (y * y + z * z)
    return math.atan2(siny_cosp, cosy_cosp)
