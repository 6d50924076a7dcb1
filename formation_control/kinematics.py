"""
Car-like vehicle kinematic model.

This module advances the real agent's pose from the guidance commands. The
vehicle follows a unicycle-like (kinematic bicycle) model with the steering
angle acting through the axle distance L:

    x_dot     = v * cos(theta)
    y_dot     = v * sin(theta)
    theta_dot = v / L * tan(steer)
"""

import logging
import math
from typing import Tuple

from .config import AgentConfig
from .geometry import Pose2D, Twist2D, integrator, normalize_angle


class KinematicModel:
    """Trapezoidal integration of the car-like kinematic model."""

    def __init__(self, config: AgentConfig) -> None:
        self.vehicle_length = config.vehicle_length

    def rates(self, theta: float, speed: float, steer: float) -> Twist2D:
        """Evaluate the model rates at heading theta for the given commands."""
        return Twist2D(
            vx=speed * math.cos(theta),
            vy=speed * math.sin(theta),
            omega=speed / self.vehicle_length * math.tan(steer),
        )

    def integrate(
        self, dt: float, real_pose: Pose2D, real_twist: Twist2D, speed_cmd: float, steer_cmd: float
    ) -> Tuple[Pose2D, Twist2D]:
        """Advance the pose by one sample.

        The previous twist provides the old rates of the trapezoidal rule and
        the returned twist becomes the old rates of the next cycle.

        Args:
            dt: Sample time (seconds).
            real_pose: Current pose.
            real_twist: Rates of the previous integration step.
            speed_cmd: Saturated speed command (m/s).
            steer_cmd: Saturated steering angle command (rad).

        Returns:
            Tuple of (new_pose, new_twist). The inputs are not modified.
        """
        new_twist = self.rates(real_pose.theta, speed_cmd, steer_cmd)

        new_pose = Pose2D(
            x=integrator(real_pose.x, real_twist.vx, new_twist.vx, dt),
            y=integrator(real_pose.y, real_twist.vy, new_twist.vy, dt),
            theta=normalize_angle(
                integrator(real_pose.theta, real_twist.omega, new_twist.omega, dt)
            ),
        )

        logging.debug(
            f"[KinematicModel.integrate] Agent pose (x: {new_pose.x:.4f}, y: {new_pose.y:.4f}), "
            f"twist (x: {new_twist.vx:.4f}, y: {new_twist.vy:.4f})"
        )
        return new_pose, new_twist
