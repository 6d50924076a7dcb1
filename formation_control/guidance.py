"""Line-of-sight guidance of the real agent toward its virtual agent.

This module implements the outer loop that makes the physical vehicle chase
the virtual reference point:
- Speed: proportional to the LOS distance (capped), tracked by a PI loop
- Steering: proportional to the LOS heading error

The PI loop has no anti-windup. Saturation is applied to the final command
only, so the integral keeps accumulating while the command is clipped.
"""

import logging
import math
from typing import Dict, Tuple

from .config import AgentConfig
from .geometry import Pose2D, Twist2D, integrator, line_of_sight, saturation, wrap_heading_error


class LosGuidance:
    """LOS guidance law with a trapezoidal PI speed loop.

    Control law:
        speed_ref = min(speed_max * d_los / d_threshold, speed_max)
        e_k       = speed_ref - |v|
        I_k       = I_{k-1} + K_i * dt * (e_{k-1} + e_k) / 2
        speed_cmd = sat(K_p * (e_k + I_k), speed_min, speed_max)
        steer_cmd = sat(K_p_steer * fmod(psi_los - theta, pi), steer_min, steer_max)

    Attributes:
        speed_error: Speed error of the last cycle (m/s).
        speed_integral: Accumulated (gain-scaled) speed error.
        los_distance: LOS distance of the last cycle (m).
        los_angle: LOS bearing of the last cycle (rad).
    """

    def __init__(self, config: AgentConfig) -> None:
        """Initialize the guidance law.

        Args:
            config: Agent configuration providing the PI gains, the LOS
                distance threshold and the speed/steer saturation limits.
        """
        self.los_distance_threshold = config.los_distance_threshold
        self.speed_min = config.speed_min
        self.speed_max = config.speed_max
        self.steer_min = config.steer_min
        self.steer_max = config.steer_max
        self.k_p_speed = config.k_p_speed
        self.k_i_speed = config.k_i_speed
        self.k_p_steer = config.k_p_steer

        # PI state
        self.speed_error: float = 0.0
        self.speed_integral: float = 0.0

        # Last cycle values, kept for diagnostics
        self.los_distance: float = 0.0
        self.los_angle: float = 0.0
        self.speed_reference: float = 0.0
        self.speed_command: float = 0.0
        self.steer_command: float = 0.0

    def guide(
        self, dt: float, real_pose: Pose2D, real_twist: Twist2D, virtual_pose: Pose2D
    ) -> Tuple[float, float]:
        """Compute saturated speed and steering commands.

        Args:
            dt: Sample time (seconds).
            real_pose: Current pose of the vehicle.
            real_twist: Current twist of the vehicle.
            virtual_pose: Pose of the virtual agent to chase.

        Returns:
            Tuple of (speed_cmd, steer_cmd) in m/s and radians.
        """
        self.los_distance, self.los_angle = line_of_sight(real_pose, virtual_pose)

        self.speed_reference = min(
            self.speed_max * self.los_distance / self.los_distance_threshold, self.speed_max
        )
        speed_error_old = self.speed_error
        self.speed_error = self.speed_reference - math.hypot(real_twist.vx, real_twist.vy)
        self.speed_integral = integrator(
            self.speed_integral, speed_error_old, self.speed_error, dt, self.k_i_speed
        )
        speed_command = self.k_p_speed * (self.speed_error + self.speed_integral)
        self.speed_command = saturation(speed_command, self.speed_min, self.speed_max)
        logging.debug(f"[LosGuidance.guide] Speed command: {self.speed_command:.4f}")

        steer_command = self.k_p_steer * wrap_heading_error(self.los_angle - real_pose.theta)
        self.steer_command = saturation(steer_command, self.steer_min, self.steer_max)
        logging.debug(f"[LosGuidance.guide] Steer command: {self.steer_command:.4f}")

        return self.speed_command, self.steer_command

    def reset(self) -> None:
        """Clear the PI state."""
        self.speed_error = 0.0
        self.speed_integral = 0.0

    def get_diagnostics(self) -> Dict[str, float]:
        """Get the values of the last cycle for logging.

        Returns:
            Dictionary with keys 'los_distance', 'los_angle', 'speed_ref',
            'speed_err', 'speed_integral', 'speed_cmd', 'steer_cmd'.
        """
        return {
            "los_distance": self.los_distance,
            "los_angle": self.los_angle,
            "speed_ref": self.speed_reference,
            "speed_err": self.speed_error,
            "speed_integral": self.speed_integral,
            "speed_cmd": self.speed_command,
            "steer_cmd": self.steer_command,
        }
