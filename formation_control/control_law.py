"""Statistics-error control law for the virtual agent.

The virtual agent is a reference point whose velocity is chosen so that the
estimated statistics move toward the target:

    u = inv(B + J' Lambda J) J' Gamma (target - estimated)

J is the Jacobian of phi(p) = [x, y, x^2, x*y, y^2] at the virtual position.
Gamma weights the statistics error, Lambda penalizes statistics sensitivity
and B penalizes input effort. Because J depends on the virtual position, the
law is re-solved every cycle.
"""

import logging
import math
from typing import Tuple

import numpy as np
import numpy.typing as npt

from .config import NUM_VELOCITIES, AgentConfig
from .errors import ConfigurationError
from .geometry import Pose2D, Twist2D, integrator
from .statistics import STATS_DIMENSION


def moment_jacobian(pose: Pose2D) -> npt.NDArray[np.float64]:
    """Jacobian of phi(p) with respect to the virtual position.

    Returns:
        (5, 2) array:
            [[1,   0 ],
             [0,   1 ],
             [2x,  0 ],
             [y,   x ],
             [0,   2y]]
    """
    jacobian = np.zeros((STATS_DIMENSION, NUM_VELOCITIES))
    jacobian[0, 0] = 1.0
    jacobian[1, 1] = 1.0
    # position-dependent entries
    jacobian[2, 0] = 2.0 * pose.x
    jacobian[3, 0] = pose.y
    jacobian[3, 1] = pose.x
    jacobian[4, 1] = 2.0 * pose.y
    return jacobian


def saturate_velocity(u: npt.NDArray[np.float64], threshold: float) -> npt.NDArray[np.float64]:
    """Scale u down to norm threshold if it is longer, keeping its direction."""
    norm = math.hypot(u[0], u[1])
    if norm > threshold:
        return u * (threshold / norm)
    return u


class StatisticsController:
    """Weighted generalized-inverse controller of the virtual agent.

    Attributes:
        gamma: (5, 5) statistics error gain.
        lambda_: (5, 5) state penalty.
        b: (2, 2) input penalty.
        velocity_virtual_threshold: Maximum virtual speed (m/s).
    """

    def __init__(self, config: AgentConfig) -> None:
        # Gain dimensions are validated by AgentConfig
        self.gamma = config.gamma
        self.lambda_ = config.lambda_
        self.b = config.b
        self.velocity_virtual_threshold = config.velocity_virtual_threshold

        # Last solved command, before saturation (diagnostics only)
        self.last_command = np.zeros(NUM_VELOCITIES)

    def compute_command(
        self,
        estimated: npt.NDArray[np.float64],
        target: npt.NDArray[np.float64],
        virtual_pose: Pose2D,
    ) -> npt.NDArray[np.float64]:
        """Solve the control law at the current virtual position (no saturation).

        Raises:
            ConfigurationError: If B + J' Lambda J is singular.
        """
        error = np.asarray(target, dtype=float) - np.asarray(estimated, dtype=float)
        jacobian = moment_jacobian(virtual_pose)

        matrix = self.b + jacobian.T @ self.lambda_ @ jacobian
        rhs = jacobian.T @ self.gamma @ error
        try:
            u = np.linalg.solve(matrix, rhs)
        except np.linalg.LinAlgError as e:
            raise ConfigurationError(
                f"Control matrix B + J'*Lambda*J is singular at virtual position "
                f"({virtual_pose.x:.3f}, {virtual_pose.y:.3f}): {e}"
            ) from e

        self.last_command = u
        return u

    def control(
        self,
        dt: float,
        estimated: npt.NDArray[np.float64],
        target: npt.NDArray[np.float64],
        virtual_pose: Pose2D,
        virtual_twist: Twist2D,
    ) -> Tuple[Twist2D, Pose2D]:
        """Update the virtual agent from the statistics error.

        Args:
            dt: Sample time (seconds).
            estimated: (5,) estimated statistics.
            target: (5,) target statistics.
            virtual_pose: Current virtual pose.
            virtual_twist: Current virtual twist (old rates for integration).

        Returns:
            Tuple of (new_twist, new_pose). The inputs are not modified.
        """
        u = self.compute_command(estimated, target, virtual_pose)
        u = saturate_velocity(u, self.velocity_virtual_threshold)

        new_pose = virtual_pose.copy()
        new_pose.x = integrator(virtual_pose.x, virtual_twist.vx, u[0], dt)
        new_pose.y = integrator(virtual_pose.y, virtual_twist.vy, u[1], dt)
        new_twist = Twist2D(vx=float(u[0]), vy=float(u[1]), omega=0.0)

        logging.debug(
            f"[StatisticsController.control] Virtual agent pose (x: {new_pose.x:.4f}, "
            f"y: {new_pose.y:.4f}), twist (x: {new_twist.vx:.4f}, y: {new_twist.vy:.4f})"
        )
        return new_twist, new_pose
