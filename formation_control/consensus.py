"""Dynamic discrete consensus on the formation statistics.

Each agent keeps its own estimate of the swarm statistics and, once per cycle,
moves it by the locally observable derivative of phi(p) plus a correction
toward the estimates its neighbors shared:

    x_{k+1} = x_k + dt * phi_dot_k + dt * sum_j (x_j - x_k)

which is the discrete form x_{k+1} = dt*z_dot_k + (I - dt*L) x_k of a
first-order consensus filter with Laplacian L. On a connected symmetric graph
the neighbor terms cancel in the sum over agents, so the average estimate
follows the average of phi over the swarm while the individual estimates
are pulled into agreement.
"""

import logging

import numpy as np
import numpy.typing as npt

from .geometry import Pose2D, Twist2D
from .statistics import STATS_DIMENSION


def moment_derivative(pose: Pose2D, twist: Twist2D) -> npt.NDArray[np.float64]:
    """Time derivative of phi(p) = [x, y, x^2, x*y, y^2] along the given motion.

    Args:
        pose: Virtual agent position.
        twist: Virtual agent velocity.

    Returns:
        (5,) array [vx, vy, 2*x*vx, y*vx + x*vy, 2*y*vy].
    """
    x, y = pose.x, pose.y
    vx, vy = twist.vx, twist.vy
    return np.array([vx, vy, 2.0 * x * vx, y * vx + x * vy, 2.0 * y * vy])


class ConsensusEstimator:
    """Stateless dynamic-consensus update of the estimated statistics."""

    def estimate(
        self,
        dt: float,
        virtual_pose: Pose2D,
        virtual_twist: Twist2D,
        estimated: npt.NDArray[np.float64],
        received: npt.NDArray[np.float64],
    ) -> npt.NDArray[np.float64]:
        """Compute the next estimate.

        Args:
            dt: Sample time (seconds).
            virtual_pose: Current virtual agent pose.
            virtual_twist: Current virtual agent twist.
            estimated: (5,) current estimate.
            received: (n, 5) neighbor estimates, one per row; n may be zero.

        Returns:
            (5,) updated estimate. The inputs are not modified.
        """
        estimated = np.asarray(estimated, dtype=float)
        received = np.asarray(received, dtype=float).reshape(-1, STATS_DIMENSION)

        phi_dot = moment_derivative(virtual_pose, virtual_twist)
        correction = (received - estimated).sum(axis=0)

        new_estimated = estimated + dt * phi_dot + dt * correction

        logging.debug(f"[ConsensusEstimator.estimate] Estimated statistics: {new_estimated}")
        return new_estimated
