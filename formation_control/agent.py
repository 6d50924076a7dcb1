"""Per-cycle pipeline of one formation control agent.

AgentCore owns the agent state and runs the four layers in a fixed order on
every timer tick:

1. Consensus: drain the neighbor inbox and update the estimated statistics
2. Publish: emit the EstimatedStatisticsEvent for neighbors and observers
3. Control: drive the virtual agent from the statistics error
4. Guidance: LOS speed/steer commands toward the virtual agent
5. Dynamics: integrate the real agent's kinematics

All steps run to completion; the caller (timer, simulation) is responsible
for calling step() once per sample period.
"""

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

import numpy as np

from .config import AgentConfig
from .consensus import ConsensusEstimator
from .control_law import StatisticsController
from .exchange import NeighborInbox, NeighborObservation
from .geometry import Pose2D, Twist2D
from .guidance import LosGuidance
from .kinematics import KinematicModel
from .statistics import (
    STATS_DIMENSION,
    FormationStatistics,
    message_to_vector,
    messages_to_matrix,
    vector_to_message,
)


@dataclass(frozen=True)
class EstimatedStatisticsEvent:
    """Estimate published once per cycle, right after the consensus step."""

    agent_id: int
    timestamp: float
    statistics: FormationStatistics


class AgentCore:
    """Onboard control core of a single agent.

    Attributes:
        config: Immutable agent configuration.
        pose: Real agent pose.
        twist: Real agent twist (rates of the last integration).
        pose_virtual: Virtual agent pose.
        twist_virtual: Virtual agent twist.
        estimated: (5,) estimated statistics.
        speed_command: Last saturated speed command (m/s).
        steer_command: Last saturated steering command (rad).
        cycle: Number of completed cycles.
    """

    def __init__(
        self,
        config: AgentConfig,
        rng: Optional[np.random.Generator] = None,
        pose: Optional[Pose2D] = None,
    ) -> None:
        """Initialize the agent.

        Args:
            config: Agent configuration.
            rng: Random generator for the initial pose. Default: fresh
                numpy default_rng().
            pose: Explicit initial pose; overrides config.initial_pose.

        Raises:
            ConfigurationError: If the configuration cannot produce a valid
                control law.
        """
        self.config = config
        self.agent_id = config.agent_id

        self.estimator = ConsensusEstimator()
        self.controller = StatisticsController(config)
        self.guidance = LosGuidance(config)
        self.model = KinematicModel(config)
        self.inbox = NeighborInbox(config.neighbors)

        # Agent pose initialization (null twist at the beginning)
        if pose is None:
            pose = self._initial_pose(config, rng)
        self.pose: Pose2D = pose.copy()
        self.twist: Twist2D = Twist2D()
        self.pose_virtual: Pose2D = pose.copy()
        self.twist_virtual: Twist2D = Twist2D()

        self.estimated = np.zeros(STATS_DIMENSION)
        self._target = np.zeros(STATS_DIMENSION)
        self._target_lock = threading.Lock()

        self.speed_command: float = 0.0
        self.steer_command: float = 0.0
        self.cycle: int = 0

        logging.debug(
            f"[AgentCore] Agent {self.agent_id} initialized at (x: {self.pose.x:.3f}, "
            f"y: {self.pose.y:.3f}, theta: {self.pose.theta:.3f}) with neighbors "
            f"{sorted(config.neighbors)}"
        )

    @staticmethod
    def _initial_pose(config: AgentConfig, rng: Optional[np.random.Generator]) -> Pose2D:
        """Configured initial pose, or one drawn uniformly from the world region."""
        if config.initial_pose is not None:
            x, y, theta = config.initial_pose
            return Pose2D(x, y, theta)

        if rng is None:
            rng = np.random.default_rng()
        limit = config.world_limit
        return Pose2D(
            x=float(rng.uniform(-limit, limit)),
            y=float(rng.uniform(-limit, limit)),
            theta=float(rng.uniform(-math.pi, math.pi)),
        )

    # ------------------------------------------------------------------
    # Asynchronous inputs
    # ------------------------------------------------------------------

    def receive_neighbor_statistics(self, batch: Iterable[NeighborObservation]) -> None:
        """Buffer a NeighborStatisticsBatch until the next consensus step."""
        self.inbox.deliver(batch)

    def set_target_statistics(self, target: FormationStatistics) -> None:
        """Replace the target statistics; effective from the next cycle."""
        vector = message_to_vector(target)
        with self._target_lock:
            self._target = vector
        logging.info(f"[AgentCore] Agent {self.agent_id}: target statistics has been changed")
        logging.debug(f"[AgentCore] New target values: {target}")

    @property
    def target(self) -> np.ndarray:
        with self._target_lock:
            return self._target.copy()

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def consensus(self) -> None:
        """Drain the inbox and update the estimated statistics."""
        received = messages_to_matrix(stats for _, stats in self.inbox.drain())
        self.estimated = self.estimator.estimate(
            self.config.sample_time,
            self.pose_virtual,
            self.twist_virtual,
            self.estimated,
            received,
        )

    def control(self) -> None:
        """Update the virtual agent from the current estimate and target."""
        self.twist_virtual, self.pose_virtual = self.controller.control(
            self.config.sample_time,
            self.estimated,
            self.target,
            self.pose_virtual,
            self.twist_virtual,
        )

    def guide(self) -> None:
        """Compute speed and steering commands toward the virtual agent."""
        self.speed_command, self.steer_command = self.guidance.guide(
            self.config.sample_time, self.pose, self.twist, self.pose_virtual
        )

    def dynamics(self) -> None:
        """Integrate the real agent's kinematics under the last commands."""
        self.pose, self.twist = self.model.integrate(
            self.config.sample_time, self.pose, self.twist, self.speed_command, self.steer_command
        )

    def step(self, timestamp: Optional[float] = None) -> EstimatedStatisticsEvent:
        """Run one full cycle of the pipeline.

        Args:
            timestamp: Stamp of the published estimate. Default: time.time().

        Returns:
            The EstimatedStatisticsEvent produced after the consensus step.

        Raises:
            ConfigurationError: If the control law cannot be solved.
        """
        self.consensus()
        event = EstimatedStatisticsEvent(
            agent_id=self.agent_id,
            timestamp=time.time() if timestamp is None else timestamp,
            statistics=vector_to_message(self.estimated),
        )

        self.control()
        self.guide()
        self.dynamics()
        self.cycle += 1
        return event

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_state(self) -> Dict[str, float]:
        """Get the real and virtual agent state.

        Returns:
            Dictionary with keys 'x', 'y', 'theta', 'v_x', 'v_y', 'omega',
            'x_virtual', 'y_virtual', 'v_x_virtual', 'v_y_virtual'.
        """
        return {
            "x": self.pose.x,
            "y": self.pose.y,
            "theta": self.pose.theta,
            "v_x": self.twist.vx,
            "v_y": self.twist.vy,
            "omega": self.twist.omega,
            "x_virtual": self.pose_virtual.x,
            "y_virtual": self.pose_virtual.y,
            "v_x_virtual": self.twist_virtual.vx,
            "v_y_virtual": self.twist_virtual.vy,
        }

    def get_diagnostics(self) -> Dict[str, Any]:
        """Get estimate, target, error norm and guidance values for logging."""
        target = self.target
        diagnostics: Dict[str, Any] = {
            "cycle": self.cycle,
            "estimated": self.estimated.copy(),
            "target": target,
            "error_norm": float(np.linalg.norm(target - self.estimated)),
            "stale_batches": self.inbox.stale_batches,
        }
        diagnostics.update(self.guidance.get_diagnostics())
        return diagnostics
