"""Configuration parameters for the formation control agent.

This module centralizes all configuration parameters including:
- Consensus and control-law gains
- Guidance (LOS + PI speed loop) gains and saturation limits
- Physical vehicle parameters and initial pose region
- Visualization and terminal colors
- WebSocket connection parameters

The module-level constants are the defaults. Components never read them
directly: they receive an immutable AgentConfig built from these defaults,
from a dictionary or from a JSON file.
"""

import json
import math
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, Optional, Tuple, Union

import numpy as np

from .errors import ConfigurationError
from .statistics import STATS_DIMENSION

NUM_VELOCITIES = 2
"""Number of control inputs of the virtual agent (x and y velocity)."""


# ============================================================================
# Timing
# ============================================================================

SAMPLE_TIME = 0.1
"""Period of the algorithm timer (seconds).

Every cycle runs consensus, control, guidance and dynamics to completion.
The whole pipeline must finish well within this period.
"""


# ============================================================================
# Control Law Parameters (weighted generalized inverse)
# ============================================================================

GAMMA_DIAG = (1.0,) * STATS_DIMENSION
"""Diagonal of the statistics error gain Gamma (one entry per moment).

Higher values = faster correction of the corresponding moment.
"""

LAMBDA_DIAG = (0.0,) * STATS_DIMENSION
"""Diagonal of the state penalty Lambda (one entry per moment).

Zero disables the penalty and the law reduces to u = inv(B) J' Gamma e.
Positive values turn the law into a damped pseudo-inverse, which keeps the
closed loop well conditioned when the virtual agent is far from the origin.
"""

B_DIAG = (1.0,) * NUM_VELOCITIES
"""Diagonal of the input penalty B (one entry per velocity component).

Must keep B + J' Lambda J invertible; with Lambda = 0 every entry must be
non-zero.
"""

VELOCITY_VIRTUAL_THRESHOLD = 1.0
"""Maximum virtual agent speed (m/s).

Control commands above this norm are scaled down, direction preserved.
"""


# ============================================================================
# Guidance Parameters (LOS + PI speed loop)
# ============================================================================

LOS_DISTANCE_THRESHOLD = 1.0
"""LOS distance at which the speed reference reaches SPEED_MAX (meters).

speed_ref = min(SPEED_MAX * los_distance / LOS_DISTANCE_THRESHOLD, SPEED_MAX)
"""

SPEED_MIN = 0.0
"""Minimum speed command (m/s)."""

SPEED_MAX = 2.0
"""Maximum speed command (m/s). Must exceed VELOCITY_VIRTUAL_THRESHOLD so
the real agent can catch up with its virtual reference."""

STEER_MIN = -math.pi / 4.0
"""Minimum steering angle command (radians)."""

STEER_MAX = math.pi / 4.0
"""Maximum steering angle command (radians)."""

K_P_SPEED = 1.0
"""Proportional gain of the speed PI loop."""

K_I_SPEED = 0.5
"""Integral gain of the speed PI loop.

There is no anti-windup: the integral keeps growing while the command is
saturated, so large values cause overshoot after long saturated phases.
"""

K_P_STEER = 1.0
"""Proportional gain on the LOS heading error."""


# ============================================================================
# Physical Parameters
# ============================================================================

VEHICLE_LENGTH = 0.5
"""Distance between the axles of the car-like vehicle (meters)."""

WORLD_LIMIT = 5.0
"""Half-width of the square region random initial positions are drawn from
(meters)."""


# ============================================================================
# Visualization Colors
# ============================================================================

PLOT_ORANGE = "#f74823"
"""Primary plot color - real agent trajectories, estimated statistics."""

PLOT_BLUE = "#2374f7"
"""Secondary plot color - virtual agents, target statistics."""

PLOT_TAUPE = "#686a5f"
"""Neutral color for guides and grids."""

# Terminal color codes (ANSI escape sequences)
TERM_ORANGE = "\033[38;2;247;72;35m"
"""Terminal color code for orange (RGB: 247, 72, 35)."""

TERM_BLUE = "\033[38;2;35;116;247m"
"""Terminal color code for blue (RGB: 35, 116, 247)."""

TERM_RESET = "\033[0m"
"""Terminal color reset code."""


# ============================================================================
# WebSocket Configuration
# ============================================================================

WS_URI = "ws://localhost:8765"
"""WebSocket server URI of the message relay."""

WS_RETRY_DELAY_SECONDS = 1
"""Initial retry delay for failed WebSocket connections (seconds)."""

WS_MAX_RETRY_DELAY_SECONDS = 60
"""Maximum retry delay with exponential backoff (seconds)."""


# ============================================================================
# Agent Configuration
# ============================================================================


@dataclass(frozen=True)
class AgentConfig:
    """Immutable configuration of one agent.

    Built once at start-up and handed to every component constructor.

    Attributes:
        agent_id: Identifier broadcast with every estimate.
        neighbors: Agent IDs whose estimates enter the consensus step.
        initial_pose: Optional (x, y, theta). If None, drawn uniformly from
            [-world_limit, world_limit]^2 x [-pi, pi).
    """

    agent_id: int = 0
    neighbors: FrozenSet[int] = field(default_factory=frozenset)
    sample_time: float = SAMPLE_TIME
    gamma_diag: Tuple[float, ...] = GAMMA_DIAG
    lambda_diag: Tuple[float, ...] = LAMBDA_DIAG
    b_diag: Tuple[float, ...] = B_DIAG
    velocity_virtual_threshold: float = VELOCITY_VIRTUAL_THRESHOLD
    los_distance_threshold: float = LOS_DISTANCE_THRESHOLD
    speed_min: float = SPEED_MIN
    speed_max: float = SPEED_MAX
    steer_min: float = STEER_MIN
    steer_max: float = STEER_MAX
    k_p_speed: float = K_P_SPEED
    k_i_speed: float = K_I_SPEED
    k_p_steer: float = K_P_STEER
    vehicle_length: float = VEHICLE_LENGTH
    world_limit: float = WORLD_LIMIT
    initial_pose: Optional[Tuple[float, float, float]] = None
    uri: str = WS_URI

    def __post_init__(self) -> None:
        # Normalize types so from_dict() and callers may pass lists and JSON strings
        object.__setattr__(self, "agent_id", int(self.agent_id))
        object.__setattr__(self, "neighbors", frozenset(int(n) for n in self.neighbors))
        object.__setattr__(self, "gamma_diag", tuple(float(v) for v in self.gamma_diag))
        object.__setattr__(self, "lambda_diag", tuple(float(v) for v in self.lambda_diag))
        object.__setattr__(self, "b_diag", tuple(float(v) for v in self.b_diag))
        if self.initial_pose is not None:
            object.__setattr__(self, "initial_pose", tuple(float(v) for v in self.initial_pose))
        self.validate()

    def validate(self) -> None:
        """Check dimensions and ranges.

        Raises:
            ConfigurationError: If any parameter is malformed.
        """
        if len(self.gamma_diag) != STATS_DIMENSION:
            raise ConfigurationError(
                f"gamma_diag must have {STATS_DIMENSION} elements, got {len(self.gamma_diag)}"
            )
        if len(self.lambda_diag) != STATS_DIMENSION:
            raise ConfigurationError(
                f"lambda_diag must have {STATS_DIMENSION} elements, got {len(self.lambda_diag)}"
            )
        if len(self.b_diag) != NUM_VELOCITIES:
            raise ConfigurationError(
                f"b_diag must have {NUM_VELOCITIES} elements, got {len(self.b_diag)}"
            )
        if self.sample_time <= 0:
            raise ConfigurationError(f"sample_time must be positive, got {self.sample_time}")
        if self.los_distance_threshold <= 0:
            raise ConfigurationError(
                f"los_distance_threshold must be positive, got {self.los_distance_threshold}"
            )
        if self.vehicle_length <= 0:
            raise ConfigurationError(f"vehicle_length must be positive, got {self.vehicle_length}")
        if self.velocity_virtual_threshold <= 0:
            raise ConfigurationError(
                "velocity_virtual_threshold must be positive, "
                f"got {self.velocity_virtual_threshold}"
            )
        if self.speed_min > self.speed_max:
            raise ConfigurationError(
                f"speed_min ({self.speed_min}) exceeds speed_max ({self.speed_max})"
            )
        if self.steer_min > self.steer_max:
            raise ConfigurationError(
                f"steer_min ({self.steer_min}) exceeds steer_max ({self.steer_max})"
            )
        if self.world_limit < 0:
            raise ConfigurationError(f"world_limit must be non-negative, got {self.world_limit}")
        if self.initial_pose is not None and len(self.initial_pose) != 3:
            raise ConfigurationError("initial_pose must be (x, y, theta)")
        if self.agent_id in self.neighbors:
            raise ConfigurationError(f"Agent {self.agent_id} lists itself as a neighbor")

    @property
    def gamma(self) -> np.ndarray:
        """Statistics error gain as a (5, 5) diagonal matrix."""
        return np.diag(self.gamma_diag)

    @property
    def lambda_(self) -> np.ndarray:
        """State penalty as a (5, 5) diagonal matrix."""
        return np.diag(self.lambda_diag)

    @property
    def b(self) -> np.ndarray:
        """Input penalty as a (2, 2) diagonal matrix."""
        return np.diag(self.b_diag)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AgentConfig":
        """Build a configuration from a mapping of field names to values.

        Raises:
            ConfigurationError: On unknown keys or invalid values.
        """
        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {sorted(unknown)}")
        try:
            return cls(**data)
        except ConfigurationError:
            raise
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary for logging."""
        data = asdict(self)
        data["neighbors"] = sorted(self.neighbors)
        data["gamma_diag"] = list(self.gamma_diag)
        data["lambda_diag"] = list(self.lambda_diag)
        data["b_diag"] = list(self.b_diag)
        if self.initial_pose is not None:
            data["initial_pose"] = list(self.initial_pose)
        return data


def load_config(path: Union[str, Path]) -> AgentConfig:
    """Load an AgentConfig from a JSON file.

    Args:
        path: Path to a JSON object whose keys are AgentConfig field names.
            Missing keys fall back to the module defaults.

    Raises:
        ConfigurationError: If the file is not valid JSON or holds invalid values.
        FileNotFoundError: If the file does not exist.
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text())
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Cannot parse configuration file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file {path} must contain a JSON object")
    return AgentConfig.from_dict(data)
