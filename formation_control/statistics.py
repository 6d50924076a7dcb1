"""Formation statistics: the moment vector and its message form.

The swarm shape is described by the first and second spatial moments of the
agent distribution:

    phi(p) = [x, y, x^2, x*y, y^2]  ->  (m_x, m_y, m_xx, m_xy, m_yy)

The dimension is fixed at five. The moment structure is baked into the
Jacobian (control_law.py) and into the conversions below, so it is a module
constant rather than a configuration parameter.

Conversion failures (wrong vector length) are logged and answered with a
zeroed result so that one bad cycle never stops the control loop.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

import numpy as np
import numpy.typing as npt

from .errors import DimensionMismatchError

STATS_DIMENSION = 5
"""Number of formation statistics (m_x, m_y, m_xx, m_xy, m_yy)."""

STATISTICS_FIELDS = ("m_x", "m_y", "m_xx", "m_xy", "m_yy")
"""Field order of the statistics vector."""


@dataclass(frozen=True)
class FormationStatistics:
    """Message form of the statistics vector."""

    m_x: float = 0.0
    m_y: float = 0.0
    m_xx: float = 0.0
    m_xy: float = 0.0
    m_yy: float = 0.0

    def to_dict(self) -> dict:
        return {name: getattr(self, name) for name in STATISTICS_FIELDS}

    def __str__(self) -> str:
        return (
            f"Mx={self.m_x:.4f}, My={self.m_y:.4f}, Mxx={self.m_xx:.4f}, "
            f"Mxy={self.m_xy:.4f}, Myy={self.m_yy:.4f}"
        )


def check_dimension(vector: Sequence[float]) -> None:
    """Raise DimensionMismatchError unless vector has STATS_DIMENSION elements."""
    size = len(vector)
    if size != STATS_DIMENSION:
        raise DimensionMismatchError(
            f"Wrong statistics vector size ({size}), expected {STATS_DIMENSION}"
        )


def message_to_vector(msg: FormationStatistics) -> npt.NDArray[np.float64]:
    """Convert a statistics message to a (5,) float array."""
    return np.array([msg.m_x, msg.m_y, msg.m_xx, msg.m_xy, msg.m_yy], dtype=float)


def vector_to_message(vector: Sequence[float]) -> FormationStatistics:
    """Convert a statistics vector to its message form.

    Args:
        vector: Sequence or array with exactly five elements.

    Returns:
        FormationStatistics with the vector's values, or an all-zero message
        if the vector has the wrong dimension (the mismatch is logged).
    """
    try:
        check_dimension(vector)
    except DimensionMismatchError as e:
        logging.error(f"[statistics.vector_to_message] {e}")
        return FormationStatistics()

    return FormationStatistics(*(float(v) for v in vector))


def messages_to_matrix(messages: Iterable[FormationStatistics]) -> npt.NDArray[np.float64]:
    """Stack statistics messages into an (n, 5) matrix, one row per message.

    An empty input gives a (0, 5) matrix.
    """
    rows = [message_to_vector(msg) for msg in messages]
    if not rows:
        return np.zeros((0, STATS_DIMENSION))
    return np.vstack(rows)


def dict_to_message(data: dict) -> FormationStatistics:
    """Build a statistics message from a mapping with the five moment keys."""
    return FormationStatistics(*(float(data[name]) for name in STATISTICS_FIELDS))


def moment_map(x: float, y: float) -> npt.NDArray[np.float64]:
    """Evaluate phi(p) = [x, y, x^2, x*y, y^2] at one position."""
    return np.array([x, y, x * x, x * y, y * y])


def swarm_statistics(positions: npt.ArrayLike) -> npt.NDArray[np.float64]:
    """Population mean of phi(p) over a set of positions.

    Args:
        positions: Array-like of shape (n, 2).

    Returns:
        (5,) array of the swarm's true moments.
    """
    points = np.asarray(positions, dtype=float).reshape(-1, 2)
    if points.shape[0] == 0:
        return np.zeros(STATS_DIMENSION)
    moments = np.array([moment_map(x, y) for x, y in points])
    return moments.mean(axis=0)
