"""Hand-off of neighbor statistics between ingestion and the control cycle.

Neighbor estimates arrive asynchronously (transport callback, receiver
coroutine or another thread) while the periodic pipeline reads them once per
cycle. The inbox is a single slot of capacity one with overwrite-on-send
semantics:

- deliver() filters the batch to known neighbors and replaces the slot
- drain() swaps the slot out and leaves it empty

A lock makes each deliver/drain an exclusive swap, so a batch is used by at
most one consensus step.
"""

import logging
import threading
from typing import FrozenSet, Iterable, List, Tuple

from .errors import StaleDataWarning, UnknownNeighborWarning
from .statistics import FormationStatistics

NeighborObservation = Tuple[int, FormationStatistics]
"""One (agent_id, statistics) pair of a NeighborStatisticsBatch."""


class NeighborInbox:
    """Single-producer/single-consumer buffer of neighbor observations.

    Attributes:
        neighbors: Agent IDs accepted into the buffer.
        stale_batches: Number of batches overwritten before being drained.
        discarded_observations: Number of observations from unknown agents.
    """

    def __init__(self, neighbors: Iterable[int]) -> None:
        self.neighbors: FrozenSet[int] = frozenset(neighbors)
        self._lock = threading.Lock()
        self._pending: List[NeighborObservation] = []
        self.stale_batches: int = 0
        self.discarded_observations: int = 0

    def deliver(self, batch: Iterable[NeighborObservation]) -> int:
        """Replace the buffered batch with the neighbor observations of a new one.

        Args:
            batch: Sequence of (agent_id, statistics) pairs.

        Returns:
            Number of observations kept.
        """
        accepted: List[NeighborObservation] = []
        for agent_id, stats in batch:
            if agent_id in self.neighbors:
                accepted.append((agent_id, stats))
            else:
                self.discarded_observations += 1
                logging.debug(
                    f"[NeighborInbox.deliver] {UnknownNeighborWarning.__name__}: "
                    f"discarding statistics from agent {agent_id}"
                )

        with self._lock:
            if self._pending:
                self.stale_batches += 1
                logging.warning(
                    f"[NeighborInbox.deliver] {StaleDataWarning.__name__}: last received "
                    f"statistics ({len(self._pending)} agents) have not been used"
                )
            self._pending = accepted

        logging.debug(f"[NeighborInbox.deliver] Received statistics from {len(accepted)} agents")
        return len(accepted)

    def drain(self) -> List[NeighborObservation]:
        """Take the buffered batch and leave the inbox empty."""
        with self._lock:
            batch, self._pending = self._pending, []
        return batch

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)
