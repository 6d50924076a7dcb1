"""In-process simulation of a swarm of formation control agents.

Every agent runs its own AgentCore. Each cycle:
1. every agent steps once (consuming the batch delivered in the previous cycle)
2. the broadcast network hands every published estimate to every other agent
3. each inbox keeps only the observations of its configured neighbors

Used for offline tuning, the `simulate` CLI command and end-to-end tests.
"""

import logging
from dataclasses import replace
from typing import Dict, List, Optional, Sequence, Set, Tuple

import numpy as np

from .agent import AgentCore, EstimatedStatisticsEvent
from .config import TERM_BLUE, TERM_RESET, AgentConfig
from .data_collector import DataCollector
from .statistics import FormationStatistics, message_to_vector, swarm_statistics

Topology = Dict[int, Set[int]]
"""Mapping agent_id -> neighbor IDs."""


def ring_topology(n: int) -> Topology:
    """Symmetric ring: each agent talks to its predecessor and successor."""
    if n < 2:
        return {i: set() for i in range(n)}
    return {i: {(i - 1) % n, (i + 1) % n} for i in range(n)}


def complete_topology(n: int) -> Topology:
    """Fully connected graph."""
    return {i: set(range(n)) - {i} for i in range(n)}


def build_swarm_configs(
    n: int,
    topology: Optional[Topology] = None,
    base: Optional[AgentConfig] = None,
    positions: Optional[Sequence[Tuple[float, float, float]]] = None,
) -> List[AgentConfig]:
    """Derive one AgentConfig per agent from a shared base configuration.

    Args:
        n: Number of agents (IDs 0..n-1).
        topology: Neighbor sets. Default: ring_topology(n).
        base: Gains and limits shared by all agents. Default: AgentConfig().
        positions: Optional initial (x, y, theta) per agent.

    Returns:
        List of AgentConfig, index i holding agent i.
    """
    if topology is None:
        topology = ring_topology(n)
    if base is None:
        base = AgentConfig()
    if positions is not None and len(positions) != n:
        raise ValueError(f"Expected {n} initial positions, got {len(positions)}")

    configs = []
    for i in range(n):
        configs.append(
            replace(
                base,
                agent_id=i,
                neighbors=frozenset(topology.get(i, set())),
                initial_pose=tuple(positions[i]) if positions is not None else base.initial_pose,
            )
        )
    return configs


class BroadcastNetwork:
    """Delivers every published estimate to every other agent.

    Attributes:
        loss_prob: Probability that a single delivery is dropped.
    """

    def __init__(self, loss_prob: float = 0.0, rng: Optional[np.random.Generator] = None) -> None:
        self.loss_prob = loss_prob
        self.rng = rng if rng is not None else np.random.default_rng()

    def deliver(
        self, events: Sequence[EstimatedStatisticsEvent], receivers: Sequence[int]
    ) -> Dict[int, List[Tuple[int, FormationStatistics]]]:
        """Build the NeighborStatisticsBatch of every receiver.

        Returns:
            Mapping receiver_id -> list of (sender_id, statistics).
        """
        inbox: Dict[int, List[Tuple[int, FormationStatistics]]] = {r: [] for r in receivers}
        for event in events:
            for receiver in receivers:
                if receiver == event.agent_id:
                    continue
                if self.loss_prob > 0.0 and self.rng.random() < self.loss_prob:
                    continue
                inbox[receiver].append((event.agent_id, event.statistics))
        return inbox


class SwarmSimulation:
    """Lock-step simulation of several agents sharing one broadcast network.

    Attributes:
        agents: AgentCore instances keyed by agent_id.
        network: Broadcast network used between cycles.
        time: Simulated time (seconds).
    """

    def __init__(
        self,
        configs: Sequence[AgentConfig],
        network: Optional[BroadcastNetwork] = None,
        collector: Optional[DataCollector] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        if not configs:
            raise ValueError("A swarm needs at least one agent")
        sample_times = {c.sample_time for c in configs}
        if len(sample_times) != 1:
            raise ValueError(f"All agents must share one sample time, got {sorted(sample_times)}")

        if rng is None:
            rng = np.random.default_rng()
        self.agents: Dict[int, AgentCore] = {c.agent_id: AgentCore(c, rng=rng) for c in configs}
        if len(self.agents) != len(configs):
            raise ValueError("Agent IDs must be unique")

        self.network = network if network is not None else BroadcastNetwork()
        self.collector = collector
        self.dt = configs[0].sample_time
        self.time = 0.0

    def set_target(self, target: FormationStatistics) -> None:
        """Broadcast a target statistics update to every agent."""
        for agent in self.agents.values():
            agent.set_target_statistics(target)

    def step(self) -> List[EstimatedStatisticsEvent]:
        """Advance every agent by one cycle and exchange the new estimates."""
        self.time += self.dt
        events = [agent.step(timestamp=self.time) for agent in self.agents.values()]

        if self.collector is not None:
            for agent in self.agents.values():
                self.collector.log_cycle(self.time, agent)

        batches = self.network.deliver(events, list(self.agents))
        for agent_id, batch in batches.items():
            self.agents[agent_id].receive_neighbor_statistics(batch)
        return events

    def run(self, cycles: int) -> np.ndarray:
        """Run a number of cycles.

        Returns:
            (cycles, n_agents, 5) array of the estimates published each cycle,
            agents ordered by ID.
        """
        order = sorted(self.agents)
        history = np.zeros((cycles, len(order), 5))
        for k in range(cycles):
            events = {event.agent_id: event for event in self.step()}
            for j, agent_id in enumerate(order):
                history[k, j] = message_to_vector(events[agent_id].statistics)

        logging.info(
            f"{TERM_BLUE}✓ Simulated {cycles} cycles ({self.time:.1f}s) with "
            f"{len(order)} agents{TERM_RESET}"
        )
        return history

    def estimates(self) -> np.ndarray:
        """(n_agents, 5) current estimates, agents ordered by ID."""
        return np.array([self.agents[i].estimated for i in sorted(self.agents)])

    def positions(self, virtual: bool = False) -> np.ndarray:
        """(n_agents, 2) real (or virtual) positions, agents ordered by ID."""
        poses = [
            self.agents[i].pose_virtual if virtual else self.agents[i].pose
            for i in sorted(self.agents)
        ]
        return np.array([[p.x, p.y] for p in poses])

    def true_statistics(self, virtual: bool = False) -> np.ndarray:
        """Population mean of phi over the current real (or virtual) positions."""
        return swarm_statistics(self.positions(virtual=virtual))
