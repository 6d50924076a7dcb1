"""
Main entry point when running the formation_control module with python -m.

Commands:
    agent     Run one agent against a WebSocket message relay
    simulate  Run a swarm of agents in process
"""

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from typing import List, Optional

import numpy as np

from .client import main as client_main
from .client import setup_logging
from .config import TERM_ORANGE, TERM_RESET, AgentConfig, load_config
from .data_collector import DataCollector
from .errors import ConfigurationError
from .statistics import STATISTICS_FIELDS, vector_to_message
from .swarm import SwarmSimulation, build_swarm_configs, complete_topology, ring_topology

DEFAULT_TARGET = (0.0, 0.0, 1.0, 0.0, 1.0)
"""Target of the simulate command: centred at the origin, unit variance."""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m formation_control",
        description="Decentralized statistics-based formation control",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose logging with timestamps"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    agent = subparsers.add_parser("agent", help="Run one agent against a message relay")
    agent.add_argument("--config", type=str, default=None, help="JSON configuration file")
    agent.add_argument("--uri", type=str, default=None, help="Override the relay WebSocket URI")
    agent.add_argument("--log-data", action="store_true", help="Log every cycle to CSV files")

    simulate = subparsers.add_parser("simulate", help="Simulate a swarm in process")
    simulate.add_argument("--agents", type=int, default=4, help="Number of agents (default: 4)")
    simulate.add_argument("--cycles", type=int, default=1000, help="Number of cycles (default: 1000)")
    simulate.add_argument(
        "--topology",
        choices=["ring", "complete"],
        default="ring",
        help="Communication graph (default: ring)",
    )
    simulate.add_argument(
        "--target",
        type=float,
        nargs=5,
        metavar=tuple(STATISTICS_FIELDS),
        default=list(DEFAULT_TARGET),
        help="Target statistics (default: 0 0 1 0 1)",
    )
    simulate.add_argument("--config", type=str, default=None, help="JSON base configuration")
    simulate.add_argument("--seed", type=int, default=None, help="Seed of the initial poses")
    simulate.add_argument("--log-data", action="store_true", help="Log every cycle to CSV files")
    return parser


def run_agent(args: argparse.Namespace) -> int:
    config = load_config(args.config) if args.config else AgentConfig()
    if args.uri:
        config = replace(config, uri=args.uri)

    try:
        asyncio.run(client_main(config, output_dir="." if args.log_data else None))
    except KeyboardInterrupt:
        logging.info("\nExiting...")
    return 0


def run_simulation(args: argparse.Namespace) -> int:
    if args.agents < 1:
        raise ConfigurationError(f"--agents must be at least 1, got {args.agents}")

    base = load_config(args.config) if args.config else AgentConfig()
    topology = ring_topology(args.agents) if args.topology == "ring" else complete_topology(args.agents)
    configs = build_swarm_configs(args.agents, topology=topology, base=base)

    collector = DataCollector(output_dir=".") if args.log_data else None
    if collector is not None:
        collector.setup()
    try:
        simulation = SwarmSimulation(
            configs, collector=collector, rng=np.random.default_rng(args.seed)
        )
        target = np.asarray(args.target, dtype=float)
        simulation.set_target(vector_to_message(target))
        simulation.run(args.cycles)
    finally:
        if collector is not None:
            collector.cleanup()

    for agent_id, estimate in zip(sorted(simulation.agents), simulation.estimates()):
        logging.info(f"Agent {agent_id} estimate: {vector_to_message(estimate)}")
    logging.info(f"True statistics:  {vector_to_message(simulation.true_statistics(virtual=True))}")
    logging.info(
        f"{TERM_ORANGE}Max estimate error: "
        f"{np.abs(simulation.estimates() - target).max():.6f}{TERM_RESET}"
    )
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    try:
        if args.command == "agent":
            return run_agent(args)
        return run_simulation(args)
    except (ConfigurationError, FileNotFoundError) as e:
        logging.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
