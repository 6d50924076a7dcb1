"""Formation Control - Decentralized Statistics-Based Swarm Control

Each agent of a swarm runs the same onboard control core. Agents only share
their estimate of the swarm's spatial statistics with their neighbors, and
together they drive the swarm toward a target shape given as the first and
second moments of the agent positions.

## Architecture Overview

Every sample period the agent runs a four-layer pipeline:

### Layer 1: Consensus (consensus.py)
Dynamic discrete consensus on the formation statistics.
- Local term: time derivative of phi(p) = [x, y, x^2, x*y, y^2] at the virtual agent
- Neighbor term: pull toward the estimates received since the last cycle
- Output: Estimated statistics, published to the neighbors

### Layer 2: Control Law (control_law.py)
Weighted generalized inverse of the moment Jacobian.
- u = inv(B + J' Lambda J) J' Gamma (target - estimated)
- Norm saturation, direction preserved
- Output: Virtual agent velocity and position

### Layer 3: LOS Guidance (guidance.py)
Makes the real vehicle chase its virtual agent.
- Speed reference proportional to the LOS distance, tracked by a PI loop
- Steering proportional to the LOS heading error
- Output: Saturated speed and steering commands

### Layer 4: Kinematics (kinematics.py)
Car-like vehicle model integrated with the trapezoidal rule.
- Output: Real agent pose and twist

## Modules

### Core Control Modules
- `config.py` - Documented defaults and the immutable AgentConfig
- `statistics.py` - Statistics vector, message form and conversions
- `exchange.py` - Neighbor inbox between ingestion and the control cycle
- `agent.py` - AgentCore running the pipeline once per cycle

### Communication & Data
- `messages.py` - JSON wire format
- `client.py` - WebSocket client and periodic timer
- `swarm.py` - In-process multi-agent simulation
- `data_collector.py` - CSV data logging

### Visualization
- `visualization.py` - Trajectory and statistics plots
- `plot_results.py` - CLI for visualization tools

## Quick Start

```bash
# Simulate a ring of 6 agents converging to a unit-variance formation
python -m formation_control simulate --agents 6 --cycles 2000 --log-data

# Run one agent against a message relay
python -m formation_control agent --config agent0.json
```
"""

__version__ = "0.1.0"

# Export key classes for convenience
from .agent import AgentCore, EstimatedStatisticsEvent
from .config import AgentConfig, load_config
from .data_collector import DataCollector
from .statistics import FormationStatistics
from .swarm import SwarmSimulation

__all__ = [
    "AgentConfig",
    "AgentCore",
    "DataCollector",
    "EstimatedStatisticsEvent",
    "FormationStatistics",
    "SwarmSimulation",
    "load_config",
]
