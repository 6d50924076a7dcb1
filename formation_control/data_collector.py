"""Data collection and CSV logging for formation control runs.

This module provides CSV data logging for:
- Agent state (real and virtual pose, real twist)
- Statistics (estimated and target moments, error norm)
- Guidance diagnostics (LOS distance/bearing, PI state, commands)

One collector can serve a whole simulated swarm: every row carries the
agent_id.
"""

import csv
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, TextIO

from .agent import AgentCore
from .config import TERM_BLUE, TERM_RESET
from .statistics import STATISTICS_FIELDS

AGENT_STATE_HEADER = [
    "timestamp",
    "agent_id",
    "x",
    "y",
    "theta",
    "v_x",
    "v_y",
    "omega",
    "x_virtual",
    "y_virtual",
    "v_x_virtual",
    "v_y_virtual",
]

STATISTICS_HEADER = (
    ["timestamp", "agent_id"]
    + [f"est_{name}" for name in STATISTICS_FIELDS]
    + [f"target_{name}" for name in STATISTICS_FIELDS]
    + ["error_norm"]
)

GUIDANCE_HEADER = [
    "timestamp",
    "agent_id",
    "los_distance",
    "los_angle",
    "speed_ref",
    "speed_err",
    "speed_integral",
    "speed_cmd",
    "steer_cmd",
]


class DataCollector:
    """Manages CSV file creation and logging for agent data.

    Attributes:
        run_dir: Directory path for this run's output files.
        agent_state_path: Path of the agent state CSV.
        statistics_path: Path of the statistics CSV.
        guidance_path: Path of the guidance diagnostics CSV.
    """

    def __init__(self, output_dir: str = ".", run_dir: Optional[str] = None) -> None:
        """Initialize the data collector.

        Args:
            output_dir: Base directory for output files (default: current directory).
            run_dir: Optional specific run directory. If None, creates timestamped
                directory. Can also be set via RUN_DIR environment variable.

        Raises:
            ValueError: If output_dir is not a valid directory.
        """
        output_path = Path(output_dir)
        if output_path.exists() and not output_path.is_dir():
            raise ValueError(f"Output path exists but is not a directory: {output_dir}")

        self._files: Dict[str, TextIO] = {}
        self._writers: Dict[str, Any] = {}

        if run_dir:
            self.run_dir: Path = Path(run_dir)
        elif env_run_dir := os.environ.get("RUN_DIR"):
            self.run_dir = Path(env_run_dir)
        else:
            # results/run_YYYYMMDD_HHMMSS/
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            self.run_dir = output_path / "results" / f"run_{timestamp}"

        self.run_dir.mkdir(parents=True, exist_ok=True)

        self.agent_state_path: Path = self.run_dir / "agent_state.csv"
        self.statistics_path: Path = self.run_dir / "statistics.csv"
        self.guidance_path: Path = self.run_dir / "guidance.csv"

    def setup(self) -> None:
        """Create the CSV files and write their headers.

        Must be called before writing data.
        """
        for name, path, header in (
            ("agent_state", self.agent_state_path, AGENT_STATE_HEADER),
            ("statistics", self.statistics_path, STATISTICS_HEADER),
            ("guidance", self.guidance_path, GUIDANCE_HEADER),
        ):
            csv_file = open(path, "w", newline="")
            writer = csv.writer(csv_file)
            writer.writerow(header)
            csv_file.flush()
            self._files[name] = csv_file
            self._writers[name] = writer

        print(f"{TERM_BLUE}✓ Initialized data collection to {self.run_dir}/{TERM_RESET}")

    def _write(self, name: str, row: list) -> None:
        writer = self._writers.get(name)
        if writer is None:
            raise RuntimeError("DataCollector.setup() must be called before logging")
        writer.writerow(row)
        self._files[name].flush()

    def log_agent_state(self, timestamp: float, agent_id: int, state: Dict[str, float]) -> None:
        """Log real and virtual agent state.

        Args:
            timestamp: Current time (seconds).
            agent_id: Agent the row belongs to.
            state: Dictionary from AgentCore.get_state().
        """
        self._write(
            "agent_state",
            [timestamp, agent_id] + [state[key] for key in AGENT_STATE_HEADER[2:]],
        )

    def log_statistics(self, timestamp: float, agent_id: int, diagnostics: Dict[str, Any]) -> None:
        """Log estimated and target statistics.

        Args:
            timestamp: Current time (seconds).
            agent_id: Agent the row belongs to.
            diagnostics: Dictionary from AgentCore.get_diagnostics().
        """
        self._write(
            "statistics",
            [timestamp, agent_id]
            + [float(v) for v in diagnostics["estimated"]]
            + [float(v) for v in diagnostics["target"]]
            + [diagnostics["error_norm"]],
        )

    def log_guidance(self, timestamp: float, agent_id: int, diagnostics: Dict[str, Any]) -> None:
        """Log LOS guidance diagnostics.

        Args:
            timestamp: Current time (seconds).
            agent_id: Agent the row belongs to.
            diagnostics: Dictionary containing the LosGuidance.get_diagnostics() keys.
        """
        self._write(
            "guidance",
            [timestamp, agent_id] + [diagnostics[key] for key in GUIDANCE_HEADER[2:]],
        )

    def log_cycle(self, timestamp: float, core: AgentCore) -> None:
        """Log state, statistics and guidance of one agent after a cycle."""
        diagnostics = core.get_diagnostics()
        self.log_agent_state(timestamp, core.agent_id, core.get_state())
        self.log_statistics(timestamp, core.agent_id, diagnostics)
        self.log_guidance(timestamp, core.agent_id, diagnostics)

    def cleanup(self) -> None:
        """Close all open CSV files."""
        for csv_file in self._files.values():
            csv_file.close()
        self._files.clear()
        self._writers.clear()
