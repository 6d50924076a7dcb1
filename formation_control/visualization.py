"""
Visualization utilities for formation control runs.

This module loads the CSV files written by DataCollector and plots:
- Real and virtual agent trajectories
- Estimated statistics of every agent against the target
- Statistics error norm over time
"""

import csv
from pathlib import Path
from typing import Dict, List, Tuple

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.figure import Figure

from .config import PLOT_BLUE, PLOT_ORANGE, PLOT_TAUPE
from .statistics import STATISTICS_FIELDS


def list_runs(results_dir: Path) -> List[Path]:
    """Run directories below results_dir, oldest first (names sort by timestamp).

    Raises:
        FileNotFoundError: If results_dir does not exist.
    """
    results_dir = Path(results_dir)
    if not results_dir.is_dir():
        raise FileNotFoundError(f"Results directory not found: {results_dir}")
    return sorted(d for d in results_dir.glob("run_*") if d.is_dir())


def load_csv_data(filepath: Path) -> Tuple[List[str], List[List[str]]]:
    """Load a CSV file into its header and rows.

    Raises:
        FileNotFoundError: If the CSV file does not exist.
    """
    if not filepath.exists():
        raise FileNotFoundError(f"CSV file not found: {filepath}")

    with open(filepath, "r", newline="") as f:
        reader = csv.reader(f)
        headers = next(reader, [])
        rows = [row for row in reader if row]
    return headers, rows


def load_agent_columns(filepath: Path) -> Dict[int, Dict[str, np.ndarray]]:
    """Parse a per-agent CSV into numpy columns grouped by agent_id.

    Args:
        filepath: CSV file with 'timestamp' and 'agent_id' as first columns.

    Returns:
        Mapping agent_id -> {column name -> float array}.

    Raises:
        ValueError: If the header lacks the agent_id column.
    """
    headers, rows = load_csv_data(filepath)
    if len(headers) < 2 or headers[1] != "agent_id":
        raise ValueError(f"Unexpected CSV headers in {filepath.name}: {headers}")

    grouped: Dict[int, List[List[float]]] = {}
    for row in rows:
        if len(row) != len(headers):
            continue
        try:
            values = [float(v) for v in row]
        except ValueError:
            continue
        grouped.setdefault(int(values[1]), []).append(values)

    columns: Dict[int, Dict[str, np.ndarray]] = {}
    for agent_id, agent_rows in grouped.items():
        data = np.array(agent_rows)
        columns[agent_id] = {name: data[:, i] for i, name in enumerate(headers)}
    return columns


def plot_trajectories(agent_state: Dict[int, Dict[str, np.ndarray]]) -> Figure:
    """Plot real (solid) and virtual (dashed) trajectories of every agent."""
    fig, ax = plt.subplots(figsize=(8, 8))
    for agent_id, cols in sorted(agent_state.items()):
        ax.plot(cols["x"], cols["y"], color=PLOT_ORANGE, linewidth=1.5,
                label="Real agents" if agent_id == min(agent_state) else None)
        ax.plot(cols["x_virtual"], cols["y_virtual"], color=PLOT_BLUE, linestyle="--",
                linewidth=1.0, label="Virtual agents" if agent_id == min(agent_state) else None)
        ax.plot(cols["x"][0], cols["y"][0], "o", color=PLOT_TAUPE, markersize=5)
        ax.plot(cols["x"][-1], cols["y"][-1], "s", color=PLOT_ORANGE, markersize=6)
        ax.annotate(str(agent_id), (cols["x"][-1], cols["y"][-1]),
                    textcoords="offset points", xytext=(5, 5))

    ax.set_xlabel("x (m)")
    ax.set_ylabel("y (m)")
    ax.set_title("Agent Trajectories")
    ax.set_aspect("equal", adjustable="datalim")
    ax.grid(True, alpha=0.3)
    ax.legend(loc="best")
    fig.tight_layout()
    return fig


def plot_statistics(statistics: Dict[int, Dict[str, np.ndarray]]) -> Figure:
    """Plot every agent's estimated moments against the target, plus the error norm."""
    fig, axes = plt.subplots(3, 2, figsize=(12, 10), sharex=True)
    flat_axes = axes.flatten()

    for i, name in enumerate(STATISTICS_FIELDS):
        ax = flat_axes[i]
        for agent_id, cols in sorted(statistics.items()):
            ax.plot(cols["timestamp"], cols[f"est_{name}"], color=PLOT_ORANGE, alpha=0.7,
                    linewidth=1.0, label="Estimated" if agent_id == min(statistics) else None)
        first = statistics[min(statistics)]
        ax.plot(first["timestamp"], first[f"target_{name}"], color=PLOT_BLUE, linestyle="--",
                linewidth=1.5, label="Target")
        ax.set_ylabel(name)
        ax.grid(True, alpha=0.3)
        if i == 0:
            ax.legend(loc="best")

    ax = flat_axes[-1]
    for agent_id, cols in sorted(statistics.items()):
        ax.semilogy(cols["timestamp"], np.maximum(cols["error_norm"], 1e-12),
                    linewidth=1.0, label=f"Agent {agent_id}")
    ax.set_ylabel("|target - estimated|")
    ax.grid(True, alpha=0.3, which="both")
    ax.legend(loc="best", fontsize="small")

    for ax in axes[-1]:
        ax.set_xlabel("Time (s)")
    fig.suptitle("Formation Statistics")
    fig.tight_layout()
    return fig


def plot_run_summary(run_dir: Path, save: bool = False, show: bool = True) -> Dict[str, Figure]:
    """Create trajectory and statistics plots for one run.

    Args:
        run_dir: Directory containing agent_state.csv and statistics.csv.
        save: If True, save the figures as PNG files in run_dir.
        show: If True, display the figures interactively.

    Returns:
        Mapping figure name -> Figure.
    """
    run_dir = Path(run_dir)
    figures = {
        "trajectories": plot_trajectories(load_agent_columns(run_dir / "agent_state.csv")),
        "statistics": plot_statistics(load_agent_columns(run_dir / "statistics.csv")),
    }

    if save:
        for name, fig in figures.items():
            fig.savefig(run_dir / f"{name}.png", dpi=150)

    if show:
        plt.show()
    else:
        for fig in figures.values():
            plt.close(fig)

    return figures
