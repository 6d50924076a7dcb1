"""Shared fixtures for the formation control tests."""

import matplotlib

matplotlib.use("Agg")

import pytest

from formation_control.config import AgentConfig
from formation_control.statistics import FormationStatistics


@pytest.fixture
def config():
    """Agent 0 at the origin, heading along x, listening to agents 1 and 2."""
    return AgentConfig(agent_id=0, neighbors=frozenset({1, 2}), initial_pose=(0.0, 0.0, 0.0))


@pytest.fixture
def damped_base():
    """Base configuration with Lambda = I (damped pseudo-inverse control law)."""
    return AgentConfig(lambda_diag=(1.0,) * 5)


@pytest.fixture
def stats():
    return FormationStatistics(m_x=1.0, m_y=2.0, m_xx=3.0, m_xy=4.0, m_yy=5.0)


@pytest.fixture(autouse=True)
def no_run_dir_env(monkeypatch):
    monkeypatch.delenv("RUN_DIR", raising=False)
