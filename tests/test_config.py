import json

import numpy as np
import pytest

from formation_control.config import GAMMA_DIAG, AgentConfig, load_config
from formation_control.errors import ConfigurationError


def test_defaults():
    config = AgentConfig()
    np.testing.assert_array_equal(config.gamma, np.eye(5))
    np.testing.assert_array_equal(config.lambda_, np.zeros((5, 5)))
    np.testing.assert_array_equal(config.b, np.eye(2))
    assert config.gamma_diag == GAMMA_DIAG
    assert config.neighbors == frozenset()
    assert config.initial_pose is None


def test_containers_are_normalized():
    config = AgentConfig(neighbors=[1, 2], b_diag=[2, 3], initial_pose=[1, 2, 0])
    assert config.neighbors == frozenset({1, 2})
    assert config.b_diag == (2.0, 3.0)
    assert config.initial_pose == (1.0, 2.0, 0.0)


@pytest.mark.parametrize(
    "overrides",
    [
        {"gamma_diag": (1.0,) * 4},
        {"lambda_diag": (0.0,) * 6},
        {"b_diag": (1.0,)},
        {"sample_time": 0.0},
        {"los_distance_threshold": -1.0},
        {"vehicle_length": 0.0},
        {"velocity_virtual_threshold": 0.0},
        {"speed_min": 3.0, "speed_max": 2.0},
        {"steer_min": 1.0, "steer_max": -1.0},
        {"world_limit": -1.0},
        {"initial_pose": (1.0, 2.0)},
        {"agent_id": 3, "neighbors": {1, 3}},
    ],
)
def test_invalid_values_rejected(overrides):
    with pytest.raises(ConfigurationError):
        AgentConfig(**overrides)


def test_from_dict_round_trip():
    config = AgentConfig(agent_id=2, neighbors={1, 3}, initial_pose=(1.0, -1.0, 0.5))
    data = json.loads(json.dumps(config.to_dict()))
    assert AgentConfig.from_dict(data) == config


def test_from_dict_coerces_agent_id():
    config = AgentConfig.from_dict({"agent_id": "1", "neighbors": ["0", "2"]})
    assert config.agent_id == 1
    assert isinstance(config.agent_id, int)
    assert config.neighbors == frozenset({0, 2})

    with pytest.raises(ConfigurationError):
        AgentConfig.from_dict({"agent_id": "one"})


def test_from_dict_rejects_unknown_keys():
    with pytest.raises(ConfigurationError, match="Unknown configuration keys"):
        AgentConfig.from_dict({"agent_id": 1, "gain": 2.0})


def test_from_dict_wraps_type_errors():
    with pytest.raises(ConfigurationError):
        AgentConfig.from_dict({"sample_time": "fast"})
    with pytest.raises(ConfigurationError):
        AgentConfig.from_dict({"neighbors": ["one"]})


def test_load_config(tmp_path):
    path = tmp_path / "agent.json"
    path.write_text(json.dumps({"agent_id": 4, "neighbors": [3, 5], "k_p_speed": 2.0}))

    config = load_config(path)

    assert config.agent_id == 4
    assert config.neighbors == frozenset({3, 5})
    assert config.k_p_speed == 2.0
    assert config.sample_time == AgentConfig().sample_time


def test_load_config_errors(tmp_path):
    bad_json = tmp_path / "bad.json"
    bad_json.write_text("{not json")
    with pytest.raises(ConfigurationError):
        load_config(bad_json)

    not_object = tmp_path / "list.json"
    not_object.write_text("[1, 2]")
    with pytest.raises(ConfigurationError):
        load_config(not_object)

    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.json")
