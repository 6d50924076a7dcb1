import json

import pytest

from formation_control import messages
from formation_control.agent import AgentCore, EstimatedStatisticsEvent
from formation_control.errors import MessageError
from formation_control.geometry import Pose2D


def test_parse_message_accepts_str_and_bytes():
    raw = json.dumps({"message_type": "target_statistics", "stats": {}})
    assert messages.parse_message(raw)["message_type"] == "target_statistics"
    assert messages.parse_message(raw.encode("utf-8"))["message_type"] == "target_statistics"


@pytest.mark.parametrize(
    "raw", ["{not json", "[1, 2]", json.dumps({"stats": {}}), b"\xff\xfe{}"]
)
def test_parse_message_rejects_malformed_payloads(raw):
    with pytest.raises(MessageError):
        messages.parse_message(raw)


def test_decode_neighbor_statistics(stats):
    data = {
        "message_type": messages.NEIGHBOR_STATISTICS,
        "statistics": [
            {"agent_id": 1, "stats": stats.to_dict()},
            {"agent_id": "2", "stats": stats.to_dict()},
        ],
    }

    assert messages.decode_neighbor_statistics(data) == [(1, stats), (2, stats)]


@pytest.mark.parametrize(
    "entries",
    [
        "not a list",
        [{"stats": {}}],
        [{"agent_id": "one", "stats": {}}],
        [{"agent_id": 1, "stats": {"m_x": 1.0}}],
        [{"agent_id": 1}],
    ],
)
def test_decode_neighbor_statistics_errors(entries):
    with pytest.raises(MessageError):
        messages.decode_neighbor_statistics({"statistics": entries})


def test_decode_target_statistics(stats):
    data = {"message_type": messages.TARGET_STATISTICS, "stats": stats.to_dict()}
    assert messages.decode_target_statistics(data) == stats


def test_encode_estimated_statistics(stats):
    event = EstimatedStatisticsEvent(agent_id=3, timestamp=12.5, statistics=stats)

    data = json.loads(messages.encode_estimated_statistics(event))

    assert data == {
        "message_type": messages.ESTIMATED_STATISTICS,
        "agent_id": 3,
        "timestamp": 12.5,
        "stats": stats.to_dict(),
    }


def test_encode_agent_report(config, stats):
    core = AgentCore(config)
    event = EstimatedStatisticsEvent(agent_id=0, timestamp=1.0, statistics=stats)

    data = json.loads(messages.encode_agent_report(core, event))

    assert data["message_type"] == messages.AGENT_REPORT
    assert data["stats"] == stats.to_dict()
    assert data["pose"]["orientation"] == {"x": 0.0, "y": 0.0, "z": 0.0, "w": 1.0}

    agent_id, decoded_stats, pose, pose_virtual = messages.decode_agent_report(data)
    assert agent_id == 0
    assert decoded_stats == stats
    assert pose == Pose2D(0.0, 0.0, 0.0)
    assert pose_virtual == Pose2D(0.0, 0.0, 0.0)


def test_pose_orientation_takes_precedence_over_theta():
    data = messages.encode_pose(Pose2D(1.0, -2.0, 0.7))
    data["theta"] = 0.0

    pose = messages.decode_pose(data)

    assert (pose.x, pose.y) == (1.0, -2.0)
    assert pose.theta == pytest.approx(0.7)
    assert messages.decode_pose({"x": 1.0, "y": 2.0, "theta": 0.3}).theta == 0.3


@pytest.mark.parametrize("data", [None, {"x": 1.0}, {"x": 1.0, "y": 0.0, "orientation": {"z": 1}}])
def test_decode_pose_errors(data):
    with pytest.raises(MessageError):
        messages.decode_pose(data)
