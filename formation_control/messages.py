"""JSON wire format exchanged with the message relay.

Incoming message types:
- neighbor_statistics: {"message_type": "neighbor_statistics",
                        "statistics": [{"agent_id": 2, "stats": {...}}, ...]}
- target_statistics:   {"message_type": "target_statistics", "stats": {...}}

Outgoing message types:
- estimated_statistics: agent_id, timestamp, stats
- agent_report: agent_id, timestamp, stats, real pose and virtual pose
  (the per-agent record a ground station plots)

"stats" objects carry the keys m_x, m_y, m_xx, m_xy, m_yy. Poses carry x, y,
theta and the equivalent z-axis orientation quaternion.
"""

import json
from typing import Any, Dict, List, Tuple, Union

from .agent import AgentCore, EstimatedStatisticsEvent
from .errors import MessageError
from .geometry import Pose2D, quaternion_to_yaw, yaw_to_quaternion
from .exchange import NeighborObservation
from .statistics import FormationStatistics, dict_to_message

NEIGHBOR_STATISTICS = "neighbor_statistics"
TARGET_STATISTICS = "target_statistics"
ESTIMATED_STATISTICS = "estimated_statistics"
AGENT_REPORT = "agent_report"


def parse_message(message: Union[str, bytes]) -> Dict[str, Any]:
    """Decode a raw JSON message into a dictionary with a message_type.

    Raises:
        MessageError: If the payload is not a JSON object with a message_type.
    """
    try:
        if isinstance(message, bytes):
            message = message.decode("utf-8")
        data = json.loads(message)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MessageError(f"Error parsing JSON: {e}") from e
    if not isinstance(data, dict) or "message_type" not in data:
        raise MessageError("Message must be a JSON object with a 'message_type' field")
    return data


def _decode_stats(data: Any) -> FormationStatistics:
    if not isinstance(data, dict):
        raise MessageError(f"Invalid stats object: {data!r}")
    try:
        return dict_to_message(data)
    except (KeyError, TypeError, ValueError) as e:
        raise MessageError(f"Invalid stats object: {e}") from e


def decode_neighbor_statistics(data: Dict[str, Any]) -> List[NeighborObservation]:
    """Extract the (agent_id, statistics) pairs of a neighbor_statistics message.

    Raises:
        MessageError: If an entry is malformed.
    """
    entries = data.get("statistics", [])
    if not isinstance(entries, list):
        raise MessageError(f"Invalid statistics list type: {type(entries).__name__}")

    batch: List[NeighborObservation] = []
    for entry in entries:
        if not isinstance(entry, dict) or "agent_id" not in entry:
            raise MessageError(f"Invalid neighbor statistics entry: {entry!r}")
        try:
            agent_id = int(entry["agent_id"])
        except (TypeError, ValueError) as e:
            raise MessageError(f"Invalid agent_id: {entry['agent_id']!r}") from e
        batch.append((agent_id, _decode_stats(entry.get("stats"))))
    return batch


def decode_target_statistics(data: Dict[str, Any]) -> FormationStatistics:
    """Extract the statistics of a target_statistics message."""
    return _decode_stats(data.get("stats"))


def encode_estimated_statistics(event: EstimatedStatisticsEvent) -> str:
    """Serialize an EstimatedStatisticsEvent."""
    return json.dumps(
        {
            "message_type": ESTIMATED_STATISTICS,
            "agent_id": event.agent_id,
            "timestamp": event.timestamp,
            "stats": event.statistics.to_dict(),
        }
    )


def encode_agent_report(core: AgentCore, event: EstimatedStatisticsEvent) -> str:
    """Serialize the agent's estimate together with its real and virtual poses."""
    return json.dumps(
        {
            "message_type": AGENT_REPORT,
            "agent_id": core.agent_id,
            "timestamp": event.timestamp,
            "stats": event.statistics.to_dict(),
            "pose": encode_pose(core.pose),
            "pose_virtual": encode_pose(core.pose_virtual),
        }
    )


def encode_pose(pose: Pose2D) -> Dict[str, Any]:
    """Serialize a pose with both its yaw and its orientation quaternion."""
    qx, qy, qz, qw = yaw_to_quaternion(pose.theta)
    data = pose.to_dict()
    data["orientation"] = {"x": qx, "y": qy, "z": qz, "w": qw}
    return data


def decode_pose(data: Any) -> Pose2D:
    """Deserialize a pose; the orientation quaternion takes precedence over theta.

    Raises:
        MessageError: If the pose object is malformed.
    """
    if not isinstance(data, dict):
        raise MessageError(f"Invalid pose object: {data!r}")
    try:
        orientation = data.get("orientation")
        if orientation is not None:
            theta = quaternion_to_yaw(
                float(orientation["x"]),
                float(orientation["y"]),
                float(orientation["z"]),
                float(orientation["w"]),
            )
        else:
            theta = float(data["theta"])
        return Pose2D(float(data["x"]), float(data["y"]), theta)
    except (KeyError, TypeError, ValueError) as e:
        raise MessageError(f"Invalid pose object: {e}") from e


def decode_agent_report(data: Dict[str, Any]) -> Tuple[int, FormationStatistics, Pose2D, Pose2D]:
    """Extract (agent_id, statistics, pose, pose_virtual) from an agent_report message.

    Raises:
        MessageError: If a field is missing or malformed.
    """
    try:
        agent_id = int(data["agent_id"])
    except (KeyError, TypeError, ValueError) as e:
        raise MessageError(f"Invalid agent report: {e}") from e
    return (
        agent_id,
        _decode_stats(data.get("stats")),
        decode_pose(data.get("pose")),
        decode_pose(data.get("pose_virtual")),
    )
