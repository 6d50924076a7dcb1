import math

import pytest

from formation_control.config import AgentConfig
from formation_control.geometry import Pose2D, Twist2D
from formation_control.guidance import LosGuidance


def test_coincident_positions_give_zero_speed():
    guidance = LosGuidance(AgentConfig())

    speed, steer = guidance.guide(0.1, Pose2D(1.0, 1.0, 0.2), Twist2D(), Pose2D(1.0, 1.0, 0.0))

    assert guidance.los_distance == 0.0
    assert guidance.los_angle == 0.0
    assert speed == 0.0
    assert steer == pytest.approx(-0.2)


def test_speed_reference_proportional_below_threshold():
    guidance = LosGuidance(AgentConfig(los_distance_threshold=1.0, speed_max=2.0))

    guidance.guide(0.1, Pose2D(), Twist2D(), Pose2D(0.5, 0.0))

    assert guidance.speed_reference == pytest.approx(1.0)


def test_speed_reference_capped_above_threshold():
    guidance = LosGuidance(AgentConfig(los_distance_threshold=1.0, speed_max=2.0))

    guidance.guide(0.1, Pose2D(), Twist2D(), Pose2D(10.0, 0.0))

    assert guidance.speed_reference == pytest.approx(2.0)


def test_integral_winds_up_while_saturated():
    config = AgentConfig(k_p_speed=1.0, k_i_speed=0.5, speed_max=2.0)
    guidance = LosGuidance(config)
    cycles = 50

    for _ in range(cycles):
        speed, _ = guidance.guide(0.1, Pose2D(), Twist2D(), Pose2D(10.0, 0.0))

    # Constant error E = 2: I_N = k_i * dt * E * (N - 1/2)
    assert guidance.speed_integral == pytest.approx(0.5 * 0.1 * 2.0 * (cycles - 0.5))
    assert speed == 2.0


def test_speed_command_clipped_at_minimum():
    guidance = LosGuidance(AgentConfig(speed_min=0.0))

    speed, _ = guidance.guide(0.1, Pose2D(), Twist2D(3.0, 0.0), Pose2D())

    assert guidance.speed_error == pytest.approx(-3.0)
    assert speed == 0.0


def test_steering_uses_fmod_heading_error():
    guidance = LosGuidance(AgentConfig(k_p_steer=0.1))
    bearing = 2.5
    virtual = Pose2D(10.0 * math.cos(bearing), 10.0 * math.sin(bearing))

    _, steer = guidance.guide(0.1, Pose2D(0.0, 0.0, -2.0), Twist2D(), virtual)

    # fmod(4.5, pi) = 4.5 - pi; a shortest-angle wrap would turn the other way
    assert steer == pytest.approx(0.1 * (4.5 - math.pi))


def test_steering_saturated():
    guidance = LosGuidance(AgentConfig(k_p_steer=5.0))

    _, steer = guidance.guide(0.1, Pose2D(), Twist2D(), Pose2D(0.0, 10.0))

    assert steer == pytest.approx(math.pi / 4.0)


def test_reset_and_diagnostics():
    guidance = LosGuidance(AgentConfig())
    guidance.guide(0.1, Pose2D(), Twist2D(), Pose2D(3.0, 4.0))

    diagnostics = guidance.get_diagnostics()
    assert diagnostics["los_distance"] == pytest.approx(5.0)
    assert set(diagnostics) == {
        "los_distance",
        "los_angle",
        "speed_ref",
        "speed_err",
        "speed_integral",
        "speed_cmd",
        "steer_cmd",
    }

    guidance.reset()
    assert guidance.speed_error == 0.0
    assert guidance.speed_integral == 0.0
