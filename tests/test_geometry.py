import math

import pytest

from formation_control.geometry import (
    Pose2D,
    Twist2D,
    integrator,
    line_of_sight,
    normalize_angle,
    quaternion_to_yaw,
    saturation,
    wrap_heading_error,
    yaw_to_quaternion,
)


def test_integrator_trapezoidal_step():
    assert integrator(1.0, 2.0, 4.0, 0.5) == pytest.approx(2.5)
    assert integrator(1.0, 2.0, 4.0, 0.5, k=2.0) == pytest.approx(4.0)
    # Constant rate
    assert integrator(1.0, 3.0, 3.0, 0.1) == pytest.approx(1.3)


def test_integrator_exact_for_linear_input():
    dt = 0.1
    out = 0.0
    for k in range(10):
        out = integrator(out, k * dt, (k + 1) * dt, dt)
    assert out == pytest.approx(0.5)


def test_saturation_clamps_both_sides():
    assert saturation(3.0, -1.0, 2.0) == 2.0
    assert saturation(-3.0, -1.0, 2.0) == -1.0
    assert saturation(0.5, -1.0, 2.0) == 0.5


def test_wrap_heading_error_keeps_sign_of_input():
    assert wrap_heading_error(0.3) == pytest.approx(0.3)
    # Not a shortest-angle wrap
    assert wrap_heading_error(1.5 * math.pi) == pytest.approx(0.5 * math.pi)
    assert wrap_heading_error(-1.5 * math.pi) == pytest.approx(-0.5 * math.pi)


def test_normalize_angle():
    assert normalize_angle(0.5) == pytest.approx(0.5)
    assert normalize_angle(2.0 * math.pi + 0.5) == pytest.approx(0.5)
    assert abs(normalize_angle(3.0 * math.pi)) == pytest.approx(math.pi)


def test_line_of_sight():
    distance, bearing = line_of_sight(Pose2D(1.0, 1.0), Pose2D(4.0, 5.0))
    assert distance == pytest.approx(5.0)
    assert bearing == pytest.approx(math.atan2(4.0, 3.0))


def test_line_of_sight_coincident_positions():
    distance, bearing = line_of_sight(Pose2D(2.0, -1.0, 1.0), Pose2D(2.0, -1.0, -1.0))
    assert distance == 0.0
    assert bearing == 0.0


def test_quaternion_yaw_conversion():
    qx, qy, qz, qw = yaw_to_quaternion(0.7)
    assert (qx, qy) == (0.0, 0.0)
    assert quaternion_to_yaw(qx, qy, qz, qw) == pytest.approx(0.7)
    # Unnormalized input gives the same yaw
    assert quaternion_to_yaw(0.0, 0.0, 2.0 * qz, 2.0 * qw) == pytest.approx(0.7)


def test_pose_and_twist_copies_are_independent():
    pose = Pose2D(1.0, 2.0, 3.0)
    twist = Twist2D(3.0, 4.0, 0.1)
    pose_copy = pose.copy()
    pose_copy.x = 10.0
    assert pose.x == 1.0
    assert twist.copy() == twist
    assert twist.speed == pytest.approx(5.0)
