import numpy as np

from formation_control.agent import AgentCore
from formation_control.consensus import ConsensusEstimator, moment_derivative
from formation_control.geometry import Pose2D, Twist2D
from formation_control.statistics import message_to_vector


def test_moment_derivative():
    phi_dot = moment_derivative(Pose2D(1.0, 2.0), Twist2D(3.0, 4.0))
    np.testing.assert_allclose(phi_dot, [3.0, 4.0, 6.0, 10.0, 16.0])


def test_estimate_without_motion_or_neighbors_is_unchanged():
    estimated = np.array([1.0, -1.0, 2.0, 0.5, 3.0])
    new = ConsensusEstimator().estimate(
        0.1, Pose2D(1.0, 1.0), Twist2D(), estimated, np.zeros((0, 5))
    )
    np.testing.assert_array_equal(new, estimated)


def test_estimate_combines_motion_and_neighbor_terms():
    estimated = np.zeros(5)
    received = np.array([[1.0, 2.0, 3.0, 4.0, 5.0], [1.0, 0.0, 1.0, 0.0, 1.0]])
    received_copy = received.copy()

    new = ConsensusEstimator().estimate(
        0.1, Pose2D(1.0, 0.0), Twist2D(1.0, 0.0), estimated, received
    )

    # dt * phi_dot = [0.1, 0, 0.2, 0, 0]; dt * sum(received - 0) = [0.2, 0.2, 0.4, 0.4, 0.6]
    np.testing.assert_allclose(new, [0.3, 0.2, 0.6, 0.4, 0.6])
    np.testing.assert_array_equal(estimated, np.zeros(5))
    np.testing.assert_array_equal(received, received_copy)


def test_static_agents_agree_on_the_mean():
    estimator = ConsensusEstimator()
    estimates = [
        np.array([1.0, 0.0, 2.0, 0.0, 1.0]),
        np.array([-1.0, 3.0, 0.0, 1.0, 1.0]),
        np.array([3.0, 0.0, 1.0, -1.0, 4.0]),
    ]
    mean = np.mean(estimates, axis=0)

    for _ in range(100):
        estimates = [
            estimator.estimate(
                0.1,
                Pose2D(),
                Twist2D(),
                estimates[i],
                np.array([estimates[j] for j in range(3) if j != i]),
            )
            for i in range(3)
        ]

    for estimate in estimates:
        np.testing.assert_allclose(estimate, mean, atol=1e-9)


def test_received_batch_is_consumed_once(config, stats):
    core = AgentCore(config)
    core.receive_neighbor_statistics([(1, stats)])

    core.consensus()
    first = core.estimated.copy()
    core.consensus()

    np.testing.assert_allclose(first, 0.1 * message_to_vector(stats))
    np.testing.assert_array_equal(core.estimated, first)
    assert core.inbox.stale_batches == 0


def test_stale_batch_only_latest_is_used(config, stats):
    core = AgentCore(config)
    core.receive_neighbor_statistics([(1, stats), (2, stats)])
    core.receive_neighbor_statistics([(2, stats)])

    core.consensus()

    assert core.inbox.stale_batches == 1
    np.testing.assert_allclose(core.estimated, 0.1 * message_to_vector(stats))
