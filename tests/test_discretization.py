"""Tests for discretization module.

Tests ZOH vs Euler, time-step sensitivity and input handling.
"""

import numpy as np
import pytest

from robot_dynamics import ConfigurationError, discretize_linear_dynamics


def test_zoh_vs_euler_comparison(model):
    """Test that ZOH differs from the Euler approximation at the loop rate."""
    sampling_period_s = 0.01

    discrete_sys = discretize_linear_dynamics(
        model.state_matrix,
        model.control_matrix,
        sampling_period_s
    )

    # Euler approximation: A_d ≈ I + A*Ts, B_d ≈ B*Ts
    euler_state_matrix = np.eye(4) + model.state_matrix * sampling_period_s

    error = np.linalg.norm(
        discrete_sys.state_matrix_discrete - euler_state_matrix
    )
    assert error > 1e-6, "ZOH should differ from Euler approximation"


def test_time_step_independence(model):
    """Test that smaller time steps approach continuous limit."""
    small_ts = 0.0001
    discrete_sys_small = discretize_linear_dynamics(
        model.state_matrix,
        model.control_matrix,
        small_ts
    )

    first_order_approx = np.eye(4) + model.state_matrix * small_ts

    np.testing.assert_allclose(
        discrete_sys_small.state_matrix_discrete,
        first_order_approx,
        atol=1e-5
    )


def test_double_integrator_exact():
    """ZOH of a double integrator has the textbook closed form."""
    A = np.array([[0.0, 1.0], [0.0, 0.0]])
    B = np.array([[0.0], [1.0]])
    T = 0.1

    discrete = discretize_linear_dynamics(A, B, T)

    np.testing.assert_allclose(
        discrete.state_matrix_discrete, [[1.0, T], [0.0, 1.0]], atol=1e-12
    )
    np.testing.assert_allclose(
        discrete.control_matrix_discrete, [[T ** 2 / 2], [T]], atol=1e-12
    )


def test_one_dimensional_control_matrix_accepted():
    """A 1-D input matrix is treated as a single column."""
    A = np.array([[0.0, -1.0], [0.0, 0.0]])
    discrete = discretize_linear_dynamics(A, np.array([1.0, 0.0]), 0.01)

    assert discrete.control_matrix_discrete.shape == (2, 1)
    np.testing.assert_allclose(
        discrete.control_matrix_discrete, [[0.01], [0.0]], atol=1e-15
    )


def test_matrix_shapes(model):
    """Verify discrete matrix shapes."""
    discrete_sys = discretize_linear_dynamics(
        model.state_matrix, model.control_matrix, 0.01
    )
    assert discrete_sys.state_matrix_discrete.shape == (4, 4)
    assert discrete_sys.control_matrix_discrete.shape == (4, 1)
    assert discrete_sys.sampling_period_s == 0.01


def test_nonpositive_period_rejected(model):
    """Zero or negative sampling periods are rejected."""
    with pytest.raises(ConfigurationError):
        discretize_linear_dynamics(model.state_matrix, model.control_matrix, 0.0)


def test_incompatible_shapes_rejected():
    """B with the wrong row count is rejected."""
    with pytest.raises(ValueError):
        discretize_linear_dynamics(np.eye(3), np.ones((2, 1)), 0.01)


def test_propagate_matches_matrices():
    """propagate() is A_d·x + B_d·u."""
    discrete = discretize_linear_dynamics(
        np.array([[0.0, 1.0], [0.0, 0.0]]), np.array([[0.0], [1.0]]), 0.1
    )
    state = np.array([1.0, 2.0])

    np.testing.assert_allclose(
        discrete.propagate(state, 3.0),
        discrete.state_matrix_discrete @ state
        + discrete.control_matrix_discrete[:, 0] * 3.0,
    )


def test_input_noise_covariance():
    """A scalar input variance maps through B_d."""
    discrete = discretize_linear_dynamics(
        np.array([[0.0, -1.0], [0.0, 0.0]]), np.array([1.0, 0.0]), 0.01
    )
    np.testing.assert_allclose(
        discrete.input_noise_covariance(4.0),
        [[4.0 * 0.01 ** 2, 0.0], [0.0, 0.0]],
        atol=1e-15,
    )
    with pytest.raises(ConfigurationError):
        discrete.input_noise_covariance(np.eye(2))
