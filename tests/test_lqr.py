"""Tests for LQR gain synthesis."""

import threading

import numpy as np
import pytest
import scipy.linalg

from robot_dynamics import ConfigurationError, ConvergenceError, discretize_linear_dynamics
from lqr import (
    LQRConfig,
    RiccatiController,
    build_control_cost_matrix,
    build_state_cost_matrix,
    iterate_riccati,
)


@pytest.fixture
def solved(model, lqr_config):
    """Gain solved with the shipped weights."""
    return RiccatiController(lqr_config).solve(model)


class TestLQRConfig:
    """Tests for LQRConfig."""

    def test_yaml_literals(self, lqr_config):
        """Matrix literals in the YAML are parsed."""
        assert lqr_config.state_cost_diagonal == (1.0, 1.0, 1000.0, 10.0)
        np.testing.assert_array_equal(lqr_config.control_cost_matrix, [[1e6]])
        assert lqr_config.riccati_step_s == pytest.approx(0.00851516)

    def test_weights_override(self):
        """Command-line style overrides replace Q and R."""
        config = LQRConfig().with_weights('2 2 20 2', '5')
        np.testing.assert_array_equal(
            config.state_cost_matrix, np.diag([2.0, 2.0, 20.0, 2.0])
        )
        np.testing.assert_array_equal(config.control_cost_matrix, [[5.0]])

    @pytest.mark.parametrize('diagonal', ['1 1 1', '1 -1 1 1', '1 1 x 1'])
    def test_invalid_state_cost_rejected(self, diagonal):
        """Q needs four non-negative numbers."""
        with pytest.raises(ConfigurationError):
            LQRConfig().with_weights(state_cost_diagonal=diagonal)

    @pytest.mark.parametrize('control_cost', ['0', '-1', '1 2; 3 4', '1 0; 0 -1'])
    def test_invalid_control_cost_rejected(self, control_cost):
        """R must be symmetric positive definite."""
        with pytest.raises(ConfigurationError):
            LQRConfig().with_weights(control_cost=control_cost)

    def test_nonpositive_step_rejected(self):
        with pytest.raises(ConfigurationError):
            LQRConfig(riccati_step_s=0.0)


class TestCostMatrices:
    """Tests for Q and R builders."""

    def test_state_cost_diagonal(self):
        np.testing.assert_array_equal(
            build_state_cost_matrix(np.array([1.0, 1.0, 1000.0, 10.0])),
            np.diag([1.0, 1.0, 1000.0, 10.0]),
        )

    def test_scalar_control_cost(self):
        np.testing.assert_array_equal(build_control_cost_matrix(1e6), [[1e6]])

    def test_control_cost_must_be_positive_definite(self):
        with pytest.raises(ConfigurationError):
            build_control_cost_matrix(np.zeros((1, 1)))


class TestRiccatiController:
    """Tests for RiccatiController."""

    def test_matches_discrete_are(self, model, lqr_config, solved):
        """The iterated solution matches scipy's DARE at the same step."""
        discrete = discretize_linear_dynamics(
            model.state_matrix, model.control_matrix, lqr_config.riccati_step_s
        )
        A = discrete.state_matrix_discrete
        B = discrete.control_matrix_discrete
        Q = lqr_config.state_cost_matrix
        R = lqr_config.control_cost_matrix

        P = scipy.linalg.solve_discrete_are(A, B, Q, R)
        K = np.linalg.solve(R + B.T @ P @ B, B.T @ P @ A)

        np.testing.assert_allclose(
            solved.cost_to_go, P, rtol=1e-5, atol=1e-7 * np.max(np.abs(P))
        )
        np.testing.assert_allclose(
            solved.gain, K, rtol=1e-5, atol=1e-7 * np.max(np.abs(K))
        )

    def test_residual_below_tolerance(self, lqr_config, solved):
        """The final Riccati step changed P by less than the tolerance."""
        scale = max(1.0, np.max(np.abs(solved.cost_to_go)))
        assert solved.residual <= lqr_config.riccati_tolerance * scale
        assert 0 < solved.iterations <= lqr_config.riccati_max_iterations

    def test_closed_loop_stable(self, model, lqr_config, solved):
        """A − BK is stable in discrete and continuous time."""
        discrete = discretize_linear_dynamics(
            model.state_matrix, model.control_matrix, lqr_config.riccati_step_s
        )
        closed_loop = (
            discrete.state_matrix_discrete
            - discrete.control_matrix_discrete @ solved.gain
        )
        assert np.max(np.abs(np.linalg.eigvals(closed_loop))) < 1.0

        continuous = model.state_matrix - model.control_matrix @ solved.gain
        assert np.max(np.linalg.eigvals(continuous).real) < 0.0

    def test_gain_shape_and_read_only(self, solved):
        """K is 1x4 and cannot be modified."""
        assert solved.gain.shape == (1, 4)
        with pytest.raises(ValueError):
            solved.gain[0, 0] = 0.0

    def test_control_law(self, solved):
        """u = −K·x."""
        state = np.array([0.01, 0.0, 0.0, 0.0])
        assert solved.control(state) == pytest.approx(-solved.gain[0, 0] * 0.01)

    def test_cost_to_go_symmetric_positive_definite(self, solved):
        P = solved.cost_to_go
        np.testing.assert_allclose(P, P.T)
        assert np.min(np.linalg.eigvalsh(P)) > 0.0

    def test_signals_gain_ready(self, model, lqr_config):
        """The readiness signal is set once the gain is stored."""
        ready = threading.Event()
        controller = RiccatiController(lqr_config)

        controller.solve(model, gain_ready=ready)

        assert ready.is_set()
        assert controller.is_solved

    def test_gain_before_solve_rejected(self, lqr_config):
        with pytest.raises(RuntimeError):
            RiccatiController(lqr_config).gain

    def test_iteration_limit_reached(self, model, lqr_config):
        """Too few iterations raise ConvergenceError and do not signal."""
        ready = threading.Event()
        config = lqr_config.with_solver_settings(riccati_max_iterations=3)

        with pytest.raises(ConvergenceError):
            RiccatiController(config).solve(model, gain_ready=ready)
        assert not ready.is_set()


class TestIterateRiccati:
    """Tests for iterate_riccati."""

    def test_scalar_system(self):
        """Scalar DARE has a closed-form solution."""
        a, b, q, r = 1.2, 1.0, 1.0, 1.0
        result = iterate_riccati(
            np.array([[a]]), np.array([[b]]), np.array([[q]]), np.array([[r]]),
            tolerance=1e-12, max_iterations=10000,
        )
        # p = a²p − a²b²p²/(r + b²p) + q
        p = result.cost_to_go[0, 0]
        assert p == pytest.approx(a * a * p - (a * b * p) ** 2 / (r + b * b * p) + q)
        assert abs(a - b * result.gain[0, 0]) < 1.0

    def test_unstabilizable_system_diverges(self):
        """An unstable mode the input cannot reach never converges."""
        with pytest.raises(ConvergenceError):
            iterate_riccati(
                np.array([[1.5, 0.0], [0.0, 0.5]]),
                np.array([[0.0], [1.0]]),
                np.eye(2),
                np.eye(1),
                tolerance=1e-10,
                max_iterations=5000,
            )
