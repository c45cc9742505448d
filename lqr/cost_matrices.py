"""Cost matrix construction for LQR.

Provides functions to build Q and R matrices for the infinite-horizon cost
    J = Σ_k [x_kᵗ Q x_k + u_kᵗ R u_k]
"""

import numpy as np

from robot_dynamics.errors import ConfigurationError
from robot_dynamics.parameters import STATE_DIMENSION
from lqr._internal.validation import (
    validate_state_cost_diagonal,
    validate_control_cost,
)


def build_state_cost_matrix(diagonal: np.ndarray) -> np.ndarray:
    """Build state cost matrix Q from diagonal elements.

    Args:
        diagonal: Array of diagonal elements (STATE_DIMENSION,)

    Returns:
        Diagonal state cost matrix Q (STATE_DIMENSION, STATE_DIMENSION)

    Raises:
        ConfigurationError: If diagonal has wrong shape or negative entries
    """
    diagonal = np.asarray(diagonal, dtype=float).reshape(-1)
    validate_state_cost_diagonal(diagonal)
    return np.diag(diagonal)


def build_control_cost_matrix(control_cost) -> np.ndarray:
    """Build control cost matrix R.

    A scalar becomes a 1x1 matrix; a matrix is checked for positive
    definiteness.

    Args:
        control_cost: Scalar weight or square matrix

    Returns:
        Control cost matrix R (m, m)

    Raises:
        ConfigurationError: If R is not positive definite
    """
    matrix = np.atleast_2d(np.asarray(control_cost, dtype=float))
    validate_control_cost(matrix)
    return matrix


def check_cost_dimensions(
    state_matrix: np.ndarray,
    control_matrix: np.ndarray,
    state_cost: np.ndarray,
    control_cost: np.ndarray,
) -> None:
    """Validate that (A, B, Q, R) describe the same system.

    Raises:
        ConfigurationError: If matrix dimensions are incompatible
    """
    n_states = state_matrix.shape[0]
    n_controls = control_matrix.shape[1]

    if state_matrix.shape != (n_states, n_states):
        raise ConfigurationError(
            f"state_matrix must be square, got shape {state_matrix.shape}"
        )
    if n_states != STATE_DIMENSION:
        raise ConfigurationError(
            f"state_matrix must be ({STATE_DIMENSION}, {STATE_DIMENSION}), "
            f"got {state_matrix.shape}"
        )
    if control_matrix.shape[0] != n_states:
        raise ConfigurationError(
            f"control_matrix row count {control_matrix.shape[0]} "
            f"must match state dimension {n_states}"
        )
    if state_cost.shape != (n_states, n_states):
        raise ConfigurationError(
            f"state_cost shape {state_cost.shape} must match "
            f"({n_states}, {n_states})"
        )
    if control_cost.shape != (n_controls, n_controls):
        raise ConfigurationError(
            f"control_cost shape {control_cost.shape} must match "
            f"({n_controls}, {n_controls})"
        )
