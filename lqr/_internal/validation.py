"""Validation utilities for the LQR module.

Provides input validation for cost weights and solver settings.
"""

import numpy as np

from robot_dynamics.errors import ConfigurationError
from robot_dynamics.parameters import STATE_DIMENSION


def validate_state_cost_diagonal(diagonal: np.ndarray) -> None:
    """Validate state cost diagonal elements.

    Args:
        diagonal: Array of diagonal elements

    Raises:
        ConfigurationError: If diagonal has wrong shape or negative elements
    """
    if diagonal.shape != (STATE_DIMENSION,):
        raise ConfigurationError(
            f"state_cost_diagonal must have shape ({STATE_DIMENSION},), "
            f"got {diagonal.shape}"
        )
    if not np.all(np.isfinite(diagonal)):
        raise ConfigurationError("All state cost diagonal elements must be finite")
    if not np.all(diagonal >= 0):
        raise ConfigurationError("All state cost diagonal elements must be non-negative")


def validate_control_cost(control_cost: np.ndarray) -> None:
    """Validate the control cost matrix R.

    Args:
        control_cost: Square input cost matrix

    Raises:
        ConfigurationError: If R is not square, symmetric and positive definite
    """
    if control_cost.ndim != 2 or control_cost.shape[0] != control_cost.shape[1]:
        raise ConfigurationError(
            f"control_cost must be square, got shape {control_cost.shape}"
        )
    if not np.all(np.isfinite(control_cost)):
        raise ConfigurationError("control_cost must be finite")
    if not np.allclose(control_cost, control_cost.T):
        raise ConfigurationError("control_cost must be symmetric")
    if np.min(np.linalg.eigvalsh(control_cost)) <= 0:
        raise ConfigurationError("control_cost must be positive definite")
