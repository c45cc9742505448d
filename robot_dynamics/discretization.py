"""Zero-order-hold discretization of the linear robot model.

The Kalman filters run at the nominal telemetry period, the Riccati
iteration at its own step and the plant simulator at the telemetry period
again; all three go through discretize_linear_dynamics.
"""

from dataclasses import dataclass

import numpy as np
import scipy.linalg

from robot_dynamics.errors import ConfigurationError
from robot_dynamics._internal.validation import validate_positive, validate_square


@dataclass(frozen=True)
class DiscreteDynamics:
    """Discrete-time model x[k+1] = A_d·x[k] + B_d·u[k].

    Attributes:
        state_matrix_discrete: A_d (n, n)
        control_matrix_discrete: B_d (n, m)
        sampling_period_s: Hold period the matrices were computed for
    """
    state_matrix_discrete: np.ndarray
    control_matrix_discrete: np.ndarray
    sampling_period_s: float

    @property
    def state_dimension(self) -> int:
        return self.state_matrix_discrete.shape[0]

    @property
    def control_dimension(self) -> int:
        return self.control_matrix_discrete.shape[1]

    def propagate(self, state: np.ndarray, control: np.ndarray) -> np.ndarray:
        """One step of the discrete model."""
        control = np.asarray(control, dtype=float).reshape(self.control_dimension)
        return self.state_matrix_discrete @ state + self.control_matrix_discrete @ control

    def input_noise_covariance(self, input_variance) -> np.ndarray:
        """Process covariance B_d·Σ_u·B_dᵗ of a noisy held input.

        Args:
            input_variance: Scalar variance or (m, m) input covariance
        """
        covariance = np.atleast_2d(np.asarray(input_variance, dtype=float))
        if covariance.shape == (1, 1) and self.control_dimension > 1:
            covariance = covariance[0, 0] * np.eye(self.control_dimension)
        if covariance.shape != (self.control_dimension, self.control_dimension):
            raise ConfigurationError(
                f"Input covariance must be {self.control_dimension}x"
                f"{self.control_dimension}, got {covariance.shape}"
            )
        B_d = self.control_matrix_discrete
        return B_d @ covariance @ B_d.T


def discretize_linear_dynamics(
    state_matrix: np.ndarray,
    control_matrix: np.ndarray,
    sampling_period_s: float
) -> DiscreteDynamics:
    """Discretize x_dot = A·x + B·u with a zero-order hold.

    Both matrices come out of one matrix exponential of the augmented
    system, so A_d = exp(A·T) and B_d = ∫₀ᵀ exp(A·τ) dτ · B are exact.
    A 1-D B is taken as a single input column.

    Raises:
        ConfigurationError: If the shapes disagree or T <= 0
    """
    validate_positive(sampling_period_s, 'sampling_period_s')

    A = np.atleast_2d(np.asarray(state_matrix, dtype=float))
    B = np.asarray(control_matrix, dtype=float)
    if B.ndim == 1:
        B = B.reshape(-1, 1)

    validate_square(A, 'state_matrix')
    n = A.shape[0]
    if B.ndim != 2 or B.shape[0] != n:
        raise ConfigurationError(
            f"Control matrix shape {B.shape} incompatible with state matrix shape {A.shape}"
        )
    m = B.shape[1]

    # exp([[A, B], [0, 0]]·T) = [[A_d, B_d], [0, I]]
    augmented = np.zeros((n + m, n + m))
    augmented[:n, :n] = A
    augmented[:n, n:] = B
    exponential = scipy.linalg.expm(augmented * sampling_period_s)

    return DiscreteDynamics(
        state_matrix_discrete=exponential[:n, :n],
        control_matrix_discrete=exponential[:n, n:],
        sampling_period_s=sampling_period_s,
    )
