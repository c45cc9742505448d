"""Linear Kalman filter.

Generic discrete-time estimator used twice in the control loop: a 2-state
attitude filter (tilt, gyro bias) and a 4-state full-body filter. The
filter alternates two operations once per cycle:

    Predict: x' = A·x + B·u
             P' = A·P·Aᵗ + U
    Update:  ν = y - C·x'
             S = C·P'·Cᵗ + W
             K = P'·Cᵗ·S⁻¹
             x = x' + K·ν
             P = (I - K·C)·P'

If S cannot be inverted the update raises NumericalError and the filter
rolls back to the (x, P) it held before the cycle's predict, so no NaN
ever reaches the controller.
"""

from typing import Optional, Union

import numpy as np

from robot_dynamics.errors import ConfigurationError, NumericalError
from robot_dynamics.discretization import discretize_linear_dynamics

# Innovation covariances with a larger condition number are treated as singular
MAX_INNOVATION_CONDITION_NUMBER = 1e12
MIN_INNOVATION_SINGULAR_VALUE = 1e-15

ArrayLike = Union[np.ndarray, list, float]


def _as_column(value: ArrayLike, size: int, name: str) -> np.ndarray:
    column = np.asarray(value, dtype=float).reshape(-1)
    if column.shape != (size,):
        raise ValueError(f"{name} must have {size} entries, got shape {column.shape}")
    return column


class LinearKalmanFilter:
    """Discrete-time linear Kalman filter with explicit predict/update.

    Attributes:
        state: Current state estimate x (n,)
        covariance: Current estimate covariance P (n, n)
    """

    def __init__(
        self,
        state_matrix: np.ndarray,
        control_matrix: np.ndarray,
        observation_matrix: np.ndarray,
        process_noise: np.ndarray,
        observation_noise: np.ndarray,
        initial_state: ArrayLike,
        initial_covariance: np.ndarray,
        name: str = 'kalman',
    ) -> None:
        """Initialize the filter.

        Args:
            state_matrix: Discrete transition matrix A (n, n)
            control_matrix: Discrete input matrix B (n, m)
            observation_matrix: Observation matrix C (p, n)
            process_noise: Process noise covariance U (n, n)
            observation_noise: Observation noise covariance W (p, p)
            initial_state: Initial estimate x0 (n,)
            initial_covariance: Initial covariance P0 (n, n)
            name: Label used in error messages and logs

        Raises:
            ConfigurationError: If matrix shapes are inconsistent
        """
        self._name = name
        self._A = np.atleast_2d(np.asarray(state_matrix, dtype=float))
        n = self._A.shape[0]
        if self._A.shape != (n, n):
            raise ConfigurationError(f"{name}: A must be square, got {self._A.shape}")

        self._B = np.asarray(control_matrix, dtype=float).reshape(n, -1)
        self._C = np.atleast_2d(np.asarray(observation_matrix, dtype=float))
        if self._C.shape[1] != n:
            raise ConfigurationError(
                f"{name}: C must have {n} columns, got {self._C.shape}"
            )
        p = self._C.shape[0]

        self._U = np.atleast_2d(np.asarray(process_noise, dtype=float))
        self._W = np.atleast_2d(np.asarray(observation_noise, dtype=float))
        covariance = np.atleast_2d(np.asarray(initial_covariance, dtype=float))
        for matrix, shape, label in (
            (self._U, (n, n), 'U'),
            (self._W, (p, p), 'W'),
            (covariance, (n, n), 'P0'),
        ):
            if matrix.shape != shape:
                raise ConfigurationError(
                    f"{name}: {label} must have shape {shape}, got {matrix.shape}"
                )

        self._x = _as_column(initial_state, n, f"{name}: x0")
        self._P = covariance.copy()
        self._identity = np.eye(n)

        # (x, P) before the pending predict; None when no predict is pending
        self._checkpoint: Optional[tuple] = None

    @classmethod
    def from_continuous(
        cls,
        state_matrix: np.ndarray,
        control_matrix: np.ndarray,
        observation_matrix: np.ndarray,
        input_noise_variance: ArrayLike,
        observation_noise: np.ndarray,
        initial_state: ArrayLike,
        initial_covariance: np.ndarray,
        sampling_period_s: float,
        name: str = 'kalman',
    ) -> 'LinearKalmanFilter':
        """Build a filter from a continuous model x_dot = A·x + B·u.

        The model is discretized with zero-order hold at the sampling
        period. Process noise is the input noise pushed through the
        discrete input matrix: U = B_d·Σ_u·B_dᵗ.

        Args:
            input_noise_variance: Variance of the input u (scalar or (m, m))
            sampling_period_s: Fixed nominal timestep
        """
        discrete = discretize_linear_dynamics(
            state_matrix, control_matrix, sampling_period_s
        )
        return cls(
            state_matrix=discrete.state_matrix_discrete,
            control_matrix=discrete.control_matrix_discrete,
            observation_matrix=observation_matrix,
            process_noise=discrete.input_noise_covariance(input_noise_variance),
            observation_noise=observation_noise,
            initial_state=initial_state,
            initial_covariance=initial_covariance,
            name=name,
        )

    def predict(self, control: ArrayLike) -> np.ndarray:
        """Propagate the estimate one step with input u.

        Args:
            control: Input vector u (m,)

        Returns:
            Predicted state x'
        """
        u = _as_column(control, self._B.shape[1], f"{self._name}: u")
        if self._checkpoint is None:
            self._checkpoint = (self._x.copy(), self._P.copy())

        self._x = self._A @ self._x + self._B @ u
        self._P = self._A @ self._P @ self._A.T + self._U
        return self._x.copy()

    def update(self, measurement: ArrayLike) -> np.ndarray:
        """Correct the predicted estimate with measurement y.

        Args:
            measurement: Measurement vector y (p,)

        Returns:
            Updated state estimate x

        Raises:
            NumericalError: If the innovation covariance is singular or the
                result is non-finite. The filter is restored to its state
                before the last predict.
        """
        if self._checkpoint is None:
            raise RuntimeError(f"{self._name}: update() called without predict()")

        y = _as_column(measurement, self._C.shape[0], f"{self._name}: y")
        try:
            x, P = self._corrected(y)
        except NumericalError:
            self._x, self._P = self._checkpoint
            self._checkpoint = None
            raise

        self._x, self._P = x, P
        self._checkpoint = None
        return self._x.copy()

    def step(self, control: ArrayLike, measurement: ArrayLike) -> np.ndarray:
        """Run predict then update for one cycle."""
        self.predict(control)
        return self.update(measurement)

    def _corrected(self, y: np.ndarray) -> tuple:
        C = self._C
        innovation = y - C @ self._x
        innovation_covariance = C @ self._P @ C.T + self._W

        if not np.all(np.isfinite(innovation_covariance)) or not np.all(np.isfinite(innovation)):
            raise NumericalError(f"{self._name}: non-finite innovation")
        singular_values = np.linalg.svd(innovation_covariance, compute_uv=False)
        smallest_allowed = max(
            MIN_INNOVATION_SINGULAR_VALUE,
            singular_values[0] / MAX_INNOVATION_CONDITION_NUMBER,
        )
        if singular_values[-1] <= smallest_allowed:
            raise NumericalError(
                f"{self._name}: innovation covariance is singular "
                f"(S = {innovation_covariance.tolist()})"
            )

        try:
            gain = self._P @ C.T @ np.linalg.inv(innovation_covariance)
        except np.linalg.LinAlgError as error:
            raise NumericalError(f"{self._name}: cannot invert S") from error

        x = self._x + gain @ innovation
        P = (self._identity - gain @ C) @ self._P
        P = 0.5 * (P + P.T)

        if not (np.all(np.isfinite(x)) and np.all(np.isfinite(P))):
            raise NumericalError(f"{self._name}: non-finite estimate after update")
        return x, P

    @property
    def name(self) -> str:
        """Filter label."""
        return self._name

    @property
    def state(self) -> np.ndarray:
        """Current state estimate x (copy)."""
        return self._x.copy()

    @property
    def covariance(self) -> np.ndarray:
        """Current estimate covariance P (copy)."""
        return self._P.copy()

    @property
    def state_matrix(self) -> np.ndarray:
        """Discrete transition matrix A."""
        return self._A.copy()

    @property
    def control_matrix(self) -> np.ndarray:
        """Discrete input matrix B."""
        return self._B.copy()

    @property
    def observation_matrix(self) -> np.ndarray:
        """Observation matrix C."""
        return self._C.copy()

    @property
    def process_noise(self) -> np.ndarray:
        """Process noise covariance U."""
        return self._U.copy()

    @property
    def observation_noise(self) -> np.ndarray:
        """Observation noise covariance W."""
        return self._W.copy()
