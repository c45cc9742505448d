"""Infinite-horizon LQR gain by Riccati iteration.

The continuous model is discretized with zero-order hold at the iteration
step L and the discrete Riccati difference equation

    P ← AᵗPA − AᵗPB(R + BᵗPB)⁻¹BᵗPA + Q

is iterated from P = Q until successive iterates agree. The feedback gain
is then

    K = (R + BᵗPB)⁻¹BᵗPA,   u = −K·x
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional, Protocol

import numpy as np

from robot_dynamics.discretization import discretize_linear_dynamics
from robot_dynamics.errors import ConvergenceError
from robot_dynamics.linearization import DynamicsModel
from robot_dynamics.matrix_literal import format_matrix_literal
from lqr.config import LQRConfig
from lqr.cost_matrices import check_cost_dimensions

logger = logging.getLogger(__name__)


class GainReadySignal(Protocol):
    """Anything the solver can notify once the gain exists."""

    def set(self) -> None:
        ...


@dataclass(frozen=True)
class LQRGain:
    """Solved feedback gain. Read-only once computed.

    Attributes:
        gain: K matrix (CONTROL_DIMENSION, STATE_DIMENSION)
        cost_to_go: Converged Riccati solution P (STATE_DIMENSION, STATE_DIMENSION)
        iterations: Riccati steps taken
        residual: Final max|P_next − P|
        riccati_step_s: Discretization step L the gain was solved at
        solve_time_s: Wall-clock solve time in seconds
    """

    gain: np.ndarray
    cost_to_go: np.ndarray
    iterations: int
    residual: float
    riccati_step_s: float
    solve_time_s: float = 0.0

    def __post_init__(self) -> None:
        self.gain.setflags(write=False)
        self.cost_to_go.setflags(write=False)

    def control(self, state: np.ndarray) -> float:
        """Control voltage u = −K·x for a single-input system."""
        return float(-(self.gain @ np.asarray(state, dtype=float).reshape(-1))[0])


def iterate_riccati(
    state_matrix: np.ndarray,
    control_matrix: np.ndarray,
    state_cost: np.ndarray,
    control_cost: np.ndarray,
    tolerance: float,
    max_iterations: int,
) -> LQRGain:
    """Iterate the discrete Riccati difference equation to its fixed point.

    Args:
        state_matrix: Discrete A matrix (n, n)
        control_matrix: Discrete B matrix (n, m)
        state_cost: Q (n, n)
        control_cost: R (m, m)
        tolerance: Relative residual bound
        max_iterations: Maximum number of Riccati steps

    Returns:
        LQRGain with riccati_step_s left at 0.0

    Raises:
        ConvergenceError: If the iteration limit is reached or values become non-finite
    """
    A = state_matrix
    B = control_matrix
    At = A.T
    Bt = B.T

    P = state_cost.copy()
    residual = np.inf

    for iteration in range(1, max_iterations + 1):
        AtPB = At @ P @ B
        innovation = control_cost + Bt @ P @ B
        P_next = At @ P @ A - AtPB @ np.linalg.solve(innovation, AtPB.T) + state_cost
        P_next = 0.5 * (P_next + P_next.T)

        if not np.all(np.isfinite(P_next)):
            raise ConvergenceError(
                f"Riccati iteration produced non-finite values at step {iteration}"
            )

        residual = float(np.max(np.abs(P_next - P)))
        P = P_next
        if residual <= tolerance * max(1.0, float(np.max(np.abs(P)))):
            break
    else:
        raise ConvergenceError(
            f"Riccati iteration did not converge in {max_iterations} steps "
            f"(residual {residual:.3e})"
        )

    gain = np.linalg.solve(control_cost + Bt @ P @ B, Bt @ P @ A)
    if not np.all(np.isfinite(gain)):
        raise ConvergenceError("Riccati gain is not finite")

    return LQRGain(
        gain=gain,
        cost_to_go=P,
        iterations=iteration,
        residual=residual,
        riccati_step_s=0.0,
    )


class RiccatiController:
    """Computes the LQR feedback gain for the balancing robot.

    The gain is computed once per controller; callers read it through
    ``gain`` after ``solve`` has returned, or wait on the signal passed to
    ``solve`` when the solve runs on a worker thread.
    """

    def __init__(self, config: LQRConfig) -> None:
        self._config = config
        self._result: Optional[LQRGain] = None

    @property
    def config(self) -> LQRConfig:
        return self._config

    @property
    def gain(self) -> LQRGain:
        """Solved gain.

        Raises:
            RuntimeError: If solve() has not completed
        """
        if self._result is None:
            raise RuntimeError("LQR gain has not been solved yet")
        return self._result

    @property
    def is_solved(self) -> bool:
        return self._result is not None

    def solve(
        self,
        model: DynamicsModel,
        gain_ready: Optional[GainReadySignal] = None,
    ) -> LQRGain:
        """Solve for K and signal readiness.

        Args:
            model: Continuous linear model (A, B)
            gain_ready: Set exactly once after the gain is stored

        Returns:
            Solved LQRGain

        Raises:
            ConfigurationError: If (A, B, Q, R) dimensions disagree
            ConvergenceError: If the iteration fails
        """
        config = self._config
        state_cost = config.state_cost_matrix
        control_cost = config.control_cost_matrix
        check_cost_dimensions(
            model.state_matrix, model.control_matrix, state_cost, control_cost
        )

        start = time.perf_counter()
        discrete = discretize_linear_dynamics(
            model.state_matrix, model.control_matrix, config.riccati_step_s
        )
        solved = iterate_riccati(
            discrete.state_matrix_discrete,
            discrete.control_matrix_discrete,
            state_cost,
            control_cost,
            tolerance=config.riccati_tolerance,
            max_iterations=config.riccati_max_iterations,
        )
        result = LQRGain(
            gain=solved.gain,
            cost_to_go=solved.cost_to_go,
            iterations=solved.iterations,
            residual=solved.residual,
            riccati_step_s=config.riccati_step_s,
            solve_time_s=time.perf_counter() - start,
        )

        self._result = result
        logger.info(
            "LQR gain K = [%s] (%d iterations, %.3f s)",
            format_matrix_literal(result.gain),
            result.iterations,
            result.solve_time_s,
        )
        if gain_ready is not None:
            gain_ready.set()
        return result
