"""LQR configuration parameters.

Single source of truth for controller weights and Riccati solver settings.
See config/lqr_params.yaml for parameter values.
"""

from dataclasses import dataclass, replace
from typing import Tuple, Union

import numpy as np

from robot_dynamics.matrix_literal import as_matrix, as_vector
from robot_dynamics._internal.validation import (
    load_yaml_mapping,
    validate_positive,
    validate_positive_integer,
)
from lqr._internal.validation import (
    validate_state_cost_diagonal,
    validate_control_cost,
)

DEFAULT_STATE_COST_DIAGONAL = (1.0, 1.0, 1000.0, 10.0)
DEFAULT_CONTROL_COST = ((1000000.0,),)
DEFAULT_RICCATI_STEP_S = 0.00851516


@dataclass(frozen=True)
class LQRConfig:
    """Configuration parameters for the LQR controller.

    All parameters immutable after construction (frozen=True).

    Attributes:
        state_cost_diagonal: Q matrix diagonal over [theta, dtheta, phi, dphi]
        control_cost: R matrix, row-major (1x1 for the voltage input)
        riccati_step_s: Step L of the Riccati iteration (discretization period)
        riccati_tolerance: Relative residual at which the iteration stops
        riccati_max_iterations: Iteration limit before ConvergenceError
    """

    state_cost_diagonal: Tuple[float, ...] = DEFAULT_STATE_COST_DIAGONAL
    control_cost: Tuple[Tuple[float, ...], ...] = DEFAULT_CONTROL_COST
    riccati_step_s: float = DEFAULT_RICCATI_STEP_S
    riccati_tolerance: float = 1e-10
    riccati_max_iterations: int = 200000

    def __post_init__(self) -> None:
        """Validate parameters satisfy constraints."""
        validate_state_cost_diagonal(np.array(self.state_cost_diagonal, dtype=float))
        validate_control_cost(self.control_cost_matrix)
        validate_positive(self.riccati_step_s, 'riccati_step_s')
        validate_positive(self.riccati_tolerance, 'riccati_tolerance')
        validate_positive_integer(self.riccati_max_iterations, 'riccati_max_iterations')

    @classmethod
    def from_yaml(cls, yaml_path: str) -> 'LQRConfig':
        """Load configuration from YAML file.

        Cost entries may be matrix literals (``"1 1 1000 10"``), numbers
        or lists.

        Raises:
            FileNotFoundError: If YAML file does not exist
            ConfigurationError: If parameters are invalid
        """
        config = load_yaml_mapping(yaml_path)

        base = cls()
        return base.with_weights(
            state_cost_diagonal=config.get('state_cost_diagonal'),
            control_cost=config.get('control_cost'),
        ).with_solver_settings(
            riccati_step_s=config.get('riccati_step_s', base.riccati_step_s),
            riccati_tolerance=config.get('riccati_tolerance', base.riccati_tolerance),
            riccati_max_iterations=config.get(
                'riccati_max_iterations', base.riccati_max_iterations
            ),
        )

    def with_weights(
        self,
        state_cost_diagonal: Union[str, list, tuple, np.ndarray, None] = None,
        control_cost: Union[str, float, list, tuple, np.ndarray, None] = None,
    ) -> 'LQRConfig':
        """Copy with overridden Q diagonal and/or R (e.g. from CLI flags).

        Raises:
            ConfigurationError: If a weight is malformed
        """
        changes = {}
        if state_cost_diagonal is not None:
            changes['state_cost_diagonal'] = tuple(
                as_vector(state_cost_diagonal, 'state_cost_diagonal').tolist()
            )
        if control_cost is not None:
            changes['control_cost'] = tuple(
                tuple(row) for row in as_matrix(control_cost, 'control_cost').tolist()
            )
        return replace(self, **changes)

    def with_solver_settings(self, **settings) -> 'LQRConfig':
        """Copy with overridden Riccati step, tolerance or iteration limit."""
        return replace(self, **settings)

    @property
    def state_cost_matrix(self) -> np.ndarray:
        """Diagonal state cost matrix Q (4, 4)."""
        return np.diag(np.array(self.state_cost_diagonal, dtype=float))

    @property
    def control_cost_matrix(self) -> np.ndarray:
        """Control cost matrix R (m, m)."""
        return np.array(self.control_cost, dtype=float)
