"""Robot dynamics module for LQR-based self-balancing control.

This module derives the linearized wheeled-inverted-pendulum model in
closed form from the robot's physical constants.

Public API:
    - PhysicalConstants: Physical parameter dataclass
    - DynamicsModel: Continuous linear model dataclass
    - build_dynamics_model: Compute A, B matrices
    - DiscreteDynamics: Discrete system dataclass
    - discretize_linear_dynamics: Convert continuous to discrete
    - parse_matrix_literal / format_matrix_literal: Matrix literal codec
    - error types shared by the whole control stack
"""

from robot_dynamics.errors import (
    BalancerError,
    ConfigurationError,
    ResourceError,
    TransportError,
    InsufficientDataError,
    NumericalError,
    ConvergenceError,
)
from robot_dynamics.parameters import PhysicalConstants
from robot_dynamics.linearization import (
    DynamicsModel,
    MassMatrixInverse,
    build_dynamics_model,
)
from robot_dynamics.discretization import (
    DiscreteDynamics,
    discretize_linear_dynamics
)
from robot_dynamics.matrix_literal import (
    parse_matrix_literal,
    format_matrix_literal,
)

__all__ = [
    'BalancerError',
    'ConfigurationError',
    'ResourceError',
    'TransportError',
    'InsufficientDataError',
    'NumericalError',
    'ConvergenceError',
    'PhysicalConstants',
    'DynamicsModel',
    'MassMatrixInverse',
    'build_dynamics_model',
    'DiscreteDynamics',
    'discretize_linear_dynamics',
    'parse_matrix_literal',
    'format_matrix_literal',
]
