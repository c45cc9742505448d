"""Linearized dynamics of the wheeled inverted pendulum.

Provides A and B matrices for state estimation and LQR design, derived in
closed form from the physical constants.

State: x = [theta, dtheta, phi, dphi]
    theta: body tilt angle (rad), phi: wheel angle (rad)
Input: u = motor voltage (V)

The Lagrangian of the coupled body/wheel system linearized about the
upright pose gives M·[ddtheta, ddphi]ᵗ = [gravity torque, motor torque]
with the 2x2 generalized mass matrix M. Every coefficient of A and B is a
product of an entry of M⁻¹ with a gravity or motor term.
"""

from dataclasses import dataclass

import numpy as np

from robot_dynamics.errors import ConfigurationError
from robot_dynamics.parameters import (
    PhysicalConstants,
    STATE_DIMENSION,
    CONTROL_DIMENSION,
)

# Relative tolerance on det(M) against the magnitude of its products
DETERMINANT_RELATIVE_TOLERANCE = 1e-12


@dataclass(frozen=True)
class MassMatrixInverse:
    """Closed-form inverse of the generalized mass matrix.

    Attributes:
        a11, a12, a21, a22: Entries of M⁻¹
        determinant: det(M)
    """
    a11: float
    a12: float
    a21: float
    a22: float
    determinant: float


@dataclass(frozen=True)
class DynamicsModel:
    """Continuous-time linear model x_dot = A·x + B·u.

    Attributes:
        state_matrix: A matrix (4, 4)
        control_matrix: B matrix (4, 1)
        mass_matrix_inverse: M⁻¹ coefficients the matrices were built from
        constants: Physical constants used for the derivation
    """
    state_matrix: np.ndarray
    control_matrix: np.ndarray
    mass_matrix_inverse: MassMatrixInverse
    constants: PhysicalConstants

    def __post_init__(self):
        """Validate matrix dimensions."""
        if self.state_matrix.shape != (STATE_DIMENSION, STATE_DIMENSION):
            raise ValueError(
                f"State matrix must be ({STATE_DIMENSION}, {STATE_DIMENSION}), "
                f"got {self.state_matrix.shape}"
            )
        if self.control_matrix.shape != (STATE_DIMENSION, CONTROL_DIMENSION):
            raise ValueError(
                f"Control matrix must be ({STATE_DIMENSION}, {CONTROL_DIMENSION}), "
                f"got {self.control_matrix.shape}"
            )


def invert_mass_matrix(
    m11: float, m12: float, m21: float, m22: float
) -> MassMatrixInverse:
    """Invert a 2x2 mass matrix analytically.

    Raises:
        ConfigurationError: If the determinant is numerically zero
    """
    determinant = m11 * m22 - m12 * m21
    scale = max(abs(m11 * m22), abs(m12 * m21))
    if not np.isfinite(determinant) or abs(determinant) <= DETERMINANT_RELATIVE_TOLERANCE * scale:
        raise ConfigurationError(
            f"Generalized mass matrix is singular (det = {determinant:.3e}); "
            f"check the physical parameters"
        )

    return MassMatrixInverse(
        a11=m22 / determinant,
        a12=-m12 / determinant,
        a21=-m21 / determinant,
        a22=m11 / determinant,
        determinant=determinant,
    )


def compute_mass_matrix(constants: PhysicalConstants) -> np.ndarray:
    """Generalized mass matrix of the body/wheel system (2, 2)."""
    wheel_mass = constants.wheel_mass_kg
    pendulum_mass = constants.pendulum_mass_kg
    wheel_radius = constants.wheel_radius_m
    pendulum_length = constants.pendulum_length_m
    rolling_inertia = (wheel_mass + pendulum_mass) * wheel_radius ** 2

    m11 = (
        rolling_inertia
        + 2 * pendulum_mass * wheel_radius * pendulum_length
        + pendulum_mass * pendulum_length ** 2
        + constants.pendulum_inertia_kg_m2
        + constants.wheel_inertia_kg_m2
    )
    m12 = (
        rolling_inertia
        + pendulum_mass * wheel_radius * pendulum_length
        + constants.wheel_inertia_kg_m2
    )
    m22 = (
        rolling_inertia
        + constants.wheel_inertia_kg_m2
        + constants.gear_ratio ** 2 * constants.rotor_inertia_kg_m2
    )
    return np.array([[m11, m12], [m12, m22]])


def build_dynamics_model(constants: PhysicalConstants) -> DynamicsModel:
    """Compute the linearized dynamics A, B from physical constants.

    Args:
        constants: Robot physical constants

    Returns:
        DynamicsModel with A (4, 4), B (4, 1)

    Raises:
        ConfigurationError: If the mass matrix is singular
    """
    mass_matrix = compute_mass_matrix(constants)
    inverse = invert_mass_matrix(
        mass_matrix[0, 0], mass_matrix[0, 1], mass_matrix[1, 0], mass_matrix[1, 1]
    )

    gravity_torque = (
        constants.pendulum_mass_kg * constants.gravity_mps2 * constants.pendulum_length_m
    )
    # Back-EMF damping and voltage-to-torque gain seen at the wheel
    back_emf_damping = (
        constants.gear_ratio ** 2
        * constants.torque_constant_nm_per_a
        * constants.back_emf_constant_v_s_per_rad
        / constants.motor_resistance_ohm
    )
    voltage_torque_gain = (
        constants.gear_ratio
        * constants.torque_constant_nm_per_a
        / constants.motor_resistance_ohm
    )

    state_matrix = np.zeros((STATE_DIMENSION, STATE_DIMENSION))
    state_matrix[0, 1] = 1.0
    state_matrix[1, 0] = inverse.a11 * gravity_torque
    state_matrix[1, 3] = -inverse.a12 * back_emf_damping
    state_matrix[2, 3] = 1.0
    state_matrix[3, 0] = inverse.a21 * gravity_torque
    state_matrix[3, 3] = -inverse.a22 * back_emf_damping

    control_matrix = np.zeros((STATE_DIMENSION, CONTROL_DIMENSION))
    control_matrix[1, 0] = inverse.a12 * voltage_torque_gain
    control_matrix[3, 0] = inverse.a22 * voltage_torque_gain

    return DynamicsModel(
        state_matrix=state_matrix,
        control_matrix=control_matrix,
        mass_matrix_inverse=inverse,
        constants=constants,
    )
