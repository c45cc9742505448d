"""Physical parameters for the self-balancing robot.

Single source of truth for all robot physical properties. The model is
the planar wheeled inverted pendulum: half of the robot (one wheel plus
half of the body) is modeled, so masses and inertias are per side.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict

from robot_dynamics.errors import ConfigurationError
from robot_dynamics._internal.validation import (
    load_yaml_mapping,
    validate_positive,
    validate_non_negative,
    validate_positive_integer,
)


def bifilar_pendulum_inertia_kg_m2(
    mass_kg: float,
    suspension_distance_a_m: float,
    suspension_distance_b_m: float,
    wire_length_m: float,
    period_s: float,
    gravity_mps2: float,
) -> float:
    """Moment of inertia measured with a bifilar (two-wire) pendulum.

    I = m·g·a·b·T² / (4·π²·L)

    Args:
        mass_kg: Suspended mass
        suspension_distance_a_m: Distance from the rotation axis to the first wire
        suspension_distance_b_m: Distance from the rotation axis to the second wire
        wire_length_m: Wire length L
        period_s: Torsional oscillation period T
        gravity_mps2: Gravitational acceleration

    Returns:
        Moment of inertia about the rotation axis
    """
    for value, name in (
        (mass_kg, 'mass_kg'),
        (suspension_distance_a_m, 'suspension_distance_a_m'),
        (suspension_distance_b_m, 'suspension_distance_b_m'),
        (wire_length_m, 'wire_length_m'),
        (period_s, 'period_s'),
        (gravity_mps2, 'gravity_mps2'),
    ):
        validate_positive(value, name)

    return (
        mass_kg * gravity_mps2 * suspension_distance_a_m * suspension_distance_b_m
        * period_s ** 2 / (4.0 * math.pi ** 2 * wire_length_m)
    )


@dataclass(frozen=True)
class PhysicalConstants:
    """Physical constants of the two-wheeled inverted pendulum.

    All parameters immutable after construction (frozen=True). Units are
    encoded in parameter names.

    Attributes:
        wheel_mass_kg: Mass of one wheel (tire + hub)
        wheel_radius_m: Wheel radius
        half_mass_kg: Half of the whole robot mass
        half_inertia_kg_m2: Half of the whole robot inertia about its center of mass
        wheel_to_com_distance_m: Distance between wheel axle and whole-robot COM
        com_to_body_distance_m: Distance between whole-robot COM and body COM
        gear_ratio: Motor to wheel reduction
        motor_resistance_ohm: Armature resistance R_m
        torque_constant_nm_per_a: Motor torque constant k_t
        back_emf_constant_v_s_per_rad: Back electromotive force constant k_b
        rotor_mass_kg: Motor rotor mass
        rotor_radius_m: Motor rotor radius
        motor_voltage_offset_v: Effective voltage lost to static friction
        encoder_resolution_ppr: Encoder pulses per revolution (x4 quadrature)
        gravity_mps2: Gravitational acceleration
    """

    wheel_mass_kg: float
    wheel_radius_m: float
    half_mass_kg: float
    half_inertia_kg_m2: float
    wheel_to_com_distance_m: float
    com_to_body_distance_m: float
    gear_ratio: float
    motor_resistance_ohm: float
    torque_constant_nm_per_a: float
    back_emf_constant_v_s_per_rad: float
    rotor_mass_kg: float
    rotor_radius_m: float
    motor_voltage_offset_v: float
    encoder_resolution_ppr: int
    gravity_mps2: float = 9.8

    def __post_init__(self):
        """Validate parameters satisfy physical constraints."""
        validate_positive(self.wheel_mass_kg, 'wheel_mass_kg')
        validate_positive(self.wheel_radius_m, 'wheel_radius_m')
        validate_positive(self.half_mass_kg, 'half_mass_kg')
        validate_non_negative(self.half_inertia_kg_m2, 'half_inertia_kg_m2')
        validate_positive(self.wheel_to_com_distance_m, 'wheel_to_com_distance_m')
        validate_non_negative(self.com_to_body_distance_m, 'com_to_body_distance_m')
        validate_positive(self.gear_ratio, 'gear_ratio')
        validate_positive(self.motor_resistance_ohm, 'motor_resistance_ohm')
        validate_positive(self.torque_constant_nm_per_a, 'torque_constant_nm_per_a')
        validate_positive(
            self.back_emf_constant_v_s_per_rad, 'back_emf_constant_v_s_per_rad'
        )
        validate_non_negative(self.rotor_mass_kg, 'rotor_mass_kg')
        validate_non_negative(self.rotor_radius_m, 'rotor_radius_m')
        validate_non_negative(self.motor_voltage_offset_v, 'motor_voltage_offset_v')
        validate_positive_integer(self.encoder_resolution_ppr, 'encoder_resolution_ppr')
        validate_positive(self.gravity_mps2, 'gravity_mps2')

        if self.wheel_mass_kg >= self.half_mass_kg:
            raise ConfigurationError(
                f"wheel_mass_kg ({self.wheel_mass_kg}) must be smaller than "
                f"half_mass_kg ({self.half_mass_kg})"
            )

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> 'PhysicalConstants':
        """Build constants from a mapping.

        ``half_inertia_kg_m2`` may be replaced by a ``bifilar_measurement``
        block with the keys of bifilar_pendulum_inertia_kg_m2 (without
        mass and gravity, which come from the robot itself).

        Raises:
            ConfigurationError: If required parameters are missing or invalid
        """
        config = dict(config)
        measurement = config.pop('bifilar_measurement', None)
        if measurement is not None:
            if 'half_inertia_kg_m2' in config:
                raise ConfigurationError(
                    "Give either half_inertia_kg_m2 or bifilar_measurement, not both"
                )
            try:
                config['half_inertia_kg_m2'] = bifilar_pendulum_inertia_kg_m2(
                    mass_kg=config['half_mass_kg'],
                    gravity_mps2=config.get('gravity_mps2', 9.8),
                    **measurement,
                )
            except (KeyError, TypeError) as error:
                raise ConfigurationError(
                    f"Invalid bifilar_measurement block: {error}"
                ) from error

        try:
            return cls(**config)
        except TypeError as error:
            raise ConfigurationError(f"Invalid robot parameters: {error}") from error

    @classmethod
    def from_yaml(cls, yaml_path: str) -> 'PhysicalConstants':
        """Load parameters from YAML configuration file.

        Args:
            yaml_path: Path to YAML file containing robot parameters

        Returns:
            PhysicalConstants instance

        Raises:
            FileNotFoundError: If YAML file does not exist
            ConfigurationError: If required parameters missing or invalid
        """
        config = load_yaml_mapping(yaml_path, allow_empty=False)
        return cls.from_dict(config)

    @property
    def wheel_inertia_kg_m2(self) -> float:
        """Wheel inertia about its axle, assuming a uniform disc."""
        return 0.5 * self.wheel_mass_kg * self.wheel_radius_m ** 2

    @property
    def pendulum_mass_kg(self) -> float:
        """Body (pendulum) mass per side: half robot mass minus one wheel."""
        return self.half_mass_kg - self.wheel_mass_kg

    @property
    def pendulum_length_m(self) -> float:
        """Distance from wheel axle to body center of mass."""
        return self.wheel_to_com_distance_m + self.com_to_body_distance_m

    @property
    def pendulum_inertia_kg_m2(self) -> float:
        """Body inertia about the wheel axle, per side.

        Parallel-axis shift of the whole-robot inertia to the axle, minus
        the wheel's own inertia, halved.
        """
        return (
            self.half_inertia_kg_m2
            + self.half_mass_kg * self.wheel_to_com_distance_m ** 2
            - self.wheel_inertia_kg_m2
        ) / 2

    @property
    def rotor_inertia_kg_m2(self) -> float:
        """Motor rotor inertia, assuming a uniform cylinder."""
        return 0.5 * self.rotor_mass_kg * self.rotor_radius_m ** 2

    @property
    def encoder_radians_per_tick(self) -> float:
        """Wheel angle per quadrature encoder tick."""
        return 2.0 * math.pi / (4.0 * self.encoder_resolution_ppr)


# Module-level constants for state/control dimensions
STATE_DIMENSION = 4  # [theta, dtheta, phi, dphi]
CONTROL_DIMENSION = 1  # [voltage]

# State vector indices
PITCH_INDEX = 0
PITCH_RATE_INDEX = 1
WHEEL_ANGLE_INDEX = 2
WHEEL_RATE_INDEX = 3
