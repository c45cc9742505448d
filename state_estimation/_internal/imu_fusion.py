"""IMU and encoder conversion mathematics.

The board's IMU is mounted with its Y axis along the body when upright
and its Z axis pointing forward, so the tilt angle seen by the
accelerometer is

    theta_deg = -atan2(a_z, a_y) · 180/π

theta = 0 when the body is upright over the axle. Gyro X measures the tilt
rate in deg/s.
"""

import math

RADIANS_PER_DEGREE = math.pi / 180.0
DEGREES_PER_RADIAN = 180.0 / math.pi


def tilt_from_accelerometer_deg(
    acceleration_y: float,
    acceleration_z: float,
) -> float:
    """Compute the body tilt angle from two accelerometer axes.

    Only valid when the robot is quasi-static; the estimate is noisy but
    does not drift.

    Args:
        acceleration_y: Accelerometer Y reading (along the body)
        acceleration_z: Accelerometer Z reading (forward)

    Returns:
        Tilt angle in degrees
    """
    return -math.atan2(acceleration_z, acceleration_y) * DEGREES_PER_RADIAN


def encoder_ticks_to_rad(ticks: float, encoder_resolution_ppr: int) -> float:
    """Convert quadrature encoder ticks to wheel angle in radians."""
    return ticks * 2.0 * math.pi / (4.0 * encoder_resolution_ppr)


def encoder_rate_radps(
    delta_ticks: float,
    encoder_resolution_ppr: int,
    timestep_s: float,
) -> float:
    """Wheel angular rate from one cycle's tick delta.

    Returns 0 for a zero timestep rather than dividing by it.
    """
    if timestep_s == 0.0:
        return 0.0
    return encoder_ticks_to_rad(delta_ticks, encoder_resolution_ppr) / timestep_s


def feedback_to_voltage(
    motor_feedback: float,
    command_limit: int,
    full_scale_voltage_v: float,
) -> float:
    """Applied motor voltage recovered from the motor-speed feedback field.

    The board echoes the last command with inverted sign in command
    counts, so the applied voltage is -feedback · V_full / limit.
    """
    return -motor_feedback * full_scale_voltage_v / command_limit
