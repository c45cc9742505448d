"""Model-based plant simulation for closed-loop validation.

The simulator plays the robot board: it streams telemetry records and
accepts motor commands over the same interface as the serial link. The
plant is the linearized robot model discretized with zero-order hold at
the sampling period, plus the effects the controller has to live with:

1. Static-friction dead band on the motor voltage
2. Quantized encoder ticks
3. Noisy accelerometer with a fixed mount offset
4. Noisy gyro with a constant bias

The robot is held at rest for the calibration window and released at the
configured initial state when control begins.
"""

import logging
import math
import threading
from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence

import numpy as np

from robot_dynamics.discretization import discretize_linear_dynamics
from robot_dynamics.errors import TransportError
from robot_dynamics.linearization import build_dynamics_model
from robot_dynamics.parameters import (
    PhysicalConstants,
    PITCH_INDEX,
    PITCH_RATE_INDEX,
    STATE_DIMENSION,
    WHEEL_ANGLE_INDEX,
)
from robot_dynamics._internal.validation import (
    validate_non_negative,
    validate_non_negative_integer,
    validate_positive,
)
from state_estimation.measurements import TelemetryRecord
from state_estimation._internal.imu_fusion import DEGREES_PER_RADIAN
from control_pipeline.actuation import ActuatorLimits

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimulationConfig:
    """Configuration for the plant simulator.

    Attributes:
        initial_tilt_rad: Tilt the robot is released at
        rest_records: Records emitted at rest before release (start-up plus calibration)
        accelerometer_noise_deg: Std of the accelerometer tilt angle
        gyro_noise_dps: Std of the gyro rate
        gyro_bias_dps: Constant gyro X bias
        mount_offset_deg: Accelerometer tilt reading when upright
        fall_angle_rad: Tilt beyond which the robot has fallen and the stream ends
        max_records: Records to emit before the stream ends (None: unlimited)
        seed: Random seed for the sensor noise
    """

    initial_tilt_rad: float = 0.03
    rest_records: int = 209
    accelerometer_noise_deg: float = 0.3
    gyro_noise_dps: float = 0.5
    gyro_bias_dps: float = 0.8
    mount_offset_deg: float = 1.5
    fall_angle_rad: float = 0.8
    max_records: Optional[int] = None
    seed: int = 0

    def __post_init__(self) -> None:
        validate_non_negative_integer(self.rest_records, 'rest_records')
        validate_non_negative(self.accelerometer_noise_deg, 'accelerometer_noise_deg')
        validate_non_negative(self.gyro_noise_dps, 'gyro_noise_dps')
        validate_positive(self.fall_angle_rad, 'fall_angle_rad')
        if self.max_records is not None:
            validate_non_negative_integer(self.max_records, 'max_records')


def apply_static_friction(voltage_v: float, friction_offset_v: float) -> float:
    """Voltage that actually drives the motor past the static-friction band."""
    if abs(voltage_v) <= friction_offset_v:
        return 0.0
    return voltage_v - math.copysign(friction_offset_v, voltage_v)


class BalancingPlantSimulator:
    """Simulated robot board implementing the telemetry transport interface.

    Attributes:
        state_history: True state after release, one row per emitted record
        commands: Every command received, in order
    """

    def __init__(
        self,
        constants: PhysicalConstants,
        config: Optional[SimulationConfig] = None,
        sampling_period_s: float = 0.01,
        limits: Optional[ActuatorLimits] = None,
    ) -> None:
        """Initialize the simulator.

        Args:
            constants: Physical constants the plant model is built from
            config: Simulation settings
            sampling_period_s: Time between telemetry records
            limits: Command to voltage conversion of the motor driver
        """
        self._config = config or SimulationConfig()
        self._constants = constants
        self._limits = limits or ActuatorLimits(
            friction_offset_v=constants.motor_voltage_offset_v
        )
        self._ticks_per_rad = 1.0 / constants.encoder_radians_per_tick

        model = build_dynamics_model(constants)
        self._discrete = discretize_linear_dynamics(
            model.state_matrix, model.control_matrix, sampling_period_s
        )

        self._rng = np.random.default_rng(self._config.seed)
        self._state = np.zeros(STATE_DIMENSION)
        self._released = False
        self._fallen = False
        self._closed = False
        self._command = 0
        self._encoder_ticks = 0
        self._records_emitted = 0

        self.state_history: List[np.ndarray] = []
        self.commands: List[int] = []

    def release(self, initial_state: Optional[Sequence[float]] = None) -> None:
        """Let go of the robot at the given state (default: configured tilt)."""
        if initial_state is None:
            initial_state = np.zeros(STATE_DIMENSION)
            initial_state[PITCH_INDEX] = self._config.initial_tilt_rad
        self._state = np.asarray(initial_state, dtype=float).reshape(STATE_DIMENSION).copy()
        self._released = True
        logger.info("Robot released at tilt %.4f rad", self._state[PITCH_INDEX])

    def records(self, stop_event: threading.Event) -> Iterator[TelemetryRecord]:
        """Emit one record per sampling period until stopped, closed or fallen."""
        config = self._config
        while not stop_event.is_set() and not self._closed:
            if config.max_records is not None and self._records_emitted >= config.max_records:
                return

            if not self._released and self._records_emitted >= config.rest_records:
                self.release()

            if self._released:
                self.state_history.append(self._state.copy())
                if abs(self._state[PITCH_INDEX]) > config.fall_angle_rad:
                    self._fallen = True
                    logger.warning(
                        "Robot fell (tilt %.3f rad) after %d records",
                        self._state[PITCH_INDEX], self._records_emitted,
                    )
                    return

            record = self._sense()
            self._records_emitted += 1
            yield record

            if self._released:
                self._advance()

    def send_command(self, command: int) -> None:
        """Latch a motor command; it is applied until the next command.

        Raises:
            TransportError: If the simulator is closed or the command is out of range
        """
        if self._closed:
            raise TransportError("Simulator is closed")
        if abs(command) > self._limits.command_limit:
            raise TransportError(
                f"Command {command} outside [-{self._limits.command_limit}, "
                f"{self._limits.command_limit}]"
            )
        self._command = int(command)
        self.commands.append(self._command)

    def close(self) -> None:
        self._closed = True

    def _advance(self) -> None:
        voltage = self._command / self._limits.counts_per_volt
        effective = apply_static_friction(voltage, self._limits.friction_offset_v)
        self._state = self._discrete.propagate(self._state, effective)

    def _sense(self) -> TelemetryRecord:
        config = self._config
        rng = self._rng

        tilt_rad = math.radians(
            self._state[PITCH_INDEX] * DEGREES_PER_RADIAN
            + config.mount_offset_deg
            + rng.normal(0.0, config.accelerometer_noise_deg)
        )
        gyro_rate_dps = (
            self._state[PITCH_RATE_INDEX] * DEGREES_PER_RADIAN
            + config.gyro_bias_dps
            + rng.normal(0.0, config.gyro_noise_dps)
        )

        encoder_ticks = math.floor(self._state[WHEEL_ANGLE_INDEX] * self._ticks_per_rad)
        encoder_delta = encoder_ticks - self._encoder_ticks
        self._encoder_ticks = encoder_ticks

        return TelemetryRecord(
            acceleration_x=float(rng.normal(0.0, 0.01)),
            acceleration_y=math.cos(tilt_rad),
            acceleration_z=-math.sin(tilt_rad),
            gyro_x_dps=float(gyro_rate_dps),
            gyro_y_dps=float(rng.normal(0.0, config.gyro_noise_dps)),
            gyro_z_dps=float(rng.normal(0.0, config.gyro_noise_dps)),
            encoder_delta_ticks=float(encoder_delta),
            motor_feedback=float(-self._command),
        )

    @property
    def true_state(self) -> np.ndarray:
        """Current true state [theta, dtheta, phi, dphi]."""
        return self._state.copy()

    @property
    def is_released(self) -> bool:
        return self._released

    @property
    def has_fallen(self) -> bool:
        return self._fallen

    @property
    def records_emitted(self) -> int:
        return self._records_emitted

    @property
    def config(self) -> SimulationConfig:
        return self._config
