"""Control voltage to motor command conversion.

The motor driver takes a signed integer duty command. The voltage from the
LQR law is shifted by the static-friction offset, scaled at
limit / V_full counts per volt, truncated toward zero and clipped:

    v' = v + sign(v)·v_offset
    command = clip(int(v'·limit / V_full), -limit, limit)
"""

import logging
import math
from dataclasses import dataclass

from robot_dynamics._internal.validation import (
    validate_positive,
    validate_positive_integer,
    validate_non_negative,
)
from robot_dynamics.errors import ResourceError, TransportError
from control_pipeline.latches import OneShotLatch
from control_pipeline.transport import TelemetryTransport

logger = logging.getLogger(__name__)

ZERO_COMMAND = 0


@dataclass(frozen=True)
class ActuatorLimits:
    """Actuator conversion constants.

    Attributes:
        command_limit: Largest command magnitude accepted by the driver
        full_scale_voltage_v: Voltage applied at the command limit
        friction_offset_v: Static-friction voltage added in the direction of v
    """

    command_limit: int = 255
    full_scale_voltage_v: float = 5.0
    friction_offset_v: float = 0.17

    def __post_init__(self) -> None:
        validate_positive_integer(self.command_limit, 'command_limit')
        validate_positive(self.full_scale_voltage_v, 'full_scale_voltage_v')
        validate_non_negative(self.friction_offset_v, 'friction_offset_v')

    @property
    def counts_per_volt(self) -> float:
        return self.command_limit / self.full_scale_voltage_v


@dataclass(frozen=True)
class ActuatorCommand:
    """Quantized command and how it was obtained.

    Attributes:
        compensated_voltage_v: Voltage after the friction offset
        command: Signed integer command sent to the driver
        saturated: Whether clipping changed the command
    """

    compensated_voltage_v: float
    command: int
    saturated: bool


def apply_friction_offset(voltage_v: float, friction_offset_v: float) -> float:
    """Add the static-friction offset in the direction of the voltage.

    Zero stays zero.
    """
    if voltage_v > 0.0:
        return voltage_v + friction_offset_v
    if voltage_v < 0.0:
        return voltage_v - friction_offset_v
    return voltage_v


def quantize_voltage(voltage_v: float, limits: ActuatorLimits) -> ActuatorCommand:
    """Convert a control voltage to a clipped integer command.

    A non-finite voltage maps to the zero command.
    """
    compensated = apply_friction_offset(voltage_v, limits.friction_offset_v)
    if not math.isfinite(compensated):
        logger.warning("Non-finite control voltage %r, commanding zero", voltage_v)
        return ActuatorCommand(compensated, ZERO_COMMAND, saturated=True)

    raw_command = int(compensated * limits.counts_per_volt)
    command = max(-limits.command_limit, min(limits.command_limit, raw_command))
    return ActuatorCommand(
        compensated_voltage_v=compensated,
        command=command,
        saturated=command != raw_command,
    )


class GatedActuatorSink:
    """Writes commands to the transport once the gain-ready latch is set.

    Attributes:
        commands_sent: Number of commands written since construction
    """

    def __init__(
        self,
        transport: TelemetryTransport,
        gain_ready: OneShotLatch,
        limits: ActuatorLimits,
    ) -> None:
        self._transport = transport
        self._gain_ready = gain_ready
        self._limits = limits
        self._stopped = False
        self.commands_sent = 0

    def send(self, command: int) -> None:
        """Write one command.

        Raises:
            ResourceError: If the gain is not ready, the sink was stopped,
                or the command is outside the driver range
        """
        if not self._gain_ready.is_set:
            raise ResourceError("Actuator command refused: LQR gain is not ready")
        if self._stopped:
            raise ResourceError("Actuator command refused: sink is stopped")
        if abs(command) > self._limits.command_limit:
            raise ResourceError(
                f"Actuator command {command} outside "
                f"[-{self._limits.command_limit}, {self._limits.command_limit}]"
            )
        self._transport.send_command(int(command))
        self.commands_sent += 1

    def stop(self) -> None:
        """Refuse any further commands and send the zero command. Idempotent.

        Nothing is written when the gain never became ready.
        """
        if self._stopped:
            return
        self._stopped = True
        if not self._gain_ready.is_set:
            logger.info("Sink stopped before the LQR gain was ready; no command sent")
            return
        logger.info("Stopping motors")
        try:
            self._transport.send_command(ZERO_COMMAND)
        except TransportError as error:
            logger.error("Could not send the zero command: %s", error)

    @property
    def is_stopped(self) -> bool:
        return self._stopped
