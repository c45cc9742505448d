"""Serial link and actuator configuration.

See config/hardware_params.yaml for parameter values.
"""

from dataclasses import dataclass

from robot_dynamics.errors import ConfigurationError
from robot_dynamics._internal.validation import (
    load_yaml_mapping,
    validate_positive,
    validate_positive_integer,
)
from control_pipeline.actuation import ActuatorLimits


@dataclass(frozen=True)
class HardwareConfig:
    """Configuration of the serial link to the robot board.

    Attributes:
        device: Serial device path
        baudrate: Serial baud rate
        read_timeout_s: Read timeout; the stop request is re-checked this often
        command_limit: Largest command magnitude accepted by the motor driver
        full_scale_voltage_v: Voltage applied at the command limit
    """

    device: str = '/dev/ttyACM0'
    baudrate: int = 57600
    read_timeout_s: float = 0.1
    command_limit: int = 255
    full_scale_voltage_v: float = 5.0

    def __post_init__(self) -> None:
        """Validate parameters satisfy constraints."""
        if not isinstance(self.device, str) or not self.device:
            raise ConfigurationError(f"device must be a non-empty path, got {self.device!r}")
        validate_positive_integer(self.baudrate, 'baudrate')
        validate_positive(self.read_timeout_s, 'read_timeout_s')
        validate_positive_integer(self.command_limit, 'command_limit')
        validate_positive(self.full_scale_voltage_v, 'full_scale_voltage_v')

    @classmethod
    def from_yaml(cls, yaml_path: str) -> 'HardwareConfig':
        """Load configuration from YAML file.

        Raises:
            FileNotFoundError: If YAML file does not exist
            ConfigurationError: If parameters are invalid
        """
        config = load_yaml_mapping(yaml_path)

        defaults = cls()
        return cls(
            device=str(config.get('device', defaults.device)),
            baudrate=config.get('baudrate', defaults.baudrate),
            read_timeout_s=config.get('read_timeout_s', defaults.read_timeout_s),
            command_limit=config.get('command_limit', defaults.command_limit),
            full_scale_voltage_v=config.get(
                'full_scale_voltage_v', defaults.full_scale_voltage_v
            ),
        )

    def actuator_limits(self, friction_offset_v: float) -> ActuatorLimits:
        """Actuator conversion constants for this driver."""
        return ActuatorLimits(
            command_limit=self.command_limit,
            full_scale_voltage_v=self.full_scale_voltage_v,
            friction_offset_v=friction_offset_v,
        )
