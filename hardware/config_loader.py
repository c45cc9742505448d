"""Configuration loader for the LQR balancing robot.

This module loads the four YAML files under config/ and assembles a
RealtimeLoopOrchestrator for either the physical robot (serial link) or
any other transport, such as the plant simulator.
"""

from dataclasses import dataclass
from typing import Callable, Optional

from robot_dynamics import PhysicalConstants
from state_estimation import EstimatorConfig
from lqr import LQRConfig
from control_pipeline import RealtimeLoopOrchestrator, SampleFrame, TelemetryTransport
from hardware.config import HardwareConfig
from hardware.serial_interface import SerialTelemetryTransport

DEFAULT_ROBOT_PARAMS_PATH = 'config/robot_params.yaml'
DEFAULT_ESTIMATOR_PARAMS_PATH = 'config/estimator_params.yaml'
DEFAULT_LQR_PARAMS_PATH = 'config/lqr_params.yaml'
DEFAULT_HARDWARE_PARAMS_PATH = 'config/hardware_params.yaml'


@dataclass(frozen=True)
class RobotConfiguration:
    """All configuration needed to run the loop.

    Attributes:
        constants: Physical constants of the robot
        estimator: Calibration and filter settings
        lqr: Cost weights and Riccati settings
        hardware: Serial link and actuator settings
    """

    constants: PhysicalConstants
    estimator: EstimatorConfig
    lqr: LQRConfig
    hardware: HardwareConfig


def load_configuration(
    robot_params_path: str = DEFAULT_ROBOT_PARAMS_PATH,
    estimator_params_path: str = DEFAULT_ESTIMATOR_PARAMS_PATH,
    lqr_params_path: str = DEFAULT_LQR_PARAMS_PATH,
    hardware_params_path: str = DEFAULT_HARDWARE_PARAMS_PATH,
) -> RobotConfiguration:
    """Load every configuration file.

    Raises:
        FileNotFoundError: If a YAML file does not exist
        ConfigurationError: If parameters are invalid
    """
    return RobotConfiguration(
        constants=PhysicalConstants.from_yaml(robot_params_path),
        estimator=EstimatorConfig.from_yaml(estimator_params_path),
        lqr=LQRConfig.from_yaml(lqr_params_path),
        hardware=HardwareConfig.from_yaml(hardware_params_path),
    )


def build_orchestrator(
    transport: TelemetryTransport,
    configuration: RobotConfiguration,
    max_cycles: Optional[int] = None,
    frame_callback: Optional[Callable[[SampleFrame], None]] = None,
) -> RealtimeLoopOrchestrator:
    """Assemble the loop over an already-open transport."""
    return RealtimeLoopOrchestrator(
        transport=transport,
        constants=configuration.constants,
        estimator_config=configuration.estimator,
        lqr_config=configuration.lqr,
        limits=configuration.hardware.actuator_limits(
            configuration.constants.motor_voltage_offset_v
        ),
        max_cycles=max_cycles,
        frame_callback=frame_callback,
    )


def open_serial_transport(hardware: HardwareConfig) -> SerialTelemetryTransport:
    """Open the serial link described by the hardware configuration.

    Raises:
        TransportError: If the port cannot be opened
    """
    return SerialTelemetryTransport(
        port=hardware.device,
        baudrate=hardware.baudrate,
        timeout=hardware.read_timeout_s,
    )
