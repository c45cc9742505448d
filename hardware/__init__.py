"""Hardware interface module for the LQR balancing robot.

This module provides the hardware abstraction layer for running the loop
on the physical robot, including:
- Serial telemetry/command link to the robot board
- Serial link and actuator configuration
- Configuration loading and loop assembly
"""

from .config import HardwareConfig
from .config_loader import (
    RobotConfiguration,
    load_configuration,
    build_orchestrator,
    open_serial_transport,
)
from .serial_interface import SerialTelemetryTransport

__all__ = [
    'HardwareConfig',
    'RobotConfiguration',
    'load_configuration',
    'build_orchestrator',
    'open_serial_transport',
    'SerialTelemetryTransport',
]
