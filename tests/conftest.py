"""Shared fixtures for the balancing robot tests."""

import threading
from pathlib import Path

import numpy as np
import pytest

from robot_dynamics import PhysicalConstants, build_dynamics_model
from state_estimation import EstimatorConfig, TelemetryRecord
from lqr import LQRConfig
from hardware import HardwareConfig

CONFIG_DIR = Path(__file__).parent.parent / 'config'


@pytest.fixture
def config_dir():
    """Directory holding the YAML configuration files."""
    return CONFIG_DIR


@pytest.fixture
def constants():
    """Physical constants from config/robot_params.yaml."""
    return PhysicalConstants.from_yaml(str(CONFIG_DIR / 'robot_params.yaml'))


@pytest.fixture
def model(constants):
    """Linearized robot model built from the YAML constants."""
    return build_dynamics_model(constants)


@pytest.fixture
def estimator_config():
    """Estimator settings from config/estimator_params.yaml."""
    return EstimatorConfig.from_yaml(str(CONFIG_DIR / 'estimator_params.yaml'))


@pytest.fixture
def lqr_config():
    """LQR settings from config/lqr_params.yaml."""
    return LQRConfig.from_yaml(str(CONFIG_DIR / 'lqr_params.yaml'))


@pytest.fixture
def hardware_config():
    """Serial link settings from config/hardware_params.yaml."""
    return HardwareConfig.from_yaml(str(CONFIG_DIR / 'hardware_params.yaml'))


@pytest.fixture
def stop_event():
    return threading.Event()


def rest_record(tilt_deg=0.0, gyro_dps=0.0, encoder_delta=0.0, motor_feedback=0.0):
    """Telemetry record of a robot at the given tilt."""
    tilt_rad = np.deg2rad(tilt_deg)
    return TelemetryRecord(
        acceleration_x=0.0,
        acceleration_y=float(np.cos(tilt_rad)),
        acceleration_z=float(-np.sin(tilt_rad)),
        gyro_x_dps=gyro_dps,
        gyro_y_dps=0.0,
        gyro_z_dps=0.0,
        encoder_delta_ticks=encoder_delta,
        motor_feedback=motor_feedback,
    )


def noisy_rest_records(count, tilt_mean_deg, tilt_std_deg, gyro_mean_dps, gyro_std_dps, seed=0):
    """Rest-pose records with Gaussian tilt and gyro noise."""
    rng = np.random.default_rng(seed)
    return [
        rest_record(
            tilt_deg=rng.normal(tilt_mean_deg, tilt_std_deg),
            gyro_dps=rng.normal(gyro_mean_dps, gyro_std_dps),
        )
        for _ in range(count)
    ]


class ListTransport:
    """In-memory transport replaying a fixed list of records."""

    def __init__(self, records, on_command=None):
        self._records = list(records)
        self._on_command = on_command
        self.commands = []
        self.records_read = 0
        self.closed = False

    def records(self, stop_event):
        for record in self._records:
            if stop_event.is_set() or self.closed:
                return
            self.records_read += 1
            yield record

    def send_command(self, command):
        self.commands.append(command)
        if self._on_command is not None:
            self._on_command(command)

    def close(self):
        self.closed = True
