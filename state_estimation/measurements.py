"""Telemetry records and the measurements derived from them.

One inbound record is eight whitespace-delimited ASCII fields:
accelerometer x/y/z, gyroscope x/y/z, encoder tick delta and motor-speed
feedback.
"""

from dataclasses import dataclass
from typing import List

from robot_dynamics.errors import TransportError
from state_estimation._internal.imu_fusion import tilt_from_accelerometer_deg

TELEMETRY_FIELD_COUNT = 8


@dataclass(frozen=True)
class TelemetryRecord:
    """One raw telemetry frame from the robot board.

    Attributes:
        acceleration_x/y/z: Accelerometer readings (raw units)
        gyro_x/y/z_dps: Gyroscope readings in deg/s
        encoder_delta_ticks: Encoder ticks since the previous frame
        motor_feedback: Motor-speed feedback (echoed command counts)
    """

    acceleration_x: float
    acceleration_y: float
    acceleration_z: float
    gyro_x_dps: float
    gyro_y_dps: float
    gyro_z_dps: float
    encoder_delta_ticks: float
    motor_feedback: float

    @classmethod
    def from_line(cls, line: str) -> 'TelemetryRecord':
        """Parse one whitespace-delimited record.

        Extra trailing fields are ignored.

        Raises:
            TransportError: If fewer than eight numeric fields are present
        """
        fields = line.split()
        if len(fields) < TELEMETRY_FIELD_COUNT:
            raise TransportError(
                f"Telemetry record has {len(fields)} fields, expected "
                f"{TELEMETRY_FIELD_COUNT}: {line!r}"
            )
        try:
            values: List[float] = [float(field) for field in fields[:TELEMETRY_FIELD_COUNT]]
        except ValueError as error:
            raise TransportError(f"Non-numeric telemetry record: {line!r}") from error
        return cls(*values)

    def to_line(self) -> str:
        """Format the record the way the board sends it."""
        return ' '.join(
            f"{value:g}" for value in (
                self.acceleration_x, self.acceleration_y, self.acceleration_z,
                self.gyro_x_dps, self.gyro_y_dps, self.gyro_z_dps,
                self.encoder_delta_ticks, self.motor_feedback,
            )
        )


@dataclass(frozen=True)
class DerivedMeasurement:
    """Per-cycle measurement vector computed from a telemetry record.

    Attributes:
        tilt_deg: Accelerometer tilt angle (not yet bias-corrected)
        gyro_rate_dps: Tilt rate from gyro X
        encoder_delta_ticks: Encoder ticks since the previous frame
        motor_feedback: Motor-speed feedback field, passed through
    """

    tilt_deg: float
    gyro_rate_dps: float
    encoder_delta_ticks: float
    motor_feedback: float

    def as_channels(self) -> dict:
        """Channel name to value mapping used by calibration."""
        return {
            'tilt_deg': self.tilt_deg,
            'gyro_rate_dps': self.gyro_rate_dps,
            'encoder_delta_ticks': self.encoder_delta_ticks,
            'motor_feedback': self.motor_feedback,
        }


def derive_measurement(record: TelemetryRecord) -> DerivedMeasurement:
    """Compute the derived measurement for one telemetry record."""
    return DerivedMeasurement(
        tilt_deg=tilt_from_accelerometer_deg(
            record.acceleration_y, record.acceleration_z
        ),
        gyro_rate_dps=record.gyro_x_dps,
        encoder_delta_ticks=record.encoder_delta_ticks,
        motor_feedback=record.motor_feedback,
    )
