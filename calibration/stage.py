"""Calibration stage run at the rest pose before control starts.

The robot is held still and upright while N telemetry records are
averaged. The resulting statistics zero the tilt channel and seed the
noise covariances of both Kalman filters.
"""

import logging
from typing import Iterator

from calibration.statistics import CalibrationAccumulator, CalibrationStatistics
from robot_dynamics.errors import InsufficientDataError
from robot_dynamics._internal.validation import (
    validate_positive_integer,
    validate_non_negative_integer,
)
from state_estimation.measurements import TelemetryRecord, derive_measurement

logger = logging.getLogger(__name__)


class CalibrationStage:
    """Consumes exactly N records from a telemetry stream and finalizes.

    Records after the N-th are never pulled from the iterator, so the same
    iterator can be handed to the control stage afterwards.
    """

    def __init__(self, sample_count: int = 200, discarded_leading_records: int = 9) -> None:
        """Initialize the stage.

        Args:
            sample_count: Samples N to average
            discarded_leading_records: Records skipped before the first sample
        """
        validate_positive_integer(sample_count, 'sample_count')
        validate_non_negative_integer(
            discarded_leading_records, 'discarded_leading_records'
        )
        self._sample_count = sample_count
        self._discarded_leading_records = discarded_leading_records

    def run(self, records: Iterator[TelemetryRecord]) -> CalibrationStatistics:
        """Accumulate N samples from the stream.

        Args:
            records: Telemetry iterator (shared with the control stage)

        Returns:
            Finalized calibration statistics

        Raises:
            InsufficientDataError: If the stream ends before N samples
        """
        logger.info(
            "Calibrating: keep the robot still (%d samples)", self._sample_count
        )

        for skipped in range(self._discarded_leading_records):
            if next(records, None) is None:
                raise InsufficientDataError(
                    f"Telemetry ended after {skipped} start-up records, "
                    f"before calibration began"
                )

        accumulator = CalibrationAccumulator(target_count=self._sample_count)
        while not accumulator.is_complete:
            record = next(records, None)
            if record is None:
                raise InsufficientDataError(
                    f"Telemetry ended after {accumulator.count} of "
                    f"{self._sample_count} calibration samples"
                )
            accumulator.add(derive_measurement(record).as_channels())

        statistics = accumulator.finalize()
        logger.info(
            "Calibration done: tilt mean %.6f deg var %.6f, gyro mean %.6f deg/s var %.6f",
            statistics.tilt.mean, statistics.tilt.variance,
            statistics.gyro.mean, statistics.gyro.variance,
        )
        return statistics

    @property
    def sample_count(self) -> int:
        """Samples N averaged by the stage."""
        return self._sample_count

    @property
    def discarded_leading_records(self) -> int:
        """Start-up records skipped before calibration."""
        return self._discarded_leading_records

    @property
    def records_consumed(self) -> int:
        """Total records pulled from the stream by a successful run."""
        return self._discarded_leading_records + self._sample_count
