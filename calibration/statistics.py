"""Single-pass per-channel noise statistics.

Running sums and sums of squares are accumulated per channel and finalized
into mean and variance once the target sample count is reached:

    mean = Σx / N
    variance = Σx² / N - mean²
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Mapping

from robot_dynamics._internal.validation import validate_positive_integer

TILT_CHANNEL = 'tilt_deg'
GYRO_CHANNEL = 'gyro_rate_dps'


@dataclass(frozen=True)
class ChannelStatistics:
    """Mean and variance of one calibrated channel."""

    mean: float
    variance: float


@dataclass
class _RunningSums:
    total: float = 0.0
    total_of_squares: float = 0.0


@dataclass(frozen=True)
class CalibrationStatistics:
    """Finalized calibration result. Immutable.

    Attributes:
        channels: Channel name to ChannelStatistics (read-only mapping)
        sample_count: Number of samples the statistics were computed from
    """

    channels: Mapping[str, ChannelStatistics]
    sample_count: int

    def __getitem__(self, channel: str) -> ChannelStatistics:
        return self.channels[channel]

    @property
    def tilt(self) -> ChannelStatistics:
        """Accelerometer tilt angle at the rest pose (deg, deg²)."""
        return self.channels[TILT_CHANNEL]

    @property
    def gyro(self) -> ChannelStatistics:
        """Gyro rate at rest: bias mean and noise variance (deg/s, (deg/s)²)."""
        return self.channels[GYRO_CHANNEL]


@dataclass
class CalibrationAccumulator:
    """Accumulates samples until the target count, then finalizes.

    Attributes:
        target_count: Number of samples N to finalize at
    """

    target_count: int
    _sums: Dict[str, _RunningSums] = field(default_factory=dict)
    _count: int = 0

    def __post_init__(self) -> None:
        validate_positive_integer(self.target_count, 'target_count')

    def add(self, sample: Mapping[str, float]) -> None:
        """Add one sample (channel name to value).

        Raises:
            RuntimeError: If the target count was already reached
            ValueError: If the sample's channels differ from earlier samples
        """
        if self.is_complete:
            raise RuntimeError(
                f"Calibration already has its {self.target_count} samples"
            )
        if self._sums and set(sample) != set(self._sums):
            raise ValueError(
                f"Sample channels {sorted(sample)} differ from {sorted(self._sums)}"
            )

        for channel, value in sample.items():
            sums = self._sums.setdefault(channel, _RunningSums())
            sums.total += value
            sums.total_of_squares += value * value
        self._count += 1

    @property
    def count(self) -> int:
        """Samples accumulated so far."""
        return self._count

    @property
    def is_complete(self) -> bool:
        """Whether the target count has been reached."""
        return self._count >= self.target_count

    def finalize(self) -> CalibrationStatistics:
        """Compute per-channel mean and variance.

        Variance is clamped at zero against floating-point cancellation.

        Raises:
            RuntimeError: If fewer than target_count samples were added
        """
        if not self.is_complete:
            raise RuntimeError(
                f"Calibration has {self._count} of {self.target_count} samples"
            )

        channels = {}
        for channel, sums in self._sums.items():
            mean = sums.total / self._count
            variance = sums.total_of_squares / self._count - mean * mean
            channels[channel] = ChannelStatistics(mean=mean, variance=max(variance, 0.0))

        return CalibrationStatistics(
            channels=MappingProxyType(channels),
            sample_count=self._count,
        )
