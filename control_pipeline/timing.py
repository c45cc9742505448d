"""Cycle timing and the statistics reported when the loop terminates.

A cycle is timed from the moment its telemetry record arrives until its
command is written. Neither the blocking read nor the first wait for the
LQR gain is counted.
"""

import time
from dataclasses import dataclass, field
from typing import Dict, Optional


@dataclass(frozen=True)
class IterationTiming:
    """Timing breakdown for a single control cycle.

    Attributes:
        estimation_time_s: Filter cascade
        control_time_s: LQR law and quantization
        actuation_time_s: Command write
        total_time_s: Whole cycle
    """

    estimation_time_s: float = 0.0
    control_time_s: float = 0.0
    actuation_time_s: float = 0.0
    total_time_s: float = 0.0


@dataclass
class ControlLoopStats:
    """Summary of one loop run, logged on termination.

    Attributes:
        iterations: Controlling cycles completed
        numerical_errors: NumericalError count per filter name
        saturated_commands: Commands changed by clipping
        mean_loop_time_s: Mean processing time per cycle
        max_loop_time_s: Worst processing time per cycle
        deadline_violations: Cycles slower than the sampling period
        calibration_samples: Samples used by calibration
    """

    iterations: int = 0
    numerical_errors: Dict[str, int] = field(default_factory=dict)
    saturated_commands: int = 0
    mean_loop_time_s: float = 0.0
    max_loop_time_s: float = 0.0
    deadline_violations: int = 0
    calibration_samples: int = 0

    @property
    def total_numerical_errors(self) -> int:
        return sum(self.numerical_errors.values())


class ControlLoopTimer:
    """Phase timer with running totals over the whole run."""

    def __init__(self, deadline_s: float) -> None:
        """
        Args:
            deadline_s: Sampling period; slower cycles count as violations
        """
        if deadline_s <= 0:
            raise ValueError(f"deadline_s must be positive, got {deadline_s}")

        self._deadline_s = deadline_s
        self._start: Optional[float] = None
        self._estimation_end: Optional[float] = None
        self._control_end: Optional[float] = None
        self._paused_at: Optional[float] = None

        self._iteration_count = 0
        self._deadline_violations = 0
        self._total_time_s = 0.0
        self._max_time_s = 0.0

    def start_iteration(self) -> None:
        self._start = time.perf_counter()
        self._estimation_end = None
        self._control_end = None

    def mark_estimation_complete(self) -> None:
        self._estimation_end = time.perf_counter()

    def mark_control_complete(self) -> None:
        self._control_end = time.perf_counter()

    def pause(self) -> None:
        """Stop the clock of the current cycle until resume()."""
        self._paused_at = time.perf_counter()

    def resume(self) -> None:
        """Restart the clock; the paused interval is left out of the cycle."""
        if self._paused_at is None:
            return
        paused = time.perf_counter() - self._paused_at
        self._paused_at = None
        self._start, self._estimation_end, self._control_end = (
            None if mark is None else mark + paused
            for mark in (self._start, self._estimation_end, self._control_end)
        )

    def end_iteration(self) -> IterationTiming:
        """Close the current cycle and fold it into the totals.

        Phases that were not marked report zero.
        """
        end = time.perf_counter()
        if self._start is None:
            raise RuntimeError("start_iteration() was not called")

        estimation_end = self._estimation_end or self._start
        control_end = self._control_end or estimation_end
        timing = IterationTiming(
            estimation_time_s=estimation_end - self._start,
            control_time_s=control_end - estimation_end,
            actuation_time_s=end - control_end,
            total_time_s=end - self._start,
        )

        self._iteration_count += 1
        self._total_time_s += timing.total_time_s
        self._max_time_s = max(self._max_time_s, timing.total_time_s)
        if timing.total_time_s > self._deadline_s:
            self._deadline_violations += 1

        self._start = None
        return timing

    @property
    def deadline_s(self) -> float:
        return self._deadline_s

    @property
    def deadline_violations(self) -> int:
        return self._deadline_violations

    @property
    def iteration_count(self) -> int:
        return self._iteration_count

    @property
    def mean_time_s(self) -> float:
        """Mean cycle time over the whole run (0 before the first cycle)."""
        if self._iteration_count == 0:
            return 0.0
        return self._total_time_s / self._iteration_count

    @property
    def max_time_s(self) -> float:
        return self._max_time_s
