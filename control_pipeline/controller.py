"""Balance controller: filter cascade, LQR law and command quantization.

This module provides the per-sample controller that coordinates:
1. Measurement derivation from the raw telemetry record
2. Attitude and full-state estimation
3. LQR control voltage u = −K·x̂
4. Friction compensation, quantization and clipping
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np

from lqr.riccati import LQRGain
from state_estimation.measurements import (
    DerivedMeasurement,
    TelemetryRecord,
    derive_measurement,
)
from control_pipeline.actuation import ActuatorCommand, ActuatorLimits, quantize_voltage
from control_pipeline.estimator import CascadeEstimate, FilterCascade
from control_pipeline.timing import ControlLoopTimer, IterationTiming


@dataclass(frozen=True)
class SampleFrame:
    """Everything computed during one control cycle.

    Attributes:
        timestep_s: Nominal timestep used by both filters
        record: Raw telemetry record
        measurement: Derived measurement (tilt, gyro, encoder, feedback)
        estimate: Attitude and full-state filter outputs
        control_voltage_v: LQR voltage before friction compensation
        actuation: Quantized actuator command
        timing: Timing breakdown for this cycle
    """

    timestep_s: float
    record: TelemetryRecord
    measurement: DerivedMeasurement
    estimate: CascadeEstimate
    control_voltage_v: float
    actuation: ActuatorCommand
    timing: Optional[IterationTiming] = None

    @property
    def command(self) -> int:
        return self.actuation.command

    @property
    def state_estimate(self) -> np.ndarray:
        return self.estimate.full_state


class BalanceController:
    """Per-sample controller for the balancing robot.

    Estimation and command computation are separate calls so the loop can
    start filtering before the LQR gain is available.

    Attributes:
        cascade: Attitude and full-state filter cascade
        limits: Actuator conversion constants
        timer: Control loop timer for performance monitoring
    """

    def __init__(
        self,
        cascade: FilterCascade,
        limits: ActuatorLimits,
        sampling_period_s: float,
    ) -> None:
        """Initialize balance controller.

        Args:
            cascade: Filter cascade built from the calibration statistics
            limits: Actuator conversion constants
            sampling_period_s: Nominal control period, also the timing deadline
        """
        self._cascade = cascade
        self._limits = limits
        self._sampling_period_s = sampling_period_s
        self._timer = ControlLoopTimer(deadline_s=sampling_period_s)
        self._saturated_commands = 0

    def estimate(self, record: TelemetryRecord) -> tuple:
        """Derive the measurement and advance both filters.

        Returns:
            (DerivedMeasurement, CascadeEstimate)
        """
        self._timer.start_iteration()
        measurement = derive_measurement(record)
        estimate = self._cascade.step(measurement)
        self._timer.mark_estimation_complete()
        return measurement, estimate

    def command(self, estimate: CascadeEstimate, gain: LQRGain) -> tuple:
        """Compute the control voltage and its quantized command.

        Returns:
            (control voltage in V, ActuatorCommand)
        """
        voltage = gain.control(estimate.full_state)
        actuation = quantize_voltage(voltage, self._limits)
        if actuation.saturated:
            self._saturated_commands += 1
        self._timer.mark_control_complete()
        return voltage, actuation

    def step(
        self,
        record: TelemetryRecord,
        gain: LQRGain,
    ) -> SampleFrame:
        """Execute one full control cycle without writing the command.

        Args:
            record: Raw telemetry record
            gain: Solved LQR gain

        Returns:
            SampleFrame for this cycle (the caller sends frame.command and
            then calls finish_cycle)
        """
        measurement, estimate = self.estimate(record)
        voltage, actuation = self.command(estimate, gain)
        return SampleFrame(
            timestep_s=self._sampling_period_s,
            record=record,
            measurement=measurement,
            estimate=estimate,
            control_voltage_v=voltage,
            actuation=actuation,
        )

    def finish_cycle(self) -> IterationTiming:
        """Close the timing of the current cycle after actuation."""
        return self._timer.end_iteration()

    @property
    def cascade(self) -> FilterCascade:
        return self._cascade

    @property
    def timer(self) -> ControlLoopTimer:
        """Control loop timer for performance monitoring."""
        return self._timer

    @property
    def saturated_commands(self) -> int:
        """Commands changed by clipping so far."""
        return self._saturated_commands
