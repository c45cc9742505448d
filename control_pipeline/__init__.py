"""Control pipeline module for the LQR balancing robot.

This module provides the real-time loop orchestration, coordinating
calibration, gain synthesis, the Kalman filter cascade and actuation.

Public API:
    - RealtimeLoopOrchestrator: Staged loop over one transport
    - LoopState: Loop lifecycle states
    - BalanceController: Per-sample estimation and control law
    - SampleFrame: One cycle's data
    - FilterCascade: Attitude and full-state Kalman filters
    - OneShotLatch: Calibration and gain-ready barriers
    - ActuatorLimits / GatedActuatorSink / quantize_voltage: Actuation
    - TelemetryTransport: Channel interface implemented by hardware and simulation
    - ControlLoopTimer / ControlLoopStats: Timing and loop statistics
"""

from control_pipeline.actuation import (
    ActuatorCommand,
    ActuatorLimits,
    GatedActuatorSink,
    apply_friction_offset,
    quantize_voltage,
)
from control_pipeline.controller import BalanceController, SampleFrame
from control_pipeline.estimator import CascadeEstimate, FilterCascade
from control_pipeline.latches import OneShotLatch
from control_pipeline.orchestrator import LoopState, RealtimeLoopOrchestrator
from control_pipeline.timing import (
    ControlLoopStats,
    ControlLoopTimer,
    IterationTiming,
)
from control_pipeline.transport import TelemetryTransport

__all__ = [
    'RealtimeLoopOrchestrator',
    'LoopState',
    'BalanceController',
    'SampleFrame',
    'FilterCascade',
    'CascadeEstimate',
    'OneShotLatch',
    'ActuatorLimits',
    'ActuatorCommand',
    'GatedActuatorSink',
    'apply_friction_offset',
    'quantize_voltage',
    'TelemetryTransport',
    'ControlLoopStats',
    'ControlLoopTimer',
    'IterationTiming',
]
