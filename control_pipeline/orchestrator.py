"""Real-time loop: calibration, gain synthesis, estimation and actuation.

The loop moves through

    CALIBRATING → READY → CONTROLLING → TERMINATED

driven by the blocking telemetry read. Calibration consumes the first N
records; the LQR gain is solved on one worker thread started at READY
while the first filter cycles run. The first controlling cycle blocks on
the gain-ready latch before computing a voltage. Every exit path stops
the motors and releases the latches, the worker and the transport.
"""

import enum
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import ExitStack
from typing import Callable, Iterator, Optional

from calibration.stage import CalibrationStage
from calibration.statistics import CalibrationStatistics
from lqr.config import LQRConfig
from lqr.riccati import LQRGain, RiccatiController
from robot_dynamics.errors import InsufficientDataError, ResourceError
from robot_dynamics.linearization import DynamicsModel, build_dynamics_model
from robot_dynamics.parameters import PhysicalConstants
from state_estimation.config import EstimatorConfig
from state_estimation.measurements import TelemetryRecord
from control_pipeline.actuation import ActuatorLimits, GatedActuatorSink
from control_pipeline.controller import BalanceController, SampleFrame
from control_pipeline.estimator import FilterCascade
from control_pipeline.latches import OneShotLatch
from control_pipeline.timing import ControlLoopStats
from control_pipeline.transport import TelemetryTransport

logger = logging.getLogger(__name__)

# Upper bound on one blocking wait before the stop request is re-checked
STOP_POLL_INTERVAL_S = 0.1


class LoopState(enum.Enum):
    CALIBRATING = 'calibrating'
    READY = 'ready'
    CONTROLLING = 'controlling'
    TERMINATED = 'terminated'


class RealtimeLoopOrchestrator:
    """Sequences the staged pipeline over one transport.

    Attributes:
        state: Current LoopState
        calibration: Calibration statistics once calibration finished
        gain: Solved LQR gain once available
    """

    def __init__(
        self,
        transport: TelemetryTransport,
        constants: PhysicalConstants,
        estimator_config: EstimatorConfig,
        lqr_config: LQRConfig,
        limits: Optional[ActuatorLimits] = None,
        max_cycles: Optional[int] = None,
        frame_callback: Optional[Callable[[SampleFrame], None]] = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            transport: Telemetry in, commands out (serial port or simulator)
            constants: Physical constants of the robot
            estimator_config: Calibration and filter settings
            lqr_config: Cost weights and Riccati settings
            limits: Actuator conversion constants; the friction offset
                defaults to the motor voltage offset of the robot
            max_cycles: Stop after this many controlling cycles (None: run
                until the transport closes or a stop is requested)
            frame_callback: Called with every SampleFrame after actuation
        """
        if max_cycles is not None and max_cycles <= 0:
            raise ValueError(f"max_cycles must be positive, got {max_cycles}")

        self._transport = transport
        self._constants = constants
        self._estimator_config = estimator_config
        self._lqr_config = lqr_config
        self._limits = limits or ActuatorLimits(
            friction_offset_v=constants.motor_voltage_offset_v
        )
        self._max_cycles = max_cycles
        self._frame_callback = frame_callback

        self._stop_event = threading.Event()
        self._state = LoopState.CALIBRATING
        self._state_lock = threading.Lock()
        self._has_run = False

        self.calibration: Optional[CalibrationStatistics] = None
        self.gain: Optional[LQRGain] = None
        self._stats = ControlLoopStats()

    def request_stop(self) -> None:
        """Ask the loop to terminate. Safe from signal handlers and other threads."""
        self._stop_event.set()

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def stats(self) -> ControlLoopStats:
        return self._stats

    def _enter(self, state: LoopState) -> None:
        with self._state_lock:
            logger.info("Loop state: %s -> %s", self._state.value, state.value)
            self._state = state

    def run(self) -> ControlLoopStats:
        """Run the loop until the transport closes, a stop is requested or
        max_cycles is reached.

        Returns:
            Loop statistics

        Raises:
            ConfigurationError: If the physical model is degenerate
            InsufficientDataError: If telemetry ends during calibration
            ConvergenceError: If the gain cannot be solved
            TransportError: On read/write failures
            ResourceError: If run() is called twice or the worker cannot start
        """
        if self._has_run:
            raise ResourceError("RealtimeLoopOrchestrator.run() may only be called once")
        self._has_run = True

        with ExitStack() as stack:
            stack.callback(self._enter, LoopState.TERMINATED)
            stack.callback(self._transport.close)
            calibration_done = stack.enter_context(OneShotLatch('calibration'))
            gain_ready = stack.enter_context(OneShotLatch('gain_ready'))
            stack.callback(self._log_stats)

            model = build_dynamics_model(self._constants)
            records = iter(self._transport.records(self._stop_event))

            self._enter(LoopState.CALIBRATING)
            try:
                self.calibration = CalibrationStage(
                    sample_count=self._estimator_config.calibration_sample_count,
                    discarded_leading_records=self._estimator_config.discarded_leading_records,
                ).run(records)
            except InsufficientDataError:
                if self._stop_event.is_set():
                    logger.info("Stop requested during calibration")
                    return self._stats
                raise
            self._stats.calibration_samples = self.calibration.sample_count
            calibration_done.set()

            self._enter(LoopState.READY)
            try:
                executor = stack.enter_context(
                    ThreadPoolExecutor(max_workers=1, thread_name_prefix='lqr-gain')
                )
                gain_future = executor.submit(self._solve_gain, model, gain_ready)
            except RuntimeError as error:
                raise ResourceError("Cannot start the gain synthesis worker") from error

            sink = GatedActuatorSink(self._transport, gain_ready, self._limits)
            stack.callback(sink.stop)

            controller = BalanceController(
                cascade=FilterCascade.build(
                    model, self.calibration, self._estimator_config, self._limits
                ),
                limits=self._limits,
                sampling_period_s=self._estimator_config.sampling_period_s,
            )

            if not calibration_done.wait(STOP_POLL_INTERVAL_S):
                raise ResourceError("Control stage started before calibration finished")

            self._enter(LoopState.CONTROLLING)
            self._control(records, controller, sink, gain_ready, gain_future)

        return self._stats

    def _solve_gain(self, model: DynamicsModel, gain_ready: OneShotLatch) -> LQRGain:
        try:
            gain = RiccatiController(self._lqr_config).solve(model)
        except BaseException:
            gain_ready.release()
            raise
        self.gain = gain
        gain_ready.set()
        return gain

    def _await_gain(self, gain_ready: OneShotLatch, gain_future: Future) -> Optional[LQRGain]:
        """Block until the gain exists. None if a stop was requested first."""
        while not gain_ready.wait(STOP_POLL_INTERVAL_S):
            if gain_ready.is_released:
                # Worker failed; re-raise its error here
                return gain_future.result()
            if self._stop_event.is_set():
                return None
        return gain_future.result()

    def _control(
        self,
        records: Iterator[TelemetryRecord],
        controller: BalanceController,
        sink: GatedActuatorSink,
        gain_ready: OneShotLatch,
        gain_future: Future,
    ) -> None:
        gain: Optional[LQRGain] = None

        try:
            for record in records:
                if self._stop_event.is_set():
                    break

                measurement, estimate = controller.estimate(record)

                if gain is None:
                    controller.timer.pause()
                    try:
                        gain = self._await_gain(gain_ready, gain_future)
                    finally:
                        controller.timer.resume()
                    if gain is None:
                        break

                voltage, actuation = controller.command(estimate, gain)
                sink.send(actuation.command)
                timing = controller.finish_cycle()

                self._stats.iterations += 1
                if self._frame_callback is not None:
                    self._frame_callback(SampleFrame(
                        timestep_s=self._estimator_config.sampling_period_s,
                        record=record,
                        measurement=measurement,
                        estimate=estimate,
                        control_voltage_v=voltage,
                        actuation=actuation,
                        timing=timing,
                    ))

                if self._max_cycles is not None and self._stats.iterations >= self._max_cycles:
                    logger.info("Reached %d cycles, stopping", self._max_cycles)
                    break
        finally:
            self._stats.numerical_errors = controller.cascade.numerical_errors
            self._stats.saturated_commands = controller.saturated_commands
            self._stats.mean_loop_time_s = controller.timer.mean_time_s
            self._stats.max_loop_time_s = controller.timer.max_time_s
            self._stats.deadline_violations = controller.timer.deadline_violations

    def _log_stats(self) -> None:
        stats = self._stats
        logger.info(
            "Loop finished: %d cycles, %d saturated commands, numerical errors %s, "
            "loop time mean %.3f ms max %.3f ms, %d deadline violations",
            stats.iterations,
            stats.saturated_commands,
            stats.numerical_errors or {},
            stats.mean_loop_time_s * 1e3,
            stats.max_loop_time_s * 1e3,
            stats.deadline_violations,
        )
