"""Tests for the staged real-time loop."""

import time

import pytest
import serial

from robot_dynamics import ConvergenceError, InsufficientDataError, ResourceError
from lqr import RiccatiController
from control_pipeline import LoopState, RealtimeLoopOrchestrator
from hardware import SerialTelemetryTransport

from conftest import ListTransport, noisy_rest_records

STARTUP_RECORDS = 9
CALIBRATION_RECORDS = 200
REST_RECORDS = STARTUP_RECORDS + CALIBRATION_RECORDS
GAIN_DELAY_S = 0.3


class SlowRiccatiController(RiccatiController):
    """Riccati solver that takes GAIN_DELAY_S before solving."""

    def solve(self, model):
        time.sleep(GAIN_DELAY_S)
        return super().solve(model)


def rest_stream(control_records, seed=0):
    """Start-up, calibration and control records of a robot at rest."""
    return noisy_rest_records(
        REST_RECORDS + control_records, 1.5, 0.3, 0.8, 0.5, seed=seed
    )


def make_orchestrator(transport, constants, estimator_config, lqr_config, **kwargs):
    return RealtimeLoopOrchestrator(
        transport=transport,
        constants=constants,
        estimator_config=estimator_config,
        lqr_config=lqr_config,
        **kwargs
    )


class TestRealtimeLoopOrchestrator:
    """Tests for RealtimeLoopOrchestrator."""

    def test_runs_until_stream_ends(self, constants, estimator_config, lqr_config):
        """Every control record produces one command; cleanup sends zero."""
        transport = ListTransport(rest_stream(50))
        orchestrator = make_orchestrator(
            transport, constants, estimator_config, lqr_config
        )

        stats = orchestrator.run()

        assert stats.iterations == 50
        assert stats.calibration_samples == CALIBRATION_RECORDS
        assert len(transport.commands) == 51
        assert transport.commands[-1] == 0
        assert all(-255 <= command <= 255 for command in transport.commands)
        assert transport.closed
        assert orchestrator.state is LoopState.TERMINATED
        assert orchestrator.gain is not None

    def test_no_command_before_gain(self, constants, estimator_config, lqr_config):
        """Commands are only written once calibration is done and K exists."""
        orchestrator = None
        observed = []

        def on_command(command):
            observed.append(
                (orchestrator.calibration is not None, orchestrator.gain is not None)
            )

        transport = ListTransport(rest_stream(20), on_command=on_command)
        orchestrator = make_orchestrator(
            transport, constants, estimator_config, lqr_config
        )
        orchestrator.run()

        assert observed
        assert all(calibrated and solved for calibrated, solved in observed)

    def test_calibration_uses_first_records(self, constants, estimator_config, lqr_config):
        """The control stage starts on the record after calibration."""
        frames = []
        records = rest_stream(10)
        transport = ListTransport(records)
        orchestrator = make_orchestrator(
            transport, constants, estimator_config, lqr_config,
            frame_callback=frames.append,
        )

        orchestrator.run()

        assert frames[0].record is records[REST_RECORDS]
        assert frames[0].timestep_s == estimator_config.sampling_period_s

    def test_max_cycles(self, constants, estimator_config, lqr_config):
        transport = ListTransport(rest_stream(300))
        orchestrator = make_orchestrator(
            transport, constants, estimator_config, lqr_config, max_cycles=25
        )

        stats = orchestrator.run()

        assert stats.iterations == 25
        assert transport.records_read == REST_RECORDS + 25

    def test_stop_request(self, constants, estimator_config, lqr_config):
        """A stop requested mid-run ends the loop at the next record."""
        orchestrator = None

        def stop_after_five(frame):
            if len(transport.commands) == 5:
                orchestrator.request_stop()

        transport = ListTransport(rest_stream(100))
        orchestrator = make_orchestrator(
            transport, constants, estimator_config, lqr_config,
            frame_callback=stop_after_five,
        )

        stats = orchestrator.run()

        assert stats.iterations == 5
        assert transport.commands[-1] == 0
        assert orchestrator.stop_requested

    def test_stop_before_calibration_finishes(self, constants, estimator_config, lqr_config):
        """A stop during calibration terminates cleanly without commands."""
        transport = ListTransport(rest_stream(0))
        orchestrator = make_orchestrator(
            transport, constants, estimator_config, lqr_config
        )
        orchestrator.request_stop()

        stats = orchestrator.run()

        assert stats.iterations == 0
        assert transport.commands == []
        assert transport.closed
        assert orchestrator.state is LoopState.TERMINATED

    def test_stream_ends_during_calibration(self, constants, estimator_config, lqr_config):
        transport = ListTransport(rest_stream(0)[:100])
        orchestrator = make_orchestrator(
            transport, constants, estimator_config, lqr_config
        )

        with pytest.raises(InsufficientDataError):
            orchestrator.run()
        assert transport.closed
        assert transport.commands == []
        assert orchestrator.state is LoopState.TERMINATED

    def test_gain_failure_propagates(self, constants, estimator_config, lqr_config):
        """A Riccati failure stops the loop before any command is written."""
        transport = ListTransport(rest_stream(20))
        orchestrator = make_orchestrator(
            transport, constants, estimator_config,
            lqr_config.with_solver_settings(riccati_max_iterations=3),
        )

        with pytest.raises(ConvergenceError):
            orchestrator.run()
        assert transport.commands == []
        assert orchestrator.gain is None
        assert transport.closed

    def test_gain_failure_on_serial_port_writes_nothing(
        self, constants, estimator_config, lqr_config
    ):
        """Over a serial port, a failed gain leaves the motor line untouched."""
        connection = serial.serial_for_url('loop://', timeout=0.05)
        for record in rest_stream(20):
            connection.write(f"{record.to_line()}\n".encode('ascii'))

        written = []
        original_write = connection.write

        def record_write(data):
            written.append(data)
            return original_write(data)

        connection.write = record_write
        transport = SerialTelemetryTransport('loop://', connection=connection)
        orchestrator = make_orchestrator(
            transport, constants, estimator_config,
            lqr_config.with_solver_settings(riccati_max_iterations=3),
        )

        with pytest.raises(ConvergenceError):
            orchestrator.run()
        assert written == []
        assert not connection.is_open

    def test_gain_wait_not_timed(self, monkeypatch, constants, estimator_config, lqr_config):
        """Waiting for K on the first cycle does not count as loop time."""
        monkeypatch.setattr(
            'control_pipeline.orchestrator.RiccatiController', SlowRiccatiController
        )
        transport = ListTransport(rest_stream(20))
        orchestrator = make_orchestrator(
            transport, constants, estimator_config, lqr_config
        )

        stats = orchestrator.run()

        assert stats.iterations == 20
        assert stats.max_loop_time_s < GAIN_DELAY_S

    def test_run_twice_rejected(self, constants, estimator_config, lqr_config):
        orchestrator = make_orchestrator(
            ListTransport(rest_stream(5)), constants, estimator_config, lqr_config
        )
        orchestrator.run()
        with pytest.raises(ResourceError):
            orchestrator.run()

    def test_invalid_max_cycles(self, constants, estimator_config, lqr_config):
        with pytest.raises(ValueError):
            make_orchestrator(
                ListTransport([]), constants, estimator_config, lqr_config, max_cycles=0
            )

    def test_rest_stream_commands_stay_small(self, constants, estimator_config, lqr_config):
        """A robot at its calibrated rest pose needs no large command."""
        frames = []
        orchestrator = make_orchestrator(
            ListTransport(rest_stream(200, seed=3)), constants, estimator_config,
            lqr_config, frame_callback=frames.append,
        )

        stats = orchestrator.run()

        assert stats.total_numerical_errors == 0
        assert all(frame.estimate.failed_filters == () for frame in frames)
        assert max(abs(frame.command) for frame in frames[50:]) < 255
