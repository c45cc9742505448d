"""Closed-loop tests: the full loop balancing the simulated plant."""

import numpy as np
import pytest

from robot_dynamics import TransportError
from control_pipeline import LoopState, RealtimeLoopOrchestrator
from simulation import BalancingPlantSimulator, SimulationConfig, apply_static_friction

CONTROL_CYCLES = 1500


def run_closed_loop(constants, estimator_config, lqr_config, initial_tilt_rad=0.03, seed=0):
    simulator = BalancingPlantSimulator(
        constants=constants,
        config=SimulationConfig(
            initial_tilt_rad=initial_tilt_rad,
            rest_records=estimator_config.discarded_leading_records
            + estimator_config.calibration_sample_count,
            seed=seed,
        ),
        sampling_period_s=estimator_config.sampling_period_s,
    )
    frames = []
    orchestrator = RealtimeLoopOrchestrator(
        transport=simulator,
        constants=constants,
        estimator_config=estimator_config,
        lqr_config=lqr_config,
        max_cycles=CONTROL_CYCLES,
        frame_callback=frames.append,
    )
    stats = orchestrator.run()
    return simulator, orchestrator, stats, frames


class TestStaticFriction:
    """Tests for the simulated motor dead band."""

    def test_inside_band_no_drive(self):
        assert apply_static_friction(0.1, 0.17) == 0.0
        assert apply_static_friction(-0.17, 0.17) == 0.0

    def test_outside_band_reduced(self):
        assert apply_static_friction(1.0, 0.17) == pytest.approx(0.83)
        assert apply_static_friction(-1.0, 0.17) == pytest.approx(-0.83)


class TestBalancingPlantSimulator:
    """Tests for BalancingPlantSimulator on its own."""

    def test_held_at_rest_until_release(self, constants, stop_event):
        simulator = BalancingPlantSimulator(
            constants, SimulationConfig(rest_records=5, max_records=5)
        )
        records = list(simulator.records(stop_event))

        assert len(records) == 5
        assert not simulator.is_released
        np.testing.assert_array_equal(simulator.true_state, np.zeros(4))

    def test_uncontrolled_robot_falls(self, constants, stop_event):
        """With zero command the upright equilibrium is unstable."""
        simulator = BalancingPlantSimulator(
            constants, SimulationConfig(rest_records=0, max_records=2000)
        )
        for _ in simulator.records(stop_event):
            pass

        assert simulator.has_fallen

    def test_rejects_out_of_range_command(self, constants):
        simulator = BalancingPlantSimulator(constants)
        with pytest.raises(TransportError):
            simulator.send_command(300)

    def test_feedback_echoes_inverted_command(self, constants, stop_event):
        simulator = BalancingPlantSimulator(constants, SimulationConfig(rest_records=10))
        simulator.send_command(40)
        record = next(simulator.records(stop_event))
        assert record.motor_feedback == -40.0


class TestClosedLoop:
    """The complete loop keeps the simulated robot upright."""

    def test_balances_from_initial_tilt(self, constants, estimator_config, lqr_config):
        simulator, orchestrator, stats, frames = run_closed_loop(
            constants, estimator_config, lqr_config
        )

        assert not simulator.has_fallen
        assert stats.iterations == CONTROL_CYCLES
        assert orchestrator.state is LoopState.TERMINATED

        history = np.array(simulator.state_history)
        tilt = history[:, 0]
        assert np.max(np.abs(tilt)) < 0.2
        settled = tilt[-300:]
        assert np.sqrt(np.mean(settled ** 2)) < 0.015
        assert np.max(np.abs(settled)) < 0.05

    def test_commands_within_driver_range(self, constants, estimator_config, lqr_config):
        simulator, _, _, frames = run_closed_loop(
            constants, estimator_config, lqr_config, seed=7
        )

        assert simulator.commands
        assert all(-255 <= command <= 255 for command in simulator.commands)
        assert simulator.commands[-1] == 0
        assert all(np.all(np.isfinite(frame.state_estimate)) for frame in frames)

    def test_estimate_tracks_true_tilt(self, constants, estimator_config, lqr_config):
        """After convergence the full-state tilt estimate follows the plant."""
        simulator, _, _, frames = run_closed_loop(
            constants, estimator_config, lqr_config, seed=3
        )

        history = np.array(simulator.state_history)
        estimated = np.array([frame.state_estimate[0] for frame in frames])
        true_tilt = history[:len(estimated), 0]
        error = estimated[500:] - true_tilt[500:]
        assert np.sqrt(np.mean(error ** 2)) < 0.02
