#!/usr/bin/env python3
"""Run the full LQR loop against the simulated plant.

Usage:
    python3 run_simulation.py                   # Release at 0.03 rad, 15 s
    python3 run_simulation.py --perturb 3       # Release at 3 degrees
    python3 run_simulation.py -q '1 1 100 10'   # Different LQR weights
"""

import sys

import numpy as np

from robot_dynamics import BalancerError
from hardware import build_orchestrator
from simulation import BalancingPlantSimulator, SimulationConfig
from run_robot import build_parser, configure_logging, configuration_from_args, logger


def parse_args(argv=None):
    parser = build_parser()
    parser.description = 'Run the LQR loop against the simulated plant'
    parser.add_argument('--perturb', type=float, default=np.rad2deg(0.03),
                        help='Release tilt in degrees')
    parser.add_argument('--sim-duration', type=float, default=15.0,
                        help='Control duration in seconds')
    parser.add_argument('--seed', type=int, default=0,
                        help='Sensor noise seed')
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    configure_logging(args.verbose)

    try:
        configuration = configuration_from_args(args)
    except (BalancerError, FileNotFoundError) as error:
        logger.error("%s: %s", type(error).__name__, error)
        return 1

    estimator = configuration.estimator
    sampling_period_s = estimator.sampling_period_s
    simulator = BalancingPlantSimulator(
        constants=configuration.constants,
        config=SimulationConfig(
            initial_tilt_rad=np.deg2rad(args.perturb),
            rest_records=estimator.discarded_leading_records
            + estimator.calibration_sample_count,
            seed=args.seed,
        ),
        sampling_period_s=sampling_period_s,
        limits=configuration.hardware.actuator_limits(
            configuration.constants.motor_voltage_offset_v
        ),
    )

    print(f"Initial perturbation: {args.perturb:.2f} degrees")
    orchestrator = build_orchestrator(
        simulator,
        configuration,
        max_cycles=max(1, int(round(args.sim_duration / sampling_period_s))),
    )
    try:
        stats = orchestrator.run()
    except BalancerError as error:
        logger.error("%s: %s", type(error).__name__, error)
        return 1

    history = np.array(simulator.state_history)

    print("\n" + "=" * 50)
    print("Simulation Results")
    print("=" * 50)
    print(f"  Success (no fall): {not simulator.has_fallen}")
    print(f"  Cycles: {stats.iterations}")
    print(f"  Gain K: {orchestrator.gain.gain.ravel() if orchestrator.gain else None}")
    print(f"  Mean loop time: {stats.mean_loop_time_s * 1e3:.2f}ms")
    print(f"  Max loop time: {stats.max_loop_time_s * 1e3:.2f}ms")
    print(f"  Saturated commands: {stats.saturated_commands}")
    print(f"  Numerical errors: {stats.numerical_errors}")
    if len(history) > 0:
        max_pitch = np.rad2deg(np.max(np.abs(history[:, 0])))
        final_pitch = np.rad2deg(history[-1, 0])
        print(f"  Max pitch: {max_pitch:.2f} degrees")
        print(f"  Final pitch: {final_pitch:.3f} degrees")

    return 0 if not simulator.has_fallen else 1


if __name__ == '__main__':
    sys.exit(main())
