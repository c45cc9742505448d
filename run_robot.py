#!/usr/bin/env python3
"""Main entry point to launch the LQR balancing robot.

The robot must be held still and upright while the loop calibrates; it
balances as soon as calibration finishes and the LQR gain is solved.

Examples:
    # Default weights, default serial device
    python run_robot.py

    # Custom LQR weights
    python run_robot.py -q '1 1 1000 10' -r 1000000

    # Another serial device, run for 60 seconds
    python run_robot.py --device /dev/ttyACM1 --duration 60
"""

import argparse
import logging
import signal
import sys
from dataclasses import replace

from robot_dynamics import BalancerError
from hardware import build_orchestrator, load_configuration, open_serial_transport
from hardware.config_loader import (
    DEFAULT_ROBOT_PARAMS_PATH,
    DEFAULT_ESTIMATOR_PARAMS_PATH,
    DEFAULT_LQR_PARAMS_PATH,
    DEFAULT_HARDWARE_PARAMS_PATH,
)

logger = logging.getLogger('run_robot')


def build_parser() -> argparse.ArgumentParser:
    """Command-line parser shared by the robot and simulation entry points."""
    parser = argparse.ArgumentParser(
        description='LQR Balancing Robot Controller',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    # LQR weights
    parser.add_argument(
        '-q',
        dest='state_cost',
        type=str,
        default=None,
        help="Diagonal of Q over [theta, dtheta, phi, dphi], e.g. '1 1 1000 10'"
    )
    parser.add_argument(
        '-r',
        dest='control_cost',
        type=str,
        default=None,
        help="Control cost R as a matrix literal, e.g. '1000000'"
    )

    # Serial link
    parser.add_argument(
        '--device',
        type=str,
        default=None,
        help='Serial device (default: from hardware params, /dev/ttyACM0)'
    )
    parser.add_argument(
        '--baud',
        type=int,
        default=None,
        help='Serial baud rate (default: from hardware params, 57600)'
    )

    # Loop length
    parser.add_argument(
        '--samples',
        type=int,
        default=None,
        help='Calibration samples N (default: from estimator params, 200)'
    )
    parser.add_argument(
        '--duration',
        type=float,
        default=None,
        help='Control duration in seconds (default: run until Ctrl+C)'
    )

    # Configuration paths
    parser.add_argument(
        '--robot-params',
        type=str,
        default=DEFAULT_ROBOT_PARAMS_PATH,
        help='Path to robot parameters YAML'
    )
    parser.add_argument(
        '--estimator-params',
        type=str,
        default=DEFAULT_ESTIMATOR_PARAMS_PATH,
        help='Path to estimator parameters YAML'
    )
    parser.add_argument(
        '--lqr-params',
        type=str,
        default=DEFAULT_LQR_PARAMS_PATH,
        help='Path to LQR parameters YAML'
    )
    parser.add_argument(
        '--hardware-params',
        type=str,
        default=DEFAULT_HARDWARE_PARAMS_PATH,
        help='Path to hardware parameters YAML'
    )

    # Logging
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Log every numerical detail (DEBUG level)'
    )

    return parser


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s %(levelname)-7s %(name)s: %(message)s',
    )


def configuration_from_args(args):
    """Load the YAML configuration and apply command-line overrides.

    Raises:
        ConfigurationError: If a file or an override is invalid
    """
    configuration = load_configuration(
        robot_params_path=args.robot_params,
        estimator_params_path=args.estimator_params,
        lqr_params_path=args.lqr_params,
        hardware_params_path=args.hardware_params,
    )

    lqr = configuration.lqr.with_weights(
        state_cost_diagonal=args.state_cost,
        control_cost=args.control_cost,
    )
    estimator = configuration.estimator
    if args.samples is not None:
        estimator = replace(estimator, calibration_sample_count=args.samples)
    hardware = configuration.hardware
    if args.device is not None:
        hardware = replace(hardware, device=args.device)
    if args.baud is not None:
        hardware = replace(hardware, baudrate=args.baud)

    configuration = replace(
        configuration, lqr=lqr, estimator=estimator, hardware=hardware
    )

    logger.info("Feedback rate: %.1f Hz", 1.0 / configuration.estimator.sampling_period_s)
    logger.info("diag(Q): %s", ' '.join(f"{q:g}" for q in configuration.lqr.state_cost_diagonal))
    logger.info("R: %s", configuration.lqr.control_cost_matrix.tolist())
    return configuration


def cycles_for_duration(duration_s, sampling_period_s):
    """Controlling cycles in a run of the given length (None: unlimited)."""
    if duration_s is None:
        return None
    return max(1, int(round(duration_s / sampling_period_s)))


def install_stop_handlers(orchestrator) -> None:
    """Route SIGINT and SIGTERM to a graceful loop stop."""
    def handle_signal(signum, frame):
        logger.info("Received signal %d, stopping", signum)
        orchestrator.request_stop()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)


def main(argv=None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    print("=" * 60)
    print("LQR BALANCING ROBOT - Hardware Controller")
    print("=" * 60)

    try:
        configuration = configuration_from_args(args)
        hardware = configuration.hardware
        print(f"Device:         {hardware.device}")
        print(f"Baud rate:      {hardware.baudrate}")
        print(f"Samples:        {configuration.estimator.calibration_sample_count}")
        print(f"Duration:       {args.duration if args.duration else 'unlimited'}")
        print("=" * 60)
        print()
        print("Keep the robot still and upright during calibration...")

        transport = open_serial_transport(hardware)
        orchestrator = build_orchestrator(
            transport,
            configuration,
            max_cycles=cycles_for_duration(
                args.duration, configuration.estimator.sampling_period_s
            ),
        )
        install_stop_handlers(orchestrator)
        stats = orchestrator.run()
    except (BalancerError, FileNotFoundError) as error:
        logger.error("%s: %s", type(error).__name__, error)
        return 1

    print()
    print(f"✓ Done: {stats.iterations} cycles, "
          f"{stats.saturated_commands} saturated commands, "
          f"{stats.total_numerical_errors} numerical errors")
    return 0


if __name__ == '__main__':
    sys.exit(main())
