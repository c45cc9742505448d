"""Simulation module for closed-loop validation without hardware.

This module provides a model-based plant that implements the same
transport interface as the serial link, so the full real-time loop can be
exercised on a workstation.

Public API:
    - BalancingPlantSimulator: Simulated robot board
    - SimulationConfig: Configuration dataclass for the simulator
    - apply_static_friction: Motor dead band model
"""

from simulation.plant_simulator import (
    BalancingPlantSimulator,
    SimulationConfig,
    apply_static_friction,
)

__all__ = [
    'BalancingPlantSimulator',
    'SimulationConfig',
    'apply_static_friction',
]
