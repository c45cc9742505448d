"""LQR gain synthesis for the balancing robot.

Public API:
    - LQRConfig: Cost weights and Riccati solver settings
    - RiccatiController: Solves the feedback gain once and signals readiness
    - LQRGain: Solved gain K, cost-to-go P and solver diagnostics
    - iterate_riccati: Discrete Riccati difference iteration
    - build_state_cost_matrix / build_control_cost_matrix: Q and R builders
"""

from lqr.config import LQRConfig
from lqr.cost_matrices import build_state_cost_matrix, build_control_cost_matrix
from lqr.riccati import LQRGain, RiccatiController, iterate_riccati

__all__ = [
    'LQRConfig',
    'RiccatiController',
    'LQRGain',
    'iterate_riccati',
    'build_state_cost_matrix',
    'build_control_cost_matrix',
]
