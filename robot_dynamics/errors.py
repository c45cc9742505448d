"""Error taxonomy for the balancing robot.

Every failure the control stack can report derives from BalancerError.
All of them are fatal except NumericalError, which the real-time loop
logs and recovers from by holding the previous filter estimate.
"""


class BalancerError(Exception):
    """Base class for all balancing robot errors."""


class ConfigurationError(BalancerError, ValueError):
    """Invalid parameters, cost weights, matrix literals or transport target."""


class ResourceError(BalancerError):
    """Synchronization or worker resources could not be acquired or were misused."""


class TransportError(BalancerError):
    """Open, read or write failure on the sensor/actuator channel."""


class InsufficientDataError(BalancerError):
    """Calibration stream ended before the required number of samples."""


class NumericalError(BalancerError):
    """Singular innovation covariance or non-finite filter result.

    Recoverable: the filter keeps its previous estimate.
    """


class ConvergenceError(BalancerError):
    """Riccati iteration did not converge to a stabilizing solution."""
