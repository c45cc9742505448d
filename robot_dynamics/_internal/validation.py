"""Runtime contract validation utilities.

Internal module for parameter and input validation. Failures raise
ConfigurationError, which is also a ValueError.
"""

import numpy as np
import yaml

from robot_dynamics.errors import ConfigurationError


def validate_positive(value: float, name: str) -> None:
    """Validate that a value is strictly positive.

    Args:
        value: Value to validate
        name: Parameter name for error message

    Raises:
        ConfigurationError: If value <= 0
    """
    if not np.isfinite(value) or value <= 0:
        raise ConfigurationError(
            f"{name} must be positive, got {value}"
        )


def validate_non_negative(value: float, name: str) -> None:
    """Validate that a value is non-negative.

    Args:
        value: Value to validate
        name: Parameter name for error message

    Raises:
        ConfigurationError: If value < 0
    """
    if not np.isfinite(value) or value < 0:
        raise ConfigurationError(
            f"{name} must be non-negative, got {value}"
        )


def validate_positive_integer(value: int, name: str) -> None:
    """Validate that a value is a positive integer."""
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigurationError(f"{name} must be a positive integer, got {value}")


def validate_non_negative_integer(value: int, name: str) -> None:
    """Validate that a value is a non-negative integer."""
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigurationError(
            f"{name} must be a non-negative integer, got {value}"
        )


def validate_square(matrix: np.ndarray, name: str) -> None:
    """Validate that a matrix is square and finite."""
    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        raise ConfigurationError(f"{name} must be square, got shape {matrix.shape}")
    if not np.all(np.isfinite(matrix)):
        raise ConfigurationError(f"{name} contains non-finite values: {matrix}")


def load_yaml_mapping(yaml_path: str, allow_empty: bool = True) -> dict:
    """Read a YAML file whose top level is a mapping.

    An empty file reads as an empty mapping when allow_empty is set.

    Raises:
        FileNotFoundError: If the file does not exist
        ConfigurationError: If the file is not valid YAML or not a mapping
    """
    with open(yaml_path, 'r') as file:
        try:
            config = yaml.safe_load(file)
        except yaml.YAMLError as error:
            raise ConfigurationError(f"Malformed YAML in {yaml_path}: {error}") from error

    if config is None and allow_empty:
        return {}
    if not isinstance(config, dict):
        raise ConfigurationError(f"{yaml_path} does not contain a mapping")
    return config
