"""Dense matrix literal format.

Matrices are written as ``;``-separated rows of whitespace-separated
numbers, e.g. ``"0 1 0 0; 1 0 0 1"`` for a 2x4 matrix. A single row is a
row vector and ``"0; 1"`` is a column vector. Every matrix-valued
configuration entry (cost weights, covariances) accepts this format.
"""

from typing import Union

import numpy as np

from robot_dynamics.errors import ConfigurationError


def parse_matrix_literal(literal: str) -> np.ndarray:
    """Parse a matrix literal into a 2-D float array.

    Args:
        literal: Text such as ``"1 0; 0 1"``

    Returns:
        Array of shape (rows, columns)

    Raises:
        ConfigurationError: If the literal is empty, ragged or not numeric
    """
    if not isinstance(literal, str):
        raise ConfigurationError(
            f"Matrix literal must be a string, got {type(literal).__name__}"
        )

    rows = []
    for row_text in literal.split(';'):
        fields = row_text.split()
        if not fields:
            raise ConfigurationError(f"Empty row in matrix literal '{literal}'")
        try:
            rows.append([float(field) for field in fields])
        except ValueError as error:
            raise ConfigurationError(
                f"Non-numeric entry in matrix literal '{literal}'"
            ) from error

    column_count = len(rows[0])
    if any(len(row) != column_count for row in rows):
        raise ConfigurationError(
            f"Rows of matrix literal '{literal}' have different lengths"
        )

    matrix = np.array(rows, dtype=float)
    if not np.all(np.isfinite(matrix)):
        raise ConfigurationError(
            f"Matrix literal '{literal}' contains non-finite values"
        )
    return matrix


def format_matrix_literal(matrix: Union[np.ndarray, list, float]) -> str:
    """Serialize a matrix (or vector/scalar) to the literal format.

    A 1-D array is written as a single row. ``repr`` of each float is used
    so that parsing the result gives back exactly the same values.

    Args:
        matrix: Values to serialize

    Returns:
        Matrix literal text
    """
    array = np.atleast_2d(np.asarray(matrix, dtype=float))
    if array.ndim != 2:
        raise ConfigurationError(
            f"Only 2-D matrices can be formatted, got shape {array.shape}"
        )
    return '; '.join(
        ' '.join(repr(float(value)) for value in row) for row in array
    )


def as_vector(value: Union[str, float, int, list, tuple, np.ndarray], name: str) -> np.ndarray:
    """Coerce a config entry (literal, scalar or sequence) to a 1-D vector.

    Args:
        value: Matrix literal, number or sequence of numbers
        name: Parameter name for error messages

    Returns:
        Flattened float array

    Raises:
        ConfigurationError: If the value is not a vector
    """
    if isinstance(value, str):
        matrix = parse_matrix_literal(value)
    else:
        try:
            matrix = np.atleast_2d(np.asarray(value, dtype=float))
        except (TypeError, ValueError) as error:
            raise ConfigurationError(f"{name} is not numeric: {value!r}") from error

    if matrix.ndim != 2 or min(matrix.shape) != 1:
        raise ConfigurationError(
            f"{name} must be a row or column vector, got shape {matrix.shape}"
        )
    return matrix.reshape(-1)


def as_matrix(value: Union[str, float, int, list, tuple, np.ndarray], name: str) -> np.ndarray:
    """Coerce a config entry (literal, scalar or nested list) to a 2-D matrix."""
    if isinstance(value, str):
        return parse_matrix_literal(value)
    try:
        matrix = np.atleast_2d(np.asarray(value, dtype=float))
    except (TypeError, ValueError) as error:
        raise ConfigurationError(f"{name} is not numeric: {value!r}") from error
    if matrix.ndim != 2:
        raise ConfigurationError(f"{name} must be 2-D, got shape {matrix.shape}")
    return matrix
