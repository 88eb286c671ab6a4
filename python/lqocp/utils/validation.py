"""Input validation utilities."""

from typing import Sequence, Tuple, Union

import numpy as np

from ..exceptions import DimensionMismatchError, InvalidInputError


def as_matrix(
    value,
    shape: Tuple[int, int],
    name: str,
) -> np.ndarray:
    """
    Convert ``value`` to a float64 matrix of the given shape.

    Raises:
        DimensionMismatchError: If the shape differs.
        InvalidInputError: If the data holds NaN or inf.
    """
    arr = np.asarray(value, dtype=np.float64)
    if arr.ndim != 2 or arr.shape != tuple(shape):
        raise DimensionMismatchError(
            f"{name} must have shape {tuple(shape)}, got {arr.shape}"
        )
    check_finite(arr, name)
    return arr


def as_vector(value, size: int, name: str) -> np.ndarray:
    """Convert ``value`` to a float64 vector of length ``size``."""
    arr = np.asarray(value, dtype=np.float64)
    if arr.ndim == 0 and size == 1:
        arr = arr.reshape(1)
    if arr.ndim != 1 or arr.shape[0] != size:
        raise DimensionMismatchError(
            f"{name} must have shape ({size},), got {arr.shape}"
        )
    check_finite(arr, name)
    return arr


def as_stacked(value, shape: Tuple[int, ...], name: str) -> np.ndarray:
    """Convert a per-stage stack (e.g. ``(N, n, n)``) to float64."""
    arr = np.asarray(value, dtype=np.float64)
    if arr.shape != tuple(shape):
        raise DimensionMismatchError(
            f"{name} must have shape {tuple(shape)}, got {arr.shape}"
        )
    check_finite(arr, name)
    return arr


def check_finite(arr: np.ndarray, name: str) -> None:
    """Reject NaN and infinite entries."""
    if arr.size and not np.all(np.isfinite(arr)):
        raise InvalidInputError(f"{name} contains NaN or infinite values")


def stage_counts(
    counts: Union[int, Sequence[int], None],
    horizon: int,
    name: str,
) -> Tuple[int, ...]:
    """
    Expand a scalar or per-stage constraint count to ``horizon + 1`` entries.
    """
    if counts is None:
        counts = 0
    if np.isscalar(counts):
        counts = [int(counts)] * (horizon + 1)
    counts = tuple(int(c) for c in counts)
    if len(counts) != horizon + 1:
        raise DimensionMismatchError(
            f"{name} needs {horizon + 1} per-stage entries, got {len(counts)}"
        )
    if any(c < 0 for c in counts):
        raise InvalidInputError(f"{name} must be non-negative, got {counts}")
    return counts


def validate_bounds(
    lower: np.ndarray,
    upper: np.ndarray,
    name: str,
    tol: float = 0.0,
) -> None:
    """Check ``lower <= upper`` element-wise."""
    if np.any(lower > upper + tol):
        bad = int(np.argmax(lower > upper + tol))
        raise InvalidInputError(
            f"{name}: lower bound {lower[bad]} exceeds upper bound "
            f"{upper[bad]} at row {bad}"
        )
