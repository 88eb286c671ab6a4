"""Shared helpers for lqocp."""

from .validation import (
    as_matrix,
    as_stacked,
    as_vector,
    check_finite,
    stage_counts,
    validate_bounds,
)

__all__ = [
    "as_matrix",
    "as_stacked",
    "as_vector",
    "check_finite",
    "stage_counts",
    "validate_bounds",
]
