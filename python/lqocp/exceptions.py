"""
lqocp Exception Classes
=======================

Custom exceptions for lqocp error handling.

Setup-time problems (configuration, dimensions, unsupported requests) are
raised. Numerical difficulties during a solve are not: they are reported
through the solution status, see :class:`lqocp.result.Status`.
"""


class LqocpError(Exception):
    """Base exception for all lqocp errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConfigurationError(LqocpError):
    """
    Raised when a solver is used in the wrong order or configured badly.

    Examples: non-positive horizon, ``set_problem()`` before
    ``configure()``, solution access before ``solve()``.
    """


class DimensionMismatchError(LqocpError):
    """
    Raised when matrix/vector dimensions disagree with the configured ones.
    """

    def __init__(self, message: str) -> None:
        super().__init__(f"Dimension mismatch: {message}")


class UnsupportedOperationError(LqocpError, NotImplementedError):
    """
    Raised for operations that are deliberately not supported.

    Examples: continuous-time Gramians, output maps of manifold-valued
    states, feedback gains from the interior-point backend.
    """


class InvalidInputError(LqocpError):
    """
    Raised when input data is invalid.

    Examples: NaN values, lower bound above upper bound, unknown setting.
    """

    def __init__(self, message: str) -> None:
        super().__init__(f"Invalid input: {message}")


class NonConvergenceWarning(UserWarning):
    """Issued when a solve stops without meeting its tolerances."""
