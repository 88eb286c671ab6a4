"""
Linear stage models
===================

>>> from lqocp.systems import LinearSystem
>>> system = LinearSystem(A, B)
>>> system.is_controllable(), system.is_observable()
>>> W = system.controllability_gramian(max_iters=200, tol=1e-10)
"""

from .linear import (
    CONTINUOUS_TIME,
    DISCRETE_TIME,
    LinearSystem,
    double_integrator,
)

__all__ = [
    "LinearSystem",
    "double_integrator",
    "DISCRETE_TIME",
    "CONTINUOUS_TIME",
]
