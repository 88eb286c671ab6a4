"""
lqocp: Structured Solvers for Linear-Quadratic Optimal Control
==============================================================

lqocp solves the finite-horizon, time-varying LQ sub-problems that arise
inside SQP/Gauss-Newton optimal control and MPC loops, using Riccati
recursions whose cost grows linearly with the horizon.

Quick Start
-----------
>>> import numpy as np
>>> import lqocp
>>> system = lqocp.double_integrator(dt=0.1)
>>> problem = lqocp.LQOCProblem.from_lti(
...     system, Q=np.diag([10.0, 1.0]), R=np.array([[0.1]]),
...     horizon=20, x0=np.array([1.0, 0.0]),
... )
>>> problem.set_input_box_constraints(-1.0, 1.0)
>>> solver = lqocp.get_solver("ipm", state_dim=2, control_dim=1)
>>> solver.configure(horizon=20, n_bounds=problem.n_bounds)
>>> solver.set_problem(problem)
>>> solution = solver.solve()
>>> print(solution.status, solution.u[0])

Stage models
------------
>>> system = lqocp.LinearSystem(A, B, C)
>>> system.is_controllable(), system.is_observable()
>>> W = system.controllability_gramian()
"""

__version__ = "0.1.0"
__author__ = "lqocp Contributors"

from .exceptions import (
    ConfigurationError,
    DimensionMismatchError,
    InvalidInputError,
    LqocpError,
    NonConvergenceWarning,
    UnsupportedOperationError,
)
from .problem import LQOCProblem, StageConstraints
from .result import LQOCSolution, Status
from .settings import IPMSettings
from .solvers import (
    LQOCSolver,
    RiccatiSolver,
    StructuredIPMSolver,
    get_available_solvers,
    get_solver,
)
from .systems import LinearSystem, double_integrator
from .transcription import AbsoluteQP, ProblemTranscriber

__all__ = [
    # Version
    "__version__",

    # Stage models
    "LinearSystem",
    "double_integrator",

    # Problem data
    "LQOCProblem",
    "StageConstraints",
    "ProblemTranscriber",
    "AbsoluteQP",

    # Solving
    "LQOCSolver",
    "StructuredIPMSolver",
    "RiccatiSolver",
    "IPMSettings",
    "get_solver",
    "get_available_solvers",

    # Results
    "LQOCSolution",
    "Status",

    # Exceptions
    "LqocpError",
    "ConfigurationError",
    "DimensionMismatchError",
    "UnsupportedOperationError",
    "InvalidInputError",
    "NonConvergenceWarning",
]


def info() -> str:
    """Return information about the lqocp installation."""
    import platform

    import numpy
    import scipy

    lines = [
        f"lqocp version: {__version__}",
        f"Python version: {platform.python_version()}",
        f"Platform: {platform.platform()}",
        f"NumPy version: {numpy.__version__}",
        f"SciPy version: {scipy.__version__}",
        f"Solvers: {', '.join(get_available_solvers())}",
    ]
    return "\n".join(lines)
