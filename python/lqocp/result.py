"""
lqocp Result Classes
====================

Data classes for solver results and status.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import numpy as np


class Status(Enum):
    """
    Solver status codes.

    Attributes:
        SOLVED: Residuals and complementarity within tolerance
        MAX_ITERATIONS: Iteration cap reached, best iterate returned
        STEP_TOO_SMALL: Step length fell below ``alpha_min``
        NUMERICAL_ERROR: A Riccati factorization failed
        UNSOLVED: Problem not yet solved
    """
    SOLVED = "solved"
    MAX_ITERATIONS = "max_iterations"
    STEP_TOO_SMALL = "step_too_small"
    NUMERICAL_ERROR = "numerical_error"
    UNSOLVED = "unsolved"

    def __str__(self) -> str:
        return self.value

    @property
    def is_successful(self) -> bool:
        """True if the solve converged."""
        return self == Status.SOLVED

    @property
    def has_solution(self) -> bool:
        """True if a (possibly non-converged) iterate is available."""
        return self != Status.UNSOLVED


@dataclass
class LQOCSolution:
    """
    Result of solving a linear-quadratic optimal control problem.

    Trajectories are in absolute coordinates, i.e. the updated nominal
    trajectory. ``delta_x``/``delta_u`` hold the step relative to the
    nominal trajectory the problem was built around.

    Attributes:
        status: Solver status
        x: State trajectory (N+1, n_x); ``x[0]`` is the given initial state
        u: Control sequence (N, n_u); there is no terminal control
        pi: Dynamics multipliers (N, n_x), one per stage transition
        lam_lb, lam_ub: Box-bound multipliers per stage, each (nb_i,)
        lam_lg, lam_ug: General-constraint multipliers per stage, (ng_i,)
        t_lb, t_ub, t_lg, t_ug: Matching slacks
        iterations: Number of solver iterations performed
        mu: Final complementarity measure
        res_stationarity: Max-norm of the Lagrangian gradient
        res_dynamics: Max-norm of the dynamics residual
        res_constraints: Max-norm of the inequality residual
        solve_time: Wall clock time in seconds

    Example:
        >>> solution = solver.solve()
        >>> if solution.converged:
        ...     u_apply = solution.u[0]
    """

    status: Status
    x: np.ndarray
    u: np.ndarray
    pi: np.ndarray
    lam_lb: List[np.ndarray] = field(default_factory=list)
    lam_ub: List[np.ndarray] = field(default_factory=list)
    lam_lg: List[np.ndarray] = field(default_factory=list)
    lam_ug: List[np.ndarray] = field(default_factory=list)
    t_lb: List[np.ndarray] = field(default_factory=list)
    t_ub: List[np.ndarray] = field(default_factory=list)
    t_lg: List[np.ndarray] = field(default_factory=list)
    t_ug: List[np.ndarray] = field(default_factory=list)
    delta_x: Optional[np.ndarray] = None
    delta_u: Optional[np.ndarray] = None

    iterations: int = 0
    mu: float = 0.0
    res_stationarity: float = 0.0
    res_dynamics: float = 0.0
    res_constraints: float = 0.0
    solve_time: float = 0.0
    solver: str = ""
    info: Dict[str, Any] = field(default_factory=dict)

    @property
    def converged(self) -> bool:
        """Whether the solver met its tolerances."""
        return self.status.is_successful

    @property
    def horizon(self) -> int:
        return self.u.shape[0]

    @property
    def max_residual(self) -> float:
        """Largest of the three residual norms."""
        return max(self.res_stationarity, self.res_dynamics, self.res_constraints)

    def __repr__(self) -> str:
        return (
            f"LQOCSolution(status={self.status}, "
            f"horizon={self.horizon}, "
            f"iterations={self.iterations}, "
            f"mu={self.mu:.3e}, "
            f"time={self.solve_time:.4f}s)"
        )

    def summary(self) -> str:
        """Return a formatted summary of the solve result."""
        lines = [
            "=" * 50,
            f"lqocp Solve Summary ({self.solver})",
            "=" * 50,
            f"Status:           {self.status}",
            f"Horizon:          {self.horizon}",
            f"Iterations:       {self.iterations}",
            f"Solve time:       {self.solve_time:.4f} s",
            "-" * 50,
            f"Stationarity:     {self.res_stationarity:.6e}",
            f"Dynamics:         {self.res_dynamics:.6e}",
            f"Inequalities:     {self.res_constraints:.6e}",
            f"Complementarity:  {self.mu:.6e}",
            "=" * 50,
        ]
        return "\n".join(lines)
