"""
Base class for LQ optimal control solvers.

Every backend follows the same call contract:

    solver.configure(horizon, settings)   # sizes internal storage
    solver.set_problem(problem)           # validates and loads stage data
    solution = solver.solve()             # blocking
    solver.get_solution_state()           # (N+1, n_x)
    solver.get_solution_control()         # (N, n_u)
    solver.get_feedback()                 # backend dependent

Backends are selected by name through :func:`get_solver`.
"""

import logging
import time
import warnings
from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from ..exceptions import (
    ConfigurationError,
    DimensionMismatchError,
    InvalidInputError,
    NonConvergenceWarning,
    UnsupportedOperationError,
)
from ..problem import LQOCProblem
from ..result import LQOCSolution
from ..settings import IPMSettings
from ..utils.validation import stage_counts

logger = logging.getLogger(__name__)

Counts = Union[int, Sequence[int], None]


class LQOCSolver(ABC):
    """
    Abstract base class for stage-structured LQ solvers.

    Args:
        state_dim: State dimension n_x
        control_dim: Control dimension n_u
        settings: IPMSettings or params dict

    Instances own their buffers and are not thread safe; use one instance
    per thread.
    """

    name: str = "base"
    supports_constraints: bool = False

    def __init__(
        self,
        state_dim: int,
        control_dim: int,
        settings: Optional[Union[IPMSettings, Mapping[str, Any]]] = None,
    ) -> None:
        if state_dim < 1 or control_dim < 1:
            raise InvalidInputError(
                f"state_dim and control_dim must be positive, got {state_dim}, {control_dim}"
            )
        self.state_dim = int(state_dim)
        self.control_dim = int(control_dim)
        self.settings = IPMSettings.from_params(settings)

        self._horizon: Optional[int] = None
        self._n_bounds: Tuple[int, ...] = ()
        self._n_general: Tuple[int, ...] = ()
        self._x0: Optional[np.ndarray] = None
        self._x_nominal: Optional[np.ndarray] = None
        self._u_nominal: Optional[np.ndarray] = None
        self._problem_set = False
        self._solved = False

    @property
    def horizon(self) -> Optional[int]:
        return self._horizon

    @property
    def is_configured(self) -> bool:
        return self._horizon is not None

    # ------------------------------------------------------------------
    # Public contract
    # ------------------------------------------------------------------

    def configure(
        self,
        horizon: int,
        settings: Optional[Union[IPMSettings, Mapping[str, Any]]] = None,
        n_bounds: Counts = 0,
        n_general: Counts = 0,
    ) -> None:
        """
        Fix the problem structure and size the internal storage.

        Storage is only reallocated when the horizon or the constraint
        counts change. Invalid arguments leave the solver untouched.

        Args:
            horizon: Number of stages N (> 0)
            settings: New settings; the current ones are kept if None
            n_bounds: Box bounds per stage, scalar or N+1 entries
            n_general: General constraints per stage, scalar or N+1 entries

        Raises:
            ConfigurationError: If ``horizon <= 0``.
        """
        if horizon is None or int(horizon) != horizon or horizon <= 0:
            raise ConfigurationError(f"horizon must be a positive integer, got {horizon}")
        horizon = int(horizon)
        nb = stage_counts(n_bounds, horizon, "n_bounds")
        ng = stage_counts(n_general, horizon, "n_general")
        self._check_structure(horizon, nb, ng)
        new_settings = self.settings if settings is None else IPMSettings.from_params(settings)

        self.settings = new_settings
        if (horizon, nb, ng) != (self._horizon, self._n_bounds, self._n_general):
            self._horizon, self._n_bounds, self._n_general = horizon, nb, ng
            self._allocate()
            self._problem_set = False
            self._solved = False
            logger.debug(
                "%s: allocated storage for N=%d, nb=%s, ng=%s",
                self.name, horizon, nb, ng,
            )

    def set_problem(self, problem: LQOCProblem) -> None:
        """
        Validate ``problem`` against the configured structure and load it.

        Raises:
            ConfigurationError: If ``configure()`` was not called.
            DimensionMismatchError: If horizon, dimensions or constraint
                counts differ from the configured ones.
        """
        if not self.is_configured:
            raise ConfigurationError("time horizon not set, call configure() first")
        if problem.horizon != self._horizon:
            raise DimensionMismatchError(
                f"problem horizon {problem.horizon} != configured horizon {self._horizon}"
            )
        if (problem.state_dim, problem.control_dim) != (self.state_dim, self.control_dim):
            raise DimensionMismatchError(
                f"problem dims (n_x={problem.state_dim}, n_u={problem.control_dim}) != "
                f"solver dims (n_x={self.state_dim}, n_u={self.control_dim})"
            )
        problem.validate()
        if problem.is_constrained and not self.supports_constraints:
            raise UnsupportedOperationError(
                f"{self.name} solver does not handle inequality constraints"
            )
        if tuple(problem.n_bounds) != self._n_bounds or tuple(problem.n_general) != self._n_general:
            raise DimensionMismatchError(
                f"constraint counts nb={problem.n_bounds}, ng={problem.n_general} differ "
                f"from configured nb={list(self._n_bounds)}, ng={list(self._n_general)}"
            )

        self._load_problem(problem)
        self._x0 = problem.x[0].copy()
        self._x_nominal = problem.x.copy()
        self._u_nominal = problem.u.copy()
        self._problem_set = True
        self._solved = False

    def solve(self) -> LQOCSolution:
        """
        Solve the loaded problem. Always returns; non-convergence is
        reported through ``solution.status`` and a NonConvergenceWarning.
        """
        if not self.is_configured:
            raise ConfigurationError("time horizon not set, call configure() first")
        if not self._problem_set:
            raise ConfigurationError("no problem set, call set_problem() first")

        start_time = time.perf_counter()
        solution = self._solve_impl()
        solution.solve_time = time.perf_counter() - start_time
        solution.solver = self.name
        self._solved = True

        if not solution.converged:
            warnings.warn(
                f"{self.name} solver returned {solution.status} after "
                f"{solution.iterations} iterations (mu={solution.mu:.3e}, "
                f"max residual={solution.max_residual:.3e})",
                NonConvergenceWarning,
                stacklevel=2,
            )
        return solution

    def get_solution_state(self) -> np.ndarray:
        """State trajectory (N+1, n_x) of the latest solve."""
        self._require_solution()
        return self._solution_state()

    def get_solution_control(self) -> np.ndarray:
        """Control sequence (N, n_u) of the latest solve."""
        self._require_solution()
        return self._solution_control()

    def get_feedback(self) -> np.ndarray:
        """Feedback gains; backends without them raise."""
        raise UnsupportedOperationError(
            f"{self.name} solver does not compute feedback gains"
        )

    # ------------------------------------------------------------------
    # Backend hooks
    # ------------------------------------------------------------------

    def _check_structure(self, horizon: int, nb: Tuple[int, ...], ng: Tuple[int, ...]) -> None:
        if not self.supports_constraints and (any(nb) or any(ng)):
            raise UnsupportedOperationError(
                f"{self.name} solver does not handle inequality constraints"
            )

    def _require_solution(self) -> None:
        if not self._solved:
            raise ConfigurationError("no solution available, call solve() first")

    @abstractmethod
    def _allocate(self) -> None:
        """(Re)build all internal storage for the configured structure."""

    @abstractmethod
    def _load_problem(self, problem: LQOCProblem) -> None:
        """Copy problem data into internal storage."""

    @abstractmethod
    def _solve_impl(self) -> LQOCSolution:
        ...

    @abstractmethod
    def _solution_state(self) -> np.ndarray:
        ...

    @abstractmethod
    def _solution_control(self) -> np.ndarray:
        ...

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(state_dim={self.state_dim}, "
            f"control_dim={self.control_dim}, horizon={self._horizon})"
        )


def get_available_solvers():
    """Return list of available solver backend names."""
    return list(_solver_registry().keys())


def get_solver(name: str, state_dim: int, control_dim: int, **kwargs) -> LQOCSolver:
    """
    Factory function to create a solver backend by name.

    Args:
        name: Backend name ('ipm', 'hpipm', 'riccati')
        state_dim: State dimension
        control_dim: Control dimension
        **kwargs: Passed to the backend (e.g. ``settings``)

    Raises:
        InvalidInputError: If the backend is unknown.
    """
    registry = _solver_registry()
    name_lower = name.lower()
    if name_lower not in registry:
        raise InvalidInputError(
            f"unknown solver '{name}'. Available solvers: {list(registry)}"
        )
    return registry[name_lower](state_dim, control_dim, **kwargs)


def _solver_registry():
    from .ipm import StructuredIPMSolver
    from .riccati import RiccatiSolver

    return {
        "ipm": StructuredIPMSolver,
        "hpipm": StructuredIPMSolver,
        "riccati": RiccatiSolver,
    }
