"""
Linear-Quadratic Optimal Control Problems
=========================================

Stage-wise LQ problem in deviation coordinates around a nominal trajectory
(x_i, u_i):

    minimize    sum_{i<N} [ 0.5 du' R_i du + du' S_i dx + 0.5 dx' Q_i dx
                            + r_i' du + q_i' dx ]
                + 0.5 dx_N' Q_N dx_N + q_N' dx_N
    subject to  dx_{i+1} = A_i dx_i + B_i du_i + b_i
                dx_0 = 0
                lb_i <= [du_i; dx_i][idxb_i] <= ub_i
                lg_i <= D_i du_i + C_i dx_i <= ug_i

S_i has shape (n_u, n_x). Box-bound indices address the stacked stage
vector [u; x], controls first.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np

from .exceptions import DimensionMismatchError, InvalidInputError
from .systems.linear import LinearSystem
from .utils.validation import (
    as_matrix,
    as_stacked,
    as_vector,
    validate_bounds,
)


@dataclass
class StageConstraints:
    """
    Linear inequality constraints of one stage.

    Args:
        idxb: Indices into [u; x] that carry box bounds (nb,)
        lb, ub: Box bounds (nb,)
        C: General constraint state matrix (ng, n_x)
        D: General constraint control matrix (ng, n_u)
        lg, ug: General constraint bounds (ng,)

    Bounds must be finite; drop a row instead of giving it an infinite
    bound.
    """
    idxb: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.int64))
    lb: np.ndarray = field(default_factory=lambda: np.zeros(0))
    ub: np.ndarray = field(default_factory=lambda: np.zeros(0))
    C: Optional[np.ndarray] = None
    D: Optional[np.ndarray] = None
    lg: np.ndarray = field(default_factory=lambda: np.zeros(0))
    ug: np.ndarray = field(default_factory=lambda: np.zeros(0))

    def __post_init__(self):
        self.idxb = np.asarray(self.idxb, dtype=np.int64).reshape(-1)
        nb = self.idxb.shape[0]
        self.lb = as_vector(self.lb, nb, "lb")
        self.ub = as_vector(self.ub, nb, "ub")
        validate_bounds(self.lb, self.ub, "box bounds")
        if len(np.unique(self.idxb)) != nb:
            raise InvalidInputError(f"duplicate box-bound indices {self.idxb}")

        ng = np.asarray(self.lg).reshape(-1).shape[0]
        self.lg = as_vector(self.lg, ng, "lg")
        self.ug = as_vector(self.ug, ng, "ug")
        validate_bounds(self.lg, self.ug, "general constraints")
        if ng and (self.C is None or self.D is None):
            raise InvalidInputError("general constraints need both C and D")

    @property
    def nb(self) -> int:
        """Number of box bounds."""
        return self.idxb.shape[0]

    @property
    def ng(self) -> int:
        """Number of general constraints."""
        return self.lg.shape[0]

    def check_dims(self, n_x: int, n_u: int, stage: int) -> None:
        """Validate indices and matrix shapes against the stage size."""
        if self.nb and (self.idxb.min() < 0 or self.idxb.max() >= n_u + n_x):
            raise DimensionMismatchError(
                f"stage {stage}: box-bound indices {self.idxb} outside [0, {n_u + n_x})"
            )
        if self.ng:
            self.C = as_matrix(self.C, (self.ng, n_x), f"C[{stage}]")
            self.D = as_matrix(self.D, (self.ng, n_u), f"D[{stage}]")

    def with_bounds(self, idx, lower, upper) -> "StageConstraints":
        """Return a copy with extra box bounds appended."""
        return StageConstraints(
            idxb=np.concatenate([self.idxb, np.asarray(idx, dtype=np.int64)]),
            lb=np.concatenate([self.lb, np.asarray(lower, dtype=np.float64)]),
            ub=np.concatenate([self.ub, np.asarray(upper, dtype=np.float64)]),
            C=self.C,
            D=self.D,
            lg=self.lg,
            ug=self.ug,
        )

    def with_general(self, C, D, lower, upper) -> "StageConstraints":
        """Return a copy whose general constraints are replaced."""
        return StageConstraints(
            idxb=self.idxb, lb=self.lb, ub=self.ub,
            C=C, D=D, lg=lower, ug=upper,
        )


class LQOCProblem:
    """
    Time-varying LQ optimal control problem with N stages.

    All arrays are allocated zero on construction and filled by the caller
    (typically a linearizer) or by :meth:`from_lti`.

    Attributes:
        x: Nominal states (N+1, n_x); ``x[0]`` is the fixed initial state
        u: Nominal controls (N, n_u)
        A: (N, n_x, n_x), B: (N, n_x, n_u), b: (N, n_x)
        Q: (N+1, n_x, n_x), q: (N+1, n_x)
        S: (N, n_u, n_x), R: (N, n_u, n_u), r: (N, n_u)
        constraints: N+1 StageConstraints

    Example:
        >>> system = double_integrator(dt=0.1)
        >>> problem = LQOCProblem.from_lti(
        ...     system, Q=np.diag([10, 1]), R=np.array([[0.1]]),
        ...     horizon=20, x0=np.array([1.0, 0.0]),
        ... )
        >>> problem.set_input_box_constraints(-1.0, 1.0)
    """

    def __init__(self, horizon: int, state_dim: int, control_dim: int) -> None:
        if horizon < 1:
            raise InvalidInputError(f"horizon must be at least 1, got {horizon}")
        if state_dim < 1 or control_dim < 1:
            raise InvalidInputError(
                f"state_dim and control_dim must be positive, "
                f"got {state_dim}, {control_dim}"
            )
        self.state_dim = int(state_dim)
        self.control_dim = int(control_dim)
        self.change_num_stages(horizon)

    @property
    def horizon(self) -> int:
        return self._horizon

    @property
    def x0(self) -> np.ndarray:
        """Fixed initial state (read-only view of ``x[0]``)."""
        view = self.x[0].view()
        view.flags.writeable = False
        return view

    def change_num_stages(self, horizon: int) -> None:
        """Resize all stage arrays to ``horizon`` and zero them."""
        if horizon < 1:
            raise InvalidInputError(f"horizon must be at least 1, got {horizon}")
        self._horizon = int(horizon)
        self.set_zero()

    def set_zero(self) -> None:
        """Reset all stage data and drop all constraints."""
        N, n, m = self._horizon, self.state_dim, self.control_dim
        self.x = np.zeros((N + 1, n))
        self.u = np.zeros((N, m))
        self.A = np.zeros((N, n, n))
        self.B = np.zeros((N, n, m))
        self.b = np.zeros((N, n))
        self.Q = np.zeros((N + 1, n, n))
        self.q = np.zeros((N + 1, n))
        self.S = np.zeros((N, m, n))
        self.R = np.zeros((N, m, m))
        self.r = np.zeros((N, m))
        self.constraints: List[StageConstraints] = [
            StageConstraints() for _ in range(N + 1)
        ]

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_lti(
        cls,
        system: LinearSystem,
        Q: np.ndarray,
        R: np.ndarray,
        horizon: int,
        x0: np.ndarray,
        S: Optional[np.ndarray] = None,
        Q_final: Optional[np.ndarray] = None,
        u_nominal: Optional[np.ndarray] = None,
        x_ref: Optional[np.ndarray] = None,
        dt: Optional[float] = None,
    ) -> "LQOCProblem":
        """
        Build every stage from an LTI system and time-invariant cost.

        The absolute cost is ``0.5 (x - x_ref)' Q (x - x_ref) + u' S x
        + 0.5 u' R u`` (terminal ``Q_final``). The nominal trajectory is the
        rollout of ``u_nominal`` (zero by default) from ``x0``, so b = 0 and
        the gradients are the cost gradients at the nominal point.

        Continuous-time systems are discretized with sampling time ``dt``
        (zero-order hold).
        """
        if not system.is_discrete:
            if dt is None:
                raise InvalidInputError("dt is required for continuous-time systems")
            system = system.discretize(dt)

        n, m = system.n_states, system.n_inputs
        problem = cls(horizon, n, m)
        N = problem.horizon

        Q = as_matrix(Q, (n, n), "Q")
        R = as_matrix(R, (m, m), "R")
        S = np.zeros((m, n)) if S is None else as_matrix(S, (m, n), "S")
        Q_final = Q if Q_final is None else as_matrix(Q_final, (n, n), "Q_final")
        x_ref = np.zeros(n) if x_ref is None else as_vector(x_ref, n, "x_ref")
        if u_nominal is None:
            u_nominal = np.zeros((N, m))
        u_nominal = as_stacked(u_nominal, (N, m), "u_nominal")

        problem.u[:] = u_nominal
        problem.x[:] = system.simulate(as_vector(x0, n, "x0"), u_nominal)

        A = system.derivative_state()
        B = system.derivative_control()
        for i in range(N):
            problem.A[i] = A
            problem.B[i] = B
            problem.Q[i] = Q
            problem.S[i] = S
            problem.R[i] = R
            dx = problem.x[i] - x_ref
            problem.q[i] = Q @ dx + S.T @ problem.u[i]
            problem.r[i] = R @ problem.u[i] + S @ problem.x[i]
        problem.Q[N] = Q_final
        problem.q[N] = Q_final @ (problem.x[N] - x_ref)
        return problem

    def set_input_box_constraints(
        self,
        lower,
        upper,
        stages: Optional[Sequence[int]] = None,
    ) -> None:
        """
        Bound the control deviation, ``lower <= du_i <= upper``.

        Scalars are broadcast. Applies to stages 0..N-1 by default.
        """
        m = self.control_dim
        lower = np.broadcast_to(np.asarray(lower, dtype=np.float64), (m,))
        upper = np.broadcast_to(np.asarray(upper, dtype=np.float64), (m,))
        stages = range(self._horizon) if stages is None else stages
        for i in stages:
            if not 0 <= i < self._horizon:
                raise InvalidInputError(f"stage {i} has no control")
            self.constraints[i] = self.constraints[i].with_bounds(np.arange(m), lower, upper)

    def set_state_box_constraints(
        self,
        lower,
        upper,
        stages: Optional[Sequence[int]] = None,
    ) -> None:
        """
        Bound the state deviation, ``lower <= dx_i <= upper``.

        Applies to stages 1..N by default; the initial state is fixed and
        cannot be bounded.
        """
        n = self.state_dim
        lower = np.broadcast_to(np.asarray(lower, dtype=np.float64), (n,))
        upper = np.broadcast_to(np.asarray(upper, dtype=np.float64), (n,))
        stages = range(1, self._horizon + 1) if stages is None else stages
        for i in stages:
            if not 1 <= i <= self._horizon:
                raise InvalidInputError(f"stage {i}: only stages 1..N take state bounds")
            offset = self.control_dim if i < self._horizon else 0
            self.constraints[i] = self.constraints[i].with_bounds(
                offset + np.arange(n), lower, upper
            )

    def set_general_constraints(
        self,
        C: np.ndarray,
        D: np.ndarray,
        lower,
        upper,
        stages: Optional[Sequence[int]] = None,
    ) -> None:
        """
        Impose ``lower <= D du_i + C dx_i <= upper`` on the given stages.

        At the terminal stage only the state part ``C`` is used.
        """
        C = np.asarray(C, dtype=np.float64)
        D = np.asarray(D, dtype=np.float64)
        ng = C.shape[0]
        lower = np.broadcast_to(np.asarray(lower, dtype=np.float64), (ng,))
        upper = np.broadcast_to(np.asarray(upper, dtype=np.float64), (ng,))
        stages = range(self._horizon + 1) if stages is None else stages
        for i in stages:
            D_i = D if i < self._horizon else D[:, :0]
            self.constraints[i] = self.constraints[i].with_general(C, D_i, lower, upper)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def stage_control_dim(self, i: int) -> int:
        return self.control_dim if i < self._horizon else 0

    @property
    def n_bounds(self) -> List[int]:
        return [c.nb for c in self.constraints]

    @property
    def n_general(self) -> List[int]:
        return [c.ng for c in self.constraints]

    @property
    def is_constrained(self) -> bool:
        return any(self.n_bounds) or any(self.n_general)

    def validate(self) -> None:
        """
        Check every array against (N, n_x, n_u).

        Raises:
            DimensionMismatchError: On any shape disagreement.
            InvalidInputError: On non-finite data or bad constraints.
        """
        N, n, m = self._horizon, self.state_dim, self.control_dim
        as_stacked(self.x, (N + 1, n), "x")
        as_stacked(self.u, (N, m), "u")
        as_stacked(self.A, (N, n, n), "A")
        as_stacked(self.B, (N, n, m), "B")
        as_stacked(self.b, (N, n), "b")
        as_stacked(self.Q, (N + 1, n, n), "Q")
        as_stacked(self.q, (N + 1, n), "q")
        as_stacked(self.S, (N, m, n), "S")
        as_stacked(self.R, (N, m, m), "R")
        as_stacked(self.r, (N, m), "r")
        if len(self.constraints) != N + 1:
            raise DimensionMismatchError(
                f"need {N + 1} stage constraint sets, got {len(self.constraints)}"
            )
        for i, con in enumerate(self.constraints):
            con.check_dims(n, self.stage_control_dim(i), i)
        if self.constraints[0].nb and self.constraints[0].idxb.max() >= m:
            raise InvalidInputError("the initial state is fixed and cannot be bounded")

    def rollout(self, du: np.ndarray) -> np.ndarray:
        """Simulate the deviation dynamics from dx_0 = 0, returns (N+1, n_x)."""
        N = self._horizon
        du = as_stacked(du, (N, self.control_dim), "du")
        dx = np.zeros((N + 1, self.state_dim))
        for i in range(N):
            dx[i + 1] = self.A[i] @ dx[i] + self.B[i] @ du[i] + self.b[i]
        return dx

    def evaluate_cost(self, dx: np.ndarray, du: np.ndarray) -> float:
        """Value of the quadratic model for a deviation trajectory."""
        N = self._horizon
        cost = 0.0
        for i in range(N):
            cost += 0.5 * dx[i] @ self.Q[i] @ dx[i] + 0.5 * du[i] @ self.R[i] @ du[i]
            cost += du[i] @ self.S[i] @ dx[i] + self.q[i] @ dx[i] + self.r[i] @ du[i]
        cost += 0.5 * dx[N] @ self.Q[N] @ dx[N] + self.q[N] @ dx[N]
        return float(cost)

    def __repr__(self) -> str:
        return (
            f"LQOCProblem(horizon={self._horizon}, state_dim={self.state_dim}, "
            f"control_dim={self.control_dim}, constrained={self.is_constrained})"
        )
