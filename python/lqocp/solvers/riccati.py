"""
Riccati recursion for stage-structured LQ problems.

Stage variables are z_i = [u_i; x_i] with stage Hessian

    H_i = [[R_i, S_i ],
           [S_i', Q_i]]

and gradient g_i = [r_i; q_i], coupled by x_{i+1} = A_i x_i + B_i u_i + b_i.
Stage dimensions may vary: the terminal stage has no control and a stage
may have no state (the fixed initial state of an absolute-coordinate QP).

The recursion is split in two so an interior-point method can factorize
once per iteration and solve for several right-hand sides:

- :func:`riccati_factorize` is the backward matrix pass (value Hessians
  P_i, Cholesky factors of R_i + B_i' P_{i+1} B_i, gains K_i).
- :func:`riccati_solve` is the backward vector pass plus the forward
  recovery of z and of the dynamics multipliers pi_i = P_{i+1} x_{i+1} + p_{i+1}.

Cost is linear in the horizon.
"""

import logging
from typing import List, Sequence, Tuple

import numpy as np
import scipy.linalg

from ..problem import LQOCProblem
from ..result import LQOCSolution, Status
from .arena import StageArena
from .base import LQOCSolver
from .extraction import SolutionExtractor

logger = logging.getLogger(__name__)


def stage_dimensions(
    horizon: int,
    state_dim: int,
    control_dim: int,
    fixed_initial_state: bool,
) -> Tuple[List[int], List[int]]:
    """
    Per-stage (n_x, n_u) lists of length N+1.

    With ``fixed_initial_state`` stage 0 carries no state variable.
    """
    n_x = [state_dim] * (horizon + 1)
    n_u = [control_dim] * horizon + [0]
    if fixed_initial_state:
        n_x[0] = 0
    return n_x, n_u


def riccati_factorize(
    H: Sequence[np.ndarray],
    A: Sequence[np.ndarray],
    B: Sequence[np.ndarray],
    n_u: Sequence[int],
    P: Sequence[np.ndarray],
    L: Sequence[np.ndarray],
    K: Sequence[np.ndarray],
    regularization: float = 0.0,
) -> None:
    """
    Backward matrix pass, writes P, L, K in place.

    Raises:
        numpy.linalg.LinAlgError: If a reduced control Hessian is not
            positive definite.
    """
    N = len(A)
    nu_N = n_u[N]
    np.copyto(P[N], H[N][nu_N:, nu_N:])

    for i in reversed(range(N)):
        nu = n_u[i]
        R = H[i][:nu, :nu]
        S = H[i][:nu, nu:]
        Q = H[i][nu:, nu:]
        P_next = P[i + 1]

        BtP = B[i].T @ P_next
        Ru = R + BtP @ B[i]
        if regularization:
            Ru[np.diag_indices(nu)] += regularization
        L[i][...] = scipy.linalg.cholesky(Ru, lower=True, check_finite=False)

        Sx = S + BtP @ A[i]
        if Sx.size:
            K[i][...] = -scipy.linalg.cho_solve((L[i], True), Sx, check_finite=False)

        P_i = Q + A[i].T @ P_next @ A[i] + Sx.T @ K[i]
        P[i][...] = 0.5 * (P_i + P_i.T)


def riccati_solve(
    g: Sequence[np.ndarray],
    b: Sequence[np.ndarray],
    A: Sequence[np.ndarray],
    B: Sequence[np.ndarray],
    n_u: Sequence[int],
    P: Sequence[np.ndarray],
    L: Sequence[np.ndarray],
    K: Sequence[np.ndarray],
    p: Sequence[np.ndarray],
    k: Sequence[np.ndarray],
    z: Sequence[np.ndarray],
    pi: Sequence[np.ndarray],
) -> None:
    """
    Backward vector pass and forward recovery for one right-hand side.

    Needs a prior :func:`riccati_factorize`. The state part of ``z[0]`` is
    taken as the initial condition and left unchanged.
    """
    N = len(A)
    nu_N = n_u[N]
    np.copyto(p[N], g[N][nu_N:])

    for i in reversed(range(N)):
        nu = n_u[i]
        h = P[i + 1] @ b[i] + p[i + 1]
        ru = g[i][:nu] + B[i].T @ h
        k[i][...] = -scipy.linalg.cho_solve((L[i], True), ru, check_finite=False)
        p[i][...] = g[i][nu:] + A[i].T @ h + K[i].T @ ru

    for i in range(N):
        nu = n_u[i]
        x = z[i][nu:]
        u = z[i][:nu]
        u[...] = K[i] @ x + k[i]
        x_next = z[i + 1][n_u[i + 1]:]
        x_next[...] = A[i] @ x + B[i] @ u + b[i]
        pi[i][...] = P[i + 1] @ x_next + p[i + 1]


class RiccatiSolver(LQOCSolver):
    """
    Direct Gauss-Newton Riccati solver for unconstrained LQ problems.

    Works in deviation coordinates with dx_0 = 0, so the full first-stage
    gain K_0 is available and :meth:`get_feedback` returns the
    time-varying LQR gains: du_i = K_i dx_i + k_i.

    Example:
        >>> solver = RiccatiSolver(state_dim=2, control_dim=1)
        >>> solver.configure(horizon=10)
        >>> solver.set_problem(problem)
        >>> solution = solver.solve()
        >>> K = solver.get_feedback()   # (10, 1, 2)
    """

    name = "riccati"
    supports_constraints = False

    def _allocate(self) -> None:
        N = self._horizon
        n_x, n_u = stage_dimensions(N, self.state_dim, self.control_dim, False)
        n_z = [a + b for a, b in zip(n_x, n_u)]
        nx, nu = self.state_dim, self.control_dim

        self._n_x, self._n_u = n_x, n_u
        self._data = StageArena({
            "H": [(nz, nz) for nz in n_z],
            "g": [(nz,) for nz in n_z],
            "A": [(nx, nx)] * N,
            "B": [(nx, nu)] * N,
            "b": [(nx,)] * N,
        })
        self._work = StageArena({
            "P": [(nx, nx)] * (N + 1),
            "p": [(nx,)] * (N + 1),
            "L": [(nu, nu)] * N,
            "K": [(nu, nx)] * N,
            "k": [(nu,)] * N,
            "z": [(nz,) for nz in n_z],
            "pi": [(nx,)] * N,
        })
        self._extractor = SolutionExtractor(
            N, nx, nu, self._n_bounds, self._n_general, deviation=True
        )

    def _load_problem(self, problem: LQOCProblem) -> None:
        H, g = self._data["H"], self._data["g"]
        for i in range(self._horizon + 1):
            nu = self._n_u[i]
            H[i][nu:, nu:] = problem.Q[i]
            g[i][nu:] = problem.q[i]
            if nu:
                H[i][:nu, :nu] = problem.R[i]
                H[i][:nu, nu:] = problem.S[i]
                H[i][nu:, :nu] = problem.S[i].T
                g[i][:nu] = problem.r[i]
        for i in range(self._horizon):
            self._data["A"][i][...] = problem.A[i]
            self._data["B"][i][...] = problem.B[i]
            self._data["b"][i][...] = problem.b[i]

    def _solve_impl(self) -> LQOCSolution:
        d, w = self._data, self._work
        w.fill(0.0)
        status = Status.SOLVED
        try:
            riccati_factorize(
                d["H"], d["A"], d["B"], self._n_u, w["P"], w["L"], w["K"],
                self.settings.regularization,
            )
            riccati_solve(
                d["g"], d["b"], d["A"], d["B"], self._n_u,
                w["P"], w["L"], w["K"], w["p"], w["k"], w["z"], w["pi"],
            )
        except np.linalg.LinAlgError as e:
            logger.warning("riccati: factorization failed: %s", e)
            status = Status.NUMERICAL_ERROR

        return self._extractor.extract(
            status,
            w["z"],
            w["pi"],
            self._x0,
            self._x_nominal,
            self._u_nominal,
            iterations=1,
        )

    def _solution_state(self) -> np.ndarray:
        return self._extractor.states(self._work["z"], self._x0, self._x_nominal)

    def _solution_control(self) -> np.ndarray:
        return self._extractor.controls(self._work["z"], self._u_nominal)

    def get_feedback(self) -> np.ndarray:
        """Time-varying gains K_i, shape (N, n_u, n_x)."""
        self._require_solution()
        return np.stack([K.copy() for K in self._work["K"]])

    def get_feedforward(self) -> np.ndarray:
        """Feedforward deviations k_i, shape (N, n_u)."""
        self._require_solution()
        return np.stack([k.copy() for k in self._work["k"]])
