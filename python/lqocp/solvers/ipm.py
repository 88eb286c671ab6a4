"""
Structured Interior-Point Solver
================================

Primal-dual interior-point method for the absolute-coordinate stage QP

    minimize    sum_i 0.5 z_i' H_i z_i + g_i' z_i
    subject to  x_{i+1} = A_i x_i + B_i u_i + b_i
                Dc_i z_i - d_i = t_i >= 0

with z_i = [u_i; x_i]. The initial state is fixed, so stage 0 carries only
u_0, and the terminal stage carries only x_N. Inequality rows per stage are
[lb; ub; lg; ug], written as Dc_i = [E; -E; G; -G], d_i = [lb; -ub; lg; -ug].

Each iteration eliminates the slacks and multipliers to a condensed LQ
problem and solves it with a Riccati recursion (one factorization, two
right-hand sides for Mehrotra's predictor-corrector).

All buffers live in arenas sized by ``configure``; repeated solves with the
same structure allocate nothing new beyond temporaries.
"""

import logging
from typing import Dict, List, Tuple

import numpy as np

from ..problem import LQOCProblem
from ..result import LQOCSolution, Status
from ..transcription import AbsoluteQP, ProblemTranscriber
from .arena import StageArena
from .base import LQOCSolver
from .extraction import SolutionExtractor
from .riccati import riccati_factorize, riccati_solve, stage_dimensions

logger = logging.getLogger(__name__)

# fraction-to-boundary factor
_STEP_SCALE = 0.995


def _inf_norm(v: np.ndarray) -> float:
    return float(np.max(np.abs(v), initial=0.0))


def _max_step(v: np.ndarray, dv: np.ndarray) -> float:
    """Largest alpha in (0, 1] with v + alpha * dv >= 0."""
    neg = dv < 0
    if not np.any(neg):
        return 1.0
    return min(1.0, float(np.min(-v[neg] / dv[neg])))


class StructuredIPMSolver(LQOCSolver):
    """
    Riccati-structured primal-dual interior-point solver.

    Handles box bounds and general linear constraints on every stage.
    Feedback gains are not exposed.

    Args:
        state_dim: State dimension n_x
        control_dim: Control dimension n_u
        settings: IPMSettings or params dict (``max_iters``, ``tolerance``,
            ``mu_max``, ``alpha_min``, ``mu0``, ``regularization``, ``verbose``)

    Example:
        >>> solver = StructuredIPMSolver(2, 1, settings={"max_iters": 30})
        >>> solver.configure(horizon=20, n_bounds=[1] * 20 + [0])
        >>> solver.set_problem(problem)
        >>> solution = solver.solve()
        >>> solution.status
        <Status.SOLVED: 'solved'>
    """

    name = "ipm"
    supports_constraints = True

    def __init__(self, state_dim, control_dim, settings=None) -> None:
        super().__init__(state_dim, control_dim, settings)
        self._transcriber = ProblemTranscriber()

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    def _allocate(self) -> None:
        N = self._horizon
        nx = self.state_dim
        n_x, n_u = stage_dimensions(N, nx, self.control_dim, True)
        n_z = [a + b for a, b in zip(n_x, n_u)]
        n_c = [2 * nb + 2 * ng for nb, ng in zip(self._n_bounds, self._n_general)]

        self._n_x, self._n_u, self._n_z, self._n_c = n_x, n_u, n_z, n_c
        self._n_ineq = sum(n_c)

        self._data = StageArena({
            "H": [(nz, nz) for nz in n_z],
            "g": [(nz,) for nz in n_z],
            "A": [(nx, n_x[i]) for i in range(N)],
            "B": [(nx, n_u[i]) for i in range(N)],
            "b": [(nx,)] * N,
            "Dc": [(nc, nz) for nc, nz in zip(n_c, n_z)],
            "d": [(nc,) for nc in n_c],
        })

        variables = {
            "z": [(nz,) for nz in n_z],
            "pi": [(nx,)] * N,
            "lam": [(nc,) for nc in n_c],
            "t": [(nc,) for nc in n_c],
        }
        self._iterate = StageArena(variables)
        self._best = StageArena(variables)
        self._step = StageArena(variables)

        self._work = StageArena({
            "P": [(n, n) for n in n_x],
            "p": [(n,) for n in n_x],
            "L": [(n_u[i], n_u[i]) for i in range(N)],
            "K": [(n_u[i], n_x[i]) for i in range(N)],
            "k": [(n_u[i],) for i in range(N)],
            "Hhat": [(nz, nz) for nz in n_z],
            "ghat": [(nz,) for nz in n_z],
            "res_g": [(nz,) for nz in n_z],
            "res_b": [(nx,)] * N,
            "res_d": [(nc,) for nc in n_c],
            "res_m": [(nc,) for nc in n_c],
            "w": [(nc,) for nc in n_c],
        })

        self._extractor = SolutionExtractor(
            N, nx, self.control_dim, self._n_bounds, self._n_general
        )

    @property
    def storage_bytes(self) -> int:
        """Total size of all arenas in bytes."""
        return sum(
            arena.nbytes
            for arena in (self._data, self._iterate, self._best, self._step, self._work)
        )

    def _load_problem(self, problem: LQOCProblem) -> None:
        qp = self._transcriber.transcribe(problem)
        self._fill_data(qp)

    def _fill_data(self, qp: AbsoluteQP) -> None:
        data = self._data
        data.fill(0.0)
        N = self._horizon

        for i in range(N + 1):
            nu, nx = self._n_u[i], self._n_x[i]
            H, g = data["H"][i], data["g"][i]
            if nu:
                H[:nu, :nu] = qp.R[i]
                g[:nu] = qp.r_abs[i]
            if nx:
                H[nu:, nu:] = qp.Q[i]
                g[nu:] = qp.q_abs[i]
            if nu and nx:
                H[:nu, nu:] = qp.S[i]
                H[nu:, :nu] = qp.S[i].T

            con = qp.constraints[i]
            nb, ng = con.nb, con.ng
            Dc, d = data["Dc"][i], data["d"][i]
            rows = np.arange(nb)
            Dc[rows, con.idxb] = 1.0
            Dc[nb + rows, con.idxb] = -1.0
            d[:nb] = con.lb
            d[nb:2 * nb] = -con.ub
            if ng:
                G = np.hstack([con.D, con.C[:, :nx]])
                Dc[2 * nb:2 * nb + ng] = G
                Dc[2 * nb + ng:] = -G
                d[2 * nb:2 * nb + ng] = con.lg
                d[2 * nb + ng:] = -con.ug

        for i in range(N):
            data["A"][i][...] = qp.A[i][:, :self._n_x[i]]
            data["B"][i][...] = qp.B[i]
            data["b"][i][...] = qp.b_abs[i]

    # ------------------------------------------------------------------
    # Iteration
    # ------------------------------------------------------------------

    def _initialize(self) -> None:
        it = self._iterate
        it.fill(0.0)
        sqrt_mu0 = np.sqrt(self.settings.mu0)
        for i in range(self._horizon + 1):
            # z = 0, so the constraint value is -d
            np.maximum(-self._data["d"][i], sqrt_mu0, out=it["t"][i])
        lam, t = it.flat("lam"), it.flat("t")
        np.divide(self.settings.mu0, t, out=lam)

    def _compute_residuals(self) -> Tuple[float, float, float, float]:
        """Fill the residual buffers, return (res_g, res_b, res_d, mu)."""
        d, it, w = self._data, self._iterate, self._work
        N = self._horizon
        z, pi, lam, t = it["z"], it["pi"], it["lam"], it["t"]

        for i in range(N + 1):
            nu = self._n_u[i]
            Dc = d["Dc"][i]
            res_g = w["res_g"][i]
            res_g[...] = d["H"][i] @ z[i] + d["g"][i] - Dc.T @ lam[i]
            if i < N:
                res_g[:nu] += d["B"][i].T @ pi[i]
                res_g[nu:] += d["A"][i].T @ pi[i]
                w["res_b"][i][...] = (
                    d["A"][i] @ z[i][nu:] + d["B"][i] @ z[i][:nu] + d["b"][i]
                    - z[i + 1][self._n_u[i + 1]:]
                )
            if i > 0:
                res_g[nu:] -= pi[i - 1]
            w["res_d"][i][...] = Dc @ z[i] - d["d"][i] - t[i]

        mu = 0.0
        if self._n_ineq:
            mu = float(it.flat("lam") @ it.flat("t")) / self._n_ineq
        return (
            _inf_norm(w.flat("res_g")),
            _inf_norm(w.flat("res_b")),
            _inf_norm(w.flat("res_d")),
            mu,
        )

    def _factorize(self) -> None:
        d, it, w = self._data, self._iterate, self._work
        np.divide(it.flat("lam"), it.flat("t"), out=w.flat("w"))
        for i in range(self._horizon + 1):
            Dc = d["Dc"][i]
            w["Hhat"][i][...] = d["H"][i] + Dc.T @ (w["w"][i][:, None] * Dc)
        riccati_factorize(
            w["Hhat"], d["A"], d["B"], self._n_u, w["P"], w["L"], w["K"],
            self.settings.regularization,
        )

    def _solve_direction(self) -> None:
        """Newton direction for the current ``res_m``, written to the step arena."""
        d, it, w, st = self._data, self._iterate, self._work, self._step
        for i in range(self._horizon + 1):
            Dc = d["Dc"][i]
            rhs = w["res_m"][i] / it["t"][i] + w["w"][i] * w["res_d"][i]
            w["ghat"][i][...] = w["res_g"][i] + Dc.T @ rhs
        riccati_solve(
            w["ghat"], w["res_b"], d["A"], d["B"], self._n_u,
            w["P"], w["L"], w["K"], w["p"], w["k"], st["z"], st["pi"],
        )
        for i in range(self._horizon + 1):
            st["t"][i][...] = d["Dc"][i] @ st["z"][i] + w["res_d"][i]
        lam, t = it.flat("lam"), it.flat("t")
        st.flat("lam")[...] = -(w.flat("res_m") + lam * st.flat("t")) / t

    def _step_length(self) -> float:
        it, st = self._iterate, self._step
        return min(
            _max_step(it.flat("lam"), st.flat("lam")),
            _max_step(it.flat("t"), st.flat("t")),
        )

    def _newton_step(self, mu: float) -> Tuple[float, float]:
        """
        One Mehrotra predictor-corrector step.

        Returns (step length, centering parameter); the iterate is only updated when it is at
        least ``alpha_min``.
        """
        it, st, w = self._iterate, self._step, self._work
        lam, t = it.flat("lam"), it.flat("t")
        res_m = w.flat("res_m")

        self._factorize()

        # predictor
        np.multiply(lam, t, out=res_m)
        self._solve_direction()

        if self._n_ineq:
            alpha_aff = self._step_length()
            mu_aff = float(
                (lam + alpha_aff * st.flat("lam")) @ (t + alpha_aff * st.flat("t"))
            ) / self._n_ineq
            sigma = (mu_aff / mu) ** 3 if mu > 0 else 0.0

            # corrector
            res_m[...] = lam * t + st.flat("lam") * st.flat("t") - sigma * mu
            self._solve_direction()
            alpha = min(1.0, _STEP_SCALE * self._step_length())
        else:
            alpha, sigma = 1.0, 0.0

        if alpha >= self.settings.alpha_min:
            it.buffer += alpha * st.buffer
        return alpha, sigma

    def _solve_impl(self) -> LQOCSolution:
        settings = self.settings
        level = logging.INFO if settings.verbose else logging.DEBUG

        self._initialize()
        status = Status.MAX_ITERATIONS
        best_merit = np.inf
        best_stats: Tuple[float, float, float, float] = (0.0, 0.0, 0.0, 0.0)
        best_iteration = 0
        step_lengths: List[float] = []

        for iteration in range(settings.max_iters + 1):
            stats = self._compute_residuals()
            res_g, res_b, res_d, mu = stats
            logger.log(
                level,
                "%s: it=%2d res_g=%.3e res_b=%.3e res_d=%.3e mu=%.3e",
                self.name, iteration, res_g, res_b, res_d, mu,
            )

            merit = max(stats)
            if merit < best_merit:
                best_merit = merit
                best_stats = stats
                best_iteration = iteration
                self._best.copy_from(self._iterate)

            if max(res_g, res_b, res_d) <= settings.tolerance and mu <= settings.mu_max:
                status = Status.SOLVED
                break
            if iteration == settings.max_iters:
                break

            try:
                alpha, sigma = self._newton_step(mu)
            except np.linalg.LinAlgError as e:
                logger.warning("%s: Riccati factorization failed: %s", self.name, e)
                status = Status.NUMERICAL_ERROR
                break
            step_lengths.append(alpha)
            logger.log(
                level, "%s: it=%2d alpha=%.3e sigma=%.3e",
                self.name, iteration, alpha, sigma,
            )
            if alpha < settings.alpha_min:
                logger.warning(
                    "%s: step length %.3e below alpha_min %.3e",
                    self.name, alpha, settings.alpha_min,
                )
                status = Status.STEP_TOO_SMALL
                break

        if status is not Status.SOLVED:
            self._iterate.copy_from(self._best)
            stats = best_stats

        info: Dict[str, object] = {
            "step_lengths": step_lengths,
            "best_iteration": best_iteration if status is not Status.SOLVED else iteration,
        }
        it = self._iterate
        return self._extractor.extract(
            status,
            it["z"],
            it["pi"],
            self._x0,
            self._x_nominal,
            self._u_nominal,
            lam=it["lam"],
            t=it["t"],
            iterations=iteration,
            mu=stats[3],
            res_stationarity=stats[0],
            res_dynamics=stats[1],
            res_constraints=stats[2],
            info=info,
        )

    def _solution_state(self) -> np.ndarray:
        return self._extractor.states(self._iterate["z"], self._x0)

    def _solution_control(self) -> np.ndarray:
        return self._extractor.controls(self._iterate["z"])
