"""
Problem Transcription
=====================

Moves an :class:`~lqocp.problem.LQOCProblem` from deviation coordinates
(dx = X - x, du = U - u around the nominal trajectory) to absolute
coordinates (X, U), the form the structured solvers consume.

With X_0 = x_0 fixed, the initial state is not a decision variable of the
absolute QP: its contribution to the first transition and to the first
control gradient is folded into ``b_abs[0]`` and ``r_abs[0]``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

import numpy as np

from .problem import LQOCProblem


@dataclass
class AbsoluteStageConstraints:
    """Stage constraints in absolute coordinates (see StageConstraints)."""
    idxb: np.ndarray
    lb: np.ndarray
    ub: np.ndarray
    C: np.ndarray
    D: np.ndarray
    lg: np.ndarray
    ug: np.ndarray

    @property
    def nb(self) -> int:
        return self.idxb.shape[0]

    @property
    def ng(self) -> int:
        return self.lg.shape[0]


@dataclass
class AbsoluteQP:
    """
    Absolute-coordinate stage QP data.

    Matrices are shared with the source problem, vectors are new arrays.
    ``q_abs[0]`` and ``A[0]`` belong to the fixed initial state and are not
    used by solvers that drop x_0 from the decision variables.
    """
    x0: np.ndarray
    A: np.ndarray
    B: np.ndarray
    b_abs: np.ndarray
    Q: np.ndarray
    S: np.ndarray
    R: np.ndarray
    q_abs: np.ndarray
    r_abs: np.ndarray
    constraints: List[AbsoluteStageConstraints] = field(default_factory=list)

    @property
    def horizon(self) -> int:
        return self.b_abs.shape[0]


class ProblemTranscriber:
    """
    Deviation-to-absolute transcription.

    Stateless; call :meth:`transcribe` once per outer iteration since the
    nominal trajectory changes every time.

    Example:
        >>> qp = ProblemTranscriber().transcribe(problem)
        >>> qp.b_abs.shape
        (N, n_x)
    """

    def transcribe(self, problem: LQOCProblem) -> AbsoluteQP:
        x, u = problem.x, problem.u
        N = problem.horizon

        # b_abs_i = b_i + x_{i+1} - A_i x_i - B_i u_i
        Ax = np.einsum("ijk,ik->ij", problem.A, x[:N])
        Bu = np.einsum("ijk,ik->ij", problem.B, u)
        b_abs = problem.b + x[1:] - Ax - Bu
        # x_0 is not a variable: A_0 x_0 stays on the constraint side
        b_abs[0] = problem.b[0] + x[1] - Bu[0]

        # q_abs_i = q_i - Q_i x_i - S_i' u_i, terminal has no S
        q_abs = problem.q - np.einsum("ijk,ik->ij", problem.Q, x)
        q_abs[:N] -= np.einsum("ikj,ik->ij", problem.S, u)

        # r_abs_i = r_i - R_i u_i - S_i x_i
        Sx = np.einsum("ijk,ik->ij", problem.S, x[:N])
        r_abs = problem.r - np.einsum("ijk,ik->ij", problem.R, u) - Sx
        # first-stage correction for the removed x_0
        r_abs[0] = r_abs[0] + Sx[0]

        constraints = [
            self._transcribe_constraints(problem, i) for i in range(N + 1)
        ]

        return AbsoluteQP(
            x0=x[0].copy(),
            A=problem.A,
            B=problem.B,
            b_abs=b_abs,
            Q=problem.Q,
            S=problem.S,
            R=problem.R,
            q_abs=q_abs,
            r_abs=r_abs,
            constraints=constraints,
        )

    @staticmethod
    def _transcribe_constraints(problem: LQOCProblem, i: int) -> AbsoluteStageConstraints:
        con = problem.constraints[i]
        n_u = problem.stage_control_dim(i)
        u_nom = problem.u[i] if n_u else np.zeros(0)
        z_nom = np.concatenate([u_nom, problem.x[i]])

        lb = con.lb + z_nom[con.idxb]
        ub = con.ub + z_nom[con.idxb]

        if con.ng:
            C = np.asarray(con.C, dtype=np.float64)
            D = np.asarray(con.D, dtype=np.float64)
            # dx_0 = 0, so the state part of stage 0 contributes nothing
            offset = D @ u_nom + (C @ problem.x[i] if i > 0 else 0.0)
            lg = con.lg + offset
            ug = con.ug + offset
        else:
            C = np.zeros((0, problem.state_dim))
            D = np.zeros((0, n_u))
            lg = np.zeros(0)
            ug = np.zeros(0)

        return AbsoluteStageConstraints(
            idxb=con.idxb.copy(), lb=lb, ub=ub, C=C, D=D, lg=lg, ug=ug
        )
