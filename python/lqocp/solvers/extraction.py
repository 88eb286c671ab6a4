"""
Solution extraction.

Maps a solver's per-stage storage (z_i = [u_i; x_i], pi_i, lambda_i, t_i)
to caller-facing trajectories. The initial state is always the one the
problem was given; the terminal stage has no control.
"""

from typing import List, Optional, Sequence, Tuple

import numpy as np

from ..result import LQOCSolution, Status


class SolutionExtractor:
    """
    Read trajectories out of per-stage solver storage.

    Args:
        horizon: Number of stages N
        state_dim: State dimension
        control_dim: Control dimension
        n_bounds: Box bounds per stage (N+1 entries)
        n_general: General constraints per stage (N+1 entries)
        deviation: True if z holds deviations from the nominal trajectory
            rather than absolute values

    Inequality rows of stage i are ordered [lb (nb), ub (nb), lg (ng), ug (ng)].
    """

    def __init__(
        self,
        horizon: int,
        state_dim: int,
        control_dim: int,
        n_bounds: Sequence[int],
        n_general: Sequence[int],
        deviation: bool = False,
    ) -> None:
        self.horizon = horizon
        self.state_dim = state_dim
        self.control_dim = control_dim
        self.n_bounds = tuple(n_bounds)
        self.n_general = tuple(n_general)
        self.deviation = deviation

    def _n_u(self, i: int) -> int:
        return self.control_dim if i < self.horizon else 0

    def states(
        self,
        z: Sequence[np.ndarray],
        x0: np.ndarray,
        x_nominal: Optional[np.ndarray] = None,
    ) -> np.ndarray:
        """State trajectory (N+1, n_x); row 0 is a copy of ``x0``."""
        N = self.horizon
        x = np.empty((N + 1, self.state_dim))
        x[0] = x0
        for i in range(1, N + 1):
            x[i] = z[i][self._n_u(i):]
        if self.deviation:
            x[1:] += x_nominal[1:]
        return x

    def controls(
        self,
        z: Sequence[np.ndarray],
        u_nominal: Optional[np.ndarray] = None,
    ) -> np.ndarray:
        """Control sequence (N, n_u)."""
        u = np.empty((self.horizon, self.control_dim))
        for i in range(self.horizon):
            u[i] = z[i][:self.control_dim]
        if self.deviation:
            u += u_nominal
        return u

    def multipliers(self, pi: Sequence[np.ndarray]) -> np.ndarray:
        """Dynamics multipliers (N, n_x)."""
        if not len(pi):
            return np.zeros((0, self.state_dim))
        return np.stack([p.copy() for p in pi])

    def split_inequalities(
        self,
        values: Optional[Sequence[np.ndarray]],
    ) -> Tuple[List[np.ndarray], List[np.ndarray], List[np.ndarray], List[np.ndarray]]:
        """Split per-stage inequality vectors into lb/ub/lg/ug parts."""
        lower_b, upper_b, lower_g, upper_g = [], [], [], []
        for i in range(self.horizon + 1):
            nb, ng = self.n_bounds[i], self.n_general[i]
            v = values[i] if values is not None else np.zeros(2 * nb + 2 * ng)
            lower_b.append(v[:nb].copy())
            upper_b.append(v[nb:2 * nb].copy())
            lower_g.append(v[2 * nb:2 * nb + ng].copy())
            upper_g.append(v[2 * nb + ng:2 * nb + 2 * ng].copy())
        return lower_b, upper_b, lower_g, upper_g

    def extract(
        self,
        status: Status,
        z: Sequence[np.ndarray],
        pi: Sequence[np.ndarray],
        x0: np.ndarray,
        x_nominal: np.ndarray,
        u_nominal: np.ndarray,
        lam: Optional[Sequence[np.ndarray]] = None,
        t: Optional[Sequence[np.ndarray]] = None,
        **diagnostics,
    ) -> LQOCSolution:
        """Assemble an :class:`LQOCSolution` from solver storage."""
        x = self.states(z, x0, x_nominal)
        u = self.controls(z, u_nominal)
        lam_lb, lam_ub, lam_lg, lam_ug = self.split_inequalities(lam)
        t_lb, t_ub, t_lg, t_ug = self.split_inequalities(t)

        return LQOCSolution(
            status=status,
            x=x,
            u=u,
            pi=self.multipliers(pi),
            lam_lb=lam_lb,
            lam_ub=lam_ub,
            lam_lg=lam_lg,
            lam_ug=lam_ug,
            t_lb=t_lb,
            t_ub=t_ub,
            t_lg=t_lg,
            t_ug=t_ug,
            delta_x=x - x_nominal,
            delta_u=u - u_nominal,
            **diagnostics,
        )
