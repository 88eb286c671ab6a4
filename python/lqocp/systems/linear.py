"""
Linear Stage Models
===================

Linear time-invariant (LTI) systems used to populate the stages of an LQ
problem, together with their structural analyses.

Discrete time:   x_{k+1} = A x_k + B u_k
Continuous time: dx/dt   = A x + B u
Output:          y       = C x + D u
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Optional

import numpy as np

from ..exceptions import (
    DimensionMismatchError,
    InvalidInputError,
    UnsupportedOperationError,
)
from ..utils.validation import as_matrix, check_finite

DISCRETE_TIME = "discrete"
CONTINUOUS_TIME = "continuous"


@dataclass
class LinearSystem:
    """
    Linear time-invariant system.

    Args:
        A: State matrix (n_x, n_x)
        B: Input matrix (n_x, n_u)
        C: Output matrix (n_y, n_x), defaults to identity
        D: Feedthrough matrix (n_y, n_u), defaults to zero
        time_type: "discrete" or "continuous"
        dt: Sampling time (for reference only)
        manifold: True if the state lives on a manifold and vectors are
            tangent-space coordinates

    Example:
        >>> # Double integrator (position, velocity)
        >>> dt = 0.1
        >>> A = np.array([[1, dt], [0, 1]])
        >>> B = np.array([[0.5*dt**2], [dt]])
        >>> system = LinearSystem(A, B, dt=dt)
        >>> system.is_controllable()
        True
    """
    A: np.ndarray
    B: np.ndarray
    C: Optional[np.ndarray] = None
    D: Optional[np.ndarray] = None
    time_type: str = DISCRETE_TIME
    dt: float = 1.0
    manifold: bool = False

    def __post_init__(self):
        """Validate dimensions."""
        A = np.asarray(self.A, dtype=np.float64)
        B = np.asarray(self.B, dtype=np.float64)

        if A.ndim != 2 or A.shape[0] != A.shape[1]:
            raise DimensionMismatchError(f"A must be square, got shape {A.shape}")
        n_x = A.shape[0]
        if B.ndim != 2 or B.shape[0] != n_x:
            raise DimensionMismatchError(
                f"B must have {n_x} rows, got shape {B.shape}"
            )
        check_finite(A, "A")
        check_finite(B, "B")
        n_u = B.shape[1]
        self.A = A
        self.B = B

        if self.C is None:
            self.C = np.eye(n_x)
        else:
            C = np.asarray(self.C, dtype=np.float64)
            if C.ndim != 2 or C.shape[1] != n_x:
                raise DimensionMismatchError(
                    f"C columns must match state dim {n_x}, got shape {C.shape}"
                )
            self.C = as_matrix(C, C.shape, "C")

        n_y = self.C.shape[0]
        if self.D is None:
            self.D = np.zeros((n_y, n_u))
        else:
            self.D = as_matrix(self.D, (n_y, n_u), "D")

        if self.time_type not in (DISCRETE_TIME, CONTINUOUS_TIME):
            raise InvalidInputError(
                f"time_type must be '{DISCRETE_TIME}' or '{CONTINUOUS_TIME}', "
                f"got '{self.time_type}'"
            )

    @property
    def n_states(self) -> int:
        """Number of states."""
        return self.A.shape[0]

    @property
    def n_inputs(self) -> int:
        """Number of inputs."""
        return self.B.shape[1]

    @property
    def n_outputs(self) -> int:
        """Number of outputs."""
        return self.C.shape[0]

    @property
    def is_discrete(self) -> bool:
        return self.time_type == DISCRETE_TIME

    def clone(self) -> "LinearSystem":
        """Deep copy."""
        return copy.deepcopy(self)

    # ------------------------------------------------------------------
    # Sensitivities
    # ------------------------------------------------------------------

    def derivative_state(self, state=None, control=None, t: float = 0.0) -> np.ndarray:
        """
        Sensitivity of the dynamics with respect to the state.

        The system is time invariant, so the arguments are ignored and the
        constant A is returned (as a copy).
        """
        return self.A.copy()

    def derivative_control(self, state=None, control=None, t: float = 0.0) -> np.ndarray:
        """Sensitivity of the dynamics with respect to the control (B)."""
        return self.B.copy()

    def compute_output(self, state: np.ndarray, control: np.ndarray, t: float = 0.0) -> np.ndarray:
        """
        Compute the system output y = C x + D u.

        Raises:
            UnsupportedOperationError: For manifold-valued states, where a
                linear output map of tangent coordinates is not defined.
        """
        if self.manifold:
            raise UnsupportedOperationError(
                "compute_output() is not supported for manifold-valued states"
            )
        x = np.asarray(state, dtype=np.float64)
        u = np.asarray(control, dtype=np.float64)
        return self.C @ x + self.D @ u

    # ------------------------------------------------------------------
    # Simulation
    # ------------------------------------------------------------------

    def step(self, x: np.ndarray, u: np.ndarray) -> np.ndarray:
        """
        Simulate one discrete time step.

        Args:
            x: Current state (n_x,)
            u: Control input (n_u,)

        Returns:
            Next state (n_x,)
        """
        if not self.is_discrete:
            raise UnsupportedOperationError(
                "step() needs a discrete-time system, call discretize() first"
            )
        return self.A @ x + self.B @ u

    def simulate(self, x0: np.ndarray, u_sequence: np.ndarray) -> np.ndarray:
        """
        Simulate system over a sequence of inputs.

        Args:
            x0: Initial state (n_x,)
            u_sequence: Control sequence (N, n_u)

        Returns:
            State trajectory (N+1, n_x) including initial state
        """
        x0 = np.asarray(x0, dtype=np.float64)
        u_sequence = np.asarray(u_sequence, dtype=np.float64)

        N = len(u_sequence)
        trajectory = np.zeros((N + 1, self.n_states))
        trajectory[0] = x0

        for k in range(N):
            trajectory[k + 1] = self.step(trajectory[k], u_sequence[k])

        return trajectory

    def is_stable(self) -> bool:
        """
        Check asymptotic stability.

        Discrete time: all eigenvalues inside the unit circle.
        Continuous time: all eigenvalues in the open left half-plane.
        """
        eigenvalues = np.linalg.eigvals(self.A)
        if self.is_discrete:
            return bool(np.all(np.abs(eigenvalues) < 1.0))
        return bool(np.all(eigenvalues.real < 0.0))

    # ------------------------------------------------------------------
    # Structural analysis
    # ------------------------------------------------------------------

    def controllability_matrix(self) -> np.ndarray:
        """
        Build [B, AB, A^2 B, ..., A^(n-1) B] of shape (n_x, n_x * n_u).
        """
        n, m = self.n_states, self.n_inputs
        CO = np.zeros((n, n * m))
        block = self.B
        CO[:, :m] = block
        for i in range(1, n):
            block = self.A @ block
            CO[:, i * m:(i + 1) * m] = block
        return CO

    def is_controllable(self) -> bool:
        """True iff the controllability matrix has full row rank."""
        return int(np.linalg.matrix_rank(self.controllability_matrix())) == self.n_states

    def observability_matrix(self) -> np.ndarray:
        """
        Build the stacked [C; CA; ...; CA^(n-1)] of shape (n_x * n_y, n_x).
        """
        n, p = self.n_states, self.n_outputs
        O = np.zeros((n * p, n))
        block = self.C
        O[:p] = block
        for i in range(1, n):
            block = block @ self.A
            O[i * p:(i + 1) * p] = block
        return O

    def is_observable(self) -> bool:
        """True iff the observability matrix has full column rank."""
        return int(np.linalg.matrix_rank(self.observability_matrix())) == self.n_states

    def controllability_gramian(self, max_iters: int = 100, tol: float = 1e-9) -> np.ndarray:
        """
        Discrete-time controllability Gramian by truncated power series.

        Accumulates G_k = G_{k-1} + A^(k-1) B B' (A^(k-1))' until the
        entry-wise 1-norm of the increment drops below ``tol`` or
        ``max_iters`` terms have been added.

        Raises:
            UnsupportedOperationError: For continuous-time systems.
        """
        if not self.is_discrete:
            raise UnsupportedOperationError(
                "controllability Gramian is not implemented for continuous-time systems"
            )
        BBt = self.B @ self.B.T
        return self._gramian_series(self.A, BBt, max_iters, tol, transpose_left=False)

    def observability_gramian(self, max_iters: int = 100, tol: float = 1e-9) -> np.ndarray:
        """
        Discrete-time observability Gramian, sum of (A^k)' C' C A^k.

        Raises:
            UnsupportedOperationError: For continuous-time systems.
        """
        if not self.is_discrete:
            raise UnsupportedOperationError(
                "observability Gramian is not implemented for continuous-time systems"
            )
        CtC = self.C.T @ self.C
        return self._gramian_series(self.A, CtC, max_iters, tol, transpose_left=True)

    @staticmethod
    def _gramian_series(
        A: np.ndarray,
        M: np.ndarray,
        max_iters: int,
        tol: float,
        transpose_left: bool,
    ) -> np.ndarray:
        n = A.shape[0]
        G = np.zeros((n, n))
        A_pow = np.eye(n)
        for _ in range(max_iters):
            if transpose_left:
                increment = A_pow.T @ M @ A_pow
            else:
                increment = A_pow @ M @ A_pow.T
            G = G + increment
            if np.abs(increment).sum() < tol:
                break
            A_pow = A_pow @ A
        return G

    # ------------------------------------------------------------------
    # Discretization
    # ------------------------------------------------------------------

    def discretize(self, dt: float, method: str = "zoh") -> "LinearSystem":
        """Discretize a continuous-time system, keeping C, D."""
        if self.is_discrete:
            raise InvalidInputError("system is already discrete-time")
        discrete = LinearSystem.from_continuous(self.A, self.B, dt, method=method)
        return LinearSystem(
            discrete.A, discrete.B, C=self.C, D=self.D, dt=dt, manifold=self.manifold
        )

    @classmethod
    def from_continuous(
        cls,
        Ac: np.ndarray,
        Bc: np.ndarray,
        dt: float,
        method: str = "zoh",
    ) -> "LinearSystem":
        """
        Create discrete system from continuous-time dynamics.

        Continuous: dx/dt = Ac @ x + Bc @ u
        Discrete:   x_{k+1} = A @ x_k + B @ u_k

        Args:
            Ac: Continuous state matrix
            Bc: Continuous input matrix
            dt: Sampling time
            method: Discretization method ('zoh', 'euler', 'tustin')

        Returns:
            Discrete LinearSystem
        """
        Ac = np.asarray(Ac, dtype=np.float64)
        Bc = np.asarray(Bc, dtype=np.float64)
        if dt <= 0:
            raise InvalidInputError(f"dt must be positive, got {dt}")

        if method == "euler":
            # Forward Euler: A = I + Ac*dt, B = Bc*dt
            A = np.eye(Ac.shape[0]) + Ac * dt
            B = Bc * dt

        elif method == "zoh":
            from scipy.linalg import expm

            n = Ac.shape[0]
            m = Bc.shape[1]

            # exp([[Ac, Bc], [0, 0]] * dt)
            M = np.zeros((n + m, n + m))
            M[:n, :n] = Ac * dt
            M[:n, n:] = Bc * dt

            eM = expm(M)
            A = eM[:n, :n]
            B = eM[:n, n:]

        elif method == "tustin":
            n = Ac.shape[0]
            I = np.eye(n)

            inv_term = np.linalg.inv(I - (dt / 2) * Ac)
            A = inv_term @ (I + (dt / 2) * Ac)
            B = inv_term @ Bc * dt

        else:
            raise InvalidInputError(f"Unknown method '{method}'")

        return cls(A, B, dt=dt)


def double_integrator(dt: float = 0.1) -> LinearSystem:
    """
    Create a double integrator (point mass) system.

    States: [position, velocity]
    Input: acceleration

    Args:
        dt: Sampling time

    Returns:
        LinearSystem for double integrator
    """
    A = np.array([
        [1, dt],
        [0, 1]
    ])
    B = np.array([
        [0.5 * dt**2],
        [dt]
    ])
    return LinearSystem(A, B, dt=dt)
