"""
pytest configuration and fixtures for lqocp tests.
"""

import pytest
import numpy as np


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def double_integrator_data():
    """
    Double integrator with dt = 0.1 and a standard LQR weighting.

    x_{k+1} = [[1, dt], [0, 1]] x_k + [[dt^2/2], [dt]] u_k
    """
    dt = 0.1
    return {
        "A": np.array([[1.0, dt], [0.0, 1.0]]),
        "B": np.array([[0.5 * dt**2], [dt]]),
        "Q": np.diag([10.0, 1.0]),
        "R": np.array([[0.1]]),
        "x0": np.array([1.0, 0.0]),
        "horizon": 10,
        "dt": dt,
    }


@pytest.fixture
def double_integrator_problem(double_integrator_data):
    """Unconstrained N=10 double-integrator problem around a zero-input rollout."""
    from lqocp import LQOCProblem, LinearSystem

    d = double_integrator_data
    system = LinearSystem(d["A"], d["B"], dt=d["dt"])
    return LQOCProblem.from_lti(
        system, Q=d["Q"], R=d["R"], horizon=d["horizon"], x0=d["x0"]
    )


@pytest.fixture
def lqr_reference():
    """
    Classical finite-horizon LQR by backward Riccati recursion.

    Returns a function (A, B, Q, R, Q_final, N, x0) -> (x, u, K).
    """
    def solve(A, B, Q, R, Q_final, N, x0):
        P = Q_final.copy()
        gains = [None] * N
        for i in reversed(range(N)):
            K = -np.linalg.solve(R + B.T @ P @ B, B.T @ P @ A)
            P = Q + A.T @ P @ A + A.T @ P @ B @ K
            gains[i] = K
        x = np.zeros((N + 1, A.shape[0]))
        u = np.zeros((N, B.shape[1]))
        x[0] = x0
        for i in range(N):
            u[i] = gains[i] @ x[i]
            x[i + 1] = A @ x[i] + B @ u[i]
        return x, u, np.stack(gains)

    return solve


@pytest.fixture
def random_problem():
    """
    Time-varying unconstrained problem with an inconsistent nominal
    trajectory (b != 0) and cross terms.
    """
    from lqocp import LQOCProblem

    rng = np.random.default_rng(42)
    N, n, m = 6, 3, 2
    problem = LQOCProblem(N, n, m)
    problem.x[:] = rng.standard_normal((N + 1, n))
    problem.u[:] = rng.standard_normal((N, m))
    for i in range(N):
        problem.A[i] = np.eye(n) + 0.1 * rng.standard_normal((n, n))
        problem.B[i] = rng.standard_normal((n, m))
        problem.b[i] = 0.1 * rng.standard_normal(n)
        M = rng.standard_normal((m, m))
        problem.R[i] = M.T @ M + np.eye(m)
        problem.S[i] = 0.05 * rng.standard_normal((m, n))
        problem.r[i] = rng.standard_normal(m)
    for i in range(N + 1):
        M = rng.standard_normal((n, n))
        problem.Q[i] = M.T @ M + np.eye(n)
        problem.q[i] = rng.standard_normal(n)
    return problem


@pytest.fixture
def dense_reference():
    """
    Solve an unconstrained LQOCProblem by one dense KKT system.

    Decision variables are (du_0..du_{N-1}, dx_1..dx_N); dx_0 = 0.
    Returns absolute (x, u).
    """
    def solve(problem):
        N, n, m = problem.horizon, problem.state_dim, problem.control_dim
        n_var = N * m + N * n

        def iu(i):
            return slice(i * m, (i + 1) * m)

        def ix(i):
            start = N * m + (i - 1) * n
            return slice(start, start + n)

        H = np.zeros((n_var, n_var))
        g = np.zeros(n_var)
        for i in range(N):
            H[iu(i), iu(i)] = problem.R[i]
            g[iu(i)] = problem.r[i]
            if i > 0:
                H[ix(i), ix(i)] = problem.Q[i]
                H[iu(i), ix(i)] = problem.S[i]
                H[ix(i), iu(i)] = problem.S[i].T
                g[ix(i)] = problem.q[i]
        H[ix(N), ix(N)] = problem.Q[N]
        g[ix(N)] = problem.q[N]

        Aeq = np.zeros((N * n, n_var))
        beq = np.zeros(N * n)
        for i in range(N):
            rows = slice(i * n, (i + 1) * n)
            Aeq[rows, ix(i + 1)] = np.eye(n)
            Aeq[rows, iu(i)] = -problem.B[i]
            if i > 0:
                Aeq[rows, ix(i)] = -problem.A[i]
            beq[rows] = problem.b[i]

        kkt = np.block([
            [H, Aeq.T],
            [Aeq, np.zeros((N * n, N * n))],
        ])
        sol = np.linalg.solve(kkt, np.concatenate([-g, beq]))
        du = np.stack([sol[iu(i)] for i in range(N)])
        dx = np.vstack([np.zeros(n)] + [sol[ix(i)] for i in range(1, N + 1)])
        return problem.x + dx, problem.u + du

    return solve


# ============================================================================
# Markers
# ============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "integration: marks integration tests")
