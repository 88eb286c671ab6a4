"""
Tests for the Riccati-structured interior-point solver.

Tests covering:
1. Unconstrained problems against classical LQR and a dense KKT solve
2. Box and general constraints
3. Call-order and dimension errors
4. Storage reuse across solves
5. Non-convergence reporting
"""

import logging

import pytest
import numpy as np

from lqocp import (
    ConfigurationError,
    DimensionMismatchError,
    InvalidInputError,
    LQOCProblem,
    LinearSystem,
    NonConvergenceWarning,
    Status,
    StructuredIPMSolver,
    UnsupportedOperationError,
    get_solver,
)


def make_solver(problem, **settings):
    solver = StructuredIPMSolver(problem.state_dim, problem.control_dim, settings=settings)
    solver.configure(
        problem.horizon, n_bounds=problem.n_bounds, n_general=problem.n_general
    )
    solver.set_problem(problem)
    return solver


def clipped_lqr_cost(problem, gains, lower, upper):
    """Cost of the saturated LQR policy, a feasible upper bound."""
    N = problem.horizon
    x = np.zeros((N + 1, problem.state_dim))
    u = np.zeros((N, problem.control_dim))
    x[0] = problem.x[0]
    for i in range(N):
        u[i] = np.clip(gains[i] @ x[i], lower, upper)
        x[i + 1] = problem.A[i] @ x[i] + problem.B[i] @ u[i]
    return problem.evaluate_cost(x - problem.x, u - problem.u)


class TestUnconstrained:

    def test_matches_lqr(self, double_integrator_problem, double_integrator_data, lqr_reference):
        """Double integrator, N=10, agrees with backward-Riccati LQR."""
        d = double_integrator_data
        x_ref, u_ref, _ = lqr_reference(
            d["A"], d["B"], d["Q"], d["R"], d["Q"], d["horizon"], d["x0"]
        )
        solver = make_solver(double_integrator_problem)

        solution = solver.solve()

        assert solution.status == Status.SOLVED
        assert solution.iterations <= solver.settings.max_iters
        np.testing.assert_allclose(solution.u, u_ref, atol=1e-8)
        np.testing.assert_allclose(solution.x, x_ref, atol=1e-8)

    def test_single_newton_step(self, double_integrator_problem):
        solution = make_solver(double_integrator_problem).solve()

        assert solution.iterations == 1
        assert solution.mu == 0.0
        assert solution.max_residual <= 1e-8

    def test_initial_state_and_no_terminal_control(self, double_integrator_problem):
        solver = make_solver(double_integrator_problem)
        solution = solver.solve()

        N = double_integrator_problem.horizon
        assert solution.x.shape == (N + 1, 2)
        assert solution.u.shape == (N, 1)
        assert solution.x[0].tobytes() == double_integrator_problem.x[0].tobytes()
        np.testing.assert_array_equal(solver.get_solution_state(), solution.x)
        np.testing.assert_array_equal(solver.get_solution_control(), solution.u)

    def test_matches_dense_kkt(self, random_problem, dense_reference):
        """Time-varying data, cross terms and an inconsistent nominal trajectory."""
        x_dense, u_dense = dense_reference(random_problem)

        solution = make_solver(random_problem).solve()

        assert solution.converged
        np.testing.assert_allclose(solution.u, u_dense, atol=1e-8)
        np.testing.assert_allclose(solution.x, x_dense, atol=1e-8)
        np.testing.assert_allclose(solution.delta_u, u_dense - random_problem.u, atol=1e-8)

    def test_dynamics_satisfied(self, random_problem):
        solution = make_solver(random_problem).solve()
        dx = solution.delta_x
        du = solution.delta_u
        p = random_problem
        for i in range(p.horizon):
            np.testing.assert_allclose(
                dx[i + 1], p.A[i] @ dx[i] + p.B[i] @ du[i] + p.b[i], atol=1e-9
            )

    def test_hpipm_alias(self, double_integrator_problem):
        solver = get_solver("HPIPM", state_dim=2, control_dim=1)
        assert isinstance(solver, StructuredIPMSolver)


class TestConstrained:

    @pytest.fixture
    def box_problem(self, double_integrator_problem):
        double_integrator_problem.set_input_box_constraints(-0.5, 0.5)
        return double_integrator_problem

    def test_input_bounds(self, box_problem, double_integrator_data, lqr_reference):
        d = double_integrator_data
        _, _, gains = lqr_reference(
            d["A"], d["B"], d["Q"], d["R"], d["Q"], d["horizon"], d["x0"]
        )
        solver = make_solver(box_problem, max_iters=50)

        solution = solver.solve()

        assert solution.converged
        assert np.all(solution.u >= -0.5 - 1e-7)
        assert np.all(solution.u <= 0.5 + 1e-7)
        # the unconstrained optimum saturates the first input
        assert solution.u[0, 0] == pytest.approx(-0.5, abs=1e-6)

        cost = box_problem.evaluate_cost(solution.delta_x, solution.delta_u)
        assert cost <= clipped_lqr_cost(box_problem, gains, -0.5, 0.5) + 1e-8

    def test_multipliers_and_slacks(self, box_problem):
        solution = make_solver(box_problem, max_iters=50).solve()

        for values in (solution.lam_lb, solution.lam_ub, solution.t_lb, solution.t_ub):
            assert len(values) == box_problem.horizon + 1
            for v in values:
                assert np.all(v >= 0.0)
        assert solution.lam_lb[0].shape == (1,)
        assert solution.lam_lb[-1].shape == (0,)
        # lower bound on u_0 is active, the upper one is not
        assert solution.lam_lb[0][0] > 1e-6
        assert solution.lam_ub[0][0] < 1e-6
        np.testing.assert_allclose(solution.t_lb[0], solution.u[0] + 0.5, atol=1e-7)

    def test_loose_bounds_match_lqr(self, double_integrator_problem, double_integrator_data, lqr_reference):
        d = double_integrator_data
        _, u_ref, _ = lqr_reference(
            d["A"], d["B"], d["Q"], d["R"], d["Q"], d["horizon"], d["x0"]
        )
        double_integrator_problem.set_input_box_constraints(-100.0, 100.0)

        solution = make_solver(double_integrator_problem, max_iters=50).solve()

        assert solution.converged
        np.testing.assert_allclose(solution.u, u_ref, atol=1e-6)

    def test_general_constraints(self, double_integrator_problem):
        """Velocity limit as a general constraint on every stage."""
        problem = double_integrator_problem
        problem.set_general_constraints(
            C=np.array([[0.0, 1.0]]), D=np.array([[0.0]]), lower=-0.2, upper=0.2
        )

        solution = make_solver(problem, max_iters=50).solve()

        assert solution.converged
        assert np.all(np.abs(solution.x[:, 1]) <= 0.2 + 1e-7)
        assert len(solution.lam_lg) == problem.horizon + 1

    def test_state_bounds(self, double_integrator_problem):
        problem = double_integrator_problem
        problem.set_state_box_constraints([-10.0, -0.3], [10.0, 0.3])

        solution = make_solver(problem, max_iters=50).solve()

        assert solution.converged
        assert np.all(solution.x[1:, 1] >= -0.3 - 1e-7)

    def test_iteration_cap(self, box_problem):
        """Hitting max_iters returns the best iterate and warns."""
        solver = make_solver(box_problem, max_iters=1)

        with pytest.warns(NonConvergenceWarning, match="max_iterations"):
            solution = solver.solve()

        assert solution.status == Status.MAX_ITERATIONS
        assert solution.iterations == 1
        assert solution.status.has_solution
        assert solution.x.shape == (11, 2)
        assert np.all(np.isfinite(solution.u))

    def test_factorization_failure(self, double_integrator_problem):
        double_integrator_problem.R[:] = -1.0
        solver = make_solver(double_integrator_problem)

        with pytest.warns(NonConvergenceWarning):
            solution = solver.solve()

        assert solution.status == Status.NUMERICAL_ERROR
        assert solution.x[0].tobytes() == double_integrator_problem.x[0].tobytes()


class TestErrors:

    def test_non_positive_horizon(self):
        solver = StructuredIPMSolver(2, 1)
        with pytest.raises(ConfigurationError):
            solver.configure(0)
        with pytest.raises(ConfigurationError):
            solver.configure(-3)
        assert not solver.is_configured

    def test_set_problem_before_configure(self, double_integrator_problem):
        solver = StructuredIPMSolver(2, 1)
        with pytest.raises(ConfigurationError, match="configure"):
            solver.set_problem(double_integrator_problem)

    def test_solve_before_set_problem(self):
        solver = StructuredIPMSolver(2, 1)
        solver.configure(5)
        with pytest.raises(ConfigurationError, match="set_problem"):
            solver.solve()

    def test_getters_before_solve(self, double_integrator_problem):
        solver = StructuredIPMSolver(2, 1)
        solver.configure(10)
        solver.set_problem(double_integrator_problem)
        with pytest.raises(ConfigurationError):
            solver.get_solution_state()
        with pytest.raises(ConfigurationError):
            solver.get_solution_control()

    def test_feedback_unsupported(self, double_integrator_problem):
        solver = make_solver(double_integrator_problem)
        solver.solve()
        with pytest.raises(UnsupportedOperationError):
            solver.get_feedback()

    def test_mismatch_keeps_previous_problem(self, double_integrator_problem, double_integrator_data):
        solver = make_solver(double_integrator_problem)
        first = solver.solve()

        d = double_integrator_data
        short = LQOCProblem.from_lti(
            LinearSystem(d["A"], d["B"]), Q=d["Q"], R=d["R"], horizon=5, x0=d["x0"]
        )
        with pytest.raises(DimensionMismatchError, match="horizon"):
            solver.set_problem(short)

        wrong_dims = LQOCProblem(10, 3, 1)
        with pytest.raises(DimensionMismatchError):
            solver.set_problem(wrong_dims)

        second = solver.solve()
        np.testing.assert_array_equal(first.u, second.u)

    def test_constraint_count_mismatch(self, double_integrator_problem):
        solver = StructuredIPMSolver(2, 1)
        solver.configure(10)
        double_integrator_problem.set_input_box_constraints(-1.0, 1.0)
        with pytest.raises(DimensionMismatchError, match="constraint counts"):
            solver.set_problem(double_integrator_problem)

    def test_unknown_solver(self):
        with pytest.raises(InvalidInputError, match="unknown solver"):
            get_solver("osqp", 2, 1)


class TestStorage:

    def test_reconfigure_same_structure_reuses_storage(self, double_integrator_problem):
        solver = make_solver(double_integrator_problem)
        buffer = solver._iterate.buffer
        nbytes = solver.storage_bytes

        solver.configure(10, settings={"max_iters": 5})

        assert solver._iterate.buffer is buffer
        assert solver.storage_bytes == nbytes
        assert solver.settings.max_iters == 5
        # the loaded problem survives
        assert solver.solve().converged

    def test_new_horizon_reallocates(self, double_integrator_problem):
        solver = make_solver(double_integrator_problem)
        buffer = solver._iterate.buffer

        solver.configure(20)

        assert solver._iterate.buffer is not buffer
        assert solver.horizon == 20
        with pytest.raises(ConfigurationError):
            solver.solve()

    def test_repeated_solves_identical(self, double_integrator_problem):
        double_integrator_problem.set_input_box_constraints(-0.5, 0.5)
        solver = make_solver(double_integrator_problem, max_iters=50)

        first = solver.solve()
        second = solver.solve()

        np.testing.assert_array_equal(first.u, second.u)
        assert first.iterations == second.iterations


class TestLogging:

    def test_iteration_trace(self, double_integrator_problem, caplog):
        caplog.set_level(logging.DEBUG, logger="lqocp.solvers.ipm")
        make_solver(double_integrator_problem).solve()

        messages = [r.getMessage() for r in caplog.records if r.name == "lqocp.solvers.ipm"]
        assert any("it= 0" in m for m in messages)
        assert all(r.levelno == logging.DEBUG for r in caplog.records if "it=" in r.getMessage())

    def test_verbose_logs_at_info(self, double_integrator_problem, caplog):
        caplog.set_level(logging.INFO, logger="lqocp.solvers.ipm")
        make_solver(double_integrator_problem, verbose=True).solve()

        assert any("it=" in r.getMessage() and r.levelno == logging.INFO for r in caplog.records)
