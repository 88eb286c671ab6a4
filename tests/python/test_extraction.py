"""
Tests for solution extraction from per-stage storage.
"""

import pytest
import numpy as np

from lqocp import Status
from lqocp.solvers import SolutionExtractor


@pytest.fixture
def stage_storage():
    """N=2, n_x=2, n_u=1 storage with a fixed initial state (stage 0 is u only)."""
    z = [np.array([0.5]), np.array([1.0, 2.0, 3.0]), np.array([4.0, 5.0])]
    pi = [np.array([0.1, 0.2]), np.array([0.3, 0.4])]
    return z, pi


def test_absolute_states_and_controls(stage_storage):
    z, _ = stage_storage
    extractor = SolutionExtractor(2, 2, 1, [0, 0, 0], [0, 0, 0])
    x0 = np.array([-1.0, -2.0])

    x = extractor.states(z, x0)
    u = extractor.controls(z)

    np.testing.assert_array_equal(x, [[-1.0, -2.0], [2.0, 3.0], [4.0, 5.0]])
    np.testing.assert_array_equal(u, [[0.5], [1.0]])


def test_initial_state_is_bit_exact(stage_storage):
    z, _ = stage_storage
    extractor = SolutionExtractor(2, 2, 1, [0, 0, 0], [0, 0, 0], deviation=True)
    x0 = np.array([0.1 + 0.2, 1.0 / 3.0])
    x_nom = np.vstack([x0, np.ones((2, 2))])

    x = extractor.states(z, x0, x_nom)

    assert x[0].tobytes() == x0.tobytes()
    np.testing.assert_array_equal(x[1], [3.0, 4.0])


def test_split_inequalities():
    extractor = SolutionExtractor(1, 2, 1, [1, 2], [1, 0])
    values = [np.array([1.0, 2.0, 3.0, 4.0]), np.array([5.0, 6.0, 7.0, 8.0])]

    lb, ub, lg, ug = extractor.split_inequalities(values)

    np.testing.assert_array_equal(lb[0], [1.0])
    np.testing.assert_array_equal(ub[0], [2.0])
    np.testing.assert_array_equal(lg[0], [3.0])
    np.testing.assert_array_equal(ug[0], [4.0])
    np.testing.assert_array_equal(lb[1], [5.0, 6.0])
    np.testing.assert_array_equal(ub[1], [7.0, 8.0])
    assert lg[1].shape == (0,)


def test_extract_without_constraints(stage_storage):
    z, pi = stage_storage
    extractor = SolutionExtractor(2, 2, 1, [0, 0, 0], [0, 0, 0])
    x0 = np.zeros(2)
    x_nom = np.zeros((3, 2))
    u_nom = np.ones((2, 1))

    solution = extractor.extract(
        Status.SOLVED, z, pi, x0, x_nom, u_nom, iterations=3, mu=0.0
    )

    assert solution.converged
    assert solution.horizon == 2
    assert solution.iterations == 3
    assert solution.u.shape == (2, 1)
    np.testing.assert_array_equal(solution.pi, [[0.1, 0.2], [0.3, 0.4]])
    np.testing.assert_array_equal(solution.delta_u, [[-0.5], [0.0]])
    assert all(lam.shape == (0,) for lam in solution.lam_lb)
    assert len(solution.t_ug) == 3
