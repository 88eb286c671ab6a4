"""
Stage-structured LQ solvers
===========================

>>> from lqocp.solvers import get_solver
>>> solver = get_solver("ipm", state_dim=2, control_dim=1)
>>> solver.configure(horizon=20)
>>> solver.set_problem(problem)
>>> solution = solver.solve()

Backends:
    ipm / hpipm: Riccati-structured primal-dual interior point, handles
        box and general linear constraints
    riccati: Direct Riccati recursion, unconstrained only, exposes
        feedback gains
"""

from .arena import StageArena
from .base import LQOCSolver, get_available_solvers, get_solver
from .extraction import SolutionExtractor
from .ipm import StructuredIPMSolver
from .riccati import RiccatiSolver, riccati_factorize, riccati_solve

__all__ = [
    "LQOCSolver",
    "StructuredIPMSolver",
    "RiccatiSolver",
    "SolutionExtractor",
    "StageArena",
    "get_solver",
    "get_available_solvers",
    "riccati_factorize",
    "riccati_solve",
]
