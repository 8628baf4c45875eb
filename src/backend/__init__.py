"""Nonlinear least-squares backend.

Provides:
- TruncatedSvdSolver: assembles and solves the whitened linear system
- Trust-region policies: Gauss-Newton, Levenberg-Marquardt
- Optimizer: iterates linearize / solve / update on a problem

Usage:
    from incremental_calibration.backend import Optimizer, OptimizerOptions

    optimizer = Optimizer(OptimizerOptions(max_iterations=20))
    optimizer.set_problem(pool)
    srv = optimizer.optimize()
    print(srv.j_start, srv.j_final, optimizer.solver.rank)
"""

from .linear_solver import (
    LinearSolverOptions,
    TruncatedSvdSolver,
)

from .trust_region import (
    TrustRegionPolicy,
    GaussNewtonTrustRegionPolicy,
    LevenbergMarquardtTrustRegionPolicy,
    create_trust_region_policy,
)

from .optimizer import (
    Optimizer,
    OptimizerOptions,
    SolutionReturnValue,
)

__all__ = [
    # Linear solver
    "LinearSolverOptions",
    "TruncatedSvdSolver",
    # Trust region
    "TrustRegionPolicy",
    "GaussNewtonTrustRegionPolicy",
    "LevenbergMarquardtTrustRegionPolicy",
    "create_trust_region_policy",
    # Optimizer
    "Optimizer",
    "OptimizerOptions",
    "SolutionReturnValue",
]
