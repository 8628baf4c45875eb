"""Gauss-Newton optimizer for incremental optimization problems.

The optimizer minimizes the total squared error of a problem by
iterating linearize / solve / update. Step computation and acceptance
are delegated to a trust-region policy; the linear algebra to a
:class:`TruncatedSvdSolver`.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from ..exceptions import InvalidOperationError
from .linear_solver import LinearSolverOptions, TruncatedSvdSolver
from .trust_region import (
    TRUST_REGION_POLICIES,
    TrustRegionPolicy,
    create_trust_region_policy,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OptimizerOptions:
    """Configuration for the optimizer.

    Attributes:
        max_iterations: Maximum number of iterations.
        convergence_delta_j: Stop when the cost decrease falls below this.
        convergence_delta_x: Stop when the step norm falls below this.
        trust_region_policy: "gauss_newton" or "levenberg_marquardt".
        verbose: Log every iteration at INFO level.
    """

    max_iterations: int = 20
    convergence_delta_j: float = 1e-9
    convergence_delta_x: float = 1e-9
    trust_region_policy: str = "gauss_newton"
    verbose: bool = False

    def __post_init__(self):
        if self.max_iterations < 1:
            raise ValueError(
                f"max_iterations must be at least 1, got {self.max_iterations}"
            )
        if self.convergence_delta_j < 0 or self.convergence_delta_x < 0:
            raise ValueError("convergence thresholds must be non-negative")
        if self.trust_region_policy not in TRUST_REGION_POLICIES:
            raise ValueError(
                f"unknown trust region policy '{self.trust_region_policy}', "
                f"expected one of {sorted(TRUST_REGION_POLICIES)}"
            )


@dataclass
class SolutionReturnValue:
    """Summary of one optimization run.

    Attributes:
        iterations: Number of iterations performed.
        j_start: Cost before optimizing.
        j_final: Cost after optimizing.
        delta_j: Cost decrease of the last accepted step.
        delta_x: Norm of the last accepted step.
        failed_iterations: Number of rejected steps.
        linear_solver_failure: Whether the linear solver raised.
    """

    iterations: int = 0
    j_start: float = np.nan
    j_final: float = np.nan
    delta_j: float = np.nan
    delta_x: float = np.nan
    failed_iterations: int = 0
    linear_solver_failure: bool = False


class Optimizer:
    """Nonlinear least-squares optimizer.

    Example:
        >>> optimizer = Optimizer(OptimizerOptions(max_iterations=10))
        >>> optimizer.set_problem(pool)
        >>> srv = optimizer.optimize()
        >>> print(srv.iterations, srv.j_start, srv.j_final)
    """

    def __init__(
        self,
        options: Optional[OptimizerOptions] = None,
        linear_solver_options: Optional[LinearSolverOptions] = None,
    ):
        """Initialize optimizer.

        Args:
            options: Optimizer configuration.
            linear_solver_options: Configuration of the linear solver
                created by :meth:`initialize_linear_solver`.
        """
        self._options = options or OptimizerOptions()
        self._linear_solver_options = linear_solver_options or LinearSolverOptions()
        self._problem = None
        self._solver: Optional[TruncatedSvdSolver] = None
        self._policy: Optional[TrustRegionPolicy] = None

    @property
    def options(self) -> OptimizerOptions:
        """Optimizer options."""
        return self._options

    @property
    def linear_solver_options(self) -> LinearSolverOptions:
        """Linear solver options."""
        return self._linear_solver_options

    def set_problem(self, problem) -> None:
        """Attach the problem to optimize.

        Args:
            problem: Object exposing ``get_design_variables()``,
                ``get_error_terms()`` and ``evaluate_cost()``.
        """
        self._problem = problem
        self._solver = None

    @property
    def problem(self):
        """Attached problem."""
        return self._problem

    def initialize_linear_solver(self) -> None:
        """Create a fresh linear solver and lay out the matrix structure."""
        if self._problem is None:
            raise InvalidOperationError("no problem attached to the optimizer")
        self._solver = TruncatedSvdSolver(self._linear_solver_options)
        self._solver.init_matrix_structure(
            self._problem.get_design_variables(),
            self._problem.get_error_terms(),
        )

    def initialize_trust_region_policy(self) -> None:
        """Create a fresh trust-region policy."""
        self._policy = create_trust_region_policy(self._options.trust_region_policy)

    @property
    def solver(self) -> TruncatedSvdSolver:
        """Current linear solver."""
        if self._solver is None:
            raise InvalidOperationError("linear solver has not been initialized")
        return self._solver

    @property
    def trust_region_policy(self) -> Optional[TrustRegionPolicy]:
        """Current trust-region policy."""
        return self._policy

    def optimize(self) -> SolutionReturnValue:
        """Run the optimization.

        The linear system is left built at the final linearization point,
        so the solver's Jacobian matches the returned solution.

        Returns:
            SolutionReturnValue with iteration statistics.
        """
        if self._problem is None:
            raise InvalidOperationError("no problem attached to the optimizer")
        if self._solver is None:
            self.initialize_linear_solver()
        if self._policy is None:
            self.initialize_trust_region_policy()

        solver = self._solver
        design_variables = solver.design_variables
        srv = SolutionReturnValue()

        j = self._problem.evaluate_cost()
        srv.j_start = j
        solver.build_system()
        self._policy.initialize(j, solver)

        for _ in range(self._options.max_iterations):
            try:
                dx = self._policy.compute_step(solver)
            except np.linalg.LinAlgError as e:
                logger.warning("Linear solver failed: %s", e)
                srv.linear_solver_failure = True
                break

            saved = [dv.get_parameters() for dv in design_variables]
            for dv in design_variables:
                dv.update(dx[dv.column_base:dv.column_base + dv.minimal_dimensions])

            j_new = self._problem.evaluate_cost()
            srv.iterations += 1

            if self._policy.accept_step(j, j_new, dx, solver):
                srv.delta_j = j - j_new
                srv.delta_x = float(np.linalg.norm(dx))
                j = j_new
                self._log_iteration(srv, j)
                solver.build_system()
                if (abs(srv.delta_j) < self._options.convergence_delta_j
                        or srv.delta_x < self._options.convergence_delta_x):
                    break
            else:
                for dv, parameters in zip(design_variables, saved):
                    dv.set_parameters(parameters)
                srv.failed_iterations += 1
                self._log_iteration(srv, j, rejected=True)

        srv.j_final = j
        solver.analyze_system()

        if self._options.verbose:
            logger.info(
                "Optimization finished: %d iterations, J: %.6g -> %.6g",
                srv.iterations, srv.j_start, srv.j_final,
            )

        return srv

    def _log_iteration(self, srv: SolutionReturnValue, j: float, rejected: bool = False) -> None:
        level = logging.INFO if self._options.verbose else logging.DEBUG
        logger.log(
            level,
            "[%d] J: %.6g, dJ: %.6g, |dx|: %.6g, mu: %.3g%s",
            srv.iterations, j, srv.delta_j, srv.delta_x,
            self._policy.damping, " (rejected)" if rejected else "",
        )
