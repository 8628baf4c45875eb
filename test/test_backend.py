"""Unit tests for backend module."""

import numpy as np
import pytest

from incremental_calibration.backend import (
    LinearSolverOptions,
    TruncatedSvdSolver,
    GaussNewtonTrustRegionPolicy,
    LevenbergMarquardtTrustRegionPolicy,
    create_trust_region_policy,
    Optimizer,
    OptimizerOptions,
)
from incremental_calibration.exceptions import InvalidOperationError
from incremental_calibration.problem import (
    EuclideanDesignVariable,
    ScalarDesignVariable,
    ErrorTerm,
    LinearErrorTerm,
    OptimizationProblem,
    IncrementalOptimizationProblem,
)


class SquareErrorTerm(ErrorTerm):
    """e = x^2 - y."""

    def __init__(self, dv, y):
        super().__init__([dv], 1)
        self._y = float(y)

    def evaluate_error(self):
        return self._design_variables[0].get_parameters() ** 2 - self._y


def _pool(*error_terms):
    batch = OptimizationProblem()
    for et in error_terms:
        for dv in et.design_variables:
            if not batch.is_design_variable_in(dv):
                batch.add_design_variable(dv)
        batch.add_error_term(et)
    pool = IncrementalOptimizationProblem()
    pool.add(batch)
    return pool


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def linear_problem(rng):
    """Overdetermined linear problem with known least-squares solution."""
    x = EuclideanDesignVariable(np.zeros(3))
    A = rng.standard_normal((10, 3))
    y = A @ np.array([1.0, -2.0, 0.5]) + 0.01 * rng.standard_normal(10)
    pool = _pool(LinearErrorTerm([x], [A], y))
    x_ls = np.linalg.lstsq(A, y, rcond=None)[0]
    return pool, x, x_ls


# ============================================================================
# Tests for options
# ============================================================================


class TestOptions:
    """Tests for option dataclasses."""

    def test_linear_solver_defaults(self):
        """Test default linear solver options."""
        options = LinearSolverOptions()
        assert options.qr_tol < 0
        assert options.svd_tol < 0
        assert not options.col_norm

    def test_negative_norm_tol(self):
        """Test negative norm tolerance raises ValueError."""
        with pytest.raises(ValueError, match="norm_tol"):
            LinearSolverOptions(norm_tol=-1.0)

    def test_optimizer_validation(self):
        """Test invalid optimizer options raise ValueError."""
        with pytest.raises(ValueError, match="max_iterations"):
            OptimizerOptions(max_iterations=0)
        with pytest.raises(ValueError, match="trust region"):
            OptimizerOptions(trust_region_policy="dogleg")


# ============================================================================
# Tests for TruncatedSvdSolver
# ============================================================================


class TestTruncatedSvdSolver:
    """Tests for the linear solver."""

    def test_matrix_structure(self):
        """Test column bases skip inactive variables."""
        a = EuclideanDesignVariable([0.0, 0.0])
        b = ScalarDesignVariable(0.0)
        c = EuclideanDesignVariable([0.0, 0.0, 0.0])
        b.set_active(False)
        et = LinearErrorTerm([a, b, c], [np.ones((2, 2)), np.ones((2, 1)), np.ones((2, 3))], [0.0, 0.0])

        solver = TruncatedSvdSolver()
        solver.init_matrix_structure([a, b, c], [et])

        assert solver.num_columns == 5
        assert solver.num_rows == 2
        assert (a.column_base, b.column_base, c.column_base) == (0, -1, 2)
        assert (a.block_index, c.block_index) == (0, 1)
        assert et.row_base == 0

    def test_not_built(self):
        """Test accessing the system before building raises."""
        solver = TruncatedSvdSolver()
        with pytest.raises(InvalidOperationError):
            solver.jacobian
        with pytest.raises(InvalidOperationError):
            solver.solve_system()

    def test_full_rank_solution(self, linear_problem):
        """Test step from zero equals the least-squares solution."""
        pool, x, x_ls = linear_problem
        solver = TruncatedSvdSolver()
        solver.init_matrix_structure(pool.get_design_variables(), pool.get_error_terms())
        solver.build_system()
        solver.analyze_system()

        np.testing.assert_allclose(solver.solve_system(), x_ls, atol=1e-10)
        assert solver.rank == 3
        assert solver.rank_deficiency == 0
        assert solver.jacobian.shape == (10, 3)
        assert solver.jacobian_transpose.shape == (3, 10)
        assert solver.memory_usage > 0
        assert solver.peak_memory_usage >= solver.memory_usage
        assert solver.num_flops > 0

    def test_column_normalization(self, linear_problem):
        """Test column scaling does not change a full-rank solution."""
        pool, x, x_ls = linear_problem
        solver = TruncatedSvdSolver(LinearSolverOptions(col_norm=True))
        solver.init_matrix_structure(pool.get_design_variables(), pool.get_error_terms())
        solver.build_system()
        np.testing.assert_allclose(solver.solve_system(), x_ls, atol=1e-10)

    def test_minimum_norm_step(self):
        """Test rank-deficient system yields the minimum-norm step."""
        x = EuclideanDesignVariable([0.0, 0.0])
        pool = _pool(LinearErrorTerm([x], [np.array([[1.0, 1.0]])], [2.0]))
        solver = TruncatedSvdSolver()
        solver.init_matrix_structure(pool.get_design_variables(), pool.get_error_terms())
        solver.build_system()
        solver.analyze_system()

        np.testing.assert_allclose(solver.solve_system(), [1.0, 1.0], atol=1e-12)
        assert solver.rank == 1
        assert solver.rank_deficiency == 1

    def test_predicted_decrease(self, linear_problem):
        """Test full step predicts the whole decrease of a linear problem."""
        pool, x, _ = linear_problem
        solver = TruncatedSvdSolver()
        solver.init_matrix_structure(pool.get_design_variables(), pool.get_error_terms())
        solver.build_system()
        dx = solver.solve_system()
        e = solver.error
        x.update(dx)
        assert solver.predicted_decrease(dx) == pytest.approx(
            e @ e - pool.evaluate_cost(), rel=1e-8
        )


# ============================================================================
# Tests for trust-region policies
# ============================================================================


class TestTrustRegionPolicies:
    """Tests for trust-region policy factory."""

    def test_factory(self):
        """Test policies are created by name."""
        assert isinstance(create_trust_region_policy("gauss_newton"), GaussNewtonTrustRegionPolicy)
        assert isinstance(
            create_trust_region_policy("levenberg_marquardt"),
            LevenbergMarquardtTrustRegionPolicy,
        )

    def test_unknown(self):
        """Test unknown name raises ValueError."""
        with pytest.raises(ValueError, match="unknown"):
            create_trust_region_policy("dogleg")

    def test_lm_rejects_uphill_step(self):
        """Test LM rejects a step that increases the cost and raises damping."""
        policy = LevenbergMarquardtTrustRegionPolicy()
        policy._mu = 1.0
        policy._predicted = 1.0
        assert not policy.accept_step(1.0, 2.0, np.zeros(1), None)
        assert policy.damping == pytest.approx(2.0)


# ============================================================================
# Tests for Optimizer
# ============================================================================


class TestOptimizer:
    """Tests for the Gauss-Newton optimizer."""

    def test_no_problem(self):
        """Test optimizing without a problem raises."""
        with pytest.raises(InvalidOperationError):
            Optimizer().optimize()

    def test_linear_convergence(self, linear_problem):
        """Test linear problem converges to the least-squares solution."""
        pool, x, x_ls = linear_problem
        optimizer = Optimizer()
        optimizer.set_problem(pool)
        srv = optimizer.optimize()

        np.testing.assert_allclose(x.value, x_ls, atol=1e-8)
        assert srv.j_final < srv.j_start
        assert srv.j_final == pytest.approx(pool.evaluate_cost())
        assert not srv.linear_solver_failure
        assert optimizer.solver.rank == 3

    @pytest.mark.parametrize("policy", ["gauss_newton", "levenberg_marquardt"])
    def test_nonlinear_convergence(self, policy):
        """Test x^2 = 4 converges to x = 2 from x = 1."""
        x = ScalarDesignVariable(1.0)
        pool = _pool(SquareErrorTerm(x, 4.0))
        optimizer = Optimizer(OptimizerOptions(max_iterations=100, trust_region_policy=policy))
        optimizer.set_problem(pool)
        srv = optimizer.optimize()

        assert x.scalar == pytest.approx(2.0, abs=1e-4)
        assert srv.j_final < 1e-8
        assert srv.iterations >= 1

    def test_iteration_cap(self):
        """Test the optimizer stops at max_iterations."""
        x = ScalarDesignVariable(10.0)
        pool = _pool(SquareErrorTerm(x, 4.0))
        optimizer = Optimizer(OptimizerOptions(max_iterations=1))
        optimizer.set_problem(pool)
        srv = optimizer.optimize()
        assert srv.iterations == 1

    def test_linear_solver_failure(self, linear_problem, monkeypatch):
        """Test a LinAlgError ends the solve without a failed iteration."""
        pool, x, _ = linear_problem
        x_start = x.get_parameters()

        def failing_solve(self, damping=0.0):
            raise np.linalg.LinAlgError("SVD did not converge")

        monkeypatch.setattr(TruncatedSvdSolver, "solve_system", failing_solve)
        optimizer = Optimizer()
        optimizer.set_problem(pool)
        srv = optimizer.optimize()

        assert srv.linear_solver_failure
        assert srv.iterations == 0
        assert srv.failed_iterations == 0
        assert srv.j_final == srv.j_start
        np.testing.assert_array_equal(x.get_parameters(), x_start)

    def test_system_built_at_solution(self, linear_problem):
        """Test the Jacobian after optimizing matches the final point."""
        pool, x, _ = linear_problem
        optimizer = Optimizer()
        optimizer.set_problem(pool)
        optimizer.optimize()
        e = optimizer.solver.error
        assert e @ e == pytest.approx(pool.evaluate_cost())
