"""Unit tests for marginalization and rank utilities."""

import numpy as np
import pytest
import scipy.sparse

from incremental_calibration.algorithms import (
    MarginalizationResult,
    column_norms,
    default_qr_tolerance,
    default_svd_tolerance,
    log2_sum,
    marginalize,
    numerical_rank,
    rank_revealing_qr,
)


def schur_complement(J, keep):
    """Marginal information of the trailing columns by direct inversion."""
    H = J.T @ J
    H_pp = H[:keep, :keep]
    H_pt = H[:keep, keep:]
    H_tt = H[keep:, keep:]
    return H_tt - H_pt.T @ np.linalg.solve(H_pp, H_pt)


# ============================================================================
# Tests for rank utilities
# ============================================================================


class TestLinalg:
    """Tests for rank and tolerance helpers."""

    def test_qr_rank(self, rng):
        """Test rank of a product of thin factors."""
        A = rng.standard_normal((8, 2)) @ rng.standard_normal((2, 5))
        Q, R, P, rank, tol = rank_revealing_qr(A)
        assert rank == 2
        assert tol == pytest.approx(default_qr_tolerance(A))
        np.testing.assert_allclose(Q @ R, A[:, P], atol=1e-12)

    def test_qr_empty(self):
        """Test QR of an empty matrix."""
        Q, R, P, rank, tol = rank_revealing_qr(np.zeros((4, 0)))
        assert rank == 0
        assert Q.shape == (4, 0)

    def test_svd_tolerance(self):
        """Test default SVD tolerance."""
        s = np.array([2.0, 1.0])
        assert default_svd_tolerance(s, (3, 5)) == pytest.approx(5 * np.finfo(float).eps * 2.0)
        assert default_svd_tolerance(np.zeros(0), (0, 0)) == 0.0

    def test_numerical_rank_and_log_sum(self):
        """Test rank counting and log2 sum."""
        s = np.array([8.0, 2.0, 1e-20])
        assert numerical_rank(s, 1e-10) == 2
        assert log2_sum(s, 2) == pytest.approx(4.0)
        assert log2_sum(s, 0) == 0.0

    def test_column_norms(self):
        """Test column norms."""
        np.testing.assert_allclose(column_norms(np.array([[3.0, 0.0], [4.0, 1.0]])), [5.0, 1.0])


# ============================================================================
# Tests for marginalize
# ============================================================================


class TestMarginalize:
    """Tests for marginalize."""

    def test_matches_schur_complement(self, random_jacobian):
        """Test precision matrix equals the Schur complement."""
        J = random_jacobian
        result = marginalize(J.T, 3)
        Omega = schur_complement(J, 3)

        np.testing.assert_allclose(result.precision_matrix, Omega, atol=1e-10)
        np.testing.assert_allclose(result.covariance, np.linalg.inv(Omega), atol=1e-10)
        assert result.rank == 3
        assert result.rank_deficiency == 0
        assert result.rank_psi == 3
        assert result.rank_psi_deficiency == 0
        assert result.log_singular_value_sum == pytest.approx(
            np.log2(np.linalg.det(Omega)), rel=1e-8
        )

    def test_singular_values(self, random_jacobian):
        """Test singular values and complement covariance."""
        result = marginalize(random_jacobian.T, 3)
        s_ref = np.linalg.svd(result.precision_matrix, compute_uv=False)
        np.testing.assert_allclose(result.singular_values, s_ref, rtol=1e-10)
        np.testing.assert_allclose(
            result.complement_covariance, np.diag(1.0 / s_ref), rtol=1e-10
        )
        np.testing.assert_allclose(
            result.column_space_basis.T @ result.column_space_basis, np.eye(3), atol=1e-12
        )

    def test_sparse_input(self, random_jacobian):
        """Test sparse J^T gives the same result as dense."""
        dense = marginalize(random_jacobian.T, 3)
        sparse = marginalize(scipy.sparse.csc_matrix(random_jacobian.T), 3)
        np.testing.assert_allclose(sparse.precision_matrix, dense.precision_matrix, atol=1e-12)
        assert sparse.log_singular_value_sum == pytest.approx(dense.log_singular_value_sum)

    def test_unobservable_direction(self, random_jacobian):
        """Test a theta column duplicating a psi column is unobservable."""
        J = random_jacobian.copy()
        J[:, 5] = J[:, 0]
        result = marginalize(J.T, 3)

        assert result.rank == 2
        assert result.rank_deficiency == 1
        null = result.null_space_basis[:, 0]
        np.testing.assert_allclose(np.abs(null), [0.0, 0.0, 1.0], atol=1e-8)
        # Covariance ignores the unobservable direction
        np.testing.assert_allclose(result.covariance @ null, np.zeros(3), atol=1e-8)

    def test_rank_deficient_psi(self, random_jacobian):
        """Test rank deficiency of the nuisance block is reported."""
        J = random_jacobian.copy()
        J[:, 1] = 2.0 * J[:, 0]
        result = marginalize(J.T, 3)
        assert result.rank_psi == 2
        assert result.rank_psi_deficiency == 1
        assert result.rank == 3

    def test_scaled(self, random_jacobian):
        """Test scaling normalizes the theta columns."""
        J = random_jacobian.copy()
        J[:, 3:] *= np.array([100.0, 1.0, 0.01])
        unscaled = marginalize(J.T, 3)
        scaled = marginalize(J.T, 3, scaled=True)

        D = np.diag(1.0 / column_norms(J[:, 3:]))
        np.testing.assert_allclose(
            scaled.precision_matrix, D @ unscaled.precision_matrix @ D, atol=1e-10
        )
        assert scaled.scaled
        assert not unscaled.scaled

    def test_nothing_to_keep(self, random_jacobian):
        """Test keep_columns = 0 returns the full information matrix."""
        J = random_jacobian
        result = marginalize(J.T, 0)
        np.testing.assert_allclose(result.precision_matrix, J.T @ J, atol=1e-10)
        assert result.rank_psi == 0

    def test_invalid_keep_columns(self, random_jacobian):
        """Test keep_columns outside [0, n) raises ValueError."""
        with pytest.raises(ValueError, match="keep_columns"):
            marginalize(random_jacobian.T, 6)
        with pytest.raises(ValueError, match="keep_columns"):
            marginalize(random_jacobian.T, -1)

    def test_explicit_tolerance(self, random_jacobian):
        """Test a large SVD tolerance truncates the spectrum."""
        default = marginalize(random_jacobian.T, 3)
        s = default.singular_values
        result = marginalize(random_jacobian.T, 3, eps_tol=0.5 * (s[0] + s[1]))
        assert result.rank == 1
        assert result.svd_tolerance == pytest.approx(0.5 * (s[0] + s[1]))
        assert result.log_singular_value_sum == pytest.approx(np.log2(s[0]))


class TestMarginalizationResult:
    """Tests for MarginalizationResult validation."""

    def test_shape_mismatch(self):
        """Test basis with the wrong number of rows raises ValueError."""
        with pytest.raises(ValueError, match="null_space_basis"):
            MarginalizationResult(
                null_space_basis=np.zeros((2, 0)),
                column_space_basis=np.eye(3),
                covariance=np.eye(3),
                complement_covariance=np.eye(3),
                precision_matrix=np.eye(3),
                singular_values=np.ones(3),
                log_singular_value_sum=0.0,
            )
