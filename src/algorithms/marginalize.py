"""Marginalization of a variable group from a least-squares Jacobian.

Given the whitened Jacobian J = [J_psi | J_theta], where the marginalized
group theta occupies the trailing columns, the information about theta
after eliminating psi is the Schur complement

    Omega = J_theta^T (I - Q_psi Q_psi^T) J_theta = A^T A,
    A     = (I - Q_psi Q_psi^T) J_theta

with Q_psi an orthonormal basis of range(J_psi). The SVD of Omega splits
theta into an observable subspace (column space) and an unobservable one
(null space):

    Omega = V diag(sigma) V^T,
    Sigma_theta     = V_obs diag(1 / sigma_obs) V_obs^T
    Sigma_theta_obs = diag(1 / sigma_obs)

The sum of log2 of the retained singular values of Omega is the log
determinant of the observable information, so half its change between
two problems is the information gained about theta.
"""

from dataclasses import dataclass

import numpy as np
import scipy.sparse

from .linalg import (
    column_norms,
    default_svd_tolerance,
    log2_sum,
    numerical_rank,
    rank_revealing_qr,
)


@dataclass
class MarginalizationResult:
    """Observability analysis of a marginalized group.

    Attributes:
        null_space_basis: Orthonormal basis of the unobservable subspace
            (dim, rank_deficiency).
        column_space_basis: Orthonormal basis of the observable subspace
            (dim, rank).
        covariance: Covariance of the group, pseudo-inverse of the
            precision matrix (dim, dim).
        complement_covariance: Covariance of the projection of the group
            onto its observable subspace, the complement of the null
            space (rank, rank).
        precision_matrix: Marginal information matrix Omega (dim, dim).
        singular_values: Singular values of Omega, descending (dim,).
        log_singular_value_sum: Sum of log2 of the retained singular values.
        svd_tolerance: Tolerance used to truncate the spectrum.
        rank_psi: Numerical rank of J_psi.
        rank_psi_deficiency: Numerical rank deficiency of J_psi.
        qr_tolerance: Tolerance used for the QR of J_psi.
        scaled: Whether the theta columns were normalized.
    """

    null_space_basis: np.ndarray
    column_space_basis: np.ndarray
    covariance: np.ndarray
    complement_covariance: np.ndarray
    precision_matrix: np.ndarray
    singular_values: np.ndarray
    log_singular_value_sum: float
    svd_tolerance: float = 0.0
    rank_psi: int = 0
    rank_psi_deficiency: int = 0
    qr_tolerance: float = 0.0
    scaled: bool = False

    def __post_init__(self):
        """Validate basis shapes."""
        dim = self.precision_matrix.shape[0]
        if self.null_space_basis.shape[0] != dim:
            raise ValueError(
                f"null_space_basis must have {dim} rows, "
                f"got {self.null_space_basis.shape[0]}"
            )
        if self.column_space_basis.shape[0] != dim:
            raise ValueError(
                f"column_space_basis must have {dim} rows, "
                f"got {self.column_space_basis.shape[0]}"
            )

    @property
    def rank(self) -> int:
        """Numerical rank of the marginal information."""
        return self.column_space_basis.shape[1]

    @property
    def rank_deficiency(self) -> int:
        """Dimension of the unobservable subspace."""
        return self.null_space_basis.shape[1]


def marginalize(
    jacobian_transpose,
    keep_columns: int,
    scaled: bool = False,
    norm_tol: float = 1e-8,
    eps_tol: float = -1.0,
    qr_tol: float = -1.0,
) -> MarginalizationResult:
    """Marginalize the leading columns out of a Jacobian.

    Args:
        jacobian_transpose: J^T (n_cols, n_rows), dense or scipy.sparse.
        keep_columns: Number of leading columns of J belonging to psi.
            The remaining ``n_cols - keep_columns`` columns form theta.
        scaled: Normalize the theta columns to unit norm first.
        norm_tol: Columns with a norm at or below this are not scaled.
        eps_tol: SVD truncation tolerance. Negative selects the default
            ``max(dim) * eps * sigma_max``.
        qr_tol: QR rank tolerance for J_psi. Negative selects the default.

    Returns:
        MarginalizationResult for theta.

    Raises:
        ValueError: If ``keep_columns`` is outside [0, n_cols).
    """
    if scipy.sparse.issparse(jacobian_transpose):
        J = jacobian_transpose.T.toarray()
    else:
        J = np.asarray(jacobian_transpose, dtype=float).T

    n_cols = J.shape[1]
    if not 0 <= keep_columns < n_cols:
        raise ValueError(
            f"keep_columns must be in [0, {n_cols}), got {keep_columns}"
        )

    J_psi = J[:, :keep_columns]
    J_theta = J[:, keep_columns:].copy()
    dim = J_theta.shape[1]

    if scaled:
        norms = column_norms(J_theta)
        norms[norms <= norm_tol] = 1.0
        J_theta = J_theta / norms

    # Project J_theta onto the orthogonal complement of range(J_psi)
    Q, _, _, rank_psi, qr_tol = rank_revealing_qr(J_psi, qr_tol)
    if rank_psi > 0:
        Q1 = Q[:, :rank_psi]
        A = J_theta - Q1 @ (Q1.T @ J_theta)
    else:
        A = J_theta

    Omega = A.T @ A
    Omega = 0.5 * (Omega + Omega.T)

    # Singular values of Omega are the squared singular values of A
    s = np.zeros(dim)
    if A.shape[0] > 0:
        _, s_A, Vt = np.linalg.svd(A, full_matrices=True)
        s[:s_A.size] = s_A ** 2
        V = Vt.T
    else:
        V = np.eye(dim)

    if eps_tol < 0:
        eps_tol = default_svd_tolerance(s, Omega.shape)
    rank = numerical_rank(s, eps_tol)

    column_space = V[:, :rank]
    null_space = V[:, rank:]
    inv_s = 1.0 / s[:rank]
    covariance = (column_space * inv_s) @ column_space.T
    complement_covariance = np.diag(inv_s)

    return MarginalizationResult(
        null_space_basis=null_space,
        column_space_basis=column_space,
        covariance=covariance,
        complement_covariance=complement_covariance,
        precision_matrix=Omega,
        singular_values=s,
        log_singular_value_sum=log2_sum(s, rank),
        svd_tolerance=eps_tol,
        rank_psi=rank_psi,
        rank_psi_deficiency=keep_columns - rank_psi,
        qr_tolerance=qr_tol,
        scaled=scaled,
    )
