"""Numerical rank and tolerance utilities.

Tolerances follow the usual conventions of rank-revealing factorizations:

- QR: ``20 * (m + n) * eps * max_j ||A[:, j]||``  (SuiteSparseQR default)
- SVD: ``max(m, n) * eps * sigma_max``            (LAPACK / numpy default)
"""

from typing import Tuple

import numpy as np
import scipy.linalg


def default_qr_tolerance(A: np.ndarray) -> float:
    """Default tolerance for rank-revealing QR.

    Args:
        A: Matrix (m, n).

    Returns:
        Tolerance on the magnitude of the diagonal of R.
    """
    m, n = A.shape
    if m == 0 or n == 0:
        return 0.0
    max_norm = float(np.max(column_norms(A)))
    return 20.0 * (m + n) * np.finfo(float).eps * max_norm


def default_svd_tolerance(singular_values: np.ndarray, shape: Tuple[int, int]) -> float:
    """Default tolerance for SVD-based numerical rank.

    Args:
        singular_values: Singular values in descending order.
        shape: Shape of the decomposed matrix.

    Returns:
        Singular values at or below this value count as zero.
    """
    if singular_values.size == 0:
        return 0.0
    return max(shape) * np.finfo(float).eps * float(singular_values[0])


def column_norms(A: np.ndarray) -> np.ndarray:
    """Euclidean norm of every column of A."""
    return np.sqrt(np.sum(np.asarray(A) ** 2, axis=0))


def rank_revealing_qr(
    A: np.ndarray,
    tol: float = -1.0,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, int, float]:
    """Column-pivoted QR with numerical rank.

    Args:
        A: Matrix (m, n).
        tol: Rank tolerance. Negative selects :func:`default_qr_tolerance`.

    Returns:
        Tuple of (Q, R, P, rank, tol) with ``A[:, P] = Q @ R``.
    """
    A = np.asarray(A, dtype=float)
    m, n = A.shape
    if tol < 0:
        tol = default_qr_tolerance(A)
    if m == 0 or n == 0:
        return np.zeros((m, 0)), np.zeros((0, n)), np.arange(n), 0, tol

    Q, R, P = scipy.linalg.qr(A, mode='economic', pivoting=True)
    diag = np.abs(np.diag(R))
    rank = int(np.sum(diag > tol))
    return Q, R, P, rank, tol


def numerical_rank(singular_values: np.ndarray, tol: float) -> int:
    """Number of singular values strictly above ``tol``."""
    return int(np.sum(np.asarray(singular_values) > tol))


def log2_sum(singular_values: np.ndarray, rank: int) -> float:
    """Sum of log2 of the leading ``rank`` singular values."""
    if rank <= 0:
        return 0.0
    return float(np.sum(np.log2(np.asarray(singular_values)[:rank])))
