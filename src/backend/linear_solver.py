"""Truncated-SVD linear system solver for Gauss-Newton steps.

The solver assembles the whitened residual vector e and the sparse
Jacobian J of an optimization problem, then computes the minimum-norm
step

    dx = -V_r diag(1 / s_r) U_r^T e

from the truncated SVD of J. Directions whose singular values fall below
the tolerance are left untouched, so unobservable parameters are not
moved by noise.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
import scipy.sparse

from ..algorithms.linalg import (
    column_norms,
    default_svd_tolerance,
    numerical_rank,
    rank_revealing_qr,
)
from ..exceptions import InvalidOperationError
from ..problem.design_variables import DesignVariable
from ..problem.error_terms import ErrorTerm


@dataclass(frozen=True)
class LinearSolverOptions:
    """Configuration for the linear solver.

    Attributes:
        qr_tol: Tolerance for rank-revealing QR. Negative selects
            ``20 (m + n) eps max ||col||``.
        svd_tol: Truncation tolerance for the step computation. Negative
            selects ``max(m, n) eps sigma_max``.
        col_norm: Normalize the Jacobian columns before solving.
        norm_tol: Columns with a norm at or below this are not normalized.
        eps_tol: Truncation tolerance for the marginalized group's
            spectrum. Negative selects the default SVD tolerance.
    """

    qr_tol: float = -1.0
    svd_tol: float = -1.0
    col_norm: bool = False
    norm_tol: float = 1e-8
    eps_tol: float = -1.0

    def __post_init__(self):
        if self.norm_tol < 0:
            raise ValueError(f"norm_tol must be non-negative, got {self.norm_tol}")


class TruncatedSvdSolver:
    """Linear solver for the whitened least-squares system J dx = -e.

    Lifecycle:
        1. :meth:`init_matrix_structure` assigns block indices, column
           bases and row bases.
        2. :meth:`build_system` evaluates e and J at the current
           linearization point.
        3. :meth:`analyze_system` estimates the numerical rank of J.
        4. :meth:`solve_system` returns the step.
    """

    def __init__(self, options: Optional[LinearSolverOptions] = None):
        """Initialize solver.

        Args:
            options: Solver configuration.
        """
        self._options = options or LinearSolverOptions()
        self._design_variables: list[DesignVariable] = []
        self._error_terms: list[ErrorTerm] = []
        self._n_cols = 0
        self._n_rows = 0
        self._jacobian: Optional[scipy.sparse.csr_matrix] = None
        self._error: Optional[np.ndarray] = None
        self._rank = 0
        self._qr_tolerance = 0.0
        self._svd_tolerance = 0.0
        self._memory_usage = 0
        self._peak_memory_usage = 0
        self._num_flops = 0.0

    @property
    def options(self) -> LinearSolverOptions:
        """Current options."""
        return self._options

    def set_options(self, options: LinearSolverOptions) -> None:
        """Replace the options."""
        self._options = options

    def init_matrix_structure(
        self,
        design_variables: Sequence[DesignVariable],
        error_terms: Sequence[ErrorTerm],
    ) -> None:
        """Lay out the columns and rows of the linear system.

        Active design variables get consecutive block indices and column
        bases in the given order; error terms get consecutive row bases.

        Args:
            design_variables: Design variables in column order.
            error_terms: Error terms in row order.
        """
        self._design_variables = []
        column_base = 0
        for dv in design_variables:
            if dv.is_active():
                self._design_variables.append(dv)
                dv.block_index = len(self._design_variables) - 1
                dv.column_base = column_base
                column_base += dv.minimal_dimensions
            else:
                dv.block_index = -1
                dv.column_base = -1
        self._n_cols = column_base

        self._error_terms = list(error_terms)
        row_base = 0
        for et in self._error_terms:
            et.row_base = row_base
            row_base += et.dimension
        self._n_rows = row_base

        self._jacobian = None
        self._error = None

    @property
    def design_variables(self) -> list[DesignVariable]:
        """Active design variables in column order."""
        return list(self._design_variables)

    @property
    def num_columns(self) -> int:
        """Number of columns of J."""
        return self._n_cols

    @property
    def num_rows(self) -> int:
        """Number of rows of J."""
        return self._n_rows

    def build_system(self) -> None:
        """Evaluate the whitened residual and Jacobian."""
        rows: list[np.ndarray] = []
        cols: list[np.ndarray] = []
        vals: list[np.ndarray] = []
        e = np.zeros(self._n_rows)

        for et in self._error_terms:
            r0 = et.row_base
            e[r0:r0 + et.dimension] = et.whitened_error()
            for dv, J_block in zip(et.design_variables, et.whitened_jacobians()):
                if not dv.is_active():
                    continue
                if dv.column_base < 0:
                    raise InvalidOperationError(
                        f"{dv!r} is not part of the matrix structure"
                    )
                r_idx, c_idx = np.nonzero(J_block)
                rows.append(r_idx + r0)
                cols.append(c_idx + dv.column_base)
                vals.append(J_block[r_idx, c_idx])

        if vals:
            data = np.concatenate(vals)
            row_idx = np.concatenate(rows)
            col_idx = np.concatenate(cols)
        else:
            data = np.empty(0)
            row_idx = np.empty(0, dtype=int)
            col_idx = np.empty(0, dtype=int)

        self._jacobian = scipy.sparse.coo_matrix(
            (data, (row_idx, col_idx)), shape=(self._n_rows, self._n_cols)
        ).tocsr()
        self._error = e

        self._memory_usage = (
            self._jacobian.data.nbytes
            + self._jacobian.indices.nbytes
            + self._jacobian.indptr.nbytes
            + e.nbytes
        )
        self._peak_memory_usage = max(self._peak_memory_usage, self._memory_usage)

    def analyze_system(self) -> None:
        """Estimate the numerical rank of J by column-pivoted QR."""
        J = self._dense_jacobian()
        _, _, _, self._rank, self._qr_tolerance = rank_revealing_qr(
            J, self._options.qr_tol
        )
        m, n = J.shape
        self._num_flops += 2.0 * m * n * min(m, n)
        self._peak_memory_usage = max(
            self._peak_memory_usage, self._memory_usage + 2 * J.nbytes
        )

    def solve_system(self, damping: float = 0.0) -> np.ndarray:
        """Compute the truncated-SVD step.

        Args:
            damping: Levenberg-Marquardt damping mu. The system is
                augmented with ``sqrt(mu) I`` rows when positive.

        Returns:
            Step dx (num_columns,).
        """
        J = self._dense_jacobian()
        e = self._error
        m, n = J.shape
        if n == 0:
            return np.zeros(0)

        scale = np.ones(n)
        if self._options.col_norm:
            scale = column_norms(J)
            scale[scale <= self._options.norm_tol] = 1.0
            J = J / scale

        if damping > 0:
            J = np.vstack([J, np.sqrt(damping) * np.eye(n)])
            e = np.concatenate([e, np.zeros(n)])

        if J.shape[0] == 0:
            return np.zeros(n)

        U, s, Vt = np.linalg.svd(J, full_matrices=False)
        tol = self._options.svd_tol
        if tol < 0:
            tol = default_svd_tolerance(s, J.shape)
        self._svd_tolerance = tol
        r = numerical_rank(s, tol)

        dx = -Vt[:r].T @ ((U[:, :r].T @ e) / s[:r])

        m_aug = J.shape[0]
        self._num_flops += 4.0 * m_aug * n * min(m_aug, n)
        self._peak_memory_usage = max(
            self._peak_memory_usage,
            self._memory_usage + J.nbytes + U.nbytes + Vt.nbytes,
        )

        return dx / scale

    def predicted_decrease(self, dx: np.ndarray) -> float:
        """Decrease of the linearized cost ``||e||^2 - ||e + J dx||^2``."""
        e = self._require_error()
        e_lin = e + self._jacobian @ dx
        return float(e @ e - e_lin @ e_lin)

    def _dense_jacobian(self) -> np.ndarray:
        if self._jacobian is None:
            raise InvalidOperationError("linear system has not been built")
        return self._jacobian.toarray()

    def _require_error(self) -> np.ndarray:
        if self._error is None:
            raise InvalidOperationError("linear system has not been built")
        return self._error

    @property
    def jacobian(self) -> scipy.sparse.csr_matrix:
        """Whitened Jacobian J (rows, cols)."""
        if self._jacobian is None:
            raise InvalidOperationError("linear system has not been built")
        return self._jacobian

    @property
    def jacobian_transpose(self) -> scipy.sparse.csc_matrix:
        """Whitened Jacobian transpose J^T (cols, rows)."""
        return self.jacobian.T.tocsc()

    @property
    def error(self) -> np.ndarray:
        """Whitened residual vector."""
        return self._require_error().copy()

    @property
    def rank(self) -> int:
        """Numerical rank of J from the last analysis."""
        return self._rank

    @property
    def rank_deficiency(self) -> int:
        """Numerical rank deficiency of J from the last analysis."""
        return self._n_cols - self._rank

    @property
    def qr_tolerance(self) -> float:
        """QR tolerance used in the last analysis."""
        return self._qr_tolerance

    @property
    def svd_tolerance(self) -> float:
        """SVD tolerance used in the last solve."""
        return self._svd_tolerance

    @property
    def memory_usage(self) -> int:
        """Bytes held by the assembled system."""
        return self._memory_usage

    @property
    def peak_memory_usage(self) -> int:
        """Largest number of bytes used since initialization."""
        return self._peak_memory_usage

    @property
    def num_flops(self) -> float:
        """Approximate floating-point operations since initialization."""
        return self._num_flops
