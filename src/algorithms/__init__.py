"""Numerical algorithms for incremental calibration.

Provides:
- marginalize: observability analysis of a marginalized variable group
- Rank and tolerance helpers for QR and SVD factorizations

Usage:
    from incremental_calibration.algorithms import marginalize

    result = marginalize(Jt, keep_columns=Jt.shape[0] - 3)
    print(result.rank, result.log_singular_value_sum)
"""

from .linalg import (
    column_norms,
    default_qr_tolerance,
    default_svd_tolerance,
    log2_sum,
    numerical_rank,
    rank_revealing_qr,
)

from .marginalize import (
    MarginalizationResult,
    marginalize,
)

__all__ = [
    # Linear algebra helpers
    "column_norms",
    "default_qr_tolerance",
    "default_svd_tolerance",
    "log2_sum",
    "numerical_rank",
    "rank_revealing_qr",
    # Marginalization
    "MarginalizationResult",
    "marginalize",
]
