"""Incremental estimator and its spectral state.

Provides:
- IncrementalEstimator: batch admission by information gain
- TryBatchResult: single-use accept / reject decision on a tried batch
- SpectralSnapshot / SpectralState: observability of the calibration group

Usage:
    from incremental_calibration.core import IncrementalEstimator

    estimator = IncrementalEstimator(marg_group_id=1)
    with estimator.try_batch(batch) as decision:
        if decision.return_value.is_informative_batch:
            decision.accept()
        else:
            decision.reject(True)
"""

from .spectral_state import (
    SolverStatistics,
    SpectralSnapshot,
    SpectralState,
)

from .incremental_estimator import (
    IncrementalEstimator,
    IncrementalEstimatorOptions,
    ReturnValue,
    TryBatchResult,
)

__all__ = [
    # Spectral state
    "SolverStatistics",
    "SpectralSnapshot",
    "SpectralState",
    # Estimator
    "IncrementalEstimator",
    "IncrementalEstimatorOptions",
    "ReturnValue",
    "TryBatchResult",
]
