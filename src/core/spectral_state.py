"""Spectral state of the marginalized group.

A :class:`SpectralSnapshot` is produced after every solve from the
marginalization of the calibration group, in raw and column-scaled
units. The estimator owns one :class:`SpectralState` holding the
snapshot that matches its committed batches, together with the
statistics of the solve that produced it.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np

from ..algorithms.marginalize import MarginalizationResult


@dataclass(frozen=True)
class SpectralSnapshot:
    """Observability of the marginalized group after one solve.

    Attributes:
        unscaled: Marginalization in raw units.
        scaled: Marginalization with normalized columns.
    """

    unscaled: MarginalizationResult
    scaled: MarginalizationResult

    def _select(self, scaled: bool) -> MarginalizationResult:
        return self.scaled if scaled else self.unscaled

    def null_space_basis(self, scaled: bool = False) -> np.ndarray:
        """Orthonormal basis of the unobservable subspace."""
        return self._select(scaled).null_space_basis

    def column_space_basis(self, scaled: bool = False) -> np.ndarray:
        """Orthonormal basis of the observable subspace."""
        return self._select(scaled).column_space_basis

    def covariance(self, scaled: bool = False) -> np.ndarray:
        """Covariance of the marginalized group."""
        return self._select(scaled).covariance

    def complement_covariance(self, scaled: bool = False) -> np.ndarray:
        """Covariance of the observable projection of the group."""
        return self._select(scaled).complement_covariance

    def precision_matrix(self, scaled: bool = False) -> np.ndarray:
        """Marginal information matrix."""
        return self._select(scaled).precision_matrix

    def singular_values(self, scaled: bool = False) -> np.ndarray:
        """Singular values of the marginal information matrix."""
        return self._select(scaled).singular_values

    @property
    def log_singular_value_sum(self) -> float:
        """Sum of log2 of the retained singular values (raw units)."""
        return self.unscaled.log_singular_value_sum

    @property
    def rank(self) -> int:
        """Dimension of the observable subspace."""
        return self.unscaled.rank

    @property
    def rank_deficiency(self) -> int:
        """Dimension of the unobservable subspace."""
        return self.unscaled.rank_deficiency

    @property
    def rank_psi(self) -> int:
        """Numerical rank of the non-marginalized Jacobian block."""
        return self.unscaled.rank_psi

    @property
    def rank_psi_deficiency(self) -> int:
        """Numerical rank deficiency of the non-marginalized block."""
        return self.unscaled.rank_psi_deficiency

    @property
    def svd_tolerance(self) -> float:
        """SVD tolerance used to truncate the spectrum."""
        return self.unscaled.svd_tolerance

    @property
    def qr_tolerance(self) -> float:
        """QR tolerance used for the non-marginalized block."""
        return self.unscaled.qr_tolerance


@dataclass
class SolverStatistics:
    """Statistics of the solve that produced a snapshot.

    Attributes:
        num_iterations: Optimizer iterations.
        j_start: Cost before optimizing.
        j_final: Cost after optimizing.
        elapsed_time: Wall time of the whole trial [s].
        memory_usage: Bytes held by the linear solver.
        peak_memory_usage: Peak bytes used by the linear solver.
        num_flops: Approximate floating-point operations.
        rank: Numerical rank of the full Jacobian.
        rank_deficiency: Numerical rank deficiency of the full Jacobian.
    """

    num_iterations: int = 0
    j_start: float = np.nan
    j_final: float = np.nan
    elapsed_time: float = 0.0
    memory_usage: int = 0
    peak_memory_usage: int = 0
    num_flops: float = 0.0
    rank: int = 0
    rank_deficiency: int = 0


class SpectralState:
    """Committed spectral snapshot and the statistics that go with it.

    Only the estimator writes to this object, and only when the committed
    batch set changes (accept, removal) or is re-solved.
    """

    def __init__(self):
        self._snapshot: Optional[SpectralSnapshot] = None
        self._statistics = SolverStatistics()
        self._information_gain = 0.0

    @property
    def snapshot(self) -> Optional[SpectralSnapshot]:
        """Current snapshot, None before the first commit."""
        return self._snapshot

    @property
    def is_bootstrapped(self) -> bool:
        """Whether a snapshot has been committed."""
        return self._snapshot is not None

    @property
    def statistics(self) -> SolverStatistics:
        """Statistics of the committed solve."""
        return self._statistics

    @property
    def information_gain(self) -> float:
        """Information gain recorded at the last commit."""
        return self._information_gain

    @property
    def log_singular_value_sum(self) -> float:
        """Log2 singular value sum of the current snapshot (0 if none)."""
        if self._snapshot is None:
            return 0.0
        return self._snapshot.log_singular_value_sum

    @property
    def rank(self) -> int:
        """Observable dimension of the current snapshot (0 if none)."""
        if self._snapshot is None:
            return 0
        return self._snapshot.rank

    def commit(
        self,
        snapshot: SpectralSnapshot,
        information_gain: float,
        statistics: SolverStatistics,
    ) -> None:
        """Make ``snapshot`` the current one."""
        self._snapshot = snapshot
        self._information_gain = float(information_gain)
        self._statistics = statistics

    def reset(self) -> None:
        """Return to the state before the first commit."""
        self._snapshot = None
        self._statistics = SolverStatistics()
        self._information_gain = 0.0

    def __repr__(self) -> str:
        """String representation."""
        if self._snapshot is None:
            return "SpectralState(empty)"
        return (
            f"SpectralState(rank={self._snapshot.rank}, "
            f"rank_deficiency={self._snapshot.rank_deficiency}, "
            f"log2_sum={self._snapshot.log_singular_value_sum:.4f}, "
            f"information_gain={self._information_gain:.4f})"
        )
