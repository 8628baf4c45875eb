"""Incremental estimator with informative batch selection.

The estimator grows a nonlinear least-squares problem batch by batch.
Every candidate batch goes through a trial:

    1. insert the batch into the pool
    2. move the marginalized group to the end of the variable ordering
    3. optionally save all design variables
    4. optimize the joint problem
    5. marginalize the calibration group and measure its spectrum
    6. compare with the committed spectrum (information gain, rank)

The trial returns a :class:`TryBatchResult` that must be accepted or
rejected exactly once. Accepting commits the new spectrum; rejecting
removes the batch, optionally restores the design variables and rebuilds
the linear solver, leaving no trace of the trial.

Reference:
    Maye et al. 2013, "Self-supervised calibration for robotic systems",
    Section IV (information-theoretic batch selection).
"""

import logging
import time
import weakref
from dataclasses import dataclass, field
from typing import Callable, Optional, Union

import numpy as np

from ..algorithms.marginalize import MarginalizationResult, marginalize
from ..backend.linear_solver import LinearSolverOptions
from ..backend.optimizer import Optimizer, OptimizerOptions, SolutionReturnValue
from ..exceptions import (
    DecisionConsumedError,
    DecisionPendingError,
    InvalidConfigurationError,
    InvalidOperationError,
    NotFoundError,
)
from ..problem.incremental_problem import IncrementalOptimizationProblem
from ..problem.optimization_problem import OptimizationProblem
from .spectral_state import SolverStatistics, SpectralSnapshot, SpectralState

logger = logging.getLogger(__name__)

Marginalizer = Callable[..., MarginalizationResult]


@dataclass(frozen=True)
class IncrementalEstimatorOptions:
    """Configuration for the incremental estimator.

    Attributes:
        info_gain_delta: Information gain a batch must exceed to be
            considered informative (default 0.2).
        check_validity: Check the optimizer outcome before a batch can be
            considered informative.
        max_iteration_hit_is_still_valid: Do not count hitting the
            iteration cap against the solution.
        verbose: Log trial outcomes and rank regressions.
    """

    info_gain_delta: float = 0.2
    check_validity: bool = False
    max_iteration_hit_is_still_valid: bool = False
    verbose: bool = False

    def __post_init__(self):
        if not np.isfinite(self.info_gain_delta):
            raise ValueError(
                f"info_gain_delta must be finite, got {self.info_gain_delta}"
            )


@dataclass
class ReturnValue:
    """Outcome of a batch trial, removal or re-optimization.

    Attributes:
        batch_accepted: Whether the batch is part of the estimate.
        solution_valid: Whether the optimizer outcome passed the checks.
        is_informative_batch: Whether the batch brought enough information
            (gain above threshold or rank increase) with a valid solution.
        information_gain: Half the change of the log2 singular value sum
            for trials; the raw change for removals; 0 for re-optimization.
        snapshot: Spectral snapshot computed after the solve.
        statistics: Optimizer and linear solver statistics.
    """

    batch_accepted: bool = False
    solution_valid: bool = False
    is_informative_batch: bool = False
    information_gain: float = 0.0
    snapshot: Optional[SpectralSnapshot] = None
    statistics: SolverStatistics = field(default_factory=SolverStatistics)

    @property
    def num_iterations(self) -> int:
        return self.statistics.num_iterations

    @property
    def j_start(self) -> float:
        return self.statistics.j_start

    @property
    def j_final(self) -> float:
        return self.statistics.j_final

    @property
    def elapsed_time(self) -> float:
        return self.statistics.elapsed_time

    @property
    def memory_usage(self) -> int:
        return self.statistics.memory_usage

    @property
    def peak_memory_usage(self) -> int:
        return self.statistics.peak_memory_usage

    @property
    def num_flops(self) -> float:
        return self.statistics.num_flops

    @property
    def rank_theta(self) -> int:
        """Observable dimension of the marginalized group."""
        return self.snapshot.rank if self.snapshot is not None else 0

    @property
    def rank_theta_deficiency(self) -> int:
        """Unobservable dimension of the marginalized group."""
        return self.snapshot.rank_deficiency if self.snapshot is not None else 0

    @property
    def rank_psi(self) -> int:
        return self.snapshot.rank_psi if self.snapshot is not None else 0

    @property
    def rank_psi_deficiency(self) -> int:
        return self.snapshot.rank_psi_deficiency if self.snapshot is not None else 0

    @property
    def svd_tolerance(self) -> float:
        return self.snapshot.svd_tolerance if self.snapshot is not None else np.nan

    @property
    def qr_tolerance(self) -> float:
        return self.snapshot.qr_tolerance if self.snapshot is not None else np.nan

    @property
    def sv_log2_sum(self) -> float:
        """Log2 singular value sum of the snapshot."""
        if self.snapshot is None:
            return 0.0
        return self.snapshot.log_singular_value_sum

    def null_space_basis(self, scaled: bool = False) -> Optional[np.ndarray]:
        return self.snapshot.null_space_basis(scaled) if self.snapshot else None

    def column_space_basis(self, scaled: bool = False) -> Optional[np.ndarray]:
        return self.snapshot.column_space_basis(scaled) if self.snapshot else None

    def covariance(self, scaled: bool = False) -> Optional[np.ndarray]:
        return self.snapshot.covariance(scaled) if self.snapshot else None

    def complement_covariance(self, scaled: bool = False) -> Optional[np.ndarray]:
        return self.snapshot.complement_covariance(scaled) if self.snapshot else None

    def singular_values(self, scaled: bool = False) -> Optional[np.ndarray]:
        return self.snapshot.singular_values(scaled) if self.snapshot else None


class TryBatchResult:
    """Pending decision on a tried batch.

    Exactly one of :meth:`accept` and :meth:`reject` may be called; any
    further call raises :class:`DecisionConsumedError`. Used as a context
    manager, a decision left open at the end of the block is rolled back
    and :class:`DecisionPendingError` is raised. The estimator only holds
    a weak reference to the pending decision; one garbage-collected while
    still open is rolled back with an error log.

    Example:
        >>> with estimator.try_batch(batch) as decision:
        ...     if decision.return_value.is_informative_batch:
        ...         decision.accept()
        ...     else:
        ...         decision.reject(True)
    """

    def __init__(
        self,
        estimator: "IncrementalEstimator",
        batch: OptimizationProblem,
        return_value: ReturnValue,
        groups_ordering: list[int],
        preserved_design_variables: bool,
    ):
        self._estimator = estimator
        self._batch: Optional[OptimizationProblem] = batch
        self._return_value = return_value
        self._groups_ordering = groups_ordering
        self._preserved_design_variables = preserved_design_variables

    @property
    def return_value(self) -> ReturnValue:
        """Outcome of the trial."""
        return self._return_value

    def get_return_value(self) -> ReturnValue:
        """Outcome of the trial."""
        return self._return_value

    @property
    def is_pending(self) -> bool:
        """Whether accept() or reject() is still to be called."""
        return self._batch is not None

    @property
    def batch(self) -> Optional[OptimizationProblem]:
        """Tried batch, None once consumed."""
        return self._batch

    @property
    def preserved_design_variables(self) -> bool:
        """Whether the design variables were saved before the trial."""
        return self._preserved_design_variables

    @property
    def groups_ordering(self) -> list[int]:
        """Group ordering of the pool before the trial."""
        return list(self._groups_ordering)

    def accept(self) -> None:
        """Commit the batch and its spectrum."""
        self._check_pending()
        self._estimator._accept_batch(self)
        self._batch = None

    def reject(self, restore_design_variables: bool) -> None:
        """Roll the trial back.

        Args:
            restore_design_variables: Restore the design variables saved
                before the trial.
        """
        self._check_pending()
        self._estimator._reject_batch(self, restore_design_variables)
        self._batch = None

    def _check_pending(self) -> None:
        if self._batch is None:
            raise DecisionConsumedError(
                "decision already consumed by accept() or reject()"
            )

    def __enter__(self) -> "TryBatchResult":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> bool:
        if self._batch is None:
            return False
        self._estimator._reject_batch(self, self._preserved_design_variables)
        self._batch = None
        if exc_type is None:
            raise DecisionPendingError(
                "decision left the block without accept() or reject(); "
                "the trial has been rolled back"
            )
        return False

    def __del__(self):
        if getattr(self, "_batch", None) is None:
            return
        logger.error(
            "TryBatchResult discarded without accept() or reject(); "
            "rolling the trial back"
        )
        self._estimator._reject_batch(self, self._preserved_design_variables)
        self._batch = None

    def __repr__(self) -> str:
        """String representation."""
        state = "pending" if self.is_pending else "consumed"
        rv = self._return_value
        return (
            f"TryBatchResult({state}, informative={rv.is_informative_batch}, "
            f"information_gain={rv.information_gain:.4f})"
        )


class IncrementalEstimator:
    """Incremental estimator for robotic calibration problems.

    The marginalized group (the calibration parameters) is analysed after
    every solve; batches that do not increase the information about it
    are discarded.

    Example:
        >>> estimator = IncrementalEstimator(marg_group_id=1)
        >>> for batch in batches:
        ...     ret = estimator.add_batch(batch)
        ...     print(ret.batch_accepted, ret.information_gain)
    """

    def __init__(
        self,
        marg_group_id: int,
        options: Optional[IncrementalEstimatorOptions] = None,
        linear_solver_options: Optional[LinearSolverOptions] = None,
        optimizer_options: Optional[OptimizerOptions] = None,
        marginalizer: Optional[Marginalizer] = None,
        optimizer: Optional[Optimizer] = None,
    ):
        """Initialize estimator.

        Args:
            marg_group_id: Group id of the variables to marginalize.
            options: Estimator configuration.
            linear_solver_options: Linear solver configuration.
            optimizer_options: Optimizer configuration.
            marginalizer: Replacement for :func:`marginalize` with the
                same signature.
            optimizer: Optimizer to use instead of a default one. Its own
                options are used, so it excludes ``linear_solver_options``
                and ``optimizer_options``.

        Raises:
            ValueError: If ``optimizer`` is given together with solver or
                optimizer options.
        """
        self._marg_group_id = int(marg_group_id)
        self._options = options or IncrementalEstimatorOptions()
        self._marginalizer = marginalizer or marginalize

        if optimizer is None:
            optimizer = Optimizer(
                optimizer_options or OptimizerOptions(),
                linear_solver_options or LinearSolverOptions(),
            )
        elif linear_solver_options is not None or optimizer_options is not None:
            raise ValueError(
                "pass either an optimizer or linear_solver_options/"
                "optimizer_options, not both"
            )
        self._optimizer = optimizer
        self._optimizer_options = optimizer.options
        self._linear_solver_options = optimizer.linear_solver_options

        self._problem = IncrementalOptimizationProblem()
        self._optimizer.set_problem(self._problem)

        self._state = SpectralState()
        self._pending: Optional["weakref.ReferenceType[TryBatchResult]"] = None

    @classmethod
    def from_config(cls, config, marginalizer: Optional[Marginalizer] = None) -> "IncrementalEstimator":
        """Build an estimator from an :class:`EstimatorConfig`.

        Args:
            config: Object with ``marg_group_id``, ``estimator``,
                ``linear_solver`` and ``optimizer`` attributes.
            marginalizer: Optional marginalization replacement.
        """
        return cls(
            config.marg_group_id,
            options=config.estimator,
            linear_solver_options=config.linear_solver,
            optimizer_options=config.optimizer,
            marginalizer=marginalizer,
        )

    # ------------------------------------------------------------------
    # Batch protocol
    # ------------------------------------------------------------------

    def try_batch(
        self,
        batch: OptimizationProblem,
        preserve_variables_for_rollback: bool = True,
    ) -> TryBatchResult:
        """Try a measurement batch as candidate.

        Args:
            batch: Batch to try.
            preserve_variables_for_rollback: Save all design variables so
                that a rejection can restore them.

        Returns:
            Pending decision that must be accepted or rejected.

        Raises:
            TypeError: If batch is None.
            ValueError: If the batch is already part of the estimator.
            DecisionPendingError: If another decision is still open.
            InvalidConfigurationError: If the marginalized group does not
                appear in the problem.
        """
        if batch is None:
            raise TypeError("batch must not be None")
        self._check_no_pending()
        if batch in self._problem:
            raise ValueError(f"{batch!r} is already part of the estimator")

        time_start = time.perf_counter()
        groups_ordering = self._problem.groups_ordering

        self._problem.add(batch)
        try:
            self._order_marginalized_design_variables()
        except InvalidConfigurationError:
            self._problem.remove(batch)
            self._problem.set_groups_ordering(groups_ordering)
            raise

        if preserve_variables_for_rollback:
            self._problem.save_design_variables()
        else:
            self._problem.clear_saved_design_variables()

        decision = TryBatchResult(
            self, batch, ReturnValue(), groups_ordering,
            preserve_variables_for_rollback,
        )

        try:
            srv = self._optimize()
            snapshot = self._marginalize()
        except Exception:
            self._reject_batch(decision, preserve_variables_for_rollback)
            decision._batch = None
            raise

        ret = decision.return_value
        ret.solution_valid = self._is_solution_valid(srv)
        ret.snapshot = snapshot

        if not self._state.is_bootstrapped:
            ret.information_gain = 0.0
            ret.is_informative_batch = ret.solution_valid
        else:
            ret.information_gain = 0.5 * (
                snapshot.log_singular_value_sum - self._state.log_singular_value_sum
            )
            if snapshot.rank < self._state.rank and self._options.verbose:
                logger.warning(
                    "Rank of the marginalized group going down: %d -> %d",
                    self._state.rank, snapshot.rank,
                )
            ret.is_informative_batch = ret.solution_valid and (
                ret.information_gain > self._options.info_gain_delta
                or snapshot.rank > self._state.rank
            )

        ret.statistics = self._collect_statistics(srv, time_start)

        if self._options.verbose:
            logger.info(
                "Tried batch %d: gain=%.4f, rank=%d, valid=%s, informative=%s",
                len(self._problem) - 1, ret.information_gain, snapshot.rank,
                ret.solution_valid, ret.is_informative_batch,
            )

        self._pending = weakref.ref(decision)
        return decision

    def add_batch(self, batch: OptimizationProblem, force: bool = False) -> ReturnValue:
        """Try a batch and keep it if informative.

        Args:
            batch: Batch to add.
            force: Keep the batch regardless of its information.

        Returns:
            ReturnValue of the trial.
        """
        decision = self.try_batch(batch, not force)
        if force or decision.return_value.is_informative_batch:
            decision.accept()
        else:
            decision.reject(True)
        return decision.return_value

    def remove_batch(self, batch: Union[int, OptimizationProblem]) -> ReturnValue:
        """Remove a committed batch and re-solve.

        The spectral state is always updated; the reported information
        gain is the raw signed change of the log2 singular value sum.

        Args:
            batch: Batch index or batch object.

        Returns:
            ReturnValue of the re-solve.

        Raises:
            NotFoundError: If the batch is not committed.
            DecisionPendingError: If a decision is still open.
            InvalidConfigurationError: If the remaining batches do not
                contain the marginalized group. The batch is restored.
        """
        self._check_no_pending()

        if isinstance(batch, (int, np.integer)):
            idx = int(batch)
            if not 0 <= idx < len(self._problem):
                raise NotFoundError(
                    f"batch index {idx} out of range, estimator holds "
                    f"{len(self._problem)} batches"
                )
        else:
            idx = self._problem.index(batch)

        groups_ordering = self._problem.groups_ordering
        layout = self._problem.get_layout()
        time_start = time.perf_counter()
        removed = self._problem.remove(idx)

        if len(self._problem) == 0:
            self._state.reset()
            self._restore_linear_solver()
            return ReturnValue(solution_valid=True)

        try:
            self._order_marginalized_design_variables()
        except InvalidConfigurationError:
            self._problem.add(removed, index=idx)
            self._problem.set_groups_ordering(groups_ordering)
            self._problem.set_layout(layout)
            raise

        srv = self._optimize()
        snapshot = self._marginalize()

        ret = ReturnValue(
            batch_accepted=False,
            solution_valid=self._is_solution_valid(srv),
            information_gain=(
                snapshot.log_singular_value_sum - self._state.log_singular_value_sum
            ),
            snapshot=snapshot,
            statistics=self._collect_statistics(srv, time_start),
        )
        self._state.commit(snapshot, ret.information_gain, ret.statistics)

        if self._options.verbose:
            logger.info(
                "Removed batch %d: delta=%.4f, rank=%d",
                idx, ret.information_gain, snapshot.rank,
            )

        return ret

    def reoptimize(self) -> ReturnValue:
        """Re-run the optimizer on the committed batches.

        Returns:
            ReturnValue with zero information gain.

        Raises:
            DecisionPendingError: If a decision is still open.
            InvalidConfigurationError: If the marginalized group does not
                appear in the problem.
        """
        self._check_no_pending()
        time_start = time.perf_counter()
        self._order_marginalized_design_variables()

        srv = self._optimize()
        snapshot = self._marginalize()

        ret = ReturnValue(
            batch_accepted=False,
            solution_valid=self._is_solution_valid(srv),
            information_gain=0.0,
            snapshot=snapshot,
            statistics=self._collect_statistics(srv, time_start),
        )
        self._state.commit(snapshot, 0.0, ret.statistics)
        return ret

    # ------------------------------------------------------------------
    # Commit / rollback
    # ------------------------------------------------------------------

    def _accept_batch(self, decision: TryBatchResult) -> None:
        ret = decision.return_value
        self._state.commit(ret.snapshot, ret.information_gain, ret.statistics)
        self._problem.clear_saved_design_variables()
        ret.batch_accepted = True
        self._pending = None

    def _reject_batch(self, decision: TryBatchResult, restore_design_variables: bool) -> None:
        if restore_design_variables and not self._problem.has_saved_design_variables:
            raise InvalidOperationError(
                "cannot restore design variables: they were not saved "
                "before the trial"
            )

        self._problem.remove(decision.batch)
        self._problem.set_groups_ordering(decision.groups_ordering)
        if restore_design_variables:
            self._problem.restore_design_variables()
        self._problem.clear_saved_design_variables()

        self._restore_linear_solver()

        decision.return_value.batch_accepted = False
        self._pending = None

    def _restore_linear_solver(self) -> None:
        """Rebuild the linear solver against the current pool."""
        self._optimizer.initialize_linear_solver()
        self._optimizer.initialize_trust_region_policy()
        solver = self._optimizer.solver
        solver.build_system()
        solver.analyze_system()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _check_no_pending(self) -> None:
        if self.pending_decision is not None:
            raise DecisionPendingError(
                "a tried batch is waiting for accept() or reject()"
            )

    def _order_marginalized_design_variables(self) -> None:
        """Move the marginalized group to the end of the ordering."""
        ordering = self._problem.groups_ordering
        if self._marg_group_id not in ordering:
            raise InvalidConfigurationError(
                f"marginalized group {self._marg_group_id} should appear in "
                f"the problem, groups are {ordering}"
            )
        if self._problem.get_group_dim(self._marg_group_id) == 0:
            raise InvalidConfigurationError(
                f"marginalized group {self._marg_group_id} has no active "
                f"design variables"
            )

        idx = ordering.index(self._marg_group_id)
        if idx != len(ordering) - 1:
            ordering[idx], ordering[-1] = ordering[-1], ordering[idx]
            self._problem.set_groups_ordering(ordering)

    def _optimize(self) -> SolutionReturnValue:
        self._optimizer.initialize_linear_solver()
        self._optimizer.initialize_trust_region_policy()
        return self._optimizer.optimize()

    def _marginalize(self) -> SpectralSnapshot:
        dim = self._problem.get_group_dim(self._marg_group_id)
        jacobian_transpose = self._optimizer.solver.jacobian_transpose
        keep_columns = jacobian_transpose.shape[0] - dim
        tolerances = dict(
            norm_tol=self._linear_solver_options.norm_tol,
            eps_tol=self._linear_solver_options.eps_tol,
            qr_tol=self._linear_solver_options.qr_tol,
        )
        return SpectralSnapshot(
            unscaled=self._marginalizer(
                jacobian_transpose, keep_columns, scaled=False, **tolerances
            ),
            scaled=self._marginalizer(
                jacobian_transpose, keep_columns, scaled=True, **tolerances
            ),
        )

    def _is_solution_valid(self, srv: SolutionReturnValue) -> bool:
        if srv.linear_solver_failure or not np.isfinite(srv.j_final):
            return False
        if not self._options.check_validity:
            return True
        max_iterations_hit = (
            srv.iterations >= self._optimizer_options.max_iterations
            and not self._options.max_iteration_hit_is_still_valid
        )
        return not (max_iterations_hit and srv.j_final >= srv.j_start)

    def _collect_statistics(self, srv: SolutionReturnValue, time_start: float) -> SolverStatistics:
        solver = self._optimizer.solver
        return SolverStatistics(
            num_iterations=srv.iterations,
            j_start=srv.j_start,
            j_final=srv.j_final,
            elapsed_time=time.perf_counter() - time_start,
            memory_usage=solver.memory_usage,
            peak_memory_usage=solver.peak_memory_usage,
            num_flops=solver.num_flops,
            rank=solver.rank,
            rank_deficiency=solver.rank_deficiency,
        )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def num_batches(self) -> int:
        """Number of committed batches."""
        return len(self._problem) - (1 if self.pending_decision is not None else 0)

    @property
    def problem(self) -> IncrementalOptimizationProblem:
        """Underlying pool of batches."""
        return self._problem

    @property
    def pending_decision(self) -> Optional[TryBatchResult]:
        """Decision waiting for accept() or reject(), if any."""
        return self._pending() if self._pending is not None else None

    @property
    def options(self) -> IncrementalEstimatorOptions:
        return self._options

    @property
    def linear_solver_options(self) -> LinearSolverOptions:
        return self._linear_solver_options

    @property
    def optimizer_options(self) -> OptimizerOptions:
        return self._optimizer_options

    @property
    def optimizer(self) -> Optimizer:
        return self._optimizer

    @property
    def marg_group_id(self) -> int:
        """Group id of the marginalized variables."""
        return self._marg_group_id

    @property
    def spectral_state(self) -> SpectralState:
        """Committed spectral state."""
        return self._state

    @property
    def snapshot(self) -> Optional[SpectralSnapshot]:
        """Committed spectral snapshot, None before the first commit."""
        return self._state.snapshot

    @property
    def information_gain(self) -> float:
        """Information gain recorded at the last commit."""
        return self._state.information_gain

    @property
    def jacobian_transpose(self):
        """Jacobian transpose of the last built linear system."""
        return self._optimizer.solver.jacobian_transpose

    @property
    def rank_theta(self) -> int:
        return self._state.rank

    @property
    def rank_theta_deficiency(self) -> int:
        snapshot = self._state.snapshot
        return snapshot.rank_deficiency if snapshot is not None else 0

    @property
    def rank_psi(self) -> int:
        snapshot = self._state.snapshot
        return snapshot.rank_psi if snapshot is not None else 0

    @property
    def rank_psi_deficiency(self) -> int:
        snapshot = self._state.snapshot
        return snapshot.rank_psi_deficiency if snapshot is not None else 0

    @property
    def svd_tolerance(self) -> float:
        snapshot = self._state.snapshot
        return snapshot.svd_tolerance if snapshot is not None else np.nan

    @property
    def qr_tolerance(self) -> float:
        snapshot = self._state.snapshot
        return snapshot.qr_tolerance if snapshot is not None else np.nan

    def get_null_space_basis(self, scaled: bool = False) -> Optional[np.ndarray]:
        """Basis of the unobservable subspace of the marginalized group."""
        snapshot = self._state.snapshot
        return snapshot.null_space_basis(scaled) if snapshot is not None else None

    def get_column_space_basis(self, scaled: bool = False) -> Optional[np.ndarray]:
        """Basis of the observable subspace of the marginalized group."""
        snapshot = self._state.snapshot
        return snapshot.column_space_basis(scaled) if snapshot is not None else None

    def get_covariance(self, scaled: bool = False) -> Optional[np.ndarray]:
        """Covariance of the marginalized group."""
        snapshot = self._state.snapshot
        return snapshot.covariance(scaled) if snapshot is not None else None

    def get_complement_covariance(self, scaled: bool = False) -> Optional[np.ndarray]:
        """Covariance of the observable projection of the group."""
        snapshot = self._state.snapshot
        return snapshot.complement_covariance(scaled) if snapshot is not None else None

    def get_precision_matrix(self, scaled: bool = False) -> Optional[np.ndarray]:
        snapshot = self._state.snapshot
        return snapshot.precision_matrix(scaled) if snapshot is not None else None

    def get_singular_values(self, scaled: bool = False) -> Optional[np.ndarray]:
        snapshot = self._state.snapshot
        return snapshot.singular_values(scaled) if snapshot is not None else None

    @property
    def initial_cost(self) -> float:
        """Cost before the last committed solve."""
        return self._state.statistics.j_start

    @property
    def final_cost(self) -> float:
        """Cost after the last committed solve."""
        return self._state.statistics.j_final

    @property
    def memory_usage(self) -> int:
        return self._state.statistics.memory_usage

    @property
    def peak_memory_usage(self) -> int:
        return self._state.statistics.peak_memory_usage

    @property
    def num_flops(self) -> float:
        return self._state.statistics.num_flops

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"IncrementalEstimator(marg_group_id={self._marg_group_id}, "
            f"batches={self.num_batches}, state={self._state!r})"
        )
