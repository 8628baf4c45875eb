"""Incremental optimization problem (the batch pool).

The pool holds every batch that is part of the current estimate, plus
the batch currently on trial. Design variables shared between batches
(typically the calibration parameters) are stored once and
reference-counted, so removing a batch only drops the variables no other
batch still uses.

The design variables are laid out group by group following
``groups_ordering``; the linear solver assigns column indices in that
order.
"""

from typing import Iterator, Optional, Union

import numpy as np

from ..exceptions import NotFoundError
from .design_variables import DesignVariable
from .error_terms import ErrorTerm
from .optimization_problem import OptimizationProblem


class IncrementalOptimizationProblem:
    """Pool of optimization problems solved jointly.

    Example:
        >>> pool = IncrementalOptimizationProblem()
        >>> pool.add(batch_1)
        >>> pool.add(batch_2)
        >>> pool.set_groups_ordering([0, 1])
        >>> pool.save_design_variables()
        >>> ...  # optimize
        >>> pool.restore_design_variables()
    """

    def __init__(self):
        self._problems: list[OptimizationProblem] = []
        self._design_variables: dict[int, list[DesignVariable]] = {}
        self._dv_refs: dict[int, int] = {}
        self._dv_groups: dict[int, int] = {}
        self._groups_ordering: list[int] = []
        self._saved_parameters: Optional[list[tuple[DesignVariable, np.ndarray]]] = None

    def __len__(self) -> int:
        """Number of batches in the pool."""
        return len(self._problems)

    def __iter__(self) -> Iterator[OptimizationProblem]:
        """Iterate over batches in insertion order."""
        return iter(list(self._problems))

    def __contains__(self, problem: OptimizationProblem) -> bool:
        """Identity membership test."""
        return any(p is problem for p in self._problems)

    @property
    def num_optimization_problems(self) -> int:
        """Number of batches in the pool."""
        return len(self._problems)

    def get_optimization_problem(self, idx: int) -> OptimizationProblem:
        """Batch by insertion index."""
        return self._problems[idx]

    def index(self, problem: OptimizationProblem) -> int:
        """Insertion index of a batch.

        Raises:
            NotFoundError: If the batch is not in the pool.
        """
        for i, p in enumerate(self._problems):
            if p is problem:
                return i
        raise NotFoundError(f"{problem!r} is not in the pool")

    def add(self, problem: OptimizationProblem, index: Optional[int] = None) -> None:
        """Insert a batch.

        Args:
            problem: Batch to insert.
            index: Insertion position. Appended if None.

        Raises:
            ValueError: If the batch is already in the pool.
        """
        if problem in self:
            raise ValueError(f"{problem!r} is already in the pool")

        if index is None:
            self._problems.append(problem)
        else:
            self._problems.insert(index, problem)

        for dv in problem.get_design_variables():
            key = id(dv)
            if self._dv_refs.get(key, 0) == 0:
                self._dv_groups[key] = dv.group_id
                group = self._design_variables.setdefault(dv.group_id, [])
                group.append(dv)
                if dv.group_id not in self._groups_ordering:
                    self._groups_ordering.append(dv.group_id)
            self._dv_refs[key] = self._dv_refs.get(key, 0) + 1

    def remove(self, problem: Union[int, OptimizationProblem]) -> OptimizationProblem:
        """Remove a batch by index or identity.

        Returns:
            The removed batch.

        Raises:
            NotFoundError: If the index is out of range or the batch is
                not in the pool.
        """
        if isinstance(problem, (int, np.integer)):
            idx = int(problem)
            if not 0 <= idx < len(self._problems):
                raise NotFoundError(
                    f"batch index {idx} out of range for pool of size "
                    f"{len(self._problems)}"
                )
        else:
            idx = self.index(problem)

        removed = self._problems.pop(idx)

        for dv in removed.get_design_variables():
            key = id(dv)
            self._dv_refs[key] -= 1
            if self._dv_refs[key] == 0:
                del self._dv_refs[key]
                # Filed under the group it had when it entered the pool
                group_id = self._dv_groups.pop(key)
                group = self._design_variables[group_id]
                group.remove(dv)
                if not group:
                    del self._design_variables[group_id]
                    self._groups_ordering.remove(group_id)

        return removed

    @property
    def groups_ordering(self) -> list[int]:
        """Current ordering of the groups in the linear system."""
        return list(self._groups_ordering)

    def get_groups_ordering(self) -> list[int]:
        """Current ordering of the groups in the linear system."""
        return self.groups_ordering

    def set_groups_ordering(self, ordering: list[int]) -> None:
        """Set the group ordering.

        Args:
            ordering: Permutation of the current group ids.

        Raises:
            ValueError: If ``ordering`` is not a permutation of the groups.
        """
        ordering = [int(g) for g in ordering]
        if sorted(ordering) != sorted(self._groups_ordering):
            raise ValueError(
                f"ordering {ordering} is not a permutation of the groups "
                f"{self._groups_ordering}"
            )
        self._groups_ordering = ordering

    def is_group_in(self, group_id: int) -> bool:
        """Whether any design variable of the group is in the pool."""
        return group_id in self._design_variables

    def get_group_dim(self, group_id: int) -> int:
        """Sum of minimal dimensions of the active variables in a group."""
        return sum(
            dv.minimal_dimensions
            for dv in self._design_variables.get(group_id, [])
            if dv.is_active()
        )

    def get_design_variables(self) -> list[DesignVariable]:
        """All design variables laid out following the group ordering."""
        return [
            dv
            for group_id in self._groups_ordering
            for dv in self._design_variables[group_id]
        ]

    def get_layout(self) -> dict[int, list[DesignVariable]]:
        """Copy of the per-group variable lists, in column order."""
        return {group_id: list(dvs) for group_id, dvs in self._design_variables.items()}

    def set_layout(self, layout: dict[int, list[DesignVariable]]) -> None:
        """Reorder the variables inside each group.

        Args:
            layout: Per-group lists as returned by :meth:`get_layout`,
                holding exactly the variables currently in the pool.

        Raises:
            ValueError: If ``layout`` does not match the pool content.
        """
        current = {
            group_id: sorted(id(dv) for dv in dvs)
            for group_id, dvs in self._design_variables.items()
        }
        requested = {
            int(group_id): sorted(id(dv) for dv in dvs)
            for group_id, dvs in layout.items()
        }
        if current != requested:
            raise ValueError("layout does not hold the variables of the pool")
        for group_id, dvs in layout.items():
            self._design_variables[int(group_id)] = list(dvs)

    @property
    def num_design_variables(self) -> int:
        """Number of distinct design variables."""
        return len(self._dv_refs)

    def design_variable(self, idx: int) -> DesignVariable:
        """Design variable by flat index in group ordering."""
        return self.get_design_variables()[idx]

    def get_error_terms(self) -> list[ErrorTerm]:
        """All error terms, batch by batch."""
        return [et for p in self._problems for et in p.error_terms]

    @property
    def num_error_terms(self) -> int:
        """Number of error terms."""
        return sum(p.num_error_terms for p in self._problems)

    def error_term(self, idx: int) -> ErrorTerm:
        """Error term by flat index."""
        return self.get_error_terms()[idx]

    def evaluate_cost(self) -> float:
        """Total squared error over all batches."""
        return float(sum(p.evaluate_cost() for p in self._problems))

    def save_design_variables(self) -> None:
        """Store a deep copy of every design variable's parameters."""
        self._saved_parameters = [
            (dv, dv.get_parameters()) for dv in self.get_design_variables()
        ]

    def restore_design_variables(self) -> None:
        """Restore the parameters saved by :meth:`save_design_variables`.

        Variables that left the pool since the save are restored as well,
        so a rejected batch leaves no trace in shared objects.

        Raises:
            ValueError: If nothing has been saved.
        """
        if self._saved_parameters is None:
            raise ValueError("no design variables have been saved")
        for dv, parameters in self._saved_parameters:
            dv.set_parameters(parameters.copy())

    def clear_saved_design_variables(self) -> None:
        """Discard the saved parameters."""
        self._saved_parameters = None

    @property
    def has_saved_design_variables(self) -> bool:
        """Whether a parameter snapshot is held."""
        return self._saved_parameters is not None

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"IncrementalOptimizationProblem(batches={len(self)}, "
            f"design_variables={self.num_design_variables}, "
            f"error_terms={self.num_error_terms}, "
            f"groups={self._groups_ordering})"
        )
