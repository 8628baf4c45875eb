"""Optimization problem container used as a measurement batch.

A batch bundles the design variables and error terms that are added to
(or removed from) the incremental problem together.
"""

from typing import Iterable, Optional

from .design_variables import DesignVariable
from .error_terms import ErrorTerm


class OptimizationProblem:
    """Collection of design variables grouped by id, plus error terms.

    Example:
        >>> batch = OptimizationProblem()
        >>> batch.add_design_variable(pose, group_id=0)
        >>> batch.add_design_variable(calibration, group_id=1)
        >>> batch.add_error_term(observation)
    """

    def __init__(self, name: Optional[str] = None):
        """Initialize an empty problem.

        Args:
            name: Optional label used in debug output.
        """
        self.name = name
        self._design_variables: dict[int, list[DesignVariable]] = {}
        self._error_terms: list[ErrorTerm] = []

    def add_design_variable(
        self,
        design_variable: DesignVariable,
        group_id: Optional[int] = None,
    ) -> None:
        """Add a design variable.

        Args:
            design_variable: Variable to add.
            group_id: Group to file the variable under. Defaults to the
                variable's own ``group_id``; if given, it overrides it.

        Raises:
            ValueError: If the variable is already in the problem.
        """
        if self.is_design_variable_in(design_variable):
            raise ValueError(f"{design_variable!r} is already in the problem")
        if group_id is not None:
            design_variable.group_id = int(group_id)
        self._design_variables.setdefault(
            design_variable.group_id, []
        ).append(design_variable)

    def add_design_variables(self, design_variables: Iterable[DesignVariable]) -> None:
        """Add several design variables under their own group ids."""
        for dv in design_variables:
            self.add_design_variable(dv)

    def add_error_term(self, error_term: ErrorTerm) -> None:
        """Add an error term.

        Every design variable the term depends on must already be part
        of the problem.
        """
        for dv in error_term.design_variables:
            if not self.is_design_variable_in(dv):
                raise ValueError(
                    f"error term depends on {dv!r}, which is not in the problem"
                )
        self._error_terms.append(error_term)

    def is_design_variable_in(self, design_variable: DesignVariable) -> bool:
        """Whether the variable is part of this problem."""
        return any(
            dv is design_variable
            for dvs in self._design_variables.values()
            for dv in dvs
        )

    @property
    def group_ids(self) -> list[int]:
        """Group ids in insertion order."""
        return list(self._design_variables.keys())

    def get_group_dim(self, group_id: int) -> int:
        """Sum of minimal dimensions of the active variables in a group."""
        return sum(
            dv.minimal_dimensions
            for dv in self._design_variables.get(group_id, [])
            if dv.is_active()
        )

    def get_design_variables(self, group_id: Optional[int] = None) -> list[DesignVariable]:
        """Design variables of one group, or all of them in group order."""
        if group_id is not None:
            return list(self._design_variables.get(group_id, []))
        return [dv for dvs in self._design_variables.values() for dv in dvs]

    @property
    def num_design_variables(self) -> int:
        """Number of design variables."""
        return sum(len(dvs) for dvs in self._design_variables.values())

    def design_variable(self, idx: int) -> DesignVariable:
        """Design variable by flat index (group order)."""
        return self.get_design_variables()[idx]

    @property
    def error_terms(self) -> list[ErrorTerm]:
        """Error terms in insertion order."""
        return list(self._error_terms)

    @property
    def num_error_terms(self) -> int:
        """Number of error terms."""
        return len(self._error_terms)

    def error_term(self, idx: int) -> ErrorTerm:
        """Error term by index."""
        return self._error_terms[idx]

    def evaluate_cost(self) -> float:
        """Total squared error of all error terms."""
        return float(sum(et.squared_error() for et in self._error_terms))

    def __repr__(self) -> str:
        """String representation."""
        label = f"{self.name}, " if self.name else ""
        return (
            f"OptimizationProblem({label}groups={self.group_ids}, "
            f"design_variables={self.num_design_variables}, "
            f"error_terms={self.num_error_terms})"
        )
