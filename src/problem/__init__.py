"""Problem definition module for incremental calibration.

Provides the building blocks of a nonlinear least-squares problem:
- Design variables: EuclideanDesignVariable, ScalarDesignVariable
- Error terms: ErrorTerm (finite-difference Jacobians), LinearErrorTerm
- Batches: OptimizationProblem
- Pool of batches: IncrementalOptimizationProblem

Usage:
    from incremental_calibration.problem import (
        EuclideanDesignVariable, LinearErrorTerm, OptimizationProblem,
    )

    theta = EuclideanDesignVariable(np.zeros(2), group_id=1)
    batch = OptimizationProblem()
    batch.add_design_variable(theta)
    batch.add_error_term(LinearErrorTerm([theta], [A], y))
"""

from .design_variables import (
    DesignVariable,
    EuclideanDesignVariable,
    ScalarDesignVariable,
)

from .error_terms import (
    ErrorTerm,
    LinearErrorTerm,
)

from .optimization_problem import OptimizationProblem

from .incremental_problem import IncrementalOptimizationProblem

__all__ = [
    # Design variables
    "DesignVariable",
    "EuclideanDesignVariable",
    "ScalarDesignVariable",
    # Error terms
    "ErrorTerm",
    "LinearErrorTerm",
    # Containers
    "OptimizationProblem",
    "IncrementalOptimizationProblem",
]
