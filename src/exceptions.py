"""Exceptions raised by the incremental calibration package.

Numerical non-convergence is not an exception: it is reported as
``solution_valid=False`` in the estimator's return value.
"""


class IncrementalCalibrationError(Exception):
    """Base class for all package errors."""


class InvalidConfigurationError(IncrementalCalibrationError):
    """The estimator configuration does not match the problem.

    Raised when the marginalized group does not appear in the problem
    at the time the design variables are ordered.
    """


class NotFoundError(IncrementalCalibrationError, LookupError):
    """A batch that should be part of the problem is missing."""


class InvalidOperationError(IncrementalCalibrationError, RuntimeError):
    """An operation was invoked in a state that does not allow it."""


class DecisionConsumedError(InvalidOperationError):
    """accept() or reject() was called on an already consumed decision."""


class DecisionPendingError(InvalidOperationError):
    """A tried batch is still waiting for accept() or reject()."""
