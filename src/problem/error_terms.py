"""Error terms for nonlinear least-squares problems.

An error term contributes ``dimension`` residual rows to the stacked
system. Its squared error is

    J = e^T W e,    W = L^T L

where ``L`` is the square-root information matrix. The linear solver
works on the whitened quantities ``L e`` and ``L J_i``.
"""

from abc import ABC, abstractmethod
from typing import Optional, Sequence

import numpy as np

from .design_variables import DesignVariable


class ErrorTerm(ABC):
    """Abstract base class for error terms.

    Subclasses implement :meth:`evaluate_error`. Jacobians default to
    central finite differences through the design variables' box-plus
    operator; subclasses with analytic derivatives override
    :meth:`evaluate_jacobians`.
    """

    def __init__(
        self,
        design_variables: Sequence[DesignVariable],
        dimension: int,
        sqrt_information: Optional[np.ndarray] = None,
        fd_step: float = 1e-6,
    ):
        """Initialize error term.

        Args:
            design_variables: Variables the residual depends on.
            dimension: Number of residual rows.
            sqrt_information: Square-root information matrix L
                (dimension, dimension). Identity if None.
            fd_step: Step size for finite-difference Jacobians.
        """
        if dimension <= 0:
            raise ValueError(f"dimension must be positive, got {dimension}")
        if len(design_variables) == 0:
            raise ValueError("error term needs at least one design variable")

        self._design_variables = list(design_variables)
        self._dimension = int(dimension)
        self._fd_step = fd_step
        self.row_base = -1

        if sqrt_information is None:
            self._sqrt_information = np.eye(self._dimension)
        else:
            self._sqrt_information = np.asarray(sqrt_information, dtype=float)
            if self._sqrt_information.shape != (dimension, dimension):
                raise ValueError(
                    f"sqrt_information must have shape ({dimension}, "
                    f"{dimension}), got {self._sqrt_information.shape}"
                )

    @property
    def dimension(self) -> int:
        """Number of residual rows."""
        return self._dimension

    @property
    def design_variables(self) -> list[DesignVariable]:
        """Design variables this term depends on."""
        return list(self._design_variables)

    @property
    def sqrt_information(self) -> np.ndarray:
        """Square-root information matrix L."""
        return self._sqrt_information.copy()

    @abstractmethod
    def evaluate_error(self) -> np.ndarray:
        """Evaluate the raw (unwhitened) residual (dimension,)."""
        pass

    def evaluate_jacobians(self) -> list[np.ndarray]:
        """Evaluate raw Jacobians, one block per design variable.

        Returns:
            List of arrays (dimension, dv.minimal_dimensions).
        """
        jacobians = []
        for dv in self._design_variables:
            saved = dv.get_parameters()
            n = dv.minimal_dimensions
            J = np.zeros((self._dimension, n))
            for k in range(n):
                dx = np.zeros(n)
                dx[k] = self._fd_step
                dv.update(dx)
                e_plus = self.evaluate_error()
                dv.set_parameters(saved)
                dv.update(-dx)
                e_minus = self.evaluate_error()
                dv.set_parameters(saved)
                J[:, k] = (e_plus - e_minus) / (2.0 * self._fd_step)
            jacobians.append(J)
        return jacobians

    def whitened_error(self) -> np.ndarray:
        """Residual premultiplied by L."""
        return self._sqrt_information @ self.evaluate_error()

    def whitened_jacobians(self) -> list[np.ndarray]:
        """Jacobians premultiplied by L."""
        return [self._sqrt_information @ J for J in self.evaluate_jacobians()]

    def squared_error(self) -> float:
        """Squared Mahalanobis error e^T W e."""
        e = self.whitened_error()
        return float(e @ e)


class LinearErrorTerm(ErrorTerm):
    """Linear measurement error term.

    Residual:
        e = sum_i A_i @ x_i - y

    Useful for well-posed test problems and as a linearized prior.
    """

    def __init__(
        self,
        design_variables: Sequence[DesignVariable],
        A_blocks: Sequence[np.ndarray],
        y: np.ndarray,
        sqrt_information: Optional[np.ndarray] = None,
    ):
        """Initialize linear error term.

        Args:
            design_variables: Variables x_i.
            A_blocks: Coefficient matrices A_i (m, dim(x_i)).
            y: Measurement vector (m,).
            sqrt_information: Square-root information (m, m).
        """
        y = np.asarray(y, dtype=float).ravel()
        if len(A_blocks) != len(design_variables):
            raise ValueError(
                f"need one A block per design variable, got "
                f"{len(A_blocks)} blocks for {len(design_variables)} variables"
            )

        blocks = []
        for dv, A in zip(design_variables, A_blocks):
            A = np.atleast_2d(np.asarray(A, dtype=float))
            if A.shape != (y.shape[0], dv.minimal_dimensions):
                raise ValueError(
                    f"A block must have shape ({y.shape[0]}, "
                    f"{dv.minimal_dimensions}), got {A.shape}"
                )
            blocks.append(A)

        super().__init__(design_variables, y.shape[0], sqrt_information)
        self._A_blocks = blocks
        self._y = y

    def evaluate_error(self) -> np.ndarray:
        e = -self._y.copy()
        for dv, A in zip(self._design_variables, self._A_blocks):
            e += A @ dv.get_parameters()
        return e

    def evaluate_jacobians(self) -> list[np.ndarray]:
        return [A.copy() for A in self._A_blocks]
