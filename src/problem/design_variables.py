"""Design variables for nonlinear least-squares problems.

A design variable is a block of parameters that the optimizer is allowed
to change. Each variable has a minimal dimension (the size of the update
vector) and belongs to an integer group. The linear solver assigns it a
block index and a column base when the matrix structure is built.
"""

from abc import ABC, abstractmethod
from typing import Optional

import numpy as np


class DesignVariable(ABC):
    """Abstract base class for design variables.

    Subclasses define how the parameters are stored and how an update
    vector of size ``minimal_dimensions`` is applied to them.
    """

    def __init__(self, group_id: int = 0, name: Optional[str] = None):
        """Initialize design variable.

        Args:
            group_id: Group this variable belongs to.
            name: Optional label used in debug output.
        """
        self.group_id = int(group_id)
        self.name = name
        self._active = True
        self.block_index = -1
        self.column_base = -1

    @property
    @abstractmethod
    def minimal_dimensions(self) -> int:
        """Dimension of the update vector."""
        pass

    @abstractmethod
    def update(self, dx: np.ndarray) -> None:
        """Apply an update vector to the parameters (box-plus).

        Args:
            dx: Update vector (minimal_dimensions,).
        """
        pass

    @abstractmethod
    def get_parameters(self) -> np.ndarray:
        """Return a copy of the current parameters."""
        pass

    @abstractmethod
    def set_parameters(self, parameters: np.ndarray) -> None:
        """Overwrite the parameters with a copy of ``parameters``."""
        pass

    def is_active(self) -> bool:
        """Whether the optimizer estimates this variable."""
        return self._active

    def set_active(self, active: bool) -> None:
        """Activate or deactivate the variable."""
        self._active = bool(active)

    def _check_update(self, dx: np.ndarray) -> np.ndarray:
        dx = np.asarray(dx, dtype=float).ravel()
        if dx.shape != (self.minimal_dimensions,):
            raise ValueError(
                f"dx must have shape ({self.minimal_dimensions},), "
                f"got {dx.shape}"
            )
        return dx

    def __repr__(self) -> str:
        """String representation."""
        label = f"{self.name}, " if self.name else ""
        return (
            f"{type(self).__name__}({label}group={self.group_id}, "
            f"dim={self.minimal_dimensions}, active={self._active})"
        )


class EuclideanDesignVariable(DesignVariable):
    """Vector-valued design variable with additive updates."""

    def __init__(
        self,
        value: np.ndarray,
        group_id: int = 0,
        name: Optional[str] = None,
    ):
        """Initialize Euclidean design variable.

        Args:
            value: Initial value (n,).
            group_id: Group this variable belongs to.
            name: Optional label.
        """
        super().__init__(group_id, name)
        self._value = np.array(value, dtype=float).ravel()
        if self._value.size == 0:
            raise ValueError("value must not be empty")

    @property
    def minimal_dimensions(self) -> int:
        return self._value.shape[0]

    @property
    def value(self) -> np.ndarray:
        """Current value (copy)."""
        return self._value.copy()

    def update(self, dx: np.ndarray) -> None:
        self._value = self._value + self._check_update(dx)

    def get_parameters(self) -> np.ndarray:
        return self._value.copy()

    def set_parameters(self, parameters: np.ndarray) -> None:
        parameters = np.array(parameters, dtype=float).ravel()
        if parameters.shape != self._value.shape:
            raise ValueError(
                f"parameters must have shape {self._value.shape}, "
                f"got {parameters.shape}"
            )
        self._value = parameters


class ScalarDesignVariable(EuclideanDesignVariable):
    """Single scalar design variable."""

    def __init__(
        self,
        value: float,
        group_id: int = 0,
        name: Optional[str] = None,
    ):
        super().__init__(np.array([value], dtype=float), group_id, name)

    @property
    def scalar(self) -> float:
        """Current value as float."""
        return float(self._value[0])
