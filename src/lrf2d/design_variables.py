"""Planar pose design variable."""

from typing import Optional

import numpy as np

from ..problem.design_variables import EuclideanDesignVariable


def normalize_angle(angle):
    """Wrap an angle (or array of angles) to [-pi, pi)."""
    return (np.asarray(angle) + np.pi) % (2.0 * np.pi) - np.pi


def rotation_2d(theta: float) -> np.ndarray:
    """Planar rotation matrix (2, 2)."""
    c, s = np.cos(theta), np.sin(theta)
    return np.array([[c, -s], [s, c]])


class Pose2DesignVariable(EuclideanDesignVariable):
    """Planar pose (x, y, theta) with the heading kept in [-pi, pi).

    Used both for the robot poses and for the sensor mounting pose
    (the calibration parameters).
    """

    def __init__(
        self,
        pose: np.ndarray,
        group_id: int = 0,
        name: Optional[str] = None,
    ):
        """Initialize pose variable.

        Args:
            pose: Initial pose [x, y, theta].
            group_id: Group this variable belongs to.
            name: Optional label.
        """
        pose = np.array(pose, dtype=float).ravel()
        if pose.shape != (3,):
            raise ValueError(f"pose must have shape (3,), got {pose.shape}")
        pose[2] = normalize_angle(pose[2])
        super().__init__(pose, group_id, name)

    @property
    def position(self) -> np.ndarray:
        """Position [x, y]."""
        return self._value[:2].copy()

    @property
    def heading(self) -> float:
        """Heading theta [rad]."""
        return float(self._value[2])

    def update(self, dx: np.ndarray) -> None:
        value = self._value + self._check_update(dx)
        value[2] = normalize_angle(value[2])
        self._value = value

    def set_parameters(self, parameters: np.ndarray) -> None:
        super().set_parameters(parameters)
        self._value[2] = normalize_angle(self._value[2])
