"""Error terms of the 2D laser range finder calibration problem.

Robot poses T_i = (x_i, y_i, theta_i) are linked by odometry; at every
pose the sensor, mounted at the unknown calibration Theta = (x_s, y_s,
theta_s) in the robot frame, measures range and bearing to landmarks at
known positions.

Sensor pose in the world frame:
    p_s     = p_i + R(theta_i) [x_s, y_s]
    theta_w = theta_i + theta_s

Observation model for landmark l:
    d       = l - p_s
    range   = ||d||
    bearing = atan2(d_y, d_x) - theta_w
"""

from typing import Optional

import numpy as np

from ..problem.error_terms import ErrorTerm
from .design_variables import Pose2DesignVariable, normalize_angle, rotation_2d


def relative_motion(pose_from: np.ndarray, pose_to: np.ndarray) -> np.ndarray:
    """Motion from ``pose_from`` to ``pose_to`` in the frame of ``pose_from``.

    Returns:
        [dx, dy, dtheta] with dtheta wrapped to [-pi, pi).
    """
    dp = rotation_2d(pose_from[2]).T @ (pose_to[:2] - pose_from[:2])
    return np.array([dp[0], dp[1], normalize_angle(pose_to[2] - pose_from[2])])


def predict_observation(
    pose: np.ndarray,
    calibration: np.ndarray,
    landmark: np.ndarray,
) -> np.ndarray:
    """Predicted [range, bearing] of a landmark.

    Args:
        pose: Robot pose [x, y, theta].
        calibration: Sensor pose in the robot frame [x_s, y_s, theta_s].
        landmark: Landmark position [x, y].
    """
    p_s = pose[:2] + rotation_2d(pose[2]) @ calibration[:2]
    d = np.asarray(landmark, dtype=float) - p_s
    bearing = normalize_angle(np.arctan2(d[1], d[0]) - pose[2] - calibration[2])
    return np.array([np.hypot(d[0], d[1]), bearing])


class MotionErrorTerm(ErrorTerm):
    """Odometry error between two consecutive poses.

    Residual:
        e = relative_motion(T_i, T_j) - u,  heading component wrapped
    """

    def __init__(
        self,
        pose_from: Pose2DesignVariable,
        pose_to: Pose2DesignVariable,
        odometry: np.ndarray,
        sqrt_information: Optional[np.ndarray] = None,
    ):
        """Initialize motion error term.

        Args:
            pose_from: Pose at time i.
            pose_to: Pose at time j.
            odometry: Measured motion [dx, dy, dtheta] in the frame of T_i.
            sqrt_information: Square-root information (3, 3).
        """
        odometry = np.asarray(odometry, dtype=float).ravel()
        if odometry.shape != (3,):
            raise ValueError(f"odometry must have shape (3,), got {odometry.shape}")
        super().__init__([pose_from, pose_to], 3, sqrt_information)
        self._odometry = odometry

    @property
    def odometry(self) -> np.ndarray:
        return self._odometry.copy()

    def evaluate_error(self) -> np.ndarray:
        pose_from, pose_to = self._design_variables
        e = relative_motion(pose_from.get_parameters(), pose_to.get_parameters())
        e -= self._odometry
        e[2] = normalize_angle(e[2])
        return e


class ObservationErrorTerm(ErrorTerm):
    """Range / bearing observation of a known landmark.

    Residual:
        e = predict_observation(T_i, Theta, l) - z,  bearing wrapped
    """

    def __init__(
        self,
        pose: Pose2DesignVariable,
        calibration: Pose2DesignVariable,
        landmark: np.ndarray,
        measurement: np.ndarray,
        sqrt_information: Optional[np.ndarray] = None,
    ):
        """Initialize observation error term.

        Args:
            pose: Robot pose at measurement time.
            calibration: Sensor mounting pose.
            landmark: Known landmark position [x, y].
            measurement: Measured [range, bearing].
            sqrt_information: Square-root information (2, 2).
        """
        landmark = np.asarray(landmark, dtype=float).ravel()
        measurement = np.asarray(measurement, dtype=float).ravel()
        if landmark.shape != (2,):
            raise ValueError(f"landmark must have shape (2,), got {landmark.shape}")
        if measurement.shape != (2,):
            raise ValueError(
                f"measurement must have shape (2,), got {measurement.shape}"
            )
        super().__init__([pose, calibration], 2, sqrt_information)
        self._landmark = landmark
        self._measurement = measurement

    @property
    def landmark(self) -> np.ndarray:
        return self._landmark.copy()

    @property
    def measurement(self) -> np.ndarray:
        return self._measurement.copy()

    def evaluate_error(self) -> np.ndarray:
        pose, calibration = self._design_variables
        e = predict_observation(
            pose.get_parameters(), calibration.get_parameters(), self._landmark
        )
        e -= self._measurement
        e[1] = normalize_angle(e[1])
        return e
