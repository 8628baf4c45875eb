"""Synthetic data for the 2D laser range finder calibration problem.

Usage:
    calibration = Pose2DesignVariable(np.zeros(3), group_id=CALIBRATION_GROUP_ID)
    poses = simulate_trajectory(20, v=1.0, omega=0.3)
    batch = build_batch(poses, calibration, true_calibration, landmarks, rng=rng)
"""

from typing import Optional, Sequence

import numpy as np

from ..problem.optimization_problem import OptimizationProblem
from .design_variables import Pose2DesignVariable, normalize_angle
from .error_terms import MotionErrorTerm, ObservationErrorTerm, predict_observation, relative_motion

POSE_GROUP_ID = 0
CALIBRATION_GROUP_ID = 1

DEFAULT_LANDMARKS = np.array([
    [10.0, 0.0],
    [10.0, 10.0],
    [0.0, 10.0],
    [-10.0, 10.0],
    [-10.0, 0.0],
    [-10.0, -10.0],
    [0.0, -10.0],
    [10.0, -10.0],
])


def simulate_trajectory(
    num_poses: int,
    v: float = 1.0,
    omega: float = 0.0,
    dt: float = 0.1,
    start: Optional[np.ndarray] = None,
) -> np.ndarray:
    """Integrate a unicycle with constant velocities.

    Args:
        num_poses: Number of poses, including the start.
        v: Forward velocity [m/s].
        omega: Turn rate [rad/s].
        dt: Time between poses [s].
        start: Initial pose [x, y, theta]. Origin if None.

    Returns:
        Poses (num_poses, 3).
    """
    if num_poses < 1:
        raise ValueError(f"num_poses must be positive, got {num_poses}")

    poses = np.zeros((num_poses, 3))
    if start is not None:
        start = np.asarray(start, dtype=float).ravel()
        if start.shape != (3,):
            raise ValueError(f"start must have shape (3,), got {start.shape}")
        poses[0] = start

    for i in range(1, num_poses):
        x, y, theta = poses[i - 1]
        if abs(omega) < 1e-12:
            dx = v * dt * np.cos(theta)
            dy = v * dt * np.sin(theta)
        else:
            # Exact arc integration
            r = v / omega
            dx = r * (np.sin(theta + omega * dt) - np.sin(theta))
            dy = r * (np.cos(theta) - np.cos(theta + omega * dt))
        poses[i] = [x + dx, y + dy, normalize_angle(theta + omega * dt)]

    return poses


def build_batch(
    true_poses: np.ndarray,
    calibration: Pose2DesignVariable,
    true_calibration: np.ndarray,
    landmarks: Optional[np.ndarray] = None,
    odometry_noise: Sequence[float] = (0.01, 0.01, 0.005),
    observation_noise: Sequence[float] = (0.02, 0.005),
    rng: Optional[np.random.Generator] = None,
    name: Optional[str] = None,
) -> OptimizationProblem:
    """Build a measurement batch along a trajectory segment.

    Pose variables start at the odometry dead-reckoned from the true first
    pose. Measurements are noise-free when ``rng`` is None; the noise
    standard deviations still set the weights.

    Args:
        true_poses: True robot poses (N, 3).
        calibration: Shared calibration variable (group 1).
        true_calibration: True sensor mounting pose [x_s, y_s, theta_s].
        landmarks: Landmark positions (L, 2). Defaults to a ring of 8.
        odometry_noise: Standard deviations of [dx, dy, dtheta].
        observation_noise: Standard deviations of [range, bearing].
        rng: Random generator for measurement noise.
        name: Optional batch label.

    Returns:
        OptimizationProblem with N pose variables, the calibration variable,
        N - 1 motion terms and N * L observation terms.
    """
    true_poses = np.atleast_2d(np.asarray(true_poses, dtype=float))
    if true_poses.ndim != 2 or true_poses.shape[1] != 3:
        raise ValueError(f"true_poses must have shape (N, 3), got {true_poses.shape}")
    true_calibration = np.asarray(true_calibration, dtype=float).ravel()
    if true_calibration.shape != (3,):
        raise ValueError(
            f"true_calibration must have shape (3,), got {true_calibration.shape}"
        )
    if landmarks is None:
        landmarks = DEFAULT_LANDMARKS
    landmarks = np.atleast_2d(np.asarray(landmarks, dtype=float))
    if landmarks.shape[1] != 2:
        raise ValueError(f"landmarks must have shape (L, 2), got {landmarks.shape}")

    odometry_noise = np.asarray(odometry_noise, dtype=float)
    observation_noise = np.asarray(observation_noise, dtype=float)
    if odometry_noise.shape != (3,) or np.any(odometry_noise <= 0):
        raise ValueError("odometry_noise must hold 3 positive standard deviations")
    if observation_noise.shape != (2,) or np.any(observation_noise <= 0):
        raise ValueError("observation_noise must hold 2 positive standard deviations")

    sqrt_info_odometry = np.diag(1.0 / odometry_noise)
    sqrt_info_observation = np.diag(1.0 / observation_noise)

    batch = OptimizationProblem(name=name)
    batch.add_design_variable(calibration, CALIBRATION_GROUP_ID)

    # Odometry measurements, dead-reckoned initial guesses
    odometry = []
    for i in range(1, len(true_poses)):
        u = relative_motion(true_poses[i - 1], true_poses[i])
        if rng is not None:
            u = u + rng.normal(0.0, odometry_noise)
        odometry.append(u)

    initial = [true_poses[0].copy()]
    for u in odometry:
        prev = initial[-1]
        c, s = np.cos(prev[2]), np.sin(prev[2])
        initial.append(np.array([
            prev[0] + c * u[0] - s * u[1],
            prev[1] + s * u[0] + c * u[1],
            normalize_angle(prev[2] + u[2]),
        ]))

    pose_vars = []
    for i, pose in enumerate(initial):
        dv = Pose2DesignVariable(pose, POSE_GROUP_ID, name=f"pose_{i}")
        batch.add_design_variable(dv)
        pose_vars.append(dv)

    for i, u in enumerate(odometry):
        batch.add_error_term(
            MotionErrorTerm(pose_vars[i], pose_vars[i + 1], u, sqrt_info_odometry)
        )

    for pose_var, true_pose in zip(pose_vars, true_poses):
        for landmark in landmarks:
            z = predict_observation(true_pose, true_calibration, landmark)
            if rng is not None:
                z = z + rng.normal(0.0, observation_noise)
                z[1] = normalize_angle(z[1])
            batch.add_error_term(
                ObservationErrorTerm(
                    pose_var, calibration, landmark, z, sqrt_info_observation
                )
            )

    return batch
