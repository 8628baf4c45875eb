"""Unit tests for the 2D laser range finder calibration example."""

import numpy as np
import pytest

from incremental_calibration.core import IncrementalEstimator
from incremental_calibration.lrf2d import (
    CALIBRATION_GROUP_ID,
    DEFAULT_LANDMARKS,
    MotionErrorTerm,
    ObservationErrorTerm,
    Pose2DesignVariable,
    build_batch,
    normalize_angle,
    predict_observation,
    relative_motion,
    simulate_trajectory,
)


TRUE_CALIBRATION = np.array([0.2, 0.1, 0.05])


@pytest.fixture
def calibration():
    """Calibration variable started away from the true mounting pose."""
    return Pose2DesignVariable([0.15, 0.05, 0.0], group_id=CALIBRATION_GROUP_ID, name="lrf")


# ============================================================================
# Tests for geometry helpers
# ============================================================================


class TestGeometry:
    """Tests for angle wrapping and measurement models."""

    def test_normalize_angle(self):
        """Test angles are wrapped to [-pi, pi)."""
        assert normalize_angle(1.5 * np.pi) == pytest.approx(-0.5 * np.pi)
        assert normalize_angle(-1.5 * np.pi) == pytest.approx(0.5 * np.pi)
        np.testing.assert_allclose(normalize_angle(np.array([0.1, 2 * np.pi + 0.1])), [0.1, 0.1])

    def test_pose_update_wraps(self):
        """Test heading stays wrapped after an update."""
        pose = Pose2DesignVariable([0.0, 0.0, 3.0])
        pose.update([1.0, 0.0, 0.5])
        assert pose.heading == pytest.approx(3.5 - 2 * np.pi)
        np.testing.assert_allclose(pose.position, [1.0, 0.0])

    def test_pose_shape(self):
        """Test pose with wrong shape raises ValueError."""
        with pytest.raises(ValueError, match="pose"):
            Pose2DesignVariable([0.0, 0.0])

    def test_predict_observation(self):
        """Test range and bearing from the robot origin."""
        z = predict_observation(np.zeros(3), np.zeros(3), [3.0, 4.0])
        np.testing.assert_allclose(z, [5.0, np.arctan2(4.0, 3.0)])

    def test_predict_observation_mounted(self):
        """Test sensor offset and rotation enter the prediction."""
        z = predict_observation(np.zeros(3), [1.0, 0.0, np.pi / 2], [1.0, 2.0])
        np.testing.assert_allclose(z, [2.0, 0.0], atol=1e-12)

    def test_relative_motion_round_trip(self):
        """Test composing the relative motion recovers the target pose."""
        poses = simulate_trajectory(5, v=1.0, omega=0.4)
        u = relative_motion(poses[0], poses[4])
        c, s = np.cos(poses[0, 2]), np.sin(poses[0, 2])
        end = poses[0, :2] + np.array([c * u[0] - s * u[1], s * u[0] + c * u[1]])
        np.testing.assert_allclose(end, poses[4, :2], atol=1e-12)
        assert u[2] == pytest.approx(4 * 0.1 * 0.4)


# ============================================================================
# Tests for simulation
# ============================================================================


class TestSimulation:
    """Tests for simulate_trajectory and build_batch."""

    def test_straight_trajectory(self):
        """Test zero turn rate drives straight."""
        poses = simulate_trajectory(11, v=2.0, omega=0.0, dt=0.1)
        np.testing.assert_allclose(poses[-1], [2.0, 0.0, 0.0], atol=1e-12)

    def test_arc_trajectory(self):
        """Test constant turn rate stays on a circle."""
        v, omega = 1.0, 0.5
        poses = simulate_trajectory(30, v=v, omega=omega)
        center = np.array([0.0, v / omega])
        radii = np.linalg.norm(poses[:, :2] - center, axis=1)
        np.testing.assert_allclose(radii, v / omega, atol=1e-10)

    def test_invalid_num_poses(self):
        """Test non-positive number of poses raises ValueError."""
        with pytest.raises(ValueError, match="num_poses"):
            simulate_trajectory(0)

    def test_batch_structure(self, calibration):
        """Test batch holds poses, calibration and all error terms."""
        poses = simulate_trajectory(6, omega=0.3)
        batch = build_batch(poses, calibration, TRUE_CALIBRATION)

        n_landmarks = len(DEFAULT_LANDMARKS)
        assert batch.num_design_variables == 7
        assert batch.get_design_variables(CALIBRATION_GROUP_ID) == [calibration]
        assert batch.num_error_terms == 5 + 6 * n_landmarks
        assert sum(isinstance(et, MotionErrorTerm) for et in batch.error_terms) == 5
        assert sum(isinstance(et, ObservationErrorTerm) for et in batch.error_terms) == 6 * n_landmarks

    def test_noise_free_batch_is_consistent(self):
        """Test the true calibration gives zero cost on noise-free data."""
        calibration = Pose2DesignVariable(TRUE_CALIBRATION, group_id=CALIBRATION_GROUP_ID)
        poses = simulate_trajectory(8, omega=0.3)
        batch = build_batch(poses, calibration, TRUE_CALIBRATION)
        assert batch.evaluate_cost() == pytest.approx(0.0, abs=1e-12)

    def test_noisy_batch(self, calibration, rng):
        """Test noisy measurements give a positive cost."""
        poses = simulate_trajectory(8, omega=0.3)
        batch = build_batch(poses, calibration, TRUE_CALIBRATION, rng=rng)
        assert batch.evaluate_cost() > 0.0

    def test_invalid_noise(self, calibration):
        """Test non-positive noise raises ValueError."""
        poses = simulate_trajectory(3)
        with pytest.raises(ValueError, match="observation_noise"):
            build_batch(poses, calibration, TRUE_CALIBRATION, observation_noise=(0.0, 0.1))


# ============================================================================
# Tests for online calibration
# ============================================================================


class TestOnlineCalibration:
    """End-to-end calibration with the incremental estimator."""

    def test_curved_batch_calibrates(self, calibration):
        """Test a turning batch makes the mounting pose fully observable."""
        estimator = IncrementalEstimator(CALIBRATION_GROUP_ID)
        poses = simulate_trajectory(10, v=1.0, omega=0.8)
        ret = estimator.add_batch(build_batch(poses, calibration, TRUE_CALIBRATION))

        assert ret.batch_accepted
        assert estimator.rank_theta == 3
        assert ret.j_final < 1e-8
        np.testing.assert_allclose(calibration.value, TRUE_CALIBRATION, atol=1e-4)

    def test_straight_then_curved(self, calibration):
        """Test straight motion leaves the offset unobservable until a turn."""
        estimator = IncrementalEstimator(CALIBRATION_GROUP_ID)

        straight = simulate_trajectory(10, v=1.0, omega=0.0)
        estimator.add_batch(build_batch(straight, calibration, TRUE_CALIBRATION))
        assert estimator.rank_theta < 3

        curved = simulate_trajectory(10, v=1.0, omega=0.8, start=straight[-1])
        ret = estimator.add_batch(build_batch(curved, calibration, TRUE_CALIBRATION))

        assert ret.batch_accepted
        assert estimator.rank_theta == 3
        assert estimator.num_batches == 2
        np.testing.assert_allclose(calibration.value, TRUE_CALIBRATION, atol=1e-4)
