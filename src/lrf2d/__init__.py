"""2D laser range finder calibration example.

A differential-drive robot carries a range/bearing sensor at an unknown
mounting pose. Odometry links consecutive robot poses; the sensor
observes landmarks at known positions. The mounting pose is the
marginalized group (id 1), the robot poses form group 0.

Usage:
    from incremental_calibration.lrf2d import (
        CALIBRATION_GROUP_ID, Pose2DesignVariable, build_batch,
        simulate_trajectory,
    )
"""

from .design_variables import (
    Pose2DesignVariable,
    normalize_angle,
    rotation_2d,
)

from .error_terms import (
    MotionErrorTerm,
    ObservationErrorTerm,
    predict_observation,
    relative_motion,
)

from .simulation import (
    CALIBRATION_GROUP_ID,
    DEFAULT_LANDMARKS,
    POSE_GROUP_ID,
    build_batch,
    simulate_trajectory,
)

__all__ = [
    # Design variables
    "Pose2DesignVariable",
    "normalize_angle",
    "rotation_2d",
    # Error terms
    "MotionErrorTerm",
    "ObservationErrorTerm",
    "predict_observation",
    "relative_motion",
    # Simulation
    "CALIBRATION_GROUP_ID",
    "DEFAULT_LANDMARKS",
    "POSE_GROUP_ID",
    "build_batch",
    "simulate_trajectory",
]
