"""
Calibration types for Ensenso cameras.

Classes:
    Pose: Rigid transformation in metres.
    CameraIntrinsics: Pinhole camera parameters.
    CalibrationResult: Output of a hand-eye calibration.
    HandEyeCalibrator: Sample collection and solve workflow.

Example Usage:
    >>> from ensenso_camera.calibration import HandEyeCalibrator
    >>> calibrator = HandEyeCalibrator(camera)
    >>> calibrator.reset()
    >>> calibrator.add_sample(robot_pose)
    >>> result = calibrator.solve(moving=True)
"""

from .pose import Pose
from .intrinsics import CameraIntrinsics
from .hand_eye import CalibrationResult, HandEyeCalibrator, load_robot_poses

__all__ = [
    "Pose",
    "CameraIntrinsics",
    "CalibrationResult",
    "HandEyeCalibrator",
    "load_robot_poses",
]
