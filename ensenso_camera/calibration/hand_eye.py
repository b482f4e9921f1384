"""
Hand-eye calibration with an Ensenso camera.

Setups:
=======

Moving (camera in hand):
    The camera is mounted on the robot flange. The calibration yields the
    camera pose relative to the hand and the pattern pose relative to the
    robot base.

Fixed (camera in workspace):
    The camera is static and the pattern is held by the robot. The
    calibration yields the camera pose relative to the robot base and the
    pattern pose relative to the hand.

Workflow:
=========

    calibrator = HandEyeCalibrator(camera)
    calibrator.reset()
    for robot_pose in poses:
        robot.move_to(robot_pose)
        calibrator.add_sample(robot_pose)
    result = calibrator.solve(moving=True)
    calibrator.save_result("hand_eye.yaml")

For every sample the camera records one calibration pattern observation.
Pattern observations live inside the SDK while the robot poses live here;
both lists must stay the same length and in the same order, which is why a
robot pose is only kept after its pattern was recorded successfully.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np
import yaml

from ..utils.logger import LoggerMixin
from .pose import Pose


@dataclass
class CalibrationResult:
    """
    Result of a hand-eye calibration.

    Attributes:
        camera_pose: Camera relative to the hand (moving) or to the robot
            base (fixed), in metres.
        pattern_pose: Pattern relative to the robot base (moving) or to the
            hand (fixed), in metres.
        iterations: Number of optimisation iterations the SDK needed.
        reprojection_error: Final reprojection error in pixels.
    """

    camera_pose: Pose
    pattern_pose: Pose
    iterations: int
    reprojection_error: float

    def to_dict(self) -> Dict[str, Any]:
        """Plain dictionary for YAML storage; poses as 4x4 matrices."""
        return {
            "camera_pose": self.camera_pose.to_list(),
            "pattern_pose": self.pattern_pose.to_list(),
            "iterations": int(self.iterations),
            "reprojection_error": float(self.reprojection_error),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CalibrationResult":
        return cls(
            camera_pose=Pose.from_matrix(np.array(data["camera_pose"])),
            pattern_pose=Pose.from_matrix(np.array(data["pattern_pose"])),
            iterations=int(data["iterations"]),
            reprojection_error=float(data["reprojection_error"]),
        )


def load_robot_poses(path: Union[str, Path]) -> List[Pose]:
    """
    Load robot poses from a YAML file.

    The file holds a list of 4x4 matrices in metres, either at top level or
    under a ``poses`` key.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the file doesn't contain a list of poses.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Robot pose file not found: {path}")

    with open(path, "r") as f:
        data = yaml.safe_load(f)

    if isinstance(data, dict):
        data = data.get("poses")
    if not isinstance(data, list):
        raise ValueError(f"Expected a list of 4x4 matrices in {path}")

    return [Pose.from_matrix(np.array(matrix, dtype=np.float64)) for matrix in data]


class HandEyeCalibrator(LoggerMixin):
    """Collect pattern observations with matching robot poses and solve."""

    def __init__(self, camera, min_samples: int = 5):
        """
        Args:
            camera: Connected ``Ensenso`` camera.
            min_samples: Minimum number of samples ``solve`` accepts.
        """
        if min_samples < 1:
            raise ValueError(f"min_samples must be positive, got {min_samples}")

        self.camera = camera
        self.min_samples = min_samples
        self.robot_poses: List[Pose] = []
        self.result: Optional[CalibrationResult] = None

    def __len__(self) -> int:
        return len(self.robot_poses)

    def reset(self) -> None:
        """Discard all stored patterns and robot poses."""
        self.camera.discard_calibration_patterns()
        self.robot_poses = []
        self.result = None

    def add_sample(self, robot_pose: Pose) -> int:
        """
        Record a pattern observation for the current robot pose.

        Args:
            robot_pose: Pose of the hand relative to the robot base, metres.

        Returns:
            Number of samples collected so far.
        """
        self.camera.record_calibration_pattern()
        self.robot_poses.append(robot_pose)
        self.logger.info(f"Recorded calibration sample {len(self.robot_poses)}")
        return len(self.robot_poses)

    def solve(
        self,
        moving: bool,
        camera_guess: Optional[Pose] = None,
        pattern_guess: Optional[Pose] = None,
        target: str = "",
    ) -> CalibrationResult:
        """
        Run the hand-eye calibration on the collected samples.

        Raises:
            ValueError: If fewer than ``min_samples`` samples were collected.
        """
        if len(self.robot_poses) < self.min_samples:
            raise ValueError(
                f"Need at least {self.min_samples} samples, "
                f"got {len(self.robot_poses)}"
            )

        self.result = self.camera.compute_calibration(
            self.robot_poses,
            moving,
            camera_guess=camera_guess,
            pattern_guess=pattern_guess,
            target=target,
        )
        return self.result

    def save_result(self, path: Union[str, Path]) -> None:
        """Write the last result to a YAML file."""
        if self.result is None:
            raise ValueError("No calibration result available, call solve() first")

        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.safe_dump(self.result.to_dict(), f, default_flow_style=None, sort_keys=False)

        self.logger.info(f"Saved calibration result to {path}")

    @staticmethod
    def load_result(path: Union[str, Path]) -> CalibrationResult:
        """Read a result written by ``save_result``."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Calibration result not found: {path}")

        with open(path, "r") as f:
            return CalibrationResult.from_dict(yaml.safe_load(f))
