#!/usr/bin/env python3
"""
Interactive hand-eye calibration.

Reads a list of robot poses (4x4 matrices in metres), asks the operator to
move the robot to each of them, records a calibration pattern per pose and
solves the hand-eye calibration.
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from ensenso_camera.calibration import HandEyeCalibrator, load_robot_poses
from ensenso_camera.sensors import Ensenso
from ensenso_camera.tree import NxError
from ensenso_camera.utils import get_nested, load_config, setup_logger_from_config
from ensenso_camera.utils.logger import ProgressLogger


def main():
    parser = argparse.ArgumentParser(description="Ensenso hand-eye calibration")
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to YAML config (default: configs/default.yaml)",
    )
    parser.add_argument(
        "--poses",
        type=str,
        required=True,
        help="YAML file with robot poses (list of 4x4 matrices, metres)",
    )
    parser.add_argument(
        "--output",
        type=str,
        default="outputs/hand_eye.yaml",
        help="Where to write the calibration result",
    )
    parser.add_argument(
        "--fixed",
        action="store_true",
        help="Camera is fixed in the workspace (default from config)",
    )
    parser.add_argument(
        "--skip-failed",
        action="store_true",
        help="Continue when no pattern is found at a pose",
    )

    args = parser.parse_args()

    config = load_config(args.config)
    logger = setup_logger_from_config(config)

    moving = False if args.fixed else get_nested(config, "calibration.moving", True)
    target = get_nested(config, "calibration.target", "")
    min_samples = get_nested(config, "calibration.min_samples", 5)

    poses = load_robot_poses(args.poses)
    logger.info(f"Loaded {len(poses)} robot poses from {args.poses}")

    with Ensenso.from_config(config) as camera:
        calibrator = HandEyeCalibrator(camera, min_samples=min_samples)
        calibrator.reset()

        with ProgressLogger(len(poses), logger, "Collecting samples") as progress:
            for i, pose in enumerate(poses):
                input(f"Move the robot to pose {i + 1}/{len(poses)} and press Enter...")
                try:
                    calibrator.add_sample(pose)
                except NxError as e:
                    if not args.skip_failed:
                        raise
                    logger.warning(f"Skipping pose {i + 1}: {e}")
                progress.update()

        result = calibrator.solve(moving, target=target)
        calibrator.save_result(args.output)

    print(f"Camera pose:  {result.camera_pose}")
    print(f"Pattern pose: {result.pattern_pose}")
    print(f"Iterations: {result.iterations}, "
          f"reprojection error: {result.reprojection_error:.4f}")

    return 0


if __name__ == "__main__":
    exit(main())
