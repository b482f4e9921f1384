#!/usr/bin/env python3
"""Define or clear the workspace frame of an Ensenso camera."""

import argparse
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from ensenso_camera.sensors import Ensenso
from ensenso_camera.utils import get_nested, load_config, setup_logger_from_config


def main():
    parser = argparse.ArgumentParser(description="Ensenso workspace calibration")
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to YAML config (default: configs/default.yaml)",
    )
    parser.add_argument(
        "--frame",
        type=str,
        default="",
        help="Name of the workspace frame",
    )
    parser.add_argument(
        "--samples",
        type=int,
        default=None,
        help="Number of pattern observations (default from config)",
    )
    parser.add_argument(
        "--clear",
        action="store_true",
        help="Remove the workspace calibration instead",
    )
    parser.add_argument(
        "--no-store",
        action="store_true",
        help="Don't write the result to the camera EEPROM",
    )

    args = parser.parse_args()

    config = load_config(args.config)
    logger = setup_logger_from_config(config)

    samples = args.samples or get_nested(config, "calibration.samples", 10)
    store = not args.no_store and get_nested(config, "calibration.store", True)

    with Ensenso.from_config(config) as camera:
        if args.clear:
            camera.clear_workspace_calibration(store=store)
            logger.info("Workspace calibration cleared")
            return 0

        # Pattern pose relative to the camera lens, not a previous workspace.
        camera.clear_workspace_calibration(store=False)
        pattern_pose = camera.detect_calibration_pattern(samples)
        logger.info(f"Pattern pose: {pattern_pose}")

        camera.set_workspace_calibration(pattern_pose, frame_id=args.frame, store=store)
        print(f"Workspace frame: {camera.workspace_calibration_frame()}")
        print(f"Camera link: {camera.workspace_calibration()}")

    return 0


if __name__ == "__main__":
    exit(main())
