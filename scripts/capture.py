#!/usr/bin/env python3
"""Capture an intensity image and a point cloud from an Ensenso camera."""

import argparse
import sys
from pathlib import Path

import cv2
import numpy as np

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from ensenso_camera.sensors import Ensenso
from ensenso_camera.utils import (
    get_nested,
    load_config,
    save_point_cloud,
    setup_logger_from_config,
)


def main():
    parser = argparse.ArgumentParser(description="Ensenso capture")
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to YAML config (default: configs/default.yaml)",
    )
    parser.add_argument(
        "--serial",
        type=str,
        default=None,
        help="Serial number of the stereo camera",
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default="outputs/capture",
        help="Output directory",
    )
    parser.add_argument(
        "--roi",
        type=int,
        nargs=4,
        metavar=("X", "Y", "WIDTH", "HEIGHT"),
        default=None,
        help="Region of interest for the point cloud",
    )
    parser.add_argument(
        "--registered",
        action="store_true",
        help="Render the point cloud from the monocular camera's view",
    )
    parser.add_argument(
        "--save-parameters",
        action="store_true",
        help="Also save the active camera parameters as JSON",
    )
    parser.add_argument(
        "--ply",
        action="store_true",
        help="Also save the point cloud as a colored PLY file (needs open3d)",
    )

    args = parser.parse_args()

    overrides = {}
    if args.serial is not None:
        overrides["camera"] = {"serial": args.serial}
    config = load_config(args.config, overrides)
    logger = setup_logger_from_config(config)

    roi = args.roi or get_nested(config, "capture.roi")
    registered = args.registered or get_nested(config, "capture.registered", False)

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    with Ensenso.from_config(config) as camera:
        serial = camera.serial_number()

        if registered and not camera.has_monocular:
            logger.error("A registered point cloud needs a monocular camera")
            return 1

        # One capture for all cameras, then compute everything from it.
        if not camera.retrieve():
            logger.error("Capture timed out")
            return 1

        image = camera.load_intensity(capture=False)
        image_path = output_dir / f"{serial}_intensity.png"
        cv2.imwrite(str(image_path), image)
        logger.info(f"Saved intensity image {image.shape} to {image_path}")

        if registered:
            cloud = camera.load_registered_point_cloud(roi=roi, capture=False)
        else:
            cloud = camera.load_point_cloud(roi=roi, capture=False)

        cloud_path = output_dir / f"{serial}_cloud.npy"
        np.save(cloud_path, cloud)
        valid = np.count_nonzero(~np.isnan(cloud[:, :, 2]))
        logger.info(f"Saved point cloud {cloud.shape} ({valid} valid points) to {cloud_path}")

        if args.ply:
            ply_path = output_dir / f"{serial}_cloud.ply"
            # Registered clouds and the rectified left image share the pixel grid.
            colors = image if registered or not camera.has_monocular else None
            count = save_point_cloud(ply_path, cloud, colors)
            logger.info(f"Saved {count} points to {ply_path}")

        if args.save_parameters:
            parameters_path = output_dir / f"{serial}_parameters.json"
            camera.save_parameters(parameters_path)
            logger.info(f"Saved camera parameters to {parameters_path}")

    return 0


if __name__ == "__main__":
    exit(main())
