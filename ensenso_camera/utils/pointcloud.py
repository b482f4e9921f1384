"""Point cloud helpers for organised Ensenso point maps."""

from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np


def organized_to_points(
    cloud: np.ndarray,
    image: Optional[np.ndarray] = None,
) -> Tuple[np.ndarray, Optional[np.ndarray]]:
    """
    Flatten an organised point cloud and drop pixels without depth.

    Args:
        cloud: (H, W, 3) points, NaN where there is no depth.
        image: Optional (H, W) or (H, W, 3) BGR image aligned with the cloud,
            e.g. from ``load_intensity`` for a registered cloud.

    Returns:
        Tuple of (N, 3) points and (N, 3) RGB colors in [0, 1], or None
        when no image was given.
    """
    cloud = np.asarray(cloud)
    if cloud.ndim != 3 or cloud.shape[2] != 3:
        raise ValueError(f"Expected an (H, W, 3) point cloud, got {cloud.shape}")

    valid = ~np.isnan(cloud).any(axis=2)
    points = cloud[valid].astype(np.float64)

    if image is None:
        return points, None

    image = np.asarray(image)
    if image.shape[:2] != cloud.shape[:2]:
        raise ValueError(
            f"Image size {image.shape[:2]} doesn't match point cloud size {cloud.shape[:2]}"
        )

    if image.ndim == 2:
        colors = np.repeat(image[valid][:, None], 3, axis=1)
    else:
        colors = image[valid][:, ::-1]

    scale = 255.0 if image.dtype == np.uint8 else float(max(image.max(), 1))
    return points, colors.astype(np.float64) / scale


def save_point_cloud(
    path: Union[str, Path],
    cloud: np.ndarray,
    image: Optional[np.ndarray] = None,
) -> int:
    """
    Write an organised point cloud to a PLY/PCD file with Open3D.

    Returns:
        Number of points written.
    """
    try:
        import open3d as o3d
    except ImportError:
        raise ImportError("Open3D is required. Install with: pip install open3d")

    points, colors = organized_to_points(cloud, image)

    pcd = o3d.geometry.PointCloud()
    pcd.points = o3d.utility.Vector3dVector(points)
    if colors is not None:
        pcd.colors = o3d.utility.Vector3dVector(colors)

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if not o3d.io.write_point_cloud(str(path), pcd):
        raise IOError(f"Failed to write point cloud to {path}")

    return len(points)
