"""
Camera Intrinsic Parameters Module.

The camera intrinsic matrix K maps 3D points in the camera frame to pixels:

    K = | fx   0  cx |
        |  0  fy  cy |
        |  0   0   1 |

Projection (pinhole model):

    u = fx * X / Z + cx
    v = fy * Y / Z + cy

Inverse projection (given depth Z):

    X = (u - cx) * Z / fx
    Y = (v - cy) * Z / fy

Ensenso cameras:
================
NxLib stores the camera matrix of each sensor in its calibration subtree,
column-major, i.e. ``Camera[col][row]``. For the stereo camera the matrix of
the rectified left image lives under ``Calibration/Dynamic/Stereo/Left``;
a monocular camera keeps it directly under ``Calibration``.
"""

from dataclasses import dataclass
from typing import Tuple, Union

import numpy as np


@dataclass
class CameraIntrinsics:
    """
    Camera intrinsic parameters.

    Attributes:
        fx: Focal length in x direction (pixels).
        fy: Focal length in y direction (pixels).
        cx: Principal point x coordinate (pixels).
        cy: Principal point y coordinate (pixels).
        width: Image width in pixels.
        height: Image height in pixels.

    Example:
        >>> intrinsics = CameraIntrinsics(fx=1100.0, fy=1100.0, cx=640.0, cy=512.0,
        ...                                width=1280, height=1024)
        >>> K = intrinsics.K
    """

    fx: float
    fy: float
    cx: float
    cy: float
    width: int
    height: int

    @property
    def K(self) -> np.ndarray:
        """Camera intrinsic matrix (3x3)."""
        return self.get_K_matrix()

    def get_K_matrix(self) -> np.ndarray:
        """
        Get the 3x3 camera intrinsic (calibration) matrix.

        Returns:
            np.ndarray: 3x3 intrinsic matrix K with dtype float64.
        """
        return np.array([
            [self.fx, 0, self.cx],
            [0, self.fy, self.cy],
            [0, 0, 1]
        ], dtype=np.float64)

    def get_K_inverse(self) -> np.ndarray:
        """
        Get the inverse of the intrinsic matrix.

            K^(-1) = | 1/fx    0   -cx/fx |
                     |   0   1/fy  -cy/fy |
                     |   0     0      1   |
        """
        return np.array([
            [1/self.fx, 0, -self.cx/self.fx],
            [0, 1/self.fy, -self.cy/self.fy],
            [0, 0, 1]
        ], dtype=np.float64)

    def get_fov(self) -> Tuple[float, float]:
        """
        Calculate the camera field of view.

        Returns:
            Tuple[float, float]: (horizontal_fov, vertical_fov) in radians.
        """
        horizontal_fov = 2 * np.arctan(self.width / (2 * self.fx))
        vertical_fov = 2 * np.arctan(self.height / (2 * self.fy))
        return horizontal_fov, vertical_fov

    @classmethod
    def from_matrix(
        cls,
        K: np.ndarray,
        width: int,
        height: int,
    ) -> "CameraIntrinsics":
        """
        Create intrinsics from a 3x3 intrinsic matrix.

        Args:
            K: 3x3 intrinsic matrix (row-major, OpenCV convention).
            width: Image width in pixels.
            height: Image height in pixels.

        Returns:
            CameraIntrinsics: Instance with extracted parameters.
        """
        K = np.asarray(K, dtype=np.float64)
        if K.shape != (3, 3):
            raise ValueError(f"K must be 3x3, got {K.shape}")

        return cls(
            fx=float(K[0, 0]),
            fy=float(K[1, 1]),
            cx=float(K[0, 2]),
            cy=float(K[1, 2]),
            width=int(width),
            height=int(height),
        )

    def project_point(self, point_3d: np.ndarray) -> np.ndarray:
        """
        Project 3D point(s) in camera frame to 2D pixel coordinates.

        Args:
            point_3d: 3D point (3,) or points (N, 3) with positive Z.

        Returns:
            np.ndarray: 2D pixel coordinates (2,) or (N, 2).
        """
        point_3d = np.atleast_2d(point_3d)

        x = point_3d[:, 0] / point_3d[:, 2]
        y = point_3d[:, 1] / point_3d[:, 2]

        u = self.fx * x + self.cx
        v = self.fy * y + self.cy

        return np.stack([u, v], axis=1).squeeze()

    def unproject_point(
        self,
        point_2d: np.ndarray,
        depth: Union[float, np.ndarray],
    ) -> np.ndarray:
        """
        Back-project 2D pixel(s) to 3D using depth.

        Args:
            point_2d: 2D pixel coordinate (2,) or coordinates (N, 2).
            depth: Depth value(s), in the unit of the desired output.

        Returns:
            np.ndarray: 3D point(s) (3,) or (N, 3) in camera coordinates.
        """
        point_2d = np.atleast_2d(point_2d)
        depth = np.atleast_1d(depth)

        x = (point_2d[:, 0] - self.cx) * depth / self.fx
        y = (point_2d[:, 1] - self.cy) * depth / self.fy

        return np.stack([x, y, depth], axis=1).squeeze()

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"CameraIntrinsics(fx={self.fx:.2f}, fy={self.fy:.2f}, "
            f"cx={self.cx:.2f}, cy={self.cy:.2f}, "
            f"width={self.width}, height={self.height})"
        )
