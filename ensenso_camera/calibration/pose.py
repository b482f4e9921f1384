"""
Rigid body poses.

Mathematical Background:
========================

A pose consists of a rotation R (3x3 orthonormal matrix) and translation t
(3x1 vector). For a point P in frame A, its coordinates in frame B are:

    P_B = R * P_A + t

Written as a 4x4 homogeneous matrix:

    T = | R   t |
        | 0   1 |

Inverse:

    T^(-1) = | R^T  -R^T * t |
             |  0       1    |

NxLib Transformations:
======================

The Ensenso SDK stores a pose as a tree node with a translation in
millimetres and an axis-angle rotation:

    {
        "Translation": [x, y, z],
        "Rotation": {"Angle": a, "Axis": [ax, ay, az]}
    }

All poses in this package are expressed in metres. Conversion to and from
millimetres happens with ``Pose.scaled`` at the SDK boundary, which only
ever touches the translation.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

import cv2
import numpy as np


@dataclass(eq=False)
class Pose:
    """
    Rigid transformation (rotation and translation).

    Attributes:
        R: Rotation matrix (3x3).
        t: Translation vector (3,), in metres unless stated otherwise.

    Example:
        >>> pose = Pose(R=np.eye(3), t=np.array([0.1, 0.0, 0.5]))
        >>> pose.inverse().t
        array([-0.1, -0. , -0.5])
    """

    R: np.ndarray = field(default_factory=lambda: np.eye(3))
    t: np.ndarray = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self):
        """Validate inputs after initialization."""
        self.R = np.asarray(self.R, dtype=np.float64)
        self.t = np.asarray(self.t, dtype=np.float64).flatten()

        if self.R.shape != (3, 3):
            raise ValueError(f"R must be 3x3, got {self.R.shape}")
        if self.t.shape != (3,):
            raise ValueError(f"t must be (3,), got {self.t.shape}")

    @classmethod
    def identity(cls) -> "Pose":
        """Pose without rotation or translation."""
        return cls()

    @classmethod
    def from_matrix(cls, T: np.ndarray) -> "Pose":
        """
        Create from 4x4 or 3x4 transformation matrix.

        Args:
            T: 4x4 homogeneous or 3x4 transformation matrix.

        Returns:
            Pose: Instance with extracted R and t.
        """
        T = np.asarray(T, dtype=np.float64)
        if T.shape == (4, 4):
            return cls(R=T[:3, :3], t=T[:3, 3])
        elif T.shape == (3, 4):
            return cls(R=T[:, :3], t=T[:, 3])
        else:
            raise ValueError(f"Expected 4x4 or 3x4 matrix, got {T.shape}")

    @classmethod
    def from_axis_angle(
        cls,
        axis: np.ndarray,
        angle: float,
        t: np.ndarray = None,
    ) -> "Pose":
        """
        Create from an axis-angle rotation, as stored by NxLib.

        Args:
            axis: Rotation axis (3,). Does not need to be normalised.
            angle: Rotation angle in radians.
            t: Optional translation (3,).

        Returns:
            Pose: Instance with the corresponding rotation matrix.
        """
        axis = np.asarray(axis, dtype=np.float64).flatten()
        norm = np.linalg.norm(axis)
        if norm == 0.0 or angle == 0.0:
            R = np.eye(3)
        else:
            rvec = axis / norm * float(angle)
            R, _ = cv2.Rodrigues(rvec.reshape(3, 1))
        return cls(R=R, t=np.zeros(3) if t is None else t)

    def to_axis_angle(self) -> Tuple[np.ndarray, float]:
        """
        Get the rotation as a unit axis and an angle in radians.

        For the identity rotation the axis is arbitrary; (1, 0, 0) is
        returned so the SDK always receives a valid unit vector.
        """
        rvec, _ = cv2.Rodrigues(self.R)
        rvec = rvec.flatten()
        angle = float(np.linalg.norm(rvec))
        if angle < 1e-12:
            return np.array([1.0, 0.0, 0.0]), 0.0
        return rvec / angle, angle

    def get_transform_matrix(self) -> np.ndarray:
        """
        Get the 4x4 homogeneous transformation matrix.

        Returns:
            np.ndarray: 4x4 transformation matrix.
        """
        T = np.eye(4, dtype=np.float64)
        T[:3, :3] = self.R
        T[:3, 3] = self.t
        return T

    def inverse(self) -> "Pose":
        """
        Get the inverse transformation: [R^T, -R^T @ t].

        Returns:
            Pose: New instance representing the inverse transform.
        """
        R_inv = self.R.T
        t_inv = -R_inv @ self.t
        return Pose(R=R_inv, t=t_inv)

    def compose(self, other: "Pose") -> "Pose":
        """
        Chain two transformations, ``self * other``.

        The result applies ``other`` first, then ``self``. This matches the
        usual notation ``T_a_c = T_a_b * T_b_c``.

        Args:
            other: The transformation applied first.

        Returns:
            Pose: Combined transformation.
        """
        R_combined = self.R @ other.R
        t_combined = self.R @ other.t + self.t
        return Pose(R=R_combined, t=t_combined)

    def __matmul__(self, other: "Pose") -> "Pose":
        return self.compose(other)

    def transform_points(self, points: np.ndarray) -> np.ndarray:
        """
        Transform 3D points.

        Args:
            points: 3D points (N, 3) or (3,).

        Returns:
            np.ndarray: Transformed points with the same shape.
        """
        points = np.asarray(points, dtype=np.float64)
        single = points.ndim == 1
        transformed = np.atleast_2d(points) @ self.R.T + self.t
        return transformed[0] if single else transformed

    def scaled(self, factor: float) -> "Pose":
        """
        Scale the translation, leaving the rotation untouched.

        Used for the metre <-> millimetre conversion at the SDK boundary.
        """
        return Pose(R=self.R.copy(), t=self.t * factor)

    def is_close(self, other: "Pose", atol: float = 1e-9) -> bool:
        """Check whether two poses are numerically equal."""
        return bool(
            np.allclose(self.R, other.R, atol=atol)
            and np.allclose(self.t, other.t, atol=atol)
        )

    def to_list(self) -> List[List[float]]:
        """4x4 matrix as nested lists, for YAML/JSON storage."""
        return self.get_transform_matrix().tolist()

    def to_dict(self) -> Dict[str, List[float]]:
        """Translation and axis-angle rotation, as stored by NxLib."""
        axis, angle = self.to_axis_angle()
        return {
            "Translation": self.t.tolist(),
            "Rotation": {"Angle": angle, "Axis": axis.tolist()},
        }

    def __repr__(self) -> str:
        """String representation."""
        axis, angle = self.to_axis_angle()
        return (
            f"Pose(t={np.round(self.t, 6).tolist()}, "
            f"angle={angle:.6f}, axis={np.round(axis, 6).tolist()})"
        )
