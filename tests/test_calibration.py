"""
Tests for calibration types.

Test Coverage:
- Pose: matrix round trips, inverse, composition, unit scaling
- Axis-angle conversion as used by NxLib transformation nodes
- CameraIntrinsics: K matrix, projection and back-projection
"""

import numpy as np
import pytest


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def rotation_90_z():
    """90-degree rotation around Z axis."""
    return np.array([
        [0, -1, 0],
        [1, 0, 0],
        [0, 0, 1],
    ], dtype=float)


@pytest.fixture
def typical_pose(rotation_90_z):
    """Camera 0.5 m in front of the flange, rotated around Z."""
    from ensenso_camera.calibration.pose import Pose

    return Pose(R=rotation_90_z, t=np.array([0.1, -0.05, 0.5]))


@pytest.fixture
def simple_intrinsics():
    """Simple camera intrinsics for testing."""
    from ensenso_camera.calibration.intrinsics import CameraIntrinsics

    return CameraIntrinsics(
        fx=100.0, fy=100.0,
        cx=50.0, cy=50.0,
        width=100, height=100,
    )


# =============================================================================
# Test Pose
# =============================================================================

class TestPose:
    """Tests for Pose class."""

    def test_default_is_identity(self):
        """Test default pose has no rotation or translation."""
        from ensenso_camera.calibration.pose import Pose

        pose = Pose()

        assert np.allclose(pose.get_transform_matrix(), np.eye(4))
        assert Pose.identity().is_close(pose)

    def test_invalid_shapes_raise(self):
        """Test validation of R and t shapes."""
        from ensenso_camera.calibration.pose import Pose

        with pytest.raises(ValueError):
            Pose(R=np.eye(2))
        with pytest.raises(ValueError):
            Pose(t=np.zeros(4))

    def test_matrix_round_trip(self, typical_pose):
        """Test 4x4 and 3x4 matrices give back the same pose."""
        from ensenso_camera.calibration.pose import Pose

        T = typical_pose.get_transform_matrix()

        assert Pose.from_matrix(T).is_close(typical_pose)
        assert Pose.from_matrix(T[:3, :]).is_close(typical_pose)

    def test_from_matrix_rejects_other_shapes(self):
        """Test from_matrix only accepts 4x4 and 3x4."""
        from ensenso_camera.calibration.pose import Pose

        with pytest.raises(ValueError):
            Pose.from_matrix(np.eye(3))

    def test_inverse_composes_to_identity(self, typical_pose):
        """Test T @ T^-1 = I."""
        from ensenso_camera.calibration.pose import Pose

        result = typical_pose @ typical_pose.inverse()

        assert result.is_close(Pose.identity())

    def test_compose_applies_right_operand_first(self, rotation_90_z):
        """Test (A @ B)(p) == A(B(p))."""
        from ensenso_camera.calibration.pose import Pose

        a = Pose(R=rotation_90_z, t=np.array([1.0, 0.0, 0.0]))
        b = Pose(t=np.array([0.0, 0.0, 2.0]))
        point = np.array([1.0, 2.0, 3.0])

        expected = a.transform_points(b.transform_points(point))

        assert np.allclose((a @ b).transform_points(point), expected)

    def test_transform_points_keeps_shape(self, typical_pose):
        """Test single points stay 1-D and batches stay 2-D."""
        single = typical_pose.transform_points(np.zeros(3))
        batch = typical_pose.transform_points(np.zeros((5, 3)))

        assert single.shape == (3,)
        assert batch.shape == (5, 3)
        assert np.allclose(single, typical_pose.t)

    def test_scaled_only_touches_translation(self, typical_pose):
        """Test unit conversion leaves the rotation untouched."""
        scaled = typical_pose.scaled(1000.0)

        assert np.allclose(scaled.R, typical_pose.R)
        assert np.allclose(scaled.t, typical_pose.t * 1000.0)
        # The original is not modified.
        assert np.allclose(typical_pose.t, [0.1, -0.05, 0.5])

    def test_scaling_commutes_with_inverse(self, typical_pose):
        """Test converting units before or after inverting gives the same pose."""
        a = typical_pose.scaled(1000.0).inverse().scaled(0.001)
        b = typical_pose.inverse()

        assert a.is_close(b)


class TestAxisAngle:
    """Tests for the axis-angle representation used by NxLib."""

    def test_from_axis_angle_z(self, rotation_90_z):
        """Test 90 degrees around Z."""
        from ensenso_camera.calibration.pose import Pose

        pose = Pose.from_axis_angle([0, 0, 1], np.pi / 2)

        assert np.allclose(pose.R, rotation_90_z, atol=1e-12)

    def test_axis_is_normalised(self):
        """Test a non-unit axis gives the same rotation."""
        from ensenso_camera.calibration.pose import Pose

        a = Pose.from_axis_angle([0, 0, 5], 0.3)
        b = Pose.from_axis_angle([0, 0, 1], 0.3)

        assert a.is_close(b)

    def test_round_trip(self):
        """Test to_axis_angle inverts from_axis_angle."""
        from ensenso_camera.calibration.pose import Pose

        axis = np.array([1.0, 2.0, 2.0]) / 3.0
        pose = Pose.from_axis_angle(axis, 1.2)

        result_axis, result_angle = pose.to_axis_angle()

        assert result_angle == pytest.approx(1.2)
        assert np.allclose(result_axis, axis)

    def test_identity_has_unit_axis(self):
        """Test the identity rotation still reports a valid unit axis."""
        from ensenso_camera.calibration.pose import Pose

        axis, angle = Pose.identity().to_axis_angle()

        assert angle == 0.0
        assert np.linalg.norm(axis) == pytest.approx(1.0)

    def test_zero_axis_is_identity(self):
        """Test a zero axis doesn't produce NaNs."""
        from ensenso_camera.calibration.pose import Pose

        pose = Pose.from_axis_angle([0, 0, 0], 1.0)

        assert np.allclose(pose.R, np.eye(3))

    def test_to_dict_layout(self, typical_pose):
        """Test dictionary layout matches NxLib transformation nodes."""
        data = typical_pose.to_dict()

        assert data["Translation"] == pytest.approx([0.1, -0.05, 0.5])
        assert data["Rotation"]["Angle"] == pytest.approx(np.pi / 2)
        assert data["Rotation"]["Axis"] == pytest.approx([0.0, 0.0, 1.0])


# =============================================================================
# Test CameraIntrinsics
# =============================================================================

class TestCameraIntrinsics:
    """Tests for CameraIntrinsics class."""

    def test_intrinsic_matrix_construction(self, simple_intrinsics):
        """Test intrinsic matrix K has correct structure."""
        K = simple_intrinsics.K

        assert K.shape == (3, 3)
        assert K[0, 0] == 100.0
        assert K[1, 1] == 100.0
        assert K[0, 2] == 50.0
        assert K[1, 2] == 50.0
        assert K[2, 2] == 1.0
        assert K[0, 1] == 0.0

    def test_intrinsic_matrix_inverse(self, simple_intrinsics):
        """Test K @ K^-1 = I."""
        identity = simple_intrinsics.K @ simple_intrinsics.get_K_inverse()

        assert np.allclose(identity, np.eye(3), atol=1e-10)

    def test_from_matrix(self):
        """Test construction from a 3x3 matrix."""
        from ensenso_camera.calibration.intrinsics import CameraIntrinsics

        K = np.array([[1100.0, 0, 640.0], [0, 1090.0, 512.0], [0, 0, 1]])
        intrinsics = CameraIntrinsics.from_matrix(K, 1280, 1024)

        assert intrinsics.fx == 1100.0
        assert intrinsics.fy == 1090.0
        assert intrinsics.cx == 640.0
        assert intrinsics.cy == 512.0
        assert (intrinsics.width, intrinsics.height) == (1280, 1024)

    def test_from_matrix_rejects_wrong_shape(self):
        """Test a 3x4 matrix is rejected."""
        from ensenso_camera.calibration.intrinsics import CameraIntrinsics

        with pytest.raises(ValueError):
            CameraIntrinsics.from_matrix(np.zeros((3, 4)), 10, 10)

    def test_project_principal_point(self, simple_intrinsics):
        """Test a point on the optical axis projects to the principal point."""
        pixel = simple_intrinsics.project_point(np.array([0.0, 0.0, 2.0]))

        assert np.allclose(pixel, [50.0, 50.0])

    def test_project_unproject_consistency(self, simple_intrinsics):
        """Test back-projection inverts projection."""
        point = np.array([0.2, -0.1, 1.5])

        pixel = simple_intrinsics.project_point(point)
        result = simple_intrinsics.unproject_point(pixel, 1.5)

        assert np.allclose(result, point)

    def test_fov(self, simple_intrinsics):
        """Test FOV for width == 2 * fx is 2 * atan(0.5)."""
        fov_h, fov_v = simple_intrinsics.get_fov()

        assert fov_h == pytest.approx(2 * np.arctan(0.5))
        assert fov_v == pytest.approx(2 * np.arctan(0.5))
