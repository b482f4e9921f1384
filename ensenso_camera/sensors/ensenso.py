"""
Ensenso stereo camera adapter.

The Ensenso SDK (NxLib) does the heavy lifting: stereo matching, point map
computation, pattern detection and hand-eye optimisation all run inside the
library. This class drives it: it opens the stereo camera and an optional
monocular camera linked to it, coordinates captures between the two,
reads images and point clouds, and runs the calibration commands.

Coordinate conventions:
    - All distances returned or accepted by this class are in metres.
    - Point clouds are organised (H, W, 3) arrays in the left stereo camera
      frame, or in the workspace frame when a workspace calibration is set.
    - Regions of interest are (x, y, width, height) tuples in pixels.

Example:
    >>> with Ensenso() as camera:
    ...     cloud = camera.load_point_cloud()
    ...     image = camera.load_intensity()
"""

from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple, Union

import numpy as np

from ..calibration.hand_eye import CalibrationResult
from ..calibration.intrinsics import CameraIntrinsics
from ..calibration.pose import Pose
from ..tree import names
from ..tree.backend import NxCommand, NxLibBackend, TreeBackend
from ..utils.logger import LoggerMixin

Roi = Optional[Tuple[int, int, int, int]]


class CameraNotFoundError(RuntimeError):
    """No matching camera could be opened."""


class MonocularCameraError(RuntimeError):
    """An operation needs the monocular camera, but none is connected."""


class CaptureError(RuntimeError):
    """A camera did not deliver an image within the timeout."""


class Ensenso(LoggerMixin):
    """Ensenso stereo camera with an optional linked monocular camera."""

    DEFAULT_TIMEOUT_MS = 1500

    def __init__(
        self,
        serial: str = "",
        connect_monocular: bool = True,
        backend: Optional[TreeBackend] = None,
        timeout: int = DEFAULT_TIMEOUT_MS,
    ):
        """
        Open a camera.

        Args:
            serial: Serial number of the stereo camera. When empty, the first
                available stereo camera is opened.
            connect_monocular: Also open the monocular camera linked to the
                stereo camera, if there is one.
            backend: Tree backend; defaults to the ``nxlib`` SDK binding.
            timeout: Capture timeout in milliseconds.

        Raises:
            CameraNotFoundError: If the stereo camera can't be found.
        """
        self.backend = backend if backend is not None else NxLibBackend()
        self.timeout = int(timeout)
        self.monocular: Optional[Any] = None

        self.backend.initialize()
        self._closed = False

        try:
            self.root = self.backend.root()
            self.camera = self._open_stereo(serial)
            self.logger.info(f"Connected to stereo camera {self.serial_number()}")

            if connect_monocular:
                self.monocular = self.backend.open_camera_by_link(self.serial_number())
                if self.monocular is None:
                    self.logger.warning("No monocular camera linked to the stereo camera")
                else:
                    self.logger.info(
                        f"Connected to monocular camera {self.monocular_serial_number()}"
                    )
        except Exception:
            self.backend.finalize()
            self._closed = True
            raise

    def _open_stereo(self, serial: str) -> Any:
        if not serial:
            camera = self.backend.open_camera_by_type(names.VAL_STEREO)
            if camera is None:
                raise CameraNotFoundError(
                    "Please connect an Ensenso stereo camera to your computer."
                )
            return camera

        camera = self.backend.open_camera_by_serial(serial)
        if camera is None:
            raise CameraNotFoundError(f"Could not find an Ensenso camera with serial {serial}")
        return camera

    @classmethod
    def from_config(
        cls,
        config: Dict[str, Any],
        backend: Optional[TreeBackend] = None,
    ) -> "Ensenso":
        """
        Open a camera as described by the ``camera`` config section.

        Parameter files listed in the config are loaded right away.
        """
        section = config.get("camera") or {}
        camera = cls(
            serial=section.get("serial") or "",
            connect_monocular=section.get("connect_monocular", True),
            backend=backend,
            timeout=section.get("timeout_ms", cls.DEFAULT_TIMEOUT_MS),
        )

        try:
            if section.get("parameters_file"):
                camera.load_parameters(section["parameters_file"])

            for key, loader in (
                ("monocular_parameters_file", camera.load_monocular_parameters),
                ("monocular_ueye_parameters_file", camera.load_monocular_ueye_parameters),
            ):
                if not section.get(key):
                    continue
                if camera.has_monocular:
                    loader(section[key])
                else:
                    camera.logger.warning(f"Ignoring {key}: no monocular camera connected")
        except Exception:
            camera.close()
            raise

        return camera

    def close(self) -> None:
        """Close all cameras and release the SDK. Safe to call twice."""
        if self._closed:
            return

        try:
            self.backend.close_cameras()
        finally:
            self.backend.finalize()
            self._closed = True
            self.logger.info("Closed Ensenso camera")

    def __enter__(self) -> "Ensenso":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def native(self) -> Any:
        """Tree item of the stereo camera."""
        return self.camera

    def native_monocular(self) -> Optional[Any]:
        """Tree item of the monocular camera, or None."""
        return self.monocular

    @property
    def has_monocular(self) -> bool:
        return self.monocular is not None

    def serial_number(self) -> str:
        return self.backend.get(self.camera[names.ITM_SERIAL_NUMBER], str)

    def monocular_serial_number(self) -> str:
        """Serial number of the monocular camera, or "" if there is none."""
        if self.monocular is None:
            return ""
        return self.backend.get(self.monocular[names.ITM_SERIAL_NUMBER], str)

    def _require_monocular(self, action: str) -> Any:
        if self.monocular is None:
            raise MonocularCameraError(f"No monocular camera found. Can not {action}.")
        return self.monocular

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------

    def load_parameters(self, parameters_file: Union[str, Path]) -> None:
        """Load stereo camera parameters from a JSON file."""
        self.backend.set_json_from_file(self.camera[names.ITM_PARAMETERS], parameters_file)
        self.logger.info(f"Loaded camera parameters from {parameters_file}")

    def save_parameters(self, parameters_file: Union[str, Path]) -> None:
        """Write the current stereo camera parameters to a JSON file."""
        path = Path(parameters_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            self.backend.as_json(self.camera[names.ITM_PARAMETERS], True), encoding="utf-8"
        )

    def load_monocular_parameters(self, parameters_file: Union[str, Path]) -> None:
        """Load monocular camera parameters from a JSON file."""
        monocular = self._require_monocular("load monocular camera parameters")
        self.backend.set_json_from_file(monocular[names.ITM_PARAMETERS], parameters_file)
        self.logger.info(f"Loaded monocular parameters from {parameters_file}")

    def load_monocular_ueye_parameters(self, parameters_file: Union[str, Path]) -> None:
        """Load a uEye parameter set (INI file) into the monocular camera."""
        self._require_monocular("load monocular camera uEye parameters")

        path = Path(parameters_file)
        if not path.exists():
            raise FileNotFoundError(f"Parameter file not found: {path}")

        command = self.backend.command(names.CMD_LOAD_UEYE_PARAMETER_SET)
        self.backend.set(command.parameters()[names.ITM_FILENAME], str(path))
        self.backend.execute(command)

    def _capture_parameters(self) -> Any:
        return self.camera[names.ITM_PARAMETERS][names.ITM_CAPTURE]

    def flex_view(self) -> int:
        """
        Number of FlexView images, or -1 if FlexView is disabled.

        A disabled FlexView is stored as ``false``, which can't be read as
        an integer.
        """
        return self.backend.get_optional(
            self._capture_parameters()[names.ITM_FLEX_VIEW], int, -1
        )

    def set_flex_view(self, value: int) -> None:
        self.backend.set(self._capture_parameters()[names.ITM_FLEX_VIEW], int(value))

    def set_front_light(self, state: bool) -> None:
        self.backend.set(self._capture_parameters()[names.ITM_FRONT_LIGHT], bool(state))

    def set_projector(self, state: bool) -> None:
        self.backend.set(self._capture_parameters()[names.ITM_PROJECTOR], bool(state))

    # ------------------------------------------------------------------
    # Capture
    # ------------------------------------------------------------------

    def _select_cameras(self, command: NxCommand, stereo: bool, monocular: bool) -> None:
        cameras = command.parameters()[names.ITM_CAMERAS]
        index = 0
        if stereo:
            self.backend.set(cameras[index], self.serial_number())
            index += 1
        if monocular:
            self.backend.set(cameras[index], self.monocular_serial_number())

    def _check_flag(self, command: NxCommand, flag: str, stereo: bool, monocular: bool) -> bool:
        selected = []
        if stereo:
            selected.append(self.serial_number())
        if monocular:
            selected.append(self.monocular_serial_number())

        for serial in selected:
            if not self.backend.get(command.result()[serial][flag], bool):
                self.logger.warning(f"{command.name}: camera {serial} not {flag.lower()}")
                return False
        return True

    def trigger(self, stereo: bool = True, monocular: bool = True) -> bool:
        """
        Send a software trigger without waiting for the images.

        Args:
            stereo: Trigger the stereo camera.
            monocular: Trigger the monocular camera, if connected.

        Returns:
            True if every selected camera was triggered.
        """
        monocular = monocular and self.has_monocular
        if not stereo and not monocular:
            return True

        command = self.backend.command(names.CMD_TRIGGER)
        self._select_cameras(command, stereo, monocular)
        self.backend.execute(command)

        return self._check_flag(command, names.ITM_TRIGGERED, stereo, monocular)

    def retrieve(
        self,
        trigger: bool = True,
        timeout: Optional[int] = None,
        stereo: bool = True,
        monocular: bool = True,
    ) -> bool:
        """
        Retrieve new images from the cameras.

        Args:
            trigger: Trigger the cameras first (``Capture``). Otherwise wait
                for images of an earlier trigger (``Retrieve``).
            timeout: Timeout in milliseconds, defaults to ``self.timeout``.
            stereo: Retrieve from the stereo camera.
            monocular: Retrieve from the monocular camera, if connected.

        Returns:
            True if every selected camera delivered an image.
        """
        monocular = monocular and self.has_monocular
        if not stereo and not monocular:
            return True

        command = self.backend.command(names.CMD_CAPTURE if trigger else names.CMD_RETRIEVE)
        self.backend.set(
            command.parameters()[names.ITM_TIMEOUT],
            int(self.timeout if timeout is None else timeout),
        )
        self._select_cameras(command, stereo, monocular)
        self.backend.execute(command)

        return self._check_flag(command, names.ITM_RETRIEVED, stereo, monocular)

    def _capture(self, stereo: bool = True, monocular: bool = True) -> None:
        if not self.retrieve(True, self.timeout, stereo, monocular):
            raise CaptureError(f"Capture timed out after {self.timeout} ms")

    def rectify_images(self) -> None:
        command = self.backend.command(names.CMD_RECTIFY_IMAGES)
        self.backend.set(command.parameters()[names.ITM_CAMERAS][0], self.serial_number())
        self.backend.execute(command)

    # ------------------------------------------------------------------
    # Images and point clouds
    # ------------------------------------------------------------------

    def _intensity_item(self) -> Any:
        if self.monocular is not None:
            return self.monocular[names.ITM_IMAGES][names.ITM_RAW]
        return self.camera[names.ITM_IMAGES][names.ITM_RECTIFIED][names.ITM_LEFT]

    def intensity_size(self) -> Tuple[int, int]:
        """(width, height) of the images returned by ``load_intensity``."""
        return self.backend.binary_size(self._intensity_item())

    def point_cloud_size(self) -> Tuple[int, int]:
        """(width, height) of the point map."""
        return self.backend.binary_size(self.camera[names.ITM_IMAGES][names.ITM_POINT_MAP])

    def load_intensity(self, capture: bool = True) -> np.ndarray:
        """
        Get an intensity image.

        The monocular camera image is used when a monocular camera is
        connected, the rectified left stereo image otherwise.

        Args:
            capture: Capture a new image first.
        """
        if capture:
            self._capture(stereo=not self.has_monocular, monocular=self.has_monocular)

        if not self.has_monocular:
            self.rectify_images()

        return self.backend.get_image(self._intensity_item())

    def _compute_disparity_map(self) -> None:
        command = self.backend.command(names.CMD_COMPUTE_DISPARITY_MAP)
        self.backend.set(command.parameters()[names.ITM_CAMERAS], self.serial_number())
        self.backend.execute(command)

    def load_point_cloud(self, roi: Roi = None, capture: bool = True) -> np.ndarray:
        """
        Compute a point cloud.

        Args:
            roi: Region of interest (x, y, width, height) for the disparity
                map; None for the full image.
            capture: Capture new images first.

        Returns:
            np.ndarray: (H, W, 3) float32 points in metres, NaN where there
            is no depth.
        """
        if capture:
            self._capture()

        self.set_region_of_interest(roi)
        self._compute_disparity_map()

        command = self.backend.command(names.CMD_COMPUTE_POINT_MAP)
        self.backend.set(command.parameters()[names.ITM_CAMERAS], self.serial_number())
        self.backend.execute(command)

        return self.backend.get_point_map(self.camera[names.ITM_IMAGES][names.ITM_POINT_MAP])

    def load_registered_point_cloud(self, roi: Roi = None, capture: bool = True) -> np.ndarray:
        """
        Compute a point cloud rendered from the monocular camera's view.

        Each pixel of the result matches the pixel of the monocular image.

        Raises:
            MonocularCameraError: If no monocular camera is connected.
        """
        self._require_monocular("render a registered point cloud")

        if capture:
            self._capture()

        self.set_region_of_interest(roi)
        self._compute_disparity_map()

        command = self.backend.command(names.CMD_RENDER_POINT_MAP)
        # Near clipping plane in millimetres.
        self.backend.set(command.parameters()[names.ITM_NEAR], 1)
        self.backend.set(command.parameters()[names.ITM_CAMERA], self.monocular_serial_number())
        # The OpenGL renderer produces broken point maps here.
        self.backend.set(
            self.root[names.ITM_PARAMETERS][names.ITM_RENDER_POINT_MAP][names.ITM_USE_OPEN_GL],
            False,
        )
        self.backend.execute(command)

        return self.backend.get_point_map(self.root[names.ITM_IMAGES][names.ITM_RENDER_POINT_MAP])

    def set_region_of_interest(self, roi: Roi) -> None:
        """
        Restrict the disparity map (and thereby the point cloud) to a region.

        Args:
            roi: (x, y, width, height) in pixels. None or an empty region
                disables the region of interest.
        """
        parameters = self.camera[names.ITM_PARAMETERS]
        use_aoi = parameters[names.ITM_CAPTURE][names.ITM_USE_DISPARITY_MAP_AREA_OF_INTEREST]
        area = parameters[names.ITM_DISPARITY_MAP][names.ITM_AREA_OF_INTEREST]

        if roi is not None:
            x, y, width, height = (int(v) for v in roi)
            if width < 0 or height < 0:
                raise ValueError(f"Region of interest must have a non-negative size: {roi}")

        if roi is None or width * height == 0:
            self.backend.set(use_aoi, False)
            if self.backend.exists(area):
                self.backend.erase(area)
            return

        self.backend.set(use_aoi, True)
        self.backend.set(area[names.ITM_LEFT_TOP][0], x)
        self.backend.set(area[names.ITM_LEFT_TOP][1], y)
        self.backend.set(area[names.ITM_RIGHT_BOTTOM][0], x + width)
        self.backend.set(area[names.ITM_RIGHT_BOTTOM][1], y + height)

    def intrinsics(self) -> CameraIntrinsics:
        """
        Intrinsics of the camera behind ``load_intensity``.

        The image size is read from the last captured image, so capture at
        least once before calling this.
        """
        if self.monocular is not None:
            matrix_item = self.monocular[names.ITM_CALIBRATION][names.ITM_CAMERA]
        else:
            matrix_item = (
                self.camera[names.ITM_CALIBRATION][names.ITM_DYNAMIC][names.ITM_STEREO]
                [names.ITM_LEFT][names.ITM_CAMERA]
            )

        K = self.backend.get_matrix(matrix_item, 3, 3)
        width, height = self.intensity_size()
        return CameraIntrinsics.from_matrix(K, width, height)

    # ------------------------------------------------------------------
    # Calibration patterns
    # ------------------------------------------------------------------

    def discard_calibration_patterns(self) -> None:
        """Discard all pattern observations stored in the SDK."""
        self.backend.execute(self.backend.command(names.CMD_DISCARD_PATTERNS))

    def _run_without_flex_view(self, action):
        flex_view = self.flex_view()
        if flex_view > 0:
            self.set_flex_view(0)
        try:
            return action()
        finally:
            if flex_view > 0:
                self.set_flex_view(flex_view)

    def record_calibration_pattern(self) -> None:
        """
        Capture an image lit by the front light and store the pattern in it.

        FlexView, projector and front light are restored afterwards.

        Raises:
            CaptureError: If the stereo camera did not deliver an image.
            NxError: If no pattern was found.
        """
        def record():
            self.set_projector(False)
            self.set_front_light(True)
            try:
                captured = self.retrieve(True, self.timeout, True, False)
            finally:
                self.set_front_light(False)
                self.set_projector(True)

            if not captured:
                raise CaptureError("Calibration pattern capture timed out")

            command = self.backend.command(names.CMD_COLLECT_PATTERN)
            self.backend.set(command.parameters()[names.ITM_CAMERAS], self.serial_number())
            self.backend.set(command.parameters()[names.ITM_DECODE_DATA], True)
            self.backend.execute(command)

        self._run_without_flex_view(record)

    def detect_calibration_pattern(self, samples: int, ignore_calibration: bool = False) -> Pose:
        """
        Estimate the pose of the calibration pattern.

        Args:
            samples: Number of pattern observations to average over.
            ignore_calibration: Pre-multiply the result with the workspace
                calibration, if one is set.

        Returns:
            Pose: Pattern pose in metres.
        """
        if samples < 1:
            raise ValueError(f"samples must be positive, got {samples}")

        self.discard_calibration_patterns()
        for _ in range(samples):
            self.record_calibration_pattern()

        # EstimatePatternPose fails with FlexView enabled.
        command = self._run_without_flex_view(
            lambda: self.backend.execute(self.backend.command(names.CMD_ESTIMATE_PATTERN_POSE))
        )

        pose = self.backend.get_pose(
            command.result()[names.ITM_PATTERNS][0][names.ITM_PATTERN_POSE]
        )

        if ignore_calibration:
            camera_pose = self.workspace_calibration()
            if camera_pose is not None:
                pose = camera_pose @ pose

        return pose

    # ------------------------------------------------------------------
    # Hand-eye and workspace calibration
    # ------------------------------------------------------------------

    def compute_calibration(
        self,
        robot_poses: Sequence[Pose],
        moving: bool,
        camera_guess: Optional[Pose] = None,
        pattern_guess: Optional[Pose] = None,
        target: str = "",
    ) -> CalibrationResult:
        """
        Hand-eye calibration from the stored patterns and matching robot poses.

        Args:
            robot_poses: Hand poses relative to the robot base, one per stored
                pattern, in recording order.
            moving: True if the camera is mounted on the robot hand, False if
                the camera is fixed.
            camera_guess: Initial guess of the camera relative to the hand
                (moving) or the robot base (fixed). Speeds up calibration.
            pattern_guess: Initial guess of the pattern relative to the robot
                base (moving) or the hand (fixed).
            target: Name of the target frame. The SDK defaults to "Hand" for
                a moving camera and "Workspace" for a fixed one.

        Returns:
            CalibrationResult: Camera pose, pattern pose, iterations and
            reprojection error.
        """
        if not robot_poses:
            raise ValueError("At least one robot pose is required")

        command = self.backend.command(names.CMD_CALIBRATE_HAND_EYE)
        parameters = command.parameters()

        if camera_guess is not None:
            self.backend.set_pose(parameters[names.ITM_LINK], camera_guess)
        if pattern_guess is not None:
            self.backend.set_pose(parameters[names.ITM_PATTERN_POSE], pattern_guess)

        self.backend.set(
            parameters[names.ITM_SETUP], names.VAL_MOVING if moving else names.VAL_FIXED
        )

        if target:
            self.backend.set(parameters[names.ITM_TARGET], target)

        for i, robot_pose in enumerate(robot_poses):
            self.backend.set_pose(parameters[names.ITM_TRANSFORMATIONS][i], robot_pose)

        self.backend.execute(command)

        # The camera link points from the target frame to the camera.
        result = CalibrationResult(
            camera_pose=self.backend.get_pose(self.camera[names.ITM_LINK]).inverse(),
            pattern_pose=self.backend.get_pose(command.result()[names.ITM_PATTERN_POSE]),
            iterations=self.backend.get(command.result()[names.ITM_ITERATIONS], int),
            reprojection_error=self.backend.get(
                command.result()[names.ITM_REPROJECTION_ERROR], float
            ),
        )

        self.logger.info(
            f"Hand-eye calibration finished after {result.iterations} iterations, "
            f"reprojection error {result.reprojection_error:.4f}"
        )
        return result

    def workspace_calibration_frame(self) -> str:
        """Name of the workspace frame, or "" if no workspace is calibrated."""
        return self.backend.get_optional(
            self.camera[names.ITM_LINK][names.ITM_TARGET], str, ""
        )

    def workspace_calibration(self) -> Optional[Pose]:
        """Camera link to the workspace frame in metres, or None if uncalibrated."""
        if not self.workspace_calibration_frame():
            return None
        return self.backend.get_pose(self.camera[names.ITM_LINK])

    def set_workspace_calibration(
        self,
        workspace: Pose,
        frame_id: str = "",
        defined_pose: Optional[Pose] = None,
        store: bool = True,
    ) -> None:
        """
        Define the workspace frame from a pattern pose.

        Args:
            workspace: Pattern pose relative to the camera, in metres.
            frame_id: Name of the workspace frame.
            defined_pose: Pose the pattern should have in the workspace
                frame; identity by default.
            store: Persist the calibration in the camera EEPROM.
        """
        command = self.backend.command(names.CMD_CALIBRATE_WORKSPACE)
        parameters = command.parameters()
        self.backend.set(parameters[names.ITM_CAMERAS][0], self.serial_number())
        self.backend.set_pose(parameters[names.ITM_PATTERN_POSE], workspace)

        if frame_id:
            self.backend.set(parameters[names.ITM_TARGET], frame_id)

        self.backend.set_pose(
            parameters[names.ITM_DEFINED_POSE],
            defined_pose if defined_pose is not None else Pose.identity(),
        )
        self.backend.execute(command)
        self.logger.info(f"Workspace calibration set (frame '{frame_id or 'Workspace'}')")

        if store:
            self.store_workspace_calibration()

    def clear_workspace_calibration(self, store: bool = True) -> None:
        """Remove the workspace calibration. Does nothing if there is none."""
        if not self.workspace_calibration_frame():
            return

        # CalibrateWorkspace without PatternPose and DefinedPose clears the workspace.
        command = self.backend.command(names.CMD_CALIBRATE_WORKSPACE)
        self.backend.set(command.parameters()[names.ITM_CAMERAS][0], self.serial_number())
        self.backend.set(command.parameters()[names.ITM_TARGET], "")
        self.backend.execute(command)

        self.backend.set(
            self.camera[names.ITM_LINK][names.ITM_TARGET], f"{self.serial_number()}_frame"
        )
        self.logger.info("Workspace calibration cleared")

        if store:
            self.store_workspace_calibration()

    def store_workspace_calibration(self) -> None:
        """Persist calibration and link in the camera EEPROM."""
        command = self.backend.command(names.CMD_STORE_CALIBRATION)
        parameters = command.parameters()
        self.backend.set(parameters[names.ITM_CAMERAS][0], self.serial_number())
        self.backend.set(parameters[names.ITM_CALIBRATION][0], True)
        self.backend.set(parameters[names.ITM_LINK][0], True)
        self.backend.execute(command)

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"Ensenso(monocular={self.has_monocular}, {state})"
