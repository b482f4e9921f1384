"""
Typed access to the NxLib item tree.

NxLib exposes the whole camera system as a single JSON-like tree. Reading a
value means walking to a leaf and converting it, writing means the reverse,
and every action is a named command whose parameters and results are again
subtrees. This module wraps that protocol:

    backend = NxLibBackend()
    backend.initialize()
    camera = backend.open_camera_by_type(names.VAL_STEREO)
    flex_view = backend.get(camera["Parameters"]["Capture"]["FlexView"], int)

``TreeBackend`` holds all the plumbing and only needs a concrete SDK binding
for four things: initialising the library, the root item, creating commands
and the exception type the SDK raises. ``NxLibBackend`` binds it to the
``nxlib`` Python package.

Units: the SDK works in millimetres. ``get_pose``, ``set_pose`` and
``get_point_map`` convert to and from metres so callers never see
millimetres.
"""

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, List, Optional, Tuple, Type, Union

import cv2
import numpy as np

from ..calibration.pose import Pose
from ..utils.logger import LoggerMixin
from . import names


class NxError(RuntimeError):
    """
    An NxLib call failed.

    Attributes:
        path: Tree path of the item or name of the command that failed.
        error_code: SDK error code, if known.
        error_text: SDK error description.
    """

    def __init__(
        self,
        path: str,
        error_text: str,
        error_code: Optional[int] = None,
    ):
        self.path = path
        self.error_text = error_text
        self.error_code = error_code
        message = f"NxLib error at '{path}': {error_text}"
        if error_code is not None:
            message += f" (code {error_code})"
        super().__init__(message)


class NxCommand:
    """A named NxLib command together with its native SDK object."""

    def __init__(self, name: str, native: Any):
        self.name = name
        self.native = native

    def parameters(self) -> Any:
        """Parameter subtree of the command."""
        return self.native.parameters()

    def result(self) -> Any:
        """Result subtree of the command."""
        return self.native.result()

    def __repr__(self) -> str:
        return f"NxCommand({self.name!r})"


def item_path(item: Any) -> str:
    """Best-effort tree path of an item, for error messages."""
    return str(getattr(item, "path", item))


class TreeBackend(LoggerMixin, ABC):
    """SDK independent plumbing on top of an NxLib style item tree."""

    _readers = {
        bool: "as_bool",
        int: "as_int",
        float: "as_double",
        str: "as_string",
    }

    # ------------------------------------------------------------------
    # SDK binding
    # ------------------------------------------------------------------

    @property
    @abstractmethod
    def exception_type(self) -> Type[BaseException]:
        """Exception type raised by the SDK."""

    @abstractmethod
    def initialize(self) -> None:
        """Initialise the SDK."""

    @abstractmethod
    def finalize(self) -> None:
        """Release the SDK."""

    @abstractmethod
    def root(self) -> Any:
        """Root item of the tree."""

    @abstractmethod
    def _create_command(self, name: str) -> Any:
        """Create a native command object."""

    def describe_exception(self, exc: BaseException) -> Tuple[Optional[int], str]:
        """Extract (error code, error text) from an SDK exception."""
        return getattr(exc, "error_code", None), str(exc)

    def _wrap(self, exc: BaseException, path: str) -> NxError:
        code, text = self.describe_exception(exc)
        return NxError(path, text, code)

    # ------------------------------------------------------------------
    # Leaves
    # ------------------------------------------------------------------

    def get(self, item: Any, kind: type) -> Any:
        """
        Read a leaf value.

        Args:
            item: Tree item.
            kind: One of ``bool``, ``int``, ``float``, ``str``.

        Returns:
            The value converted to ``kind``.

        Raises:
            NxError: If the item does not exist or has another type.
        """
        if kind not in self._readers:
            raise TypeError(f"Unsupported item type: {kind!r}")

        try:
            return getattr(item, self._readers[kind])()
        except self.exception_type as e:
            raise self._wrap(e, item_path(item)) from e

    def get_optional(self, item: Any, kind: type, default: Any = None) -> Any:
        """Read a leaf value, returning ``default`` when it can't be read."""
        try:
            return self.get(item, kind)
        except NxError:
            return default

    def set(self, item: Any, value: Union[bool, int, float, str]) -> None:
        """
        Write a leaf value, choosing the SDK setter from the Python type.

        Raises:
            NxError: If the SDK rejects the value.
        """
        # bool is a subclass of int, so it has to be checked first.
        if isinstance(value, (bool, np.bool_)):
            setter, value = "set_bool", bool(value)
        elif isinstance(value, (int, np.integer)):
            setter, value = "set_int", int(value)
        elif isinstance(value, (float, np.floating)):
            setter, value = "set_double", float(value)
        elif isinstance(value, str):
            setter = "set_string"
        else:
            raise TypeError(f"Unsupported value type: {type(value).__name__}")

        try:
            getattr(item, setter)(value)
        except self.exception_type as e:
            raise self._wrap(e, item_path(item)) from e

    def exists(self, item: Any) -> bool:
        try:
            return bool(item.exists())
        except self.exception_type as e:
            raise self._wrap(e, item_path(item)) from e

    def erase(self, item: Any) -> None:
        try:
            item.erase()
        except self.exception_type as e:
            raise self._wrap(e, item_path(item)) from e

    def count(self, item: Any) -> int:
        try:
            return int(item.count())
        except self.exception_type as e:
            raise self._wrap(e, item_path(item)) from e

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def command(self, name: str) -> NxCommand:
        """Create a command; set its parameters, then ``execute`` it."""
        try:
            return NxCommand(name, self._create_command(name))
        except self.exception_type as e:
            raise self._wrap(e, name) from e

    def execute(self, command: NxCommand) -> NxCommand:
        """
        Execute a command and wait for it to finish.

        Returns:
            The command, so its result can be read directly.

        Raises:
            NxError: If the command failed.
        """
        self.logger.debug(f"Executing {command.name}")
        try:
            command.native.execute()
        except self.exception_type as e:
            raise self._wrap(e, command.name) from e
        return command

    # ------------------------------------------------------------------
    # JSON
    # ------------------------------------------------------------------

    def set_json(self, item: Any, value: Union[str, dict], only_writable: bool = True) -> None:
        """Write a JSON document (string or dict) into a subtree."""
        if not isinstance(value, str):
            value = json.dumps(value)
        try:
            item.set_json(value, only_writable)
        except self.exception_type as e:
            raise self._wrap(e, item_path(item)) from e

    def set_json_from_file(self, item: Any, path: Union[str, Path]) -> None:
        """
        Load a JSON file into a subtree, e.g. camera parameters.

        Raises:
            FileNotFoundError: If the file doesn't exist.
            NxError: If the SDK rejects the content.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Parameter file not found: {path}")

        self.set_json(item, path.read_text(encoding="utf-8"))

    def as_json(self, item: Any, pretty: bool = True) -> str:
        try:
            return item.as_json(pretty)
        except self.exception_type as e:
            raise self._wrap(e, item_path(item)) from e

    # ------------------------------------------------------------------
    # Conversions
    # ------------------------------------------------------------------

    def get_pose(self, item: Any) -> Pose:
        """
        Read a transformation node as a pose in metres.

        The node holds ``Translation`` in millimetres and ``Rotation`` as
        ``Angle`` (radians) and ``Axis``.
        """
        translation = [self.get(item[names.ITM_TRANSLATION][i], float) for i in range(3)]
        rotation = item[names.ITM_ROTATION]
        angle = self.get(rotation[names.ITM_ANGLE], float)
        axis = [self.get(rotation[names.ITM_AXIS][i], float) for i in range(3)]

        pose_mm = Pose.from_axis_angle(axis, angle, np.array(translation))
        return pose_mm.scaled(names.M_PER_MM)

    def set_pose(self, item: Any, pose: Pose) -> None:
        """Write a pose given in metres as a transformation node in millimetres."""
        pose_mm = pose.scaled(names.MM_PER_M)
        axis, angle = pose_mm.to_axis_angle()

        for i in range(3):
            self.set(item[names.ITM_TRANSLATION][i], float(pose_mm.t[i]))
        self.set(item[names.ITM_ROTATION][names.ITM_ANGLE], float(angle))
        for i in range(3):
            self.set(item[names.ITM_ROTATION][names.ITM_AXIS][i], float(axis[i]))

    def get_matrix(self, item: Any, rows: int, cols: int) -> np.ndarray:
        """Read a column-major matrix node (``item[col][row]``)."""
        matrix = np.zeros((rows, cols), dtype=np.float64)
        for col in range(cols):
            for row in range(rows):
                matrix[row, col] = self.get(item[col][row], float)
        return matrix

    def _binary(self, item: Any) -> np.ndarray:
        try:
            return np.asarray(item.get_binary_data())
        except self.exception_type as e:
            raise self._wrap(e, item_path(item)) from e

    def binary_size(self, item: Any) -> Tuple[int, int]:
        """(width, height) of a binary node."""
        try:
            info = item.get_binary_data_info()
        except self.exception_type as e:
            raise self._wrap(e, item_path(item)) from e
        return int(info[0]), int(info[1])

    def get_image(self, item: Any) -> np.ndarray:
        """
        Read an image node.

        Returns:
            np.ndarray: (H, W) for single channel images, (H, W, 3) in BGR
            order for color images.
        """
        image = self._binary(item)

        if image.ndim == 3 and image.shape[2] == 1:
            image = image[:, :, 0]
        elif image.ndim == 3 and image.shape[2] == 3:
            image = cv2.cvtColor(image, cv2.COLOR_RGB2BGR)

        return np.ascontiguousarray(image)

    def get_point_map(self, item: Any) -> np.ndarray:
        """
        Read a point map node as an organised point cloud in metres.

        Returns:
            np.ndarray: (H, W, 3) float32. Pixels without depth are NaN.
        """
        points = self._binary(item).astype(np.float32)

        if points.ndim != 3 or points.shape[2] != 3:
            raise ValueError(f"Expected an (H, W, 3) point map, got {points.shape}")

        return points * np.float32(names.M_PER_MM)

    # ------------------------------------------------------------------
    # Cameras
    # ------------------------------------------------------------------

    def cameras(self) -> List[Any]:
        """All camera items known to the SDK, opened or not."""
        by_serial = self.root()[names.ITM_CAMERAS][names.ITM_BY_SERIAL_NO]
        return [by_serial[i] for i in range(self.count(by_serial))]

    def _is_available(self, camera: Any) -> bool:
        return bool(
            self.get_optional(camera[names.ITM_STATUS][names.ITM_AVAILABLE], bool, False)
        )

    def open_camera(self, serial: str) -> None:
        """Execute ``Open`` for a single camera."""
        command = self.command(names.CMD_OPEN)
        self.set(command.parameters()[names.ITM_CAMERAS], serial)
        self.execute(command)
        self.logger.info(f"Opened camera {serial}")

    def close_cameras(self) -> None:
        """Execute ``Close`` for all open cameras."""
        self.execute(self.command(names.CMD_CLOSE))

    def open_camera_by_serial(self, serial: str) -> Optional[Any]:
        """
        Open the camera with the given serial number.

        Returns:
            The camera item, or None if the SDK doesn't know the serial.
        """
        camera = self.root()[names.ITM_CAMERAS][names.ITM_BY_SERIAL_NO][serial]
        if not self.exists(camera):
            return None

        self.open_camera(serial)
        return camera

    def open_camera_by_type(self, camera_type: str) -> Optional[Any]:
        """
        Open the first available camera of the given type (e.g. ``Stereo``).

        Returns:
            The camera item, or None if no such camera is available.
        """
        for camera in self.cameras():
            if self.get_optional(camera[names.ITM_TYPE], str) != camera_type:
                continue
            if not self._is_available(camera):
                continue

            self.open_camera(self.get(camera[names.ITM_SERIAL_NUMBER], str))
            return camera

        return None

    def open_camera_by_link(self, serial: str) -> Optional[Any]:
        """
        Open the first available camera linked to the camera ``serial``.

        A monocular camera mounted on a stereo camera is linked to it through
        its ``Link/Target`` node.

        Returns:
            The camera item, or None if no linked camera is available.
        """
        for camera in self.cameras():
            target = camera[names.ITM_LINK][names.ITM_TARGET]
            if not self.exists(target) or self.get_optional(target, str) != serial:
                continue
            if not self._is_available(camera):
                continue

            self.open_camera(self.get(camera[names.ITM_SERIAL_NUMBER], str))
            return camera

        return None


class NxLibBackend(TreeBackend):
    """``TreeBackend`` bound to the Ensenso ``nxlib`` Python package."""

    def __init__(self):
        try:
            from nxlib import NxLibCommand, NxLibException, NxLibItem, api
        except ImportError:
            raise ImportError(
                "nxlib package required for Ensenso cameras. "
                "Install the Ensenso SDK and run: pip install nxlib"
            )

        self._api = api
        self._item_type = NxLibItem
        self._command_type = NxLibCommand
        self._exception_type = NxLibException

    @property
    def exception_type(self) -> Type[BaseException]:
        return self._exception_type

    def describe_exception(self, exc: BaseException) -> Tuple[Optional[int], str]:
        try:
            return exc.get_error_code(), exc.get_error_text()
        except self._exception_type:
            return None, str(exc)

    def initialize(self) -> None:
        self.logger.debug("Initializing NxLib")
        try:
            self._api.initialize()
        except self._exception_type as e:
            raise self._wrap(e, "initialize") from e

    def finalize(self) -> None:
        self.logger.debug("Finalizing NxLib")
        try:
            self._api.finalize()
        except self._exception_type as e:
            raise self._wrap(e, "finalize") from e

    def root(self) -> Any:
        return self._item_type()

    def _create_command(self, name: str) -> Any:
        return self._command_type(name)
