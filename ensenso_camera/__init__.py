"""Ensenso stereo camera adapter for robot applications."""

__version__ = "0.1.0"

from . import utils
from . import calibration
from . import tree
from . import sensors

from .calibration import CalibrationResult, CameraIntrinsics, HandEyeCalibrator, Pose
from .sensors import Ensenso
from .tree import NxError
