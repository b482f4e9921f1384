"""
Names of the NxLib tree items, commands and values used by this package.

NxLib addresses everything by string: tree nodes (``Cameras/BySerialNo``),
command names (``ComputeDisparityMap``) and enumeration values (``Stereo``).
Keeping them in one place means a typo fails loudly at import time instead
of silently creating a new node in the tree.
"""

# Items
ITM_ANGLE = "Angle"
ITM_AREA_OF_INTEREST = "AreaOfInterest"
ITM_AVAILABLE = "Available"
ITM_AXIS = "Axis"
ITM_BY_SERIAL_NO = "BySerialNo"
ITM_CALIBRATION = "Calibration"
ITM_CAMERA = "Camera"
ITM_CAMERAS = "Cameras"
ITM_CAPTURE = "Capture"
ITM_DECODE_DATA = "DecodeData"
ITM_DEFINED_POSE = "DefinedPose"
ITM_DISPARITY_MAP = "DisparityMap"
ITM_DYNAMIC = "Dynamic"
ITM_FILENAME = "Filename"
ITM_FLEX_VIEW = "FlexView"
ITM_FRONT_LIGHT = "FrontLight"
ITM_IMAGES = "Images"
ITM_ITERATIONS = "Iterations"
ITM_LEFT = "Left"
ITM_LEFT_TOP = "LeftTop"
ITM_LINK = "Link"
ITM_NEAR = "Near"
ITM_OPEN = "Open"
ITM_PARAMETERS = "Parameters"
ITM_PATTERN_POSE = "PatternPose"
ITM_PATTERNS = "Patterns"
ITM_POINT_MAP = "PointMap"
ITM_PROJECTOR = "Projector"
ITM_RAW = "Raw"
ITM_RECTIFIED = "Rectified"
ITM_RENDER_POINT_MAP = "RenderPointMap"
ITM_REPROJECTION_ERROR = "ReprojectionError"
ITM_RETRIEVED = "Retrieved"
ITM_RIGHT_BOTTOM = "RightBottom"
ITM_ROTATION = "Rotation"
ITM_SERIAL_NUMBER = "SerialNumber"
ITM_SETUP = "Setup"
ITM_STATUS = "Status"
ITM_STEREO = "Stereo"
ITM_TARGET = "Target"
ITM_TIMEOUT = "Timeout"
ITM_TRANSFORMATIONS = "Transformations"
ITM_TRANSLATION = "Translation"
ITM_TRIGGERED = "Triggered"
ITM_TYPE = "Type"
ITM_USE_DISPARITY_MAP_AREA_OF_INTEREST = "UseDisparityMapAreaOfInterest"
ITM_USE_OPEN_GL = "UseOpenGL"

# Commands
CMD_CALIBRATE_HAND_EYE = "CalibrateHandEye"
CMD_CALIBRATE_WORKSPACE = "CalibrateWorkspace"
CMD_CAPTURE = "Capture"
CMD_CLOSE = "Close"
CMD_COLLECT_PATTERN = "CollectPattern"
CMD_COMPUTE_DISPARITY_MAP = "ComputeDisparityMap"
CMD_COMPUTE_POINT_MAP = "ComputePointMap"
CMD_DISCARD_PATTERNS = "DiscardPatterns"
CMD_ESTIMATE_PATTERN_POSE = "EstimatePatternPose"
CMD_LOAD_UEYE_PARAMETER_SET = "LoadUEyeParameterSet"
CMD_OPEN = "Open"
CMD_RECTIFY_IMAGES = "RectifyImages"
CMD_RENDER_POINT_MAP = "RenderPointMap"
CMD_RETRIEVE = "Retrieve"
CMD_STORE_CALIBRATION = "StoreCalibration"
CMD_TRIGGER = "Trigger"

# Values
VAL_FIXED = "Fixed"
VAL_MONOCULAR = "Monocular"
VAL_MOVING = "Moving"
VAL_STEREO = "Stereo"

# Unit conversion between the SDK (millimetres) and the application (metres).
MM_PER_M = 1000.0
M_PER_MM = 0.001
