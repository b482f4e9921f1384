"""Utility modules."""

from .config_loader import ConfigLoader, get_nested, load_config, set_nested
from .logger import LoggerMixin, get_logger, setup_logger, setup_logger_from_config
from .pointcloud import organized_to_points, save_point_cloud

__all__ = [
    "ConfigLoader",
    "load_config",
    "get_nested",
    "set_nested",
    "setup_logger",
    "setup_logger_from_config",
    "get_logger",
    "LoggerMixin",
    "organized_to_points",
    "save_point_cloud",
]
