"""Access to the Ensenso NxLib item tree."""

from . import names
from .backend import NxCommand, NxError, NxLibBackend, TreeBackend

__all__ = ["names", "NxCommand", "NxError", "NxLibBackend", "TreeBackend"]
