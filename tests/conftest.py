"""
Shared fixtures.

The Ensenso SDK is replaced by an in-memory item tree. ``FakeItem`` mimics
the parts of ``nxlib.NxLibItem`` the package uses, ``FakeCommand`` records
executed commands and dispatches them to per-test handlers.
"""

import json
import sys
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import numpy as np
import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from ensenso_camera.tree import names
from ensenso_camera.tree.backend import TreeBackend

STEREO_SERIAL = "171234"
MONO_SERIAL = "4103456789"

_MISSING = object()


class FakeNxException(Exception):
    """Stands in for ``nxlib.NxLibException``."""

    def __init__(self, path: str, message: str, error_code: int = 17):
        self.path = path
        self.error_code = error_code
        super().__init__(f"{path}: {message}")


def _is_array(node: Dict) -> bool:
    return bool(node) and all(isinstance(k, int) for k in node)


def to_python(node: Any) -> Any:
    """Convert a stored node to plain JSON-like Python values."""
    if isinstance(node, dict):
        if _is_array(node):
            return [to_python(node[k]) for k in sorted(node)]
        return {k: to_python(v) for k, v in node.items()}
    return node


def from_python(value: Any) -> Any:
    """Convert JSON-like Python values to the stored representation."""
    if isinstance(value, dict):
        return {k: from_python(v) for k, v in value.items()}
    if isinstance(value, list):
        return {i: from_python(v) for i, v in enumerate(value)}
    return value


def _merge(target: Dict, source: Dict) -> None:
    for key, value in source.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _merge(target[key], value)
        else:
            target[key] = value


class FakeItem:
    """In-memory item of the tree, addressed by path."""

    def __init__(self, store: Dict, path: Tuple = ()):
        self._store = store
        self._path = path

    @property
    def path(self) -> str:
        return "/" + "/".join(str(p) for p in self._path)

    def _node(self) -> Any:
        node = self._store
        for key in self._path:
            if not isinstance(node, dict) or key not in node:
                return _MISSING
            node = node[key]
        return node

    def _parent(self, create: bool = True) -> Dict:
        node = self._store
        for key in self._path[:-1]:
            if not isinstance(node.get(key), dict):
                if not create:
                    raise FakeNxException(self.path, "item not found")
                node[key] = {}
            node = node[key]
        return node

    def __getitem__(self, key: Any) -> "FakeItem":
        node = self._node()
        # Integer access on an object selects the n-th child, like NxLib.
        if isinstance(key, int) and isinstance(node, dict) and node and not _is_array(node):
            key = list(node)[key]
        return FakeItem(self._store, self._path + (key,))

    # Reading
    def _leaf(self, check: Callable[[Any], bool], kind: str) -> Any:
        node = self._node()
        if node is _MISSING:
            raise FakeNxException(self.path, "item not found")
        if isinstance(node, dict) or not check(node):
            raise FakeNxException(self.path, f"item is not of type {kind}")
        return node

    def as_bool(self) -> bool:
        return self._leaf(lambda v: isinstance(v, bool), "bool")

    def as_int(self) -> int:
        return self._leaf(lambda v: isinstance(v, int) and not isinstance(v, bool), "int")

    def as_double(self) -> float:
        return float(self._leaf(
            lambda v: isinstance(v, (int, float)) and not isinstance(v, bool), "double"
        ))

    def as_string(self) -> str:
        return self._leaf(lambda v: isinstance(v, str), "string")

    def as_json(self, pretty_print: bool = False) -> str:
        node = self._node()
        if node is _MISSING:
            raise FakeNxException(self.path, "item not found")
        return json.dumps(to_python(node), indent=2 if pretty_print else None)

    def exists(self) -> bool:
        return self._node() is not _MISSING

    def count(self) -> int:
        node = self._node()
        return len(node) if isinstance(node, dict) else 0

    def get_binary_data(self) -> np.ndarray:
        return np.array(self._leaf(lambda v: isinstance(v, np.ndarray), "binary"))

    def get_binary_data_info(self) -> Tuple:
        data = self._leaf(lambda v: isinstance(v, np.ndarray), "binary")
        channels = data.shape[2] if data.ndim == 3 else 1
        is_float = np.issubdtype(data.dtype, np.floating)
        return data.shape[1], data.shape[0], channels, data.itemsize, is_float, time.time()

    # Writing
    def _write(self, value: Any) -> None:
        if not self._path:
            raise FakeNxException(self.path, "can't overwrite the root")
        self._parent()[self._path[-1]] = value

    def set_bool(self, value: bool) -> None:
        self._write(bool(value))

    def set_int(self, value: int) -> None:
        self._write(int(value))

    def set_double(self, value: float) -> None:
        self._write(float(value))

    def set_string(self, value: str) -> None:
        self._write(str(value))

    def set_binary(self, value: np.ndarray) -> None:
        """Test helper, binary nodes are written by the SDK itself."""
        self._write(np.asarray(value))

    def set_json(self, value: str, only_writable_nodes: bool = False) -> None:
        try:
            data = from_python(json.loads(value))
        except ValueError:
            raise FakeNxException(self.path, "invalid JSON")

        node = self._node()
        if isinstance(data, dict) and isinstance(node, dict):
            _merge(node, data)
        else:
            self._write(data)

    def erase(self) -> None:
        parent = self._parent(create=False)
        if self._path[-1] not in parent:
            raise FakeNxException(self.path, "item not found")
        del parent[self._path[-1]]

    def value(self) -> Any:
        """Test helper: plain Python value of the subtree, or None."""
        node = self._node()
        return None if node is _MISSING else to_python(node)


class FakeCommand:
    """Mimics ``nxlib.NxLibCommand``."""

    def __init__(self, backend: "FakeBackend", name: str):
        self.backend = backend
        self.name = name
        self._parameters: Dict = {}
        self._result: Dict = {}

    def parameters(self) -> FakeItem:
        return FakeItem(self._parameters)

    def result(self) -> FakeItem:
        return FakeItem(self._result)

    def execute(self) -> None:
        self.backend.executed.append((self.name, to_python(self._parameters)))
        handler = self.backend.handlers.get(self.name)
        if handler is not None:
            handler(self)


class FakeBackend(TreeBackend):
    """TreeBackend on top of the in-memory tree."""

    exception_type = FakeNxException

    def __init__(self):
        self.store: Dict = {}
        self.handlers: Dict[str, Callable[[FakeCommand], None]] = {}
        self.executed: List[Tuple[str, Any]] = []
        self.initialized = 0
        self.finalized = 0

    def initialize(self) -> None:
        self.initialized += 1

    def finalize(self) -> None:
        self.finalized += 1

    def root(self) -> FakeItem:
        return FakeItem(self.store)

    def _create_command(self, name: str) -> FakeCommand:
        return FakeCommand(self, name)

    # Helpers for tests
    def camera_item(self, serial: str) -> FakeItem:
        return self.root()[names.ITM_CAMERAS][names.ITM_BY_SERIAL_NO][serial]

    def add_camera(
        self,
        serial: str,
        camera_type: str = names.VAL_STEREO,
        available: bool = True,
        link_target: Optional[str] = None,
    ) -> FakeItem:
        camera = self.camera_item(serial)
        camera[names.ITM_SERIAL_NUMBER].set_string(serial)
        camera[names.ITM_TYPE].set_string(camera_type)
        camera[names.ITM_STATUS][names.ITM_AVAILABLE].set_bool(available)
        camera[names.ITM_STATUS][names.ITM_OPEN].set_bool(False)
        if link_target is not None:
            camera[names.ITM_LINK][names.ITM_TARGET].set_string(link_target)
        return camera

    def commands(self, name: str) -> List[Any]:
        """Parameters of every executed command with the given name."""
        return [params for executed, params in self.executed if executed == name]

    def command_names(self) -> List[str]:
        return [name for name, _ in self.executed]


def _selected_serials(command: FakeCommand) -> List[str]:
    cameras = command.parameters()[names.ITM_CAMERAS].value()
    if cameras is None:
        return []
    return cameras if isinstance(cameras, list) else [cameras]


def install_default_handlers(backend: FakeBackend) -> None:
    """Command handlers behaving like a healthy camera system."""

    def open_camera(command):
        for serial in _selected_serials(command):
            backend.camera_item(serial)[names.ITM_STATUS][names.ITM_OPEN].set_bool(True)

    def flag(item_name):
        def handler(command):
            for serial in _selected_serials(command):
                command.result()[serial][item_name].set_bool(True)
        return handler

    backend.handlers[names.CMD_OPEN] = open_camera
    backend.handlers[names.CMD_TRIGGER] = flag(names.ITM_TRIGGERED)
    backend.handlers[names.CMD_CAPTURE] = flag(names.ITM_RETRIEVED)
    backend.handlers[names.CMD_RETRIEVE] = flag(names.ITM_RETRIEVED)


def write_pose_mm(item: FakeItem, translation_mm, axis=(0.0, 0.0, 1.0), angle=0.0) -> None:
    """Write a transformation node the way NxLib stores it."""
    item.set_json(json.dumps({
        names.ITM_TRANSLATION: [float(v) for v in translation_mm],
        names.ITM_ROTATION: {
            names.ITM_ANGLE: float(angle),
            names.ITM_AXIS: [float(v) for v in axis],
        },
    }))


@pytest.fixture
def backend():
    """Empty fake SDK with default command handlers."""
    fake = FakeBackend()
    install_default_handlers(fake)
    return fake


@pytest.fixture
def stereo_backend(backend):
    """Fake SDK with a single stereo camera."""
    backend.add_camera(STEREO_SERIAL)
    return backend


@pytest.fixture
def full_backend(stereo_backend):
    """Fake SDK with a stereo camera and a linked monocular camera."""
    stereo_backend.add_camera(
        MONO_SERIAL, camera_type=names.VAL_MONOCULAR, link_target=STEREO_SERIAL
    )
    return stereo_backend


@pytest.fixture
def stereo_camera(stereo_backend):
    """Ensenso adapter connected to a stereo camera only."""
    from ensenso_camera.sensors.ensenso import Ensenso

    camera = Ensenso(backend=stereo_backend)
    yield camera
    camera.close()


@pytest.fixture
def camera(full_backend):
    """Ensenso adapter with stereo and monocular camera."""
    from ensenso_camera.sensors.ensenso import Ensenso

    camera = Ensenso(backend=full_backend)
    yield camera
    camera.close()
