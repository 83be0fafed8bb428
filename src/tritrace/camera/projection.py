"""Orthographic and perspective cameras.

Both cameras share the view parameters:

    pos: eye position (default origin)
    dir: viewing direction (default +z)
    up:  up vector (default +y)

The camera frame is built as right = normalize(dir x up) and
true_up = right x dir. Looking down +z with +y up, right therefore points to
-x. At commit each camera reduces its parameters to a CameraBasis, from
which the integrator generates a ray for any normalized screen position
(sx, sy) in [0, 1]^2, with (0, 0) at the bottom-left of the image:

    orthographic: origin = pos + (sx - 0.5) * du + (sy - 0.5) * dv, direction = dir
    perspective:  origin = pos, direction = normalize(dir + (sx - 0.5) * du + (sy - 0.5) * dv)

Example:
    >>> camera = device.new_camera("orthographic")
    >>> camera.set("height", 2.0).set("width", 2.0).set("pos", (0.0, 0.0, -1.0))
    >>> camera.commit()
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import IntEnum
from typing import Any

import numpy as np
import numpy.typing as npt

from tritrace.core.handle import ManagedObject, as_float, as_vector
from tritrace.errors import InvalidArgumentError

DEFAULT_POSITION = (0.0, 0.0, 0.0)
DEFAULT_DIRECTION = (0.0, 0.0, 1.0)
DEFAULT_UP = (0.0, 1.0, 0.0)


class ProjectionType(IntEnum):
    """Projection index used for dispatch in the integrator."""

    ORTHOGRAPHIC = 0
    PERSPECTIVE = 1


@dataclass(frozen=True)
class CameraBasis:
    """Everything the integrator needs to generate camera rays.

    Attributes:
        projection: Orthographic or perspective.
        position: Eye position.
        direction: Unit viewing direction.
        du: Screen-space x axis scaled to the full image width.
        dv: Screen-space y axis scaled to the full image height.
    """

    projection: ProjectionType
    position: npt.NDArray[np.float32]
    direction: npt.NDArray[np.float32]
    du: npt.NDArray[np.float32]
    dv: npt.NDArray[np.float32]


def camera_frame(
    direction: tuple[float, float, float],
    up: tuple[float, float, float],
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """Orthonormal (direction, right, true_up) frame for a view.

    Raises:
        InvalidArgumentError: If direction is zero or parallel to up.
    """
    d = np.asarray(direction, dtype=np.float64)
    u = np.asarray(up, dtype=np.float64)

    d_len = np.linalg.norm(d)
    if d_len < 1e-12:
        raise InvalidArgumentError("camera direction must be non-zero")
    d = d / d_len

    right = np.cross(d, u)
    r_len = np.linalg.norm(right)
    if r_len < 1e-12:
        raise InvalidArgumentError("camera up vector must not be parallel to its direction")
    right = right / r_len

    true_up = np.cross(right, d)
    return d, right, true_up


class Camera(ManagedObject):
    """Base class of cameras."""

    kind = "camera"
    PARAMETERS = {
        "pos": as_vector(3),
        "dir": as_vector(3),
        "up": as_vector(3),
    }

    def _extent(self, params: dict[str, Any]) -> tuple[float, float]:
        """Full (width, height) of the screen extent at unit distance."""
        raise NotImplementedError

    projection = ProjectionType.ORTHOGRAPHIC

    def _finalize(self, params: dict[str, Any]) -> None:
        params.setdefault("pos", DEFAULT_POSITION)
        params.setdefault("dir", DEFAULT_DIRECTION)
        params.setdefault("up", DEFAULT_UP)

        direction, right, true_up = camera_frame(params["dir"], params["up"])
        width, height = self._extent(params)

        params["_basis"] = CameraBasis(
            projection=self.projection,
            position=np.asarray(params["pos"], dtype=np.float32),
            direction=direction.astype(np.float32),
            du=(right * width).astype(np.float32),
            dv=(true_up * height).astype(np.float32),
        )

    def basis(self) -> CameraBasis:
        """The committed ray-generation basis."""
        return self.get("_basis")


class OrthographicCamera(Camera):
    """Parallel projection with an explicit view volume.

    Parameters (besides pos/dir/up):
        height: Height of the view volume (default 1).
        width: Width of the view volume; if omitted, height * aspect.
        aspect: Width / height ratio (default 1), ignored when width is set.
    """

    projection = ProjectionType.ORTHOGRAPHIC
    PARAMETERS = {
        **Camera.PARAMETERS,
        "height": as_float,
        "width": as_float,
        "aspect": as_float,
    }

    def _extent(self, params: dict[str, Any]) -> tuple[float, float]:
        height = params.get("height", 1.0)
        width = params.get("width", height * params.get("aspect", 1.0))
        if height <= 0.0 or width <= 0.0:
            raise InvalidArgumentError(f"{self!r}: view volume must have positive size")
        return width, height


class PerspectiveCamera(Camera):
    """Pinhole perspective projection.

    Parameters (besides pos/dir/up):
        fovy: Vertical field of view in degrees (default 60).
        aspect: Width / height ratio (default 1).
    """

    projection = ProjectionType.PERSPECTIVE
    PARAMETERS = {
        **Camera.PARAMETERS,
        "fovy": as_float,
        "aspect": as_float,
    }

    def _extent(self, params: dict[str, Any]) -> tuple[float, float]:
        fovy = params.get("fovy", 60.0)
        aspect = params.get("aspect", 1.0)
        if not 0.0 < fovy < 180.0:
            raise InvalidArgumentError(f"{self!r}: fovy must lie in (0, 180), got {fovy}")
        if aspect <= 0.0:
            raise InvalidArgumentError(f"{self!r}: aspect must be positive")
        height = 2.0 * math.tan(math.radians(fovy) / 2.0)
        return height * aspect, height


CAMERA_TYPES: dict[str, type[Camera]] = {
    "orthographic": OrthographicCamera,
    "perspective": PerspectiveCamera,
}
