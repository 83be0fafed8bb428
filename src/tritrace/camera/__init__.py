"""Camera module for view and ray generation.

Components:
    projection: Orthographic and perspective cameras

Cameras reduce their parameters to a CameraBasis at commit. Screen
positions are normalized:
    sx in [0, 1]: left to right across the image
    sy in [0, 1]: bottom to top across the image
"""

from .projection import (
    CAMERA_TYPES,
    Camera,
    CameraBasis,
    OrthographicCamera,
    PerspectiveCamera,
    ProjectionType,
    camera_frame,
)

__all__ = [
    "Camera",
    "CameraBasis",
    "OrthographicCamera",
    "PerspectiveCamera",
    "ProjectionType",
    "camera_frame",
    "CAMERA_TYPES",
]
