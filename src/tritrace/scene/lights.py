"""Light sources.

- "ambient": uniform illumination from every direction. A diffuse surface
  under an unoccluded ambient light of radiance L reflects albedo * L.
- "distant" (alias "directional"): parallel light arriving along
  ``direction`` (the direction the light travels), like sunlight.

Both take ``color`` (default white) and ``intensity`` (default 1); the
emitted radiance is color * intensity.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any

import numpy as np

from tritrace.core.handle import ManagedObject, as_float, as_vector
from tritrace.errors import InvalidArgumentError


class LightKind(IntEnum):
    """Light index used for dispatch in the integrator."""

    AMBIENT = 0
    DISTANT = 1


class Light(ManagedObject):
    """Base class of lights."""

    kind = "light"
    light_kind = LightKind.AMBIENT
    PARAMETERS = {
        "color": as_vector(3),
        "intensity": as_float,
    }

    def _finalize(self, params: dict[str, Any]) -> None:
        params.setdefault("color", (1.0, 1.0, 1.0))
        params.setdefault("intensity", 1.0)
        if params["intensity"] < 0.0:
            raise InvalidArgumentError(f"{self!r}: intensity must not be negative")

    @property
    def radiance(self) -> tuple[float, float, float]:
        color = self.get("color")
        intensity = self.get("intensity")
        return (color[0] * intensity, color[1] * intensity, color[2] * intensity)

    @property
    def direction(self) -> tuple[float, float, float]:
        return (0.0, 0.0, 0.0)


class AmbientLight(Light):
    """Light arriving uniformly from the whole sphere of directions."""


class DistantLight(Light):
    """Parallel light from an infinitely distant source."""

    light_kind = LightKind.DISTANT
    PARAMETERS = {
        **Light.PARAMETERS,
        "direction": as_vector(3),
    }

    def _finalize(self, params: dict[str, Any]) -> None:
        super()._finalize(params)
        direction = np.asarray(params.get("direction", (0.0, 0.0, 1.0)), dtype=np.float64)
        length = np.linalg.norm(direction)
        if length < 1e-12:
            raise InvalidArgumentError(f"{self!r}: direction must be non-zero")
        params["direction"] = tuple(float(c) for c in direction / length)

    @property
    def direction(self) -> tuple[float, float, float]:
        """Unit direction the light travels in."""
        return self.get("direction")


LIGHT_TYPES: dict[str, type[Light]] = {
    "ambient": AmbientLight,
    "distant": DistantLight,
    "directional": DistantLight,
}
