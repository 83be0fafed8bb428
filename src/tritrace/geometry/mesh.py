"""Triangle mesh geometry (type "triangles").

Parameters:
    vertex: FLOAT3 data, one position per vertex (required)
    index: INT (flat triples) or INT3 data; consecutive triples if omitted
    vertex.texcoord: FLOAT2 data, one texture coordinate per vertex
    material: a committed Material

When an index buffer is given, every entry must address an existing vertex.
The check happens at commit so a bad mesh never reaches the renderer.
"""

from __future__ import annotations

from typing import Any

import numpy as np
import numpy.typing as npt

from tritrace.core.data import DataType, as_data
from tritrace.core.handle import ManagedObject, as_object
from tritrace.errors import InvalidArgumentError
from tritrace.materials.material import Material


class TriangleMesh(ManagedObject):
    """An indexed triangle mesh."""

    kind = "geometry"
    PARAMETERS = {
        "vertex": as_data(DataType.FLOAT3),
        "index": as_data(DataType.INT, DataType.INT3),
        "vertex.texcoord": as_data(DataType.FLOAT2),
        "material": as_object(Material),
    }

    def _finalize(self, params: dict[str, Any]) -> None:
        if "vertex" not in params:
            raise InvalidArgumentError(f"{self!r} requires the 'vertex' parameter")

        vertices = params["vertex"].array
        num_vertices = vertices.shape[0]

        if "index" in params:
            flat = params["index"].array.reshape(-1)
            if flat.size % 3:
                raise InvalidArgumentError(
                    f"{self!r}: {flat.size} indices do not form whole triangles"
                )
            indices = flat.reshape(-1, 3).astype(np.int64)
        else:
            if num_vertices % 3:
                raise InvalidArgumentError(
                    f"{self!r}: {num_vertices} unindexed vertices do not form whole triangles"
                )
            indices = np.arange(num_vertices, dtype=np.int64).reshape(-1, 3)

        if indices.size and (indices.min() < 0 or indices.max() >= num_vertices):
            raise InvalidArgumentError(
                f"{self!r}: index values must lie in [0, {num_vertices}), "
                f"got range [{indices.min()}, {indices.max()}]"
            )

        params["_positions"] = np.ascontiguousarray(vertices[indices], dtype=np.float32)

        if "vertex.texcoord" in params:
            texcoords = params["vertex.texcoord"].array
            if texcoords.shape[0] != num_vertices:
                raise InvalidArgumentError(
                    f"{self!r}: {texcoords.shape[0]} texture coordinates for "
                    f"{num_vertices} vertices"
                )
            params["_texcoords"] = np.ascontiguousarray(texcoords[indices], dtype=np.float32)

    @property
    def num_triangles(self) -> int:
        return int(self.get("_positions").shape[0])

    @property
    def material(self) -> Material | None:
        return self.get("material")

    def triangles(self) -> tuple[npt.NDArray[np.float32], npt.NDArray[np.float32] | None]:
        """Committed triangle corners.

        Returns:
            (positions, texcoords) shaped (n, 3, 3) and (n, 3, 2); texcoords
            is None when the mesh has none.
        """
        return self.get("_positions"), self.get("_texcoords")
