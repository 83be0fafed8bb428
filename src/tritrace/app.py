"""Render a textured triangle to output.png.

The program builds the smallest complete scene the library can render: one
triangle textured with a 2x2 image (red, green, blue and yellow texels,
nearest filtering so each texel shows as a solid block), seen through an
orthographic camera and lit by a single ambient light. One frame is rendered
with one sample per pixel and written as a 400x400 RGBA PNG.

The frame buffer's first row is the bottom of the image while the PNG
writer's first row is the top, so by default the file is the vertical mirror
of the rendered scene. Pass --flip-vertical to write it upright.

Usage:
    python -m tritrace [--tt:device=cpu] [options]

Options:
    --output OUTPUT     Output file path (default: output.png)
    --samples SAMPLES   Samples per pixel (default: 1)
    --flip-vertical     Write the image upright instead of mirrored

Library flags (``--tt:...``) are consumed by tritrace.init before the
options above are parsed.
"""

from __future__ import annotations

import argparse
import logging
import sys
from contextlib import ExitStack
from dataclasses import dataclass
from pathlib import Path

import numpy as np

import tritrace
from tritrace.camera.projection import Camera
from tritrace.core.data import DataType
from tritrace.core.framebuffer import Channel, FrameBufferFormat
from tritrace.device import Device
from tritrace.errors import InitializationError, TritraceError
from tritrace.export import write_png
from tritrace.geometry.mesh import TriangleMesh
from tritrace.materials.material import Material
from tritrace.materials.texture import TextureFlag, TextureFormat
from tritrace.scene.model import Scene

logger = logging.getLogger(__name__)

INIT_FAILURE_MESSAGE = (
    "An error occurred while attempting to initialize the renderer "
    "so this program will now exit."
)

# =============================================================================
# Scene Constants
# =============================================================================

# Vertices in world space near the origin, where the camera looks
TRIANGLE_VERTICES = np.array(
    [
        [0.0, 0.0, 0.0],
        [1.0, 1.0, 0.0],
        [1.0, 0.0, 0.0],
    ],
    dtype=np.float32,
)
TRIANGLE_INDICES = np.array([0, 1, 2], dtype=np.int32)
TRIANGLE_UVS = np.array(
    [
        [0.0, 0.0],
        [1.0, 1.0],
        [1.0, 0.0],
    ],
    dtype=np.float32,
)

# 2x2 RGB8 texture, lower-left texel first
TEXTURE_SIZE = (2, 2)
TEXELS = np.array(
    [
        [255, 0, 0],  # red
        [0, 255, 0],  # green
        [0, 0, 255],  # blue
        [255, 255, 0],  # yellow
    ],
    dtype=np.uint8,
)

# Orthographic view volume that fits the triangle, camera in -z looking at +z
CAMERA_HEIGHT = 2.0
CAMERA_WIDTH = 2.0
CAMERA_POSITION = (0.0, 0.0, -1.0)

IMAGE_SIZE = (400, 400)
IMAGE_CHANNELS = 4


@dataclass
class PipelineConfig:
    """Application options.

    Attributes:
        output: Destination PNG path.
        samples: Samples per pixel.
        flip_vertical: Write the image upright instead of mirrored.
    """

    output: Path = Path("output.png")
    samples: int = 1
    flip_vertical: bool = False


# =============================================================================
# Scene Construction
# =============================================================================


def build_material(device: Device) -> Material:
    """Create the committed textured OBJ material.

    Returns:
        The material; the caller owns its only application reference.
    """
    with device.new_texture("texture2d") as texture:
        texture.set("size", TEXTURE_SIZE)
        texture.set("type", TextureFormat.RGB8)
        # Blocky lookups make the texel-to-UV mapping visible
        texture.set("flags", TextureFlag.FILTER_NEAREST)
        with device.new_data(TEXELS, DataType.UCHAR, shared=True) as texels:
            texels.commit()
            texture.set("data", texels)
            texture.commit()

        # Without a material the triangle would render black
        with ExitStack() as stack:
            material = stack.enter_context(device.new_material("pathtracer", "OBJMaterial"))
            material.set("map_Kd", texture)
            material.commit()
            stack.pop_all()
    return material


def build_triangle(device: Device) -> TriangleMesh:
    """Create the committed, textured triangle geometry."""
    with ExitStack() as stack:
        triangle = stack.enter_context(device.new_geometry("triangles"))

        # Shared buffers alias the module constants, which outlive the device
        buffers = (
            ("vertex", TRIANGLE_VERTICES, DataType.FLOAT3),
            ("index", TRIANGLE_INDICES, DataType.INT),
            ("vertex.texcoord", TRIANGLE_UVS, DataType.FLOAT2),
        )
        for name, array, data_type in buffers:
            with device.new_data(array, data_type, shared=True) as data:
                data.commit()
                triangle.set(name, data)

        with build_material(device) as material:
            triangle.set("material", material)
            triangle.commit()

        stack.pop_all()
    return triangle


def build_scene(device: Device) -> Scene:
    """Create the committed scene holding the triangle."""
    with ExitStack() as stack:
        scene = stack.enter_context(device.new_scene())
        with build_triangle(device) as triangle:
            scene.add_geometry(triangle)
            scene.commit()
        stack.pop_all()
    return scene


def build_camera(device: Device) -> Camera:
    """Create the committed orthographic camera (default direction and up)."""
    with ExitStack() as stack:
        camera = stack.enter_context(device.new_camera("orthographic"))
        camera.set("height", CAMERA_HEIGHT)
        camera.set("width", CAMERA_WIDTH)
        camera.set("pos", CAMERA_POSITION)
        camera.commit()
        stack.pop_all()
    return camera


def render_textured_triangle(device: Device, config: PipelineConfig) -> Path:
    """Render the textured triangle and write it as a PNG.

    Every object created here is released before returning, on success and
    on error.

    Args:
        device: The active device.
        config: Application options.

    Returns:
        Path of the written image.
    """
    width, height = IMAGE_SIZE

    with ExitStack() as stack:
        with build_scene(device) as scene, build_camera(device) as camera:
            # Without illumination the texture would not be visible
            light = stack.enter_context(device.new_light("ambient"))
            light.commit()

            with device.new_data([light], DataType.LIGHT) as lights:
                lights.commit()
                renderer = stack.enter_context(device.new_renderer("pathtracer"))
                renderer.set("model", scene)
                renderer.set("camera", camera)
                renderer.set("lights", lights)
                renderer.set("spp", config.samples)
                renderer.commit()

        framebuffer = stack.enter_context(
            device.new_framebuffer(IMAGE_SIZE, FrameBufferFormat.RGBA8, Channel.COLOR)
        )
        framebuffer.commit()
        renderer.render_frame(framebuffer, Channel.COLOR)

        with framebuffer.mapped(Channel.COLOR) as pixels:
            path = write_png(
                config.output,
                pixels,
                width,
                height,
                IMAGE_CHANNELS,
                width * IMAGE_CHANNELS,
                flip_vertical=config.flip_vertical,
            )

        # The stack only unwinds on errors; otherwise release in creation order
        stack.pop_all()

    for obj in (light, renderer, framebuffer):
        obj.release()
    return path


# =============================================================================
# Command Line
# =============================================================================


def parse_args(args: list[str]) -> PipelineConfig:
    """Parse application options; unknown arguments are logged and ignored."""
    parser = argparse.ArgumentParser(
        prog="textured-triangle",
        description="Render a textured triangle to a PNG file.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("output.png"),
        help="Output file path (default: output.png)",
    )
    parser.add_argument(
        "--samples",
        type=int,
        default=1,
        help="Samples per pixel (default: 1)",
    )
    parser.add_argument(
        "--flip-vertical",
        action="store_true",
        help="Write the image upright instead of mirrored",
    )
    namespace, unknown = parser.parse_known_args(args)
    if unknown:
        logger.warning("ignoring unrecognized arguments: %s", " ".join(unknown))
    return PipelineConfig(
        output=namespace.output,
        samples=namespace.samples,
        flip_vertical=namespace.flip_vertical,
    )


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Args:
        argv: Full argument vector including the program name; defaults to
            sys.argv.

    Returns:
        Process exit status.
    """
    argv = list(sys.argv if argv is None else argv)
    logging.basicConfig(format="%(levelname)s %(name)s: %(message)s")

    try:
        device = tritrace.init(argv)
    except InitializationError as e:
        logger.debug("initialization failed: %s", e)
        print(INIT_FAILURE_MESSAGE, file=sys.stderr)
        return 1

    # Shutdown runs last, after every object above has been released
    with device:
        config = parse_args(argv[1:])
        try:
            path = render_textured_triangle(device, config)
        except (TritraceError, OSError, ValueError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

    logger.info("saved %s", path.absolute())
    return 0


if __name__ == "__main__":
    sys.exit(main())
