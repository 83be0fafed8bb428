"""Materials module.

Components:
    texture: 2D textures and texel format conversion
    material: OBJ and luminous materials, looked up per renderer type
    lambertian: Ideal diffuse BRDF evaluation and sampling (Taichi functions)
"""

from .lambertian import eval_lambertian, pdf_lambertian, scatter_lambertian
from .material import (
    DEFAULT_KD,
    LuminousMaterial,
    Material,
    MaterialKind,
    ObjMaterial,
    material_class,
)
from .texture import Texture2D, TextureFlag, TextureFormat, texels_to_linear_rgba

__all__ = [
    # Textures
    "Texture2D",
    "TextureFlag",
    "TextureFormat",
    "texels_to_linear_rgba",
    # Materials
    "Material",
    "MaterialKind",
    "ObjMaterial",
    "LuminousMaterial",
    "material_class",
    "DEFAULT_KD",
    # Lambertian
    "eval_lambertian",
    "pdf_lambertian",
    "scatter_lambertian",
]
