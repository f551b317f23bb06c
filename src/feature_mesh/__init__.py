"""Convert decoded vector features into draped, extruded 3D mesh buffers."""

from .assembler import build_collection, build_mesh, convert
from .core.models import Diagnostic, MeshBuffer, MeshGroup
from .errors import InvalidFeature, MeshBuildError, UnsupportedGeometryKind
from .models import Coordinates, Feature, GeometryKind, IndexSpan, Ring
from .options import BuildOptions, CustomAttribute

__all__ = [
    "BuildOptions",
    "Coordinates",
    "CustomAttribute",
    "Diagnostic",
    "Feature",
    "GeometryKind",
    "IndexSpan",
    "InvalidFeature",
    "MeshBuffer",
    "MeshBuildError",
    "MeshGroup",
    "Ring",
    "UnsupportedGeometryKind",
    "build_collection",
    "build_mesh",
    "convert",
]
