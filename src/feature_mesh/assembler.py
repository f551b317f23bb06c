"""Dispatch features to their mesh builders and assemble collections."""

import logging
from typing import Iterable, Optional, Union

from .core._prereqs import check_feature
from .core.extrusion import build_extrusion
from .core.mesh import build_lines, build_points, build_polygons
from .core.models import Diagnostic, MeshBuffer, MeshGroup
from .errors import InvalidFeature, MeshBuildError, UnsupportedGeometryKind
from .models import Feature, GeometryKind
from .options import BuildOptions

logger = logging.getLogger(__name__)

Mesh = Union[MeshBuffer, MeshGroup]


def _tag(mesh: Mesh, feature: Feature) -> None:
    mesh.feature = feature
    mesh.feature_type = feature.type
    if isinstance(mesh, MeshGroup):
        for child in mesh.children:
            _tag(child, feature)


def build_mesh(
    feature: Feature, options: Optional[BuildOptions] = None, feature_index: int = 0,
) -> Optional[Mesh]:
    """Convert one feature into a mesh buffer, or a group for extruded polygons.

    Returns None for a feature without vertices. ``feature_index`` picks the
    feature's random stream when ``options.seed`` is set.

    Raises:
        InvalidFeature: buffers or ring spans are inconsistent.
        UnsupportedGeometryKind: ``feature.type`` has no builder.
        MeshBuildError: an option callback failed or returned an unusable value.
    """
    options = options or BuildOptions()
    if len(feature.vertices) == 0:
        return None
    check_feature(feature)

    if feature.type == GeometryKind.POINT.value:
        mesh = build_points(feature, options, feature_index)
    elif feature.type == GeometryKind.LINE.value:
        mesh = build_lines(feature, options, feature_index)
    elif feature.type == GeometryKind.POLYGON.value:
        if options.is_extruded:
            mesh = build_extrusion(feature, options, feature_index)
        else:
            mesh = build_polygons(feature, options, feature_index)
    else:
        raise UnsupportedGeometryKind(
            f"Feature {feature.id} has geometry kind '{feature.type}'; "
            f"expected one of {[k.value for k in GeometryKind]}."
        )

    _tag(mesh, feature)
    logger.debug(
        "Built %s mesh for feature %s (min altitude %s)",
        feature.type, feature.id, mesh.min_altitude,
    )
    return mesh


def _diagnostic_for(feature: Feature, exc: MeshBuildError) -> Diagnostic:
    if isinstance(exc, UnsupportedGeometryKind):
        code = "unsupported_geometry_kind"
    elif isinstance(exc, InvalidFeature):
        code = "invalid_feature"
    else:
        code = "build_failed"
    return Diagnostic(level="error", code=code, message=str(exc), feature_id=feature.id)


def build_collection(
    features: Optional[Iterable[Feature]], options: Optional[BuildOptions] = None,
) -> Optional[Mesh]:
    """Build every feature of a collection.

    A single feature returns its mesh directly; several are grouped with the
    minimum altitude over all members. Features that fail are skipped and
    reported in the group's diagnostics. An empty collection returns None.
    """
    features = list(features or [])
    if not features:
        return None

    options = options or BuildOptions()
    group = MeshGroup(name="collection")

    for index, feature in enumerate(features):
        try:
            mesh = build_mesh(feature, options, index)
        except MeshBuildError as exc:
            logger.warning("Skipping feature %s: %s", feature.id, exc)
            group.diagnostics.append(_diagnostic_for(feature, exc))
            continue
        if mesh is None:
            continue
        if len(features) == 1:
            return mesh
        group.add(mesh)

    if len(features) == 1 and not group.diagnostics:
        return None
    return group


def convert(options: Optional[BuildOptions] = None):
    """Return a converter that builds meshes from a feature collection.

    The collection may be an object with a ``features`` attribute, a mapping
    with a ``"features"`` key, or None.
    """
    options = options or BuildOptions()

    def _convert(collection) -> Optional[Mesh]:
        if collection is None:
            return None
        if isinstance(collection, dict):
            features = collection.get("features", [])
        else:
            features = getattr(collection, "features", [])
        return build_collection(features, options)

    return _convert
