"""Precondition checks on features handed to the builders."""

from ..errors import InvalidFeature
from ..models import Feature


def check_feature(feature: Feature) -> None:
    """Raise InvalidFeature with a descriptive message if the buffers or spans are inconsistent.

    Usage in a builder entry point:
        check_feature(feature)
        mesh = build_polygons(feature, options)
    """
    n_components = len(feature.vertices)
    if n_components % 3 != 0:
        raise InvalidFeature(
            f"Vertex buffer has {n_components} components, not a multiple of 3."
        )
    if len(feature.normals) != n_components:
        raise InvalidFeature(
            f"Normal buffer has {len(feature.normals)} components but the vertex "
            f"buffer has {n_components}."
        )

    n_verts = feature.vertex_count
    for r, ring in enumerate(feature.geometry):
        if not ring.indices:
            raise InvalidFeature(f"Ring {r} has no index spans.")
        previous_end = None
        for span in ring.indices:
            if span.end > n_verts:
                raise InvalidFeature(
                    f"Ring {r} span [{span.offset}, {span.end}) lies outside the "
                    f"{n_verts} available vertices."
                )
            if previous_end is not None and span.offset != previous_end:
                raise InvalidFeature(
                    f"Ring {r} spans are not contiguous: span at {span.offset} "
                    f"follows one ending at {previous_end}."
                )
            previous_end = span.end
