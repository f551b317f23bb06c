"""Extruded polygon generation: roof, side walls and wireframe edges.

Roof and wall vertices are duplicated per triangle so that UVs, colors and
batch ids can differ between faces sharing a corner (flat shading).
Walls are built from the base ring (draped at ``altitude``) and the top
ring (draped at ``altitude + extrude``), stored back to back in one work
buffer: base vertex ``i`` at ``i`` and its top twin at ``i + n``.
"""

import logging

import numpy as np

from ..models import Feature, IndexSpan
from ..options import BuildOptions
from .attributes import (
    BatchChannels,
    allocate_custom_attributes,
    fill_color,
    fill_custom_attributes,
    invoke_callback,
    resolve_color,
)
from .drape import MinAltitude, drape
from .mesh import feature_rng, ring_height, ring_value
from .models import MeshBuffer, MeshGroup
from .triangulate import is_clockwise, triangulate
from .uv import roof_uvs, wall_quad_uvs

logger = logging.getLogger(__name__)

BASE_SHADE = 0.6

# Corner order of the two triangles of each wall quad, outward facing.
CLOCKWISE_WALL_ORDER = ("b0", "t0", "b1", "b1", "t0", "t1")
COUNTER_CLOCKWISE_WALL_ORDER = ("t0", "b0", "t1", "t1", "b0", "b1")


def wall_order(clockwise: bool) -> tuple[str, ...]:
    return CLOCKWISE_WALL_ORDER if clockwise else COUNTER_CLOCKWISE_WALL_ORDER


def build_side_walls(
    work: np.ndarray,
    n: int,
    span: IndexSpan,
    order: tuple[str, ...],
    wall_uv,
) -> dict:
    """Build the wall quads between base and top for one index span.

    Args:
        work: Flat XYZ buffer of 2n vertices, base then top.
        n: Number of base vertices.
        span: Vertex span of one ring boundary.
        order: Corner permutation from :func:`wall_order`.
        wall_uv: Strategy ``(base0, base1, top0, top1) -> (height, length)``.

    Returns:
        Dict with 'ids' (work-buffer vertex per wall vertex), 'positions',
        'uvs' and 'edges' (flat XYZ line segments).
    """
    if span.count < 2:
        empty = np.zeros(0)
        return {"ids": np.zeros(0, dtype=np.int64), "positions": empty, "uvs": empty, "edges": empty}

    pts = work.reshape(-1, 3)
    i = np.arange(span.offset, span.end - 1)
    corners = {"b0": i, "b1": i + 1, "t0": i + n, "t1": i + 1 + n}
    quads = np.stack([corners[k] for k in order], axis=1)

    uvs = []
    for b0, b1, t0, t1 in zip(corners["b0"], corners["b1"], corners["t0"], corners["t1"]):
        height, length = invoke_callback("wall UV", wall_uv, pts[b0], pts[b1], pts[t0], pts[t1])
        uvs.extend(wall_quad_uvs(height, length))

    # first corner to second, first corner to third
    edge_ids = np.stack([quads[:, 0], quads[:, 1], quads[:, 0], quads[:, 2]], axis=1)

    ids = quads.reshape(-1)
    return {
        "ids": ids,
        "positions": pts[ids].reshape(-1),
        "uvs": np.asarray(uvs, dtype=np.float64),
        "edges": pts[edge_ids.reshape(-1)].reshape(-1),
    }


def build_extrusion(feature: Feature, options: BuildOptions, feature_index: int = 0) -> MeshGroup:
    """Extrude a polygon feature into walls, roof and edges sub-meshes."""
    n = feature.vertex_count
    rng = feature_rng(options, feature_index)
    tracker = MinAltitude()
    work = np.zeros(2 * n * 3, dtype=np.float64)
    base_heights = np.zeros(n, dtype=np.float64)
    colors = np.zeros(2 * n * 3, dtype=np.uint8)
    channels = BatchChannels(options.batch_channels)
    custom = allocate_custom_attributes(options.attributes, n)

    clockwise = False
    if feature.geometry:
        outer = feature.geometry[0].indices[0]
        clockwise = is_clockwise(feature.vertices, outer.offset, outer.count)
    order = wall_order(clockwise)

    roof_positions, roof_colors, roof_zbottom = [], [], []
    wall_positions, wall_uvs, wall_colors, wall_zbottom = [], [], [], []
    edge_positions = []
    roof_batch = {name: [] for name in options.batch_channels}
    wall_batch = {name: [] for name in options.batch_channels}

    for ring in feature.geometry:
        props = ring.properties
        altitude = ring_height(options, ring.start, ring.end, props)
        extrude = ring_value(options.extrude, ring, what="extrude")
        top_color = resolve_color(options.color, props, rng)
        base_color = tuple(c * BASE_SHADE for c in top_color)
        top_start = ring.start + n

        base_heights[ring.start:ring.end] = drape(
            feature.vertices, feature.normals, work,
            height=altitude, out_offset=ring.start, count=ring.count,
            crs=feature.crs, properties=props, tracker=tracker,
        )
        fill_color(colors, ring.count, base_color, ring.start)
        drape(
            feature.vertices, feature.normals, work,
            height=altitude, extrude=extrude, out_offset=top_start, count=ring.count,
            start=ring.start, crs=feature.crs, properties=props, tracker=tracker,
        )
        fill_color(colors, ring.count, top_color, top_start)
        fill_custom_attributes(custom, options.attributes, props, top_start, top_start + ring.count)

        ids = channels.assign(props)

        # Roof
        triangles = triangulate(work[top_start * 3:(top_start + ring.count) * 3], ring.hole_offsets)
        roof_ids = triangles.astype(np.int64) + top_start
        roof_positions.append(work.reshape(-1, 3)[roof_ids].reshape(-1))
        roof_colors.append(colors.reshape(-1, 3)[roof_ids].reshape(-1))
        roof_zbottom.append(base_heights[roof_ids - n])
        BatchChannels.extend(roof_batch, ids, len(roof_ids))

        # Walls and edges
        ring_wall_vertices = 0
        for span in ring.indices:
            walls = build_side_walls(work, n, span, order, options.wall_uv)
            wall_positions.append(walls["positions"])
            wall_uvs.append(walls["uvs"])
            wall_colors.append(colors.reshape(-1, 3)[walls["ids"]].reshape(-1))
            wall_zbottom.append(base_heights[walls["ids"] % n])
            edge_positions.append(walls["edges"])
            ring_wall_vertices += len(walls["ids"])
        BatchChannels.extend(wall_batch, ids, ring_wall_vertices)

    logger.debug(
        "Extruded feature %s: %d rings, %s winding",
        feature.id, len(feature.geometry), "clockwise" if clockwise else "counter-clockwise",
    )

    roof_xyz = _concat(roof_positions, np.float64)
    walls = MeshBuffer(
        name="walls",
        kind="triangles",
        positions=_concat(wall_positions, np.float32),
        colors=_concat(wall_colors, np.uint8),
        uvs=_concat(wall_uvs, np.float32),
        batch_channels={k: np.asarray(v, dtype=np.uint32) for k, v in wall_batch.items()},
        attributes={"zbottom": _concat(wall_zbottom, np.float32)},
        min_altitude=tracker.value,
    )
    roof = MeshBuffer(
        name="roof",
        kind="triangles",
        positions=roof_xyz.astype(np.float32),
        colors=_concat(roof_colors, np.uint8),
        uvs=roof_uvs(roof_xyz),
        batch_channels={k: np.asarray(v, dtype=np.uint32) for k, v in roof_batch.items()},
        attributes={"zbottom": _concat(roof_zbottom, np.float32)},
        min_altitude=tracker.value,
    )
    edges = MeshBuffer(
        name="edges",
        kind="line_segments",
        positions=_concat(edge_positions, np.float32),
        min_altitude=tracker.value,
    )

    return MeshGroup(
        name="extrusion",
        children=[walls, roof, edges],
        min_altitude=tracker.value,
        attributes=custom,
    )


def _concat(blocks: list, dtype) -> np.ndarray:
    if not blocks:
        return np.zeros(0, dtype=dtype)
    return np.concatenate(blocks).astype(dtype)
