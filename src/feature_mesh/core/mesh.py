"""Mesh generation for point, line and flat polygon features."""

import logging

import numpy as np

from ..models import Feature, Ring
from ..options import BuildOptions
from .attributes import BatchChannels, fill_color, resolve_color, resolve_option
from .drape import MinAltitude, drape
from .models import Diagnostic, MeshBuffer
from .triangulate import triangulate

logger = logging.getLogger(__name__)


def feature_rng(options: BuildOptions, feature_index: int = 0) -> np.random.Generator:
    """Random source for colors and line noise.

    Seeded runs repeat, and each feature index draws from its own stream.
    """
    if options.seed is None:
        return np.random.default_rng()
    return np.random.default_rng([options.seed, feature_index])


def ring_value(option, ring: Ring, default=0.0, what: str = "option"):
    """Resolve a per-ring option; feature-wide per-vertex arrays are cut to the ring."""
    if isinstance(option, np.ndarray):
        return option[ring.start:ring.end]
    return resolve_option(option, ring.properties, default, what)


def ring_height(options: BuildOptions, start: int, stop: int, properties: dict):
    """Height source for draping vertices ``[start, stop)`` that share ``properties``."""
    if options.vertex_altitude is not None:
        return options.vertex_altitude
    if isinstance(options.altitude, np.ndarray):
        return options.altitude[start:stop]
    return resolve_option(options.altitude, properties, 0.0, "altitude")


def _uncovered_runs(covered: np.ndarray) -> list[tuple[int, int]]:
    """(start, count) of each run of vertices no ring span refers to."""
    loose = np.flatnonzero(~covered)
    if len(loose) == 0:
        return []
    breaks = np.flatnonzero(np.diff(loose) > 1) + 1
    return [(int(run[0]), len(run)) for run in np.split(loose, breaks)]


def check_index_overflow(
    ring: Ring, last_vertex: int, options: BuildOptions, feature: Feature,
    diagnostics: list[Diagnostic], label: str,
) -> bool:
    """Return True, after warning, when ``last_vertex`` does not fit the index width."""
    if last_vertex <= options.index_ceiling:
        return False
    message = (
        f"{label}: integer overflow, too many points (ring at offset {ring.start} exceeds "
        f"the {options.index_width}-bit index limit {options.index_ceiling})"
    )
    logger.warning("%s; remaining rings of feature %s skipped", message, feature.id)
    diagnostics.append(Diagnostic(code="index_overflow", message=message, feature_id=feature.id))
    return True


def build_points(feature: Feature, options: BuildOptions, feature_index: int = 0) -> MeshBuffer:
    """One point per vertex, draped and colored ring by ring.

    Vertices outside every ring are still draped, with empty properties,
    and keep a zero color and batch id.
    """
    n = feature.vertex_count
    rng = feature_rng(options, feature_index)
    tracker = MinAltitude()
    positions = np.zeros(n * 3, dtype=np.float64)
    colors = np.zeros(n * 3, dtype=np.uint8)
    channels = BatchChannels(options.batch_channels)
    batch = channels.allocate(n)
    covered = np.zeros(n, dtype=bool)

    for ring in feature.geometry:
        drape(
            feature.vertices, feature.normals, positions,
            height=ring_height(options, ring.start, ring.end, ring.properties),
            out_offset=ring.start, count=ring.count,
            crs=feature.crs, properties=ring.properties, tracker=tracker,
        )
        fill_color(colors, ring.count, resolve_color(options.color, ring.properties, rng), ring.start)
        channels.assign(ring.properties, batch, ring.start, ring.end)
        covered[ring.start:ring.end] = True

    for start, count in _uncovered_runs(covered):
        drape(
            feature.vertices, feature.normals, positions,
            height=ring_height(options, start, start + count, {}),
            out_offset=start, count=count,
            crs=feature.crs, properties={}, tracker=tracker,
        )

    return MeshBuffer(
        name="points",
        kind="points",
        positions=positions.astype(np.float32),
        colors=colors,
        batch_channels=batch,
        min_altitude=tracker.value,
    )


def build_lines(feature: Feature, options: BuildOptions, feature_index: int = 0) -> MeshBuffer:
    """A polyline for single-ring features, unindexed segments for multi-lines."""
    if len(feature.geometry) > 1:
        return _build_multi_line(feature, options, feature_index)

    n = feature.vertex_count
    rng = feature_rng(options, feature_index)
    tracker = MinAltitude()
    properties = feature.geometry[0].properties if feature.geometry else {}
    positions = np.zeros(n * 3, dtype=np.float64)
    colors = np.zeros(n * 3, dtype=np.uint8)
    channels = BatchChannels(options.batch_channels)
    batch = channels.allocate(n)

    drape(
        feature.vertices, feature.normals, positions,
        height=ring_height(options, 0, n, properties),
        crs=feature.crs, properties=properties, tracker=tracker,
    )
    fill_color(colors, n, resolve_color(options.color, properties, rng))
    channels.assign(properties, batch, 0, n)

    return MeshBuffer(
        name="line",
        kind="line",
        positions=positions.astype(np.float32),
        colors=colors,
        batch_channels=batch,
        min_altitude=tracker.value,
    )


def _build_multi_line(feature: Feature, options: BuildOptions, feature_index: int) -> MeshBuffer:
    """Expand every ring into independent two-vertex segments.

    Each segment carries a random ``speed`` per endpoint for animated
    line shading. ``options.line_duplicates`` adds jittered copies.
    """
    rng = feature_rng(options, feature_index)
    tracker = MinAltitude()
    diagnostics: list[Diagnostic] = []
    draped = np.zeros(len(feature.vertices), dtype=np.float64)
    channels = BatchChannels(options.batch_channels)

    segment_blocks = []
    speed_blocks = []
    color_blocks = []
    batch_lists: dict[str, list] = {name: [] for name in options.batch_channels}

    for ring in feature.geometry:
        if check_index_overflow(ring, ring.start, options, feature, diagnostics, "Feature to Line"):
            break

        color = resolve_color(options.color, ring.properties, rng)
        drape(
            feature.vertices, feature.normals, draped,
            height=ring_height(options, ring.start, ring.end, ring.properties),
            out_offset=ring.start, count=ring.count,
            crs=feature.crs, properties=ring.properties, tracker=tracker,
        )
        pts = draped.reshape(-1, 3)

        ring_vertices = 0
        for span in ring.indices:
            # segment j joins vertices j and j + 1; j itself must stay indexable
            last = min(span.end - 1, options.index_ceiling)
            if last <= span.offset:
                continue
            segments = np.stack([pts[span.offset:last], pts[span.offset + 1:last + 1]], axis=1)
            segments = segments.reshape(-1, 3)
            segment_blocks.append(segments)
            speed_blocks.append(rng.random(len(segments)))
            for _ in range(options.line_duplicates):
                segment_blocks.append(segments + rng.random(segments.shape) * options.line_jitter)
                speed_blocks.append(rng.random(len(segments)))
            ring_vertices += len(segments) * (1 + options.line_duplicates)

        ids = channels.assign(ring.properties)
        BatchChannels.extend(batch_lists, ids, ring_vertices)
        ring_colors = np.zeros(ring_vertices * 3, dtype=np.uint8)
        fill_color(ring_colors, ring_vertices, color)
        color_blocks.append(ring_colors)

    if segment_blocks:
        positions = np.concatenate(segment_blocks).reshape(-1)
        speed = np.concatenate(speed_blocks)
        colors = np.concatenate(color_blocks)
    else:
        positions = np.zeros(0)
        speed = np.zeros(0)
        colors = np.zeros(0, dtype=np.uint8)

    return MeshBuffer(
        name="line_segments",
        kind="line_segments",
        positions=positions.astype(np.float32),
        colors=colors,
        batch_channels={name: np.asarray(v, dtype=np.uint32) for name, v in batch_lists.items()},
        attributes={"speed": speed.astype(np.float32)},
        min_altitude=tracker.value,
        diagnostics=diagnostics,
    )


def build_polygons(feature: Feature, options: BuildOptions, feature_index: int = 0) -> MeshBuffer:
    """Drape each ring at its altitude and ear-clip it into one indexed triangle mesh."""
    n = feature.vertex_count
    rng = feature_rng(options, feature_index)
    tracker = MinAltitude()
    diagnostics: list[Diagnostic] = []
    positions = np.zeros(n * 3, dtype=np.float64)
    colors = np.zeros(n * 3, dtype=np.uint8)
    channels = BatchChannels(options.batch_channels)
    batch = channels.allocate(n)
    index_blocks = []

    for ring in feature.geometry:
        if check_index_overflow(ring, ring.end - 1, options, feature, diagnostics, "Feature to Polygon"):
            break

        altitude = ring_height(options, ring.start, ring.end, ring.properties)
        color = resolve_color(options.color, ring.properties, rng)

        drape(
            feature.vertices, feature.normals, positions,
            height=altitude, out_offset=ring.start, count=ring.count,
            crs=feature.crs, properties=ring.properties, tracker=tracker,
        )
        fill_color(colors, ring.count, color, ring.start)

        triangles = triangulate(positions[ring.start * 3:ring.end * 3], ring.hole_offsets)
        index_blocks.append(triangles.astype(np.int64) + ring.start)

        channels.assign(ring.properties, batch, ring.start, ring.end)

    indices = np.concatenate(index_blocks) if index_blocks else np.zeros(0, dtype=np.int64)

    return MeshBuffer(
        name="polygon",
        kind="triangles",
        positions=positions.astype(np.float32),
        colors=colors,
        batch_channels=batch,
        indices=indices.astype(options.index_dtype),
        min_altitude=tracker.value,
        diagnostics=diagnostics,
    )
