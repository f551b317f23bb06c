"""Polygon triangulation and winding helpers."""

from typing import Optional, Sequence

import mapbox_earcut as earcut
import numpy as np


def signed_area(vertices, offset: int = 0, count: Optional[int] = None) -> float:
    """Signed area of a ring in the XY plane (shoelace formula).

    Args:
        vertices: Flat XYZ buffer.
        offset: First vertex of the ring.
        count: Number of ring vertices; defaults to the rest of the buffer.

    Returns:
        Negative for clockwise rings, positive for counter-clockwise ones.
    """
    pts = np.asarray(vertices, dtype=np.float64).reshape(-1, 3)
    if count is None:
        count = len(pts) - offset
    ring = pts[offset:offset + count]
    if len(ring) < 3:
        return 0.0
    x = ring[:, 0]
    y = ring[:, 1]
    x_prev = np.roll(x, 1)
    y_prev = np.roll(y, 1)
    return float(np.sum(x_prev * y - x * y_prev) * 0.5)


def is_clockwise(vertices, offset: int = 0, count: Optional[int] = None) -> bool:
    return signed_area(vertices, offset, count) < 0


def triangulate(vertices, hole_offsets: Sequence[int] = ()) -> np.ndarray:
    """Ear-clip a ring with optional holes.

    Only X and Y take part in the triangulation. Degenerate input is passed
    through to earcut as is, so it may yield no triangles.

    Args:
        vertices: Flat XYZ buffer holding the outer ring followed by its holes.
        hole_offsets: Vertex offset of each hole within ``vertices``.

    Returns:
        uint32 array of triangle indices, three per triangle, local to ``vertices``.
    """
    pts = np.asarray(vertices, dtype=np.float64).reshape(-1, 3)
    n = len(pts)
    if n < 3:
        return np.zeros(0, dtype=np.uint32)
    ring_ends = np.array([*hole_offsets, n], dtype=np.uint32)
    triangles = earcut.triangulate_float64(np.ascontiguousarray(pts[:, :2]), ring_ends)
    return np.asarray(triangles, dtype=np.uint32).reshape(-1)
