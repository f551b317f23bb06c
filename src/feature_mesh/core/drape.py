"""Place flattened feature coordinates at their render altitude.

Each vertex is pushed along its drape normal by ``height + extrude``::

    out = position + normal * (height(position) + extrude)
"""

import math
from typing import Callable, Optional, Sequence, Union

import numpy as np

from ..errors import InvalidFeature, MeshBuildError
from ..models import Coordinates
from .attributes import invoke_callback

HeightSource = Union[float, Sequence[float], np.ndarray, Callable]


class MinAltitude:
    """Running minimum of every height written by :func:`drape`."""

    def __init__(self, value: float = math.inf):
        self.value = value

    def update(self, heights) -> None:
        heights = np.asarray(heights, dtype=np.float64)
        if heights.size:
            self.value = min(self.value, float(heights.min()))

    def merge(self, other: "MinAltitude") -> "MinAltitude":
        return MinAltitude(min(self.value, other.value))


def drape_point(position, normal, height: float) -> np.ndarray:
    """Drape a single XYZ position along its normal."""
    return np.asarray(position, dtype=np.float64) + np.asarray(normal, dtype=np.float64) * height


def _per_vertex(source, count: int, name: str) -> Optional[np.ndarray]:
    """Expand a constant or a sequence into ``count`` values; None for callables."""
    if callable(source):
        return None
    if source is None:
        return np.zeros(count)
    if np.isscalar(source):
        return np.full(count, float(source))
    values = np.asarray(source, dtype=np.float64).reshape(-1)
    if len(values) < count:
        raise InvalidFeature(f"{name} has {len(values)} values but {count} vertices are draped")
    return values[:count]


def drape(
    positions: np.ndarray,
    normals: np.ndarray,
    out: np.ndarray,
    height: HeightSource = 0.0,
    extrude: Union[float, Sequence[float], np.ndarray] = 0.0,
    out_offset: int = 0,
    count: Optional[int] = None,
    start: Optional[int] = None,
    crs: str = "EPSG:4978",
    properties: Optional[dict] = None,
    tracker: Optional[MinAltitude] = None,
) -> np.ndarray:
    """Write draped positions for vertices ``[start, start + count)`` into ``out``.

    Args:
        positions: Flat XYZ input buffer. Never modified.
        normals: Flat XYZ drape normals, parallel to ``positions``.
        out: Flat output buffer; vertex ``start + k`` lands at ``out_offset + k``.
        height: Constant, per-vertex sequence (indexed relative to ``start``)
            or callable ``height(properties, Coordinates)`` invoked once per vertex.
        extrude: Constant or per-vertex sequence added to the height.
        out_offset: First output vertex.
        count: Number of vertices; defaults to the rest of ``positions``.
        start: First input vertex; defaults to ``out_offset``.
        crs: CRS tag of ``positions``, used for the callable's coordinates.
        properties: Passed to a callable height.
        tracker: Running minimum updated with every written height.

    Returns:
        The ``height + extrude`` value applied to each draped vertex.
    """
    if start is None:
        start = out_offset
    if count is None:
        count = len(positions) // 3 - start
    if count <= 0:
        return np.zeros(0)

    pts = positions[start * 3:(start + count) * 3].reshape(-1, 3)
    nrm = normals[start * 3:(start + count) * 3].reshape(-1, 3)

    heights = _per_vertex(height, count, "altitude")
    if heights is None:
        props = properties if properties is not None else {}
        heights = np.array([
            _call_height(height, props, Coordinates(crs=crs, x=p[0], y=p[1], z=p[2]))
            for p in pts
        ])
    offsets = _per_vertex(extrude, count, "extrude")
    if offsets is None:
        raise MeshBuildError("extrude must be resolved to a number or sequence before draping")
    heights = heights + offsets

    if tracker is not None:
        tracker.update(heights)

    out[out_offset * 3:(out_offset + count) * 3] = (pts + nrm * heights[:, None]).reshape(-1)
    return heights


def _call_height(height: Callable, properties: dict, coord: Coordinates) -> float:
    value = invoke_callback("vertex altitude", height, properties, coord)
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise MeshBuildError(f"vertex altitude callback returned {value!r}, not a number") from e
