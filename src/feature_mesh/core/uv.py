"""Texture coordinate generation for extruded roofs and walls."""

from functools import lru_cache

import numpy as np
from pyproj import Transformer


GEOCENTRIC_CRS = "EPSG:4978"
GEODETIC_CRS = "EPSG:4326"


@lru_cache(maxsize=None)
def _geocentric_to_geodetic() -> Transformer:
    return Transformer.from_crs(GEOCENTRIC_CRS, GEODETIC_CRS, always_xy=True)


def roof_uvs(positions: np.ndarray) -> np.ndarray:
    """Map geocentric roof vertices to (latitude, longitude) UV pairs.

    Args:
        positions: Flat array of X, Y, Z triples in EPSG:4978.

    Returns:
        Flat float32 array of (lat, lon) pairs, one per vertex.
    """
    pts = np.asarray(positions, dtype=np.float64).reshape(-1, 3)
    if len(pts) == 0:
        return np.zeros(0, dtype=np.float32)
    lon, lat, _ = _geocentric_to_geodetic().transform(pts[:, 0], pts[:, 1], pts[:, 2])
    return np.column_stack([lat, lon]).astype(np.float32).reshape(-1)


def unit_wall_uv(base0, base1, top0, top1) -> tuple[float, float]:
    """Every wall quad spans the whole texture."""
    return 1.0, 1.0


def metric_wall_uv(base0, base1, top0, top1) -> tuple[float, float]:
    """Scale wall UVs by the quad's height and base edge length, in scene units."""
    height = float(np.linalg.norm(np.asarray(top0) - np.asarray(base0)))
    length = float(np.linalg.norm(np.asarray(base1) - np.asarray(base0)))
    return height, length


def wall_quad_uvs(height: float, length: float) -> list[float]:
    """UVs for the two triangles of one wall quad, in emission order."""
    return [
        0.0, height,
        0.0, 0.0,
        length, height,
        length, height,
        0.0, 0.0,
        length, 0.0,
    ]
