"""Configuration for feature-to-mesh conversion."""

import re
from typing import Any, Callable, Literal, Optional

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .core.uv import unit_wall_uv

INDEX_CEILINGS = {16: 0xFFFF, 32: 0xFFFFFFFF}


class CustomAttribute(BaseModel):
    """A user-declared per-vertex attribute allocated for extruded polygons.

    ``value`` is called with each ring's properties; its result is written
    to every top vertex of that ring.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    dtype: str = "float32"
    item_size: int = Field(default=1, gt=0)
    normalized: bool = False
    value: Optional[Callable[[dict], Any]] = None

    @field_validator("dtype", mode="before")
    @classmethod
    def must_be_numpy_dtype(cls, v) -> str:
        try:
            return np.dtype(v).name
        except TypeError as exc:
            raise ValueError(f"Unknown numeric type {v!r}") from exc


def _normalize_height(v):
    if v is None or callable(v):
        return v
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return float(v)
    if isinstance(v, (list, tuple, np.ndarray)):
        return np.asarray(v, dtype=np.float64).reshape(-1)
    raise ValueError("Must be a number, a per-vertex sequence or a callable")


class BuildOptions(BaseModel):
    """Options controlling how features are draped, colored and classified.

    altitude / extrude: a number, a per-vertex sequence, or a callable
        ``fn(properties)`` evaluated once per ring and returning a number
        (or None to fall back to 0). A sequence holds one value per feature
        vertex and is indexed by the vertex's absolute position in
        ``Feature.vertices``, not by its position within a ring.
    vertex_altitude: optional ``fn(properties, coordinates)`` called once per
        vertex with the ring's properties and a fresh ``Coordinates`` value.
        When set it replaces ``altitude`` in every builder.
    color: an (r, g, b) tuple with components in [0, 1], a #RRGGBB string,
        or a callable returning either (or None for a random color).
    batch_channels: channel name -> ``classifier(properties, ring_index)``.
    seed: with a seed, random colors and line noise repeat between runs;
        each feature of a collection draws from its own stream.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True, validate_assignment=True)

    altitude: Any = 0.0
    extrude: Any = None
    vertex_altitude: Optional[Callable[[dict, Any], float]] = None
    color: Any = None
    batch_channels: dict[str, Callable[..., int]] = Field(default_factory=dict)
    attributes: dict[str, CustomAttribute] = Field(default_factory=dict)
    index_width: Literal[16, 32] = 16
    line_duplicates: int = Field(default=0, ge=0)
    line_jitter: float = Field(default=0.0, ge=0)
    wall_uv: Callable[..., tuple[float, float]] = unit_wall_uv
    seed: Optional[int] = None

    @field_validator("altitude", "extrude", mode="before")
    @classmethod
    def validate_height(cls, v):
        return _normalize_height(v)

    @field_validator("color", mode="before")
    @classmethod
    def validate_color(cls, v):
        if v is None or callable(v):
            return v
        if isinstance(v, str):
            v = v.strip()
            if not re.match(r'^#[0-9A-Fa-f]{6}$', v):
                raise ValueError(f"Invalid hex color '{v}'. Must be #RRGGBB format.")
            return f"#{v[1:].upper()}"
        if not isinstance(v, (list, tuple, np.ndarray)):
            raise ValueError("Color must be an (r, g, b) sequence, a hex string or a callable")
        components = tuple(float(c) for c in v)
        if len(components) != 3:
            raise ValueError(f"Color must have 3 components, got {len(components)}")
        for c in components:
            if not 0.0 <= c <= 1.0:
                raise ValueError(f"Color component {c} outside [0, 1]")
        return components

    @property
    def index_ceiling(self) -> int:
        return INDEX_CEILINGS[self.index_width]

    @property
    def index_dtype(self) -> type:
        return np.uint16 if self.index_width == 16 else np.uint32

    @property
    def is_extruded(self) -> bool:
        if self.extrude is None:
            return False
        if isinstance(self.extrude, float):
            return self.extrude != 0.0
        return True
