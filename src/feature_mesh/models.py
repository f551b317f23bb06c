"""Pydantic domain models for decoded vector features."""

from enum import Enum
from typing import Any, Optional

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator


class GeometryKind(str, Enum):
    POINT = "point"
    LINE = "line"
    POLYGON = "polygon"


class Coordinates(BaseModel):
    """A single position tagged with the CRS of the buffer it was read from."""
    model_config = ConfigDict(frozen=True)

    crs: str
    x: float
    y: float
    z: float = 0.0


class IndexSpan(BaseModel):
    offset: int = Field(ge=0)
    count: int = Field(ge=0)

    @property
    def end(self) -> int:
        return self.offset + self.count


class Ring(BaseModel):
    """One contour of a feature: an outer boundary, a hole, or one part of a multi-line."""
    properties: dict = Field(default_factory=dict)
    indices: list[IndexSpan] = Field(default_factory=list)

    @property
    def start(self) -> int:
        return self.indices[0].offset

    @property
    def end(self) -> int:
        return self.indices[-1].end

    @property
    def count(self) -> int:
        return self.end - self.start

    @property
    def hole_offsets(self) -> list[int]:
        """Offsets of the hole spans, relative to the start of the outer boundary."""
        return [span.offset - self.start for span in self.indices[1:]]


class Feature(BaseModel):
    """A decoded feature with flattened XYZ vertices and per-vertex drape normals."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    vertices: np.ndarray
    normals: np.ndarray
    geometry: list[Ring] = Field(default_factory=list)
    type: str = GeometryKind.POLYGON.value
    crs: str = "EPSG:4978"
    id: Optional[Any] = None

    @field_validator("vertices", "normals", mode="before")
    @classmethod
    def to_flat_float_array(cls, v) -> np.ndarray:
        arr = np.asarray(v, dtype=np.float64)
        return arr.reshape(-1)

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v) -> str:
        if isinstance(v, GeometryKind):
            return v.value
        if not isinstance(v, str):
            raise ValueError("Feature type must be a string")
        return v.strip().lower()

    @property
    def vertex_count(self) -> int:
        return len(self.vertices) // 3
