"""Pydantic return models for the mesh builders."""

import math
from typing import Any, Iterator, Literal, Optional, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Diagnostic(BaseModel):
    """A non-fatal problem encountered while building a feature."""
    level: Literal["warning", "error"] = "warning"
    code: str
    message: str
    feature_id: Optional[Any] = None


class MeshBuffer(BaseModel):
    """Flat per-vertex buffers for one renderable primitive set."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str = ""
    kind: Literal["points", "line", "line_segments", "triangles"]
    positions: np.ndarray
    colors: Optional[np.ndarray] = None
    batch_channels: dict[str, np.ndarray] = Field(default_factory=dict)
    indices: Optional[np.ndarray] = None
    uvs: Optional[np.ndarray] = None
    attributes: dict[str, np.ndarray] = Field(default_factory=dict)
    min_altitude: float = math.inf
    diagnostics: list[Diagnostic] = Field(default_factory=list)
    feature: Optional[Any] = Field(default=None, exclude=True, repr=False)
    feature_type: str = ""

    @field_validator("positions")
    @classmethod
    def positions_must_be_triples(cls, v: np.ndarray) -> np.ndarray:
        if v.ndim != 1 or len(v) % 3 != 0:
            raise ValueError(f"positions must be a flat array of XYZ triples, got shape {v.shape}")
        return v

    @model_validator(mode="after")
    def per_vertex_arrays_must_match(self) -> "MeshBuffer":
        n_verts = self.vertex_count
        if self.colors is not None and len(self.colors) != n_verts * 3:
            raise ValueError(
                f"colors has {len(self.colors)} components but {n_verts} vertices exist"
            )
        if self.uvs is not None and len(self.uvs) != n_verts * 2:
            raise ValueError(f"uvs has {len(self.uvs)} components but {n_verts} vertices exist")
        for name, arr in {**self.batch_channels, **self.attributes}.items():
            if len(arr) != n_verts:
                raise ValueError(
                    f"Attribute '{name}' has {len(arr)} entries but {n_verts} vertices exist"
                )
        return self

    @model_validator(mode="after")
    def indices_must_be_valid(self) -> "MeshBuffer":
        if self.indices is None or len(self.indices) == 0:
            return self
        if int(self.indices.max()) >= self.vertex_count:
            raise ValueError(
                f"Index {int(self.indices.max())} references a vertex but only "
                f"{self.vertex_count} vertices exist"
            )
        return self

    @property
    def vertex_count(self) -> int:
        return len(self.positions) // 3

    @property
    def triangle_count(self) -> int:
        if self.kind != "triangles":
            return 0
        if self.indices is not None:
            return len(self.indices) // 3
        return self.vertex_count // 3


class MeshGroup(BaseModel):
    """A composite of meshes: the parts of one extrusion, or a whole collection."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str = ""
    children: list[Union["MeshBuffer", "MeshGroup"]] = Field(default_factory=list)
    min_altitude: float = math.inf
    attributes: dict[str, np.ndarray] = Field(default_factory=dict)
    diagnostics: list[Diagnostic] = Field(default_factory=list)
    feature: Optional[Any] = Field(default=None, exclude=True, repr=False)
    feature_type: str = ""

    def child(self, name: str) -> Optional[Union["MeshBuffer", "MeshGroup"]]:
        for c in self.children:
            if c.name == name:
                return c
        return None

    @property
    def roof(self) -> Optional[MeshBuffer]:
        return self.child("roof")

    @property
    def walls(self) -> Optional[MeshBuffer]:
        return self.child("walls")

    @property
    def edges(self) -> Optional[MeshBuffer]:
        return self.child("edges")

    def add(self, mesh: Union["MeshBuffer", "MeshGroup"]) -> None:
        self.children.append(mesh)
        self.min_altitude = min(self.min_altitude, mesh.min_altitude)

    def meshes(self) -> Iterator[MeshBuffer]:
        """Iterate over every leaf buffer, depth first."""
        for c in self.children:
            if isinstance(c, MeshGroup):
                yield from c.meshes()
            else:
                yield c


MeshGroup.model_rebuild()
