"""Exceptions raised while turning features into meshes."""


class MeshBuildError(ValueError):
    """Base class for failures that make a single feature unbuildable."""


class InvalidFeature(MeshBuildError):
    """The feature's buffers or ring spans violate the input invariants."""


class UnsupportedGeometryKind(MeshBuildError):
    """The feature's type has no mesh builder."""
