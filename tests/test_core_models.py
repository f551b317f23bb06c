"""Tests for mesh result Pydantic models."""
import math

import numpy as np
import pytest
from pydantic import ValidationError


def _buffer(n_verts=3, **kwargs):
    from feature_mesh.core.models import MeshBuffer
    kwargs.setdefault("kind", "triangles")
    return MeshBuffer(positions=np.zeros(n_verts * 3, dtype=np.float32), **kwargs)


class TestMeshBuffer:
    def test_valid_triangles(self):
        mesh = _buffer(4, indices=np.array([0, 1, 2, 0, 2, 3], dtype=np.uint16))
        assert mesh.vertex_count == 4
        assert mesh.triangle_count == 2
        assert mesh.min_altitude == math.inf

    def test_unindexed_triangles(self):
        assert _buffer(6).triangle_count == 2

    def test_points_have_no_triangles(self):
        assert _buffer(6, kind="points").triangle_count == 0

    def test_positions_not_triples(self):
        from feature_mesh.core.models import MeshBuffer
        with pytest.raises(ValidationError):
            MeshBuffer(kind="points", positions=np.zeros(4))

    def test_positions_must_be_flat(self):
        from feature_mesh.core.models import MeshBuffer
        with pytest.raises(ValidationError):
            MeshBuffer(kind="points", positions=np.zeros((2, 3)))

    def test_index_out_of_range(self):
        with pytest.raises(ValidationError):
            _buffer(3, indices=np.array([0, 1, 3]))

    def test_color_length_mismatch(self):
        with pytest.raises(ValidationError):
            _buffer(3, colors=np.zeros(6, dtype=np.uint8))

    def test_uv_length_mismatch(self):
        with pytest.raises(ValidationError):
            _buffer(3, uvs=np.zeros(4))

    def test_batch_channel_length_mismatch(self):
        with pytest.raises(ValidationError):
            _buffer(3, batch_channels={"batchId": np.zeros(2, dtype=np.uint32)})

    def test_attribute_length_mismatch(self):
        with pytest.raises(ValidationError):
            _buffer(3, attributes={"zbottom": np.zeros(4)})

    def test_unknown_kind(self):
        with pytest.raises(ValidationError):
            _buffer(3, kind="quads")


class TestMeshGroup:
    def test_add_tracks_minimum(self):
        from feature_mesh.core.models import MeshGroup
        group = MeshGroup()
        group.add(_buffer(min_altitude=5.0))
        group.add(_buffer(min_altitude=-2.0))
        assert group.min_altitude == -2.0

    def test_named_children(self):
        from feature_mesh.core.models import MeshGroup
        group = MeshGroup(children=[_buffer(name="walls"), _buffer(name="roof")])
        assert group.walls.name == "walls"
        assert group.roof.name == "roof"
        assert group.edges is None

    def test_nested_leaves(self):
        from feature_mesh.core.models import MeshGroup
        inner = MeshGroup(children=[_buffer(name="a"), _buffer(name="b")])
        outer = MeshGroup(children=[inner, _buffer(name="c")])
        assert [m.name for m in outer.meshes()] == ["a", "b", "c"]


class TestDiagnostic:
    def test_defaults_to_warning(self):
        from feature_mesh.core.models import Diagnostic
        d = Diagnostic(code="index_overflow", message="too many points")
        assert d.level == "warning"

    def test_invalid_level(self):
        from feature_mesh.core.models import Diagnostic
        with pytest.raises(ValidationError):
            Diagnostic(level="info", code="x", message="y")
