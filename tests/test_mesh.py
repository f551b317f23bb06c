"""Tests for point, line and flat polygon mesh generation."""

import logging

import numpy as np
import pytest

from feature_mesh.core.mesh import build_lines, build_points, build_polygons
from feature_mesh.models import Feature, IndexSpan, Ring
from feature_mesh.options import BuildOptions

UP = [0.0, 0.0, 1.0]


def make_feature(points, rings, kind="polygon", properties=None):
    """Feature with upward normals; ``rings`` is a list of span lists [(offset, count), ...]."""
    properties = properties or [{} for _ in rings]
    return Feature(
        vertices=np.array(points, dtype=np.float64).reshape(-1),
        normals=np.tile(UP, len(points)),
        geometry=[
            Ring(properties=props, indices=[IndexSpan(offset=o, count=c) for o, c in spans])
            for spans, props in zip(rings, properties)
        ],
        type=kind,
    )


SQUARE = [[0, 0, 0], [10, 0, 0], [10, 10, 0], [0, 10, 0]]


class TestBuildPoints:
    def test_one_point_per_vertex(self):
        feature = make_feature([[0, 0, 0], [1, 0, 0], [2, 0, 0]], [[(0, 3)]], "point")
        mesh = build_points(feature, BuildOptions(altitude=10.0))
        assert mesh.kind == "points"
        assert len(mesh.positions) == len(feature.vertices)
        np.testing.assert_allclose(mesh.positions.reshape(-1, 3)[:, 2], [10, 10, 10])
        assert mesh.min_altitude == pytest.approx(10.0)
        assert mesh.indices is None

    def test_colors_and_batch_ids_per_ring(self):
        feature = make_feature(
            [[0, 0, 0], [1, 0, 0], [2, 0, 0]], [[(0, 1)], [(1, 2)]], "point",
        )
        options = BuildOptions(color=(1.0, 0.0, 0.0), batch_channels={"batchId": lambda p, i: i})
        mesh = build_points(feature, options)
        assert mesh.colors.tolist() == [255, 0, 0] * 3
        assert mesh.batch_channels["batchId"].tolist() == [0, 1, 1]

    def test_vertex_altitude_sees_coordinates_and_properties(self):
        feature = make_feature(
            [[3, 0, 0], [5, 0, 0]], [[(0, 2)]], "point", properties=[{"scale": 2}],
        )
        options = BuildOptions(vertex_altitude=lambda props, coord: coord.x * props["scale"])
        mesh = build_points(feature, options)
        np.testing.assert_allclose(mesh.positions.reshape(-1, 3)[:, 2], [6, 10])
        assert mesh.min_altitude == pytest.approx(6.0)

    def test_callable_altitude_is_per_ring(self):
        """A callable ``altitude`` takes only the ring properties, like every other builder."""
        feature = make_feature(
            [[0, 0, 0], [1, 0, 0], [2, 0, 0]], [[(0, 1)], [(1, 2)]], "point",
            properties=[{"h": 4}, {"h": 9}],
        )
        mesh = build_points(feature, BuildOptions(altitude=lambda props: props["h"]))
        np.testing.assert_allclose(mesh.positions.reshape(-1, 3)[:, 2], [4, 9, 9])

    def test_vertices_outside_rings_are_draped(self):
        """Every vertex becomes a draped point, even if no ring span covers it."""
        feature = make_feature([[5, 5, 0], [6, 6, 0], [7, 7, 0]], [[(0, 1)]], "point")
        mesh = build_points(feature, BuildOptions(altitude=10.0, color=(1.0, 0.0, 0.0)))
        pts = mesh.positions.reshape(-1, 3)
        np.testing.assert_allclose(pts, [[5, 5, 10], [6, 6, 10], [7, 7, 10]])
        assert mesh.min_altitude == pytest.approx(10.0)
        assert mesh.colors.tolist() == [255, 0, 0] + [0, 0, 0] * 2

    def test_gap_between_rings_is_draped(self):
        feature = make_feature(
            [[0, 0, 0], [1, 0, 0], [2, 0, 0], [3, 0, 0]], [[(0, 1)], [(3, 1)]], "point",
        )
        mesh = build_points(feature, BuildOptions(altitude=[1.0, 2.0, 3.0, 4.0]))
        np.testing.assert_allclose(mesh.positions.reshape(-1, 3)[:, 2], [1, 2, 3, 4])
        assert mesh.min_altitude == pytest.approx(1.0)

    def test_per_vertex_altitude_array(self):
        feature = make_feature(
            [[0, 0, 0], [1, 0, 0], [2, 0, 0]], [[(0, 1)], [(1, 2)]], "point",
        )
        mesh = build_points(feature, BuildOptions(altitude=[1.0, 2.0, 3.0]))
        np.testing.assert_allclose(mesh.positions.reshape(-1, 3)[:, 2], [1, 2, 3])

    def test_seeded_colors_are_stable(self):
        feature = make_feature([[0, 0, 0], [1, 0, 0]], [[(0, 2)]], "point")
        a = build_points(feature, BuildOptions(seed=7))
        b = build_points(feature, BuildOptions(seed=7))
        np.testing.assert_array_equal(a.colors, b.colors)

    def test_seeded_colors_differ_between_features(self):
        feature = make_feature([[0, 0, 0], [1, 0, 0]], [[(0, 2)]], "point")
        options = BuildOptions(seed=7)
        first = build_points(feature, options, feature_index=0)
        second = build_points(feature, options, feature_index=1)
        assert first.colors.tolist() != second.colors.tolist()


class TestBuildLines:
    def test_single_ring_polyline(self):
        feature = make_feature([[0, 0, 0], [1, 0, 0], [2, 1, 0]], [[(0, 3)]], "line")
        options = BuildOptions(altitude=1.0, batch_channels={"batchId": lambda p, i: 9})
        mesh = build_lines(feature, options)
        assert mesh.kind == "line"
        assert len(mesh.positions) == len(feature.vertices)
        assert mesh.batch_channels["batchId"].tolist() == [9, 9, 9]
        assert mesh.min_altitude == pytest.approx(1.0)

    def test_multi_line_emits_duplicated_segments(self):
        """2 rings of 3 points -> (3-1)*2 = 4 segment vertices per ring."""
        points = [[0, 0, 0], [1, 0, 0], [2, 0, 0], [0, 5, 0], [1, 5, 0], [2, 5, 0]]
        feature = make_feature(points, [[(0, 3)], [(3, 3)]], "line")
        options = BuildOptions(batch_channels={"batchId": lambda p, i: i})
        mesh = build_lines(feature, options)

        assert mesh.kind == "line_segments"
        assert mesh.indices is None
        assert mesh.vertex_count == 8
        pts = mesh.positions.reshape(-1, 3)
        np.testing.assert_allclose(pts[0], [0, 0, 0])
        np.testing.assert_allclose(pts[1], [1, 0, 0])
        np.testing.assert_allclose(pts[2], [1, 0, 0])
        np.testing.assert_allclose(pts[3], [2, 0, 0])
        assert mesh.batch_channels["batchId"].tolist() == [0] * 4 + [1] * 4
        assert len(mesh.colors) == 8 * 3

    def test_speed_per_segment_endpoint(self):
        points = [[0, 0, 0], [1, 0, 0], [2, 0, 0], [0, 5, 0], [1, 5, 0], [2, 5, 0]]
        feature = make_feature(points, [[(0, 3)], [(3, 3)]], "line")
        mesh = build_lines(feature, BuildOptions(seed=1))
        speed = mesh.attributes["speed"]
        assert len(speed) == 8
        assert ((speed >= 0) & (speed < 1)).all()

    def test_duplicates_with_jitter(self):
        points = [[0, 0, 0], [1, 0, 0], [0, 5, 0], [1, 5, 0]]
        feature = make_feature(points, [[(0, 2)], [(2, 2)]], "line")
        mesh = build_lines(feature, BuildOptions(line_duplicates=2, line_jitter=0.5, seed=3))
        # 1 segment per ring, 3 copies each
        assert mesh.vertex_count == 2 * 3 * 2
        pts = mesh.positions.reshape(-1, 3)
        np.testing.assert_allclose(pts[0], [0, 0, 0])
        assert np.all(np.abs(pts[2] - [0, 0, 0]) <= 0.5)

    def test_index_overflow_stops_remaining_rings(self, caplog):
        """A ring starting at 65536 and every later ring are dropped with a warning."""
        n = 65539
        points = np.zeros((n, 3))
        points[:, 0] = np.arange(n)
        feature = make_feature(points, [[(0, 3)], [(65536, 3)], [(3, 3)]], "line")
        with caplog.at_level(logging.WARNING):
            mesh = build_lines(feature, BuildOptions())
        assert mesh.vertex_count == 4
        assert "integer overflow" in caplog.text
        assert [d.code for d in mesh.diagnostics] == ["index_overflow"]

    def test_wide_indices_lift_the_ceiling(self):
        n = 65539
        points = np.zeros((n, 3))
        feature = make_feature(points, [[(0, 3)], [(65536, 3)], [(3, 3)]], "line")
        mesh = build_lines(feature, BuildOptions(index_width=32))
        assert mesh.vertex_count == 12
        assert mesh.diagnostics == []


class TestBuildPolygons:
    def test_square(self):
        feature = make_feature(SQUARE, [[(0, 4)]])
        mesh = build_polygons(feature, BuildOptions(altitude=3.0))
        assert mesh.kind == "triangles"
        assert len(mesh.positions) == len(feature.vertices)
        assert len(mesh.indices) == 6
        assert mesh.indices.max() < len(mesh.positions) // 3
        assert mesh.indices.dtype == np.uint16
        np.testing.assert_allclose(mesh.positions.reshape(-1, 3)[:, 2], [3, 3, 3, 3])
        assert mesh.min_altitude == pytest.approx(3.0)

    def test_hole(self):
        hole = [[3, 3, 0], [3, 7, 0], [7, 7, 0], [7, 3, 0]]
        feature = make_feature(SQUARE + hole, [[(0, 4), (4, 4)]])
        mesh = build_polygons(feature, BuildOptions())
        assert mesh.triangle_count > 2

    def test_rings_are_offset_globally(self):
        second = [[20, 0, 0], [30, 0, 0], [30, 10, 0], [20, 10, 0]]
        feature = make_feature(SQUARE + second, [[(0, 4)], [(4, 4)]])
        options = BuildOptions(batch_channels={"batchId": lambda p, i: i + 1})
        mesh = build_polygons(feature, options)
        assert len(mesh.indices) == 12
        assert set(mesh.indices[:6].tolist()) <= {0, 1, 2, 3}
        assert set(mesh.indices[6:].tolist()) <= {4, 5, 6, 7}
        assert mesh.batch_channels["batchId"].tolist() == [1] * 4 + [2] * 4

    def test_altitude_per_ring_with_fallback(self):
        second = [[20, 0, 0], [30, 0, 0], [30, 10, 0], [20, 10, 0]]
        feature = make_feature(
            SQUARE + second, [[(0, 4)], [(4, 4)]], properties=[{"h": 5}, {}],
        )
        mesh = build_polygons(feature, BuildOptions(altitude=lambda p: p.get("h")))
        z = mesh.positions.reshape(-1, 3)[:, 2]
        np.testing.assert_allclose(z, [5] * 4 + [0] * 4)
        assert mesh.min_altitude == pytest.approx(0.0)

    def test_vertex_altitude(self):
        feature = make_feature(SQUARE, [[(0, 4)]], properties=[{"k": 0.5}])
        options = BuildOptions(vertex_altitude=lambda props, coord: coord.x * props["k"])
        mesh = build_polygons(feature, options)
        np.testing.assert_allclose(mesh.positions.reshape(-1, 3)[:, 2], [0, 5, 5, 0])
        assert mesh.min_altitude == pytest.approx(0.0)

    def test_black_color_override(self):
        feature = make_feature(SQUARE, [[(0, 4)]])
        mesh = build_polygons(feature, BuildOptions(color=lambda p: (0, 0, 0)))
        assert not mesh.colors.any()

    def test_hex_color(self):
        feature = make_feature(SQUARE, [[(0, 4)]])
        mesh = build_polygons(feature, BuildOptions(color="#00ff00"))
        assert mesh.colors.tolist() == [0, 255, 0] * 4

    def test_index_overflow(self, caplog):
        n = 65540
        points = np.zeros((n, 3))
        points[:4] = SQUARE
        feature = make_feature(points, [[(0, 4)], [(65536, 4)]])
        with caplog.at_level(logging.WARNING):
            mesh = build_polygons(feature, BuildOptions())
        assert len(mesh.indices) == 6
        assert "Feature to Polygon" in caplog.text
        assert mesh.diagnostics[0].code == "index_overflow"

    def test_wide_index_dtype(self):
        feature = make_feature(SQUARE, [[(0, 4)]])
        mesh = build_polygons(feature, BuildOptions(index_width=32))
        assert mesh.indices.dtype == np.uint32

    def test_degenerate_ring_is_not_an_error(self):
        feature = make_feature([[0, 0, 0], [1, 0, 0], [2, 0, 0]], [[(0, 3)]])
        mesh = build_polygons(feature, BuildOptions())
        assert len(mesh.indices) % 3 == 0
