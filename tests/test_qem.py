"""Tests for the quadric kernel."""

import numpy as np
import pytest

from meshsimplifier.qem import (QuadricErrorMetrics, barycentric_coordinates, normalize,
                                normalize_rows, quadric_from_plane, quadric_to_matrix)


def plane_quadric(a, b, c, d):
    return quadric_from_plane(np.array([a, b, c, d], dtype=np.float64))


class TestVectorHelpers:
    """Tests for vector helpers."""

    def test_normalize_unit_length(self):
        v = normalize(np.array([3.0, 4.0, 0.0]))
        assert np.allclose(v, [0.6, 0.8, 0.0])

    def test_normalize_zero_vector(self):
        assert np.array_equal(normalize(np.zeros(3)), np.zeros(3))

    def test_normalize_rows_keeps_zero_rows(self):
        rows = normalize_rows(np.array([[0.0, 0.0, 2.0], [0.0, 0.0, 0.0]]))
        assert np.allclose(rows, [[0, 0, 1], [0, 0, 0]])


class TestQuadricAlgebra:
    """Tests for quadric algebra."""

    def test_quadric_matches_outer_product(self):
        p = np.array([0.2, -0.4, 0.8, 1.5])
        assert np.allclose(quadric_to_matrix(quadric_from_plane(p)), np.outer(p, p))

    def test_quadric_from_plane_batch(self):
        planes = np.array([[1.0, 0, 0, 0], [0, 0, 1.0, -1.0]])
        q = quadric_from_plane(planes)
        assert q.shape == (2, 10)
        assert np.allclose(q[1], plane_quadric(0, 0, 1, -1))

    def test_error_is_squared_plane_distance(self):
        qem = QuadricErrorMetrics()
        q = plane_quadric(0, 0, 1, -1)
        assert qem.compute_error(q, np.array([5.0, -2.0, 1.0])) == pytest.approx(0.0)
        assert qem.compute_error(q, np.array([0.0, 0.0, 3.0])) == pytest.approx(4.0)

    def test_error_never_negative(self):
        qem = QuadricErrorMetrics()
        q = -plane_quadric(0, 0, 1, 0)
        assert qem.compute_error(q, np.array([0.0, 0.0, 1.0])) == 0.0


class TestFacePlanes:
    """Tests for face planes."""

    def test_face_plane_of_xy_triangle(self):
        qem = QuadricErrorMetrics()
        plane = qem.compute_face_plane(np.array([0.0, 0, 1]), np.array([1.0, 0, 1]),
                                       np.array([0.0, 1, 1]))
        assert np.allclose(plane, [0, 0, 1, -1])

    def test_degenerate_face_gives_zero_plane(self):
        qem = QuadricErrorMetrics()
        p = np.array([1.0, 1.0, 1.0])
        assert np.allclose(qem.compute_face_plane(p, p, p), 0.0)

    def test_vectorized_planes_match_single(self):
        qem = QuadricErrorMetrics()
        vertices = np.array([[0.0, 0, 0], [1, 0, 0], [0, 1, 0], [0, 0, 1]])
        faces = np.array([[0, 1, 2], [0, 1, 3]])
        planes = qem.compute_face_planes(vertices, faces)
        for plane, face in zip(planes, faces):
            assert np.allclose(plane, qem.compute_face_plane(*vertices[face]))


class TestVertexQuadrics:
    """Tests for vertex quadrics."""

    def test_single_triangle_quadrics(self):
        qem = QuadricErrorMetrics()
        vertices = np.array([[0.0, 0, 0], [1, 0, 0], [0, 1, 0]])
        faces = np.array([[0, 1, 2]])
        quadrics = qem.compute_vertex_quadrics(vertices, faces)
        expected = plane_quadric(0, 0, 1, 0)
        for q in quadrics:
            assert np.allclose(q, expected)

    def test_unreferenced_vertex_has_zero_quadric(self):
        qem = QuadricErrorMetrics()
        vertices = np.array([[0.0, 0, 0], [1, 0, 0], [0, 1, 0], [5, 5, 5]])
        quadrics = qem.compute_vertex_quadrics(vertices, np.array([[0, 1, 2]]))
        assert np.allclose(quadrics[3], 0.0)

    def test_boundary_quadrics_penalize_leaving_the_border(self):
        vertices = np.array([[0.0, 0, 0], [1, 0, 0], [0, 1, 0]])
        faces = np.array([[0, 1, 2]])
        boundary_edges = np.array([[0, 1]])
        boundary_faces = np.array([0])

        plain = QuadricErrorMetrics(boundary_weight=0.0).compute_vertex_quadrics(
            vertices, faces, boundary_edges, boundary_faces)
        weighted = QuadricErrorMetrics(boundary_weight=10.0).compute_vertex_quadrics(
            vertices, faces, boundary_edges, boundary_faces)

        qem = QuadricErrorMetrics()
        # Moving vertex 0 away from the edge inside the face plane
        off_border = np.array([0.0, 0.5, 0.0])
        along_border = np.array([0.5, 0.0, 0.0])
        assert qem.compute_error(plain[0], off_border) == pytest.approx(0.0)
        assert qem.compute_error(weighted[0], off_border) == pytest.approx(10.0 * 0.25)
        assert qem.compute_error(weighted[0], along_border) == pytest.approx(0.0)


class TestOptimalPosition:
    """Tests for optimal position."""

    def test_solves_plane_intersection(self):
        qem = QuadricErrorMetrics()
        q = plane_quadric(1, 0, 0, -1) + plane_quadric(0, 1, 0, -2) + plane_quadric(0, 0, 1, -3)
        p, error, solved = qem.compute_optimal_position(q, np.zeros(3), np.ones(3))
        assert solved
        assert np.allclose(p, [1, 2, 3])
        assert error == pytest.approx(0.0, abs=1e-12)

    def test_singular_tie_prefers_midpoint(self):
        qem = QuadricErrorMetrics()
        q = plane_quadric(0, 0, 1, 0)
        p, error, solved = qem.compute_optimal_position(
            q, np.array([0.0, 0, 0]), np.array([1.0, 0, 0]))
        assert not solved
        assert np.allclose(p, [0.5, 0, 0])
        assert error == pytest.approx(0.0)

    def test_fallback_picks_cheapest_first_endpoint(self):
        qem = QuadricErrorMetrics()
        q = plane_quadric(0, 0, 1, 0)
        p, error, solved = qem.compute_optimal_position(
            q, np.array([0.0, 0, 0]), np.array([0.0, 0, 2]), solve=False)
        assert not solved
        assert np.allclose(p, [0, 0, 0])
        assert error == pytest.approx(0.0)

    def test_fallback_picks_cheapest_second_endpoint(self):
        qem = QuadricErrorMetrics()
        q = plane_quadric(0, 0, 1, 0)
        p, error, _ = qem.compute_optimal_position(
            q, np.array([0.0, 0, 2]), np.array([0.0, 0, 0]), solve=False)
        assert np.allclose(p, [0, 0, 0])
        assert error == pytest.approx(0.0)

    def test_fallback_midpoint_between_equal_endpoints(self):
        qem = QuadricErrorMetrics()
        q = plane_quadric(0, 0, 1, 0)
        p, error, _ = qem.compute_optimal_position(
            q, np.array([0.0, 0, 1]), np.array([0.0, 0, -1]), solve=False)
        assert np.allclose(p, [0, 0, 0])
        assert error == pytest.approx(0.0)

    def test_edge_collapse_error_sums_quadrics(self):
        qem = QuadricErrorMetrics()
        q1 = plane_quadric(1, 0, 0, -1) + plane_quadric(0, 1, 0, -2)
        q2 = plane_quadric(0, 0, 1, -3)
        p, _, solved = qem.compute_edge_collapse_error(q1, q2, np.zeros(3), np.ones(3))
        assert solved
        assert np.allclose(p, [1, 2, 3])


class TestBarycentric:
    """Tests for barycentric."""

    def setup_method(self):
        self.a = np.array([0.0, 0, 0])
        self.b = np.array([1.0, 0, 0])
        self.c = np.array([0.0, 1, 0])

    def test_corners(self):
        assert np.allclose(barycentric_coordinates(self.a, self.a, self.b, self.c), [1, 0, 0])
        assert np.allclose(barycentric_coordinates(self.b, self.a, self.b, self.c), [0, 1, 0])
        assert np.allclose(barycentric_coordinates(self.c, self.a, self.b, self.c), [0, 0, 1])

    def test_centroid(self):
        centroid = (self.a + self.b + self.c) / 3
        assert np.allclose(barycentric_coordinates(centroid, self.a, self.b, self.c), [1 / 3] * 3)

    def test_point_is_projected_onto_plane(self):
        point = np.array([0.5, 0.0, 4.0])
        assert np.allclose(barycentric_coordinates(point, self.a, self.b, self.c), [0.5, 0.5, 0])

    def test_degenerate_triangle_stays_finite(self):
        bary = barycentric_coordinates(self.b, self.a, self.a, self.a)
        assert np.all(np.isfinite(bary))
