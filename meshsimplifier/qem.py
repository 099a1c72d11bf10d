"""
Quadric Error Metrics (QEM) Implementation
==========================================

Vector helpers and symmetric quadric algebra used to score edge collapses
and compute optimal collapse positions.

A quadric for the plane ax + by + cz + d = 0 is the symmetric 4x4 matrix
Q = p * p^T with p = [a, b, c, d]^T. Only its 10 independent coefficients
are stored, in the order:

    [aa, ab, ac, ad, bb, bc, bd, cc, cd, dd]

Based on: "Surface Simplification Using Quadric Error Metrics"
by Michael Garland and Paul S. Heckbert (SIGGRAPH 1997)
"""

import numpy as np
from typing import Optional, Tuple
import warnings


QUADRIC_SIZE = 10

# Smallest vector length that can still be normalized
NORMALIZE_EPSILON = 1e-12

# Lower clamp for the barycentric denominator of sliver triangles
DENOM_EPSILON = 1e-8

# Matrices above this condition number are treated as singular
MAX_CONDITION_NUMBER = 1e10

# Upper-triangle positions of the 10 coefficients inside the 4x4 matrix
_ROWS = np.array([0, 0, 0, 0, 1, 1, 1, 2, 2, 3])
_COLS = np.array([0, 1, 2, 3, 1, 2, 3, 2, 3, 3])


def normalize(v: np.ndarray) -> np.ndarray:
    """Return v scaled to unit length, or a zero vector if v is (near) zero."""
    length = np.linalg.norm(v)
    if length < NORMALIZE_EPSILON:
        return np.zeros_like(v, dtype=np.float64)
    return v / length


def normalize_rows(v: np.ndarray) -> np.ndarray:
    """Row-wise version of normalize() for (N, K) arrays."""
    v = np.asarray(v, dtype=np.float64)
    lengths = np.linalg.norm(v, axis=1)
    out = np.zeros_like(v)
    ok = lengths >= NORMALIZE_EPSILON
    out[ok] = v[ok] / lengths[ok, None]
    return out


def quadric_from_plane(plane: np.ndarray) -> np.ndarray:
    """
    Build the fundamental quadric of one or more planes.

    Args:
        plane: [a, b, c, d] or an (M, 4) array of planes

    Returns:
        (10,) or (M, 10) array of quadric coefficients
    """
    plane = np.asarray(plane, dtype=np.float64)
    return plane[..., _ROWS] * plane[..., _COLS]


def quadric_to_matrix(q: np.ndarray) -> np.ndarray:
    """Expand 10 quadric coefficients into the full symmetric 4x4 matrix."""
    m = np.empty((4, 4))
    m[_ROWS, _COLS] = q
    m[_COLS, _ROWS] = q
    return m


def barycentric_coordinates(point: np.ndarray, a: np.ndarray,
                            b: np.ndarray, c: np.ndarray) -> np.ndarray:
    """
    Barycentric coordinates (u, v, w) of point with respect to triangle (a, b, c).

    The point is projected onto the triangle plane. For sliver triangles the
    denominator is clamped to DENOM_EPSILON so the result stays finite.
    """
    v0 = b - a
    v1 = c - a
    v2 = point - a
    d00 = np.dot(v0, v0)
    d01 = np.dot(v0, v1)
    d11 = np.dot(v1, v1)
    d20 = np.dot(v2, v0)
    d21 = np.dot(v2, v1)
    denom = d00 * d11 - d01 * d01
    if abs(denom) < DENOM_EPSILON:
        denom = DENOM_EPSILON

    v = (d11 * d20 - d01 * d21) / denom
    w = (d00 * d21 - d01 * d20) / denom
    return np.array([1.0 - v - w, v, w])


class QuadricErrorMetrics:
    """
    Implements Quadric Error Metrics for mesh simplification.

    The error of a point v = [x, y, z, 1]^T with respect to Q is:
    error(v) = v^T * Q * v

    When collapsing an edge (v1, v2) -> v_new, the combined quadric is:
    Q_new = Q1 + Q2
    """

    def __init__(self, boundary_weight: float = 10.0):
        """
        Initialize QEM calculator.

        Args:
            boundary_weight: Weight multiplier for boundary edge quadrics.
                            Higher values preserve boundaries better.
        """
        self.boundary_weight = boundary_weight

    def compute_face_plane(self, v0: np.ndarray, v1: np.ndarray, v2: np.ndarray) -> np.ndarray:
        """
        Compute the plane equation coefficients for a triangle face.

        The plane equation is: ax + by + cz + d = 0
        where [a, b, c] is the unit normal and d = -dot(normal, v0).
        A degenerate (zero-area) triangle yields the zero plane.

        Args:
            v0, v1, v2: Triangle vertices as 3D points

        Returns:
            Plane coefficients [a, b, c, d]
        """
        normal = normalize(np.cross(v1 - v0, v2 - v0))
        return np.array([normal[0], normal[1], normal[2], -np.dot(normal, v0)])

    def compute_face_planes(self, vertices: np.ndarray, faces: np.ndarray) -> np.ndarray:
        """Vectorized compute_face_plane() for an (M, 3) face array."""
        p0 = vertices[faces[:, 0]]
        p1 = vertices[faces[:, 1]]
        p2 = vertices[faces[:, 2]]
        normals = normalize_rows(np.cross(p1 - p0, p2 - p0))
        d = -np.einsum('ij,ij->i', normals, p0)
        return np.column_stack([normals, d])

    def compute_vertex_quadrics(self, vertices: np.ndarray, faces: np.ndarray,
                                boundary_edges: Optional[np.ndarray] = None,
                                boundary_faces: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Compute initial error quadrics for all vertices.

        For each vertex, the quadric is the sum of fundamental quadrics
        of all faces incident to that vertex.

        Args:
            vertices: (N, 3) array of vertex positions
            faces: (M, 3) array of face indices
            boundary_edges: Optional (E, 2) array of boundary edges
            boundary_faces: (E,) index of the face owning each boundary edge

        Returns:
            (N, 10) array of vertex quadrics
        """
        quadrics = np.zeros((len(vertices), QUADRIC_SIZE))
        if len(faces) == 0:
            return quadrics

        planes = self.compute_face_planes(vertices, faces)
        face_quadrics = quadric_from_plane(planes)
        for corner in range(3):
            np.add.at(quadrics, faces[:, corner], face_quadrics)

        if boundary_edges is not None and len(boundary_edges) > 0 and self.boundary_weight > 0:
            self._add_boundary_quadrics(vertices, boundary_edges, planes[boundary_faces, :3], quadrics)

        return quadrics

    def _add_boundary_quadrics(self, vertices: np.ndarray, boundary_edges: np.ndarray,
                               face_normals: np.ndarray, quadrics: np.ndarray):
        """
        Add weighted quadrics for boundary edges to preserve mesh boundaries.

        For each boundary edge, a plane perpendicular to the adjacent face and
        containing the edge penalizes moving its vertices off the border.
        """
        p0 = vertices[boundary_edges[:, 0]]
        p1 = vertices[boundary_edges[:, 1]]
        edge_dirs = normalize_rows(p1 - p0)

        # Plane normal is perpendicular to both edge and face normal
        plane_normals = normalize_rows(np.cross(edge_dirs, face_normals))
        midpoints = (p0 + p1) * 0.5
        d = -np.einsum('ij,ij->i', plane_normals, midpoints)

        planes = np.column_stack([plane_normals, d])
        edge_quadrics = quadric_from_plane(planes) * self.boundary_weight
        np.add.at(quadrics, boundary_edges[:, 0], edge_quadrics)
        np.add.at(quadrics, boundary_edges[:, 1], edge_quadrics)

    def compute_optimal_position(self, q: np.ndarray, v1: np.ndarray, v2: np.ndarray,
                                 solve: bool = True) -> Tuple[np.ndarray, float, bool]:
        """
        Compute the optimal position for an edge collapse.

        Tries to find the position that minimizes v^T * Q * v by solving:
        [Q[0:3, 0:3]  Q[0:3, 3] ] [x]   [0]
        [    0    0    0      1 ] [1] = [1]

        If the matrix is singular (or solving is disabled), falls back to the
        best of the endpoints and the midpoint. Ties prefer the midpoint, then
        the second endpoint.

        Args:
            q: Combined quadric coefficients
            v1, v2: Edge endpoint positions
            solve: Whether to attempt the linear solve at all

        Returns:
            Tuple of (position, error, solved)
        """
        if solve:
            A = quadric_to_matrix(q)
            A[3, :] = [0, 0, 0, 1]
            b = np.array([0.0, 0.0, 0.0, 1.0])

            try:
                with warnings.catch_warnings():
                    warnings.simplefilter("ignore")
                    cond = np.linalg.cond(A)
                    if np.isfinite(cond) and cond < MAX_CONDITION_NUMBER:
                        v_opt = np.linalg.solve(A, b)[:3]
                        return v_opt, self.compute_error(q, v_opt), True
            except np.linalg.LinAlgError:
                pass

        v3 = (v1 + v2) * 0.5
        e1 = self.compute_error(q, v1)
        e2 = self.compute_error(q, v2)
        e3 = self.compute_error(q, v3)

        if e1 < e2:
            if e1 < e3:
                return v1.copy(), e1, False
            return v3, e3, False
        if e2 < e3:
            return v2.copy(), e2, False
        return v3, e3, False

    def compute_error(self, q: np.ndarray, v: np.ndarray) -> float:
        """
        Compute the quadric error for a vertex position.

        error = v^T * Q * v where v is [x, y, z, 1]

        Args:
            q: Quadric coefficients
            v: 3D vertex position

        Returns:
            Quadric error value, clamped to be non-negative
        """
        x, y, z = v[0], v[1], v[2]
        error = (q[0] * x * x + 2 * q[1] * x * y + 2 * q[2] * x * z + 2 * q[3] * x
                 + q[4] * y * y + 2 * q[5] * y * z + 2 * q[6] * y
                 + q[7] * z * z + 2 * q[8] * z + q[9])
        return max(0.0, float(error))

    def compute_edge_collapse_error(self, q1: np.ndarray, q2: np.ndarray,
                                    v1: np.ndarray, v2: np.ndarray,
                                    solve: bool = True) -> Tuple[np.ndarray, float, bool]:
        """
        Compute the error and optimal position for collapsing edge (v1, v2).

        Args:
            q1, q2: Quadrics of the two edge vertices
            v1, v2: Positions of the two edge vertices
            solve: Whether the optimal position may be solved for

        Returns:
            Tuple of (position, error, solved)
        """
        return self.compute_optimal_position(q1 + q2, v1, v2, solve=solve)
