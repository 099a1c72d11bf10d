"""
Mesh Topology
=============

Working topology of a mesh under simplification: triangle records with
separate position and attribute vertex indices, per-vertex reference
lists, border/seam/foldover/locked flags and error quadrics.
"""

import numpy as np
from dataclasses import dataclass, field
from typing import List, Tuple

from scipy.spatial import cKDTree

from .attributes import VertexAttributes
from .qem import QuadricErrorMetrics, normalize


@dataclass
class Triangle:
    """
    A triangle of the working mesh.

    ``v`` holds the position-vertex indices, ``va`` the attribute-vertex
    indices (they differ once a seam has been linked). ``err`` holds the
    collapse errors of the edges (v0,v1), (v1,v2), (v2,v0) followed by
    their minimum. ``version`` is bumped every time the errors are
    recomputed so stale queue entries can be recognized.
    """
    index: int
    v: List[int]
    va: List[int]
    submesh: int
    err: List[float] = field(default_factory=lambda: [0.0, 0.0, 0.0, 0.0])
    normal: np.ndarray = field(default_factory=lambda: np.zeros(3))
    deleted: bool = False
    version: int = 0


# A reference is (triangle index, corner of the vertex inside the triangle)
Ref = Tuple[int, int]


class MeshTopology:
    """
    Triangles, vertex adjacency and vertex flags of the mesh being simplified.

    Attribute-vertex indices and position-vertex indices share the same
    index space; smart linking only rewrites position indices.
    """

    def __init__(self, positions: np.ndarray, faces: np.ndarray, submesh_ids: np.ndarray,
                 locked: np.ndarray, qem: QuadricErrorMetrics):
        """
        Args:
            positions: (N, 3) vertex positions
            faces: (M, 3) triangle indices
            submesh_ids: (M,) owning submesh of each triangle
            locked: (N,) vertices that must never be collapsed
            qem: Quadric calculator used to initialize vertex quadrics
        """
        self.qem = qem
        self.positions = np.array(positions, dtype=np.float64, copy=True)
        self.vertex_count = len(self.positions)

        self.triangles: List[Triangle] = []
        for tid, (face, submesh) in enumerate(zip(faces.tolist(), submesh_ids.tolist())):
            triangle = Triangle(index=tid, v=list(face), va=list(face), submesh=submesh)
            # Triangles with repeated corners have no area to preserve
            triangle.deleted = len(set(face)) < 3
            self.triangles.append(triangle)

        self.refs: List[List[Ref]] = [[] for _ in range(self.vertex_count)]
        self.quadrics = np.zeros((self.vertex_count, 10))
        self.border = np.zeros(self.vertex_count, dtype=bool)
        self.seam = np.zeros(self.vertex_count, dtype=bool)
        self.foldover = np.zeros(self.vertex_count, dtype=bool)
        self.locked = np.array(locked, dtype=bool, copy=True)

    def live_faces(self) -> Tuple[np.ndarray, np.ndarray]:
        """Position indices and triangle ids of all non-deleted triangles."""
        live = [t for t in self.triangles if not t.deleted]
        if not live:
            return np.zeros((0, 3), dtype=np.int64), np.zeros(0, dtype=np.int64)
        faces = np.array([t.v for t in live], dtype=np.int64)
        tids = np.array([t.index for t in live], dtype=np.int64)
        return faces, tids

    def update_references(self):
        """Rebuild the vertex -> (triangle, corner) reference lists."""
        self.refs = [[] for _ in range(self.vertex_count)]
        for t in self.triangles:
            if t.deleted:
                continue
            for corner in range(3):
                self.refs[t.v[corner]].append((t.index, corner))

    def find_border_edges(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Find all boundary edges (edges used by exactly one live triangle).

        Returns:
            Tuple of ((E, 2) edges, (E,) owning triangle ids)
        """
        faces, tids = self.live_faces()
        if len(faces) == 0:
            return np.zeros((0, 2), dtype=np.int64), np.zeros(0, dtype=np.int64)

        edges = np.concatenate([faces[:, [0, 1]], faces[:, [1, 2]], faces[:, [2, 0]]])
        owners = np.concatenate([tids, tids, tids])
        keys = np.sort(edges, axis=1)
        _, inverse, counts = np.unique(keys, axis=0, return_inverse=True, return_counts=True)
        single = counts[inverse.reshape(-1)] == 1
        return edges[single], owners[single]

    def build(self, attributes: VertexAttributes, enable_smart_link: bool,
              vertex_link_distance: float):
        """
        Build references, detect borders, optionally link coincident border
        vertices and initialize quadrics, triangle normals and edge errors.
        """
        self.update_references()

        border_edges, _ = self.find_border_edges()
        self.border[:] = False
        self.seam[:] = False
        self.foldover[:] = False
        self.border[np.unique(border_edges)] = True

        if enable_smart_link:
            self._smart_link(attributes, vertex_link_distance)
            self.update_references()

        self._init_quadrics()

    def _smart_link(self, attributes: VertexAttributes, vertex_link_distance: float):
        """
        Bind border vertices closer than vertex_link_distance together.

        The linked vertex keeps its attributes but all triangles use the
        position of the vertex it was linked to. Linked pairs are flagged as
        UV foldovers when their first UV channel matches, seams otherwise.
        """
        border_vertices = np.flatnonzero(self.border)
        if len(border_vertices) < 2:
            return

        tree = cKDTree(self.positions[border_vertices])
        pairs = tree.query_pairs(r=vertex_link_distance, output_type='ndarray')
        if len(pairs) == 0:
            return

        partners = {}
        for a, b in np.sort(border_vertices[pairs], axis=1).tolist():
            partners.setdefault(a, []).append(b)

        consumed = set()
        for my_index in sorted(partners):
            if my_index in consumed:
                continue
            for other_index in sorted(partners[my_index]):
                if other_index in consumed:
                    continue
                consumed.add(other_index)

                self.border[my_index] = False
                self.border[other_index] = False
                if attributes.are_uvs_the_same(0, my_index, other_index):
                    self.foldover[my_index] = True
                    self.foldover[other_index] = True
                else:
                    self.seam[my_index] = True
                    self.seam[other_index] = True

                if self.locked[other_index] or self.locked[my_index]:
                    self.locked[my_index] = True
                    self.locked[other_index] = True

                for tid, corner in self.refs[other_index]:
                    self.triangles[tid].v[corner] = my_index
                self.refs[my_index].extend(self.refs[other_index])
                self.refs[other_index] = []

        for t in self.triangles:
            if not t.deleted and len(set(t.v)) < 3:
                t.deleted = True

    def _init_quadrics(self):
        """Initialize vertex quadrics from face planes and triangle normals."""
        faces, tids = self.live_faces()
        border_edges, border_tids = self.find_border_edges()

        tid_to_row = np.full(len(self.triangles), -1, dtype=np.int64)
        tid_to_row[tids] = np.arange(len(tids))
        self.quadrics = self.qem.compute_vertex_quadrics(
            self.positions, faces, border_edges, tid_to_row[border_tids])

        if len(faces) > 0:
            planes = self.qem.compute_face_planes(self.positions, faces)
            for row, tid in enumerate(tids.tolist()):
                self.triangles[tid].normal = planes[row, :3].copy()

    def triangles_of_vertex(self, vertex: int) -> List[Triangle]:
        return [self.triangles[tid] for tid, _ in self.refs[vertex]
                if not self.triangles[tid].deleted]

    def curvature_error(self, i0: int, i1: int) -> float:
        """
        Discrete curvature penalty for collapsing (i0, i1): the edge length
        scaled by the highest normal agreement between any triangle touching
        either vertex and any triangle touching both.
        """
        length = float(np.linalg.norm(self.positions[i0] - self.positions[i1]))

        either = {t.index: t for t in self.triangles_of_vertex(i0)}
        either.update((t.index, t) for t in self.triangles_of_vertex(i1))
        both = [t for t in either.values() if i0 in t.v and i1 in t.v]

        max_dot = 0.0
        for t1 in either.values():
            for t2 in both:
                dot = float(np.dot(t1.normal, t2.normal))
                if dot > max_dot:
                    max_dot = dot
        return length * max_dot

    def is_collapse_allowed(self, i0: int, i1: int, preserve_border: bool,
                            preserve_seam: bool, preserve_foldover: bool) -> bool:
        """
        Static checks on an edge: both vertices must agree on their border,
        seam and foldover flags, none may be locked, and preserved features
        are never collapsed.
        """
        if self.locked[i0] or self.locked[i1]:
            return False
        if self.border[i0] != self.border[i1]:
            return False
        if self.seam[i0] != self.seam[i1]:
            return False
        if self.foldover[i0] != self.foldover[i1]:
            return False
        if preserve_border and self.border[i0]:
            return False
        if preserve_seam and self.seam[i0]:
            return False
        if preserve_foldover and self.foldover[i0]:
            return False
        return True

    def flipped(self, p: np.ndarray, i0: int, i1: int, normal_flip_threshold: float) -> Tuple[bool, List[int]]:
        """
        Check whether moving i0 to p flips any of its triangles.

        Triangles of i0 that also contain i1 will degenerate and are returned
        for deletion instead of being checked.

        Returns:
            Tuple of (flipped, ids of triangles that collapse with the edge)
        """
        to_delete = []
        for tid, corner in self.refs[i0]:
            t = self.triangles[tid]
            if t.deleted:
                continue

            id1 = t.v[(corner + 1) % 3]
            id2 = t.v[(corner + 2) % 3]
            if id1 == i1 or id2 == i1:
                to_delete.append(tid)
                continue

            d1 = normalize(self.positions[id1] - p)
            d2 = normalize(self.positions[id2] - p)
            if abs(np.dot(d1, d2)) > 0.999:
                return True, to_delete

            n = normalize(np.cross(d1, d2))
            if np.dot(n, t.normal) < normal_flip_threshold:
                return True, to_delete

        return False, to_delete
