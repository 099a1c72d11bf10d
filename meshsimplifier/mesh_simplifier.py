"""
Mesh Simplifier
===============

Main mesh simplification class that performs iterative edge collapse
using Quadric Error Metrics with a priority queue.

Collapses run in threshold passes: every pass accepts candidates whose
error lies below a threshold that grows with the pass number, always
taking the cheapest candidate first. Triangles touched by a collapse are
marked dirty and their edge errors are recomputed lazily before the next
candidate is chosen.
"""

import copy
import heapq
from collections import Counter
from typing import Callable, List, Optional, Set, Tuple

import numpy as np

from .attributes import VertexAttributes
from .exceptions import SimplificationCancelled, SimplificationOptionsError
from .mesh_data import BlendShape, MeshData, get_index_dtype
from .options import SimplificationOptions
from .qem import QuadricErrorMetrics, barycentric_coordinates
from .topology import MeshTopology, Ref, Triangle


LOSSLESS_THRESHOLD = 1e-3
MAX_LOSSLESS_ITERATIONS = 9999

# (error, triangle index, edge index, triangle version)
QueueEntry = Tuple[float, int, int, int]


def pass_threshold(iteration: int, aggressiveness: float) -> float:
    """Error threshold of a simplification pass."""
    return 1e-9 * (iteration + 3) ** aggressiveness


class MeshSimplifier:
    """
    Mesh simplification using Quadric Error Metrics (QEM).

    Implements iterative edge collapse with:
    - Priority queue based on collapse error, ties broken by triangle index
    - Lazy updates of dirty triangles
    - Border, UV seam and UV foldover handling
    - Normal flip rejection
    - Interpolation of every attribute stream and blend shape

    Usage:
        simplifier = MeshSimplifier(options)
        simplifier.initialize(mesh)
        simplifier.simplify_mesh(0.5)
        result = simplifier.to_mesh()
    """

    def __init__(self, options: Optional[SimplificationOptions] = None,
                 verbose: bool = False,
                 cancel: Optional[Callable[[], bool]] = None):
        """
        Initialize the mesh simplifier.

        Args:
            options: Simplification options (defaults if None)
            verbose: Print progress for every pass
            cancel: Optional poll checked between passes; returning True
                aborts the run with SimplificationCancelled
        """
        self.options = options if options is not None else SimplificationOptions()
        self.options.validate()
        self.verbose = verbose
        self.cancel = cancel

        # Observable progress
        self.iteration = 0
        self.triangle_count = 0

        self._mesh: Optional[MeshData] = None
        self._source_vertex_indices: Optional[np.ndarray] = None
        self._source_vertex_count = 0

        # State variables (initialized per run)
        self._qem: Optional[QuadricErrorMetrics] = None
        self._topology: Optional[MeshTopology] = None
        self._attributes: Optional[VertexAttributes] = None
        self._priority_queue: List[QueueEntry] = []
        self._dirty: Set[int] = set()
        self._submesh_live: List[int] = []

    def initialize(self, mesh: MeshData):
        """
        Copy a mesh into the simplifier.

        Args:
            mesh: The mesh to simplify

        Raises:
            MeshValidationError: if the mesh buffers are inconsistent
        """
        mesh.validate()
        self._mesh = mesh.copy()
        self._source_vertex_indices = np.arange(mesh.vertex_count, dtype=np.int64)
        self._source_vertex_count = mesh.vertex_count
        self.triangle_count = mesh.triangle_count
        self.iteration = 0

    def simplify_mesh(self, quality: float):
        """
        Simplify the mesh towards a fraction of its current triangle count.

        Args:
            quality: Fraction of triangles to keep, clamped to [0, 1]

        Raises:
            SimplificationCancelled: if the cancel poll requested an abort
        """
        self._require_initialized()
        quality = min(1.0, max(0.0, float(quality)))

        start_count = self._mesh.triangle_count
        target_count = int(round(start_count * quality))
        self._begin()

        if self.verbose:
            print(f"Starting simplification: {start_count} -> {target_count} triangles")

        max_error = self.options.max_error
        for iteration in range(self.options.max_iteration_count):
            self.iteration = iteration
            if self.triangle_count <= target_count:
                break
            self._check_cancelled()

            threshold = pass_threshold(iteration, self.options.aggressiveness)
            if max_error is not None:
                threshold = min(threshold, max_error)
            if self.verbose:
                print(f"  Iteration {iteration}: {self.triangle_count} triangles, threshold {threshold:.6g}")

            deleted = self._remove_vertex_pass(target_count, threshold)

            if not self._priority_queue and not self._dirty:
                if self.verbose:
                    print("No more valid edges to collapse")
                break
            if max_error is not None and threshold >= max_error and deleted == 0:
                if self.verbose:
                    print(f"Reached max error threshold: {max_error}")
                break

        self._compact_mesh()

        if self.verbose:
            print(f"Simplification complete: {self.triangle_count} triangles")

    def simplify_mesh_lossless(self):
        """
        Collapse every edge whose error stays below a small fixed threshold,
        repeating until a pass removes nothing.

        Raises:
            SimplificationCancelled: if the cancel poll requested an abort
        """
        self._require_initialized()
        self._begin()

        for iteration in range(MAX_LOSSLESS_ITERATIONS):
            self.iteration = iteration
            self._check_cancelled()

            if self.verbose:
                print(f"  Lossless iteration {iteration}: {self.triangle_count} triangles")

            if self._remove_vertex_pass(0, LOSSLESS_THRESHOLD) <= 0:
                break

        self._compact_mesh()

        if self.verbose:
            print(f"Simplification complete: {self.triangle_count} triangles")

    # ------------------------------------------------------------------
    # Run setup
    # ------------------------------------------------------------------

    def _require_initialized(self):
        if self._mesh is None:
            raise RuntimeError("The simplifier has not been initialized with a mesh")

    def _check_cancelled(self):
        if self.cancel is not None and self.cancel():
            self._topology = None
            self._attributes = None
            self._priority_queue = []
            self._dirty = set()
            raise SimplificationCancelled(
                f"Simplification cancelled at iteration {self.iteration}")

    def _check_locked_indices(self, mesh: MeshData):
        """Locked vertices index the initialized mesh, locked submeshes the current one."""
        out_of_range = [i for i in self.options.locked_vertices if i >= self._source_vertex_count]
        if out_of_range:
            raise SimplificationOptionsError(
                "locked_vertices",
                f"Locked vertex index {min(out_of_range)} is out of range "
                f"[0, {self._source_vertex_count})")
        out_of_range = [i for i in self.options.locked_submeshes if i >= mesh.submesh_count]
        if out_of_range:
            raise SimplificationOptionsError(
                "locked_submeshes",
                f"Locked submesh index {min(out_of_range)} is out of range "
                f"[0, {mesh.submesh_count})")

    def _begin(self):
        """Build the working topology and candidate queue from the current mesh."""
        options = self.options
        options.validate()
        mesh = self._mesh
        self._check_locked_indices(mesh)

        faces = mesh.get_triangles()
        submesh_ids = np.repeat(np.arange(mesh.submesh_count),
                                [len(s) // 3 for s in mesh.submeshes])

        locked = np.isin(self._source_vertex_indices, list(options.locked_vertices))
        for submesh in options.locked_submeshes:
            locked[faces[submesh_ids == submesh].reshape(-1)] = True

        self._qem = QuadricErrorMetrics(boundary_weight=options.boundary_weight)
        self._attributes = VertexAttributes(mesh, options.manual_uv_component_count,
                                            options.uv_component_count)
        self._topology = MeshTopology(mesh.vertices, faces, submesh_ids, locked, self._qem)
        self._topology.build(self._attributes, options.enable_smart_link,
                             options.vertex_link_distance)

        self._submesh_live = [0] * mesh.submesh_count
        self._dirty = set()
        for t in self._topology.triangles:
            if not t.deleted:
                self._submesh_live[t.submesh] += 1
                self._dirty.add(t.index)
        self.triangle_count = sum(self._submesh_live)
        self._priority_queue = []

    # ------------------------------------------------------------------
    # Candidate evaluation
    # ------------------------------------------------------------------

    def _calculate_error(self, i0: int, i1: int) -> Tuple[float, np.ndarray]:
        """Collapse error and target position of edge (i0, i1)."""
        topology = self._topology
        border_edge = topology.border[i0] and topology.border[i1]

        p, error, solved = self._qem.compute_edge_collapse_error(
            topology.quadrics[i0], topology.quadrics[i1],
            topology.positions[i0], topology.positions[i1], solve=not border_edge)

        if solved and self.options.preserve_surface_curvature:
            error += topology.curvature_error(i0, i1)
        return error, p

    def _refresh_dirty_triangles(self):
        """Recompute edge errors of dirty triangles and queue their edges."""
        if not self._dirty:
            return

        topology = self._topology
        options = self.options
        for tid in sorted(self._dirty):
            t = topology.triangles[tid]
            if t.deleted:
                continue

            for edge in range(3):
                t.err[edge], _ = self._calculate_error(t.v[edge], t.v[(edge + 1) % 3])
            t.err[3] = min(t.err[0], t.err[1], t.err[2])
            t.version += 1

            for edge in range(3):
                if topology.is_collapse_allowed(t.v[edge], t.v[(edge + 1) % 3],
                                                options.preserve_border_edges,
                                                options.preserve_uv_seam_edges,
                                                options.preserve_uv_foldover_edges):
                    heapq.heappush(self._priority_queue, (t.err[edge], tid, edge, t.version))
        self._dirty.clear()

    def _pop_best_candidate(self, threshold: float) -> Optional[QueueEntry]:
        """Get the cheapest current candidate at or below threshold."""
        while True:
            self._refresh_dirty_triangles()
            if not self._priority_queue or self._priority_queue[0][0] > threshold:
                return None

            entry = heapq.heappop(self._priority_queue)
            t = self._topology.triangles[entry[1]]

            # Skip stale entries (lazy deletion)
            if t.deleted or t.version != entry[3]:
                continue
            return entry

    def _remove_vertex_pass(self, target_count: int, threshold: float) -> int:
        """
        Collapse candidates below threshold until the target is reached.

        Rejected candidates are retried in the next pass.

        Returns:
            Number of triangles deleted in this pass
        """
        start_count = self.triangle_count
        rejected = []

        while self.triangle_count > target_count:
            entry = self._pop_best_candidate(threshold)
            if entry is None:
                break

            t = self._topology.triangles[entry[1]]
            if not self._collapse_edge(t, entry[2]):
                rejected.append(entry)

        for entry in rejected:
            heapq.heappush(self._priority_queue, entry)

        return start_count - self.triangle_count

    # ------------------------------------------------------------------
    # Collapse
    # ------------------------------------------------------------------

    def _keeps_every_submesh(self, to_delete: Set[int]) -> bool:
        """Whether every submesh keeps at least one triangle after deleting to_delete."""
        removed = Counter(self._topology.triangles[tid].submesh for tid in to_delete)
        return all(self._submesh_live[submesh] > count for submesh, count in removed.items())

    def _collapse_edge(self, t: Triangle, edge: int) -> bool:
        """
        Perform an edge collapse.

        Vertex i0 is kept and moved to the optimal position, i1 is removed.
        All triangles referencing i1 are updated to reference i0.

        Returns:
            False if the collapse was rejected
        """
        topology = self._topology
        next_edge = (edge + 1) % 3
        next_next_edge = (edge + 2) % 3
        i0, i1, i2 = t.v[edge], t.v[next_edge], t.v[next_next_edge]

        _, p = self._calculate_error(i0, i1)

        # Don't remove if flipped
        threshold = self.options.normal_flip_threshold
        flipped, deleted0 = topology.flipped(p, i0, i1, threshold)
        if flipped:
            return False
        flipped, deleted1 = topology.flipped(p, i1, i0, threshold)
        if flipped:
            return False

        to_delete = set(deleted0) | set(deleted1)
        if not self._keeps_every_submesh(to_delete):
            return False

        positions = topology.positions
        bary = barycentric_coordinates(p, positions[i0], positions[i1], positions[i2])

        positions[i0] = p
        topology.quadrics[i0] += topology.quadrics[i1]

        ia0, ia1, ia2 = t.va[edge], t.va[next_edge], t.va[next_next_edge]
        self._attributes.interpolate(ia0, ia0, ia1, ia2, bary)

        # Seam vertices keep their own attributes
        if topology.seam[i0]:
            ia0 = -1

        new_refs: List[Ref] = []
        self._update_triangles(i0, ia0, topology.refs[i0], to_delete, new_refs)
        self._update_triangles(i0, ia0, topology.refs[i1], to_delete, new_refs)
        topology.refs[i0] = new_refs
        topology.refs[i1] = []
        return True

    def _update_triangles(self, i0: int, ia0: int, refs: List[Ref],
                          to_delete: Set[int], new_refs: List[Ref]):
        """Point the triangles of a collapsed vertex at i0 and delete degenerate ones."""
        for tid, corner in refs:
            t = self._topology.triangles[tid]
            if t.deleted:
                continue

            if tid in to_delete:
                t.deleted = True
                self._submesh_live[t.submesh] -= 1
                self.triangle_count -= 1
                continue

            t.v[corner] = i0
            if ia0 != -1:
                t.va[corner] = ia0
            self._dirty.add(tid)
            new_refs.append((tid, corner))

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def _compact_mesh(self):
        """Remove deleted triangles and unused vertices and rebuild the submeshes."""
        topology = self._topology
        attributes = self._attributes
        mesh = self._mesh

        positions = topology.positions
        out_positions = positions.copy()
        live = [t for t in topology.triangles if not t.deleted]

        # Attribute vertices become the output vertices, placed where their
        # position vertex ended up
        for t in live:
            for corner in range(3):
                if t.va[corner] != t.v[corner]:
                    out_positions[t.va[corner]] = positions[t.v[corner]]
                    attributes.copy_bone_data(t.va[corner], t.v[corner])
                    t.v[corner] = t.va[corner]

        faces = np.array([t.v for t in live], dtype=np.int64).reshape(-1, 3)
        submesh_ids = np.array([t.submesh for t in live], dtype=np.int64)

        used = np.unique(faces)
        remap = np.full(topology.vertex_count, -1, dtype=np.int64)
        remap[used] = np.arange(len(used))
        faces = remap[faces]

        attributes.compact(used)
        submeshes = [faces[submesh_ids == submesh].reshape(-1)
                     for submesh in range(mesh.submesh_count)]

        self._mesh = attributes.to_mesh_data(out_positions[used], submeshes)
        self._source_vertex_indices = self._source_vertex_indices[used]
        self.triangle_count = len(faces)

        self._topology = None
        self._attributes = None
        self._priority_queue = []
        self._dirty = set()

    def get_submesh_triangles(self, submesh_index: int) -> np.ndarray:
        """
        Index array of one submesh, using 16-bit indices when its largest
        index fits and 32-bit otherwise.
        """
        self._require_initialized()
        if submesh_index < 0 or submesh_index >= self._mesh.submesh_count:
            raise IndexError(f"Submesh index {submesh_index} out of range "
                             f"[0, {self._mesh.submesh_count})")
        indices = self._mesh.submeshes[submesh_index]
        max_index = int(indices.max()) if indices.size > 0 else 0
        return indices.astype(get_index_dtype(max_index))

    def get_all_submesh_triangles(self) -> List[np.ndarray]:
        self._require_initialized()
        return [self.get_submesh_triangles(i) for i in range(self._mesh.submesh_count)]

    def get_blend_shape(self, blend_shape_index: int) -> BlendShape:
        self._require_initialized()
        shapes = self._mesh.blend_shapes
        if blend_shape_index < 0 or blend_shape_index >= len(shapes):
            raise IndexError(f"Blend shape index {blend_shape_index} out of range [0, {len(shapes)})")
        return copy.deepcopy(shapes[blend_shape_index])

    def get_all_blend_shapes(self) -> List[BlendShape]:
        self._require_initialized()
        return copy.deepcopy(self._mesh.blend_shapes)

    @property
    def vertices(self) -> np.ndarray:
        self._require_initialized()
        return self._mesh.vertices.copy()

    @property
    def submesh_count(self) -> int:
        self._require_initialized()
        return self._mesh.submesh_count

    @property
    def blend_shape_count(self) -> int:
        self._require_initialized()
        return len(self._mesh.blend_shapes)

    @property
    def source_vertex_indices(self) -> np.ndarray:
        """Index of the input vertex every current vertex originates from."""
        self._require_initialized()
        return self._source_vertex_indices.copy()

    def to_mesh(self) -> MeshData:
        """
        Returns the resulting mesh, with freshly allocated buffers.
        """
        self._require_initialized()
        result = self._mesh.copy()
        result.submeshes = self.get_all_submesh_triangles()
        return result


def simplify(mesh: MeshData, quality: float,
             options: Optional[SimplificationOptions] = None,
             verbose: bool = False) -> MeshData:
    """
    Simplify a mesh in one call.

    Args:
        mesh: Input mesh
        quality: Fraction of triangles to keep (0.0 to 1.0)
        options: Simplification options
        verbose: Print progress

    Returns:
        The simplified mesh
    """
    simplifier = MeshSimplifier(options, verbose=verbose)
    simplifier.initialize(mesh)
    simplifier.simplify_mesh(quality)
    return simplifier.to_mesh()
